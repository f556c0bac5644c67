"""
CLI tool to create admin accounts and enroll them in TOTP.
Usage: python -m cli.create_admin --username <username> --password <password> [--no-totp]
"""

import asyncio
import argparse
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from database.models import AdminAuthBase, Admins
from database.session import get_engine, get_session_factory
from database.store import SqlCredentialStore
from database.utils import fetch_admin
from api.auth.password_utils import hash_password
from twofactor import TOTPEngine, TwoFactorError


async def create_admin(username: str, password: str, enroll_totp: bool = True, session_factory=None) -> bool:
    """
    Create a new admin account, optionally with TOTP 2FA.

    The TOTP credential starts out pending; the admin confirms it with the
    first code from the app (/api/auth/totp/enable) or it never gets enforced.

    Args:
        username: Username for the admin account
        password: Password for the admin account
        enroll_totp: Generate a TOTP secret and backup codes right away
        session_factory: Session factory to use, defaults to DATABASE_URL
    """
    if session_factory is None:
        async with get_engine().begin() as conn:
            await conn.run_sync(AdminAuthBase.metadata.create_all)
        session_factory = get_session_factory()

    async with session_factory() as session:
        if await fetch_admin(session, username):
            print(f"❌ Error: Admin with username '{username}' already exists!")
            return False

        admin = Admins(username=username, password_hash=hash_password(password))
        session.add(admin)
        await session.commit()
        admin_id = admin.id

    print("\n" + "="*80)
    print("✅ Admin account created successfully!")
    print("="*80)
    print(f"\n👤 Username: {username}")
    print("🔐 Password: [set by you]")

    if not enroll_totp:
        print("\n⚠️  TOTP not enrolled, run the setup from the admin panel.")
        print("="*80 + "\n")
        return True

    engine = TOTPEngine(SqlCredentialStore(session_factory))
    try:
        enrollment = await engine.setup(admin_id, username)
    except TwoFactorError as e:
        print(f"❌ Error: TOTP enrollment failed: {e}")
        return False

    print(f"\n📱 TOTP Secret (for Google Authenticator):\n")
    print(f"   {enrollment.secret}")
    print(f"\n🔗 TOTP URI (scan this as a QR code):\n")
    print(f"   {enrollment.uri}")
    print(f"\n🗝  Backup codes (each works once, they will not be shown again):\n")
    for code in enrollment.backup_codes:
        print(f"   {code}")
    print("\n" + "="*80)
    print("\n📋 Instructions:")
    print("   1. Open Google Authenticator (or compatible TOTP app)")
    print("   2. Add a new account by scanning the URI as QR code or entering the secret manually")
    print("   3. Log in and confirm with the first 6-digit code to enable TOTP")
    print("="*80 + "\n")

    return True


def main():
    """Main entry point for the CLI tool."""
    parser = argparse.ArgumentParser(
        description="Create an admin account with TOTP 2FA for the voting system"
    )
    parser.add_argument(
        "--username",
        required=True,
        help="Username for the admin account"
    )
    parser.add_argument(
        "--password",
        required=True,
        help="Password for the admin account"
    )
    parser.add_argument(
        "--no-totp",
        action="store_true",
        help="Create the account without enrolling TOTP"
    )

    args = parser.parse_args()

    if len(args.username) < 3:
        print("❌ Error: Username must be at least 3 characters long")
        sys.exit(1)

    if len(args.password) < 8:
        print("❌ Error: Password must be at least 8 characters long")
        sys.exit(1)

    success = asyncio.run(create_admin(args.username, args.password, enroll_totp=not args.no_totp))

    if not success:
        sys.exit(1)


if __name__ == "__main__":
    main()
