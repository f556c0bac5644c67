"""
Admin password hashing with bcrypt.
"""

import os
from typing import Optional
import bcrypt
from dotenv import load_dotenv

load_dotenv()

PASSWORD_BCRYPT_ROUNDS = int(os.getenv("PASSWORD_BCRYPT_ROUNDS", "12"))

# checked against when the username doesn't exist, so both paths cost one bcrypt round trip
_DUMMY_HASH = bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt(rounds=PASSWORD_BCRYPT_ROUNDS))


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password to hash

    Returns:
        Hashed password string (includes salt)
    """
    salt = bcrypt.gensalt(rounds=PASSWORD_BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Verify a password against its hash.

    Args:
        plain_password: Plain text password to verify
        hashed_password: Stored bcrypt hash, None for an unknown account

    Returns:
        True if password matches, False otherwise
    """
    pwd_bytes = plain_password.encode('utf-8')
    if hashed_password is None:
        bcrypt.checkpw(pwd_bytes, _DUMMY_HASH)
        return False

    try:
        return bcrypt.checkpw(pwd_bytes, hashed_password.encode('utf-8'))
    except ValueError:
        # invalid hash format in the database
        return False
