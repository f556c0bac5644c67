"""
SQLAlchemy implementation of the two-factor credential store.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from common.log_handler import log
from twofactor.errors import ConfigurationMissing, StorageFailure
from twofactor.store import AttemptRecord, AttemptStore, BackupCodeRow, CredentialStore
from .models import AdminBackupCodes, AdminTotpAttempts, AdminTotpSecrets


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _naive(value: datetime) -> datetime:
    # columns are timestamp without time zone, always UTC
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class SqlCredentialStore(CredentialStore, AttemptStore):
    """
    Every method runs in its own transaction. Driver errors are raised as
    StorageFailure so a broken database never looks like a wrong code.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def store_secret(self, admin_id: int, secret: str) -> None:
        try:
            async with self.session_factory() as session, session.begin():
                result = await session.execute(
                    select(AdminTotpSecrets).where(AdminTotpSecrets.admin_id == admin_id).with_for_update()
                )
                row = result.scalars().first()
                if row is None:
                    session.add(AdminTotpSecrets(admin_id=admin_id, secret=secret, enabled=False, created_at=_utcnow()))
                else:
                    row.secret = secret
                    row.enabled = False
                    row.created_at = _utcnow()
        except SQLAlchemyError as e:
            log.error(f"Error storing TOTP secret for admin {admin_id}: {e}")
            raise StorageFailure("Could not store TOTP secret") from e

    async def get_secret(self, admin_id: int) -> Optional[str]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(AdminTotpSecrets.secret).where(AdminTotpSecrets.admin_id == admin_id)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            log.error(f"Error retrieving TOTP secret for admin {admin_id}: {e}")
            raise StorageFailure("Could not read TOTP secret") from e

    async def is_enabled(self, admin_id: int) -> bool:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(AdminTotpSecrets.enabled).where(AdminTotpSecrets.admin_id == admin_id)
                )
                return bool(result.scalar_one_or_none())
        except SQLAlchemyError as e:
            log.error(f"Error reading TOTP state for admin {admin_id}: {e}")
            raise StorageFailure("Could not read TOTP state") from e

    async def enable(self, admin_id: int) -> None:
        try:
            async with self.session_factory() as session, session.begin():
                result = await session.execute(
                    update(AdminTotpSecrets).where(AdminTotpSecrets.admin_id == admin_id).values(enabled=True)
                )
                updated = result.rowcount
        except SQLAlchemyError as e:
            log.error(f"Error enabling TOTP for admin {admin_id}: {e}")
            raise StorageFailure("Could not enable TOTP") from e
        if updated == 0:
            raise ConfigurationMissing(admin_id)

    async def disable(self, admin_id: int) -> None:
        try:
            async with self.session_factory() as session, session.begin():
                await session.execute(delete(AdminBackupCodes).where(AdminBackupCodes.admin_id == admin_id))
                await session.execute(delete(AdminTotpSecrets).where(AdminTotpSecrets.admin_id == admin_id))
        except SQLAlchemyError as e:
            log.error(f"Error disabling TOTP for admin {admin_id}: {e}")
            raise StorageFailure("Could not disable TOTP") from e

    async def store_backup_codes(self, admin_id: int, hashed_codes: List[str]) -> None:
        try:
            async with self.session_factory() as session, session.begin():
                await session.execute(delete(AdminBackupCodes).where(AdminBackupCodes.admin_id == admin_id))
                now = _utcnow()
                session.add_all(
                    AdminBackupCodes(admin_id=admin_id, code_hash=code_hash, used=False, created_at=now)
                    for code_hash in hashed_codes
                )
        except SQLAlchemyError as e:
            log.error(f"Error storing backup codes for admin {admin_id}: {e}")
            raise StorageFailure("Could not store backup codes") from e

    async def fetch_unused_backup_codes(self, admin_id: int) -> List[BackupCodeRow]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(AdminBackupCodes.id, AdminBackupCodes.code_hash)
                    .where((AdminBackupCodes.admin_id == admin_id) & (AdminBackupCodes.used == False))
                    .order_by(AdminBackupCodes.id)
                )
                return [BackupCodeRow(id=row.id, code_hash=row.code_hash) for row in result]
        except SQLAlchemyError as e:
            log.error(f"Error fetching backup codes for admin {admin_id}: {e}")
            raise StorageFailure("Could not read backup codes") from e

    async def mark_backup_code_used(self, row_id: int) -> bool:
        try:
            async with self.session_factory() as session, session.begin():
                # conditional update, the row only flips for one caller
                result = await session.execute(
                    update(AdminBackupCodes)
                    .where((AdminBackupCodes.id == row_id) & (AdminBackupCodes.used == False))
                    .values(used=True, used_at=_utcnow())
                )
                return result.rowcount == 1
        except SQLAlchemyError as e:
            log.error(f"Error marking backup code {row_id} used: {e}")
            raise StorageFailure("Could not mark backup code used") from e

    async def get_attempts(self, admin_id: int, ip_address: str) -> Optional[AttemptRecord]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(AdminTotpAttempts).where(
                        (AdminTotpAttempts.admin_id == admin_id) & (AdminTotpAttempts.ip_address == ip_address)
                    )
                )
                row = result.scalars().first()
                return _attempt_record(row) if row else None
        except SQLAlchemyError as e:
            log.error(f"Error reading attempts for admin {admin_id}: {e}")
            raise StorageFailure("Could not read attempts") from e

    async def record_failure(
        self, admin_id: int, ip_address: str, now: datetime, max_attempts: int, lockout: timedelta
    ) -> AttemptRecord:
        now = _naive(now)
        try:
            async with self.session_factory() as session, session.begin():
                result = await session.execute(
                    select(AdminTotpAttempts)
                    .where((AdminTotpAttempts.admin_id == admin_id) & (AdminTotpAttempts.ip_address == ip_address))
                    .with_for_update()
                )
                row = result.scalars().first()
                if row is None:
                    row = AdminTotpAttempts(admin_id=admin_id, ip_address=ip_address, attempts=0)
                    session.add(row)
                attempts = (row.attempts or 0) + 1
                row.last_attempt = now
                if attempts >= max_attempts:
                    row.attempts = 0
                    row.locked_until = now + lockout
                else:
                    row.attempts = attempts
                return _attempt_record(row)
        except SQLAlchemyError as e:
            log.error(f"Error recording failed attempt for admin {admin_id}: {e}")
            raise StorageFailure("Could not record attempt") from e

    async def reset_attempts(self, admin_id: int, ip_address: str) -> None:
        try:
            async with self.session_factory() as session, session.begin():
                await session.execute(
                    delete(AdminTotpAttempts).where(
                        (AdminTotpAttempts.admin_id == admin_id) & (AdminTotpAttempts.ip_address == ip_address)
                    )
                )
        except SQLAlchemyError as e:
            log.error(f"Error resetting attempts for admin {admin_id}: {e}")
            raise StorageFailure("Could not reset attempts") from e


def _attempt_record(row: AdminTotpAttempts) -> AttemptRecord:
    return AttemptRecord(
        admin_id=row.admin_id,
        ip_address=row.ip_address,
        attempts=row.attempts,
        last_attempt=row.last_attempt,
        locked_until=row.locked_until,
    )
