"""
Credential store contract used by the two-factor engine.

The engine never talks to a database handle directly; it gets one of
these injected. database/store.py has the SQLAlchemy implementation, the
in-memory one below backs the tests and single-process tooling.
"""

import abc
import itertools
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from .errors import ConfigurationMissing


@dataclass(frozen=True)
class BackupCodeRow:
    id: int
    code_hash: str


@dataclass(frozen=True)
class AttemptRecord:
    admin_id: int
    ip_address: str
    attempts: int
    last_attempt: Optional[datetime] = None
    locked_until: Optional[datetime] = None


class CredentialStore(abc.ABC):
    """
    Persistence boundary for TOTP secrets and backup codes.

    Every operation is atomic on its own and raises StorageFailure when
    the backend fails.
    """

    @abc.abstractmethod
    async def store_secret(self, admin_id: int, secret: str) -> None:
        """Insert or replace the admin's secret. The credential starts out not enabled."""

    @abc.abstractmethod
    async def get_secret(self, admin_id: int) -> Optional[str]:
        ...

    @abc.abstractmethod
    async def is_enabled(self, admin_id: int) -> bool:
        ...

    @abc.abstractmethod
    async def enable(self, admin_id: int) -> None:
        """Mark the credential confirmed. Raises ConfigurationMissing without a secret."""

    @abc.abstractmethod
    async def disable(self, admin_id: int) -> None:
        """Delete the secret together with every backup code of the admin."""

    @abc.abstractmethod
    async def store_backup_codes(self, admin_id: int, hashed_codes: List[str]) -> None:
        """Replace all backup codes of the admin with a new batch in one transaction."""

    @abc.abstractmethod
    async def fetch_unused_backup_codes(self, admin_id: int) -> List[BackupCodeRow]:
        """Unused rows ordered by row id."""

    @abc.abstractmethod
    async def mark_backup_code_used(self, row_id: int) -> bool:
        """
        Flip `used` from false to true.

        Returns True only for the caller that performed the transition,
        False if the row was already used or no longer exists.
        """


class AttemptStore(abc.ABC):
    """Failed-attempt bookkeeping, only consulted by throttle.AttemptLimiter."""

    @abc.abstractmethod
    async def get_attempts(self, admin_id: int, ip_address: str) -> Optional[AttemptRecord]:
        ...

    @abc.abstractmethod
    async def record_failure(
        self, admin_id: int, ip_address: str, now: datetime, max_attempts: int, lockout: timedelta
    ) -> AttemptRecord:
        """Count a failure; once `max_attempts` is reached lock until now + lockout and restart the count."""

    @abc.abstractmethod
    async def reset_attempts(self, admin_id: int, ip_address: str) -> None:
        ...


class InMemoryCredentialStore(CredentialStore, AttemptStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._secrets: Dict[int, Tuple[str, bool]] = {}
        # row id -> [admin_id, code_hash, used]
        self._backup_codes: Dict[int, list] = {}
        self._attempts: Dict[Tuple[int, str], AttemptRecord] = {}
        self._row_ids = itertools.count(1)

    async def store_secret(self, admin_id: int, secret: str) -> None:
        with self._lock:
            self._secrets[admin_id] = (secret, False)

    async def get_secret(self, admin_id: int) -> Optional[str]:
        with self._lock:
            entry = self._secrets.get(admin_id)
        return entry[0] if entry else None

    async def is_enabled(self, admin_id: int) -> bool:
        with self._lock:
            entry = self._secrets.get(admin_id)
        return bool(entry and entry[1])

    async def enable(self, admin_id: int) -> None:
        with self._lock:
            entry = self._secrets.get(admin_id)
            if entry is None:
                raise ConfigurationMissing(admin_id)
            self._secrets[admin_id] = (entry[0], True)

    async def disable(self, admin_id: int) -> None:
        with self._lock:
            self._secrets.pop(admin_id, None)
            self._drop_backup_codes(admin_id)

    async def store_backup_codes(self, admin_id: int, hashed_codes: List[str]) -> None:
        with self._lock:
            self._drop_backup_codes(admin_id)
            for code_hash in hashed_codes:
                self._backup_codes[next(self._row_ids)] = [admin_id, code_hash, False]

    async def fetch_unused_backup_codes(self, admin_id: int) -> List[BackupCodeRow]:
        with self._lock:
            return [
                BackupCodeRow(id=row_id, code_hash=row[1])
                for row_id, row in sorted(self._backup_codes.items())
                if row[0] == admin_id and not row[2]
            ]

    async def mark_backup_code_used(self, row_id: int) -> bool:
        with self._lock:
            row = self._backup_codes.get(row_id)
            if row is None or row[2]:
                return False
            row[2] = True
            return True

    async def get_attempts(self, admin_id: int, ip_address: str) -> Optional[AttemptRecord]:
        with self._lock:
            return self._attempts.get((admin_id, ip_address))

    async def record_failure(
        self, admin_id: int, ip_address: str, now: datetime, max_attempts: int, lockout: timedelta
    ) -> AttemptRecord:
        with self._lock:
            key = (admin_id, ip_address)
            record = self._attempts.get(key) or AttemptRecord(admin_id=admin_id, ip_address=ip_address, attempts=0)
            attempts = record.attempts + 1
            if attempts >= max_attempts:
                record = replace(record, attempts=0, last_attempt=now, locked_until=now + lockout)
            else:
                record = replace(record, attempts=attempts, last_attempt=now)
            self._attempts[key] = record
            return record

    async def reset_attempts(self, admin_id: int, ip_address: str) -> None:
        with self._lock:
            self._attempts.pop((admin_id, ip_address), None)

    def _drop_backup_codes(self, admin_id: int) -> None:
        for row_id in [row_id for row_id, row in self._backup_codes.items() if row[0] == admin_id]:
            del self._backup_codes[row_id]
