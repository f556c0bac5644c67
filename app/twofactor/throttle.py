"""
Optional lockout wrapper around second-factor verification.

Verification itself never looks at attempt counts. Callers that want a
lockout wrap their call with AttemptLimiter.guard().
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, TypeVar

from dotenv import load_dotenv

from common.log_handler import log
from .errors import InvalidCode, TooManyAttempts
from .store import AttemptStore

load_dotenv()

MAX_FAILED_ATTEMPTS = int(os.getenv("MAX_FAILED_ATTEMPTS", "5"))
LOCKOUT_DURATION = timedelta(minutes=int(os.getenv("LOCKOUT_MINUTES", "15")))

T = TypeVar("T")


class AttemptLimiter:
    def __init__(self, store: AttemptStore, max_attempts: int = MAX_FAILED_ATTEMPTS, lockout: timedelta = LOCKOUT_DURATION):
        self.store = store
        self.max_attempts = max_attempts
        self.lockout = lockout

    async def check(self, admin_id: int, ip: str, now: Optional[datetime] = None) -> None:
        now = now or datetime.now(timezone.utc)
        record = await self.store.get_attempts(admin_id, ip)
        if record and record.locked_until and _aware(record.locked_until) > now:
            raise TooManyAttempts(_aware(record.locked_until) - now)

    async def guard(
        self,
        admin_id: int,
        ip: str,
        attempt: Callable[[], Awaitable[T]],
        now: Optional[datetime] = None,
    ) -> T:
        """
        Run `attempt` unless the admin/ip pair is locked out.

        An InvalidCode from `attempt` counts as a failure and is re-raised,
        a successful attempt clears the counter. Other errors pass through
        without touching the counter.

        Raises:
            TooManyAttempts: The pair is locked, `attempt` was not called
        """
        now = now or datetime.now(timezone.utc)
        await self.check(admin_id, ip, now)
        try:
            result = await attempt()
        except InvalidCode:
            record = await self.store.record_failure(admin_id, ip, now, self.max_attempts, self.lockout)
            if record.locked_until and _aware(record.locked_until) > now:
                log.warning(f"Admin {admin_id} locked out from {ip} until {record.locked_until.isoformat()}")
            else:
                log.debug(f"Admin {admin_id} from {ip} failed attempts: {record.attempts}")
            raise
        await self.store.reset_attempts(admin_id, ip)
        return result


def _aware(value: datetime) -> datetime:
    # sqlite hands back naive datetimes, they are stored as UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
