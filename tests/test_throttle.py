from datetime import datetime, timedelta, timezone

import pytest

from twofactor import ConfigurationMissing, InvalidCode, TooManyAttempts
from twofactor.throttle import AttemptLimiter

ADMIN = 3
IP = "203.0.113.7"
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def limiter(store):
    return AttemptLimiter(store, max_attempts=3, lockout=timedelta(minutes=15))


async def _fail():
    raise InvalidCode()


async def _succeed():
    return "ok"


async def test_success_passes_result_through(limiter):
    assert await limiter.guard(ADMIN, IP, _succeed, now=NOW) == "ok"


async def test_lockout_after_max_attempts(limiter):
    for _ in range(3):
        with pytest.raises(InvalidCode):
            await limiter.guard(ADMIN, IP, _fail, now=NOW)

    called = []

    async def attempt():
        called.append(True)
        return "ok"

    with pytest.raises(TooManyAttempts) as excinfo:
        await limiter.guard(ADMIN, IP, attempt, now=NOW + timedelta(minutes=1))
    assert not called
    assert excinfo.value.retry_after == timedelta(minutes=14)


async def test_lockout_expires(limiter):
    for _ in range(3):
        with pytest.raises(InvalidCode):
            await limiter.guard(ADMIN, IP, _fail, now=NOW)
    later = NOW + timedelta(minutes=15, seconds=1)
    assert await limiter.guard(ADMIN, IP, _succeed, now=later) == "ok"


async def test_success_resets_counter(limiter, store):
    for _ in range(2):
        with pytest.raises(InvalidCode):
            await limiter.guard(ADMIN, IP, _fail, now=NOW)
    await limiter.guard(ADMIN, IP, _succeed, now=NOW)
    assert await store.get_attempts(ADMIN, IP) is None
    for _ in range(2):
        with pytest.raises(InvalidCode):
            await limiter.guard(ADMIN, IP, _fail, now=NOW)
    await limiter.check(ADMIN, IP, now=NOW)


async def test_lockout_is_per_address(limiter):
    for _ in range(3):
        with pytest.raises(InvalidCode):
            await limiter.guard(ADMIN, IP, _fail, now=NOW)
    assert await limiter.guard(ADMIN, "198.51.100.1", _succeed, now=NOW) == "ok"


async def test_other_errors_do_not_count(limiter, store):
    async def not_configured():
        raise ConfigurationMissing(ADMIN)

    for _ in range(5):
        with pytest.raises(ConfigurationMissing):
            await limiter.guard(ADMIN, IP, not_configured, now=NOW)
    assert await store.get_attempts(ADMIN, IP) is None
