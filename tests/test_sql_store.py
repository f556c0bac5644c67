import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database.store import SqlCredentialStore
from twofactor import (
    AuthMethod,
    ConfigurationMissing,
    CredentialState,
    StorageFailure,
    TOTPEngine,
)

NOW = 1_700_000_015


async def test_secret_upsert(sql_store, admin_id):
    assert await sql_store.get_secret(admin_id) is None
    assert not await sql_store.is_enabled(admin_id)

    await sql_store.store_secret(admin_id, "FIRSTSECRET")
    await sql_store.enable(admin_id)
    assert await sql_store.is_enabled(admin_id)

    await sql_store.store_secret(admin_id, "SECONDSECRET")
    assert await sql_store.get_secret(admin_id) == "SECONDSECRET"
    assert not await sql_store.is_enabled(admin_id)


async def test_enable_without_secret(sql_store, admin_id):
    with pytest.raises(ConfigurationMissing):
        await sql_store.enable(admin_id)


async def test_backup_codes_replace_all(sql_store, admin_id):
    await sql_store.store_backup_codes(admin_id, ["h1", "h2", "h3"])
    await sql_store.store_backup_codes(admin_id, ["h4", "h5"])
    rows = await sql_store.fetch_unused_backup_codes(admin_id)
    assert [row.code_hash for row in rows] == ["h4", "h5"]
    assert rows[0].id < rows[1].id


async def test_mark_used_is_compare_and_set(sql_store, admin_id):
    await sql_store.store_backup_codes(admin_id, ["h1", "h2"])
    first, second = await sql_store.fetch_unused_backup_codes(admin_id)

    assert await sql_store.mark_backup_code_used(first.id)
    assert not await sql_store.mark_backup_code_used(first.id)
    assert not await sql_store.mark_backup_code_used(999_999)

    rows = await sql_store.fetch_unused_backup_codes(admin_id)
    assert [row.id for row in rows] == [second.id]


async def test_concurrent_mark_used_has_one_winner(sql_store, admin_id):
    await sql_store.store_backup_codes(admin_id, ["h1"])
    (row,) = await sql_store.fetch_unused_backup_codes(admin_id)

    results = await asyncio.gather(
        sql_store.mark_backup_code_used(row.id),
        sql_store.mark_backup_code_used(row.id),
    )
    assert sorted(results) == [False, True]
    assert await sql_store.fetch_unused_backup_codes(admin_id) == []


async def test_disable_cascades_to_backup_codes(sql_store, admin_id):
    await sql_store.store_secret(admin_id, "SECRET")
    await sql_store.store_backup_codes(admin_id, ["h1", "h2"])
    await sql_store.disable(admin_id)
    assert await sql_store.get_secret(admin_id) is None
    assert await sql_store.fetch_unused_backup_codes(admin_id) == []


async def test_attempt_records(sql_store, admin_id):
    now = datetime(2026, 10, 19, 12, 0)
    lockout = timedelta(minutes=15)
    record = await sql_store.record_failure(admin_id, "10.0.0.1", now, 2, lockout)
    assert record.attempts == 1
    assert record.locked_until is None

    record = await sql_store.record_failure(admin_id, "10.0.0.1", now, 2, lockout)
    assert record.attempts == 0
    assert record.locked_until == now + lockout

    stored = await sql_store.get_attempts(admin_id, "10.0.0.1")
    assert stored.locked_until == now + lockout

    await sql_store.reset_attempts(admin_id, "10.0.0.1")
    assert await sql_store.get_attempts(admin_id, "10.0.0.1") is None


async def test_missing_tables_raise_storage_failure(tmp_path):
    db_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    store = SqlCredentialStore(async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False))
    try:
        with pytest.raises(StorageFailure):
            await store.get_secret(1)
        with pytest.raises(StorageFailure):
            await store.mark_backup_code_used(1)
    finally:
        await db_engine.dispose()


async def test_engine_on_sql_store(sql_store, admin_id):
    engine = TOTPEngine(sql_store)
    enrollment = await engine.setup(admin_id, "admin")
    assert await engine.state(admin_id) == CredentialState.PENDING

    await engine.confirm(admin_id, engine.current_code(enrollment.secret, NOW), now=NOW)
    assert await engine.state(admin_id) == CredentialState.ENABLED

    code = enrollment.backup_codes[0]
    assert await engine.verify_login(admin_id, backup_code=code, now=NOW) == AuthMethod.BACKUP_CODE
    assert await engine.remaining_backup_codes(admin_id) == 9

    await engine.disable(admin_id, engine.current_code(enrollment.secret, NOW), now=NOW)
    assert await engine.state(admin_id) == CredentialState.NOT_CONFIGURED
    assert await engine.remaining_backup_codes(admin_id) == 0
