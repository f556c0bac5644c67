import os
import sys

# settings are read at import time, so they have to be in place first
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("DEV", "TRUE")
os.environ.setdefault("RATE_LIMIT_ENABLED", "FALSE")
os.environ.setdefault("BACKUP_CODE_BCRYPT_ROUNDS", "4")
os.environ.setdefault("PASSWORD_BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "app")))

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from api.auth.password_utils import hash_password
from database.models import AdminAuthBase, Admins
from database.store import SqlCredentialStore
from twofactor import InMemoryCredentialStore, TOTPEngine

ADMIN_PASSWORD = "Password123"


@pytest.fixture
def store():
    return InMemoryCredentialStore()


@pytest.fixture
def engine(store):
    return TOTPEngine(store, issuer="Voting System")


@pytest.fixture
async def session_factory(tmp_path):
    db_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with db_engine.begin() as conn:
        await conn.run_sync(AdminAuthBase.metadata.create_all)
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    yield factory
    await db_engine.dispose()


@pytest.fixture
async def admin_id(session_factory):
    async with session_factory() as session:
        admin = Admins(username="admin", password_hash=hash_password(ADMIN_PASSWORD))
        session.add(admin)
        await session.commit()
        return admin.id


@pytest.fixture
def sql_store(session_factory):
    return SqlCredentialStore(session_factory)
