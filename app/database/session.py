import os
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from common.log_handler import log

load_dotenv()

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def async_database_url(url: str) -> str:
    """DATABASE_URL stays a sync url (alembic needs that), the app swaps in an async driver."""
    if url.startswith("postgresql://"):
        return f"postgresql+asyncpg{url[10:]}"
    if url.startswith("sqlite://"):
        return f"sqlite+aiosqlite{url[6:]}"
    return url


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        databasepath = os.getenv("DATABASE_URL")
        if not databasepath or databasepath.strip() == "":
            log.critical("DATABASE_URL is not set")
            raise RuntimeError("DATABASE_URL is not set")
        url = async_database_url(databasepath.strip())
        if url.startswith("postgresql+asyncpg"):
            _engine = create_async_engine(url, echo=False, pool_size=20, max_overflow=10, pool_recycle=3600, pool_pre_ping=True)
        else:
            _engine = create_async_engine(url, echo=False)
    return _engine


def get_session_factory() -> async_sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)
    return _session_factory

