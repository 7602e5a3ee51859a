"""
Database engine and session lifecycle

The engine is created lazily on first use and torn down by close_db(). Celery
tasks run each job on a private event loop, so they call close_db() when the
job ends and the next job builds a fresh engine on its own loop.
"""

import os
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator, Dict

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from sovtrack.config import get_settings
from sovtrack.models import Base

_engine = None
_async_session_maker = None

ASYNC_DRIVERS = {
    "postgresql://": "postgresql+asyncpg://",
    "postgres://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}


def _get_database_url() -> str:
    """DATABASE_URL with its scheme rewritten to the matching async driver"""
    database_url = get_settings().DATABASE_URL
    for scheme, async_scheme in ASYNC_DRIVERS.items():
        if database_url.startswith(scheme):
            return async_scheme + database_url[len(scheme):]
    return database_url


def _is_serverless() -> bool:
    """Check if running in serverless environment"""
    return bool(os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME"))


def _engine_options() -> Dict[str, Any]:
    settings = get_settings()
    options: Dict[str, Any] = {"echo": settings.DEBUG}

    if _is_serverless():
        options["poolclass"] = NullPool
    elif settings.is_sqlite:
        # Writers wait for each other instead of failing with "database is locked"
        options["connect_args"] = {"timeout": settings.SNAPSHOT_LOCK_TIMEOUT_SECONDS}
    else:
        options["pool_pre_ping"] = True
        options["pool_size"] = settings.DATABASE_POOL_SIZE
        options["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
    return options


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on"""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(_get_database_url(), **_engine_options())
        if get_settings().is_sqlite:
            _enable_sqlite_foreign_keys(_engine)
    return _engine


def _get_session_maker():
    global _async_session_maker
    if _async_session_maker is None:
        _async_session_maker = async_sessionmaker(
            _get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _async_session_maker


@asynccontextmanager
async def _session_scope() -> AsyncIterator[AsyncSession]:
    """Commit on success, roll back and re-raise on any error"""
    async with _get_session_maker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request"""
    async with _session_scope() as session:
        yield session


@asynccontextmanager
async def get_db_context() -> AsyncIterator[AsyncSession]:
    """Session for Celery tasks and scripts"""
    async with _session_scope() as session:
        yield session


async def init_db():
    """Create any missing tables"""
    async with _get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Dispose of the engine; the next use creates a new one"""
    global _engine, _async_session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_maker = None
