"""Async SQLAlchemy engine and per-request sessions.

Sessions are created with ``expire_on_commit=False``: services commit the
XP transaction and keep reading the same ORM rows for the badge check.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from studyhall.config import Settings

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _engine_options(settings: Settings) -> dict:
    if settings.database_url.startswith("sqlite"):
        return {"echo": settings.debug}
    return {
        "echo": settings.debug,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
        # pgbouncer in transaction mode
        "connect_args": {"statement_cache_size": 0},
    }


async def init_db(settings: Settings) -> None:
    global _engine, _session_factory  # noqa: PLW0603
    _engine = create_async_engine(settings.database_url, **_engine_options(settings))
    _session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)


async def close_db() -> None:
    global _engine, _session_factory  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


def _factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise RuntimeError("Database is not initialized; init_db() runs in the app lifespan")
    return _session_factory


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """A session outside a request, e.g. for startup seeding."""
    async with _factory()() as session:
        yield session


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session per request (FastAPI dependency)."""
    async with _factory()() as session:
        yield session
