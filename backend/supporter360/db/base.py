"""Declarative base and the process-wide async engine.

The schema itself is owned by the Alembic revisions under ``backend/alembic``;
nothing here creates tables.

Engine lifetime:
- The API process opens the engine in its lifespan and keeps a connection pool.
- Queue consumers and the poller wrap each run in ``database()``. A Lambda
  invocation gets a fresh event loop from ``asyncio.run``, and asyncpg
  connections cannot outlive the loop that opened them, so those runs use
  ``NullPool`` and dispose of the engine when the run ends.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from supporter360.core.config import get_settings


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


async def init_db(url: str | None = None, *, pooled: bool = True) -> None:
    """Create the engine and session factory if they do not exist yet."""
    global _engine, _session_factory

    if _engine is not None:
        return

    settings = get_settings()
    options = {"echo": settings.debug}
    if pooled:
        options["pool_pre_ping"] = True
    else:
        options["poolclass"] = NullPool

    _engine = create_async_engine(url or settings.database_url, **options)
    _session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)


async def close_db() -> None:
    """Dispose of the engine and release all connections."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


@asynccontextmanager
async def database(url: str | None = None) -> AsyncIterator[None]:
    """Scope an unpooled engine to one run on the current event loop."""
    await init_db(url, pooled=False)
    try:
        yield
    finally:
        await close_db()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the configured session factory.

    Raises RuntimeError if init_db() has not been called.
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory
