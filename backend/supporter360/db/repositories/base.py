from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from supporter360.db.base import get_session_factory


class Repository:
    """Base for repositories that open one session per operation."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        # Resolved lazily so repositories can be built before init_db() runs
        return self._session_factory or get_session_factory()
