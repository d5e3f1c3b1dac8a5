"""Datastore: the engine and session factory shared by every repository."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from sbtc_pay.config.settings import DatabaseEngine
from sbtc_pay.datastore.engines import create_engine

if TYPE_CHECKING:
    from sqlalchemy.orm import DeclarativeBase

    from sbtc_pay.config.settings import DatabaseConfig

logger = logging.getLogger(__name__)

_ERR_CLOSED = "datastore is closed; call open() first"


class Datastore:
    """Owns the async engine used for payment intents and webhook state.

    Repositories open one short session per operation::

        async with ds.session() as session:
            ...
            await session.commit()
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError(_ERR_CLOSED)
        return self._engine

    @property
    def is_postgres(self) -> bool:
        """Whether conditional updates can also take ``FOR UPDATE`` row locks."""
        return self._config.engine is DatabaseEngine.POSTGRESQL

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    async def open(self, *, base: type[DeclarativeBase] | None = None) -> None:
        """Create the engine; with *base*, also create its tables."""
        self._engine = create_engine(self._config)
        # Rows are read after commit by the services that wrote them
        self._sessions = async_sessionmaker(self._engine, expire_on_commit=False)
        logger.info("Datastore opened (%s)", self._config.engine)
        if base is not None:
            async with self._engine.begin() as conn:
                await conn.run_sync(base.metadata.create_all)

    async def close(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessions = None
        logger.info("Datastore closed")

    def session(self) -> AsyncSession:
        """Return a new session, to be used as an async context manager."""
        if self._sessions is None:
            raise RuntimeError(_ERR_CLOSED)
        return self._sessions()
