"""Async SQLAlchemy engines and the per-invocation connection provider."""

from __future__ import annotations

import logging
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from mssql_mcp.config import settings

logger = logging.getLogger("mssql.db")


def default_engine_options() -> dict[str, Any]:
    return {
        "echo": settings.app_env == "development",
        "pool_size": settings.pool_size,
        "max_overflow": settings.max_overflow,
        "pool_pre_ping": True,
        # Every invocation stands alone; nothing is coordinated across calls.
        "isolation_level": "AUTOCOMMIT",
    }


class ConnectionProvider:
    """Hands out one open connection per tool invocation.

    Engines are created lazily, one per target database, by swapping the
    database component of the configured URL.  At most ``max_engines`` are
    cached; the least recently used one is disposed on the next ``connect()``.

    Usage:
        async with connection_provider.connect("Sales") as conn:
            result = await conn.execute(text("SELECT 1"))
    """

    def __init__(
        self,
        database_url: str | None = None,
        engine_options: dict[str, Any] | None = None,
        max_engines: int | None = None,
    ) -> None:
        self._url = make_url(database_url or settings.database_url)
        self._engine_options = (
            default_engine_options() if engine_options is None else dict(engine_options)
        )
        self._max_engines = max(1, max_engines or settings.max_cached_engines)
        self._engines: OrderedDict[str | None, AsyncEngine] = OrderedDict()
        self._retired: list[AsyncEngine] = []

    def engine_for(self, database: str | None = None) -> AsyncEngine:
        """Return (creating on first use) the engine for *database*."""
        engine = self._engines.get(database)
        if engine is not None:
            self._engines.move_to_end(database)
            return engine

        url = self._url if database is None else self._url.set(database=database)
        logger.debug("Creating engine for database=%s", database or url.database)
        engine = create_async_engine(url, **self._engine_options)
        self._engines[database] = engine
        while len(self._engines) > self._max_engines:
            evicted, old = self._engines.popitem(last=False)
            logger.debug("Retiring engine for database=%s", evicted)
            self._retired.append(old)
        return engine

    @asynccontextmanager
    async def connect(self, database: str | None = None) -> AsyncGenerator[AsyncConnection, None]:
        """Yield an open connection, released on every exit path."""
        engine = self.engine_for(database)
        await self._dispose_retired()
        async with engine.connect() as conn:
            yield conn

    async def _dispose_retired(self) -> None:
        while self._retired:
            await self._retired.pop().dispose()

    async def dispose(self) -> None:
        """Dispose every engine created so far."""
        await self._dispose_retired()
        for engine in self._engines.values():
            await engine.dispose()
        self._engines.clear()


# Module-level provider used by tool handlers.
connection_provider = ConnectionProvider()
