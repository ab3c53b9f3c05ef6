"""Shared pytest fixtures – fake MSSQL connections so no server is needed.

The routine engine talks to two surfaces of a connection: ``execute()`` for
catalog lookups and the raw driver cursor for the invocation batch.  Both
are faked here; the dialect is the real SQL Server one so bind compilation
is exercised exactly as in production.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from types import SimpleNamespace
from typing import Any, Sequence

import pytest
import pytest_asyncio
from sqlalchemy.dialects import mssql

from mssql_mcp.db import ConnectionProvider


class FakeCursor:
    """aioodbc-style cursor replaying scripted row sets.

    ``row_sets`` is a list of ``(columns, rows)``; ``columns=None`` stands for
    a result without a description (e.g. a row count).
    """

    def __init__(self, row_sets: Sequence[tuple[Sequence[str] | None, list]] = (), error=None):
        self._row_sets = list(row_sets)
        self._position = 0
        self.error = error
        self.executed: list[tuple[str, Any]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, sql, *params):
        self.executed.append((sql, params[0] if params else None))
        if self.error is not None:
            raise self.error

    @property
    def description(self):
        if self._position >= len(self._row_sets):
            return None
        columns = self._row_sets[self._position][0]
        if columns is None:
            return None
        return tuple((name, None, None, None, None, None, True) for name in columns)

    async def fetchall(self):
        return list(self._row_sets[self._position][1])

    async def nextset(self):
        if self._position + 1 < len(self._row_sets):
            self._position += 1
            return True
        return False


class FakeResult:
    def __init__(self, rows: list[dict]):
        self._rows = rows

    def mappings(self):
        return self

    def all(self):
        return list(self._rows)

    def scalar(self):
        if not self._rows:
            return None
        return next(iter(self._rows[0].values()))


class FakeConnection:
    """AsyncConnection stand-in.

    ``catalog`` maps a SQL fragment to the rows returned by any ``execute()``
    whose text contains it; the first matching fragment wins.
    """

    def __init__(self, cursor: FakeCursor | None = None, catalog: dict[str, list[dict]] | None = None):
        self.dialect = mssql.dialect()
        self.cursor = cursor or FakeCursor()
        self.catalog = catalog or {}
        self.queries: list[tuple[str, dict]] = []
        self.execute_error: Exception | None = None

    async def execute(self, statement, params=None):
        sql = getattr(statement, "text", str(statement))
        self.queries.append((sql, dict(params or {})))
        if self.execute_error is not None:
            raise self.execute_error
        for fragment, rows in self.catalog.items():
            if fragment in sql:
                return FakeResult(rows)
        return FakeResult([])

    async def get_raw_connection(self):
        return SimpleNamespace(driver_connection=SimpleNamespace(cursor=lambda: self.cursor))


class FakeProvider:
    """ConnectionProvider stand-in handing out one scripted connection."""

    def __init__(self, connection: FakeConnection | None = None):
        self.connection = connection or FakeConnection()
        self.databases: list[str | None] = []

    @asynccontextmanager
    async def connect(self, database: str | None = None):
        self.databases.append(database)
        yield self.connection


def bound_values(params) -> list:
    """Values the driver received, in bind order, for either paramstyle."""
    if params is None:
        return []
    if isinstance(params, dict):
        return list(params.values())
    return list(params)


@pytest.fixture
def provider_factory():
    def _make(row_sets=(), catalog=None, error=None) -> FakeProvider:
        cursor = FakeCursor(row_sets, error=error)
        return FakeProvider(FakeConnection(cursor=cursor, catalog=catalog))

    return _make


@pytest_asyncio.fixture
async def sqlite_provider(tmp_path):
    """A real ConnectionProvider over a file-backed SQLite database."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'data.db'}"
    provider = ConnectionProvider(database_url=url, engine_options={})
    yield provider
    await provider.dispose()

