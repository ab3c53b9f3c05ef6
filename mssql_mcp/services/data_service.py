"""Caller-supplied DDL / DML statements."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncConnection

from mssql_mcp.schemas.routine import RoutineReference

logger = logging.getLogger("mssql.data")


async def _run(conn: AsyncConnection, sql: str) -> int:
    # Passed to the driver verbatim: caller text is not scanned for binds.
    result = await conn.exec_driver_sql(sql)
    rowcount = result.rowcount
    await conn.commit()
    return rowcount if rowcount is not None and rowcount >= 0 else 0


async def create_table(conn: AsyncConnection, sql: str) -> int:
    await _run(conn, sql)
    return 0


async def drop_table(conn: AsyncConnection, name: str) -> int:
    """Drop *name* (``table`` or ``schema.table``) if it exists."""
    table = RoutineReference.parse(name)
    await _run(conn, f"DROP TABLE IF EXISTS {table.quoted}")
    logger.debug("Dropped table %s", table)
    return 0


async def insert_data(conn: AsyncConnection, sql: str) -> int:
    """Run an INSERT and return the number of rows it wrote."""
    return await _run(conn, sql)


async def update_data(conn: AsyncConnection, sql: str) -> int:
    """Run an UPDATE and return the number of rows it changed."""
    return await _run(conn, sql)
