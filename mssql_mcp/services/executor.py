"""Submit a rendered batch on the driver cursor and collect its row sets."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Dialect
from sqlalchemy.ext.asyncio import AsyncConnection

from mssql_mcp.schemas.results import RowSet
from mssql_mcp.schemas.routine import Batch
from mssql_mcp.services.aggregator import read_row_sets
from mssql_mcp.services.errors import ExecutionFailure

logger = logging.getLogger("mssql.routines")


def driver_statement(
    dialect: Dialect, sql: str, binds: dict[str, Any]
) -> tuple[str, tuple[Any, ...] | dict[str, Any]]:
    """Compile ``:name`` binds into the driver's own parameter style.

    Statements without binds are passed through untouched so that literal
    argument text is never scanned for bind markers.
    """
    if not binds:
        return sql, ()
    compiled = text(sql).compile(dialect=dialect)
    params = compiled.construct_params(binds)
    if dialect.positional:
        return compiled.string, tuple(params[name] for name in compiled.positiontup)
    return compiled.string, params


def driver_message(exc: Exception) -> str:
    """Best human-readable message from a driver exception.

    pyodbc errors carry ``(sqlstate, message)`` in ``args``.
    """
    if len(exc.args) >= 2 and isinstance(exc.args[1], str):
        return exc.args[1]
    return str(exc)


async def execute_batch(conn: AsyncConnection, batch: Batch) -> list[RowSet]:
    """Run *batch* as a single submission and return every row set it produced.

    Raises:
        ExecutionFailure: the database rejected any statement in the batch.
    """
    sql, params = driver_statement(conn.dialect, batch.sql, batch.binds)
    logger.debug("Executing %s batch: %s", batch.style.value, sql)
    raw = await conn.get_raw_connection()
    try:
        async with raw.driver_connection.cursor() as cursor:
            if params:
                await cursor.execute(sql, params)
            else:
                await cursor.execute(sql)
            return await read_row_sets(cursor)
    except Exception as exc:
        raise ExecutionFailure(driver_message(exc)) from exc
