"""MCP tool handlers – the bridge between MCP protocol and service layer.

Every handler takes the raw ``arguments`` dict and returns a
``DbOperationResult`` payload.  Nothing raises past this module: service
errors, driver errors and anything unexpected become a failed envelope.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Awaitable, Callable

from sqlalchemy.exc import DBAPIError

from mssql_mcp.db import connection_provider
from mssql_mcp.schemas.common import DbOperationResult
from mssql_mcp.services import data_service, metadata_service, routine_service
from mssql_mcp.services.errors import RoutineError
from mssql_mcp.services.executor import driver_message

logger = logging.getLogger("mcp.tools")

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _elapsed(t0: float) -> float:
    return round((time.perf_counter() - t0) * 1000, 2)


def _error_message(exc: Exception) -> str:
    if isinstance(exc, RoutineError):
        return exc.message
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return driver_message(exc.orig)
    return str(exc) or type(exc).__name__


def _required(arguments: dict, key: str) -> str | None:
    value = arguments.get(key)
    if value is None or not str(value).strip():
        return None
    return str(value)


def _parameters_text(arguments: dict) -> str | None:
    """Clients may send the parameters object itself instead of its JSON text."""
    parameters = arguments.get("parameters")
    if parameters is None or isinstance(parameters, str):
        return parameters
    return json.dumps(parameters)


async def _run(
    tool: str,
    operation: Callable[[], Awaitable[DbOperationResult]],
    **fields: Any,
) -> dict:
    """Run *operation*, log it, and convert any failure into an envelope."""
    t0 = time.perf_counter()
    described = " ".join(f"{k}={v}" for k, v in fields.items())
    try:
        envelope = await operation()
    except Exception as exc:
        message = _error_message(exc)
        logger.error("%s failed: %s", tool, message)
        envelope = DbOperationResult.failure(message)

    logger.info("%s %s ok=%s ms=%.1f", tool, described, envelope.success, _elapsed(t0))
    return envelope.to_payload()


def _missing(tool: str, key: str) -> dict:
    logger.info("%s rejected: %s is required", tool, key)
    return DbOperationResult.failure(f"{key} is required").to_payload()


# ---------------------------------------------------------------------------
# Routine invocation
# ---------------------------------------------------------------------------


async def handle_execute_stored_procedure(arguments: dict) -> dict:
    """Execute a stored procedure.

    Args:
        arguments: {"name": str, "parameters": str (JSON object, optional),
                    "database": str (optional)}
    """
    name = _required(arguments, "name")
    if name is None:
        return _missing("execute_stored_procedure", "name")
    parameters = _parameters_text(arguments)
    database = arguments.get("database")

    async def operation() -> DbOperationResult:
        result = await routine_service.invoke_procedure(
            connection_provider, name, parameters, database
        )
        return DbOperationResult.ok(result.to_data())

    return await _run("execute_stored_procedure", operation, name=name, database=database)


async def handle_execute_scalar_function(arguments: dict) -> dict:
    """Execute a scalar function.

    Args:
        arguments: {"name": str, "parameters": str (JSON object or literal
                    argument list, optional), "database": str (optional)}
    """
    name = _required(arguments, "name")
    if name is None:
        return _missing("execute_scalar_function", "name")
    parameters = _parameters_text(arguments)
    database = arguments.get("database")

    async def operation() -> DbOperationResult:
        result = await routine_service.invoke_scalar_function(
            connection_provider, name, parameters, database
        )
        return DbOperationResult.ok(result.to_data())

    return await _run("execute_scalar_function", operation, name=name, database=database)


async def handle_execute_table_function(arguments: dict) -> dict:
    """Execute a table-valued function.

    Args:
        arguments: {"name": str, "parameters": str (JSON object or literal
                    argument list, optional), "database": str (optional)}
    """
    name = _required(arguments, "name")
    if name is None:
        return _missing("execute_table_function", "name")
    parameters = _parameters_text(arguments)
    database = arguments.get("database")

    async def operation() -> DbOperationResult:
        result = await routine_service.invoke_table_function(
            connection_provider, name, parameters, database
        )
        return DbOperationResult.ok(result.to_data())

    return await _run("execute_table_function", operation, name=name, database=database)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


async def _catalog(tool: str, query, arguments: dict, *args: str) -> dict:
    database = arguments.get("database")

    async def operation() -> DbOperationResult:
        async with connection_provider.connect(database) as conn:
            data = await query(conn, *args)
        return DbOperationResult.ok(data)

    fields = {"database": database}
    if args:
        fields["name"] = args[0]
    return await _run(tool, operation, **fields)


async def handle_list_databases(arguments: dict) -> dict:
    return await _catalog("list_databases", metadata_service.list_databases, {})


async def handle_list_stored_procedures(arguments: dict) -> dict:
    return await _catalog("list_stored_procedures", metadata_service.list_stored_procedures, arguments)


async def handle_list_functions(arguments: dict) -> dict:
    return await _catalog("list_functions", metadata_service.list_functions, arguments)


async def handle_list_views(arguments: dict) -> dict:
    return await _catalog("list_views", metadata_service.list_views, arguments)


async def handle_describe_database(arguments: dict) -> dict:
    return await _catalog("describe_database", metadata_service.describe_database, arguments)


async def handle_describe_instance(arguments: dict) -> dict:
    return await _catalog("describe_instance", metadata_service.describe_instance, {})


async def handle_describe_stored_procedure(arguments: dict) -> dict:
    name = _required(arguments, "name")
    if name is None:
        return _missing("describe_stored_procedure", "name")
    return await _catalog(
        "describe_stored_procedure", metadata_service.describe_stored_procedure, arguments, name
    )


async def handle_describe_function(arguments: dict) -> dict:
    name = _required(arguments, "name")
    if name is None:
        return _missing("describe_function", "name")
    return await _catalog("describe_function", metadata_service.describe_function, arguments, name)


async def handle_describe_view(arguments: dict) -> dict:
    name = _required(arguments, "name")
    if name is None:
        return _missing("describe_view", "name")
    return await _catalog("describe_view", metadata_service.describe_view, arguments, name)


# ---------------------------------------------------------------------------
# Data definition / manipulation
# ---------------------------------------------------------------------------


async def _write(tool: str, statement, arguments: dict, key: str) -> dict:
    value = _required(arguments, key)
    if value is None:
        return _missing(tool, key)
    database = arguments.get("database")

    async def operation() -> DbOperationResult:
        async with connection_provider.connect(database) as conn:
            rows = await statement(conn, value)
        return DbOperationResult.ok(rows_affected=rows)

    return await _run(tool, operation, database=database)


async def handle_create_table(arguments: dict) -> dict:
    """Run a CREATE TABLE statement.

    Args:
        arguments: {"sql": str, "database": str (optional)}
    """
    return await _write("create_table", data_service.create_table, arguments, "sql")


async def handle_drop_table(arguments: dict) -> dict:
    """Drop a table if it exists.

    Args:
        arguments: {"name": str (``table`` or ``schema.table``), "database": str (optional)}
    """
    return await _write("drop_table", data_service.drop_table, arguments, "name")


async def handle_insert_data(arguments: dict) -> dict:
    return await _write("insert_data", data_service.insert_data, arguments, "sql")


async def handle_update_data(arguments: dict) -> dict:
    return await _write("update_data", data_service.update_data, arguments, "sql")
