"""Stored procedure and function invocation.

Each call decodes its parameters before a connection is acquired, so
malformed input never reaches the database.  The connection is scoped to
the call and released on every exit path.
"""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection

from mssql_mcp.config import settings
from mssql_mcp.db import ConnectionProvider
from mssql_mcp.schemas.results import ProcedureResult, ScalarResult, TableResult
from mssql_mcp.schemas.routine import Batch, InvocationStyle, RoutineReference
from mssql_mcp.services.aggregator import aggregate_procedure, aggregate_scalar, aggregate_table
from mssql_mcp.services.batch_builder import build_batch
from mssql_mcp.services.binder import (
    bind_function_parameters,
    bind_literal_arguments,
    bind_procedure_parameters,
    normalize_parameter_name,
)
from mssql_mcp.services.executor import execute_batch
from mssql_mcp.services.type_inference import catalog_type, decode_parameters

logger = logging.getLogger("mssql.routines")

OUTPUT_PARAMETERS_QUERY = """
SELECT p.name, TYPE_NAME(p.user_type_id) AS type_name, p.max_length, p.precision, p.scale
FROM sys.parameters p
WHERE p.object_id = OBJECT_ID(:routine) AND p.is_output = 1
ORDER BY p.parameter_id
"""


def is_json_parameters(parameters: str | None) -> bool:
    """JSON objects start with ``{``; anything else is a literal argument list."""
    return bool(parameters) and parameters.lstrip().startswith("{")


async def fetch_output_parameters(
    conn: AsyncConnection, routine: RoutineReference
) -> list[tuple[str, str]]:
    """``(name, declarable type)`` for each OUTPUT parameter of *routine*."""
    result = await conn.execute(text(OUTPUT_PARAMETERS_QUERY), {"routine": routine.quoted})
    return [
        (row["name"], catalog_type(row["type_name"], row["max_length"], row["precision"], row["scale"]))
        for row in result.mappings().all()
    ]


def plan_function_call(name: str, parameters: str | None, style: InvocationStyle) -> Batch:
    """Build the batch for a scalar or table-valued function call.

    Raises:
        MalformedParameters: *parameters* looks like JSON but does not decode.
    """
    routine = RoutineReference.parse(name, default_schema=settings.default_function_schema)
    if is_json_parameters(parameters):
        plan = bind_function_parameters(decode_parameters(parameters))
    else:
        plan = bind_literal_arguments(parameters)
    return build_batch(routine, style, plan)


async def invoke_procedure(
    provider: ConnectionProvider,
    name: str,
    parameters: str | None = None,
    database: str | None = None,
) -> ProcedureResult:
    """Execute a stored procedure and collect row sets, return code and OUTPUT values."""
    params = decode_parameters(parameters)
    for key in params:
        normalize_parameter_name(key)
    routine = RoutineReference.parse(name)

    async with provider.connect(database) as conn:
        outputs = await fetch_output_parameters(conn, routine)
        plan = bind_procedure_parameters(params, outputs)
        batch = build_batch(routine, InvocationStyle.PROCEDURE, plan)
        row_sets = await execute_batch(conn, batch)

    result = aggregate_procedure(row_sets, batch.plan.outputs)
    logger.debug(
        "procedure %s returned %s with %d row set(s)",
        routine,
        result.return_value,
        len(result.result_sets),
    )
    return result


async def invoke_scalar_function(
    provider: ConnectionProvider,
    name: str,
    parameters: str | None = None,
    database: str | None = None,
) -> ScalarResult:
    """Execute a scalar function; *parameters* is a JSON object or literal list."""
    batch = plan_function_call(name, parameters, InvocationStyle.SCALAR_FUNCTION)
    async with provider.connect(database) as conn:
        row_sets = await execute_batch(conn, batch)
    return aggregate_scalar(row_sets)


async def invoke_table_function(
    provider: ConnectionProvider,
    name: str,
    parameters: str | None = None,
    database: str | None = None,
) -> TableResult:
    """Execute a table-valued function; *parameters* is a JSON object or literal list."""
    batch = plan_function_call(name, parameters, InvocationStyle.TABLE_FUNCTION)
    async with provider.connect(database) as conn:
        row_sets = await execute_batch(conn, batch)
    return aggregate_table(row_sets)
