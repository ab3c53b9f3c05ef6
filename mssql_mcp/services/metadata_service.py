"""Catalog queries: listing and describing databases, routines and views.

All queries are fixed text; the only inputs are bound object / schema names.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection

from mssql_mcp.schemas.routine import RoutineReference
from mssql_mcp.services.errors import NotFound

logger = logging.getLogger("mssql.metadata")

# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

LIST_DATABASES_QUERY = """
SELECT name, database_id, create_date, state_desc AS state,
       recovery_model_desc AS recovery_model, compatibility_level
FROM sys.databases
WHERE state_desc = 'ONLINE'
ORDER BY name
"""

LIST_ROUTINES_QUERY = """
SELECT ROUTINE_SCHEMA, ROUTINE_NAME
FROM INFORMATION_SCHEMA.ROUTINES
WHERE ROUTINE_TYPE = :routine_type
ORDER BY ROUTINE_SCHEMA, ROUTINE_NAME
"""

LIST_VIEWS_QUERY = """
SELECT TABLE_SCHEMA, TABLE_NAME
FROM INFORMATION_SCHEMA.VIEWS
ORDER BY TABLE_SCHEMA, TABLE_NAME
"""

# ---------------------------------------------------------------------------
# Shared describe fragments
# ---------------------------------------------------------------------------

_SCHEMA_MATCH = "(s.name = :schema OR :schema IS NULL)"

DEFINITION_QUERY = """
SELECT m.definition
FROM sys.sql_modules m
INNER JOIN sys.objects o ON m.object_id = o.object_id
INNER JOIN sys.schemas s ON o.schema_id = s.schema_id
WHERE o.type IN :types AND o.name = :name AND {schema_match}
""".format(schema_match=_SCHEMA_MATCH)

DEPENDENCIES_QUERY = """
SELECT DISTINCT SCHEMA_NAME(o.schema_id) AS referenced_schema,
       o.name AS referenced_object,
       o.type_desc AS object_type
FROM sys.sql_expression_dependencies d
INNER JOIN sys.objects o ON d.referenced_id = o.object_id
WHERE d.referencing_id = (
    SELECT obj.object_id FROM sys.objects obj
    INNER JOIN sys.schemas s ON obj.schema_id = s.schema_id
    WHERE obj.type IN :types AND obj.name = :name AND {schema_match}
)
""".format(schema_match=_SCHEMA_MATCH)

_OBJECT_ID = """(
    SELECT o.object_id FROM sys.objects o
    INNER JOIN sys.schemas s ON o.schema_id = s.schema_id
    WHERE o.type IN :types AND o.name = :name AND {schema_match}
)""".format(schema_match=_SCHEMA_MATCH)

PROCEDURE_TYPES = ("P",)
FUNCTION_TYPES = ("FN", "IF", "TF")
TABLE_FUNCTION_TYPES = ("IF", "TF")
VIEW_TYPES = ("V",)

OBJECT_INFO_QUERY = """
SELECT o.object_id AS id, o.name, s.name AS [schema], ep.value AS description,
       o.type, o.type_desc, u.name AS owner, o.create_date, o.modify_date
FROM sys.objects o
INNER JOIN sys.schemas s ON o.schema_id = s.schema_id
LEFT JOIN sys.extended_properties ep
       ON ep.major_id = o.object_id AND ep.minor_id = 0 AND ep.name = 'MS_Description'
LEFT JOIN sys.sysusers u ON o.principal_id = u.uid
WHERE o.type IN :types AND o.name = :name AND {schema_match}
""".format(schema_match=_SCHEMA_MATCH)

PARAMETERS_QUERY = f"""
SELECT param.name, TYPE_NAME(param.user_type_id) AS type, param.max_length AS length,
       param.precision, param.scale, param.is_output, param.has_default_value,
       param.default_value
FROM sys.parameters param
WHERE param.object_id = {_OBJECT_ID} AND param.parameter_id > 0
ORDER BY param.parameter_id
"""

RETURN_TYPE_QUERY = f"""
SELECT TYPE_NAME(param.user_type_id) AS type, param.max_length AS length,
       param.precision, param.scale
FROM sys.parameters param
WHERE param.object_id = {_OBJECT_ID} AND param.parameter_id = 0
"""

COLUMNS_QUERY = f"""
SELECT c.name, TYPE_NAME(c.user_type_id) AS type, c.max_length AS length,
       c.precision, c.scale, c.is_nullable AS nullable, ep.value AS description
FROM sys.columns c
LEFT JOIN sys.extended_properties ep
       ON ep.major_id = c.object_id AND ep.minor_id = c.column_id AND ep.name = 'MS_Description'
WHERE c.object_id = {_OBJECT_ID}
ORDER BY c.column_id
"""

INDEXES_QUERY = f"""
SELECT i.name, i.type_desc AS type, ep.value AS description,
       STUFF((SELECT ',' + c.name FROM sys.index_columns ic
              INNER JOIN sys.columns c ON ic.object_id = c.object_id AND ic.column_id = c.column_id
              WHERE ic.object_id = i.object_id AND ic.index_id = i.index_id
              ORDER BY ic.key_ordinal FOR XML PATH('')), 1, 1, '') AS keys
FROM sys.indexes i
LEFT JOIN sys.extended_properties ep
       ON ep.major_id = i.object_id AND ep.minor_id = i.index_id AND ep.name = 'MS_Description'
WHERE i.object_id = {_OBJECT_ID} AND i.index_id > 0
"""

# ---------------------------------------------------------------------------
# Database / instance
# ---------------------------------------------------------------------------

DATABASE_INFO_QUERY = """
SELECT db.name, db.database_id, db.create_date, db.compatibility_level,
       db.collation_name AS collation, db.user_access_desc AS user_access,
       db.is_read_only, db.is_auto_close_on, db.is_auto_shrink_on,
       db.state_desc AS state, db.recovery_model_desc AS recovery_model,
       SUSER_SNAME(db.owner_sid) AS owner
FROM sys.databases db
WHERE db.name = DB_NAME()
"""

# Columns that only exist on newer versions are probed before being read.
OPTIONAL_DATABASE_FLAGS = ("is_encrypted", "is_change_tracking_enabled")
OPTIONAL_FLAG_QUERY = """
SELECT CASE
    WHEN EXISTS (SELECT 1 FROM sys.columns
                 WHERE object_id = OBJECT_ID('sys.databases') AND name = '{column}')
    THEN (SELECT CAST({column} AS INT) FROM sys.databases WHERE database_id = DB_ID())
    ELSE 0
END
"""

DATABASE_SIZE_QUERY = """
SELECT SUM(CAST(size AS BIGINT) * 8 / 1024) AS total_mb,
       SUM(CASE WHEN type = 0 THEN CAST(size AS BIGINT) * 8 / 1024 ELSE 0 END) AS data_mb,
       SUM(CASE WHEN type = 1 THEN CAST(size AS BIGINT) * 8 / 1024 ELSE 0 END) AS log_mb
FROM sys.master_files
WHERE database_id = DB_ID()
"""

DATABASE_FILES_QUERY = """
SELECT name AS file_name, physical_name, type_desc AS file_type,
       CAST(size AS BIGINT) * 8 / 1024 AS size_mb,
       CASE WHEN max_size = -1 THEN 'Unlimited'
            WHEN max_size = 0 THEN 'No Growth'
            ELSE CAST(CAST(max_size AS BIGINT) * 8 / 1024 AS VARCHAR) + ' MB' END AS max_size,
       CASE WHEN is_percent_growth = 1 THEN CAST(growth AS VARCHAR) + '%'
            ELSE CAST(CAST(growth AS BIGINT) * 8 / 1024 AS VARCHAR) + ' MB' END AS growth_setting,
       state_desc AS state
FROM sys.database_files
ORDER BY type, file_id
"""

OBJECT_COUNTS_QUERY = """
SELECT (SELECT COUNT(*) FROM sys.tables WHERE is_ms_shipped = 0) AS tables,
       (SELECT COUNT(*) FROM sys.views WHERE is_ms_shipped = 0) AS views,
       (SELECT COUNT(*) FROM sys.procedures WHERE is_ms_shipped = 0) AS stored_procedures,
       (SELECT COUNT(*) FROM sys.objects
         WHERE type IN ('FN', 'IF', 'TF') AND is_ms_shipped = 0) AS functions,
       (SELECT COUNT(*) FROM sys.triggers WHERE is_ms_shipped = 0) AS triggers,
       (SELECT COUNT(DISTINCT name) FROM sys.schemas WHERE schema_id > 4) AS user_schemas
"""

SCHEMAS_QUERY = """
SELECT s.name, USER_NAME(s.principal_id) AS owner, s.schema_id
FROM sys.schemas s
WHERE s.schema_id > 4
ORDER BY s.name
"""

INSTANCE_QUERY = """
SELECT SERVERPROPERTY('MachineName') AS machine_name,
       SERVERPROPERTY('ServerName') AS server_name,
       SERVERPROPERTY('InstanceName') AS instance_name,
       SERVERPROPERTY('ProductVersion') AS product_version,
       SERVERPROPERTY('ProductLevel') AS product_level,
       SERVERPROPERTY('Edition') AS edition,
       SERVERPROPERTY('EngineEdition') AS engine_edition,
       SERVERPROPERTY('Collation') AS collation,
       SERVERPROPERTY('IsIntegratedSecurityOnly') AS is_windows_auth_only,
       SERVERPROPERTY('IsClustered') AS is_clustered,
       SERVERPROPERTY('IsHadrEnabled') AS is_hadr_enabled,
       SERVERPROPERTY('IsFullTextInstalled') AS is_fulltext_installed,
       @@VERSION AS version_string
"""

INSTANCE_FLAGS = ("is_windows_auth_only", "is_clustered", "is_hadr_enabled", "is_fulltext_installed")

CONFIGURATION_QUERY = """
SELECT
  (SELECT CAST(value_in_use AS INT) FROM sys.configurations
    WHERE name = 'max server memory (MB)') AS max_server_memory_mb,
  (SELECT CAST(value_in_use AS INT) FROM sys.configurations
    WHERE name = 'min server memory (MB)') AS min_server_memory_mb,
  (SELECT CAST(value_in_use AS INT) FROM sys.configurations
    WHERE name = 'max degree of parallelism') AS max_degree_of_parallelism,
  (SELECT CAST(value_in_use AS INT) FROM sys.configurations
    WHERE name = 'cost threshold for parallelism') AS cost_threshold_for_parallelism
"""

RESOURCES_QUERY = """
SELECT cpu_count AS logical_cpu_count, hyperthread_ratio,
       physical_memory_kb / 1024 AS physical_memory_mb,
       virtual_memory_kb / 1024 AS virtual_memory_mb,
       committed_kb / 1024 AS committed_memory_mb,
       committed_target_kb / 1024 AS committed_target_mb
FROM sys.dm_os_sys_info
"""

DATABASE_SUMMARY_QUERY = """
SELECT COUNT(*) AS total_databases,
       SUM(CASE WHEN state_desc = 'ONLINE' THEN 1 ELSE 0 END) AS online_databases,
       SUM(CASE WHEN name NOT IN ('master', 'tempdb', 'model', 'msdb') THEN 1 ELSE 0 END)
           AS user_databases
FROM sys.databases
"""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _statement(sql: str, params: dict[str, Any]):
    statement = text(sql)
    if "types" in params:
        statement = statement.bindparams(bindparam("types", expanding=True))
    return statement


async def _rows(conn: AsyncConnection, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
    params = params or {}
    result = await conn.execute(_statement(sql, params), params)
    return [dict(row) for row in result.mappings().all()]


async def _first(conn: AsyncConnection, sql: str, params: dict[str, Any] | None = None) -> dict[str, Any] | None:
    rows = await _rows(conn, sql, params)
    return rows[0] if rows else None


def _object_params(routine: RoutineReference, types: tuple[str, ...]) -> dict[str, Any]:
    return {"name": routine.name, "schema": routine.schema_name, "types": list(types)}


def _qualified(rows: list[dict[str, Any]]) -> list[str]:
    return [".".join(str(v) for v in row.values()) for row in rows]


async def _definition_and_dependencies(
    conn: AsyncConnection, params: dict[str, Any]
) -> dict[str, Any]:
    definition = await _first(conn, DEFINITION_QUERY, params)
    return {
        "definition": definition["definition"] if definition else None,
        "dependencies": await _rows(conn, DEPENDENCIES_QUERY, params),
    }


# ---------------------------------------------------------------------------
# Listing operations
# ---------------------------------------------------------------------------


async def list_databases(conn: AsyncConnection) -> list[dict[str, Any]]:
    """Online databases on the instance."""
    return await _rows(conn, LIST_DATABASES_QUERY)


async def list_stored_procedures(conn: AsyncConnection) -> list[str]:
    return _qualified(await _rows(conn, LIST_ROUTINES_QUERY, {"routine_type": "PROCEDURE"}))


async def list_functions(conn: AsyncConnection) -> list[str]:
    return _qualified(await _rows(conn, LIST_ROUTINES_QUERY, {"routine_type": "FUNCTION"}))


async def list_views(conn: AsyncConnection) -> list[str]:
    return _qualified(await _rows(conn, LIST_VIEWS_QUERY))


# ---------------------------------------------------------------------------
# Describe operations
# ---------------------------------------------------------------------------


async def describe_stored_procedure(conn: AsyncConnection, name: str) -> dict[str, Any]:
    """Procedure info, parameters, definition and dependencies.

    Raises:
        NotFound: no procedure matches *name*.
    """
    routine = RoutineReference.parse(name)
    params = _object_params(routine, PROCEDURE_TYPES)

    info = await _first(conn, OBJECT_INFO_QUERY, params)
    if info is None:
        raise NotFound(f"Stored procedure '{routine.name}' not found.")
    info.pop("type_desc", None)

    result: dict[str, Any] = {"procedure": info}
    result["parameters"] = await _rows(conn, PARAMETERS_QUERY, params)
    result.update(await _definition_and_dependencies(conn, params))
    return result


async def describe_function(conn: AsyncConnection, name: str) -> dict[str, Any]:
    """Function info, parameters, return type, columns (TVFs), definition, dependencies.

    Raises:
        NotFound: no scalar or table-valued function matches *name*.
    """
    routine = RoutineReference.parse(name)
    params = _object_params(routine, FUNCTION_TYPES)

    info = await _first(conn, OBJECT_INFO_QUERY, params)
    if info is None:
        raise NotFound(f"Function '{routine.name}' not found.")
    info["type_description"] = info.pop("type_desc", None)
    function_type = str(info.get("type") or "").strip()

    result: dict[str, Any] = {"function": info}
    parameters = await _rows(conn, PARAMETERS_QUERY, params)
    for param in parameters:
        param.pop("is_output", None)
    result["parameters"] = parameters

    return_type = await _first(conn, RETURN_TYPE_QUERY, params)
    if return_type is not None:
        result["return_type"] = return_type

    if function_type in TABLE_FUNCTION_TYPES:
        columns = await _rows(conn, COLUMNS_QUERY, {**params, "types": list(TABLE_FUNCTION_TYPES)})
        for column in columns:
            column.pop("description", None)
        result["table_columns"] = columns

    result.update(await _definition_and_dependencies(conn, params))
    return result


async def describe_view(conn: AsyncConnection, name: str) -> dict[str, Any]:
    """View info, columns, indexes, definition and dependencies.

    Raises:
        NotFound: no view matches *name*.
    """
    routine = RoutineReference.parse(name)
    params = _object_params(routine, VIEW_TYPES)

    info = await _first(conn, OBJECT_INFO_QUERY, params)
    if info is None:
        raise NotFound(f"View '{routine.name}' not found.")
    for key in ("type_desc", "create_date", "modify_date"):
        info.pop(key, None)

    result: dict[str, Any] = {"view": info}
    result["columns"] = await _rows(conn, COLUMNS_QUERY, params)
    result["indexes"] = await _rows(conn, INDEXES_QUERY, params)
    result.update(await _definition_and_dependencies(conn, params))
    return result


async def _optional_flag(conn: AsyncConnection, column: str) -> bool:
    try:
        result = await conn.execute(text(OPTIONAL_FLAG_QUERY.format(column=column)))
        return bool(result.scalar())
    except DBAPIError as exc:
        logger.warning("Could not read sys.databases.%s: %s", column, exc.orig)
        return False


async def describe_database(conn: AsyncConnection) -> dict[str, Any]:
    """Properties, size, files, object counts and user schemas of the current database."""
    result: dict[str, Any] = {}

    info = await _first(conn, DATABASE_INFO_QUERY)
    if info is not None:
        for flag in ("is_read_only", "is_auto_close_on", "is_auto_shrink_on"):
            info[flag] = bool(info[flag])
        for column in OPTIONAL_DATABASE_FLAGS:
            info[column] = await _optional_flag(conn, column)
        result["database"] = info

    size = await _first(conn, DATABASE_SIZE_QUERY)
    if size is not None:
        result["size"] = size
    result["files"] = await _rows(conn, DATABASE_FILES_QUERY)
    counts = await _first(conn, OBJECT_COUNTS_QUERY)
    if counts is not None:
        result["object_counts"] = counts
    result["schemas"] = await _rows(conn, SCHEMAS_QUERY)
    return result


async def describe_instance(conn: AsyncConnection) -> dict[str, Any]:
    """Version, edition, configuration, resources and database counts of the server."""
    result: dict[str, Any] = {}

    instance = await _first(conn, INSTANCE_QUERY)
    if instance is not None:
        if instance.get("instance_name") is None:
            instance["instance_name"] = "Default"
        for flag in INSTANCE_FLAGS:
            instance[flag] = bool(instance[flag])
        result["instance"] = instance

    for key, query in (
        ("configuration", CONFIGURATION_QUERY),
        ("resources", RESOURCES_QUERY),
        ("database_summary", DATABASE_SUMMARY_QUERY),
    ):
        row = await _first(conn, query)
        if row is not None:
            result[key] = row
    return result
