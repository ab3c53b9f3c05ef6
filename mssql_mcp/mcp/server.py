"""MCP server bootstrap – registers tools, resources, prompts and runs transports."""

from __future__ import annotations

import asyncio
import json
import logging

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import (
    GetPromptResult,
    Prompt,
    PromptArgument,
    PromptMessage,
    Resource,
    TextContent,
    Tool,
)

from mssql_mcp.config import settings
from mssql_mcp.mcp.tools import (
    handle_create_table,
    handle_describe_database,
    handle_describe_function,
    handle_describe_instance,
    handle_describe_stored_procedure,
    handle_describe_view,
    handle_drop_table,
    handle_execute_scalar_function,
    handle_execute_stored_procedure,
    handle_execute_table_function,
    handle_insert_data,
    handle_list_databases,
    handle_list_functions,
    handle_list_stored_procedures,
    handle_list_views,
    handle_update_data,
)
from mssql_mcp.services.type_inference import TYPE_MAPPING
from mssql_mcp.utils.serialization import dumps

logger = logging.getLogger("mcp.server")

# ---------------------------------------------------------------------------
# Tool registry
# ---------------------------------------------------------------------------

_DATABASE_PROPERTY = {
    "type": "string",
    "description": "Target database (optional, defaults to the configured one)",
}


def _named_object_schema(description: str) -> dict:
    return {
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": description},
            "database": _DATABASE_PROPERTY,
        },
        "required": ["name"],
    }


def _routine_schema(kind: str, parameters_description: str) -> dict:
    return {
        "type": "object",
        "properties": {
            "name": {
                "type": "string",
                "description": f"{kind} name, optionally schema-qualified (schema.name)",
            },
            "parameters": {"type": "string", "description": parameters_description},
            "database": _DATABASE_PROPERTY,
        },
        "required": ["name"],
    }


def _database_only_schema() -> dict:
    return {"type": "object", "properties": {"database": _DATABASE_PROPERTY}, "required": []}


def _statement_schema(description: str) -> dict:
    return {
        "type": "object",
        "properties": {
            "sql": {"type": "string", "description": description},
            "database": _DATABASE_PROPERTY,
        },
        "required": ["sql"],
    }


_JSON_PARAMETERS = (
    'JSON object of named arguments, e.g. {"CustomerId": 42, "Since": "2024-01-01"} (optional)'
)
_FUNCTION_PARAMETERS = (
    "JSON object of arguments in declaration order, or a literal argument list "
    "such as 100, 'abc' (optional)"
)

TOOL_DEFINITIONS: list[Tool] = [
    Tool(
        name="execute_stored_procedure",
        description=(
            "Execute a stored procedure. Returns the return code, every result set "
            "it produced, and OUTPUT parameter values."
        ),
        inputSchema=_routine_schema("Stored procedure", _JSON_PARAMETERS),
    ),
    Tool(
        name="execute_scalar_function",
        description="Execute a scalar user-defined function and return its single value.",
        inputSchema=_routine_schema("Function", _FUNCTION_PARAMETERS),
    ),
    Tool(
        name="execute_table_function",
        description="Execute a table-valued function and return its rows.",
        inputSchema=_routine_schema("Function", _FUNCTION_PARAMETERS),
    ),
    Tool(
        name="list_databases",
        description=(
            "List online databases with id, create date, state, recovery model "
            "and compatibility level."
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    Tool(
        name="list_stored_procedures",
        description="List stored procedures as schema.name.",
        inputSchema=_database_only_schema(),
    ),
    Tool(
        name="list_functions",
        description="List user-defined functions as schema.name.",
        inputSchema=_database_only_schema(),
    ),
    Tool(
        name="list_views",
        description="List views as schema.name.",
        inputSchema=_database_only_schema(),
    ),
    Tool(
        name="describe_database",
        description="Describe a database: properties, size, files, object counts and schemas.",
        inputSchema=_database_only_schema(),
    ),
    Tool(
        name="describe_instance",
        description=(
            "Describe the SQL Server instance: version, edition, configuration, "
            "resources and a database summary."
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    Tool(
        name="describe_stored_procedure",
        description="Describe a stored procedure: parameters, definition and dependencies.",
        inputSchema=_named_object_schema("Stored procedure name (schema.name allowed)"),
    ),
    Tool(
        name="describe_function",
        description=(
            "Describe a function: parameters, return type, result columns for "
            "table-valued functions, definition and dependencies."
        ),
        inputSchema=_named_object_schema("Function name (schema.name allowed)"),
    ),
    Tool(
        name="describe_view",
        description="Describe a view: columns, indexes, definition and dependencies.",
        inputSchema=_named_object_schema("View name (schema.name allowed)"),
    ),
    Tool(
        name="create_table",
        description="Run a CREATE TABLE statement.",
        inputSchema=_statement_schema("CREATE TABLE statement"),
    ),
    Tool(
        name="drop_table",
        description="Drop a table if it exists.",
        inputSchema=_named_object_schema("Table name (schema.name allowed)"),
    ),
    Tool(
        name="insert_data",
        description="Run an INSERT statement and report the rows affected.",
        inputSchema=_statement_schema("INSERT statement"),
    ),
    Tool(
        name="update_data",
        description="Run an UPDATE statement and report the rows affected.",
        inputSchema=_statement_schema("UPDATE statement"),
    ),
]

TOOL_HANDLERS = {
    "execute_stored_procedure": handle_execute_stored_procedure,
    "execute_scalar_function": handle_execute_scalar_function,
    "execute_table_function": handle_execute_table_function,
    "list_databases": handle_list_databases,
    "list_stored_procedures": handle_list_stored_procedures,
    "list_functions": handle_list_functions,
    "list_views": handle_list_views,
    "describe_database": handle_describe_database,
    "describe_instance": handle_describe_instance,
    "describe_stored_procedure": handle_describe_stored_procedure,
    "describe_function": handle_describe_function,
    "describe_view": handle_describe_view,
    "create_table": handle_create_table,
    "drop_table": handle_drop_table,
    "insert_data": handle_insert_data,
    "update_data": handle_update_data,
}

# ---------------------------------------------------------------------------
# Resources and prompts
# ---------------------------------------------------------------------------

TYPE_MAPPING_URI = "mssql://type-mapping"

RESOURCE_DEFINITIONS: list[Resource] = [
    Resource(
        uri=TYPE_MAPPING_URI,
        name="Parameter Type Mapping",
        description="How JSON argument values are mapped to SQL Server types",
        mimeType="application/json",
    ),
]

PROMPT_DEFINITIONS: list[Prompt] = [
    Prompt(
        name="invoke_routine",
        description="Inspect a stored procedure or function, then call it",
        arguments=[
            PromptArgument(
                name="name",
                description="Routine name, optionally schema-qualified",
                required=True,
            ),
            PromptArgument(
                name="database",
                description="Database holding the routine (optional)",
                required=False,
            ),
        ],
    ),
]


async def call_tool_contents(name: str, arguments: dict | None) -> list[TextContent]:
    """Dispatch a tool call and wrap its payload as MCP text content."""
    handler = TOOL_HANDLERS.get(name)
    if handler is None:
        payload = {
            "success": False,
            "error": f"Tool '{name}' is not registered. Available tools: {list(TOOL_HANDLERS)}",
        }
        return [TextContent(type="text", text=dumps(payload))]

    result = await handler(arguments or {})
    return [TextContent(type="text", text=dumps(result))]


def read_resource_text(uri: str) -> str:
    if str(uri).rstrip("/") == TYPE_MAPPING_URI:
        return json.dumps({"type_mapping": TYPE_MAPPING}, indent=2)
    raise ValueError(f"Unknown resource: {uri}")


def prompt_messages(name: str, arguments: dict | None = None) -> list[PromptMessage]:
    """Return a filled prompt template."""
    args = arguments or {}

    if name == "invoke_routine":
        routine = args.get("name", "dbo.MyRoutine")
        where = f" in database {args['database']}" if args.get("database") else ""
        return [
            PromptMessage(
                role="user",
                content=TextContent(
                    type="text",
                    text=(
                        f"Call the routine {routine}{where} using these steps:\n\n"
                        f"1. Use describe_stored_procedure or describe_function on {routine} "
                        "to learn its parameters and kind\n"
                        "2. Build a JSON object of arguments keyed by parameter name\n"
                        "3. Call execute_stored_procedure, execute_scalar_function or "
                        "execute_table_function as appropriate\n"
                        "4. Report the return value, result sets and OUTPUT parameters\n\n"
                        f"Read {TYPE_MAPPING_URI} to see how argument values are typed."
                    ),
                ),
            )
        ]

    raise ValueError(f"Unknown prompt: {name}")


# ---------------------------------------------------------------------------
# Server factory
# ---------------------------------------------------------------------------


def create_mcp_server() -> Server:
    """Create and configure the MCP server instance."""
    server = Server(settings.mcp_server_name)

    # ── Tools ─────────────────────────────────────────────────────────────

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return TOOL_DEFINITIONS

    @server.call_tool()
    async def call_tool(name: str, arguments: dict | None) -> list[TextContent]:
        return await call_tool_contents(name, arguments)

    # ── Resources ─────────────────────────────────────────────────────────

    @server.list_resources()
    async def list_resources() -> list[Resource]:
        return RESOURCE_DEFINITIONS

    @server.read_resource()
    async def read_resource(uri) -> str:
        return read_resource_text(uri)

    # ── Prompts ───────────────────────────────────────────────────────────

    @server.list_prompts()
    async def list_prompts() -> list[Prompt]:
        return PROMPT_DEFINITIONS

    @server.get_prompt()
    async def get_prompt(name: str, arguments: dict | None = None) -> GetPromptResult:
        return GetPromptResult(messages=prompt_messages(name, arguments))

    return server


# ---------------------------------------------------------------------------
# Entry-point: run MCP server over stdio
# ---------------------------------------------------------------------------


async def run_mcp_server() -> None:
    """Start the MCP server using stdio transport."""
    server = create_mcp_server()
    logger.info(
        "Starting MCP server '%s' v%s (stdio)",
        settings.mcp_server_name,
        settings.mcp_server_version,
    )

    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main() -> None:
    """CLI entry-point."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    asyncio.run(run_mcp_server())


if __name__ == "__main__":
    main()
