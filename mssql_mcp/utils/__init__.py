"""Utility modules for the MSSQL MCP server."""

from mssql_mcp.utils.serialization import dumps, json_default

__all__ = ["dumps", "json_default"]
