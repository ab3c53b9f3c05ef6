"""SQL Server schema introspection and routine invocation over MCP."""

__version__ = "0.1.0"
