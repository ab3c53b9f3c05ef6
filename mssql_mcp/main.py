"""HTTP entry-point.

The primary interface is the MCP server over stdio (``mssql-mcp``).  This
module re-exports the SSE transport for `python -m mssql_mcp.main`.
"""

from mssql_mcp.mcp.sse_server import app  # noqa: F401 – re-export for uvicorn

if __name__ == "__main__":
    import logging
    import uvicorn
    from mssql_mcp.config import settings

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(
        "mssql_mcp.main:app",
        host=settings.fastapi_host,
        port=settings.fastapi_port,
        reload=(settings.app_env == "development"),
    )
