"""HTTP transport: the MCP registry served over Server-Sent Events.

A client opens ``GET /sse``, receives an ``endpoint`` event naming its
session, then posts JSON-RPC requests to ``POST /messages?session_id=...``.
Responses are delivered on the event stream of that session.
``GET /health`` reports liveness.

Run with ``python -m mssql_mcp.mcp.sse_server``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from mssql_mcp.config import settings
from mssql_mcp.db import connection_provider
from mssql_mcp.mcp.server import (
    PROMPT_DEFINITIONS,
    RESOURCE_DEFINITIONS,
    TOOL_DEFINITIONS,
    call_tool_contents,
    prompt_messages,
    read_resource_text,
)
from mssql_mcp.utils.serialization import dumps

logger = logging.getLogger("mcp.sse")

PROTOCOL_VERSION = "2024-11-05"
KEEPALIVE_SECONDS = 30


class SessionRegistry:
    """Outbound message queues of the open event streams, keyed by session id."""

    def __init__(self) -> None:
        self._queues: dict[str, asyncio.Queue] = {}

    def open(self) -> str:
        session_id = uuid.uuid4().hex
        self._queues[session_id] = asyncio.Queue()
        return session_id

    def close(self, session_id: str) -> None:
        self._queues.pop(session_id, None)

    def clear(self) -> None:
        self._queues.clear()

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._queues

    async def publish(self, session_id: str, message: dict) -> None:
        await self._queues[session_id].put(message)

    async def stream(self, session_id: str) -> AsyncIterator[dict]:
        """SSE events for *session_id*; the session closes when the client leaves."""
        queue = self._queues[session_id]
        try:
            yield {"event": "endpoint", "data": f"/messages?session_id={session_id}"}
            while True:
                yield {"event": "message", "data": dumps(await queue.get())}
        finally:
            self.close(session_id)


sessions = SessionRegistry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("SSE transport listening on %s:%s", settings.fastapi_host, settings.fastapi_port)
    try:
        yield
    finally:
        sessions.clear()
        await connection_provider.dispose()


app = FastAPI(
    title="MSSQL MCP Server",
    version=settings.mcp_server_version,
    lifespan=lifespan,
)


@app.get("/health")
async def health():
    return {"status": "ok", "transport": "sse", "version": settings.mcp_server_version}


@app.get("/sse")
async def sse_endpoint():
    session_id = sessions.open()
    logger.debug("SSE session %s opened", session_id)
    return EventSourceResponse(sessions.stream(session_id), ping=KEEPALIVE_SECONDS)


# ---------------------------------------------------------------------------
# JSON-RPC routing
# ---------------------------------------------------------------------------


def _result(rpc_id: Any, result: dict) -> dict:
    return {"jsonrpc": "2.0", "id": rpc_id, "result": result}


def _error(rpc_id: Any, code: int, message: str) -> dict:
    return {"jsonrpc": "2.0", "id": rpc_id, "error": {"code": code, "message": message}}


async def handle_rpc(body: dict) -> dict:
    """Answer one JSON-RPC request with the same registry the stdio server uses."""
    method = body.get("method", "")
    params = body.get("params") or {}
    rpc_id = body.get("id")

    if method == "initialize":
        return _result(
            rpc_id,
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {
                    "tools": {"listChanged": False},
                    "resources": {"listChanged": False},
                    "prompts": {"listChanged": False},
                },
                "serverInfo": {
                    "name": settings.mcp_server_name,
                    "version": settings.mcp_server_version,
                },
            },
        )

    if method == "tools/list":
        return _result(rpc_id, {"tools": [t.model_dump(mode="json") for t in TOOL_DEFINITIONS]})

    if method == "tools/call":
        contents = await call_tool_contents(params.get("name", ""), params.get("arguments") or {})
        return _result(rpc_id, {"content": [c.model_dump(mode="json") for c in contents]})

    if method == "resources/list":
        return _result(
            rpc_id, {"resources": [r.model_dump(mode="json") for r in RESOURCE_DEFINITIONS]}
        )

    if method == "resources/read":
        uri = params.get("uri", "")
        try:
            content = read_resource_text(uri)
        except ValueError as exc:
            return _error(rpc_id, -32602, str(exc))
        return _result(
            rpc_id,
            {"contents": [{"uri": uri, "text": content, "mimeType": "application/json"}]},
        )

    if method == "prompts/list":
        return _result(rpc_id, {"prompts": [p.model_dump(mode="json") for p in PROMPT_DEFINITIONS]})

    if method == "prompts/get":
        try:
            messages = prompt_messages(params.get("name", ""), params.get("arguments") or {})
        except ValueError as exc:
            return _error(rpc_id, -32602, str(exc))
        return _result(rpc_id, {"messages": [m.model_dump(mode="json") for m in messages]})

    return _error(rpc_id, -32601, f"Method '{method}' not found")




@app.post("/messages")
async def messages_endpoint(request: Request, session_id: str):
    """Answer a JSON-RPC request on the event stream of *session_id*."""
    if session_id not in sessions:
        return JSONResponse(
            status_code=404,
            content={"error": f"Session '{session_id}' not found. Connect to /sse first."},
        )

    try:
        body = await request.json()
    except json.JSONDecodeError:
        reply = _error(None, -32700, "Parse error")
    else:
        logger.debug("SSE recv session=%s method=%s", session_id, body.get("method"))
        reply = await handle_rpc(body)

    await sessions.publish(session_id, reply)
    return Response(status_code=202, content="Accepted")


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(app, host=settings.fastapi_host, port=settings.fastapi_port)
