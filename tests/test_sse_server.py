"""Tests for the SSE transport's HTTP endpoints and JSON-RPC routing."""

from __future__ import annotations

import json

import pytest
from httpx import ASGITransport, AsyncClient

from mssql_mcp.mcp import sse_server
from mssql_mcp.mcp.sse_server import app, handle_rpc


@pytest.mark.asyncio
async def test_health():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["transport"] == "sse"


@pytest.mark.asyncio
async def test_messages_unknown_session():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post(
            "/messages", params={"session_id": "missing"}, json={"jsonrpc": "2.0", "id": 1}
        )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_messages_publish_response_to_session_stream():
    session_id = sse_server.sessions.open()
    stream = sse_server.sessions.stream(session_id)
    try:
        endpoint = await stream.__anext__()
        assert endpoint == {"event": "endpoint", "data": f"/messages?session_id={session_id}"}

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post(
                "/messages",
                params={"session_id": session_id},
                json={"jsonrpc": "2.0", "id": 7, "method": "tools/list"},
            )
            garbled = await client.post(
                "/messages",
                params={"session_id": session_id},
                content=b"{not json",
                headers={"content-type": "application/json"},
            )
        assert response.status_code == 202
        assert garbled.status_code == 202

        message = await stream.__anext__()
        assert message["event"] == "message"
        payload = json.loads(message["data"])
        assert payload["id"] == 7
        assert len(payload["result"]["tools"]) == 16

        parse_error = json.loads((await stream.__anext__())["data"])
        assert parse_error["error"]["code"] == -32700
    finally:
        await stream.aclose()
    assert session_id not in sse_server.sessions


@pytest.mark.asyncio
async def test_rpc_initialize():
    response = await handle_rpc({"jsonrpc": "2.0", "id": 1, "method": "initialize"})
    assert response["result"]["serverInfo"]["name"] == "mssql-mcp"
    assert "tools" in response["result"]["capabilities"]


@pytest.mark.asyncio
async def test_rpc_tools_call_validation_error():
    response = await handle_rpc(
        {
            "jsonrpc": "2.0",
            "id": 2,
            "method": "tools/call",
            "params": {"name": "execute_stored_procedure", "arguments": {}},
        }
    )
    content = response["result"]["content"][0]
    assert json.loads(content["text"]) == {"success": False, "error": "name is required"}


@pytest.mark.asyncio
async def test_rpc_resources_and_prompts():
    listed = await handle_rpc({"id": 3, "method": "resources/list"})
    assert listed["result"]["resources"][0]["uri"].rstrip("/") == "mssql://type-mapping"

    read = await handle_rpc({"id": 4, "method": "resources/read", "params": {"uri": "mssql://type-mapping"}})
    assert "type_mapping" in json.loads(read["result"]["contents"][0]["text"])

    prompts = await handle_rpc({"id": 5, "method": "prompts/list"})
    assert prompts["result"]["prompts"][0]["name"] == "invoke_routine"

    got = await handle_rpc(
        {"id": 6, "method": "prompts/get", "params": {"name": "invoke_routine", "arguments": {"name": "dbo.P"}}}
    )
    assert "dbo.P" in got["result"]["messages"][0]["content"]["text"]


@pytest.mark.asyncio
async def test_rpc_errors():
    unknown = await handle_rpc({"id": 8, "method": "nope"})
    assert unknown["error"]["code"] == -32601

    bad_uri = await handle_rpc({"id": 9, "method": "resources/read", "params": {"uri": "x://y"}})
    assert bad_uri["error"]["code"] == -32602
