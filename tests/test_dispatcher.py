# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""Unit tests for the host-facing JSON-RPC dispatcher"""

import asyncio
import json
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from ambassador_client import __version__
from ambassador_client.core.errors import HTTPStatusError, NetworkError, ReauthenticationError
from ambassador_client.dispatcher import MCP_PROTOCOL_VERSION, SERVER_NAME, Dispatcher
from ambassador_client.protocol import ToolDescriptor, ToolInvocationResponse


@pytest.fixture
def tool_backend():
    backend = MagicMock()
    backend.get_tool_catalog = AsyncMock(return_value=[
        ToolDescriptor(
            name="tavily_search",
            description="Web search",
            input_schema={"type": "object", "properties": {"query": {"type": "string"}}},
        ),
        ToolDescriptor(name="bare"),
    ])
    backend.invoke_tool = AsyncMock(return_value=ToolInvocationResponse(
        result=[{"type": "text", "text": "found it"}],
        request_id="req-1",
    ))
    return backend


@pytest.fixture
def sent():
    return []


@pytest.fixture
def dispatcher(tool_backend, sent):
    return Dispatcher(tool_backend, sent.append)


async def handle(dispatcher, message):
    line = message if isinstance(message, str) else json.dumps(message)
    await dispatcher.handle_line(line)


async def test_initialize(dispatcher, sent):
    await handle(dispatcher, {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}})

    assert sent == [{
        "jsonrpc": "2.0",
        "id": 1,
        "result": {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
        },
    }]


async def test_initialize_does_not_contact_backend(dispatcher, tool_backend):
    await handle(dispatcher, {"jsonrpc": "2.0", "id": 1, "method": "initialize"})

    tool_backend.get_tool_catalog.assert_not_awaited()
    tool_backend.invoke_tool.assert_not_awaited()


async def test_tools_list(dispatcher, sent):
    await handle(dispatcher, {"jsonrpc": "2.0", "id": "a", "method": "tools/list"})

    tools = sent[0]["result"]["tools"]
    assert sent[0]["id"] == "a"
    assert tools[0] == {
        "name": "tavily_search",
        "description": "Web search",
        "inputSchema": {"type": "object", "properties": {"query": {"type": "string"}}},
    }
    assert tools[1]["name"] == "bare"
    assert tools[1]["description"] == ""
    assert tools[1]["inputSchema"] == {"type": "object"}


@pytest.mark.parametrize("error", [
    NetworkError("connection refused"),
    HTTPStatusError(503, "maintenance"),
    ReauthenticationError("Re-authentication failed"),
])
async def test_tools_list_failure(dispatcher, tool_backend, sent, error):
    tool_backend.get_tool_catalog.side_effect = error

    await handle(dispatcher, {"jsonrpc": "2.0", "id": 2, "method": "tools/list"})

    assert sent == [{"jsonrpc": "2.0", "id": 2, "error": {"code": -32603, "message": "Failed to fetch tool catalog"}}]


async def test_tools_call(dispatcher, tool_backend, sent):
    await handle(dispatcher, {
        "jsonrpc": "2.0",
        "id": 3,
        "method": "tools/call",
        "params": {"name": "tavily_search", "arguments": {"query": "mcp"}},
    })

    tool_backend.invoke_tool.assert_awaited_once_with("tavily_search", {"query": "mcp"})
    assert sent[0]["result"] == {"content": [{"type": "text", "text": "found it"}], "isError": False}


async def test_tools_call_defaults_arguments(dispatcher, tool_backend):
    await handle(dispatcher, {"jsonrpc": "2.0", "id": 3, "method": "tools/call", "params": {"name": "x"}})

    tool_backend.invoke_tool.assert_awaited_once_with("x", {})


async def test_tools_call_failure_hides_backend_detail(dispatcher, tool_backend, sent, caplog):
    tool_backend.invoke_tool.side_effect = HTTPStatusError(500, "Traceback: secret internals", "tool_error")

    await handle(dispatcher, {"jsonrpc": "2.0", "id": 4, "method": "tools/call", "params": {"name": "x"}})

    assert sent[0]["error"] == {"code": -32603, "message": "Tool invocation failed"}
    assert "secret internals" not in json.dumps(sent)
    assert "tools/call failed for 'x'" in caplog.text


async def test_tools_call_invalid_params(dispatcher, tool_backend, sent):
    await handle(dispatcher, {"jsonrpc": "2.0", "id": 5, "method": "tools/call", "params": {}})

    assert sent[0]["error"] == {"code": -32602, "message": "Invalid params: name required"}
    tool_backend.invoke_tool.assert_not_awaited()


async def test_unknown_method(dispatcher, sent):
    await handle(dispatcher, {"jsonrpc": "2.0", "id": 6, "method": "resources/list"})

    assert sent == [{"jsonrpc": "2.0", "id": 6, "error": {"code": -32601, "message": "Method not found"}}]


async def test_parse_error(dispatcher, sent, caplog):
    await handle(dispatcher, "not json")

    assert sent == [{"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "Parse error"}}]
    assert "not json" not in caplog.text


async def test_notification_gets_no_response(dispatcher, sent):
    await handle(dispatcher, {"jsonrpc": "2.0", "method": "notifications/initialized"})
    await handle(dispatcher, {"jsonrpc": "2.0", "method": "tools/list"})

    assert sent == []


async def test_null_id_request_gets_response(dispatcher, sent):
    await handle(dispatcher, {"jsonrpc": "2.0", "id": None, "method": "tools/list"})

    assert sent[0]["id"] is None
    assert "result" in sent[0]


async def test_unexpected_error_becomes_internal_error(dispatcher, tool_backend, sent, caplog):
    tool_backend.get_tool_catalog.side_effect = RuntimeError("bug")

    await handle(dispatcher, {"jsonrpc": "2.0", "id": 7, "method": "tools/list"})

    assert sent[0]["error"] == {"code": -32603, "message": "Internal error"}
    assert any(r.levelno == logging.ERROR and r.exc_info for r in caplog.records)


async def test_concurrent_requests_answer_out_of_order(tool_backend, sent):
    release = asyncio.Event()

    async def slow_call(name, arguments):
        await release.wait()
        return ToolInvocationResponse(result=[{"type": "text", "text": name}])

    tool_backend.invoke_tool.side_effect = slow_call
    dispatcher = Dispatcher(tool_backend, sent.append)

    slow = asyncio.create_task(handle(dispatcher, {
        "jsonrpc": "2.0", "id": 1, "method": "tools/call", "params": {"name": "slow"},
    }))
    await handle(dispatcher, {"jsonrpc": "2.0", "id": 2, "method": "initialize"})
    release.set()
    await slow

    assert [m["id"] for m in sent] == [2, 1]
