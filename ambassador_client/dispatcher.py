# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Protocol Dispatcher
Routes host JSON-RPC requests to the catalog cache and the session manager.

Only the generic JSON-RPC error messages below ever reach the host; causes
are logged to stderr.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Protocol

from ambassador_client import __version__
from ambassador_client.core.errors import AmbassadorError, JsonRpcError
from ambassador_client.jsonrpc import (
    INTERNAL_ERROR,
    InitializeRequest,
    JsonRpcMessage,
    ToolsCallRequest,
    ToolsListRequest,
    build_error,
    build_response,
    parse_envelope,
    resolve_request,
)
from ambassador_client.protocol import ToolDescriptor, ToolInvocationResponse

logger = logging.getLogger(__name__)

MCP_PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "@mcpambassador/client"

FrameSender = Callable[[Dict], None]


class ToolBackend(Protocol):
    """What the dispatcher needs from the client"""

    def get_tool_catalog(self) -> Awaitable[List[ToolDescriptor]]: ...

    def invoke_tool(self, name: str, arguments: Dict[str, Any]) -> Awaitable[ToolInvocationResponse]: ...


class Dispatcher:
    """Handles one JSON-RPC line at a time; safe to run many handlers concurrently"""

    def __init__(self, backend: ToolBackend, send: FrameSender):
        self.backend = backend
        self.send = send

    async def handle_line(self, line: str) -> None:
        """Parse, route and answer one line. Never raises for bad input."""
        try:
            envelope = parse_envelope(line)
        except JsonRpcError as e:
            logger.warning(f"Failed to parse JSON-RPC message ({len(line)} chars)")
            self.send(build_error(None, e.code, e.message))
            return

        try:
            result = await self._route(envelope)
        except JsonRpcError as e:
            self._reply_error(envelope, e.code, e.message)
            return
        except Exception:
            logger.exception(f"Unexpected error handling {envelope.method}")
            self._reply_error(envelope, INTERNAL_ERROR, "Internal error")
            return

        if envelope.is_notification:
            return
        self.send(build_response(envelope.id, result))

    def _reply_error(self, envelope: JsonRpcMessage, code: int, message: str) -> None:
        if envelope.is_notification:
            logger.debug(f"Notification {envelope.method} failed ({code}: {message}), no response sent")
            return
        self.send(build_error(envelope.id, code, message))

    async def _route(self, envelope: JsonRpcMessage) -> Any:
        request = resolve_request(envelope)
        if isinstance(request, InitializeRequest):
            return self._initialize()
        if isinstance(request, ToolsListRequest):
            return await self._tools_list()
        if isinstance(request, ToolsCallRequest):
            return await self._tools_call(request)
        raise AssertionError(f"Unhandled request type {type(request).__name__}")

    def _initialize(self) -> Dict[str, Any]:
        return {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "capabilities": {
                "tools": {},
            },
            "serverInfo": {
                "name": SERVER_NAME,
                "version": __version__,
            },
        }

    async def _tools_list(self) -> Dict[str, Any]:
        try:
            tools = await self.backend.get_tool_catalog()
        except AmbassadorError as e:
            logger.error(f"tools/list failed: {e}")
            raise JsonRpcError(INTERNAL_ERROR, "Failed to fetch tool catalog") from e

        return {"tools": [tool.to_mcp() for tool in tools]}

    async def _tools_call(self, request: ToolsCallRequest) -> Dict[str, Any]:
        name = request.params.name
        try:
            response = await self.backend.invoke_tool(name, request.params.arguments or {})
        except AmbassadorError as e:
            logger.error(f"tools/call failed for '{name}': {e}")
            raise JsonRpcError(INTERNAL_ERROR, "Tool invocation failed") from e

        return {
            "content": response.result,
            "isError": False,
        }
