# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Test Fixtures and Utilities

Provides an in-process fake Ambassador Server (aiohttp.web) and configuration
fixtures pointing at it.
"""

import asyncio
import json
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from ambassador_client.core.config import ClientConfig
from ambassador_client.core.logging import ROOT_LOGGER

VALID_PSK = "amb_pk_TESTsecret0123456789abcdefghijklmnopqrstu"

SAMPLE_TOOLS = [
    {
        "name": "resolve-library-id",
        "description": "Resolve a library name to its id",
        "input_schema": {
            "type": "object",
            "properties": {"libraryName": {"type": "string"}},
            "required": ["libraryName"],
        },
        "metadata": {"mcp_server": "context7", "tags": ["docs"]},
    },
    {
        "name": "tavily_search",
        "description": "Web search",
        "input_schema": {"type": "object", "properties": {"query": {"type": "string"}}},
    },
]


# ============================================================================
# Fake Ambassador Server
# ============================================================================

class FakeBackend:
    """
    In-process Ambassador Server.

    Every request is recorded. Responses can be scripted per endpoint with
    queue(); otherwise the endpoint behaves like the real server.
    """

    def __init__(self):
        self.app = web.Application()
        self.app.router.add_post("/v1/sessions/register", self.register)
        self.app.router.add_post("/v1/sessions/heartbeat", self.heartbeat)
        self.app.router.add_get("/v1/tools", self.list_tools)
        self.app.router.add_post("/v1/tools/invoke", self.invoke)
        self.app.router.add_delete("/v1/sessions/connections/{connection_id}", self.disconnect)

        self.url: Optional[str] = None
        self.requests: List[Dict[str, Any]] = []
        self.valid_tokens: Set[str] = set()
        self.revoked_reason = "session_expired"
        self.queued: Dict[str, List[Tuple[int, Any]]] = defaultdict(list)
        self.delays: Dict[str, float] = {}
        self.tools = list(SAMPLE_TOOLS)
        self._counter = 0

    def count(self, endpoint: str) -> int:
        return sum(1 for r in self.requests if r["endpoint"] == endpoint)

    def last(self, endpoint: str) -> Dict[str, Any]:
        return [r for r in self.requests if r["endpoint"] == endpoint][-1]

    def queue(self, endpoint: str, status: int, payload: Any) -> None:
        self.queued[endpoint].append((status, payload))

    def expire_sessions(self, reason: str = "session_expired") -> None:
        self.valid_tokens.clear()
        self.revoked_reason = reason

    async def _record(self, endpoint: str, request: web.Request) -> Optional[web.Response]:
        text = await request.text() if request.can_read_body else ""
        self.requests.append({
            "endpoint": endpoint,
            "method": request.method,
            "path": request.path,
            "headers": {k.lower(): v for k, v in request.headers.items()},
            "body": json.loads(text) if text else None,
        })
        if self.delays.get(endpoint):
            await asyncio.sleep(self.delays[endpoint])
        if self.queued[endpoint]:
            status, payload = self.queued[endpoint].pop(0)
            return web.json_response(payload, status=status)
        return None

    def _authorized(self, request: web.Request) -> bool:
        return request.headers.get("X-Session-Token") in self.valid_tokens

    def _unauthorized(self) -> web.Response:
        return web.json_response(
            {"error": self.revoked_reason, "message": "Session is not valid"},
            status=401,
        )

    async def register(self, request: web.Request) -> web.Response:
        scripted = await self._record("register", request)
        if scripted is not None:
            return scripted

        body = await request.json()
        if body.get("preshared_key") != VALID_PSK:
            return web.json_response(
                {"error": "invalid_credentials", "message": "Invalid preshared key"},
                status=401,
            )

        self._counter += 1
        n = self._counter
        token = f"sess_tok_{n}_" + "s3cr3t" * 6
        self.valid_tokens.add(token)
        return web.json_response({
            "session_id": f"sess-{n}",
            "session_token": token,
            "expires_at": "2030-01-01T00:00:00Z",
            "profile_id": "profile-1",
            "connection_id": f"conn-{n}",
        }, status=201)

    async def heartbeat(self, request: web.Request) -> web.Response:
        scripted = await self._record("heartbeat", request)
        if scripted is not None:
            return scripted
        if not self._authorized(request):
            return self._unauthorized()
        return web.json_response({"status": "ok"})

    async def list_tools(self, request: web.Request) -> web.Response:
        scripted = await self._record("tools", request)
        if scripted is not None:
            return scripted
        if not self._authorized(request):
            return self._unauthorized()
        return web.json_response({
            "tools": self.tools,
            "api_version": "v1",
            "timestamp": "2025-01-01T00:00:00Z",
        })

    async def invoke(self, request: web.Request) -> web.Response:
        scripted = await self._record("invoke", request)
        if scripted is not None:
            return scripted
        if not self._authorized(request):
            return self._unauthorized()

        body = await request.json()
        if body["tool"] == "explode":
            return web.json_response(
                {"code": "tool_error", "message": "Traceback (most recent call last): internal detail"},
                status=500,
            )
        return web.json_response({
            "result": [{"type": "text", "text": f"{body['tool']} ok"}],
            "request_id": f"req-{len(self.requests)}",
            "timestamp": "2025-01-01T00:00:00Z",
        })

    async def disconnect(self, request: web.Request) -> web.Response:
        scripted = await self._record("disconnect", request)
        if scripted is not None:
            return scripted
        if not self._authorized(request):
            return self._unauthorized()
        return web.json_response({"status": "disconnected"})


# ============================================================================
# Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def backend():
    """Running fake Ambassador Server"""
    fake = FakeBackend()
    server = TestServer(fake.app)
    await server.start_server()
    fake.url = f"http://{server.host}:{server.port}"
    yield fake
    await server.close()


@pytest.fixture
def make_config(backend):
    """Factory for configs pointing at the fake backend"""
    def _make(**overrides) -> ClientConfig:
        values = {
            "server_url": backend.url,
            "preshared_key": VALID_PSK,
            "friendly_name": "test-client",
            "host_tool": "custom",
        }
        values.update(overrides)
        return ClientConfig(**values)
    return _make


@pytest.fixture
def client_config(make_config):
    return make_config()


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo configure_logging() between tests"""
    logger = logging.getLogger(ROOT_LOGGER)
    level = logger.level
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(level)
