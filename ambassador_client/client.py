# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Ambassador Client

stdio MCP server that relays tool catalog and tool calls from the host app
(VS Code, Claude Desktop, ...) to the Ambassador Server.
"""

import asyncio
import logging
import os
import sys
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Set

from pydantic import ValidationError

from ambassador_client.catalog_cache import CatalogCache
from ambassador_client.core.config import ClientConfig
from ambassador_client.core.errors import AmbassadorError, BufferOverflowError, InvalidResponseError
from ambassador_client.core.masking import SecretRegistry
from ambassador_client.dispatcher import Dispatcher
from ambassador_client.frame_reader import FrameReader
from ambassador_client.http_transport import HttpTransport
from ambassador_client.jsonrpc import encode_frame
from ambassador_client.protocol import (
    INVOKE_PATH,
    TOOLS_PATH,
    ToolCatalogResponse,
    ToolDescriptor,
    ToolInvocationRequest,
    ToolInvocationResponse,
)
from ambassador_client.session import Session
from ambassador_client.session_manager import SessionManager

logger = logging.getLogger(__name__)

SHUTDOWN_GRACE_SECONDS = 5.0


class FrameWriter:
    """Writes each JSON-RPC frame to a binary stream with a single write"""

    def __init__(self, stream: BinaryIO):
        self.stream = stream

    def __call__(self, message: Dict) -> None:
        self.stream.write(encode_frame(message))
        self.stream.flush()

    async def wait_flushed(self, timeout: float) -> None:
        """Writes are synchronous; nothing is ever buffered here"""


class PipeFrameWriter:
    """
    Writes frames through a non-blocking pipe transport.

    A host that stops reading stdout makes frames queue in the transport
    buffer instead of blocking the event loop.
    """

    FLUSH_POLL_SECONDS = 0.01

    def __init__(self, transport: asyncio.WriteTransport):
        self.transport = transport

    @classmethod
    async def connect(cls, pipe: Any) -> "PipeFrameWriter":
        loop = asyncio.get_running_loop()
        transport, _ = await loop.connect_write_pipe(asyncio.Protocol, pipe)
        return cls(transport)

    def __call__(self, message: Dict) -> None:
        self.transport.write(encode_frame(message))

    async def wait_flushed(self, timeout: float) -> None:
        """Wait until buffered frames reach the pipe, at most timeout seconds"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while self.transport.get_write_buffer_size() and not self.transport.is_closing():
            if loop.time() >= deadline:
                logger.warning(
                    f"Host is not reading stdout, "
                    f"{self.transport.get_write_buffer_size()} bytes unflushed at shutdown"
                )
                return
            await asyncio.sleep(self.FLUSH_POLL_SECONDS)


class AmbassadorClient:
    """Wires transport, session manager, catalog cache and dispatcher together"""

    def __init__(
        self,
        config: ClientConfig,
        secrets: Optional[SecretRegistry] = None,
        transport: Optional[HttpTransport] = None,
        output: Optional[BinaryIO] = None,
        terminate: Callable[[int], None] = os._exit,
    ):
        """
        Initialize client.

        Args:
            config: Validated client configuration
            secrets: Registry shared with the log formatters
            transport: HTTP transport, built from config when None
            output: Binary stream for JSON-RPC frames, stdout when None
            terminate: Called with the exit status on stdin buffer overflow
        """
        self.config = config
        self.secrets = secrets if secrets is not None else SecretRegistry()
        self.transport = transport or HttpTransport(
            config.server_url,
            allow_self_signed=config.allow_self_signed,
            timeout=config.request_timeout_seconds,
            max_response_bytes=config.max_response_bytes,
        )
        self.sessions = SessionManager(config, self.transport, self.secrets)
        self.catalog = CatalogCache(
            self._fetch_tool_catalog,
            ttl_seconds=config.cache_ttl_seconds,
            disabled=config.disable_cache,
        )
        # A new session may be bound to a different tool subscription set
        self.sessions.add_registration_listener(self._on_registered)

        self.frame_reader = FrameReader(config.max_buffer_bytes, config.max_message_bytes)
        self._output = output
        self.writer = FrameWriter(output if output is not None else sys.stdout.buffer)
        self.dispatcher = Dispatcher(self, self.writer)
        self._terminate = terminate
        self._handlers: Set[asyncio.Task] = set()
        self.is_running = False

    def _on_registered(self, session: Session) -> None:
        self.catalog.invalidate()

    # =========================================================================
    # BACKEND OPERATIONS
    # =========================================================================

    async def register(self) -> Session:
        return await self.sessions.register()

    async def get_tool_catalog(self) -> List[ToolDescriptor]:
        """Tool catalog, served from cache while fresh"""
        return await self.catalog.get()

    async def _fetch_tool_catalog(self) -> List[ToolDescriptor]:
        payload = await self.sessions.invoke("GET", TOOLS_PATH)
        try:
            catalog = ToolCatalogResponse.model_validate(payload)
        except ValidationError as e:
            raise InvalidResponseError(f"Malformed tool catalog ({e.error_count()} validation errors)") from None
        return catalog.tools

    async def invoke_tool(self, name: str, arguments: Dict) -> ToolInvocationResponse:
        """Invoke a tool via the Ambassador Server"""
        logger.debug(f"Invoking tool: {name}")
        request = ToolInvocationRequest(tool=name, arguments=arguments)
        payload = await self.sessions.invoke("POST", INVOKE_PATH, request.model_dump(exclude_none=True))
        try:
            response = ToolInvocationResponse.model_validate(payload)
        except ValidationError as e:
            raise InvalidResponseError(f"Malformed invocation response ({e.error_count()} validation errors)") from None
        logger.debug(f"Tool invocation successful: {name} (request_id={response.request_id})")
        return response

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """
        Register and warm the tool catalog.

        Raises:
            RuntimeError: Already running
            AmbassadorError: Registration failed
        """
        if self.is_running:
            raise RuntimeError("Client already running")
        self.is_running = True

        logger.info(f"Starting Ambassador Client (server: {self.config.server_url})")
        await self.register()

        try:
            await self.get_tool_catalog()
        except AmbassadorError as e:
            logger.warning(f"Initial catalog fetch failed, will retry on demand: {e}")

    async def serve(self, stream: asyncio.StreamReader) -> None:
        """
        Dispatch every line read from stream until end of input.

        Each line is handled in its own task so a slow backend never blocks
        reading. A buffer overflow terminates the process immediately.
        """
        try:
            async for line in self.frame_reader.iter_lines(stream):
                self._spawn_handler(line)
        except BufferOverflowError as e:
            logger.critical(f"{e.message}, terminating")
            self._terminate(1)
            return
        logger.info("stdin closed, shutting down")

    async def serve_stdin(self) -> None:
        """Serve the process's stdin"""
        loop = asyncio.get_running_loop()
        if self._output is None:
            await self._connect_stdout()
        reader = asyncio.StreamReader()
        protocol = asyncio.StreamReaderProtocol(reader)
        await loop.connect_read_pipe(lambda: protocol, sys.stdin)
        await self.serve(reader)

    async def _connect_stdout(self) -> None:
        try:
            self.writer = await PipeFrameWriter.connect(sys.stdout)
        except (ValueError, NotImplementedError) as e:
            # Regular files and some Windows event loops have no pipe transport
            logger.debug(f"stdout is not pipe-capable ({e}), using blocking writes")
            return
        self.dispatcher.send = self.writer

    def _spawn_handler(self, line: str) -> None:
        task = asyncio.create_task(self.dispatcher.handle_line(line))
        self._handlers.add(task)
        task.add_done_callback(self._handlers.discard)

    async def _drain_handlers(self) -> None:
        if not self._handlers:
            return
        _, pending = await asyncio.wait(set(self._handlers), timeout=SHUTDOWN_GRACE_SECONDS)
        if pending:
            logger.warning(f"Cancelling {len(pending)} in-flight request(s) at shutdown")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

    async def stop(self) -> None:
        """Stop gracefully: drain handlers, disconnect, release HTTP resources"""
        if not self.is_running:
            return
        self.is_running = False

        logger.info("Stopping Ambassador Client...")
        await self._drain_handlers()
        await self.writer.wait_flushed(SHUTDOWN_GRACE_SECONDS)
        await self.sessions.disconnect()
        await self.transport.close()
        logger.info("Ambassador Client stopped")
