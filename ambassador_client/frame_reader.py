# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Stdio Frame Reader
Reassembles newline-delimited JSON-RPC messages from arbitrary stdin chunks.
"""

import asyncio
import logging
from typing import AsyncIterator, List, Union

from ambassador_client.core.errors import BufferOverflowError

logger = logging.getLogger(__name__)

DEFAULT_MAX_BUFFER_BYTES = 10 * 1024 * 1024
DEFAULT_MAX_MESSAGE_BYTES = 1 * 1024 * 1024
READ_CHUNK_BYTES = 64 * 1024


class FrameReader:
    """
    Splits an unbounded byte stream into trimmed, non-empty lines.

    Both ceilings are in bytes. Exceeding max_buffer_bytes raises
    BufferOverflowError; a line longer than max_message_bytes is dropped.
    """

    def __init__(
        self,
        max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES,
        max_message_bytes: int = DEFAULT_MAX_MESSAGE_BYTES,
    ):
        self.max_buffer_bytes = max_buffer_bytes
        self.max_message_bytes = max_message_bytes
        self._buffer = bytearray()
        self.dropped_messages = 0

    @property
    def pending(self) -> int:
        """Bytes held for an incomplete line"""
        return len(self._buffer)

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        """
        Append a chunk and return every line it completes.

        Raises:
            BufferOverflowError: Unconsumed data exceeds max_buffer_bytes
        """
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        self._buffer.extend(chunk)

        if len(self._buffer) > self.max_buffer_bytes:
            size = len(self._buffer)
            self._buffer.clear()
            raise BufferOverflowError(size, self.max_buffer_bytes)

        if b"\n" not in chunk:
            return []

        *complete, rest = self._buffer.split(b"\n")
        self._buffer = bytearray(rest)

        lines = []
        for raw in complete:
            if len(raw) > self.max_message_bytes:
                self.dropped_messages += 1
                logger.error(
                    f"Message exceeds max size ({self.max_message_bytes} bytes), ignoring"
                )
                continue
            line = raw.decode("utf-8", errors="replace").strip()
            if line:
                lines.append(line)
        return lines

    async def iter_lines(self, stream: asyncio.StreamReader) -> AsyncIterator[str]:
        """
        Yield lines from stream until end of input.

        An unterminated trailing fragment at EOF is discarded.
        """
        while True:
            chunk = await stream.read(READ_CHUNK_BYTES)
            if not chunk:
                if self._buffer.strip():
                    logger.debug(f"Discarding {len(self._buffer)} bytes of unterminated input at EOF")
                self._buffer.clear()
                return
            for line in self.feed(chunk):
                yield line
