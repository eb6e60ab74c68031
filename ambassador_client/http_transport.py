# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
HTTP Transport
One request/response cycle against the Ambassador Server.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Tuple

import aiohttp

from ambassador_client.core.errors import (
    AuthenticationError,
    HTTPStatusError,
    InvalidResponseError,
    NetworkError,
    ResponseTooLargeError,
)
from ambassador_client.core.masking import mask_sensitive_data

logger = logging.getLogger(__name__)

SESSION_TOKEN_HEADER = "X-Session-Token"

DEFAULT_MAX_RESPONSE_BYTES = 10 * 1024 * 1024
READ_CHUNK_BYTES = 64 * 1024
MAX_ERROR_TEXT = 500


def parse_error_payload(text: str) -> Tuple[Optional[str], str]:
    """
    Extract (error_code, message) from a backend error body.

    Accepts ``{"code": ..., "message": ...}``, ``{"error": "code", "message": ...}``
    and ``{"error": {"code": ..., "message": ...}}``. Falls back to the raw text.
    """
    fallback = text.strip()[:MAX_ERROR_TEXT] or "<empty body>"
    try:
        payload = json.loads(text)
    except ValueError:
        return None, fallback

    if not isinstance(payload, dict):
        return None, fallback

    if isinstance(payload.get("error"), dict):
        payload = payload["error"]

    code = payload.get("code")
    if code is None and isinstance(payload.get("error"), str):
        code = payload["error"]

    message = payload.get("message") or fallback
    return (str(code) if code is not None else None), str(message)


class HttpTransport:
    """Issues JSON requests to the Ambassador Server"""

    def __init__(
        self,
        base_url: str,
        allow_self_signed: bool = False,
        timeout: float = 30.0,
        max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
    ):
        self.base_url = base_url.rstrip("/")
        self.allow_self_signed = allow_self_signed
        self.timeout = timeout
        self.max_response_bytes = max_response_bytes

        # HTTP session pooling
        self._http_session: Optional[aiohttp.ClientSession] = None

        if allow_self_signed:
            logger.warning(
                "TLS certificate verification is DISABLED (allow_self_signed). "
                "Use this only for development against a self-signed server"
            )

    async def _get_http_session(self) -> aiohttp.ClientSession:
        """Get or create persistent HTTP session"""
        if self._http_session is None or self._http_session.closed:
            self._http_session = aiohttp.ClientSession()
        return self._http_session

    async def close(self):
        """Clean up resources"""
        if self._http_session and not self._http_session.closed:
            await self._http_session.close()
        self._http_session = None

    def _build_headers(self, session_token: Optional[str] = None) -> Dict[str, str]:
        """Build HTTP headers for backend requests"""
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if session_token:
            headers[SESSION_TOKEN_HEADER] = session_token
        return headers

    async def _read_body(self, response: aiohttp.ClientResponse) -> bytes:
        """Read the body, aborting as soon as it exceeds the size ceiling"""
        declared = response.content_length
        if declared is not None and declared > self.max_response_bytes:
            response.close()
            raise ResponseTooLargeError(self.max_response_bytes)

        chunks = []
        size = 0
        async for chunk in response.content.iter_chunked(READ_CHUNK_BYTES):
            size += len(chunk)
            if size > self.max_response_bytes:
                response.close()
                raise ResponseTooLargeError(self.max_response_bytes)
            chunks.append(chunk)
        return b"".join(chunks)

    async def request(
        self,
        method: str,
        path: str,
        body: Optional[Any] = None,
        session_token: Optional[str] = None,
    ) -> Any:
        """
        Perform one request and return the parsed JSON body.

        Args:
            method: HTTP method
            path: Path below the server URL (e.g. /v1/tools)
            body: JSON-serializable request body
            session_token: Attached as X-Session-Token when given

        Returns:
            Parsed JSON body ({} for an empty 2xx body)

        Raises:
            NetworkError: Connection, DNS, TLS or timeout failure
            ResponseTooLargeError: Body exceeded max_response_bytes
            InvalidResponseError: 2xx body is not JSON
            AuthenticationError: HTTP 401
            HTTPStatusError: Any other non-2xx status
        """
        url = f"{self.base_url}{path}"
        http_session = await self._get_http_session()

        kwargs: Dict[str, Any] = {
            "headers": self._build_headers(session_token),
            "timeout": aiohttp.ClientTimeout(total=self.timeout),
        }
        if body is not None:
            kwargs["data"] = json.dumps(body)
            logger.debug(f"{method} {path} body: {json.dumps(mask_sensitive_data(body), default=str)}")
        if self.allow_self_signed:
            kwargs["ssl"] = False

        try:
            async with http_session.request(method, url, **kwargs) as response:
                status = response.status
                raw = await self._read_body(response)
        except asyncio.TimeoutError as e:
            raise NetworkError(f"{method} {path} timed out after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e

        logger.debug(f"{method} {path} -> {status} ({len(raw)} bytes)")
        text = raw.decode("utf-8", errors="replace")

        if 200 <= status < 300:
            if not text.strip():
                return {}
            try:
                return json.loads(text)
            except ValueError as e:
                raise InvalidResponseError(f"Invalid JSON response from {method} {path}: {e}") from e

        error_code, message = parse_error_payload(text)
        if status == 401:
            raise AuthenticationError(message, error_code=error_code)
        raise HTTPStatusError(status, message, error_code=error_code)
