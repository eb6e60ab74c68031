# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Ambassador Session Manager
Owns the authentication lifecycle: register, heartbeat, re-register on 401,
disconnect.
"""

import asyncio
import logging
import platform
import socket
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from ambassador_client.core.config import ClientConfig
from ambassador_client.core.errors import (
    SESSION_EXPIRED,
    SESSION_SUSPENDED,
    AmbassadorError,
    AuthenticationError,
    HTTPStatusError,
    InvalidResponseError,
    ReauthenticationError,
)
from ambassador_client.core.logging import log_event
from ambassador_client.core.masking import SecretRegistry
from ambassador_client.http_transport import HttpTransport
from ambassador_client.protocol import (
    HEARTBEAT_PATH,
    REGISTER_PATH,
    RegistrationRequest,
    RegistrationResponse,
    connection_path,
)
from ambassador_client.session import Session

logger = logging.getLogger(__name__)

RegistrationListener = Callable[[Session], None]


def machine_fingerprint() -> str:
    """hostname-platform-arch"""
    return f"{socket.gethostname()}-{platform.system().lower()}-{platform.machine()}"


class SessionManager:
    """Maintains exactly one session with the Ambassador Server"""

    def __init__(
        self,
        config: ClientConfig,
        transport: HttpTransport,
        secrets: Optional[SecretRegistry] = None,
    ):
        self.config = config
        self.transport = transport
        self.secrets = secrets if secrets is not None else SecretRegistry()
        self.secrets.add(config.preshared_key.get_secret_value())
        self.heartbeat_interval = config.heartbeat_interval_seconds

        self._session: Optional[Session] = None
        # Single in-flight re-registration shared by every caller that hits a 401
        self._reauth_task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._registration_listeners: List[RegistrationListener] = []

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def reauthenticating(self) -> bool:
        return self._reauth_task is not None

    def add_registration_listener(self, listener: RegistrationListener) -> None:
        """Call listener with the new session after every successful registration"""
        self._registration_listeners.append(listener)

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    async def register(self) -> Session:
        """
        Register with the Ambassador Server and replace the current session.

        Registration listeners are notified and the heartbeat is restarted.
        On failure the error propagates and the current session is untouched.
        """
        logger.info(
            f"Registering with Ambassador Server {self.config.server_url} "
            f"as '{self.config.friendly_name}' ({self.config.host_tool})"
        )
        request = RegistrationRequest(
            preshared_key=self.config.preshared_key.get_secret_value(),
            friendly_name=self.config.friendly_name,
            host_tool=self.config.host_tool,
            machine_fingerprint=machine_fingerprint(),
        )

        try:
            payload = await self.transport.request(
                "POST", REGISTER_PATH, request.model_dump(exclude_none=True)
            )
        except AmbassadorError as e:
            logger.error(f"Registration failed: {e}")
            raise

        try:
            response = RegistrationResponse.model_validate(payload)
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            # Not chained: the validation error echoes input values, token included
            raise InvalidResponseError(f"Malformed registration response (fields: {fields})") from None

        session = Session.from_registration(response)
        self.secrets.add(session.session_token)
        self._session = session

        logger.info(
            f"Registration successful: session={session.session_id} "
            f"connection={session.connection_id} profile={response.profile_id} "
            f"expires_at={session.expires_at.isoformat()}"
        )
        log_event(
            logger,
            "session_registered",
            level="DEBUG",
            session_id=session.session_id,
            connection_id=session.connection_id,
            profile_id=response.profile_id,
        )

        for listener in self._registration_listeners:
            listener(session)

        self.start_heartbeat()
        return session

    async def _reauthenticate(self, failed_session: Optional[Session]) -> None:
        """Join the in-flight re-registration, or start one"""
        if self._reauth_task is None:
            if self._session is not None and self._session is not failed_session:
                logger.debug("Session already renewed by a concurrent request")
                return
            self._reauth_task = asyncio.create_task(self._run_reauthentication())

        task = self._reauth_task
        try:
            await asyncio.shield(task)
        except AmbassadorError as e:
            raise ReauthenticationError(f"Re-authentication failed: {e}") from e

    async def _run_reauthentication(self) -> Session:
        try:
            return await self.register()
        finally:
            self._reauth_task = None

    def _log_auth_failure(self, error: AuthenticationError, method: str, path: str) -> None:
        if error.reason == SESSION_EXPIRED:
            logger.info(f"Session expired ({method} {path}), re-registering")
        elif error.reason == SESSION_SUSPENDED:
            logger.warning(f"Session suspended by server ({method} {path}), re-registering")
        else:
            logger.warning(f"Authentication rejected ({method} {path}): {error.backend_message}; re-registering")

    # =========================================================================
    # REQUESTS
    # =========================================================================

    async def invoke(
        self,
        method: str,
        path: str,
        body: Optional[Any] = None,
        authenticated: bool = True,
        allow_retry_on_401: bool = True,
    ) -> Any:
        """
        Send a request, re-registering and retrying once on 401.

        Raises:
            ReauthenticationError: The 401 triggered a re-registration that failed
            AuthenticationError: 401 again after the retry
            AmbassadorError: Any other transport or status failure
        """
        session = self._session if authenticated else None
        token = session.session_token if session else None

        try:
            return await self.transport.request(method, path, body, session_token=token)
        except AuthenticationError as e:
            if not authenticated or not allow_retry_on_401:
                raise
            self._log_auth_failure(e, method, path)
            await self._reauthenticate(session)

        return await self.invoke(method, path, body, authenticated=True, allow_retry_on_401=False)

    # =========================================================================
    # HEARTBEAT
    # =========================================================================

    async def heartbeat(self) -> bool:
        """
        Send one heartbeat. Never raises and never re-registers.

        Returns:
            True if the server accepted it (429 counts as accepted)
        """
        session = self._session
        if session is None:
            logger.debug("No session, skipping heartbeat")
            return False

        try:
            await self.transport.request("POST", HEARTBEAT_PATH, {}, session_token=session.session_token)
        except AuthenticationError as e:
            logger.warning(
                f"Heartbeat rejected ({e.reason}); session will be refreshed on the next request"
            )
            return False
        except HTTPStatusError as e:
            if e.status_code == 429:
                logger.debug("Heartbeat rate-limited (429)")
                return True
            logger.warning(f"Heartbeat failed: {e}")
            return False
        except AmbassadorError as e:
            logger.warning(f"Heartbeat failed: {e}")
            return False

        logger.debug("Heartbeat ok")
        return True

    async def _heartbeat_loop(self):
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            await self.heartbeat()

    def start_heartbeat(self) -> None:
        """(Re)start the heartbeat schedule"""
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    async def stop_heartbeat(self) -> None:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    async def disconnect(self) -> None:
        """
        Best-effort disconnect, bounded by disconnect_timeout_seconds.

        Never raises. The session is cleared afterwards.
        """
        reauth_task, self._reauth_task = self._reauth_task, None
        if reauth_task is not None:
            logger.debug("Cancelling in-flight re-registration")
            reauth_task.cancel()
            await asyncio.gather(reauth_task, return_exceptions=True)
        await self.stop_heartbeat()

        session = self._session
        if session is None:
            return

        timeout = self.config.disconnect_timeout_seconds
        try:
            await asyncio.wait_for(
                self.transport.request(
                    "DELETE",
                    connection_path(session.connection_id),
                    session_token=session.session_token,
                ),
                timeout=timeout,
            )
            logger.info(f"Disconnected connection {session.connection_id}")
        except asyncio.TimeoutError:
            logger.info(f"Disconnect did not complete within {timeout}s, continuing shutdown")
        except AmbassadorError as e:
            logger.warning(f"Disconnect notification failed: {e}")
        finally:
            self._session = None
