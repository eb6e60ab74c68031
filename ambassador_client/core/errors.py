# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Custom exceptions for the Ambassador client.

All exceptions inherit from AmbassadorError for consistent error handling.
Callers branch on exception type, status_code and error_code, never on the
message text.
"""

from typing import Optional

# Backend error codes carried on 401 responses
SESSION_EXPIRED = "session_expired"
SESSION_SUSPENDED = "session_suspended"


class AmbassadorError(Exception):
    """Base exception for all Ambassador client errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize Ambassador error.

        Args:
            message: Human-readable error message
            details: Additional error details
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for structured logging."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(AmbassadorError):
    """Configuration error."""

    def __init__(self, message: str, config_file: Optional[str] = None, details: Optional[dict] = None):
        """
        Initialize configuration error.

        Args:
            message: Configuration error message
            config_file: Configuration file path
            details: Additional error details
        """
        super().__init__(message, details=details)
        self.config_file = config_file


# =============================================================================
# TRANSPORT ERRORS
# =============================================================================

class TransportError(AmbassadorError):
    """Request could not be completed at the transport level."""
    pass


class NetworkError(TransportError):
    """Connection refused, reset, DNS failure, TLS failure or timeout."""
    pass


class ResponseTooLargeError(TransportError):
    """Response body exceeded the configured ceiling."""

    def __init__(self, limit: int):
        super().__init__(
            f"Response exceeds maximum size of {limit} bytes",
            details={"limit": limit},
        )
        self.limit = limit


class InvalidResponseError(TransportError):
    """A 2xx response whose body is not valid JSON or not the expected shape."""
    pass


class HTTPStatusError(AmbassadorError):
    """Backend answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str, error_code: Optional[str] = None):
        """
        Initialize HTTP status error.

        Args:
            status_code: HTTP status code
            message: Backend-provided message, or raw body text
            error_code: Backend-provided error code, if any
        """
        super().__init__(
            f"HTTP {status_code}: {message}",
            details={"status_code": status_code, "error_code": error_code},
        )
        self.status_code = status_code
        self.error_code = error_code
        self.backend_message = message


class AuthenticationError(HTTPStatusError):
    """HTTP 401 from the backend."""

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(401, message, error_code=error_code)

    @property
    def reason(self) -> str:
        """Classified cause: session_expired, session_suspended or unknown."""
        if self.error_code in (SESSION_EXPIRED, SESSION_SUSPENDED):
            return self.error_code
        return "unknown"


class ReauthenticationError(AmbassadorError):
    """Re-registration after a 401 failed. The cause is chained."""
    pass


# =============================================================================
# STDIO ERRORS
# =============================================================================

class BufferOverflowError(AmbassadorError):
    """Unconsumed stdin buffer exceeded its ceiling. Fatal."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"stdin buffer exceeded max size ({limit} bytes)",
            details={"size": size, "limit": limit},
        )
        self.size = size
        self.limit = limit


class JsonRpcError(AmbassadorError):
    """Error to be returned to the host as a JSON-RPC error frame."""

    def __init__(self, code: int, message: str):
        super().__init__(message, details={"code": code})
        self.code = code
