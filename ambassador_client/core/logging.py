# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Structured logging for the Ambassador client.

Logs always go to stderr: stdout carries the JSON-RPC stream and must never
receive anything else. Every formatted record is passed through the secret
registry before it is emitted.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Optional, Any, TextIO

from ambassador_client.core.masking import SecretRegistry

ROOT_LOGGER = "ambassador_client"

_RESERVED_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName",
    "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "taskName",
}


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON for easy parsing by log aggregation systems.
    """

    def __init__(self, secrets: Optional[SecretRegistry] = None):
        super().__init__()
        self.secrets = secrets or SecretRegistry()

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log string with secrets redacted
        """
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        # Secrets are matched before JSON escaping
        return json.dumps(self.secrets.redact_data(log_data))


class TextFormatter(logging.Formatter):
    """Simple text formatter for human-readable logs."""

    def __init__(self, secrets: Optional[SecretRegistry] = None):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        self.secrets = secrets or SecretRegistry()

    def format(self, record: logging.LogRecord) -> str:
        return self.secrets.redact(super().format(record))


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "text",
    secrets: Optional[SecretRegistry] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format type (json or text)
        secrets: Registry of values to redact from every record
        stream: Destination stream, stderr by default

    Returns:
        Configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    if log_format == "json":
        formatter = JSONFormatter(secrets)
    else:
        formatter = TextFormatter(secrets)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger


def log_event(
    logger: logging.Logger,
    event: str,
    level: str = "INFO",
    **kwargs: Any
) -> None:
    """
    Log structured event with additional fields.

    Args:
        logger: Logger instance
        event: Event name
        level: Log level
        **kwargs: Additional fields to include in log
    """
    log_func = getattr(logger, level.lower())
    log_func(event, extra=kwargs)
