# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Ambassador client configuration.

Priority (highest to lowest):
1. Explicit overrides (command line)
2. Environment variables
3. YAML config file
4. Default values

Pydantic validation keeps malformed URLs and out-of-range values out of the
session engine.
"""

import logging
import os
import socket
from pathlib import Path
from typing import Any, Dict, Literal, Optional
from urllib.parse import urlsplit, urlunsplit

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

from ambassador_client.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

MIB = 1024 * 1024

HEARTBEAT_MIN_SECONDS = 5
HEARTBEAT_MAX_SECONDS = 300

LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}
DEFAULT_SERVER_PORT = 8443

CONFIG_PATH_ENV = "MCP_AMBASSADOR_CONFIG"

# field name -> environment variable
ENV_VARS = {
    "server_url": "MCP_AMBASSADOR_URL",
    "preshared_key": "MCP_AMBASSADOR_PRESHARED_KEY",
    "friendly_name": "MCP_AMBASSADOR_FRIENDLY_NAME",
    "host_tool": "MCP_AMBASSADOR_HOST_TOOL",
    "heartbeat_interval_seconds": "MCP_AMBASSADOR_HEARTBEAT_INTERVAL",
    "cache_ttl_seconds": "MCP_AMBASSADOR_CACHE_TTL",
    "disable_cache": "MCP_AMBASSADOR_DISABLE_CACHE",
    "allow_self_signed": "MCP_AMBASSADOR_ALLOW_SELF_SIGNED",
    "log_level": "MCP_AMBASSADOR_LOG_LEVEL",
    "log_format": "MCP_AMBASSADOR_LOG_FORMAT",
}

HostTool = Literal[
    "vscode",
    "claude-desktop",
    "claude-code",
    "opencode",
    "gemini-cli",
    "chatgpt",
    "custom",
]


def default_friendly_name() -> str:
    return os.getenv("HOSTNAME") or socket.gethostname() or "ambassador-client"


class ClientConfig(BaseModel):
    """
    Immutable client configuration.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    # -- Backend --
    server_url: str
    preshared_key: SecretStr = Field(..., min_length=1)
    friendly_name: str = Field(default_factory=default_friendly_name, min_length=1, max_length=128)
    host_tool: HostTool = "custom"
    allow_self_signed: bool = False

    # -- Session --
    heartbeat_interval_seconds: int = 60
    disconnect_timeout_seconds: float = Field(default=2.0, gt=0)
    request_timeout_seconds: float = Field(default=30.0, gt=0)

    # -- Catalog cache --
    cache_ttl_seconds: float = Field(default=300, ge=0)
    disable_cache: bool = False

    # -- Limits --
    max_response_bytes: int = Field(default=10 * MIB, gt=0)
    max_buffer_bytes: int = Field(default=10 * MIB, gt=0)
    max_message_bytes: int = Field(default=1 * MIB, gt=0)

    # -- Logging --
    log_level: str = "INFO"
    log_format: str = "text"

    @field_validator("server_url")
    @classmethod
    def validate_server_url(cls, v: str) -> str:
        parts = urlsplit(v.strip())
        if not parts.scheme or not parts.hostname:
            raise ValueError(f"Invalid server_url: {v!r}")
        if parts.scheme not in ("http", "https"):
            raise ValueError(f"Invalid URL scheme '{parts.scheme}': only https (or http for localhost) is supported")
        if parts.scheme == "http" and parts.hostname not in LOOPBACK_HOSTS:
            logger.warning(
                f"server_url {v} uses insecure HTTP. HTTPS is strongly recommended "
                f"for any non-localhost server"
            )
        if parts.port is None:
            # Ambassador Server listens on 8443 unless the URL says otherwise
            parts = parts._replace(netloc=f"{parts.netloc.rstrip(':')}:{DEFAULT_SERVER_PORT}")
        return urlunsplit(parts).rstrip("/")

    @field_validator("heartbeat_interval_seconds")
    @classmethod
    def clamp_heartbeat_interval(cls, v: int) -> int:
        # Clamped rather than rejected
        if v < HEARTBEAT_MIN_SECONDS:
            logger.warning(
                f"heartbeat_interval_seconds ({v}s) is below minimum "
                f"({HEARTBEAT_MIN_SECONDS}s). Clamping to {HEARTBEAT_MIN_SECONDS}s"
            )
            return HEARTBEAT_MIN_SECONDS
        if v > HEARTBEAT_MAX_SECONDS:
            logger.warning(
                f"heartbeat_interval_seconds ({v}s) exceeds maximum "
                f"({HEARTBEAT_MAX_SECONDS}s). Clamping to {HEARTBEAT_MAX_SECONDS}s"
            )
            return HEARTBEAT_MAX_SECONDS
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v not in ("json", "text"):
            raise ValueError("Format must be 'json' or 'text'")
        return v


# =============================================================================
# LOADER
# =============================================================================

def _read_yaml(path: str) -> Dict[str, Any]:
    config_file = Path(path)
    if not config_file.exists():
        raise ConfigurationError(f"Config not found at {path}", config_file=path)

    with open(config_file) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}", config_file=path) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping", config_file=path)
    return data


def load_config(path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> ClientConfig:
    """
    Load configuration from YAML, environment and explicit overrides.

    Args:
        path: YAML config file. Falls back to MCP_AMBASSADOR_CONFIG when None
        overrides: Highest-priority values; None entries are ignored

    Returns:
        Validated configuration

    Raises:
        ConfigurationError: File missing/unreadable or values invalid
    """
    path = path or os.getenv(CONFIG_PATH_ENV)
    data: Dict[str, Any] = _read_yaml(path) if path else {}

    for field, env_var in ENV_VARS.items():
        value = os.getenv(env_var)
        if value:
            data[field] = value

    data.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        return ClientConfig(**data)
    except ValidationError as e:
        # Field locations and messages only; input values may be secrets
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}", config_file=path) from None
