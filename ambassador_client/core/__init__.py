# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Core utilities and shared modules for the Ambassador client.

This package contains:
- config: Configuration management
- errors: Custom exceptions
- logging: Structured logging to stderr
- masking: Secret redaction
"""

from ambassador_client.core.config import ClientConfig, load_config
from ambassador_client.core.errors import AmbassadorError, ConfigurationError
from ambassador_client.core.logging import configure_logging
from ambassador_client.core.masking import SecretRegistry, mask_secret

__all__ = [
    "ClientConfig",
    "load_config",
    "AmbassadorError",
    "ConfigurationError",
    "configure_logging",
    "SecretRegistry",
    "mask_secret",
]
