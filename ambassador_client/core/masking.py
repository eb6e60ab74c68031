# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Secret masking for log output.

Preshared keys and session tokens must never reach a log sink in clear text.
"""

from typing import Any, Iterable, Optional, Set

MASK = "****"

SENSITIVE_KEYS = {
    "preshared_key",
    "session_token",
    "token",
    "api_key",
    "x-session-token",
    "authorization",
    "password",
    "secret",
}


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    """
    Mask a secret, keeping a short prefix for correlation.

    Args:
        value: Secret to mask
        visible: Number of leading characters kept

    Returns:
        Masked value (e.g. ``amb_****``)
    """
    if not value:
        return ""
    if len(value) <= visible * 2:
        return MASK
    return value[:visible] + MASK


def mask_sensitive_data(data: Any) -> Any:
    """Recursively mask sensitive keys in dict/list payloads."""
    if isinstance(data, dict):
        return {
            k: (mask_secret(str(v)) if str(k).lower() in SENSITIVE_KEYS else mask_sensitive_data(v))
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [mask_sensitive_data(i) for i in data]
    return data


class SecretRegistry:
    """Set of secret values that are redacted from any text passed through it."""

    def __init__(self, secrets: Optional[Iterable[str]] = None):
        self._secrets: Set[str] = set()
        for secret in secrets or ():
            self.add(secret)

    def add(self, secret: Optional[str]) -> None:
        """Register a secret value. Empty values are ignored."""
        if secret:
            self._secrets.add(secret)

    def __contains__(self, secret: str) -> bool:
        return secret in self._secrets

    def __len__(self) -> int:
        return len(self._secrets)

    def redact(self, text: str) -> str:
        """Replace every registered secret in text by its masked form."""
        if not self._secrets or not text:
            return text
        # Longest first so a secret containing another is fully replaced
        for secret in sorted(self._secrets, key=len, reverse=True):
            if secret in text:
                text = text.replace(secret, mask_secret(secret))
        return text

    def redact_data(self, data: Any) -> Any:
        """Redact secrets from every string inside a dict/list structure."""
        if isinstance(data, str):
            return self.redact(data)
        if isinstance(data, dict):
            return {k: self.redact_data(v) for k, v in data.items()}
        if isinstance(data, (list, tuple)):
            return [self.redact_data(i) for i in data]
        if data is None or isinstance(data, (bool, int, float)):
            return data
        return self.redact(str(data))
