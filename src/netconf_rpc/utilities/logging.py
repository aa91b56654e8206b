"""Logging utilities for netconf-rpc."""

import logging
from collections.abc import Mapping
from typing import Any, Literal

from rich.console import Console
from rich.logging import RichHandler

DEFAULT_SENSITIVE_KEYS = frozenset({"password", "passphrase", "private_key", "client_keys"})


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO",
) -> None:
    """Configure logging for netconf-rpc.

    Args:
        level: the log level to use
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def redact_sensitive_data(
    data: Mapping[str, Any] | None,
    sensitive_keys: set[str] | frozenset[str] | None = None,
) -> Mapping[str, Any] | None:
    """Return a shallow copy with sensitive values replaced by "***".

    Parameters
    ----------
    data:
        Original mapping (typically connection options).  If *None* the
        function simply returns *None*.
    sensitive_keys:
        Optional set of keys that should be hidden; defaults to credentials
        and key material.
    """

    if data is None:
        return None

    sensitive_keys = sensitive_keys or DEFAULT_SENSITIVE_KEYS

    redacted: dict[str, Any] = {}
    for key, value in data.items():
        if key.lower() in sensitive_keys and value is not None:
            redacted[key] = "***"
        else:
            redacted[key] = value

    return redacted
