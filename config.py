"""Environment-driven settings for the MCP bridge process."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional, Tuple

DEFAULT_PORT = 0
DEFAULT_POLL_INTERVAL_MS = 100
DEFAULT_TIMEOUT_MS = 300_000
DEFAULT_TOOL_PREFIX = "editor_"
DEFAULT_LOG_LEVEL = "info"

# Channel lines for large tool listings can exceed asyncio's 64 KiB default.
STREAM_LIMIT = 16 * 1024 * 1024


@dataclass(frozen=True)
class BridgeConfig:
    """Settings consumed by the bridge's server and polling client.

    ``default_timeout`` is expressed in seconds; ``0`` disables the elapsed-time
    check for tools that do not declare their own timeout.
    """

    host_address: str
    port: int = DEFAULT_PORT
    poll_interval: float = DEFAULT_POLL_INTERVAL_MS / 1000
    default_timeout: float = DEFAULT_TIMEOUT_MS / 1000
    tool_prefix: str = DEFAULT_TOOL_PREFIX
    log_file: Optional[str] = None
    log_level: str = DEFAULT_LOG_LEVEL


def _parse_positive_int(raw: Optional[str], fallback: int) -> int:
    """Return a positive integer parsed from *raw*, or *fallback* on failure."""

    if raw is None:
        return fallback
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return fallback
    return value if value > 0 else fallback


def _parse_non_negative_int(raw: Optional[str], fallback: int) -> int:
    """Like :func:`_parse_positive_int` but accepts ``0``."""

    if raw is None:
        return fallback
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return fallback
    return value if value >= 0 else fallback


def parse_address(address: str) -> Tuple[str, Any]:
    """Split ``host:port`` into ``("tcp", (host, port))``; anything else is a unix path."""
    if address.startswith("unix:"):
        return "unix", address[len("unix:"):]
    host, sep, port = address.rpartition(":")
    if sep and port.isdigit() and host and "/" not in host:
        return "tcp", (host.strip("[]"), int(port))
    return "unix", address


def load_bridge_config(
    host_address: Optional[str] = None,
    port: Optional[int] = None,
) -> BridgeConfig:
    """Load bridge settings from environment variables with safe fallbacks.

    Explicit arguments win over the environment. A missing host address is an
    error because the bridge has nothing to talk to without one.
    """

    address = (host_address or os.getenv("MCP_TOOLS_HOST_ADDRESS") or "").strip()
    if not address:
        raise ValueError("MCP_TOOLS_HOST_ADDRESS environment variable not set")

    if port is None:
        port = _parse_non_negative_int(os.getenv("MCP_PORT"), DEFAULT_PORT)

    poll_ms = _parse_positive_int(os.getenv("MCP_TOOLS_POLL_INTERVAL_MS"), DEFAULT_POLL_INTERVAL_MS)
    timeout_ms = _parse_non_negative_int(os.getenv("MCP_TOOLS_DEFAULT_TIMEOUT_MS"), DEFAULT_TIMEOUT_MS)
    prefix = os.getenv("MCP_TOOLS_PREFIX")
    if prefix is None:
        prefix = DEFAULT_TOOL_PREFIX
    log_file = (os.getenv("MCP_TOOLS_LOG_FILE") or "").strip() or None
    log_level = (os.getenv("MCP_TOOLS_LOG_LEVEL") or "").strip().lower() or DEFAULT_LOG_LEVEL

    return BridgeConfig(
        host_address=address,
        port=port,
        poll_interval=poll_ms / 1000,
        default_timeout=timeout_ms / 1000,
        tool_prefix=prefix.strip(),
        log_file=log_file,
        log_level=log_level,
    )


__all__ = [
    "BridgeConfig",
    "DEFAULT_POLL_INTERVAL_MS",
    "DEFAULT_PORT",
    "DEFAULT_TIMEOUT_MS",
    "DEFAULT_TOOL_PREFIX",
    "STREAM_LIMIT",
    "load_bridge_config",
    "parse_address",
]
