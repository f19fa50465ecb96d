"""Utilities for loading host configuration files."""
from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from tools.registry import DEFAULT_ABANDON_AFTER

DEFAULT_LISTEN_ADDRESS = "127.0.0.1:0"


@dataclass(frozen=True)
class HostConfig:
    listen: str = DEFAULT_LISTEN_ADDRESS
    builtin_tools: bool = True
    prompt_tools: bool = True
    shell_tools: bool = True
    bridge_autostart: bool = True
    bridge_port: int = 0
    bridge_command: Optional[Tuple[str, ...]] = None
    bridge_log_file: Optional[Path] = None
    bridge_log_level: str = "info"
    bridge_client_config: Optional[Path] = None
    bridge_client_name: str = "mcp-tools"
    abandon_after: float = DEFAULT_ABANDON_AFTER


def load_host_config(path: Path) -> HostConfig:
    if not path.exists():
        raise FileNotFoundError(path)

    with path.open("rb") as fh:
        data = tomllib.load(fh)

    host_section = _section(data, "host")
    tools_section = _section(data, "tools")
    bridge_section = _section(data, "bridge")
    tasks_section = _section(data, "tasks")

    base_dir = path.parent
    defaults = HostConfig()

    def _to_bool(value: Optional[object], fallback: bool) -> bool:
        if value is None:
            return fallback
        if isinstance(value, bool):
            return value
        raise ValueError("boolean fields accept only true/false")

    def _to_port(value: Optional[object]) -> int:
        if value is None:
            return defaults.bridge_port
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError("bridge.port must be an integer")
        if not 0 <= value <= 65535:
            raise ValueError("bridge.port must be between 0 and 65535")
        return value

    def _to_seconds(value: Optional[object]) -> float:
        if value is None:
            return defaults.abandon_after
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("tasks.abandon_after must be a number of seconds")
        if value < 0:
            raise ValueError("tasks.abandon_after must not be negative")
        return float(value)

    def _to_command(value: Optional[object]) -> Optional[Tuple[str, ...]]:
        if value is None:
            return None
        if isinstance(value, str):
            entries = [value]
        elif isinstance(value, list):
            entries = value
        else:
            raise ValueError("bridge.command must be a string or an array of strings")
        cleaned = tuple(str(item) for item in entries if str(item).strip())
        return cleaned or None

    def _to_path(value: Optional[object]) -> Optional[Path]:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError("paths must be strings")
        return (base_dir / value).resolve()

    def _to_str(value: Optional[object], fallback: str) -> str:
        if value is None:
            return fallback
        if not isinstance(value, str) or not value.strip():
            raise ValueError("string fields must be non-empty strings")
        return value.strip()

    return HostConfig(
        listen=_to_str(host_section.get("listen"), defaults.listen),
        builtin_tools=_to_bool(tools_section.get("builtin"), defaults.builtin_tools),
        prompt_tools=_to_bool(tools_section.get("prompt"), defaults.prompt_tools),
        shell_tools=_to_bool(tools_section.get("shell"), defaults.shell_tools),
        bridge_autostart=_to_bool(bridge_section.get("autostart"), defaults.bridge_autostart),
        bridge_port=_to_port(bridge_section.get("port")),
        bridge_command=_to_command(bridge_section.get("command")),
        bridge_log_file=_to_path(bridge_section.get("log_file")),
        bridge_log_level=_to_str(bridge_section.get("log_level"), defaults.bridge_log_level).lower(),
        bridge_client_config=_to_path(bridge_section.get("client_config")),
        bridge_client_name=_to_str(bridge_section.get("client_name"), defaults.bridge_client_name),
        abandon_after=_to_seconds(tasks_section.get("abandon_after")),
    )


def _section(data: dict, name: str) -> dict:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ValueError(f"[{name}] section must be a table")
    return section


__all__ = ["DEFAULT_LISTEN_ADDRESS", "HostConfig", "load_host_config"]
