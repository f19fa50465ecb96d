"""Client integration: advertise the running bridge in an MCP client config file."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

BRIDGE_HOST = "127.0.0.1"


def bridge_url(port: int) -> str:
    return f"http://{BRIDGE_HOST}:{port}/sse"


def server_entry(port: int) -> Dict[str, Any]:
    return {"type": "sse", "url": bridge_url(port)}


def write_client_config(path: Path, port: int, name: str = "mcp-tools") -> Path:
    """Add or replace the ``mcpServers.<name>`` entry in the JSON file at *path*.

    Other servers already listed in the file are kept. The file is written to
    a sibling temporary file first and moved into place, so a client reading it
    never sees a partial document.
    """
    data: Dict[str, Any] = {}
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError(f"{path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a JSON object")

    servers = data.get("mcpServers")
    if not isinstance(servers, dict):
        servers = {}
    servers[name] = server_entry(port)
    data["mcpServers"] = servers

    path.parent.mkdir(parents=True, exist_ok=True)
    staging = path.with_name(f".{path.name}.tmp")
    staging.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    os.replace(staging, path)
    logger.info("Registered %s at %s in %s", name, bridge_url(port), path)
    return path


__all__ = ["bridge_url", "server_entry", "write_client_config"]
