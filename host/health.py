"""Health checks reported by ``mcp-tools doctor``."""
from __future__ import annotations

import importlib.util
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from bridge.channel import RemoteCallChannel, SocketChannel
from errors import ChannelError

logger = logging.getLogger(__name__)

REQUIRED_MODULES = ("mcp", "pydantic", "starlette", "uvicorn", "rich")
OPTIONAL_MODULES = {"prompt_toolkit": "interactive prompt tools"}


class Status(Enum):
    OK = "ok"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


_STYLES = {
    Status.OK: "green",
    Status.INFO: "cyan",
    Status.WARN: "yellow",
    Status.ERROR: "bold red",
}


@dataclass(frozen=True)
class HealthCheck:
    name: str
    status: Status
    message: str


def check_dependencies() -> List[HealthCheck]:
    checks: List[HealthCheck] = []
    for module in REQUIRED_MODULES:
        if importlib.util.find_spec(module) is not None:
            checks.append(HealthCheck(module, Status.OK, "installed"))
        else:
            checks.append(HealthCheck(module, Status.ERROR, f"not installed (pip install {module})"))
    for module, purpose in OPTIONAL_MODULES.items():
        if importlib.util.find_spec(module) is not None:
            checks.append(HealthCheck(module, Status.OK, f"installed ({purpose} enabled)"))
        else:
            checks.append(HealthCheck(module, Status.INFO, f"not installed ({purpose} disabled)"))
    return checks


async def check_host(
    host_address: Optional[str],
    channel: Optional[RemoteCallChannel] = None,
) -> List[HealthCheck]:
    """Ping the host and report its tool and task counts."""
    if channel is None:
        if not host_address:
            return [HealthCheck("host", Status.INFO, "no host address (set MCP_TOOLS_HOST_ADDRESS)")]
        channel = SocketChannel(host_address)

    label = host_address or "local"
    try:
        reply = await channel.ping()
    except ChannelError as exc:
        return [HealthCheck("host", Status.ERROR, f"unreachable at {label}: {exc.message}")]
    finally:
        await channel.aclose()

    if not isinstance(reply, dict):
        return [HealthCheck("host", Status.ERROR, f"unexpected ping reply from {label}")]

    checks = [HealthCheck("host", Status.OK, f"reachable at {label}")]
    tools = int(reply.get("tools") or 0)
    if tools > 0:
        checks.append(HealthCheck("tools", Status.OK, f"{tools} tools registered"))
    else:
        checks.append(HealthCheck("tools", Status.WARN, "no tools registered"))
    checks.append(HealthCheck("tasks", Status.INFO, f"{int(reply.get('pending') or 0)} pending tasks"))
    return checks


def render_report(checks: Iterable[HealthCheck], console: Optional[Console] = None) -> bool:
    """Print *checks* as a table. Returns ``True`` when nothing failed."""
    console = console or Console(highlight=False, soft_wrap=False)
    table = Table(title="mcp-tools health", show_header=True, header_style="bold")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Details")

    healthy = True
    for check in checks:
        if check.status is Status.ERROR:
            healthy = False
        table.add_row(check.name, Text(check.status.value, style=_STYLES[check.status]), check.message)
    console.print(table)
    return healthy


__all__ = ["HealthCheck", "Status", "check_dependencies", "check_host", "render_report"]
