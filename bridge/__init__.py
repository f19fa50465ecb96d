"""MCP bridge: serves host tools to MCP clients over HTTP/SSE."""

from .channel import LocalChannel, RemoteCallChannel, SocketChannel
from .discovery import discover_tools
from .invoker import ToolInvoker, poll_for_result
from .output import format_error, format_result

__all__ = [
    "LocalChannel",
    "RemoteCallChannel",
    "SocketChannel",
    "ToolInvoker",
    "discover_tools",
    "format_error",
    "format_result",
    "poll_for_result",
]
