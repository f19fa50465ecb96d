"""MCP server exposing host tools over HTTP/SSE."""
from __future__ import annotations

import logging
import socket
import sys
from typing import Any, Dict, List, Optional, TextIO

import uvicorn
from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.sse import SseServerTransport
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route
from starlette.types import Receive, Scope, Send

from config import BridgeConfig
from errors import ChannelError
from .channel import RemoteCallChannel, SocketChannel
from .discovery import discover_tools
from .invoker import ToolInvoker

logger = logging.getLogger(__name__)

SERVER_NAME = "mcp-tools"
LISTEN_HOST = "127.0.0.1"
READY_LINE = "MCP server listening on port {port}"
SSE_PATH = "/sse"
MESSAGES_PATH = "/messages/"


def build_server(channel: RemoteCallChannel, invoker: ToolInvoker, prefix: str) -> Server:
    """Create the MCP server with ``tools/list`` and ``tools/call`` handlers."""
    server: Server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return await discover_tools(channel, prefix)

    # Arguments are validated by the host registry.
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: Optional[Dict[str, Any]]) -> types.CallToolResult:
        return await invoker.call(name, arguments or {})

    return server


class _SseEndpoint:
    """ASGI endpoint running one MCP session per SSE connection."""

    def __init__(self, server: Server, transport: SseServerTransport) -> None:
        self._server = server
        self._transport = transport

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        async with self._transport.connect_sse(scope, receive, send) as (read_stream, write_stream):
            await self._server.run(read_stream, write_stream, self._server.create_initialization_options())


def build_app(server: Server, host_address: str) -> Starlette:
    """Wire ``GET /sse``, ``POST /messages/`` and ``GET /health``."""
    sse = SseServerTransport(MESSAGES_PATH)

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "host": host_address})

    return Starlette(
        routes=[
            Route(SSE_PATH, endpoint=_SseEndpoint(server, sse), methods=["GET"]),
            Mount(MESSAGES_PATH, app=sse.handle_post_message),
            Route("/health", endpoint=health, methods=["GET"]),
        ]
    )


def bind_socket(port: int, host: str = LISTEN_HOST) -> socket.socket:
    """Bind and listen before serving so the real port is known up front."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
        sock.listen(128)
    except OSError:
        sock.close()
        raise
    sock.setblocking(False)
    return sock


async def serve(config: BridgeConfig, *, stdout: TextIO | None = None) -> None:
    """Run the bridge until uvicorn receives a shutdown signal."""
    channel = SocketChannel(config.host_address)
    try:
        await channel.connect()
    except ChannelError as exc:
        logger.warning("%s; will retry on first request", exc.message)

    invoker = ToolInvoker(channel, config)
    app = build_app(build_server(channel, invoker, config.tool_prefix), config.host_address)

    sock = bind_socket(config.port)
    port = sock.getsockname()[1]
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            log_level=config.log_level,
            log_config=None,
            access_log=False,
        )
    )

    out = stdout or sys.stdout
    print(READY_LINE.format(port=port), file=out, flush=True)
    logger.info("Bridge serving host %s on port %d", config.host_address, port)
    try:
        await server.serve(sockets=[sock])
    finally:
        await channel.aclose()
        sock.close()
        logger.info("Bridge stopped")


__all__ = ["MESSAGES_PATH", "READY_LINE", "SSE_PATH", "bind_socket", "build_app", "build_server", "serve"]
