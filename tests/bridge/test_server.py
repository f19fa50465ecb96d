import asyncio
import socket

from mcp import types
from starlette.testclient import TestClient

from bridge.channel import LocalChannel
from bridge.invoker import ToolInvoker
from bridge.server import MESSAGES_PATH, READY_LINE, SSE_PATH, bind_socket, build_app, build_server
from config import BridgeConfig
from tools.registry import TaskRegistry


def _server():
    registry = TaskRegistry()
    registry.register(
        name="echo",
        description="Echo text",
        handler=lambda complete, args: complete(args.get("text")),
        args={"text": {"type": "string", "required": True}},
    )
    channel = LocalChannel(registry)
    config = BridgeConfig(host_address="127.0.0.1:9")
    return build_server(channel, ToolInvoker(channel, config), config.tool_prefix)


def test_health_endpoint_reports_host():
    app = build_app(_server(), "127.0.0.1:9")

    with TestClient(app) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "host": "127.0.0.1:9"}


def test_list_tools_handler_uses_live_listing():
    server = _server()
    handler = server.request_handlers[types.ListToolsRequest]

    result = asyncio.run(handler(types.ListToolsRequest(method="tools/list")))

    assert [tool.name for tool in result.root.tools] == ["editor_echo"]


def test_bind_socket_reports_assigned_port():
    sock = bind_socket(0)
    try:
        host, port = sock.getsockname()
        assert host == "127.0.0.1"
        assert port > 0
        assert sock.type == socket.SOCK_STREAM
    finally:
        sock.close()


def test_ready_line_matches_supervisor_pattern():
    from host.supervisor import PORT_PATTERN

    match = PORT_PATTERN.search(READY_LINE.format(port=4312))

    assert match is not None
    assert match.group(1) == "4312"


def test_app_routes_sse_messages_and_health():
    app = build_app(_server(), "127.0.0.1:9")

    paths = {getattr(route, "path", None) for route in app.routes}
    assert {SSE_PATH, MESSAGES_PATH.rstrip("/"), "/health"} <= paths

    with TestClient(app) as client:
        unknown = client.get("/nowhere")
        post = client.post(MESSAGES_PATH, json={"jsonrpc": "2.0", "method": "ping", "id": 1})

    assert unknown.status_code == 404
    # Reaches the SSE transport, which rejects a post without a session.
    assert post.status_code == 400
