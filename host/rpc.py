"""Host side of the remote call channel.

The host listens on a TCP or unix socket and answers newline-delimited
JSON-RPC 2.0 requests from the bridge. Each request is dispatched straight onto
the registry from the host loop, so registry state only ever changes there.

Methods:
    execute      {"name": str, "args": object}
    get_result   {"task_id": str}
    cancel_task  {"task_id": str}
    list         {}
    ping         {}
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from config import STREAM_LIMIT, parse_address
from errors import ValidationToolError
from tools.registry import TaskRegistry
from tools.schemas import JsonRpcRequest

logger = logging.getLogger(__name__)

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class RpcError(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class HostRpcServer:
    """Serves registry operations to the bridge."""

    def __init__(self, registry: TaskRegistry) -> None:
        self._registry = registry
        self._server: Optional[asyncio.AbstractServer] = None
        self._methods: Dict[str, Callable[[Dict[str, Any]], Any]] = {
            "execute": self._execute,
            "get_result": self._get_result,
            "cancel_task": self._cancel_task,
            "list": self._list,
            "ping": self._ping,
        }
        self._connections: set[asyncio.StreamWriter] = set()
        self.address: Optional[str] = None

    async def start(self, address: str) -> str:
        """Start listening and return the bound address (resolves port 0)."""
        kind, target = parse_address(address)
        if kind == "tcp":
            host, port = target
            self._server = await asyncio.start_server(self._handle_connection, host, port, limit=STREAM_LIMIT)
            bound = self._server.sockets[0].getsockname()
            self.address = f"{bound[0]}:{bound[1]}"
        else:
            self._server = await asyncio.start_unix_server(self._handle_connection, path=target, limit=STREAM_LIMIT)
            self.address = f"unix:{target}"
        logger.info("Host RPC listening on %s", self.address)
        return self.address

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        for writer in list(self._connections):
            writer.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("Host RPC stopped")

    async def _handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        peer = writer.get_extra_info("peername") or "unix"
        logger.debug("Bridge connected from %s", peer)
        self._connections.add(writer)
        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                if not line.strip():
                    continue
                response = self.handle_line(line)
                if response is None:
                    continue
                writer.write(json.dumps(response, default=str).encode("utf-8") + b"\n")
                await writer.drain()
        except (ConnectionError, asyncio.IncompleteReadError, ValueError) as exc:
            logger.debug("Bridge connection %s closed: %s", peer, exc)
        finally:
            self._connections.discard(writer)
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass
            logger.debug("Bridge disconnected from %s", peer)

    def handle_line(self, line: bytes | str) -> Optional[Dict[str, Any]]:
        """Dispatch one raw JSON-RPC message; returns ``None`` for notifications."""
        try:
            raw = json.loads(line)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            return _error(None, PARSE_ERROR, f"Parse error: {exc}")

        request_id = raw.get("id") if isinstance(raw, dict) else None
        try:
            request = JsonRpcRequest.model_validate(raw)
        except ValidationError as exc:
            return _error(request_id, INVALID_REQUEST, f"Invalid request: {exc.errors()[0].get('msg')}")

        try:
            result = self._dispatch(request.method, request.params)
        except RpcError as exc:
            return _error(request.id, exc.code, exc.message)
        except ValidationToolError as exc:
            return _error(request.id, INVALID_PARAMS, exc.message)
        except Exception as exc:
            logger.exception("Unexpected error while handling %s", request.method)
            return _error(request.id, INTERNAL_ERROR, str(exc))

        if request.id is None:
            return None
        return {"jsonrpc": "2.0", "id": request.id, "result": result}

    def _dispatch(self, method: str, params: Dict[str, Any]) -> Any:
        handler = self._methods.get(method)
        if handler is None:
            raise RpcError(METHOD_NOT_FOUND, f"Unknown method: '{method}'")
        logger.debug("rpc %s %s", method, params)
        return handler(params)

    def _execute(self, params: Dict[str, Any]) -> Any:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise ValidationToolError("execute requires a tool name")
        args = params.get("args") or {}
        if not isinstance(args, dict):
            raise ValidationToolError("execute args must be an object")
        return self._registry.execute(name, args)

    def _get_result(self, params: Dict[str, Any]) -> Any:
        return self._registry.get_result(_task_id(params))

    def _cancel_task(self, params: Dict[str, Any]) -> Any:
        return self._registry.cancel_task(_task_id(params))

    def _list(self, params: Dict[str, Any]) -> Any:
        return self._registry.list()

    def _ping(self, params: Dict[str, Any]) -> Any:
        return {
            "status": "ok",
            "tools": self._registry.count(),
            "pending": self._registry.pending_count(),
        }


def _task_id(params: Dict[str, Any]) -> str:
    task_id = params.get("task_id")
    if isinstance(task_id, int) and not isinstance(task_id, bool):
        return str(task_id)
    if not isinstance(task_id, str) or not task_id:
        raise ValidationToolError("task_id must be a non-empty string")
    return task_id


def _error(request_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": {"code": code, "message": message},
    }


__all__ = ["HostRpcServer", "RpcError"]
