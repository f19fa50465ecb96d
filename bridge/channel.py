"""Remote call channel used by the bridge to reach the host's registry."""
from __future__ import annotations

import asyncio
import itertools
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from config import STREAM_LIMIT, parse_address
from errors import ChannelError
from tools.registry import TaskRegistry

logger = logging.getLogger(__name__)


class RemoteCallChannel(ABC):
    """Request/response transport to the host.

    Calls have no built-in timeout; the caller decides how long to wait.
    """

    @abstractmethod
    async def call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Invoke *method* on the host and return its decoded result."""

    async def aclose(self) -> None:
        return None

    async def execute(self, name: str, args: Dict[str, Any]) -> Any:
        return await self.call("execute", {"name": name, "args": args})

    async def get_result(self, task_id: str) -> Any:
        return await self.call("get_result", {"task_id": task_id})

    async def cancel_task(self, task_id: str) -> Any:
        return await self.call("cancel_task", {"task_id": task_id})

    async def list_tools(self) -> Any:
        return await self.call("list")

    async def ping(self) -> Any:
        return await self.call("ping")


class SocketChannel(RemoteCallChannel):
    """Newline-delimited JSON-RPC 2.0 over one TCP or unix socket connection.

    Round trips are serialised, so concurrent MCP sessions share the
    connection without interleaving replies.
    """

    def __init__(self, address: str) -> None:
        self.address = address
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)

    @property
    def connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    async def connect(self) -> None:
        if self.connected:
            return
        kind, target = parse_address(self.address)
        try:
            if kind == "tcp":
                host, port = target
                self._reader, self._writer = await asyncio.open_connection(host, port, limit=STREAM_LIMIT)
            else:
                self._reader, self._writer = await asyncio.open_unix_connection(target, limit=STREAM_LIMIT)
        except OSError as exc:
            raise ChannelError(f"Cannot connect to host at {self.address}: {exc}") from exc
        logger.debug("Connected to host at %s", self.address)

    async def aclose(self) -> None:
        writer = self._writer
        self._reader = None
        self._writer = None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except ConnectionError:
            pass

    async def call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        async with self._lock:
            if not self.connected:
                await self.connect()
            assert self._reader is not None and self._writer is not None

            request_id = next(self._ids)
            message = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params or {}}
            logger.debug("-> %s", message)
            replied = False
            try:
                self._writer.write(json.dumps(message).encode("utf-8") + b"\n")
                await self._writer.drain()
                line = await self._reader.readline()
                replied = True
            except (OSError, asyncio.IncompleteReadError, ValueError) as exc:
                raise ChannelError(f"Connection to host lost: {exc}") from exc
            finally:
                # Also covers cancellation: the pending reply would otherwise
                # be read by the next call.
                if not replied:
                    self._drop()
            if not line:
                self._drop()
                raise ChannelError("Connection to host closed")

            try:
                reply = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ChannelError(f"Invalid reply from host: {exc}") from exc
            logger.debug("<- %s", reply)

            if not isinstance(reply, dict):
                raise ChannelError("Invalid reply from host: expected an object")
            if reply.get("id") != request_id:
                self._drop()
                raise ChannelError(f"Reply id {reply.get('id')!r} does not match request {request_id}")

        error = reply.get("error")
        if error is not None:
            if isinstance(error, dict):
                raise ChannelError(str(error.get("message", "unknown error")), error.get("code"))
            raise ChannelError(str(error))
        return reply.get("result")

    def _drop(self) -> None:
        # A half-read stream cannot be resynchronised; reconnect on next call.
        writer = self._writer
        self._reader = None
        self._writer = None
        if writer is not None:
            writer.close()


class LocalChannel(RemoteCallChannel):
    """In-process channel that calls a registry directly."""

    def __init__(self, registry: TaskRegistry) -> None:
        self._registry = registry

    async def call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        params = params or {}
        if method == "execute":
            return self._registry.execute(params["name"], params.get("args") or {})
        if method == "get_result":
            return self._registry.get_result(params["task_id"])
        if method == "cancel_task":
            return self._registry.cancel_task(params["task_id"])
        if method == "list":
            return self._registry.list()
        if method == "ping":
            return {
                "status": "ok",
                "tools": self._registry.count(),
                "pending": self._registry.pending_count(),
            }
        raise ChannelError(f"Unknown method: '{method}'", -32601)


__all__ = ["LocalChannel", "RemoteCallChannel", "SocketChannel"]
