"""Bridge-side invocation: execute over the channel, then poll deferred tasks."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional

from mcp import types

from config import BridgeConfig
from errors import ToolTimeoutError
from tools.schemas import CancelReply, ExecuteReply, GetResultReply, parse_reply
from .channel import RemoteCallChannel
from .output import format_error, format_result

logger = logging.getLogger(__name__)

UNEXPECTED_RESPONSE = "Unexpected response from tool execution"


async def poll_for_result(
    channel: RemoteCallChannel,
    task_id: str,
    *,
    timeout: float,
    interval: float,
    clock: Callable[[], float] = time.monotonic,
) -> GetResultReply:
    """Poll ``get_result`` every *interval* seconds until the task is done.

    A *timeout* of ``0`` waits forever. Once the elapsed time reaches a
    non-zero *timeout* the task is cancelled on a best-effort basis and
    :class:`ToolTimeoutError` is raised. Channel failures propagate unchanged;
    a failed poll is never retried.
    """
    start = clock()
    while True:
        await asyncio.sleep(interval)
        reply = parse_reply(GetResultReply, await channel.get_result(task_id))
        if reply.done:
            return reply

        elapsed = clock() - start
        if timeout > 0 and elapsed >= timeout:
            try:
                cancel = parse_reply(CancelReply, await channel.cancel_task(task_id))
            except Exception as exc:
                logger.warning("Failed to cancel timed out task %s: %s", task_id, exc)
            else:
                if not cancel.cancelled:
                    logger.warning("Host refused to cancel timed out task %s", task_id)
            raise ToolTimeoutError(
                f"Timeout after {timeout:g}s waiting for tool result (elapsed {elapsed:.1f}s)",
                elapsed,
            )


class ToolInvoker:
    """Turns one MCP ``tools/call`` into exactly one terminal result."""

    def __init__(
        self,
        channel: RemoteCallChannel,
        config: BridgeConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._channel = channel
        self._config = config
        self._clock = clock

    def local_name(self, name: str) -> str:
        prefix = self._config.tool_prefix
        if prefix and name.startswith(prefix):
            return name[len(prefix):]
        return name

    async def call(self, name: str, args: Optional[Dict[str, Any]] = None) -> types.CallToolResult:
        tool_name = self.local_name(name)
        try:
            return await self._invoke(tool_name, args or {})
        except ToolTimeoutError as exc:
            logger.warning("Tool '%s' timed out: %s", tool_name, exc.message)
            return format_error(exc.message)
        except Exception as exc:
            logger.error("Bridge error while calling '%s': %s", tool_name, exc)
            return format_error(f"Bridge error: {exc}")

    async def _invoke(self, tool_name: str, args: Dict[str, Any]) -> types.CallToolResult:
        reply = parse_reply(ExecuteReply, await self._channel.execute(tool_name, args))

        if reply.done:
            if reply.error:
                return format_error(reply.error)
            return format_result(reply.result)

        if reply.pending and reply.task_id:
            timeout = reply.timeout if reply.timeout is not None else self._config.default_timeout
            logger.debug("Tool '%s' pending as task %s (timeout %ss)", tool_name, reply.task_id, timeout)
            final = await poll_for_result(
                self._channel,
                reply.task_id,
                timeout=timeout,
                interval=self._config.poll_interval,
                clock=self._clock,
            )
            if final.error:
                return format_error(final.error)
            return format_result(final.result)

        return format_error(UNEXPECTED_RESPONSE)


__all__ = ["ToolInvoker", "UNEXPECTED_RESPONSE", "poll_for_result"]
