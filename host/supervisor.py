"""Supervision of the bridge subprocess from the host."""
from __future__ import annotations

import asyncio
import logging
import os
import re
import sys
from typing import Callable, Dict, Optional, Sequence

logger = logging.getLogger(__name__)

PORT_PATTERN = re.compile(r"MCP server listening on port (\d+)")
STOP_TIMEOUT = 5.0


def default_bridge_command() -> list[str]:
    return [sys.executable, "-m", "cli", "bridge"]


class BridgeProcess:
    """Starts the bridge, discovers its port from stdout and stops it again.

    Only one bridge runs per supervisor; a second :meth:`start` is refused.
    """

    def __init__(
        self,
        host_address: str,
        *,
        command: Optional[Sequence[str]] = None,
        port: int = 0,
        log_file: Optional[str] = None,
        log_level: str = "info",
        env: Optional[Dict[str, str]] = None,
    ) -> None:
        self.host_address = host_address
        self.command = list(command) if command else default_bridge_command()
        self.requested_port = port
        self.log_file = log_file
        self.log_level = log_level
        self._extra_env = dict(env or {})
        self._process: Optional[asyncio.subprocess.Process] = None
        self._port: Optional[int] = None
        self._ready = asyncio.Event()
        self._on_ready: Optional[Callable[[int], None]] = None
        self._on_stop: Optional[Callable[[], None]] = None
        self._watchers: list[asyncio.Task] = []
        self._stdout_lines: list[str] = []
        self._stopping = False

    @property
    def port(self) -> Optional[int]:
        return self._port

    @property
    def stdout_lines(self) -> list[str]:
        return list(self._stdout_lines)

    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    def _environment(self) -> Dict[str, str]:
        env = dict(os.environ)
        env.update(
            {
                "MCP_TOOLS_HOST_ADDRESS": self.host_address,
                "MCP_PORT": str(self.requested_port or 0),
                "MCP_TOOLS_LOG_FILE": self.log_file or "",
                "MCP_TOOLS_LOG_LEVEL": self.log_level,
            }
        )
        env.update(self._extra_env)
        return env

    async def start(
        self,
        *,
        on_ready: Optional[Callable[[int], None]] = None,
        on_stop: Optional[Callable[[], None]] = None,
    ) -> bool:
        """Spawn the bridge. Returns ``False`` if one is already running."""
        if self._process is not None:
            logger.warning("Bridge already running on port %s", self._port or "?")
            return False

        self._on_ready = on_ready
        self._on_stop = on_stop
        self._stdout_lines = []
        self._ready = asyncio.Event()
        self._stopping = False

        logger.info("Starting bridge: %s", " ".join(self.command))
        self._process = await asyncio.create_subprocess_exec(
            *self.command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=self._environment(),
        )
        process = self._process
        self._watchers = [
            asyncio.ensure_future(self._read_stdout(process)),
            asyncio.ensure_future(self._read_stderr(process)),
            asyncio.ensure_future(self._wait_exit(process)),
        ]
        return True

    async def wait_ready(self, timeout: Optional[float] = None) -> int:
        """Wait until the bridge reports its port and return it."""
        await asyncio.wait_for(self._ready.wait(), timeout)
        assert self._port is not None
        return self._port

    async def stop(self) -> None:
        process = self._process
        if process is None:
            return
        self._stopping = True
        if process.returncode is None:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), STOP_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("Bridge did not exit after %.0fs; killing it", STOP_TIMEOUT)
                process.kill()
                await process.wait()
        await asyncio.gather(*self._watchers, return_exceptions=True)

    async def _read_stdout(self, process: asyncio.subprocess.Process) -> None:
        assert process.stdout is not None
        async for raw in process.stdout:
            line = raw.decode("utf-8", errors="replace").rstrip()
            self._stdout_lines.append(line)
            match = PORT_PATTERN.search(line)
            if match and self._port is None:
                self._port = int(match.group(1))
                logger.info("Bridge ready on port %d", self._port)
                self._ready.set()
                if self._on_ready is not None:
                    self._on_ready(self._port)

    async def _read_stderr(self, process: asyncio.subprocess.Process) -> None:
        assert process.stderr is not None
        async for raw in process.stderr:
            line = raw.decode("utf-8", errors="replace").strip()
            if line:
                logger.debug("[bridge] %s", line)

    async def _wait_exit(self, process: asyncio.subprocess.Process) -> None:
        code = await process.wait()
        if code and not self._stopping:
            logger.warning("Bridge exited with code %s", code)
        else:
            logger.info("Bridge stopped")
        self._process = None
        self._port = None
        if self._on_stop is not None:
            self._on_stop()


__all__ = ["BridgeProcess", "PORT_PATTERN", "default_bridge_command"]
