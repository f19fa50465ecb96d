"""Host runtime: one event loop owning the registry, the RPC endpoint and the bridge."""
from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any, Callable, Optional

from host_config import HostConfig
from tools.builtin import register_builtin_tools
from tools.registry import TaskRegistry
from .integrations import write_client_config
from .prompt import ChoicePrompter
from .rpc import HostRpcServer
from .supervisor import BridgeProcess

logger = logging.getLogger(__name__)


class Host:
    """Long-lived process that serves tools to the bridge.

    The asyncio loop running :meth:`run` is the serialized execution context:
    every registry operation and every late completion is processed there.
    """

    def __init__(
        self,
        config: Optional[HostConfig] = None,
        *,
        prompter: Any = None,
        on_bridge_ready: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.config = config or HostConfig()
        self.registry = TaskRegistry(abandon_after=self.config.abandon_after)
        self.rpc = HostRpcServer(self.registry)
        self.bridge: Optional[BridgeProcess] = None
        self.address: Optional[str] = None
        self._prompter = prompter
        self._on_bridge_ready = on_bridge_ready
        self._stop_event: Optional[asyncio.Event] = None

    def register_tools(self) -> list[str]:
        if not self.config.builtin_tools:
            return []
        prompter = self._prompter
        if prompter is None and self.config.prompt_tools:
            prompter = ChoicePrompter()
        names = register_builtin_tools(
            self.registry,
            prompter=prompter,
            include_shell=self.config.shell_tools,
        )
        logger.info("Registered %d built-in tools: %s", len(names), ", ".join(names))
        return names

    async def start(self) -> str:
        """Register tools, start listening and launch the bridge if configured."""
        self._stop_event = asyncio.Event()
        self.register_tools()
        self.address = await self.rpc.start(self.config.listen)

        if self.config.bridge_autostart:
            self.bridge = BridgeProcess(
                self.address,
                command=self.config.bridge_command,
                port=self.config.bridge_port,
                log_file=str(self.config.bridge_log_file) if self.config.bridge_log_file else None,
                log_level=self.config.bridge_log_level,
            )
            await self.bridge.start(on_ready=self._bridge_ready, on_stop=self._bridge_stopped)
        return self.address

    async def stop(self) -> None:
        if self.bridge is not None:
            await self.bridge.stop()
            self.bridge = None
        await self.rpc.stop()
        self.registry.clear_pending()

    def request_stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    async def run(self, on_started: Optional[Callable[[str], None]] = None) -> None:
        """Serve until SIGINT/SIGTERM or :meth:`request_stop`."""
        address = await self.start()
        if on_started is not None:
            on_started(address)
        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
                installed.append(sig)
            except (NotImplementedError, RuntimeError):
                logger.debug("Signal handler for %s not supported here", sig)
        try:
            assert self._stop_event is not None
            await self._stop_event.wait()
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
            await self.stop()

    def _bridge_ready(self, port: int) -> None:
        client_config = self.config.bridge_client_config
        if client_config is not None:
            try:
                write_client_config(client_config, port, self.config.bridge_client_name)
            except (OSError, ValueError) as exc:
                logger.error("Failed to update MCP client config %s: %s", client_config, exc)
        if self._on_bridge_ready is not None:
            self._on_bridge_ready(port)

    def _bridge_stopped(self) -> None:
        logger.info("Bridge process ended")


__all__ = ["Host"]
