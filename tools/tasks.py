"""Pending task records and the one-shot completion callback."""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Scheduler = Callable[[Callable[[], None]], None]


@dataclass
class PendingTask:
    """Registry-owned record of a deferred invocation."""

    task_id: str
    tool_name: str
    done: bool = False
    result: Any = None
    error: Optional[str] = None
    created_at: float = field(default_factory=time.monotonic)
    last_seen: float = field(default_factory=time.monotonic)

    def finish(self, result: Any, error: Optional[str]) -> bool:
        """Record the terminal outcome. Returns ``False`` if already finished."""
        if self.done:
            return False
        self.done = True
        self.result = result
        self.error = error
        return True


def normalize_error(error: Any) -> Optional[str]:
    if error is None:
        return None
    if isinstance(error, str):
        return error
    return str(error) or type(error).__name__


class Completion:
    """Completion callback handed to a handler for one invocation.

    The first call claims the callback no matter which thread makes it; every
    later call is ignored with a warning. A claim made on the window's own
    thread while the window is open is recorded inline. Any other claim is
    posted to the host's serialized queue and delivered through ``deliver``
    there.
    """

    def __init__(
        self,
        tool_name: str,
        deliver: Callable[["Completion", Any, Optional[str]], None],
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.tool_name = tool_name
        self.task_id: Optional[str] = None
        self._deliver = deliver
        self._scheduler = scheduler
        self._lock = threading.Lock()
        self._fired = False
        self._window_open = False
        self._window_thread: Optional[int] = None
        self._sync_outcome: Optional[tuple[Any, Optional[str]]] = None
        self._early: Optional[tuple[Any, Optional[str]]] = None

    def open_window(self) -> None:
        self._window_open = True
        self._window_thread = threading.get_ident()
        if self._scheduler is None:
            self._scheduler = _loop_scheduler()

    def close_window(self) -> Optional[tuple[Any, Optional[str]]]:
        """Close the window and return the inline outcome, if any."""
        self._window_open = False
        return self._sync_outcome

    def bind(self, task_id: str) -> None:
        """Attach the minted task id, delivering an outcome that arrived before it."""
        with self._lock:
            self.task_id = task_id
            early, self._early = self._early, None
        if early is not None:
            result, error = early
            self._deliver(self, result, error)

    def __call__(self, result: Any = None, error: Any = None) -> None:
        with self._lock:
            claimed = not self._fired
            self._fired = True
        if not claimed:
            logger.warning("Completion callback called multiple times for %s", self.tool_name)
            return

        error_text = normalize_error(error)
        if self._window_open and threading.get_ident() == self._window_thread:
            self._sync_outcome = (result, error_text)
            return
        self._post(lambda: self._late(result, error_text))

    def _late(self, result: Any, error: Optional[str]) -> None:
        with self._lock:
            if self.task_id is None:
                self._early = (result, error)
                return
        self._deliver(self, result, error)

    def _post(self, message: Callable[[], None]) -> None:
        scheduler = self._scheduler
        if scheduler is None:
            message()
            return
        try:
            scheduler(message)
        except RuntimeError as exc:
            logger.warning("Dropping completion for %s: host queue unavailable (%s)", self.tool_name, exc)


def _loop_scheduler() -> Optional[Scheduler]:
    """Return a scheduler bound to the running event loop, if there is one."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return None
    return loop.call_soon_threadsafe


__all__ = ["Completion", "PendingTask", "Scheduler", "normalize_error"]
