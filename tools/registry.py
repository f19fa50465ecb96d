"""Task registry: tool definitions, execution and deferred result tracking."""
from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional

from errors import RegistrationError
from .spec import ArgumentSpec, ToolDefinition, ToolHandler
from .tasks import Completion, PendingTask, Scheduler

logger = logging.getLogger(__name__)

DEFAULT_ABANDON_AFTER = 300.0


class TaskRegistry:
    """Central registry mapping tool names to handlers.

    All methods are expected to run on the host's serialized execution context
    (one asyncio loop). Completions that arrive after ``execute`` returned are
    posted back onto that context through *scheduler*, which defaults to the
    running loop's ``call_soon_threadsafe``.
    """

    def __init__(
        self,
        *,
        scheduler: Optional[Scheduler] = None,
        abandon_after: Optional[float] = DEFAULT_ABANDON_AFTER,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._tools: Dict[str, ToolDefinition] = {}
        self._pending: Dict[str, PendingTask] = {}
        self._next_task_id = 1
        self._scheduler = scheduler
        self._abandon_after = abandon_after or None
        self._clock = clock

    # -- Definitions ---------------------------------------------------------

    def register(
        self,
        definition: ToolDefinition | None = None,
        *,
        name: str | None = None,
        description: str | None = None,
        handler: ToolHandler | None = None,
        args: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> ToolDefinition:
        """Insert or replace a tool definition by name."""
        if definition is None:
            definition = ToolDefinition(
                name=name or "",
                description=description or "",
                handler=handler,  # type: ignore[arg-type]
                args={},
                timeout=timeout,
            )
            raw_args = args or {}
        else:
            raw_args = definition.args

        if not definition.name:
            raise RegistrationError("Tool must have a name")
        if not definition.description:
            raise RegistrationError(f"Tool '{definition.name}' must have a description")
        if definition.handler is None:
            raise RegistrationError(f"Tool '{definition.name}' must have a handler")
        if not callable(definition.handler):
            raise RegistrationError(f"Tool '{definition.name}' handler must be callable")
        if definition.timeout is not None and definition.timeout < 0:
            raise RegistrationError(f"Tool '{definition.name}' timeout must not be negative")

        definition.args = {
            arg_name: ArgumentSpec.from_value(arg_name, spec) for arg_name, spec in raw_args.items()
        }
        if definition.name in self._tools:
            logger.debug("Replacing tool definition '%s'", definition.name)
        self._tools[definition.name] = definition
        return definition

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def has(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def count(self) -> int:
        return len(self._tools)

    def pending_count(self) -> int:
        return len(self._pending)

    def clear(self) -> None:
        """Drop every tool definition (test isolation)."""
        self._tools.clear()

    def clear_pending(self) -> None:
        self._pending.clear()

    def list(self) -> Dict[str, Dict[str, Any]]:
        """Snapshot of ``name -> {name, description, args}``."""
        return {name: tool.to_public() for name, tool in self._tools.items()}

    # -- Execution -----------------------------------------------------------

    def execute(self, name: str, args: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Run a tool inside the synchronous window and classify the outcome."""
        self._evict_abandoned()

        tool = self._tools.get(name)
        if tool is None:
            return {"done": True, "error": f"Unknown tool: {name}"}

        final_args, arg_error = _prepare_args(tool, args or {})
        if arg_error is not None:
            return {"done": True, "error": arg_error}

        completion = Completion(tool.name, self._deliver_late, self._scheduler)
        completion.open_window()
        try:
            tool.handler(completion, final_args)
        except Exception as exc:
            completion.close_window()
            logger.debug("Tool '%s' raised during execution", name, exc_info=True)
            return {"done": True, "error": f"Tool execution error: {exc}"}
        outcome = completion.close_window()

        if outcome is not None:
            result, error = outcome
            return {"done": True, "result": result, "error": error}

        task_id = str(self._next_task_id)
        self._next_task_id += 1
        now = self._clock()
        self._pending[task_id] = PendingTask(
            task_id=task_id,
            tool_name=tool.name,
            created_at=now,
            last_seen=now,
        )
        completion.bind(task_id)
        logger.debug("Tool '%s' deferred as task %s", name, task_id)
        return {"pending": True, "task_id": task_id, "timeout": tool.timeout}

    def get_result(self, task_id: str) -> Dict[str, Any]:
        """Poll a task; a finished task is returned once and then forgotten."""
        self._evict_abandoned()

        task = self._pending.get(task_id)
        if task is None:
            return {"done": True, "error": f"Unknown or expired task: {task_id}"}
        if not task.done:
            task.last_seen = self._clock()
            return {"done": False}
        del self._pending[task_id]
        return {"done": True, "result": task.result, "error": task.error}

    def cancel_task(self, task_id: str) -> Dict[str, Any]:
        """Forget a task. The handler keeps running; its result is discarded."""
        if self._pending.pop(task_id, None) is not None:
            logger.debug("Cancelled task %s", task_id)
        self._evict_abandoned()
        return {"cancelled": True}

    # -- Internals -----------------------------------------------------------

    def _deliver_late(self, completion: Completion, result: Any, error: Optional[str]) -> None:
        task_id = completion.task_id
        if task_id is None:
            return
        task = self._pending.get(task_id)
        if task is None:
            logger.debug("Discarding result for cancelled or expired task %s", task_id)
            return
        task.finish(result, error)
        task.last_seen = self._clock()

    def _evict_abandoned(self) -> None:
        if self._abandon_after is None or not self._pending:
            return
        cutoff = self._clock() - self._abandon_after
        stale = [task_id for task_id, task in self._pending.items() if task.last_seen < cutoff]
        for task_id in stale:
            task = self._pending.pop(task_id)
            logger.info(
                "Evicted task %s (%s) after %.0fs without a poll",
                task_id,
                task.tool_name,
                self._abandon_after,
            )


def _prepare_args(tool: ToolDefinition, args: Mapping[str, Any]) -> tuple[Dict[str, Any], Optional[str]]:
    final_args: Dict[str, Any] = {}
    for arg_name, spec in tool.args.items():
        value = args.get(arg_name)
        if value is not None:
            if not spec.type.accepts(value):
                return {}, (
                    f"Invalid argument '{arg_name}': expected {spec.type.value}, "
                    f"got {type(value).__name__}"
                )
            final_args[arg_name] = value
        elif spec.default is not None:
            final_args[arg_name] = spec.default
        elif spec.required:
            return {}, f"Missing required argument: {arg_name}"

    for key, value in args.items():
        if key not in final_args:
            final_args[key] = value
    return final_args, None


__all__ = ["DEFAULT_ABANDON_AFTER", "TaskRegistry"]
