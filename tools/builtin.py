"""Built-in host tools covering immediate and deferred completion."""
from __future__ import annotations

import asyncio
import logging
import shlex
import time
from typing import Any, Callable, Coroutine, Dict, Optional, Set

from .output import CommandOutput, format_command_output
from .registry import TaskRegistry

logger = logging.getLogger(__name__)

Complete = Callable[..., None]

_BACKGROUND: Set[asyncio.Task] = set()


def _spawn(coro: Coroutine[Any, Any, None]) -> asyncio.Task:
    """Run *coro* on the host loop, keeping a reference until it finishes."""
    task = asyncio.ensure_future(coro)
    _BACKGROUND.add(task)
    task.add_done_callback(_BACKGROUND.discard)
    return task


def register_builtin_tools(
    registry: TaskRegistry,
    *,
    prompter: Any = None,
    include_shell: bool = True,
    started_at: Optional[float] = None,
) -> list[str]:
    """Register the built-in tools and return their names.

    ``multiple_choice_prompt`` is only registered when a *prompter* (see
    ``host.prompt.ChoicePrompter``) is supplied.
    """
    started = time.monotonic() if started_at is None else started_at

    def host_status(complete: Complete, args: Dict[str, Any]) -> None:
        complete(
            {
                "tools": registry.count(),
                "pending_tasks": registry.pending_count(),
                "uptime_seconds": round(time.monotonic() - started, 1),
            }
        )

    registry.register(
        name="host_status",
        description="Get host status: number of registered tools, pending tasks and uptime",
        handler=host_status,
    )
    registry.register(
        name="sleep",
        description="Wait for the given number of seconds, then return. Useful to check long-running tool handling.",
        handler=_sleep,
        args={
            "seconds": {
                "type": "number",
                "description": "How long to wait, in seconds",
                "default": 1,
            },
        },
    )
    names = ["host_status", "sleep"]

    if include_shell:
        registry.register(
            name="run_command",
            description="Run a command on the host without a shell and return its exit code and output.",
            handler=_run_command,
            args={
                "command": {
                    "type": "string",
                    "description": "Command line, split with shell quoting rules",
                    "required": True,
                },
                "cwd": {
                    "type": "string",
                    "description": "Working directory for the command",
                },
            },
        )
        names.append("run_command")

    if prompter is not None:
        registry.register(
            name="multiple_choice_prompt",
            description=(
                "Prompt the user to select one option from a list of choices. "
                "Returns the selected option or cancelled=true."
            ),
            handler=_make_prompt_handler(prompter),
            timeout=0,
            args={
                "prompt": {
                    "type": "string",
                    "description": "The prompt message to display to the user",
                    "required": True,
                },
                "options": {
                    "type": "array",
                    "description": "Array of string options for the user to choose from",
                    "required": True,
                    "items": {"type": "string"},
                },
            },
        )
        names.append("multiple_choice_prompt")

    return names


def _sleep(complete: Complete, args: Dict[str, Any]) -> None:
    seconds = args["seconds"]
    if seconds < 0:
        complete(None, "seconds must not be negative")
        return
    loop = asyncio.get_running_loop()
    loop.call_later(seconds, complete, {"slept": seconds})


def _run_command(complete: Complete, args: Dict[str, Any]) -> None:
    try:
        argv = shlex.split(args["command"])
    except ValueError as exc:
        complete(None, f"Invalid command: {exc}")
        return
    if not argv:
        complete(None, "command must not be empty")
        return
    _spawn(_run_subprocess(argv, args.get("cwd"), complete))


async def _run_subprocess(argv: list[str], cwd: Optional[str], complete: Complete) -> None:
    start = time.monotonic()
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
        stdout, stderr = await proc.communicate()
    except OSError as exc:
        complete(None, f"Failed to run command: {exc}")
        return

    output = CommandOutput(
        exit_code=proc.returncode if proc.returncode is not None else -1,
        duration_seconds=time.monotonic() - start,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
    complete(format_command_output(output))


def _make_prompt_handler(prompter: Any) -> Callable[[Complete, Dict[str, Any]], None]:
    def multiple_choice_prompt(complete: Complete, args: Dict[str, Any]) -> None:
        options = args.get("options") or []
        if not options:
            complete(None, "Options array is required and must not be empty")
            return
        if not all(isinstance(option, str) for option in options):
            complete(None, "Options must be strings")
            return

        async def _ask() -> None:
            try:
                choice = await prompter.choose(args["prompt"], list(options))
            except Exception as exc:
                logger.warning("Choice prompt failed: %s", exc)
                complete(None, f"Prompt failed: {exc}")
                return
            complete(choice.to_dict())

        _spawn(_ask())

    return multiple_choice_prompt


__all__ = ["register_builtin_tools"]
