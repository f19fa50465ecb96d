import asyncio
import logging
import threading

import pytest

from errors import RegistrationError
from tools.registry import TaskRegistry
from tools.spec import ArgType, ArgumentSpec, ToolDefinition


def _immediate(complete, args):
    complete({"echo": args})


def test_list_never_exposes_handler(registry):
    registry.register(
        name="echo",
        description="Echo arguments",
        handler=_immediate,
        args={"text": {"type": "string", "description": "Text", "required": True}},
    )

    listing = registry.list()

    assert listing == {
        "echo": {
            "name": "echo",
            "description": "Echo arguments",
            "args": {"text": {"type": "string", "description": "Text", "required": True}},
        }
    }
    for entry in listing.values():
        assert not any(callable(value) for value in entry.values())


def test_immediate_completion_returns_done_without_task(registry, deferred_tool):
    registry.register(name="echo", description="Echo", handler=_immediate)

    reply = registry.execute("echo", {"text": "hi"})

    assert reply == {"done": True, "result": {"echo": {"text": "hi"}}, "error": None}
    assert registry.pending_count() == 0

    deferred_tool(registry)
    assert registry.execute("deferred", {})["task_id"] == "1"


def test_immediate_error_is_reported(registry):
    registry.register(name="fails", description="Fails", handler=lambda complete, args: complete(None, "nope"))

    assert registry.execute("fails", {}) == {"done": True, "result": None, "error": "nope"}


def test_exception_error_is_normalised_to_text(registry):
    registry.register(
        name="fails",
        description="Fails",
        handler=lambda complete, args: complete(error=RuntimeError("bad state")),
    )

    assert registry.execute("fails", {})["error"] == "bad state"


def test_deferred_handler_returns_pending_with_unique_ids(registry, deferred_tool):
    deferred_tool(registry, timeout=2.5)

    first = registry.execute("deferred", {})
    second = registry.execute("deferred", {})

    assert first == {"pending": True, "task_id": "1", "timeout": 2.5}
    assert second["pending"] is True
    assert second["task_id"] != first["task_id"]
    assert registry.pending_count() == 2


def test_get_result_is_single_consumption(registry, deferred_tool):
    completions = deferred_tool(registry)
    task_id = registry.execute("deferred", {})["task_id"]

    assert registry.get_result(task_id) == {"done": False}

    completions[0]({"value": 42})

    assert registry.get_result(task_id) == {"done": True, "result": {"value": 42}, "error": None}
    assert registry.get_result(task_id) == {"done": True, "error": f"Unknown or expired task: {task_id}"}


def test_double_completion_inside_window_keeps_first(registry, warnings_log):
    def twice(complete, args):
        complete("first")
        complete("second")

    registry.register(name="twice", description="Completes twice", handler=twice)

    assert registry.execute("twice", {})["result"] == "first"
    assert "called multiple times for twice" in warnings_log.text


def test_double_late_completion_keeps_first(registry, deferred_tool, warnings_log):
    completions = deferred_tool(registry)
    task_id = registry.execute("deferred", {})["task_id"]

    completions[0]("first")
    completions[0]("second", "ignored")

    assert registry.get_result(task_id) == {"done": True, "result": "first", "error": None}
    assert "called multiple times" in warnings_log.text


def test_missing_required_argument_skips_handler(registry):
    calls = []
    registry.register(
        name="tool_x",
        description="Needs a path",
        handler=lambda complete, args: calls.append(args),
        args={"path": {"type": "string", "required": True}},
    )

    assert registry.execute("tool_x", {}) == {"done": True, "error": "Missing required argument: path"}
    assert calls == []


def test_unknown_tool(registry):
    assert registry.execute("nonexistent", {}) == {"done": True, "error": "Unknown tool: nonexistent"}


def test_defaults_and_passthrough_arguments(registry):
    seen = {}

    def handler(complete, args):
        seen.update(args)
        complete(True)

    registry.register(
        name="tool",
        description="Tool",
        handler=handler,
        args={
            "count": {"type": "number", "default": 3},
            "label": {"type": "string"},
        },
    )

    registry.execute("tool", {"extra": [1, 2]})

    assert seen == {"count": 3, "extra": [1, 2]}


def test_argument_type_mismatch_is_rejected(registry):
    calls = []
    registry.register(
        name="tool",
        description="Tool",
        handler=lambda complete, args: calls.append(args),
        args={"count": {"type": "number"}},
    )

    reply = registry.execute("tool", {"count": "three"})

    assert reply == {"done": True, "error": "Invalid argument 'count': expected number, got str"}
    assert calls == []


def test_handler_exception_is_terminal_and_never_a_task(registry):
    captured = []

    def explode(complete, args):
        captured.append(complete)
        raise ValueError("boom")

    registry.register(name="explode", description="Raises", handler=explode)

    assert registry.execute("explode", {}) == {"done": True, "error": "Tool execution error: boom"}

    captured[0]("too late")
    assert registry.pending_count() == 0


def test_cancel_then_complete_is_a_no_op(registry, deferred_tool):
    completions = deferred_tool(registry)
    task_id = registry.execute("deferred", {})["task_id"]

    assert registry.cancel_task(task_id) == {"cancelled": True}
    completions[0]("result after cancel")

    assert registry.pending_count() == 0
    assert registry.get_result(task_id)["error"] == f"Unknown or expired task: {task_id}"


def test_cancel_unknown_task_still_reports_cancelled(registry):
    assert registry.cancel_task("999") == {"cancelled": True}


def test_completion_from_worker_thread_during_window_is_late():
    async def scenario():
        registry = TaskRegistry()

        def threaded(complete, args):
            worker = threading.Thread(target=complete, args=("from thread",))
            worker.start()
            worker.join()

        registry.register(name="threaded", description="Completes on a thread", handler=threaded)
        reply = registry.execute("threaded", {})
        await asyncio.sleep(0.01)
        return reply, registry.get_result(reply["task_id"])

    reply, result = asyncio.run(scenario())

    assert reply["pending"] is True
    assert result == {"done": True, "result": "from thread", "error": None}


def test_worker_thread_completion_beats_later_inline_completion(warnings_log):
    async def scenario():
        registry = TaskRegistry()

        def racy(complete, args):
            worker = threading.Thread(target=complete, args=("first",))
            worker.start()
            worker.join()
            complete("second")

        registry.register(name="racy", description="Completes twice", handler=racy)
        reply = registry.execute("racy", {})
        await asyncio.sleep(0.01)
        return reply, registry.get_result(reply["task_id"])

    reply, result = asyncio.run(scenario())

    assert reply["pending"] is True
    assert result == {"done": True, "result": "first", "error": None}
    assert "Completion callback called multiple times for racy" in warnings_log.text


def test_late_completion_is_posted_to_the_loop():
    async def scenario():
        registry = TaskRegistry()
        registry.register(
            name="later",
            description="Completes on the next loop iteration",
            handler=lambda complete, args: asyncio.get_running_loop().call_soon(complete, "done later"),
        )
        reply = registry.execute("later", {})
        before = registry.get_result(reply["task_id"])
        await asyncio.sleep(0.01)
        return before, registry.get_result(reply["task_id"])

    before, after = asyncio.run(scenario())

    assert before == {"done": False}
    assert after == {"done": True, "result": "done later", "error": None}


def test_abandoned_tasks_are_evicted(clock, deferred_tool, caplog):
    caplog.set_level(logging.INFO, logger="tools.registry")
    registry = TaskRegistry(abandon_after=10, clock=clock)
    deferred_tool(registry)
    task_id = registry.execute("deferred", {})["task_id"]

    clock.advance(11)

    assert registry.get_result(task_id)["error"] == f"Unknown or expired task: {task_id}"
    assert registry.pending_count() == 0
    assert f"Evicted task {task_id}" in caplog.text


def test_polled_tasks_are_not_evicted(clock, deferred_tool):
    registry = TaskRegistry(abandon_after=10, clock=clock)
    deferred_tool(registry)
    task_id = registry.execute("deferred", {})["task_id"]

    for _ in range(5):
        clock.advance(6)
        assert registry.get_result(task_id) == {"done": False}


def test_eviction_can_be_disabled(clock, deferred_tool):
    registry = TaskRegistry(abandon_after=0, clock=clock)
    deferred_tool(registry)
    task_id = registry.execute("deferred", {})["task_id"]

    clock.advance(10_000)

    assert registry.get_result(task_id) == {"done": False}


def test_register_validation():
    registry = TaskRegistry()
    with pytest.raises(RegistrationError):
        registry.register(name="", description="x", handler=_immediate)
    with pytest.raises(RegistrationError):
        registry.register(name="x", description="", handler=_immediate)
    with pytest.raises(RegistrationError):
        registry.register(name="x", description="x", handler=None)
    with pytest.raises(RegistrationError):
        registry.register(name="x", description="x", handler="not callable")
    with pytest.raises(RegistrationError):
        registry.register(name="x", description="x", handler=_immediate, args={"a": {"type": "integer"}})
    with pytest.raises(RegistrationError):
        registry.register(name="x", description="x", handler=_immediate, timeout=-1)


def test_register_definition_object_and_replace(registry):
    definition = ToolDefinition(
        name="tool",
        description="First",
        handler=_immediate,
        args={"flag": ArgumentSpec(type=ArgType.BOOLEAN)},
    )
    registry.register(definition)
    registry.register(name="tool", description="Second", handler=_immediate)

    assert registry.count() == 1
    assert registry.get("tool").description == "Second"


def test_replacing_definition_keeps_outstanding_tasks(registry, deferred_tool):
    completions = deferred_tool(registry, name="tool")
    task_id = registry.execute("tool", {})["task_id"]
    registry.register(name="tool", description="Replacement", handler=_immediate)

    completions[0]("old handler result")

    assert registry.get_result(task_id)["result"] == "old handler result"


def test_housekeeping_helpers(registry, deferred_tool):
    deferred_tool(registry)
    registry.execute("deferred", {})

    assert registry.has("deferred")
    registry.clear_pending()
    assert registry.pending_count() == 0

    registry.unregister("deferred")
    assert not registry.has("deferred")

    registry.register(name="a", description="a", handler=_immediate)
    registry.clear()
    assert registry.count() == 0
