import asyncio
import sys

from host.prompt import ChoiceResult
from tools.builtin import register_builtin_tools
from tools.registry import TaskRegistry


async def _wait_for(registry: TaskRegistry, task_id: str, limit: float = 5.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + limit
    while loop.time() < deadline:
        reply = registry.get_result(task_id)
        if reply["done"]:
            return reply
        await asyncio.sleep(0.01)
    raise AssertionError(f"task {task_id} did not finish")


class _FakePrompter:
    def __init__(self, answer=None, error=None):
        self.answer = answer
        self.error = error
        self.calls = []

    async def choose(self, prompt, options):
        self.calls.append((prompt, options))
        if self.error is not None:
            raise self.error
        return self.answer


def test_registers_expected_tools():
    registry = TaskRegistry()

    names = register_builtin_tools(registry)

    assert names == ["host_status", "sleep", "run_command"]
    assert not registry.has("multiple_choice_prompt")


def test_shell_tool_can_be_disabled():
    registry = TaskRegistry()

    names = register_builtin_tools(registry, include_shell=False, prompter=_FakePrompter())

    assert "run_command" not in names
    assert "multiple_choice_prompt" in names


def test_host_status_is_immediate():
    registry = TaskRegistry()
    register_builtin_tools(registry, started_at=0.0)

    reply = registry.execute("host_status", {})

    assert reply["done"] is True
    assert reply["result"]["tools"] == 3
    assert reply["result"]["pending_tasks"] == 0
    assert reply["result"]["uptime_seconds"] > 0


def test_sleep_is_deferred():
    async def scenario():
        registry = TaskRegistry()
        register_builtin_tools(registry)
        reply = registry.execute("sleep", {"seconds": 0.01})
        return reply, await _wait_for(registry, reply["task_id"])

    reply, result = asyncio.run(scenario())

    assert reply["pending"] is True
    assert result == {"done": True, "result": {"slept": 0.01}, "error": None}


def test_sleep_rejects_negative_duration():
    registry = TaskRegistry()
    register_builtin_tools(registry)

    reply = registry.execute("sleep", {"seconds": -1})

    assert reply == {"done": True, "result": None, "error": "seconds must not be negative"}


def test_run_command_collects_output():
    async def scenario():
        registry = TaskRegistry()
        register_builtin_tools(registry)
        command = f'"{sys.executable}" -c "print(\'hello\')"'
        reply = registry.execute("run_command", {"command": command})
        assert reply["pending"] is True
        return await _wait_for(registry, reply["task_id"])

    result = asyncio.run(scenario())

    assert result["error"] is None
    assert result["result"]["exit_code"] == 0
    assert result["result"]["stdout"].strip() == "hello"
    assert result["result"]["truncated"] is False


def test_run_command_reports_missing_program():
    async def scenario():
        registry = TaskRegistry()
        register_builtin_tools(registry)
        reply = registry.execute("run_command", {"command": "definitely-not-a-real-program-xyz"})
        return await _wait_for(registry, reply["task_id"])

    result = asyncio.run(scenario())

    assert result["error"].startswith("Failed to run command:")


def test_run_command_rejects_bad_command_lines():
    registry = TaskRegistry()
    register_builtin_tools(registry)

    assert registry.execute("run_command", {"command": "   "})["error"] == "command must not be empty"
    assert registry.execute("run_command", {"command": "echo 'open"})["error"].startswith("Invalid command:")
    assert registry.execute("run_command", {})["error"] == "Missing required argument: command"


def test_prompt_tool_waits_for_choice():
    prompter = _FakePrompter(answer=ChoiceResult(selected="blue", index=2))

    async def scenario():
        registry = TaskRegistry()
        register_builtin_tools(registry, prompter=prompter)
        reply = registry.execute(
            "multiple_choice_prompt",
            {"prompt": "Pick a colour", "options": ["red", "blue"]},
        )
        return reply, await _wait_for(registry, reply["task_id"])

    reply, result = asyncio.run(scenario())

    assert reply == {"pending": True, "task_id": "1", "timeout": 0}
    assert result["result"] == {"selected": "blue", "index": 2}
    assert prompter.calls == [("Pick a colour", ["red", "blue"])]


def test_prompt_tool_cancelled_choice():
    prompter = _FakePrompter(answer=ChoiceResult(selected=None, index=None, cancelled=True))

    async def scenario():
        registry = TaskRegistry()
        register_builtin_tools(registry, prompter=prompter)
        reply = registry.execute("multiple_choice_prompt", {"prompt": "Pick", "options": ["a"]})
        return await _wait_for(registry, reply["task_id"])

    assert asyncio.run(scenario())["result"] == {"selected": None, "cancelled": True}


def test_prompt_tool_failure_becomes_error():
    prompter = _FakePrompter(error=RuntimeError("no terminal"))

    async def scenario():
        registry = TaskRegistry()
        register_builtin_tools(registry, prompter=prompter)
        reply = registry.execute("multiple_choice_prompt", {"prompt": "Pick", "options": ["a"]})
        return await _wait_for(registry, reply["task_id"])

    assert asyncio.run(scenario())["error"] == "Prompt failed: no terminal"


def test_prompt_tool_validates_options():
    registry = TaskRegistry()
    register_builtin_tools(registry, prompter=_FakePrompter())

    empty = registry.execute("multiple_choice_prompt", {"prompt": "Pick", "options": []})
    mixed = registry.execute("multiple_choice_prompt", {"prompt": "Pick", "options": ["a", 1]})

    assert empty["error"] == "Options array is required and must not be empty"
    assert mixed["error"] == "Options must be strings"
