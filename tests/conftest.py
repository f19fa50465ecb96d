"""Shared pytest fixtures for the mcp-tools test suite."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

import pytest

from tools.registry import TaskRegistry


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> TaskRegistry:
    return TaskRegistry()


@pytest.fixture
def deferred_tool() -> Callable[[TaskRegistry, str], List[Callable[..., None]]]:
    """Register a tool that stores its completion callback instead of calling it."""

    def factory(target: TaskRegistry, name: str = "deferred", **kwargs: Any) -> List[Callable[..., None]]:
        completions: List[Callable[..., None]] = []

        def handler(complete: Callable[..., None], args: Dict[str, Any]) -> None:
            completions.append(complete)

        target.register(name=name, description="completes later", handler=handler, **kwargs)
        return completions

    return factory


@pytest.fixture
def warnings_log(caplog: pytest.LogCaptureFixture) -> pytest.LogCaptureFixture:
    caplog.set_level(logging.WARNING)
    return caplog
