"""Conversion of registry outcomes into MCP tool results."""
from __future__ import annotations

import json
from typing import Any

from mcp import types


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, default=str)


def format_result(result: Any) -> types.CallToolResult:
    """Wrap a successful result as a single text item."""
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=_as_text(result))],
        isError=False,
    )


def format_error(message: str) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=f"Error: {message}")],
        isError=True,
    )


def result_text(result: types.CallToolResult) -> str:
    """Join the text items of *result* (logging and tests)."""
    return "".join(item.text for item in result.content if isinstance(item, types.TextContent))


__all__ = ["format_error", "format_result", "result_text"]
