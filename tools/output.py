"""Formatting of `run_command` results with bounded stream sizes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class OutputLimits:
    max_bytes: int = 10 * 1024
    max_lines: int = 256
    # Lines kept at each end of a truncated stream.
    edge_lines: int = 128


DEFAULT_LIMITS = OutputLimits()


@dataclass
class CommandOutput:
    """Structured output from a finished subprocess."""

    exit_code: int
    duration_seconds: float
    stdout: str
    stderr: str = ""


def format_command_output(output: CommandOutput, limits: OutputLimits = DEFAULT_LIMITS) -> Dict[str, Any]:
    """Return a JSON-serialisable result with each stream truncated to ``limits``."""
    stdout, stdout_truncated = truncate_output(output.stdout, limits)
    stderr, stderr_truncated = truncate_output(output.stderr, limits)
    return {
        "exit_code": output.exit_code,
        "duration_seconds": round(output.duration_seconds, 1),
        "stdout": stdout,
        "stderr": stderr,
        "truncated": stdout_truncated or stderr_truncated,
    }


def truncate_output(content: str, limits: OutputLimits = DEFAULT_LIMITS) -> tuple[str, bool]:
    """Keep the first and last lines of ``content`` when it exceeds ``limits``.

    The returned text, header and marker included, never exceeds
    ``limits.max_bytes``.
    """
    content = content or ""
    lines = content.splitlines(keepends=True)
    if len(lines) <= limits.max_lines and _size(content) <= limits.max_bytes:
        return content, False

    head = lines[: limits.edge_lines]
    tail = lines[max(len(head), len(lines) - limits.edge_lines) :]
    omitted = len(lines) - len(head) - len(tail)

    header = f"Total output lines: {len(lines)}\n\n"
    marker = f"\n[... omitted {omitted} lines ...]\n\n"
    room = limits.max_bytes - _size(header) - _size(marker)

    head_text = _clip("".join(head), room // 2, from_end=False)
    tail_text = _clip("".join(tail), room - _size(head_text), from_end=True)
    return header + head_text + marker + tail_text, True


def _size(text: str) -> int:
    return len(text.encode("utf-8"))


def _clip(text: str, limit: int, *, from_end: bool) -> str:
    # Cuts on a line boundary where one is available.
    if limit <= 0:
        return ""
    encoded = text.encode("utf-8")
    if len(encoded) <= limit:
        return text
    if from_end:
        clipped = encoded[-limit:].decode("utf-8", errors="ignore")
        cut = clipped.find("\n")
        if 0 <= cut < len(clipped) - 1:
            return clipped[cut + 1 :]
        return clipped
    clipped = encoded[:limit].decode("utf-8", errors="ignore")
    cut = clipped.rfind("\n")
    if cut != -1:
        return clipped[: cut + 1]
    return clipped


__all__ = [
    "DEFAULT_LIMITS",
    "CommandOutput",
    "OutputLimits",
    "format_command_output",
    "truncate_output",
]
