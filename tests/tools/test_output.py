from tools.output import (
    DEFAULT_LIMITS,
    CommandOutput,
    OutputLimits,
    format_command_output,
    truncate_output,
)


def test_format_command_output_returns_full_output_when_within_limits():
    payload = CommandOutput(exit_code=0, duration_seconds=0.02, stdout="hello\n")

    result = format_command_output(payload)

    assert result == {
        "exit_code": 0,
        "duration_seconds": 0.0,
        "stdout": "hello\n",
        "stderr": "",
        "truncated": False,
    }


def test_format_command_output_truncates_and_marks_large_output():
    large_output = "".join(f"line {i}\n" for i in range(1000))
    payload = CommandOutput(exit_code=1, duration_seconds=1.5, stdout=large_output, stderr="warn\n")

    result = format_command_output(payload)

    assert result["truncated"] is True
    assert "Total output lines: 1000" in result["stdout"]
    assert "[... omitted 744 lines ...]" in result["stdout"]
    assert len(result["stdout"].encode("utf-8")) <= DEFAULT_LIMITS.max_bytes
    assert result["stderr"] == "warn\n"


def test_truncate_output_keeps_head_and_tail():
    text = "".join(f"{i}\n" for i in range(600))

    truncated, was_truncated = truncate_output(text)

    assert was_truncated is True
    assert truncated.startswith("Total output lines: 600\n\n0\n")
    assert truncated.rstrip().endswith("599")


def test_truncate_output_respects_byte_limit_on_long_lines():
    limits = OutputLimits(max_bytes=200, max_lines=10, edge_lines=2)
    text = "".join(f"{i:03d}" + "x" * 60 + "\n" for i in range(5))

    truncated, was_truncated = truncate_output(text, limits)

    assert was_truncated is True
    assert len(truncated.encode("utf-8")) <= 200
    assert "000" in truncated
    assert truncated.endswith("\n")


def test_truncate_output_handles_empty_input():
    assert truncate_output("") == ("", False)
