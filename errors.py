"""Structured error types shared by the host and the bridge."""
from __future__ import annotations

from enum import Enum


class ErrorType(Enum):
    """Classification of tool errors."""

    VALIDATION = "validation"
    EXECUTION = "execution"
    PROTOCOL = "protocol"
    TIMEOUT = "timeout"


class ToolError(Exception):
    """Base class for tool errors."""

    def __init__(self, message: str, error_type: ErrorType = ErrorType.EXECUTION) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type

    def __str__(self) -> str:  # pragma: no cover - convenience
        return self.message


class ValidationToolError(ToolError):
    """Error indicating invalid tool input supplied by the caller."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorType.VALIDATION)


class RegistrationError(ToolError, ValueError):
    """Raised when a tool definition cannot be registered."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorType.VALIDATION)


class ChannelError(ToolError):
    """Raised when the remote call channel fails or returns a protocol error."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message, ErrorType.PROTOCOL)
        self.code = code


class ToolTimeoutError(ToolError):
    """Raised when a deferred tool result does not arrive in time."""

    def __init__(self, message: str, elapsed: float) -> None:
        super().__init__(message, ErrorType.TIMEOUT)
        self.elapsed = elapsed


__all__ = [
    "ChannelError",
    "ErrorType",
    "RegistrationError",
    "ToolError",
    "ToolTimeoutError",
    "ValidationToolError",
]
