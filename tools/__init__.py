"""Tool registry and task tracking for the host process."""

from .builtin import register_builtin_tools
from .output import CommandOutput, format_command_output
from .registry import TaskRegistry
from .schemas import (
    CancelReply,
    ExecuteReply,
    GetResultReply,
    JsonRpcRequest,
    ToolListing,
    parse_reply,
)
from .spec import ArgType, ArgumentSpec, ToolDefinition, ToolHandler
from .tasks import Completion, PendingTask
from errors import ChannelError, ErrorType, RegistrationError, ToolError, ToolTimeoutError, ValidationToolError

__all__ = [
    "ArgType",
    "ArgumentSpec",
    "CancelReply",
    "ChannelError",
    "CommandOutput",
    "Completion",
    "ErrorType",
    "ExecuteReply",
    "GetResultReply",
    "JsonRpcRequest",
    "PendingTask",
    "RegistrationError",
    "TaskRegistry",
    "ToolDefinition",
    "ToolError",
    "ToolHandler",
    "ToolListing",
    "ToolTimeoutError",
    "ValidationToolError",
    "format_command_output",
    "parse_reply",
    "register_builtin_tools",
]
