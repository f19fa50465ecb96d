"""Pydantic schemas for messages exchanged over the remote call channel."""
from __future__ import annotations

from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, model_validator


class ChannelSchema(BaseModel):
    """Base class for channel replies; unknown keys are tolerated."""

    model_config = {
        "extra": "ignore",
    }

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ExecuteReply(ChannelSchema):
    done: Optional[bool] = None
    pending: Optional[bool] = None
    task_id: Optional[str] = None
    result: Any = None
    error: Optional[str] = None
    timeout: Optional[float] = Field(None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def coerce_task_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("task_id"), int):
            data = dict(data)
            data["task_id"] = str(data["task_id"])
        return data


class GetResultReply(ChannelSchema):
    done: bool
    result: Any = None
    error: Optional[str] = None


class CancelReply(ChannelSchema):
    cancelled: bool


class ArgumentListing(ChannelSchema):
    model_config = {
        "extra": "allow",
    }

    type: str = "string"
    description: str = ""
    required: bool = False
    default: Any = None


class ToolListing(ChannelSchema):
    name: str
    description: str = ""
    args: Dict[str, ArgumentListing] = Field(default_factory=dict)


class JsonRpcRequest(ChannelSchema):
    jsonrpc: str = "2.0"
    method: str = Field(..., min_length=1)
    params: Dict[str, Any] = Field(default_factory=dict)
    id: int | str | None = None


_Model = TypeVar("_Model", bound=ChannelSchema)


def parse_reply(schema: Type[_Model], raw: Any) -> _Model:
    """Validate *raw* against *schema*, flattening pydantic errors into a ``ValueError``."""
    try:
        return schema.model_validate(raw)
    except ValidationError as exc:
        messages = []
        for err in exc.errors():
            loc = ".".join(str(part) for part in err.get("loc", ())) or "reply"
            messages.append(f"{loc}: {err.get('msg', 'invalid value')}")
        raise ValueError(f"malformed {schema.__name__}: " + "; ".join(messages)) from None


__all__ = [
    "ArgumentListing",
    "CancelReply",
    "ChannelSchema",
    "ExecuteReply",
    "GetResultReply",
    "JsonRpcRequest",
    "ToolListing",
    "parse_reply",
]
