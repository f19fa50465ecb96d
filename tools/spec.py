"""Tool definition models."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from errors import RegistrationError

# handler(complete, args); complete(result=None, error=None)
ToolHandler = Callable[[Callable[..., None], Dict[str, Any]], Any]


class ArgType(Enum):
    """Type tags an argument may declare."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"

    def accepts(self, value: Any) -> bool:
        """Return whether *value* is a valid instance of this tag."""
        if self is ArgType.STRING:
            return isinstance(value, str)
        if self is ArgType.NUMBER:
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        if self is ArgType.BOOLEAN:
            return isinstance(value, bool)
        if self is ArgType.OBJECT:
            return isinstance(value, Mapping)
        return isinstance(value, (list, tuple))


@dataclass(slots=True)
class ArgumentSpec:
    """Declarative contract for one named argument."""

    type: ArgType
    description: str = ""
    required: bool = False
    default: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_value(cls, name: str, value: "ArgumentSpec | Mapping[str, Any]") -> "ArgumentSpec":
        """Coerce a mapping such as ``{"type": "number", "default": 0}``."""
        if isinstance(value, ArgumentSpec):
            return value
        if not isinstance(value, Mapping):
            raise RegistrationError(f"Argument '{name}' must be a mapping or ArgumentSpec")

        raw = dict(value)
        try:
            arg_type = ArgType(raw.pop("type", None))
        except ValueError:
            raise RegistrationError(
                f"Argument '{name}' has an unsupported type: {value.get('type')!r}"
            ) from None
        return cls(
            type=arg_type,
            description=str(raw.pop("description", "") or ""),
            required=bool(raw.pop("required", False)),
            default=raw.pop("default", None),
            extra=raw,
        )

    def to_public(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        data.update(
            {
                "type": self.type.value,
                "description": self.description,
                "required": self.required,
            }
        )
        if self.default is not None:
            data["default"] = self.default
        return data


@dataclass(slots=True)
class ToolDefinition:
    """Describes a tool in the registry.

    ``timeout`` is in seconds. ``None`` defers to the bridge's default and
    ``0`` means the bridge waits for the result indefinitely.
    """

    name: str
    description: str
    handler: ToolHandler
    args: Dict[str, ArgumentSpec] = field(default_factory=dict)
    timeout: Optional[float] = None

    def to_public(self) -> Dict[str, Any]:
        """Return the serialisable listing entry; never includes the handler."""
        return {
            "name": self.name,
            "description": self.description,
            "args": {name: spec.to_public() for name, spec in self.args.items()},
        }


__all__ = ["ArgType", "ArgumentSpec", "ToolDefinition", "ToolHandler"]
