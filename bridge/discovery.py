"""Translate the host's tool listing into MCP tool descriptors."""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from mcp import types
from pydantic import ValidationError

from tools.schemas import ArgumentListing, ToolListing, parse_reply
from .channel import RemoteCallChannel

logger = logging.getLogger(__name__)

# Keys that describe the registry contract rather than the JSON schema.
_CONTRACT_KEYS = {"required"}


def argument_schema(arg: ArgumentListing) -> Dict[str, Any]:
    """Return the JSON-schema property for one listed argument."""
    schema: Dict[str, Any] = {
        key: value for key, value in (arg.model_extra or {}).items() if key not in _CONTRACT_KEYS
    }
    schema["type"] = arg.type
    schema["description"] = arg.description
    if arg.default is not None:
        schema["default"] = arg.default
    if arg.type == "array":
        schema.setdefault("items", {"type": "string"})
    if arg.type == "object":
        schema.setdefault("properties", {})
    return schema


def to_mcp_tool(listing: ToolListing, prefix: str) -> types.Tool:
    properties: Dict[str, Any] = {}
    required: List[str] = []
    for arg_name, arg in listing.args.items():
        properties[arg_name] = argument_schema(arg)
        if arg.required:
            required.append(arg_name)

    input_schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        input_schema["required"] = required
    return types.Tool(
        name=f"{prefix}{listing.name}",
        description=listing.description,
        inputSchema=input_schema,
    )


async def discover_tools(channel: RemoteCallChannel, prefix: str) -> List[types.Tool]:
    """Fetch the live tool listing; failures are logged and yield no tools."""
    try:
        raw = await channel.list_tools()
    except Exception as exc:
        logger.error("Failed to list host tools: %s", exc)
        return []
    if not isinstance(raw, dict):
        logger.error("Failed to list host tools: expected an object, got %s", type(raw).__name__)
        return []

    tools: List[types.Tool] = []
    for name in sorted(raw):
        try:
            listing = parse_reply(ToolListing, raw[name])
            tools.append(to_mcp_tool(listing, prefix))
        except (ValueError, ValidationError) as exc:
            logger.warning("Skipping tool '%s' with invalid listing: %s", name, exc)
    return tools


__all__ = ["argument_schema", "discover_tools", "to_mcp_tool"]
