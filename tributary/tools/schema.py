"""Tool descriptors as advertised by tool servers, and tool call results."""

import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, TYPE_CHECKING

from ..errors import ProtocolError

if TYPE_CHECKING:
    from ..servers.connection import ToolServerConnection


_EMPTY_SCHEMA = {"type": "object", "properties": {}}


@dataclass(frozen=True)
class ToolDescriptor:
    """A tool definition with its JSON Schema input spec."""

    name: str
    description: str = ""
    input_schema: Mapping[str, Any] = field(default_factory=lambda: dict(_EMPTY_SCHEMA))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ToolDescriptor":
        """Build from an MCP ``tools/list`` entry (``inputSchema`` key).

        Raises:
            ProtocolError: the entry has no string name or a non-object schema.
        """
        if not isinstance(data.get("name"), str):
            raise ProtocolError(f"Tool entry without a name: {data!r}")
        schema = data.get("inputSchema") or data.get("input_schema") or data.get("parameters")
        if schema and not isinstance(schema, Mapping):
            raise ProtocolError(f"Tool '{data['name']}' has a non-object input schema: {schema!r}")
        return cls(
            name=data["name"],
            description=str(data.get("description") or ""),
            input_schema=dict(schema) if schema else dict(_EMPTY_SCHEMA),
        )


@dataclass(frozen=True)
class AggregatedTool:
    """A descriptor plus the connection that serves it.

    ``owner`` is a non-owning reference used only for dispatch; the
    connection's lifecycle is managed by its pool.
    """

    descriptor: ToolDescriptor
    owner: "ToolServerConnection"

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def server(self) -> str:
        return self.owner.name


@dataclass(frozen=True)
class ToolResult:
    """Result of one ``tools/call``."""

    content: tuple[Mapping[str, Any], ...] = ()
    structured: Optional[Any] = None
    is_error: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ToolResult":
        """Build from a ``tools/call`` result.

        Raises:
            ProtocolError: ``content`` is not a list of content blocks.
        """
        content = data.get("content") or ()
        if not isinstance(content, (list, tuple)) or not all(isinstance(b, Mapping) for b in content):
            raise ProtocolError(f"Malformed tool result content: {content!r}")
        return cls(
            content=tuple(content),
            structured=data.get("structuredContent"),
            is_error=bool(data.get("isError", False)),
        )

    @property
    def text(self) -> str:
        """Flatten content blocks into the string handed back to the model."""
        parts = []
        for block in self.content:
            if block.get("type") == "text":
                parts.append(block.get("text", ""))
            else:
                parts.append(json.dumps(block))
        if parts:
            return "\n".join(parts)
        if self.structured is not None:
            return json.dumps(self.structured)
        return ""
