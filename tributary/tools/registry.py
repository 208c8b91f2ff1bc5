"""Aggregate tools from many tool servers into one flat namespace.

The registry is built once from the READY connections and is read-only
afterwards. Building a new registry never mutates an existing one, so a
caller that wants to refresh swaps in the result of another ``build()``.

Duplicate names follow a last-writer-wins policy: when two connections
advertise the same tool name, the connection later in iteration order
serves it. Pass ``strict=True`` to reject duplicates instead.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping, Optional, TYPE_CHECKING

from ..errors import DuplicateToolError, TributaryError, UnknownToolError
from .schema import AggregatedTool, ToolDescriptor, ToolResult

if TYPE_CHECKING:
    from ..servers.connection import ToolServerConnection

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Name-addressable view over the tools of several connections."""

    def __init__(self, tools: Optional[Mapping[str, AggregatedTool]] = None):
        self._tools: Mapping[str, AggregatedTool] = MappingProxyType(dict(tools or {}))

    @classmethod
    def build(
        cls,
        connections: Iterable["ToolServerConnection"],
        strict: bool = False,
    ) -> "ToolRegistry":
        """Collect every tool advertised by the READY connections.

        Connections that are not READY, or whose tool listing fails, are
        skipped and reported; their tools are never partially registered.

        Raises:
            DuplicateToolError: ``strict`` is set and two connections
                advertise the same name.
        """
        tools: dict[str, AggregatedTool] = {}

        for connection in connections:
            if not connection.is_ready:
                logger.warning(f"Skipping {connection.name}: connection is {connection.state.value}")
                continue

            try:
                descriptors = connection.list_tools()
            except TributaryError as e:
                logger.warning(f"Skipping {connection.name}: could not list tools: {e}")
                continue

            for descriptor in descriptors:
                existing = tools.get(descriptor.name)
                if existing is not None and existing.owner is not connection:
                    if strict:
                        raise DuplicateToolError(
                            f"Tool '{descriptor.name}' is advertised by both "
                            f"{existing.server} and {connection.name}"
                        )
                    logger.warning(
                        f"Tool '{descriptor.name}' from {connection.name} overrides "
                        f"the one from {existing.server}"
                    )
                tools[descriptor.name] = AggregatedTool(descriptor=descriptor, owner=connection)

            logger.info(f"Registered {len(descriptors)} tools from {connection.name}")

        return cls(tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[AggregatedTool]:
        return iter(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> Optional[AggregatedTool]:
        return self._tools.get(name)

    def owner_of(self, name: str) -> "ToolServerConnection":
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(f"Unknown tool: {name}")
        return tool.owner

    def list(self) -> list[ToolDescriptor]:
        """Merged, de-duplicated tool descriptors to advertise to the backend."""
        return [tool.descriptor for tool in self._tools.values()]

    def dispatch(
        self,
        tool_name: str,
        arguments: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> ToolResult:
        """Route a tool call to the connection that owns ``tool_name``.

        Errors from the connection propagate unchanged apart from being
        tagged with the originating server.

        Raises:
            UnknownToolError: no such tool; no connection is contacted.
        """
        tool = self._tools.get(tool_name)
        if tool is None:
            raise UnknownToolError(f"Unknown tool: {tool_name}")

        logger.debug(f"Dispatching {tool_name} to {tool.server}: {arguments}")
        try:
            return tool.owner.invoke(tool_name, arguments or {}, timeout=timeout)
        except TributaryError as e:
            e.origin = e.origin or tool.server
            raise

    def describe(self) -> list[dict]:
        """Return a summary of registered tools for display."""
        return [
            {
                "name": tool.name,
                "server": tool.server,
                "description": tool.descriptor.description,
            }
            for tool in self._tools.values()
        ]
