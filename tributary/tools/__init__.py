"""Tool descriptors and the aggregated tool registry."""

from .schema import AggregatedTool, ToolDescriptor, ToolResult
from .registry import ToolRegistry

__all__ = [
    "AggregatedTool",
    "ToolDescriptor",
    "ToolResult",
    "ToolRegistry",
]
