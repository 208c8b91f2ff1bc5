"""Provider-neutral conversation messages and backend turns.

A backend turn is a tagged variant: either ``FinalAnswer`` (the model is
done) or ``PendingToolCalls`` (the model wants tools run before it
continues). Providers translate ``Message`` sequences to and from their
native wire formats.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union


@dataclass(frozen=True)
class ToolCall:
    """One tool invocation requested by the model."""

    id: str
    name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolOutcome:
    """The result of a ToolCall as fed back to the model."""

    call: ToolCall
    content: str
    is_error: bool = False


@dataclass(frozen=True)
class Message:
    """One conversation entry.

    ``role`` is ``user``, ``assistant`` or ``tool``. Assistant messages may
    carry ``tool_calls``; tool messages carry ``tool_results``.
    """

    role: str
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_results: tuple[ToolOutcome, ...] = ()

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str = "", tool_calls: tuple[ToolCall, ...] = ()) -> "Message":
        return cls(role="assistant", content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, results: tuple[ToolOutcome, ...]) -> "Message":
        return cls(role="tool", tool_results=tuple(results))


@dataclass(frozen=True)
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            self.input_tokens + other.input_tokens,
            self.output_tokens + other.output_tokens,
        )

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class FinalAnswer:
    """The backend produced its final text."""

    text: str
    usage: Usage = Usage()
    model: Optional[str] = None


@dataclass(frozen=True)
class PendingToolCalls:
    """The backend wants these tools resolved before it answers."""

    calls: tuple[ToolCall, ...]
    text: str = ""
    usage: Usage = Usage()
    model: Optional[str] = None


BackendTurn = Union[FinalAnswer, PendingToolCalls]
