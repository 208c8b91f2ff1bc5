"""PromptClient: a completion backend augmented with the tool registry.

One ``complete()`` call may run several rounds: while the backend answers
with pending tool calls, each call is dispatched through the registry and
its result (or error) is fed back, until the backend produces a final
answer or the round bound is exceeded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .errors import CompletionError, ToolLoopExceededError, TemplateError, TributaryError
from .prompts.templates import TemplateStore
from .providers.base import BaseProvider
from .providers.response import (
    FinalAnswer,
    Message,
    PendingToolCalls,
    ToolCall,
    ToolOutcome,
    Usage,
)
from .tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROUNDS = 5


@dataclass(frozen=True)
class PromptSpec:
    """What to ask: a literal message, or a template id plus bindings.

    ``history`` threads prior turns into the conversation; without it every
    ``complete()`` starts fresh.
    """

    message: Optional[str] = None
    template: Optional[str] = None
    params: Mapping[str, Any] = field(default_factory=dict)
    system: Optional[str] = None
    history: tuple[Message, ...] = ()

    def __post_init__(self):
        if (self.message is None) == (self.template is None):
            raise ValueError("PromptSpec needs exactly one of message or template")


@dataclass(frozen=True)
class PromptResult:
    """Outcome of one complete() call."""

    content: str
    rounds: int = 0
    tool_calls: tuple[dict, ...] = ()
    messages: tuple[Message, ...] = ()
    usage: Usage = Usage()


class PromptClient:
    """Drive a backend through tool-call rounds against a ToolRegistry."""

    def __init__(
        self,
        provider: BaseProvider,
        registry: Optional[ToolRegistry] = None,
        templates: Optional[TemplateStore] = None,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        tool_timeout: Optional[float] = None,
    ):
        if max_rounds < 0:
            raise ValueError("max_rounds must be >= 0")
        self.provider = provider
        self.registry = registry or ToolRegistry()
        self.templates = templates or TemplateStore()
        self.max_rounds = max_rounds
        self.tool_timeout = tool_timeout

    def resolve(self, spec: PromptSpec) -> str:
        """Return the user message text for a spec, rendering templates."""
        if spec.template is not None:
            return self.templates.render(spec.template, spec.params)
        if spec.params:
            raise TemplateError("Parameter bindings given without a template")
        return spec.message

    def complete(self, spec: PromptSpec) -> PromptResult:
        """Run the prompt to a final answer.

        Raises:
            TemplateError: the template is unknown or a binding is missing.
            ToolLoopExceededError: the backend requested more than
                ``max_rounds`` rounds of tool calls; nothing is dispatched
                for the round that exceeds the bound.
            CompletionError: the backend failed.
        """
        text = self.resolve(spec)
        messages = list(spec.history) + [Message.user(text)]
        tools = self.registry.list()
        tool_log: list[dict] = []
        usage = Usage()
        rounds = 0

        while True:
            logger.debug(
                f"request -> {self.provider.name}: {len(messages)} messages, "
                f"{len(tools)} tools, system={bool(spec.system)}"
            )
            turn = self._call_backend(tuple(messages), tools, spec.system)
            usage = usage + turn.usage

            if isinstance(turn, FinalAnswer):
                logger.debug(f"response <- {self.provider.name}: {turn.text[:200]!r}")
                messages.append(Message.assistant(turn.text))
                return PromptResult(
                    content=turn.text,
                    rounds=rounds,
                    tool_calls=tuple(tool_log),
                    messages=tuple(messages),
                    usage=usage,
                )

            if not isinstance(turn, PendingToolCalls):
                raise CompletionError(f"Unexpected backend turn: {turn!r}")

            if rounds >= self.max_rounds:
                raise ToolLoopExceededError(
                    f"Backend requested tools for more than {self.max_rounds} rounds "
                    f"(pending: {', '.join(c.name for c in turn.calls)})"
                )
            rounds += 1

            logger.debug(
                f"response <- {self.provider.name}: round {rounds} tool calls "
                f"{[c.name for c in turn.calls]}"
            )
            messages.append(Message.assistant(turn.text, turn.calls))
            outcomes = tuple(self._resolve_call(call, tool_log) for call in turn.calls)
            messages.append(Message.tool(outcomes))

    def _call_backend(self, messages, tools, system):
        try:
            return self.provider.complete(messages, tools, system=system)
        except TributaryError:
            raise
        except Exception as e:
            raise CompletionError(f"{self.provider.name} failed: {e}") from e

    def _resolve_call(self, call: ToolCall, tool_log: list[dict]) -> ToolOutcome:
        """Dispatch one call; dispatch errors become error results for the model."""
        try:
            result = self.registry.dispatch(call.name, dict(call.arguments), timeout=self.tool_timeout)
            outcome = ToolOutcome(call=call, content=result.text)
        except TributaryError as e:
            logger.warning(f"Tool call {call.name} failed: {e}")
            outcome = ToolOutcome(call=call, content=str(e), is_error=True)

        tool_log.append({
            "tool": call.name,
            "input": dict(call.arguments),
            "output": outcome.content,
            "error": outcome.is_error,
        })
        return outcome
