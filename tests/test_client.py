"""Tests for the PromptClient tool-call round loop."""

from unittest.mock import MagicMock

import pytest

from tributary.client import PromptClient, PromptSpec
from tributary.errors import (
    CompletionError,
    ProtocolError,
    TemplateError,
    ToolLoopExceededError,
    ToolTimeoutError,
    UnknownToolError,
)
from tributary.prompts import TemplateStore
from tributary.providers.response import FinalAnswer, PendingToolCalls, ToolCall, Usage
from tributary.tools.schema import ToolDescriptor, ToolResult


def _provider(*turns):
    provider = MagicMock()
    provider.name = "StubProvider"
    provider.complete.side_effect = list(turns)
    return provider


def _registry(tools=("search",)):
    registry = MagicMock()
    registry.list.return_value = [ToolDescriptor(name=t) for t in tools]
    registry.dispatch.side_effect = lambda name, args, timeout=None: ToolResult(
        content=({"type": "text", "text": f"{name} -> {args}"},),
    )
    return registry


def _pending(*names, round_id="r"):
    return PendingToolCalls(calls=tuple(
        ToolCall(id=f"{round_id}{i}", name=n, arguments={"q": i}) for i, n in enumerate(names)
    ))


class TestComplete:

    def test_plain_answer(self):
        provider = _provider(FinalAnswer(text="hi there"))
        client = PromptClient(provider, registry=_registry())
        result = client.complete(PromptSpec(message="hello"))

        assert result.content == "hi there"
        assert result.rounds == 0
        messages, tools = provider.complete.call_args.args
        assert messages[0].content == "hello"
        assert [t.name for t in tools] == ["search"]

    def test_tool_round_then_answer(self):
        provider = _provider(_pending("search"), FinalAnswer(text="found it"))
        registry = _registry()
        client = PromptClient(provider, registry=registry)
        result = client.complete(PromptSpec(message="find"))

        assert result.content == "found it"
        assert result.rounds == 1
        registry.dispatch.assert_called_once_with("search", {"q": 0}, timeout=None)
        assert result.tool_calls[0]["tool"] == "search"
        assert result.tool_calls[0]["error"] is False

        second_messages = provider.complete.call_args_list[1].args[0]
        assert [m.role for m in second_messages] == ["user", "assistant", "tool"]
        assert second_messages[2].tool_results[0].call.id == "r0"

    def test_several_calls_in_one_round(self):
        provider = _provider(_pending("search", "notify"), FinalAnswer(text="done"))
        registry = _registry(("search", "notify"))
        client = PromptClient(provider, registry=registry)
        result = client.complete(PromptSpec(message="go"))
        assert registry.dispatch.call_count == 2
        assert result.rounds == 1

    def test_round_bound_stops_dispatching(self):
        turns = [_pending("search", round_id=str(i)) for i in range(10)]
        provider = _provider(*turns)
        registry = _registry()
        client = PromptClient(provider, registry=registry, max_rounds=3)

        with pytest.raises(ToolLoopExceededError):
            client.complete(PromptSpec(message="loop"))

        assert registry.dispatch.call_count == 3
        assert provider.complete.call_count == 4

    def test_zero_rounds_allows_no_tools(self):
        provider = _provider(_pending("search"))
        registry = _registry()
        client = PromptClient(provider, registry=registry, max_rounds=0)
        with pytest.raises(ToolLoopExceededError):
            client.complete(PromptSpec(message="x"))
        registry.dispatch.assert_not_called()

    def test_dispatch_error_becomes_tool_result(self):
        provider = _provider(_pending("search"), FinalAnswer(text="sorry"))
        registry = _registry()
        registry.dispatch.side_effect = ToolTimeoutError("too slow", origin="maps")
        client = PromptClient(provider, registry=registry)
        result = client.complete(PromptSpec(message="x"))

        assert result.content == "sorry"
        assert result.tool_calls[0]["error"] is True
        outcome = provider.complete.call_args_list[1].args[0][2].tool_results[0]
        assert outcome.is_error is True
        assert "[maps] too slow" in outcome.content

    def test_malformed_reply_becomes_tool_result(self):
        provider = _provider(_pending("search"), FinalAnswer(text="search is broken"))
        registry = _registry()
        registry.dispatch.side_effect = ProtocolError("Malformed tool result content", origin="github")
        result = PromptClient(provider, registry=registry).complete(PromptSpec(message="x"))

        assert result.content == "search is broken"
        outcome = provider.complete.call_args_list[1].args[0][2].tool_results[0]
        assert outcome.is_error is True
        assert "[github]" in outcome.content

    def test_unknown_tool_becomes_tool_result(self):
        provider = _provider(_pending("email"), FinalAnswer(text="no email tool"))
        registry = _registry()
        registry.dispatch.side_effect = UnknownToolError("Unknown tool: email")
        result = PromptClient(provider, registry=registry).complete(PromptSpec(message="x"))
        assert result.content == "no email tool"

    def test_backend_failure_wrapped(self):
        provider = _provider(RuntimeError("socket closed"))
        client = PromptClient(provider, registry=_registry())
        with pytest.raises(CompletionError, match="socket closed"):
            client.complete(PromptSpec(message="x"))

    def test_backend_completion_error_propagates(self):
        provider = _provider(CompletionError("HTTP 500"))
        client = PromptClient(provider, registry=_registry())
        with pytest.raises(CompletionError, match="HTTP 500"):
            client.complete(PromptSpec(message="x"))

    def test_usage_accumulates(self):
        provider = _provider(
            PendingToolCalls(calls=(ToolCall(id="1", name="search"),), usage=Usage(10, 2)),
            FinalAnswer(text="ok", usage=Usage(20, 5)),
        )
        result = PromptClient(provider, registry=_registry()).complete(PromptSpec(message="x"))
        assert result.usage == Usage(30, 7)

    def test_system_prompt_forwarded(self):
        provider = _provider(FinalAnswer(text="ok"))
        PromptClient(provider).complete(PromptSpec(message="x", system="be brief"))
        assert provider.complete.call_args.kwargs["system"] == "be brief"

    def test_history_prepended(self):
        provider = _provider(FinalAnswer(text="first"), FinalAnswer(text="second"))
        client = PromptClient(provider)
        first = client.complete(PromptSpec(message="one"))
        client.complete(PromptSpec(message="two", history=first.messages))
        messages = provider.complete.call_args.args[0]
        assert [m.content for m in messages] == ["one", "first", "two"]

    def test_negative_rounds_rejected(self):
        with pytest.raises(ValueError):
            PromptClient(_provider(), max_rounds=-1)


class TestTemplates:

    def test_template_rendered_into_user_message(self):
        provider = _provider(FinalAnswer(text="summary"))
        store = TemplateStore(inline={"daily": "Summarize {{repoOwner}}/{{repoName}}"})
        client = PromptClient(provider, templates=store)
        client.complete(PromptSpec(
            template="daily", params={"repoOwner": "venkat-vmv", "repoName": "blogging-platform"},
        ))
        messages = provider.complete.call_args.args[0]
        assert messages[0].content == "Summarize venkat-vmv/blogging-platform"

    def test_missing_param_fails_before_backend(self):
        provider = _provider(FinalAnswer(text="never"))
        store = TemplateStore(inline={"daily": "Summarize {{repoName}}"})
        client = PromptClient(provider, templates=store)
        with pytest.raises(TemplateError, match="repoName"):
            client.complete(PromptSpec(template="daily"))
        provider.complete.assert_not_called()

    def test_params_without_template(self):
        client = PromptClient(_provider())
        with pytest.raises(TemplateError):
            client.complete(PromptSpec(message="x", params={"a": 1}))


class TestPromptSpec:

    def test_requires_message_or_template(self):
        with pytest.raises(ValueError):
            PromptSpec()

    def test_rejects_both(self):
        with pytest.raises(ValueError):
            PromptSpec(message="x", template="y")
