"""Shared OpenAI-compatible chat completions logic.

Used by OpenAIProvider and any OpenAI-compatible endpoint (Azure, local
proxies) reached through a custom base_url.
"""

import json
import logging
from typing import Optional, Sequence, TYPE_CHECKING

import httpx

from ..errors import CompletionError
from .base import post_json
from .response import BackendTurn, FinalAnswer, Message, PendingToolCalls, ToolCall, Usage

if TYPE_CHECKING:
    from ..tools.schema import ToolDescriptor

logger = logging.getLogger(__name__)


def to_openai_messages(messages: Sequence[Message], system: Optional[str] = None) -> list[dict]:
    """Translate neutral messages to the chat completions format."""
    native = []
    if system:
        native.append({"role": "system", "content": system})

    for message in messages:
        if message.role == "tool":
            for outcome in message.tool_results:
                content = outcome.content
                if outcome.is_error:
                    content = f"Error: {content}"
                native.append({
                    "role": "tool",
                    "tool_call_id": outcome.call.id,
                    "content": content,
                })
        elif message.role == "assistant" and message.tool_calls:
            native.append({
                "role": "assistant",
                "content": message.content or None,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": json.dumps(dict(call.arguments)),
                        },
                    }
                    for call in message.tool_calls
                ],
            })
        else:
            native.append({"role": message.role, "content": message.content})

    return native


def openai_complete(
    client: httpx.Client,
    url: str,
    headers: dict,
    model: str,
    temperature: float,
    max_tokens: Optional[int],
    messages: Sequence[Message],
    tools: Sequence["ToolDescriptor"] = (),
    system: Optional[str] = None,
    provider: str = "openai",
) -> BackendTurn:
    """One OpenAI-compatible chat completions round trip.

    Args:
        client: httpx.Client instance.
        url: Chat completions endpoint URL.
        headers: Request headers with auth.
        model: Model identifier.
        temperature: Sampling temperature.
        max_tokens: Max response tokens.
        messages: Conversation so far.
        tools: Tool descriptors to advertise.
        system: Optional system prompt.
        provider: Name used in error messages.

    Returns:
        FinalAnswer or PendingToolCalls.
    """
    payload = {
        "model": model,
        "messages": to_openai_messages(messages, system),
        "temperature": temperature,
    }
    if tools:
        payload["tools"] = [
            {
                "type": "function",
                "function": {
                    "name": td.name,
                    "description": td.description,
                    "parameters": dict(td.input_schema),
                },
            }
            for td in tools
        ]
    if max_tokens:
        payload["max_tokens"] = max_tokens

    data = post_json(client, url, payload, headers, provider)

    choices = data.get("choices")
    if not choices:
        raise CompletionError(f"{provider} response has no choices: {data!r}")

    usage = data.get("usage") or {}
    turn_usage = Usage(usage.get("prompt_tokens", 0), usage.get("completion_tokens", 0))

    message = choices[0].get("message", {})
    finish_reason = choices[0].get("finish_reason", "stop")
    content = message.get("content", "") or ""
    tool_calls = message.get("tool_calls") or []

    if not tool_calls or finish_reason != "tool_calls":
        return FinalAnswer(text=content, usage=turn_usage, model=data.get("model"))

    calls = []
    for tc in tool_calls:
        fn = tc.get("function", {})
        try:
            arguments = json.loads(fn.get("arguments") or "{}")
        except json.JSONDecodeError:
            logger.warning(f"Unparseable arguments for {fn.get('name')}: {fn.get('arguments')!r}")
            arguments = {}
        calls.append(ToolCall(id=tc["id"], name=fn.get("name", ""), arguments=arguments))

    return PendingToolCalls(calls=tuple(calls), text=content, usage=turn_usage, model=data.get("model"))
