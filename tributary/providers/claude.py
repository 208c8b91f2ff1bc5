"""Anthropic Claude provider implementation."""

from typing import Optional, Sequence, TYPE_CHECKING

import httpx

from ..errors import CompletionError
from .base import BaseProvider, ProviderConfig, post_json
from .registry import register_provider
from .response import BackendTurn, FinalAnswer, Message, PendingToolCalls, ToolCall, Usage

if TYPE_CHECKING:
    from ..tools.schema import ToolDescriptor


@register_provider("claude")
class ClaudeProvider(BaseProvider):
    """Anthropic Messages API provider using tool_use / tool_result blocks."""

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        self.base_url = config.base_url or "https://api.anthropic.com/v1"
        self.client = httpx.Client(timeout=config.timeout)

    def _headers(self) -> dict:
        return {
            "x-api-key": self.config.api_key,
            "anthropic-version": "2023-06-01",
            "content-type": "application/json",
        }

    def complete(
        self,
        messages: Sequence[Message],
        tools: Sequence["ToolDescriptor"] = (),
        system: Optional[str] = None,
    ) -> BackendTurn:
        """One Messages API round trip."""
        payload = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens or 2048,
            "temperature": self.config.temperature,
            "messages": [self._to_native(m) for m in messages],
        }
        if tools:
            payload["tools"] = [
                {
                    "name": td.name,
                    "description": td.description,
                    "input_schema": dict(td.input_schema),
                }
                for td in tools
            ]
        if system:
            payload["system"] = system

        data = post_json(self.client, f"{self.base_url}/messages", payload, self._headers(), "claude")

        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise CompletionError(f"claude response has no content: {data!r}")

        usage = data.get("usage", {})
        self._last_usage = Usage(usage.get("input_tokens", 0), usage.get("output_tokens", 0))

        text_parts = []
        calls = []
        for block in blocks:
            if block.get("type") == "text":
                text_parts.append(block.get("text", ""))
            elif block.get("type") == "tool_use":
                calls.append(ToolCall(
                    id=block["id"],
                    name=block["name"],
                    arguments=block.get("input") or {},
                ))

        text = "".join(text_parts)
        if calls and data.get("stop_reason") == "tool_use":
            return PendingToolCalls(calls=tuple(calls), text=text, usage=self._last_usage, model=data.get("model"))
        return FinalAnswer(text=text, usage=self._last_usage, model=data.get("model"))

    @staticmethod
    def _to_native(message: Message) -> dict:
        if message.role == "tool":
            return {
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": outcome.call.id,
                        "content": outcome.content,
                        "is_error": outcome.is_error,
                    }
                    for outcome in message.tool_results
                ],
            }

        if message.role == "assistant" and message.tool_calls:
            content = []
            if message.content:
                content.append({"type": "text", "text": message.content})
            for call in message.tool_calls:
                content.append({
                    "type": "tool_use",
                    "id": call.id,
                    "name": call.name,
                    "input": dict(call.arguments),
                })
            return {"role": "assistant", "content": content}

        return {"role": message.role, "content": message.content}

    def close(self) -> None:
        self.client.close()
