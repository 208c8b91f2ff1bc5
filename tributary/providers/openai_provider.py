"""OpenAI provider for GPT models - supports custom base_url for Azure/proxies."""

from typing import Optional, Sequence, TYPE_CHECKING

import httpx

from ._openai_tools import openai_complete
from .base import BaseProvider, ProviderConfig
from .registry import register_provider
from .response import BackendTurn, Message

if TYPE_CHECKING:
    from ..tools.schema import ToolDescriptor


@register_provider("openai")
class OpenAIProvider(BaseProvider):
    """OpenAI chat completions provider."""

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        self.base_url = config.base_url or "https://api.openai.com/v1"
        self.client = httpx.Client(timeout=config.timeout)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    def complete(
        self,
        messages: Sequence[Message],
        tools: Sequence["ToolDescriptor"] = (),
        system: Optional[str] = None,
    ) -> BackendTurn:
        turn = openai_complete(
            client=self.client,
            url=f"{self.base_url}/chat/completions",
            headers=self._headers(),
            model=self.config.model,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            messages=messages,
            tools=tools,
            system=system,
            provider="openai",
        )
        self._last_usage = turn.usage
        return turn

    def close(self) -> None:
        self.client.close()
