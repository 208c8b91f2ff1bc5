"""Base provider interface for prompt-completion backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence, TYPE_CHECKING

import httpx

from ..errors import CompletionError
from .response import BackendTurn, FinalAnswer, Message, Usage

if TYPE_CHECKING:
    from ..tools.schema import ToolDescriptor


@dataclass
class ProviderConfig:
    """Configuration for a provider."""
    api_key: str
    model: str
    base_url: Optional[str] = None
    temperature: float = 0.7
    max_tokens: Optional[int] = None
    timeout: float = 60.0


class BaseProvider(ABC):
    """Abstract base class for all completion backends."""

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.name = self.__class__.__name__
        self._last_usage: Optional[Usage] = None

    @property
    def last_usage(self) -> Optional[Usage]:
        """Token usage reported by the last complete() call."""
        return self._last_usage

    @abstractmethod
    def complete(
        self,
        messages: Sequence[Message],
        tools: Sequence["ToolDescriptor"] = (),
        system: Optional[str] = None,
    ) -> BackendTurn:
        """Run one backend turn.

        Returns:
            FinalAnswer when the model is done, PendingToolCalls when it
            wants tools resolved first.

        Raises:
            CompletionError: the backend could not be reached or answered
                with something unusable.
        """

    def ask(self, prompt: str, system: Optional[str] = None) -> str:
        """Single prompt with no tools; returns the answer text."""
        turn = self.complete([Message.user(prompt)], system=system)
        if not isinstance(turn, FinalAnswer):
            raise CompletionError(f"{self.name} requested tools without any being offered")
        return turn.text

    def validate(self) -> bool:
        """Validate provider configuration."""
        return bool(self.config.api_key and self.config.model)

    def ping(self) -> bool:
        """Test connectivity with a minimal API call. Returns True on success."""
        try:
            result = self.ask("Reply with the single word OK.")
            return bool(result and len(result.strip()) > 0)
        except CompletionError:
            return False

    def close(self) -> None:
        """Release any held HTTP resources."""


def post_json(client: httpx.Client, url: str, payload: dict, headers: dict, provider: str) -> dict:
    """POST a JSON payload and decode the JSON reply, mapping failures to CompletionError."""
    try:
        response = client.post(url, json=payload, headers=headers)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        body = e.response.text[:300] if e.response is not None else ""
        raise CompletionError(f"{provider} returned HTTP {e.response.status_code}: {body}") from e
    except httpx.HTTPError as e:
        raise CompletionError(f"{provider} request failed: {e}") from e
    except ValueError as e:
        raise CompletionError(f"{provider} returned invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise CompletionError(f"{provider} returned an unexpected payload: {data!r}")
    return data
