"""Prompt-completion backends."""

from .base import BaseProvider, ProviderConfig
from .claude import ClaudeProvider
from .openai_provider import OpenAIProvider
from .response import (
    BackendTurn,
    FinalAnswer,
    Message,
    PendingToolCalls,
    ToolCall,
    ToolOutcome,
    Usage,
)

__all__ = [
    "BaseProvider",
    "ProviderConfig",
    "ClaudeProvider",
    "OpenAIProvider",
    "BackendTurn",
    "FinalAnswer",
    "Message",
    "PendingToolCalls",
    "ToolCall",
    "ToolOutcome",
    "Usage",
]
