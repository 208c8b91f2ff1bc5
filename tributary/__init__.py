"""Tributary - many tool servers, one conversational model."""

__version__ = "0.1.0"

from .client import PromptClient, PromptResult, PromptSpec
from .servers import ConnectionPool, ToolServerConnection
from .session import InteractiveSession
from .schedule import ScheduledInvoker
from .tools import ToolRegistry

__all__ = [
    "PromptClient",
    "PromptResult",
    "PromptSpec",
    "ConnectionPool",
    "ToolServerConnection",
    "InteractiveSession",
    "ScheduledInvoker",
    "ToolRegistry",
]
