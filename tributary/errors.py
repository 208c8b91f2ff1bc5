"""Exception hierarchy for Tributary.

Every error raised by the orchestration layer derives from ``TributaryError``
so callers (the scheduler, the interactive session, the CLI) can contain
failures with a single ``except`` clause.
"""

from typing import Optional


class TributaryError(Exception):
    """Base class for all Tributary errors.

    ``origin`` names the tool server an error came from, when known.
    """

    def __init__(self, message: str = "", origin: Optional[str] = None):
        super().__init__(message)
        self.origin = origin

    def __str__(self) -> str:
        message = super().__str__()
        if self.origin:
            return f"[{self.origin}] {message}"
        return message


class ConfigError(TributaryError):
    """Configuration is missing or malformed."""


class ServerConnectionError(TributaryError, ConnectionError):
    """A tool-server channel could not be established or initialized."""


class NotReadyError(TributaryError):
    """Operation attempted on a connection that is not READY."""


class ToolTimeoutError(TributaryError, TimeoutError):
    """A request to a tool server exceeded its deadline."""


class ProtocolError(TributaryError):
    """A tool server sent a malformed or unexpected response."""


class ToolInvocationError(TributaryError):
    """A tool server reported an error for a tool call."""


class UnknownToolError(TributaryError):
    """Dispatch to a tool name that is not registered."""


class DuplicateToolError(TributaryError):
    """Two servers advertise the same tool name in strict mode."""


class ToolLoopExceededError(TributaryError):
    """The backend kept requesting tools past the round bound."""


class CompletionError(TributaryError):
    """The prompt-completion backend failed."""


class TemplateError(TributaryError):
    """A prompt template is missing or cannot be rendered."""
