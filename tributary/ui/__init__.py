"""Terminal UI components."""

from .theme import console, err_console, render_header, CYAN, VIOLET, PALETTE
from .output import (
    render_error,
    render_outcome,
    render_response,
    render_tools_table,
    render_warning,
)

__all__ = [
    "console",
    "err_console",
    "render_header",
    "CYAN",
    "VIOLET",
    "PALETTE",
    "render_error",
    "render_outcome",
    "render_response",
    "render_tools_table",
    "render_warning",
]
