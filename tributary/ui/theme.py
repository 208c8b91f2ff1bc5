"""Tributary theme: palette, shared console, and header rendering."""

from dataclasses import dataclass

from rich.console import Console
from rich.panel import Panel
from rich.text import Text


@dataclass(frozen=True)
class ColorPalette:
    """Core UI color palette."""

    text_bright: str = "#e8e8f0"
    text: str = "#b8b8cc"
    text_dim: str = "#4a4a60"
    text_muted: str = "#363648"
    accent: str = "#00d4e5"
    secondary: str = "#b44dff"
    success: str = "#34d399"
    warning: str = "#e5c747"
    error: str = "#e55a6e"


PALETTE = ColorPalette()

CYAN = PALETTE.accent
VIOLET = PALETTE.secondary

console = Console()
err_console = Console(stderr=True)


def render_header(title: str, subtitle: str = "") -> None:
    """Render a header panel."""
    header_text = Text(title, style=f"bold {CYAN}")
    if subtitle:
        header_text.append(f"\n{subtitle}", style=f"dim {PALETTE.text_bright}")
    panel = Panel(
        header_text,
        border_style=VIOLET,
        padding=(1, 2),
        expand=False,
    )
    console.print(panel)
