"""Output rendering for answers, errors, tool listings and firing outcomes."""

from typing import Optional, TYPE_CHECKING

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .theme import PALETTE, CYAN, console

if TYPE_CHECKING:
    from ..schedule.invoker import FiringOutcome


def render_response(text: str, label: str = "Assistant", out: Optional[Console] = None) -> None:
    """Render an answer with a labelled gutter."""
    out = out or console
    line = Text()
    line.append(f"{label}: ", style=f"bold {CYAN}")
    line.append(text, style=PALETTE.text_bright)
    out.print(line)


def render_error(text: str, out: Optional[Console] = None) -> None:
    """Render an error message."""
    out = out or console
    err = Text()
    err.append("err ", style=f"bold {PALETTE.error}")
    err.append("| ", style=f"dim {PALETTE.text_muted}")
    err.append(text, style=PALETTE.error)
    out.print(err)


def render_warning(text: str, out: Optional[Console] = None) -> None:
    out = out or console
    warn = Text()
    warn.append("warn ", style=f"bold {PALETTE.warning}")
    warn.append("| ", style=f"dim {PALETTE.text_muted}")
    warn.append(text, style=PALETTE.warning)
    out.print(warn)


def render_outcome(outcome: "FiringOutcome", out: Optional[Console] = None) -> None:
    """Render the result of one scheduled firing."""
    out = out or console
    stamp = f"{outcome.finished_at:%H:%M:%S}"
    header = Text()
    header.append(f"{stamp} ", style=f"dim {PALETTE.text_dim}")
    header.append(outcome.entry, style=f"bold {CYAN}")
    header.append(f" [{outcome.state.value}]", style=(
        PALETTE.success if outcome.succeeded else PALETTE.error
    ))
    out.print(header)
    if outcome.succeeded:
        out.print(Text(outcome.content, style=PALETTE.text_bright))
    else:
        render_error(outcome.error, out=out)


def render_tools_table(tools: list[dict], out: Optional[Console] = None) -> None:
    """Render aggregated tools with their owning servers."""
    out = out or console
    table = Table(title="Registered tools", header_style=f"bold {CYAN}", expand=False)
    table.add_column("Tool")
    table.add_column("Server", style=PALETTE.text_dim)
    table.add_column("Description", overflow="fold")
    for tool in tools:
        table.add_row(tool["name"], tool["server"], tool["description"])
    out.print(table)
