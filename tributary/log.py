"""Logging setup: stdlib loggers rendered through rich on stderr."""

import logging
from typing import Union

from rich.logging import RichHandler

from .ui.theme import err_console

LOG_FORMAT = "%(name)s: %(message)s"


def setup_logging(level: Union[int, str] = logging.WARNING) -> None:
    """Install a RichHandler on the root logger (idempotent)."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)

    handler = RichHandler(console=err_console, show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
