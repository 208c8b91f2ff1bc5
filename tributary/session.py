"""Interactive read-eval-print loop over a PromptClient."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TYPE_CHECKING

from rich.console import Console

from .client import PromptClient, PromptSpec
from .hooks import HookEvent, HookRunner
from .ui.output import render_error, render_response
from .ui.theme import CYAN, console as default_console

if TYPE_CHECKING:
    from .servers.pool import ConnectionPool

logger = logging.getLogger(__name__)

DEFAULT_EXIT_TOKEN = "exit"


class InteractiveSession:
    """Read a line, answer it, repeat until the exit token.

    A failed turn is reported and the loop continues. Every connection in
    ``pool`` is closed exactly once when the loop ends, however it ends.
    """

    def __init__(
        self,
        client: PromptClient,
        pool: Optional["ConnectionPool"] = None,
        exit_token: str = DEFAULT_EXIT_TOKEN,
        input_fn: Optional[Callable[[str], str]] = None,
        console: Optional[Console] = None,
        welcome: str = "",
        keep_history: bool = False,
        hook_runner: Optional[HookRunner] = None,
    ):
        self.client = client
        self.pool = pool
        self.exit_token = exit_token
        self.console = console or default_console
        self._input = input_fn or self.console.input
        self.welcome = welcome
        self.keep_history = keep_history
        self._hooks = hook_runner or HookRunner()
        self._history: tuple = ()
        self.turns = 0
        self.failures = 0

    def is_exit(self, line: str) -> bool:
        return line.strip().lower() == self.exit_token.lower()

    def run(self) -> int:
        """Run the loop; returns the number of completed turns."""
        start = time.monotonic()
        try:
            if self.welcome:
                self.console.print(f"\n{self.welcome}", style=CYAN)
            self.console.print(f"Type '{self.exit_token}' to end the session.", style="dim")

            while True:
                try:
                    line = self._input("\nUser: ")
                except (EOFError, KeyboardInterrupt):
                    self.console.print()
                    break

                if self.is_exit(line):
                    self.console.print("Ending the chat session.", style="dim")
                    break
                if not line.strip():
                    continue

                self.handle(line)
        finally:
            self._teardown(time.monotonic() - start)
        return self.turns

    def handle(self, line: str) -> bool:
        """Answer one line. Returns False if the turn failed."""
        try:
            result = self.client.complete(PromptSpec(message=line, history=self._history))
        except Exception as e:
            self.failures += 1
            logger.debug("Turn failed", exc_info=True)
            render_error(str(e), out=self.console)
            return False

        self.turns += 1
        if self.keep_history:
            self._history = result.messages
        render_response(result.content, out=self.console)
        return True

    def _teardown(self, elapsed: float) -> None:
        try:
            if self.pool is not None:
                self.pool.close_all()
        finally:
            self._hooks.run_hooks(HookEvent.ON_SESSION_EXIT, context={
                "turns": self.turns,
                "failures": self.failures,
                "duration": f"{elapsed:.1f}",
            })
