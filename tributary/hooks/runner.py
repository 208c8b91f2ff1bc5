"""Shell hooks fired after scheduled firings and when a chat session ends.

Each hook command runs through the shell with the firing or session
context exported as ``TRIBUTARY_<KEY>`` variables, plus ``TRIBUTARY_EVENT``.
A failing or hanging hook is logged and never propagates to the caller.
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)


class HookEvent(str, Enum):
    AFTER_FIRING = "after_firing"
    ON_FIRING_ERROR = "on_firing_error"
    ON_SESSION_EXIT = "on_session_exit"


@dataclass(frozen=True)
class HookDefinition:
    name: str
    event: HookEvent
    command: str
    timeout: int = 30
    enabled: bool = True


@dataclass(frozen=True)
class HookResult:
    """Exit status and captured output of one hook command."""

    name: str
    return_code: int
    output: str = ""

    @property
    def success(self) -> bool:
        return self.return_code == 0


class HookRunner:

    def __init__(self, hooks: Iterable[HookDefinition] = ()):
        self.hooks = tuple(hooks)

    def run_hooks(
        self,
        event: HookEvent,
        context: Optional[dict[str, Any]] = None,
    ) -> list[HookResult]:
        """Run the enabled hooks registered for ``event``, in config order."""
        selected = [h for h in self.hooks if h.enabled and h.event is event]
        if not selected:
            return []

        env = {**os.environ, "TRIBUTARY_EVENT": event.value}
        for key, value in (context or {}).items():
            env[f"TRIBUTARY_{key.upper()}"] = str(value)

        results = []
        for hook in selected:
            result = _execute(hook, env)
            if not result.success:
                logger.warning(f"Hook {hook.name} on {event.value} failed ({result.return_code}): {result.output}")
            results.append(result)
        return results


def _execute(hook: HookDefinition, env: dict[str, str]) -> HookResult:
    try:
        proc = subprocess.run(
            hook.command,
            shell=True,
            capture_output=True,
            text=True,
            timeout=hook.timeout,
            env=env,
        )
    except subprocess.TimeoutExpired:
        return HookResult(hook.name, -1, f"timed out after {hook.timeout}s")
    except OSError as e:
        return HookResult(hook.name, -1, str(e))
    return HookResult(hook.name, proc.returncode, (proc.stdout.strip() or proc.stderr.strip()))
