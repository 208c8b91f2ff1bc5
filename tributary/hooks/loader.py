"""Parse hook definitions from configuration data."""

import logging
from typing import Any

from .runner import HookDefinition, HookEvent

logger = logging.getLogger(__name__)

_EVENT_MAP = {event.value: event for event in HookEvent}


def load_hooks_from_config(hooks_data: list[dict[str, Any]]) -> tuple[HookDefinition, ...]:
    """Parse a list of hook config dicts into HookDefinition instances.

    Each dict should have:
        name: str (required)
        event: str (required) - one of after_firing, on_firing_error, on_session_exit
        command: str (required)
        timeout: int (optional, default 30)
        enabled: bool (optional, default True)

    Invalid entries are skipped with a warning.
    """
    hooks = []

    for entry in hooks_data or []:
        if not isinstance(entry, dict):
            logger.warning(f"Ignoring hook entry that is not a mapping: {entry!r}")
            continue

        name = entry.get("name")
        event = _EVENT_MAP.get(entry.get("event"))
        command = entry.get("command")

        if not all((name, event, command)):
            logger.warning(f"Ignoring incomplete hook entry: {entry!r}")
            continue

        hooks.append(HookDefinition(
            name=name,
            event=event,
            command=command,
            timeout=entry.get("timeout", 30),
            enabled=entry.get("enabled", True),
        ))

    return tuple(hooks)
