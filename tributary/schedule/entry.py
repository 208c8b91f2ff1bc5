"""Schedule entries parsed from the ``schedule`` config section."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from croniter import croniter

from ..errors import ConfigError


def normalize_cron(expression: str) -> str:
    """Return a croniter-compatible expression.

    Five-field expressions pass through. Six-field expressions are read
    with a leading seconds field (``sec min hour dom mon dow``) and
    rewritten with seconds last, which is where croniter expects them.
    """
    fields = expression.split()
    if len(fields) == 5:
        return " ".join(fields)
    if len(fields) == 6:
        return " ".join(fields[1:] + fields[:1])
    raise ConfigError(f"Cron expression must have 5 or 6 fields: '{expression}'")


@dataclass(frozen=True)
class ScheduleEntry:
    """A prompt template fired on a cron schedule."""

    name: str
    cron: str
    template: str
    params: Mapping[str, Any] = field(default_factory=dict)
    system: str = ""

    @property
    def cron_expression(self) -> str:
        return normalize_cron(self.cron)

    def next_after(self, moment: datetime) -> datetime:
        """First firing time strictly after ``moment``."""
        return croniter(self.cron_expression, moment).get_next(datetime)


def load_schedule_from_config(data: list[Any]) -> tuple[ScheduleEntry, ...]:
    """Parse schedule entries.

    Expected format::

        - name: daily-summary
          cron: "0 */1 * * * *"
          template: dailySummaryPrompt
          params:
            repoName: blogging-platform
            repoOwner: venkat-vmv

    ``name`` defaults to the template id. Malformed entries and duplicate
    names raise ConfigError.
    """
    entries = []
    seen = set()

    for index, item in enumerate(data or []):
        if not isinstance(item, dict):
            raise ConfigError(f"Schedule entry #{index + 1} must be a mapping")

        cron = item.get("cron")
        template = item.get("template")
        if not cron or not template:
            raise ConfigError(f"Schedule entry #{index + 1} needs both cron and template")

        params = item.get("params") or {}
        if not isinstance(params, dict):
            raise ConfigError(f"Schedule entry #{index + 1}: params must be a mapping")

        name = str(item.get("name") or template)
        if name in seen:
            raise ConfigError(f"Duplicate schedule entry name: {name}")
        seen.add(name)

        entry = ScheduleEntry(
            name=name,
            cron=str(cron),
            template=str(template),
            params=dict(params),
            system=str(item.get("system", "")),
        )
        if not croniter.is_valid(entry.cron_expression):
            raise ConfigError(f"Schedule entry '{name}' has an invalid cron expression: {cron}")
        entries.append(entry)

    return tuple(entries)
