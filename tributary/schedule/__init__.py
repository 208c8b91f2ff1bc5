"""Cron-driven prompt firing."""

from .entry import ScheduleEntry, load_schedule_from_config, normalize_cron
from .invoker import EntryState, FiringOutcome, ScheduledInvoker

__all__ = [
    "ScheduleEntry",
    "load_schedule_from_config",
    "normalize_cron",
    "EntryState",
    "FiringOutcome",
    "ScheduledInvoker",
]
