"""Fire prompt templates on cron schedules with per-firing failure isolation.

Each entry cycles through::

    IDLE -> FIRING -> (SUCCEEDED | FAILED) -> IDLE

Distinct entries may fire in parallel on a worker pool. Ticks for the same
entry never overlap: an entry stays claimed until its outcome has been
reported and it is back to IDLE, and a tick that arrives before then is
skipped and reported. A failed firing is recorded and reported; it never
reaches the control loop and never affects later firings.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, Optional

from ..client import PromptClient, PromptSpec
from ..errors import ConfigError
from ..hooks import HookEvent, HookRunner
from .entry import ScheduleEntry

logger = logging.getLogger(__name__)


class EntryState(str, Enum):
    IDLE = "idle"
    FIRING = "firing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class FiringOutcome:
    """What happened on one tick of one entry."""

    entry: str
    state: EntryState
    started_at: datetime
    finished_at: datetime
    content: str = ""
    error: str = ""
    rounds: int = 0

    @property
    def succeeded(self) -> bool:
        return self.state is EntryState.SUCCEEDED

    @property
    def duration(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()


OutcomeCallback = Callable[[FiringOutcome], None]


class ScheduledInvoker:
    """Run a fixed table of ScheduleEntries against a PromptClient."""

    def __init__(
        self,
        client: PromptClient,
        entries: Iterable[ScheduleEntry],
        max_workers: int = 4,
        hook_runner: Optional[HookRunner] = None,
        on_outcome: Optional[OutcomeCallback] = None,
        history_size: int = 100,
    ):
        self.client = client
        self._entries: dict[str, ScheduleEntry] = {}
        for entry in entries:
            if entry.name in self._entries:
                raise ConfigError(f"Duplicate schedule entry name: {entry.name}")
            self._entries[entry.name] = entry

        self._states = {name: EntryState.IDLE for name in self._entries}
        self._last: dict[str, FiringOutcome] = {}
        self._history: deque[FiringOutcome] = deque(maxlen=history_size)
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="tributary-tick",
        )
        self._hooks = hook_runner or HookRunner()
        self._on_outcome = on_outcome

    @property
    def entries(self) -> tuple[ScheduleEntry, ...]:
        return tuple(self._entries.values())

    @property
    def history(self) -> tuple[FiringOutcome, ...]:
        with self._lock:
            return tuple(self._history)

    def state(self, name: str) -> EntryState:
        with self._lock:
            return self._states[self._entry(name).name]

    def last_outcome(self, name: str) -> Optional[FiringOutcome]:
        with self._lock:
            return self._last.get(name)

    # ------------------------------------------------------------------
    # Firing
    # ------------------------------------------------------------------

    def fire(self, name: str) -> FiringOutcome:
        """Fire one entry on the calling thread and return its outcome."""
        entry = self._entry(name)
        if not self._claim(entry):
            return self._skipped(entry)
        return self._run(entry)

    def tick(self, names: Iterable[str]) -> list[Future]:
        """Start firings for ``names`` on the worker pool.

        Entries whose previous firing has not finished are skipped and
        reported instead.
        """
        futures = []
        for name in names:
            entry = self._entry(name)
            if not self._claim(entry):
                self._skipped(entry)
                continue
            futures.append(self._executor.submit(self._run, entry))
        return futures

    def due(self, schedule: dict[str, datetime], now: datetime) -> list[str]:
        """Entries whose next time has passed; advances their next time past ``now``."""
        names = [name for name, at in schedule.items() if at <= now]
        for name in names:
            # Missed firings collapse into one.
            schedule[name] = self._entries[name].next_after(now)
        return names

    def run(
        self,
        stop_event: threading.Event,
        poll_interval: float = 1.0,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Generic ticking loop; returns once ``stop_event`` is set.

        In-flight firings are allowed to finish before returning.
        """
        start = clock()
        schedule = {name: entry.next_after(start) for name, entry in self._entries.items()}
        for name, at in schedule.items():
            logger.info(f"Scheduled {name} ({self._entries[name].cron}); next at {at:%Y-%m-%d %H:%M:%S}")

        try:
            while not stop_event.is_set():
                now = clock()
                names = self.due(schedule, now)
                if names:
                    self.tick(names)
                if not schedule:
                    stop_event.wait(poll_interval)
                    continue
                wait = (min(schedule.values()) - clock()).total_seconds()
                stop_event.wait(min(max(wait, 0.0), poll_interval))
        finally:
            self.shutdown(wait=True)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _entry(self, name: str) -> ScheduleEntry:
        try:
            return self._entries[name]
        except KeyError:
            raise ConfigError(f"Unknown schedule entry: {name}") from None

    def _claim(self, entry: ScheduleEntry) -> bool:
        with self._lock:
            # SUCCEEDED and FAILED still hold the claim while reporting runs.
            if self._states[entry.name] is not EntryState.IDLE:
                return False
            self._states[entry.name] = EntryState.FIRING
            return True

    def _run(self, entry: ScheduleEntry) -> FiringOutcome:
        started = datetime.now()
        t0 = time.monotonic()
        logger.info(f"Firing {entry.name} (template {entry.template})")

        try:
            result = self.client.complete(PromptSpec(
                template=entry.template,
                params=entry.params,
                system=entry.system or None,
            ))
            outcome = FiringOutcome(
                entry=entry.name,
                state=EntryState.SUCCEEDED,
                started_at=started,
                finished_at=datetime.now(),
                content=result.content,
                rounds=result.rounds,
            )
            logger.info(f"{entry.name} succeeded in {time.monotonic() - t0:.1f}s ({result.rounds} tool rounds)")
        except Exception as e:
            outcome = FiringOutcome(
                entry=entry.name,
                state=EntryState.FAILED,
                started_at=started,
                finished_at=datetime.now(),
                error=f"{type(e).__name__}: {e}",
            )
            logger.error(f"Error firing {entry.name}: {e}", exc_info=logger.isEnabledFor(logging.DEBUG))

        with self._lock:
            self._states[entry.name] = outcome.state
            self._last[entry.name] = outcome
            self._history.append(outcome)

        try:
            self._report(outcome)
        finally:
            with self._lock:
                self._states[entry.name] = EntryState.IDLE
        return outcome

    def _skipped(self, entry: ScheduleEntry) -> FiringOutcome:
        now = datetime.now()
        outcome = FiringOutcome(
            entry=entry.name,
            state=EntryState.SKIPPED,
            started_at=now,
            finished_at=now,
            error="previous firing still running",
        )
        logger.warning(f"Skipping {entry.name}: previous firing still running")
        with self._lock:
            self._history.append(outcome)
        self._report(outcome)
        return outcome

    def _report(self, outcome: FiringOutcome) -> None:
        event = HookEvent.AFTER_FIRING if outcome.succeeded else HookEvent.ON_FIRING_ERROR
        try:
            self._hooks.run_hooks(event, context={
                "entry": outcome.entry,
                "state": outcome.state.value,
                "error": outcome.error,
                "duration": f"{outcome.duration:.3f}",
            })
            if self._on_outcome:
                self._on_outcome(outcome)
        except Exception:
            logger.exception(f"Reporting outcome of {outcome.entry} failed")
