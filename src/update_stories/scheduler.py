"""Periodic and on-demand triggering of story updates.

The trigger owns no thread of its own: tick() runs the task when it is due,
so tests drive it with a virtual clock and production drives it with
run_forever(). Deployment constraints such as "battery not low" are passed
in as precondition callables.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Generic, Iterable, TypeVar

from common.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

STORY_UPDATE_INTERVAL = timedelta(hours=2)
LOW_BATTERY_PERCENT = 15


class PeriodicTrigger(Generic[T]):
    def __init__(
        self,
        task: Callable[[], T],
        interval: timedelta = STORY_UPDATE_INTERVAL,
        clock: Callable[[], datetime] = utc_now,
        preconditions: Iterable[Callable[[], bool]] = (),
        initial_backoff: timedelta = timedelta(seconds=30),
        max_backoff: timedelta = timedelta(hours=1),
    ) -> None:
        self._task = task
        self._interval = interval
        self._clock = clock
        self._preconditions = list(preconditions)
        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._next_run_at = ensure_utc(clock())
        self._consecutive_failures = 0
        self._lock = threading.Lock()

    @property
    def next_run_at(self) -> datetime:
        return self._next_run_at

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def is_due(self) -> bool:
        return ensure_utc(self._clock()) >= self._next_run_at

    def tick(self) -> bool:
        """Run the task if it is due and preconditions hold. Returns True if it ran."""
        if not self.is_due():
            return False

        for precondition in self._preconditions:
            if not precondition():
                logger.info("Skipping scheduled run: precondition %s not met", getattr(precondition, "__name__", precondition))
                return False

        with self._lock:
            try:
                self._task()
            except Exception:
                self._consecutive_failures += 1
                backoff = min(
                    self._initial_backoff * (2 ** (self._consecutive_failures - 1)),
                    self._max_backoff,
                )
                self._next_run_at = ensure_utc(self._clock()) + backoff
                logger.exception(
                    "Scheduled run failed (%d in a row), retrying in %s",
                    self._consecutive_failures,
                    backoff,
                )
                return True

            self._consecutive_failures = 0
            self._next_run_at = ensure_utc(self._clock()) + self._interval
        logger.info("Next scheduled run at %s", self._next_run_at.isoformat())
        return True

    def run_now(self) -> T:
        """Manual refresh. Runs immediately and leaves the periodic schedule alone.

        Raises:
            MatchingPassFailed: If the run could not be performed.
        """
        logger.info("Manual refresh requested")
        return self._task()

    def run_forever(self, stop_event: threading.Event, poll_seconds: float = 60.0) -> None:
        """Drive tick() until stop_event is set."""
        logger.info("Periodic trigger started (interval=%s)", self._interval)
        while not stop_event.is_set():
            self.tick()
            stop_event.wait(poll_seconds)
        logger.info("Periodic trigger stopped")


def battery_not_low(power_supply_dir: Path = Path("/sys/class/power_supply")) -> bool:
    """False only when a discharging battery reports capacity at or below LOW_BATTERY_PERCENT."""
    if not power_supply_dir.exists():
        return True

    for battery in power_supply_dir.glob("BAT*"):
        try:
            capacity = int((battery / "capacity").read_text().strip())
            status = (battery / "status").read_text().strip().lower()
        except (OSError, ValueError):
            continue
        if status == "discharging" and capacity <= LOW_BATTERY_PERCENT:
            return False
    return True
