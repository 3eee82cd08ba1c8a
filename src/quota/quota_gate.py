"""Remote-call quota shared by the fetch and embedding producers.

The in-memory snapshot is authoritative and is read synchronously by
I/O-layer code before every remote call. Every change is mirrored to a JSON
file by a single background writer, and the file is read exactly once, when
the gate is created. The matching engine never consults the gate.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable

from common.config import QuotaConfig
from common.datetime import ensure_utc, parse_datetime, utc_now
from common.local_io import read_json_local, write_json_local

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 3600


class RateLimited(Exception):
    """A remote call was refused because the quota is exhausted."""


@dataclass(frozen=True)
class QuotaState:
    """Snapshot of the quota. None means unknown."""

    rate_limited_until: datetime | None = None
    remaining: int | None = None

    def to_dict(self) -> dict:
        return {
            "rate_limited_until": self.rate_limited_until.isoformat() if self.rate_limited_until else None,
            "remaining": self.remaining,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QuotaState":
        until = data.get("rate_limited_until")
        remaining = data.get("remaining")
        return cls(
            rate_limited_until=parse_datetime(until) if until else None,
            remaining=int(remaining) if remaining is not None and int(remaining) >= 0 else None,
        )


class QuotaGate:
    def __init__(
        self,
        state_path: str | Path,
        clock: Callable[[], datetime] = utc_now,
        default_retry_after_seconds: int = DEFAULT_RETRY_AFTER_SECONDS,
    ) -> None:
        self._state_path = Path(state_path)
        self._clock = clock
        self._default_retry_after = default_retry_after_seconds
        self._lock = threading.Lock()
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="quota-writer")
        self._pending: Future | None = None
        self._state = self._load()
        logger.debug(
            "Quota gate initialized: rate_limited_until=%s remaining=%s",
            self._state.rate_limited_until,
            self._state.remaining,
        )

    def _load(self) -> QuotaState:
        try:
            data = read_json_local(self._state_path)
            return QuotaState.from_dict(data) if data else QuotaState()
        except (OSError, ValueError, TypeError, KeyError, AttributeError):
            logger.warning("Unreadable quota state at %s, starting unknown", self._state_path, exc_info=True)
            return QuotaState()

    @property
    def state(self) -> QuotaState:
        with self._lock:
            return self._state

    def is_rate_limited(self) -> bool:
        until = self.state.rate_limited_until
        if until is None:
            return False
        limited = ensure_utc(self._clock()) < until
        if limited:
            logger.debug("Rate limited until %s", until.isoformat())
        return limited

    def remaining(self) -> int | None:
        """Remaining calls, or None when unknown."""
        return self.state.remaining

    def check(self) -> None:
        """Gate a remote call.

        Raises:
            RateLimited: If calls are currently refused.
        """
        if self.is_rate_limited():
            raise RateLimited(
                f"API quota exceeded, retry in {self.rate_limit_minutes_remaining()} minutes"
            )

    def rate_limit_minutes_remaining(self) -> int:
        until = self.state.rate_limited_until
        if until is None:
            return 0
        remaining = until - ensure_utc(self._clock())
        if remaining <= timedelta(0):
            return 0
        return max(1, int(remaining.total_seconds() // 60))

    def set_rate_limited(self, until: datetime) -> None:
        self._update(rate_limited_until=ensure_utc(until))

    def record_rate_limit_response(self, retry_after_seconds: int | None = None) -> datetime:
        """Record a 429 response. Returns the time calls may resume."""
        seconds = retry_after_seconds if retry_after_seconds is not None else self._default_retry_after
        until = ensure_utc(self._clock()) + timedelta(seconds=seconds)
        self.set_rate_limited(until)
        logger.warning("Rate limited for %ds (until %s)", seconds, until.isoformat())
        return until

    def update_remaining(self, remaining: int) -> None:
        self._update(remaining=remaining if remaining >= 0 else None)

    def clear(self) -> None:
        with self._lock:
            self._state = QuotaState()
            self._persist()

    def _update(self, **changes) -> None:
        with self._lock:
            self._state = QuotaState(
                rate_limited_until=changes.get("rate_limited_until", self._state.rate_limited_until),
                remaining=changes.get("remaining", self._state.remaining),
            )
            self._persist()

    def _persist(self) -> None:
        self._pending = self._writer.submit(self._write)

    def _write(self) -> None:
        try:
            write_json_local(self.state.to_dict(), self._state_path)
        except OSError:
            logger.exception("Failed to persist quota state to %s", self._state_path)

    def flush(self) -> None:
        """Block until pending writes have reached disk."""
        pending = self._pending
        if pending is not None:
            pending.result()

    def close(self) -> None:
        self._writer.shutdown(wait=True)


def open_quota_gate(config: QuotaConfig) -> QuotaGate:
    return QuotaGate(config.state_path, default_retry_after_seconds=config.default_retry_after_seconds)
