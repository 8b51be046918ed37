from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """Source of the current time.

    Services take a clock instead of calling ``datetime.now`` so that tests
    can control time without waiting on the wall clock.
    """

    def now(self) -> datetime:  # pragma: no cover - interface
        raise NotImplementedError


class SystemClock:
    """Wall-clock time as a timezone-aware UTC datetime."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


system_clock = SystemClock()
