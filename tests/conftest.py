import os

# Settings are read at import time; these must be in place before any
# src.careplan module is imported.
os.environ.setdefault("ENCRYPTION_KEY", "test-master-key")
os.environ.setdefault("DISPATCHER_ENABLED", "false")

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402


class FakeClock:
    """Clock whose time only moves when a test says so."""

    def __init__(self, now: datetime) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs: float) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 10, 14, 30, tzinfo=timezone.utc))
