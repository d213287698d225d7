"""Shared, deterministic timestamps and clocks for tests."""

import threading
from datetime import UTC, datetime, timedelta


# Fixed timestamp to keep recency and age rules deterministic.
FIXED_NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced wall clock.

    Callable like datetime.now(UTC), so it can be injected wherever a
    component takes a clock.
    """

    def __init__(self, start: datetime = FIXED_NOW) -> None:
        self._now = start
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, milliseconds: float) -> None:
        """Move the clock forward."""
        with self._lock:
            self._now += timedelta(milliseconds=milliseconds)


class FakeMonotonic:
    """Manually advanced monotonic clock in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        """Move the clock forward."""
        self.value += seconds
