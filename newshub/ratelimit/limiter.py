"""Fixed-window rate limiter for provider calls."""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol


class RateLimiterProtocol(Protocol):
    """Protocol for rate limiters.

    Allows dependency injection of rate limiter for testing.
    """

    def allow(self, provider_key: str, max_requests: int, window_ms: int) -> bool:
        """Check and consume one request slot for a provider.

        Args:
            provider_key: Key identifying the provider.
            max_requests: Maximum requests per window.
            window_ms: Window length in milliseconds.

        Returns:
            True if the call may proceed, False if the window is full.
        """
        ...


@dataclass
class RateLimitWindow:
    """Counter state for one provider key.

    Attributes:
        count: Requests admitted in the current window.
        window_reset_at: Clock value after which the window restarts.
    """

    count: int
    window_reset_at: float


@dataclass
class WindowRateLimiter:
    """Per-provider request counter with a fixed reset window.

    A window starts on the first request for a key and lasts window_ms.
    Once the clock passes window_reset_at the counter starts from zero.
    Denials never touch the counter.

    Thread-safe implementation for use from the orchestrator's workers.

    Attributes:
        clock: Monotonic clock in seconds (injectable for tests).
    """

    clock: Callable[[], float] = time.monotonic

    _windows: dict[str, RateLimitWindow] = field(init=False, default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _denied_count: int = field(init=False, default=0)

    def allow(self, provider_key: str, max_requests: int, window_ms: int) -> bool:
        """Check and consume one request slot for a provider.

        Args:
            provider_key: Key identifying the provider.
            max_requests: Maximum requests per window.
            window_ms: Window length in milliseconds.

        Returns:
            True if the call may proceed, False if the window is full.
        """
        now = self.clock()
        with self._lock:
            window = self._windows.get(provider_key)
            if window is None or now > window.window_reset_at:
                window = RateLimitWindow(
                    count=0, window_reset_at=now + window_ms / 1000.0
                )
                self._windows[provider_key] = window

            if window.count >= max_requests:
                self._denied_count += 1
                return False

            window.count += 1
            return True

    def remaining(self, provider_key: str, max_requests: int) -> int:
        """Get the number of calls still admitted in the current window.

        Args:
            provider_key: Key identifying the provider.
            max_requests: Maximum requests per window.

        Returns:
            Remaining request slots.
        """
        now = self.clock()
        with self._lock:
            window = self._windows.get(provider_key)
            if window is None or now > window.window_reset_at:
                return max_requests
            return max(0, max_requests - window.count)

    def snapshot(self, provider_key: str) -> RateLimitWindow | None:
        """Get a copy of the window state for a key."""
        with self._lock:
            window = self._windows.get(provider_key)
            if window is None:
                return None
            return RateLimitWindow(
                count=window.count, window_reset_at=window.window_reset_at
            )

    @property
    def denied_count(self) -> int:
        """Get the number of denied calls since creation."""
        with self._lock:
            return self._denied_count

    def reset(self, provider_key: str | None = None) -> None:
        """Drop window state for one key, or for every key.

        Args:
            provider_key: Key to reset; None resets all keys.
        """
        with self._lock:
            if provider_key is None:
                self._windows.clear()
                self._denied_count = 0
            else:
                self._windows.pop(provider_key, None)
