"""Metrics collection for the resilience engine."""

import threading
from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class EngineMetrics:
    """Counters for cache, retry, fallback and preload activity.

    Singleton registry shared by the engine components. Counters are
    guarded by a lock because components update them from worker threads.
    """

    cache_hits_total: int = 0
    cache_misses_total: int = 0
    cache_stale_reads_total: int = 0
    cache_durable_reads_total: int = 0
    cache_durable_write_failures_total: int = 0
    retries_total: int = 0
    fallbacks_used_total: int = 0
    rate_limit_denials_total: dict[str, int] = field(default_factory=dict)
    provider_failures_total: dict[str, int] = field(default_factory=dict)
    placeholders_served_total: int = 0
    preloads_completed_total: int = 0
    preloads_failed_total: int = 0

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    _instance: ClassVar["EngineMetrics | None"] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    @classmethod
    def get_instance(cls) -> "EngineMetrics":
        """Get singleton metrics instance."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        with cls._instance_lock:
            cls._instance = None

    def record_cache_hit(self) -> None:
        """Record a fresh cache read."""
        with self._lock:
            self.cache_hits_total += 1

    def record_cache_miss(self) -> None:
        """Record a cache miss."""
        with self._lock:
            self.cache_misses_total += 1

    def record_stale_read(self) -> None:
        """Record a read of an expired in-memory entry."""
        with self._lock:
            self.cache_stale_reads_total += 1

    def record_durable_read(self) -> None:
        """Record a last-resort read from the durable tier."""
        with self._lock:
            self.cache_durable_reads_total += 1

    def record_durable_write_failure(self) -> None:
        """Record a failed mirror write to the durable tier."""
        with self._lock:
            self.cache_durable_write_failures_total += 1

    def record_retry(self) -> None:
        """Record a retry attempt."""
        with self._lock:
            self.retries_total += 1

    def record_fallback_used(self) -> None:
        """Record a result served by a fallback provider."""
        with self._lock:
            self.fallbacks_used_total += 1

    def record_rate_limit_denial(self, provider_key: str) -> None:
        """Record a call skipped by the rate limiter.

        Args:
            provider_key: Rate-limit key that was denied.
        """
        with self._lock:
            self.rate_limit_denials_total[provider_key] = (
                self.rate_limit_denials_total.get(provider_key, 0) + 1
            )

    def record_provider_failure(self, error_kind: str) -> None:
        """Record a failed provider call.

        Args:
            error_kind: Classification of the failure.
        """
        with self._lock:
            self.provider_failures_total[error_kind] = (
                self.provider_failures_total.get(error_kind, 0) + 1
            )

    def record_placeholder(self) -> None:
        """Record a synthetic placeholder result."""
        with self._lock:
            self.placeholders_served_total += 1

    def record_preload(self, success: bool) -> None:
        """Record a finished background preload.

        Args:
            success: Whether the preload produced live content.
        """
        with self._lock:
            if success:
                self.preloads_completed_total += 1
            else:
                self.preloads_failed_total += 1

    def to_dict(self) -> dict[str, int | dict[str, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        with self._lock:
            return {
                "cache_hits_total": self.cache_hits_total,
                "cache_misses_total": self.cache_misses_total,
                "cache_stale_reads_total": self.cache_stale_reads_total,
                "cache_durable_reads_total": self.cache_durable_reads_total,
                "cache_durable_write_failures_total": (
                    self.cache_durable_write_failures_total
                ),
                "retries_total": self.retries_total,
                "fallbacks_used_total": self.fallbacks_used_total,
                "rate_limit_denials_total": dict(self.rate_limit_denials_total),
                "provider_failures_total": dict(self.provider_failures_total),
                "placeholders_served_total": self.placeholders_served_total,
                "preloads_completed_total": self.preloads_completed_total,
                "preloads_failed_total": self.preloads_failed_total,
            }
