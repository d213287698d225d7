"""Two-tier cache: in-memory map mirrored to a durable store."""

import threading
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from datetime import UTC, datetime
from typing import Generic, TypeVar

import structlog
from pydantic import ValidationError

from newshub.cache.models import CacheEntry
from newshub.cache.store import DurableStore
from newshub.observability.metrics import EngineMetrics


logger = structlog.get_logger()

T = TypeVar("T")

DURABLE_KEY_PREFIX = "news_cache_"
DEFAULT_TTL_MS = 15 * 60 * 1000
DEFAULT_DURABLE_TIMEOUT_MS = 3000


def _utc_now() -> datetime:
    return datetime.now(UTC)


class CacheManager(Generic[T]):
    """In-memory cache with asynchronous mirroring to a durable store.

    Reads:
    - get: fresh entries only; a memory miss lazily loads from the durable
      tier, bounded by the durable timeout
    - get_even_if_expired: memory lookup without a freshness check
    - get_durable: durable lookup without a freshness check

    Writes go to memory synchronously and to the durable tier on the
    executor. Durable failures are logged and never propagate.
    """

    def __init__(
        self,
        payload_type: type[T],
        store: DurableStore,
        executor: Executor | None = None,
        default_ttl_ms: int = DEFAULT_TTL_MS,
        durable_timeout_ms: int = DEFAULT_DURABLE_TIMEOUT_MS,
        clock: Callable[[], datetime] = _utc_now,
        key_prefix: str = DURABLE_KEY_PREFIX,
    ) -> None:
        """Initialize the cache manager.

        Args:
            payload_type: Type of cached payloads (used for deserialization).
            store: Durable tier.
            executor: Executor for durable operations. When omitted the
                manager owns a small pool and shuts it down in close().
            default_ttl_ms: TTL applied when set() gets none.
            durable_timeout_ms: Upper bound for a durable read or clear.
            clock: Returns the current time (injectable for tests).
            key_prefix: Namespace prepended to durable keys.
        """
        entry_type = CacheEntry[payload_type]  # type: ignore[valid-type]
        self._entry_type: type[CacheEntry[T]] = entry_type
        self._store = store
        self._owns_executor = executor is None
        self._executor: Executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="cache-durable"
        )
        self._default_ttl_ms = default_ttl_ms
        self._durable_timeout_s = durable_timeout_ms / 1000.0
        self._clock = clock
        self._key_prefix = key_prefix

        self._entries: dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()
        self._pending: set[Future[None]] = set()
        self._pending_lock = threading.Lock()

        self._metrics = EngineMetrics.get_instance()
        self._log = logger.bind(component="cache")

    @property
    def default_ttl_ms(self) -> int:
        """Get the TTL applied when set() receives none."""
        return self._default_ttl_ms

    def now(self) -> datetime:
        """Get the current time from the manager's clock."""
        return self._clock()

    def durable_key(self, key: str) -> str:
        """Get the namespaced durable key for a cache key."""
        return f"{self._key_prefix}{key}"

    def get(self, key: str) -> CacheEntry[T] | None:
        """Get an entry if it is fresh.

        An expired in-memory entry is reported as absent but kept for
        get_even_if_expired().

        Args:
            key: Cache key.

        Returns:
            Fresh entry, or None.
        """
        with self._lock:
            entry = self._entries.get(key)

        if entry is None:
            entry = self._load_durable(key)
            if entry is not None:
                with self._lock:
                    # A concurrent set() wins over the loaded copy
                    entry = self._entries.setdefault(key, entry)
                self._log.debug("cache_entry_loaded", key=key)

        if entry is not None and entry.is_fresh(self._clock()):
            self._metrics.record_cache_hit()
            return entry

        self._metrics.record_cache_miss()
        return None

    def get_even_if_expired(self, key: str) -> CacheEntry[T] | None:
        """Get an in-memory entry regardless of its age.

        Args:
            key: Cache key.

        Returns:
            Entry, or None if memory holds nothing for the key.
        """
        with self._lock:
            entry = self._entries.get(key)
        if entry is not None and not entry.is_fresh(self._clock()):
            self._metrics.record_stale_read()
        return entry

    def peek(self, key: str) -> CacheEntry[T] | None:
        """Get an in-memory entry without touching metrics or the durable tier."""
        with self._lock:
            return self._entries.get(key)

    def get_durable(self, key: str) -> CacheEntry[T] | None:
        """Get an entry straight from the durable tier regardless of its age.

        Args:
            key: Cache key.

        Returns:
            Entry, or None if the durable tier is empty, slow or failing.
        """
        entry = self._load_durable(key)
        if entry is not None:
            self._metrics.record_durable_read()
        return entry

    def set(self, key: str, payload: T, ttl_ms: int | None = None) -> CacheEntry[T]:
        """Store a payload in memory and mirror it to the durable tier.

        Args:
            key: Cache key.
            payload: Value to cache.
            ttl_ms: TTL override in milliseconds.

        Returns:
            The stored entry.
        """
        entry = self._entry_type(
            payload=payload,
            written_at=self._clock(),
            ttl_ms=self._default_ttl_ms if ttl_ms is None else ttl_ms,
        )
        with self._lock:
            self._entries[key] = entry

        data = entry.model_dump_json().encode("utf-8")
        try:
            future = self._executor.submit(self._write_durable, key, data)
        except RuntimeError:
            self._log.warning("durable_write_not_scheduled", key=key)
            self._metrics.record_durable_write_failure()
            return entry

        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._discard_pending)
        return entry

    def clear(self, prefix: str | None = None) -> int:
        """Evict entries from both tiers.

        Args:
            prefix: Only evict keys starting with this prefix; None evicts all.

        Returns:
            Number of in-memory entries removed.
        """
        with self._lock:
            if prefix is None:
                removed = len(self._entries)
                self._entries.clear()
            else:
                matching = [k for k in self._entries if k.startswith(prefix)]
                for k in matching:
                    del self._entries[k]
                removed = len(matching)

        durable_prefix = self.durable_key(prefix or "")
        try:
            future = self._executor.submit(self._clear_durable, durable_prefix)
            future.result(timeout=self._durable_timeout_s)
        except TimeoutError:
            self._log.warning("durable_clear_timeout", prefix=durable_prefix)
        except RuntimeError:
            self._log.warning("durable_clear_not_scheduled", prefix=durable_prefix)

        self._log.info("cache_cleared", prefix=prefix, entries_removed=removed)
        return removed

    def keys(self) -> list[str]:
        """Get a snapshot of in-memory keys."""
        with self._lock:
            return list(self._entries)

    def flush(self, timeout: float | None = None) -> bool:
        """Wait for pending durable writes.

        Args:
            timeout: Maximum seconds to wait; None waits indefinitely.

        Returns:
            True if every pending write finished.
        """
        with self._pending_lock:
            pending = set(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def close(self) -> None:
        """Flush pending writes and release an owned executor."""
        self.flush(timeout=self._durable_timeout_s)
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "CacheManager[T]":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _discard_pending(self, future: Future[None]) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _write_durable(self, key: str, data: bytes) -> None:
        try:
            self._store.set(self.durable_key(key), data)
        except Exception as e:  # noqa: BLE001
            self._metrics.record_durable_write_failure()
            self._log.warning(
                "durable_write_failed",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )

    def _clear_durable(self, durable_prefix: str) -> None:
        try:
            for durable_key in self._store.keys_with_prefix(durable_prefix):
                self._store.remove(durable_key)
        except Exception as e:  # noqa: BLE001
            self._log.warning(
                "durable_clear_failed",
                prefix=durable_prefix,
                error=str(e),
                error_type=type(e).__name__,
            )

    def _read_durable(self, key: str) -> bytes | None:
        return self._store.get(self.durable_key(key))

    def _load_durable(self, key: str) -> CacheEntry[T] | None:
        try:
            future = self._executor.submit(self._read_durable, key)
        except RuntimeError:
            return None

        try:
            raw = future.result(timeout=self._durable_timeout_s)
        except TimeoutError:
            future.cancel()
            self._log.warning(
                "durable_read_timeout",
                key=key,
                timeout_s=self._durable_timeout_s,
            )
            return None
        except Exception as e:  # noqa: BLE001
            self._log.warning(
                "durable_read_failed",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        if raw is None:
            return None

        try:
            return self._entry_type.model_validate_json(raw)
        except ValidationError as e:
            self._log.warning(
                "durable_entry_corrupt",
                key=key,
                error_count=e.error_count(),
            )
            return None
