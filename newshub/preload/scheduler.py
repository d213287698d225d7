"""Background preloading and warm-cache reads for category results."""

import random
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor

import structlog

from newshub.cache import CacheManager
from newshub.config.schemas import EngineConfig
from newshub.models import Category, FetchResult, ResultOrigin
from newshub.observability.logging import bind_request_context, clear_request_context
from newshub.observability.metrics import EngineMetrics
from newshub.pipeline import CategoryPipeline
from newshub.preload.models import CacheStatus, related_categories
from newshub.resilience import CACHED_SUFFIX, OFFLINE_SUFFIX, build_placeholder


logger = structlog.get_logger()

PRELOAD_KEY_PREFIX = "preload:"
RELATED_PRELOAD_DELAY_S = 1.0
REFRESH_JITTER_S = 5.0
DEFAULT_WORKERS = 16


def preload_key(category: Category) -> str:
    """Get the cache key of a category's ranked preload entry."""
    return f"{PRELOAD_KEY_PREFIX}{category.value}"


class PreloadScheduler:
    """Keeps ranked category results warm and serves them to callers.

    Delayed background tasks wait on timers and only reach the scheduler's
    executor when they are due, so pending preloads never hold a worker
    needed by a foreground request. Tasks are tracked so shutdown() can
    cancel or join them. Concurrent requests for the same category share
    a single in-flight fetch.
    """

    def __init__(
        self,
        pipeline: CategoryPipeline,
        cache: CacheManager[FetchResult],
        config: EngineConfig | None = None,
        executor: Executor | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            pipeline: Pipeline producing ranked category results.
            cache: Cache holding the preload entries.
            config: Engine configuration.
            executor: Executor for background and foreground cycles. When
                omitted the scheduler owns one and shuts it down.
            rng: Random generator for refresh jitter.
        """
        self._pipeline = pipeline
        self._cache = cache
        self._config = config or EngineConfig()
        self._owns_executor = executor is None
        self._executor: Executor = executor or ThreadPoolExecutor(
            max_workers=DEFAULT_WORKERS, thread_name_prefix="preload"
        )
        self._rng = rng or random.Random()

        self._stop = threading.Event()
        self._tasks: set[Future[None]] = set()
        self._timers: dict[Future[None], threading.Timer] = {}
        self._tasks_lock = threading.Lock()
        self._flights: dict[Category, Future[FetchResult]] = {}
        self._flights_lock = threading.Lock()
        self._tracked: set[Category] = set()
        self._tracked_lock = threading.Lock()

        self._metrics = EngineMetrics.get_instance()
        self._log = logger.bind(component="preload")

    @property
    def is_stopped(self) -> bool:
        """Check whether shutdown() has been called."""
        return self._stop.is_set()

    def start(self) -> list[Future[None]]:
        """Schedule staggered background preloads.

        Category i of preload_category_order starts after
        i * preload_stagger_ms.

        Returns:
            Futures of the scheduled tasks.
        """
        stagger_s = self._config.preload_stagger_ms / 1000.0
        scheduled = [
            self._schedule(category, i * stagger_s)
            for i, category in enumerate(self._config.preload_category_order)
        ]
        tasks = [f for f in scheduled if f is not None]
        self._log.info(
            "preload_started",
            categories=[c.value for c in self._config.preload_category_order],
            stagger_ms=self._config.preload_stagger_ms,
        )
        return tasks

    def get_articles(self, category: Category) -> FetchResult:
        """Get ranked articles for a category. Never raises.

        A fresh preload entry is returned immediately. Otherwise a fetch
        cycle runs, bounded by caller_timeout_ms; if it times out or only
        produces placeholders the previous ranked entry is served.

        Args:
            category: Category to serve.

        Returns:
            Cached, live, stale or placeholder FetchResult.
        """
        bind_request_context(category.value)
        try:
            entry = self._cache.get(preload_key(category))
            if entry is not None:
                self._log.debug("preload_cache_hit", category=category.value)
                return entry.payload.with_label(CACHED_SUFFIX, ResultOrigin.CACHE)
            return self._fetch_bounded(category)
        except Exception as e:  # noqa: BLE001
            self._log.error(
                "get_articles_failed",
                category=category.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return build_placeholder(category.value)
        finally:
            clear_request_context()

    def refresh(self, category: Category) -> FetchResult:
        """Invalidate a category and fetch it again. Never raises.

        Args:
            category: Category to refresh.

        Returns:
            Result of the new fetch cycle, degraded as in get_articles().
        """
        self._log.info("category_refresh", category=category.value)
        try:
            self._cache.clear(preload_key(category))
            for prefix in self._pipeline.cache_keys(category):
                self._cache.clear(prefix)
            return self._fetch_bounded(category)
        except Exception as e:  # noqa: BLE001
            self._log.error(
                "refresh_failed",
                category=category.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return build_placeholder(category.value)

    def preload_related(self, category: Category) -> list[Category]:
        """Warm categories adjacent to the one being viewed.

        Args:
            category: Category the caller just opened.

        Returns:
            Categories scheduled for preloading.
        """
        scheduled = [
            related
            for related in related_categories(category)
            if self._cache.get(preload_key(related)) is None
            and self._schedule(related, RELATED_PRELOAD_DELAY_S) is not None
        ]
        self._log.debug(
            "related_preload_scheduled",
            category=category.value,
            related=[c.value for c in scheduled],
        )
        return scheduled

    def refresh_all_cached(self) -> list[Category]:
        """Refresh every tracked category in the background with jitter.

        Returns:
            Categories scheduled for refresh.
        """
        with self._tracked_lock:
            categories = sorted(self._tracked, key=_category_order)
        return [
            category
            for category in categories
            if self._schedule(category, self._rng.uniform(0, REFRESH_JITTER_S))
            is not None
        ]

    def status(self) -> dict[Category, CacheStatus]:
        """Get a read-only view of the preloaded categories."""
        now = self._cache.now()
        with self._tracked_lock:
            categories = sorted(self._tracked, key=_category_order)

        rows: dict[Category, CacheStatus] = {}
        for category in categories:
            entry = self._cache.peek(preload_key(category))
            if entry is None:
                continue
            rows[category] = CacheStatus(
                category=category,
                age_seconds=max(0.0, entry.age_ms(now) / 1000.0),
                item_count=len(entry.payload.articles),
                valid=entry.is_fresh(now),
                provider_label=entry.payload.provider_label,
            )
        return rows

    def clear(self) -> None:
        """Drop every preload entry."""
        removed = self._cache.clear(PRELOAD_KEY_PREFIX)
        with self._tracked_lock:
            self._tracked.clear()
        self._log.info("preload_cache_cleared", entries_removed=removed)

    def shutdown(self, wait: bool = True) -> None:
        """Stop background work.

        Pending timers are cancelled along with queued tasks.

        Args:
            wait: Whether to join running tasks.
        """
        self._stop.set()
        with self._tasks_lock:
            tasks = list(self._tasks)
        cancelled = sum(1 for task in tasks if task.cancel())

        if self._owns_executor:
            self._executor.shutdown(wait=wait, cancel_futures=True)
        elif wait:
            for task in tasks:
                if not task.cancelled():
                    task.exception()

        self._log.info(
            "preload_shutdown", tasks_cancelled=cancelled, tasks_total=len(tasks)
        )

    def __enter__(self) -> "PreloadScheduler":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.shutdown(wait=True)

    def _schedule(self, category: Category, delay_s: float) -> Future[None] | None:
        if self._stop.is_set():
            return None

        task: Future[None] = Future()
        with self._tasks_lock:
            self._tasks.add(task)
        if delay_s <= 0:
            task.add_done_callback(self._discard_task)
            self._launch(category, task)
            return task

        timer = threading.Timer(delay_s, self._launch, args=(category, task))
        timer.daemon = True
        with self._tasks_lock:
            self._timers[task] = timer
        task.add_done_callback(self._discard_task)
        timer.start()
        return task

    def _discard_task(self, task: Future[None]) -> None:
        with self._tasks_lock:
            self._tasks.discard(task)
            timer = self._timers.pop(task, None)
        if timer is not None:
            timer.cancel()

    def _launch(self, category: Category, task: Future[None]) -> None:
        if self._stop.is_set():
            task.cancel()
            return
        try:
            self._executor.submit(self._run_background, category, task)
        except RuntimeError:
            self._log.warning("preload_not_scheduled", category=category.value)
            task.cancel()

    def _run_background(self, category: Category, task: Future[None]) -> None:
        # A task cancelled while queued must not start
        if not task.set_running_or_notify_cancel():
            return
        try:
            self._preload(category)
        except Exception as e:  # noqa: BLE001
            task.set_exception(e)
        else:
            task.set_result(None)

    def _preload(self, category: Category) -> None:
        if self._stop.is_set():
            return

        flight, owner = self._join_flight(category)
        if owner:
            self._run_flight(category, flight)
        try:
            result = flight.result(timeout=self._config.caller_timeout_ms / 1000.0)
        except Exception as e:  # noqa: BLE001
            self._log.warning(
                "preload_failed",
                category=category.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return
        self._log.info(
            "preload_complete",
            category=category.value,
            origin=result.origin.value,
            article_count=len(result.articles),
        )

    def _fetch_bounded(self, category: Category) -> FetchResult:
        flight, owner = self._join_flight(category)
        if owner:
            try:
                self._executor.submit(self._run_flight, category, flight)
            except RuntimeError:
                # Executor already shut down; run on the caller's thread
                self._run_flight(category, flight)

        timeout_s = self._config.caller_timeout_ms / 1000.0
        result: FetchResult | None = None
        try:
            result = flight.result(timeout=timeout_s)
        except TimeoutError:
            self._log.warning(
                "caller_timeout",
                category=category.value,
                timeout_ms=self._config.caller_timeout_ms,
            )
        except Exception as e:  # noqa: BLE001
            self._log.warning(
                "fetch_cycle_failed",
                category=category.value,
                error=str(e),
                error_type=type(e).__name__,
            )

        if result is not None and result.origin != ResultOrigin.PLACEHOLDER:
            return result

        stale = self._cache.get_even_if_expired(preload_key(category))
        if stale is not None:
            self._log.info("serving_stale_preload", category=category.value)
            return stale.payload.with_label(OFFLINE_SUFFIX, ResultOrigin.STALE_CACHE)
        return result or build_placeholder(category.value)

    def _join_flight(self, category: Category) -> tuple[Future[FetchResult], bool]:
        with self._flights_lock:
            existing = self._flights.get(category)
            if existing is not None:
                return existing, False
            flight: Future[FetchResult] = Future()
            self._flights[category] = flight
            return flight, True

    def _run_flight(self, category: Category, flight: Future[FetchResult]) -> None:
        try:
            result = self._cycle(category)
        except Exception as e:  # noqa: BLE001
            self._metrics.record_preload(success=False)
            flight.set_exception(e)
        else:
            flight.set_result(result)
        finally:
            with self._flights_lock:
                if self._flights.get(category) is flight:
                    del self._flights[category]

    def _cycle(self, category: Category) -> FetchResult:
        result = self._pipeline.fetch(category, self._config.default_limit)
        if result.origin != ResultOrigin.LIVE:
            self._metrics.record_preload(success=False)
            self._log.info(
                "preload_degraded",
                category=category.value,
                origin=result.origin.value,
                provider_label=result.provider_label,
            )
            return result

        self._cache.set(preload_key(category), result, self._config.cache_ttl_ms)
        with self._tracked_lock:
            self._tracked.add(category)
        self._metrics.record_preload(success=True)
        return result


def _category_order(category: Category) -> int:
    return list(Category).index(category)
