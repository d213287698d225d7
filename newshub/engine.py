"""Wiring of the engine components."""

import random
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import httpx
import structlog

from newshub.cache import (
    CacheManager,
    DurableStore,
    InMemoryDurableStore,
    SqliteDurableStore,
)
from newshub.config import (
    EngineConfig,
    SourcesConfig,
    load_engine_config,
    load_sources_config,
)
from newshub.diversity import DiversityEngine
from newshub.models import Category, FetchResult
from newshub.pipeline import CategoryPipeline
from newshub.preload import PreloadScheduler
from newshub.providers import RouteTable
from newshub.ratelimit import WindowRateLimiter
from newshub.resilience import FallbackOrchestrator, RetryPolicy
from newshub.settings import AppSettings


logger = structlog.get_logger()

PROVIDER_WORKERS = 16


@dataclass
class NewsEngine:
    """Constructed engine components with a shared lifecycle.

    Attributes:
        config: Effective engine configuration.
        cache: Two-tier cache shared by orchestrator and scheduler.
        rate_limiter: Per-provider rate limiter.
        orchestrator: Retry and fallback orchestrator.
        pipeline: Category pipeline.
        scheduler: Preload scheduler, the entry point for callers.
    """

    config: EngineConfig
    cache: CacheManager[FetchResult]
    rate_limiter: WindowRateLimiter
    orchestrator: FallbackOrchestrator
    pipeline: CategoryPipeline
    scheduler: PreloadScheduler
    _executors: list[ThreadPoolExecutor] = field(default_factory=list, repr=False)
    _closers: list[Callable[[], None]] = field(default_factory=list, repr=False)
    _closed: bool = field(default=False, repr=False)

    def get_articles(self, category: Category) -> FetchResult:
        """Get ranked articles for a category. Never raises."""
        return self.scheduler.get_articles(category)

    def close(self) -> None:
        """Stop background work and release executors, stores and clients."""
        if self._closed:
            return
        self._closed = True
        self.scheduler.shutdown(wait=True)
        for executor in self._executors:
            executor.shutdown(wait=False, cancel_futures=True)
        self.cache.close()
        for closer in self._closers:
            closer()
        logger.info("engine_closed", component="engine")

    def __enter__(self) -> "NewsEngine":
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


def build_engine(  # noqa: PLR0913
    config: EngineConfig | None = None,
    routes: RouteTable | None = None,
    sources: SourcesConfig | None = None,
    store: DurableStore | None = None,
    http_client: httpx.Client | None = None,
    user_agent: str = "newshub/0.1",
    rng: random.Random | None = None,
    sleep: Callable[[float], None] = time.sleep,
    closers: list[Callable[[], None]] | None = None,
) -> NewsEngine:
    """Construct and wire every engine component once.

    Args:
        config: Engine configuration (defaults when omitted).
        routes: Prepared route table; built from sources when omitted.
        sources: Sources configuration used to build RSS routes.
        store: Durable tier; in-memory when omitted.
        http_client: Shared HTTP client for RSS providers. When omitted and
            routes are built from sources, the engine owns one.
        user_agent: User-Agent of RSS requests.
        rng: Random generator for remixing and refresh jitter.
        sleep: Sleep function used between retries.
        closers: Callbacks run by NewsEngine.close(), e.g. to close a store.

    Returns:
        Wired NewsEngine.
    """
    config = config or EngineConfig()
    rng = rng or random.Random()
    closers = list(closers or [])

    if routes is None:
        if sources is None:
            routes = RouteTable({})
        else:
            if http_client is None:
                http_client = httpx.Client(follow_redirects=True)
                closers.append(http_client.close)
            routes = RouteTable.from_config(
                sources,
                http_client=http_client,
                timeout_s=config.fetch_timeout_ms / 1000.0,
                user_agent=user_agent,
            )

    cache: CacheManager[FetchResult] = CacheManager(
        FetchResult,
        store or InMemoryDurableStore(),
        default_ttl_ms=config.cache_ttl_ms,
        durable_timeout_ms=config.durable_timeout_ms,
    )
    rate_limiter = WindowRateLimiter()

    # Attempts and fan-out calls use separate pools so a primary link
    # waiting on its providers never starves them of workers.
    call_executor = ThreadPoolExecutor(
        max_workers=PROVIDER_WORKERS, thread_name_prefix="provider-call"
    )
    fanout_executor = ThreadPoolExecutor(
        max_workers=PROVIDER_WORKERS, thread_name_prefix="provider-fanout"
    )

    orchestrator = FallbackOrchestrator(
        cache=cache,
        rate_limiter=rate_limiter,
        executor=call_executor,
        retry_policy=RetryPolicy(
            max_retries=config.max_retries,
            delays_ms=tuple(config.retry_delays_ms),
        ),
        fetch_timeout_ms=config.fetch_timeout_ms,
        retry_timeout_ms=config.retry_timeout_ms,
        rate_limit_requests=config.rate_limit_requests_per_window,
        rate_limit_window_ms=config.rate_limit_window_ms,
        failure_log_size=config.failure_log_size,
        sleep=sleep,
    )
    pipeline = CategoryPipeline(
        routes=routes,
        orchestrator=orchestrator,
        diversity=DiversityEngine(rng=rng, default_target=config.default_limit),
        executor=fanout_executor,
        config=config,
    )
    scheduler = PreloadScheduler(pipeline, cache, config, rng=rng)

    logger.info(
        "engine_built",
        component="engine",
        categories=[c.value for c in routes.categories()],
        fetch_timeout_ms=config.fetch_timeout_ms,
        cache_ttl_ms=config.cache_ttl_ms,
    )
    return NewsEngine(
        config=config,
        cache=cache,
        rate_limiter=rate_limiter,
        orchestrator=orchestrator,
        pipeline=pipeline,
        scheduler=scheduler,
        _executors=[call_executor, fanout_executor],
        _closers=closers,
    )


def build_engine_from_settings(settings: AppSettings) -> NewsEngine:
    """Load configuration files named by settings and build the engine.

    Args:
        settings: Application settings.

    Returns:
        Wired NewsEngine.

    Raises:
        ConfigValidationError: If a configuration file is invalid.
    """
    config = EngineConfig()
    if settings.engine_config_path is not None:
        config = load_engine_config(settings.engine_config_path)
    config = settings.apply_to(config)
    sources = load_sources_config(settings.sources_config_path)

    store: DurableStore
    closers: list[Callable[[], None]] = []
    if settings.cache_db_path is not None:
        sqlite_store = SqliteDurableStore(settings.cache_db_path)
        sqlite_store.connect()
        closers.append(sqlite_store.close)
        store = sqlite_store
    else:
        store = InMemoryDurableStore()

    return build_engine(
        config=config,
        sources=sources,
        store=store,
        user_agent=settings.user_agent,
        closers=closers,
    )
