"""Category pipeline: provider fan-out, merge, rank and fallback."""

import itertools
from collections.abc import Callable
from concurrent.futures import Executor, Future, wait
from datetime import UTC, datetime

import structlog

from newshub.config.schemas import EngineConfig
from newshub.diversity import DiversityEngine
from newshub.models import Category, FetchResult
from newshub.providers.base import Provider
from newshub.providers.routes import CategoryRoute, RouteTable
from newshub.quality import filter_articles
from newshub.ranking import PopularityScorer
from newshub.resilience import (
    FallbackOrchestrator,
    ProviderCall,
    ProviderError,
    ProviderErrorKind,
)


logger = structlog.get_logger()

CACHE_KEY_PREFIX = "category"
# Left for merging and ranking inside the orchestrator's attempt timeout
FANOUT_MARGIN_MS = 250


def cache_key_for(category: Category, limit: int) -> str:
    """Get the cache key of a category request."""
    return f"{CACHE_KEY_PREFIX}:{category.value}:{limit}"


def _utc_now() -> datetime:
    return datetime.now(UTC)


class CategoryPipeline:
    """Fetches one category through its fallback chain.

    The primary link fans out to every primary provider in parallel and
    merges the batches; each fallback provider is a link of its own.
    Results are deduplicated, diversified and ranked before the
    orchestrator caches them.
    """

    def __init__(  # noqa: PLR0913
        self,
        routes: RouteTable,
        orchestrator: FallbackOrchestrator,
        diversity: DiversityEngine,
        executor: Executor,
        config: EngineConfig | None = None,
        scorer_factory: Callable[[], PopularityScorer] = PopularityScorer,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the pipeline.

        Args:
            routes: Provider routes per category.
            orchestrator: Runs the fallback chain.
            diversity: Merges provider batches.
            executor: Executor for provider fan-out; must not be the
                orchestrator's executor.
            config: Engine configuration.
            scorer_factory: Builds a scorer per ranking pass.
            clock: Returns the current time (quality filter reference).
        """
        self._routes = routes
        self._orchestrator = orchestrator
        self._diversity = diversity
        self._executor = executor
        self._config = config or EngineConfig()
        self._scorer_factory = scorer_factory
        self._clock = clock
        self._log = logger.bind(component="pipeline")

    @property
    def routes(self) -> RouteTable:
        """Get the route table."""
        return self._routes

    def cache_key(self, category: Category, limit: int | None = None) -> str:
        """Get the cache key used for a category request."""
        return cache_key_for(category, limit or self._config.default_limit)

    def cache_keys(self, category: Category) -> list[str]:
        """Get the cache key prefixes to invalidate for a category."""
        return [f"{CACHE_KEY_PREFIX}:{category.value}:"]

    def fetch(self, category: Category, limit: int | None = None) -> FetchResult:
        """Fetch, merge and rank a category. Never raises.

        Args:
            category: Category to fetch.
            limit: Maximum number of articles (default from config).

        Returns:
            Ranked FetchResult, or a degraded one from cache or placeholder.
        """
        limit = limit or self._config.default_limit
        cache_key = cache_key_for(category, limit)
        route = self._routes.route_for(category)

        if route is None:
            self._log.warning("route_missing", category=category.value)
            label = category.value
            primary = ProviderCall(label=label, call=lambda: self._no_route(label))
            return self._orchestrator.execute_with_fallback(
                primary, [], cache_key, label
            )

        label = " + ".join(p.name for p in route.primary)
        primary = ProviderCall(
            label=label, call=self._primary_link(route, category, limit, label)
        )
        fallbacks = [
            ProviderCall(
                label=p.name,
                call=self._fallback_link(p, category, limit, route.remix),
            )
            for p in route.fallbacks
        ]

        self._log.info(
            "category_fetch_started",
            category=category.value,
            limit=limit,
            primary_count=len(route.primary),
            fallback_count=len(fallbacks),
        )
        result = self._orchestrator.execute_with_fallback(
            primary, fallbacks, cache_key, label
        )
        self._log.info(
            "category_fetch_complete",
            category=category.value,
            provider_label=result.provider_label,
            origin=result.origin.value,
            article_count=len(result.articles),
        )
        return result

    def _no_route(self, label: str) -> FetchResult:
        raise ProviderError(
            ProviderErrorKind.NETWORK, "No providers configured", provider=label
        )

    def _primary_link(
        self, route: CategoryRoute, category: Category, limit: int, label: str
    ) -> Callable[[], FetchResult]:
        attempts = itertools.count()

        def run() -> FetchResult:
            budget_ms = (
                self._config.fetch_timeout_ms
                if next(attempts) == 0
                else self._config.retry_timeout_ms
            )
            return self._fan_out(route, category, limit, label, budget_ms)

        return run

    def _fallback_link(
        self, provider: Provider, category: Category, limit: int, remix: bool
    ) -> Callable[[], FetchResult]:
        def run() -> FetchResult:
            batch = self._apply_quality(provider.fetch(category, limit))
            if batch.is_empty:
                return batch
            merged = self._diversity.merge(
                [batch], target_count=limit, label=batch.provider_label, remix=remix
            )
            return self._rank(merged, category)

        return run

    def _fan_out(  # noqa: PLR0913
        self,
        route: CategoryRoute,
        category: Category,
        limit: int,
        label: str,
        budget_ms: int,
    ) -> FetchResult:
        wait_ms = max(budget_ms - FANOUT_MARGIN_MS, budget_ms // 2)
        futures: list[tuple[Provider, Future[FetchResult]]] = [
            (p, self._executor.submit(p.fetch, category, limit)) for p in route.primary
        ]
        wait([f for _, f in futures], timeout=wait_ms / 1000.0)

        batches: list[FetchResult] = []
        for provider, future in futures:
            if not future.done():
                future.cancel()
                self._log.warning(
                    "provider_fanout_timeout",
                    provider=provider.name,
                    timeout_ms=wait_ms,
                )
                continue
            try:
                batch = future.result()
            except Exception as e:  # noqa: BLE001
                self._log.warning(
                    "provider_fanout_failed",
                    provider=provider.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue
            batch = self._apply_quality(batch)
            if not batch.is_empty:
                batches.append(batch)

        if not batches:
            raise ProviderError(
                ProviderErrorKind.NETWORK,
                "No primary provider returned articles",
                provider=label,
            )

        merged = self._diversity.merge(batches, target_count=limit, remix=route.remix)
        return self._rank(merged, category)

    def _apply_quality(self, batch: FetchResult) -> FetchResult:
        if not self._config.quality_filter_enabled:
            return batch
        kept = filter_articles(
            batch.articles, self._clock(), self._config.max_article_age_days
        )
        return batch.model_copy(update={"articles": tuple(kept)})

    def _rank(self, result: FetchResult, category: Category) -> FetchResult:
        ranked = self._scorer_factory().rank(list(result.articles), category)
        return result.model_copy(update={"articles": tuple(ranked)})
