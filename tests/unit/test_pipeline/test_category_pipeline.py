"""Unit tests for the category pipeline."""

import random
from collections.abc import Callable, Generator
from concurrent.futures import ThreadPoolExecutor

import pytest

from newshub.cache import CacheManager, InMemoryDurableStore
from newshub.config import EngineConfig
from newshub.diversity import DiversityEngine
from newshub.models import Category, FetchResult, ResultOrigin
from newshub.observability.metrics import EngineMetrics
from newshub.pipeline import CategoryPipeline, cache_key_for
from newshub.providers import CategoryRoute, RouteTable
from newshub.ranking import RankedArticle
from newshub.ratelimit import WindowRateLimiter
from newshub.resilience import (
    FallbackOrchestrator,
    ProviderError,
    ProviderErrorKind,
    RetryPolicy,
)
from tests.helpers.articles import FakeProvider, make_article, make_batch
from tests.helpers.time import FIXED_NOW


PipelineFactory = Callable[..., CategoryPipeline]


@pytest.fixture(autouse=True)
def reset_metrics() -> None:
    """Start every test with fresh metrics."""
    EngineMetrics.reset()


@pytest.fixture
def cache() -> Generator[CacheManager[FetchResult]]:
    """Create an in-memory cache."""
    manager: CacheManager[FetchResult] = CacheManager(
        FetchResult, InMemoryDurableStore()
    )
    yield manager
    manager.close()


@pytest.fixture
def build_pipeline(
    cache: CacheManager[FetchResult],
) -> Generator[PipelineFactory]:
    """Create a factory for pipelines over the given routes."""
    call_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="test-calls")
    fanout_pool = ThreadPoolExecutor(max_workers=8, thread_name_prefix="test-fanout")

    def factory(
        routes: dict[Category, CategoryRoute],
        config: EngineConfig | None = None,
    ) -> CategoryPipeline:
        config = config or EngineConfig()
        orchestrator = FallbackOrchestrator(
            cache=cache,
            rate_limiter=WindowRateLimiter(),
            executor=call_pool,
            retry_policy=RetryPolicy(max_retries=0),
            fetch_timeout_ms=config.fetch_timeout_ms,
            retry_timeout_ms=config.retry_timeout_ms,
            sleep=lambda _: None,
        )
        return CategoryPipeline(
            routes=RouteTable(routes),
            orchestrator=orchestrator,
            diversity=DiversityEngine(rng=random.Random(0)),
            executor=fanout_pool,
            config=config,
            clock=lambda: FIXED_NOW,
        )

    yield factory
    call_pool.shutdown(wait=False, cancel_futures=True)
    fanout_pool.shutdown(wait=False, cancel_futures=True)


def _provider(label: str, count: int) -> FakeProvider:
    return FakeProvider(label, [list(make_batch(label, count).articles)])


class TestFanOut:
    """Tests for the parallel primary tier."""

    @pytest.mark.unit
    def test_primaries_merged_and_ranked(
        self,
        build_pipeline: PipelineFactory,
        cache: CacheManager[FetchResult],
    ) -> None:
        """Test every primary contributes and the result is ranked and cached."""
        pipeline = build_pipeline(
            {
                Category.TECH: CategoryRoute(
                    primary=(_provider("alpha", 3), _provider("bravo", 3))
                )
            }
        )

        result = pipeline.fetch(Category.TECH, limit=10)

        assert result.provider_label == "alpha + bravo"
        assert result.origin == ResultOrigin.LIVE
        assert len(result.articles) == 6
        ranked = [a for a in result.articles if isinstance(a, RankedArticle)]
        assert len(ranked) == 6
        scores = [a.popularity.overall_score for a in ranked]
        assert scores == sorted(scores, reverse=True)
        assert cache.get(cache_key_for(Category.TECH, 10)) is not None

    @pytest.mark.unit
    def test_limit_and_cross_provider_duplicates(
        self, build_pipeline: PipelineFactory
    ) -> None:
        """Test duplicates across providers collapse and the limit holds."""
        shared = "Parliament Winter Session Begins"
        alpha = FakeProvider(
            "alpha",
            [[make_article(shared, source="alpha"), *make_batch("alpha", 2).articles]],
        )
        bravo = FakeProvider(
            "bravo",
            [[make_article(shared, source="bravo"), *make_batch("bravo", 2).articles]],
        )
        route = CategoryRoute(primary=(alpha, bravo))
        pipeline = build_pipeline({Category.TECH: route})

        full = pipeline.fetch(Category.TECH, limit=10)
        limited = pipeline.fetch(Category.TECH, limit=3)

        assert len(full.articles) == 5
        assert [a.title for a in full.articles].count(shared) == 1
        assert len(limited.articles) == 3
        assert limited.has_more

    @pytest.mark.unit
    def test_failing_sibling_is_skipped(self, build_pipeline: PipelineFactory) -> None:
        """Test one failing primary does not fail the tier."""
        broken = FakeProvider(
            "alpha", [ProviderError(ProviderErrorKind.NETWORK, "connection reset")]
        )
        pipeline = build_pipeline(
            {Category.TECH: CategoryRoute(primary=(broken, _provider("bravo", 4)))}
        )

        result = pipeline.fetch(Category.TECH, limit=10)

        assert result.origin == ResultOrigin.LIVE
        assert result.provider_label == "bravo"
        assert len(result.articles) == 4

    @pytest.mark.unit
    def test_slow_sibling_is_abandoned(self, build_pipeline: PipelineFactory) -> None:
        """Test a slow primary is dropped when the fan-out budget runs out."""
        slow = FakeProvider("bravo", [list(make_batch("bravo", 3).articles)], 5.0)
        pipeline = build_pipeline(
            {Category.TECH: CategoryRoute(primary=(_provider("alpha", 2), slow))},
            EngineConfig(fetch_timeout_ms=600),
        )

        try:
            result = pipeline.fetch(Category.TECH, limit=10)
        finally:
            slow.release()

        assert result.origin == ResultOrigin.LIVE
        assert result.provider_label == "alpha"
        assert len(result.articles) == 2

    @pytest.mark.unit
    def test_quality_filter_applied(self, build_pipeline: PipelineFactory) -> None:
        """Test low-quality articles are dropped before merging."""
        provider = FakeProvider(
            "alpha",
            [[*make_batch("alpha", 2).articles, make_article("Short", source="alpha")]],
        )
        pipeline = build_pipeline({Category.TECH: CategoryRoute(primary=(provider,))})

        result = pipeline.fetch(Category.TECH, limit=10)

        assert len(result.articles) == 2
        assert "Short" not in [a.title for a in result.articles]

    @pytest.mark.unit
    def test_quality_filter_can_be_disabled(
        self, build_pipeline: PipelineFactory
    ) -> None:
        """Test the filter is skipped when disabled."""
        provider = FakeProvider(
            "alpha",
            [[*make_batch("alpha", 2).articles, make_article("Short", source="alpha")]],
        )
        pipeline = build_pipeline(
            {Category.TECH: CategoryRoute(primary=(provider,))},
            EngineConfig(quality_filter_enabled=False),
        )

        result = pipeline.fetch(Category.TECH, limit=10)

        assert len(result.articles) == 3


class TestFallbacks:
    """Tests for fallback providers and missing routes."""

    @pytest.mark.unit
    def test_fallback_provider_used(self, build_pipeline: PipelineFactory) -> None:
        """Test fallbacks answer when every primary fails."""
        broken = FakeProvider(
            "alpha", [ProviderError(ProviderErrorKind.MALFORMED, "bad feed")]
        )
        fallback = _provider("charlie", 3)
        pipeline = build_pipeline(
            {Category.TECH: CategoryRoute(primary=(broken,), fallbacks=(fallback,))}
        )

        result = pipeline.fetch(Category.TECH, limit=10)

        assert result.provider_label == "charlie"
        assert len(result.articles) == 3
        assert all(isinstance(a, RankedArticle) for a in result.articles)
        assert EngineMetrics.get_instance().fallbacks_used_total == 1

    @pytest.mark.unit
    def test_empty_fallback_is_skipped(self, build_pipeline: PipelineFactory) -> None:
        """Test an empty fallback batch moves on to the next fallback."""
        broken = FakeProvider(
            "alpha", [ProviderError(ProviderErrorKind.MALFORMED, "bad feed")]
        )
        empty = FakeProvider("bravo", [[]])
        pipeline = build_pipeline(
            {
                Category.TECH: CategoryRoute(
                    primary=(broken,), fallbacks=(empty, _provider("charlie", 2))
                )
            }
        )

        result = pipeline.fetch(Category.TECH, limit=10)

        assert empty.calls == 1
        assert result.provider_label == "charlie"

    @pytest.mark.unit
    def test_missing_route_serves_placeholder(
        self, build_pipeline: PipelineFactory
    ) -> None:
        """Test a category without providers still gets content."""
        pipeline = build_pipeline({})

        result = pipeline.fetch(Category.SPORTS)

        assert result.origin == ResultOrigin.PLACEHOLDER
        assert result.provider_label == "sports (offline - sample data)"
        assert len(result.articles) == 2

    @pytest.mark.unit
    def test_missing_route_serves_cached_entry(
        self,
        build_pipeline: PipelineFactory,
        cache: CacheManager[FetchResult],
    ) -> None:
        """Test a missing route still falls back to the cache."""
        cache.set(cache_key_for(Category.SPORTS, 25), make_batch("espn", 2))
        pipeline = build_pipeline({})

        result = pipeline.fetch(Category.SPORTS)

        assert result.provider_label == "espn (cached)"
        assert result.origin == ResultOrigin.CACHE


class TestCacheKeys:
    """Tests for cache key helpers."""

    @pytest.mark.unit
    def test_cache_keys(self, build_pipeline: PipelineFactory) -> None:
        """Test keys include category and limit."""
        pipeline = build_pipeline({}, EngineConfig(default_limit=20))

        assert pipeline.cache_key(Category.TECH) == "category:tech:20"
        assert pipeline.cache_key(Category.TECH, 5) == "category:tech:5"
        assert pipeline.cache_keys(Category.TECH) == ["category:tech:"]
