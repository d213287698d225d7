"""Unit tests for the retry and fallback orchestrator."""

from collections.abc import Generator
from concurrent.futures import ThreadPoolExecutor

import pytest

from newshub.cache import (
    CacheEntry,
    CacheManager,
    DurableStoreError,
    InMemoryDurableStore,
)
from newshub.models import Category, FetchResult, ResultOrigin
from newshub.observability.metrics import EngineMetrics
from newshub.ratelimit import WindowRateLimiter
from newshub.resilience import (
    FallbackOrchestrator,
    ProviderCall,
    ProviderError,
    ProviderErrorKind,
    RetryPolicy,
)
from tests.helpers.articles import FakeProvider, make_batch
from tests.helpers.time import FakeClock


class FlakyStore(InMemoryDurableStore):
    """In-memory store whose first read fails."""

    def __init__(self) -> None:
        super().__init__()
        self.reads = 0

    def get(self, key: str) -> bytes | None:
        self.reads += 1
        if self.reads == 1:
            raise DurableStoreError("get", key, "transient failure")
        return super().get(key)


class SleepRecorder:
    """Records requested sleeps instead of sleeping."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def call_of(provider: FakeProvider, limit: int = 10) -> ProviderCall:
    """Wrap a fake provider as a labelled chain operation."""
    return ProviderCall(
        label=provider.name, call=lambda: provider.fetch(Category.TECH, limit)
    )


@pytest.fixture(autouse=True)
def reset_metrics() -> None:
    """Start every test with fresh metrics."""
    EngineMetrics.reset()


@pytest.fixture
def clock() -> FakeClock:
    """Create a controllable wall clock."""
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> Generator[CacheManager[FetchResult]]:
    """Create a cache with a short TTL on the fake clock."""
    manager: CacheManager[FetchResult] = CacheManager(
        FetchResult, InMemoryDurableStore(), default_ttl_ms=1000, clock=clock
    )
    yield manager
    manager.close()


@pytest.fixture
def executor() -> Generator[ThreadPoolExecutor]:
    """Create the executor attempts run on."""
    pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="test-calls")
    yield pool
    pool.shutdown(wait=False, cancel_futures=True)


@pytest.fixture
def sleeper() -> SleepRecorder:
    """Create a sleep recorder."""
    return SleepRecorder()


@pytest.fixture
def orchestrator(
    cache: CacheManager[FetchResult],
    executor: ThreadPoolExecutor,
    sleeper: SleepRecorder,
    clock: FakeClock,
) -> FallbackOrchestrator:
    """Create an orchestrator with instant retries."""
    return FallbackOrchestrator(
        cache=cache,
        rate_limiter=WindowRateLimiter(),
        executor=executor,
        sleep=sleeper,
        clock=clock,
    )


class TestLiveTiers:
    """Tests for primary, retry and fallback tiers."""

    @pytest.mark.unit
    def test_primary_success_is_cached(
        self,
        orchestrator: FallbackOrchestrator,
        cache: CacheManager[FetchResult],
    ) -> None:
        """Test a live result is returned and written to the cache."""
        batch = make_batch("BBC", 3)
        primary = FakeProvider("BBC", [list(batch.articles)])

        result = orchestrator.execute_with_fallback(
            call_of(primary), [], "category:tech:10", "BBC"
        )

        assert result.provider_label == "BBC"
        assert result.origin == ResultOrigin.LIVE
        assert result.articles == batch.articles
        cached = cache.get("category:tech:10")
        assert cached is not None
        assert cached.payload.articles == batch.articles

    @pytest.mark.unit
    def test_network_failure_retried(
        self, orchestrator: FallbackOrchestrator, sleeper: SleepRecorder
    ) -> None:
        """Test a network error is retried after the first delay."""
        primary = FakeProvider(
            "BBC",
            [
                ProviderError(ProviderErrorKind.NETWORK, "connection reset"),
                list(make_batch("BBC", 2).articles),
            ],
        )

        result = orchestrator.execute_with_fallback(call_of(primary), [], "k", "BBC")

        assert result.origin == ResultOrigin.LIVE
        assert primary.calls == 2
        assert sleeper.calls == [0.3]
        assert EngineMetrics.get_instance().retries_total == 1

    @pytest.mark.unit
    def test_retry_budget_respected(
        self,
        cache: CacheManager[FetchResult],
        executor: ThreadPoolExecutor,
        sleeper: SleepRecorder,
    ) -> None:
        """Test retries stop at max_retries and the last delay repeats."""
        orchestrator = FallbackOrchestrator(
            cache=cache,
            rate_limiter=WindowRateLimiter(),
            executor=executor,
            retry_policy=RetryPolicy(max_retries=3, delays_ms=(100, 200)),
            sleep=sleeper,
        )
        primary = FakeProvider("BBC", [RuntimeError("boom")])

        result = orchestrator.execute_with_fallback(call_of(primary), [], "k", "BBC")

        assert result.origin == ResultOrigin.PLACEHOLDER
        assert primary.calls == 4
        assert sleeper.calls == [0.1, 0.2, 0.2]

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "outcome",
        [
            ProviderError(ProviderErrorKind.MALFORMED, "bad xml"),
            ProviderError(ProviderErrorKind.RATE_LIMITED, "HTTP 429"),
            [],
        ],
    )
    def test_non_retryable_moves_to_fallback(
        self, orchestrator: FallbackOrchestrator, outcome: object
    ) -> None:
        """Test malformed, rate-limited and empty results skip retries."""
        primary = FakeProvider("BBC", [outcome])  # type: ignore[list-item]
        fallback = FakeProvider("Reuters", [list(make_batch("Reuters", 2).articles)])

        result = orchestrator.execute_with_fallback(
            call_of(primary), [call_of(fallback)], "k", "BBC"
        )

        assert primary.calls == 1
        assert result.provider_label == "Reuters"
        assert EngineMetrics.get_instance().fallbacks_used_total == 1

    @pytest.mark.unit
    def test_plain_callables_get_derived_labels(
        self, orchestrator: FallbackOrchestrator
    ) -> None:
        """Test unlabelled operations are keyed off the chain label."""

        def failing() -> FetchResult:
            raise ProviderError(ProviderErrorKind.MALFORMED, "bad payload")

        orchestrator.execute_with_fallback(failing, [failing], "k", "Tech")

        labels = [r.label for r in orchestrator.recent_failures()]
        assert labels == ["Tech", "Tech_fallback_1"]

    @pytest.mark.unit
    def test_timeout_abandons_slow_call(
        self,
        cache: CacheManager[FetchResult],
        executor: ThreadPoolExecutor,
        sleeper: SleepRecorder,
    ) -> None:
        """Test a slow primary times out and the fallback answers."""
        orchestrator = FallbackOrchestrator(
            cache=cache,
            rate_limiter=WindowRateLimiter(),
            executor=executor,
            retry_policy=RetryPolicy(max_retries=0),
            fetch_timeout_ms=50,
            sleep=sleeper,
        )
        slow = FakeProvider("BBC", [list(make_batch("BBC", 2).articles)], delay_s=5.0)
        fallback = FakeProvider("Reuters", [list(make_batch("Reuters", 2).articles)])
        try:
            result = orchestrator.execute_with_fallback(
                call_of(slow), [call_of(fallback)], "k", "BBC"
            )
        finally:
            slow.release()

        assert result.provider_label == "Reuters"
        failures = orchestrator.recent_failures()
        assert failures[0].error_kind == ProviderErrorKind.TIMEOUT.value

    @pytest.mark.unit
    def test_wrong_result_type_is_malformed(
        self, orchestrator: FallbackOrchestrator
    ) -> None:
        """Test a non-FetchResult return value counts as malformed."""
        orchestrator.execute_with_fallback(
            lambda: {"articles": []},  # type: ignore[arg-type, return-value]
            [],
            "k",
            "BBC",
        )

        record = orchestrator.recent_failures()[0]
        assert record.error_kind == ProviderErrorKind.MALFORMED.value
        assert record.retry_count == 0

    @pytest.mark.unit
    def test_rate_limit_denial_skips_tier(
        self,
        cache: CacheManager[FetchResult],
        executor: ThreadPoolExecutor,
        sleeper: SleepRecorder,
    ) -> None:
        """Test a denied provider is skipped without being called."""
        orchestrator = FallbackOrchestrator(
            cache=cache,
            rate_limiter=WindowRateLimiter(),
            executor=executor,
            rate_limit_requests=1,
            sleep=sleeper,
        )
        primary = FakeProvider("BBC", [list(make_batch("BBC", 2).articles)])
        fallback = FakeProvider("Reuters", [list(make_batch("Reuters", 2).articles)])

        orchestrator.execute_with_fallback(call_of(primary), [], "first", "BBC")
        result = orchestrator.execute_with_fallback(
            call_of(primary), [call_of(fallback)], "second", "BBC"
        )

        assert primary.calls == 1
        assert result.provider_label == "Reuters"
        metrics = EngineMetrics.get_instance()
        assert metrics.rate_limit_denials_total == {"BBC": 1}
        assert sleeper.calls == []


class TestDegradedTiers:
    """Tests for cached, stale, durable and placeholder results."""

    @pytest.mark.unit
    def test_fresh_cache_after_failed_tier(
        self,
        orchestrator: FallbackOrchestrator,
        cache: CacheManager[FetchResult],
    ) -> None:
        """Test a fresh cache entry ends the chain before the fallback."""
        cache.set("k", make_batch("BBC + Reuters", 2))
        primary = FakeProvider(
            "BBC", [ProviderError(ProviderErrorKind.MALFORMED, "bad")]
        )
        fallback = FakeProvider("ANI", [list(make_batch("ANI", 2).articles)])

        result = orchestrator.execute_with_fallback(
            call_of(primary), [call_of(fallback)], "k", "BBC"
        )

        assert result.provider_label == "BBC + Reuters (cached)"
        assert result.origin == ResultOrigin.CACHE
        assert fallback.calls == 0

    @pytest.mark.unit
    def test_expired_cache_served_as_stale(
        self,
        orchestrator: FallbackOrchestrator,
        cache: CacheManager[FetchResult],
        clock: FakeClock,
    ) -> None:
        """Test an expired entry is served with the stale suffix."""
        cache.set("k", make_batch("BBC", 2))
        clock.advance(5000)
        primary = FakeProvider(
            "BBC", [ProviderError(ProviderErrorKind.MALFORMED, "bad")]
        )

        result = orchestrator.execute_with_fallback(call_of(primary), [], "k", "BBC")

        assert result.provider_label == "BBC (stale)"
        assert result.origin == ResultOrigin.STALE_CACHE
        assert len(result.articles) == 2

    @pytest.mark.unit
    def test_durable_tier_served_as_offline(
        self, executor: ThreadPoolExecutor, clock: FakeClock
    ) -> None:
        """Test the durable tier answers when memory has nothing."""
        store = FlakyStore()
        entry = CacheEntry[FetchResult](
            payload=make_batch("BBC", 2), written_at=clock(), ttl_ms=10
        )
        store.set("news_cache_k", entry.model_dump_json().encode())
        cache: CacheManager[FetchResult] = CacheManager(
            FetchResult, store, clock=clock
        )
        orchestrator = FallbackOrchestrator(
            cache=cache,
            rate_limiter=WindowRateLimiter(),
            executor=executor,
            sleep=SleepRecorder(),
            clock=clock,
        )
        primary = FakeProvider(
            "BBC", [ProviderError(ProviderErrorKind.MALFORMED, "bad")]
        )

        try:
            result = orchestrator.execute_with_fallback(
                call_of(primary), [], "k", "BBC"
            )
        finally:
            cache.close()

        assert result.provider_label == "BBC (offline)"
        assert result.origin == ResultOrigin.DURABLE_CACHE

    @pytest.mark.unit
    def test_placeholder_when_everything_fails(
        self, orchestrator: FallbackOrchestrator
    ) -> None:
        """Test the chain never raises and never returns nothing."""
        primary = FakeProvider("BBC", [RuntimeError("boom")])
        fallback = FakeProvider(
            "Reuters", [ProviderError(ProviderErrorKind.NETWORK, "down")]
        )

        result = orchestrator.execute_with_fallback(
            call_of(primary), [call_of(fallback)], "k", "Tech"
        )

        assert result.origin == ResultOrigin.PLACEHOLDER
        assert result.provider_label == "Tech (offline - sample data)"
        assert [a.id for a in result.articles] == ["placeholder_1", "placeholder_2"]
        assert EngineMetrics.get_instance().placeholders_served_total == 1


class TestFailureLog:
    """Tests for the failure ring buffer."""

    @pytest.mark.unit
    def test_failure_stats(self, orchestrator: FallbackOrchestrator) -> None:
        """Test per-label counts and last error."""
        primary = FakeProvider(
            "BBC",
            [
                ProviderError(ProviderErrorKind.NETWORK, "first"),
                ProviderError(ProviderErrorKind.NETWORK, "second"),
            ],
        )

        orchestrator.execute_with_fallback(call_of(primary), [], "k", "BBC")

        assert orchestrator.failure_stats() == {
            "BBC": {"count": 2, "last_error": "second"}
        }
        assert EngineMetrics.get_instance().provider_failures_total == {"network": 2}

    @pytest.mark.unit
    def test_failure_log_is_bounded(
        self,
        cache: CacheManager[FetchResult],
        executor: ThreadPoolExecutor,
        sleeper: SleepRecorder,
    ) -> None:
        """Test the log keeps only the newest records."""
        orchestrator = FallbackOrchestrator(
            cache=cache,
            rate_limiter=WindowRateLimiter(),
            executor=executor,
            retry_policy=RetryPolicy(max_retries=0),
            failure_log_size=3,
            sleep=sleeper,
        )
        for i in range(5):
            failing = FakeProvider(
                f"p{i}", [ProviderError(ProviderErrorKind.MALFORMED, "bad")]
            )
            orchestrator.execute_with_fallback(call_of(failing), [], f"k{i}", "x")

        assert [r.label for r in orchestrator.recent_failures()] == ["p2", "p3", "p4"]

        orchestrator.clear_failures()
        assert orchestrator.recent_failures() == []
