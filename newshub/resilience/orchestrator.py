"""Retry and fallback orchestrator.

Runs a fallback chain tier by tier and degrades through fresh cache,
expired cache, the durable tier and finally placeholder articles, so a
caller always receives a FetchResult.
"""

import threading
import time
from collections import deque
from collections.abc import Callable, Sequence
from concurrent.futures import Executor
from datetime import UTC, datetime

import structlog

from newshub.cache import CacheManager
from newshub.models import FetchResult, ResultOrigin
from newshub.observability.metrics import EngineMetrics
from newshub.ratelimit import RateLimiterProtocol
from newshub.resilience.errors import (
    AllTiersExhausted,
    EmptyResultError,
    ProviderError,
    ProviderErrorKind,
)
from newshub.resilience.models import (
    ChainOperation,
    FailureRecord,
    FallbackChain,
    ProviderCall,
    RetryPolicy,
    error_kind_of,
)
from newshub.resilience.placeholder import build_placeholder
from newshub.resilience.state_machine import ChainState, ChainStateMachine


logger = structlog.get_logger()

CACHED_SUFFIX = "(cached)"
STALE_SUFFIX = "(stale)"
OFFLINE_SUFFIX = "(offline)"

DEFAULT_FETCH_TIMEOUT_MS = 6000
DEFAULT_RETRY_TIMEOUT_MS = 3000
DEFAULT_RATE_LIMIT_REQUESTS = 100
DEFAULT_RATE_LIMIT_WINDOW_MS = 60 * 60 * 1000
DEFAULT_FAILURE_LOG_SIZE = 100


def _utc_now() -> datetime:
    return datetime.now(UTC)


class FallbackOrchestrator:
    """Executes fallback chains with retries, rate limiting and caching.

    Provides:
    - Sequential retries per tier driven by a RetryPolicy
    - A per-attempt timeout that abandons only the slow call
    - Rate limiting per operation key before every attempt
    - Cache write-back of live results and cached degradation tiers
    - A bounded failure log with per-label statistics
    """

    def __init__(  # noqa: PLR0913
        self,
        cache: CacheManager[FetchResult],
        rate_limiter: RateLimiterProtocol,
        executor: Executor,
        retry_policy: RetryPolicy | None = None,
        fetch_timeout_ms: int = DEFAULT_FETCH_TIMEOUT_MS,
        retry_timeout_ms: int = DEFAULT_RETRY_TIMEOUT_MS,
        rate_limit_requests: int = DEFAULT_RATE_LIMIT_REQUESTS,
        rate_limit_window_ms: int = DEFAULT_RATE_LIMIT_WINDOW_MS,
        failure_log_size: int = DEFAULT_FAILURE_LOG_SIZE,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            cache: Cache for write-back and degraded reads.
            rate_limiter: Limiter consulted before every attempt.
            executor: Executor that runs each attempt.
            retry_policy: Retry budget and delays.
            fetch_timeout_ms: Timeout of the first attempt of a tier.
            retry_timeout_ms: Timeout of each retry.
            rate_limit_requests: Requests allowed per window and key.
            rate_limit_window_ms: Rate-limit window length.
            failure_log_size: Capacity of the failure ring buffer.
            sleep: Sleep function used between retries.
            clock: Returns the current time (injectable for tests).
        """
        self._cache = cache
        self._rate_limiter = rate_limiter
        self._executor = executor
        self._retry_policy = retry_policy or RetryPolicy()
        self._fetch_timeout_ms = fetch_timeout_ms
        self._retry_timeout_ms = retry_timeout_ms
        self._rate_limit_requests = rate_limit_requests
        self._rate_limit_window_ms = rate_limit_window_ms
        self._sleep = sleep
        self._clock = clock

        self._failures: deque[FailureRecord] = deque(maxlen=failure_log_size)
        self._failures_lock = threading.Lock()

        self._metrics = EngineMetrics.get_instance()
        self._log = logger.bind(component="resilience")

    @property
    def retry_policy(self) -> RetryPolicy:
        """Get the retry policy."""
        return self._retry_policy

    def execute_with_fallback(
        self,
        primary: ChainOperation,
        fallbacks: Sequence[ChainOperation],
        cache_key: str,
        label: str,
    ) -> FetchResult:
        """Run a fallback chain. Never raises.

        Args:
            primary: First operation to try.
            fallbacks: Operations tried in order after the primary.
            cache_key: Cache key for write-back and degraded reads.
            label: Provider label used for degraded results.

        Returns:
            Live, cached or placeholder FetchResult.
        """
        chain = FallbackChain(
            primary=primary,
            fallbacks=tuple(fallbacks),
            cache_key=cache_key,
            label=label,
        )
        return self.execute(chain)

    def execute(self, chain: FallbackChain) -> FetchResult:
        """Run a prepared fallback chain. Never raises.

        Args:
            chain: Chain to execute.

        Returns:
            Live, cached or placeholder FetchResult.
        """
        machine = ChainStateMachine(chain.cache_key, chain.label)
        try:
            return self._run_chain(chain, machine)
        except Exception as e:  # noqa: BLE001
            self._log.error(
                "chain_unexpected_error",
                cache_key=chain.cache_key,
                label=chain.label,
                state=machine.state.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            self._metrics.record_placeholder()
            return build_placeholder(chain.label, now=self._clock())

    def failure_stats(self) -> dict[str, dict[str, int | str]]:
        """Summarize the failure log per label.

        Returns:
            Mapping of label to {"count", "last_error"}.
        """
        stats: dict[str, dict[str, int | str]] = {}
        for record in self.recent_failures():
            entry = stats.setdefault(record.label, {"count": 0, "last_error": ""})
            entry["count"] = int(entry["count"]) + 1
            entry["last_error"] = record.message
        return stats

    def recent_failures(self) -> list[FailureRecord]:
        """Get a snapshot of the failure log, oldest first."""
        with self._failures_lock:
            return list(self._failures)

    def clear_failures(self) -> None:
        """Empty the failure log."""
        with self._failures_lock:
            self._failures.clear()

    def _run_chain(
        self, chain: FallbackChain, machine: ChainStateMachine
    ) -> FetchResult:
        attempts = 0
        for index, op in enumerate(chain.operations()):
            if index > 0:
                machine.transition_to(ChainState.ATTEMPT_FALLBACK)

            result, made = self._run_tier(op, machine)
            attempts += made

            if result is not None:
                self._cache.set(chain.cache_key, result)
                if index > 0:
                    self._metrics.record_fallback_used()
                machine.transition_to(ChainState.DONE)
                self._log.info(
                    "chain_succeeded",
                    cache_key=chain.cache_key,
                    provider=op.label,
                    tier=index,
                    attempts=attempts,
                    article_count=len(result.articles),
                )
                return result

            machine.transition_to(ChainState.READ_FRESH_CACHE)
            cached = self._cache.get(chain.cache_key)
            if cached is not None:
                machine.transition_to(ChainState.DONE)
                self._log.info(
                    "chain_served_from_cache",
                    cache_key=chain.cache_key,
                    tier=index,
                    age_ms=round(cached.age_ms(self._cache.now()), 1),
                )
                return cached.payload.with_label(CACHED_SUFFIX, ResultOrigin.CACHE)

        try:
            return self._serve_degraded(chain, machine, attempts)
        except AllTiersExhausted as e:
            machine.transition_to(ChainState.SYNTHETIC_PLACEHOLDER)
            self._log.warning(
                "all_tiers_exhausted",
                cache_key=e.cache_key,
                label=chain.label,
                attempts=e.attempts,
            )
            self._metrics.record_placeholder()
            placeholder = build_placeholder(chain.label, now=self._clock())
            machine.transition_to(ChainState.DONE)
            return placeholder

    def _serve_degraded(
        self, chain: FallbackChain, machine: ChainStateMachine, attempts: int
    ) -> FetchResult:
        machine.transition_to(ChainState.READ_EXPIRED_CACHE)
        stale = self._cache.get_even_if_expired(chain.cache_key)
        if stale is not None:
            machine.transition_to(ChainState.DONE)
            self._log.info("chain_served_stale", cache_key=chain.cache_key)
            return stale.payload.with_label(STALE_SUFFIX, ResultOrigin.STALE_CACHE)

        machine.transition_to(ChainState.READ_DURABLE_CACHE)
        durable = self._cache.get_durable(chain.cache_key)
        if durable is not None:
            machine.transition_to(ChainState.DONE)
            self._log.info("chain_served_durable", cache_key=chain.cache_key)
            return durable.payload.with_label(
                OFFLINE_SUFFIX, ResultOrigin.DURABLE_CACHE
            )

        raise AllTiersExhausted(chain.cache_key, attempts)

    def _run_tier(
        self, op: ProviderCall, machine: ChainStateMachine
    ) -> tuple[FetchResult | None, int]:
        """Run one operation with its retries.

        Args:
            op: Operation of this tier.
            machine: State machine of the chain.

        Returns:
            Tuple of (result or None, attempts made).
        """
        retry = 0
        attempts = 0
        while True:
            if not self._rate_limiter.allow(
                op.label, self._rate_limit_requests, self._rate_limit_window_ms
            ):
                self._metrics.record_rate_limit_denial(op.label)
                self._record_failure(
                    op.label,
                    ProviderError(
                        ProviderErrorKind.RATE_LIMITED,
                        "Local rate limit reached",
                        provider=op.label,
                    ),
                    retry,
                )
                return None, attempts

            timeout_ms = (
                self._fetch_timeout_ms if retry == 0 else self._retry_timeout_ms
            )
            attempts += 1
            try:
                result = self._call_with_timeout(op, timeout_ms)
            except Exception as e:  # noqa: BLE001
                self._record_failure(op.label, e, retry)
                if not self._retry_policy.should_retry(e, retry):
                    return None, attempts

                delay_ms = self._retry_policy.get_delay_ms(retry)
                retry += 1
                self._metrics.record_retry()
                self._log.info(
                    "retry_scheduled",
                    label=op.label,
                    retry=retry,
                    delay_ms=delay_ms,
                )
                machine.transition_to(ChainState.ATTEMPT_RETRY)
                self._sleep(delay_ms / 1000.0)
                continue

            return result, attempts

    def _call_with_timeout(self, op: ProviderCall, timeout_ms: int) -> FetchResult:
        future = self._executor.submit(op)
        try:
            result = future.result(timeout=timeout_ms / 1000.0)
        except TimeoutError as e:
            # The worker keeps running; only this call is abandoned
            future.cancel()
            raise ProviderError(
                ProviderErrorKind.TIMEOUT,
                f"Call exceeded {timeout_ms} ms",
                provider=op.label,
            ) from e

        if not isinstance(result, FetchResult):
            raise ProviderError(
                ProviderErrorKind.MALFORMED,
                f"Expected FetchResult, got {type(result).__name__}",
                provider=op.label,
            )
        if result.is_empty:
            raise EmptyResultError(provider=op.label)
        return result

    def _record_failure(
        self, label: str, error: BaseException, retry_count: int
    ) -> None:
        kind = error_kind_of(error)
        record = FailureRecord(
            label=label,
            error_kind=kind,
            message=str(error) or type(error).__name__,
            timestamp=self._clock(),
            retry_count=retry_count,
        )
        with self._failures_lock:
            self._failures.append(record)

        self._metrics.record_provider_failure(kind)
        self._log.warning(
            "provider_call_failed",
            label=label,
            error_kind=kind,
            error=record.message,
            retry_count=retry_count,
            timestamp=record.timestamp.isoformat(),
        )
