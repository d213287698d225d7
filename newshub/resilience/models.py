"""Data models for the retry and fallback orchestrator."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from newshub.models import FetchResult
from newshub.resilience.errors import (
    EmptyResultError,
    ProviderError,
    ProviderErrorKind,
)


UNKNOWN_ERROR_KIND = "unknown"

_RETRYABLE_KINDS = frozenset({ProviderErrorKind.NETWORK, ProviderErrorKind.TIMEOUT})


def error_kind_of(error: BaseException) -> str:
    """Get the failure-log kind for an exception.

    Args:
        error: Exception raised by a provider call.

    Returns:
        ProviderErrorKind value, or "unknown" for other exceptions.
    """
    if isinstance(error, ProviderError):
        return error.kind.value
    return UNKNOWN_ERROR_KIND


class RetryPolicy(BaseModel):
    """Configuration for retry behavior.

    Retries are sequential. The delay before retry n is delays_ms[n], with
    the last delay repeating once the list runs out.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_retries: Annotated[int, Field(ge=0, le=10)] = 1
    delays_ms: tuple[Annotated[int, Field(ge=0, le=60000)], ...] = (300, 1000)

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        """Determine if a failed call should be retried.

        Network failures, timeouts and unclassified exceptions are retried.
        Malformed responses, rate limiting and empty results are not.

        Args:
            error: The error that occurred.
            attempt: Retries already made for this tier (0-indexed).

        Returns:
            True if the call should be retried.
        """
        if attempt >= self.max_retries:
            return False
        if isinstance(error, EmptyResultError):
            return False
        if isinstance(error, ProviderError):
            return error.kind in _RETRYABLE_KINDS
        return True

    def get_delay_ms(self, attempt: int) -> int:
        """Get the delay before the next retry.

        Args:
            attempt: Retries already made for this tier (0-indexed).

        Returns:
            Delay in milliseconds.
        """
        if not self.delays_ms:
            return 0
        return self.delays_ms[min(attempt, len(self.delays_ms) - 1)]


class FailureRecord(BaseModel):
    """Serializable record of one failed provider attempt."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    label: Annotated[str, Field(min_length=1, description="Rate-limit key of the call")]
    error_kind: str = Field(description="ProviderErrorKind value or unknown")
    message: str = Field(description="Error message")
    timestamp: datetime = Field(description="When the failure happened")
    retry_count: Annotated[int, Field(ge=0, description="Retries made before it")]


@dataclass(frozen=True)
class ProviderCall:
    """A zero-argument provider operation with its own rate-limit key.

    Attributes:
        label: Rate-limit and logging key.
        call: Operation returning a FetchResult or raising ProviderError.
    """

    label: str
    call: Callable[[], FetchResult]

    def __call__(self) -> FetchResult:
        return self.call()


ChainOperation = ProviderCall | Callable[[], FetchResult]


@dataclass(frozen=True)
class FallbackChain:
    """Ordered operations for one request, primary first.

    Plain callables get rate-limit keys derived from the chain label:
    the primary uses the label itself and fallback i uses
    "<label>_fallback_<i>".

    Attributes:
        primary: First operation to try.
        fallbacks: Operations tried in order after the primary.
        cache_key: Cache key the result is stored under.
        label: Provider label used for degraded results.
    """

    primary: ChainOperation
    cache_key: str
    label: str
    fallbacks: Sequence[ChainOperation] = field(default_factory=tuple)

    def operations(self) -> list[ProviderCall]:
        """Get every operation as a labelled ProviderCall, primary first."""
        ops = [_as_provider_call(self.primary, self.label)]
        for index, op in enumerate(self.fallbacks, start=1):
            ops.append(_as_provider_call(op, f"{self.label}_fallback_{index}"))
        return ops


def _as_provider_call(op: ChainOperation, default_label: str) -> ProviderCall:
    if isinstance(op, ProviderCall):
        return op
    return ProviderCall(label=default_label, call=op)
