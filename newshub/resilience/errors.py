"""Error types for provider calls and the fallback chain."""

from enum import Enum


class ProviderErrorKind(str, Enum):
    """Classification of provider failures.

    - NETWORK: Connection failures and upstream 5xx responses
    - TIMEOUT: The call exceeded its time budget
    - RATE_LIMITED: Upstream or local rate limit refused the call
    - MALFORMED: The response could not be parsed or was empty
    """

    NETWORK = "network"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    MALFORMED = "malformed"


class ProviderError(Exception):
    """Failure of a single provider call.

    Provides structured error information for logging and the failure log.
    """

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str,
        provider: str | None = None,
    ) -> None:
        """Initialize the provider error.

        Args:
            kind: Classification of the failure.
            message: Human-readable error message.
            provider: Label of the provider that failed.
        """
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.provider = provider

    def to_dict(self) -> dict[str, str | None]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "kind": self.kind.value,
            "message": self.message,
            "provider": self.provider,
        }


class EmptyResultError(ProviderError):
    """A provider answered with a structurally valid but empty batch."""

    def __init__(self, provider: str | None = None) -> None:
        """Initialize the error.

        Args:
            provider: Label of the provider that answered.
        """
        super().__init__(
            kind=ProviderErrorKind.MALFORMED,
            message="Provider returned no articles",
            provider=provider,
        )


class AllTiersExhausted(Exception):
    """Every live, cached and durable tier failed for a request.

    Only used inside the orchestrator to hand over to the placeholder tier.
    """

    def __init__(self, cache_key: str, attempts: int) -> None:
        """Initialize the error.

        Args:
            cache_key: Cache key of the request.
            attempts: Number of provider attempts made.
        """
        self.cache_key = cache_key
        self.attempts = attempts
        super().__init__(
            f"All tiers exhausted for {cache_key} after {attempts} attempts"
        )
