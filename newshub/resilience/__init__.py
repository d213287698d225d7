"""Retry, fallback and graceful degradation for provider calls."""

from newshub.resilience.errors import (
    AllTiersExhausted,
    EmptyResultError,
    ProviderError,
    ProviderErrorKind,
)
from newshub.resilience.models import (
    FailureRecord,
    FallbackChain,
    ProviderCall,
    RetryPolicy,
)
from newshub.resilience.orchestrator import (
    CACHED_SUFFIX,
    OFFLINE_SUFFIX,
    STALE_SUFFIX,
    FallbackOrchestrator,
)
from newshub.resilience.placeholder import PLACEHOLDER_SUFFIX, build_placeholder
from newshub.resilience.state_machine import (
    ChainState,
    ChainStateMachine,
    ChainStateTransitionError,
)


__all__ = [
    "CACHED_SUFFIX",
    "OFFLINE_SUFFIX",
    "PLACEHOLDER_SUFFIX",
    "STALE_SUFFIX",
    "AllTiersExhausted",
    "ChainState",
    "ChainStateMachine",
    "ChainStateTransitionError",
    "EmptyResultError",
    "FailureRecord",
    "FallbackChain",
    "FallbackOrchestrator",
    "ProviderCall",
    "ProviderError",
    "ProviderErrorKind",
    "RetryPolicy",
    "build_placeholder",
]
