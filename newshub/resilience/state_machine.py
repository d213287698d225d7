"""State machine for a single fallback chain execution."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class ChainState(str, Enum):
    """State of a request moving through the fallback chain.

    - ATTEMPT_PRIMARY: First call to the primary operation
    - ATTEMPT_RETRY: Retry of the current tier's operation
    - ATTEMPT_FALLBACK: First call to a fallback operation
    - READ_FRESH_CACHE: Checking for a fresh entry after a failed tier
    - READ_EXPIRED_CACHE: Reading an expired in-memory entry
    - READ_DURABLE_CACHE: Reading the durable tier
    - SYNTHETIC_PLACEHOLDER: Building placeholder articles
    - DONE: A result has been chosen
    """

    ATTEMPT_PRIMARY = "ATTEMPT_PRIMARY"
    ATTEMPT_RETRY = "ATTEMPT_RETRY"
    ATTEMPT_FALLBACK = "ATTEMPT_FALLBACK"
    READ_FRESH_CACHE = "READ_FRESH_CACHE"
    READ_EXPIRED_CACHE = "READ_EXPIRED_CACHE"
    READ_DURABLE_CACHE = "READ_DURABLE_CACHE"
    SYNTHETIC_PLACEHOLDER = "SYNTHETIC_PLACEHOLDER"
    DONE = "DONE"


_ATTEMPT_EXITS = {
    ChainState.ATTEMPT_RETRY,
    ChainState.READ_FRESH_CACHE,
    ChainState.DONE,
}

# Valid state transitions
_VALID_TRANSITIONS: dict[ChainState, set[ChainState]] = {
    ChainState.ATTEMPT_PRIMARY: _ATTEMPT_EXITS,
    ChainState.ATTEMPT_RETRY: _ATTEMPT_EXITS,
    ChainState.ATTEMPT_FALLBACK: _ATTEMPT_EXITS,
    ChainState.READ_FRESH_CACHE: {
        ChainState.ATTEMPT_FALLBACK,
        ChainState.READ_EXPIRED_CACHE,
        ChainState.DONE,
    },
    ChainState.READ_EXPIRED_CACHE: {
        ChainState.READ_DURABLE_CACHE,
        ChainState.DONE,
    },
    ChainState.READ_DURABLE_CACHE: {
        ChainState.SYNTHETIC_PLACEHOLDER,
        ChainState.DONE,
    },
    ChainState.SYNTHETIC_PLACEHOLDER: {ChainState.DONE},
    ChainState.DONE: set(),  # Terminal state
}


class ChainStateTransitionError(Exception):
    """Raised when an illegal state transition is attempted."""

    def __init__(
        self, cache_key: str, from_state: ChainState, to_state: ChainState
    ) -> None:
        """Initialize the transition error.

        Args:
            cache_key: Cache key of the request.
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.cache_key = cache_key
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal chain transition for '{cache_key}': "
            f"{from_state.value} -> {to_state.value}"
        )


class ChainStateMachine:
    """Tracks and logs the state of one fallback chain execution."""

    def __init__(self, cache_key: str, label: str) -> None:
        """Initialize the state machine.

        Args:
            cache_key: Cache key of the request.
            label: Provider label of the chain.
        """
        self._cache_key = cache_key
        self._state = ChainState.ATTEMPT_PRIMARY
        self._history: list[ChainState] = [ChainState.ATTEMPT_PRIMARY]
        self._log = logger.bind(
            component="resilience",
            cache_key=cache_key,
            label=label,
        )

    @property
    def state(self) -> ChainState:
        """Get the current state."""
        return self._state

    @property
    def history(self) -> list[ChainState]:
        """Get every state visited, in order."""
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self._state == ChainState.DONE

    def can_transition_to(self, target: ChainState) -> bool:
        """Check if a transition to the target state is valid."""
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: ChainState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            ChainStateTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise ChainStateTransitionError(self._cache_key, self._state, target)

        old_state = self._state
        self._state = target
        self._history.append(target)

        self._log.debug(
            "state_transition",
            from_state=old_state.value,
            to_state=target.value,
        )
