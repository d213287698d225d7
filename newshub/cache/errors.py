"""Exceptions for the cache layer."""


class CacheError(Exception):
    """Base exception for cache layer errors."""


class DurableStoreError(CacheError):
    """Raised when the durable store cannot complete an operation.

    The Cache Manager catches this, logs it and treats the durable tier
    as unavailable for that operation.
    """

    def __init__(self, operation: str, key: str | None, message: str) -> None:
        """Initialize the durable store error.

        Args:
            operation: Store operation that failed (get, set, remove, keys).
            key: Key involved, if any.
            message: Human-readable error message.
        """
        self.operation = operation
        self.key = key
        super().__init__(f"Durable store {operation} failed: {message}")
