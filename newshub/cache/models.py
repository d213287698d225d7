"""Data models for the cache layer."""

from datetime import datetime
from typing import Annotated, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field


T = TypeVar("T")


class CacheEntry(BaseModel, Generic[T]):
    """A cached payload with its write time and time-to-live.

    Attributes:
        payload: Cached value.
        written_at: When the entry was written.
        ttl_ms: Time-to-live in milliseconds.
    """

    model_config = ConfigDict(frozen=True)

    payload: T
    written_at: datetime
    ttl_ms: Annotated[int, Field(ge=0)]

    def age_ms(self, now: datetime) -> float:
        """Get the entry age in milliseconds.

        Args:
            now: Reference time.

        Returns:
            Milliseconds elapsed since the write.
        """
        return (now - self.written_at).total_seconds() * 1000.0

    def is_fresh(self, now: datetime) -> bool:
        """Check if the entry is still within its TTL.

        Args:
            now: Reference time.

        Returns:
            True if now - written_at < ttl.
        """
        return self.age_ms(now) < self.ttl_ms
