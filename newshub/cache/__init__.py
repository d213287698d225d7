"""Two-tier cache for category results.

The in-memory tier answers reads; the durable tier survives restarts and
serves as the last-resort offline source.
"""

from newshub.cache.errors import CacheError, DurableStoreError
from newshub.cache.manager import DURABLE_KEY_PREFIX, CacheManager
from newshub.cache.models import CacheEntry
from newshub.cache.store import DurableStore, InMemoryDurableStore, SqliteDurableStore


__all__ = [
    "DURABLE_KEY_PREFIX",
    "CacheEntry",
    "CacheError",
    "CacheManager",
    "DurableStore",
    "DurableStoreError",
    "InMemoryDurableStore",
    "SqliteDurableStore",
]
