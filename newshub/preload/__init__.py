"""Background preloading of ranked category results."""

from newshub.preload.models import RELATED_PRELOADS, CacheStatus, related_categories
from newshub.preload.scheduler import PRELOAD_KEY_PREFIX, PreloadScheduler, preload_key


__all__ = [
    "PRELOAD_KEY_PREFIX",
    "RELATED_PRELOADS",
    "CacheStatus",
    "PreloadScheduler",
    "preload_key",
    "related_categories",
]
