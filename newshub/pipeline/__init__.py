"""Category pipeline: fan-out, merge, rank and fallback."""

from newshub.pipeline.aggregator import CategoryPipeline, cache_key_for


__all__ = ["CategoryPipeline", "cache_key_for"]
