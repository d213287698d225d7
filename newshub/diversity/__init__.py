"""Deduplication and source diversity for merged article batches."""

from newshub.diversity.engine import (
    DUPLICATE_THRESHOLD,
    LABEL_SEPARATOR,
    DiversityEngine,
    DiversityResult,
    combine_and_diversify,
    deduplicate_articles,
    interleave_by_provider,
    is_duplicate_title,
    mix_recent_and_pool,
    normalize_title,
    shuffle_articles,
    sort_by_recency,
    title_similarity,
    title_words,
)


__all__ = [
    "DUPLICATE_THRESHOLD",
    "LABEL_SEPARATOR",
    "DiversityEngine",
    "DiversityResult",
    "combine_and_diversify",
    "deduplicate_articles",
    "interleave_by_provider",
    "is_duplicate_title",
    "mix_recent_and_pool",
    "normalize_title",
    "shuffle_articles",
    "sort_by_recency",
    "title_similarity",
    "title_words",
]
