"""Deduplication and source diversity for merged article batches.

All functions are pure apart from the injected random.Random, so results
are reproducible with a seeded generator.
"""

import math
import random
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from newshub.models import Article, FetchResult


logger = structlog.get_logger()

DUPLICATE_THRESHOLD = 0.70
MIN_WORD_LENGTH = 4
RECENT_RATIO = 0.7
MIN_REMIX_SIZE = 4
LABEL_SEPARATOR = " + "

_PUNCTUATION = re.compile(r"[^\w\s]")


def normalize_title(title: str) -> str:
    """Lowercase a title and strip punctuation.

    Args:
        title: Raw title.

    Returns:
        Normalized title with single spaces.
    """
    return " ".join(_PUNCTUATION.sub("", title.lower()).split())


def title_words(title: str) -> frozenset[str]:
    """Get the significant words of a title.

    Words of three characters or fewer are dropped.
    """
    words = normalize_title(title).split()
    return frozenset(w for w in words if len(w) >= MIN_WORD_LENGTH)


def _word_overlap(a: frozenset[str], b: frozenset[str]) -> float:
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return len(a & b) / min(len(a), len(b))


def title_similarity(title_a: str, title_b: str) -> float:
    """Compute word-set similarity of two titles.

    Shared significant words divided by the size of the smaller word set.
    This is the overlap coefficient, not Jaccard: dividing by the union
    would score "Parliament Winter Session Begins" against "Parliament
    Winter Session Commences" at 0.6 and keep both stories. Two titles without significant words are identical; a title without
    significant words shares nothing with one that has some.

    Args:
        title_a: First title.
        title_b: Second title.

    Returns:
        Similarity in [0, 1].
    """
    return _word_overlap(title_words(title_a), title_words(title_b))


def is_duplicate_title(
    title_a: str, title_b: str, threshold: float = DUPLICATE_THRESHOLD
) -> bool:
    """Check if two titles describe the same story."""
    return title_similarity(title_a, title_b) >= threshold


def deduplicate_articles(
    articles: Sequence[Article], threshold: float = DUPLICATE_THRESHOLD
) -> list[Article]:
    """Remove near-duplicate titles, keeping the longest description.

    A newcomer matching accepted articles competes with all of them; the
    winner takes the slot of the first match and the other matches are
    dropped, so no two accepted articles are duplicates of each other.
    Ties keep the article accepted first.

    Args:
        articles: Articles in input order.
        threshold: Similarity at or above which titles are duplicates.

    Returns:
        Deduplicated articles in input order.
    """
    accepted: list[Article] = []
    accepted_words: list[frozenset[str]] = []

    for article in articles:
        words = title_words(article.title)
        matches = [
            i
            for i, existing in enumerate(accepted_words)
            if _word_overlap(words, existing) >= threshold
        ]
        if not matches:
            accepted.append(article)
            accepted_words.append(words)
            continue

        candidates = [accepted[i] for i in matches] + [article]
        winner = max(candidates, key=lambda a: len(a.description))

        first = matches[0]
        accepted[first] = winner
        accepted_words[first] = title_words(winner.title)
        for i in reversed(matches[1:]):
            del accepted[i]
            del accepted_words[i]

    return accepted


def sort_by_recency(articles: Sequence[Article]) -> list[Article]:
    """Stable sort by publication time, newest first."""
    return sorted(articles, key=lambda a: a.published_at, reverse=True)


def _source_of(article: Article) -> str:
    return article.source


def interleave_by_provider(
    articles: Sequence[Article],
    target_count: int | None = None,
    provider_of: Callable[[Article], str] = _source_of,
) -> list[Article]:
    """Emit articles round-robin across providers.

    Providers are visited in order of first appearance; each provider's
    queue keeps input order.

    Args:
        articles: Articles, usually in recency order.
        target_count: Stop after this many articles (default: all).
        provider_of: Maps an article to its provider key.

    Returns:
        Interleaved articles.
    """
    queues: dict[str, list[Article]] = {}
    for article in articles:
        queues.setdefault(provider_of(article), []).append(article)

    limit = len(articles) if target_count is None else min(target_count, len(articles))
    result: list[Article] = []
    position = 0
    while len(result) < limit:
        for queue in queues.values():
            if position < len(queue):
                result.append(queue[position])
                if len(result) >= limit:
                    break
        position += 1
    return result


def shuffle_articles(
    articles: Sequence[Article], rng: random.Random | None = None
) -> list[Article]:
    """Return a uniformly shuffled copy (Fisher-Yates)."""
    shuffled = list(articles)
    (rng or random.Random()).shuffle(shuffled)
    return shuffled


def mix_recent_and_pool(
    articles: Sequence[Article],
    rng: random.Random | None = None,
    ratio: float = RECENT_RATIO,
) -> list[Article]:
    """Blend the most recent articles with a shuffled remainder.

    The newest floor(ratio * n) articles are kept, the rest are shuffled,
    and the combination is shuffled once more. Lists of three or fewer
    articles are returned unchanged.

    Args:
        articles: Articles to mix.
        rng: Random generator (seed it for reproducible output).
        ratio: Share of articles taken from the recent slice.

    Returns:
        Mixed articles.
    """
    if len(articles) < MIN_REMIX_SIZE:
        return list(articles)

    rng = rng or random.Random()
    by_date = sort_by_recency(articles)
    recent_count = math.floor(len(by_date) * ratio)
    recent = by_date[:recent_count]
    pool = shuffle_articles(by_date[recent_count:], rng)
    return shuffle_articles(recent + pool, rng)


@dataclass
class DiversityResult:
    """Result of merging batches.

    Attributes:
        articles: Merged articles.
        input_count: Articles across all input batches.
        duplicates_removed: Articles dropped as duplicates.
        providers: Provider labels of the non-empty input batches.
    """

    articles: list[Article]
    input_count: int
    duplicates_removed: int
    providers: list[str] = field(default_factory=list)


def combine_and_diversify(
    batches: Sequence[FetchResult],
    target_count: int,
    rng: random.Random | None = None,
    remix: bool = False,
    threshold: float = DUPLICATE_THRESHOLD,
) -> DiversityResult:
    """Flatten, deduplicate, sort and interleave batches.

    Args:
        batches: Batches to merge; each article keeps its batch's label
            for round-robin grouping.
        target_count: Maximum number of articles returned.
        rng: Random generator for the optional remix.
        remix: Whether to apply mix_recent_and_pool to the result.
        threshold: Duplicate similarity threshold.

    Returns:
        DiversityResult with the merged articles.
    """
    labels: dict[int, str] = {}
    flat: list[Article] = []
    providers: list[str] = []
    for batch in batches:
        if batch.articles and batch.provider_label not in providers:
            providers.append(batch.provider_label)
        for article in batch.articles:
            labels[id(article)] = batch.provider_label
            flat.append(article)

    unique = deduplicate_articles(flat, threshold)
    ordered = sort_by_recency(unique)
    diverse = interleave_by_provider(
        ordered, target_count, provider_of=lambda a: labels[id(a)]
    )
    if remix:
        diverse = mix_recent_and_pool(diverse, rng)

    return DiversityResult(
        articles=diverse,
        input_count=len(flat),
        duplicates_removed=len(flat) - len(unique),
        providers=providers,
    )


class DiversityEngine:
    """Merges provider batches into one deduplicated, diverse FetchResult."""

    def __init__(
        self,
        rng: random.Random | None = None,
        default_target: int = 25,
        threshold: float = DUPLICATE_THRESHOLD,
    ) -> None:
        """Initialize the engine.

        Args:
            rng: Random generator for remixing.
            default_target: Target count when merge() gets none.
            threshold: Duplicate similarity threshold.
        """
        self._rng = rng or random.Random()
        self._default_target = default_target
        self._threshold = threshold
        self._log = logger.bind(component="diversity")

    def merge(
        self,
        batches: Sequence[FetchResult],
        target_count: int | None = None,
        label: str | None = None,
        remix: bool = False,
    ) -> FetchResult:
        """Merge batches into a single FetchResult.

        Args:
            batches: Batches to merge.
            target_count: Maximum number of articles.
            label: Provider label for the result; defaults to the input
                labels joined with " + ".
            remix: Whether to remix recent and older articles.

        Returns:
            Merged FetchResult.
        """
        target = self._default_target if target_count is None else target_count
        result = combine_and_diversify(
            batches,
            target,
            rng=self._rng,
            remix=remix,
            threshold=self._threshold,
        )
        provider_label = label or LABEL_SEPARATOR.join(result.providers) or "none"
        unique_count = result.input_count - result.duplicates_removed

        self._log.debug(
            "batches_merged",
            label=provider_label,
            batch_count=len(batches),
            input_count=result.input_count,
            duplicates_removed=result.duplicates_removed,
            output_count=len(result.articles),
        )

        return FetchResult(
            articles=tuple(result.articles),
            provider_label=provider_label,
            retrieved_at=datetime.now(UTC),
            has_more=unique_count > len(result.articles)
            or any(b.has_more for b in batches),
            total_available=unique_count,
        )
