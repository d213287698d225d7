"""Popularity scoring engine for articles."""

from datetime import UTC, datetime

import structlog

from newshub.models import Article, Category
from newshub.ranking.constants import (
    DEFAULT_CREDIBILITY,
    DEFAULT_TRENDING_LIMIT,
    ENGAGEMENT_AUTHOR_BONUS,
    ENGAGEMENT_BASE,
    ENGAGEMENT_IMAGE_BONUS,
    ENGAGEMENT_PER_WORD,
    ENGAGEMENT_TITLE_BONUS,
    ENGAGEMENT_WORDS,
    IDEAL_TITLE_MAX_LENGTH,
    IDEAL_TITLE_MIN_LENGTH,
    RECENCY_FLOOR,
    RECENCY_STEPS,
    RELATED_CATEGORIES,
    RELEVANCE_ALL,
    RELEVANCE_EXACT,
    RELEVANCE_RELATED,
    RELEVANCE_UNRELATED,
    SOURCE_CREDIBILITY,
    TRENDING_KEYWORDS,
    TRENDING_PER_KEYWORD,
)
from newshub.ranking.matcher import KeywordMatcher
from newshub.ranking.models import PopularityMetrics, RankedArticle


logger = structlog.get_logger()

_ENGAGEMENT_MATCHER = KeywordMatcher(ENGAGEMENT_WORDS)
_TRENDING_MATCHERS: dict[Category, KeywordMatcher] = {
    category: KeywordMatcher(keywords)
    for category, keywords in TRENDING_KEYWORDS.items()
}


class PopularityScorer:
    """Computes popularity metrics for articles relative to a category.

    Scoring formula:
        overall = 0.25 * recency + 0.20 * engagement
                + 0.15 * source_credibility + 0.25 * trending
                + 0.15 * category_relevance

    Where:
        - recency: Step function of age in hours
        - engagement: Engagement words, title length, image and author
        - source_credibility: Static per-source table
        - trending: Matched trending keywords for the target category
        - category_relevance: Exact, related, catch-all or unrelated
    """

    def __init__(self, now: datetime | None = None) -> None:
        """Initialize the scorer.

        Args:
            now: Reference time for recency (default: current UTC time).
        """
        self._now = now or datetime.now(UTC)
        self._log = logger.bind(component="ranking", subcomponent="scorer")

    @property
    def now(self) -> datetime:
        """Get the reference time used for recency."""
        return self._now

    def score(self, article: Article, target_category: Category) -> PopularityMetrics:
        """Compute popularity metrics for a single article.

        Args:
            article: Article to score.
            target_category: Category the article is being ranked for.

        Returns:
            PopularityMetrics with all five components.
        """
        return PopularityMetrics(
            recency=self._compute_recency(article),
            engagement=self._compute_engagement(article),
            source_credibility=self._compute_credibility(article),
            trending=self._compute_trending(article, target_category),
            category_relevance=self._compute_relevance(article, target_category),
        )

    def rank(
        self, articles: list[Article], target_category: Category
    ) -> list[RankedArticle]:
        """Score and order articles by overall popularity.

        The sort is stable, so ties keep their input order.

        Args:
            articles: Articles to rank.
            target_category: Category being ranked for.

        Returns:
            RankedArticles sorted by overall score descending.
        """
        ranked = [
            RankedArticle.from_article(article, self.score(article, target_category))
            for article in articles
        ]
        ranked.sort(key=lambda a: a.popularity.overall_score, reverse=True)

        self._log.debug(
            "ranking_complete",
            category=target_category.value,
            articles_ranked=len(ranked),
            top_score=ranked[0].popularity.overall_score if ranked else 0.0,
        )
        return ranked

    def _compute_recency(self, article: Article) -> float:
        hours_ago = (self._now - article.published_at).total_seconds() / 3600.0
        for max_hours, step_score in RECENCY_STEPS:
            if hours_ago <= max_hours:
                return step_score
        return RECENCY_FLOOR

    def _compute_engagement(self, article: Article) -> float:
        score = ENGAGEMENT_BASE
        score += (
            _ENGAGEMENT_MATCHER.count_matches(article.title, article.description)
            * ENGAGEMENT_PER_WORD
        )
        if IDEAL_TITLE_MIN_LENGTH <= len(article.title) <= IDEAL_TITLE_MAX_LENGTH:
            score += ENGAGEMENT_TITLE_BONUS
        if article.image_url:
            score += ENGAGEMENT_IMAGE_BONUS
        if article.author:
            score += ENGAGEMENT_AUTHOR_BONUS
        return min(score, 1.0)

    def _compute_credibility(self, article: Article) -> float:
        return SOURCE_CREDIBILITY.get(article.source, DEFAULT_CREDIBILITY)

    def _compute_trending(self, article: Article, target_category: Category) -> float:
        matcher = _TRENDING_MATCHERS.get(target_category)
        if matcher is None:
            return 0.0
        matches = matcher.count_matches(article.title, article.description)
        return min(matches * TRENDING_PER_KEYWORD, 1.0)

    def _compute_relevance(self, article: Article, target_category: Category) -> float:
        if article.category == target_category:
            return RELEVANCE_EXACT
        if article.category in RELATED_CATEGORIES.get(target_category, frozenset()):
            return RELEVANCE_RELATED
        if target_category == Category.ALL:
            return RELEVANCE_ALL
        return RELEVANCE_UNRELATED


def rank_articles_pure(
    articles: list[Article],
    target_category: Category,
    now: datetime | None = None,
) -> list[RankedArticle]:
    """Pure function API for popularity ranking.

    Args:
        articles: Articles to rank.
        target_category: Category being ranked for.
        now: Reference time for recency calculation.

    Returns:
        RankedArticles sorted by overall score descending.
    """
    return PopularityScorer(now=now).rank(articles, target_category)


def trending_topics(
    category: Category, limit: int = DEFAULT_TRENDING_LIMIT
) -> list[str]:
    """Get the leading trending keywords for a category.

    Args:
        category: Category to look up.
        limit: Maximum number of keywords.

    Returns:
        Up to limit keywords, empty for categories without a table.
    """
    return list(TRENDING_KEYWORDS.get(category, ()))[:limit]
