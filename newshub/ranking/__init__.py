"""Popularity ranking for aggregated articles.

Scores articles on recency, engagement, source credibility, trending
keywords and category relevance, then orders them by the weighted sum.
"""

from newshub.ranking.matcher import KeywordMatcher
from newshub.ranking.models import PopularityMetrics, RankedArticle
from newshub.ranking.scorer import (
    PopularityScorer,
    rank_articles_pure,
    trending_topics,
)


__all__ = [
    "KeywordMatcher",
    "PopularityMetrics",
    "PopularityScorer",
    "RankedArticle",
    "rank_articles_pure",
    "trending_topics",
]
