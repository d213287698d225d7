"""Data models for the popularity ranker."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, computed_field

from newshub.models import Article
from newshub.ranking.constants import (
    CREDIBILITY_WEIGHT,
    ENGAGEMENT_WEIGHT,
    RECENCY_WEIGHT,
    RELEVANCE_WEIGHT,
    TRENDING_WEIGHT,
)


_UnitScore = Annotated[float, Field(ge=0.0, le=1.0)]


class PopularityMetrics(BaseModel):
    """Breakdown of an article's popularity into components.

    Attributes:
        recency: Score from publication age.
        engagement: Score from title and metadata signals.
        source_credibility: Score from the source credibility table.
        trending: Score from trending keyword matches.
        category_relevance: Score from category match.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    recency: _UnitScore
    engagement: _UnitScore
    source_credibility: _UnitScore
    trending: _UnitScore
    category_relevance: _UnitScore

    @computed_field  # type: ignore[prop-decorator]
    @property
    def overall_score(self) -> float:
        """Weighted sum of the five components."""
        return (
            self.recency * RECENCY_WEIGHT
            + self.engagement * ENGAGEMENT_WEIGHT
            + self.source_credibility * CREDIBILITY_WEIGHT
            + self.trending * TRENDING_WEIGHT
            + self.category_relevance * RELEVANCE_WEIGHT
        )

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary for serialization.

        Returns:
            Dictionary of component name to value.
        """
        return {
            "recency": self.recency,
            "engagement": self.engagement,
            "source_credibility": self.source_credibility,
            "trending": self.trending,
            "category_relevance": self.category_relevance,
            "overall_score": self.overall_score,
        }


class RankedArticle(Article):
    """An Article annotated with its popularity breakdown.

    The popularity is used for ordering only. Containers typed as Article
    serialize only the Article fields, so it never reaches the durable tier.
    """

    popularity: PopularityMetrics = Field(description="Popularity breakdown")

    @classmethod
    def from_article(
        cls, article: Article, popularity: PopularityMetrics
    ) -> "RankedArticle":
        """Attach popularity metrics to an article.

        Args:
            article: Article to annotate.
            popularity: Computed metrics.

        Returns:
            RankedArticle carrying the same article fields.
        """
        base = article.model_dump(exclude={"popularity"})
        return cls(**base, popularity=popularity)
