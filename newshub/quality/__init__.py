"""Quality filtering for provider articles."""

from newshub.quality.filter import clean_article, filter_articles, is_quality_article


__all__ = ["clean_article", "filter_articles", "is_quality_article"]
