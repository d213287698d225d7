"""Shared data models."""

from newshub.models.article import Article, Category, FetchResult, ResultOrigin


__all__ = [
    "Article",
    "Category",
    "FetchResult",
    "ResultOrigin",
]
