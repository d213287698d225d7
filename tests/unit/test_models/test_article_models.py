"""Unit tests for article and batch models."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from newshub.models import Article, Category, FetchResult, ResultOrigin
from tests.helpers.articles import make_article
from tests.helpers.time import FIXED_NOW


class TestArticle:
    """Tests for Article validation."""

    @pytest.mark.unit
    def test_valid_article(self) -> None:
        """Test creating a valid article."""
        article = make_article("Parliament Winter Session Begins")

        assert article.title == "Parliament Winter Session Begins"
        assert article.tags == ()
        assert article.category == Category.TECH

    @pytest.mark.unit
    @pytest.mark.parametrize("field", ["title", "url"])
    def test_blank_required_text_rejected(self, field: str) -> None:
        """Test that whitespace-only titles and URLs are rejected."""
        data = make_article("A perfectly fine headline").model_dump()
        data[field] = "   "

        with pytest.raises(ValidationError):
            Article.model_validate(data)

    @pytest.mark.unit
    def test_empty_title_rejected(self) -> None:
        """Test that an empty title is rejected."""
        with pytest.raises(ValidationError):
            Article(
                id="a1",
                title="",
                url="https://news.example.org/a1",
                source="Test",
                published_at=FIXED_NOW,
                category=Category.TECH,
            )

    @pytest.mark.unit
    def test_naive_timestamp_becomes_utc(self) -> None:
        """Test that naive timestamps are treated as UTC."""
        article = make_article(
            "Naive timestamp headline", published_at=datetime(2026, 1, 1, 8, 0)
        )

        assert article.published_at.tzinfo is not None
        assert article.published_at.utcoffset() is not None
        assert article.published_at.hour == 8

    @pytest.mark.unit
    def test_article_is_frozen(self) -> None:
        """Test that articles are immutable."""
        article = make_article("Immutable headline here")

        with pytest.raises(ValidationError):
            article.title = "Changed"  # type: ignore[misc]

    @pytest.mark.unit
    def test_extra_fields_forbidden(self) -> None:
        """Test that unknown fields are rejected."""
        data = make_article("Strict headline here").model_dump()
        data["score"] = 1.0

        with pytest.raises(ValidationError):
            Article.model_validate(data)


class TestFetchResult:
    """Tests for FetchResult helpers."""

    @pytest.mark.unit
    def test_defaults(self) -> None:
        """Test default values of a batch."""
        result = FetchResult(provider_label="BBC")

        assert result.is_empty
        assert result.origin == ResultOrigin.LIVE
        assert not result.is_degraded
        assert result.retrieved_at.tzinfo is not None

    @pytest.mark.unit
    def test_with_label_appends_suffix(self) -> None:
        """Test relabelling a batch for a degraded tier."""
        result = FetchResult(
            articles=(make_article("Cached headline number one"),),
            provider_label="BBC + Reuters",
        )

        cached = result.with_label("(cached)", ResultOrigin.CACHE)

        assert cached.provider_label == "BBC + Reuters (cached)"
        assert cached.origin == ResultOrigin.CACHE
        assert cached.is_degraded
        assert cached.articles == result.articles
        assert result.provider_label == "BBC + Reuters"

    @pytest.mark.unit
    def test_empty_label_rejected(self) -> None:
        """Test that a provider label is required."""
        with pytest.raises(ValidationError):
            FetchResult(provider_label="")

    @pytest.mark.unit
    def test_negative_total_rejected(self) -> None:
        """Test that total_available cannot be negative."""
        with pytest.raises(ValidationError):
            FetchResult(provider_label="BBC", total_available=-1)
