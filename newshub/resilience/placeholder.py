"""Synthetic informational articles served when every tier fails."""

from datetime import UTC, datetime, timedelta

from newshub.models import Article, Category, FetchResult, ResultOrigin


PLACEHOLDER_SUFFIX = "(offline - sample data)"
PLACEHOLDER_SOURCE = "NewsHub"
PLACEHOLDER_URL = "https://example.com"


def build_placeholder(label: str, now: datetime | None = None) -> FetchResult:
    """Build the placeholder result for a request.

    Args:
        label: Provider label of the request.
        now: Reference time for the article timestamps.

    Returns:
        Non-empty FetchResult with origin PLACEHOLDER.
    """
    now = now or datetime.now(UTC)
    articles = (
        Article(
            id="placeholder_1",
            title="NewsHub - Your Multi-Source News Reader",
            description=(
                "Stay informed with articles from multiple trusted sources. "
                "Connect to the internet for the latest news updates."
            ),
            url=PLACEHOLDER_URL,
            author="NewsHub Team",
            source=PLACEHOLDER_SOURCE,
            published_at=now,
            category=Category.SOFTWARE,
            tags=("sample", "offline"),
        ),
        Article(
            id="placeholder_2",
            title="Connect to Internet for Latest News",
            description=(
                "This app aggregates news from several providers. Please check "
                "your internet connection for fresh content."
            ),
            url=PLACEHOLDER_URL,
            author="NewsHub",
            source=PLACEHOLDER_SOURCE,
            published_at=now - timedelta(hours=1),
            category=Category.TECH,
            tags=("sample", "info"),
        ),
    )
    return FetchResult(
        articles=articles,
        provider_label=f"{label} {PLACEHOLDER_SUFFIX}",
        retrieved_at=now,
        has_more=False,
        total_available=len(articles),
        origin=ResultOrigin.PLACEHOLDER,
    )
