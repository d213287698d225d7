"""Heuristic quality filter for provider articles."""

import re
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from urllib.parse import urlparse

import structlog

from newshub.models import Article


logger = structlog.get_logger()

MIN_TITLE_LENGTH = 10
MAX_TITLE_LENGTH = 300
ALL_CAPS_MIN_LENGTH = 20
MAX_FUTURE_SKEW = timedelta(hours=1)
DEFAULT_MAX_AGE_DAYS = 30

BLACKLISTED_HOSTS: tuple[str, ...] = ("removed.com", "test.com", "localhost")

TRASH_KEYWORDS: tuple[str, ...] = (
    "[removed]",
    "[deleted]",
    "test article",
    "lorem ipsum",
    "page not found",
    "404 error",
    "403 forbidden",
    "access denied",
    "subscribe to read",
    "content not available",
    "sponsored content",
)

_REPEATED_CHARS = re.compile(r"(.)\1{4,}")
_URL_SHORTENERS = re.compile(r"\b(?:bit\.ly|tinyurl|goo\.gl|t\.co|ow\.ly)\b")
_READ_MORE_TAIL = re.compile(
    r"(\.\.\.|…)\s*(read\s+more|continue\s+reading).*$", re.IGNORECASE
)
_WHITESPACE = re.compile(r"\s+")


def _has_valid_title(title: str) -> bool:
    cleaned = title.strip()
    if not MIN_TITLE_LENGTH <= len(cleaned) <= MAX_TITLE_LENGTH:
        return False
    if len(cleaned) > ALL_CAPS_MIN_LENGTH and cleaned == cleaned.upper():
        return False
    return _REPEATED_CHARS.search(cleaned) is None


def _has_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return False
    host = (parsed.hostname or "").lower()
    if not host:
        return False
    return not any(blocked in host for blocked in BLACKLISTED_HOSTS)


def _has_valid_date(published_at: datetime, now: datetime, max_age_days: int) -> bool:
    if published_at > now + MAX_FUTURE_SKEW:
        return False
    return published_at >= now - timedelta(days=max_age_days)


def _contains_trash(article: Article) -> bool:
    text = f"{article.title} {article.description}".lower()
    if any(keyword in text for keyword in TRASH_KEYWORDS):
        return True
    return _URL_SHORTENERS.search(text) is not None


def is_quality_article(
    article: Article,
    now: datetime | None = None,
    max_age_days: int = DEFAULT_MAX_AGE_DAYS,
) -> bool:
    """Check if an article meets the quality rules.

    Rejects bad title lengths, shouting or repeated-character titles,
    non-http(s) or blacklisted URLs, timestamps more than an hour ahead
    or older than max_age_days, trash phrases and URL shorteners.

    Args:
        article: Article to check.
        now: Reference time (default: current UTC time).
        max_age_days: Oldest accepted publication age.

    Returns:
        True if the article passes every rule.
    """
    now = now or datetime.now(UTC)
    return (
        _has_valid_title(article.title)
        and _has_valid_url(article.url)
        and _has_valid_date(article.published_at, now, max_age_days)
        and not _contains_trash(article)
    )


def _clean_text(text: str) -> str:
    cleaned = text.replace("&amp;", "&").replace("&nbsp;", " ")
    return _WHITESPACE.sub(" ", cleaned).strip()


def clean_article(article: Article) -> Article:
    """Fix common encoding leftovers and trim "Read more" tails.

    Args:
        article: Article to clean.

    Returns:
        Cleaned copy (the same object when nothing changes).
    """
    title = _clean_text(article.title) or article.title
    description = _clean_text(_READ_MORE_TAIL.sub("...", article.description.strip()))
    if title == article.title and description == article.description:
        return article
    return article.model_copy(update={"title": title, "description": description})


def filter_articles(
    articles: Sequence[Article],
    now: datetime | None = None,
    max_age_days: int = DEFAULT_MAX_AGE_DAYS,
) -> list[Article]:
    """Drop low-quality articles and clean the rest.

    Args:
        articles: Articles to filter.
        now: Reference time (default: current UTC time).
        max_age_days: Oldest accepted publication age.

    Returns:
        Cleaned articles that passed, in input order.
    """
    now = now or datetime.now(UTC)
    kept = [
        clean_article(a) for a in articles if is_quality_article(a, now, max_age_days)
    ]
    if len(kept) < len(articles):
        logger.debug(
            "articles_filtered",
            component="quality",
            input_count=len(articles),
            kept_count=len(kept),
        )
    return kept
