"""RSS/Atom feed provider."""

import calendar
import hashlib
import html
import math
import re
from datetime import UTC, datetime

import feedparser  # type: ignore[import-untyped]
import httpx
import structlog

from newshub.models import Article, Category, FetchResult
from newshub.resilience.errors import ProviderError, ProviderErrorKind


logger = structlog.get_logger()

WORDS_PER_MINUTE = 200
DEFAULT_TIMEOUT_S = 6.0
DEFAULT_USER_AGENT = "newshub/0.1"
HTTP_STATUS_TOO_MANY_REQUESTS = 429
HTTP_STATUS_SERVER_ERROR = 500
HTTP_STATUS_CLIENT_ERROR = 400
MAX_DESCRIPTION_LENGTH = 1000

_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")


def _strip_html(text: str) -> str:
    return _WHITESPACE.sub(" ", html.unescape(_TAG.sub(" ", text))).strip()


def article_id_for(link: str) -> str:
    """Derive a stable article id from its link."""
    return hashlib.sha256(link.encode("utf-8")).hexdigest()[:32]


def estimate_read_minutes(*texts: str) -> int:
    """Estimate reading time at 200 words per minute (at least one minute)."""
    words = sum(len(t.split()) for t in texts if t)
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


class RssFeedProvider:
    """Provider backed by a single RSS 2.0 or Atom 1.0 feed.

    Parses feeds with feedparser. Extracts title, link, published date,
    summary, author, image and tags.
    """

    def __init__(  # noqa: PLR0913
        self,
        name: str,
        feed_url: str,
        category: Category,
        http_client: httpx.Client | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        headers: dict[str, str] | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        """Initialize the provider.

        Args:
            name: Display name, used as label and article source.
            feed_url: URL of the feed.
            category: Category assigned to the feed's articles.
            http_client: Shared client; a short-lived one is used per
                request when omitted.
            timeout_s: Request timeout in seconds.
            headers: Extra request headers.
            user_agent: User-Agent header value.
        """
        self.name = name
        self.feed_url = feed_url
        self.category = category
        self._http_client = http_client
        self._timeout_s = timeout_s
        self._headers = {"User-Agent": user_agent, **(headers or {})}
        self._log = logger.bind(component="provider", provider=name, url=feed_url)

    def fetch(self, category: Category, limit: int) -> FetchResult:
        """Fetch up to limit articles from the feed.

        Args:
            category: Category being served (logged only).
            limit: Maximum number of articles.

        Returns:
            FetchResult labelled with the provider name.

        Raises:
            ProviderError: On timeout, network, HTTP or parse failures.
        """
        body = self._get(category)
        feed = feedparser.parse(body)

        if feed.bozo and not feed.entries:
            self._log.warning(
                "feed_parse_failed", error=str(feed.get("bozo_exception"))
            )
            raise ProviderError(
                ProviderErrorKind.MALFORMED,
                f"Unparsable feed: {feed.get('bozo_exception')}",
                provider=self.name,
            )

        articles = [a for a in (self._parse_entry(e) for e in feed.entries) if a]
        articles.sort(key=lambda a: a.published_at, reverse=True)
        selected = articles[:limit]

        self._log.info(
            "feed_fetched",
            category=category.value,
            entries=len(feed.entries),
            articles=len(selected),
        )
        return FetchResult(
            articles=tuple(selected),
            provider_label=self.name,
            has_more=len(articles) > len(selected),
            total_available=len(articles),
        )

    def _get(self, category: Category) -> bytes:
        try:
            if self._http_client is not None:
                response = self._http_client.get(
                    self.feed_url, headers=self._headers, timeout=self._timeout_s
                )
            else:
                with httpx.Client(
                    timeout=self._timeout_s, follow_redirects=True
                ) as client:
                    response = client.get(self.feed_url, headers=self._headers)
        except httpx.TimeoutException as e:
            raise ProviderError(
                ProviderErrorKind.TIMEOUT, f"Request timed out: {e}", provider=self.name
            ) from e
        except httpx.TransportError as e:
            raise ProviderError(
                ProviderErrorKind.NETWORK, f"Connection failed: {e}", provider=self.name
            ) from e

        status = response.status_code
        if status == HTTP_STATUS_TOO_MANY_REQUESTS:
            raise ProviderError(
                ProviderErrorKind.RATE_LIMITED, "HTTP 429", provider=self.name
            )
        if status >= HTTP_STATUS_SERVER_ERROR:
            raise ProviderError(
                ProviderErrorKind.NETWORK, f"HTTP {status}", provider=self.name
            )
        if status >= HTTP_STATUS_CLIENT_ERROR:
            raise ProviderError(
                ProviderErrorKind.MALFORMED, f"HTTP {status}", provider=self.name
            )

        self._log.debug(
            "feed_response", category=category.value, status_code=status
        )
        return response.content

    def _parse_entry(self, entry: feedparser.FeedParserDict) -> Article | None:
        link = entry.get("link", "")
        if not link:
            for link_entry in entry.get("links", []):
                if link_entry.get("rel") == "alternate":
                    link = link_entry.get("href", "")
                    break
        title = _strip_html(entry.get("title", ""))
        if not link or not title:
            return None

        summary = entry.get("summary", "") or entry.get("description", "")
        description = _strip_html(summary)[:MAX_DESCRIPTION_LENGTH]
        tags = tuple(t.get("term", "") for t in entry.get("tags", []) if t.get("term"))

        return Article(
            id=article_id_for(link),
            title=title,
            description=description,
            url=link,
            image_url=self._extract_image(entry),
            author=entry.get("author") or None,
            source=self.name,
            published_at=self._extract_date(entry),
            category=self.category,
            tags=tags,
            estimated_read_minutes=estimate_read_minutes(title, description),
        )

    def _extract_date(self, entry: feedparser.FeedParserDict) -> datetime:
        for key in ("published_parsed", "updated_parsed"):
            parsed = entry.get(key)
            if parsed:
                try:
                    return datetime.fromtimestamp(calendar.timegm(parsed), tz=UTC)
                except (ValueError, OverflowError):
                    continue
        return datetime.now(UTC)

    def _extract_image(self, entry: feedparser.FeedParserDict) -> str | None:
        for key in ("media_content", "media_thumbnail"):
            for media in entry.get(key, []):
                if media.get("url"):
                    return str(media["url"])
        for enclosure in entry.get("enclosures", []):
            if str(enclosure.get("type", "")).startswith("image/"):
                return enclosure.get("href") or None
        return None
