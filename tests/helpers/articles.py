"""Article factories and fake providers for tests."""

import hashlib
import threading
from collections.abc import Sequence
from datetime import datetime, timedelta

from newshub.models import Article, Category, FetchResult
from tests.helpers.time import FIXED_NOW


def make_article(  # noqa: PLR0913
    title: str,
    source: str = "Test Source",
    published_at: datetime | None = None,
    description: str = "",
    category: Category = Category.TECH,
    url: str | None = None,
    image_url: str | None = None,
    author: str | None = None,
) -> Article:
    """Build an article with a stable id derived from its title and source."""
    digest = hashlib.sha256(f"{source}:{title}".encode()).hexdigest()[:16]
    return Article(
        id=digest,
        title=title,
        description=description,
        url=url or f"https://news.example.org/{digest}",
        image_url=image_url,
        author=author,
        source=source,
        published_at=published_at or FIXED_NOW - timedelta(hours=1),
        category=category,
    )


def make_batch(
    label: str,
    count: int,
    now: datetime = FIXED_NOW,
    category: Category = Category.TECH,
) -> FetchResult:
    """Build a batch of distinct articles, newest first, one minute apart.

    Titles share no significant words across labels or within a batch
    apart from "update", so no two generated articles are duplicates.
    """
    topics = [
        "Quantum",
        "Harbor",
        "Glacier",
        "Orchard",
        "Lantern",
        "Meadow",
        "Canyon",
        "Falcon",
        "Summit",
        "Willow",
        "Compass",
        "Ember",
    ]
    articles = tuple(
        make_article(
            f"{label}{topics[i % len(topics)]} {label}story{i} update",
            source=label,
            published_at=now - timedelta(minutes=i + 1),
            category=category,
        )
        for i in range(count)
    )
    return FetchResult(articles=articles, provider_label=label)


Outcome = Exception | Sequence[Article]


class FakeProvider:
    """Scripted provider.

    Each fetch consumes the next outcome; the last outcome repeats. An
    outcome is either an exception to raise or a list of articles.
    A positive delay blocks the call until the delay passes or release()
    is called.
    """

    def __init__(
        self,
        name: str,
        outcomes: Sequence[Outcome] = (),
        delay_s: float = 0.0,
    ) -> None:
        self.name = name
        self._outcomes = list(outcomes) or [[]]
        self._delay_s = delay_s
        self._release = threading.Event()
        self._lock = threading.Lock()
        self.calls = 0

    def fetch(self, category: Category, limit: int) -> FetchResult:  # noqa: ARG002
        with self._lock:
            index = min(self.calls, len(self._outcomes) - 1)
            self.calls += 1
        if self._delay_s > 0:
            self._release.wait(self._delay_s)

        outcome = self._outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        articles = tuple(outcome)[:limit]
        return FetchResult(articles=articles, provider_label=self.name)

    def release(self) -> None:
        """Unblock delayed calls."""
        self._release.set()
