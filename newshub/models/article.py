"""Article and batch models shared by every pipeline stage."""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Category(str, Enum):
    """Topical category an article belongs to.

    ALL is the catch-all view that mixes every other category.
    """

    ALL = "all"
    SOFTWARE = "software"
    TECH = "tech"
    AI_ML = "ai_ml"
    WEB_DEV = "web_dev"
    MOBILE_DEV = "mobile_dev"
    POLITICAL = "political"
    INDIA = "india"
    SPORTS = "sports"
    BUSINESS = "business"
    WORLD = "world"
    BREAKING = "breaking"
    SCIENCE = "science"
    STARTUPS = "startups"
    COOKING = "cooking"


class ResultOrigin(str, Enum):
    """Where a FetchResult ultimately came from.

    - LIVE: Fresh provider response
    - CACHE: Fresh cache entry
    - STALE_CACHE: Expired in-memory cache entry
    - DURABLE_CACHE: Entry read back from the durable store
    - PLACEHOLDER: Synthetic informational articles
    """

    LIVE = "live"
    CACHE = "cache"
    STALE_CACHE = "stale_cache"
    DURABLE_CACHE = "durable_cache"
    PLACEHOLDER = "placeholder"


class Article(BaseModel):
    """A single piece of short-form content from a provider."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: Annotated[str, Field(min_length=1, description="Opaque unique identifier")]
    title: Annotated[str, Field(min_length=1, description="Headline")]
    description: str = Field(default="", description="Summary text")
    url: Annotated[str, Field(min_length=1, description="Link to the article")]
    image_url: str | None = Field(default=None, description="Lead image URL")
    author: str | None = Field(default=None, description="Byline")
    source: Annotated[str, Field(min_length=1, description="Provider display name")]
    published_at: datetime = Field(description="Publication timestamp")
    category: Category = Field(description="Category the provider filed it under")
    tags: tuple[str, ...] = Field(default=(), description="Ordered tags")
    estimated_read_minutes: int | None = Field(
        default=None, ge=0, description="Estimated reading time"
    )

    @field_validator("title", "url")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject titles and URLs that are only whitespace."""
        stripped = v.strip()
        if not stripped:
            msg = "must not be blank"
            raise ValueError(msg)
        return stripped

    @field_validator("published_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class FetchResult(BaseModel):
    """A batch of articles produced by a provider or a pipeline stage."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    articles: tuple[Article, ...] = Field(default=(), description="Articles in order")
    provider_label: Annotated[
        str, Field(min_length=1, description="Provider or degraded-state label")
    ]
    retrieved_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the batch was produced",
    )
    has_more: bool = Field(default=False, description="More results upstream")
    total_available: int | None = Field(
        default=None, ge=0, description="Total results upstream if known"
    )
    origin: ResultOrigin = Field(
        default=ResultOrigin.LIVE, description="Which tier produced the batch"
    )

    @property
    def is_empty(self) -> bool:
        """Check if the batch carries no articles."""
        return len(self.articles) == 0

    @property
    def is_degraded(self) -> bool:
        """Check if the batch was served from anything but a live fetch."""
        return self.origin != ResultOrigin.LIVE

    def with_label(self, suffix: str, origin: ResultOrigin) -> "FetchResult":
        """Return a copy annotated with a degraded-state suffix.

        Args:
            suffix: Annotation such as "(cached)".
            origin: Tier the copy is served from.

        Returns:
            Relabelled FetchResult.
        """
        return self.model_copy(
            update={
                "provider_label": f"{self.provider_label} {suffix}",
                "origin": origin,
            }
        )
