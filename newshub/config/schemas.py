"""Configuration schemas for the engine and its sources."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from newshub.models import Category


DEFAULT_PRELOAD_ORDER: tuple[Category, ...] = (
    Category.ALL,
    Category.INDIA,
    Category.SOFTWARE,
    Category.SPORTS,
    Category.TECH,
    Category.BREAKING,
    Category.WORLD,
    Category.BUSINESS,
)

_Millis = Annotated[int, Field(ge=0, le=24 * 60 * 60 * 1000)]


class EngineConfig(BaseModel):
    """Tunables of the resilience engine. All durations are milliseconds.

    Attributes:
        fetch_timeout_ms: Timeout of a first attempt and of a fan-out.
        retry_timeout_ms: Timeout of each retry.
        max_retries: Retries per fallback tier.
        retry_delays_ms: Delay before each retry; the last one repeats.
        cache_ttl_ms: Freshness window of cache entries.
        durable_timeout_ms: Upper bound of a durable store operation.
        rate_limit_requests_per_window: Calls allowed per key and window.
        rate_limit_window_ms: Rate-limit window length.
        failure_log_size: Capacity of the failure ring buffer.
        preload_category_order: Categories warmed by the scheduler, in order.
        preload_stagger_ms: Delay between consecutive preloads.
        caller_timeout_ms: Foreground budget of a category request.
        default_limit: Articles per category when the caller gives none.
        quality_filter_enabled: Drop low-quality articles before merging.
        max_article_age_days: Oldest article the quality filter accepts.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    fetch_timeout_ms: Annotated[int, Field(ge=1, le=120000)] = 6000
    retry_timeout_ms: Annotated[int, Field(ge=1, le=120000)] = 3000
    max_retries: Annotated[int, Field(ge=0, le=10)] = 1
    retry_delays_ms: tuple[Annotated[int, Field(ge=0, le=60000)], ...] = (300, 1000)
    cache_ttl_ms: _Millis = 15 * 60 * 1000
    durable_timeout_ms: Annotated[int, Field(ge=1, le=60000)] = 3000
    rate_limit_requests_per_window: Annotated[int, Field(ge=1)] = 100
    rate_limit_window_ms: Annotated[int, Field(ge=1)] = 60 * 60 * 1000
    failure_log_size: Annotated[int, Field(ge=1, le=10000)] = 100
    preload_category_order: tuple[Category, ...] = DEFAULT_PRELOAD_ORDER
    preload_stagger_ms: _Millis = 2000
    caller_timeout_ms: Annotated[int, Field(ge=1, le=300000)] = 10000
    default_limit: Annotated[int, Field(ge=1, le=500)] = 25
    quality_filter_enabled: bool = True
    max_article_age_days: Annotated[int, Field(ge=1, le=3650)] = 30

    @field_validator("preload_category_order")
    @classmethod
    def validate_unique_categories(
        cls, v: tuple[Category, ...]
    ) -> tuple[Category, ...]:
        """Ensure no category is preloaded twice."""
        if len(set(v)) != len(v):
            msg = "preload_category_order must not repeat categories"
            raise ValueError(msg)
        return v


class SourceConfig(BaseModel):
    """Configuration for a single RSS/Atom source.

    Attributes:
        id: Unique identifier for the source.
        name: Display name, used as the article source.
        url: Feed URL.
        categories: Categories the source serves; the first one is used
            for its articles.
        priority: Lower values are preferred when routes are derived.
        enabled: Whether the source is used.
        headers: Optional custom headers for requests.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: Annotated[str, Field(min_length=1, max_length=100, pattern=r"^[a-z0-9_-]+$")]
    name: Annotated[str, Field(min_length=1, max_length=200)]
    url: Annotated[str, Field(min_length=1)]
    categories: Annotated[list[Category], Field(min_length=1)]
    priority: Annotated[int, Field(ge=0, le=10)] = 1
    enabled: bool = True
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate URL starts with http:// or https://."""
        if not v.startswith(("http://", "https://")):
            msg = "URL must start with http:// or https://"
            raise ValueError(msg)
        return v

    @field_validator("headers")
    @classmethod
    def validate_no_auth_headers(cls, v: dict[str, str]) -> dict[str, str]:
        """Ensure no credentials are stored in config."""
        forbidden = {"authorization", "cookie", "x-api-key"}
        for key in v:
            if key.lower() in forbidden:
                msg = f"Header '{key}' must not be stored in config"
                raise ValueError(msg)
        return v

    @property
    def primary_category(self) -> Category:
        """Get the category assigned to this source's articles."""
        return self.categories[0]


class RouteConfig(BaseModel):
    """Provider route for one category.

    Attributes:
        primary: Source ids fetched in parallel as the primary tier.
        fallbacks: Source ids tried one by one after the primary tier.
        remix: Whether merged results are remixed for variety.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    primary: Annotated[list[str], Field(min_length=1)]
    fallbacks: list[str] = Field(default_factory=list)
    remix: bool = False


class SourcesConfig(BaseModel):
    """Root configuration for sources.yaml.

    Attributes:
        version: Schema version.
        sources: List of source configurations.
        routes: Explicit category routes; categories without one get a
            route derived from source priorities.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: Annotated[str, Field(pattern=r"^\d+\.\d+$")] = "1.0"
    sources: list[SourceConfig]
    routes: dict[Category, RouteConfig] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_references(self) -> "SourcesConfig":
        """Ensure source ids are unique and routes reference known sources."""
        ids = [s.id for s in self.sources]
        duplicates = {id_ for id_ in ids if ids.count(id_) > 1}
        if duplicates:
            msg = f"Duplicate source IDs found: {sorted(duplicates)}"
            raise ValueError(msg)

        known = set(ids)
        for category, route in self.routes.items():
            unknown = [s for s in [*route.primary, *route.fallbacks] if s not in known]
            if unknown:
                msg = f"Route '{category.value}' references unknown sources: {unknown}"
                raise ValueError(msg)
        return self

    def source_by_id(self, source_id: str) -> SourceConfig | None:
        """Look up a source by id."""
        for source in self.sources:
            if source.id == source_id:
                return source
        return None
