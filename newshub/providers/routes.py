"""Category routes: which providers serve a category and in what order."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field

import httpx
import structlog

from newshub.config.schemas import SourceConfig, SourcesConfig
from newshub.models import Category
from newshub.providers.base import Provider
from newshub.providers.rss import DEFAULT_TIMEOUT_S, DEFAULT_USER_AGENT, RssFeedProvider


logger = structlog.get_logger()


@dataclass(frozen=True)
class CategoryRoute:
    """Providers for one category.

    Attributes:
        primary: Providers fetched in parallel as the first tier.
        fallbacks: Providers tried one at a time after the primary tier.
        remix: Whether merged results are remixed for variety.
    """

    primary: tuple[Provider, ...]
    fallbacks: tuple[Provider, ...] = field(default_factory=tuple)
    remix: bool = False


class RouteTable:
    """Maps categories to their provider routes."""

    def __init__(self, routes: Mapping[Category, CategoryRoute]) -> None:
        """Initialize the table.

        Args:
            routes: Route per category; routes without primary providers
                are ignored.
        """
        self._routes = {cat: r for cat, r in routes.items() if r.primary}

    def route_for(self, category: Category) -> CategoryRoute | None:
        """Get the route of a category, or None if it has none."""
        return self._routes.get(category)

    def categories(self) -> list[Category]:
        """Get the categories with a route."""
        return list(self._routes)

    def __contains__(self, category: object) -> bool:
        return category in self._routes

    def __iter__(self) -> Iterator[Category]:
        return iter(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    @classmethod
    def from_config(
        cls,
        config: SourcesConfig,
        http_client: httpx.Client | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> "RouteTable":
        """Build RSS providers and routes from a sources configuration.

        Explicit routes are used as configured (disabled sources dropped).
        Other categories get a derived route: sources with the lowest
        priority value form the primary tier and the rest are fallbacks.
        Without an explicit "all" route, the preferred source of every
        category is combined into a remixed "all" route.

        Args:
            config: Validated sources configuration.
            http_client: Shared HTTP client for every provider.
            timeout_s: Request timeout per provider call.
            user_agent: User-Agent header value.

        Returns:
            RouteTable ready for the pipeline.
        """
        providers: dict[str, Provider] = {
            s.id: RssFeedProvider(
                name=s.name,
                feed_url=s.url,
                category=s.primary_category,
                http_client=http_client,
                timeout_s=timeout_s,
                headers=s.headers,
                user_agent=user_agent,
            )
            for s in config.sources
            if s.enabled
        }

        routes: dict[Category, CategoryRoute] = {}
        for category, route in config.routes.items():
            routes[category] = CategoryRoute(
                primary=tuple(providers[i] for i in route.primary if i in providers),
                fallbacks=tuple(
                    providers[i] for i in route.fallbacks if i in providers
                ),
                remix=route.remix,
            )

        by_category: dict[Category, list[SourceConfig]] = {}
        for source in config.sources:
            if not source.enabled:
                continue
            for category in source.categories:
                by_category.setdefault(category, []).append(source)

        for category, sources in by_category.items():
            if category in routes:
                continue
            ordered = sorted(sources, key=lambda s: s.priority)
            best = ordered[0].priority
            routes[category] = CategoryRoute(
                primary=tuple(providers[s.id] for s in ordered if s.priority == best),
                fallbacks=tuple(providers[s.id] for s in ordered if s.priority != best),
            )

        if Category.ALL not in routes and by_category:
            preferred: dict[str, Provider] = {}
            for sources in by_category.values():
                top = min(sources, key=lambda s: s.priority)
                preferred.setdefault(top.id, providers[top.id])
            routes[Category.ALL] = CategoryRoute(
                primary=tuple(preferred.values()), remix=True
            )

        logger.info(
            "routes_built",
            component="providers",
            provider_count=len(providers),
            categories=sorted(c.value for c in routes),
        )
        return cls(routes)
