"""Provider contract, RSS adapter and category routes."""

from newshub.providers.base import Provider, provider_call
from newshub.providers.routes import CategoryRoute, RouteTable
from newshub.providers.rss import RssFeedProvider, article_id_for, estimate_read_minutes
from newshub.resilience.models import ProviderCall


__all__ = [
    "CategoryRoute",
    "Provider",
    "ProviderCall",
    "RouteTable",
    "RssFeedProvider",
    "article_id_for",
    "estimate_read_minutes",
    "provider_call",
]
