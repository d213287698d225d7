"""Provider contract."""

from typing import Protocol, runtime_checkable

from newshub.models import Category, FetchResult
from newshub.resilience.models import ProviderCall


@runtime_checkable
class Provider(Protocol):
    """An upstream article source.

    fetch() raises ProviderError (network, timeout, malformed or
    rate_limited) instead of returning partial garbage.
    """

    name: str

    def fetch(self, category: Category, limit: int) -> FetchResult:
        """Fetch up to limit articles for a category.

        Args:
            category: Category being served.
            limit: Maximum number of articles.

        Returns:
            FetchResult labelled with the provider name.
        """
        ...


def provider_call(provider: Provider, category: Category, limit: int) -> ProviderCall:
    """Bind a provider fetch into a zero-argument call keyed by its name."""
    return ProviderCall(
        label=provider.name, call=lambda: provider.fetch(category, limit)
    )
