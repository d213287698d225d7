"""Status models for the preload scheduler."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from newshub.models import Category


# Static adjacency used by preload_related; unknown categories map to ALL
RELATED_PRELOADS: dict[Category, tuple[Category, ...]] = {
    Category.ALL: (Category.INDIA, Category.SOFTWARE, Category.BREAKING),
    Category.INDIA: (Category.POLITICAL, Category.SPORTS, Category.BUSINESS),
    Category.SOFTWARE: (Category.TECH, Category.WEB_DEV, Category.AI_ML),
    Category.SPORTS: (Category.INDIA, Category.WORLD),
    Category.TECH: (Category.SOFTWARE, Category.AI_ML, Category.STARTUPS),
    Category.BREAKING: (Category.POLITICAL, Category.WORLD),
}


def related_categories(category: Category) -> tuple[Category, ...]:
    """Get the categories worth warming after a category is opened."""
    return RELATED_PRELOADS.get(category, (Category.ALL,))


class CacheStatus(BaseModel):
    """Read-only status row for one preloaded category.

    Attributes:
        category: Category of the entry.
        age_seconds: Seconds since the entry was written.
        item_count: Number of cached articles.
        valid: Whether the entry is still fresh.
        provider_label: Label of the cached result.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    category: Category
    age_seconds: Annotated[float, Field(ge=0)]
    item_count: Annotated[int, Field(ge=0)]
    valid: bool
    provider_label: str

    def to_dict(self) -> dict[str, str | int | float | bool]:
        """Convert to dictionary for JSON output."""
        return {
            "category": self.category.value,
            "age_seconds": round(self.age_seconds, 1),
            "item_count": self.item_count,
            "valid": self.valid,
            "provider_label": self.provider_label,
        }
