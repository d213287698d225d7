"""Constants for the ranking module."""

from newshub.models import Category


# Weights of each component in the overall popularity score
RECENCY_WEIGHT: float = 0.25
ENGAGEMENT_WEIGHT: float = 0.20
CREDIBILITY_WEIGHT: float = 0.15
TRENDING_WEIGHT: float = 0.25
RELEVANCE_WEIGHT: float = 0.15

# (max age in hours, score) steps, checked in order
RECENCY_STEPS: tuple[tuple[float, float], ...] = (
    (2.0, 1.0),
    (12.0, 0.8),
    (24.0, 0.6),
    (72.0, 0.4),
    (168.0, 0.2),
)
RECENCY_FLOOR: float = 0.1

ENGAGEMENT_BASE: float = 0.5
ENGAGEMENT_PER_WORD: float = 0.1
ENGAGEMENT_TITLE_BONUS: float = 0.2
ENGAGEMENT_IMAGE_BONUS: float = 0.1
ENGAGEMENT_AUTHOR_BONUS: float = 0.1
IDEAL_TITLE_MIN_LENGTH: int = 40
IDEAL_TITLE_MAX_LENGTH: int = 80

ENGAGEMENT_WORDS: tuple[str, ...] = (
    "breaking",
    "exclusive",
    "revealed",
    "shocking",
    "major",
    "announces",
    "launches",
    "new",
    "first",
    "record",
)

TRENDING_PER_KEYWORD: float = 0.15

TRENDING_KEYWORDS: dict[Category, tuple[str, ...]] = {
    Category.INDIA: (
        "breaking",
        "parliament",
        "election",
        "modi",
        "congress",
        "bjp",
        "supreme court",
        "bollywood",
        "cricket",
        "startup",
    ),
    Category.TECH: (
        "ai",
        "artificial intelligence",
        "smartphone",
        "apple",
        "google",
        "microsoft",
        "meta",
        "tesla",
        "breakthrough",
        "innovation",
    ),
    Category.SOFTWARE: (
        "react",
        "javascript",
        "python",
        "github",
        "release",
        "update",
        "security",
        "bug",
        "feature",
        "developer",
    ),
    Category.AI_ML: (
        "chatgpt",
        "openai",
        "machine learning",
        "neural network",
        "deep learning",
        "llm",
        "automation",
        "robot",
    ),
    Category.SPORTS: (
        "football",
        "cricket",
        "olympics",
        "world cup",
        "champion",
        "record",
        "goal",
        "victory",
        "tournament",
    ),
    Category.BUSINESS: (
        "stock",
        "market",
        "ipo",
        "revenue",
        "profit",
        "acquisition",
        "merger",
        "ceo",
        "funding",
        "investment",
    ),
    Category.SCIENCE: (
        "research",
        "discovery",
        "study",
        "breakthrough",
        "climate",
        "space",
        "nasa",
        "vaccine",
        "gene",
        "quantum",
    ),
    Category.STARTUPS: (
        "funding",
        "unicorn",
        "ipo",
        "valuation",
        "series",
        "venture",
        "founder",
        "launch",
        "growth",
        "acquisition",
    ),
}

SOURCE_CREDIBILITY: dict[str, float] = {
    "BBC": 0.95,
    "Reuters": 0.95,
    "Associated Press": 0.9,
    "The Hindu": 0.85,
    "Times of India": 0.8,
    "Economic Times": 0.85,
    "TechCrunch": 0.8,
    "Ars Technica": 0.85,
    "The Verge": 0.75,
    "GitHub": 0.9,
    "Dev.to": 0.7,
    "Hacker News": 0.8,
    "ESPN": 0.8,
    "Nature": 0.95,
    "Science": 0.95,
    "MIT Technology Review": 0.9,
}
DEFAULT_CREDIBILITY: float = 0.5

RELEVANCE_EXACT: float = 1.0
RELEVANCE_RELATED: float = 0.6
RELEVANCE_ALL: float = 0.8
RELEVANCE_UNRELATED: float = 0.1

RELATED_CATEGORIES: dict[Category, frozenset[Category]] = {
    Category.TECH: frozenset(
        {Category.SOFTWARE, Category.AI_ML, Category.WEB_DEV, Category.MOBILE_DEV}
    ),
    Category.SOFTWARE: frozenset({Category.TECH, Category.AI_ML, Category.WEB_DEV}),
    Category.AI_ML: frozenset({Category.TECH, Category.SOFTWARE, Category.SCIENCE}),
    Category.INDIA: frozenset(
        {Category.POLITICAL, Category.BUSINESS, Category.SPORTS}
    ),
    Category.BUSINESS: frozenset({Category.STARTUPS, Category.TECH}),
    Category.STARTUPS: frozenset({Category.BUSINESS, Category.TECH}),
}

DEFAULT_TRENDING_LIMIT: int = 5
