"""NewsHub resilience and ranking engine.

Aggregates articles from unreliable upstream providers into deduplicated,
source-diverse, popularity-ranked lists per category, degrading through
cached and synthetic results instead of raising.
"""

__version__ = "0.1.0"
