"""Keyword matching utility for popularity scoring.

This module provides a reusable KeywordMatcher class that pre-compiles
regex patterns for keyword counting across article titles and summaries.
"""

import re
from collections.abc import Iterable


# Keywords this short are prone to substring false positives
# (e.g. "ai" in "said", "ipo" in "tripod"), so they get \b guards.
_SHORT_KEYWORD_THRESHOLD = 4

_WORD_CHARS_ONLY = re.compile(r"^\w+$")


def compile_keyword_pattern(keyword: str) -> re.Pattern[str]:
    """Compile a keyword into a case-insensitive regex pattern.

    Short all-word-character keywords (<= _SHORT_KEYWORD_THRESHOLD chars)
    get word-boundary anchors. Phrases and longer keywords use plain
    substring matching.

    Args:
        keyword: Raw keyword string.

    Returns:
        Compiled regex pattern.
    """
    escaped = re.escape(keyword)
    if len(keyword) <= _SHORT_KEYWORD_THRESHOLD and _WORD_CHARS_ONLY.match(keyword):
        return re.compile(rf"\b{escaped}\b", re.IGNORECASE)
    return re.compile(escaped, re.IGNORECASE)


class KeywordMatcher:
    """Counts distinct keyword hits in text using pre-compiled patterns."""

    def __init__(self, keywords: Iterable[str]) -> None:
        """Initialize the matcher.

        Args:
            keywords: Keywords to match; duplicates are ignored.
        """
        unique = list(dict.fromkeys(kw.lower() for kw in keywords))
        self._keywords = unique
        self._patterns = [compile_keyword_pattern(kw) for kw in unique]

    @property
    def keyword_count(self) -> int:
        """Get number of configured keywords."""
        return len(self._patterns)

    def matched_keywords(self, *texts: str) -> list[str]:
        """List keywords found in any of the given texts.

        Each keyword is counted at most once.

        Args:
            texts: Texts to search.

        Returns:
            Matched keywords in configuration order.
        """
        matched: list[str] = []
        for keyword, pattern in zip(self._keywords, self._patterns, strict=True):
            if any(pattern.search(text) for text in texts if text):
                matched.append(keyword)
        return matched

    def count_matches(self, *texts: str) -> int:
        """Count distinct keywords found in any of the given texts."""
        return len(self.matched_keywords(*texts))
