"""Keyword extraction from a free-text weekly theme."""

from __future__ import annotations

import string

STOP_WORDS = frozenset(
    {"the", "and", "of", "in", "to", "a", "an", "with", "from", "into", "about"}
)
MAX_KEYWORDS = 5
MIN_LENGTH = 4


def extract_keywords(theme: str | None, limit: int = MAX_KEYWORDS) -> list[str]:
    """Return up to *limit* lowercase search terms from *theme*, in order.

    Tokens shorter than four characters and stop words are dropped.
    """
    if not theme:
        return []
    keywords: list[str] = []
    for raw in theme.lower().split():
        word = raw.strip(string.punctuation)
        if len(word) < MIN_LENGTH or word in STOP_WORDS:
            continue
        keywords.append(word)
        if len(keywords) == limit:
            break
    return keywords
