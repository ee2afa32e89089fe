"""Keyword-based labels for report clusters."""

import re
from collections import Counter
from typing import Sequence

STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "is", "are", "was", "were", "be", "been", "being", "have",
    "has", "had", "do", "does", "did", "will", "would", "could", "should",
    "may", "might", "must", "can", "this", "that", "these", "those", "i",
    "you", "he", "she", "it", "we", "they", "me", "him", "her", "us", "them",
})

KEYWORDS_PER_TEXT = 5
TOP_KEYWORDS = 3

_PUNCTUATION = re.compile(r"[^\w\s]")


def extract_keywords(text: str, limit: int = KEYWORDS_PER_TEXT) -> list[str]:
    """Return the first `limit` non-stopword tokens longer than two characters."""
    words = _PUNCTUATION.sub("", text.lower()).split()
    keywords = [w for w in words if len(w) > 2 and w not in STOPWORDS]
    return keywords[:limit]


def top_keywords(texts: Sequence[str], n: int = TOP_KEYWORDS) -> list[str]:
    """Most frequent keywords across texts; ties keep first-seen order."""
    counts: Counter[str] = Counter()
    for text in texts:
        counts.update(extract_keywords(text))
    # most_common sorts stably, and Counter keeps insertion order
    return [word for word, _ in counts.most_common(n)]


def summarize(texts: Sequence[str]) -> str:
    """Render a cluster label such as 'Issues related to: login, crash (3 reports)'."""
    keywords = top_keywords(texts)
    return f"Issues related to: {', '.join(keywords)} ({len(texts)} reports)"
