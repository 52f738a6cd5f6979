"""Question keyword extraction and the page relevance gate.

Keywords are CJK runs of two or more characters and Latin words of three
or more letters, case-folded, de-duplicated in order of appearance and
capped.  A small English stop-word list keeps question scaffolding
("what", "how", "does") from counting as evidence of relevance.
"""

from __future__ import annotations

import re

_KEYWORD_PATTERN = re.compile(r"[\u4e00-\u9fa5]{2,}|[a-zA-Z]{3,}")

DEFAULT_MAX_KEYWORDS = 8

STOP_WORDS: frozenset[str] = frozenset(
    {
        "about", "after", "all", "also", "and", "any", "are", "because", "been",
        "before", "but", "can", "could", "did", "does", "doing", "explain", "for",
        "from", "had", "has", "have", "her", "his", "how", "into", "its", "like",
        "may", "more", "most", "not", "other", "our", "please", "should", "some",
        "tell", "than", "that", "the", "their", "them", "then", "there", "these",
        "they", "this", "those", "was", "were", "what", "when", "where", "which",
        "who", "whom", "why", "will", "with", "would", "you", "your",
    }
)


def extract_keywords(question: str, max_keywords: int = DEFAULT_MAX_KEYWORDS) -> list[str]:
    """Return up to *max_keywords* lower-cased search terms from *question*."""
    keywords: list[str] = []
    for match in _KEYWORD_PATTERN.findall(question or ""):
        term = match.lower()
        if term in STOP_WORDS or term in keywords:
            continue
        keywords.append(term)
        if len(keywords) >= max_keywords:
            break
    return keywords


def keyword_hits(content: str, keywords: list[str]) -> list[str]:
    """Return the keywords occurring (as substrings, case-insensitive) in *content*."""
    lower = (content or "").lower()
    return [kw for kw in keywords if kw.lower() in lower]


def is_relevant(content: str, keywords: list[str]) -> bool:
    """Relevance gate for one page or chunk.

    With at most two keywords one hit suffices; with more, at least two
    hits or a hit ratio of 50% is required.
    """
    if not content or not keywords:
        return False
    hits = len(keyword_hits(content, keywords))
    if len(keywords) <= 2:
        return hits >= 1
    return hits >= 2 or hits / len(keywords) >= 0.5
