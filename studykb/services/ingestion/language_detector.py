"""Heuristic language classification for extracted text.

Counts CJK ideographs and Latin-alphabet words.  The Latin ratio is
``words * 5 / total_chars``, approximating an average word length of five
characters so both ratios live on the same per-character scale.
"""

from __future__ import annotations

import re

from studykb.models.document import Language

_CJK_CHAR = re.compile(r"[\u4e00-\u9fa5]")
_LATIN_WORD = re.compile(r"[a-zA-Z]+")

_CJK_THRESHOLD = 0.3
_MIXED_LATIN_THRESHOLD = 0.2
_LATIN_THRESHOLD = 0.3
_AVG_LATIN_WORD_LENGTH = 5


def detect_language(text: str) -> Language:
    """Classify *text* as Chinese, English, mixed or none.

    Pure function.  Empty or whitespace-only input yields ``Language.NONE``.
    """
    if not text or not text.strip():
        return Language.NONE

    total_chars = len(text)
    cjk_ratio = len(_CJK_CHAR.findall(text)) / total_chars
    latin_ratio = len(_LATIN_WORD.findall(text)) * _AVG_LATIN_WORD_LENGTH / total_chars

    if cjk_ratio > _CJK_THRESHOLD and latin_ratio > _MIXED_LATIN_THRESHOLD:
        return Language.MIXED
    if cjk_ratio > _CJK_THRESHOLD:
        return Language.CHINESE
    if latin_ratio > _LATIN_THRESHOLD:
        return Language.ENGLISH
    return Language.NONE


def count_words(text: str) -> int:
    """Count whitespace-delimited tokens."""
    return len(text.split()) if text else 0


class LanguageDetector:
    """Object wrapper so the pipeline can take the detector as a dependency."""

    def detect(self, text: str) -> Language:
        return detect_language(text)

    def count_words(self, text: str) -> int:
        return count_words(text)
