"""Whitespace tokenization into syllable-annotated words.

WHY: Every upload is turned into the word list the reader plays back.
Tokenization bounds upload latency, so it must be a single linear pass
with no backtracking.

HOW: The text is split on runs of whitespace (str.split with no
separator), empty tokens never appear, and each token is annotated
independently with its syllables and per-syllable vowel offsets.

RULES:
- Output length equals the number of non-empty whitespace-delimited tokens
- Token order is preserved
- Every annotation has one vowel list per syllable
- Pure function: no I/O, no shared mutable state, never raises
"""

from __future__ import annotations

from typing import List

from flowread.config import HYPHENATION_LANG
from flowread.core.models import WordAnnotation
from flowread.core.syllables import locate_vowels, syllabify


def split_words(text: str) -> List[str]:
    """Split text on whitespace runs, dropping empty tokens."""
    return text.split()


def count_words(text: str) -> int:
    return len(split_words(text))


def annotate_word(token: str, lang: str = HYPHENATION_LANG) -> WordAnnotation:
    """Build the WordAnnotation for a single token."""
    syllables = syllabify(token, lang)
    return WordAnnotation(
        text=token,
        syllables=syllables,
        vowels=[locate_vowels(s) for s in syllables],
    )


def tokenize(text: str, lang: str = HYPHENATION_LANG) -> List[WordAnnotation]:
    """Turn raw extracted text into the ordered word-annotation sequence.

    Args:
        text: Plain text as returned by extraction.
        lang: Hyphenation dictionary language.

    Returns:
        One WordAnnotation per whitespace-delimited token, in order.
    """
    return [annotate_word(token, lang) for token in split_words(text)]
