"""Dictionary-based syllable splitting and vowel location.

WHY: The reader colours each syllable's vowels and consonants so the eye
can chunk a word at a glance. The goal is visual chunking, not
linguistic precision, so a standard hyphenation
dictionary (Liang patterns, the same data TeX and LibreOffice use) is
adequate and fast.

HOW: pyphen looks up hyphenation break points for a word. The word is
sliced at those points, so the syllables always concatenate back to the
input. Vowel location is a plain ASCII scan.

RULES:
- syllabify() is total: every string yields at least one syllable
- Words with no letters or no break points are returned whole
- Concatenating the syllables reproduces the word exactly
- Vowels are a, e, i, o, u in either case; "y" is a consonant
- Hyphenation dictionaries are cached per language and never mutated
"""

from __future__ import annotations

import functools
import logging
from typing import List

import pyphen

from flowread.config import HYPHENATION_LANG

logger = logging.getLogger(__name__)

VOWELS = frozenset("aeiouAEIOU")

_FALLBACK_LANG = "en_US"


@functools.lru_cache(maxsize=None)
def _dictionary(lang: str) -> pyphen.Pyphen:
    """Load (once) the pyphen dictionary for ``lang``.

    Unknown languages fall back to the closest installed dictionary, then
    to en_US.
    """
    resolved = pyphen.language_fallback(lang)
    if resolved is None:
        logger.warning(
            "No hyphenation dictionary for %r, using %s", lang, _FALLBACK_LANG
        )
        resolved = _FALLBACK_LANG
    return pyphen.Pyphen(lang=resolved)


def syllabify(word: str, lang: str = HYPHENATION_LANG) -> List[str]:
    """Split a word into syllable substrings for visual chunking.

    Args:
        word: Any string; normally one whitespace-delimited token.
        lang: Hyphenation dictionary language (e.g. ``"en_US"``).

    Returns:
        Ordered non-empty list of substrings whose concatenation is ``word``.
    """
    if not any(ch.isalpha() for ch in word):
        return [word]

    positions = sorted({
        int(p) for p in _dictionary(lang).positions(word) if 0 < int(p) < len(word)
    })
    if not positions:
        return [word]

    syllables = []
    start = 0
    for pos in positions:
        syllables.append(word[start:pos])
        start = pos
    syllables.append(word[start:])
    return syllables


def is_vowel(char: str) -> bool:
    return char in VOWELS


def locate_vowels(syllable: str) -> List[int]:
    """Return the ascending offsets of ASCII vowels in ``syllable``."""
    return [i for i, ch in enumerate(syllable) if ch in VOWELS]
