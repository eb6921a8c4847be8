"""Terminal rendering of colour-coded words.

WHY: The reader highlights vowels and consonants in two colours so each
syllable reads as a visual chunk. In a terminal that means 24-bit ANSI
colour escapes built from the same presets the web reader offers.

HOW: Each character of each syllable is wrapped in the vowel or
consonant colour using the annotation's vowel offsets. Syllables are
separated by a thin gap when requested.

RULES:
- Colours come from config.COLOR_PRESETS as "#RRGGBB" hex strings
- color=False returns the plain text (for pipes and dumb terminals)
- Vowel offsets are trusted as given by the tokenizer
"""

from __future__ import annotations

from typing import Tuple

from flowread.config import COLOR_PRESETS, DEFAULT_PRESET
from flowread.core.models import WordAnnotation

RESET = "\x1b[0m"


def hex_to_rgb(value: str) -> Tuple[int, int, int]:
    value = value.lstrip("#")
    if len(value) != 6:
        raise ValueError("Expected a #RRGGBB colour, got {!r}".format(value))
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def _fg(value: str) -> str:
    r, g, b = hex_to_rgb(value)
    return "\x1b[38;2;{};{};{}m".format(r, g, b)


def render_word(
    word: WordAnnotation,
    preset: str = DEFAULT_PRESET,
    color: bool = True,
    syllable_gap: str = "",
) -> str:
    """Render one annotated word for the terminal.

    Args:
        word: The annotation to render.
        preset: Key into COLOR_PRESETS.
        color: Emit ANSI colour escapes.
        syllable_gap: String placed between syllables (e.g. a thin space).
    """
    if not color:
        return syllable_gap.join(word.syllables)

    colors = COLOR_PRESETS[preset]
    vowel, consonant = _fg(colors["vowel"]), _fg(colors["consonant"])
    parts = []
    for syllable, vowels in zip(word.syllables, word.vowels):
        offsets = set(vowels)
        parts.append("".join(
            (vowel if i in offsets else consonant) + ch for i, ch in enumerate(syllable)
        ))
    return syllable_gap.join(parts) + RESET
