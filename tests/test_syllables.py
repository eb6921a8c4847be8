"""Tests for syllable splitting, vowel location and tokenization.

WHY: Every word the reader shows is coloured from these annotations. The
split must never lose or reorder characters, must accept any token
(punctuation, digits, empty strings), and vowel offsets must point at
vowels inside their own syllable.

HOW: Exercises syllabify(), locate_vowels() and tokenize() directly with
the en_US pyphen dictionary. Assertions check structural properties
rather than exact hyphenation points where the dictionary could change.

RULES:
- Concatenated syllables always equal the input token
- len(vowels) == len(syllables) for every annotation
- "y" is never a vowel
"""

import pytest

from flowread.core.syllables import is_vowel, locate_vowels, syllabify
from flowread.core.tokenizer import annotate_word, count_words, split_words, tokenize


# ---------------------------------------------------------------------------
# syllabify
# ---------------------------------------------------------------------------


class TestSyllabify:

    @pytest.mark.parametrize("token", ["", "...", "1234", "—", "42%"])
    def test_tokens_without_letters_are_returned_whole(self, token):
        assert syllabify(token) == [token]

    def test_short_word_is_one_syllable(self):
        assert syllabify("cat") == ["cat"]

    @pytest.mark.parametrize("word", [
        "reading", "hyphenation", "Extraordinary,", "don't", "co-operate", "élan", "PYTHON",
    ])
    def test_syllables_concatenate_to_word(self, word):
        syllables = syllabify(word)
        assert "".join(syllables) == word
        assert all(syllables)

    def test_long_word_is_split(self):
        assert len(syllabify("hyphenation")) > 1

    def test_unknown_language_falls_back(self):
        assert "".join(syllabify("reading", lang="xx_NOPE")) == "reading"


# ---------------------------------------------------------------------------
# Vowels
# ---------------------------------------------------------------------------


class TestVowels:

    def test_cat(self):
        assert locate_vowels("cat") == [1]

    def test_uppercase_vowels(self):
        assert locate_vowels("AEIOU") == [0, 1, 2, 3, 4]

    def test_y_is_a_consonant(self):
        assert not is_vowel("y")
        assert locate_vowels("rhythm") == []

    def test_no_vowels_in_punctuation(self):
        assert locate_vowels("?!") == []


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


class TestTokenizer:

    def test_split_on_whitespace_runs(self):
        assert split_words("  The  cat\n\tsat. ") == ["The", "cat", "sat."]

    def test_count_words(self):
        assert count_words("one two  three\nfour") == 4
        assert count_words("   ") == 0

    def test_tokenize_preserves_order_and_punctuation(self):
        words = tokenize("The cat sat.")
        assert [w.text for w in words] == ["The", "cat", "sat."]

    def test_empty_text_has_no_words(self):
        assert tokenize("") == []

    def test_annotation_shapes_match(self):
        for word in tokenize("Readers chunk extraordinary hyphenation quickly, 2024!"):
            assert "".join(word.syllables) == word.text
            assert len(word.vowels) == len(word.syllables)
            for syllable, offsets in zip(word.syllables, word.vowels):
                assert offsets == sorted(offsets)
                assert all(is_vowel(syllable[i]) for i in offsets)

    def test_annotate_word(self):
        word = annotate_word("cat")
        assert word.text == "cat"
        assert word.syllables == ["cat"]
        assert word.vowels == [[1]]
