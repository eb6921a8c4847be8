"""Shared test fixtures for the flowread test suite.

WHY: Storage, library, playback and API tests all need a clean store and
a small annotated document. Centralizing fixtures here keeps every test
module on the same sample data and the same store configurations.

HOW: Stores are created per test: the JSON-file store in pytest's
tmp_path, the SQL store on an in-memory SQLite database. The ``store``
fixture is parametrized so store contract tests run against both.

RULES:
- No test touches the real data directory or a networked database
- Sample word annotations are hand-written, independent of pyphen
- Every store fixture is closed after the test
"""

from typing import List

import pytest

from flowread.core.models import Document, WordAnnotation, new_id
from flowread.library import Library
from flowread.storage import JsonFileStore, SqlStore


def make_words(count: int) -> List[WordAnnotation]:
    """Build ``count`` simple one-syllable annotations ("w0", "w1", ...)."""
    return [WordAnnotation(text="w{}".format(i), syllables=["w{}".format(i)], vowels=[[]])
            for i in range(count)]


SAMPLE_WORDS: List[WordAnnotation] = [
    WordAnnotation(text="The", syllables=["The"], vowels=[[2]]),
    WordAnnotation(text="reading", syllables=["read", "ing"], vowels=[[1, 2], [0]]),
    WordAnnotation(text="cat", syllables=["cat"], vowels=[[1]]),
    WordAnnotation(text="sat.", syllables=["sat."], vowels=[[1]]),
]


@pytest.fixture
def json_store(tmp_path):
    store = JsonFileStore(tmp_path / "data")
    yield store
    store.close()


@pytest.fixture
def sql_store():
    store = SqlStore("sqlite://")
    yield store
    store.close()


@pytest.fixture(params=["json", "sql"])
def store(request, tmp_path):
    """Each store implementation in turn."""
    if request.param == "json":
        instance = JsonFileStore(tmp_path / "data")
    else:
        instance = SqlStore("sqlite://")
    yield instance
    instance.close()


@pytest.fixture
def sample_words():
    return list(SAMPLE_WORDS)


@pytest.fixture
def sample_document():
    return Document(id=new_id(), title="sample.txt", file_type="txt", word_count=len(SAMPLE_WORDS))


@pytest.fixture
def library(json_store):
    return Library(json_store, autosave_every=0)
