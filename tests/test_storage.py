"""Tests for the JSON-file and SQL stores and the store provider.

WHY: The library and the playback machine rely on a handful of store
guarantees: cascading deletes, "latest session" ordering by
last_updated, updates that cannot rewrite identity fields, and correct
aggregate totals. Both backends must honour the same contract.

HOW: Contract tests take the parametrized ``store`` fixture and so run
once against JsonFileStore (in tmp_path) and once against SqlStore (on
in-memory SQLite). Backend-specific behaviour (corrupt files, fallback
when the database is unreachable) has its own test classes.

RULES:
- Each test starts from an empty store
- No networked database is contacted; the unreachable URL points at a
  directory that cannot hold a SQLite file
"""

import json
from datetime import timedelta
from unittest.mock import patch

import pytest

from flowread.core.models import Document, ReadingSession, new_id, utcnow
from flowread.errors import PersistenceError
from flowread.storage import JsonFileStore, SqlStore, open_store

from conftest import make_words


def _add_document(store, words=None, title="doc.txt", age=0):
    """Store a document created ``age`` seconds ago."""
    words = words if words is not None else make_words(5)
    document = Document(
        id=new_id(), title=title, file_type="txt", word_count=len(words),
        created_at=utcnow() - timedelta(seconds=age),
    )
    store.add_document(document, words)
    return document


def _add_session(store, document, speed=300, age=0):
    """Store a fresh session last updated ``age`` seconds ago."""
    session = ReadingSession.start(document.id, document.word_count, speed)
    session.created_at = session.last_updated = utcnow() - timedelta(seconds=age)
    store.add_session(session)
    return session


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestDocuments:

    def test_add_and_get(self, store, sample_document, sample_words):
        store.add_document(sample_document, sample_words)

        loaded = store.get_document(sample_document.id)
        assert loaded.id == sample_document.id
        assert loaded.title == "sample.txt"
        assert loaded.word_count == len(sample_words)
        assert store.get_words(sample_document.id) == sample_words

    def test_unknown_document(self, store):
        assert store.get_document("missing") is None
        assert store.get_words("missing") is None

    def test_list_newest_first(self, store):
        first = _add_document(store, title="first.txt", age=60)
        second = _add_document(store, title="second.txt")

        ids = [d.id for d in store.list_documents()]
        assert ids == [second.id, first.id]
        assert store.count_documents() == 2

    def test_delete_cascades_to_words_and_sessions(self, store):
        document = _add_document(store)
        other = _add_document(store)
        session = _add_session(store, document)
        other_session = _add_session(store, other)

        assert store.delete_document(document.id) is True

        assert store.get_document(document.id) is None
        assert store.get_words(document.id) is None
        assert store.get_session(session.id) is None
        assert store.find_latest_session(document.id) is None
        assert store.get_session(other_session.id) is not None
        assert store.count_documents() == 1

    def test_delete_unknown_returns_false(self, store):
        assert store.delete_document("missing") is False


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class TestSessions:

    def test_add_and_get(self, store):
        document = _add_document(store)
        session = _add_session(store, document, speed=250)

        loaded = store.get_session(session.id)
        assert loaded.document_id == document.id
        assert loaded.current_word_index == 0
        assert loaded.total_words == 5
        assert loaded.speed_wpm == 250
        assert loaded.completed is False

    def test_latest_session_follows_last_update(self, store):
        document = _add_document(store)
        older = _add_session(store, document, age=60)
        newer = _add_session(store, document)
        assert store.find_latest_session(document.id).id == newer.id

        store.update_session(older.id, {"current_word_index": 2})

        assert store.find_latest_session(document.id).id == older.id

    def test_update_ignores_identity_fields(self, store):
        document = _add_document(store)
        session = _add_session(store, document)

        found = store.update_session(session.id, {
            "id": "forged",
            "document_id": "someone-else",
            "current_word_index": 3,
            "words_read": 3,
            "time_spent": 1.5,
        })

        assert found is True
        assert store.get_session("forged") is None
        loaded = store.get_session(session.id)
        assert loaded.document_id == document.id
        assert loaded.current_word_index == 3
        assert loaded.words_read == 3
        assert loaded.time_spent == pytest.approx(1.5)

    def test_update_bumps_last_updated(self, store):
        document = _add_document(store)
        session = _add_session(store, document)
        before = store.get_session(session.id).last_updated

        store.update_session(session.id, {"speed_wpm": 400})
        store.update_session(session.id, {"speed_wpm": 410})

        assert store.get_session(session.id).last_updated > before

    def test_update_unknown_returns_false(self, store):
        assert store.update_session("missing", {"current_word_index": 1}) is False


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------


class TestTotals:

    def test_empty(self, store):
        totals = store.session_totals()
        assert totals.words_read == 0
        assert totals.time_spent == 0
        assert totals.completed == 0
        assert totals.average_speed is None

    def test_sums_and_average(self, store):
        document = _add_document(store)
        first = _add_session(store, document, speed=200)
        second = _add_session(store, document, speed=300)
        store.update_session(first.id, {"words_read": 10, "time_spent": 3.0, "completed": True})
        store.update_session(second.id, {"words_read": 5, "time_spent": 1.5})

        totals = store.session_totals()

        assert totals.words_read == 15
        assert totals.time_spent == pytest.approx(4.5)
        assert totals.completed == 1
        assert totals.average_speed == pytest.approx(250.0)


# ---------------------------------------------------------------------------
# JSON-file specifics
# ---------------------------------------------------------------------------


class TestJsonFileStore:

    def test_survives_reopen(self, tmp_path, sample_document, sample_words):
        JsonFileStore(tmp_path).add_document(sample_document, sample_words)

        reopened = JsonFileStore(tmp_path)

        assert reopened.get_document(sample_document.id).title == "sample.txt"
        assert reopened.get_words(sample_document.id) == sample_words

    def test_corrupt_file_raises(self, tmp_path):
        (tmp_path / "documents.json").write_text("{not json", encoding="utf-8")
        store = JsonFileStore(tmp_path)

        with pytest.raises(PersistenceError):
            store.list_documents()

    def test_schema_violation_raises(self, tmp_path):
        (tmp_path / "reading_sessions.json").write_text(
            json.dumps([{"id": "s1"}]), encoding="utf-8"
        )
        store = JsonFileStore(tmp_path)

        with pytest.raises(PersistenceError):
            store.get_session("s1")

    def test_failed_session_write_keeps_document(self, json_store):
        document = _add_document(json_store)
        session = _add_session(json_store, document)
        real_dump = json_store._dump

        def failing_dump(path, data):
            if path.name == "reading_sessions.json":
                raise PersistenceError("disk full")
            return real_dump(path, data)

        with patch.object(json_store, "_dump", side_effect=failing_dump):
            with pytest.raises(PersistenceError):
                json_store.delete_document(document.id)

        assert json_store.get_document(document.id) is not None
        assert json_store.get_words(document.id) is not None
        assert json_store.get_session(session.id).document_id == document.id

    def test_unsafe_id_never_touches_files(self, json_store):
        assert json_store.get_words("../../etc/passwd") is None

    def test_legacy_word_key_is_read(self, tmp_path):
        store = JsonFileStore(tmp_path)
        (tmp_path / "words" / "legacy.json").write_text(json.dumps({
            "document_id": "legacy",
            "words": [{"word": "cat", "syllables": ["cat"], "vowels": [[1]]}],
        }), encoding="utf-8")

        words = store.get_words("legacy")

        assert words[0].text == "cat"


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


class TestOpenStore:

    def test_no_url_uses_json_files(self, tmp_path):
        store = open_store(database_url="", data_dir=tmp_path)
        assert isinstance(store, JsonFileStore)

    def test_reachable_database_is_used(self, tmp_path):
        store = open_store(database_url="sqlite://", data_dir=tmp_path)
        try:
            assert isinstance(store, SqlStore)
        finally:
            store.close()

    def test_unreachable_database_falls_back(self, tmp_path):
        # A SQLite file inside a directory that does not exist cannot be opened.
        url = "sqlite:///{}".format(tmp_path / "missing" / "dir" / "flowread.db")

        store = open_store(database_url=url, data_dir=tmp_path / "data")

        assert isinstance(store, JsonFileStore)
