"""Tests for the FastAPI reading API.

WHY: Validates that every endpoint behaves correctly: happy paths,
404s for unknown records, upload limits, forged identity fields in
session updates, and cascading deletes. Uses FastAPI TestClient for
synchronous in-process testing.

HOW: Each test gets a fresh app built by create_app() around a Library
over a JSON-file store in tmp_path, so no test shares state and the
configured data directory is never touched.

RULES:
- All tests use the FastAPI TestClient (synchronous)
- Each test is independent: a new app and store per test
- Uploads are small UTF-8 text files unless a test needs otherwise
"""

from __future__ import annotations

import io
import time
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from flowread import __version__
from flowread.errors import PersistenceError
from flowread.library import Library
from flowread.server.app import create_app
from flowread.storage import JsonFileStore

TEXT = b"The quick brown fox jumps over the lazy dog."


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def api_library(tmp_path):
    return Library(JsonFileStore(tmp_path / "data"))


@pytest.fixture
def client(api_library):
    with TestClient(create_app(api_library)) as test_client:
        yield test_client


def _text_file(name: str = "fox.txt", content: bytes = TEXT):
    return {"file": (name, io.BytesIO(content), "text/plain")}


def _upload(client, name: str = "fox.txt", content: bytes = TEXT) -> dict:
    response = client.post("/upload", files=_text_file(name, content))
    assert response.status_code == 201, response.text
    return response.json()


# ---------------------------------------------------------------------------
# POST /upload
# ---------------------------------------------------------------------------


class TestUpload:

    def test_upload_returns_201(self, client):
        body = _upload(client)
        assert body["title"] == "fox.txt"
        assert body["word_count"] == 9
        assert "id" in body

    def test_empty_upload_returns_400(self, client):
        response = client.post("/upload", files=_text_file(content=b""))
        assert response.status_code == 400

    def test_undecodable_upload_returns_422(self, client):
        response = client.post("/upload", files=_text_file("blob.bin", b"\xff\xfe\x81\x00"))
        assert response.status_code == 422
        assert "bin" in response.json()["detail"]
        assert client.get("/documents").json() == []

    def test_corrupt_pdf_returns_422(self, client):
        response = client.post(
            "/upload",
            files={"file": ("paper.pdf", io.BytesIO(b"%PDF-1.4 broken"), "application/pdf")},
        )
        assert response.status_code == 422

    def test_oversize_upload_returns_413(self, client):
        with patch("flowread.config.MAX_UPLOAD_BYTES", 10):
            response = client.post("/upload", files=_text_file())
        assert response.status_code == 413

    def test_slow_extraction_returns_504_and_stores_nothing(self, client, api_library):
        real_prepare = api_library.prepare_document

        def slow_prepare(raw, filename):
            time.sleep(0.5)
            return real_prepare(raw, filename)

        with patch("flowread.config.UPLOAD_TIMEOUT_S", 0.05), \
                patch.object(api_library, "prepare_document", side_effect=slow_prepare):
            response = client.post("/upload", files=_text_file())

        assert response.status_code == 504
        time.sleep(0.6)
        assert client.get("/documents").json() == []

    def test_store_failure_returns_503(self, client, api_library):
        with patch.object(api_library.store, "add_document", side_effect=PersistenceError("disk full")):
            response = client.post("/upload", files=_text_file())
        assert response.status_code == 503


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestDocuments:

    def test_list_documents(self, client):
        first = _upload(client, "first.txt")
        second = _upload(client, "second.txt")

        ids = [d["id"] for d in client.get("/documents").json()]

        assert set(ids) == {first["id"], second["id"]}

    def test_get_document(self, client):
        uploaded = _upload(client)

        response = client.get("/documents/{}".format(uploaded["id"]))

        assert response.status_code == 200
        body = response.json()
        assert body["file_type"] == "txt"
        assert body["word_count"] == 9

    def test_get_unknown_document_404(self, client):
        assert client.get("/documents/nope").status_code == 404

    def test_get_words(self, client):
        uploaded = _upload(client)

        response = client.get("/documents/{}/words".format(uploaded["id"]))

        assert response.status_code == 200
        body = response.json()
        assert body["document_id"] == uploaded["id"]
        assert [w["text"] for w in body["words"]][-1] == "dog."
        for word in body["words"]:
            assert "".join(word["syllables"]) == word["text"]
            assert len(word["vowels"]) == len(word["syllables"])

    def test_get_words_unknown_404(self, client):
        assert client.get("/documents/nope/words").status_code == 404

    def test_delete_cascades(self, client):
        uploaded = _upload(client)
        session = client.post("/sessions", json={"document_id": uploaded["id"]}).json()

        response = client.delete("/documents/{}".format(uploaded["id"]))

        assert response.status_code == 204
        assert client.get("/documents/{}".format(uploaded["id"])).status_code == 404
        assert client.get("/documents/{}/words".format(uploaded["id"])).status_code == 404
        assert client.get("/sessions/{}".format(session["id"])).status_code == 404
        assert client.get("/sessions/document/{}".format(uploaded["id"])).json() is None

    def test_delete_unknown_404(self, client):
        assert client.delete("/documents/nope").status_code == 404


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class TestSessions:

    def test_create_session(self, client):
        uploaded = _upload(client)

        response = client.post("/sessions", json={"document_id": uploaded["id"], "speed_wpm": 5})

        assert response.status_code == 201
        body = response.json()
        assert body["document_id"] == uploaded["id"]
        assert body["current_word_index"] == 0
        assert body["total_words"] == 9
        assert body["speed_wpm"] == 50
        assert body["completed"] is False

    def test_create_session_unknown_document_404(self, client):
        response = client.post("/sessions", json={"document_id": "nope"})
        assert response.status_code == 404

    def test_latest_session_is_null_before_reading(self, client):
        uploaded = _upload(client)
        response = client.get("/sessions/document/{}".format(uploaded["id"]))
        assert response.status_code == 200
        assert response.json() is None

    def test_update_ignores_forged_identity(self, client):
        uploaded = _upload(client)
        session = client.post("/sessions", json={"document_id": uploaded["id"]}).json()

        response = client.put("/sessions/{}".format(session["id"]), json={
            "id": "forged",
            "document_id": "someone-else",
            "current_word_index": 4,
            "words_read": 4,
            "time_spent": 1.2,
        })

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert client.get("/sessions/forged").status_code == 404
        stored = client.get("/sessions/{}".format(session["id"])).json()
        assert stored["document_id"] == uploaded["id"]
        assert stored["current_word_index"] == 4
        latest = client.get("/sessions/document/{}".format(uploaded["id"])).json()
        assert latest["id"] == session["id"]

    def test_update_unknown_session_404(self, client):
        response = client.put("/sessions/nope", json={"current_word_index": 1})
        assert response.status_code == 404

    def test_update_negative_value_422(self, client):
        uploaded = _upload(client)
        session = client.post("/sessions", json={"document_id": uploaded["id"]}).json()

        response = client.put("/sessions/{}".format(session["id"]), json={"words_read": -3})

        assert response.status_code == 422

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
    def test_update_non_finite_time_422(self, client, literal):
        uploaded = _upload(client)
        session = client.post("/sessions", json={"document_id": uploaded["id"]}).json()

        # httpx refuses to encode NaN, so send the raw body
        response = client.put(
            "/sessions/{}".format(session["id"]),
            content='{"time_spent": %s}' % literal,
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 422
        stored = client.get("/sessions/{}".format(session["id"])).json()
        assert stored["time_spent"] == 0
        assert client.get("/stats").json()["total_time_spent"] == 0


# ---------------------------------------------------------------------------
# Stats and health
# ---------------------------------------------------------------------------


class TestStatsAndHealth:

    def test_stats(self, client):
        uploaded = _upload(client)
        session = client.post("/sessions", json={"document_id": uploaded["id"], "speed_wpm": 300}).json()
        client.put("/sessions/{}".format(session["id"]), json={
            "words_read": 9, "time_spent": 1.8, "completed": True, "current_word_index": 8,
        })

        body = client.get("/stats").json()

        assert body["total_documents"] == 1
        assert body["total_words_read"] == 9
        assert body["total_time_spent"] == pytest.approx(1.8)
        assert body["average_speed"] == 300
        assert body["documents_completed"] == 1

    def test_health(self, client):
        body = client.get("/health").json()
        assert body == {"status": "ok", "version": __version__, "store": "json"}
