"""File-backed JSON store used when no database is configured or reachable.

WHY: FlowRead must keep working on a laptop with no database server. A
directory of JSON files is enough for a single reader, survives restarts,
and is easy to inspect or back up by hand.

HOW: ``documents.json`` and ``reading_sessions.json`` each hold a JSON
array of records. Word lists are large and read one document at a time,
so each lives in its own ``words/<document_id>.json`` file. Every public
method re-reads the files it needs under a lock, and every write goes to
a temp file that replaces the target atomically. Collection files are
checked against a JSON Schema on load so a hand-edited or truncated file
fails loudly instead of being silently overwritten.

RULES:
- All public methods hold self._lock for their whole read-modify-write
- Writes are atomic (temp file + os.replace in the same directory)
- OSError, invalid JSON and schema violations raise PersistenceError
- Document ids that are not simple tokens never touch the filesystem
- add_document() writes the word file first and removes it again if the
  document record cannot be written
- delete_document() rewrites sessions before documents, so a failed write
  never leaves sessions pointing at a deleted document
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import jsonschema

from flowread.core.models import (
    Document,
    ReadingSession,
    SessionTotals,
    WordAnnotation,
    format_timestamp,
    parse_timestamp,
)
from flowread.errors import PersistenceError
from flowread.storage.base import Store, mutable_fields, next_timestamp, totals_from_sessions

logger = logging.getLogger(__name__)

DOCUMENTS_FILE = "documents.json"
SESSIONS_FILE = "reading_sessions.json"
WORDS_DIR = "words"

_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")

_TIMESTAMP = {"type": "string"}

DOCUMENTS_SCHEMA: Dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "required": ["id", "title", "file_type", "word_count", "created_at"],
        "properties": {
            "id": {"type": "string"},
            "title": {"type": "string"},
            "file_type": {"type": "string"},
            "word_count": {"type": "integer", "minimum": 0},
            "created_at": _TIMESTAMP,
        },
    },
}

SESSIONS_SCHEMA: Dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "required": ["id", "document_id", "last_updated"],
        "properties": {
            "id": {"type": "string"},
            "document_id": {"type": "string"},
            "current_word_index": {"type": "integer", "minimum": 0},
            "total_words": {"type": "integer", "minimum": 0},
            "words_read": {"type": "integer", "minimum": 0},
            "time_spent": {"type": "number", "minimum": 0},
            "speed_wpm": {"type": "integer"},
            "completed": {"type": "boolean"},
            "last_updated": _TIMESTAMP,
        },
    },
}

WORDS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["document_id", "words"],
    "properties": {
        "document_id": {"type": "string"},
        "words": {"type": "array"},
    },
}


class JsonFileStore(Store):
    """Thread-safe store persisting records as JSON files in one directory."""

    name = "json"

    def __init__(self, data_dir: Union[str, Path]) -> None:
        self.data_dir = Path(data_dir)
        self._lock = threading.RLock()
        try:
            (self.data_dir / WORDS_DIR).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(
                "Cannot create data directory {}: {}".format(self.data_dir, exc)
            ) from exc

    # -- file helpers ------------------------------------------------------

    def _load(self, path: Path, schema: Dict[str, Any], default: Any) -> Any:
        if not path.exists():
            return default
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            jsonschema.validate(data, schema)
        except (OSError, ValueError, jsonschema.ValidationError) as exc:
            raise PersistenceError("Cannot read {}: {}".format(path, exc)) from exc
        return data

    def _dump(self, path: Path, data: Any) -> None:
        try:
            fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=".tmp-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except OSError as exc:
            raise PersistenceError("Cannot write {}: {}".format(path, exc)) from exc

    def _words_path(self, document_id: str) -> Optional[Path]:
        if not _SAFE_ID_RE.match(document_id):
            return None
        return self.data_dir / WORDS_DIR / "{}.json".format(document_id)

    def _documents(self) -> List[Dict[str, Any]]:
        return self._load(self.data_dir / DOCUMENTS_FILE, DOCUMENTS_SCHEMA, [])

    def _sessions(self) -> List[Dict[str, Any]]:
        return self._load(self.data_dir / SESSIONS_FILE, SESSIONS_SCHEMA, [])

    # -- documents ---------------------------------------------------------

    def add_document(self, document: Document, words: List[WordAnnotation]) -> None:
        words_path = self._words_path(document.id)
        if words_path is None:
            raise PersistenceError("Invalid document id: {!r}".format(document.id))
        with self._lock:
            documents = self._documents()
            self._dump(words_path, {
                "document_id": document.id,
                "words": [w.to_dict() for w in words],
            })
            documents.append(document.to_dict())
            try:
                self._dump(self.data_dir / DOCUMENTS_FILE, documents)
            except PersistenceError:
                words_path.unlink()
                raise

    def get_document(self, document_id: str) -> Optional[Document]:
        with self._lock:
            for record in self._documents():
                if record["id"] == document_id:
                    return Document.from_dict(record)
        return None

    def list_documents(self) -> List[Document]:
        with self._lock:
            documents = [Document.from_dict(r) for r in self._documents()]
        return sorted(documents, key=lambda d: d.created_at, reverse=True)

    def get_words(self, document_id: str) -> Optional[List[WordAnnotation]]:
        path = self._words_path(document_id)
        if path is None:
            return None
        with self._lock:
            data = self._load(path, WORDS_SCHEMA, None)
        if data is None:
            return None
        return [WordAnnotation.from_dict(w) for w in data["words"]]

    def delete_document(self, document_id: str) -> bool:
        with self._lock:
            documents = self._documents()
            remaining = [r for r in documents if r["id"] != document_id]
            if len(remaining) == len(documents):
                return False

            sessions = self._sessions()
            kept_sessions = [s for s in sessions if s["document_id"] != document_id]

            if len(kept_sessions) != len(sessions):
                self._dump(self.data_dir / SESSIONS_FILE, kept_sessions)
            self._dump(self.data_dir / DOCUMENTS_FILE, remaining)

            words_path = self._words_path(document_id)
            if words_path is not None and words_path.exists():
                try:
                    words_path.unlink()
                except OSError as exc:
                    raise PersistenceError(
                        "Cannot delete {}: {}".format(words_path, exc)
                    ) from exc

        logger.info(
            "Deleted document %s and %d session(s)",
            document_id, len(sessions) - len(kept_sessions),
        )
        return True

    def count_documents(self) -> int:
        with self._lock:
            return len(self._documents())

    # -- sessions ----------------------------------------------------------

    def add_session(self, session: ReadingSession) -> None:
        with self._lock:
            sessions = self._sessions()
            sessions.append(session.to_dict())
            self._dump(self.data_dir / SESSIONS_FILE, sessions)

    def get_session(self, session_id: str) -> Optional[ReadingSession]:
        with self._lock:
            for record in self._sessions():
                if record["id"] == session_id:
                    return ReadingSession.from_dict(record)
        return None

    def find_latest_session(self, document_id: str) -> Optional[ReadingSession]:
        with self._lock:
            candidates = [
                (parse_timestamp(r["last_updated"]), position, r)
                for position, r in enumerate(self._sessions())
                if r["document_id"] == document_id
            ]
        if not candidates:
            return None
        # Ties on last_updated go to the most recently inserted record.
        _, _, latest = max(candidates, key=lambda c: (c[0], c[1]))
        return ReadingSession.from_dict(latest)

    def update_session(self, session_id: str, fields: Dict[str, Any]) -> bool:
        changes = mutable_fields(fields)
        with self._lock:
            sessions = self._sessions()
            for record in sessions:
                if record["id"] == session_id:
                    record.update(changes)
                    previous = parse_timestamp(record["last_updated"])
                    record["last_updated"] = format_timestamp(next_timestamp(previous))
                    self._dump(self.data_dir / SESSIONS_FILE, sessions)
                    return True
        return False

    def session_totals(self) -> SessionTotals:
        with self._lock:
            sessions = [ReadingSession.from_dict(r) for r in self._sessions()]
        return totals_from_sessions(sessions)
