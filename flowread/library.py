"""Library service: the document and session operations behind the API.

WHY: The HTTP server and the CLI expose the same operations: upload a
document, list and delete documents, start or resume a reading session,
save progress, read aggregate statistics. Putting them in one service
over an injected Store keeps both front ends thin and lets tests run the
whole flow against a temporary store.

HOW: Library wraps a Store. Uploads are split into prepare_document()
(extract + tokenize, pure and slow) and save_document() (one atomic
store write) so callers can run the slow half in a worker thread and
store nothing if it fails or times out.

RULES:
- Missing documents or sessions raise NotFoundError
- delete_document() cascades to word lists and sessions
- update_session() strips identity and unknown keys, validates values,
  clamps speed into range, and rejects an index past total_words
- open_reader() resumes the latest unfinished session, or starts a new one
- Session creation and upload failures propagate as PersistenceError
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from flowread.config import AUTOSAVE_EVERY, DEFAULT_WPM, HYPHENATION_LANG, clamp_wpm
from flowread.core.extraction import extract_text, file_type_for
from flowread.core.models import (
    SESSION_MUTABLE_FIELDS,
    Document,
    ReadingSession,
    ReadingStats,
    WordAnnotation,
    new_id,
)
from flowread.core.tokenizer import tokenize
from flowread.errors import NotFoundError, ValidationError
from flowread.playback.session import ReadingSessionMachine
from flowread.storage.base import Store

logger = logging.getLogger(__name__)

_INT_FIELDS = ("current_word_index", "total_words", "words_read", "speed_wpm")


def clean_session_update(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Reduce a partial session payload to validated mutable fields.

    Identity fields (id, document_id, created_at, last_updated) and
    unknown keys are dropped; None values mean "unchanged".

    Raises:
        ValidationError: A known field has the wrong type or a negative value.
    """
    cleaned: Dict[str, Any] = {}
    for key, value in fields.items():
        if key not in SESSION_MUTABLE_FIELDS:
            logger.debug("Ignoring non-updatable session field %r", key)
            continue
        if value is None:
            continue
        if key == "completed":
            if not isinstance(value, bool):
                raise ValidationError("completed must be a boolean")
            cleaned[key] = value
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError("{} must be a number".format(key))
        if not math.isfinite(value):
            raise ValidationError("{} must be a finite number".format(key))
        if value < 0:
            raise ValidationError("{} must not be negative".format(key))
        if key in _INT_FIELDS:
            if int(value) != value:
                raise ValidationError("{} must be a whole number".format(key))
            value = int(value)
        else:
            value = float(value)
        if key == "speed_wpm":
            value = clamp_wpm(value)
        cleaned[key] = value
    return cleaned


class Library:
    """Document and session operations over a Store."""

    def __init__(
        self,
        store: Store,
        lang: str = HYPHENATION_LANG,
        autosave_every: int = AUTOSAVE_EVERY,
    ) -> None:
        self.store = store
        self.lang = lang
        self.autosave_every = autosave_every

    # -- documents ---------------------------------------------------------

    def prepare_document(
        self, raw: bytes, filename: str
    ) -> Tuple[Document, List[WordAnnotation]]:
        """Extract and tokenize an upload without storing anything.

        Raises:
            ExtractionError: The file could not be read as text.
        """
        title = Path(filename).name or "upload"
        file_type = file_type_for(title)
        text = extract_text(raw, file_type)
        words = tokenize(text, self.lang)
        document = Document(
            id=new_id(),
            title=title,
            file_type=file_type,
            word_count=len(words),
        )
        return document, words

    def save_document(self, document: Document, words: List[WordAnnotation]) -> Document:
        self.store.add_document(document, words)
        logger.info(
            "Stored document %s (%s, %d words)", document.id, document.title, document.word_count
        )
        return document

    def create_document(self, raw: bytes, filename: str) -> Document:
        """Extract, tokenize and store an uploaded file."""
        document, words = self.prepare_document(raw, filename)
        return self.save_document(document, words)

    def list_documents(self) -> List[Document]:
        return self.store.list_documents()

    def get_document(self, document_id: str) -> Document:
        document = self.store.get_document(document_id)
        if document is None:
            raise NotFoundError("document", document_id)
        return document

    def get_words(self, document_id: str) -> List[WordAnnotation]:
        words = self.store.get_words(document_id)
        if words is None:
            raise NotFoundError("words", document_id)
        return words

    def delete_document(self, document_id: str) -> None:
        if not self.store.delete_document(document_id):
            raise NotFoundError("document", document_id)

    # -- sessions ----------------------------------------------------------

    def create_session(
        self, document_id: str, initial_speed: int = DEFAULT_WPM
    ) -> ReadingSession:
        """Create a new session at word 0 for an existing document."""
        document = self.get_document(document_id)
        session = ReadingSession.start(document.id, document.word_count, initial_speed)
        self.store.add_session(session)
        logger.info("Created session %s for document %s", session.id, document_id)
        return session

    def get_session(self, session_id: str) -> ReadingSession:
        session = self.store.get_session(session_id)
        if session is None:
            raise NotFoundError("session", session_id)
        return session

    def get_latest_session(self, document_id: str) -> Optional[ReadingSession]:
        return self.store.find_latest_session(document_id)

    def update_session(self, session_id: str, fields: Dict[str, Any]) -> ReadingSession:
        """Merge a partial progress update into a session (last write wins).

        Returns:
            The session as stored after the update.
        """
        changes = clean_session_update(fields)
        current = self.get_session(session_id)
        total = changes.get("total_words", current.total_words)
        index = changes.get("current_word_index", current.current_word_index)
        if index > total:
            raise ValidationError(
                "current_word_index {} is past total_words {}".format(index, total)
            )
        if not self.store.update_session(session_id, changes):
            raise NotFoundError("session", session_id)
        return self.get_session(session_id)

    def open_reader(
        self, document_id: str, speed_wpm: Optional[int] = None
    ) -> ReadingSessionMachine:
        """Load a document into a session state machine, ready to play.

        The latest unfinished session is resumed with its saved index and
        speed (``speed_wpm`` overrides the saved speed when given). A
        document whose latest session is completed starts a new session.
        """
        self.get_document(document_id)
        words = self.get_words(document_id)
        machine = ReadingSessionMachine(self.store, autosave_every=self.autosave_every)

        latest = self.get_latest_session(document_id)
        if latest is not None and not latest.completed:
            machine.resume(latest, words)
            if speed_wpm is not None:
                machine.set_speed(speed_wpm)
        else:
            machine.create(
                document_id, words, speed_wpm if speed_wpm is not None else DEFAULT_WPM
            )
        return machine

    # -- statistics --------------------------------------------------------

    def get_stats(self) -> ReadingStats:
        totals = self.store.session_totals()
        average = totals.average_speed or 0.0
        return ReadingStats(
            total_documents=self.store.count_documents(),
            total_words_read=totals.words_read,
            total_time_spent=totals.time_spent,
            average_speed=int(average + 0.5),
            documents_completed=totals.completed,
        )
