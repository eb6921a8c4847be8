"""Abstract store interface for documents, word lists and sessions.

WHY: FlowRead runs against a networked SQL database when one is
configured and against local JSON files otherwise. The library service,
playback state machine and tests must work with either, so both
implementations satisfy one explicit interface instead of a generic
document-query language.

HOW: Store is an ABC with one method per query the application actually
makes (find the latest session of a document, merge a progress update,
total up session statistics). Implementations raise PersistenceError for
any backend failure.

RULES:
- add_document() stores the document and its word list atomically
- delete_document() cascades to the word list and every session of the
  document and returns False when the document was unknown
- find_latest_session() orders by last_updated, newest first
- update_session() only touches SESSION_MUTABLE_FIELDS and bumps
  last_updated; it returns False for an unknown session id
- Implementations are safe to call from several threads
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from flowread.core.models import (
    SESSION_MUTABLE_FIELDS,
    Document,
    ReadingSession,
    SessionTotals,
    WordAnnotation,
    utcnow,
)


class Store(ABC):
    """Persistence for the ``documents``, ``document_words`` and
    ``reading_sessions`` collections.

    To add a new backend:
    1. Create a new module in storage/
    2. Subclass Store and implement every abstract method
    3. Wrap backend exceptions in PersistenceError
    4. Teach storage.provider.open_store() when to select it
    """

    name = "store"

    # -- documents ---------------------------------------------------------

    @abstractmethod
    def add_document(self, document: Document, words: List[WordAnnotation]) -> None:
        """Persist a new document together with its word annotations."""

    @abstractmethod
    def get_document(self, document_id: str) -> Optional[Document]:
        """Return the document, or None when it does not exist."""

    @abstractmethod
    def list_documents(self) -> List[Document]:
        """Return every document, newest first by created_at."""

    @abstractmethod
    def get_words(self, document_id: str) -> Optional[List[WordAnnotation]]:
        """Return the document's word annotations, or None."""

    @abstractmethod
    def delete_document(self, document_id: str) -> bool:
        """Delete a document, its words and all of its sessions."""

    @abstractmethod
    def count_documents(self) -> int:
        """Return the number of stored documents."""

    # -- sessions ----------------------------------------------------------

    @abstractmethod
    def add_session(self, session: ReadingSession) -> None:
        """Persist a new reading session."""

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[ReadingSession]:
        """Return the session, or None when it does not exist."""

    @abstractmethod
    def find_latest_session(self, document_id: str) -> Optional[ReadingSession]:
        """Return the most recently updated session of a document, or None."""

    @abstractmethod
    def update_session(self, session_id: str, fields: Dict[str, Any]) -> bool:
        """Merge ``fields`` into a stored session (last write wins)."""

    @abstractmethod
    def session_totals(self) -> SessionTotals:
        """Sum words_read and time_spent, count completions, average speed."""

    def close(self) -> None:
        """Release backend resources. The default does nothing."""


def next_timestamp(previous: datetime) -> datetime:
    """Return a last_updated value strictly later than ``previous``.

    Two writes inside one clock tick would otherwise share a timestamp and
    make "latest session" ambiguous.
    """
    now = utcnow()
    if now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def mutable_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Drop every key that is not a mutable session field."""
    return {k: v for k, v in fields.items() if k in SESSION_MUTABLE_FIELDS}


def totals_from_sessions(sessions: Iterable[ReadingSession]) -> SessionTotals:
    """Compute SessionTotals in Python for stores without aggregation."""
    totals = SessionTotals()
    speeds: List[int] = []
    for session in sessions:
        totals.words_read += session.words_read
        totals.time_spent += session.time_spent
        if session.completed:
            totals.completed += 1
        speeds.append(session.speed_wpm)
    if speeds:
        totals.average_speed = sum(speeds) / len(speeds)
    return totals
