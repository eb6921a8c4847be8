"""Record dataclasses for documents, word annotations and reading sessions.

WHY: The tokenizer, stores, playback state machine, HTTP server and CLI
all pass the same three records around. One well-typed definition keeps
the persisted shape (the ``documents``, ``document_words`` and
``reading_sessions`` collections) identical across the SQL store, the
JSON-file store and the wire.

HOW: Plain dataclasses with ``to_dict()`` / ``from_dict()`` converting to
JSON-compatible dicts. Timestamps are timezone-aware UTC datetimes in
memory and ISO-8601 strings on disk and on the wire.

RULES:
- WordAnnotation: len(vowels) == len(syllables); every vowel index is a
  valid offset into its syllable
- Document is immutable after creation (deletion only)
- ReadingSession.speed_wpm is always within [MIN_WPM, MAX_WPM]
- ReadingSession.current_word_index is within [0, total_words]
- SESSION_MUTABLE_FIELDS is the closed set of fields an update may touch
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from flowread.config import clamp_wpm

SESSION_MUTABLE_FIELDS = frozenset({
    "current_word_index",
    "total_words",
    "words_read",
    "time_spent",
    "speed_wpm",
    "completed",
})
"""Fields a session update may change. Everything else is identity."""


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate a new record id (UUID4 string)."""
    return str(uuid.uuid4())


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string (or pass through a datetime) as UTC.

    Naive datetimes, as returned by SQLite, are assumed to be UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class WordAnnotation:
    """One whitespace-delimited token with its syllables and vowel offsets.

    WHY: The reader colours vowels and consonants per syllable. Computing
    the split once at upload time keeps playback free of hyphenation work.

    RULES:
    - text: the original token, punctuation included
    - syllables: substrings whose concatenation is ``text``
    - vowels: one ascending offset list per syllable
    """

    text: str
    syllables: List[str]
    vowels: List[List[int]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "syllables": list(self.syllables),
            "vowels": [list(v) for v in self.vowels],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WordAnnotation":
        # Older word files use "word" for the token text.
        text = data.get("text", data.get("word", ""))
        return cls(
            text=text,
            syllables=list(data.get("syllables") or [text]),
            vowels=[list(v) for v in data.get("vowels") or []],
        )


@dataclass
class Document:
    """Metadata for one uploaded document.

    RULES:
    - id: UUID4 string, assigned at upload
    - title: original upload filename
    - file_type: lower-cased extension ("pdf", "docx", "txt", ...)
    - word_count: number of word annotations stored for the document
    """

    id: str
    title: str
    file_type: str
    word_count: int
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "file_type": self.file_type,
            "word_count": self.word_count,
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            file_type=data.get("file_type") or "txt",
            word_count=int(data.get("word_count", 0)),
            created_at=parse_timestamp(data["created_at"]) if data.get("created_at") else utcnow(),
        )


@dataclass
class ReadingSession:
    """Persisted progress for one reading of one document.

    WHY: Readers close the tab and come back. The latest session per
    document (by last_updated) is resumed with its index and speed.

    RULES:
    - words_read and time_spent only grow while playing forward
    - completed is terminal; a completed session is never reopened
    - last_updated is bumped by every write and orders resumption
    """

    id: str
    document_id: str
    total_words: int
    speed_wpm: int
    current_word_index: int = 0
    words_read: int = 0
    time_spent: float = 0.0
    completed: bool = False
    created_at: datetime = field(default_factory=utcnow)
    last_updated: datetime = field(default_factory=utcnow)

    @classmethod
    def start(cls, document_id: str, total_words: int, speed_wpm: int) -> "ReadingSession":
        """Build a fresh session at word 0 with the speed clamped into range."""
        return cls(
            id=new_id(),
            document_id=document_id,
            total_words=max(0, total_words),
            speed_wpm=clamp_wpm(speed_wpm),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "current_word_index": self.current_word_index,
            "total_words": self.total_words,
            "words_read": self.words_read,
            "time_spent": self.time_spent,
            "speed_wpm": self.speed_wpm,
            "completed": self.completed,
            "created_at": format_timestamp(self.created_at),
            "last_updated": format_timestamp(self.last_updated),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReadingSession":
        created = data.get("created_at")
        updated = data.get("last_updated")
        return cls(
            id=data["id"],
            document_id=data["document_id"],
            total_words=int(data.get("total_words", 0)),
            speed_wpm=int(data.get("speed_wpm", 0)),
            current_word_index=int(data.get("current_word_index", 0)),
            words_read=int(data.get("words_read", 0)),
            time_spent=float(data.get("time_spent", 0.0)),
            completed=bool(data.get("completed", False)),
            created_at=parse_timestamp(created) if created else utcnow(),
            last_updated=parse_timestamp(updated) if updated else utcnow(),
        )


@dataclass
class ReadingStats:
    """Aggregate reading statistics across every document and session.

    RULES:
    - average_speed is the mean speed_wpm over sessions, rounded; 0 when
      there are no sessions
    - documents_completed counts sessions with completed=True
    """

    total_documents: int = 0
    total_words_read: int = 0
    total_time_spent: float = 0.0
    average_speed: int = 0
    documents_completed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_documents": self.total_documents,
            "total_words_read": self.total_words_read,
            "total_time_spent": self.total_time_spent,
            "average_speed": self.average_speed,
            "documents_completed": self.documents_completed,
        }


@dataclass
class SessionTotals:
    """Raw session aggregates as computed by a store."""

    words_read: int = 0
    time_spent: float = 0.0
    completed: int = 0
    average_speed: Optional[float] = None
