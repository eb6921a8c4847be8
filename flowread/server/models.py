"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation. Pydantic
models enforce field types at runtime and generate JSON Schema that
appears in the /docs UI.

HOW: Response models mirror the record dataclasses in core.models and
are built from their ``to_dict()`` output. The session update request
ignores unknown fields, which is how identity fields such as ``id`` are
stripped from a payload.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- SessionUpdateRequest ignores extra keys; only set fields are applied
- Timestamps are ISO-8601 strings, as stored
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SessionCreateRequest(BaseModel):
    """Body for POST /sessions.

    RULES:
    - speed_wpm is clamped into [50, 1000]; omitted means the default speed
    """

    document_id: str = Field(description="Document to read.")
    speed_wpm: Optional[int] = Field(
        default=None,
        description="Initial words-per-minute speed (clamped to 50–1000).",
    )


class SessionUpdateRequest(BaseModel):
    """Partial progress update for PUT /sessions/{id}.

    Unknown keys (including ``id`` and ``document_id``) are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    current_word_index: Optional[int] = Field(default=None, description="Index of the word on screen.")
    total_words: Optional[int] = Field(default=None, description="Number of words in the document.")
    words_read: Optional[int] = Field(default=None, description="Words read so far while playing.")
    time_spent: Optional[float] = Field(
        default=None, ge=0, allow_inf_nan=False, description="Seconds spent playing."
    )
    speed_wpm: Optional[int] = Field(default=None, description="Playback speed (clamped to 50–1000).")
    completed: Optional[bool] = Field(default=None, description="Whether the last word was reached.")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class DocumentResponse(BaseModel):
    """Metadata for one uploaded document."""

    id: str = Field(description="Document identifier (UUID).")
    title: str = Field(description="Original upload filename.")
    file_type: str = Field(description="Lower-cased file extension, e.g. 'pdf'.")
    word_count: int = Field(description="Number of words extracted.")
    created_at: str = Field(description="Upload timestamp (ISO-8601, UTC).")


class UploadResponse(BaseModel):
    """Returned after a successful upload."""

    id: str = Field(description="New document identifier.")
    title: str = Field(description="Original upload filename.")
    word_count: int = Field(description="Number of words extracted.")

    model_config = {"json_schema_extra": {
        "examples": [
            {"id": "0b6c8e0e-1d7a-4a4e-9a53-3f0f4e8d2c11", "title": "essay.pdf", "word_count": 1432}
        ]
    }}


class WordAnnotationModel(BaseModel):
    """One word with its syllables and per-syllable vowel offsets."""

    text: str = Field(description="The original token, punctuation included.")
    syllables: List[str] = Field(description="Syllable substrings in order.")
    vowels: List[List[int]] = Field(description="Vowel offsets, one list per syllable.")


class DocumentWordsResponse(BaseModel):
    document_id: str = Field(description="Document the words belong to.")
    words: List[WordAnnotationModel] = Field(description="Annotated words in reading order.")


class SessionResponse(BaseModel):
    """A reading session's persisted progress."""

    id: str = Field(description="Session identifier (UUID).")
    document_id: str = Field(description="Document being read.")
    current_word_index: int = Field(description="Index of the word on screen.")
    total_words: int = Field(description="Number of words in the document.")
    words_read: int = Field(description="Words read while playing forward.")
    time_spent: float = Field(description="Seconds spent playing.")
    speed_wpm: int = Field(description="Playback speed in words per minute.")
    completed: bool = Field(description="Whether the last word was reached.")
    created_at: str = Field(description="Creation timestamp (ISO-8601, UTC).")
    last_updated: str = Field(description="Last write timestamp (ISO-8601, UTC).")


class SuccessResponse(BaseModel):
    success: bool = Field(default=True, description="Always true on success.")


class StatsResponse(BaseModel):
    """Aggregate statistics across all documents and sessions."""

    total_documents: int = Field(description="Number of stored documents.")
    total_words_read: int = Field(description="Sum of words_read over all sessions.")
    total_time_spent: float = Field(description="Sum of time_spent (seconds) over all sessions.")
    average_speed: int = Field(description="Mean session speed in WPM, rounded.")
    documents_completed: int = Field(description="Number of completed sessions.")


class ErrorResponse(BaseModel):
    """Standard error response body.

    RULES:
    - detail is always a human-readable error message
    """

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
    store: str = Field(description="Active store backend ('sql' or 'json').")
