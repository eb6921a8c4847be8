"""Exception hierarchy shared by the library, stores, server and CLI.

WHY: Callers need typed exceptions to tell an unreadable upload apart
from a missing record or an unreachable database. Each maps to a
different user-facing outcome (422, 404, 503).

RULES:
- Every FlowRead error derives from FlowReadError
- Tokenization never raises; only extraction can fail an upload
- PersistenceError wraps the underlying store exception as __cause__
"""

from __future__ import annotations


class FlowReadError(Exception):
    """Base class for all FlowRead errors."""


class ExtractionError(FlowReadError):
    """Raised when an uploaded file cannot be turned into text.

    RULES:
    - Message names the file type and the reason
    - Nothing is persisted when this is raised
    """

    def __init__(self, file_type: str, reason: str) -> None:
        self.file_type = file_type
        self.reason = reason
        super().__init__("Could not extract text from {} file: {}".format(file_type, reason))


class NotFoundError(FlowReadError):
    """Raised when a referenced document or session does not exist."""

    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__("{} not found: {}".format(kind.capitalize(), record_id))


class PersistenceError(FlowReadError):
    """Raised when the store is unreachable or a write fails."""


class ValidationError(FlowReadError):
    """Raised when an update payload carries values of the wrong shape.

    Immutable or unknown keys are stripped silently; only bad values of
    known fields end up here.
    """
