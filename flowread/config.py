"""Configuration constants, reader presets, and .env loading.

WHY: Centralizes all configurable values so they are easy to find,
update, and override. Speed limits, supported file types, colour presets
and storage locations are plain data structures rather than logic,
so the server, CLI and tests all read the same values.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level dicts, sets, and numbers. Environment overrides are read
once at import time through small typed helpers.

RULES:
- Playback speed is always within [MIN_WPM, MAX_WPM]
- FLOWREAD_DATABASE_URL unset means the local JSON-file store is used
- SUPPORTED_FILE_TYPES lists formats with a dedicated extractor; every
  other extension is treated as UTF-8 text
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os
from typing import Dict, Optional, Set

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to ``default``.

    RULES:
    - Missing or blank values return the default
    - Non-numeric values raise ValueError naming the variable
    """
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError("{} must be an integer, got {!r}".format(name, raw))


# ---------------------------------------------------------------------------
# Playback speed
# ---------------------------------------------------------------------------

MIN_WPM = 50
MAX_WPM = 1000

DEFAULT_WPM = _env_int("FLOWREAD_DEFAULT_WPM", 200)

AUTOSAVE_EVERY = _env_int("FLOWREAD_AUTOSAVE_EVERY", 50)
"""Persist a progress snapshot every N auto-advance ticks (0 disables)."""


def clamp_wpm(wpm: int) -> int:
    """Clamp a words-per-minute value into [MIN_WPM, MAX_WPM]."""
    return max(MIN_WPM, min(MAX_WPM, int(wpm)))


# ---------------------------------------------------------------------------
# Documents and extraction
# ---------------------------------------------------------------------------

SUPPORTED_FILE_TYPES: Set[str] = {"pdf", "docx", "txt"}
"""File types with a known extraction path. Others decode as UTF-8 text."""

MAX_UPLOAD_BYTES = _env_int("FLOWREAD_MAX_UPLOAD_BYTES", 50 * 1024 * 1024)
UPLOAD_TIMEOUT_S = _env_int("FLOWREAD_UPLOAD_TIMEOUT_S", 60)

HYPHENATION_LANG = os.getenv("FLOWREAD_HYPHENATION_LANG", "en_US")

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

DATA_DIR = os.getenv("FLOWREAD_DATA_DIR", "flowread_data")


def database_url() -> Optional[str]:
    """Return the configured SQL database URL, or None for the file store.

    ``postgres://`` URLs are rewritten to ``postgresql://`` because
    SQLAlchemy no longer accepts the short scheme.
    """
    url = os.getenv("FLOWREAD_DATABASE_URL", "").strip()
    if not url:
        return None
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


# ---------------------------------------------------------------------------
# Reader colour presets (vowel / consonant hex colours)
# ---------------------------------------------------------------------------

COLOR_PRESETS: Dict[str, Dict[str, str]] = {
    "montessori": {"name": "Montessori", "vowel": "#3B82F6", "consonant": "#EF4444"},
    "bionic": {"name": "Bionic Reading", "vowel": "#8B5CF6", "consonant": "#000000"},
    "high_contrast": {"name": "High Contrast", "vowel": "#10B981", "consonant": "#1F2937"},
    "ocean": {"name": "Ocean", "vowel": "#06B6D4", "consonant": "#0E7490"},
}

DEFAULT_PRESET = "montessori"
