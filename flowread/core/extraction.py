"""Text extraction from uploaded PDF, DOCX and plain-text files.

WHY: The tokenizer works on plain text, but readers upload PDFs and Word
documents. Extraction is the only stage of the upload pipeline that can
fail, so all of its failure modes are funnelled into ExtractionError.

HOW: The declared file type (lower-cased extension) selects an extractor:
pypdf for PDF, python-docx for DOCX, strict UTF-8 decoding for everything
else. Third-party parser exceptions are wrapped, never leaked.

RULES:
- file_type_for() derives the declared type from a filename
- PDF pages are joined with blank lines; pages with no text are skipped
- DOCX paragraphs are joined with newlines
- Any other type must decode as UTF-8 (a leading BOM is dropped)
- Undecodable or corrupt input raises ExtractionError
"""

from __future__ import annotations

import io
import logging
from pathlib import Path

import docx
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from flowread.config import SUPPORTED_FILE_TYPES
from flowread.errors import ExtractionError

logger = logging.getLogger(__name__)


def file_type_for(filename: str) -> str:
    """Return the lower-cased extension of ``filename`` without the dot.

    Files with no extension are treated as ``"txt"``.
    """
    suffix = Path(filename).suffix.lower().lstrip(".")
    return suffix or "txt"


def extract_pdf(raw: bytes) -> str:
    try:
        reader = PdfReader(io.BytesIO(raw))
        pages = [(page.extract_text() or "").strip() for page in reader.pages]
    except (PyPdfError, ValueError, KeyError, TypeError) as exc:
        raise ExtractionError("pdf", str(exc) or type(exc).__name__) from exc
    return "\n\n".join(p for p in pages if p)


def extract_docx(raw: bytes) -> str:
    try:
        document = docx.Document(io.BytesIO(raw))
    except Exception as exc:
        # python-docx surfaces zip, XML and package errors with no common base.
        raise ExtractionError("docx", str(exc) or type(exc).__name__) from exc
    return "\n".join(paragraph.text for paragraph in document.paragraphs)


def extract_plain(raw: bytes, file_type: str = "txt") -> str:
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ExtractionError(
            file_type, "not UTF-8 text (unsupported or binary format)"
        ) from exc


def extract_text(raw: bytes, file_type: str) -> str:
    """Extract plain text from raw file bytes.

    Args:
        raw: The uploaded file content.
        file_type: Declared format, e.g. ``"pdf"``, ``"docx"``, ``"txt"``.

    Returns:
        The extracted text (possibly empty).

    Raises:
        ExtractionError: The content is corrupt or not readable as text.
    """
    file_type = file_type.lower()
    if file_type not in SUPPORTED_FILE_TYPES:
        logger.info("No dedicated extractor for %r files, decoding as UTF-8 text", file_type)
    if file_type == "pdf":
        text = extract_pdf(raw)
    elif file_type == "docx":
        text = extract_docx(raw)
    else:
        text = extract_plain(raw, file_type)
    logger.debug("Extracted %d characters from %s upload", len(text), file_type)
    return text
