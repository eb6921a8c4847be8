"""Tests for text extraction from uploaded files.

WHY: Extraction is the only stage of an upload that can fail. Corrupt or
undecodable input must surface as ExtractionError, never as a raw parser
exception, so the API can answer 422 and store nothing.

HOW: Plain-text cases use literal bytes. The DOCX case builds a real
document in memory with python-docx; the PDF case builds a blank page
with pypdf's writer. Corrupt inputs are arbitrary bytes.

RULES:
- Only ExtractionError may escape extract_text() for bad input
- A UTF-8 BOM is dropped from text files
"""

import io

import docx
import pytest
from pypdf import PdfWriter

from flowread.core.extraction import extract_text, file_type_for
from flowread.errors import ExtractionError


class TestFileType:

    @pytest.mark.parametrize("name,expected", [
        ("essay.PDF", "pdf"),
        ("notes.docx", "docx"),
        ("readme.txt", "txt"),
        ("chapter.md", "md"),
        ("no_extension", "txt"),
    ])
    def test_file_type_for(self, name, expected):
        assert file_type_for(name) == expected


class TestPlainText:

    def test_utf8(self):
        assert extract_text("Grüße aus Köln".encode("utf-8"), "txt") == "Grüße aus Köln"

    def test_bom_is_dropped(self):
        assert extract_text(b"\xef\xbb\xbfHello world", "txt") == "Hello world"

    def test_unknown_type_decodes_as_text(self):
        assert extract_text(b"# Title\n\nBody", "md") == "# Title\n\nBody"

    def test_invalid_utf8_raises(self):
        with pytest.raises(ExtractionError) as exc_info:
            extract_text(b"\xff\xfe\x00\x81binary", "bin")
        assert exc_info.value.file_type == "bin"


class TestDocx:

    def test_paragraphs_joined_with_newlines(self):
        document = docx.Document()
        document.add_paragraph("First paragraph.")
        document.add_paragraph("Second one.")
        buffer = io.BytesIO()
        document.save(buffer)

        text = extract_text(buffer.getvalue(), "docx")

        assert "First paragraph.\nSecond one." in text

    def test_corrupt_docx_raises(self):
        with pytest.raises(ExtractionError) as exc_info:
            extract_text(b"this is not a zip archive", "docx")
        assert exc_info.value.file_type == "docx"


class TestPdf:

    def test_blank_pdf_yields_empty_text(self):
        writer = PdfWriter()
        writer.add_blank_page(width=200, height=200)
        buffer = io.BytesIO()
        writer.write(buffer)

        assert extract_text(buffer.getvalue(), "pdf") == ""

    def test_corrupt_pdf_raises(self):
        with pytest.raises(ExtractionError) as exc_info:
            extract_text(b"%PDF-1.4 garbage with no xref", "pdf")
        assert "pdf" in str(exc_info.value)
