"""Tests for the extraction service."""

import io
from unittest.mock import patch

import pytest
from docx import Document
from fakes import FakeDrive, make_file

from libra.exceptions import ExtractionError, FileTooLargeError, UnsupportedFileTypeError
from libra.services.file.extraction import DocxExtractor, ExtractionService, PDFExtractor
from libra.services.file.extraction.service import DOCX_MIME, GOOGLE_DOC_MIME, PDF_MIME


def build_docx() -> bytes:
    doc = Document()
    doc.add_paragraph("Quarterly report")
    doc.add_paragraph("   ")
    doc.add_paragraph("Revenue grew.")
    table = doc.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "Region"
    table.cell(0, 1).text = "Revenue"
    table.cell(1, 0).text = "EMEA"
    table.cell(1, 1).text = "10"
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


class TestDocxExtractor:
    def test_extracts_paragraphs_and_tables(self):
        text = DocxExtractor().extract(build_docx())
        assert text.split("\n") == [
            "Quarterly report",
            "Revenue grew.",
            "Region | Revenue",
            "EMEA | 10",
        ]

    def test_invalid_bytes(self):
        with pytest.raises(ExtractionError):
            DocxExtractor().extract(b"not a zip file")


class TestPDFExtractor:
    def test_invalid_bytes(self):
        with pytest.raises(ExtractionError):
            PDFExtractor().extract(b"definitely not a pdf")


class TestExtractionService:
    def test_is_supported(self):
        service = ExtractionService(max_bytes=1024)
        for mime in (GOOGLE_DOC_MIME, PDF_MIME, DOCX_MIME, "text/plain", "text/markdown", "text/csv"):
            assert service.is_supported(mime)
        assert not service.is_supported("image/png")
        assert not service.is_supported("application/vnd.google-apps.spreadsheet")

    @pytest.mark.asyncio
    async def test_google_doc_is_exported_as_text(self):
        drive = FakeDrive(contents={"doc1": "Exported text".encode()})
        service = ExtractionService(max_bytes=1024)

        text = await service.extract(drive, make_file("doc1", mime_type=GOOGLE_DOC_MIME))

        assert text == "Exported text"
        assert drive.exports == [("doc1", "text/plain")]
        assert drive.downloads == []

    @pytest.mark.asyncio
    async def test_plain_text_is_downloaded(self):
        drive = FakeDrive(contents={"f": "caf\xe9 notes".encode()})
        text = await ExtractionService(max_bytes=1024).extract(drive, make_file("f"))
        assert text == "caf\xe9 notes"
        assert drive.downloads == ["f"]

    @pytest.mark.asyncio
    async def test_invalid_utf8_is_replaced(self):
        drive = FakeDrive(contents={"f": b"ok \xff\xfe"})
        text = await ExtractionService(max_bytes=1024).extract(drive, make_file("f"))
        assert text.startswith("ok ")
        assert "\ufffd" in text

    @pytest.mark.asyncio
    async def test_docx_is_parsed(self):
        drive = FakeDrive(contents={"d": build_docx()})
        service = ExtractionService(max_bytes=10 * 1024 * 1024)

        text = await service.extract(drive, make_file("d", mime_type=DOCX_MIME))

        assert "Quarterly report" in text
        assert "EMEA | 10" in text

    @pytest.mark.asyncio
    async def test_pdf_goes_to_pdf_extractor(self):
        drive = FakeDrive(contents={"p": b"%PDF-1.4 fake"})
        service = ExtractionService(max_bytes=1024)

        with patch.object(service.pdf_extractor, "extract", return_value="pdf text") as extract:
            text = await service.extract(drive, make_file("p", mime_type=PDF_MIME))

        assert text == "pdf text"
        extract.assert_called_once_with(b"%PDF-1.4 fake")

    @pytest.mark.asyncio
    async def test_download_over_limit_raises(self):
        drive = FakeDrive(contents={"big": b"x" * 100})
        with pytest.raises(FileTooLargeError):
            await ExtractionService(max_bytes=10).extract(drive, make_file("big"))

    @pytest.mark.asyncio
    async def test_unsupported_type_raises(self):
        service = ExtractionService(max_bytes=1024)
        with pytest.raises(UnsupportedFileTypeError):
            await service.extract(FakeDrive(), make_file("img", mime_type="image/png"))
