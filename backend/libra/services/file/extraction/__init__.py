"""Document extraction services."""

from libra.services.file.extraction.docx import DocxExtractor
from libra.services.file.extraction.pdf import PDFExtractor
from libra.services.file.extraction.service import (
    DOCX_MIME,
    GOOGLE_DOC_MIME,
    PDF_MIME,
    ExtractionService,
)

__all__ = [
    "DOCX_MIME",
    "DocxExtractor",
    "ExtractionService",
    "GOOGLE_DOC_MIME",
    "PDFExtractor",
    "PDF_MIME",
]
