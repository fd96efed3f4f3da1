"""PDF text extraction using pdfplumber."""

import io
import logging

import pdfplumber

from libra.exceptions import ExtractionError

logger = logging.getLogger(__name__)


class PDFExtractor:
    """Extract the text layer of a PDF, page by page."""

    def extract(self, pdf_content: bytes) -> str:
        """
        Extract text from PDF bytes.

        Pages are joined with blank lines. Pages without a text layer
        (scanned images) contribute nothing.

        Raises:
            ExtractionError: If the bytes are not a readable PDF
        """
        pages: list[str] = []
        try:
            with pdfplumber.open(io.BytesIO(pdf_content)) as pdf:
                for page in pdf.pages:
                    page_text = page.extract_text() or ""
                    if page_text.strip():
                        pages.append(page_text)
                    # Drop cached layout objects as we go; large PDFs hold a lot per page
                    page.flush_cache()
        except Exception as e:
            logger.warning(f"PDF extraction failed: {e}")
            raise ExtractionError(f"Failed to parse PDF: {e}") from e

        return "\n\n".join(pages)
