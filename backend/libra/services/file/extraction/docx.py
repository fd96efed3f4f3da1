"""Word document text extraction using python-docx."""

import io
import logging

from docx import Document

from libra.exceptions import ExtractionError

logger = logging.getLogger(__name__)


class DocxExtractor:
    """Extract paragraph and table text from .docx files."""

    def extract(self, docx_content: bytes) -> str:
        try:
            doc = Document(io.BytesIO(docx_content))
        except Exception as e:
            logger.warning(f"DOCX extraction failed: {e}")
            raise ExtractionError(f"Failed to parse DOCX: {e}") from e

        parts = [p.text.strip() for p in doc.paragraphs if p.text.strip()]

        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                if any(cells):
                    parts.append(" | ".join(cells))

        return "\n".join(parts)
