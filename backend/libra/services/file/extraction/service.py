"""Unified extraction service for the supported Drive file types."""

import asyncio

from libra.exceptions import UnsupportedFileTypeError
from libra.services.drive import DriveService, FileMetadata
from libra.services.file.extraction.docx import DocxExtractor
from libra.services.file.extraction.pdf import PDFExtractor
from libra.services.file.streaming import read_limited, read_limited_text

GOOGLE_DOC_MIME = "application/vnd.google-apps.document"
PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class ExtractionService:
    """Download a Drive file under a byte ceiling and return its plain text."""

    # Google-native formats are exported rather than downloaded
    EXPORT_MIMETYPES = {
        GOOGLE_DOC_MIME: "text/plain",
    }

    BINARY_MIMETYPES = {
        PDF_MIME,
        DOCX_MIME,
    }

    TEXT_MIMETYPES = {
        "text/plain",
        "text/markdown",
        "text/csv",
    }

    SUPPORTED_MIMETYPES = set(EXPORT_MIMETYPES) | BINARY_MIMETYPES | TEXT_MIMETYPES

    def __init__(self, max_bytes: int):
        self.max_bytes = max_bytes
        self.pdf_extractor = PDFExtractor()
        self.docx_extractor = DocxExtractor()

    def is_supported(self, mime_type: str) -> bool:
        return mime_type in self.SUPPORTED_MIMETYPES

    async def extract(self, drive: DriveService, file: FileMetadata) -> str:
        """
        Extract text from a Drive file.

        Args:
            drive: Drive client for the file's owner
            file: File metadata (id and MIME type are used)

        Returns:
            Extracted text, possibly empty

        Raises:
            FileTooLargeError: If the download passes ``max_bytes``
            ExtractionError: If a PDF or DOCX cannot be parsed
            UnsupportedFileTypeError: For any other MIME type
        """
        mime_type = file.mime_type

        export_mime = self.EXPORT_MIMETYPES.get(mime_type)
        if export_mime:
            async with drive.stream_export(file.id, export_mime) as chunks:
                return await read_limited_text(chunks, self.max_bytes)

        if mime_type in self.BINARY_MIMETYPES:
            async with drive.stream_download(file.id) as chunks:
                data = await read_limited(chunks, self.max_bytes)
            # Parsers are synchronous and CPU-bound
            if mime_type == PDF_MIME:
                return await asyncio.to_thread(self.pdf_extractor.extract, data)
            return await asyncio.to_thread(self.docx_extractor.extract, data)

        if mime_type in self.TEXT_MIMETYPES:
            async with drive.stream_download(file.id) as chunks:
                return await read_limited_text(chunks, self.max_bytes)

        raise UnsupportedFileTypeError(f"Unsupported file type: {mime_type}")
