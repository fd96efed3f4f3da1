"""File processing services (streaming, extraction, chunking)."""

from libra.services.file.chunking import CHUNK_OVERLAP_CHARS, CHUNK_SIZE_CHARS, chunk_text
from libra.services.file.extraction import ExtractionService
from libra.services.file.streaming import read_limited, read_limited_text

__all__ = [
    # Chunking
    "CHUNK_OVERLAP_CHARS",
    "CHUNK_SIZE_CHARS",
    "chunk_text",
    # Extraction
    "ExtractionService",
    # Streaming
    "read_limited",
    "read_limited_text",
]
