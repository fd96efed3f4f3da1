"""Chunking service for splitting extracted text into embeddable chunks."""

# Window size in characters; roughly 800-900 tokens of English prose
CHUNK_SIZE_CHARS = 3500
# Characters shared between consecutive chunks
CHUNK_OVERLAP_CHARS = 400


def chunk_text(
    text: str,
    chunk_size: int = CHUNK_SIZE_CHARS,
    overlap: int = CHUNK_OVERLAP_CHARS,
) -> list[str]:
    """
    Split text into fixed-size, overlapping chunks.

    Each window is cut after the last space it contains, provided that
    space lies in the second half of the window; otherwise the window is cut
    hard at ``chunk_size``. The next window starts ``overlap`` characters
    before the end of the previous one.

    Args:
        text: Document text
        chunk_size: Maximum characters per chunk
        overlap: Characters repeated at the start of the following chunk

    Returns:
        Ordered list of chunks; empty if the text is blank
    """
    text = text.strip()
    if not text:
        return []

    chunks: list[str] = []
    length = len(text)
    start = 0

    while start < length:
        end = min(start + chunk_size, length)
        piece = text[start:end]

        if end < length:
            last_space = piece.rfind(" ")
            if last_space > chunk_size / 2:
                piece = piece[: last_space + 1]

        chunks.append(piece)

        if start + len(piece) >= length:
            break
        # Always advance, even for pathological overlap settings
        start += max(len(piece) - overlap, 1)

    return chunks
