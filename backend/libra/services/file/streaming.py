"""Bounded reads of streamed downloads."""

from collections.abc import AsyncIterator

from libra.exceptions import FileTooLargeError


async def read_limited(chunks: AsyncIterator[bytes], max_bytes: int) -> bytes:
    """
    Collect a byte stream into memory, aborting once it exceeds ``max_bytes``.

    Args:
        chunks: Async iterator of byte chunks (e.g. ``httpx.Response.aiter_bytes()``)
        max_bytes: Hard ceiling on the total number of bytes

    Returns:
        The concatenated bytes

    Raises:
        FileTooLargeError: As soon as the running total passes the ceiling
    """
    buffer = bytearray()
    async for chunk in chunks:
        buffer.extend(chunk)
        if len(buffer) > max_bytes:
            raise FileTooLargeError(max_bytes, received_bytes=len(buffer))
    return bytes(buffer)


async def read_limited_text(chunks: AsyncIterator[bytes], max_bytes: int) -> str:
    """Like :func:`read_limited`, decoded as UTF-8 with undecodable bytes replaced."""
    data = await read_limited(chunks, max_bytes)
    return data.decode("utf-8", errors="replace")
