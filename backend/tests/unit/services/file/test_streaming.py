"""Tests for bounded reads of streamed downloads."""

import pytest

from libra.exceptions import FileTooLargeError, PermanentIngestionError
from libra.services.file import read_limited, read_limited_text


async def stream(*chunks: bytes):
    for chunk in chunks:
        yield chunk


class TestReadLimited:
    @pytest.mark.asyncio
    async def test_collects_chunks(self):
        assert await read_limited(stream(b"ab", b"cd", b"e"), max_bytes=5) == b"abcde"

    @pytest.mark.asyncio
    async def test_exactly_at_limit_is_allowed(self):
        assert await read_limited(stream(b"12345"), max_bytes=5) == b"12345"

    @pytest.mark.asyncio
    async def test_aborts_once_limit_passed(self):
        consumed = []

        async def tracking():
            for chunk in (b"aaaa", b"bbbb", b"cccc"):
                consumed.append(chunk)
                yield chunk

        with pytest.raises(FileTooLargeError) as exc_info:
            await read_limited(tracking(), max_bytes=6)

        assert consumed == [b"aaaa", b"bbbb"]
        assert exc_info.value.max_bytes == 6
        assert exc_info.value.received_bytes == 8
        assert isinstance(exc_info.value, PermanentIngestionError)

    @pytest.mark.asyncio
    async def test_text_decodes_utf8(self):
        text = await read_limited_text(stream("na\xefve".encode()), max_bytes=100)
        assert text == "na\xefve"


class TestFileTooLargeError:
    def test_message_mentions_limit_in_mb(self):
        error = FileTooLargeError(50 * 1024 * 1024, received_bytes=60 * 1024 * 1024)
        assert "50MB" in str(error)
        assert str(60 * 1024 * 1024) in str(error)

    def test_message_without_received_bytes(self):
        assert str(FileTooLargeError(5 * 1024 * 1024)) == "File exceeds 5MB limit"
