import asyncio

import pytest

from xihi.core.errors import PayloadTooLarge
from xihi.services.body import read_body


class ChunkSource:
    """Async chunk stream that tracks how far it was consumed."""

    def __init__(self, chunks):
        self.chunks = chunks
        self.pulled = 0
        self.closed = False

    async def stream(self):
        try:
            for chunk in self.chunks:
                self.pulled += 1
                yield chunk
        finally:
            self.closed = True


def test_concatenates_in_order():
    source = ChunkSource([b"{", b'"a"', b":", b"1}"])
    assert asyncio.run(read_body(source.stream(), 100)) == b'{"a":1}'
    assert source.closed


def test_empty_body():
    assert asyncio.run(read_body(ChunkSource([]).stream(), 10)) == b""


def test_exactly_the_limit_is_accepted():
    source = ChunkSource([b"x" * 40, b"y" * 60])
    body = asyncio.run(read_body(source.stream(), 100))
    assert body == b"x" * 40 + b"y" * 60


def test_one_byte_over_is_rejected():
    source = ChunkSource([b"x" * 40, b"y" * 60, b"z"])
    with pytest.raises(PayloadTooLarge):
        asyncio.run(read_body(source.stream(), 100))
    assert source.closed


def test_stops_pulling_after_limit():
    source = ChunkSource([b"x" * 64] * 10)
    with pytest.raises(PayloadTooLarge):
        asyncio.run(read_body(source.stream(), 100))
    assert source.pulled == 2
    assert source.closed


def test_bytes_are_preserved_exactly():
    raw = bytes(range(256)) * 3
    chunks = [raw[i : i + 7] for i in range(0, len(raw), 7)]
    assert asyncio.run(read_body(ChunkSource(chunks).stream(), len(raw))) == raw
