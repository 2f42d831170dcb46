"""Text compression used for frames when compression is enabled.

The frame codec only needs something that turns UTF-8 text into fewer bytes
and back. :class:`ZlibCompressor` is the default; any object implementing
the :class:`Compressor` protocol can be passed in its place.
"""

from __future__ import annotations

import zlib
from typing import Protocol


class Compressor(Protocol):
    """Reversible text <-> bytes transform."""

    def compress(self, text: str) -> bytes: ...

    def decompress(self, data: bytes) -> str: ...


class ZlibCompressor:
    """Compress UTF-8 text with raw DEFLATE (no zlib header or checksum).

    Frames are short, so the 6-byte zlib wrapper is dropped; corruption
    still surfaces as ``zlib.error`` because a truncated or garbled DEFLATE
    stream cannot be inflated.
    """

    def __init__(self, level: int = zlib.Z_BEST_COMPRESSION) -> None:
        self.level = level

    def compress(self, text: str) -> bytes:
        compressor = zlib.compressobj(self.level, zlib.DEFLATED, -zlib.MAX_WBITS)
        return compressor.compress(text.encode("utf-8")) + compressor.flush()

    def decompress(self, data: bytes) -> str:
        decompressor = zlib.decompressobj(-zlib.MAX_WBITS)
        text = decompressor.decompress(data) + decompressor.flush()
        if not decompressor.eof:
            raise zlib.error("incomplete compressed stream")
        return text.decode("utf-8")


DEFAULT_COMPRESSOR: Compressor = ZlibCompressor()
