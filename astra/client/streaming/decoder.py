"""
Byte-to-line framing for the event stream.
"""

from __future__ import annotations

import codecs


class FrameDecoder:
    """
    Turn transport byte chunks into complete text lines.

    Chunks may split anywhere, including inside a multi-byte character. The
    incremental decoder keeps a truncated code point until the rest arrives and
    the unterminated tail of the text is carried over to the next chunk.
    Malformed byte sequences are dropped rather than replaced.
    """

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="ignore")
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text received after the last line boundary."""
        return self._buffer

    def feed(self, chunk: bytes) -> list[str]:
        """Decode a chunk and return every line it completed."""
        if not chunk:
            return []

        text = self._decoder.decode(chunk)
        if not text:
            return []

        self._buffer += text
        *lines, self._buffer = self._buffer.split("\n")
        return [line.removesuffix("\r") for line in lines]

    def flush(self) -> list[str]:
        """Finish decoding at end of stream and return the carried line, if any."""
        remaining = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        self._decoder.reset()

        lines = [line.removesuffix("\r") for line in remaining.split("\n")]
        return [line for line in lines if line]
