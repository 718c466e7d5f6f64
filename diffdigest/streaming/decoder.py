"""Incremental UTF-8 decoding of the raw byte stream.

Transport chunks can end in the middle of a multi-byte character. The
decoder keeps the partial sequence buffered and completes it with the
next chunk instead of emitting replacement characters.
"""

from __future__ import annotations

import codecs

from diffdigest.errors import TruncatedEncoding


class ChunkDecoder:
    """Turns raw byte fragments into text fragments."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._encoding = encoding
        # Invalid bytes mid-stream are replaced; only truncation is an error
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")

    @property
    def pending(self) -> int:
        """Number of bytes buffered awaiting the rest of a character."""
        buffered, _ = self._decoder.getstate()
        return len(buffered)

    def decode(self, chunk: bytes) -> str:
        """Decode one transport chunk, holding back any partial character."""
        return self._decoder.decode(chunk, final=False)

    def finish(self) -> str:
        """Flush the decoder at end of stream.

        Returns:
            Any text still buffered (always empty for a clean stream).

        Raises:
            TruncatedEncoding: If the stream ended mid multi-byte sequence.
                The pending bytes are discarded before raising.
        """
        pending = self.pending
        if pending:
            self._decoder.reset()
            raise TruncatedEncoding(
                f"Stream ended with {pending} undecoded {self._encoding} byte(s)"
            )
        return self._decoder.decode(b"", final=True)
