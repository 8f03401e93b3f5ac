"""Incremental decoder for the chat push-stream.

Transport chunks can split a record anywhere, including inside a multi-byte
UTF-8 sequence. The decoder buffers until a line is complete and only then
decodes it.
"""

from __future__ import annotations

import codecs

from eduassist.gateway.frames import Frame, FrameFormatError, decode_record
from eduassist.log import get_logger

logger = get_logger(__name__)


class FrameDecoder:
    """Turns an arbitrary sequence of byte chunks into whole frames."""

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.skipped = 0

    def feed(self, chunk: bytes) -> list[Frame]:
        """Consume one chunk and return every frame whose line it completed."""
        self._buffer += self._utf8.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return self._decode_lines(lines)

    def flush(self) -> list[Frame]:
        """Decode whatever is left once the stream has ended."""
        self._buffer += self._utf8.decode(b"", final=True)
        tail, self._buffer = self._buffer, ""
        return self._decode_lines([tail])

    @property
    def pending(self) -> str:
        return self._buffer

    def _decode_lines(self, lines: list[str]) -> list[Frame]:
        frames: list[Frame] = []
        for line in lines:
            line = line.rstrip("\r")
            if not line or line.startswith(":"):
                continue
            try:
                frame = decode_record(line)
            except FrameFormatError as e:
                self.skipped += 1
                logger.warning("frame_decode_error", error=str(e), line=line[:200])
                continue
            if frame is not None:
                frames.append(frame)
        return frames
