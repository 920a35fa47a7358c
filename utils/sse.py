"""Incremental text/event-stream framing.

Frames are separated by a blank line. Bytes are decoded as UTF-8 with an
incremental decoder, so a multi-byte character split across two network
chunks is reassembled before framing.
"""
import codecs
import logging
import re

logger = logging.getLogger(__name__)

_FRAME_DELIMITER = "\n\n"
_DATA_PREFIX = re.compile(r"^data: ?", re.MULTILINE)


class FrameBuffer:
    """Accumulates decoded text and releases complete frames."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[str]:
        """Add a chunk and return every frame it completed (possibly none)."""
        text = self._decoder.decode(chunk)
        if not text:
            return []
        buffered = self._buffer + text
        # A trailing CR may be the first half of a CRLF still in flight.
        carry = ""
        if buffered.endswith("\r"):
            buffered, carry = buffered[:-1], "\r"
        buffered = buffered.replace("\r\n", "\n").replace("\r", "\n")
        *frames, rest = buffered.split(_FRAME_DELIMITER)
        self._buffer = rest + carry
        return frames

    def discard(self) -> str:
        """Drop whatever is buffered and return it; used when a stream ends or aborts."""
        remainder = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        self._decoder.reset()
        if remainder.strip():
            logger.debug("Discarding unterminated frame (%d chars)", len(remainder))
        return remainder

    @property
    def pending(self) -> str:
        return self._buffer


def frame_payload(frame: str) -> str:
    """Strip the ``data:`` prefix from every line of a frame and trim the result.

    Comment lines (starting with ":") such as keep-alives are dropped.
    """
    lines = [line for line in frame.split("\n") if not line.startswith(":")]
    return _DATA_PREFIX.sub("", "\n".join(lines)).strip()
