"""Line framing buffer for the serial reader.

Collects raw chunks and hands out complete newline-terminated lines.
Only the reader thread touches it, so it carries no lock.
"""
import logging
from typing import List

logger = logging.getLogger(__name__)

DEFAULT_MAX_LINE_BUFFER = 4096  # bytes


class LineBuffer:
    """Byte buffer with line extraction and drop-oldest overflow."""

    def __init__(self, max_size: int = DEFAULT_MAX_LINE_BUFFER):
        """Initialize buffer.

        Args:
            max_size: Maximum number of unterminated bytes kept. Beyond that
                the oldest bytes are dropped.
        """
        self._max_size = max_size
        self._buffer = bytearray()
        self._overflow_count = 0

    def write(self, data: bytes) -> None:
        """Append a chunk."""
        if not data:
            return

        self._buffer.extend(data)

        if len(self._buffer) > self._max_size:
            drop_count = len(self._buffer) - self._max_size
            del self._buffer[:drop_count]
            self._overflow_count += 1
            if self._overflow_count % 100 == 1:
                logger.warning(f"Line buffer overflow: dropped {drop_count} bytes of noise")

    def read_lines(self) -> List[bytes]:
        """Remove and return all complete lines, without the trailing newline."""
        lines = []
        while True:
            idx = self._buffer.find(b"\n")
            if idx == -1:
                break
            lines.append(bytes(self._buffer[:idx]))
            del self._buffer[:idx + 1]
        return lines

    @property
    def size(self) -> int:
        """Number of buffered bytes not yet terminated by a newline."""
        return len(self._buffer)

    @property
    def overflow_count(self) -> int:
        return self._overflow_count

    def clear(self) -> None:
        self._buffer.clear()
