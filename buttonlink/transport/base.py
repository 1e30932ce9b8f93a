"""Abstract base class for the line-oriented device transport.

A transport owns exactly one device handle. It frames the incoming byte
stream into text lines and reports three kinds of notifications through
callbacks supplied at construction time:

- on_line(text): one decoded line, trailing whitespace stripped
- on_error(exc): an I/O error while the handle was open
- on_close(): the stream ended without an error

Callbacks run on the transport's own reader thread. Consumers that keep
state must hand the notification over to their own execution context.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

LineCallback = Callable[[str], None]
ErrorCallback = Callable[[Exception], None]
CloseCallback = Callable[[], None]


class LineTransport(ABC):
    """Abstract line transport to a button controller."""

    def __init__(
        self,
        port: str,
        on_line: Optional[LineCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_close: Optional[CloseCallback] = None,
    ):
        self._port = port
        self._on_line = on_line
        self._on_error = on_error
        self._on_close = on_close

    @property
    def port(self) -> str:
        """Device path this transport was created for."""
        return self._port

    @abstractmethod
    def open(self) -> None:
        """Open the device handle and start delivering lines.

        Raises:
            OpenError: If the handle cannot be opened.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the device handle.

        Must be safe to call multiple times and from any thread, including
        from inside a callback. No notifications are delivered afterwards.
        """
        pass

    @abstractmethod
    def is_open(self) -> bool:
        """Check if the handle is currently open."""
        pass
