"""Transport layer for the button controller."""

from .base import LineTransport
from .line_buffer import LineBuffer
from .serial import SerialLineTransport

__all__ = ["LineTransport", "LineBuffer", "SerialLineTransport"]
