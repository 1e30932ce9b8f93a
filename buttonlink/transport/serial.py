"""pyserial implementation of the line transport.

The controller is a USB serial device (usually an Arduino or a CH340/CP210x
bridge) that prints one button label per line.

This module handles:
- Opening and closing the serial handle
- A background reader thread that frames bytes into lines
- Reporting I/O errors and end-of-stream to the owner

Note: This layer does not interpret lines. Validation, debouncing and
      statistics belong to ButtonFilter.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

import serial

from ..config import ControllerConfig
from ..errors import OpenError, TransportError
from .base import CloseCallback, ErrorCallback, LineCallback, LineTransport
from .line_buffer import LineBuffer

logger = logging.getLogger(__name__)

JOIN_TIMEOUT = 1.0  # seconds


class SerialLineTransport(LineTransport):
    """Serial connection to the button controller.

    Example:
        >>> transport = SerialLineTransport(
        ...     "/dev/ttyACM0",
        ...     on_line=lambda text: print(f"Line: {text}"),
        ...     on_error=lambda exc: print(f"Error: {exc}"),
        ... )
        >>> transport.open()
        >>> transport.close()
    """

    def __init__(
        self,
        port: str,
        config: Optional[ControllerConfig] = None,
        on_line: Optional[LineCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_close: Optional[CloseCallback] = None,
    ):
        """Initialize serial transport.

        Args:
            port: Serial port path (e.g. '/dev/ttyACM0', 'COM3')
            config: Connection parameters (baud rate, read timeout, encoding)
            on_line: Called with each decoded line
            on_error: Called once with a TransportError when reading fails
            on_close: Called once if the port closes underneath the reader
        """
        super().__init__(port, on_line=on_line, on_error=on_error, on_close=on_close)
        self._config = config or ControllerConfig()

        self._serial: Optional[serial.Serial] = None
        self._buffer = LineBuffer()

        self._active = False
        self._reader_thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def open(self) -> None:
        """Open the serial port and start the reader thread.

        Any previously opened handle is closed first.

        Raises:
            OpenError: If pyserial cannot open the port.
        """
        self.close()

        try:
            handle = serial.Serial(
                port=self._port,
                baudrate=self._config.baudrate,
                timeout=self._config.read_timeout,
            )
            handle.reset_input_buffer()
        except serial.SerialException as e:
            raise OpenError(f"Failed to open {self._port}: {e}", port=self._port) from e
        except (OSError, ValueError) as e:
            raise OpenError(f"Failed to open {self._port}: {e}", port=self._port) from e

        with self._lock:
            self._serial = handle
            self._buffer.clear()
            self._active = True

        logger.info(f"Opened {self._port} @ {self._config.baudrate} baud")
        self._start_reader_thread()

    def close(self) -> None:
        """Stop the reader thread and close the port. Idempotent."""
        with self._lock:
            self._active = False
            handle = self._serial
            self._serial = None
            reader = self._reader_thread
            self._reader_thread = None

        # Never join from the reader itself (close called from a callback)
        if reader and reader.is_alive() and reader is not threading.current_thread():
            reader.join(timeout=JOIN_TIMEOUT)

        if handle is not None:
            try:
                handle.close()
            except (serial.SerialException, OSError) as e:
                logger.error(f"Error closing {self._port}: {e}")
            logger.info(f"Closed {self._port}")

    def is_open(self) -> bool:
        with self._lock:
            return self._active and self._serial is not None

    # Internal methods

    def _start_reader_thread(self) -> None:
        """Start background thread for reading lines."""
        thread = threading.Thread(
            target=self._reader_loop,
            args=(self._serial,),
            daemon=True,
            name=f"ButtonReader-{self._port}",
        )
        with self._lock:
            self._reader_thread = thread
        thread.start()

    def _reader_loop(self, handle: serial.Serial) -> None:
        """Read chunks from the port and dispatch complete lines."""
        logger.debug("Reader thread started")

        while self._owns(handle):
            try:
                if not handle.is_open:
                    self._handle_closed(handle)
                    break
                chunk = handle.read(handle.in_waiting or 1)
            except serial.SerialException as e:
                self._handle_error(handle, e)
                break
            except (OSError, TypeError, AttributeError) as e:
                # pyserial raises these when the fd vanishes mid-read
                self._handle_error(handle, e)
                break

            if not chunk:
                continue

            self._buffer.write(chunk)
            for raw in self._buffer.read_lines():
                if not self._owns(handle):
                    break
                self._dispatch_line(raw)

        logger.debug("Reader thread exiting")

    def _owns(self, handle: serial.Serial) -> bool:
        """True while this handle is still the live one."""
        return self._active and self._serial is handle

    def _dispatch_line(self, raw: bytes) -> None:
        text = raw.decode(self._config.encoding, errors="replace").strip()
        if self._on_line is None:
            return
        try:
            self._on_line(text)
        except Exception as e:
            logger.error(f"Error in line callback: {e}")

    def _deactivate(self, handle: serial.Serial) -> bool:
        """Mark the transport dead; returns False if close() got there first."""
        with self._lock:
            if not self._active or self._serial is not handle:
                return False
            self._active = False
            self._serial = None
            self._reader_thread = None

        try:
            handle.close()
        except (serial.SerialException, OSError) as e:
            logger.debug(f"Ignoring close error after failure on {self._port}: {e}")
        return True

    def _handle_error(self, handle: serial.Serial, error: Exception) -> None:
        """Handle a read failure (e.g. device unplugged).

        Does not join threads to avoid deadlock when called from the reader.
        """
        if not self._deactivate(handle):
            return

        logger.warning(f"Serial read error on {self._port}: {error}")
        if self._on_error is not None:
            try:
                self._on_error(TransportError(f"{self._port}: {error}", port=self._port))
            except Exception as e:
                logger.error(f"Error in error callback: {e}")

    def _handle_closed(self, handle: serial.Serial) -> None:
        if not self._deactivate(handle):
            return

        logger.warning(f"Serial port {self._port} closed unexpectedly")
        if self._on_close is not None:
            try:
                self._on_close()
            except Exception as e:
                logger.error(f"Error in close callback: {e}")
