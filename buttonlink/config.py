"""Static configuration for the button controller channel.

A single ControllerConfig is built by the host and handed to every
component at construction time. Defaults match a stock Arduino sketch that
prints one digit per button press at 9600 baud.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Tuple

DEFAULT_BAUDRATE = 9600
DEFAULT_CONNECTION_TIMEOUT = 1.0  # seconds, settle delay before auto-connect
DEFAULT_RECONNECT_DELAY = 3.0  # seconds
DEFAULT_MAX_RECONNECT_ATTEMPTS = 5
DEFAULT_READ_TIMEOUT = 0.1  # seconds

# Arduino, WCH (CH340), FTDI, Arduino.org, Silicon Labs (CP210x)
DEFAULT_VENDOR_IDS = ("2341", "1a86", "0403", "2a03", "10c4")
DEFAULT_PORT_KEYWORDS = ("arduino", "usbserial", "usbmodem", "ch340", "cp210")

DEFAULT_DEBOUNCE_MS = 200
DEFAULT_MAX_PRESSES_PER_SECOND = 10
DEFAULT_VALID_LABELS = ("1", "2", "3", "4", "5")
DEFAULT_HISTORY_CAPACITY = 100
DEFAULT_SPAM_WINDOW = 1.0  # seconds
DEFAULT_STATS_RESET_INTERVAL = 60.0  # seconds


@dataclass(frozen=True)
class ControllerConfig:
    """Connection, discovery and filtering parameters.

    Attributes:
        baudrate: Serial baud rate
        connection_timeout: Seconds to wait after start before auto-connecting
        reconnect_delay: Seconds between automatic reconnect attempts
        max_reconnect_attempts: Consecutive failed attempts before giving up
        read_timeout: pyserial read timeout used by the reader thread
        vendor_ids: USB vendor ids (hex, lower case) that mark a candidate
        port_keywords: Substrings of manufacturer or path that mark a candidate
        match_com_ports: Treat any bare ``COMn`` path as a candidate
        rescan_on_reconnect: Re-run discovery when the last port disappears
        encoding: Text encoding of incoming lines
        debounce_ms: Minimum interval between two accepted presses of one button
        max_presses_per_second: Accepted presses per button per window before
            further presses are treated as spam
        valid_labels: Exact line contents accepted as button labels
        history_capacity: Per-button press history size
        spam_window: Sliding window length for spam detection, in seconds
        stats_reset_interval: Seconds between automatic statistics resets
    """
    baudrate: int = DEFAULT_BAUDRATE
    connection_timeout: float = DEFAULT_CONNECTION_TIMEOUT
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY
    max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS
    read_timeout: float = DEFAULT_READ_TIMEOUT
    vendor_ids: Tuple[str, ...] = DEFAULT_VENDOR_IDS
    port_keywords: Tuple[str, ...] = DEFAULT_PORT_KEYWORDS
    match_com_ports: bool = True
    rescan_on_reconnect: bool = True
    encoding: str = "utf-8"
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    max_presses_per_second: int = DEFAULT_MAX_PRESSES_PER_SECOND
    valid_labels: Tuple[str, ...] = DEFAULT_VALID_LABELS
    history_capacity: int = DEFAULT_HISTORY_CAPACITY
    spam_window: float = DEFAULT_SPAM_WINDOW
    stats_reset_interval: float = DEFAULT_STATS_RESET_INTERVAL

    def __post_init__(self):
        # Lists coming from JSON are normalised to tuples to keep the config hashable
        for name in ("vendor_ids", "port_keywords", "valid_labels"):
            value = getattr(self, name)
            if isinstance(value, str):
                raise ValueError(f"{name} must be a sequence of strings, not a string")
            object.__setattr__(self, name, tuple(str(v) for v in value))
        object.__setattr__(
            self, "vendor_ids", tuple(v.lower() for v in self.vendor_ids)
        )

        if self.baudrate <= 0:
            raise ValueError(f"baudrate must be positive, got {self.baudrate}")
        if self.connection_timeout < 0:
            raise ValueError("connection_timeout must not be negative")
        if self.reconnect_delay < 0:
            raise ValueError("reconnect_delay must not be negative")
        if self.max_reconnect_attempts < 0:
            raise ValueError("max_reconnect_attempts must not be negative")
        if self.read_timeout <= 0:
            raise ValueError("read_timeout must be positive")
        if self.debounce_ms < 0:
            raise ValueError("debounce_ms must not be negative")
        if self.max_presses_per_second < 1:
            raise ValueError("max_presses_per_second must be at least 1")
        if self.history_capacity < self.max_presses_per_second:
            raise ValueError(
                "history_capacity must hold at least max_presses_per_second entries"
            )
        if self.spam_window <= 0:
            raise ValueError("spam_window must be positive")
        if self.stats_reset_interval <= 0:
            raise ValueError("stats_reset_interval must be positive")
        if not self.valid_labels:
            raise ValueError("valid_labels must not be empty")

    @property
    def debounce_interval(self) -> float:
        """Debounce interval in seconds."""
        return self.debounce_ms / 1000.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dict (tuples become lists) for JSON persistence."""
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            data[f.name] = list(value) if isinstance(value, tuple) else value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ControllerConfig:
        """Build a config from a host-supplied mapping.

        Unknown keys are rejected so that typos surface immediately.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**dict(data))
