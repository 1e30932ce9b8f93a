"""Immutable data models shared by the enumerator, filter and supervisor.

All models are frozen dataclasses (or enums) so that snapshots can be handed
to the host thread without copying or locking.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

UNKNOWN_MANUFACTURER = "Unknown"
NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class DeviceDescriptor:
    """One serial device as seen during enumeration.

    Attributes:
        path: Port name to open (e.g. 'COM3', '/dev/ttyACM0')
        manufacturer: USB manufacturer string, or 'Unknown'
        vendor_id: USB vendor id as 4-digit lower-case hex, or 'N/A'
        product_id: USB product id as 4-digit lower-case hex, or 'N/A'
        serial_number: USB serial number, or 'N/A'
        description: Human-readable summary for device pickers
        is_candidate: Whether this looks like the button controller
    """
    path: str
    manufacturer: str = UNKNOWN_MANUFACTURER
    vendor_id: str = NOT_AVAILABLE
    product_id: str = NOT_AVAILABLE
    serial_number: str = NOT_AVAILABLE
    description: str = ""
    is_candidate: bool = False


class ConnectionState(Enum):
    """Supervisor connection states."""
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    RECONNECTING = "reconnecting"
    EXHAUSTED = "exhausted"


class FilterVerdict(Enum):
    """Outcome of processing a single input line."""
    ACCEPTED = "accepted"
    INVALID = "invalid"
    DEBOUNCED = "debounced"
    SPAM = "spam"

    @property
    def blocked(self) -> bool:
        return self is not FilterVerdict.ACCEPTED


@dataclass(frozen=True)
class ButtonEvent:
    """A validated, de-duplicated button press.

    Attributes:
        label: Button label (one of the configured valid labels)
        timestamp: Monotonic time of the press in seconds
    """
    label: str
    timestamp: float


@dataclass(frozen=True)
class Stats:
    """Snapshot of press statistics for the current stats window.

    New snapshots are produced by record_accepted/record_blocked/reset; an
    existing instance never changes.

    Attributes:
        total_presses: Accepted presses in this window
        blocked_presses: Invalid, debounced and spam lines in this window
        presses_per_label: Accepted presses per label
        window_start: Monotonic time the window started
    """
    total_presses: int = 0
    blocked_presses: int = 0
    presses_per_label: Mapping[str, int] = field(
        default_factory=lambda: MappingProxyType({})
    )
    window_start: float = 0.0

    @property
    def success_rate(self) -> float:
        """Percentage of presses not blocked, 100.0 when nothing was pressed."""
        if self.total_presses == 0:
            return 100.0
        rate = (self.total_presses - self.blocked_presses) / self.total_presses * 100
        return round(rate, 1)

    def uptime(self, now: float) -> int:
        """Whole seconds since the window started."""
        return max(0, int(now - self.window_start))

    def record_accepted(self, label: str) -> Stats:
        counts = dict(self.presses_per_label)
        counts[label] = counts.get(label, 0) + 1
        return Stats(
            total_presses=self.total_presses + 1,
            blocked_presses=self.blocked_presses,
            presses_per_label=MappingProxyType(counts),
            window_start=self.window_start,
        )

    def record_blocked(self) -> Stats:
        return Stats(
            total_presses=self.total_presses,
            blocked_presses=self.blocked_presses + 1,
            presses_per_label=self.presses_per_label,
            window_start=self.window_start,
        )

    @classmethod
    def empty(cls, window_start: float) -> Stats:
        return cls(window_start=window_start)

    def to_dict(self, now: Optional[float] = None) -> Dict[str, Any]:
        """Convert to a plain dict for logging or host serialisation."""
        data: Dict[str, Any] = {
            "total_presses": self.total_presses,
            "blocked_presses": self.blocked_presses,
            "presses_per_label": dict(self.presses_per_label),
            "window_start": self.window_start,
            "success_rate": self.success_rate,
        }
        if now is not None:
            data["uptime"] = self.uptime(now)
        return data
