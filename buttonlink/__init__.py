"""buttonlink - resilient serial channel for physical button controllers."""

from .config import ControllerConfig
from .controller import ButtonController
from .channel import ButtonFilter, ConnectionSupervisor
from .device_finder import DeviceEnumerator, pick_device
from .errors import (
    ButtonLinkError,
    EnumerationError,
    ExhaustedError,
    OpenError,
    TransportError,
    ValidationError,
)
from .models import (
    ButtonEvent,
    ConnectionState,
    DeviceDescriptor,
    FilterVerdict,
    Stats,
)
from .transport import LineTransport, SerialLineTransport

__all__ = [
    "ControllerConfig",
    "ButtonController",
    "ButtonFilter",
    "ConnectionSupervisor",
    "DeviceEnumerator",
    "pick_device",
    "ButtonLinkError",
    "EnumerationError",
    "ExhaustedError",
    "OpenError",
    "TransportError",
    "ValidationError",
    "ButtonEvent",
    "ConnectionState",
    "DeviceDescriptor",
    "FilterVerdict",
    "Stats",
    "LineTransport",
    "SerialLineTransport",
]
