from .core import (
    DeviceEnumerator,
    describe_port,
    find_device,
    is_candidate,
    pick_device,
)
from ..errors import EnumerationError

__all__ = [
    "DeviceEnumerator",
    "describe_port",
    "find_device",
    "is_candidate",
    "pick_device",
    "EnumerationError",
]
