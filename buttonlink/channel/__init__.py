"""Button channel: serialized work queue, event filter and connection supervisor.

This module provides:
- Fixed-capacity press history (PressRing)
- Line validation, debounce, spam suppression and statistics (ButtonFilter)
- Single-threaded executor with delayed calls (WorkQueue)
- Connection state machine with bounded auto-reconnect (ConnectionSupervisor)
"""

from .ring import PressRing
from .filter import ButtonFilter
from .work_queue import ScheduledCall, WorkQueue
from .supervisor import ConnectionSupervisor

__all__ = [
    'PressRing',
    'ButtonFilter',
    'ScheduledCall',
    'WorkQueue',
    'ConnectionSupervisor',
]
