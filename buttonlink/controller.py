"""Host-facing button controller facade.

Bundles device discovery and the connection supervisor behind the small
API a kiosk or UI host needs: list devices, connect (manually or
automatically), read statistics and subscribe to button and status events.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from .config import ControllerConfig
from .channel import ConnectionSupervisor
from .device_finder import DeviceEnumerator, EnumerationError, find_device
from .models import ButtonEvent, ConnectionState, DeviceDescriptor, Stats

logger = logging.getLogger(__name__)

NOT_FOUND_STATUS = "not found - select a device"


class ButtonController:
    """High-level interface to the button controller.

    This class acts as a facade, managing:
    1. Device discovery (DeviceEnumerator)
    2. The connection state machine and event filter (ConnectionSupervisor)
    3. The device the host last selected

    Example:
        >>> controller = ButtonController()
        >>> controller.subscribe_buttons(lambda event: play(event.label))
        <function>
        >>> controller.start(auto_connect=True)
        >>> ...
        >>> controller.shutdown()
    """

    def __init__(
        self,
        config: Optional[ControllerConfig] = None,
        transport_factory=None,
        enumerator: Optional[DeviceEnumerator] = None,
    ):
        """Initialize controller.

        Args:
            config: Connection and filter parameters
            transport_factory: Transport factory passed to the supervisor
            enumerator: Device enumerator, or None for the pyserial one
        """
        self._config = config or ControllerConfig()
        self._enumerator = enumerator or DeviceEnumerator(self._config)
        self._supervisor = ConnectionSupervisor(
            self._config,
            transport_factory=transport_factory,
            enumerator=self._enumerator,
        )

        self._devices: List[DeviceDescriptor] = []
        self._selected: Optional[DeviceDescriptor] = None
        self._auto_connect_timer: Optional[threading.Timer] = None

    def __enter__(self) -> ButtonController:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # --- Lifecycle ---

    def start(self, auto_connect: bool = False) -> None:
        """Start the supervisor.

        Args:
            auto_connect: If True, connect to the best device after the
                configured connection_timeout settle delay. Returns
                immediately either way.
        """
        self._supervisor.start()
        if auto_connect:
            self._auto_connect_timer = threading.Timer(
                self._config.connection_timeout, self.auto_connect
            )
            self._auto_connect_timer.daemon = True
            self._auto_connect_timer.start()

    def shutdown(self) -> None:
        """Cancel pending auto-connect, close the port and stop the worker."""
        if self._auto_connect_timer is not None:
            self._auto_connect_timer.cancel()
            self._auto_connect_timer = None
        self._supervisor.shutdown()

    # --- Devices ---

    def list_devices(self) -> List[DeviceDescriptor]:
        """Scan serial devices.

        Returns:
            Fresh descriptors, or an empty list if the OS query failed.
        """
        try:
            self._devices = self._enumerator.list_devices()
        except EnumerationError as e:
            logger.error(f"Error scanning devices: {e}")
            self._devices = []
        logger.info(f"Found {len(self._devices)} devices")
        return list(self._devices)

    @property
    def selected_device(self) -> Optional[DeviceDescriptor]:
        """Device of the last successful connect, if it was listed."""
        return self._selected

    def auto_connect(self) -> bool:
        """Scan, pick the most likely controller and connect to it."""
        device = self._enumerator.pick(self.list_devices())
        if device is None:
            logger.info("No devices found for auto-connection")
            self._supervisor.report_status(NOT_FOUND_STATUS)
            return False
        logger.info(f"Auto-selected {device.path} ({device.description})")
        return self.connect(device.path)

    # --- Connection ---

    def connect(self, path: str) -> bool:
        """Connect to the device at path. Never raises."""
        success = self._supervisor.connect_to_port(path)
        if success:
            self._selected = find_device(self._devices, path) or self._selected
        return success

    def disconnect(self) -> None:
        """Close the connection; no automatic reconnect follows."""
        self._supervisor.close()

    def reconnect(self) -> bool:
        """Manual reconnect; clears the EXHAUSTED state."""
        return self._supervisor.reconnect()

    @property
    def is_connected(self) -> bool:
        return self._supervisor.is_connected()

    @property
    def state(self) -> ConnectionState:
        return self._supervisor.state

    @property
    def supervisor(self) -> ConnectionSupervisor:
        return self._supervisor

    # --- Statistics ---

    def get_stats(self) -> Stats:
        return self._supervisor.get_stats()

    def reset_stats(self) -> None:
        self._supervisor.reset_stats()

    # --- Events ---

    def subscribe_buttons(self, callback: Callable[[ButtonEvent], None]) -> Callable[[], None]:
        return self._supervisor.subscribe_buttons(callback)

    def subscribe_status(self, callback: Callable[[str], None]) -> Callable[[], None]:
        return self._supervisor.subscribe_status(callback)

    def subscribe_state(
        self, callback: Callable[[ConnectionState, int], None]
    ) -> Callable[[], None]:
        return self._supervisor.subscribe_state(callback)
