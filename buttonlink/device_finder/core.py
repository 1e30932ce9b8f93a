from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Sequence

from serial.tools import list_ports

from ..config import ControllerConfig
from ..errors import EnumerationError
from ..models import DeviceDescriptor, NOT_AVAILABLE, UNKNOWN_MANUFACTURER

logger = logging.getLogger(__name__)

COM_PORT_PATTERN = re.compile(r"^COM\d+$", re.IGNORECASE)
DESCRIPTION_SEPARATOR = " | "


def _format_usb_id(value: Optional[int]) -> Optional[str]:
    """pyserial reports VID/PID as integers; the allow-list uses 4-digit hex."""
    if value is None:
        return None
    return f"{value:04x}"


def is_candidate(
    path: str,
    manufacturer: Optional[str],
    vendor_id: Optional[str],
    *,
    vendor_ids: Iterable[str] = (),
    keywords: Iterable[str] = (),
    match_com_ports: bool = False,
) -> bool:
    """
    Decide whether a serial device looks like the button controller.

    Criteria are OR-combined:
        - vendor id is in the allow-list
        - manufacturer or path contains any keyword (case-insensitive)
        - path is a bare Windows COM port (only with match_com_ports)

    Args:
        path: Device path.
        manufacturer: USB manufacturer string, or None.
        vendor_id: 4-digit hex vendor id, or None.
        vendor_ids: Allowed vendor ids.
        keywords: Substrings that identify controller-like devices.
        match_com_ports: Enable the legacy COM-port rule.

    Returns:
        True if any criterion matches.
    """
    if vendor_id and vendor_id.lower() in {v.lower() for v in vendor_ids}:
        return True

    manufacturer_low = (manufacturer or "").lower()
    path_low = path.lower()
    for keyword in keywords:
        keyword = keyword.lower()
        if keyword in manufacturer_low or keyword in path_low:
            return True

    if match_com_ports and COM_PORT_PATTERN.match(path):
        return True

    return False


def describe_port(
    path: str,
    manufacturer: Optional[str] = None,
    vendor_id: Optional[str] = None,
    product_id: Optional[str] = None,
    serial_number: Optional[str] = None,
) -> str:
    """Build a one-line description from whichever USB fields are present."""
    parts = []
    if manufacturer:
        parts.append(manufacturer)
    if vendor_id and product_id:
        parts.append(f"VID:{vendor_id} PID:{product_id}")
    if serial_number:
        parts.append(f"S/N:{serial_number}")
    return DESCRIPTION_SEPARATOR.join(parts) if parts else path


def _port_to_descriptor(port, config: ControllerConfig) -> DeviceDescriptor:
    """Convert pyserial's ListPortInfo to DeviceDescriptor."""
    vendor_id = _format_usb_id(port.vid)
    product_id = _format_usb_id(port.pid)
    return DeviceDescriptor(
        path=port.device,
        manufacturer=port.manufacturer or UNKNOWN_MANUFACTURER,
        vendor_id=vendor_id or NOT_AVAILABLE,
        product_id=product_id or NOT_AVAILABLE,
        serial_number=port.serial_number or NOT_AVAILABLE,
        description=describe_port(
            port.device,
            port.manufacturer,
            vendor_id,
            product_id,
            port.serial_number,
        ),
        is_candidate=is_candidate(
            port.device,
            port.manufacturer,
            vendor_id,
            vendor_ids=config.vendor_ids,
            keywords=config.port_keywords,
            match_com_ports=config.match_com_ports,
        ),
    )


def pick_device(devices: Sequence[DeviceDescriptor]) -> Optional[DeviceDescriptor]:
    """
    Choose the device to auto-connect to.

    Behaviour:
        - first candidate in enumeration order, if any
        - otherwise the first device
        - None for an empty list
    """
    for device in devices:
        if device.is_candidate:
            return device
    if devices:
        return devices[0]
    return None


def find_device(
    devices: Iterable[DeviceDescriptor], path: str
) -> Optional[DeviceDescriptor]:
    """Return the descriptor with the given path, or None."""
    for device in devices:
        if device.path == path:
            return device
    return None


class DeviceEnumerator:
    """Lists attached serial devices and classifies controller candidates.

    Stateless apart from its configuration; every call queries the OS again.
    """

    def __init__(self, config: Optional[ControllerConfig] = None):
        self._config = config or ControllerConfig()

    def list_devices(self) -> List[DeviceDescriptor]:
        """Enumerate serial devices.

        Returns:
            Fresh descriptors in OS enumeration order.

        Raises:
            EnumerationError: If the OS query fails.
        """
        try:
            ports = list_ports.comports()
        except Exception as e:
            raise EnumerationError(f"Serial port enumeration failed: {e}") from e

        devices = [_port_to_descriptor(port, self._config) for port in ports]
        logger.debug(f"Found {len(devices)} serial device(s)")
        return devices

    def pick(
        self, devices: Optional[Sequence[DeviceDescriptor]] = None
    ) -> Optional[DeviceDescriptor]:
        """Best device for unattended connection.

        Args:
            devices: Descriptors to choose from, or None to enumerate now.
                An enumeration failure is logged and treated as no devices.
        """
        if devices is None:
            try:
                devices = self.list_devices()
            except EnumerationError as e:
                logger.error(f"{e}")
                return None
        return pick_device(devices)

    def is_device_present(self, path: str) -> bool:
        """Check whether a device with this path is currently attached."""
        try:
            return find_device(self.list_devices(), path) is not None
        except EnumerationError as e:
            logger.error(f"{e}")
            return False
