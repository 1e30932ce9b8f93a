#!/usr/bin/env python3
"""List serial devices and show which one auto-connect would choose."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from buttonlink import ControllerConfig, DeviceEnumerator, EnumerationError


def main():
    enumerator = DeviceEnumerator(ControllerConfig())

    try:
        devices = enumerator.list_devices()
    except EnumerationError as e:
        print(f"✗ Error: {e}")
        return

    if not devices:
        print("No serial ports found")
        return

    print(f"Found {len(devices)} serial port(s):\n")
    for idx, device in enumerate(devices, 1):
        marker = "*" if device.is_candidate else " "
        print(f"{marker} #{idx} {device.path}")
        print(f"    {device.description}")

    best = enumerator.pick(devices)
    print(f"\nAuto-connect would use: {best.path}")


if __name__ == "__main__":
    main()
