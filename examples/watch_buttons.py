#!/usr/bin/env python3
"""
Interactive button controller monitor.

Connects to the given port (or auto-detects one), prints every accepted
button press and status message, and shows statistics every 10 seconds.

Usage:
    python examples/watch_buttons.py [PORT]
"""

import sys
import time
import logging
from pathlib import Path

# Add package to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from buttonlink import ButtonController, ControllerConfig

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)


def main():
    config = ControllerConfig(reconnect_delay=2.0, stats_reset_interval=60.0)
    controller = ButtonController(config)

    controller.subscribe_status(lambda text: print(f"[status] {text}"))
    controller.subscribe_buttons(lambda event: print(f"[button] {event.label}"))

    controller.start()

    if len(sys.argv) > 1:
        print(f"Connecting to {sys.argv[1]}...")
        connected = controller.connect(sys.argv[1])
    else:
        print("Attempting to connect (auto-detect)...")
        connected = controller.auto_connect()

    if not connected:
        print("Failed to connect! Is the controller plugged in?")
        controller.shutdown()
        return

    try:
        print("\nWaiting for button presses (Ctrl+C to stop)...")
        while True:
            time.sleep(10)
            stats = controller.get_stats()
            print(f"[stats] total={stats.total_presses} blocked={stats.blocked_presses} "
                  f"per_button={dict(stats.presses_per_label)} "
                  f"success={stats.success_rate}% state={controller.state.value}")

    except KeyboardInterrupt:
        print("\nInterrupted by user.")
    finally:
        print("\nDisconnecting...")
        controller.shutdown()
        print("Done.")


if __name__ == "__main__":
    main()
