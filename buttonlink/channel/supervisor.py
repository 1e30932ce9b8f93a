"""Connection supervisor for the button controller.

Owns at most one transport at a time and drives the connection state
machine:

    IDLE --connect--> CONNECTING --ok--> OPEN
    CONNECTING --fail (manual)--> IDLE
    CONNECTING --fail (automatic)--> RECONNECTING(n+1) | EXHAUSTED
    OPEN --error/closed--> RECONNECTING(1)
    RECONNECTING(n) --delay--> CONNECTING
    any --close--> CLOSING --> IDLE
    EXHAUSTED --reconnect--> CONNECTING

Everything that touches the state, the transport or the filter runs on a
single WorkQueue thread: incoming lines, transport errors, the reconnect
timer and the periodic stats reset are all messages on that queue. Host
calls either submit work and wait for its Future, or (when already on the
worker, e.g. from inside a callback) run inline.

Device faults never raise across the public API; they are reported through
status strings, boolean results and last_error.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from functools import partial
from typing import Callable, List, Optional

from ..config import ControllerConfig
from ..device_finder import DeviceEnumerator
from ..errors import ButtonLinkError, ExhaustedError, OpenError, TransportError
from ..models import ButtonEvent, ConnectionState, Stats
from ..transport import LineTransport, SerialLineTransport
from .filter import ButtonFilter
from .work_queue import ScheduledCall, WorkQueue

logger = logging.getLogger(__name__)

TransportFactory = Callable[..., LineTransport]
StatusCallback = Callable[[str], None]
ButtonCallback = Callable[[ButtonEvent], None]
StateCallback = Callable[[ConnectionState, int], None]

DEFAULT_REQUEST_TIMEOUT = 10.0  # seconds a host call waits for the worker


def _completed(value) -> Future:
    future: Future = Future()
    future.set_result(value)
    return future


class ConnectionSupervisor:
    """Resilient serial channel: connection state machine plus event filter.

    Example:
        >>> sup = ConnectionSupervisor(ControllerConfig(reconnect_delay=1.0))
        >>> sup.subscribe_status(lambda text: print(f"Status: {text}"))
        <function>
        >>> sup.subscribe_buttons(lambda event: print(f"Button: {event.label}"))
        <function>
        >>> sup.connect_to_port("/dev/ttyACM0")
        True
        >>> sup.get_stats().total_presses
        0
        >>> sup.shutdown()

    Callbacks are invoked on the supervisor's worker thread. They may call
    back into the supervisor (close, reconnect, ...) without deadlocking.
    """

    def __init__(
        self,
        config: Optional[ControllerConfig] = None,
        transport_factory: Optional[TransportFactory] = None,
        enumerator: Optional[DeviceEnumerator] = None,
        clock: Callable[[], float] = time.monotonic,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        """Initialize supervisor.

        Args:
            config: Connection and filter parameters
            transport_factory: Called as factory(port, config, on_line=...,
                on_error=..., on_close=...) to build a transport.
                Defaults to SerialLineTransport.
            enumerator: Used to pick a new port when the old one disappears
            clock: Monotonic time source for timers and press timestamps
            request_timeout: Seconds host calls wait for the worker
        """
        self._config = config or ControllerConfig()
        self._transport_factory = transport_factory or SerialLineTransport
        self._enumerator = enumerator or DeviceEnumerator(self._config)
        self._clock = clock
        self._request_timeout = request_timeout

        self._queue = WorkQueue(name="ButtonSupervisor", clock=clock)
        self._filter = ButtonFilter(
            self._config,
            on_button=self._notify_button,
            on_warning=self._notify_status,
            clock=clock,
        )

        # Worker-owned state
        self._state = ConnectionState.IDLE
        self._attempt = 0
        self._port: Optional[str] = None
        self._transport: Optional[LineTransport] = None
        self._generation = 0
        self._reconnect_timer: Optional[ScheduledCall] = None
        self._stats_timer: Optional[ScheduledCall] = None
        self._last_error: Optional[ButtonLinkError] = None

        # Request guards (host threads)
        self._request_lock = threading.Lock()
        self._connect_pending = False
        self._closes_pending = 0
        self._shut_down = False

        # Callbacks
        self._status_callbacks: List[StatusCallback] = []
        self._button_callbacks: List[ButtonCallback] = []
        self._state_callbacks: List[StateCallback] = []
        self._callback_lock = threading.Lock()

    # --- Properties ---

    @property
    def config(self) -> ControllerConfig:
        return self._config

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def attempt(self) -> int:
        """Current reconnect attempt (0 when not reconnecting)."""
        return self._attempt

    @property
    def port(self) -> Optional[str]:
        """Path of the current or most recent connection."""
        return self._port

    @property
    def last_error(self) -> Optional[ButtonLinkError]:
        """Most recent OpenError, TransportError or ExhaustedError."""
        return self._last_error

    # --- Lifecycle ---

    def start(self) -> None:
        """Start the worker thread and the periodic stats reset.

        Called implicitly by the first request.
        """
        with self._request_lock:
            if self._shut_down or self._queue.running:
                return
            self._queue.start()
        self._queue.post(self._schedule_stats_reset)

    def shutdown(self) -> None:
        """Close the connection and stop the worker thread. Idempotent.

        After shutdown every request fails (connect returns False).
        """
        with self._request_lock:
            if self._shut_down:
                return
            self._shut_down = True
        if self._queue.running:
            self._run_sync(self._do_close)
            self._queue.stop()
        logger.info("Supervisor shut down")

    # --- Connection control ---

    def connect_async(self, path: str) -> Future:
        """Request a connection without waiting.

        Returns:
            Future resolving to True if the port opened. Resolves to False
            immediately if a connect or close is already in flight.
        """
        if not self._begin_connect():
            return _completed(False)
        self.start()
        future = self._queue.submit(self._do_connect, path, False)
        future.add_done_callback(lambda _: self._end_connect())
        return future

    def connect_to_port(self, path: str) -> bool:
        """Open a connection to path, replacing any existing one.

        Never raises; failures are reported via status and the return value.

        Returns:
            True if the port is open.
        """
        if self._queue.in_worker():
            if not self._begin_connect():
                return False
            try:
                return self._do_connect(path, False)
            finally:
                self._end_connect()
        return self._wait(self.connect_async(path), default=False)

    def reconnect(self) -> bool:
        """Reset the attempt counter and retry immediately.

        Uses the last port, or the enumerator's best pick if there is none.
        This is the way out of EXHAUSTED.
        """
        if not self._begin_connect():
            return False
        try:
            self.start()
            return bool(self._run_sync(self._do_reconnect, default=False))
        finally:
            self._end_connect()

    def close(self) -> None:
        """Close the connection and cancel any pending reconnect.

        Idempotent and safe from any state; leaves the supervisor IDLE.
        """
        with self._request_lock:
            self._closes_pending += 1
        try:
            if self._queue.running:
                self._run_sync(self._do_close)
            else:
                self._do_close()
        finally:
            with self._request_lock:
                self._closes_pending -= 1

    def is_connected(self) -> bool:
        transport = self._transport
        return (
            self._state is ConnectionState.OPEN
            and transport is not None
            and transport.is_open()
        )

    # --- Statistics ---

    def get_stats(self) -> Stats:
        """Current statistics snapshot (safe from any thread)."""
        return self._filter.stats

    def reset_stats(self) -> Stats:
        """Start a new statistics window.

        Returns:
            Snapshot of the window that ended.
        """
        if not self._queue.running:
            return self._filter.reset_stats()
        return self._run_sync(self._filter.reset_stats, default=self._filter.stats)

    # --- Subscriptions ---

    def subscribe_status(self, callback: StatusCallback) -> Callable[[], None]:
        """Subscribe to human-readable status messages.

        Returns:
            Unsubscribe function
        """
        return self._subscribe(self._status_callbacks, callback)

    def subscribe_buttons(self, callback: ButtonCallback) -> Callable[[], None]:
        """Subscribe to accepted button events."""
        return self._subscribe(self._button_callbacks, callback)

    def subscribe_state(self, callback: StateCallback) -> Callable[[], None]:
        """Subscribe to (state, attempt) changes."""
        return self._subscribe(self._state_callbacks, callback)

    def report_status(self, text: str) -> None:
        """Publish a host-level message on the status channel."""
        self._notify_status(text)

    # --- Worker-side transitions ---

    def _do_connect(self, path: str, automatic: bool) -> bool:
        self._cancel_reconnect_timer()
        self._teardown()

        self._port = path
        generation = self._generation
        self._set_state(ConnectionState.CONNECTING)
        if self._superseded(ConnectionState.CONNECTING, generation):
            return False

        try:
            transport = self._transport_factory(
                path,
                self._config,
                on_line=partial(self._post_line, generation),
                on_error=partial(self._post_lost, generation),
                on_close=partial(self._post_lost, generation, None),
            )
            transport.open()
        except Exception as e:
            # Anything escaping here would leave the state stuck in CONNECTING
            if not isinstance(e, OpenError):
                e = OpenError(f"Failed to open {path}: {e}", port=path)
            self._last_error = e
            logger.error(f"{e}")
            self._notify_status(f"error: {e}")
            if automatic:
                self._handle_disconnect()
            else:
                self._attempt = 0
                self._set_state(ConnectionState.IDLE)
            return False

        self._transport = transport
        self._attempt = 0
        self._set_state(ConnectionState.OPEN)
        if self._superseded(ConnectionState.OPEN, generation):
            return False
        logger.info(f"Button controller connected on {path}")
        self._notify_status(f"connected: {path}")
        return True

    def _do_reconnect(self) -> bool:
        self._cancel_reconnect_timer()
        self._attempt = 0

        path = self._port
        if path is None:
            device = self._enumerator.pick()
            if device is None:
                self._notify_status("not found - select a device")
                return False
            path = device.path

        logger.info(f"Manual reconnect to {path}")
        return self._do_connect(path, False)

    def _do_close(self) -> None:
        if (
            self._state is ConnectionState.IDLE
            and self._transport is None
            and self._reconnect_timer is None
        ):
            return

        self._set_state(ConnectionState.CLOSING)
        self._cancel_reconnect_timer()
        self._teardown()
        self._attempt = 0
        self._set_state(ConnectionState.IDLE)
        logger.info("Button controller connection closed")
        self._notify_status("disconnected")

    def _teardown(self) -> None:
        """Release the current transport and invalidate its notifications."""
        self._generation += 1
        transport = self._transport
        self._transport = None
        if transport is not None:
            transport.close()

    def _handle_disconnect(self) -> None:
        """Standard reconnect path after a loss or a failed automatic open."""
        max_attempts = self._config.max_reconnect_attempts
        generation = self._generation
        if self._attempt < max_attempts:
            self._attempt += 1
            attempt = self._attempt
            self._set_state(ConnectionState.RECONNECTING)
            # A state callback may have closed or reconnected inline
            if self._superseded(ConnectionState.RECONNECTING, generation):
                return
            self._reconnect_timer = self._queue.call_later(
                self._config.reconnect_delay,
                self._on_reconnect_due,
                generation,
            )
            self._notify_status(f"reconnecting ({attempt}/{max_attempts})")
            return

        self._last_error = ExhaustedError(
            f"Gave up after {max_attempts} reconnect attempts", attempts=max_attempts
        )
        logger.error(f"{self._last_error}")
        self._set_state(ConnectionState.EXHAUSTED)
        if self._superseded(ConnectionState.EXHAUSTED, generation):
            return
        self._notify_status("disconnected: max attempts reached")

    def _on_reconnect_due(self, generation: int) -> None:
        self._reconnect_timer = None
        if generation != self._generation or self._state is not ConnectionState.RECONNECTING:
            return

        path = self._resolve_reconnect_path()
        logger.info(
            f"Reconnect attempt {self._attempt}/{self._config.max_reconnect_attempts} to {path}"
        )
        self._do_connect(path, True)

    def _resolve_reconnect_path(self) -> str:
        """Last port, or the best current pick if the last port is gone."""
        if not self._config.rescan_on_reconnect:
            return self._port
        if self._enumerator.is_device_present(self._port):
            return self._port

        device = self._enumerator.pick()
        if device is None:
            return self._port
        logger.info(f"{self._port} is gone, switching to {device.path}")
        return device.path

    def _on_line(self, generation: int, text: str, now: float) -> None:
        if generation != self._generation or self._state is not ConnectionState.OPEN:
            return
        self._filter.process_line(text, now=now)

    def _on_lost(self, generation: int, error: Optional[Exception]) -> None:
        if generation != self._generation or self._state is not ConnectionState.OPEN:
            return
        if error is None:
            error = TransportError(f"{self._port}: stream closed", port=self._port)
        self._last_error = error
        logger.warning(f"Connection to {self._port} lost: {error}")
        self._teardown()
        self._handle_disconnect()

    def _schedule_stats_reset(self) -> None:
        if self._stats_timer is not None:
            self._stats_timer.cancel()
        self._stats_timer = self._queue.call_later(
            self._config.stats_reset_interval, self._on_stats_timer
        )

    def _on_stats_timer(self) -> None:
        self._filter.reset_stats()
        self._schedule_stats_reset()

    def _superseded(self, state: ConnectionState, generation: int) -> bool:
        """True if a callback moved the machine on while state was published."""
        return self._state is not state or self._generation != generation

    def _cancel_reconnect_timer(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state and state is not ConnectionState.RECONNECTING:
            return
        self._state = state
        with self._callback_lock:
            callbacks = list(self._state_callbacks)
        for callback in callbacks:
            try:
                callback(state, self._attempt)
            except Exception as e:
                logger.error(f"Error in state callback: {e}")

    # --- Transport thread entry points ---

    def _post_line(self, generation: int, text: str) -> None:
        self._queue.post(self._on_line, generation, text, self._clock())

    def _post_lost(self, generation: int, error: Optional[Exception] = None) -> None:
        self._queue.post(self._on_lost, generation, error)

    # --- Helpers ---

    def _begin_connect(self) -> bool:
        with self._request_lock:
            if self._shut_down:
                return False
            if (
                self._connect_pending
                or self._closes_pending
                or self._state in (ConnectionState.CONNECTING, ConnectionState.CLOSING)
            ):
                logger.warning("Connection already in progress or closing")
                return False
            self._connect_pending = True
            return True

    def _end_connect(self) -> None:
        with self._request_lock:
            self._connect_pending = False

    def _run_sync(self, fn, *args, default=None):
        """Run fn on the worker and wait; inline when already on the worker."""
        if self._queue.in_worker():
            return fn(*args)
        return self._wait(self._queue.submit(fn, *args), default=default)

    def _wait(self, future: Future, default=None):
        try:
            return future.result(timeout=self._request_timeout)
        except Exception as e:
            logger.error(f"Supervisor request failed: {e!r}")
            return default

    def _subscribe(self, callbacks: list, callback) -> Callable[[], None]:
        with self._callback_lock:
            callbacks.append(callback)

        def unsubscribe():
            with self._callback_lock:
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def _notify_status(self, text: str) -> None:
        with self._callback_lock:
            callbacks = list(self._status_callbacks)
        for callback in callbacks:
            try:
                callback(text)
            except Exception as e:
                logger.error(f"Error in status callback: {e}")

    def _notify_button(self, event: ButtonEvent) -> None:
        with self._callback_lock:
            callbacks = list(self._button_callbacks)
        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in button callback: {e}")
