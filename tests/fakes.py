"""In-memory transport and clock doubles shared by the channel tests."""

import threading
import time

from buttonlink.errors import OpenError, TransportError
from buttonlink.transport.base import LineTransport


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start=100.0):
        self._now = start
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            return self._now

    def advance(self, seconds):
        with self._lock:
            self._now += seconds


class FakeTransport(LineTransport):
    """Transport whose lines and failures are driven by the test."""

    def __init__(self, port, config=None, on_line=None, on_error=None, on_close=None,
                 fail=False, gate=None):
        super().__init__(port, on_line=on_line, on_error=on_error, on_close=on_close)
        self.config = config
        self.fail = fail
        self.gate = gate
        self.opened = False
        self.close_calls = 0

    def open(self):
        if self.gate is not None:
            self.gate.wait(timeout=5.0)
        if self.fail:
            raise OpenError(f"Failed to open {self.port}: busy", port=self.port)
        self.opened = True

    def close(self):
        self.close_calls += 1
        self.opened = False

    def is_open(self):
        return self.opened

    def feed(self, *lines):
        for line in lines:
            self._on_line(line)

    def fail_io(self, message="device reports readiness to read but returned no data"):
        self.opened = False
        self._on_error(TransportError(message, port=self.port))

    def end_stream(self):
        self.opened = False
        self._on_close()


class FakeTransportFactory:
    """Callable used as transport_factory; records every transport it builds."""

    def __init__(self):
        self.transports = []
        self.fail_all = False
        self.fail_ports = set()
        self.gate = None

    def __call__(self, port, config, on_line=None, on_error=None, on_close=None):
        transport = FakeTransport(
            port,
            config,
            on_line=on_line,
            on_error=on_error,
            on_close=on_close,
            fail=self.fail_all or port in self.fail_ports,
            gate=self.gate,
        )
        self.transports.append(transport)
        return transport

    @property
    def last(self):
        return self.transports[-1]


def wait_for(predicate, timeout=2.0, interval=0.01):
    """Poll predicate until it is true or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def drain(supervisor):
    """Block until everything queued on the supervisor so far has run."""
    supervisor._queue.submit(lambda: None).result(timeout=2.0)
