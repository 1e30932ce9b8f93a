"""Serialized execution context for the button channel.

One daemon thread drains a queue of callables. Timed work (reconnect
delays, periodic stats resets) is kept in a heap and executed by the same
thread when due, so incoming lines, host requests and timers never run
concurrently with each other.
"""
from __future__ import annotations

import heapq
import itertools
import logging
import queue
import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

IDLE_WAIT = 0.5  # seconds, upper bound on a single queue wait
STOP_TIMEOUT = 2.0  # seconds


class ScheduledCall:
    """Handle for a callable scheduled with WorkQueue.call_later."""

    def __init__(self, due: float, fn: Callable[..., Any], args: Tuple[Any, ...]):
        self.due = due
        self._fn = fn
        self._args = args
        self._cancelled = False

    def cancel(self) -> None:
        """Prevent the call from running. Safe to call at any time."""
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _run(self) -> None:
        if not self._cancelled:
            self._fn(*self._args)


class WorkQueue:
    """Single-threaded executor with delayed calls.

    Example:
        >>> wq = WorkQueue(name="demo")
        >>> wq.start()
        >>> wq.submit(lambda: 2 + 2).result(timeout=1.0)
        4
        >>> handle = wq.call_later(5.0, print, "never")
        >>> handle.cancel()
        >>> wq.stop()
    """

    def __init__(self, name: str = "ButtonChannel", clock: Callable[[], float] = time.monotonic):
        self._name = name
        self._clock = clock

        self._queue: queue.Queue[Optional[Tuple[Callable[..., Any], Tuple[Any, ...], Optional[Future]]]] = queue.Queue()
        self._timers: List[Tuple[float, int, ScheduledCall]] = []
        self._timer_lock = threading.Lock()
        self._sequence = itertools.count()

        self._running = False
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the worker thread."""
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(
            target=self._run_loop,
            daemon=True,
            name=self._name,
        )
        self._thread.start()
        logger.debug(f"Work queue {self._name} started")

    def stop(self) -> None:
        """Stop the worker after the work already queued has run.

        Pending timers are dropped.
        """
        if not self._running:
            return
        self._running = False
        # Wake the worker
        self._queue.put(None)
        if self._thread and self._thread.is_alive() and not self.in_worker():
            self._thread.join(timeout=STOP_TIMEOUT)
        self._thread = None
        with self._timer_lock:
            self._timers.clear()
        logger.debug(f"Work queue {self._name} stopped")

    @property
    def running(self) -> bool:
        return self._running

    def in_worker(self) -> bool:
        """True when called from the worker thread."""
        return self._thread is not None and threading.current_thread() is self._thread

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Queue a call and return a Future for its result.

        If the queue is not running the Future fails with RuntimeError.
        """
        future: Future = Future()
        if not self._running:
            future.set_exception(RuntimeError(f"Work queue {self._name} is not running"))
            return future
        self._queue.put((fn, args, future))
        return future

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        """Queue a call without tracking its result."""
        if not self._running:
            return
        self._queue.put((fn, args, None))

    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any) -> ScheduledCall:
        """Run fn(*args) on the worker after delay seconds.

        A zero delay still goes through the timer heap, so the call runs on a
        later loop iteration, never re-entrantly.
        """
        handle = ScheduledCall(self._clock() + max(0.0, delay), fn, args)
        with self._timer_lock:
            heapq.heappush(self._timers, (handle.due, next(self._sequence), handle))
        # Wake the worker so it recomputes its wait time
        self._queue.put((_noop, (), None))
        return handle

    def pending_timers(self) -> int:
        """Number of scheduled calls that have not run and are not cancelled."""
        with self._timer_lock:
            return sum(1 for _, _, h in self._timers if not h.cancelled)

    # Internal methods

    def _run_loop(self) -> None:
        """Worker loop: queued work first, then due timers."""
        while self._running:
            try:
                item = self._queue.get(timeout=self._next_wait())
            except queue.Empty:
                item = None

            if item is not None:
                fn, args, future = item
                self._execute(fn, args, future)

            for handle in self._pop_due():
                self._execute(handle._run, (), None)

        # Fail whatever was submitted after stop() so no caller waits forever
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is not None and item[2] is not None:
                item[2].set_exception(RuntimeError(f"Work queue {self._name} stopped"))

    def _next_wait(self) -> float:
        with self._timer_lock:
            while self._timers and self._timers[0][2].cancelled:
                heapq.heappop(self._timers)
            if not self._timers:
                return IDLE_WAIT
            return min(IDLE_WAIT, max(0.0, self._timers[0][0] - self._clock()))

    def _pop_due(self) -> List[ScheduledCall]:
        now = self._clock()
        due = []
        with self._timer_lock:
            while self._timers and self._timers[0][0] <= now:
                _, _, handle = heapq.heappop(self._timers)
                if not handle.cancelled:
                    due.append(handle)
        return due

    def _execute(self, fn: Callable[..., Any], args: Tuple[Any, ...], future: Optional[Future]) -> None:
        if future is not None and not future.set_running_or_notify_cancel():
            return
        try:
            result = fn(*args)
        except Exception as e:
            logger.error(f"Error in work item {getattr(fn, '__name__', fn)!r}: {e}", exc_info=True)
            if future is not None:
                future.set_exception(e)
            return
        if future is not None:
            future.set_result(result)


def _noop() -> None:
    pass
