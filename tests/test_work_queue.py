"""Unit tests for the serialized work queue."""

import threading
import time
import unittest

from buttonlink.channel.work_queue import WorkQueue


class TestWorkQueue(unittest.TestCase):

    def setUp(self):
        self.wq = WorkQueue(name="TestQueue")
        self.wq.start()

    def tearDown(self):
        self.wq.stop()

    def test_submit_returns_result(self):
        self.assertEqual(self.wq.submit(lambda a, b: a + b, 2, 3).result(timeout=1.0), 5)

    def test_fifo_order_on_single_thread(self):
        seen = []
        threads = set()

        def record(i):
            seen.append(i)
            threads.add(threading.current_thread().name)

        for i in range(50):
            self.wq.post(record, i)
        self.wq.submit(lambda: None).result(timeout=1.0)

        self.assertEqual(seen, list(range(50)))
        self.assertEqual(threads, {"TestQueue"})

    def test_exception_fails_future_and_worker_survives(self):
        def boom():
            raise ValueError("boom")

        future = self.wq.submit(boom)
        with self.assertRaises(ValueError):
            future.result(timeout=1.0)
        self.assertEqual(self.wq.submit(lambda: "ok").result(timeout=1.0), "ok")

    def test_call_later_runs_after_delay(self):
        done = threading.Event()
        start = time.monotonic()
        self.wq.call_later(0.1, done.set)

        self.assertTrue(done.wait(timeout=2.0))
        self.assertGreaterEqual(time.monotonic() - start, 0.09)

    def test_cancelled_call_does_not_run(self):
        ran = []
        handle = self.wq.call_later(0.05, ran.append, 1)
        handle.cancel()
        time.sleep(0.2)
        self.assertEqual(ran, [])
        self.assertEqual(self.wq.pending_timers(), 0)

    def test_zero_delay_is_not_reentrant(self):
        order = []

        def outer():
            self.wq.call_later(0, order.append, "timer")
            order.append("outer done")

        self.wq.submit(outer).result(timeout=1.0)
        deadline = time.monotonic() + 2.0
        while len(order) < 2 and time.monotonic() < deadline:
            time.sleep(0.01)

        self.assertEqual(order, ["outer done", "timer"])

    def test_in_worker(self):
        self.assertFalse(self.wq.in_worker())
        self.assertTrue(self.wq.submit(self.wq.in_worker).result(timeout=1.0))

    def test_submit_after_stop_fails(self):
        self.wq.stop()
        future = self.wq.submit(lambda: 1)
        with self.assertRaises(RuntimeError):
            future.result(timeout=1.0)

    def test_stop_drops_timers(self):
        ran = []
        self.wq.call_later(0.2, ran.append, 1)
        self.wq.stop()
        time.sleep(0.3)
        self.assertEqual(ran, [])


if __name__ == '__main__':
    unittest.main()
