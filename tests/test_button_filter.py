"""Unit tests for ButtonFilter (validation, debounce, spam, statistics)."""

import random
import unittest
from unittest.mock import Mock

from buttonlink.channel.filter import ButtonFilter
from buttonlink.config import ControllerConfig
from buttonlink.errors import ValidationError
from buttonlink.models import ButtonEvent, FilterVerdict


class FilterTestCase(unittest.TestCase):

    def make_filter(self, **overrides):
        self.events = []
        self.warnings = []
        config = ControllerConfig(**overrides)
        return ButtonFilter(
            config,
            on_button=self.events.append,
            on_warning=self.warnings.append,
            clock=lambda: 0.0,
        )


class TestValidation(FilterTestCase):
    """Invalid lines are blocked, counted and never raise."""

    def test_valid_labels_accepted(self):
        f = self.make_filter()
        for i, label in enumerate("12345"):
            self.assertEqual(f.process_line(label, now=float(i)), FilterVerdict.ACCEPTED)
        self.assertEqual([e.label for e in self.events], list("12345"))

    def test_invalid_lines_blocked(self):
        f = self.make_filter()
        for line in ["", "0", "6", "12", "a", " 1", "1 ", "\x00"]:
            self.assertEqual(f.process_line(line, now=1.0), FilterVerdict.INVALID)

        self.assertEqual(self.events, [])
        self.assertEqual(f.stats.blocked_presses, 8)
        self.assertEqual(f.stats.total_presses, 0)

    def test_non_string_input_blocked(self):
        f = self.make_filter()
        self.assertEqual(f.process_line(None, now=1.0), FilterVerdict.INVALID)
        self.assertEqual(f.stats.blocked_presses, 1)

    def test_validate_raises_validation_error(self):
        f = self.make_filter()
        with self.assertRaises(ValidationError) as ctx:
            f.validate("7")
        self.assertEqual(ctx.exception.line, "7")
        self.assertEqual(f.validate("3"), "3")

    def test_custom_label_set(self):
        f = self.make_filter(valid_labels=("A", "B"))
        self.assertEqual(f.process_line("A", now=0.0), FilterVerdict.ACCEPTED)
        self.assertEqual(f.process_line("1", now=1.0), FilterVerdict.INVALID)


class TestDebounce(FilterTestCase):

    def test_two_presses_50ms_apart_yield_one_event(self):
        """'1','1' 50ms apart with 200ms debounce: one event, one blocked."""
        f = self.make_filter(debounce_ms=200)

        self.assertEqual(f.process_line("1", now=10.0), FilterVerdict.ACCEPTED)
        self.assertEqual(f.process_line("1", now=10.05), FilterVerdict.DEBOUNCED)

        self.assertEqual(len(self.events), 1)
        self.assertEqual(self.events[0], ButtonEvent(label="1", timestamp=10.0))
        self.assertEqual(f.stats.total_presses, 1)
        self.assertEqual(f.stats.blocked_presses, 1)

    def test_presses_at_or_beyond_interval_both_accepted(self):
        f = self.make_filter(debounce_ms=250)
        f.process_line("1", now=0.0)
        self.assertEqual(f.process_line("1", now=0.25), FilterVerdict.ACCEPTED)
        self.assertEqual(f.process_line("1", now=0.75), FilterVerdict.ACCEPTED)
        self.assertEqual(len(self.events), 3)

    def test_debounce_is_per_label(self):
        f = self.make_filter(debounce_ms=200)
        f.process_line("1", now=10.0)
        self.assertEqual(f.process_line("2", now=10.01), FilterVerdict.ACCEPTED)
        self.assertEqual(len(self.events), 2)

    def test_debounced_press_does_not_move_baseline(self):
        f = self.make_filter(debounce_ms=200)
        f.process_line("1", now=10.0)
        f.process_line("1", now=10.15)  # blocked
        # 0.21s after the accepted press, only 0.06s after the blocked one
        self.assertEqual(f.process_line("1", now=10.21), FilterVerdict.ACCEPTED)
        self.assertEqual(f.last_accepted("1"), 10.21)


class TestSpamSuppression(FilterTestCase):

    def test_twelve_presses_in_500ms(self):
        """12 x '3' within 500ms, max 10/s: 10 accepted, 2 blocked."""
        f = self.make_filter(debounce_ms=0, max_presses_per_second=10)

        verdicts = [f.process_line("3", now=20.0 + i * 0.04) for i in range(12)]

        self.assertEqual(verdicts.count(FilterVerdict.ACCEPTED), 10)
        self.assertEqual(verdicts[10:], [FilterVerdict.SPAM, FilterVerdict.SPAM])
        self.assertEqual(len(self.events), 10)
        self.assertEqual(f.stats.total_presses, 10)
        self.assertEqual(f.stats.blocked_presses, 2)
        # One warning per triggering line
        self.assertEqual(len(self.warnings), 2)
        self.assertIn("3", self.warnings[0])
        self.assertIn("spam", self.warnings[0])

    def test_single_spam_line_single_warning(self):
        f = self.make_filter(debounce_ms=0, max_presses_per_second=10)
        for i in range(11):
            f.process_line("3", now=20.0 + i * 0.04)
        self.assertEqual(len(self.warnings), 1)
        self.assertEqual(f.stats.blocked_presses, 1)

    def test_spam_block_keeps_debounce_baseline(self):
        f = self.make_filter(debounce_ms=0, max_presses_per_second=3)
        for t in (1.0, 1.1, 1.2):
            f.process_line("4", now=t)
        self.assertEqual(f.process_line("4", now=1.3), FilterVerdict.SPAM)
        self.assertEqual(f.last_accepted("4"), 1.2)

    def test_window_slides(self):
        f = self.make_filter(debounce_ms=0, max_presses_per_second=3)
        for t in (1.0, 1.1, 1.2):
            f.process_line("4", now=t)
        self.assertEqual(f.process_line("4", now=1.9), FilterVerdict.SPAM)
        # 1.0 is now more than a second old
        self.assertEqual(f.process_line("4", now=2.05), FilterVerdict.ACCEPTED)

    def test_window_is_per_label(self):
        f = self.make_filter(debounce_ms=0, max_presses_per_second=2)
        f.process_line("1", now=1.0)
        f.process_line("1", now=1.1)
        self.assertEqual(f.process_line("1", now=1.2), FilterVerdict.SPAM)
        self.assertEqual(f.process_line("2", now=1.2), FilterVerdict.ACCEPTED)

    def test_history_within_window_of_newest(self):
        f = self.make_filter(debounce_ms=0, max_presses_per_second=10)
        rng = random.Random(7)
        t = 0.0
        for _ in range(500):
            t += rng.uniform(0.0, 0.3)
            f.process_line("5", now=t)
            ring = f.history("5")
            entries = list(ring)
            self.assertLessEqual(len(entries), ring.capacity)
            self.assertTrue(all(ring.newest() - e <= 1.0 for e in entries))


class TestStatistics(FilterTestCase):

    def test_per_label_counts_sum_to_total(self):
        f = self.make_filter(debounce_ms=50, max_presses_per_second=4)
        rng = random.Random(42)
        t = 0.0
        for _ in range(1000):
            t += rng.uniform(0.0, 0.2)
            f.process_line(rng.choice(["1", "2", "3", "4", "5", "6", "x", ""]), now=t)
            stats = f.stats
            self.assertEqual(sum(stats.presses_per_label.values()), stats.total_presses)

    def test_success_rate_empty(self):
        f = self.make_filter()
        self.assertEqual(f.stats.success_rate, 100.0)

    def test_success_rate_rounded(self):
        f = self.make_filter(debounce_ms=200)
        f.process_line("1", now=1.0)
        f.process_line("2", now=1.0)
        f.process_line("3", now=1.0)
        f.process_line("3", now=1.1)  # debounced
        # (3 - 1) / 3 * 100
        self.assertEqual(f.stats.success_rate, 66.7)

    def test_reset_zeroes_counters(self):
        f = self.make_filter()
        f.process_line("1", now=1.0)
        f.process_line("x", now=1.0)

        previous = f.reset_stats(now=5.0)

        self.assertEqual(previous.total_presses, 1)
        self.assertEqual(previous.blocked_presses, 1)
        stats = f.stats
        self.assertEqual(stats.total_presses, 0)
        self.assertEqual(stats.blocked_presses, 0)
        self.assertEqual(dict(stats.presses_per_label), {})
        self.assertEqual(stats.window_start, 5.0)

    def test_reset_keeps_spam_history(self):
        f = self.make_filter(debounce_ms=0, max_presses_per_second=3)
        for t in (1.0, 1.1, 1.2):
            f.process_line("2", now=t)

        f.reset_stats(now=1.25)

        self.assertEqual(f.process_line("2", now=1.3), FilterVerdict.SPAM)
        self.assertEqual(len(f.history("2")), 3)

    def test_reset_keeps_debounce_baseline(self):
        f = self.make_filter(debounce_ms=200)
        f.process_line("2", now=1.0)
        f.reset_stats(now=1.05)
        self.assertEqual(f.process_line("2", now=1.1), FilterVerdict.DEBOUNCED)

    def test_snapshots_are_immutable(self):
        f = self.make_filter()
        before = f.stats
        f.process_line("1", now=1.0)
        self.assertEqual(before.total_presses, 0)
        with self.assertRaises(TypeError):
            f.stats.presses_per_label["1"] = 5


class TestCallbacks(FilterTestCase):

    def test_button_callback_exception_does_not_break_filter(self):
        bad = Mock(side_effect=ValueError("boom"))
        f = ButtonFilter(ControllerConfig(), on_button=bad, clock=lambda: 0.0)

        self.assertEqual(f.process_line("1", now=1.0), FilterVerdict.ACCEPTED)
        self.assertEqual(f.process_line("2", now=1.0), FilterVerdict.ACCEPTED)
        self.assertEqual(bad.call_count, 2)
        self.assertEqual(f.stats.total_presses, 2)

    def test_clock_used_when_now_omitted(self):
        clock = Mock(return_value=3.0)
        events = []
        f = ButtonFilter(ControllerConfig(), on_button=events.append, clock=clock)
        f.process_line("1")
        self.assertEqual(events[0].timestamp, 3.0)


if __name__ == '__main__':
    unittest.main()
