"""Button event filter and statistics engine.

Turns raw controller lines into clean button events:

1. Validate: the line must be one of the configured labels
2. Debounce: drop presses that follow the last accepted press of the
   same button too closely
3. Spam: drop presses once a button already has max_presses_per_second
   accepted presses inside the sliding window, and warn the host
4. Accept: record the press and emit a ButtonEvent

The filter is not thread-safe. It is meant to be driven from a single
execution context (the supervisor's work queue). Statistics are published
as immutable Stats snapshots, so reading them from another thread is safe.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional

from ..config import ControllerConfig
from ..errors import ValidationError
from ..models import ButtonEvent, FilterVerdict, Stats
from .ring import PressRing

logger = logging.getLogger(__name__)

ButtonCallback = Callable[[ButtonEvent], None]
WarningCallback = Callable[[str], None]

SPAM_WARNING = "possible spam on button {label} - check contacts"


class ButtonFilter:
    """Validates, debounces and rate-limits button lines.

    Example:
        >>> events = []
        >>> f = ButtonFilter(ControllerConfig(), on_button=events.append)
        >>> f.process_line("3", now=10.0)
        <FilterVerdict.ACCEPTED: 'accepted'>
        >>> f.process_line("3", now=10.05)
        <FilterVerdict.DEBOUNCED: 'debounced'>
        >>> f.stats.total_presses, f.stats.blocked_presses
        (1, 1)
    """

    def __init__(
        self,
        config: Optional[ControllerConfig] = None,
        on_button: Optional[ButtonCallback] = None,
        on_warning: Optional[WarningCallback] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize filter.

        Args:
            config: Filtering parameters
            on_button: Called with every accepted ButtonEvent
            on_warning: Called with a human-readable spam warning
            clock: Monotonic time source in seconds
        """
        self._config = config or ControllerConfig()
        self._on_button = on_button
        self._on_warning = on_warning
        self._clock = clock

        self._valid_labels = frozenset(self._config.valid_labels)
        self._debounce = self._config.debounce_interval

        # Per-label state; persists across stats resets and reconnects
        self._last_accepted: Dict[str, float] = {}
        self._history: Dict[str, PressRing] = {}

        self._stats = Stats.empty(self._clock())

    @property
    def stats(self) -> Stats:
        """Current statistics snapshot."""
        return self._stats

    def history(self, label: str) -> Optional[PressRing]:
        """Press history for a label, or None if it was never accepted."""
        return self._history.get(label)

    def last_accepted(self, label: str) -> Optional[float]:
        """Timestamp of the last accepted press of a label."""
        return self._last_accepted.get(label)

    def validate(self, line: str) -> str:
        """Return the label for a valid line.

        Raises:
            ValidationError: If the line is not exactly one valid label.
        """
        if not isinstance(line, str) or line not in self._valid_labels:
            raise ValidationError(f"Invalid button data: {line!r}", line=line)
        return line

    def process_line(self, line: str, now: Optional[float] = None) -> FilterVerdict:
        """Run one line through validation, debounce and spam checks.

        Never raises for bad input; rejected lines are counted as blocked.

        Args:
            line: Line text with the newline already stripped
            now: Monotonic arrival time, or None to read the clock

        Returns:
            The verdict for this line.
        """
        if now is None:
            now = self._clock()

        try:
            label = self.validate(line)
        except ValidationError as e:
            logger.warning(f"{e}")
            self._stats = self._stats.record_blocked()
            return FilterVerdict.INVALID

        last = self._last_accepted.get(label)
        if last is not None and now - last < self._debounce:
            self._stats = self._stats.record_blocked()
            logger.debug(f"Debounced: {label} ({(now - last) * 1000:.0f}ms after last)")
            return FilterVerdict.DEBOUNCED

        if self._is_spamming(label, now):
            self._stats = self._stats.record_blocked()
            warning = SPAM_WARNING.format(label=label)
            logger.warning(f"Possible spam detected for button {label}")
            self._notify_warning(warning)
            return FilterVerdict.SPAM

        self._accept(label, now)
        return FilterVerdict.ACCEPTED

    def reset_stats(self, now: Optional[float] = None) -> Stats:
        """Start a new statistics window.

        Press history and debounce baselines are kept.

        Returns:
            The snapshot of the window that just ended.
        """
        if now is None:
            now = self._clock()
        previous = self._stats
        logger.info(f"Stats: {previous.to_dict(now=now)}")
        self._stats = Stats.empty(now)
        return previous

    # Internal methods

    def _is_spamming(self, label: str, now: float) -> bool:
        ring = self._history.get(label)
        if ring is None:
            return False
        ring.trim_before(now - self._config.spam_window)
        return len(ring) >= self._config.max_presses_per_second

    def _accept(self, label: str, now: float) -> None:
        self._last_accepted[label] = now

        ring = self._history.get(label)
        if ring is None:
            ring = PressRing(self._config.history_capacity)
            self._history[label] = ring
        ring.push(now)

        self._stats = self._stats.record_accepted(label)

        event = ButtonEvent(label=label, timestamp=now)
        logger.debug(f"Button pressed: {label}")
        if self._on_button is not None:
            try:
                self._on_button(event)
            except Exception as e:
                logger.error(f"Error in button callback: {e}")

    def _notify_warning(self, message: str) -> None:
        if self._on_warning is None:
            return
        try:
            self._on_warning(message)
        except Exception as e:
            logger.error(f"Error in warning callback: {e}")
