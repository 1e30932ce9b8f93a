"""Fixed-capacity press history.

Each button keeps its recent accepted timestamps in a PressRing: a
preallocated list plus a read cursor and a count. Pushing onto a full ring
overwrites the oldest entry, so memory never grows past the capacity.
"""
from __future__ import annotations

from typing import Iterator, List, Optional


class PressRing:
    """Ring buffer of monotonic timestamps, oldest first."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._slots: List[float] = [0.0] * capacity
        self._capacity = capacity
        self._head = 0  # index of the oldest entry
        self._count = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[float]:
        for i in range(self._count):
            yield self._slots[(self._head + i) % self._capacity]

    def push(self, timestamp: float) -> None:
        """Append a timestamp, overwriting the oldest one when full."""
        tail = (self._head + self._count) % self._capacity
        self._slots[tail] = timestamp
        if self._count == self._capacity:
            self._head = (self._head + 1) % self._capacity
        else:
            self._count += 1

    def oldest(self) -> Optional[float]:
        if self._count == 0:
            return None
        return self._slots[self._head]

    def newest(self) -> Optional[float]:
        if self._count == 0:
            return None
        return self._slots[(self._head + self._count - 1) % self._capacity]

    def trim_before(self, cutoff: float) -> int:
        """Drop entries strictly older than cutoff, from the front.

        Returns:
            Number of entries dropped.
        """
        dropped = 0
        while self._count and self._slots[self._head] < cutoff:
            self._head = (self._head + 1) % self._capacity
            self._count -= 1
            dropped += 1
        return dropped

    def clear(self) -> None:
        self._head = 0
        self._count = 0
