"""
Temporal Memory.

Per-cell, per-polarity recency buffers of events, oldest first.

Events arrive in non-decreasing timestamp order, so every buffer is sorted
and eviction only ever removes a prefix. The prefix end is found by binary
search on the timestamps and dropped by advancing a head offset; the
backing lists are compacted once the dead prefix outgrows the live part,
which keeps eviction at O(log n + k) amortised.

Example:
    >>> memory = TemporalMemory(n_cells=256)
    >>> memory.insert(136, True, Event(64, 64, 1000, True))
    >>> memory.evict_expired(136, True, temporal_window=100_000)
    0
"""

from __future__ import annotations

from bisect import bisect_left
from typing import List, Optional, Tuple

import numpy as np

from ..data.events import Event


# Dead prefix length below which compaction is not worth a list copy
_COMPACT_MIN = 64


class _Slot:
    """Time-ordered event buffer of one (cell, polarity) pair."""

    __slots__ = ("xs", "ys", "ts", "head")

    def __init__(self):
        self.xs: List[int] = []
        self.ys: List[int] = []
        self.ts: List[int] = []
        self.head = 0

    def __len__(self) -> int:
        return len(self.ts) - self.head

    def append(self, x: int, y: int, t: int) -> None:
        self.xs.append(x)
        self.ys.append(y)
        self.ts.append(t)

    def trim_before(self, cutoff: int) -> int:
        pos = bisect_left(self.ts, cutoff, self.head)
        removed = pos - self.head
        self.head = pos
        if self.head >= _COMPACT_MIN and self.head * 2 >= len(self.ts):
            del self.xs[:self.head]
            del self.ys[:self.head]
            del self.ts[:self.head]
            self.head = 0
        return removed

    def clear(self) -> None:
        self.xs.clear()
        self.ys.clear()
        self.ts.clear()
        self.head = 0


class TemporalMemory:
    """
    Bounded-recency event memory for every (cell, polarity) pair.

    Polarity is indexed OFF = 0, ON = 1.

    Attributes:
        n_cells: Number of spatial cells.
    """

    def __init__(self, n_cells: int):
        if n_cells <= 0:
            raise ValueError(f"n_cells must be positive, got {n_cells}")
        self.n_cells = n_cells
        self._slots = [[_Slot(), _Slot()] for _ in range(n_cells)]

    def _slot(self, cell: int, polarity: bool) -> _Slot:
        return self._slots[cell][1 if polarity else 0]

    def insert(self, cell: int, polarity: bool, event: Event) -> None:
        """
        Append an event.

        The caller guarantees ``event.t`` is not older than the newest
        event already held for this pair.
        """
        self._slot(cell, polarity).append(event.x, event.y, event.t)

    def evict_older_than(self, cell: int, polarity: bool, cutoff: int) -> int:
        """
        Drop every event with ``t < cutoff``.

        Returns:
            Number of events removed.
        """
        return self._slot(cell, polarity).trim_before(cutoff)

    def evict_expired(self, cell: int, polarity: bool, temporal_window: int) -> int:
        """
        Drop events older than the newest one by more than ``temporal_window``.

        An empty buffer has no reference time and evicts nothing.

        Returns:
            Number of events removed.
        """
        latest = self.latest_timestamp(cell, polarity)
        if latest is None:
            return 0
        return self.evict_older_than(cell, polarity, latest - temporal_window)

    def latest_timestamp(self, cell: int, polarity: bool) -> Optional[int]:
        """Newest timestamp held for the pair, or None when empty."""
        slot = self._slot(cell, polarity)
        if len(slot) == 0:
            return None
        return slot.ts[-1]

    def snapshot(self, cell: int, polarity: bool) -> List[Event]:
        """Events held for the pair, oldest first."""
        slot = self._slot(cell, polarity)
        h = slot.head
        return [
            Event(x, y, t, bool(polarity))
            for x, y, t in zip(slot.xs[h:], slot.ys[h:], slot.ts[h:])
        ]

    def arrays(self, cell: int, polarity: bool) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Columnar copy of the pair's events.

        Returns:
            (x, y, t) int64 arrays, oldest first.
        """
        slot = self._slot(cell, polarity)
        h = slot.head
        return (
            np.array(slot.xs[h:], dtype=np.int64),
            np.array(slot.ys[h:], dtype=np.int64),
            np.array(slot.ts[h:], dtype=np.int64),
        )

    def count(self, cell: int, polarity: bool) -> int:
        """Number of events held for the pair."""
        return len(self._slot(cell, polarity))

    def total_events(self) -> int:
        """Number of events held across all pairs."""
        return sum(len(off) + len(on) for off, on in self._slots)

    def clear(self) -> None:
        """Forget every event."""
        for off, on in self._slots:
            off.clear()
            on.clear()

    def __len__(self) -> int:
        return self.total_events()


__all__ = ["TemporalMemory"]
