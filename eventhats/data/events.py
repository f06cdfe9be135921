"""
Event Representation for eventhats.

This module provides:
    - Event: Immutable single event (x, y, t, polarity)
    - EventData: Columnar container for event streams
    - Batching: slicing a recording into ordered delivery batches

Event Representation:
    Raw events are (x, y, polarity, timestamp) tuples. Timestamps are
    integer microseconds and non-decreasing in delivery order.
    Polarity is stored as given in the source (0/1 or -1/+1); any
    value > 0 is an ON event.

Example:
    >>> from eventhats.data.events import Event, EventData
    >>>
    >>> events = EventData.from_events(
    ...     [Event(10, 12, 1000, True), Event(11, 12, 1500, False)],
    ...     height=128, width=128
    ... )
    >>> for batch in events.iter_batches(batch_us=1000):
    ...     engine.ingest(batch)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional

import numpy as np


# =============================================================================
# SINGLE EVENT
# =============================================================================


@dataclass(frozen=True)
class Event:
    """
    A single brightness change.

    Attributes:
        x: Pixel column.
        y: Pixel row.
        t: Timestamp in microseconds.
        polarity: True for ON (brightness increase), False for OFF.
    """
    x: int
    y: int
    t: int
    polarity: bool


# =============================================================================
# EVENT STREAM CONTAINER
# =============================================================================


@dataclass
class EventData:
    """
    Container for event camera data.

    Attributes:
        x: X coordinates (column), shape (N,)
        y: Y coordinates (row), shape (N,)
        p: Polarity (0 or 1, or -1/+1), shape (N,)
        t: Timestamps in microseconds, shape (N,)
        height: Sensor height in pixels
        width: Sensor width in pixels
    """
    x: np.ndarray
    y: np.ndarray
    p: np.ndarray
    t: np.ndarray
    height: int
    width: int

    def __post_init__(self):
        """Validate event data."""
        n = len(self.x)
        if len(self.y) != n:
            raise ValueError(f"y length {len(self.y)} != x length {n}")
        if len(self.p) != n:
            raise ValueError(f"p length {len(self.p)} != x length {n}")
        if len(self.t) != n:
            raise ValueError(f"t length {len(self.t)} != x length {n}")

    def __len__(self) -> int:
        return len(self.x)

    def __iter__(self) -> Iterator[Event]:
        for xi, yi, pi, ti in zip(self.x.tolist(), self.y.tolist(),
                                  self.p.tolist(), self.t.tolist()):
            yield Event(xi, yi, ti, pi > 0)

    @property
    def n_events(self) -> int:
        return len(self.x)

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        if len(self.t) == 0:
            return 0.0
        return (self.t[-1] - self.t[0]) / 1e6

    @property
    def event_rate(self) -> float:
        """Events per second."""
        d = self.duration
        return self.n_events / d if d > 0 else 0.0

    @property
    def polarity(self) -> np.ndarray:
        """Boolean ON mask."""
        return self.p > 0

    def is_time_ordered(self) -> bool:
        """True when timestamps never decrease."""
        return bool(np.all(np.diff(self.t) >= 0)) if len(self.t) > 1 else True

    def to_array(self) -> np.ndarray:
        """Convert to (N, 4) array [x, y, p, t]."""
        return np.column_stack([self.x, self.y, self.p, self.t])

    @classmethod
    def from_array(
        cls,
        events: np.ndarray,
        height: int,
        width: int
    ) -> "EventData":
        """Create from (N, 4) array."""
        return cls(
            x=events[:, 0].astype(np.int32),
            y=events[:, 1].astype(np.int32),
            p=events[:, 2].astype(np.int8),
            t=events[:, 3].astype(np.int64),
            height=height,
            width=width
        )

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, np.ndarray],
        height: int,
        width: int
    ) -> "EventData":
        """Create from dictionary with x, y, p, t keys."""
        return cls(
            x=np.asarray(data['x']).astype(np.int32),
            y=np.asarray(data['y']).astype(np.int32),
            p=np.asarray(data['p']).astype(np.int8),
            t=np.asarray(data['t']).astype(np.int64),
            height=height,
            width=width
        )

    @classmethod
    def from_events(
        cls,
        events: Iterable[Event],
        height: int,
        width: int
    ) -> "EventData":
        """Create from a sequence of Event values."""
        events = list(events)
        return cls(
            x=np.array([e.x for e in events], dtype=np.int32),
            y=np.array([e.y for e in events], dtype=np.int32),
            p=np.array([1 if e.polarity else 0 for e in events], dtype=np.int8),
            t=np.array([e.t for e in events], dtype=np.int64),
            height=height,
            width=width
        )

    def _take(self, index) -> "EventData":
        return EventData(
            x=self.x[index],
            y=self.y[index],
            p=self.p[index],
            t=self.t[index],
            height=self.height,
            width=self.width
        )

    def filter_by_time(
        self,
        t_start: float,
        t_end: float
    ) -> "EventData":
        """Filter events within time range [t_start, t_end) in microseconds."""
        mask = (self.t >= t_start) & (self.t < t_end)
        return self._take(mask)

    def sort_by_time(self) -> "EventData":
        """Return a copy ordered by timestamp (stable)."""
        return self._take(np.argsort(self.t, kind='stable'))

    def iter_batches(
        self,
        batch_us: Optional[int] = None,
        batch_size: Optional[int] = None
    ) -> Iterator["EventData"]:
        """
        Slice the stream into consecutive, ordered batches.

        Exactly one of ``batch_us`` (fixed time slices, aligned to the first
        timestamp) or ``batch_size`` (fixed event counts) must be given.
        Empty time slices are skipped.

        Args:
            batch_us: Slice duration in microseconds.
            batch_size: Events per slice.

        Yields:
            EventData views in arrival order.
        """
        if (batch_us is None) == (batch_size is None):
            raise ValueError("Pass exactly one of batch_us or batch_size")

        n = len(self)
        if n == 0:
            return

        if batch_size is not None:
            if batch_size <= 0:
                raise ValueError(f"batch_size must be positive, got {batch_size}")
            for start in range(0, n, batch_size):
                yield self._take(slice(start, start + batch_size))
            return

        if batch_us <= 0:
            raise ValueError(f"batch_us must be positive, got {batch_us}")
        t0 = int(self.t[0])
        t_last = int(self.t[-1])
        edges = np.arange(t0, t_last + batch_us + 1, batch_us, dtype=np.int64)
        # Binary search for slice bounds
        bounds = np.searchsorted(self.t, edges, side='left')
        for lo, hi in zip(bounds[:-1], bounds[1:]):
            if hi > lo:
                yield self._take(slice(int(lo), int(hi)))


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "Event",
    "EventData",
]
