"""
Rolling Histogram Accumulator (HATS).

Keeps, for every (cell, polarity) pair, the running sum of the last
``window_size`` local time surfaces together with the bounded history that
produced it. Each push adds the newest surface and, once the history is
longer than the window, subtracts the oldest one, so the cost per event is
O(surface size) no matter how large the window is.

Invariant:
    sum[cell, polarity] == elementwise_sum(history[cell, polarity])

The add/subtract pair and every read run under one re-entrant lock, so a
compositor on another thread always sees a consistent state.

Storage:
    sums: (n_cells, 2, S, S) array, S = 2R+1, polarity OFF = 0, ON = 1.

Example:
    >>> hats = HATSAccumulator(n_cells=256, radius=8, window_size=30)
    >>> hats.push(136, True, surface)
    >>> hats.get_sum(136, True).shape
    (17, 17)
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, List

import numpy as np

from .functional import (
    DTypeLike,
    _validate_square,
    saturating_add,
    saturating_cast,
    saturating_sub,
)


# Stabiliser for normalised histograms of empty pairs
DEFAULT_NORMALIZATION_EPS = 1e-6


class InvariantViolationError(RuntimeError):
    """A running sum no longer matches its history. Internal defect."""
    pass


class HATSAccumulator:
    """
    Per-cell, per-polarity rolling sums of local time surfaces.

    Attributes:
        n_cells: Number of spatial cells.
        radius: Neighbourhood radius R.
        window_size: Maximum history length per pair.
        dtype: Element type of surfaces and sums.
        sums: Running sums, shape (n_cells, 2, 2R+1, 2R+1).
    """

    def __init__(
        self,
        n_cells: int,
        radius: int,
        window_size: int,
        dtype: DTypeLike = np.float32
    ):
        if n_cells <= 0:
            raise ValueError(f"n_cells must be positive, got {n_cells}")
        if window_size <= 0:
            raise ValueError(f"window_size must be positive, got {window_size}")
        if radius < 0:
            raise ValueError(f"radius must be non-negative, got {radius}")

        self.n_cells = n_cells
        self.radius = radius
        self.window_size = window_size
        self.dtype = np.dtype(dtype)
        self.size = 2 * radius + 1

        self.sums = np.zeros((n_cells, 2, self.size, self.size), dtype=self.dtype)
        self._history: List[List[Deque[np.ndarray]]] = [
            [deque(), deque()] for _ in range(n_cells)
        ]
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        """Lock guarding the add/subtract pair; hold it for multi-read snapshots."""
        return self._lock

    def push(self, cell: int, polarity: bool, surface: np.ndarray) -> None:
        """
        Add a surface to the rolling window of a pair.

        Args:
            cell: Cell index.
            polarity: True for ON.
            surface: (2R+1, 2R+1) local time surface. Stored by reference;
                the caller must not mutate it afterwards.
        """
        _validate_square(surface, self.size, "surface")
        if surface.dtype != self.dtype:
            surface = saturating_cast(surface, self.dtype)

        p = 1 if polarity else 0
        with self._lock:
            history = self._history[cell][p]
            acc = self.sums[cell, p]
            history.append(surface)
            saturating_add(acc, surface, out=acc)
            if len(history) > self.window_size:
                oldest = history.popleft()
                saturating_sub(acc, oldest, out=acc)

    def get_sum(self, cell: int, polarity: bool) -> np.ndarray:
        """Read-only view of a pair's running sum."""
        view = self.sums[cell, 1 if polarity else 0].view()
        view.flags.writeable = False
        return view

    def history_length(self, cell: int, polarity: bool) -> int:
        """Number of surfaces currently in a pair's window."""
        return len(self._history[cell][1 if polarity else 0])

    def history(self, cell: int, polarity: bool) -> List[np.ndarray]:
        """Surfaces currently in a pair's window, oldest first."""
        with self._lock:
            return list(self._history[cell][1 if polarity else 0])

    def normalized(
        self,
        cell: int,
        polarity: bool,
        eps: float = DEFAULT_NORMALIZATION_EPS
    ) -> np.ndarray:
        """
        Running sum divided by the number of contributing surfaces.

        Args:
            cell: Cell index.
            polarity: True for ON.
            eps: Stabilising constant added to the count.

        Returns:
            New float64 array.
        """
        p = 1 if polarity else 0
        with self._lock:
            count = len(self._history[cell][p])
            return self.sums[cell, p].astype(np.float64) / (count + eps)

    def snapshot(self, polarity: bool, normalize: bool = False,
                 eps: float = DEFAULT_NORMALIZATION_EPS) -> np.ndarray:
        """
        Consistent copy of every cell's sum for one polarity.

        Returns:
            Array of shape (n_cells, 2R+1, 2R+1); float64 when normalised.
        """
        p = 1 if polarity else 0
        with self._lock:
            if not normalize:
                return self.sums[:, p].copy()
            counts = np.array([len(h[p]) for h in self._history], dtype=np.float64)
            return self.sums[:, p].astype(np.float64) / (counts[:, None, None] + eps)

    def recompute_sum(self, cell: int, polarity: bool) -> np.ndarray:
        """Sum of a pair's history computed from scratch (float64)."""
        acc = np.zeros((self.size, self.size), dtype=np.float64)
        for surface in self.history(cell, polarity):
            acc += surface
        return acc

    def verify(self, cell: int, polarity: bool, rtol: float = 1e-5, atol: float = 1e-4) -> None:
        """
        Check the running sum against its recomputed history.

        Raises:
            InvariantViolationError: When they differ.
        """
        with self._lock:
            expected = saturating_cast(self.recompute_sum(cell, polarity), self.dtype)
            actual = self.sums[cell, 1 if polarity else 0]
            if not np.allclose(actual, expected, rtol=rtol, atol=atol):
                worst = float(np.max(np.abs(actual.astype(np.float64) - expected)))
                raise InvariantViolationError(
                    f"Running sum of cell {cell} polarity {int(bool(polarity))} "
                    f"diverged from its history (max abs error {worst:.6g})"
                )

    def clear(self) -> None:
        """Zero every sum and drop every history."""
        with self._lock:
            self.sums.fill(0)
            for off, on in self._history:
                off.clear()
                on.clear()

    def __repr__(self) -> str:
        return (
            f"HATSAccumulator(n_cells={self.n_cells}, radius={self.radius}, "
            f"window_size={self.window_size}, dtype={self.dtype.name})"
        )


__all__ = [
    "DEFAULT_NORMALIZATION_EPS",
    "InvariantViolationError",
    "HATSAccumulator",
]
