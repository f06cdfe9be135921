"""
Local Time Surface computation.

For a trigger event e_i and the events e_j remembered in its cell and
polarity, the local time surface is

    S[y_j - y_i + R, x_j - x_i + R] += exp(-(t_i - t_j) / tau)

with ages converted to seconds. Memory events whose offset falls outside
the (2R+1) x (2R+1) neighbourhood are ignored rather than clamped to the
border. The trigger itself is already in memory when the surface is
computed, so the centre always receives weight 1.0 from it.

Weights are accumulated in float64 and converted to the surface element
type with saturation, so integer surfaces clip at their maximum instead
of wrapping around.

Reference:
    Sironi et al. 2018 - "HATS: Histograms of Averaged Time Surfaces for
    Robust Event-based Object Classification"

Example:
    >>> computer = LocalSurfaceComputer(radius=8, tau=0.5)
    >>> surface = computer.compute(trigger, memory.snapshot(cell, True))
    >>> surface.shape
    (17, 17)
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from ..config import US_PER_SECOND
from ..data.events import Event
from .functional import (
    DTypeLike,
    _validate_non_negative_int,
    _validate_positive_float,
    decay_weights,
    saturating_cast,
)


def compute_local_surface(
    trigger: Event,
    memory_x: np.ndarray,
    memory_y: np.ndarray,
    memory_t: np.ndarray,
    radius: int,
    tau: float,
    time_scale: int = US_PER_SECOND,
    dtype: DTypeLike = np.float32
) -> np.ndarray:
    """
    Compute the local time surface around a trigger event.

    Args:
        trigger: Event the surface is centred on.
        memory_x: Columns of remembered events, shape (N,).
        memory_y: Rows of remembered events, shape (N,).
        memory_t: Timestamps of remembered events, shape (N,).
        radius: Neighbourhood radius R.
        tau: Decay constant in seconds.
        time_scale: Timestamp ticks per second.
        dtype: Element type of the returned surface.

    Returns:
        Surface of shape (2R+1, 2R+1).

    Example:
        >>> s = compute_local_surface(Event(5, 5, 0, True),
        ...                           np.array([5]), np.array([5]), np.array([0]),
        ...                           radius=1, tau=0.5)
        >>> s[1, 1]
        1.0
    """
    _validate_non_negative_int(radius, "radius")
    _validate_positive_float(tau, "tau")

    size = 2 * radius + 1
    acc = np.zeros((size, size), dtype=np.float64)

    if len(memory_t) == 0:
        return saturating_cast(acc, dtype)

    dx = np.asarray(memory_x, dtype=np.int64) - trigger.x + radius
    dy = np.asarray(memory_y, dtype=np.int64) - trigger.y + radius
    inside = (dx >= 0) & (dx < size) & (dy >= 0) & (dy < size)

    if np.any(inside):
        age = trigger.t - np.asarray(memory_t, dtype=np.int64)[inside]
        weights = decay_weights(age, tau, time_scale)
        np.add.at(acc, (dy[inside], dx[inside]), weights)

    return saturating_cast(acc, dtype)


class LocalSurfaceComputer:
    """
    Local time surface computer with fixed parameters.

    Attributes:
        radius: Neighbourhood radius R.
        tau: Decay constant in seconds.
        time_scale: Timestamp ticks per second.
        dtype: Element type of produced surfaces.
    """

    def __init__(
        self,
        radius: int,
        tau: float,
        time_scale: int = US_PER_SECOND,
        dtype: DTypeLike = np.float32
    ):
        _validate_non_negative_int(radius, "radius")
        _validate_positive_float(tau, "tau")
        self.radius = radius
        self.tau = tau
        self.time_scale = time_scale
        self.dtype = np.dtype(dtype)

    @property
    def size(self) -> int:
        return 2 * self.radius + 1

    def compute(self, trigger: Event, memory: Sequence[Event]) -> np.ndarray:
        """Surface around ``trigger`` from a memory snapshot."""
        return compute_local_surface(
            trigger,
            np.fromiter((e.x for e in memory), dtype=np.int64, count=len(memory)),
            np.fromiter((e.y for e in memory), dtype=np.int64, count=len(memory)),
            np.fromiter((e.t for e in memory), dtype=np.int64, count=len(memory)),
            self.radius, self.tau, self.time_scale, self.dtype
        )

    def compute_arrays(
        self,
        trigger: Event,
        memory_x: np.ndarray,
        memory_y: np.ndarray,
        memory_t: np.ndarray
    ) -> np.ndarray:
        """Surface around ``trigger`` from columnar memory."""
        return compute_local_surface(
            trigger, memory_x, memory_y, memory_t,
            self.radius, self.tau, self.time_scale, self.dtype
        )

    def __repr__(self) -> str:
        return (
            f"LocalSurfaceComputer(radius={self.radius}, tau={self.tau}, "
            f"time_scale={self.time_scale}, dtype={self.dtype.name})"
        )


__all__ = [
    "compute_local_surface",
    "LocalSurfaceComputer",
]
