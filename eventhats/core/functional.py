"""
Functional Operations for HATS encoding.

Stateless numeric helpers shared by the surface computer, the rolling
accumulator and the compositor.

Contents:
    - Validation helpers
    - Exponential decay weights
    - Saturating element-type conversion and add/subtract

Element types:
    Surfaces and running sums are stored as float32 by default. Integer
    element types (uint8, uint16) are supported to reproduce 8-bit frame
    output; integer arithmetic saturates at the type bounds instead of
    wrapping around.

Example:
    >>> import numpy as np
    >>> from eventhats.core.functional import saturating_add
    >>>
    >>> a = np.array([250, 10], dtype=np.uint8)
    >>> saturating_add(a, np.array([10, 10], dtype=np.uint8))
    array([255,  20], dtype=uint8)
"""

from __future__ import annotations

from typing import Optional, Union

import numpy as np


DTypeLike = Union[str, np.dtype, type]


# =============================================================================
# VALIDATION HELPERS
# =============================================================================


def _validate_array(array: np.ndarray, name: str) -> None:
    """Validate that input is a numpy array."""
    if not isinstance(array, np.ndarray):
        raise TypeError(f"{name} must be a numpy.ndarray, got {type(array).__name__}")


def _validate_same_shape(array1: np.ndarray, array2: np.ndarray,
                         name1: str, name2: str) -> None:
    """Validate that two arrays have the same shape."""
    if array1.shape != array2.shape:
        raise ValueError(
            f"Shape mismatch: {name1} {array1.shape} != {name2} {array2.shape}"
        )


def _validate_positive_float(value: float, name: str) -> None:
    """Validate that a value is a positive number."""
    if not isinstance(value, (int, float)):
        raise TypeError(f"{name} must be a number, got {type(value).__name__}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")


def _validate_non_negative_int(value: int, name: str) -> None:
    """Validate that a value is a non-negative integer."""
    if not isinstance(value, (int, np.integer)):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")


def _validate_square(array: np.ndarray, size: int, name: str) -> None:
    """Validate that an array is a (size, size) matrix."""
    _validate_array(array, name)
    if array.shape != (size, size):
        raise ValueError(
            f"{name} must have shape ({size}, {size}), got {array.shape}"
        )


# =============================================================================
# ELEMENT TYPES
# =============================================================================


def dtype_upper_bound(dtype: DTypeLike) -> float:
    """
    Largest representable value of an element type.

    Args:
        dtype: numpy dtype or dtype name.

    Returns:
        Upper bound as a Python float.
    """
    dtype = np.dtype(dtype)
    if np.issubdtype(dtype, np.integer):
        return float(np.iinfo(dtype).max)
    return float(np.finfo(dtype).max)


def saturating_cast(values: np.ndarray, dtype: DTypeLike) -> np.ndarray:
    """
    Convert non-negative values to ``dtype``, clipping at its bounds.

    Integer targets are floored before conversion, so every weight below
    1.0 contributes nothing to an integer surface.

    Args:
        values: Array of any numeric type.
        dtype: Target element type.

    Returns:
        New array of the target type.
    """
    dtype = np.dtype(dtype)
    clipped = np.clip(values.astype(np.float64, copy=False), 0.0, dtype_upper_bound(dtype))
    if np.issubdtype(dtype, np.integer):
        clipped = np.floor(clipped)
    return clipped.astype(dtype)


def saturating_add(
    a: np.ndarray,
    b: np.ndarray,
    out: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    Element-wise ``a + b`` saturating at the upper bound of ``a``'s type.

    Args:
        a: Left operand; determines the result type.
        b: Right operand, same shape.
        out: Optional output array (may be ``a``).

    Returns:
        The result array (``out`` when given).
    """
    _validate_same_shape(a, b, "a", "b")
    if np.issubdtype(a.dtype, np.integer):
        result = np.minimum(
            a.astype(np.int64) + b.astype(np.int64),
            np.iinfo(a.dtype).max
        ).astype(a.dtype)
    else:
        result = np.minimum(a + b.astype(a.dtype, copy=False), np.finfo(a.dtype).max)
    if out is None:
        return result
    out[...] = result
    return out


def saturating_sub(
    a: np.ndarray,
    b: np.ndarray,
    out: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    Element-wise ``a - b`` floored at zero.

    Running sums are non-negative by construction; the floor absorbs
    float rounding left behind after many add/subtract cycles.

    Args:
        a: Left operand; determines the result type.
        b: Right operand, same shape.
        out: Optional output array (may be ``a``).

    Returns:
        The result array (``out`` when given).
    """
    _validate_same_shape(a, b, "a", "b")
    if np.issubdtype(a.dtype, np.integer):
        result = np.maximum(a.astype(np.int64) - b.astype(np.int64), 0).astype(a.dtype)
    else:
        result = np.maximum(a - b.astype(a.dtype, copy=False), 0.0)
    if out is None:
        return result
    out[...] = result
    return out


# =============================================================================
# DECAY
# =============================================================================


def decay_weights(
    delta_ticks: np.ndarray,
    tau: float,
    time_scale: int
) -> np.ndarray:
    """
    Exponential decay ``exp(-delta / tau)`` with ``delta`` in seconds.

    Args:
        delta_ticks: Non-negative ages in timestamp ticks.
        tau: Decay constant in seconds.
        time_scale: Ticks per second.

    Returns:
        float64 weights in (0, 1]; exactly 1.0 where the age is zero.
    """
    _validate_positive_float(tau, "tau")
    delta = np.asarray(delta_ticks, dtype=np.float64) / float(time_scale)
    return np.exp(-delta / tau)


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "DTypeLike",
    "dtype_upper_bound",
    "saturating_cast",
    "saturating_add",
    "saturating_sub",
    "decay_weights",
]
