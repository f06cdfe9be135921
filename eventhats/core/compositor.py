"""
Frame Compositor.

Tiles the per-cell HATS sums of one polarity into a single image laid out
like the cell grid: cell ``i`` lands in tile row ``i // grid_cols`` and
tile column ``i % grid_cols``, which keeps the sensor orientation for the
row-major cell ordering of ``CellLookupTable``.

Output shape is (grid_rows * S, grid_cols * S) with S = 2R+1.

Example:
    >>> frame = composite(engine.accumulator, grid_cols=16, grid_rows=16)
    >>> frame.shape
    (272, 272)
"""

from __future__ import annotations

from typing import Optional, Union

import numpy as np

from ..config import CompositeError
from .accumulator import DEFAULT_NORMALIZATION_EPS, HATSAccumulator


def _as_tiles(
    accumulators: Union[HATSAccumulator, np.ndarray],
    polarity: bool,
    normalize: bool,
    eps: float
) -> np.ndarray:
    if isinstance(accumulators, HATSAccumulator):
        return accumulators.snapshot(polarity, normalize=normalize, eps=eps)

    tiles = np.asarray(accumulators)
    if tiles.ndim == 4:
        if tiles.shape[1] != 2:
            raise CompositeError(
                f"Expected (n_cells, 2, S, S) accumulators, got shape {tiles.shape}"
            )
        tiles = tiles[:, 1 if polarity else 0]
    if tiles.ndim != 3:
        raise CompositeError(
            f"Expected (n_cells, S, S) accumulators, got shape {tiles.shape}"
        )
    if normalize:
        raise CompositeError("normalize requires a HATSAccumulator (history lengths unknown)")
    return tiles


def composite(
    accumulators: Union[HATSAccumulator, np.ndarray],
    grid_cols: int,
    grid_rows: int,
    polarity: bool = True,
    radius: Optional[int] = None,
    normalize: bool = False,
    eps: float = DEFAULT_NORMALIZATION_EPS
) -> np.ndarray:
    """
    Tile per-cell accumulators into one dense image.

    Args:
        accumulators: HATSAccumulator, or an array of sums shaped
            (n_cells, S, S) or (n_cells, 2, S, S).
        grid_cols: Cells along x.
        grid_rows: Cells along y.
        polarity: True for ON sums, False for OFF.
        radius: Declared neighbourhood radius. Defaults to the
            accumulator's own radius; required to check raw arrays.
        normalize: Divide each cell by its history length (accumulator only).
        eps: Stabiliser for normalisation.

    Returns:
        Image of shape (grid_rows * S, grid_cols * S).

    Raises:
        CompositeError: If the grid does not match the number of cells or a
            tile shape disagrees with the neighbourhood size.
    """
    if radius is None and isinstance(accumulators, HATSAccumulator):
        radius = accumulators.radius

    tiles = _as_tiles(accumulators, polarity, normalize, eps)
    n_cells = tiles.shape[0]

    if grid_cols <= 0 or grid_rows <= 0 or grid_cols * grid_rows != n_cells:
        raise CompositeError(
            f"Grid {grid_cols}x{grid_rows} does not match {n_cells} cells"
        )

    if radius is not None:
        size = 2 * radius + 1
        if tiles.shape[1:] != (size, size):
            raise CompositeError(
                f"Tile shape {tiles.shape[1:]} inconsistent with radius {radius} "
                f"(expected ({size}, {size}))"
            )
    elif tiles.shape[1] != tiles.shape[2]:
        raise CompositeError(f"Tiles must be square, got {tiles.shape[1:]}")

    rows = [
        np.hstack(list(tiles[r * grid_cols:(r + 1) * grid_cols]))
        for r in range(grid_rows)
    ]
    return np.vstack(rows)


def frame_to_uint8(frame: np.ndarray) -> np.ndarray:
    """
    Min/max scale a frame to 0..255 for image sinks.

    A constant frame maps to zeros.
    """
    frame = np.asarray(frame, dtype=np.float64)
    lo, hi = float(frame.min()), float(frame.max())
    if hi <= lo:
        return np.zeros(frame.shape, dtype=np.uint8)
    return np.round((frame - lo) / (hi - lo) * 255.0).astype(np.uint8)


__all__ = [
    "composite",
    "frame_to_uint8",
]
