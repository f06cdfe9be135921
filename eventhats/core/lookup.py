"""
Cell Lookup Table.

Partitions the sensor plane into a regular grid of K x K pixel cells and
precomputes, for every pixel, the index of the cell containing it.

Cell ordering is row-major over the cell grid:

    index = (y // K) * grid_cols + (x // K)

Edge pixels beyond the last full cell form partial cells of their own, so
``grid_cols = ceil(width / K)`` and ``grid_rows = ceil(height / K)``; every
on-sensor pixel resolves to a valid index.

Example:
    >>> table = CellLookupTable.build(128, 128, cell_size=8)
    >>> table.n_cells
    256
    >>> table.cell_index_of(64, 64)
    136
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np

from ..config import ConfigValidationError


class CellLookupTable:
    """
    Pixel to cell index mapping, read-only after construction.

    Attributes:
        width: Sensor width in pixels.
        height: Sensor height in pixels.
        cell_size: Cell edge K in pixels.
        grid_cols: Number of cells along x.
        grid_rows: Number of cells along y.
        n_cells: grid_cols * grid_rows.
        table: int32 array of shape (height, width).
    """

    def __init__(self, width: int, height: int, cell_size: int):
        for name, value in (("width", width), ("height", height), ("cell_size", cell_size)):
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
                raise ConfigValidationError(f"{name} must be a positive integer, got {value!r}")

        self.width = int(width)
        self.height = int(height)
        self.cell_size = int(cell_size)
        self.grid_cols = math.ceil(self.width / self.cell_size)
        self.grid_rows = math.ceil(self.height / self.cell_size)
        self.n_cells = self.grid_cols * self.grid_rows

        cell_y = np.arange(self.height, dtype=np.int32) // self.cell_size
        cell_x = np.arange(self.width, dtype=np.int32) // self.cell_size
        table = cell_y[:, None] * self.grid_cols + cell_x[None, :]
        table.flags.writeable = False
        self.table = table

    @classmethod
    def build(cls, sensor_width: int, sensor_height: int, cell_size: int) -> "CellLookupTable":
        """Build the table for a sensor resolution and cell size."""
        return cls(sensor_width, sensor_height, cell_size)

    @property
    def grid_shape(self) -> Tuple[int, int]:
        """(grid_rows, grid_cols)."""
        return self.grid_rows, self.grid_cols

    def contains(self, x: int, y: int) -> bool:
        """Whether the pixel lies on the sensor."""
        return 0 <= x < self.width and 0 <= y < self.height

    def cell_index_of(self, x: int, y: int) -> int:
        """Cell index of an on-sensor pixel."""
        return int(self.table[y, x])

    def cell_indices_of(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        """
        Vectorised lookup.

        Args:
            xs: Pixel columns, shape (N,).
            ys: Pixel rows, shape (N,).

        Returns:
            int32 cell indices, -1 where the pixel is off-sensor.
        """
        xs = np.asarray(xs, dtype=np.int64)
        ys = np.asarray(ys, dtype=np.int64)
        inside = (xs >= 0) & (xs < self.width) & (ys >= 0) & (ys < self.height)
        out = np.full(xs.shape, -1, dtype=np.int32)
        out[inside] = self.table[ys[inside], xs[inside]]
        return out

    def cell_origin(self, index: int) -> Tuple[int, int]:
        """Top-left pixel (x, y) of a cell."""
        row, col = divmod(index, self.grid_cols)
        return col * self.cell_size, row * self.cell_size

    def __repr__(self) -> str:
        return (
            f"CellLookupTable(width={self.width}, height={self.height}, "
            f"cell_size={self.cell_size}, grid={self.grid_cols}x{self.grid_rows})"
        )


__all__ = ["CellLookupTable"]
