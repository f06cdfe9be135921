"""
HATS Encoding Engine.

Runs the full per-event pipeline over ordered event batches:

    Event → Cell Lookup → Temporal Memory (insert + evict)
          → Local Surface → Rolling Histogram Accumulator

and composes frames from the accumulators on request.

Processing is single-threaded and synchronous: each event of a batch is
handled to completion, strictly in arrival order, before the next one.
Malformed events never halt the stream:

    - coordinates outside the sensor are dropped and counted
    - timestamps older than the last accepted one are dropped and counted

Example:
    >>> from eventhats.core.engine import setup, ingest, composite, reset
    >>>
    >>> engine = setup(128, 128, {"radius": 8, "cell_size": 8})
    >>> result = ingest(engine, events)
    >>> frame = composite(engine, polarity=True)   # (272, 272)
    >>> reset(engine)
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Optional, Union

import numpy as np

from ..config import HATSParams, merge_configs
from ..data.events import Event, EventData
from .accumulator import HATSAccumulator
from .compositor import composite as composite_frame
from .lookup import CellLookupTable
from .memory import TemporalMemory
from .surface import LocalSurfaceComputer


logger = logging.getLogger(__name__)

ConfigLike = Union[HATSParams, Dict[str, Any], None]

# Parameters whose change invalidates memory and accumulators
_GEOMETRY_FIELDS = ("radius", "cell_size", "window_size", "dtype")


# =============================================================================
# DIAGNOSTICS
# =============================================================================


@dataclass
class IngestResult:
    """Outcome of one ingest call."""
    n_received: int = 0
    n_processed: int = 0
    n_dropped_out_of_bounds: int = 0
    n_dropped_out_of_order: int = 0

    @property
    def n_dropped(self) -> int:
        return self.n_dropped_out_of_bounds + self.n_dropped_out_of_order


@dataclass
class EngineStats:
    """Cumulative counters since setup or the last reset."""
    n_processed: int = 0
    n_on: int = 0
    n_off: int = 0
    n_evicted: int = 0
    n_dropped_out_of_bounds: int = 0
    n_dropped_out_of_order: int = 0
    n_batches: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def _coerce_params(config: ConfigLike, base: Optional[HATSParams] = None) -> HATSParams:
    if config is None:
        params = HATSParams()
    elif isinstance(config, HATSParams):
        params = config
    elif isinstance(config, dict):
        section = config.get("hats", config)
        if base is not None:
            section = merge_configs(base.to_dict(), section)
        params = HATSParams.from_dict(section)
    else:
        raise TypeError(f"config must be HATSParams or dict, got {type(config).__name__}")
    return params.validate()


# =============================================================================
# ENGINE
# =============================================================================


class HATSEngine:
    """
    Event-to-HATS encoder for one sensor.

    Attributes:
        params: Validated engine parameters.
        lookup: Pixel to cell table.
        memory: Per (cell, polarity) temporal memory.
        surfaces: Local time surface computer.
        accumulator: Rolling HATS sums.
        stats: Cumulative diagnostics.
    """

    def __init__(self, sensor_width: int, sensor_height: int, params: ConfigLike = None):
        self.params = _coerce_params(params)
        self.sensor_width = sensor_width
        self.sensor_height = sensor_height
        self._build()
        logger.debug(
            "HATS engine ready: sensor=%dx%d %r radius=%d window=%d",
            sensor_width, sensor_height, self.lookup,
            self.params.radius, self.params.window_size
        )

    def _build(self) -> None:
        p = self.params
        self.lookup = CellLookupTable.build(self.sensor_width, self.sensor_height, p.cell_size)
        self.memory = TemporalMemory(self.lookup.n_cells)
        self.surfaces = LocalSurfaceComputer(p.radius, p.tau, p.time_scale, p.dtype)
        self.accumulator = HATSAccumulator(
            self.lookup.n_cells, p.radius, p.window_size, p.dtype
        )
        self.stats = EngineStats()
        self._last_t: Optional[int] = None

    # -------------------------------------------------------------------------
    # Geometry
    # -------------------------------------------------------------------------

    @property
    def n_cells(self) -> int:
        return self.lookup.n_cells

    @property
    def grid_cols(self) -> int:
        return self.lookup.grid_cols

    @property
    def grid_rows(self) -> int:
        return self.lookup.grid_rows

    @property
    def frame_shape(self) -> tuple:
        """(height, width) of composed frames."""
        s = self.params.neighborhood
        return self.grid_rows * s, self.grid_cols * s

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

    def ingest(self, events: Union[EventData, Iterable[Event]]) -> IngestResult:
        """
        Process a batch of events in arrival order.

        Args:
            events: EventData, or any iterable of Event values.

        Returns:
            Per-batch counts of processed and dropped events.
        """
        result = IngestResult()
        for event in events:
            result.n_received += 1
            if self._process_event(event, result):
                result.n_processed += 1

        self.stats.n_batches += 1
        if result.n_dropped:
            logger.warning(
                "Dropped %d of %d events (%d outside %dx%d sensor, %d out of order)",
                result.n_dropped, result.n_received,
                result.n_dropped_out_of_bounds, self.sensor_width, self.sensor_height,
                result.n_dropped_out_of_order
            )
        return result

    def _process_event(self, event: Event, result: IngestResult) -> bool:
        x, y, t, polarity = int(event.x), int(event.y), int(event.t), bool(event.polarity)
        event = Event(x, y, t, polarity)

        if not self.lookup.contains(x, y):
            result.n_dropped_out_of_bounds += 1
            self.stats.n_dropped_out_of_bounds += 1
            return False
        if self._last_t is not None and t < self._last_t:
            result.n_dropped_out_of_order += 1
            self.stats.n_dropped_out_of_order += 1
            return False
        self._last_t = t

        cell = self.lookup.cell_index_of(x, y)
        self.memory.insert(cell, polarity, event)
        self.stats.n_evicted += self.memory.evict_expired(
            cell, polarity, self.params.temporal_window_us
        )

        mx, my, mt = self.memory.arrays(cell, polarity)
        surface = self.surfaces.compute_arrays(event, mx, my, mt)
        self.accumulator.push(cell, polarity, surface)
        if self.params.check_invariants:
            self.accumulator.verify(cell, polarity)

        self.stats.n_processed += 1
        if polarity:
            self.stats.n_on += 1
        else:
            self.stats.n_off += 1
        return True

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def composite(self, polarity: bool = True, normalize: bool = False) -> np.ndarray:
        """Compose the current HATS of one polarity into a frame."""
        return composite_frame(
            self.accumulator,
            self.grid_cols,
            self.grid_rows,
            polarity=polarity,
            radius=self.params.radius,
            normalize=normalize
        )

    def features(self, normalize: bool = True) -> np.ndarray:
        """
        HATS descriptor of the whole sensor.

        Returns:
            Array of shape (2, n_cells, 2R+1, 2R+1), OFF then ON.
        """
        with self.accumulator.lock:
            return np.stack([
                self.accumulator.snapshot(False, normalize=normalize),
                self.accumulator.snapshot(True, normalize=normalize),
            ])

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def reset(self) -> None:
        """Clear all memory, accumulators and diagnostics."""
        self.memory.clear()
        self.accumulator.clear()
        self.stats = EngineStats()
        self._last_t = None
        logger.debug("HATS engine reset")

    def reconfigure(self, params: ConfigLike) -> bool:
        """
        Apply new parameters.

        A dict updates only the keys it names; a HATSParams replaces
        every field.

        Changes to radius, cell size, window size or element type rebuild
        the engine from scratch; decay and retention changes keep state.

        Returns:
            True when the engine was rebuilt.
        """
        new = _coerce_params(params, base=self.params)
        old = self.params
        self.params = new

        if any(getattr(old, f) != getattr(new, f) for f in _GEOMETRY_FIELDS):
            self._build()
            logger.info("HATS engine rebuilt for new geometry: %r", self.lookup)
            return True

        self.surfaces = LocalSurfaceComputer(new.radius, new.tau, new.time_scale, new.dtype)
        logger.debug("HATS engine parameters updated in place")
        return False

    def __repr__(self) -> str:
        return (
            f"HATSEngine(sensor={self.sensor_width}x{self.sensor_height}, "
            f"cells={self.grid_cols}x{self.grid_rows}, radius={self.params.radius}, "
            f"window_size={self.params.window_size})"
        )


# =============================================================================
# FUNCTIONAL API
# =============================================================================


def setup(sensor_width: int, sensor_height: int, config: ConfigLike = None) -> HATSEngine:
    """
    Create an engine for a sensor.

    Args:
        sensor_width: Sensor width in pixels.
        sensor_height: Sensor height in pixels.
        config: HATSParams, a flat parameter dict, or a full config dict
            with a ``hats`` section. None uses defaults.

    Raises:
        ConfigValidationError: On out-of-range parameters.
    """
    return HATSEngine(sensor_width, sensor_height, config)


def ingest(engine: HATSEngine, events: Union[EventData, Iterable[Event]]) -> IngestResult:
    """Process a batch of events."""
    return engine.ingest(events)


def composite(engine: HATSEngine, polarity: bool = True, normalize: bool = False) -> np.ndarray:
    """Compose the current HATS of one polarity into a frame."""
    return engine.composite(polarity, normalize=normalize)


def reset(engine: HATSEngine) -> None:
    """Clear all memory and accumulators."""
    engine.reset()


__all__ = [
    "IngestResult",
    "EngineStats",
    "HATSEngine",
    "setup",
    "ingest",
    "composite",
    "reset",
]
