"""
Core building blocks of the HATS encoder.

- **Lookup**: pixel to cell mapping over a K x K grid
- **Memory**: per (cell, polarity) event buffers with sliding-window eviction
- **Surface**: exponential-decay local time surfaces around each event
- **Accumulator**: rolling sums of the last W surfaces (HATS)
- **Compositor**: tiling of per-cell histograms into one frame
- **Engine**: the per-event pipeline and its setup/ingest/composite/reset API

Pipeline:

    Event → Cell Lookup → Temporal Memory (insert + evict)
          → Local Surface → Rolling Histogram Accumulator
          → (periodically) Frame Compositor

Example:
    >>> from eventhats.core import setup, ingest, composite
    >>>
    >>> engine = setup(128, 128, {"radius": 8, "cell_size": 8})
    >>> ingest(engine, events)
    >>> frame = composite(engine)
"""

# =============================================================================
# FUNCTIONAL: Stateless numeric helpers
# =============================================================================

from .functional import (
    dtype_upper_bound,
    saturating_cast,
    saturating_add,
    saturating_sub,
    decay_weights,
)

# =============================================================================
# COMPONENTS
# =============================================================================

from .lookup import CellLookupTable

from .memory import TemporalMemory

from .surface import (
    compute_local_surface,
    LocalSurfaceComputer,
)

from .accumulator import (
    DEFAULT_NORMALIZATION_EPS,
    InvariantViolationError,
    HATSAccumulator,
)

from .compositor import (
    composite as composite_accumulators,
    frame_to_uint8,
)

# =============================================================================
# ENGINE
# =============================================================================

from .engine import (
    IngestResult,
    EngineStats,
    HATSEngine,
    setup,
    ingest,
    composite,
    reset,
)


__all__ = [
    # Functional
    "dtype_upper_bound",
    "saturating_cast",
    "saturating_add",
    "saturating_sub",
    "decay_weights",
    # Components
    "CellLookupTable",
    "TemporalMemory",
    "compute_local_surface",
    "LocalSurfaceComputer",
    "DEFAULT_NORMALIZATION_EPS",
    "InvariantViolationError",
    "HATSAccumulator",
    "composite_accumulators",
    "frame_to_uint8",
    # Engine
    "IngestResult",
    "EngineStats",
    "HATSEngine",
    "setup",
    "ingest",
    "composite",
    "reset",
]
