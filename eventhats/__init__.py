"""
eventhats: Histograms of Averaged Time Surfaces for event cameras.

Encodes asynchronous event streams into per-cell, per-polarity rolling
histograms of exponential-decay local time surfaces, and tiles them into
frames for visualisation or flattens them into classifier features.

Example:
    >>> from eventhats import setup, ingest, composite, load_events
    >>>
    >>> events = load_events("recording.npy", height=128, width=128)
    >>> engine = setup(events.width, events.height)
    >>> for batch in events.iter_batches(batch_us=33_000):
    ...     ingest(engine, batch)
    ...     frame = composite(engine, polarity=True)
"""

__version__ = "0.1.0"

from .config import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigValidationError,
    CompositeError,
    US_PER_SECOND,
    HATSParams,
    RenderParams,
    load_config,
    get_hats_params,
    get_render_params,
)

from .data import (
    Event,
    EventData,
    load_events,
)

from .core import (
    CellLookupTable,
    TemporalMemory,
    LocalSurfaceComputer,
    HATSAccumulator,
    InvariantViolationError,
    HATSEngine,
    IngestResult,
    EngineStats,
    setup,
    ingest,
    composite,
    reset,
)

from .data.transforms import (
    EventsToHATS,
    hats_features,
)


__all__ = [
    "__version__",
    # Config
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigValidationError",
    "CompositeError",
    "US_PER_SECOND",
    "HATSParams",
    "RenderParams",
    "load_config",
    "get_hats_params",
    "get_render_params",
    # Data
    "Event",
    "EventData",
    "load_events",
    # Core
    "CellLookupTable",
    "TemporalMemory",
    "LocalSurfaceComputer",
    "HATSAccumulator",
    "InvariantViolationError",
    "HATSEngine",
    "IngestResult",
    "EngineStats",
    "setup",
    "ingest",
    "composite",
    "reset",
    # Transforms
    "EventsToHATS",
    "hats_features",
]
