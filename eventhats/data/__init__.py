"""
Event data for eventhats.

This module provides:
    - Event: immutable single event (x, y, t, polarity)
    - EventData: columnar container with ordered batch slicing
    - File loaders: .npy, .mat, .h5 formats

The torch feature transform lives in ``eventhats.data.transforms``.

Example:
    >>> from eventhats.data import load_events
    >>>
    >>> events = load_events("recording.npy", height=128, width=128)
    >>> for batch in events.iter_batches(batch_us=33_000):
    ...     engine.ingest(batch)
"""

from .events import (
    # Data containers
    Event,
    EventData,
)

from .loaders import (
    # File loaders
    load_events,
    load_events_npy,
    load_events_mat,
    load_events_h5,
    save_events_npy,
)


__all__ = [
    # Data containers
    "Event",
    "EventData",
    # File loaders
    "load_events",
    "load_events_npy",
    "load_events_mat",
    "load_events_h5",
    "save_events_npy",
]
