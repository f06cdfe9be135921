"""Shared fixtures for the eventhats test suite."""

import numpy as np
import pytest

from eventhats.config import HATSParams
from eventhats.core.engine import HATSEngine
from eventhats.data.events import Event, EventData


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def default_params():
    return HATSParams(radius=8, cell_size=8)


@pytest.fixture
def engine_128(default_params):
    """128x128 sensor, K=8 → 16x16 cells, R=8."""
    return HATSEngine(128, 128, default_params)


@pytest.fixture
def small_engine():
    """32x32 sensor, K=8 → 4x4 cells, R=2, invariant checks on."""
    params = HATSParams(
        radius=2,
        cell_size=8,
        temporal_window_us=1_000_000,
        window_size=3,
        check_invariants=True,
    )
    return HATSEngine(32, 32, params)


@pytest.fixture
def ordered_events(rng):
    """Random time-ordered stream on a 32x32 sensor."""
    n = 500
    return EventData(
        x=rng.integers(0, 32, n).astype(np.int32),
        y=rng.integers(0, 32, n).astype(np.int32),
        p=rng.integers(0, 2, n).astype(np.int8),
        t=np.sort(rng.integers(0, 200_000, n)).astype(np.int64),
        height=32,
        width=32,
    )
