"""
Event file loaders for eventhats.

Supported formats:
    - .npy: (N, 4) array with [x, y, p, t] columns
    - .mat: MATLAB files with a TD struct or the fields at top level
    - .h5/.hdf5: x/y/p/t datasets at the root or in a single group (h5py)

Field names are matched against a short alias list per column, so
``pol``/``polarity`` and ``ts``/``timestamp`` recordings load without
conversion. Every loader returns time-ordered events, since the HATS
engine drops anything older than the last accepted timestamp.

Example:
    >>> from eventhats.data.loaders import load_events
    >>> events = load_events("recording.h5", height=128, width=128)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

import numpy as np

from .events import EventData


PathLike = Union[str, Path]

# Accepted source names per column, first match wins
_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    'x': ('x', 'X'),
    'y': ('y', 'Y'),
    'p': ('p', 'pol', 'polarity'),
    't': ('t', 'ts', 'timestamp'),
}


def _columns(
    container: Any,
    read: Callable[[Any, str], np.ndarray],
    source: str
) -> Dict[str, np.ndarray]:
    """Read the four event columns from anything supporting ``in``."""
    columns = {}
    for column, aliases in _FIELD_ALIASES.items():
        name = next((a for a in aliases if a in container), None)
        if name is None:
            raise ValueError(f"{source}: no field for '{column}' (tried {', '.join(aliases)})")
        columns[column] = np.asarray(read(container, name)).ravel()
    return columns


def _to_events(columns: Dict[str, np.ndarray], height: int, width: int) -> EventData:
    events = EventData.from_dict(columns, height, width)
    return events if events.is_time_ordered() else events.sort_by_time()


# =============================================================================
# NUMPY
# =============================================================================


def load_events_npy(filepath: PathLike, height: int = 180, width: int = 240) -> EventData:
    """
    Load events from an (N, 4) [x, y, p, t] .npy array.

    Raises:
        ValueError: If the array is not two-dimensional with four columns.
    """
    array = np.load(filepath)
    if array.ndim != 2 or array.shape[1] < 4:
        raise ValueError(f"Expected (N, 4) array, got shape {array.shape}")
    columns = {name: array[:, i] for i, name in enumerate('xypt')}
    return _to_events(columns, height, width)


def save_events_npy(events: EventData, filepath: PathLike) -> None:
    """Save events as an (N, 4) int64 [x, y, p, t] array."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    np.save(filepath, events.to_array().astype(np.int64))


# =============================================================================
# MATLAB
# =============================================================================


def load_events_mat(filepath: PathLike, height: int = 180, width: int = 240) -> EventData:
    """
    Load events from a MATLAB .mat file.

    The columns are read from a ``TD`` struct when present (N-MNIST /
    N-Caltech101 layout), otherwise from top-level variables.
    """
    import scipy.io as sio

    mat = sio.loadmat(Path(filepath))
    source = str(filepath)

    if 'TD' in mat:
        td = mat['TD']
        columns = _columns(td.dtype.names or (), lambda _, name: td[name][0, 0], source)
    else:
        columns = _columns(mat, lambda m, name: m[name], source)

    return _to_events(columns, height, width)


# =============================================================================
# HDF5
# =============================================================================


def load_events_h5(
    filepath: PathLike,
    recording_name: Optional[str] = None,
    height: int = 180,
    width: int = 240
) -> EventData:
    """
    Load events from an HDF5 file.

    Args:
        filepath: Path to .h5 file.
        recording_name: Group holding the recording. Defaults to the only
            top-level group when the file has exactly one, else the root.
        height: Sensor height.
        width: Sensor width.

    Returns:
        EventData object.
    """
    try:
        import h5py
    except ImportError:
        raise ImportError("h5py required for .h5 file loading: pip install h5py")

    with h5py.File(filepath, 'r') as f:
        if recording_name is not None:
            group = f[recording_name]
        else:
            keys = list(f.keys())
            single_group = len(keys) == 1 and isinstance(f[keys[0]], h5py.Group)
            group = f[keys[0]] if single_group else f
        columns = _columns(group, lambda g, name: g[name][()], f"{filepath}:{group.name}")

    return _to_events(columns, height, width)


# =============================================================================
# DISPATCH
# =============================================================================


_LOADERS = {
    '.npy': load_events_npy,
    '.mat': load_events_mat,
    '.h5': load_events_h5,
    '.hdf5': load_events_h5,
}


def load_events(filepath: PathLike, height: int = 180, width: int = 240) -> EventData:
    """
    Load events from file, choosing the loader by suffix.

    Raises:
        ValueError: For unsupported suffixes.
    """
    filepath = Path(filepath)
    loader = _LOADERS.get(filepath.suffix.lower())
    if loader is None:
        raise ValueError(f"Unsupported file format: {filepath.suffix}")
    return loader(filepath, height=height, width=width)


__all__ = [
    "load_events",
    "load_events_npy",
    "load_events_mat",
    "load_events_h5",
    "save_events_npy",
]
