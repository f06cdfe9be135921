"""
HATS feature transform for classification pipelines.

Wraps the encoding engine in a ``torch.nn.Module`` so an event recording
can be turned into a fixed-size descriptor tensor inside a torch data
pipeline, the same way the voxel-grid processors are used.

The descriptor of a recording is the normalised HATS of every cell and
both polarities after the whole stream has been ingested:

    (2, n_cells, 2R+1, 2R+1)    channel 0 = OFF, channel 1 = ON

Example:
    >>> transform = EventsToHATS(height=128, width=128, radius=4, cell_size=8)
    >>> features = transform(x, y, p, t)
    >>> features.shape
    torch.Size([2, 256, 9, 9])
"""

from __future__ import annotations

from typing import Optional, Union

import numpy as np

import torch
import torch.nn as nn

from ..config import HATSParams
from ..core.engine import HATSEngine
from .events import EventData


def hats_features(
    events: EventData,
    params: Optional[HATSParams] = None,
    normalize: bool = True
) -> torch.Tensor:
    """
    Encode a whole recording into a HATS descriptor.

    Args:
        events: Time-ordered events.
        params: Engine parameters. Defaults to HATSParams().
        normalize: Divide each histogram by its history length.

    Returns:
        float32 tensor of shape (2, n_cells, 2R+1, 2R+1).
    """
    engine = HATSEngine(events.width, events.height, params)
    engine.ingest(events)
    return torch.from_numpy(engine.features(normalize=normalize).astype(np.float32))


class EventsToHATS(nn.Module):
    """
    Convert raw event streams into HATS descriptors.

    Each call encodes one recording with a fresh engine state, so the
    module is stateless between samples.

    Example:
        >>> transform = EventsToHATS(height=180, width=240)
        >>> features = transform(x, y, p, t)
        >>> flat = features.flatten()   # classifier input
    """

    def __init__(
        self,
        height: int = 180,
        width: int = 240,
        radius: int = 8,
        cell_size: int = 8,
        temporal_window_us: int = 100_000,
        tau: float = 0.5,
        window_size: int = 30,
        normalize: bool = True
    ):
        """
        Initialize transform.

        Args:
            height: Sensor height in pixels.
            width: Sensor width in pixels.
            radius: Neighbourhood radius R.
            cell_size: Cell edge K in pixels.
            temporal_window_us: Memory retention in microseconds.
            tau: Decay constant in seconds.
            window_size: Surfaces summed per (cell, polarity).
            normalize: Output averaged rather than summed histograms.
        """
        super().__init__()

        self.height = height
        self.width = width
        self.normalize = normalize
        self.params = HATSParams(
            radius=radius,
            cell_size=cell_size,
            temporal_window_us=temporal_window_us,
            tau=tau,
            window_size=window_size,
            dtype="float32",
        ).validate()

    def forward(
        self,
        x: Union[np.ndarray, torch.Tensor],
        y: Union[np.ndarray, torch.Tensor],
        p: Union[np.ndarray, torch.Tensor],
        t: Union[np.ndarray, torch.Tensor]
    ) -> torch.Tensor:
        """
        Encode one event stream.

        Args:
            x: X coordinates, shape (N,).
            y: Y coordinates, shape (N,).
            p: Polarities, shape (N,).
            t: Timestamps in microseconds, shape (N,).

        Returns:
            Tensor of shape (2, n_cells, 2R+1, 2R+1).
        """
        # Convert to numpy for processing
        if isinstance(x, torch.Tensor):
            x = x.cpu().numpy()
            y = y.cpu().numpy()
            p = p.cpu().numpy()
            t = t.cpu().numpy()

        events = EventData.from_dict(
            {'x': x, 'y': y, 'p': p, 't': t}, self.height, self.width
        )
        if not events.is_time_ordered():
            events = events.sort_by_time()
        return hats_features(events, self.params, normalize=self.normalize)

    def extra_repr(self) -> str:
        return (
            f'height={self.height}, width={self.width}, radius={self.params.radius}, '
            f'cell_size={self.params.cell_size}, window_size={self.params.window_size}'
        )


__all__ = [
    "hats_features",
    "EventsToHATS",
]
