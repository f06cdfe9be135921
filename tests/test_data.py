"""Tests for event containers, file loaders and the torch transform."""

import numpy as np
import pytest
import scipy.io as sio
import torch

from eventhats.config import HATSParams
from eventhats.data.events import Event, EventData
from eventhats.data.loaders import load_events, load_events_h5, save_events_npy
from eventhats.data.transforms import EventsToHATS, hats_features


def make_events(t, p=None, width=32, height=32):
    n = len(t)
    return EventData(
        x=np.arange(n, dtype=np.int32) % width,
        y=np.zeros(n, dtype=np.int32),
        p=np.ones(n, dtype=np.int8) if p is None else np.asarray(p, dtype=np.int8),
        t=np.asarray(t, dtype=np.int64),
        height=height,
        width=width,
    )


class TestEventData:

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            EventData(
                x=np.zeros(3), y=np.zeros(2), p=np.zeros(3), t=np.zeros(3),
                height=8, width=8,
            )

    def test_iteration_polarity_conventions(self):
        events = make_events([0, 1, 2], p=[-1, 0, 1])
        assert [e.polarity for e in events] == [False, False, True]
        first = next(iter(events))
        assert first == Event(0, 0, 0, False)

    def test_from_events_round_trip(self):
        src = [Event(1, 2, 10, True), Event(3, 4, 20, False)]
        data = EventData.from_events(src, height=8, width=8)
        assert list(data) == src

    def test_ordering(self):
        events = make_events([5, 1, 3])
        assert not events.is_time_ordered()
        ordered = events.sort_by_time()
        assert ordered.t.tolist() == [1, 3, 5]
        assert ordered.x.tolist() == [1, 2, 0]

    def test_duration_and_rate(self):
        events = make_events([0, 500_000, 1_000_000])
        assert events.duration == pytest.approx(1.0)
        assert events.event_rate == pytest.approx(3.0)

    def test_filter_by_time(self):
        events = make_events([0, 10, 20, 30])
        assert events.filter_by_time(10, 30).t.tolist() == [10, 20]


class TestBatching:

    def test_time_batches_skip_empty_slices(self):
        events = make_events([0, 500, 1000, 2500])
        sizes = [len(b) for b in events.iter_batches(batch_us=1000)]
        assert sizes == [2, 1, 1]

    def test_count_batches(self):
        events = make_events(list(range(7)))
        sizes = [len(b) for b in events.iter_batches(batch_size=3)]
        assert sizes == [3, 3, 1]

    def test_batches_cover_stream_in_order(self, ordered_events):
        batches = list(ordered_events.iter_batches(batch_us=7_000))
        t = np.concatenate([b.t for b in batches])
        np.testing.assert_array_equal(t, ordered_events.t)

    @pytest.mark.parametrize("kwargs", [
        {},
        {"batch_us": 10, "batch_size": 10},
        {"batch_us": 0},
        {"batch_size": -1},
    ])
    def test_bad_arguments(self, kwargs):
        with pytest.raises(ValueError):
            list(make_events([0, 1]).iter_batches(**kwargs))

    def test_empty_stream(self):
        assert list(make_events([]).iter_batches(batch_us=10)) == []


class TestLoaders:

    def test_npy_round_trip_sorts(self, tmp_path):
        events = make_events([30, 10, 20])
        path = tmp_path / "events.npy"
        save_events_npy(events, path)
        loaded = load_events(path, height=32, width=32)
        assert loaded.t.tolist() == [10, 20, 30]
        assert loaded.x.tolist() == [1, 2, 0]

    def test_npy_bad_shape(self, tmp_path):
        path = tmp_path / "flat.npy"
        np.save(path, np.arange(10))
        with pytest.raises(ValueError):
            load_events(path)

    def test_mat_flat_fields(self, tmp_path):
        path = tmp_path / "events.mat"
        sio.savemat(path, {
            "x": np.array([1, 2, 3]),
            "y": np.array([4, 5, 6]),
            "p": np.array([1, 0, 1]),
            "ts": np.array([100, 200, 300]),
        })
        loaded = load_events(path, height=8, width=8)
        assert loaded.x.tolist() == [1, 2, 3]
        assert loaded.t.tolist() == [100, 200, 300]
        assert loaded.polarity.tolist() == [True, False, True]

    def test_mat_td_struct(self, tmp_path):
        path = tmp_path / "td.mat"
        td = {
            "x": np.array([[7], [6]]),
            "y": np.array([[1], [2]]),
            "p": np.array([[0], [1]]),
            "ts": np.array([[50], [40]]),
        }
        sio.savemat(path, {"TD": td})
        loaded = load_events(path, height=8, width=8)
        assert loaded.t.tolist() == [40, 50]
        assert loaded.x.tolist() == [6, 7]

    def test_unsupported_suffix(self, tmp_path):
        with pytest.raises(ValueError):
            load_events(tmp_path / "events.csv")

    def test_mat_missing_column(self, tmp_path):
        path = tmp_path / "partial.mat"
        sio.savemat(path, {"x": np.array([1]), "y": np.array([1]), "p": np.array([1])})
        with pytest.raises(ValueError, match="'t'"):
            load_events(path)


class TestHDF5Loader:

    def test_root_datasets_with_aliases(self, tmp_path):
        h5py = pytest.importorskip("h5py")
        path = tmp_path / "root.h5"
        with h5py.File(path, "w") as f:
            f["x"] = np.array([3, 1, 2])
            f["y"] = np.array([0, 1, 2])
            f["pol"] = np.array([1, 0, 1])
            f["ts"] = np.array([300, 100, 200])
        loaded = load_events(path, height=8, width=8)
        assert loaded.t.tolist() == [100, 200, 300]
        assert loaded.x.tolist() == [1, 2, 3]
        assert loaded.polarity.tolist() == [False, True, True]

    def test_single_group_layout(self, tmp_path):
        h5py = pytest.importorskip("h5py")
        path = tmp_path / "group.hdf5"
        with h5py.File(path, "w") as f:
            grp = f.create_group("recording_0")
            grp["X"] = np.array([4, 5])
            grp["Y"] = np.array([6, 7])
            grp["polarity"] = np.array([-1, 1])
            grp["timestamp"] = np.array([10, 20])
        loaded = load_events(path, height=8, width=8)
        assert list(loaded) == [Event(4, 6, 10, False), Event(5, 7, 20, True)]

    def test_named_recording(self, tmp_path):
        h5py = pytest.importorskip("h5py")
        path = tmp_path / "multi.h5"
        with h5py.File(path, "w") as f:
            for name, offset in (("a", 0), ("b", 1000)):
                grp = f.create_group(name)
                grp["x"] = np.array([1])
                grp["y"] = np.array([1])
                grp["p"] = np.array([1])
                grp["t"] = np.array([offset])
        loaded = load_events_h5(path, recording_name="b", height=8, width=8)
        assert loaded.t.tolist() == [1000]

    def test_missing_column(self, tmp_path):
        h5py = pytest.importorskip("h5py")
        path = tmp_path / "broken.h5"
        with h5py.File(path, "w") as f:
            f["x"] = np.array([1])
            f["y"] = np.array([1])
            f["t"] = np.array([1])
        with pytest.raises(ValueError, match="'p'"):
            load_events(path)


class TestTransform:

    def test_features_shape(self, ordered_events):
        feats = hats_features(ordered_events, HATSParams(radius=2, cell_size=8))
        assert isinstance(feats, torch.Tensor)
        assert feats.dtype == torch.float32
        assert feats.shape == (2, 16, 5, 5)

    def test_module_accepts_tensors(self, ordered_events):
        transform = EventsToHATS(height=32, width=32, radius=2, cell_size=8)
        from_numpy = transform(ordered_events.x, ordered_events.y,
                               ordered_events.p, ordered_events.t)
        from_torch = transform(
            torch.from_numpy(ordered_events.x.astype(np.int64)),
            torch.from_numpy(ordered_events.y.astype(np.int64)),
            torch.from_numpy(ordered_events.p.astype(np.int64)),
            torch.from_numpy(ordered_events.t),
        )
        assert from_numpy.shape == (2, 16, 5, 5)
        torch.testing.assert_close(from_numpy, from_torch)

    def test_module_sorts_unordered_input(self):
        transform = EventsToHATS(height=8, width=8, radius=1, cell_size=8, normalize=False)
        x = np.array([1, 1])
        y = np.array([1, 1])
        p = np.array([1, 1])
        feats = transform(x, y, p, np.array([10, 0]))
        # Both events processed: second surface sees the first
        assert feats[1, 0, 1, 1].item() > 1.9

    def test_extra_repr(self):
        assert "radius=2" in repr(EventsToHATS(height=32, width=32, radius=2))
