"""Tests for the rolling HATS accumulator."""

import numpy as np
import pytest

from eventhats.core.accumulator import HATSAccumulator, InvariantViolationError


class TestHATSAccumulator:

    def test_single_push_equals_surface(self):
        acc = HATSAccumulator(n_cells=4, radius=1, window_size=5)
        surface = np.arange(9, dtype=np.float32).reshape(3, 3)
        acc.push(2, True, surface)
        np.testing.assert_array_equal(acc.get_sum(2, True), surface)
        assert acc.history_length(2, True) == 1
        assert not acc.get_sum(2, False).any()

    def test_rolling_sum_matches_recomputation(self, rng):
        window = 10
        acc = HATSAccumulator(n_cells=2, radius=2, window_size=window)
        pushed = []
        for i in range(window + 50):
            surface = rng.random((5, 5), dtype=np.float32)
            pushed.append(surface)
            acc.push(1, False, surface)

            expected = np.sum(pushed[-window:], axis=0, dtype=np.float64)
            np.testing.assert_allclose(acc.get_sum(1, False), expected, rtol=1e-5, atol=1e-4)
            np.testing.assert_allclose(
                acc.get_sum(1, False), acc.recompute_sum(1, False), rtol=1e-5, atol=1e-4
            )
            assert acc.history_length(1, False) == min(i + 1, window)
            acc.verify(1, False)

    def test_history_holds_most_recent_surfaces(self):
        acc = HATSAccumulator(n_cells=1, radius=0, window_size=3)
        for value in range(1, 6):
            acc.push(0, True, np.full((1, 1), value, dtype=np.float32))
        assert [float(h[0, 0]) for h in acc.history(0, True)] == [3.0, 4.0, 5.0]
        assert acc.get_sum(0, True)[0, 0] == pytest.approx(12.0)

    def test_get_sum_is_read_only(self):
        acc = HATSAccumulator(n_cells=1, radius=1, window_size=2)
        view = acc.get_sum(0, True)
        with pytest.raises(ValueError):
            view[0, 0] = 1.0

    def test_normalized(self):
        acc = HATSAccumulator(n_cells=1, radius=1, window_size=10)
        for _ in range(3):
            acc.push(0, True, np.ones((3, 3), dtype=np.float32))
        np.testing.assert_allclose(acc.normalized(0, True), np.ones((3, 3)), rtol=1e-5)
        # Raw sum is untouched by normalisation
        assert acc.get_sum(0, True)[0, 0] == pytest.approx(3.0)

    def test_normalized_empty_pair_is_zero(self):
        acc = HATSAccumulator(n_cells=1, radius=1, window_size=10)
        assert not acc.normalized(0, False).any()

    def test_snapshot_shapes(self):
        acc = HATSAccumulator(n_cells=6, radius=2, window_size=4)
        acc.push(5, True, np.full((5, 5), 2.0, dtype=np.float32))
        acc.push(5, True, np.full((5, 5), 4.0, dtype=np.float32))
        raw = acc.snapshot(True)
        norm = acc.snapshot(True, normalize=True)
        assert raw.shape == (6, 5, 5)
        assert raw[5, 0, 0] == pytest.approx(6.0)
        assert norm[5, 0, 0] == pytest.approx(3.0, rel=1e-5)
        assert not norm[:5].any()

    def test_corrupted_sum_is_detected(self):
        acc = HATSAccumulator(n_cells=1, radius=1, window_size=3)
        acc.push(0, True, np.ones((3, 3), dtype=np.float32))
        acc.sums[0, 1, 1, 1] += 5.0
        with pytest.raises(InvariantViolationError):
            acc.verify(0, True)

    def test_wrong_surface_shape_rejected(self):
        acc = HATSAccumulator(n_cells=1, radius=1, window_size=3)
        with pytest.raises(ValueError):
            acc.push(0, True, np.ones((5, 5), dtype=np.float32))

    def test_uint8_sum_saturates(self):
        acc = HATSAccumulator(n_cells=1, radius=0, window_size=5, dtype=np.uint8)
        acc.push(0, True, np.full((1, 1), 200, dtype=np.uint8))
        acc.push(0, True, np.full((1, 1), 200, dtype=np.uint8))
        assert acc.get_sum(0, True)[0, 0] == 255

    def test_clear(self):
        acc = HATSAccumulator(n_cells=2, radius=1, window_size=3)
        acc.push(1, True, np.ones((3, 3), dtype=np.float32))
        acc.clear()
        assert not acc.sums.any()
        assert acc.history_length(1, True) == 0

    @pytest.mark.parametrize("kwargs", [
        dict(n_cells=0, radius=1, window_size=3),
        dict(n_cells=1, radius=-1, window_size=3),
        dict(n_cells=1, radius=1, window_size=0),
    ])
    def test_invalid_construction(self, kwargs):
        with pytest.raises(ValueError):
            HATSAccumulator(**kwargs)
