"""Tests for the sample buffer and the moving-average smoother."""
import numpy as np
import pytest

from ppg_pipeline.pipeline.sample_buffer import SampleBuffer
from ppg_pipeline.utils.signal_processing import clamp, filter_band, moving_average, round_half_up


class TestSampleBuffer:
    def test_keeps_insertion_order(self):
        buf = SampleBuffer(capacity=5)
        for v in (1, 2, 3):
            buf.append(v)
        assert len(buf) == 3
        assert buf.snapshot().tolist() == [1.0, 2.0, 3.0]

    def test_evicts_oldest_at_capacity(self):
        buf = SampleBuffer(capacity=300)
        for v in range(305):
            buf.append(v)
        snap = buf.snapshot()
        assert len(snap) == 300
        assert snap[0] == 5.0
        assert snap[-1] == 304.0

    def test_snapshot_is_a_copy(self):
        buf = SampleBuffer(capacity=3)
        buf.append(1.0)
        snap = buf.snapshot()
        snap[0] = 99.0
        assert buf.snapshot()[0] == 1.0

    def test_clear(self):
        buf = SampleBuffer(capacity=3)
        buf.append(1.0)
        buf.clear()
        assert len(buf) == 0
        assert buf.snapshot().size == 0

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            SampleBuffer(capacity=0)


class TestMovingAverage:
    def test_trailing_window_with_partial_start(self):
        out = moving_average([1, 2, 3, 4, 5, 6], window=3)
        assert np.allclose(out, [1.0, 1.5, 2.0, 3.0, 4.0, 5.0])

    def test_window_one_is_identity(self):
        x = np.array([3.0, -1.0, 7.5])
        assert np.allclose(moving_average(x, window=1), x)

    def test_constant_signal_unchanged(self):
        assert np.allclose(moving_average(np.full(50, 4.2), window=5), 4.2)

    def test_empty(self):
        assert moving_average([], window=5).size == 0

    def test_bad_window(self):
        with pytest.raises(ValueError):
            moving_average([1.0, 2.0], window=0)


def test_filter_band_is_inclusive():
    assert filter_band([0.3, 0.4, 1.0, 2.0, 2.1], (0.4, 2.0)).tolist() == [0.4, 1.0, 2.0]


def test_round_half_up():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(89.46) == 89


def test_clamp():
    assert clamp(-3) == 0.0
    assert clamp(120) == 100.0
    assert clamp(42.5) == 42.5
