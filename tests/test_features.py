"""Tests for the signal-quality feature vector."""
import numpy as np
import pytest

from ppg_pipeline.utils.features import (
    FEATURE_NAMES,
    extract_features,
    is_degenerate,
    peak_count,
    zero_crossings,
)


class TestExtractFeatures:
    def setup_method(self):
        self.signal = np.random.default_rng(1).normal(loc=2.0, scale=0.5, size=300)

    def test_length_matches_requested_arity(self):
        assert extract_features(self.signal, 10).shape == (10,)
        assert extract_features(self.signal, 8).shape == (8,)

    def test_eight_feature_layout_is_a_prefix(self):
        ten = extract_features(self.signal, 10)
        eight = extract_features(self.signal, 8)
        assert np.allclose(eight, ten[:8])

    @pytest.mark.parametrize("n", [0, 7, 9, 11])
    def test_unsupported_arity_raises(self, n):
        with pytest.raises(ValueError):
            extract_features(self.signal, n)

    def test_matches_reference_formulas(self):
        x = np.array([1.0, -2.0, 3.0, 0.0, -1.0, 4.0])
        f = dict(zip(FEATURE_NAMES, extract_features(x, 10)))
        mean = x.mean()
        std = x.std()
        assert f["mean"] == pytest.approx(mean)
        assert f["std"] == pytest.approx(std)
        assert f["skewness"] == pytest.approx(np.mean((x - mean) ** 3) / (std + 1e-7) ** 3)
        assert f["kurtosis"] == pytest.approx(np.mean((x - mean) ** 4) / (std + 1e-7) ** 4)
        assert f["range"] == 6.0
        assert f["zero_crossings"] == 4
        assert f["rms"] == pytest.approx(np.sqrt(np.mean(x ** 2)))
        assert f["snr"] == pytest.approx(mean / (std + 1e-7))
        assert f["peak_count"] == 1
        assert f["mad"] == pytest.approx(np.mean(np.abs(x - mean)))

    def test_constant_signal_stays_finite(self):
        f = extract_features(np.full(150, 3.0), 10)
        assert np.all(np.isfinite(f))
        assert f[1] == 0.0
        assert f[2] == 0.0 and f[3] == 0.0
        assert is_degenerate(np.full(150, 3.0))
        assert not is_degenerate(self.signal)


def test_zero_counts_as_non_negative():
    assert zero_crossings(np.array([-1.0, 0.0, 1.0, -1.0])) == 2


def test_peak_count_ignores_plateaus_and_edges():
    assert peak_count(np.array([5.0, 1.0, 2.0, 2.0, 1.0, 3.0, 0.0])) == 1
    assert peak_count(np.array([1.0, 2.0])) == 0
