"""
Statistical features of the raw PPG buffer for the quality classifier
"""
import numpy as np

from ppg_pipeline.config import FEATURE_EPS, SUPPORTED_FEATURE_COUNTS

FEATURE_NAMES = (
    "mean",
    "std",
    "skewness",
    "kurtosis",
    "range",
    "zero_crossings",
    "rms",
    "snr",
    "peak_count",
    "mad",
)


def zero_crossings(x):
    # a sample at exactly 0 counts as non-negative
    nonneg = x >= 0
    return int(np.count_nonzero(nonneg[1:] != nonneg[:-1]))


def peak_count(x):
    if x.size < 3:
        return 0
    mid = x[1:-1]
    return int(np.count_nonzero((mid > x[:-2]) & (mid > x[2:])))


def extract_features(signal, n_features=10, eps=FEATURE_EPS):
    """Return the feature vector in FEATURE_NAMES order, truncated to 8 or 10.

    The 8-feature layout drops peak_count and mad.
    """
    if n_features not in SUPPORTED_FEATURE_COUNTS:
        raise ValueError(f"unsupported feature count {n_features}; expected one of {SUPPORTED_FEATURE_COUNTS}")
    x = np.asarray(signal, dtype=np.float64)
    if x.size == 0:
        return np.zeros(n_features, dtype=np.float64)

    mean = x.mean()
    dev = x - mean
    std = np.sqrt(np.mean(dev ** 2))  # population std
    feats = [
        mean,
        std,
        np.mean(dev ** 3) / (std + eps) ** 3,
        np.mean(dev ** 4) / (std + eps) ** 4,
        x.max() - x.min(),
        zero_crossings(x),
        np.sqrt(np.mean(x ** 2)),
        mean / (std + eps),
        peak_count(x),
        np.mean(np.abs(dev)),
    ]
    return np.asarray(feats[:n_features], dtype=np.float64)


def is_degenerate(signal, eps=FEATURE_EPS):
    """True when the buffer has (near) zero spread and ratios are eps-dominated."""
    x = np.asarray(signal, dtype=np.float64)
    return x.size == 0 or float(np.std(x)) < eps
