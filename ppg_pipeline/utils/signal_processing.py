"""
Signal processing utilities for PPG interval analysis
"""
import math

import numpy as np

from ppg_pipeline.config import SMOOTHING_WINDOW


def moving_average(signal, window=SMOOTHING_WINDOW):
    """Trailing moving average.

    out[i] is the mean of signal[max(0, i - window + 1) : i + 1], so the first
    window - 1 outputs average over the samples seen so far. Troughs shift by
    at most (window - 1) / 2 samples, identically for every trough, which
    leaves the spacing between them intact.
    """
    x = np.asarray(signal, dtype=np.float64)
    if window < 1:
        raise ValueError(f"window must be positive, got {window}")
    if x.size == 0:
        return x.copy()
    csum = np.concatenate(([0.0], np.cumsum(x)))
    idx = np.arange(x.size)
    start = np.maximum(0, idx - window + 1)
    return (csum[idx + 1] - csum[start]) / (idx + 1 - start)


def successive_intervals(times):
    times = np.asarray(times, dtype=np.float64)
    if times.size < 2:
        return np.zeros(0, dtype=np.float64)
    return np.diff(times)


def filter_band(values, band):
    values = np.asarray(values, dtype=np.float64)
    lo, hi = band
    return values[(values >= lo) & (values <= hi)]


def round_half_up(x):
    return int(math.floor(x + 0.5))


def clamp(x, lo=0.0, hi=100.0):
    return float(min(hi, max(lo, x)))
