"""
Valley (trough) detection over the PPG buffer.

Two detectors share one interface. AdaptiveThresholdValleyDetector is the
default: it smooths the buffer, keeps strict 3-point local minima that fall
below mean - std of the smoothed signal, and enforces a minimum spacing.
WindowMinimumValleyDetector keeps points that are the minimum of a
symmetric window in the min-max normalized raw signal.
"""
from dataclasses import dataclass

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy.signal import argrelmin

from ppg_pipeline.config import (
    FRAME_RATE,
    MIN_SAMPLES,
    SMOOTHING_WINDOW,
    VALLEY_DETECTOR,
    VALLEY_SPACING_SEC,
    VALLEY_WINDOW_SEC,
)
from ppg_pipeline.utils.signal_processing import moving_average


@dataclass(frozen=True)
class Valley:
    index: int  # position in the buffer at detection time
    value: float  # raw sample value at index
    time: float  # epoch seconds, back-dated from "now" using fps


class ValleyDetector:
    name = None

    def __init__(self, fps=FRAME_RATE, min_samples=MIN_SAMPLES,
                 spacing_sec=VALLEY_SPACING_SEC, window_sec=VALLEY_WINDOW_SEC):
        if fps <= 0:
            raise ValueError(f"fps must be positive, got {fps}")
        self.fps = float(fps)
        self.min_samples = int(min_samples)
        self.min_distance = int(np.floor(self.fps * spacing_sec))
        self.window_size = int(np.floor(self.fps * window_sec))

    def detect(self, signal, now):
        """Return valleys in increasing index order; [] for short buffers."""
        x = np.asarray(signal, dtype=np.float64)
        if x.size < self.min_samples:
            return []
        candidates = self._candidates(x)
        return self._accept(candidates, x, now)

    def _candidates(self, x):
        raise NotImplementedError

    def _accept(self, candidates, x, now):
        n = x.size
        valleys = []
        last = None
        for i in candidates:
            i = int(i)
            if last is not None and i - last < self.min_distance:
                continue
            valleys.append(Valley(index=i, value=float(x[i]), time=now - (n - i) / self.fps))
            last = i
        return valleys


class AdaptiveThresholdValleyDetector(ValleyDetector):
    name = "adaptive"

    def __init__(self, smoothing_window=SMOOTHING_WINDOW, **kwargs):
        super().__init__(**kwargs)
        self.smoothing_window = int(smoothing_window)

    def _candidates(self, x):
        smoothed = moving_average(x, self.smoothing_window)
        threshold = smoothed.mean() - smoothed.std()
        (idx,) = argrelmin(smoothed, order=1)
        w = self.window_size
        inside = (idx >= w) & (idx < smoothed.size - w)
        idx = idx[inside]
        return idx[smoothed[idx] < threshold]


class WindowMinimumValleyDetector(ValleyDetector):
    name = "window_min"

    def _candidates(self, x):
        span = x.max() - x.min()
        if span <= 0:
            return np.zeros(0, dtype=np.intp)
        norm = (x - x.min()) / span
        w = max(1, self.window_size)
        if norm.size < 2 * w + 1:
            return np.zeros(0, dtype=np.intp)
        win_min = sliding_window_view(norm, w).min(axis=1)
        idx = np.arange(w, norm.size - w)
        left = win_min[idx - w]
        right = win_min[idx + 1]
        keep = (left >= norm[idx]) & (right > norm[idx])
        return idx[keep]


DETECTORS = {
    AdaptiveThresholdValleyDetector.name: AdaptiveThresholdValleyDetector,
    WindowMinimumValleyDetector.name: WindowMinimumValleyDetector,
}


def make_detector(name=VALLEY_DETECTOR, smoothing_window=SMOOTHING_WINDOW, **kwargs):
    try:
        cls = DETECTORS[name]
    except KeyError:
        raise ValueError(f"unknown valley detector {name!r}; expected one of {sorted(DETECTORS)}") from None
    if cls is AdaptiveThresholdValleyDetector:
        kwargs["smoothing_window"] = smoothing_window
    return cls(**kwargs)
