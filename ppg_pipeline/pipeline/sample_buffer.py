"""
Bounded sliding window of raw PPG samples
"""
from collections import deque

import numpy as np

from ppg_pipeline.config import BUFFER_CAPACITY


class SampleBuffer:
    def __init__(self, capacity=BUFFER_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = int(capacity)
        self._samples = deque(maxlen=self.capacity)

    def append(self, sample):
        # deque drops the oldest sample once full
        self._samples.append(float(sample))

    def snapshot(self):
        """Return the buffer as a new float64 array, oldest first."""
        return np.fromiter(self._samples, dtype=np.float64, count=len(self._samples))

    def clear(self):
        self._samples.clear()

    def __len__(self):
        return len(self._samples)
