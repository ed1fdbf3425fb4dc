"""
Synthetic PPG-like signals for demos and tests
"""
import numpy as np

from ppg_pipeline.config import FRAME_RATE


def synthetic_ppg(n_samples, bpm=72, fs=FRAME_RATE, noise_level=0.05, amplitude=1.0, offset=0.0, seed=None):
    """Sinusoidal pulse at ``bpm`` sampled at ``fs`` plus gaussian noise."""
    t = np.arange(n_samples) / fs
    sig = offset + amplitude * np.sin(2 * np.pi * (bpm / 60.0) * t)
    if noise_level:
        rng = np.random.default_rng(seed)
        sig = sig + rng.normal(0, noise_level, size=sig.shape)
    return sig
