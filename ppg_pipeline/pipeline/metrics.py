"""
Metrics for PPG: HR and HRV (SDNN) from valley-to-valley intervals
"""
from dataclasses import dataclass

import numpy as np

from ppg_pipeline.config import (
    HR_INTERVAL_RANGE_SEC,
    HRV_FULL_CONFIDENCE_INTERVALS,
    RR_INTERVAL_RANGE_MS,
)
from ppg_pipeline.utils.signal_processing import (
    clamp,
    filter_band,
    round_half_up,
    successive_intervals,
)


@dataclass(frozen=True)
class HeartRateEstimate:
    bpm: int = 0  # 0 when undetermined
    confidence: float = 0.0  # 0..100


@dataclass(frozen=True)
class HRVEstimate:
    sdnn: float = 0.0  # ms, 0 when undetermined
    confidence: float = 0.0  # 0..100


NO_HEART_RATE = HeartRateEstimate()
NO_HRV = HRVEstimate()


def _valley_times(valleys):
    return [v.time for v in valleys]


def heart_rate_from_intervals(intervals_sec, band=HR_INTERVAL_RANGE_SEC):
    valid = filter_band(intervals_sec, band)
    if valid.size == 0:
        return NO_HEART_RATE
    # median resists a stray interval; confidence still pays for it via CV
    bpm = round_half_up(60.0 / np.median(valid))
    mean = valid.mean()
    cv = valid.std() / mean * 100.0
    return HeartRateEstimate(bpm=bpm, confidence=clamp(100.0 - cv))


def compute_hr(valleys, band=HR_INTERVAL_RANGE_SEC):
    if len(valleys) < 2:
        return NO_HEART_RATE
    return heart_rate_from_intervals(successive_intervals(_valley_times(valleys)), band)


def hrv_from_rr(rr_ms, band=RR_INTERVAL_RANGE_MS, full_confidence_intervals=HRV_FULL_CONFIDENCE_INTERVALS):
    """SDNN over RR intervals in ms.

    Needs two valid intervals for the Bessel-corrected deviation, otherwise
    returns zeros.
    """
    valid = filter_band(rr_ms, band)
    n = valid.size
    if n < 2:
        return NO_HRV
    mean_rr = valid.mean()
    sdnn = float(np.std(valid, ddof=1))
    interval_conf = min(100.0, n / full_confidence_intervals * 100.0)
    consistency_conf = max(0.0, 100.0 - sdnn / mean_rr * 100.0)
    confidence = clamp(round_half_up((interval_conf + consistency_conf) / 2.0))
    return HRVEstimate(sdnn=float(round_half_up(sdnn)), confidence=confidence)


def compute_hrv(valleys, band=RR_INTERVAL_RANGE_MS):
    if len(valleys) < 2:
        return NO_HRV
    rr_ms = successive_intervals(_valley_times(valleys)) * 1000.0
    return hrv_from_rr(rr_ms, band)
