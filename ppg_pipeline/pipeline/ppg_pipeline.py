"""
PPG pipeline orchestrator.

One call to tick() per camera frame: append the sample, refresh signal
quality (asynchronously), detect valleys and estimate HR/HRV unless the
signal is known to be bad, then publish an immutable snapshot.
"""
import time
from dataclasses import dataclass

from ppg_pipeline.config import (
    BUFFER_CAPACITY,
    FRAME_RATE,
    MIN_SAMPLES,
    SMOOTHING_WINDOW,
    VALLEY_DETECTOR,
)
from ppg_pipeline.pipeline import observability as obs
from ppg_pipeline.pipeline.metrics import (
    NO_HEART_RATE,
    NO_HRV,
    HeartRateEstimate,
    HRVEstimate,
    compute_hr,
    compute_hrv,
)
from ppg_pipeline.pipeline.observability import PipelineObserver
from ppg_pipeline.pipeline.quality_gate import QualityAssessment, QualityGate
from ppg_pipeline.pipeline.sample_buffer import SampleBuffer
from ppg_pipeline.pipeline.valleys import make_detector

WARMING = "warming"
ACTIVE = "active"


@dataclass(frozen=True)
class PipelineSnapshot:
    buffer: tuple
    valleys: tuple
    heart_rate: HeartRateEstimate
    hrv: HRVEstimate
    quality: QualityAssessment
    state: str
    tick: int
    timestamp: float


class PPGPipeline:
    def __init__(self, model=None, quality_gate=None, detector=None, observer=None,
                 fps=FRAME_RATE, capacity=BUFFER_CAPACITY, min_samples=MIN_SAMPLES,
                 smoothing_window=SMOOTHING_WINDOW, detector_name=VALLEY_DETECTOR, clock=time.time):
        self.fps = fps
        self.min_samples = int(min_samples)
        self.clock = clock
        self.observer = observer if observer is not None else PipelineObserver()
        self.buffer = SampleBuffer(capacity)
        if detector is None:
            detector = make_detector(detector_name, smoothing_window=smoothing_window,
                                     fps=fps, min_samples=min_samples)
        self.detector = detector
        if quality_gate is None:
            quality_gate = QualityGate(model=model, observer=self.observer)
        self.quality_gate = quality_gate

        self.state = WARMING
        self.ticks = 0
        self.latest = None
        self._last_hr = NO_HEART_RATE
        self._last_hrv = NO_HRV
        self._closed = False

    def _set_state(self, state):
        if state != self.state:
            self.observer.event(obs.STATE_TRANSITION, previous=self.state, current=state, samples=len(self.buffer))
            self.state = state

    def tick(self, sample):
        if self._closed:
            raise RuntimeError("pipeline is closed")
        self.ticks += 1
        self.observer.event(obs.TICK)
        self.buffer.append(sample)
        now = self.clock()
        signal = self.buffer.snapshot()

        if len(signal) < self.min_samples:
            self._set_state(WARMING)
            valleys, hr, hrv = [], NO_HEART_RATE, NO_HRV
        else:
            self._set_state(ACTIVE)
            self.quality_gate.submit(signal)
            if self.quality_gate.allow_interval_recompute():
                valleys = self.detector.detect(signal, now)
                hr = compute_hr(valleys)
                hrv = compute_hrv(valleys)
                self._last_hr, self._last_hrv = hr, hrv
            else:
                # bad signal: hold the last estimates, valley indices would be stale
                valleys, hr, hrv = [], self._last_hr, self._last_hrv

        self.latest = PipelineSnapshot(
            buffer=tuple(signal.tolist()),
            valleys=tuple(valleys),
            heart_rate=hr,
            hrv=hrv,
            quality=self.quality_gate.assessment,
            state=self.state,
            tick=self.ticks,
            timestamp=now,
        )
        return self.latest

    def reset(self):
        """Drop the buffer and estimates, e.g. when a recording restarts."""
        self.buffer.clear()
        self._last_hr, self._last_hrv = NO_HEART_RATE, NO_HRV
        self.quality_gate.reset()
        self._set_state(WARMING)
        self.latest = None

    def close(self):
        if self._closed:
            return
        self._closed = True
        self.quality_gate.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False
