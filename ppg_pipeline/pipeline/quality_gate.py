"""
Signal-quality gate.

Feature vectors are classified off the tick path on an executor, one at a
time. While an inference is running only the newest feature vector is kept
for the next run, so a slow model never builds a backlog. Each submission
carries a sequence number; a result older than the one currently held is
dropped, and anything that lands after close() is ignored. The last-known
assessment survives failed or pending inferences.
"""
import enum
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial

import numpy as np

from ppg_pipeline.config import QUALITY_CLASSES, SUPPORTED_FEATURE_COUNTS
from ppg_pipeline.models.quality_model import QualityModelError
from ppg_pipeline.pipeline import observability as obs
from ppg_pipeline.pipeline.observability import PipelineObserver
from ppg_pipeline.utils.features import extract_features, is_degenerate
from ppg_pipeline.utils.signal_processing import clamp


class QualityClass(enum.Enum):
    BAD = "bad"
    ACCEPTABLE = "acceptable"
    EXCELLENT = "excellent"
    UNKNOWN = "unknown"


_CLASS_ORDER = tuple(QualityClass(name) for name in QUALITY_CLASSES)


@dataclass(frozen=True)
class QualityAssessment:
    label: QualityClass = QualityClass.UNKNOWN
    confidence: float = 0.0  # 0..100
    sequence: int = 0  # submission that produced it; 0 = none yet


UNKNOWN_QUALITY = QualityAssessment()


def _infer(model, features):
    probs = np.asarray(model.predict(features), dtype=np.float64).reshape(-1)
    if probs.size != len(_CLASS_ORDER) or not np.all(np.isfinite(probs)):
        raise QualityModelError(f"bad probability vector from model: {probs.tolist()}")
    return probs


def assessment_from_probabilities(probs, sequence):
    idx = int(np.argmax(probs))
    return QualityAssessment(label=_CLASS_ORDER[idx], confidence=clamp(probs[idx] * 100.0), sequence=sequence)


class QualityGate:
    def __init__(self, model=None, executor=None, observer=None, n_features=None):
        self.observer = observer if observer is not None else PipelineObserver()
        self.expected_features = n_features
        self._own_executor = executor is None
        self.executor = executor if executor is not None else ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="ppg-quality")
        self._lock = threading.Lock()
        # signalled whenever pending work finishes
        self._idle = threading.Condition(self._lock)
        self._model = None
        self._assessment = UNKNOWN_QUALITY
        self._next_seq = 0
        self._pending = set()
        self._busy = False  # an inference is submitted and not yet applied
        self._queued = None  # (seq, model, features) waiting for the running one
        self._closed = False
        self._loading = False
        self._unavailable_reported = False
        if model is not None:
            self.set_model(model)

    @property
    def model(self):
        return self._model

    @property
    def assessment(self):
        with self._lock:
            return self._assessment

    @property
    def closed(self):
        return self._closed

    @property
    def in_flight(self):
        """Number of submitted futures (inference or model load) not yet applied."""
        with self._lock:
            return len(self._pending)

    def allow_interval_recompute(self):
        return self.assessment.label is not QualityClass.BAD

    # ---- model loading ----
    def _check_arity(self, model):
        arity = getattr(model, "input_arity", None)
        if arity not in SUPPORTED_FEATURE_COUNTS:
            raise QualityModelError(f"model declares {arity} input features; supported: {SUPPORTED_FEATURE_COUNTS}")
        if self.expected_features is not None and arity != self.expected_features:
            raise QualityModelError(f"model declares {arity} input features, pipeline expects {self.expected_features}")

    def set_model(self, model):
        """Install a ready model. Returns False (and reports) on an arity mismatch."""
        with self._lock:
            self._unavailable_reported = False
        try:
            self._check_arity(model)
        except QualityModelError as e:
            self._report_unavailable(str(e))
            return False
        with self._lock:
            if self._closed:
                return False
            self._model = model
        self.observer.event(obs.MODEL_LOADED, n_features=model.input_arity)
        return True

    def load_model(self, loader, *args, **kwargs):
        """Load a model on the executor; the gate keeps running without it meanwhile."""
        with self._lock:
            if self._closed:
                raise RuntimeError("quality gate is closed")
            self._unavailable_reported = False
            self._loading = True
        fut = self.executor.submit(loader, *args, **kwargs)
        with self._lock:
            self._pending.add(fut)
        fut.add_done_callback(self._on_loaded)
        return fut

    def _on_loaded(self, fut):
        try:
            self._apply_loaded(fut)
        finally:
            # discard last so wait_pending() sees the model installed
            with self._idle:
                self._pending.discard(fut)
                self._loading = False
                self._idle.notify_all()

    def _apply_loaded(self, fut):
        if self._closed or fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            self._report_unavailable(f"load failed: {exc}")
            return
        self.set_model(fut.result())

    def _report_unavailable(self, reason):
        with self._lock:
            first = not self._unavailable_reported
            self._unavailable_reported = True
        # one log line per load attempt; later ticks only count
        self.observer.event(obs.MODEL_UNAVAILABLE, quiet=not first, reason=reason)

    # ---- inference ----
    def submit(self, signal):
        """Queue one classification of ``signal``.

        Returns the future when inference starts right away, None when the
        gate is closed, has no model, or the work was parked behind a running
        inference.
        """
        if self._closed:
            return None
        model = self._model
        if model is None:
            if not self._loading:
                self._report_unavailable("model not loaded")
            return None
        if is_degenerate(signal):
            self.observer.event(obs.DEGENERATE_STATISTICS, source="features")
        features = extract_features(signal, model.input_arity)
        with self._lock:
            self._next_seq += 1
            seq = self._next_seq
            parked = self._busy
            superseded = self._queued if parked else None
            if parked:
                self._queued = (seq, model, features)
            else:
                self._busy = True
        if superseded is not None:
            self.observer.event(obs.INFERENCE_SUPERSEDED, sequence=superseded[0], replaced_by=seq)
        if parked:
            return None
        return self._dispatch(seq, model, features)

    def _dispatch(self, seq, model, features):
        try:
            fut = self.executor.submit(_infer, model, features)
        except RuntimeError as e:
            # executor already shut down
            with self._idle:
                self._busy = False
                self._queued = None
                self._idle.notify_all()
            self.observer.event(obs.INFERENCE_FAILURE, sequence=seq, error=repr(e))
            return None
        with self._lock:
            self._pending.add(fut)
        fut.add_done_callback(partial(self._on_result, seq))
        return fut

    def _on_result(self, seq, fut):
        try:
            self._apply_result(seq, fut)
        finally:
            with self._idle:
                self._pending.discard(fut)
                nxt, self._queued = self._queued, None
                if nxt is None or self._closed:
                    nxt = None
                    self._busy = False
                    self._idle.notify_all()
            if nxt is not None:
                self._dispatch(*nxt)

    def _apply_result(self, seq, fut):
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None and not self._closed:
            self.observer.event(obs.INFERENCE_FAILURE, sequence=seq, error=repr(exc))
            return
        result = None if exc is not None else assessment_from_probabilities(fut.result(), seq)
        with self._lock:
            # checked under the lock so nothing is written once close() returns
            discarded = self._closed
            stale = not discarded and seq <= self._assessment.sequence
            if not discarded and not stale:
                self._assessment = result
        if discarded:
            self.observer.event(obs.INFERENCE_DISCARDED, sequence=seq)
        elif stale:
            self.observer.event(obs.STALE_RESULT, sequence=seq)

    def wait_pending(self, timeout=None):
        """Block until in-flight work (and its callbacks) has finished."""
        with self._idle:
            return self._idle.wait_for(lambda: not (self._pending or self._busy or self._loading), timeout)

    def reset(self):
        """Forget the current assessment; results still in flight become stale."""
        with self._lock:
            self._queued = None
            self._assessment = QualityAssessment(sequence=self._next_seq)

    def close(self):
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._model = None
            self._queued = None
        if self._own_executor:
            self.executor.shutdown(wait=False, cancel_futures=True)
