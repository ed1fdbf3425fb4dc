"""
Structured observability hook for the PPG pipeline.

The pipeline reports what happens through named events instead of scattered
debug prints. Every event bumps a counter; most are also logged. Pass a
``sink`` callable to forward events somewhere else (metrics, UI, tests).
"""
import logging
import threading
from collections import Counter

logger = logging.getLogger(__name__)

TICK = "tick"
STATE_TRANSITION = "state_transition"
MODEL_LOADED = "model_loaded"
MODEL_UNAVAILABLE = "model_unavailable"
INFERENCE_FAILURE = "inference_failure"
STALE_RESULT = "stale_result"
INFERENCE_DISCARDED = "inference_discarded"
INFERENCE_SUPERSEDED = "inference_superseded"
DEGENERATE_STATISTICS = "degenerate_statistics"

# ticks arrive at ~30 Hz, keep them out of the log
_LEVELS = {
    TICK: None,
    STATE_TRANSITION: logging.INFO,
    MODEL_LOADED: logging.INFO,
    MODEL_UNAVAILABLE: logging.WARNING,
    INFERENCE_FAILURE: logging.WARNING,
    STALE_RESULT: logging.DEBUG,
    INFERENCE_DISCARDED: logging.DEBUG,
    INFERENCE_SUPERSEDED: logging.DEBUG,
    DEGENERATE_STATISTICS: logging.DEBUG,
}


class PipelineObserver:
    def __init__(self, sink=None, log=logger):
        self.counters = Counter()
        self.sink = sink
        self.log = log
        # inference callbacks report from executor threads
        self._lock = threading.Lock()

    def event(self, name, quiet=False, **fields):
        with self._lock:
            self.counters[name] += 1
        level = _LEVELS.get(name, logging.INFO)
        if level is not None and not quiet:
            detail = " ".join(f"{k}={v}" for k, v in sorted(fields.items()))
            self.log.log(level, "%s %s", name, detail)
        if self.sink is not None:
            self.sink(name, fields)

    def count(self, name):
        with self._lock:
            return self.counters[name]
