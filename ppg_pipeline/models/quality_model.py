"""
Signal-quality classifier contract.

A QualityModel maps a feature vector (length ``input_arity``) to a length-3
probability vector ordered as QUALITY_CLASSES: bad, acceptable, excellent.
Models are expected to be stateless per call so one instance can serve
several pipelines.
"""
import numpy as np

from ppg_pipeline.config import QUALITY_CLASSES


class QualityModelError(RuntimeError):
    pass


class QualityModel:
    input_arity = None

    def predict(self, features):
        raise NotImplementedError

    def _check_output(self, probs):
        probs = np.asarray(probs, dtype=np.float64).reshape(-1)
        if probs.size != len(QUALITY_CLASSES):
            raise QualityModelError(f"expected {len(QUALITY_CLASSES)} class probabilities, got {probs.size}")
        if not np.all(np.isfinite(probs)):
            raise QualityModelError("model returned non-finite probabilities")
        return probs


class CallableQualityModel(QualityModel):
    """Wrap a plain function ``fn(features) -> probabilities``."""

    def __init__(self, fn, input_arity=10):
        self.fn = fn
        self.input_arity = int(input_arity)

    def predict(self, features):
        return self._check_output(self.fn(np.asarray(features, dtype=np.float64)))
