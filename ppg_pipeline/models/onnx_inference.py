# ppg_pipeline/models/onnx_inference.py
"""
ONNX-backed signal-quality classifier.
Loads the model once, reads the declared feature count from the input shape and
runs one (1, n_features) float32 feed per call.
Provides get_model() process-wide accessor with explicit release_model() teardown.
"""

import logging
import os
import threading

import numpy as np
import onnxruntime as ort
import psutil

from ppg_pipeline.config import ONNX_CPU_THREADS, QUALITY_MODEL_PATH
from ppg_pipeline.models.quality_model import QualityModel, QualityModelError

logger = logging.getLogger(__name__)


def load_onnx_session(path, cpu_threads=ONNX_CPU_THREADS):
    sess_opts = ort.SessionOptions()
    # avoid spamming logs
    sess_opts.log_severity_level = 3
    if cpu_threads is None:
        cpu_threads = max(1, psutil.cpu_count(logical=False) or 1)
    sess_opts.intra_op_num_threads = int(cpu_threads)
    return ort.InferenceSession(path, sess_options=sess_opts, providers=["CPUExecutionProvider"])


def declared_arity(input_meta):
    """Last dimension of the input shape; None when it is dynamic."""
    shape = list(input_meta.shape or [])
    if not shape:
        return None
    last = shape[-1]
    try:
        last = int(last)
    except (TypeError, ValueError):
        return None
    return last if last > 0 else None


class OnnxQualityModel(QualityModel):
    def __init__(self, model_path=QUALITY_MODEL_PATH, cpu_threads=ONNX_CPU_THREADS, session=None):
        if session is None:
            if not os.path.exists(model_path):
                raise QualityModelError(f"quality model not found: {model_path}")
            session = load_onnx_session(model_path, cpu_threads)
        self.sess = session
        self.model_path = model_path

        inputs = self.sess.get_inputs()
        if len(inputs) != 1:
            raise QualityModelError(f"expected a single model input, got {len(inputs)}")
        self.input_name = inputs[0].name
        self.input_arity = declared_arity(inputs[0])
        if self.input_arity is None:
            raise QualityModelError(f"model input {self.input_name!r} has no fixed feature dimension: {inputs[0].shape}")

    def predict(self, features):
        feats = np.asarray(features, dtype=np.float32).reshape(1, -1)
        if feats.shape[1] != self.input_arity:
            raise QualityModelError(f"model expects {self.input_arity} features, got {feats.shape[1]}")
        outs = self.sess.run(None, {self.input_name: feats})
        return self._check_output(outs[0])


def load_quality_model(path=QUALITY_MODEL_PATH, cpu_threads=ONNX_CPU_THREADS):
    model = OnnxQualityModel(path, cpu_threads=cpu_threads)
    logger.info("quality model loaded from %s (%d features)", path, model.input_arity)
    return model


# process-wide accessor
_SINGLETON = None
_SINGLETON_LOCK = threading.Lock()


def get_model(path=QUALITY_MODEL_PATH):
    global _SINGLETON
    with _SINGLETON_LOCK:
        if _SINGLETON is None:
            _SINGLETON = load_quality_model(path)
        return _SINGLETON


def release_model():
    global _SINGLETON
    with _SINGLETON_LOCK:
        _SINGLETON = None
