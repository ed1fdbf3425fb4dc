from concurrent.futures import Executor, Future

import numpy as np
import pytest

from ppg_pipeline.models.quality_model import CallableQualityModel


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, *args, **kwargs):
        fut = Future()
        try:
            fut.set_result(fn(*args, **kwargs))
        except Exception as e:
            fut.set_exception(e)
        return fut


class ManualExecutor(Executor):
    """Holds submitted work until the test completes it, in any order."""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, *args, **kwargs):
        fut = Future()
        self.jobs.append((fut, fn, args, kwargs))
        return fut

    def run(self, index):
        fut, fn, args, kwargs = self.jobs[index]
        try:
            fut.set_result(fn(*args, **kwargs))
        except Exception as e:
            fut.set_exception(e)


class FixedClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def constant_model(probs, input_arity=10):
    return CallableQualityModel(lambda feats: np.asarray(probs, dtype=float), input_arity=input_arity)


@pytest.fixture
def inline_executor():
    return InlineExecutor()


@pytest.fixture
def manual_executor():
    return ManualExecutor()


@pytest.fixture
def clock():
    return FixedClock()
