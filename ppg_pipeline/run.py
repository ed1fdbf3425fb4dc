"""
Replay a PPG sample stream through the pipeline.

Usage:
    python -m ppg_pipeline.run [samples.csv] [quality.onnx]

samples.csv holds one sample per row (column "ppg", else the first column);
without it a synthetic 72 BPM signal is replayed.
"""
import logging
import sys
import time
from pathlib import Path

import pandas as pd

from ppg_pipeline.config import (
    DEFAULT_SUBJECT_ID,
    FRAME_RATE,
    LOG_FORMAT,
    LOG_LEVEL,
    RECORD_INTERVAL_SEC,
    RECORD_STORE_PATH,
)
from ppg_pipeline.models.onnx_inference import load_quality_model
from ppg_pipeline.pipeline.ppg_pipeline import PPGPipeline
from ppg_pipeline.storage.record_store import CsvRecordStore, NoRecordsError, PeriodicRecorder
from ppg_pipeline.utils.synthetic import synthetic_ppg


def setup_logging(log_file=None, level=LOG_LEVEL):
    handlers = [logging.StreamHandler()]
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)


def load_samples(path):
    df = pd.read_csv(path)
    column = "ppg" if "ppg" in df.columns else df.columns[0]
    return df[column].astype(float).to_numpy()


class ReplayClock:
    """Advances 1/fps per tick so replayed timestamps follow the sample rate."""

    def __init__(self, fps=FRAME_RATE, start=0.0):
        self.fps = fps
        self.now = start

    def advance(self):
        self.now += 1.0 / self.fps

    def __call__(self):
        return self.now


def replay(samples, model_path=None, store_path=RECORD_STORE_PATH, subject_id=DEFAULT_SUBJECT_ID,
           fps=FRAME_RATE, record_interval=RECORD_INTERVAL_SEC):
    clock = ReplayClock(fps, start=time.time())
    store = CsvRecordStore(store_path)
    recorder = PeriodicRecorder(store, subject_id, interval_sec=record_interval, clock=clock)
    with PPGPipeline(fps=fps, clock=clock) as pipeline:
        if model_path is not None:
            pipeline.quality_gate.load_model(load_quality_model, model_path)
        for sample in samples:
            clock.advance()
            snapshot = pipeline.tick(sample)
            recorder.maybe_save(snapshot)
        pipeline.quality_gate.wait_pending(timeout=5.0)
        final = pipeline.latest
        if final is not None:
            recorder.save_now(final)
    return final, store


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    setup_logging()
    log = logging.getLogger("ppg_pipeline")

    if argv and argv[0] in ("-h", "--help"):
        print(__doc__)
        return 0
    samples_path = argv[0] if len(argv) > 0 else None
    model_path = argv[1] if len(argv) > 1 else None

    if samples_path is None:
        samples = synthetic_ppg(FRAME_RATE * 30, bpm=72, seed=0)
        log.info("No samples given, replaying %d synthetic samples", len(samples))
    else:
        samples = load_samples(samples_path)
        log.info("Replaying %d samples from %s", len(samples), samples_path)

    final, store = replay(samples, model_path=model_path)
    if final is None:
        log.error("No samples to replay")
        return 1

    print(f"HR:  {final.heart_rate.bpm} BPM (confidence {final.heart_rate.confidence:.1f}%)")
    print(f"HRV: {final.hrv.sdnn:.0f} ms (confidence {final.hrv.confidence:.1f}%)")
    print(f"Signal quality: {final.quality.label.value} ({final.quality.confidence:.1f}%)")
    try:
        summary = store.summary(DEFAULT_SUBJECT_ID)
    except NoRecordsError as e:
        log.warning("%s", e)
    else:
        print(f"History: avg HR {summary.avg_heart_rate} BPM, avg HRV {summary.avg_hrv} ms "
              f"over {summary.valid_count} records, last {summary.last_access.isoformat()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
