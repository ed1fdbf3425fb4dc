"""Tests for record building, CSV persistence and history summaries."""
from datetime import datetime, timedelta, timezone

import pytest

from ppg_pipeline.pipeline.metrics import HeartRateEstimate, HRVEstimate
from ppg_pipeline.pipeline.ppg_pipeline import PipelineSnapshot
from ppg_pipeline.pipeline.quality_gate import UNKNOWN_QUALITY
from ppg_pipeline.storage.record_store import (
    CsvRecordStore,
    NoRecordsError,
    PeriodicRecorder,
    build_record,
)

T0 = datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc)


def snapshot(bpm=72, sdnn=40.0, ts=T0.timestamp(), buffer=(1.0, 2.0, 3.0)):
    return PipelineSnapshot(
        buffer=buffer,
        valleys=(),
        heart_rate=HeartRateEstimate(bpm, 90.0),
        hrv=HRVEstimate(sdnn, 80.0),
        quality=UNKNOWN_QUALITY,
        state="active",
        tick=len(buffer),
        timestamp=ts,
    )


class SteppingClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_build_record_shape():
    rec = build_record(snapshot(), "subj-1")
    assert rec["subjectId"] == "subj-1"
    assert rec["heartRate"] == {"bpm": 72, "confidence": 90.0}
    assert rec["hrv"] == {"sdnn": 40.0, "confidence": 80.0}
    assert rec["rawSamples"] == [1.0, 2.0, 3.0]
    assert rec["timestamp"] == T0


def test_missing_subject_id_defaults_to_unknown():
    assert build_record(snapshot())["subjectId"] == "unknown"


class TestCsvRecordStore:
    def setup_method(self):
        self.records = [
            build_record(snapshot(bpm=70, sdnn=30.0), "007", T0),
            build_record(snapshot(bpm=80, sdnn=50.0), "007", T0 + timedelta(minutes=5)),
            # undetermined HR: excluded from averages but still the latest access
            build_record(snapshot(bpm=0, sdnn=0.0), "007", T0 + timedelta(minutes=9)),
            build_record(snapshot(bpm=100, sdnn=10.0), "other", T0),
        ]

    def test_round_trip_newest_first(self, tmp_path):
        store = CsvRecordStore(str(tmp_path / "records.csv"))
        for rec in self.records:
            store.save(rec)
        df = store.records("007")
        assert list(df["hr_bpm"]) == [0, 80, 70]
        assert df["raw_samples"].iloc[0] == [1.0, 2.0, 3.0]
        assert df["subject_id"].iloc[0] == "007"
        assert len(store.records()) == 4

    def test_summary(self, tmp_path):
        store = CsvRecordStore(str(tmp_path / "records.csv"))
        for rec in self.records:
            store.save(rec)
        summary = store.summary("007")
        assert summary.avg_heart_rate == 75.0
        assert summary.avg_hrv == 40.0
        assert summary.last_access == T0 + timedelta(minutes=9)
        assert summary.record_count == 3
        assert summary.valid_count == 2

    def test_unknown_subject(self, tmp_path):
        store = CsvRecordStore(str(tmp_path / "records.csv"))
        with pytest.raises(NoRecordsError):
            store.summary("nobody")
        store.save(self.records[0])
        with pytest.raises(NoRecordsError):
            store.summary("nobody")

    def test_no_valid_records(self, tmp_path):
        store = CsvRecordStore(str(tmp_path / "records.csv"))
        store.save(self.records[2])
        with pytest.raises(NoRecordsError, match="valid"):
            store.summary("007")


class TestPeriodicRecorder:
    def test_saves_once_per_interval(self, tmp_path):
        store = CsvRecordStore(str(tmp_path / "records.csv"))
        clock = SteppingClock()
        recorder = PeriodicRecorder(store, "007", interval_sec=10, clock=clock)
        saved = []
        for step in range(0, 35):
            clock.now = float(step)
            saved.append(recorder.maybe_save(snapshot()))
        assert [i for i, rec in enumerate(saved) if rec is not None] == [10, 20, 30]
        assert len(store.records("007")) == 3

    def test_manual_save_restarts_interval(self, tmp_path):
        store = CsvRecordStore(str(tmp_path / "records.csv"))
        clock = SteppingClock()
        recorder = PeriodicRecorder(store, "007", interval_sec=10, clock=clock)
        recorder.maybe_save(snapshot())
        clock.now = 8.0
        recorder.save_now(snapshot())
        clock.now = 12.0
        assert recorder.maybe_save(snapshot()) is None
        clock.now = 18.0
        assert recorder.maybe_save(snapshot()) is not None
