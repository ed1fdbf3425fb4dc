"""
Measurement records: building them from pipeline snapshots, appending them to a
CSV file and summarising a subject's history.
"""
import json
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone

import pandas as pd

from ppg_pipeline.config import DEFAULT_SUBJECT_ID, RECORD_INTERVAL_SEC, RECORD_STORE_PATH

logger = logging.getLogger(__name__)

COLUMNS = ["subject_id", "timestamp", "hr_bpm", "hr_confidence", "hrv_sdnn", "hrv_confidence", "raw_samples"]
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class NoRecordsError(LookupError):
    pass


@dataclass(frozen=True)
class HistoricalSummary:
    subject_id: str
    avg_heart_rate: float
    avg_hrv: float
    last_access: datetime
    record_count: int
    valid_count: int


def build_record(snapshot, subject_id=None, timestamp=None):
    if timestamp is None:
        timestamp = datetime.fromtimestamp(snapshot.timestamp, tz=timezone.utc)
    return {
        "subjectId": subject_id or DEFAULT_SUBJECT_ID,
        "heartRate": {"bpm": snapshot.heart_rate.bpm, "confidence": snapshot.heart_rate.confidence},
        "hrv": {"sdnn": snapshot.hrv.sdnn, "confidence": snapshot.hrv.confidence},
        "rawSamples": list(snapshot.buffer),
        "timestamp": timestamp,
    }


class CsvRecordStore:
    def __init__(self, path=RECORD_STORE_PATH):
        self.path = path

    def save(self, record):
        ts = record["timestamp"]
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        row = {
            "subject_id": record["subjectId"],
            "timestamp": ts.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT),
            "hr_bpm": record["heartRate"]["bpm"],
            "hr_confidence": record["heartRate"]["confidence"],
            "hrv_sdnn": record["hrv"]["sdnn"],
            "hrv_confidence": record["hrv"]["confidence"],
            "raw_samples": json.dumps(record["rawSamples"]),
        }
        write_header = not os.path.exists(self.path) or os.path.getsize(self.path) == 0
        pd.DataFrame([row], columns=COLUMNS).to_csv(self.path, mode="a", header=write_header, index=False)

    def records(self, subject_id=None):
        """Stored records (newest first), optionally for one subject."""
        if not os.path.exists(self.path) or os.path.getsize(self.path) == 0:
            return pd.DataFrame(columns=COLUMNS)
        df = pd.read_csv(self.path, dtype={"subject_id": str})
        df["timestamp"] = pd.to_datetime(df["timestamp"], format=TIMESTAMP_FORMAT, utc=True)
        df["raw_samples"] = df["raw_samples"].map(json.loads)
        if subject_id is not None:
            df = df[df["subject_id"] == subject_id]
        return df.sort_values("timestamp", ascending=False).reset_index(drop=True)

    def summary(self, subject_id):
        df = self.records(subject_id)
        if df.empty:
            raise NoRecordsError(f"No data found for subject {subject_id!r}")
        valid = df[(df["hr_bpm"].fillna(0) != 0) & (df["hrv_sdnn"].fillna(0) != 0)]
        if valid.empty:
            raise NoRecordsError(f"No valid health data found for subject {subject_id!r}")
        return HistoricalSummary(
            subject_id=subject_id,
            avg_heart_rate=round(float(valid["hr_bpm"].mean()), 2),
            avg_hrv=round(float(valid["hrv_sdnn"].mean()), 2),
            last_access=df["timestamp"].max().to_pydatetime(),
            record_count=len(df),
            valid_count=len(valid),
        )


class PeriodicRecorder:
    """Saves the latest snapshot every ``interval_sec``; save_now() is the manual trigger."""

    def __init__(self, store, subject_id=DEFAULT_SUBJECT_ID, interval_sec=RECORD_INTERVAL_SEC, clock=time.monotonic):
        self.store = store
        self.subject_id = subject_id
        self.interval_sec = interval_sec
        self.clock = clock
        self._last_saved = None

    def maybe_save(self, snapshot):
        now = self.clock()
        if self._last_saved is None:
            # first call starts the timer
            self._last_saved = now
            return None
        if snapshot is None or now - self._last_saved < self.interval_sec:
            return None
        return self.save_now(snapshot)

    def save_now(self, snapshot):
        record = build_record(snapshot, self.subject_id)
        self.store.save(record)
        self._last_saved = self.clock()
        logger.info("saved record for %s: %d bpm, sdnn %s ms", record["subjectId"],
                    record["heartRate"]["bpm"], record["hrv"]["sdnn"])
        return record
