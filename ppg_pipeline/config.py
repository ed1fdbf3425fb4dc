"""
Configuration file for PPG pipeline hyperparameters
"""

FRAME_RATE = 30
BUFFER_CAPACITY = 300  # samples (~10 s at 30 fps)
MIN_SAMPLES = 100  # below this the pipeline is warming up
SMOOTHING_WINDOW = 5  # trailing moving-average length

# Valley detection
VALLEY_SPACING_SEC = 0.4  # ~150 BPM ceiling
VALLEY_WINDOW_SEC = 0.5  # symmetric margin each side of a candidate
VALLEY_DETECTOR = "adaptive"  # "adaptive" (mean - std) or "window_min"

# Interval bands
HR_INTERVAL_RANGE_SEC = (0.4, 2.0)  # 30-150 BPM
RR_INTERVAL_RANGE_MS = (250, 2000)
HRV_FULL_CONFIDENCE_INTERVALS = 5

# Signal quality
FEATURE_EPS = 1e-7
SUPPORTED_FEATURE_COUNTS = (8, 10)
QUALITY_CLASSES = ("bad", "acceptable", "excellent")
QUALITY_MODEL_PATH = "models/quality.onnx"  # optional; leave missing to run degraded
ONNX_CPU_THREADS = None  # None -> physical core count

# Records
RECORD_STORE_PATH = "ppg_records.csv"
RECORD_INTERVAL_SEC = 10
DEFAULT_SUBJECT_ID = "unknown"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVEL = "INFO"
