"""
Per-frame PPG scalar from a handful of fixed sample points.
"""
import numpy as np

# (x, y) as fractions of frame width/height
SAMPLE_POINTS = ((0.2, 0.2), (0.8, 0.2), (0.5, 0.5), (0.2, 0.8), (0.8, 0.8))

# (r, g, b) weights applied to the summed sample-point colours
CHANNEL_COMBINATIONS = {
    "redOnly": (1.0, 0.0, 0.0),
    "greenOnly": (0.0, 1.0, 0.0),
    "blueOnly": (0.0, 0.0, 1.0),
    "redMinusBlue": (1.0, 0.0, -1.0),
    "custom": (3.0, -1.0, -1.0),
    "default": (2.0, -1.0, -1.0),
}


def sample_points_rgb(frame, points=SAMPLE_POINTS, bgr=False):
    """Return an (n, 3) RGB array of the in-bounds sample points."""
    arr = np.asarray(frame)
    if arr.ndim != 3 or arr.shape[2] < 3:
        raise ValueError(f"expected an HxWx3 frame, got shape {arr.shape}")
    h, w = arr.shape[:2]
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    xs = np.floor(pts[:, 0] * w).astype(int)
    ys = np.floor(pts[:, 1] * h).astype(int)
    ok = (xs >= 0) & (xs < w) & (ys >= 0) & (ys < h)
    pixels = arr[ys[ok], xs[ok], :3].astype(np.float64)
    if bgr:
        pixels = pixels[:, ::-1]  # BGR->RGB
    return pixels


class FrameSampler:
    def __init__(self, combination="default", bgr=False, points=SAMPLE_POINTS):
        if combination not in CHANNEL_COMBINATIONS:
            raise ValueError(f"unknown channel combination {combination!r}; expected one of {sorted(CHANNEL_COMBINATIONS)}")
        self.combination = combination
        self.weights = np.asarray(CHANNEL_COMBINATIONS[combination], dtype=np.float64)
        self.bgr = bgr
        self.points = points

    def sample(self, frame):
        """Scalar for one frame, or None when no sample point falls inside it."""
        pixels = sample_points_rgb(frame, self.points, self.bgr)
        if len(pixels) == 0:
            return None
        return float(self.weights @ pixels.sum(axis=0) / len(pixels))

    __call__ = sample
