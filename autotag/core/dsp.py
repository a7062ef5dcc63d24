"""
Small DSP helpers shared by the analyzers.

All functions are pure and operate on 1-D numpy arrays.
"""

import math
from typing import Optional

import numpy as np

# Tempo window that normalized BPM values are folded into: [60, 180)
NORM_MIN_BPM = 60.0
NORM_MAX_BPM = 180.0


def rms(samples: np.ndarray) -> float:
    """Root-mean-square amplitude (0.0 for empty input)."""
    if len(samples) == 0:
        return 0.0
    x = samples.astype(np.float64)
    return float(np.sqrt(np.mean(x * x)))


def moving_average(samples: np.ndarray, window: int) -> np.ndarray:
    """
    Causal moving average of |samples|.

    out[i] averages the last `window` magnitudes, or the first i + 1 of
    them while the window is still filling.
    """
    window = max(1, int(window))
    mags = np.abs(samples.astype(np.float64))
    if len(mags) == 0:
        return mags

    csum = np.cumsum(mags)
    acc = csum.copy()
    acc[window:] = csum[window:] - csum[:-window]
    counts = np.minimum(np.arange(1, len(mags) + 1), window)
    return acc / counts


def clamp_unit(value: float) -> float:
    """Clamp to [0, 1]; NaN maps to 0."""
    if not np.isfinite(value):
        return 0.0 if np.isnan(value) else float(value > 0)
    return float(min(1.0, max(0.0, value)))


def round_half_up(value: float) -> int:
    """Nearest integer, with .5 going up (2.5 -> 3) rather than to even."""
    return int(math.floor(value + 0.5))


def normalize_bpm(bpm: Optional[float]) -> Optional[int]:
    """
    Fold a tempo into [60, 180) by octave steps and round it.

    Values already in range come back rounded, so integer BPMs in range
    are fixed points.
    """
    if bpm is None:
        return None
    if not np.isfinite(bpm) or bpm <= 0:
        raise ValueError(f"BPM must be a positive finite number, got {bpm}")

    x = float(bpm)
    while x >= NORM_MAX_BPM:
        x *= 0.5
    while x < NORM_MIN_BPM:
        x *= 2.0

    folded = round_half_up(x)
    if folded >= NORM_MAX_BPM:
        # 179.5 and up rounds onto the boundary
        folded = round_half_up(folded / 2.0)
    return folded
