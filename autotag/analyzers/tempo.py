"""
Tempo analyzer for the auto-tagging pipeline.

Estimates BPM by autocorrelating an onset novelty curve.

Autocorrelation tempo estimates are prone to octave errors (reporting
twice or half the true tempo), so the result also carries a normalized
value and half/double alternates for downstream correction.
"""

from typing import List, Tuple

import numpy as np

from autotag.core.analyzer_base import BaseAnalyzer
from autotag.core.dsp import clamp_unit, moving_average, normalize_bpm, round_half_up
from autotag.core.models import PcmSource, TempoEstimate

# Octave alternates are only offered inside this range
ALT_MIN_BPM = 50.0
ALT_MAX_BPM = 220.0


class TempoAnalyzer(BaseAnalyzer[TempoEstimate]):
    """
    Novelty-curve autocorrelation tempo estimation.

    Steps:
    1. ~20 ms moving-average envelope of |x|
    2. Half-wave rectified first difference (onset novelty)
    3. Decimation to a fixed analysis rate (200 Hz)
    4. Autocorrelation over lags covering min_bpm..max_bpm
    """

    def __init__(
        self,
        max_seconds: float = 60.0,
        envelope_seconds: float = 0.02,
        target_rate: int = 200,
        min_bpm: float = 60.0,
        max_bpm: float = 200.0,
    ):
        super().__init__("tempo", "1.0.0")
        self.max_seconds = max_seconds
        self.envelope_seconds = envelope_seconds
        self.target_rate = target_rate
        self.min_bpm = min_bpm
        self.max_bpm = max_bpm

    def _analyze_impl(self, pcm: PcmSource) -> TempoEstimate:
        pcm = pcm.head(self.max_seconds)
        if pcm.is_empty:
            return TempoEstimate.empty()

        novelty = self._novelty_curve(pcm)
        factor = max(1, pcm.sample_rate // self.target_rate)
        # Decimate by picking every factor-th sample
        ds = novelty[: (len(novelty) // factor) * factor : factor]

        energy = float(np.dot(ds, ds))
        if energy <= 0.0:
            self.logger.debug("No onset energy, tempo undefined")
            return TempoEstimate.empty()

        lag, value = self._best_lag(ds)
        if lag <= 0 or value <= 0.0:
            return TempoEstimate.empty()

        raw = 60.0 * self.target_rate / lag
        confidence = round(clamp_unit(value / energy), 2)
        bpm_norm = normalize_bpm(raw)

        return TempoEstimate(
            bpm=round(raw, 2),
            confidence=confidence,
            bpm_norm=bpm_norm,
            alt_bpms=self._alternates(raw, bpm_norm),
        )

    def _novelty_curve(self, pcm: PcmSource) -> np.ndarray:
        window = max(1, round_half_up(pcm.sample_rate * self.envelope_seconds))
        env = moving_average(pcm.samples, window)
        novelty = np.zeros_like(env)
        if len(env) > 1:
            novelty[1:] = np.maximum(0.0, np.diff(env))
        return novelty

    def _best_lag(self, ds: np.ndarray) -> Tuple[int, float]:
        """Return (lag, correlation) maximising sum(ds[i] * ds[i - lag])."""
        min_lag = round_half_up(self.target_rate * 60.0 / self.max_bpm)
        max_lag = round_half_up(self.target_rate * 60.0 / self.min_bpm)

        best_lag, best_val = -1, -np.inf
        for lag in range(max(1, min_lag), max_lag + 1):
            if lag >= len(ds):
                value = 0.0
            else:
                value = float(np.dot(ds[lag:], ds[:-lag]))
            # Strict comparison keeps the shortest lag on ties
            if value > best_val:
                best_lag, best_val = lag, value
        return best_lag, best_val

    def _alternates(self, raw: float, bpm_norm: int) -> List[int]:
        candidates = [bpm_norm]
        if raw * 0.5 >= ALT_MIN_BPM:
            candidates.append(round_half_up(raw * 0.5))
        if raw * 2.0 <= ALT_MAX_BPM:
            candidates.append(round_half_up(raw * 2.0))
        # Ordered de-duplication
        return list(dict.fromkeys(candidates))
