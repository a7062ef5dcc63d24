"""
Level analyzer for the auto-tagging pipeline.

Cheap time-domain descriptors: loudness, brightness and percussiveness.
"""

import numpy as np

from autotag.core.analyzer_base import BaseAnalyzer
from autotag.core.dsp import clamp_unit, moving_average, rms
from autotag.core.models import LevelFeatures, PcmSource

# Floor added before the log so digital silence stays finite (-160 dB)
LOUDNESS_EPSILON = 1e-8
BRIGHTNESS_SCALE = 4.0


class LevelsAnalyzer(BaseAnalyzer[LevelFeatures]):
    """
    Time-domain level analysis.

    Analyzes:
    - Loudness: RMS in dB
    - Brightness: mean absolute first difference, a zero-order proxy
      for high-frequency energy
    - Percussiveness: share of rising samples in a short envelope,
      a proxy for transient density
    """

    def __init__(self, envelope_seconds: float = 0.01):
        """
        Initialize level analyzer.

        Args:
            envelope_seconds: Moving-average window for the envelope
        """
        super().__init__("levels", "1.0.0")
        self.envelope_seconds = envelope_seconds

    def _analyze_impl(self, pcm: PcmSource) -> LevelFeatures:
        samples = pcm.samples
        if pcm.is_empty:
            return LevelFeatures(loudness=0.0, brightness=0.0, percussive=0.0)

        return LevelFeatures(
            loudness=self._loudness(samples),
            brightness=self._brightness(samples),
            percussive=self._percussiveness(samples, pcm.sample_rate),
        )

    def _loudness(self, samples: np.ndarray) -> float:
        return round(float(20.0 * np.log10(rms(samples) + LOUDNESS_EPSILON)), 2)

    def _brightness(self, samples: np.ndarray) -> float:
        if len(samples) < 2:
            return 0.0
        diff = np.abs(np.diff(samples.astype(np.float64)))
        # Normalised by the full length, matching a per-sample flux average
        flux = float(diff.sum()) / len(samples)
        return round(clamp_unit(flux * BRIGHTNESS_SCALE), 3)

    def _percussiveness(self, samples: np.ndarray, sample_rate: int) -> float:
        window = max(1, int(round(sample_rate * self.envelope_seconds)))
        env = moving_average(samples, window)
        rises = int(np.count_nonzero(env[1:] > env[:-1]))
        return round(clamp_unit(rises / len(env)), 3)
