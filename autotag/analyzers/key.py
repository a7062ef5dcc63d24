"""
Key analyzer for the auto-tagging pipeline.

Lightweight key detection:
- Harmonic Product Spectrum per frame to find a likely fundamental
- Pitch classes of the fundamental and its harmonics accumulate into chroma
- Krumhansl-Schmuckler template matching picks root and mode
"""

from typing import Optional, Tuple

import librosa
import numpy as np

from autotag.core.analyzer_base import BaseAnalyzer
from autotag.core.dsp import clamp_unit
from autotag.core.models import KeyEstimate, PcmSource

NOTE_NAMES = ['C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B']

# Key profiles (Krumhansl-Schmuckler)
MAJOR_PROFILE = np.array([6.35, 2.23, 3.48, 2.33, 4.38, 4.09, 2.52, 5.19, 2.39, 3.66, 2.29, 2.88])
MINOR_PROFILE = np.array([6.33, 2.68, 3.52, 5.38, 2.60, 3.53, 2.54, 4.75, 3.98, 2.69, 3.34, 3.17])

_MAJOR_NORM = MAJOR_PROFILE / np.linalg.norm(MAJOR_PROFILE)
_MINOR_NORM = MINOR_PROFILE / np.linalg.norm(MINOR_PROFILE)

# Magnitude floor inside the harmonic product
HPS_FLOOR = 1e-9
# Harmonics of the detected fundamental folded into chroma
CHROMA_HARMONICS = 4


def harmonic_product_spectrum(mag: np.ndarray, harmonics: int = 5) -> np.ndarray:
    """
    out[i] = prod(mag[i * h] for h in 1..harmonics), zero bins floored.

    Bins whose harmonics are also strong are reinforced, which
    suppresses octave ambiguity in the peak pick.
    """
    length = len(mag) // harmonics
    floored = np.where(mag > 0, mag, HPS_FLOOR).astype(np.float64)
    out = floored[:length].copy()
    for h in range(2, harmonics + 1):
        out *= floored[::h][:length]
    return out


class KeyAnalyzer(BaseAnalyzer[KeyEstimate]):
    """HPS + chroma template key estimation over the first seconds of audio."""

    def __init__(
        self,
        max_seconds: float = 12.0,
        frame_size: int = 4096,
        hop_size: int = 2048,
        min_freq: float = 50.0,
        max_freq: float = 1400.0,
        max_frames: int = 20,
        harmonics: int = 5,
    ):
        super().__init__("key", "1.0.0")
        self.max_seconds = max_seconds
        self.frame_size = frame_size
        self.hop_size = hop_size
        self.min_freq = min_freq
        self.max_freq = max_freq
        self.max_frames = max_frames
        self.harmonics = harmonics
        self._window = np.hanning(frame_size)
        # HPS value of a bin whose harmonics are all floored
        self._floor_product = HPS_FLOOR
        for _ in range(2, harmonics + 1):
            self._floor_product *= HPS_FLOOR

    def _analyze_impl(self, pcm: PcmSource) -> KeyEstimate:
        pcm = pcm.head(self.max_seconds)
        data = pcm.samples
        if len(data) < self.frame_size:
            return KeyEstimate.empty()

        chroma = self._accumulate_chroma(data, pcm.sample_rate)
        if chroma.sum() <= 0:
            return KeyEstimate.empty()

        root, mode, score, chroma_norm = self._match_templates(chroma)
        mean = float(chroma_norm.mean())
        confidence = clamp_unit((score - mean) / (1.0 - mean))

        return KeyEstimate(
            key=NOTE_NAMES[root] + ("m" if mode == "minor" else ""),
            mode=mode,
            confidence=round(confidence, 2),
        )

    def _accumulate_chroma(self, data: np.ndarray, sample_rate: int) -> np.ndarray:
        chroma = np.zeros(12)
        n_frames = min(
            self.max_frames,
            (len(data) - self.frame_size) // self.hop_size + 1,
        )

        for f in range(n_frames):
            start = f * self.hop_size
            frame = data[start:start + self.frame_size] * self._window
            f0 = self._frame_fundamental(frame, sample_rate)
            if f0 is None:
                continue

            for h in range(1, CHROMA_HARMONICS + 1):
                freq = f0 * h
                if freq > self.max_freq:
                    break
                chroma[self._pitch_class(freq)] += 1.0

        return chroma

    def _frame_fundamental(self, frame: np.ndarray, sample_rate: int) -> Optional[float]:
        n = self.frame_size
        mag = np.abs(np.fft.rfft(frame))[: n // 2]
        spec = harmonic_product_spectrum(mag, self.harmonics)
        if len(spec) < 2:
            return None

        bin_hz = sample_rate / n
        min_bin = max(1, int(np.floor(self.min_freq / bin_hz)))
        max_bin = min(len(spec) - 1, int(np.floor(self.max_freq / bin_hz)))
        if max_bin < min_bin:
            return None

        band = spec[min_bin:max_bin + 1]
        best = int(np.argmax(band))
        best_val = float(band[best])
        # Nothing rose above the floor: silent frame
        if not np.isfinite(best_val) or best_val <= self._floor_product:
            return None

        f0 = (min_bin + best) * bin_hz
        if not np.isfinite(f0) or f0 <= 0:
            return None
        return f0

    @staticmethod
    def _pitch_class(freq: float) -> int:
        midi = int(np.round(librosa.hz_to_midi(freq)))
        return midi % 12

    @staticmethod
    def _match_templates(chroma: np.ndarray) -> Tuple[int, str, float, np.ndarray]:
        """Return (root, mode, score, normalised chroma) of the best template."""
        chroma_norm = chroma / (np.linalg.norm(chroma) or 1.0)

        best_root, best_mode, best_score = 0, "major", -np.inf
        for i in range(12):
            # Roll the profile so its tonic weight lands on pitch class i
            maj_s = float(np.dot(np.roll(_MAJOR_NORM, i), chroma_norm))
            if maj_s > best_score:
                best_root, best_mode, best_score = i, "major", maj_s
            min_s = float(np.dot(np.roll(_MINOR_NORM, i), chroma_norm))
            if min_s > best_score:
                best_root, best_mode, best_score = i, "minor", min_s

        return best_root, best_mode, best_score, chroma_norm
