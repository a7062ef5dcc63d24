"""Shared fixtures: synthetic signals and an in-memory record store."""

import numpy as np
import pytest

from autotag.core.models import PcmSource
from autotag.core.store import InMemoryDocumentStore

SAMPLE_RATE = 22050


# ---------------------------------------------------------------------------
# Signal builders
# ---------------------------------------------------------------------------


def click_train(bpm: float = 120.0, seconds: float = 10.0,
                sample_rate: int = SAMPLE_RATE, burst_seconds: float = 0.02) -> np.ndarray:
    """Full-scale rectangular bursts, one per beat."""
    samples = np.zeros(int(seconds * sample_rate), dtype=np.float32)
    period = int(round(sample_rate * 60.0 / bpm))
    burst = int(round(sample_rate * burst_seconds))
    for start in range(0, len(samples), period):
        samples[start:start + burst] = 1.0
    return samples


def harmonic_tone(f0: float, seconds: float = 2.0, sample_rate: int = SAMPLE_RATE,
                  harmonics: int = 5) -> np.ndarray:
    """Sum of the first harmonics of f0 with 1/h amplitudes, peak 0.8."""
    t = np.arange(int(seconds * sample_rate)) / sample_rate
    signal = sum(np.sin(2 * np.pi * f0 * h * t) / h for h in range(1, harmonics + 1))
    return (0.8 * signal / np.max(np.abs(signal))).astype(np.float32)


def ramp_train(period: int = 1000, seconds: float = 2.0,
               sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Repeating 0 -> 1 ramps: an envelope that mostly rises."""
    n = int(seconds * sample_rate)
    return ((np.arange(n) % period) / period).astype(np.float32)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def silence() -> PcmSource:
    return PcmSource(samples=np.zeros(2 * SAMPLE_RATE, dtype=np.float32),
                     sample_rate=SAMPLE_RATE)


@pytest.fixture
def clicks_120() -> PcmSource:
    return PcmSource(samples=click_train(120.0), sample_rate=SAMPLE_RATE)


@pytest.fixture
def a_tone() -> PcmSource:
    # Fundamental sits exactly on FFT bin 41 of a 4096-point frame (~220.7 Hz)
    f0 = 41 * SAMPLE_RATE / 4096
    return PcmSource(samples=harmonic_tone(f0), sample_rate=SAMPLE_RATE)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(max_attempts=3)


@pytest.fixture
def make_click_train():
    return click_train


@pytest.fixture
def make_tone():
    return harmonic_tone


@pytest.fixture
def make_ramp_train():
    return ramp_train
