"""
Core data models for the auto-tagging pipeline.

Immutable domain models for decoded audio and analysis results, plus the
persisted file record the reconciliation pass reads and patches.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import numpy as np


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp used for every stored time."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PcmSource:
    """
    Decoded mono audio owned by a single pipeline run.

    The sample buffer is made read-only on construction so analyzers
    running concurrently cannot mutate what the others see.
    """

    samples: np.ndarray  # Shape: (n_samples,), float32 in [-1, 1]
    sample_rate: int

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")
        samples = np.asarray(self.samples, dtype=np.float32).reshape(-1).view()
        samples.flags.writeable = False
        object.__setattr__(self, "samples", samples)

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return len(self.samples) / self.sample_rate

    @property
    def is_empty(self) -> bool:
        return len(self.samples) == 0

    def head(self, seconds: float) -> "PcmSource":
        """Return a view over the first `seconds` of audio."""
        n = int(round(seconds * self.sample_rate))
        if n >= len(self.samples):
            return self
        return PcmSource(samples=self.samples[:max(0, n)], sample_rate=self.sample_rate)


@dataclass(frozen=True)
class LevelFeatures:
    """Loudness, brightness and percussiveness of a signal."""

    loudness: float  # dB
    brightness: float  # [0.0, 1.0]
    percussive: float  # [0.0, 1.0]

    def __post_init__(self) -> None:
        validate_unit(self.brightness, "brightness")
        validate_unit(self.percussive, "percussive")


@dataclass(frozen=True)
class TempoEstimate:
    """Autocorrelation tempo estimate with octave alternates."""

    bpm: Optional[float]
    confidence: float  # [0.0, 1.0]
    bpm_norm: Optional[int]
    alt_bpms: List[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        validate_unit(self.confidence, "confidence")

    @classmethod
    def empty(cls) -> "TempoEstimate":
        return cls(bpm=None, confidence=0.0, bpm_norm=None, alt_bpms=[])


@dataclass(frozen=True)
class KeyEstimate:
    """Musical key estimate ("C", "F#m", ...)."""

    key: Optional[str]
    mode: Optional[str]  # "major" / "minor"
    confidence: float  # [0.0, 1.0]

    def __post_init__(self) -> None:
        validate_unit(self.confidence, "confidence")

    @classmethod
    def empty(cls) -> "KeyEstimate":
        return cls(key=None, mode=None, confidence=0.0)


@dataclass(frozen=True)
class TagResult:
    """Output of the tag rule table."""

    tags: List[str]
    type_guess: Optional[str]


# Fields of the auto blob, in the order they are written
AUTO_FIELDS = (
    "loudness", "brightness", "percussive",
    "bpm", "bpm_confidence", "bpm_norm", "alt_bpms",
    "key", "key_confidence",
    "tags", "type_guess", "duration",
)


@dataclass(frozen=True)
class AnalysisResult:
    """
    The "auto" blob produced once per analysis run.

    A degraded run (decode failure) only carries `analyzed_at`; every
    derived field stays None and is left out of `to_dict()`.
    """

    analyzed_at: datetime = field(default_factory=utcnow)
    loudness: Optional[float] = None
    brightness: Optional[float] = None
    percussive: Optional[float] = None
    bpm: Optional[float] = None
    bpm_confidence: Optional[float] = None
    bpm_norm: Optional[int] = None
    alt_bpms: Optional[List[int]] = None
    key: Optional[str] = None
    key_confidence: Optional[float] = None
    tags: Optional[List[str]] = None
    type_guess: Optional[str] = None
    duration: Optional[float] = None

    @property
    def is_degraded(self) -> bool:
        return all(getattr(self, name) is None for name in AUTO_FIELDS)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the dictionary stored under `record.auto`."""
        if self.is_degraded:
            return {"analyzed_at": self.analyzed_at}

        data: Dict[str, Any] = {"analyzed_at": self.analyzed_at}
        for name in AUTO_FIELDS:
            value = getattr(self, name)
            data[name] = list(value) if isinstance(value, list) else value
        return data


@dataclass
class FileRecord:
    """
    User-owned metadata record for one uploaded file.

    `bpm`, `key` and `type` belong to the user; the pipeline only fills
    them while they are empty. Generation stamps keep the reactive
    reconciliation pass from re-applying its own writes.
    """

    bpm: Optional[float] = None
    key: Optional[str] = None
    type: Optional[str] = None
    type_auto: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    auto: Optional[Dict[str, Any]] = None
    analyzed_at: Optional[datetime] = None
    analyzed_gen: Optional[str] = None
    auto_applied_gen: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "FileRecord":
        data = data or {}
        tags = data.get("tags")
        return cls(
            bpm=data.get("bpm"),
            key=data.get("key"),
            type=data.get("type"),
            type_auto=data.get("type_auto"),
            tags=list(tags) if isinstance(tags, list) else [],
            auto=data.get("auto"),
            analyzed_at=data.get("analyzed_at"),
            analyzed_gen=data.get("analyzed_gen"),
            auto_applied_gen=data.get("auto_applied_gen"),
            updated_at=data.get("updated_at"),
        )


@dataclass(frozen=True)
class UploadEvent:
    """A finalized object in the upload bucket."""

    object_path: str
    content_type: str = ""
    bucket: Optional[str] = None


@dataclass(frozen=True)
class UploadTarget:
    """Where the analysis of an upload is recorded."""

    owner_id: str
    file_id: str

    @property
    def record_key(self) -> str:
        return f"users/{self.owner_id}/files/{self.file_id}"


# Validation helpers

def validate_unit(value: float, name: str = "value") -> None:
    """Validate a score is in [0.0, 1.0]."""
    if not (0.0 <= value <= 1.0):
        raise ValueError(f"{name} must be in [0.0, 1.0], got {value}")
