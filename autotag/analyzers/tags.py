"""
Rule-based tagging for the auto-tagging pipeline.

A deterministic rule table turning level, tempo and key estimates into
a short tag list and a coarse content-type guess.
"""

from typing import List, Optional

from autotag.core.models import TagResult

MAX_TAGS = 12

# Inclusive BPM ranges; a tempo may match several
GENRE_BPM_RANGES = (
    ("house", 124, 132),
    ("techno", 128, 138),
    ("dubstep", 138, 146),
    ("trap", 68, 76),
    ("hiphop", 88, 96),
    ("dnb", 170, 176),
)

BRIGHT_THRESHOLD = 0.55
PERCUSSIVE_THRESHOLD = 0.6
DRUM_LOOP_THRESHOLD = 0.65

ONE_SHOT_MAX_SECONDS = 3.0
LOOP_MAX_SECONDS = 65.0
DEMO_MIN_SECONDS = 120.0


def tempo_bucket(bpm: float) -> str:
    if bpm < 90:
        return "slow"
    if bpm <= 120:
        return "mid"
    if bpm <= 150:
        return "fast"
    return "very-fast"


def genre_hints(bpm: float) -> List[str]:
    """Genre-ish tags purely from BPM (very rough)."""
    return [name for name, low, high in GENRE_BPM_RANGES if low <= bpm <= high]


def guess_type(duration: float, percussive: float) -> Optional[str]:
    if duration <= LOOP_MAX_SECONDS:
        return "drum-loop" if percussive >= DRUM_LOOP_THRESHOLD else "melody-loop"
    if duration >= DEMO_MIN_SECONDS:
        return "demo"
    return None


def apply_tag_rules(
    duration: float,
    percussive: float,
    brightness: float,
    bpm_norm: Optional[float],
    key: Optional[str] = None,
) -> TagResult:
    """
    Build the tag list and type guess for one analysis.

    Tags are de-duplicated in first-seen order and capped at MAX_TAGS.
    """
    tags: List[str] = []

    if bpm_norm is not None:
        tags.append(tempo_bucket(bpm_norm))
        tags.append(f"tempo-{_format_bpm(bpm_norm)}bpm")
        tags.extend(genre_hints(bpm_norm))

    tags.append("bright" if brightness > BRIGHT_THRESHOLD else "dark")
    tags.append("percussive" if percussive > PERCUSSIVE_THRESHOLD else "harmonic")

    if duration <= ONE_SHOT_MAX_SECONDS and percussive > PERCUSSIVE_THRESHOLD:
        tags.append("one-shot")
    if duration <= LOOP_MAX_SECONDS:
        tags.append("loop")
    elif duration >= DEMO_MIN_SECONDS:
        tags.append("demo")

    if key:
        tags.append(f"key-{key}")

    return TagResult(
        tags=list(dict.fromkeys(tags))[:MAX_TAGS],
        type_guess=guess_type(duration, percussive),
    )


def _format_bpm(bpm: float) -> str:
    # 128.0 -> "128"
    return str(int(bpm)) if float(bpm).is_integer() else str(bpm)
