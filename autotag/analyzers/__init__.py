"""
Analyzer implementations for the auto-tagging pipeline.
"""

from autotag.analyzers.levels import LevelsAnalyzer
from autotag.analyzers.tempo import TempoAnalyzer
from autotag.analyzers.key import KeyAnalyzer
from autotag.analyzers.tags import apply_tag_rules, genre_hints

__all__ = [
    "LevelsAnalyzer",
    "TempoAnalyzer",
    "KeyAnalyzer",
    "apply_tag_rules",
    "genre_hints",
]
