"""
autotag - audio auto-tagging and metadata reconciliation

Derives loudness, brightness, percussiveness, tempo, key, tags and a
coarse content type from uploaded audio, and reconciles those guesses
into user-owned file records without overwriting user-set values.
"""

__version__ = "1.0.0"
