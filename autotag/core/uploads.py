"""
Upload routing for the auto-tagging pipeline.

Decides whether a finalized object is a user audio file worth analysing
and where its record lives. Objects are addressed as
``users/{owner}/files/{file}/{name}``.
"""

import logging
from typing import Iterable, Optional

from autotag.core.models import UploadEvent, UploadTarget

PREVIEW_FILENAME = "preview.mp3"
AUDIO_EXTENSIONS = (
    ".wav", ".wave", ".aif", ".aiff", ".flac",
    ".mp3", ".m4a", ".aac", ".ogg", ".oga",
)

logger = logging.getLogger("uploads")


def is_audio(object_path: str, content_type: str,
             extensions: Iterable[str] = AUDIO_EXTENSIONS) -> bool:
    """True when the MIME type or the file extension says audio."""
    if (content_type or "").lower().startswith("audio/"):
        return True
    lowered = object_path.lower()
    return any(lowered.endswith(ext.lower()) for ext in extensions)


def is_preview(object_path: str, preview_filename: str = PREVIEW_FILENAME) -> bool:
    """Generated previews sit next to the original and are never analysed."""
    return object_path.lower().endswith("/" + preview_filename.lower())


def parse_upload(
    event: UploadEvent,
    preview_filename: str = PREVIEW_FILENAME,
    extensions: Iterable[str] = AUDIO_EXTENSIONS,
) -> Optional[UploadTarget]:
    """
    Route an upload to its record, or return None to skip it.

    Args:
        event: The finalized object
        preview_filename: Reserved filename that is always skipped
        extensions: File extensions accepted as audio

    Returns:
        UploadTarget or None
    """
    path = event.object_path or ""

    if is_preview(path, preview_filename):
        logger.debug(f"Skipping generated preview: {path}")
        return None

    if not is_audio(path, event.content_type, extensions):
        logger.debug(f"Skipping non-audio object: {path} ({event.content_type})")
        return None

    parts = path.split("/")
    if len(parts) < 5 or parts[0] != "users" or parts[2] != "files":
        logger.debug(f"Skipping object outside users/*/files/*: {path}")
        return None
    if not parts[1] or not parts[3]:
        return None

    return UploadTarget(owner_id=parts[1], file_id=parts[3])
