"""
Audio decoder for the auto-tagging pipeline.

Turns an uploaded audio object (path or binary stream) into mono PCM at a
fixed sample rate, truncated to a bounded duration.
"""

import logging
from pathlib import Path
from typing import Any, BinaryIO, Dict, Optional, Union

import librosa
import numpy as np
import soundfile as sf

from autotag.core.models import PcmSource
from autotag.utils.errors import DecodeError

TARGET_SAMPLE_RATE: int = 22050  # Hz
MAX_DURATION: float = 60.0  # seconds

AudioSource = Union[str, Path, BinaryIO]

logger = logging.getLogger("decoder")


class AudioDecoder:
    """
    Decodes audio into a PcmSource.

    Thread-safe and stateless - can be used concurrently.
    """

    def __init__(
        self,
        target_sr: int = TARGET_SAMPLE_RATE,
        max_duration: float = MAX_DURATION,
    ):
        """
        Initialize decoder with configuration.

        Args:
            target_sr: Target sample rate for resampling
            max_duration: Seconds of audio decoded from the start of the file
        """
        self.target_sr = target_sr
        self.max_duration = max_duration

    def decode(self, source: AudioSource) -> PcmSource:
        """
        Decode audio to mono float32 PCM.

        Args:
            source: File path or readable binary stream

        Returns:
            PcmSource: Decoded audio (possibly empty)

        Raises:
            DecodeError: The source could not be turned into PCM
        """
        name = _source_name(source)
        if isinstance(source, (str, Path)) and not Path(source).exists():
            raise DecodeError(f"Audio file not found: {name}", source=name)

        try:
            audio_data, sample_rate = librosa.load(
                str(source) if isinstance(source, Path) else source,
                sr=self.target_sr,
                mono=True,
                duration=self.max_duration,
                dtype=np.float32,
            )
        except Exception as e:
            raise DecodeError(f"Failed to decode audio from {name}: {e}", source=name) from e

        audio_data = self._validate_audio_data(audio_data, name)
        logger.info(
            f"Decoded {name}: {len(audio_data) / sample_rate:.2f}s @ {sample_rate} Hz"
        )
        return PcmSource(samples=audio_data, sample_rate=int(sample_rate))

    def _validate_audio_data(self, audio_data: np.ndarray, name: str) -> np.ndarray:
        """Keep samples inside [-1, 1] and flag degenerate signals."""
        if audio_data.size == 0:
            logger.warning(f"Audio decoded to zero samples: {name}")
            return audio_data

        if not np.all(np.isfinite(audio_data)):
            raise DecodeError(f"Audio contains non-finite samples: {name}", source=name)

        max_abs = float(np.max(np.abs(audio_data)))
        if max_abs < 1e-6:
            logger.warning(f"Audio appears to be silent: {name}")
        elif max_abs > 1.0:
            logger.warning(
                f"Audio contains clipping (max: {max_abs:.2f}), normalizing: {name}"
            )
            audio_data = audio_data / max_abs

        return audio_data.astype(np.float32, copy=False)

    def read_info(self, path: Union[str, Path]) -> Dict[str, Any]:
        """
        Read container metadata without decoding.

        Returns:
            Dict with sample_rate, channels, duration and subtype

        Raises:
            DecodeError: soundfile cannot read the container
        """
        try:
            info = sf.info(str(path))
        except Exception as e:
            raise DecodeError(f"Could not read metadata from {path}: {e}", source=str(path)) from e

        return {
            'sample_rate': info.samplerate,
            'channels': info.channels,
            'duration': info.duration,
            'subtype': info.subtype,
        }

    def container_duration(self, path: Union[str, Path]) -> float:
        """Container duration in seconds (not capped at max_duration)."""
        return float(self.read_info(path)['duration'])


def _source_name(source: AudioSource) -> str:
    if isinstance(source, (str, Path)):
        return str(source)
    return getattr(source, "name", None) or "<stream>"


def create_audio_decoder(config: Optional[Dict[str, Any]] = None) -> AudioDecoder:
    """
    Factory function to create AudioDecoder with configuration.

    Args:
        config: Optional `audio` configuration section

    Returns:
        AudioDecoder: Configured decoder instance
    """
    if config is None:
        config = {}

    return AudioDecoder(
        target_sr=config.get('target_sample_rate', TARGET_SAMPLE_RATE),
        max_duration=config.get('max_duration', MAX_DURATION),
    )
