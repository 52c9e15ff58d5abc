"""
Audio intake: allow-list validation and decoding.

Turns a raw byte buffer plus its asserted MIME type / filename into a mono
sample buffer the playback graph can play and analyse.
"""

import io
import logging
from dataclasses import dataclass
from pathlib import PurePath

import librosa
import numpy as np

from pulsescope.errors import DecodeError, UnsupportedFormatError

logger = logging.getLogger(__name__)

SUPPORTED_AUDIO_TYPES = (
    "audio/mpeg",
    "audio/wav",
    "audio/wave",
    "audio/x-wav",
)

SUPPORTED_AUDIO_EXTENSIONS = (".mp3", ".wav")


@dataclass
class DecodedAudio:
    """Decoded mono sample buffer."""

    samples: np.ndarray
    sample_rate: int
    duration: float

    @property
    def n_samples(self) -> int:
        """Total number of samples in the buffer."""
        return len(self.samples)


def is_supported(mime_type: str | None = None, filename: str | None = None) -> bool:
    """
    Check a declared type against the allow-list.

    The MIME type is checked first; the filename extension is the fallback.
    """
    if mime_type and mime_type.lower() in SUPPORTED_AUDIO_TYPES:
        return True
    if filename:
        suffix = PurePath(filename.lower()).suffix
        return suffix in SUPPORTED_AUDIO_EXTENSIONS
    return False


def validate_type(mime_type: str | None = None, filename: str | None = None):
    """Raise UnsupportedFormatError unless the declared type is allowed."""
    if not is_supported(mime_type, filename):
        raise UnsupportedFormatError(
            f"Unsupported file type (mime={mime_type!r}, name={filename!r}). "
            "Please use MP3 or WAV files."
        )


def decode_audio(data: bytes, sr: int | None = None) -> DecodedAudio:
    """
    Decode an in-memory audio file.

    Args:
        data: Encoded file contents (wav, mp3).
        sr: Target sample rate. None preserves the file's rate.

    Returns:
        DecodedAudio with float32 mono samples.

    Raises:
        DecodeError: If the bytes cannot be parsed as audio.
    """
    if not data:
        raise DecodeError("Audio buffer is empty")

    try:
        y, sr_out = librosa.load(io.BytesIO(data), sr=sr, mono=True)
    except Exception as e:
        raise DecodeError(f"Failed to decode audio: {e}") from e

    if y.size == 0:
        raise DecodeError("Decoded audio contains no samples")

    duration = float(librosa.get_duration(y=y, sr=sr_out))
    logger.debug("Decoded %d samples @ %d Hz (%.2fs)", y.size, sr_out, duration)

    return DecodedAudio(
        samples=np.ascontiguousarray(y, dtype=np.float32),
        sample_rate=int(sr_out),
        duration=duration,
    )
