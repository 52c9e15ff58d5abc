"""External encoders."""

from pulsescope.io.encoder import QUALITY_PRESETS, encode_video, ffmpeg_available

__all__ = ["QUALITY_PRESETS", "encode_video", "ffmpeg_available"]
