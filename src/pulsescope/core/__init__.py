"""Audio playback and beat analysis."""

from pulsescope.core.decoder import DecodedAudio, decode_audio, is_supported
from pulsescope.core.detector import (
    BeatDetector,
    BeatEvent,
    BeatHistory,
    FeatureExtractor,
    FrameFeatures,
    FrequencyBands,
)
from pulsescope.core.graph import Analyser, AudioGraph, NullSink, SoundDeviceSink
from pulsescope.core.playback import PlaybackClock, PlaybackEngine, PlaybackState

__all__ = [
    "DecodedAudio",
    "decode_audio",
    "is_supported",
    "BeatDetector",
    "BeatEvent",
    "BeatHistory",
    "FeatureExtractor",
    "FrameFeatures",
    "FrequencyBands",
    "Analyser",
    "AudioGraph",
    "NullSink",
    "SoundDeviceSink",
    "PlaybackClock",
    "PlaybackEngine",
    "PlaybackState",
]
