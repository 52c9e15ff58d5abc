"""Real-time beat-reactive audio visualizer."""

from pulsescope.clock import FrameHost, ManualClock, MonotonicClock
from pulsescope.config import SceneConfig, load_scene
from pulsescope.core.detector import BeatDetector, FeatureExtractor
from pulsescope.core.playback import PlaybackEngine, PlaybackState
from pulsescope.export import VideoExporter
from pulsescope.pipeline import ReactivePipeline
from pulsescope.render.renderer import Renderer

__version__ = "0.1.0"
__all__ = [
    "FrameHost",
    "ManualClock",
    "MonotonicClock",
    "SceneConfig",
    "load_scene",
    "BeatDetector",
    "FeatureExtractor",
    "PlaybackEngine",
    "PlaybackState",
    "VideoExporter",
    "ReactivePipeline",
    "Renderer",
]
