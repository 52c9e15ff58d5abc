"""Visual producers attached to the renderer."""

from pulsescope.visualizers.background import BackgroundLayer
from pulsescope.visualizers.base import Visualizer
from pulsescope.visualizers.circular import CircularSpectrum
from pulsescope.visualizers.effects import CameraShake, Vignette
from pulsescope.visualizers.equalizer import ClubEqualizer, ScrollingEqualizer
from pulsescope.visualizers.particles import ParticleBurst, ParticleSystem
from pulsescope.visualizers.text import TextOverlay
from pulsescope.visualizers.waveform import Waveform

__all__ = [
    "BackgroundLayer",
    "Visualizer",
    "CircularSpectrum",
    "CameraShake",
    "Vignette",
    "ClubEqualizer",
    "ScrollingEqualizer",
    "ParticleBurst",
    "ParticleSystem",
    "TextOverlay",
    "Waveform",
]
