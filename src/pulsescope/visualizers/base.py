"""
Base class for visual producers.

A producer registers exactly one render callback on its layer and reads the
current frame's features through a provider callable. Producers that keep a
decay channel update it in react(), which the pipeline calls after beat
detection and before the frame is drawn.
"""

import abc
from typing import Callable

from pulsescope.core.detector import BeatEvent, FrameFeatures
from pulsescope.render.canvas import DrawingContext
from pulsescope.render.renderer import Renderer

FeatureSource = Callable[[], FrameFeatures]


class Visualizer(abc.ABC):
    """Abstract base for everything drawn by the pipeline."""

    layer = "default"

    def __init__(self, features: FeatureSource | None = None):
        self.features = features or FrameFeatures
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    def attach(self, renderer: Renderer) -> Callable[[], None]:
        """Register draw() on this producer's layer. Returns detach."""
        self.detach()
        self._unsubscribe = renderer.on_render(self.draw, self.layer)
        return self.detach

    def detach(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def react(self, beat: BeatEvent):
        """Feed this frame's beat decision into any decay state."""

    def reset(self):
        """Drop transient state after a seek or track change."""

    @abc.abstractmethod
    def draw(self, ctx: DrawingContext, delta_ms: float):
        pass
