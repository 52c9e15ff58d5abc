"""
Screen-space effects: vignette and camera shake.
"""

import math

import numpy as np

from pulsescope.animation.reaction import ACTIVITY_FLOOR, DecayChannel, ReactionConfig
from pulsescope.clock import Clock
from pulsescope.config import CameraShakeConfig, VignetteConfig
from pulsescope.core.detector import BeatEvent
from pulsescope.render.canvas import DrawingContext
from pulsescope.visualizers.base import FeatureSource, Visualizer


def vignette_mask(width: int, height: int, intensity: float, softness: float) -> np.ndarray:
    """
    Radial darkening overlay.

    Transparent out to `softness` of the centre-to-corner distance, then
    ramping linearly to `intensity` opacity at the corners.

    Returns:
        (H, W, 4) uint8 RGBA, black with varying alpha.
    """
    cx, cy = width / 2, height / 2
    max_radius = math.hypot(cx, cy)

    ys, xs = np.mgrid[0:height, 0:width].astype(np.float32) + 0.5
    t = np.hypot(xs - cx, ys - cy) / max_radius

    if softness >= 1.0:
        ramp = np.zeros_like(t)
    else:
        ramp = np.clip((t - softness) / (1.0 - softness), 0.0, 1.0)

    rgba = np.zeros((height, width, 4), dtype=np.uint8)
    rgba[..., 3] = np.rint(ramp * intensity * 255).astype(np.uint8)
    return rgba


class Vignette(Visualizer):
    """Darkened edges over everything but the text."""

    layer = "overlay"

    def __init__(self, config: VignetteConfig | None = None, features: FeatureSource | None = None):
        super().__init__(features)
        self.cfg = config or VignetteConfig()
        self._mask_key = None
        self._mask: np.ndarray | None = None

    def mask(self, width: int, height: int) -> np.ndarray:
        key = (width, height, self.cfg.intensity, self.cfg.softness)
        if key != self._mask_key:
            self._mask = vignette_mask(width, height, self.cfg.intensity, self.cfg.softness)
            self._mask_key = key
        return self._mask

    def draw(self, ctx: DrawingContext, delta_ms: float):
        if not self.cfg.enabled or self.cfg.intensity < 0.01:
            return
        canvas = ctx.canvas
        ctx.composite(self.mask(canvas.pixel_width, canvas.pixel_height))


class CameraShake:
    """
    Decaying jitter applied as the renderer's camera offset.

    Only beats at or above the configured threshold start a shake.
    """

    def __init__(self, config: CameraShakeConfig | None, clock: Clock, seed: int | None = None):
        self.cfg = config or CameraShakeConfig()
        self.clock = clock
        self.rng = np.random.default_rng(seed)
        self.reaction = DecayChannel(
            ReactionConfig(decay_ms=self.cfg.decay_ms, threshold=self.cfg.threshold),
            clock,
        )

    def react(self, beat: BeatEvent):
        if self.cfg.enabled:
            self.reaction.on_beat(beat.is_beat, beat.intensity)

    def reset(self):
        self.reaction.reset()

    def offset(self) -> tuple[float, float]:
        """Current (x, y) offset in logical pixels."""
        if not self.cfg.enabled:
            return 0.0, 0.0
        now = self.clock.now_ms()
        reaction = self.reaction.value_at(now)
        if reaction <= ACTIVITY_FLOOR:
            return 0.0, 0.0

        angle = (now / 50) % (math.pi * 2)
        magnitude = reaction * self.cfg.max_offset
        jitter = 0.5 + self.rng.random() * 0.5
        return math.cos(angle) * magnitude * jitter, math.sin(angle) * magnitude * jitter
