"""
Circular spectrum: radial rainbow bars around a pulsing inner ring.

The ring turns at rotation_speed, can leave an open gap (ring_gap), and
samples the spectrum either at a fixed stride or on a log scale so the bass
gets more of the circle.
"""

import math

import numpy as np

from pulsescope.config import CircularSettings
from pulsescope.render.canvas import DrawingContext
from pulsescope.visualizers.base import FeatureSource, Visualizer

SAMPLE_COUNT = 128
BASE_RADIUS = 0.15  # of the shorter canvas side
MAX_BAR_LENGTH = 0.3
BEAT_RADIUS_PULSE = 15.0  # px at full intensity
ROTATION_RATE = 0.2  # rad/s at rotation_speed 1
MAX_GAP = math.pi  # radians left open at ring_gap 1

RING_COLOR = (255, 255, 255, 38)


def rainbow_color(position: float) -> str:
    return f"hsl({position * 360:.1f}, 85%, 55%)"


def sample_indices(length: int, count: int, spread: str = "linear") -> np.ndarray:
    """Spectrum indices for `count` bars over `length` bins."""
    if length == 0:
        return np.zeros(0, dtype=np.int64)
    if spread == "log":
        idx = np.geomspace(1, length, count) - 1
    else:
        idx = np.arange(count) * (length // count)
    return np.minimum(idx.astype(np.int64), length - 1)


class CircularSpectrum(Visualizer):
    """
    Radial frequency bars.

    Args:
        settings: Gap, spread, sensitivity, rotation and sampling controls.
        features: Frame feature provider.
    """

    def __init__(
        self,
        settings: CircularSettings | None = None,
        features: FeatureSource | None = None,
    ):
        super().__init__(features)
        self.settings = settings or CircularSettings()
        self.rotation = 0.0

    def reset(self):
        self.rotation = 0.0

    def bar_angles(self) -> np.ndarray:
        """Angle of every bar in radians, 0 pointing right, clockwise."""
        s = self.settings
        sweep = 2 * math.pi - s.ring_gap * MAX_GAP
        start = math.radians(s.start_angle) - math.pi / 2 + self.rotation
        return start + np.arange(SAMPLE_COUNT) / SAMPLE_COUNT * sweep

    def bar_lengths(self, data: np.ndarray, max_length: float) -> np.ndarray:
        s = self.settings
        if len(data) == 0:
            return np.zeros(SAMPLE_COUNT)
        values = data[sample_indices(len(data), SAMPLE_COUNT, s.energy_spread)]
        return np.minimum(1.0, values * (0.5 + s.sensitivity)) * max_length

    def draw(self, ctx: DrawingContext, delta_ms: float):
        self.rotation = (
            self.rotation + self.settings.rotation_speed * ROTATION_RATE * delta_ms / 1000.0
        ) % (2 * math.pi)

        features = self.features()
        data = features.frequency_data
        if len(data) == 0:
            return

        w, h = ctx.width, ctx.height
        cx, cy = w / 2, h / 2
        side = min(w, h)
        beat = features.beat
        radius = side * BASE_RADIUS + (beat.intensity * BEAT_RADIUS_PULSE if beat.is_beat else 0.0)

        ctx.line_width = 1
        ctx.stroke_circle(cx, cy, radius, RING_COLOR)

        ctx.line_width = (3 if beat.is_beat else 2) * self.settings.bar_spread
        lengths = self.bar_lengths(data, side * MAX_BAR_LENGTH)
        for i, (angle, length) in enumerate(zip(self.bar_angles(), lengths)):
            if length <= 0:
                continue
            cos, sin = math.cos(angle), math.sin(angle)
            ctx.stroke_line(
                cx + cos * radius,
                cy + sin * radius,
                cx + cos * (radius + length),
                cy + sin * (radius + length),
                rainbow_color(i / SAMPLE_COUNT),
            )
