"""
Oscilloscope-style waveform line with a faint mirrored reflection.
"""

import numpy as np

from pulsescope.render.canvas import DrawingContext
from pulsescope.visualizers.base import Visualizer

MAX_POINTS = 400
AMPLITUDE = 0.4  # of canvas height, each side of the centre line

LINE_COLOR = "#00ff88"
BEAT_LINE_COLOR = "#00ffaa"
MIRROR_COLOR = (0, 255, 136, 64)


def waveform_points(
    data: np.ndarray, width: float, height: float, gain: float = 1.0
) -> list[tuple[float, float]]:
    """Downsample a -1..1 waveform into at most MAX_POINTS canvas points."""
    if len(data) == 0:
        return []
    count = min(MAX_POINTS, len(data))
    step = len(data) // count
    values = data[np.arange(count) * step].astype(np.float64)
    xs = np.arange(count) / count * width
    ys = height / 2 + values * height * AMPLITUDE * gain
    return list(zip(xs.tolist(), ys.tolist()))


class Waveform(Visualizer):
    """Draws the current time-domain window across the full width."""

    def draw(self, ctx: DrawingContext, delta_ms: float):
        features = self.features()
        data = features.time_domain_data
        if len(data) == 0:
            return

        w, h = ctx.width, ctx.height
        beat = features.beat.is_beat
        line_width = 3.5 if beat else 2.5

        ctx.line_width = line_width
        ctx.stroke_polyline(waveform_points(data, w, h), BEAT_LINE_COLOR if beat else LINE_COLOR)

        # Reflection: inverted, half height
        ctx.line_width = line_width * 0.8
        ctx.stroke_polyline(waveform_points(data, w, h, gain=-0.5), MIRROR_COLOR)
