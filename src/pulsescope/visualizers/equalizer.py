"""
Equalizers.

ClubEqualizer: 48 bars growing from the bottom edge.

Spectrum -> bar height mapping:
- Lower half of the spectrum sampled at a fixed stride
- Bass bars boosted (BASS_BOOST x bass_gain, fading across the first 12)
- Beat reaction adds a kick to the bass bars
- Fast attack / slow release smoothing with peak hold

ScrollingEqualizer: a spectrogram grid where the newest column enters on
the right and older columns scroll left and dim.
"""

import numpy as np
from PIL import Image

from pulsescope.animation.reaction import DecayChannel, ReactionConfig
from pulsescope.clock import Clock
from pulsescope.config import ClubSettings
from pulsescope.core.detector import BeatEvent
from pulsescope.render.canvas import DrawingContext
from pulsescope.visualizers.base import FeatureSource, Visualizer

BAR_COUNT = 48
BAR_GAP = 2
BASS_BOOST = 2.5
BASS_BARS = 12
FLOOR_GLOW_HEIGHT = 30


def bar_color(freq_position: float, intensity: float, beat_reaction: float) -> str:
    """Warm hues for bass shifting towards blue; brightness pulses with the beat."""
    hue = freq_position * 280
    saturation = 80 + intensity * 20
    lightness = min(80.0, 40 + intensity * 35 + beat_reaction * 25)
    return f"hsl({hue:.1f}, {saturation:.1f}%, {lightness:.1f}%)"


def glow_color(intensity: float, beat_reaction: float) -> tuple[int, int, int, int]:
    alpha = min(1.0, 0.3 + beat_reaction * 0.5 + intensity * 0.2)
    return 255, 100, 50, int(alpha * 255)


def _vertical_fade(width: int, height: int, top: tuple, bottom: tuple) -> Image.Image:
    t = np.linspace(0.0, 1.0, height, dtype=np.float32)[:, None, None]
    top = np.array(top, dtype=np.float32)
    bottom = np.array(bottom, dtype=np.float32)
    column = top + (bottom - top) * t
    return Image.fromarray(np.rint(np.broadcast_to(column, (height, width, 4))).astype(np.uint8))


class ClubEqualizer(Visualizer):
    """
    Bass-heavy LED-wall bars.

    Args:
        clock: Time source for the bar decay channel.
        settings: Gain, sensitivity, vertical scale and decay controls.
        features: Frame feature provider.
    """

    def __init__(
        self,
        clock: Clock,
        settings: ClubSettings | None = None,
        features: FeatureSource | None = None,
    ):
        super().__init__(features)
        self.settings = settings or ClubSettings()
        # decay 0 -> 240 ms, decay 1 -> 80 ms
        decay_ms = 80 + (1 - self.settings.decay) * 160
        self.reaction = DecayChannel(ReactionConfig(decay_ms=decay_ms, threshold=0.05), clock)

        self.heights = np.zeros(BAR_COUNT, dtype=np.float64)
        self.peaks = np.zeros(BAR_COUNT, dtype=np.float64)
        self.peak_decay = np.zeros(BAR_COUNT, dtype=np.float64)
        self._backdrop_key = None
        self._backdrop: Image.Image | None = None

    def react(self, beat: BeatEvent):
        self.reaction.on_beat(beat.is_beat, beat.intensity)

    def reset(self):
        self.reaction.reset()
        self.heights[:] = 0.0
        self.peaks[:] = 0.0
        self.peak_decay[:] = 0.0

    def target_heights(self, data: np.ndarray, beat_reaction: float) -> np.ndarray:
        """Raw (unsmoothed) bar values for one spectrum."""
        s = self.settings
        raw = np.zeros(BAR_COUNT, dtype=np.float64)
        if len(data) == 0:
            return raw

        stride = len(data) // 2 // BAR_COUNT
        indices = np.minimum(np.arange(BAR_COUNT) * stride, len(data) - 1)
        raw = data[indices].astype(np.float64) * (0.5 + s.sensitivity)

        falloff = 1 - np.arange(BASS_BARS) / BASS_BARS
        bass = raw[:BASS_BARS]
        bass = np.minimum(1.0, bass * (1 + BASS_BOOST * s.bass_gain * falloff))
        bass = np.minimum(1.0, bass + beat_reaction * 0.2 * s.bass_gain * falloff)
        raw[:BASS_BARS] = bass
        return raw

    def update(self, data: np.ndarray, beat_reaction: float):
        """Advance smoothing and peak hold by one frame."""
        decay = self.settings.decay
        attack = 0.3 + decay * 0.4
        release = 0.05 + decay * 0.2
        peak_speed = 0.01 + decay * 0.02

        raw = self.target_heights(data, beat_reaction)
        rate = np.where(raw > self.heights, attack, release)
        self.heights += (raw - self.heights) * rate

        rising = self.heights > self.peaks
        falling_peaks = np.maximum(0.0, self.peaks - self.peak_decay * 0.02)
        self.peaks = np.where(rising, self.heights, falling_peaks)
        self.peak_decay = np.where(rising, 0.0, self.peak_decay + peak_speed)

    def _backdrop_image(self, width: int, height: int) -> Image.Image:
        if self._backdrop_key != (width, height):
            self._backdrop = _vertical_fade(width, height, (0, 0, 0, 77), (0, 0, 0, 0))
            self._backdrop_key = (width, height)
        return self._backdrop

    def draw(self, ctx: DrawingContext, delta_ms: float):
        features = self.features()
        beat_reaction = self.reaction.value()
        self.update(features.frequency_data, beat_reaction)

        w, h = ctx.width, ctx.height
        scale = self.settings.vertical_scale
        bar_width = (w - BAR_GAP * (BAR_COUNT - 1)) / BAR_COUNT

        ctx.draw_image(self._backdrop_image(w, h), 0, 0, w, h)

        for i in range(BAR_COUNT):
            bar_height = self.heights[i] * h * scale
            if bar_height < 2:
                continue
            x = i * (bar_width + BAR_GAP)
            y = h - bar_height
            intensity = float(self.heights[i])
            freq_position = i / BAR_COUNT

            if beat_reaction > 0.1 and i < BASS_BARS:
                spread = beat_reaction * 6
                ctx.fill_rect(
                    x - spread, y - spread, bar_width + spread * 2, bar_height + spread,
                    glow_color(0.5, beat_reaction),
                )

            # Two-tone bar: brighter base, dimmer top half
            ctx.fill_rect(
                x, y, bar_width, bar_height,
                bar_color(freq_position, intensity * 0.8, beat_reaction * 0.7),
            )
            ctx.fill_rect(
                x, y + bar_height / 2, bar_width, bar_height / 2,
                bar_color(freq_position, intensity, beat_reaction),
            )

            peak_y = h - self.peaks[i] * h * scale
            if peak_y < h - 4:
                alpha = int((0.5 + beat_reaction * 0.3) * 255)
                ctx.fill_rect(x, peak_y - 2, bar_width, 2, (255, 255, 255, alpha))

        floor_alpha = int((0.15 + beat_reaction * 0.2) * 255)
        floor = _vertical_fade(w, FLOOR_GLOW_HEIGHT, (255, 100, 50, 0), (255, 100, 50, floor_alpha))
        ctx.draw_image(floor, 0, h - FLOOR_GLOW_HEIGHT, w, FLOOR_GLOW_HEIGHT)


FREQ_BANDS = 32
HISTORY_LENGTH = 80
HISTORY_INTERVAL_MS = 1000 / 30
QUIET_CELL = 0.02
EDGE_GLOW_WIDTH = 20


def cell_color(freq_position: float, intensity: float, brightness: float = 1.0) -> str:
    """Red for bass through green to blue for treble."""
    hue = freq_position * 240
    saturation = 70 + intensity * 30
    lightness = min(60.0, 30 + intensity * 40) * brightness
    return f"hsl({hue:.1f}, {saturation:.1f}%, {min(100.0, lightness):.1f}%)"


def _horizontal_fade(width: int, height: int, left: tuple, right: tuple) -> Image.Image:
    t = np.linspace(0.0, 1.0, width, dtype=np.float32)[None, :, None]
    left = np.array(left, dtype=np.float32)
    right = np.array(right, dtype=np.float32)
    row = left + (right - left) * t
    return Image.fromarray(np.rint(np.broadcast_to(row, (height, width, 4))).astype(np.uint8))


class ScrollingEqualizer(Visualizer):
    """
    Scrolling spectrogram.

    The history advances at 30 columns per second of frame time, whatever the
    display rate.
    """

    def __init__(self, features: FeatureSource | None = None):
        super().__init__(features)
        self.history = np.zeros((HISTORY_LENGTH, FREQ_BANDS), dtype=np.float64)
        self._since_update_ms = HISTORY_INTERVAL_MS

    def reset(self):
        self.history[:] = 0.0
        self._since_update_ms = HISTORY_INTERVAL_MS

    def push(self, data: np.ndarray):
        """Shift the history left and append one column sampled from `data`."""
        column = np.zeros(FREQ_BANDS)
        if len(data):
            stride = len(data) // FREQ_BANDS
            indices = np.minimum(np.arange(FREQ_BANDS) * stride, len(data) - 1)
            column = data[indices].astype(np.float64)
        self.history = np.roll(self.history, -1, axis=0)
        self.history[-1] = column

    def draw(self, ctx: DrawingContext, delta_ms: float):
        features = self.features()
        self._since_update_ms += delta_ms
        if self._since_update_ms >= HISTORY_INTERVAL_MS and len(features.frequency_data):
            self._since_update_ms = 0.0
            self.push(features.frequency_data)

        w, h = ctx.width, ctx.height
        cell_w = w / HISTORY_LENGTH
        cell_h = h / FREQ_BANDS
        gap = 1
        beat = features.beat.is_beat

        for t in range(HISTORY_LENGTH):
            # Oldest column on the left is dimmest
            age_fade = 0.3 + (t + 1) / HISTORY_LENGTH * 0.7
            brightness = 1.2 if beat and t > HISTORY_LENGTH - 5 else 1.0
            for f in range(FREQ_BANDS):
                intensity = float(self.history[t, f])
                if intensity < QUIET_CELL:
                    continue
                # Bass at the bottom
                y = h - (f + 1) * cell_h
                ctx.fill_rect(
                    t * cell_w + gap / 2,
                    y + gap / 2,
                    cell_w - gap,
                    cell_h - gap,
                    cell_color(f / FREQ_BANDS, intensity, brightness * age_fade),
                )

        edge = _horizontal_fade(EDGE_GLOW_WIDTH, 1, (255, 255, 255, 0), (255, 255, 255, 26))
        ctx.draw_image(edge, w - EDGE_GLOW_WIDTH, 0, EDGE_GLOW_WIDTH, h)
