"""
Text overlay with intro animations and a beat pulse.

Each layer is positioned in normalized coordinates. The animation state
(opacity, offset, scale, glow) combines an intro over the first 1.2 s with
the decayed beat reaction of a shared text-pulse channel.
"""

import math
from dataclasses import dataclass

from pulsescope.animation.easing import ease_out_cubic, ease_out_quad
from pulsescope.animation.reaction import DecayChannel, ReactionConfig
from pulsescope.clock import Clock
from pulsescope.config import BeatEffectSettings, TextLayerConfig
from pulsescope.core.detector import BeatEvent
from pulsescope.render.canvas import DrawingContext
from pulsescope.visualizers.base import FeatureSource, Visualizer

INTRO_DURATION_MS = 1200.0
SLIDE_DISTANCE = 150.0
MAX_SHAKE = 25.0
MAX_WOBBLE = 0.26  # radians
MAX_PULSE_SCALE = 0.5
MAX_GLOW = 40.0

TEXT_PULSE = ReactionConfig(decay_ms=150.0, threshold=0.1)

SLIDE_DIRECTIONS = {
    "slide-up": (0, -1),
    "slide-down": (0, 1),
    "slide-left": (-1, 0),
    "slide-right": (1, 0),
}


@dataclass
class TextAnimationState:
    opacity: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    scale: float = 1.0
    glow_blur: float = 0.0
    glow_color: tuple = (255, 255, 255, 0)
    rotation: float = 0.0  # radians, clockwise


def ease_out_back(t: float) -> float:
    c1 = 1.70158
    c3 = c1 + 1
    return 1 + c3 * (t - 1) ** 3 + c1 * (t - 1) ** 2


def ease_out_elastic(t: float) -> float:
    if t in (0, 1):
        return t
    return 2 ** (-10 * t) * math.sin((t * 10 - 0.75) * (2 * math.pi / 3)) + 1


def noise(seed: float, time_ms: float) -> float:
    """Deterministic pseudo-random value in [-1, 1]."""
    x = math.sin(seed * 12.9898 + time_ms * 0.001) * 43758.5453
    return (x - math.floor(x)) * 2 - 1


def oscillate(time_ms: float, frequency: float, phase: float = 0.0) -> float:
    return math.sin(time_ms * frequency * 0.001 + phase)


def organic_motion(time_ms: float, seed: float) -> float:
    """Three layered oscillations, roughly in [-1, 1]."""
    return (
        oscillate(time_ms, 2, seed) * 0.5
        + oscillate(time_ms, 5, seed + 1) * 0.3
        + oscillate(time_ms, 11, seed + 2) * 0.2
    )


def _rgba(r: float, g: float, b: float, a: float) -> tuple:
    return int(r), int(g), int(b), int(round(min(1.0, max(0.0, a)) * 255))


def text_animation(
    animation: str,
    progress: float,
    beat: float = 0.0,
    settings: BeatEffectSettings | None = None,
    time_ms: float = 0.0,
) -> TextAnimationState:
    """
    Animation state for one text layer.

    Args:
        animation: One of the TEXT_ANIMATIONS names.
        progress: Intro progress, 0-1.
        beat: Decayed beat reaction, 0-1.
        settings: Per-layer beat response.
        time_ms: Clock time for continuous motion.
    """
    s = settings or BeatEffectSettings()
    beat = beat * (0.5 + s.sensitivity) * (0.5 + s.beat_strength)
    glow = s.glow_intensity

    if animation == "fade":
        return TextAnimationState(
            opacity=ease_out_cubic(progress),
            scale=1 + beat * 0.1,
            glow_blur=beat * glow * MAX_GLOW * 0.5,
            glow_color=_rgba(255, 255, 255, beat * glow * 0.6),
        )

    if animation in SLIDE_DIRECTIONS:
        dir_x, dir_y = SLIDE_DIRECTIONS[animation]
        slide = (1 - ease_out_back(progress)) * SLIDE_DISTANCE + beat * 10
        return TextAnimationState(
            opacity=ease_out_quad(min(1.0, progress * 2)),
            offset_x=dir_x * slide,
            offset_y=dir_y * slide,
            scale=1 + beat * 0.08,
            glow_blur=beat * glow * MAX_GLOW * 0.4,
            glow_color=_rgba(255, 255, 255, beat * glow * 0.5),
        )

    if animation == "scale":
        return TextAnimationState(
            opacity=ease_out_quad(min(1.0, progress * 3)),
            scale=ease_out_elastic(progress) + beat * 0.25,
            glow_blur=beat * glow * MAX_GLOW * 0.5,
            glow_color=_rgba(255, 255, 255, beat * glow * 0.6),
        )

    intro_scale = ease_out_back(progress) if progress < 1 else 1.0

    if animation == "pulse":
        pulse = beat * MAX_PULSE_SCALE * (0.5 + s.beat_strength)
        ambient = math.sin(time_ms * 0.003) * 0.02
        return TextAnimationState(
            opacity=ease_out_quad(min(1.0, progress * 2)),
            scale=intro_scale + pulse + ambient,
            glow_blur=5 + beat * glow * MAX_GLOW,
            glow_color=_rgba(255, 200, 100, 0.2 + beat * glow * 0.8),
        )

    if animation == "shake":
        amount = beat * MAX_SHAKE * (0.5 + s.shake_intensity)
        seed = ord(animation[0])
        return TextAnimationState(
            opacity=ease_out_quad(min(1.0, progress * 2)),
            offset_x=noise(seed, time_ms * 50) * amount + noise(seed, time_ms * 10) * 2,
            offset_y=noise(seed + 100, time_ms * 50) * amount + noise(seed + 100, time_ms * 10) * 2,
            scale=intro_scale + beat * 0.2 * (0.5 + s.shake_intensity),
            rotation=noise(seed + 200, time_ms * 30) * beat * 0.1,
            glow_blur=beat * glow * MAX_GLOW * 0.6,
            glow_color=_rgba(255, 100, 50, beat * glow * 0.7),
        )

    if animation == "wobble":
        seed = ord(animation[0])
        sway = 0.5 + s.shake_intensity
        return TextAnimationState(
            opacity=ease_out_quad(min(1.0, progress * 2)),
            offset_x=organic_motion(time_ms, seed) * 8 * sway
            + beat * organic_motion(time_ms * 3, seed) * 15,
            offset_y=organic_motion(time_ms + 1000, seed + 50) * 5 * sway
            + beat * organic_motion(time_ms * 3, seed + 50) * 10,
            scale=(ease_out_elastic(progress) if progress < 1 else 1.0) + beat * 0.15,
            rotation=oscillate(time_ms, 1.5, seed) * MAX_WOBBLE * 0.3 * sway
            + beat * oscillate(time_ms, 8, seed) * MAX_WOBBLE,
            glow_blur=3 + beat * glow * MAX_GLOW * 0.5,
            glow_color=_rgba(150, 100, 255, 0.1 + beat * glow * 0.6),
        )

    if animation == "glow":
        return TextAnimationState(
            opacity=ease_out_cubic(progress),
            scale=intro_scale + beat * 0.12,
            glow_blur=8 + math.sin(time_ms * 0.002) * 4 + beat * MAX_GLOW * (0.5 + glow),
            glow_color=_rgba(
                255,
                round(200 - min(1.0, beat) * 100),
                round(100 - min(1.0, beat) * 50),
                0.3 + math.sin(time_ms * 0.003) * 0.1 + beat * glow,
            ),
        )

    return TextAnimationState()


class TextOverlay(Visualizer):
    """
    Renders every configured text layer on the text layer.

    Args:
        layers: Text layers in draw order.
        clock: Time source for the intro and the pulse channel.
        features: Frame feature provider.
    """

    layer = "text"

    def __init__(
        self,
        layers: list[TextLayerConfig],
        clock: Clock,
        features: FeatureSource | None = None,
    ):
        super().__init__(features)
        self.layers = list(layers)
        self.clock = clock
        self.reaction = DecayChannel(TEXT_PULSE, clock)
        self._intro_start_ms: float | None = None

    def react(self, beat: BeatEvent):
        self.reaction.on_beat(beat.is_beat, beat.intensity)

    def reset(self):
        self.reaction.reset()

    def draw(self, ctx: DrawingContext, delta_ms: float):
        now = self.clock.now_ms()
        if self._intro_start_ms is None:
            self._intro_start_ms = now
        progress = min(1.0, (now - self._intro_start_ms) / INTRO_DURATION_MS)
        reaction = self.reaction.value_at(now)

        for layer in self.layers:
            if not layer.visible or not layer.content:
                continue
            beat = reaction if layer.beat_reactive else 0.0
            state = text_animation(layer.animation, progress, beat, layer.beat_effects, now)
            if state.opacity <= 0 or state.scale <= 0:
                continue
            self._draw_layer(ctx, layer, state)

    def _draw_layer(self, ctx: DrawingContext, layer: TextLayerConfig, state: TextAnimationState):
        x = layer.x * ctx.width + state.offset_x
        y = layer.y * ctx.height + state.offset_y

        ctx.save()
        try:
            ctx.global_alpha = min(1.0, state.opacity)
            ctx.translate(x, y)
            ctx.scale(state.scale)
            ctx.set_font(layer.font_size, align=layer.anchor, baseline="middle")
            ctx.fill_text(
                layer.content,
                0,
                0,
                color=layer.color,
                glow_radius=state.glow_blur / 2 if state.glow_color[3] > 0 else 0.0,
                glow_color=state.glow_color,
                stroke_color=layer.stroke_color,
                stroke_width=layer.stroke_width,
                rotation=state.rotation,
            )
        finally:
            ctx.restore()
