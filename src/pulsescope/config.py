"""
Scene configuration.

Plain dataclasses with defaults for every visual producer, plus loading from
JSON scene files. Backgrounds are one of three variant types selected by the
"type" key in the file.
"""

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Union

from pulsescope.errors import ConfigError

logger = logging.getLogger(__name__)

NEON_COLORS = ["#ff00ff", "#00ffff", "#ffff00", "#ff6600", "#00ff00"]

TEXT_ANIMATIONS = (
    "none",
    "fade",
    "slide-up",
    "slide-down",
    "slide-left",
    "slide-right",
    "scale",
    "pulse",
    "shake",
    "wobble",
    "glow",
)


VISUALIZER_TYPES = ("equalizer", "equalizer-v2", "waveform", "circular")

@dataclass
class GradientStop:
    color: str
    position: float  # 0-1 along the gradient


@dataclass
class SolidBackground:
    color: str = "#1a1a1a"


@dataclass
class GradientBackground:
    gradient_type: str = "linear"  # "linear", "radial"
    angle: float = 180.0  # degrees; 0 = bottom to top, 90 = left to right
    stops: list[GradientStop] = field(
        default_factory=lambda: [
            GradientStop("#1a1a1a", 0.0),
            GradientStop("#2d2d2d", 1.0),
        ]
    )


@dataclass
class ImageBackground:
    src: str = ""
    fit: str = "cover"  # "cover", "contain", "stretch"
    opacity: float = 1.0


Background = Union[SolidBackground, GradientBackground, ImageBackground]

BACKGROUND_TYPES: dict[str, type] = {
    "solid": SolidBackground,
    "gradient": GradientBackground,
    "image": ImageBackground,
}


@dataclass
class BeatEffectSettings:
    """How strongly a text layer answers beats (all 0-1)."""
    sensitivity: float = 0.7
    beat_strength: float = 0.7
    smoothness: float = 0.5
    shake_intensity: float = 0.6
    glow_intensity: float = 0.7


@dataclass
class TextLayerConfig:
    """A single text overlay positioned in normalized coordinates."""
    content: str = ""
    x: float = 0.5  # 0 = left edge, 1 = right edge
    y: float = 0.5  # 0 = top edge, 1 = bottom edge
    anchor: str = "center"  # "left", "center", "right"
    font_size: int = 32
    color: str = "#ffffff"
    stroke_color: str | None = None
    stroke_width: float = 0.0
    animation: str = "fade"
    beat_reactive: bool = True
    visible: bool = True
    beat_effects: BeatEffectSettings = field(default_factory=BeatEffectSettings)


@dataclass
class CameraShakeConfig:
    enabled: bool = True
    max_offset: float = 8.0  # pixels on the strongest beat
    decay_ms: float = 100.0
    threshold: float = 0.6


@dataclass
class VignetteConfig:
    enabled: bool = True
    intensity: float = 0.35  # edge darkness
    softness: float = 0.5  # radius fraction where darkening starts


@dataclass
class ParticleConfig:
    enabled: bool = True
    max_particles: int = 200
    emit_count: int = 15
    lifetime_ms: float = 1500.0
    min_size: float = 2.0
    max_size: float = 8.0
    min_speed: float = 50.0  # px/s
    max_speed: float = 200.0
    gravity: float = 100.0  # px/s^2
    colors: list[str] = field(default_factory=lambda: list(NEON_COLORS))


@dataclass
class ClubSettings:
    """Club equalizer controls."""
    bass_gain: float = 1.0  # 0-2
    sensitivity: float = 0.5  # 0-1
    vertical_scale: float = 1.0  # 0.5-2
    decay: float = 0.5  # 0 = slow and smooth, 1 = snappy


@dataclass
class CircularSettings:
    """Circular spectrum controls."""
    ring_gap: float = 0.0  # 0 = closed ring, 1 = widest gap
    bar_spread: float = 1.0  # bar width multiplier, 0.5-2
    sensitivity: float = 0.5  # 0-1
    rotation_speed: float = 1.0  # -2 to 2; negative turns anticlockwise
    start_angle: float = 0.0  # degrees clockwise from the top
    energy_spread: str = "linear"  # "linear", "log"


@dataclass
class SceneConfig:
    """Everything drawn on top of the audio."""
    width: int = 1280
    height: int = 720
    background_color: str = "#1a1a1a"
    background: Background = field(default_factory=SolidBackground)
    visualizer: str = "equalizer-v2"  # one of VISUALIZER_TYPES
    visualizer_enabled: bool = True
    club: ClubSettings = field(default_factory=ClubSettings)
    circular: CircularSettings = field(default_factory=CircularSettings)
    particles: ParticleConfig = field(default_factory=ParticleConfig)
    camera_shake: CameraShakeConfig = field(default_factory=CameraShakeConfig)
    vignette: VignetteConfig = field(default_factory=VignetteConfig)
    text_layers: list[TextLayerConfig] = field(default_factory=list)

    def validate(self):
        """Raise ConfigError for out-of-range values."""
        if self.width <= 0 or self.height <= 0:
            raise ConfigError(f"Scene size must be positive, got {self.width}x{self.height}")

        if self.visualizer not in VISUALIZER_TYPES:
            raise ConfigError(
                f"Unknown visualizer {self.visualizer!r}; expected one of {VISUALIZER_TYPES}"
            )
        if self.circular.energy_spread not in ("linear", "log"):
            raise ConfigError(f"Unknown energy spread {self.circular.energy_spread!r}")
        if not 0.0 <= self.circular.ring_gap <= 1.0:
            raise ConfigError(f"Ring gap {self.circular.ring_gap} outside 0-1")

        bg = self.background
        if isinstance(bg, GradientBackground):
            if bg.gradient_type not in ("linear", "radial"):
                raise ConfigError(f"Unknown gradient type {bg.gradient_type!r}")
            if not bg.stops:
                raise ConfigError("A gradient needs at least one stop")
            for stop in bg.stops:
                if not 0.0 <= stop.position <= 1.0:
                    raise ConfigError(f"Gradient stop position {stop.position} outside 0-1")
        elif isinstance(bg, ImageBackground):
            if bg.fit not in ("cover", "contain", "stretch"):
                raise ConfigError(f"Unknown image fit {bg.fit!r}")
            if not 0.0 <= bg.opacity <= 1.0:
                raise ConfigError(f"Image opacity {bg.opacity} outside 0-1")

        for layer in self.text_layers:
            if layer.anchor not in ("left", "center", "right"):
                raise ConfigError(f"Unknown text anchor {layer.anchor!r}")
            if layer.animation not in TEXT_ANIMATIONS:
                raise ConfigError(f"Unknown text animation {layer.animation!r}")

        p = self.particles
        if p.max_particles < 0 or p.emit_count < 0:
            raise ConfigError("Particle counts must be non-negative")
        if p.min_size > p.max_size or p.min_speed > p.max_speed:
            raise ConfigError("Particle ranges must have min <= max")
        if not p.colors:
            raise ConfigError("Particles need at least one colour")


def _build(cls, data: Any, where: str):
    """Instantiate a flat dataclass from a dict, rejecting unknown keys."""
    if not isinstance(data, dict):
        raise ConfigError(f"{where}: expected an object, got {type(data).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"{where}: unknown keys {sorted(unknown)}")
    try:
        return cls(**data)
    except TypeError as e:
        raise ConfigError(f"{where}: {e}") from e


def background_from_dict(data: dict) -> Background:
    if not isinstance(data, dict):
        raise ConfigError("background: expected an object")
    data = dict(data)
    kind = data.pop("type", None)
    cls = BACKGROUND_TYPES.get(kind)
    if cls is None:
        raise ConfigError(
            f"background: unknown type {kind!r}; expected one of {sorted(BACKGROUND_TYPES)}"
        )
    if cls is GradientBackground and "stops" in data:
        data["stops"] = [
            _build(GradientStop, stop, f"background.stops[{i}]")
            for i, stop in enumerate(data["stops"])
        ]
    return _build(cls, data, "background")


def background_to_dict(background: Background) -> dict:
    for kind, cls in BACKGROUND_TYPES.items():
        if isinstance(background, cls):
            break
    else:
        raise ConfigError(f"Not a background variant: {background!r}")

    out = {"type": kind}
    for f in fields(background):
        value = getattr(background, f.name)
        if f.name == "stops":
            value = [{"color": s.color, "position": s.position} for s in value]
        out[f.name] = value
    return out


def text_layer_from_dict(data: dict, where: str = "text_layers") -> TextLayerConfig:
    if not isinstance(data, dict):
        raise ConfigError(f"{where}: expected an object")
    data = dict(data)
    if "beat_effects" in data:
        data["beat_effects"] = _build(
            BeatEffectSettings, data["beat_effects"], f"{where}.beat_effects"
        )
    return _build(TextLayerConfig, data, where)


_SECTIONS = {
    "club": ClubSettings,
    "circular": CircularSettings,
    "particles": ParticleConfig,
    "camera_shake": CameraShakeConfig,
    "vignette": VignetteConfig,
}


def scene_from_dict(data: dict) -> SceneConfig:
    """
    Build and validate a SceneConfig from plain data.

    Raises:
        ConfigError: Unknown keys, unknown variant types or invalid values.
    """
    if not isinstance(data, dict):
        raise ConfigError("Scene must be a JSON object")
    data = dict(data)

    if "background" in data:
        data["background"] = background_from_dict(data["background"])
    for key, cls in _SECTIONS.items():
        if key in data:
            data[key] = _build(cls, data[key], key)
    if "text_layers" in data:
        layers = data["text_layers"]
        if not isinstance(layers, list):
            raise ConfigError("text_layers: expected a list")
        data["text_layers"] = [
            text_layer_from_dict(layer, f"text_layers[{i}]") for i, layer in enumerate(layers)
        ]

    scene = _build(SceneConfig, data, "scene")
    scene.validate()
    return scene


def load_scene(path: str | Path) -> SceneConfig:
    """Read a JSON scene file."""
    path = Path(path)
    try:
        with open(path) as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read scene file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    logger.debug("Loaded scene from %s", path)
    return scene_from_dict(data)
