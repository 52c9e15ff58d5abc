"""
Background layer: solid colour, linear/radial gradient, or image.

Gradients are evaluated with numpy into an RGBA image that is cached until
the canvas size or the gradient changes.
"""

import logging
import math

import numpy as np
from PIL import Image

from pulsescope.config import (
    Background,
    GradientBackground,
    GradientStop,
    ImageBackground,
    SolidBackground,
)
from pulsescope.render.canvas import DrawingContext, parse_color
from pulsescope.visualizers.base import FeatureSource, Visualizer

logger = logging.getLogger(__name__)

FALLBACK_COLOR = "#1a1a1a"


def interpolate_stops(t: np.ndarray, stops: list[GradientStop]) -> np.ndarray:
    """
    Colour a field of gradient positions.

    Args:
        t: Array of positions in [0, 1].
        stops: Colour stops, in any order.

    Returns:
        Array of shape t.shape + (4,), uint8 RGBA.
    """
    ordered = sorted(stops, key=lambda s: s.position)
    positions = [s.position for s in ordered]
    colors = np.array([parse_color(s.color) for s in ordered], dtype=np.float32)

    out = np.empty(t.shape + (4,), dtype=np.float32)
    for c in range(4):
        out[..., c] = np.interp(t, positions, colors[:, c])
    return np.rint(out).astype(np.uint8)


def linear_gradient_field(width: int, height: int, angle: float) -> np.ndarray:
    """
    Gradient position per pixel for a CSS-style angle.

    0 degrees runs bottom to top, 90 left to right, 180 top to bottom. The
    gradient line spans the canvas diagonal so every pixel is covered.
    """
    rad = math.radians(angle - 90)
    dx, dy = math.cos(rad), math.sin(rad)
    half = math.hypot(width, height) / 2

    ys, xs = np.mgrid[0:height, 0:width].astype(np.float32) + 0.5
    projection = (xs - width / 2) * dx + (ys - height / 2) * dy
    return np.clip((projection + half) / (2 * half), 0.0, 1.0)


def radial_gradient_field(width: int, height: int) -> np.ndarray:
    """Distance from the centre, 1.0 at half the larger side."""
    radius = max(width, height) / 2
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float32) + 0.5
    dist = np.hypot(xs - width / 2, ys - height / 2)
    return np.clip(dist / radius, 0.0, 1.0)


def render_gradient(config: GradientBackground, width: int, height: int) -> np.ndarray:
    if config.gradient_type == "radial":
        t = radial_gradient_field(width, height)
    else:
        t = linear_gradient_field(width, height, config.angle)
    return interpolate_stops(t, config.stops)


def image_draw_box(
    image_width: int,
    image_height: int,
    width: float,
    height: float,
    fit: str,
) -> tuple[float, float, float, float]:
    """(x, y, w, h) placing an image on the canvas for a fit mode."""
    if fit == "stretch":
        return 0.0, 0.0, width, height

    image_ratio = image_width / image_height
    canvas_ratio = width / height

    if fit == "cover":
        if image_ratio > canvas_ratio:
            draw_h = height
            draw_w = height * image_ratio
        else:
            draw_w = width
            draw_h = width / image_ratio
    else:  # contain
        if image_ratio > canvas_ratio:
            draw_w = width
            draw_h = width / image_ratio
        else:
            draw_h = height
            draw_w = height * image_ratio

    return (width - draw_w) / 2, (height - draw_h) / 2, draw_w, draw_h


class BackgroundLayer(Visualizer):
    """Draws the configured background variant behind everything else."""

    layer = "background"

    def __init__(self, config: Background | None = None, features: FeatureSource | None = None):
        super().__init__(features)
        self.config = config or SolidBackground()
        self._gradient_key = None
        self._gradient_image: Image.Image | None = None
        self._image_src: str | None = None
        self._image: Image.Image | None = None

    def set_background(self, config: Background):
        self.config = config

    def _gradient(self, config: GradientBackground, width: int, height: int) -> Image.Image:
        key = (
            width,
            height,
            config.gradient_type,
            config.angle,
            tuple((s.color, s.position) for s in config.stops),
        )
        if key != self._gradient_key:
            self._gradient_image = Image.fromarray(render_gradient(config, width, height))
            self._gradient_key = key
        return self._gradient_image

    def _load_image(self, src: str) -> Image.Image | None:
        if src == self._image_src:
            return self._image
        self._image_src = src
        try:
            with Image.open(src) as img:
                self._image = img.convert("RGBA")
        except (OSError, ValueError) as e:
            logger.warning("Background image %r unavailable: %s", src, e)
            self._image = None
        return self._image

    def draw(self, ctx: DrawingContext, delta_ms: float):
        w, h = ctx.width, ctx.height
        config = self.config

        if isinstance(config, SolidBackground):
            ctx.fill_rect(0, 0, w, h, config.color)

        elif isinstance(config, GradientBackground):
            ctx.draw_image(self._gradient(config, w, h), 0, 0, w, h)

        elif isinstance(config, ImageBackground):
            img = self._load_image(config.src) if config.src else None
            if img is None:
                ctx.fill_rect(0, 0, w, h, FALLBACK_COLOR)
                return
            ctx.global_alpha = config.opacity
            x, y, draw_w, draw_h = image_draw_box(img.width, img.height, w, h, config.fit)
            ctx.draw_image(img, x, y, draw_w, draw_h)

        else:
            raise TypeError(f"Unsupported background variant: {type(config).__name__}")
