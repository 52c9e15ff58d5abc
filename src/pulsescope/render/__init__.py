"""Canvas, drawing context and the layered render loop."""

from pulsescope.render.canvas import Canvas, DrawingContext, parse_color
from pulsescope.render.renderer import (
    LAYER_ORDER,
    Renderer,
    RendererConfig,
    RendererState,
)

__all__ = [
    "Canvas",
    "DrawingContext",
    "parse_color",
    "LAYER_ORDER",
    "Renderer",
    "RendererConfig",
    "RendererState",
]
