"""
Frame-driven layered renderer.

Each frame the renderer computes the delta since the previous frame, clears
the canvas, and runs every registered callback with (ctx, delta_ms) in fixed
layer order. A callback that raises is reported on the `faults` signal and
never stops the loop.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from pulsescope.clock import FrameHost
from pulsescope.errors import RenderCallbackFault
from pulsescope.events import Signal
from pulsescope.render.canvas import Canvas, DrawingContext

logger = logging.getLogger(__name__)

RenderCallback = Callable[[DrawingContext, float], None]

LAYER_ORDER = ("background", "default", "overlay", "text")

# Layers that move with the camera offset.
CAMERA_LAYERS = ("default",)

FIRST_FRAME_DELTA_MS = 16.67


class RendererState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class RendererConfig:
    """Configuration for the renderer."""

    width: int = 800  # logical pixels
    height: int = 600
    background_color: str = "#1a1a1a"
    pixel_ratio: float = 1.0  # physical pixels per logical pixel
    unregister_faulty: bool = False  # drop callbacks after their first fault


class Renderer:
    """
    Layered render loop on a FrameHost.

    Usage:
        renderer = Renderer(host, RendererConfig(width=1280, height=720))
        unsubscribe = renderer.on_render(draw_bars)
        renderer.start()
        host.pump()
    """

    def __init__(self, host: FrameHost, config: RendererConfig | None = None):
        self.host = host
        self.cfg = config or RendererConfig()
        self.canvas = Canvas(self.cfg.width, self.cfg.height, self.cfg.pixel_ratio)
        self.ctx = DrawingContext(self.canvas)

        self.frame_started = Signal("frame_started")
        self.faults = Signal("faults")

        self.camera_offset = (0.0, 0.0)
        self._layers: dict[str, dict[RenderCallback, None]] = {
            name: {} for name in LAYER_ORDER
        }
        self._state = RendererState.IDLE
        self._frame_handle: int | None = None
        self._last_frame_ms: float | None = None
        self._faulted: set = set()

    @property
    def state(self) -> RendererState:
        return self._state

    @property
    def width(self) -> int:
        return self.canvas.width

    @property
    def height(self) -> int:
        return self.canvas.height

    def on_render(self, callback: RenderCallback, layer: str = "default") -> Callable[[], None]:
        """
        Register a draw callback on a layer.

        Returns:
            Unsubscribe callable, safe to call at any time (also from inside
            a render callback, taking effect from the next frame).
        """
        if layer not in self._layers:
            raise ValueError(f"Unknown layer {layer!r}; expected one of {LAYER_ORDER}")
        registry = self._layers[layer]
        registry[callback] = None

        def unsubscribe():
            registry.pop(callback, None)

        return unsubscribe

    def callbacks(self, layer: str) -> list[RenderCallback]:
        return list(self._layers[layer])

    def set_camera_offset(self, x: float, y: float):
        self.camera_offset = (x, y)

    def resize(self, width: int, height: int, pixel_ratio: float | None = None):
        """Resize the canvas; registrations and layer order are untouched."""
        self.canvas.resize(width, height, pixel_ratio)
        self.ctx.reset()
        logger.debug(
            "Resized to %dx%d (%dx%d px)",
            width, height, self.canvas.pixel_width, self.canvas.pixel_height,
        )

    def start(self):
        if self._state == RendererState.RUNNING:
            return
        self._state = RendererState.RUNNING
        self._last_frame_ms = None
        self._frame_handle = self.host.request_frame(self._tick)

    def stop(self):
        if self._state != RendererState.RUNNING:
            return
        self._state = RendererState.STOPPED
        self.host.cancel_frame(self._frame_handle)
        self._frame_handle = None

    def dispose(self):
        self.stop()
        for registry in self._layers.values():
            registry.clear()
        self._faulted.clear()

    def render_frame(self, delta_ms: float):
        """Clear and draw every layer once."""
        ctx = self.ctx
        ctx.reset()
        ctx.clear(self.cfg.background_color)

        ox, oy = self.camera_offset
        # Registrations are fixed for the whole frame.
        snapshot = [(layer, list(self._layers[layer])) for layer in LAYER_ORDER]
        for layer, callbacks in snapshot:
            for callback in callbacks:
                depth = ctx.save()
                try:
                    if layer in CAMERA_LAYERS and (ox or oy):
                        ctx.translate(ox, oy)
                    callback(ctx, delta_ms)
                except Exception as e:
                    self._report_fault(layer, callback, e)
                finally:
                    ctx.restore_to(depth)

    def _tick(self, timestamp_ms: float):
        self._frame_handle = None
        if self._state != RendererState.RUNNING:
            return

        if self._last_frame_ms is None:
            delta_ms = FIRST_FRAME_DELTA_MS
        else:
            delta_ms = timestamp_ms - self._last_frame_ms
        self._last_frame_ms = timestamp_ms

        try:
            self.frame_started.emit(timestamp_ms, delta_ms)
            if self._state == RendererState.RUNNING:
                self.render_frame(delta_ms)
        finally:
            # A raising frame_started handler must not end the loop.
            if self._state == RendererState.RUNNING and self._frame_handle is None:
                self._frame_handle = self.host.request_frame(self._tick)

    def _report_fault(self, layer: str, callback: RenderCallback, error: Exception):
        if callback in self._faulted:
            logger.debug("Render callback %r on %r failed again: %s", callback, layer, error)
        else:
            self._faulted.add(callback)
            logger.exception("Render callback %r on layer %r failed", callback, layer)

        unregistered = False
        if self.cfg.unregister_faulty:
            self._layers[layer].pop(callback, None)
            unregistered = True

        self.faults.emit(RenderCallbackFault(layer, callback, error, unregistered))
