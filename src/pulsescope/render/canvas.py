"""
Raster canvas and a 2D drawing context with a save/restore state stack.

Coordinates passed to DrawingContext are logical pixels; the context maps
them through its current translate/scale onto the physical image, whose
size is the logical size times the device pixel ratio.
"""

import copy
import functools
import math
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageColor, ImageDraw, ImageFilter, ImageFont

# (text_align, text_baseline) -> Pillow anchor
_ANCHORS = {
    ("left", "top"): "lt",
    ("left", "middle"): "lm",
    ("left", "bottom"): "lb",
    ("center", "top"): "mt",
    ("center", "middle"): "mm",
    ("center", "bottom"): "mb",
    ("right", "top"): "rt",
    ("right", "middle"): "rm",
    ("right", "bottom"): "rb",
}


Color = str | tuple


@functools.lru_cache(maxsize=32)
def load_font(size: int) -> ImageFont.ImageFont:
    return ImageFont.load_default(size=max(1, size))


def parse_color(color: Color, alpha: float = 1.0) -> tuple[int, int, int, int]:
    """CSS-style colour (or RGB/RGBA tuple) to an RGBA tuple scaled by alpha."""
    if isinstance(color, str):
        rgba = ImageColor.getrgb(color)
    else:
        rgba = tuple(int(c) for c in color)
    if len(rgba) == 3:
        rgba = (*rgba, 255)
    a = int(round(rgba[3] * min(1.0, max(0.0, alpha))))
    return rgba[0], rgba[1], rgba[2], a


@dataclass
class DrawState:
    """Everything save()/restore() snapshots."""
    translate_x: float = 0.0
    translate_y: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0
    global_alpha: float = 1.0
    fill_style: str = "#000000"
    stroke_style: str = "#000000"
    line_width: float = 1.0
    font_size: int = 10
    text_align: str = "left"  # "left", "center", "right"
    text_baseline: str = "top"  # "top", "middle", "bottom"


class Canvas:
    """An RGB image sized logical size x device pixel ratio."""

    def __init__(self, width: int, height: int, pixel_ratio: float = 1.0):
        self.resize(width, height, pixel_ratio)

    def resize(self, width: int, height: int, pixel_ratio: float | None = None):
        if width <= 0 or height <= 0:
            raise ValueError(f"Canvas size must be positive, got {width}x{height}")
        if pixel_ratio is not None:
            if pixel_ratio <= 0:
                raise ValueError("pixel_ratio must be positive")
            self.pixel_ratio = pixel_ratio
        self.width = width
        self.height = height
        self.image = Image.new("RGB", (self.pixel_width, self.pixel_height))
        self.draw = ImageDraw.Draw(self.image, "RGBA")

    @property
    def pixel_width(self) -> int:
        return max(1, int(round(self.width * self.pixel_ratio)))

    @property
    def pixel_height(self) -> int:
        return max(1, int(round(self.height * self.pixel_ratio)))

    def pixels(self) -> np.ndarray:
        """(H, W, 3) uint8 copy of the physical pixels."""
        return np.array(self.image, dtype=np.uint8)


class DrawingContext:
    """
    Immediate-mode drawing on a Canvas.

    The base transform scales by the canvas pixel ratio; reset() returns to
    it and empties the state stack.
    """

    def __init__(self, canvas: Canvas):
        self.canvas = canvas
        self._stack: list[DrawState] = []
        self.state = self._base_state()

    def _base_state(self) -> DrawState:
        ratio = self.canvas.pixel_ratio
        return DrawState(scale_x=ratio, scale_y=ratio)

    # -- state ---------------------------------------------------------------

    def save(self) -> int:
        """Push the current state. Returns the stack depth before the push."""
        self._stack.append(copy.copy(self.state))
        return len(self._stack) - 1

    def restore(self):
        if self._stack:
            self.state = self._stack.pop()

    def restore_to(self, depth: int):
        """Unwind the stack to `depth`, restoring the state saved there."""
        while len(self._stack) > depth:
            self.restore()

    @property
    def depth(self) -> int:
        return len(self._stack)

    def reset(self):
        self._stack.clear()
        self.state = self._base_state()

    def translate(self, dx: float, dy: float):
        s = self.state
        s.translate_x += dx * s.scale_x
        s.translate_y += dy * s.scale_y

    def scale(self, sx: float, sy: float | None = None):
        s = self.state
        s.scale_x *= sx
        s.scale_y *= sx if sy is None else sy

    @property
    def global_alpha(self) -> float:
        return self.state.global_alpha

    @global_alpha.setter
    def global_alpha(self, value: float):
        self.state.global_alpha = min(1.0, max(0.0, value))

    @property
    def fill_style(self) -> str:
        return self.state.fill_style

    @fill_style.setter
    def fill_style(self, value: str):
        self.state.fill_style = value

    @property
    def stroke_style(self) -> str:
        return self.state.stroke_style

    @stroke_style.setter
    def stroke_style(self, value: str):
        self.state.stroke_style = value

    @property
    def line_width(self) -> float:
        return self.state.line_width

    @line_width.setter
    def line_width(self, value: float):
        self.state.line_width = value

    # -- helpers -------------------------------------------------------------

    @property
    def width(self) -> int:
        return self.canvas.width

    @property
    def height(self) -> int:
        return self.canvas.height

    def to_device(self, x: float, y: float) -> tuple[float, float]:
        s = self.state
        return s.translate_x + x * s.scale_x, s.translate_y + y * s.scale_y

    def _fill(self, color: Color | None) -> tuple[int, int, int, int]:
        return parse_color(color or self.state.fill_style, self.state.global_alpha)

    def _stroke(self, color: Color | None) -> tuple[int, int, int, int]:
        return parse_color(color or self.state.stroke_style, self.state.global_alpha)

    def _stroke_px(self) -> int:
        return max(1, int(round(self.state.line_width * abs(self.state.scale_x))))

    # -- drawing -------------------------------------------------------------

    def clear(self, color: str):
        """Fill the whole canvas, ignoring transform and alpha."""
        rgb = parse_color(color)[:3]
        self.canvas.image.paste(rgb, (0, 0, self.canvas.pixel_width, self.canvas.pixel_height))

    def fill_rect(self, x: float, y: float, w: float, h: float, color: Color | None = None):
        x0, y0 = self.to_device(x, y)
        x1, y1 = self.to_device(x + w, y + h)
        x0, x1 = sorted((x0, x1))
        y0, y1 = sorted((y0, y1))
        left, top = int(round(x0)), int(round(y0))
        right, bottom = int(round(x1)) - 1, int(round(y1)) - 1
        if right < left or bottom < top:
            return
        self.canvas.draw.rectangle((left, top, right, bottom), fill=self._fill(color))

    def stroke_rect(self, x: float, y: float, w: float, h: float, color: Color | None = None):
        x0, y0 = self.to_device(x, y)
        x1, y1 = self.to_device(x + w, y + h)
        x0, x1 = sorted((x0, x1))
        y0, y1 = sorted((y0, y1))
        self.canvas.draw.rectangle(
            (x0, y0, x1, y1), outline=self._stroke(color), width=self._stroke_px()
        )

    def fill_circle(self, cx: float, cy: float, radius: float, color: Color | None = None):
        if radius <= 0:
            return
        x, y = self.to_device(cx, cy)
        rx = radius * abs(self.state.scale_x)
        ry = radius * abs(self.state.scale_y)
        self.canvas.draw.ellipse((x - rx, y - ry, x + rx, y + ry), fill=self._fill(color))

    def stroke_circle(self, cx: float, cy: float, radius: float, color: Color | None = None):
        if radius <= 0:
            return
        x, y = self.to_device(cx, cy)
        rx = radius * abs(self.state.scale_x)
        ry = radius * abs(self.state.scale_y)
        self.canvas.draw.ellipse(
            (x - rx, y - ry, x + rx, y + ry), outline=self._stroke(color), width=self._stroke_px()
        )

    def fill_polygon(self, points: list[tuple[float, float]], color: Color | None = None):
        if len(points) < 3:
            return
        device = [self.to_device(px, py) for px, py in points]
        self.canvas.draw.polygon(device, fill=self._fill(color))

    def stroke_line(
        self, x1: float, y1: float, x2: float, y2: float, color: Color | None = None
    ):
        self.canvas.draw.line(
            [self.to_device(x1, y1), self.to_device(x2, y2)],
            fill=self._stroke(color),
            width=self._stroke_px(),
        )

    def stroke_polyline(self, points: list[tuple[float, float]], color: Color | None = None):
        if len(points) < 2:
            return
        self.canvas.draw.line(
            [self.to_device(px, py) for px, py in points],
            fill=self._stroke(color),
            width=self._stroke_px(),
            joint="curve",
        )

    # -- text ----------------------------------------------------------------

    def set_font(self, size: int, align: str = "left", baseline: str = "top"):
        if (align, baseline) not in _ANCHORS:
            raise ValueError(f"Unsupported text alignment {align!r}/{baseline!r}")
        self.state.font_size = size
        self.state.text_align = align
        self.state.text_baseline = baseline

    def _device_font(self) -> ImageFont.ImageFont:
        return load_font(int(round(self.state.font_size * abs(self.state.scale_y))))

    def measure_text(self, text: str) -> float:
        """Logical width of `text` in the current font."""
        return self._device_font().getlength(text) / abs(self.state.scale_x)

    def fill_text(
        self,
        text: str,
        x: float,
        y: float,
        color: Color | None = None,
        glow_radius: float = 0.0,
        glow_color: Color | None = None,
        stroke_color: Color | None = None,
        stroke_width: float = 0.0,
        rotation: float = 0.0,
    ):
        """
        Draw text anchored at (x, y) by the current align/baseline.

        A positive glow_radius first draws a Gaussian-blurred copy in
        glow_color (default: the text colour) underneath. A stroke, when
        given, outlines the glyphs behind the fill. rotation is in radians,
        clockwise, around the anchor point.
        """
        font = self._device_font()
        anchor = _ANCHORS[(self.state.text_align, self.state.text_baseline)]
        position = self.to_device(x, y)

        target = self.canvas.image
        if rotation:
            target = Image.new("RGBA", self.canvas.image.size, (0, 0, 0, 0))

        if glow_radius > 0:
            layer = Image.new("RGBA", self.canvas.image.size, (0, 0, 0, 0))
            ImageDraw.Draw(layer).text(
                position, text, font=font, anchor=anchor, fill=self._fill(glow_color or color)
            )
            radius = glow_radius * abs(self.state.scale_x)
            glow = layer.filter(ImageFilter.GaussianBlur(radius=radius))
            target.paste(glow, (0, 0), glow)

        stroke_px = 0
        stroke_fill = None
        if stroke_color is not None and stroke_width > 0:
            stroke_px = max(1, int(round(stroke_width * abs(self.state.scale_x))))
            stroke_fill = self._stroke(stroke_color)

        draw = self.canvas.draw if target is self.canvas.image else ImageDraw.Draw(target)
        draw.text(
            position,
            text,
            font=font,
            anchor=anchor,
            fill=self._fill(color),
            stroke_width=stroke_px,
            stroke_fill=stroke_fill,
        )

        if target is not self.canvas.image:
            # Pillow rotates counter-clockwise for positive angles.
            rotated = target.rotate(
                -math.degrees(rotation), resample=Image.Resampling.BICUBIC, center=position
            )
            self.canvas.image.paste(rotated, (0, 0), rotated)

    # -- images --------------------------------------------------------------

    def draw_image(
        self,
        image: Image.Image,
        x: float,
        y: float,
        w: float | None = None,
        h: float | None = None,
    ):
        """Composite `image` into the logical box (x, y, w, h) at global alpha."""
        w = image.width if w is None else w
        h = image.height if h is None else h
        x0, y0 = self.to_device(x, y)
        x1, y1 = self.to_device(x + w, y + h)
        size = (int(round(x1 - x0)), int(round(y1 - y0)))
        if size[0] <= 0 or size[1] <= 0:
            return

        rgba = image.convert("RGBA")
        if rgba.size != size:
            rgba = rgba.resize(size, Image.Resampling.BILINEAR)
        if self.state.global_alpha < 1.0:
            alpha = np.asarray(rgba.getchannel("A"), dtype=np.float32)
            alpha = (alpha * self.state.global_alpha).astype(np.uint8)
            rgba.putalpha(Image.fromarray(alpha))

        self.canvas.image.paste(rgba, (int(round(x0)), int(round(y0))), rgba)

    def composite(self, rgba: np.ndarray):
        """Alpha-composite a device-sized (H, W, 4) uint8 overlay."""
        overlay = Image.fromarray(np.ascontiguousarray(rgba, dtype=np.uint8))
        if overlay.size != self.canvas.image.size:
            overlay = overlay.resize(self.canvas.image.size, Image.Resampling.BILINEAR)
        self.canvas.image.paste(overlay, (0, 0), overlay)
