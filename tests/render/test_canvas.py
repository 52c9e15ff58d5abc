"""Tests for the raster canvas and drawing context."""

import math

import numpy as np
import pytest
from PIL import Image

from pulsescope.render.canvas import Canvas, DrawingContext, parse_color


class TestParseColor:
    def test_hex_and_tuple(self):
        assert parse_color("#ff0000") == (255, 0, 0, 255)
        assert parse_color((0, 255, 0)) == (0, 255, 0, 255)
        assert parse_color((0, 0, 255, 128)) == (0, 0, 255, 128)

    def test_alpha_scaling(self):
        assert parse_color("#ffffff", 0.5) == (255, 255, 255, 128)
        assert parse_color("#ffffff", 3.0)[3] == 255

    def test_hsl(self):
        assert parse_color("hsl(0, 100%, 50%)")[:3] == (255, 0, 0)


class TestCanvas:
    def test_pixel_ratio(self):
        canvas = Canvas(100, 50, pixel_ratio=2.0)
        assert (canvas.pixel_width, canvas.pixel_height) == (200, 100)
        assert canvas.pixels().shape == (100, 200, 3)

    def test_pixels_is_copy(self):
        canvas = Canvas(4, 4)
        pixels = canvas.pixels()
        pixels[:] = 255
        assert not canvas.pixels().any()

    def test_rejects_empty_size(self):
        with pytest.raises(ValueError):
            Canvas(0, 10)
        with pytest.raises(ValueError):
            Canvas(10, 10, pixel_ratio=0)


class TestDrawingContext:
    @pytest.fixture
    def ctx(self):
        return DrawingContext(Canvas(20, 10))

    def test_clear(self, ctx):
        ctx.clear("#102030")
        assert np.all(ctx.canvas.pixels() == (16, 32, 48))

    def test_fill_rect(self, ctx):
        ctx.clear("#000000")
        ctx.fill_rect(5, 2, 4, 3, "#ffffff")
        px = ctx.canvas.pixels()
        assert px[2:5, 5:9].min() == 255
        assert px[:2].max() == 0
        assert px[:, 9:].max() == 0

    def test_translate_and_scale(self, ctx):
        ctx.translate(10, 5)
        ctx.scale(2)
        assert ctx.to_device(1, 1) == (12, 7)

    def test_save_restore(self, ctx):
        depth = ctx.save()
        ctx.translate(3, 3)
        ctx.global_alpha = 0.2
        ctx.save()
        ctx.scale(4)
        ctx.restore_to(depth)

        assert ctx.depth == 0
        assert ctx.to_device(1, 1) == (1, 1)
        assert ctx.global_alpha == 1.0

    def test_rotated_text(self):
        upright = DrawingContext(Canvas(80, 80))
        tilted = DrawingContext(Canvas(80, 80))
        for ctx in (upright, tilted):
            ctx.clear("#000000")
            ctx.set_font(20, align="center", baseline="middle")
        upright.fill_text("--------", 40, 40, color="#ffffff")
        tilted.fill_text("--------", 40, 40, color="#ffffff", rotation=math.pi / 2)

        a = upright.canvas.pixels()[..., 0] > 0
        b = tilted.canvas.pixels()[..., 0] > 0
        assert b.any()
        # A quarter turn swaps the text's horizontal and vertical extent
        assert np.ptp(np.nonzero(a)[1]) > np.ptp(np.nonzero(a)[0])
        assert np.ptp(np.nonzero(b)[0]) > np.ptp(np.nonzero(b)[1])

    def test_restore_on_empty_stack(self, ctx):
        ctx.restore()
        assert ctx.depth == 0

    def test_global_alpha_blends(self, ctx):
        ctx.clear("#000000")
        ctx.global_alpha = 0.5
        ctx.fill_rect(0, 0, 20, 10, "#ffffff")
        value = int(ctx.canvas.pixels()[5, 5, 0])
        assert 120 <= value <= 135

    def test_pixel_ratio_scales_drawing(self):
        ctx = DrawingContext(Canvas(10, 10, pixel_ratio=2.0))
        ctx.clear("#000000")
        ctx.fill_rect(0, 0, 5, 5, "#ffffff")
        px = ctx.canvas.pixels()
        assert px[:10, :10].min() == 255
        assert px[10:, :].max() == 0

    def test_fill_text_draws_something(self):
        ctx = DrawingContext(Canvas(120, 40))
        ctx.clear("#000000")
        ctx.set_font(20, align="center", baseline="middle")
        ctx.fill_text("beat", 60, 20, color="#ffffff", glow_radius=4)
        assert ctx.canvas.pixels().max() > 0
        assert ctx.measure_text("beat") > 0

    def test_bad_alignment(self, ctx):
        with pytest.raises(ValueError):
            ctx.set_font(12, align="justify")

    def test_draw_image_with_alpha(self, ctx):
        ctx.clear("#000000")
        ctx.global_alpha = 0.5
        ctx.draw_image(Image.new("RGB", (4, 4), (200, 200, 200)), 0, 0, 20, 10)
        value = int(ctx.canvas.pixels()[5, 10, 0])
        assert 90 <= value <= 110

    def test_composite(self, ctx):
        ctx.clear("#ffffff")
        overlay = np.zeros((10, 20, 4), dtype=np.uint8)
        overlay[..., 3] = 255
        ctx.composite(overlay)
        assert ctx.canvas.pixels().max() == 0
