"""Tests for the background layer variants."""

import numpy as np
import pytest
from PIL import Image

from pulsescope.config import GradientBackground, GradientStop, ImageBackground, SolidBackground
from pulsescope.render.canvas import Canvas, DrawingContext
from pulsescope.visualizers.background import (
    BackgroundLayer,
    image_draw_box,
    interpolate_stops,
    linear_gradient_field,
    radial_gradient_field,
)


def draw(layer: BackgroundLayer, width: int = 40, height: int = 20) -> np.ndarray:
    ctx = DrawingContext(Canvas(width, height))
    ctx.clear("#000000")
    layer.draw(ctx, 16.0)
    return ctx.canvas.pixels()


class TestGradientMath:
    def test_interpolate_stops_unordered(self):
        stops = [GradientStop("#ffffff", 1.0), GradientStop("#000000", 0.0)]
        colors = interpolate_stops(np.array([0.0, 0.5, 1.0]), stops)
        assert colors[0, 0] == 0
        assert colors[1, 0] == pytest.approx(128, abs=1)
        assert colors[2, 0] == 255

    def test_linear_180_runs_top_to_bottom(self):
        field = linear_gradient_field(10, 100, 180)
        assert field[0].mean() < 0.2
        assert field[-1].mean() > 0.8
        assert np.allclose(field[50], field[50, 0])

    def test_linear_90_runs_left_to_right(self):
        field = linear_gradient_field(100, 10, 90)
        assert field[:, 0].mean() < field[:, -1].mean()

    def test_radial_centre_is_zero(self):
        field = radial_gradient_field(50, 50)
        assert field[25, 25] < 0.05
        assert field[0, 0] == 1.0


class TestImageFit:
    def test_stretch(self):
        assert image_draw_box(10, 10, 200, 100, "stretch") == (0, 0, 200, 100)

    def test_cover_wide_image(self):
        x, y, w, h = image_draw_box(400, 100, 200, 100, "cover")
        assert h == 100 and w == 400
        assert x == -100 and y == 0

    def test_contain_wide_image(self):
        x, y, w, h = image_draw_box(400, 100, 200, 100, "contain")
        assert w == 200 and h == 50
        assert y == 25


class TestBackgroundLayer:
    def test_solid(self):
        px = draw(BackgroundLayer(SolidBackground("#204060")))
        assert np.all(px == (0x20, 0x40, 0x60))

    def test_gradient(self):
        bg = GradientBackground(
            angle=180,
            stops=[GradientStop("#000000", 0.0), GradientStop("#ffffff", 1.0)],
        )
        px = draw(BackgroundLayer(bg), 20, 40)
        assert px[0, 10, 0] < px[-1, 10, 0]

    def test_gradient_is_cached(self):
        layer = BackgroundLayer(GradientBackground())
        draw(layer)
        first = layer._gradient_image
        draw(layer)
        assert layer._gradient_image is first

    def test_image(self, tmp_path):
        path = tmp_path / "bg.png"
        Image.new("RGB", (8, 4), (255, 0, 0)).save(path)
        px = draw(BackgroundLayer(ImageBackground(src=str(path), fit="stretch")))
        assert tuple(px[10, 20]) == (255, 0, 0)

    def test_missing_image_falls_back(self, tmp_path):
        layer = BackgroundLayer(ImageBackground(src=str(tmp_path / "missing.png")))
        px = draw(layer)
        assert tuple(px[5, 5]) == (0x1A, 0x1A, 0x1A)

    def test_set_background(self):
        layer = BackgroundLayer()
        layer.set_background(SolidBackground("#ffffff"))
        assert draw(layer).min() == 255

    def test_unknown_variant(self):
        layer = BackgroundLayer()
        layer.config = "plaid"
        with pytest.raises(TypeError):
            draw(layer)
