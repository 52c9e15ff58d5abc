"""Tests for the layered frame-driven renderer."""

import pytest

from pulsescope.render.renderer import (
    FIRST_FRAME_DELTA_MS,
    LAYER_ORDER,
    Renderer,
    RendererConfig,
    RendererState,
)


@pytest.fixture
def renderer(frame_host):
    r = Renderer(frame_host, RendererConfig(width=40, height=30))
    yield r
    r.dispose()


def step(host, clock, seconds: float = 1 / 60):
    clock.advance(seconds)
    host.pump()


class TestLifecycle:
    def test_start_stop(self, renderer, frame_host):
        assert renderer.state == RendererState.IDLE
        renderer.start()
        renderer.start()
        assert renderer.state == RendererState.RUNNING
        assert frame_host.pending_frames == 1

        renderer.stop()
        renderer.stop()
        assert renderer.state == RendererState.STOPPED
        assert frame_host.pending_frames == 0

    def test_dispose_clears_callbacks(self, renderer):
        renderer.on_render(lambda ctx, dt: None)
        renderer.start()
        renderer.dispose()
        renderer.dispose()
        assert renderer.callbacks("default") == []

    def test_unknown_layer(self, renderer):
        with pytest.raises(ValueError):
            renderer.on_render(lambda ctx, dt: None, layer="foreground")


class TestFrames:
    def test_delta_times(self, renderer, frame_host, manual_clock):
        deltas = []
        renderer.on_render(lambda ctx, dt: deltas.append(dt))
        renderer.start()

        step(frame_host, manual_clock, 0.02)
        step(frame_host, manual_clock, 0.05)
        step(frame_host, manual_clock, 0.01)

        assert deltas[0] == FIRST_FRAME_DELTA_MS
        assert deltas[1:] == [pytest.approx(50.0), pytest.approx(10.0)]

    def test_layer_order(self, renderer, frame_host, manual_clock):
        calls = []
        for layer in reversed(LAYER_ORDER):
            renderer.on_render(lambda ctx, dt, name=layer: calls.append(name), layer=layer)
        renderer.on_render(lambda ctx, dt: calls.append("default-2"))
        renderer.start()

        step(frame_host, manual_clock)
        assert calls == ["background", "default", "default-2", "overlay", "text"]

    def test_unsubscribe(self, renderer, frame_host, manual_clock):
        calls = []
        unsubscribe = renderer.on_render(lambda ctx, dt: calls.append(dt))
        renderer.start()
        step(frame_host, manual_clock)
        unsubscribe()
        unsubscribe()
        step(frame_host, manual_clock)
        assert len(calls) == 1

    def test_clears_to_background(self, frame_host, manual_clock):
        renderer = Renderer(frame_host, RendererConfig(width=8, height=8, background_color="#336699"))
        renderer.start()
        step(frame_host, manual_clock)
        assert tuple(renderer.canvas.pixels()[4, 4]) == (0x33, 0x66, 0x99)

    def test_stop_inside_frame(self, renderer, frame_host, manual_clock):
        calls = []

        def once(ctx, dt):
            calls.append(dt)
            renderer.stop()

        renderer.on_render(once)
        renderer.start()
        step(frame_host, manual_clock)
        step(frame_host, manual_clock)
        assert len(calls) == 1

    def test_frame_started_precedes_drawing(self, renderer, frame_host, manual_clock):
        order = []
        renderer.frame_started.connect(lambda ts, dt: order.append("started"))
        renderer.on_render(lambda ctx, dt: order.append("draw"))
        renderer.start()
        step(frame_host, manual_clock)
        assert order == ["started", "draw"]

    def test_camera_offset_only_moves_default_layer(self, renderer, frame_host, manual_clock):
        seen = {}
        renderer.on_render(lambda ctx, dt: seen.setdefault("bg", ctx.to_device(0, 0)), "background")
        renderer.on_render(lambda ctx, dt: seen.setdefault("default", ctx.to_device(0, 0)))
        renderer.on_render(lambda ctx, dt: seen.setdefault("text", ctx.to_device(0, 0)), "text")
        renderer.set_camera_offset(3, -2)
        renderer.start()
        step(frame_host, manual_clock)

        assert seen["bg"] == (0, 0)
        assert seen["default"] == (3, -2)
        assert seen["text"] == (0, 0)

    def test_resize_keeps_registrations(self, renderer, frame_host, manual_clock):
        sizes = []
        renderer.on_render(lambda ctx, dt: sizes.append((ctx.width, ctx.height)))
        renderer.start()
        step(frame_host, manual_clock)
        renderer.resize(64, 48, pixel_ratio=2.0)
        step(frame_host, manual_clock)

        assert sizes == [(40, 30), (64, 48)]
        assert renderer.canvas.pixels().shape == (96, 128, 3)


class TestIsolation:
    def test_failing_callback_does_not_stop_others(self, renderer, frame_host, manual_clock):
        calls = []
        faults = []
        renderer.faults.connect(faults.append)

        def broken(ctx, dt):
            ctx.save()
            ctx.translate(100, 100)
            raise RuntimeError("boom")

        renderer.on_render(lambda ctx, dt: calls.append("before"))
        renderer.on_render(broken)
        renderer.on_render(lambda ctx, dt: calls.append(ctx.to_device(0, 0)))
        renderer.start()

        step(frame_host, manual_clock)
        step(frame_host, manual_clock)

        assert calls == ["before", (0, 0), "before", (0, 0)]
        assert len(faults) == 2
        assert faults[0].layer == "default"
        assert faults[0].callback is broken
        assert isinstance(faults[0].error, RuntimeError)
        assert not faults[0].unregistered
        assert renderer.state == RendererState.RUNNING
        assert renderer.ctx.depth == 0

    def test_unregister_faulty(self, frame_host, manual_clock):
        renderer = Renderer(frame_host, RendererConfig(width=10, height=10, unregister_faulty=True))
        faults = []
        renderer.faults.connect(faults.append)

        def broken(ctx, dt):
            raise ValueError("bad")

        renderer.on_render(broken, "overlay")
        renderer.start()
        step(frame_host, manual_clock)
        step(frame_host, manual_clock)

        assert len(faults) == 1
        assert faults[0].unregistered
        assert renderer.callbacks("overlay") == []

    def test_state_changes_do_not_leak(self, renderer, frame_host, manual_clock):
        entry_states = []

        def messy(ctx, dt):
            ctx.global_alpha = 0.3
            ctx.fill_style = "#ff00ff"
            ctx.translate(7, 9)
            ctx.scale(2)

        def observer(ctx, dt):
            entry_states.append((ctx.global_alpha, ctx.fill_style, ctx.to_device(1, 1), ctx.depth))

        renderer.on_render(messy, "background")
        renderer.on_render(messy)
        renderer.on_render(observer)
        renderer.on_render(observer, "text")
        renderer.start()
        step(frame_host, manual_clock)

        default_fill = renderer.ctx.fill_style
        assert entry_states == [(1.0, default_fill, (1, 1), 1)] * 2
        assert renderer.ctx.depth == 0

    def test_unsubscribe_later_layer_takes_effect_next_frame(self, renderer, frame_host, manual_clock):
        calls = []
        unsubscribe_text = renderer.on_render(lambda ctx, dt: calls.append("text"), "text")

        def remover(ctx, dt):
            calls.append("background")
            unsubscribe_text()

        renderer.on_render(remover, "background")
        renderer.start()
        step(frame_host, manual_clock)
        step(frame_host, manual_clock)

        assert calls == ["background", "text", "background"]

    def test_raising_frame_started_handler_keeps_loop_alive(self, renderer, frame_host, manual_clock):
        draws = []

        def broken(ts, dt):
            raise RuntimeError("analysis failed")

        renderer.frame_started.connect(broken)
        renderer.on_render(lambda ctx, dt: draws.append(dt))
        renderer.start()

        for _ in range(3):
            step(frame_host, manual_clock)

        assert renderer.state == RendererState.RUNNING
        assert frame_host.pending_frames == 1
        assert draws == []

        renderer.frame_started.disconnect(broken)
        step(frame_host, manual_clock)
        assert len(draws) == 1

    def test_raising_frame_callback_ahead_of_renderer(self, renderer, frame_host, manual_clock):
        draws = []

        def broken(ts):
            raise RuntimeError("listener failed")

        frame_host.request_frame(broken)
        renderer.on_render(lambda ctx, dt: draws.append(dt))
        renderer.start()

        for _ in range(3):
            step(frame_host, manual_clock)

        assert renderer.state == RendererState.RUNNING
        assert len(draws) == 3
