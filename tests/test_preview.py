"""Tests for the live preview helpers (headless)."""

import os

import numpy as np
import pytest

pygame = pytest.importorskip("pygame")

from pulsescope.clock import FrameHost, ManualClock  # noqa: E402
from pulsescope.config import SceneConfig  # noqa: E402
from pulsescope.core.graph import NullSink  # noqa: E402
from pulsescope.errors import DecodeError  # noqa: E402
from pulsescope.core.playback import PlaybackState  # noqa: E402
from pulsescope.pipeline import ReactivePipeline  # noqa: E402
from pulsescope.preview import (  # noqa: E402
    SEEK_STEP,
    PreviewWindow,
    array_to_surface,
    open_pipeline,
)


@pytest.fixture
def window(sine_wav):
    p = ReactivePipeline(FrameHost(ManualClock()), SceneConfig(width=32, height=24))
    p.load(sine_wav, filename="sine.wav")
    yield PreviewWindow(p)
    p.dispose()


def test_array_to_surface():
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    frame = np.zeros((24, 32, 3), dtype=np.uint8)
    frame[0, 31] = (255, 0, 0)

    surface = array_to_surface(frame)

    assert surface.get_size() == (32, 24)
    assert tuple(surface.get_at((31, 0)))[:3] == (255, 0, 0)


def test_space_toggles_playback(window):
    engine = window.pipeline.engine
    window.handle_key(pygame.K_SPACE)
    assert engine.state == PlaybackState.PLAYING
    window.handle_key(pygame.K_SPACE)
    assert engine.state == PlaybackState.PAUSED


def test_arrow_keys_seek(window):
    engine = window.pipeline.engine
    window.handle_key(pygame.K_RIGHT)
    assert engine.current_time() == min(SEEK_STEP, engine.duration())
    window.handle_key(pygame.K_LEFT)
    assert engine.current_time() == 0.0


def test_escape_stops(window):
    window.running = True
    window.handle_key(pygame.K_ESCAPE)
    assert not window.running


class ClosingSink(NullSink):
    def __init__(self):
        super().__init__()
        self.closed = 0

    def close(self):
        super().close()
        self.closed += 1


class TestOpenPipeline:
    def test_loads_track(self, tmp_path, sine_wav):
        path = tmp_path / "sine.wav"
        path.write_bytes(sine_wav)
        pipeline = open_pipeline(path, SceneConfig(width=32, height=24))
        try:
            assert pipeline.engine.state == PlaybackState.READY
        finally:
            pipeline.dispose()

    def test_corrupt_file_releases_sink(self, tmp_path):
        path = tmp_path / "broken.wav"
        path.write_bytes(b"RIFF not really audio")
        sink = ClosingSink()

        with pytest.raises(DecodeError):
            open_pipeline(path, SceneConfig(width=32, height=24), sink)
        assert sink.closed >= 1

    def test_unreadable_path_releases_sink(self, tmp_path):
        sink = ClosingSink()
        with pytest.raises(OSError):
            open_pipeline(tmp_path, SceneConfig(width=32, height=24), sink)
        assert sink.closed == 1
