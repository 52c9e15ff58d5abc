"""
Live preview window.

Plays a track through the default output device and shows the pipeline's
canvas in a pygame window, pumping the frame host once per display frame.

Usage:
    pulsescope-preview <audio_file> [options]

Keys: SPACE play/pause, LEFT/RIGHT seek 5s, HOME restart, ESC quit.
"""

import argparse
import logging
import sys
from pathlib import Path

import numpy as np
import pygame

from pulsescope.cli import setup_logging
from pulsescope.clock import FrameHost, MonotonicClock
from pulsescope.config import VISUALIZER_TYPES, SceneConfig, TextLayerConfig, load_scene
from pulsescope.core.graph import AudioSink, SoundDeviceSink
from pulsescope.core.playback import PlaybackState
from pulsescope.errors import PulsescopeError
from pulsescope.pipeline import ReactivePipeline

logger = logging.getLogger(__name__)

SEEK_STEP = 5.0


def array_to_surface(pixels: np.ndarray) -> pygame.Surface:
    """(H, W, 3) uint8 frame to a pygame Surface."""
    # pygame uses (width, height) but numpy frames are (height, width)
    return pygame.surfarray.make_surface(pixels.swapaxes(0, 1))


class PreviewWindow:
    """
    Real-time window around a ReactivePipeline.

    Args:
        pipeline: Pipeline on a MonotonicClock host.
        fps: Display refresh cap.
    """

    def __init__(self, pipeline: ReactivePipeline, fps: int = 60):
        self.pipeline = pipeline
        self.fps = fps
        self.running = False
        self._screen: pygame.Surface | None = None

    def handle_key(self, key: int):
        engine = self.pipeline.engine
        if key == pygame.K_ESCAPE:
            self.running = False
        elif key == pygame.K_SPACE:
            if engine.state == PlaybackState.PLAYING:
                engine.pause()
            else:
                engine.play()
        elif key == pygame.K_RIGHT:
            engine.seek(engine.current_time() + SEEK_STEP)
        elif key == pygame.K_LEFT:
            engine.seek(engine.current_time() - SEEK_STEP)
        elif key == pygame.K_HOME:
            engine.seek(0.0)

    def _caption(self) -> str:
        engine = self.pipeline.engine
        return (
            f"pulsescope  {engine.current_time():6.1f}s / {engine.duration():.1f}s"
            f"  [{engine.state.value}]"
        )

    def run(self):
        renderer = self.pipeline.renderer
        pygame.init()
        try:
            self._screen = pygame.display.set_mode(
                (renderer.canvas.pixel_width, renderer.canvas.pixel_height)
            )
            clock = pygame.time.Clock()
            self.pipeline.engine.play()
            self.pipeline.start()
            self.running = True

            frame = 0
            while self.running:
                for ev in pygame.event.get():
                    if ev.type == pygame.QUIT:
                        self.running = False
                    elif ev.type == pygame.KEYDOWN:
                        self.handle_key(ev.key)

                self.pipeline.host.pump()
                self._screen.blit(array_to_surface(renderer.canvas.pixels()), (0, 0))
                pygame.display.flip()

                frame += 1
                if frame % 15 == 0:
                    pygame.display.set_caption(self._caption())
                clock.tick(self.fps)
        finally:
            self.pipeline.dispose()
            pygame.quit()


def open_pipeline(audio: Path, scene: SceneConfig, sink: AudioSink | None = None) -> ReactivePipeline:
    """Build a real-time pipeline and load `audio`. Releases the sink on failure."""
    pipeline = ReactivePipeline(FrameHost(MonotonicClock()), scene, sink=sink)
    try:
        pipeline.load_file(audio)
    except (PulsescopeError, OSError):
        pipeline.dispose()
        if sink is not None:
            sink.close()
        raise
    return pipeline


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        prog="pulsescope-preview",
        description="Live beat-reactive preview window",
    )
    parser.add_argument("audio", type=Path, help="Input audio file (mp3, wav)")
    parser.add_argument("-c", "--config", type=Path, default=None, help="Scene JSON file")
    parser.add_argument("--text", type=str, default=None, help="Add a centred text layer")
    parser.add_argument(
        "--visualizer", type=str, default=None, choices=VISUALIZER_TYPES, help="Spectrum visualizer"
    )
    parser.add_argument("--fps", type=int, default=60, help="Display refresh cap (default: 60)")
    parser.add_argument("--mute", action="store_true", help="Run without audio output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if not args.audio.exists():
        print(f"Error: Audio file not found: {args.audio}", file=sys.stderr)
        sys.exit(1)

    try:
        scene = load_scene(args.config) if args.config else SceneConfig()
        if args.text:
            scene.text_layers.append(TextLayerConfig(content=args.text))
        if args.visualizer:
            scene.visualizer = args.visualizer
        scene.validate()
    except PulsescopeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    sink: AudioSink | None = None
    if not args.mute:
        try:
            sink = SoundDeviceSink()
        except (ImportError, OSError) as e:
            print(f"Error: no audio output ({e}); install sounddevice or pass --mute", file=sys.stderr)
            sys.exit(1)

    try:
        pipeline = open_pipeline(args.audio, scene, sink)
    except (PulsescopeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    PreviewWindow(pipeline, fps=args.fps).run()


if __name__ == "__main__":
    main()
