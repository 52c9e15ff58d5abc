"""
CLI entry point for the offline renderer.

Usage:
    pulsescope <audio_file> [options]
    python -m pulsescope <audio_file> [options]
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from pulsescope.clock import FrameHost, ManualClock
from pulsescope.config import VISUALIZER_TYPES, SceneConfig, TextLayerConfig, load_scene
from pulsescope.errors import PulsescopeError
from pulsescope.export import EXPORT_RESOLUTIONS, ExportProgress, ExportState, VideoExporter
from pulsescope.io.encoder import QUALITY_PRESETS, ffmpeg_available
from pulsescope.pipeline import ReactivePipeline

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
    )


def _progress_bar(current: int, total: int, width: int = 35):
    """Print a progress bar to stdout."""
    pct = current / max(total, 1) * 100
    filled = int(width * current / max(total, 1))
    bar = "#" * filled + "-" * (width - filled)
    if sys.stdout.isatty():
        sys.stdout.write(f"\r[{bar}] {pct:5.1f}%")
        sys.stdout.flush()
        if current >= total:
            sys.stdout.write("\n")
    else:
        if current % max(1, total // 20) == 0 or current >= total:
            print(f"{pct:5.1f}%", flush=True)


class _ExportProgressPrinter:
    """Turns ExportProgress updates into progress bar and phase lines."""

    def __init__(self):
        self._state: ExportState | None = None
        self._last = -1

    def __call__(self, update: ExportProgress):
        if update.state != self._state:
            self._state = update.state
            if update.state == ExportState.ENCODING:
                print("  Finalizing encode...")
        if update.state == ExportState.RECORDING:
            permille = int(update.progress * 1000)
            if permille != self._last:
                self._last = permille
                _progress_bar(permille, 1000)


def build_scene(args: argparse.Namespace) -> SceneConfig:
    scene = load_scene(args.config) if args.config else SceneConfig()
    if args.text:
        scene.text_layers.append(TextLayerConfig(content=args.text))
    if args.visualizer:
        scene.visualizer = args.visualizer
    if args.no_visualizer:
        scene.visualizer_enabled = False
    if args.no_particles:
        scene.particles.enabled = False
    if args.no_vignette:
        scene.vignette.enabled = False
    if args.no_shake:
        scene.camera_shake.enabled = False
    scene.validate()
    return scene


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pulsescope",
        description="Beat-reactive audio visualizer video renderer",
    )

    parser.add_argument(
        "audio",
        type=Path,
        help="Input audio file (mp3, wav)",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output MP4 path (default: <audio>_pulse.mp4)",
    )

    # Resolution & timing
    parser.add_argument(
        "-r", "--resolution", type=str, default="720p",
        choices=sorted(EXPORT_RESOLUTIONS),
        help="Output resolution (default: 720p)",
    )
    parser.add_argument("-f", "--fps", type=int, default=30, help="Frames per second (default: 30)")
    parser.add_argument(
        "-q", "--quality", type=str, default="medium",
        choices=list(QUALITY_PRESETS),
        help="Encoding quality (default: medium)",
    )
    parser.add_argument(
        "--max-duration", type=float, default=None,
        help="Limit output to N seconds",
    )

    # Scene
    parser.add_argument("-c", "--config", type=Path, default=None, help="Scene JSON file")
    parser.add_argument("--text", type=str, default=None, help="Add a centred text layer")
    parser.add_argument(
        "--visualizer", type=str, default=None,
        choices=VISUALIZER_TYPES,
        help="Spectrum visualizer (default: from scene, equalizer-v2)",
    )
    parser.add_argument("--no-visualizer", action="store_true", help="Disable the spectrum visualizer")
    parser.add_argument("--no-particles", action="store_true", help="Disable beat particles")
    parser.add_argument("--no-vignette", action="store_true", help="Disable vignette")
    parser.add_argument("--no-shake", action="store_true", help="Disable camera shake")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for particles and shake")

    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if not args.audio.exists():
        print(f"Error: Audio file not found: {args.audio}", file=sys.stderr)
        sys.exit(1)
    if not ffmpeg_available():
        print("Error: ffmpeg not found on PATH", file=sys.stderr)
        sys.exit(1)

    output = args.output
    if output is None:
        output = args.audio.with_name(f"{args.audio.stem}_pulse.mp4")

    try:
        scene = build_scene(args)
    except PulsescopeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    host = FrameHost(ManualClock())
    pipeline = ReactivePipeline(host, scene, seed=args.seed)

    # Step 1: Load
    print(f"Loading audio: {args.audio}")
    t0 = time.time()
    try:
        duration = pipeline.load_file(args.audio)
    except PulsescopeError as e:
        print(f"Error: {e}", file=sys.stderr)
        pipeline.dispose()
        sys.exit(1)
    print(f"  Duration: {duration:.1f}s")
    print(f"  Decoding took {time.time() - t0:.1f}s")

    # Step 2: Render + encode
    res = EXPORT_RESOLUTIONS[args.resolution]
    print(f"\nRendering {res.label} @ {args.fps}fps, quality {args.quality}")
    t1 = time.time()
    exporter = VideoExporter(pipeline)
    try:
        exporter.export(
            output,
            resolution=args.resolution,
            frame_rate=args.fps,
            quality=args.quality,
            max_duration=args.max_duration,
            progress_callback=_ExportProgressPrinter(),
        )
    except PulsescopeError as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        pipeline.dispose()

    elapsed = time.time() - t1
    file_size_mb = output.stat().st_size / 1024 / 1024

    print(f"\nDone! {file_size_mb:.1f} MB")
    print(f"  Render+encode took {elapsed:.1f}s")
    print(f"  Output: {output}")


if __name__ == "__main__":
    main()
