"""
FFmpeg video encoder.

Pipes raw RGB frames to ffmpeg via stdin and muxes them with a WAV of the
playback engine's audio output. Frames go straight from numpy arrays to the
encoder; ffmpeg itself is an external dependency found on PATH.
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Iterable

from pulsescope.errors import EncoderError

logger = logging.getLogger(__name__)

# Quality presets: (preset, crf, pix_fmt)
QUALITY_PRESETS = {
    "high": ("slow", "18", "yuv444p"),
    "medium": ("medium", "23", "yuv420p"),
    "fast": ("ultrafast", "28", "yuv420p"),
}


def ffmpeg_available(binary: str = "ffmpeg") -> bool:
    return shutil.which(binary) is not None


def build_command(
    audio_path: Path,
    output_path: Path,
    width: int,
    height: int,
    fps: int,
    quality: str = "high",
    duration: float | None = None,
    binary: str = "ffmpeg",
) -> list[str]:
    """ffmpeg argument list reading rgb24 frames from stdin."""
    if quality not in QUALITY_PRESETS:
        raise EncoderError(
            f"Unknown quality {quality!r}; choose from {sorted(QUALITY_PRESETS)}"
        )
    preset, crf, pix_fmt = QUALITY_PRESETS[quality]

    cmd = [
        binary, "-y",
        "-loglevel", "error",
        # Raw video input from pipe
        "-f", "rawvideo",
        "-pix_fmt", "rgb24",
        "-s", f"{width}x{height}",
        "-r", str(fps),
        "-i", "pipe:0",
        # Audio input
        "-i", str(audio_path),
        # Video encoding
        "-c:v", "libx264",
        "-preset", preset,
        "-crf", crf,
        "-pix_fmt", pix_fmt,
        # Audio encoding
        "-c:a", "aac",
        "-b:a", "192k",
        # Trim to shortest stream
        "-shortest",
    ]
    if duration is not None:
        cmd += ["-t", f"{duration:.3f}"]
    cmd.append(str(output_path))
    return cmd


def encode_video(
    frames: Iterable,
    audio_path: Path,
    output_path: Path,
    width: int,
    height: int,
    fps: int = 30,
    quality: str = "high",
    duration: float | None = None,
    on_frame: Callable[[int], None] | None = None,
    binary: str = "ffmpeg",
) -> Path:
    """
    Encode frames to MP4 with audio.

    Args:
        frames: Yields (H, W, 3) uint8 numpy arrays of the given size.
        audio_path: WAV (or any ffmpeg-readable audio) to mux in.
        output_path: Output MP4 path.
        width: Frame width in pixels.
        height: Frame height in pixels.
        fps: Frames per second.
        quality: "high", "medium", or "fast".
        duration: Optional hard limit on the output length in seconds.
        on_frame: Optional callback(frames_written) after every frame.
        binary: ffmpeg executable.

    Returns:
        Path to the output file.

    Raises:
        EncoderError: ffmpeg is missing or exits with an error.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    cmd = build_command(audio_path, output_path, width, height, fps, quality, duration, binary)
    logger.debug("Running %s", " ".join(cmd))

    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise EncoderError(f"{binary} not found on PATH") from e

    frame_count = 0
    try:
        for frame in frames:
            if frame.shape[:2] != (height, width):
                raise EncoderError(
                    f"Frame {frame_count} is {frame.shape[1]}x{frame.shape[0]}, "
                    f"expected {width}x{height}"
                )
            proc.stdin.write(frame.tobytes())
            frame_count += 1
            if on_frame is not None:
                on_frame(frame_count)
    except BrokenPipeError:
        # ffmpeg exited early; its return code carries the reason.
        pass
    except BaseException:
        proc.kill()
        proc.wait()
        raise
    finally:
        if proc.stdin and not proc.stdin.closed:
            try:
                proc.stdin.close()
            except BrokenPipeError:
                pass

    stderr = proc.stderr.read().decode("utf-8", errors="replace")
    proc.wait()

    if proc.returncode != 0:
        # Filter out common non-error ffmpeg messages
        error_lines = [
            line for line in stderr.split("\n")
            if "error" in line.lower() or "invalid" in line.lower()
        ]
        error_msg = "\n".join(error_lines[-5:]) if error_lines else stderr[-500:]
        raise EncoderError(f"ffmpeg exited with code {proc.returncode}: {error_msg}")

    logger.info("Encoded %d frames to %s", frame_count, output_path)
    return output_path
