"""
Offline video export.

Replays the loaded track from the start against a ManualClock, one simulated
frame per step, and streams the rendered canvas to the ffmpeg encoder. Audio
comes from the engine's output tap written to a temporary WAV.
"""

import logging
import math
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator

import numpy as np
import soundfile as sf

from pulsescope.clock import ManualClock
from pulsescope.errors import PulsescopeError
from pulsescope.io.encoder import QUALITY_PRESETS, encode_video
from pulsescope.pipeline import ReactivePipeline

logger = logging.getLogger(__name__)


class ExportState(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    RECORDING = "recording"
    ENCODING = "encoding"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class ExportProgress:
    state: ExportState = ExportState.IDLE
    progress: float = 0.0  # 0-1
    error: str | None = None


@dataclass(frozen=True)
class ExportResolution:
    id: str
    label: str
    width: int
    height: int


EXPORT_RESOLUTIONS = {
    "720p": ExportResolution("720p", "720p (HD)", 1280, 720),
    "1080p": ExportResolution("1080p", "1080p (Full HD)", 1920, 1080),
}

ProgressCallback = Callable[[ExportProgress], None]


class VideoExporter:
    """
    Records a pipeline to MP4.

    The pipeline's host must run on a ManualClock so frames are produced at
    exactly 1 / frame_rate second steps, independent of wall-clock speed.
    """

    def __init__(self, pipeline: ReactivePipeline):
        if not isinstance(pipeline.clock, ManualClock):
            raise ValueError("VideoExporter needs a pipeline driven by a ManualClock")
        self.pipeline = pipeline
        self.clock: ManualClock = pipeline.clock
        self.progress = ExportProgress()
        self._callback: ProgressCallback | None = None

    def _report(self, state: ExportState, progress: float, error: str | None = None):
        self.progress = ExportProgress(state, min(max(progress, 0.0), 1.0), error)
        if self._callback is not None:
            self._callback(self.progress)

    def export(
        self,
        output_path: str | Path,
        resolution: str = "720p",
        frame_rate: int = 30,
        quality: str = "medium",
        max_duration: float | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> Path:
        """
        Render the loaded track from 0 to its end and encode it.

        Args:
            output_path: Output MP4 path.
            resolution: Key of EXPORT_RESOLUTIONS.
            frame_rate: Frames per second.
            quality: Key of QUALITY_PRESETS.
            max_duration: Optional limit in seconds.
            progress_callback: Called with an ExportProgress on every change.

        Returns:
            Path to the written file.

        Raises:
            ValueError: Unknown resolution or quality, or a bad frame rate.
            PulsescopeError: No track is loaded.
            EncoderError: ffmpeg failed.
        """
        if resolution not in EXPORT_RESOLUTIONS:
            raise ValueError(
                f"Unknown resolution {resolution!r}; choose from {sorted(EXPORT_RESOLUTIONS)}"
            )
        if quality not in QUALITY_PRESETS:
            raise ValueError(f"Unknown quality {quality!r}; choose from {sorted(QUALITY_PRESETS)}")
        if frame_rate <= 0:
            raise ValueError("frame_rate must be positive")

        engine = self.pipeline.engine
        if not engine.has_track():
            raise PulsescopeError("No track loaded")

        self._callback = progress_callback
        res = EXPORT_RESOLUTIONS[resolution]
        duration = engine.duration()
        if max_duration is not None:
            duration = min(duration, max_duration)
        output_path = Path(output_path)

        renderer = self.pipeline.renderer
        restore_size = (renderer.width, renderer.height, renderer.canvas.pixel_ratio)

        self._report(ExportState.PREPARING, 0.0)
        logger.info(
            "Exporting %.1fs at %dx%d @ %dfps (%s)",
            duration, res.width, res.height, frame_rate, quality,
        )
        try:
            with tempfile.TemporaryDirectory(prefix="pulsescope-") as tmp:
                audio_path = Path(tmp) / "audio.wav"
                self._write_audio(audio_path)
                renderer.resize(res.width, res.height, pixel_ratio=1.0)

                frames = self._record(duration, frame_rate)
                try:
                    encode_video(
                        frames,
                        audio_path,
                        output_path,
                        res.width,
                        res.height,
                        fps=frame_rate,
                        quality=quality,
                        duration=duration,
                    )
                finally:
                    # Stops playback even when the encoder bails out mid-stream.
                    frames.close()
            self._report(ExportState.COMPLETE, 1.0)
        except Exception as e:
            self._report(ExportState.ERROR, self.progress.progress, str(e))
            logger.error("Export failed: %s", e)
            raise
        finally:
            renderer.resize(*restore_size)
            self._callback = None

        logger.info("Export complete: %s", output_path)
        return output_path

    def _write_audio(self, path: Path):
        samples, sample_rate = self.pipeline.engine.audio_output()
        sf.write(str(path), np.asarray(samples, dtype=np.float32), sample_rate, subtype="PCM_16")

    def _record(self, duration: float, frame_rate: int) -> Iterator[np.ndarray]:
        """
        Yield one canvas frame per simulated tick.

        The frame count always covers the full duration, so the last frames
        keep drawing after the engine ends the track at duration - 0.1 s.
        """
        engine = self.pipeline.engine
        renderer = self.pipeline.renderer
        host = self.pipeline.host
        step = 1.0 / frame_rate
        total_frames = max(1, math.ceil(duration * frame_rate))

        self._report(ExportState.RECORDING, 0.0)
        engine.seek(0.0)
        engine.play()
        self.pipeline.start()

        written = 0
        try:
            while written < total_frames:
                self.clock.advance(step)
                host.pump()
                yield renderer.canvas.pixels()
                written += 1
                self._report(ExportState.RECORDING, written / total_frames)
        finally:
            self.pipeline.stop()
            engine.pause()

        logger.debug("Recorded %d frames", written)
        self._report(ExportState.ENCODING, 1.0)
