"""
Per-frame glue between playback, analysis and drawing.

Orchestrates one frame as: snapshot -> bands -> beat -> decay channels ->
render callbacks. Analysis runs on the renderer's frame_started signal, so
every producer sees the same FrameFeatures for the whole frame.
"""

import logging
from pathlib import Path

from pulsescope.clock import FrameHost
from pulsescope.config import SceneConfig
from pulsescope.core.detector import BeatDetector, BeatEvent, FeatureExtractor, FrameFeatures
from pulsescope.core.graph import AudioSink
from pulsescope.core.playback import PlaybackEngine
from pulsescope.render.renderer import Renderer, RendererConfig
from pulsescope.visualizers import (
    BackgroundLayer,
    CameraShake,
    CircularSpectrum,
    ClubEqualizer,
    ParticleBurst,
    ScrollingEqualizer,
    TextOverlay,
    Vignette,
    Visualizer,
    Waveform,
)

logger = logging.getLogger(__name__)


class ReactivePipeline:
    """
    Complete audio-to-canvas pipeline for one scene.

    Combines the playback engine, feature extraction, beat detection and the
    configured visual producers into a single interface driven by a FrameHost.

    Usage:
        host = FrameHost(ManualClock())
        pipeline = ReactivePipeline(host, scene)
        pipeline.load_file("track.wav")
        pipeline.engine.play()
        pipeline.start()
        host.pump()
    """

    def __init__(
        self,
        host: FrameHost,
        scene: SceneConfig | None = None,
        sink: AudioSink | None = None,
        seed: int | None = None,
        fft_size: int = 2048,
    ):
        """
        Initialize the pipeline.

        Args:
            host: Frame host every loop is scheduled on.
            scene: Scene to draw; defaults to SceneConfig().
            sink: Audio output; silent when omitted.
            seed: Seed for the particle and shake randomness.
            fft_size: Analyser FFT size (bins = fft_size / 2).
        """
        self.host = host
        self.clock = host.clock
        self.scene = scene or SceneConfig()

        self.engine = PlaybackEngine(host, sink=sink, fft_size=fft_size)
        self.extractor = FeatureExtractor(self.engine.analyser, frequency_bin_count=fft_size // 2)
        self.detector = BeatDetector(self.extractor, self.clock)
        self.renderer = Renderer(
            host,
            RendererConfig(
                width=self.scene.width,
                height=self.scene.height,
                background_color=self.scene.background_color,
            ),
        )

        self.features = FrameFeatures()
        self.visualizers = self._build_visualizers(seed)
        self.shake = CameraShake(self.scene.camera_shake, self.clock, seed=seed)
        for visualizer in self.visualizers:
            visualizer.attach(self.renderer)

        self._subscriptions = [
            self.renderer.frame_started.connect(self._on_frame),
            self.engine.seeked.connect(self._on_discontinuity),
            self.engine.track_loaded.connect(self._on_discontinuity),
        ]
        self._disposed = False

    def _build_visualizers(self, seed: int | None) -> list[Visualizer]:
        scene = self.scene
        source = self.current_features
        visualizers: list[Visualizer] = [BackgroundLayer(scene.background, features=source)]
        if scene.visualizer_enabled:
            visualizers.append(self._build_spectrum(source))
        visualizers.append(ParticleBurst(scene.particles, features=source, seed=seed))
        visualizers.append(Vignette(scene.vignette, features=source))
        if scene.text_layers:
            visualizers.append(TextOverlay(scene.text_layers, self.clock, features=source))
        return visualizers

    def _build_spectrum(self, source) -> Visualizer:
        """The scene's main visualizer."""
        kind = self.scene.visualizer
        if kind == "equalizer":
            return ScrollingEqualizer(features=source)
        if kind == "waveform":
            return Waveform(features=source)
        if kind == "circular":
            return CircularSpectrum(self.scene.circular, features=source)
        return ClubEqualizer(self.clock, self.scene.club, features=source)

    def current_features(self) -> FrameFeatures:
        """Features of the frame being drawn."""
        return self.features

    def load(self, data: bytes, mime_type: str | None = None, filename: str | None = None) -> float:
        return self.engine.load(data, mime_type=mime_type, filename=filename)

    def load_file(self, path: str | Path) -> float:
        """Load a track from disk; the extension is the declared type."""
        path = Path(path)
        return self.load(path.read_bytes(), filename=path.name)

    def start(self):
        self.renderer.start()

    def stop(self):
        self.renderer.stop()

    def dispose(self):
        """Stop everything and release the audio graph. Safe to repeat."""
        if self._disposed:
            return
        self._disposed = True
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions.clear()
        for visualizer in self.visualizers:
            visualizer.detach()
        self.renderer.dispose()
        self.engine.dispose()

    def _on_frame(self, timestamp_ms: float, delta_ms: float):
        beat = self.detector.beat_info()
        extractor = self.extractor
        self.features = FrameFeatures(
            bands=beat.frequency_bands,
            beat=beat,
            frequency_data=extractor.frequency_data(),
            time_domain_data=extractor.time_domain_data(),
            generation=extractor.generation,
        )
        self._react(beat)

    def _react(self, beat: BeatEvent):
        for visualizer in self.visualizers:
            visualizer.react(beat)
        self.shake.react(beat)
        self.renderer.set_camera_offset(*self.shake.offset())

    def _on_discontinuity(self, _seconds: float):
        logger.debug("Resetting beat state")
        self.detector.reset()
        for visualizer in self.visualizers:
            visualizer.reset()
        self.shake.reset()
