"""
Per-frame feature extraction and energy-based beat detection.

The extractor turns the analyser's byte spectrum into bass/mid/treble
energies; the detector compares bass energy with a rolling average of the
last ~700 ms (43 frames at 60 fps) to flag beats.

Bin ranges assume fft_size 2048 at 44.1 kHz:
- Bass: bins 0-10 (~20-250 Hz)
- Mid: bins 10-93 (~250-2000 Hz)
- Treble: bins 93-end (~2-20 kHz)
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable

import numpy as np

from pulsescope.clock import Clock
from pulsescope.core.graph import Analyser
from pulsescope.events import Signal

logger = logging.getLogger(__name__)

AnalyserProvider = Callable[[], Analyser | None]

BASS_END = 10
MID_END = 93


@dataclass
class FrequencyBands:
    """Normalized (0-1) band energies of one frame."""

    bass: float = 0.0
    mid: float = 0.0
    treble: float = 0.0
    overall: float = 0.0


@dataclass
class BeatEvent:
    """Beat decision for one frame."""

    is_beat: bool = False
    intensity: float = 0.0
    time_since_last_beat_ms: float = 0.0
    frequency_bands: FrequencyBands = field(default_factory=FrequencyBands)


@dataclass
class FrameFeatures:
    """Read-only per-frame view handed to visual producers."""

    bands: FrequencyBands = field(default_factory=FrequencyBands)
    beat: BeatEvent = field(default_factory=BeatEvent)
    frequency_data: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float32))
    time_domain_data: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float32))
    generation: int = 0


class BeatHistory:
    """Bounded FIFO of recent bass energies."""

    def __init__(self, size: int = 43):
        self._values: deque[float] = deque(maxlen=size)

    @property
    def size(self) -> int:
        return self._values.maxlen

    def push(self, value: float):
        self._values.append(value)

    def average(self) -> float:
        if not self._values:
            return 0.0
        return sum(self._values) / len(self._values)

    def clear(self):
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)


class FeatureExtractor:
    """
    Owns the frequency snapshot and derives band energies from it.

    The snapshot is overwritten in place by refresh(); consumers get
    normalized copies from frequency_data() / time_domain_data() and can
    compare `generation` to detect a stale read.
    """

    def __init__(
        self,
        analyser_provider: AnalyserProvider | None = None,
        frequency_bin_count: int = 1024,
    ):
        self._provider = analyser_provider
        self.frequency_bin_count = frequency_bin_count
        self.snapshot = np.zeros(frequency_bin_count, dtype=np.uint8)
        self.generation = 0

    def _analyser(self) -> Analyser | None:
        if self._provider is None:
            return None
        return self._provider()

    def refresh(self) -> int:
        """Pull the current spectrum into the snapshot. Returns the generation."""
        analyser = self._analyser()
        if analyser is None:
            self.snapshot[:] = 0
        else:
            analyser.get_byte_frequency_data(self.snapshot)
        self.generation += 1
        return self.generation

    def band_energy(self, start: int, end: int) -> float:
        """Mean of bins [start, end) scaled to 0-1; 0 for an empty range."""
        end = min(end, len(self.snapshot))
        count = end - start
        if count <= 0:
            return 0.0
        total = int(self.snapshot[start:end].sum(dtype=np.int64))
        return total / (count * 255)

    def bands(self) -> FrequencyBands:
        """Band energies of the latest snapshot. Does not refresh."""
        bass = self.band_energy(0, BASS_END)
        mid = self.band_energy(BASS_END, MID_END)
        treble = self.band_energy(MID_END, len(self.snapshot))
        return FrequencyBands(
            bass=bass,
            mid=mid,
            treble=treble,
            overall=(bass + mid + treble) / 3,
        )

    def frequency_data(self) -> np.ndarray:
        """Copy of the snapshot scaled to 0-1."""
        return self.snapshot.astype(np.float32) / 255.0

    def time_domain_data(self) -> np.ndarray:
        """Current waveform scaled to -1..1; flat when nothing is loaded."""
        raw = np.full(self.frequency_bin_count, 128, dtype=np.uint8)
        analyser = self._analyser()
        if analyser is not None:
            analyser.get_byte_time_domain_data(raw)
        return (raw.astype(np.float32) - 128.0) / 128.0


class BeatDetector:
    """
    Flags a beat when bass energy jumps above its trailing average.

    Args:
        extractor: Source of band energies.
        clock: Time source for the cooldown.
        history_size: Frames in the rolling average.
        threshold: Ratio over the average that counts as a beat.
        cooldown_ms: Minimum spacing between beats.
        energy_floor: Average below which nothing is a beat (silence).
    """

    def __init__(
        self,
        extractor: FeatureExtractor,
        clock: Clock,
        history_size: int = 43,
        threshold: float = 1.3,
        cooldown_ms: float = 100.0,
        energy_floor: float = 0.01,
    ):
        self.extractor = extractor
        self.clock = clock
        self.threshold = threshold
        self.cooldown_ms = cooldown_ms
        self.energy_floor = energy_floor

        self.history = BeatHistory(history_size)
        self.beat = Signal("beat")
        self._last_beat_ms = 0.0

    def bands(self) -> FrequencyBands:
        return self.extractor.bands()

    def process(self, bands: FrequencyBands, now_ms: float) -> BeatEvent:
        """Advance history and cooldown with one frame's bands."""
        since_last = now_ms - self._last_beat_ms
        energy = bands.bass

        self.history.push(energy)
        average = self.history.average()

        is_beat = (
            energy > average * self.threshold
            and since_last > self.cooldown_ms
            and average > self.energy_floor
        )

        intensity = 0.0
        if is_beat:
            intensity = min(1.0, max(0.0, (energy - average) / average))
            self._last_beat_ms = now_ms

        event = BeatEvent(
            is_beat=is_beat,
            intensity=intensity,
            time_since_last_beat_ms=0.0 if is_beat else since_last,
            frequency_bands=bands,
        )
        if is_beat:
            self.beat.emit(event)
        return event

    def beat_info(self) -> BeatEvent:
        """Refresh the snapshot and run one detection step. Call once per frame."""
        self.extractor.refresh()
        return self.process(self.extractor.bands(), self.clock.now_ms())

    def on_beat(self, callback: Callable[[BeatEvent], None]) -> Callable[[], None]:
        return self.beat.connect(callback)

    def reset(self):
        """Forget the rolling average and cooldown (after seeks and track changes)."""
        self.history.clear()
        self._last_beat_ms = 0.0
