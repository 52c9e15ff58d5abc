"""
Audio graph: buffer source, analyser tap and output sink.

Route: BufferSource -> Analyser -> AudioSink. One graph is owned by each
playback engine. The analyser reproduces the behaviour of a browser
AnalyserNode (Blackman window, smoothed magnitude spectrum, decibel-scaled
bytes) so that the beat detector's thresholds carry over unchanged.
"""

import abc
import logging

import numpy as np
from scipy import signal as scipy_signal

from pulsescope.clock import Clock
from pulsescope.core.decoder import DecodedAudio

logger = logging.getLogger(__name__)


class BufferSource:
    """A single-use player of a decoded buffer starting at `offset` seconds."""

    def __init__(self, audio: DecodedAudio, clock: Clock, offset: float = 0.0):
        self.audio = audio
        self.offset = offset
        self._clock = clock
        self.started_at = clock.now()
        self.playing = True

    def position(self) -> float:
        """Seconds into the buffer, clamped to the track duration."""
        if not self.playing:
            return self.offset
        elapsed = self._clock.now() - self.started_at
        return min(self.audio.duration, max(0.0, self.offset + elapsed))

    def window(self, n: int) -> np.ndarray:
        """The last `n` samples played, zero-padded; silence once finished."""
        out = np.zeros(n, dtype=np.float32)
        pos = self.position()
        if not self.playing or pos >= self.audio.duration:
            return out

        end = int(round(pos * self.audio.sample_rate))
        start = max(0, end - n)
        chunk = self.audio.samples[start:end]
        if len(chunk):
            out[n - len(chunk):] = chunk
        return out

    def stop(self):
        self.offset = self.position()
        self.playing = False


class Analyser:
    """
    Frequency / time-domain tap on whatever the graph is playing.

    Args:
        fft_size: Transform window in samples (power of two).
        smoothing_time_constant: Weight of the previous spectrum (0-1).
        min_decibels: Level mapped to byte 0.
        max_decibels: Level mapped to byte 255.
    """

    def __init__(
        self,
        fft_size: int = 2048,
        smoothing_time_constant: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0,
    ):
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")
        if min_decibels >= max_decibels:
            raise ValueError("min_decibels must be below max_decibels")

        self.fft_size = fft_size
        self.frequency_bin_count = fft_size // 2
        self.smoothing_time_constant = float(np.clip(smoothing_time_constant, 0.0, 1.0))
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels

        self._window = scipy_signal.get_window("blackman", fft_size).astype(np.float32)
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=np.float64)
        self._source: BufferSource | None = None

    def connect(self, source: BufferSource):
        self._source = source

    def disconnect(self):
        self._source = None

    def _input(self) -> np.ndarray:
        if self._source is None:
            return np.zeros(self.fft_size, dtype=np.float32)
        return self._source.window(self.fft_size)

    def get_byte_frequency_data(self, out: np.ndarray):
        """Write the current spectrum as 0-255 bytes into `out` in place."""
        x = self._input() * self._window
        magnitude = np.abs(np.fft.rfft(x))[: self.frequency_bin_count] / self.fft_size

        tau = self.smoothing_time_constant
        self._smoothed = tau * self._smoothed + (1.0 - tau) * magnitude

        with np.errstate(divide="ignore"):
            db = 20.0 * np.log10(self._smoothed)
        scale = 255.0 / (self.max_decibels - self.min_decibels)
        scaled = np.nan_to_num((db - self.min_decibels) * scale, nan=0.0, neginf=0.0)

        n = min(len(out), self.frequency_bin_count)
        out[:n] = np.clip(np.floor(scaled[:n]), 0, 255)

    def get_byte_time_domain_data(self, out: np.ndarray):
        """Write the current waveform as bytes centred on 128 into `out`."""
        x = self._input()
        data = np.clip(np.floor(128.0 * (1.0 + x)), 0, 255)
        n = min(len(out), self.fft_size)
        out[:n] = data[:n]

    def reset(self):
        self._smoothed[:] = 0.0


class AudioSink(abc.ABC):
    """Where played samples go."""

    @abc.abstractmethod
    def start(self, audio: DecodedAudio, offset: float):
        pass

    @abc.abstractmethod
    def stop(self):
        pass

    def set_volume(self, volume: float):
        pass

    def close(self):
        self.stop()


class NullSink(AudioSink):
    """Silent output for offline rendering and tests."""

    def __init__(self):
        self.volume = 1.0

    def start(self, audio: DecodedAudio, offset: float):
        pass

    def stop(self):
        pass

    def set_volume(self, volume: float):
        self.volume = volume


class SoundDeviceSink(AudioSink):
    """Plays through the default (or given) output device via PortAudio."""

    def __init__(self, device: int | str | None = None, blocksize: int = 1024):
        import sounddevice as sd

        self._sd = sd
        self.device = device
        self.blocksize = blocksize
        self.volume = 1.0

        self._stream = None
        self._samples: np.ndarray | None = None
        self._cursor = 0

    def start(self, audio: DecodedAudio, offset: float):
        self.stop()
        self._samples = audio.samples
        self._cursor = int(offset * audio.sample_rate)
        self._stream = self._sd.OutputStream(
            samplerate=audio.sample_rate,
            channels=1,
            dtype="float32",
            device=self.device,
            blocksize=self.blocksize,
            callback=self._callback,
        )
        self._stream.start()

    def _callback(self, outdata, frames, time_info, status):
        if status:
            logger.debug("Output stream status: %s", status)
        chunk = self._samples[self._cursor:self._cursor + frames]
        self._cursor += frames
        outdata[: len(chunk), 0] = chunk * self.volume
        outdata[len(chunk):] = 0
        if len(chunk) < frames:
            raise self._sd.CallbackStop

    def stop(self):
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None

    def set_volume(self, volume: float):
        self.volume = volume


class AudioGraph:
    """
    The playback engine's audio resources.

    Created once per engine; close() releases the sink and detaches the
    analyser.
    """

    def __init__(
        self,
        clock: Clock,
        sink: AudioSink | None = None,
        fft_size: int = 2048,
        smoothing_time_constant: float = 0.8,
    ):
        self.clock = clock
        self.sink = sink or NullSink()
        self.analyser = Analyser(
            fft_size=fft_size,
            smoothing_time_constant=smoothing_time_constant,
        )
        self.volume = 1.0
        self.closed = False
        self._source: BufferSource | None = None

    @property
    def current_time(self) -> float:
        return self.clock.now()

    @property
    def source(self) -> BufferSource | None:
        return self._source

    def start_source(self, audio: DecodedAudio, offset: float) -> BufferSource:
        """Stop any current source and play `audio` from `offset` seconds."""
        self.stop_source()
        source = BufferSource(audio, self.clock, offset)
        self._source = source
        self.analyser.connect(source)
        self.sink.start(audio, offset)
        return source

    def stop_source(self):
        if self._source is None:
            return
        self._source.stop()
        self._source = None
        self.analyser.disconnect()
        self.sink.stop()

    def set_volume(self, volume: float):
        self.volume = float(np.clip(volume, 0.0, 1.0))
        self.sink.set_volume(self.volume)

    def close(self):
        if self.closed:
            return
        self.stop_source()
        self.sink.close()
        self.analyser.reset()
        self.closed = True
        logger.debug("Audio graph closed")
