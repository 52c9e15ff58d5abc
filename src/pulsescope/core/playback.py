"""
Playback engine.

Owns the audio graph, the playback clock and the state machine
IDLE -> LOADING -> READY <-> PLAYING <-> PAUSED. All transitions happen on
the frame host's thread; only the decode of load_async() runs on a worker.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum

import numpy as np

from pulsescope.clock import FrameHost
from pulsescope.core.decoder import DecodedAudio, decode_audio, validate_type
from pulsescope.core.graph import Analyser, AudioGraph, AudioSink
from pulsescope.errors import PulsescopeError
from pulsescope.events import Signal

logger = logging.getLogger(__name__)

# Tracks within this many seconds of the end are considered finished.
END_OF_TRACK_TOLERANCE = 0.1


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass
class PlaybackClock:
    """Reference time of the running source and the resume position."""

    start_reference_time: float = 0.0
    paused_offset: float = 0.0


class PlaybackEngine:
    """
    Plays one decoded track at a time against the host clock.

    Operations that need a track (play, pause, seek) are silent no-ops
    without one. Load failures are raised to the caller, emitted on the
    `error` signal and always leave the engine IDLE.
    """

    def __init__(
        self,
        host: FrameHost,
        sink: AudioSink | None = None,
        fft_size: int = 2048,
        smoothing_time_constant: float = 0.8,
    ):
        self.host = host
        self.clock = host.clock
        self.timing = PlaybackClock()

        self.state_changed = Signal("state_changed")
        self.time_updated = Signal("time_updated")
        self.error = Signal("error")
        self.seeked = Signal("seeked")
        self.track_loaded = Signal("track_loaded")

        self._sink = sink
        self._fft_size = fft_size
        self._smoothing = smoothing_time_constant
        self._graph: AudioGraph | None = None
        self._audio: DecodedAudio | None = None
        self._state = PlaybackState.IDLE
        self._frame_handle: int | None = None
        self._load_token = 0
        self._executor: ThreadPoolExecutor | None = None

    # -- graph ---------------------------------------------------------------

    @property
    def graph(self) -> AudioGraph | None:
        return self._graph

    def graph_initialized(self) -> bool:
        """True once a track has been loaded and until dispose()."""
        return self._graph is not None and not self._graph.closed

    def analyser(self) -> Analyser | None:
        """The graph's analyser, or None before the first load."""
        if not self.graph_initialized():
            return None
        return self._graph.analyser

    def _ensure_graph(self) -> AudioGraph:
        if not self.graph_initialized():
            self._graph = AudioGraph(
                self.clock,
                sink=self._sink,
                fft_size=self._fft_size,
                smoothing_time_constant=self._smoothing,
            )
            logger.debug("Audio graph created")
        return self._graph

    # -- state ---------------------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        return self._state

    def _set_state(self, state: PlaybackState):
        if state == self._state:
            return
        logger.debug("Playback %s -> %s", self._state.value, state.value)
        self._state = state
        self.state_changed.emit(state)

    def has_track(self) -> bool:
        return self._audio is not None

    def duration(self) -> float:
        return self._audio.duration if self._audio is not None else 0.0

    def current_time(self) -> float:
        """Playback position in seconds, always within [0, duration]."""
        if self._audio is None:
            return 0.0
        if self._state == PlaybackState.PLAYING:
            elapsed = self.clock.now() - self.timing.start_reference_time
            return min(self._audio.duration, max(0.0, elapsed))
        return self.timing.paused_offset

    def audio_output(self) -> tuple[np.ndarray, int] | None:
        """Raw output tap: (samples, sample_rate) of the loaded track."""
        if self._audio is None:
            return None
        return self._audio.samples, self._audio.sample_rate

    # -- loading -------------------------------------------------------------

    def _begin_load(self):
        self._stop_playback()
        self._audio = None
        self.timing = PlaybackClock()
        self._set_state(PlaybackState.LOADING)

    def _finish_load(self, audio: DecodedAudio):
        self._ensure_graph()
        self._audio = audio
        self.timing = PlaybackClock()
        self._set_state(PlaybackState.READY)
        logger.info("Loaded track (%.2fs @ %d Hz)", audio.duration, audio.sample_rate)
        self.track_loaded.emit(audio.duration)

    def _fail_load(self, exc: BaseException):
        self._audio = None
        self.timing = PlaybackClock()
        self._set_state(PlaybackState.IDLE)
        logger.warning("Failed to load audio: %s", exc)
        self.error.emit(exc)

    def load(
        self,
        data: bytes,
        mime_type: str | None = None,
        filename: str | None = None,
    ) -> float:
        """
        Validate and decode a track synchronously.

        Args:
            data: Encoded audio file contents.
            mime_type: Declared MIME type, checked against the allow-list.
            filename: Declared name; its extension is the fallback check.

        Returns:
            Track duration in seconds.

        Raises:
            UnsupportedFormatError: Declared type is not mp3/wav.
            DecodeError: The bytes could not be decoded.
        """
        self._load_token += 1
        self._begin_load()
        try:
            validate_type(mime_type, filename)
            audio = decode_audio(data)
        except PulsescopeError as e:
            self._fail_load(e)
            raise
        self._finish_load(audio)
        return audio.duration

    def load_async(
        self,
        data: bytes,
        mime_type: str | None = None,
        filename: str | None = None,
    ) -> Future:
        """
        Validate now, decode on a worker thread.

        The engine is LOADING until the host's next pump after the decode
        finishes; the READY/IDLE transition happens on the host thread. A
        newer load (or dispose) supersedes a pending one, whose future is
        then cancelled.

        Returns:
            Future resolving to the duration, or raising the load error.
        """
        self._load_token += 1
        token = self._load_token
        future: Future = Future()

        self._begin_load()
        try:
            validate_type(mime_type, filename)
        except PulsescopeError as e:
            self._fail_load(e)
            future.set_exception(e)
            return future

        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="pulsescope-decode"
            )
        work = self._executor.submit(decode_audio, data)
        work.add_done_callback(
            lambda done: self.host.call_soon_threadsafe(
                self._complete_async_load, token, done, future
            )
        )
        return future

    def _complete_async_load(self, token: int, work: Future, future: Future):
        if token != self._load_token:
            future.cancel()
            return
        if future.cancelled():
            self._set_state(PlaybackState.IDLE)
            return

        exc = work.exception()
        if exc is not None:
            self._fail_load(exc)
            future.set_exception(exc)
            return

        audio = work.result()
        self._finish_load(audio)
        future.set_result(audio.duration)

    # -- transport -----------------------------------------------------------

    def _start_source(self, offset: float):
        graph = self._ensure_graph()
        graph.start_source(self._audio, offset)
        self.timing.start_reference_time = graph.current_time - offset

    def _stop_playback(self):
        self._cancel_time_updates()
        if self._graph is not None:
            self._graph.stop_source()

    def play(self):
        if self._state not in (PlaybackState.READY, PlaybackState.PAUSED):
            return
        if self._audio is None:
            return
        self._start_source(self.timing.paused_offset)
        self._set_state(PlaybackState.PLAYING)
        self._schedule_time_update()

    def pause(self):
        if self._state != PlaybackState.PLAYING:
            return
        self.timing.paused_offset = self.current_time()
        self._stop_playback()
        self._set_state(PlaybackState.PAUSED)

    def seek(self, seconds: float):
        """
        Jump to `seconds`, clamped to the track.

        While playing the source restarts from the new position; otherwise
        only the resume offset moves and a time update is emitted at once.
        """
        if self._audio is None:
            return
        target = min(max(0.0, float(seconds)), self._audio.duration)

        if self._state == PlaybackState.PLAYING:
            self._graph.stop_source()
            self.timing.paused_offset = target
            self._start_source(target)
        else:
            self.timing.paused_offset = target
            self.time_updated.emit(target)
        self.seeked.emit(target)

    def set_volume(self, volume: float):
        self._ensure_graph().set_volume(volume)

    # -- per-frame time updates ----------------------------------------------

    def _schedule_time_update(self):
        self._frame_handle = self.host.request_frame(self._on_frame)

    def _cancel_time_updates(self):
        self.host.cancel_frame(self._frame_handle)
        self._frame_handle = None

    def _on_frame(self, timestamp_ms: float):
        self._frame_handle = None
        if self._state != PlaybackState.PLAYING:
            return

        now = self.current_time()
        if now >= self._audio.duration - END_OF_TRACK_TOLERANCE:
            self._graph.stop_source()
            self.timing.paused_offset = 0.0
            self._set_state(PlaybackState.READY)
            self.time_updated.emit(0.0)
            return

        self._schedule_time_update()
        self.time_updated.emit(now)

    # -- teardown ------------------------------------------------------------

    def dispose(self):
        """Release the audio graph and return to IDLE. Safe to repeat."""
        self._load_token += 1
        self._stop_playback()
        if self._graph is not None:
            self._graph.close()
            self._graph = None
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        self._audio = None
        self.timing = PlaybackClock()
        self._set_state(PlaybackState.IDLE)
