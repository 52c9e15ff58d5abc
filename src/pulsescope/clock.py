"""
Clocks and the frame host.

The whole pipeline is advanced by one host-provided frame tick per display
refresh. FrameHost plays the role of the browser's requestAnimationFrame:
callbacks are requested for the *next* frame and run once when the host is
pumped. A real-time loop pumps it against a MonotonicClock; offline export and
tests pump it by hand against a ManualClock.
"""

import abc
import logging
import threading
import time
from collections import deque
from typing import Any, Callable

logger = logging.getLogger(__name__)

FrameCallback = Callable[[float], None]


class Clock(abc.ABC):
    """Monotonic time source in seconds."""

    @abc.abstractmethod
    def now(self) -> float:
        pass

    def now_ms(self) -> float:
        return self.now() * 1000.0


class MonotonicClock(Clock):
    """Wall-clock time measured from construction."""

    def __init__(self):
        self._origin = time.perf_counter()

    def now(self) -> float:
        return time.perf_counter() - self._origin


class ManualClock(Clock):
    """Simulated time that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        self._now += seconds
        return self._now

    def set(self, seconds: float):
        if seconds < self._now:
            raise ValueError("ManualClock cannot move backwards")
        self._now = float(seconds)


class FrameHost:
    """
    Cooperative frame scheduler.

    Frame callbacks are one-shot: a loop that wants to keep running requests
    its next frame from inside the callback. A callback that raises is logged
    and the rest of the frame still runs. Calls queued from worker threads
    with call_soon_threadsafe() run at the start of the next pump, on the
    pumping thread.
    """

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or MonotonicClock()
        self.frame_count = 0

        self._next_handle = 1
        self._scheduled: dict[int, FrameCallback] = {}
        self._in_flight: dict[int, FrameCallback] = {}
        self._calls: deque = deque()
        self._lock = threading.Lock()
        self._running = False

    def request_frame(self, callback: FrameCallback) -> int:
        """Schedule callback(timestamp_ms) for the next pump. Returns a handle."""
        handle = self._next_handle
        self._next_handle += 1
        self._scheduled[handle] = callback
        return handle

    def cancel_frame(self, handle: int | None):
        if handle is None:
            return
        self._scheduled.pop(handle, None)
        self._in_flight.pop(handle, None)

    def call_soon_threadsafe(self, fn: Callable[..., Any], *args: Any):
        """Queue fn(*args) to run on the pumping thread."""
        with self._lock:
            self._calls.append((fn, args))

    @property
    def pending_frames(self) -> int:
        return len(self._scheduled)

    def _drain_calls(self):
        while True:
            with self._lock:
                if not self._calls:
                    return
                fn, args = self._calls.popleft()
            fn(*args)

    def pump(self, timestamp_ms: float | None = None) -> int:
        """
        Run one frame.

        Args:
            timestamp_ms: Frame timestamp; defaults to the host clock.

        Returns:
            Number of frame callbacks that ran.
        """
        self._drain_calls()
        if timestamp_ms is None:
            timestamp_ms = self.clock.now_ms()

        self._in_flight = self._scheduled
        self._scheduled = {}
        ran = 0
        while self._in_flight:
            handle = next(iter(self._in_flight))
            callback = self._in_flight.pop(handle)
            try:
                callback(timestamp_ms)
            except Exception:
                logger.exception("Frame callback %r failed", callback)
            ran += 1

        self.frame_count += 1
        return ran

    def run(
        self,
        fps: float = 60.0,
        until: Callable[[], bool] | None = None,
        max_frames: int | None = None,
    ):
        """
        Pump in real time at roughly `fps` until stopped.

        Args:
            fps: Target refresh rate.
            until: Optional predicate checked after every frame.
            max_frames: Optional frame budget.
        """
        interval = 1.0 / fps
        self._running = True
        frames = 0
        logger.debug("Frame host running at %.1f fps", fps)
        try:
            while self._running:
                started = time.perf_counter()
                self.pump()
                frames += 1
                if until is not None and until():
                    break
                if max_frames is not None and frames >= max_frames:
                    break
                remaining = interval - (time.perf_counter() - started)
                if remaining > 0:
                    time.sleep(remaining)
        finally:
            self._running = False

    def stop(self):
        self._running = False
