"""Pytest configuration and shared fixtures."""

import io

import numpy as np
import pytest
import soundfile as sf

from pulsescope.clock import FrameHost, ManualClock
from pulsescope.core.decoder import DecodedAudio

# Default sample rate for test audio
TEST_SR = 22050


def wav_bytes(y: np.ndarray, sr: int = TEST_SR) -> bytes:
    """Encode a mono float signal as an in-memory WAV file."""
    buf = io.BytesIO()
    sf.write(buf, y, sr, format="WAV", subtype="PCM_16")
    return buf.getvalue()


def sine(duration: float, frequency: float = 440.0, sr: int = TEST_SR, amplitude: float = 0.5):
    t = np.linspace(0, duration, int(sr * duration), endpoint=False)
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


@pytest.fixture
def sample_rate() -> int:
    """Default sample rate for tests."""
    return TEST_SR


@pytest.fixture
def pure_sine(sample_rate: int) -> tuple[np.ndarray, int]:
    """
    Generate a pure 440Hz sine wave (A4 note).

    Returns:
        Tuple of (audio_signal, sample_rate).
    """
    return sine(2.0, 440.0, sample_rate), sample_rate


@pytest.fixture
def click_track(sample_rate: int) -> tuple[np.ndarray, int]:
    """
    Generate a kick-like click track at 120 BPM.

    Each click is a decaying 60 Hz burst so that it lands in the bass bins.

    Returns:
        Tuple of (audio_signal, sample_rate).
    """
    duration = 4.0
    bpm = 120
    samples_per_beat = int(sample_rate * 60 / bpm)
    total_samples = int(sample_rate * duration)

    y = np.zeros(total_samples, dtype=np.float32)

    click_duration = int(sample_rate * 0.15)
    t = np.arange(click_duration) / sample_rate
    kick = 0.9 * np.sin(2 * np.pi * 60 * t) * np.exp(-t * 25)
    for beat_start in range(0, total_samples, samples_per_beat):
        click_end = min(beat_start + click_duration, total_samples)
        y[beat_start:click_end] = kick[: click_end - beat_start]

    return y, sample_rate


@pytest.fixture
def make_wav():
    """Factory: make_wav(duration, frequency=440, amplitude=0.5) -> WAV bytes."""
    def _make(duration: float, frequency: float = 440.0, amplitude: float = 0.5) -> bytes:
        return wav_bytes(sine(duration, frequency, TEST_SR, amplitude), TEST_SR)
    return _make


@pytest.fixture
def sine_wav(pure_sine) -> bytes:
    """Two seconds of A4 as WAV bytes."""
    y, sr = pure_sine
    return wav_bytes(y, sr)


@pytest.fixture
def ten_second_wav(sample_rate: int) -> bytes:
    """Ten seconds of a quiet 100 Hz tone as WAV bytes."""
    return wav_bytes(sine(10.0, 100.0, sample_rate, amplitude=0.3), sample_rate)


@pytest.fixture
def decoded_sine(pure_sine) -> DecodedAudio:
    y, sr = pure_sine
    return DecodedAudio(samples=y, sample_rate=sr, duration=len(y) / sr)


@pytest.fixture
def manual_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def frame_host(manual_clock: ManualClock) -> FrameHost:
    return FrameHost(manual_clock)


@pytest.fixture
def temp_audio_file(tmp_path, click_track):
    """Create a temporary audio file for testing file I/O."""
    y, sr = click_track
    audio_path = tmp_path / "test_audio.wav"
    sf.write(audio_path, y, sr)
    return audio_path
