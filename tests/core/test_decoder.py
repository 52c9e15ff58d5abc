"""Tests for audio intake validation and decoding."""

import numpy as np
import pytest

from pulsescope.core.decoder import decode_audio, is_supported, validate_type
from pulsescope.errors import DecodeError, UnsupportedFormatError


class TestAllowList:
    @pytest.mark.parametrize(
        "mime", ["audio/mpeg", "audio/wav", "audio/wave", "audio/x-wav", "AUDIO/WAV"]
    )
    def test_supported_mime_types(self, mime):
        assert is_supported(mime_type=mime)

    def test_extension_fallback(self):
        assert is_supported(mime_type="application/octet-stream", filename="song.MP3")
        assert is_supported(filename="take.wav")

    def test_rejects_other_formats(self):
        assert not is_supported(mime_type="audio/ogg", filename="song.ogg")
        assert not is_supported(mime_type="audio/flac")
        assert not is_supported()

    def test_validate_raises(self):
        with pytest.raises(UnsupportedFormatError):
            validate_type("video/mp4", "clip.mp4")


class TestDecode:
    def test_decodes_wav(self, sine_wav, sample_rate):
        audio = decode_audio(sine_wav)

        assert audio.sample_rate == sample_rate
        assert audio.samples.dtype == np.float32
        assert audio.samples.ndim == 1
        assert audio.n_samples == 2 * sample_rate
        assert audio.duration == pytest.approx(2.0, abs=1e-3)

    def test_resamples_on_request(self, sine_wav):
        audio = decode_audio(sine_wav, sr=11025)

        assert audio.sample_rate == 11025
        assert audio.duration == pytest.approx(2.0, abs=0.01)

    def test_samples_keep_amplitude(self, sine_wav):
        audio = decode_audio(sine_wav)
        assert np.max(np.abs(audio.samples)) == pytest.approx(0.5, abs=0.01)

    def test_empty_buffer(self):
        with pytest.raises(DecodeError):
            decode_audio(b"")

    def test_garbage_bytes(self):
        with pytest.raises(DecodeError):
            decode_audio(b"definitely not a wav file" * 10)
