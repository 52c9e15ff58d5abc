"""Tests for the audio graph and analyser tap."""

import numpy as np
import pytest

from pulsescope.core.graph import Analyser, AudioGraph, AudioSink, BufferSource, NullSink


class RecordingSink(AudioSink):
    def __init__(self):
        self.calls = []

    def start(self, audio, offset):
        self.calls.append(("start", offset))

    def stop(self):
        self.calls.append(("stop",))

    def set_volume(self, volume):
        self.calls.append(("volume", volume))


class TestBufferSource:
    def test_position_follows_clock(self, decoded_sine, manual_clock):
        source = BufferSource(decoded_sine, manual_clock, offset=0.5)
        assert source.position() == 0.5

        manual_clock.advance(0.25)
        assert source.position() == pytest.approx(0.75)

    def test_position_clamped_to_duration(self, decoded_sine, manual_clock):
        source = BufferSource(decoded_sine, manual_clock)
        manual_clock.advance(10.0)
        assert source.position() == decoded_sine.duration

    def test_window_is_last_played_samples(self, decoded_sine, manual_clock):
        source = BufferSource(decoded_sine, manual_clock)
        manual_clock.advance(1.0)

        window = source.window(1024)
        end = decoded_sine.sample_rate
        np.testing.assert_array_equal(window, decoded_sine.samples[end - 1024:end])

    def test_window_zero_padded_at_start(self, decoded_sine, manual_clock):
        source = BufferSource(decoded_sine, manual_clock)
        manual_clock.advance(100 / decoded_sine.sample_rate)

        window = source.window(256)
        assert np.all(window[:156] == 0)
        np.testing.assert_allclose(window[156:], decoded_sine.samples[:100])

    def test_stopped_source_is_silent(self, decoded_sine, manual_clock):
        source = BufferSource(decoded_sine, manual_clock)
        manual_clock.advance(1.0)
        source.stop()
        manual_clock.advance(0.5)

        assert source.position() == pytest.approx(1.0)
        assert not source.window(512).any()


class TestAnalyser:
    @pytest.mark.parametrize("size", [0, 16, 1000, 3000])
    def test_rejects_bad_fft_size(self, size):
        with pytest.raises(ValueError):
            Analyser(fft_size=size)

    def test_silence_is_zero(self):
        analyser = Analyser()
        out = np.full(analyser.frequency_bin_count, 7, dtype=np.uint8)
        analyser.get_byte_frequency_data(out)
        assert not out.any()

        waveform = np.zeros(analyser.fft_size, dtype=np.uint8)
        analyser.get_byte_time_domain_data(waveform)
        assert np.all(waveform == 128)

    def test_sine_peaks_at_its_bin(self, decoded_sine, manual_clock):
        analyser = Analyser(smoothing_time_constant=0.0)
        source = BufferSource(decoded_sine, manual_clock)
        analyser.connect(source)
        manual_clock.advance(1.0)

        out = np.zeros(analyser.frequency_bin_count, dtype=np.uint8)
        analyser.get_byte_frequency_data(out)

        expected_bin = 440 * analyser.fft_size / decoded_sine.sample_rate
        assert abs(int(np.argmax(out)) - expected_bin) <= 2
        assert out.max() > 200

    def test_smoothing_blends_frames(self, decoded_sine, manual_clock):
        fast = Analyser(smoothing_time_constant=0.0)
        smooth = Analyser(smoothing_time_constant=0.8)
        source = BufferSource(decoded_sine, manual_clock)
        fast.connect(source)
        smooth.connect(source)
        manual_clock.advance(1.0)

        a = np.zeros(fast.frequency_bin_count, dtype=np.uint8)
        b = np.zeros(smooth.frequency_bin_count, dtype=np.uint8)
        fast.get_byte_frequency_data(a)
        smooth.get_byte_frequency_data(b)

        peak = int(np.argmax(a))
        assert b[peak] < a[peak]

    def test_reset_clears_history(self, decoded_sine, manual_clock):
        analyser = Analyser()
        analyser.connect(BufferSource(decoded_sine, manual_clock))
        manual_clock.advance(1.0)
        out = np.zeros(analyser.frequency_bin_count, dtype=np.uint8)
        analyser.get_byte_frequency_data(out)

        analyser.disconnect()
        analyser.reset()
        analyser.get_byte_frequency_data(out)
        assert not out.any()


class TestAudioGraph:
    def test_defaults_to_null_sink(self, manual_clock):
        graph = AudioGraph(manual_clock)
        assert isinstance(graph.sink, NullSink)

    def test_source_routing(self, decoded_sine, manual_clock):
        sink = RecordingSink()
        graph = AudioGraph(manual_clock, sink=sink)

        source = graph.start_source(decoded_sine, 0.5)
        assert graph.source is source
        assert sink.calls == [("start", 0.5)]

        graph.stop_source()
        assert graph.source is None
        assert not source.playing
        assert sink.calls[-1] == ("stop",)

    def test_volume_is_clamped(self, manual_clock):
        graph = AudioGraph(manual_clock)
        graph.set_volume(1.7)
        assert graph.volume == 1.0
        graph.set_volume(-1)
        assert graph.volume == 0.0
        assert graph.sink.volume == 0.0

    def test_close_is_idempotent(self, decoded_sine, manual_clock):
        graph = AudioGraph(manual_clock)
        graph.start_source(decoded_sine, 0.0)
        graph.close()
        graph.close()
        assert graph.closed
        assert graph.source is None
