"""Tests for offline analyser-style spectrum frames."""

import numpy as np
import pytest

from flowscope.io.spectrum import SpectrumAnalyzer, frame_count, load_audio


class TestSpectrumAnalyzer:
    def test_bin_count(self):
        assert SpectrumAnalyzer(fft_size=256).bin_count == 128
        assert SpectrumAnalyzer(fft_size=1024).bin_count == 512

    @pytest.mark.parametrize("size", [0, 100, 16, 300])
    def test_rejects_bad_fft_size(self, size):
        with pytest.raises(ValueError):
            SpectrumAnalyzer(fft_size=size)

    def test_rejects_inverted_db_range(self):
        with pytest.raises(ValueError):
            SpectrumAnalyzer(min_decibels=-10, max_decibels=-80)

    def test_silence_is_zero(self):
        frame = SpectrumAnalyzer().analyze_block(np.zeros(256))
        assert frame.dtype == np.uint8
        assert frame.shape == (128,)
        assert frame.max() == 0

    def test_sine_peaks_at_its_bin(self, pure_sine):
        y, sr = pure_sine
        analyzer = SpectrumAnalyzer(fft_size=256, smoothing_time_constant=0.0)
        frame = analyzer.analyze_block(y[:256])
        expected = int(round(440.0 / (sr / 256)))
        assert abs(int(np.argmax(frame)) - expected) <= 1
        assert frame.max() > 150

    def test_smoothing_lags_onset(self, pure_sine):
        y, _ = pure_sine
        smooth = SpectrumAnalyzer(smoothing_time_constant=0.9)
        sharp = SpectrumAnalyzer(smoothing_time_constant=0.0)
        assert smooth.analyze_block(y[:256]).max() < sharp.analyze_block(y[:256]).max()

    def test_short_block_padded(self):
        frame = SpectrumAnalyzer().analyze_block(np.ones(10) * 0.5)
        assert frame.shape == (128,)

    def test_non_finite_samples(self):
        block = np.full(256, np.nan)
        assert SpectrumAnalyzer().analyze_block(block).max() == 0

    def test_frames_from_signal(self, click_track):
        y, sr = click_track
        frames = list(SpectrumAnalyzer().frames_from_signal(y, sr, fps=30))
        assert len(frames) == frame_count(len(y), sr, 30) == 60
        assert all(f.shape == (128,) for f in frames)

    def test_clicks_reach_the_bass_band(self, click_track):
        y, sr = click_track
        # Clicks on exact frame boundaries fall between analysis windows
        y = np.roll(y, 600)
        frames = np.array(list(SpectrumAnalyzer().frames_from_signal(y, sr, fps=30)))
        bass = frames[:, :15].mean(axis=1)
        # One click every half second -> clearly uneven bass over time
        assert bass.max() - bass.min() > 20

    def test_invalid_fps(self):
        with pytest.raises(ValueError):
            list(SpectrumAnalyzer().frames_from_signal(np.zeros(100), 22050, fps=0))

    def test_frames_from_file(self, temp_audio_file):
        frames = list(SpectrumAnalyzer().frames_from_file(temp_audio_file, fps=20))
        assert len(frames) == 20


def test_frame_count():
    assert frame_count(0, 22050, 60) == 0
    assert frame_count(22050, 22050, 60) == 60
    assert frame_count(22051, 22050, 60) == 61


def test_load_audio_is_mono_float(temp_audio_file, sample_rate):
    y, sr = load_audio(temp_audio_file, sr=sample_rate)
    assert sr == sample_rate
    assert y.ndim == 1
    assert y.dtype == np.float32
