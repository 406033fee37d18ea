"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

# Default sample rate for test audio
TEST_SR = 22050

# Bins in one analyser frame (fft_size 256)
TEST_BINS = 128


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
    duration = 1.0
    t = np.linspace(0, duration, int(sample_rate * duration), endpoint=False)
    y = 0.5 * np.sin(2 * np.pi * 440.0 * t)
    return y.astype(np.float32), sample_rate


@pytest.fixture
def click_track(sample_rate: int) -> tuple[np.ndarray, int]:
    """
    Generate a simple click track at 120 BPM.

    Returns:
        Tuple of (audio_signal, sample_rate).
    """
    duration = 2.0
    samples_per_beat = int(sample_rate * 60 / 120)
    total_samples = int(sample_rate * duration)

    y = np.zeros(total_samples, dtype=np.float32)
    click_duration = int(sample_rate * 0.01)  # 10ms click
    for beat_start in range(0, total_samples, samples_per_beat):
        click_end = min(beat_start + click_duration, total_samples)
        decay = np.exp(-np.linspace(0, 5, click_end - beat_start))
        y[beat_start:click_end] = 0.8 * decay

    return y, sample_rate


@pytest.fixture
def silent_frame() -> np.ndarray:
    return np.zeros(TEST_BINS, dtype=np.uint8)


@pytest.fixture
def loud_frame() -> np.ndarray:
    return np.full(TEST_BINS, 255, dtype=np.uint8)


@pytest.fixture
def bass_hit_frame() -> np.ndarray:
    """Full-scale bass band, silence elsewhere."""
    frame = np.zeros(TEST_BINS, dtype=np.uint8)
    frame[:15] = 255
    return frame


@pytest.fixture
def temp_audio_file(tmp_path, pure_sine):
    """Create a temporary audio file for testing file I/O."""
    import soundfile as sf

    y, sr = pure_sine
    audio_path = tmp_path / "test_audio.wav"
    sf.write(audio_path, y, sr)
    return audio_path
