"""
Byte spectrum frames from recorded audio.

Reproduces the per-frame contract of a live analyser: one 0-255 magnitude
per frequency bin, delivered once per video frame. Each block is windowed,
transformed, smoothed against the previous block, mapped from decibels to
bytes and clamped.
"""

import math
from pathlib import Path
from typing import Iterator, Union

import librosa
import numpy as np
from scipy import signal as scipy_signal


class SpectrumAnalyzer:
    """
    Stateful block analyzer.

    The smoothing memory makes consecutive calls depend on each other, so
    feed blocks in playback order and call ``reset`` between tracks.
    """

    def __init__(
        self,
        fft_size: int = 256,
        smoothing_time_constant: float = 0.7,
        min_decibels: float = -80.0,
        max_decibels: float = -10.0,
    ):
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")
        if max_decibels <= min_decibels:
            raise ValueError("max_decibels must exceed min_decibels")

        self.fft_size = fft_size
        self.smoothing_time_constant = float(np.clip(smoothing_time_constant, 0.0, 1.0))
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels

        self._window = scipy_signal.get_window("blackman", fft_size, fftbins=False)
        self.reset()

    @property
    def bin_count(self) -> int:
        return self.fft_size // 2

    def reset(self):
        self._smoothed = np.zeros(self.bin_count, dtype=np.float64)

    def analyze_block(self, samples: np.ndarray) -> np.ndarray:
        """
        Spectrum of the most recent ``fft_size`` samples.

        Args:
            samples: 1-D float audio in [-1, 1]; shorter blocks are
                zero-padded at the front.

        Returns:
            (bin_count,) uint8 magnitudes.
        """
        block = np.asarray(samples, dtype=np.float64).ravel()[-self.fft_size:]
        if len(block) < self.fft_size:
            block = np.pad(block, (self.fft_size - len(block), 0))
        block = np.nan_to_num(block, nan=0.0, posinf=0.0, neginf=0.0)

        spectrum = np.fft.rfft(block * self._window)[: self.bin_count]
        magnitude = np.abs(spectrum) / self.fft_size

        tau = self.smoothing_time_constant
        self._smoothed = tau * self._smoothed + (1.0 - tau) * magnitude

        with np.errstate(divide="ignore"):
            db = 20.0 * np.log10(self._smoothed)
        scaled = (db - self.min_decibels) * (255.0 / (self.max_decibels - self.min_decibels))
        return np.clip(np.nan_to_num(scaled, nan=0.0, neginf=0.0), 0, 255).astype(np.uint8)

    def frames_from_signal(self, y: np.ndarray, sr: int, fps: int = 60) -> Iterator[np.ndarray]:
        """
        Yield one spectrum frame per video frame of ``y``.

        Frame k analyses the ``fft_size`` samples ending at k / fps seconds
        plus one frame period, matching what a live analyser would hold
        when frame k is drawn.
        """
        if fps <= 0:
            raise ValueError("fps must be positive")
        self.reset()
        n_frames = frame_count(len(y), sr, fps)
        for k in range(n_frames):
            end = min(len(y), int(round((k + 1) * sr / fps)))
            yield self.analyze_block(y[max(0, end - self.fft_size):end])

    def frames_from_file(
        self,
        audio_path: Union[str, Path],
        fps: int = 60,
        sr: int = 22050,
    ) -> Iterator[np.ndarray]:
        """Load ``audio_path`` as mono and yield its spectrum frames."""
        y, sr = load_audio(audio_path, sr=sr)
        yield from self.frames_from_signal(y, sr, fps)


def frame_count(n_samples: int, sr: int, fps: int) -> int:
    """Number of video frames covering ``n_samples`` at ``sr``."""
    if n_samples <= 0:
        return 0
    return int(math.ceil(n_samples / sr * fps))


def load_audio(audio_path: Union[str, Path], sr: int = 22050) -> tuple[np.ndarray, int]:
    """Load an audio file as mono float32 at ``sr``."""
    y, sr = librosa.load(str(audio_path), sr=sr, mono=True)
    return y.astype(np.float32), int(sr)
