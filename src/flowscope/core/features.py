"""
Streaming audio feature extraction.

Turns one byte-magnitude spectrum per animation frame into smoothed band
energies and a beat pulse. Unlike offline envelope smoothing, every value
here depends only on the frames seen so far.
"""

from dataclasses import dataclass

import numpy as np

FULL_SCALE = 255.0


@dataclass
class FeatureParams:
    """Tunable feel constants. Band splits are fractions of the bin count."""

    bass_fraction: float = 0.12
    mid_fraction: float = 0.5

    smoothing: float = 0.25       # Band EMA factor
    fast_smoothing: float = 0.4   # Instant bass/treble EMA factor

    beat_threshold: float = 25.0  # Raw bass rise, 0-255 units
    beat_cooldown: int = 8        # Frames
    flash_decay: float = 0.85


@dataclass(frozen=True)
class SmoothedFeatures:
    """Read-only per-frame snapshot handed to the simulator."""

    bass: float = 0.0
    mid: float = 0.0
    treble: float = 0.0
    energy: float = 0.0
    beat_active: bool = False
    beat_cooldown_remaining: int = 0

    instant_bass: float = 0.0
    instant_treble: float = 0.0
    peak: float = 0.0
    beat_flash: float = 0.0


def band_edges(n_bins: int, params: FeatureParams) -> tuple[int, int]:
    """
    Split points (bass_end, mid_end) for a frame of ``n_bins``.

    Bands are contiguous and ordered: [0, bass_end), [bass_end, mid_end),
    [mid_end, n_bins). Bass gets at least one bin whenever the frame has any.
    """
    if n_bins <= 0:
        return 0, 0
    bass_end = min(n_bins, max(1, int(n_bins * params.bass_fraction)))
    mid_end = min(n_bins, max(bass_end, int(n_bins * params.mid_fraction)))
    return bass_end, mid_end


def _band_mean(values: np.ndarray) -> float:
    if values.size == 0:
        return 0.0
    return float(values.mean())


class AudioFeatureExtractor:
    """
    Exponentially smoothed band energies with transient beat detection.

    Call ``update`` exactly once per animation frame, before the particle
    tick that represents the same frame.
    """

    def __init__(self, params: FeatureParams | None = None, sensitivity: float = 1.0):
        self.params = params or FeatureParams()
        self.sensitivity = sensitivity
        self.reset()

    @property
    def sensitivity(self) -> float:
        return self._sensitivity

    @sensitivity.setter
    def sensitivity(self, value: float):
        # Higher sensitivity lowers the beat threshold
        self._sensitivity = float(np.clip(value, 0.1, 10.0))

    @property
    def threshold(self) -> float:
        return self.params.beat_threshold / self._sensitivity

    @property
    def state(self) -> SmoothedFeatures:
        return self._state

    def reset(self):
        self._state = SmoothedFeatures()
        self._previous_raw_bass = 0.0
        self._cooldown = 0

    def update(self, frame) -> SmoothedFeatures:
        """
        Consume one spectrum frame.

        Args:
            frame: Sequence of 0-255 magnitudes, one per frequency bin.

        Returns:
            The new SmoothedFeatures snapshot. A zero-length frame returns
            the previous snapshot unchanged.
        """
        data = np.asarray(frame, dtype=np.float64).ravel()
        if data.size == 0:
            return self._state

        data = np.nan_to_num(data, nan=0.0, posinf=FULL_SCALE, neginf=0.0)
        data = np.clip(data, 0.0, FULL_SCALE)

        p = self.params
        prev = self._state
        bass_end, mid_end = band_edges(data.size, p)

        raw_bass = _band_mean(data[:bass_end])
        raw_mid = _band_mean(data[bass_end:mid_end])
        raw_treble = _band_mean(data[mid_end:])
        raw_energy = _band_mean(data)

        a = p.smoothing
        bass = prev.bass + (raw_bass / FULL_SCALE - prev.bass) * a
        mid = prev.mid + (raw_mid / FULL_SCALE - prev.mid) * a
        treble = prev.treble + (raw_treble / FULL_SCALE - prev.treble) * a
        energy = prev.energy + (raw_energy / FULL_SCALE - prev.energy) * a

        fa = p.fast_smoothing
        instant_bass = prev.instant_bass + (raw_bass / FULL_SCALE - prev.instant_bass) * fa
        instant_treble = prev.instant_treble + (raw_treble / FULL_SCALE - prev.instant_treble) * fa

        # Transients are judged on raw bass, never on the lagged EMA
        beat = raw_bass - self._previous_raw_bass > self.threshold and self._cooldown <= 0
        if beat:
            self._cooldown = p.beat_cooldown
        self._previous_raw_bass = raw_bass
        if self._cooldown > 0:
            self._cooldown -= 1

        flash = 1.0 if beat else prev.beat_flash * p.flash_decay
        peak = float(np.argmax(data)) / data.size if data.max() > 0 else 0.0

        self._state = SmoothedFeatures(
            bass=float(np.clip(bass, 0.0, 1.0)),
            mid=float(np.clip(mid, 0.0, 1.0)),
            treble=float(np.clip(treble, 0.0, 1.0)),
            energy=float(np.clip(energy, 0.0, 1.0)),
            beat_active=bool(beat),
            beat_cooldown_remaining=self._cooldown,
            instant_bass=float(np.clip(instant_bass, 0.0, 1.0)),
            instant_treble=float(np.clip(instant_treble, 0.0, 1.0)),
            peak=peak,
            beat_flash=flash,
        )
        return self._state
