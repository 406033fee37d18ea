"""Tests for palettes and post-processing."""

import numpy as np
import pytest

from flowscope.core.features import SmoothedFeatures
from flowscope.render.colorgrade import (
    COLOR_MODES,
    add_glow,
    color_hue,
    hsl_to_rgb,
    particle_colors,
    resolve_color_mode,
    tone_map_soft,
    vignette,
)


class TestHue:
    @pytest.mark.parametrize("mode", COLOR_MODES)
    def test_in_range(self, mode):
        hues = color_hue(mode, np.linspace(0, 359, 50), 1.0, 1.0, 3.0)
        assert np.all((hues >= 0) & (hues < 360))

    def test_spectrum_passes_base_hue_when_silent(self):
        assert color_hue("spectrum", 123.0, 0.0, 0.0) == pytest.approx(123.0)

    def test_ocean_centered_on_cyan(self):
        assert color_hue("ocean", 0.0, 0.0, 0.0) == pytest.approx(180.0)

    def test_mono_ignores_base_hue(self):
        hues = color_hue("mono", np.array([0.0, 90.0, 270.0]), 0.5, 0.0)
        assert np.allclose(hues, 260.0)

    def test_unknown_mode_falls_back(self):
        assert resolve_color_mode("plaid") == "spectrum"
        assert color_hue("plaid", 40.0, 0.0, 0.0) == pytest.approx(40.0)


class TestHslToRgb:
    @pytest.mark.parametrize(
        "hue, expected",
        [(0, (1, 0, 0)), (120, (0, 1, 0)), (240, (0, 0, 1)), (60, (1, 1, 0))],
    )
    def test_primaries(self, hue, expected):
        assert np.allclose(hsl_to_rgb(hue, 1.0, 0.5), expected)

    def test_grey_without_saturation(self):
        assert np.allclose(hsl_to_rgb(200, 0.0, 0.25), (0.25, 0.25, 0.25))

    def test_vectorized_shape(self):
        assert hsl_to_rgb(np.zeros((4, 5)), 1.0, 0.5).shape == (4, 5, 3)


class TestParticleColors:
    def test_alpha_fades_at_birth_and_death(self):
        colors = particle_colors(
            np.zeros(3), np.array([0.0, 0.5, 1.0]), SmoothedFeatures(energy=1.0),
        )
        assert colors.shape == (3, 4)
        assert colors.dtype == np.uint8
        assert colors[0, 3] == 0
        assert colors[2, 3] == 0
        assert colors[1, 3] == 255

    def test_empty_population(self):
        colors = particle_colors(np.zeros(0), np.zeros(0), SmoothedFeatures())
        assert colors.shape == (0, 4)


class TestPostProcessing:
    @pytest.fixture
    def frame(self):
        rng = np.random.default_rng(0)
        return rng.integers(0, 256, (48, 64, 3), dtype=np.uint8)

    def test_glow_never_darkens(self, frame):
        glowed = add_glow(frame, intensity=0.5, radius=4)
        assert glowed.shape == frame.shape
        assert np.all(glowed.astype(int) >= frame.astype(int) - 1)

    def test_zero_glow_is_identity(self, frame):
        assert add_glow(frame, intensity=0.0) is frame

    def test_vignette_darkens_corners(self):
        flat = np.full((48, 64, 3), 200, dtype=np.uint8)
        out = vignette(flat, strength=0.8)
        assert out[0, 0, 0] < out[24, 32, 0]
        assert out[24, 32, 0] == 200

    def test_tone_map_keeps_shadows(self, frame):
        out = tone_map_soft(frame)
        dark = frame < 200
        assert np.array_equal(out[dark], frame[dark])
        assert out.max() <= 255
