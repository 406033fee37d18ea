"""
Particle palettes and frame post-processing.

Maps particle hue/life plus the frame's audio features to RGBA colors
for each color mode, and finishes frames with bloom, vignette and a soft
highlight roll-off.
"""

import numpy as np
from PIL import Image, ImageFilter

from flowscope.core.features import SmoothedFeatures

COLOR_MODES = ("spectrum", "ocean", "fire", "mono")


def resolve_color_mode(mode: str) -> str:
    """Unknown palette names fall back to "spectrum"."""
    return mode if mode in COLOR_MODES else "spectrum"


def color_hue(
    mode: str,
    base_hue,
    energy: float,
    treble: float,
    sensitivity: float = 1.0,
):
    """
    Hue in degrees for a palette.

    Args:
        mode: One of COLOR_MODES.
        base_hue: Particle hue(s) in degrees, scalar or array.
        energy: Smoothed overall energy [0, 1].
        treble: Smoothed treble [0, 1].
        sensitivity: How strongly audio shifts the hue.

    Returns:
        Hue(s) in [0, 360).
    """
    base_hue = np.asarray(base_hue, dtype=np.float64)
    treble_shift = treble * 120.0 * sensitivity
    energy_shift = energy * sensitivity

    mode = resolve_color_mode(mode)
    if mode == "ocean":
        hue = 180.0 + base_hue * 0.3 + energy_shift * 60.0 + treble_shift * 0.3
    elif mode == "fire":
        hue = base_hue * 0.2 + energy_shift * 50.0 + treble_shift * 0.2
    elif mode == "mono":
        hue = np.full_like(base_hue, 260.0 + treble_shift * 0.1)
    else:
        hue = base_hue + energy_shift * 120.0 + treble_shift
    return np.mod(hue, 360.0)


def hsl_to_rgb(h, s, l) -> np.ndarray:
    """
    Vectorized HSL to RGB.

    Args:
        h: Hue in degrees.
        s, l: Saturation and lightness in [0, 1].

    Returns:
        (..., 3) float array in [0, 1].
    """
    h, s, l = np.broadcast_arrays(
        np.mod(np.asarray(h, dtype=np.float64), 360.0),
        np.clip(np.asarray(s, dtype=np.float64), 0.0, 1.0),
        np.clip(np.asarray(l, dtype=np.float64), 0.0, 1.0),
    )
    c = (1.0 - np.abs(2.0 * l - 1.0)) * s
    hp = h / 60.0
    x = c * (1.0 - np.abs(np.mod(hp, 2.0) - 1.0))
    m = l - c / 2.0
    sector = np.minimum(hp.astype(np.int64), 5)
    zero = np.zeros_like(c)

    r = np.choose(sector, [c, x, zero, zero, x, c])
    g = np.choose(sector, [x, c, c, x, zero, zero])
    b = np.choose(sector, [zero, zero, x, c, c, x])
    return np.stack([r + m, g + m, b + m], axis=-1)


def particle_colors(
    hues: np.ndarray,
    life_ratios: np.ndarray,
    features: SmoothedFeatures,
    mode: str = "spectrum",
    sensitivity: float = 1.0,
) -> np.ndarray:
    """
    RGBA colors for a population.

    Alpha follows sin(pi * life) so particles fade in and out; saturation
    and lightness rise with treble and energy.

    Returns:
        (N, 4) uint8 array.
    """
    f = features
    hue = color_hue(mode, hues, f.energy, f.treble, sensitivity)
    sat = min(100.0, 60.0 + f.treble * 40.0 * sensitivity) / 100.0
    light = min(
        90.0,
        45.0 + f.energy * 30.0 * sensitivity + f.instant_treble * 15.0 * sensitivity,
    ) / 100.0

    base_alpha = np.sin(np.asarray(life_ratios, dtype=np.float64) * np.pi)
    alpha = np.clip(base_alpha * (0.5 + f.energy * 0.5 + f.instant_bass * 0.3), 0.0, 1.0)

    rgb = hsl_to_rgb(hue, sat, light)
    rgba = np.concatenate([rgb, alpha[:, None]], axis=1)
    return np.round(rgba * 255.0).astype(np.uint8)


def add_glow(frame: np.ndarray, intensity: float = 0.3, radius: int = 12) -> np.ndarray:
    """Screen-blend a blurred copy of an (H, W, 3) uint8 frame over itself."""
    if intensity <= 0:
        return frame
    blurred = Image.fromarray(frame).filter(ImageFilter.GaussianBlur(radius=radius))
    base = frame.astype(np.float32) / 255.0
    bloom = np.asarray(blurred, dtype=np.float32) / 255.0 * intensity
    return ((1.0 - (1.0 - base) * (1.0 - bloom)) * 255.0).astype(np.uint8)


def vignette(frame: np.ndarray, strength: float = 0.3) -> np.ndarray:
    """Darken toward the corners; strength 0 leaves the frame untouched."""
    if strength <= 0:
        return frame
    h, w = frame.shape[:2]
    y = (np.arange(h, dtype=np.float32) - h / 2)[:, None]
    x = (np.arange(w, dtype=np.float32) - w / 2)[None, :]
    r = np.sqrt(x * x + y * y) / np.sqrt((w / 2) ** 2 + (h / 2) ** 2)
    falloff = 1.0 - np.clip(r * strength, 0.0, 1.0) ** 2
    return (frame.astype(np.float32) * falloff[:, :, None]).astype(np.uint8)


def tone_map_soft(frame: np.ndarray, shoulder: float = 0.8) -> np.ndarray:
    """Compress values above ``shoulder`` so highlights approach 255 smoothly."""
    knee = shoulder * 255.0
    headroom = 255.0 - knee
    f = frame.astype(np.float32)
    over = np.maximum(f - knee, 0.0)
    rolled = knee + over * headroom / (over + headroom)
    return np.where(f > knee, rolled, f).astype(np.uint8)
