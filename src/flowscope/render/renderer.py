"""
Frame renderer for the flow-field simulation.

Draws each particle as a short stroke from its previous to its current
position on a persistent canvas that fades every frame, giving trails
whose length follows the music's energy.
"""

import math
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageDraw

from flowscope.core.features import SmoothedFeatures
from flowscope.core.simulator import PopulationSnapshot
from flowscope.render.colorgrade import (
    add_glow,
    color_hue,
    hsl_to_rgb,
    particle_colors,
    resolve_color_mode,
    tone_map_soft,
    vignette,
)


@dataclass
class RenderConfig:
    """Configuration for the flow-field renderer."""

    width: int = 1280
    height: int = 720
    fps: int = 60

    trails: bool = True
    color_mode: str = "spectrum"  # "spectrum", "ocean", "fire", "mono"
    color_sensitivity: float = 1.0

    # Post-processing
    glow_enabled: bool = True
    glow_intensity: float = 0.35
    glow_radius: int = 12
    vignette_strength: float = 0.3
    sparkles: bool = True


class FlowFieldRenderer:
    """
    Turns population snapshots into RGB frames.

    Owns only its canvas; snapshots are read, never kept.
    """

    def __init__(self, config: RenderConfig | None = None, seed: int | None = None):
        self.cfg = config or RenderConfig()
        if self.cfg.width <= 0 or self.cfg.height <= 0:
            raise ValueError(f"invalid frame size {self.cfg.width}x{self.cfg.height}")
        self.rng = np.random.default_rng(seed)
        self.canvas = np.zeros((self.cfg.height, self.cfg.width, 3), dtype=np.float32)

    def clear(self):
        self.canvas[:] = 0.0

    def _fade(self, f: SmoothedFeatures):
        if not self.cfg.trails:
            self.canvas[:] = 0.0
            return
        fade = 0.03 + f.energy * 0.15 + (0.1 if f.beat_active else 0.0)
        self.canvas *= 1.0 - min(fade, 1.0)

    def _flash(self, f: SmoothedFeatures):
        if f.beat_flash <= 0.1:
            return
        cfg = self.cfg
        hue = color_hue(cfg.color_mode, 200.0, f.energy, f.treble, cfg.color_sensitivity)
        tint = hsl_to_rgb(hue, 0.8, 0.5) * 255.0
        a = f.beat_flash * 0.15
        self.canvas *= 1.0 - a
        self.canvas += tint.astype(np.float32) * a

    def _draw_particles(self, draw: ImageDraw.ImageDraw, snapshot: PopulationSnapshot, f: SmoothedFeatures):
        cfg = self.cfg
        colors = particle_colors(
            snapshot.hues,
            snapshot.life_ratios,
            f,
            resolve_color_mode(cfg.color_mode),
            cfg.color_sensitivity,
        )
        sizes = snapshot.sizes * (1.0 + f.instant_bass * 2.0 + f.beat_flash * 1.5)
        half_w, half_h = cfg.width / 2, cfg.height / 2

        for (x, y), (px, py), size, color in zip(
            snapshot.positions.tolist(),
            snapshot.previous_positions.tolist(),
            sizes.tolist(),
            map(tuple, colors.tolist()),
        ):
            if color[3] == 0:
                continue
            # A wrapped particle jumped edges: no stroke across the frame
            wrapped = abs(x - px) > half_w or abs(y - py) > half_h
            if not wrapped and math.hypot(x - px, y - py) > 0.5:
                draw.line([(px, py), (x, y)], fill=color, width=max(1, int(round(size))))
            r = max(0.5, size * 0.5)
            draw.ellipse([x - r, y - r, x + r, y + r], fill=color)

    def _draw_sparkles(self, draw: ImageDraw.ImageDraw, f: SmoothedFeatures):
        if not self.cfg.sparkles or f.treble <= 0.5:
            return
        cfg = self.cfg
        count = int(f.treble * 30)
        xs = self.rng.uniform(0, cfg.width, count)
        ys = self.rng.uniform(0, cfg.height, count)
        radii = 1.0 + self.rng.uniform(0, 2, count)
        hues = color_hue(cfg.color_mode, self.rng.uniform(0, 360, count), f.energy, f.treble, cfg.color_sensitivity)
        alphas = 0.3 + self.rng.uniform(0, 0.5, count)
        rgb = np.round(hsl_to_rgb(hues, 1.0, 0.8) * 255).astype(int)

        for x, y, r, (red, green, blue), a in zip(xs, ys, radii, rgb.tolist(), alphas):
            draw.ellipse([x - r, y - r, x + r, y + r], fill=(red, green, blue, int(a * 255)))

    def draw(self, snapshot: PopulationSnapshot, features: SmoothedFeatures) -> np.ndarray:
        """
        Render one frame.

        Args:
            snapshot: Population after this frame's tick.
            features: The same frame's audio features.

        Returns:
            (H, W, 3) uint8 RGB array.
        """
        cfg = self.cfg
        self._fade(features)
        self._flash(features)

        img = Image.fromarray(np.clip(self.canvas, 0, 255).astype(np.uint8))
        draw = ImageDraw.Draw(img, "RGBA")
        self._draw_particles(draw, snapshot, features)
        self._draw_sparkles(draw, features)

        self.canvas = np.asarray(img, dtype=np.float32).copy()
        frame = np.asarray(img, dtype=np.uint8)

        if cfg.glow_enabled:
            glow = cfg.glow_intensity * (1.0 + features.instant_bass * 0.5 + features.beat_flash * 0.5)
            frame = add_glow(frame, intensity=min(glow, 0.8), radius=cfg.glow_radius)
        if cfg.vignette_strength > 0:
            frame = vignette(frame, strength=cfg.vignette_strength * (1.0 + features.bass * 0.5))
        return tone_map_soft(frame)
