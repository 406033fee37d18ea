"""
Divergence-free flow vectors from a scalar noise potential.
"""

from typing import Tuple

import numpy as np

from flowscope.core.noise import NoiseField

# Gradient magnitudes below this are treated as a flat potential
NEGLIGIBLE = 1e-12


class CurlSampler:
    """
    Samples the 2-D curl of a NoiseField.

    The potential is N(x * scale, y * scale, t); the rotated gradient
    (dN/dy, -dN/dx) swirls around level sets instead of converging on
    sinks, at any sampling scale.
    """

    def __init__(self, noise: NoiseField, epsilon: float = 1e-4):
        if epsilon <= 0:
            raise ValueError("epsilon must be positive")
        self.noise = noise
        self.epsilon = epsilon

    def curl_at(
        self,
        x,
        y,
        t: float,
        scale: float,
        normalize: bool = True,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Flow vector at world position (x, y) and time t.

        Args:
            x, y: Scalars or arrays of world coordinates.
            t: Field time (third noise axis).
            scale: Spatial frequency applied to x and y.
            normalize: Return unit vectors (zero where the field is flat).

        Returns:
            (vx, vy) arrays shaped like the broadcast of x and y.
        """
        eps = self.epsilon
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        sample = self.noise.sample

        n_up = sample(x * scale, (y + eps) * scale, t)
        n_down = sample(x * scale, (y - eps) * scale, t)
        n_right = sample((x + eps) * scale, y * scale, t)
        n_left = sample((x - eps) * scale, y * scale, t)

        d_dy = (n_up - n_down) / (2.0 * eps)
        d_dx = (n_right - n_left) / (2.0 * eps)

        vx = d_dy
        vy = -d_dx
        if not normalize:
            return vx, vy

        magnitude = np.hypot(vx, vy)
        flat = ~(magnitude > NEGLIGIBLE)
        denom = np.where(flat, 1.0, magnitude)
        vx = np.where(flat, 0.0, vx / denom)
        vy = np.where(flat, 0.0, vy / denom)
        return vx, vy
