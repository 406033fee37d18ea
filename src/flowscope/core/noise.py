"""
Seeded 3-D simplex noise.

The permutation table is built by an explicit Park-Miller generator so that
a given seed always produces the same field, independent of numpy's or
Python's random facilities. Sampling is vectorized: ``sample`` accepts any
broadcastable arrays, ``sample3d`` is the scalar convenience wrapper.
"""

import math
from typing import Iterator

import numpy as np

# Skew/unskew factors for 3-D simplex space
F3 = 1.0 / 3.0
G3 = 1.0 / 6.0

# Contribution radius (squared) and output normalization
FALLOFF = 0.6
SCALE = 32.0

# Beyond this magnitude the lattice fraction carries no precision
LATTICE_LIMIT = 2.0 ** 50

_MODULUS = 2147483647
_MULTIPLIER = 16807

GRAD3 = np.array(
    [
        [1, 1, 0], [-1, 1, 0], [1, -1, 0], [-1, -1, 0],
        [1, 0, 1], [-1, 0, 1], [1, 0, -1], [-1, 0, -1],
        [0, 1, 1], [0, -1, 1], [0, 1, -1], [0, -1, -1],
    ],
    dtype=np.float64,
)


def park_miller(seed: float) -> Iterator[float]:
    """
    Deterministic uniform stream in (0, 1) driven only by ``seed``.

    Any finite real is accepted; the seed is folded into a non-zero
    31-bit state so that 0, negative and fractional seeds all work.
    """
    if not math.isfinite(seed):
        raise ValueError(f"seed must be finite, got {seed!r}")

    state = int(round(abs(seed) * 65536.0)) % (_MODULUS - 1) + 1
    while True:
        state = (state * _MULTIPLIER) % _MODULUS
        yield state / _MODULUS


def build_permutation(seed: float) -> np.ndarray:
    """Fisher-Yates shuffle of 0..255 driven by ``park_miller(seed)``."""
    stream = park_miller(seed)
    perm = list(range(256))
    for i in range(255, 0, -1):
        j = int(next(stream) * (i + 1)) % (i + 1)
        perm[i], perm[j] = perm[j], perm[i]
    return np.array(perm, dtype=np.int64)


class NoiseField:
    """
    Deterministic gradient noise over (x, y, t).

    Immutable after construction: two instances never share state, and the
    same seed always yields bit-identical samples.
    """

    def __init__(self, seed: float = 0.0):
        self.seed = seed
        base = build_permutation(seed)

        # Doubled tables avoid wrapping the index arithmetic
        self._perm = np.concatenate([base, base])
        self._grad = GRAD3[self._perm % 12]
        self._perm.setflags(write=False)
        self._grad.setflags(write=False)

    @property
    def permutation(self) -> np.ndarray:
        return self._perm[:256]

    def _corner(self, gi, x, y, z):
        t = FALLOFF - x * x - y * y - z * z
        g = self._grad[gi]
        dot = g[..., 0] * x + g[..., 1] * y + g[..., 2] * z
        t = np.maximum(t, 0.0)
        t *= t
        return t * t * dot

    def sample(self, x, y, z) -> np.ndarray:
        """
        Vectorized simplex noise.

        Args:
            x, y, z: Scalars or broadcastable arrays of coordinates.

        Returns:
            float64 array of the broadcast shape, values in roughly [-1, 1].
            Non-finite or out-of-precision inputs sample as 0.0.
        """
        x, y, z = np.broadcast_arrays(
            np.asarray(x, dtype=np.float64),
            np.asarray(y, dtype=np.float64),
            np.asarray(z, dtype=np.float64),
        )
        with np.errstate(invalid="ignore", over="ignore"):
            valid = (
                np.isfinite(x) & np.isfinite(y) & np.isfinite(z)
                & (np.abs(x) < LATTICE_LIMIT)
                & (np.abs(y) < LATTICE_LIMIT)
                & (np.abs(z) < LATTICE_LIMIT)
            )
        x = np.where(valid, x, 0.0)
        y = np.where(valid, y, 0.0)
        z = np.where(valid, z, 0.0)

        # Skew into simplex space and locate the cell origin
        s = (x + y + z) * F3
        i = np.floor(x + s)
        j = np.floor(y + s)
        k = np.floor(z + s)
        t = (i + j + k) * G3
        x0 = x - (i - t)
        y0 = y - (j - t)
        z0 = z - (k - t)

        # Coordinate ordering picks the traversal through the simplex
        x_ge_y = x0 >= y0
        x_ge_z = x0 >= z0
        y_ge_z = y0 >= z0

        i1 = x_ge_y & x_ge_z
        j1 = ~x_ge_y & y_ge_z
        k1 = ~i1 & ~j1
        i2 = x_ge_y | x_ge_z
        j2 = ~x_ge_y | y_ge_z
        k2 = ~y_ge_z | (~x_ge_y & ~x_ge_z)

        i1, j1, k1 = i1.astype(np.int64), j1.astype(np.int64), k1.astype(np.int64)
        i2, j2, k2 = i2.astype(np.int64), j2.astype(np.int64), k2.astype(np.int64)

        x1 = x0 - i1 + G3
        y1 = y0 - j1 + G3
        z1 = z0 - k1 + G3
        x2 = x0 - i2 + 2.0 * G3
        y2 = y0 - j2 + 2.0 * G3
        z2 = z0 - k2 + 2.0 * G3
        x3 = x0 - 1.0 + 3.0 * G3
        y3 = y0 - 1.0 + 3.0 * G3
        z3 = z0 - 1.0 + 3.0 * G3

        ii = i.astype(np.int64) & 255
        jj = j.astype(np.int64) & 255
        kk = k.astype(np.int64) & 255
        perm = self._perm

        gi0 = ii + perm[jj + perm[kk]]
        gi1 = ii + i1 + perm[jj + j1 + perm[kk + k1]]
        gi2 = ii + i2 + perm[jj + j2 + perm[kk + k2]]
        gi3 = ii + 1 + perm[jj + 1 + perm[kk + 1]]

        total = (
            self._corner(gi0, x0, y0, z0)
            + self._corner(gi1, x1, y1, z1)
            + self._corner(gi2, x2, y2, z2)
            + self._corner(gi3, x3, y3, z3)
        )
        return np.where(valid, SCALE * total, 0.0)

    def sample3d(self, x: float, y: float, z: float) -> float:
        """Scalar noise value at (x, y, z)."""
        return float(self.sample(x, y, z))
