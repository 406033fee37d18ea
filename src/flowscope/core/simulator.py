"""
Audio-reactive flow-field particle simulator.

Particles are advected through the curl of a seeded noise field:
- Tracer: light, fast-reacting, short lived
- Drifter: the bulk of the population
- Anchor: heavy, long lived, gently pulls nearby particles toward itself

Storage is struct-of-arrays in preallocated numpy buffers. Slots are reused
on respawn; only growth past the current capacity allocates.
"""

import enum
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Tuple

import numpy as np

from flowscope.core.curl import CurlSampler
from flowscope.core.features import SmoothedFeatures
from flowscope.core.noise import NoiseField

logger = logging.getLogger(__name__)


class ParticleKind(enum.IntEnum):
    TRACER = 0
    DRIFTER = 1
    ANCHOR = 2


@dataclass(frozen=True)
class KindProfile:
    """Per-kind force multipliers and spawn ranges."""

    field_response: float
    jitter_response: float
    impulse_response: float
    lifespan_range: Tuple[int, int]
    size_range: Tuple[float, float]


KIND_PROFILES: Dict[ParticleKind, KindProfile] = {
    ParticleKind.TRACER: KindProfile(1.4, 1.0, 1.2, (80, 220), (1.0, 2.0)),
    ParticleKind.DRIFTER: KindProfile(1.0, 0.7, 1.0, (100, 300), (1.0, 3.0)),
    ParticleKind.ANCHOR: KindProfile(0.35, 0.2, 0.4, (300, 600), (3.0, 5.0)),
}

# Lookup columns indexed by kind value, for the vectorized hot loop
_FIELD_RESPONSE = np.array([KIND_PROFILES[k].field_response for k in ParticleKind])
_JITTER_RESPONSE = np.array([KIND_PROFILES[k].jitter_response for k in ParticleKind])
_IMPULSE_RESPONSE = np.array([KIND_PROFILES[k].impulse_response for k in ParticleKind])
_LIFESPAN_LO = np.array([KIND_PROFILES[k].lifespan_range[0] for k in ParticleKind])
_LIFESPAN_HI = np.array([KIND_PROFILES[k].lifespan_range[1] for k in ParticleKind])
_SIZE_LO = np.array([KIND_PROFILES[k].size_range[0] for k in ParticleKind])
_SIZE_HI = np.array([KIND_PROFILES[k].size_range[1] for k in ParticleKind])

# (min, max) clamps applied by ParticleSimulator.configure
PARAMETER_RANGES: Dict[str, Tuple[float, float]] = {
    "target_count": (0, 2000),
    "field_strength": (0.2, 5.0),
    "noise_scale": (0.0005, 0.01),
    "time_scale": (0.1, 2.0),
    "drag": (0.9, 0.99),
}

# Ranges whose bounds are exclusive; values are held this far inside them
OPEN_RANGES = ("drag",)
OPEN_MARGIN = 1e-4


@dataclass
class SimulationParams:
    """Configuration for the flow-field simulator."""

    target_count: int = 800
    field_strength: float = 1.0
    noise_scale: float = 0.003
    time_scale: float = 0.5
    drag: float = 0.97

    # Share of each kind in fresh spawns (tracer, drifter, anchor)
    kind_mix: Tuple[float, float, float] = (0.55, 0.4, 0.05)

    # Anchor attraction
    max_anchors: int = 16
    anchor_radius: float = 120.0
    anchor_pull: float = 0.25

    # Beat bursts and early recycling
    burst_radius: float = 100.0
    recycle_fraction: float = 0.7

    jitter_threshold: float = 0.1

    def clamped(self) -> "SimulationParams":
        """Copy with every tunable forced into PARAMETER_RANGES."""
        out = SimulationParams(**self.__dict__)
        for name, (lo, hi) in PARAMETER_RANGES.items():
            value = getattr(out, name)
            if value is None or not math.isfinite(value):
                value = getattr(SimulationParams, name)
            if name in OPEN_RANGES:
                lo, hi = lo + OPEN_MARGIN, hi - OPEN_MARGIN
            value = min(max(value, lo), hi)
            if name == "target_count":
                value = int(value)
            setattr(out, name, value)
        return out


@dataclass(frozen=True)
class ParticleView:
    """Render-facing record of one particle for the current tick."""

    position: Tuple[float, float]
    previous_position: Tuple[float, float]
    size: float
    hue: float
    life_ratio: float
    kind: ParticleKind


class PopulationSnapshot:
    """
    Read-only view of the population after a tick.

    Holds private copies of the particle columns, so the simulator is free
    to mutate its storage on the next tick. Iterating yields ParticleView
    records; renderers may use the arrays directly.
    """

    def __init__(self, positions, previous, sizes, hues, life_ratios, kinds):
        self.positions = positions
        self.previous_positions = previous
        self.sizes = sizes
        self.hues = hues
        self.life_ratios = life_ratios
        self.kinds = kinds
        for arr in (positions, previous, sizes, hues, life_ratios, kinds):
            arr.setflags(write=False)

    @classmethod
    def empty(cls) -> "PopulationSnapshot":
        return cls(
            np.zeros((0, 2), dtype=np.float32),
            np.zeros((0, 2), dtype=np.float32),
            np.zeros(0, dtype=np.float32),
            np.zeros(0, dtype=np.float32),
            np.zeros(0, dtype=np.float32),
            np.zeros(0, dtype=np.int8),
        )

    def __len__(self) -> int:
        return len(self.sizes)

    def __getitem__(self, index: int) -> ParticleView:
        pos = self.positions[index]
        prev = self.previous_positions[index]
        return ParticleView(
            position=(float(pos[0]), float(pos[1])),
            previous_position=(float(prev[0]), float(prev[1])),
            size=float(self.sizes[index]),
            hue=float(self.hues[index]),
            life_ratio=float(self.life_ratios[index]),
            kind=ParticleKind(int(self.kinds[index])),
        )

    def __iter__(self) -> Iterator[ParticleView]:
        for i in range(len(self)):
            yield self[i]


class ParticleSimulator:
    """
    Owns the noise field, curl sampler and particle population of one
    visualization instance.

    Driven synchronously once per frame via ``tick``; never shares state
    with other instances.
    """

    def __init__(
        self,
        width: float,
        height: float,
        seed: int | None = None,
        params: SimulationParams | None = None,
    ):
        if width <= 0 or height <= 0:
            raise ValueError(f"bounds must be positive, got {width}x{height}")

        self.width = float(width)
        self.height = float(height)
        self.seed = seed
        self.params = (params or SimulationParams()).clamped()
        self._initial_params = self.params

        self._features = SmoothedFeatures()
        self._build_state()
        logger.info(
            "Simulator ready: %d particles in %.0fx%.0f (seed=%s)",
            self._count, self.width, self.height, seed,
        )

    # -- state -------------------------------------------------------------

    def _build_state(self):
        self.rng = np.random.default_rng(self.seed)
        noise_seed = self.seed if self.seed is not None else float(self.rng.integers(1, 2**31 - 1))
        self.noise = NoiseField(noise_seed)
        self.curl = CurlSampler(self.noise)
        self.time = 0.0
        self.frame = 0

        self._capacity = 0
        self._count = 0
        self._allocate(self.params.target_count)
        self._count = self.params.target_count
        self._spawn(np.arange(self._count), hue=None)

    def reset(self):
        """Return to the initial state: fresh population, clock at zero."""
        self.params = self._initial_params
        self._features = SmoothedFeatures()
        self._build_state()

    def release(self):
        """Drop all particle storage immediately."""
        self._count = 0
        self._allocate(0, exact=True)

    def _allocate(self, capacity: int, exact: bool = False):
        if not exact:
            capacity = max(capacity, self._capacity * 2, 16)
        old_n = min(self._count, capacity)

        def grow(old, shape, dtype):
            new = np.zeros(shape, dtype=dtype)
            if old is not None and old_n:
                new[:old_n] = old[:old_n]
            return new

        self._pos = grow(getattr(self, "_pos", None), (capacity, 2), np.float32)
        self._prev = grow(getattr(self, "_prev", None), (capacity, 2), np.float32)
        self._vel = grow(getattr(self, "_vel", None), (capacity, 2), np.float32)
        self._age = grow(getattr(self, "_age", None), capacity, np.int32)
        self._lifespan = grow(getattr(self, "_lifespan", None), capacity, np.int32)
        self._size = grow(getattr(self, "_size", None), capacity, np.float32)
        self._hue = grow(getattr(self, "_hue", None), capacity, np.float32)
        self._kind = grow(getattr(self, "_kind", None), capacity, np.int8)
        if capacity > self._capacity:
            logger.debug("Particle storage grown %d -> %d", self._capacity, capacity)
        self._capacity = capacity

    def __len__(self) -> int:
        return self._count

    @property
    def capacity(self) -> int:
        return self._capacity

    # -- configuration -----------------------------------------------------

    def configure(
        self,
        target_count: int | None = None,
        field_strength: float | None = None,
        noise_scale: float | None = None,
        time_scale: float | None = None,
        drag: float | None = None,
    ):
        """
        Update tunables; applied on the next tick.

        Out-of-range values are clamped to PARAMETER_RANGES, never rejected.
        Arguments left as None keep their current value.
        """
        updates = {
            "target_count": target_count,
            "field_strength": field_strength,
            "noise_scale": noise_scale,
            "time_scale": time_scale,
            "drag": drag,
        }
        current = dict(self.params.__dict__)
        for name, value in updates.items():
            if value is None:
                continue
            try:
                value = float(value)
            except (TypeError, ValueError):
                continue
            if math.isfinite(value):
                current[name] = value
        self.params = SimulationParams(**current).clamped()

    # -- spawning ----------------------------------------------------------

    def _spawn(self, idx: np.ndarray, hue: float | None, burst: bool = False):
        """Reinitialize the given slots as freshly constructed particles."""
        n = len(idx)
        if n == 0:
            return
        rng = self.rng
        p = self.params

        mix = np.asarray(p.kind_mix, dtype=np.float64)
        kinds = rng.choice(len(ParticleKind), size=n, p=mix / mix.sum())

        if burst:
            angle = rng.uniform(0.0, 2.0 * math.pi, n)
            dist = rng.uniform(0.0, p.burst_radius, n)
            speed = rng.uniform(2.0, 5.0, n)
            x = self.width / 2 + np.cos(angle) * dist
            y = self.height / 2 + np.sin(angle) * dist
            self._vel[idx, 0] = np.cos(angle) * speed
            self._vel[idx, 1] = np.sin(angle) * speed
        else:
            x = rng.uniform(0.0, self.width, n)
            y = rng.uniform(0.0, self.height, n)
            self._vel[idx] = 0.0

        self._pos[idx, 0] = np.mod(x, self.width)
        self._pos[idx, 1] = np.mod(y, self.height)
        self._wrap_edges(idx)
        self._prev[idx] = self._pos[idx]
        self._age[idx] = 0
        self._lifespan[idx] = rng.integers(_LIFESPAN_LO[kinds], _LIFESPAN_HI[kinds] + 1)
        self._size[idx] = rng.uniform(_SIZE_LO[kinds], _SIZE_HI[kinds])
        self._hue[idx] = rng.uniform(0.0, 360.0, n) if hue is None else hue
        self._kind[idx] = kinds

    def _wrap_edges(self, idx):
        # float32 rounding can land a wrapped coordinate exactly on the far edge
        pos = self._pos
        x = pos[idx, 0]
        y = pos[idx, 1]
        pos[idx, 0] = np.where(x >= self.width, 0.0, x)
        pos[idx, 1] = np.where(y >= self.height, 0.0, y)

    def _resize(self, target: int, hue: float):
        count = self._count
        if target > count:
            if target > self._capacity:
                self._allocate(target)
            self._count = target
            self._spawn(np.arange(count, target), hue)
        elif target < count:
            self._count = target

    # -- features ----------------------------------------------------------

    _FEATURE_FIELDS = (
        "bass", "mid", "treble", "energy", "instant_bass",
        "instant_treble", "peak", "beat_flash",
    )

    def _sanitize(self, features: Any) -> SmoothedFeatures:
        """
        Coerce whatever the host passed into a clean snapshot.

        Missing fields keep the last known value, non-finite ones become 0.
        """
        last = self._features
        get = features.get if isinstance(features, Mapping) else (
            lambda name, default: getattr(features, name, default)
        )

        values = {}
        for name in self._FEATURE_FIELDS:
            value = get(name, getattr(last, name))
            try:
                value = float(value)
            except (TypeError, ValueError):
                value = getattr(last, name)
            values[name] = value if math.isfinite(value) else 0.0

        beat = get("beat_active", False)
        cooldown = get("beat_cooldown_remaining", 0)
        try:
            cooldown = int(cooldown)
        except (TypeError, ValueError, OverflowError):
            cooldown = 0

        clean = SmoothedFeatures(
            bass=min(max(values["bass"], 0.0), 1.0),
            mid=min(max(values["mid"], 0.0), 1.0),
            treble=min(max(values["treble"], 0.0), 1.0),
            energy=min(max(values["energy"], 0.0), 1.0),
            beat_active=bool(beat) if isinstance(beat, (bool, np.bool_)) else False,
            beat_cooldown_remaining=cooldown,
            instant_bass=min(max(values["instant_bass"], 0.0), 1.0),
            instant_treble=min(max(values["instant_treble"], 0.0), 1.0),
            peak=min(max(values["peak"], 0.0), 1.0),
            beat_flash=min(max(values["beat_flash"], 0.0), 1.0),
        )
        self._features = clean
        return clean

    # -- simulation --------------------------------------------------------

    def _anchor_pull(self, pos: np.ndarray, kinds: np.ndarray, bass: float) -> np.ndarray | None:
        """Acceleration toward the nearest anchor for particles in range."""
        p = self.params
        anchors = np.flatnonzero(kinds == ParticleKind.ANCHOR)[: p.max_anchors]
        if len(anchors) == 0 or p.anchor_pull <= 0:
            return None

        # Wrapped (toroidal) offsets from every particle to every anchor
        d = pos[anchors][None, :, :] - pos[:, None, :]
        d[..., 0] -= self.width * np.round(d[..., 0] / self.width)
        d[..., 1] -= self.height * np.round(d[..., 1] / self.height)
        dist = np.hypot(d[..., 0], d[..., 1])

        nearest = np.argmin(dist, axis=1)
        rows = np.arange(len(pos))
        near_d = dist[rows, nearest]
        offset = d[rows, nearest]

        active = (near_d < p.anchor_radius) & (near_d > 1e-6) & (kinds != ParticleKind.ANCHOR)
        if not active.any():
            return None

        strength = np.where(
            active,
            p.anchor_pull * (1.0 - near_d / p.anchor_radius) * (0.5 + bass),
            0.0,
        )
        safe_d = np.where(active, near_d, 1.0)
        return offset * (strength / safe_d)[:, None]

    def tick(self, dt_ms: float, features: Any = None) -> PopulationSnapshot:
        """
        Advance the simulation by one frame.

        Args:
            dt_ms: Frame duration in milliseconds.
            features: SmoothedFeatures (or a mapping with the same keys) for
                this same frame.

        Returns:
            PopulationSnapshot of the advanced population.
        """
        # No features: carry the levels forward, but a beat never repeats
        f = self._sanitize(features if features is not None else {})
        p = self.params
        rng = self.rng
        spawn_hue = f.peak * 360.0

        # 1. Population size
        self._resize(p.target_count, spawn_hue)
        if self._count != p.target_count:
            logger.error(
                "Population size %d diverged from target %d; resetting simulator",
                self._count, p.target_count,
            )
            self.reset()
            return self.snapshot()

        n = self._count
        if n == 0:
            self.frame += 1
            return PopulationSnapshot.empty()

        # 2. Clock
        if not math.isfinite(dt_ms) or dt_ms < 0:
            dt_ms = 0.0
        self.time += dt_ms * p.time_scale * 0.001 * (1.0 + f.bass * 2.0)

        # 3. Frame-level force scalars
        strength = p.field_strength * (0.3 + f.bass * 4.0 + f.instant_bass * 2.0)
        scale = p.noise_scale * (0.3 + f.mid * 3.0)
        jitter = f.treble * 6.0 + f.instant_treble * 4.0
        drag = min(max(p.drag - f.bass * 0.03, 0.01), 0.999)

        # Beat bursts and early recycling replace slots before advection
        if f.beat_active:
            burst = min(int(20 + f.bass * 40), n)
            self._spawn(rng.integers(0, n, burst), spawn_hue, burst=True)

        recycle = int(2 + f.energy * 15 + (30 if f.beat_active else 0))
        candidates = rng.integers(0, n, recycle)
        late = candidates[self._age[candidates] > self._lifespan[candidates] * p.recycle_fraction]
        self._spawn(np.unique(late), spawn_hue)

        # 4. Advection
        pos = self._pos[:n]
        vel = self._vel[:n]
        kinds = self._kind[:n].astype(np.intp)

        vx, vy = self.curl.curl_at(pos[:, 0], pos[:, 1], self.time, scale)
        response = _FIELD_RESPONSE[kinds] * strength
        acc = np.stack([vx * response, vy * response], axis=1)

        if jitter > p.jitter_threshold:
            acc += rng.uniform(-0.5, 0.5, (n, 2)) * (jitter * _JITTER_RESPONSE[kinds])[:, None]

        if f.beat_active:
            impulse = 15.0 + f.bass * 25.0
            acc += rng.uniform(-0.5, 0.5, (n, 2)) * (impulse * _IMPULSE_RESPONSE[kinds])[:, None]

        pull = self._anchor_pull(pos, kinds, f.bass)
        if pull is not None:
            acc += pull

        vel += acc
        vel *= drag

        self._prev[:n] = pos
        pos += vel * (1.0 + f.energy * 0.5)

        # Toroidal wrap: leaving one edge re-enters the opposite edge
        np.mod(pos[:, 0], self.width, out=pos[:, 0])
        np.mod(pos[:, 1], self.height, out=pos[:, 1])
        self._wrap_edges(slice(0, n))

        # Guard against NaN creeping in from a hostile feature stream
        bad = ~np.isfinite(pos).all(axis=1) | ~np.isfinite(vel).all(axis=1)
        if bad.any():
            self._spawn(np.flatnonzero(bad), spawn_hue)

        self._age[:n] += 1

        # 5. Death and respawn in place
        expired = np.flatnonzero(self._age[:n] > self._lifespan[:n])
        self._spawn(expired, spawn_hue)

        self.frame += 1
        return self.snapshot()

    def snapshot(self) -> PopulationSnapshot:
        """Copy the live columns into a PopulationSnapshot."""
        n = self._count
        if n == 0:
            return PopulationSnapshot.empty()
        life = np.clip(self._age[:n] / np.maximum(self._lifespan[:n], 1), 0.0, 1.0)
        return PopulationSnapshot(
            self._pos[:n].copy(),
            self._prev[:n].copy(),
            self._size[:n].copy(),
            np.mod(self._hue[:n], 360.0).astype(np.float32),
            life.astype(np.float32),
            self._kind[:n].copy(),
        )
