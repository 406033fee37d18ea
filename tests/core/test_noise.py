"""Tests for the seeded simplex noise field."""

import numpy as np
import pytest

from flowscope.core.noise import NoiseField, build_permutation, park_miller


class TestPermutation:
    def test_is_a_permutation_of_256(self):
        perm = build_permutation(42)
        assert sorted(perm.tolist()) == list(range(256))

    def test_same_seed_same_table(self):
        assert np.array_equal(build_permutation(7), build_permutation(7))

    def test_different_seeds_differ(self):
        assert not np.array_equal(build_permutation(1), build_permutation(2))

    @pytest.mark.parametrize("seed", [0, -3, 0.5, 1e12])
    def test_unusual_seeds_accepted(self, seed):
        perm = build_permutation(seed)
        assert len(set(perm.tolist())) == 256

    def test_non_finite_seed_rejected(self):
        with pytest.raises(ValueError):
            next(park_miller(float("nan")))

    def test_stream_in_open_unit_interval(self):
        stream = park_miller(123)
        values = [next(stream) for _ in range(1000)]
        assert all(0.0 < v < 1.0 for v in values)


class TestNoiseField:
    """Determinism, range and continuity of the noise samples."""

    def test_deterministic_for_seed(self):
        a, b = NoiseField(42), NoiseField(42)
        for p in [(0.1, 0.2, 0.3), (10.5, -3.2, 7.0), (123.4, 56.7, 0.0)]:
            assert a.sample3d(*p) == b.sample3d(*p)

    def test_different_seeds_give_different_fields(self):
        rng = np.random.default_rng(0)
        x, y, z = rng.uniform(-50, 50, (3, 200))
        assert not np.allclose(NoiseField(1).sample(x, y, z), NoiseField(2).sample(x, y, z))

    def test_bounded_output(self):
        rng = np.random.default_rng(1)
        x, y, z = rng.uniform(-1000, 1000, (3, 20000))
        values = NoiseField(9).sample(x, y, z)
        assert np.all(np.isfinite(values))
        assert np.abs(values).max() <= 1.2

    def test_not_constant(self):
        rng = np.random.default_rng(2)
        x, y, z = rng.uniform(0, 20, (3, 500))
        assert NoiseField(3).sample(x, y, z).std() > 0.05

    def test_zero_at_lattice_origin(self):
        assert NoiseField(5).sample3d(0.0, 0.0, 0.0) == pytest.approx(0.0, abs=1e-12)

    def test_continuous(self):
        field = NoiseField(11)
        x = np.linspace(0, 10, 5000)
        values = field.sample(x, 3.3, 1.7)
        assert np.abs(np.diff(values)).max() < 0.05

    def test_vectorized_matches_scalar(self):
        field = NoiseField(4)
        xs = np.array([0.3, 5.1, -2.2])
        ys = np.array([1.7, -0.4, 9.9])
        batch = field.sample(xs, ys, 0.25)
        for i in range(3):
            assert batch[i] == pytest.approx(field.sample3d(xs[i], ys[i], 0.25))

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), -float("inf"), 1e300])
    def test_invalid_coordinates_sample_zero(self, bad):
        field = NoiseField(8)
        assert field.sample3d(bad, 1.0, 1.0) == 0.0
        assert field.sample3d(1.0, 1.0, bad) == 0.0

    def test_tables_are_read_only(self):
        field = NoiseField(6)
        with pytest.raises(ValueError):
            field.permutation[0] = 1
