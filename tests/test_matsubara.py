"""Tests for Matsubara grids and meshes."""

import numpy as np
import pytest

from matsubara_qr.kernels import apply_kernel
from matsubara_qr.matsubara import (
    MatsubaraMirror,
    build_matsubara_mesh,
    fine_n_grid,
    freq_to_index,
    log_n_grid,
    make_grid_points,
)
from matsubara_qr.precision import DoublePrecision, MultiPrecision
from matsubara_qr.types import MeshConfig


@pytest.fixture
def omega():
    """Small symmetric real-frequency axis."""
    return np.linspace(-10.0, 10.0, 11)


class TestFreqToIndex:
    """Test frequency to index conversion."""

    def test_fermionic(self):
        """(2n + 1) pi should map back to n."""
        result = freq_to_index(True, np.array([1.0, 3.0, 5.0]) * np.pi)
        assert result.tolist() == [0, 1, 2]

    def test_bosonic(self):
        """2 n pi should map back to n."""
        result = freq_to_index(False, np.array([0.0, 2.0, 4.0]) * np.pi)
        assert result.tolist() == [0, 1, 2]

    def test_ties_round_to_even(self):
        """Halfway values should round to the even index."""
        result = freq_to_index(True, np.array([2.0, 4.0]) * np.pi)
        assert result.tolist() == [0, 2]


class TestLogNGrid:
    """Test the sparse logarithmic grid."""

    def test_fermionic_grid(self):
        """Spacing should double after every 8 points, mirrored as -n-1."""
        grid = log_n_grid(True, 100.0, 8)

        positive = [0, 1, 2, 3, 4, 5, 6, 7, 8, 10, 12, 14]
        expected = [-n - 1 for n in reversed(positive)] + positive
        assert grid.tolist() == expected

    def test_bosonic_grid(self):
        """Bosonic grid should be mirrored as -n around a single zero."""
        grid = log_n_grid(False, 100.0, 8)

        assert len(grid) == 23
        assert grid.tolist() == (-grid[::-1]).tolist()
        assert grid[11] == 0

    def test_below_first_frequency(self):
        """A cutoff below pi should give an empty grid."""
        assert log_n_grid(True, 1.0).size == 0


class TestFineNGrid:
    """Test the dense panel grid."""

    def test_fermionic_symmetry(self):
        """Fermionic grid should satisfy n <-> -n-1."""
        grid = fine_n_grid(True, 10.0)

        assert len(grid) % 2 == 0
        assert grid.tolist() == (-grid[::-1] - 1).tolist()

    def test_bosonic_symmetry(self):
        """Bosonic grid should satisfy n <-> -n with one zero."""
        grid = fine_n_grid(False, 10.0)

        assert len(grid) % 2 == 1
        assert grid.tolist() == (-grid[::-1]).tolist()

    def test_strictly_increasing(self):
        """Grid should be sorted without duplicates."""
        grid = fine_n_grid(True, 10.0, degree=6, ratio=1.5)
        assert np.all(np.diff(grid) > 0)

    def test_denser_than_log_grid(self):
        """Fine grid should reach further than the sparse candidate grid."""
        fine = fine_n_grid(True, 10.0)
        sparse = log_n_grid(True, 100.0)

        assert fine.max() > sparse.max()


class TestMakeGridPoints:
    """Test kernel evaluation into grid points."""

    def test_points(self, omega):
        """Each point should carry its id, index and kernel row."""
        n = [-2, -1, 0, 1]
        points = make_grid_points(n, omega, apply_kernel)
        values = np.asarray(apply_kernel(np.asarray(n), omega))

        assert [g.id for g in points] == n
        assert [g.index for g in points] == [0, 1, 2, 3]
        assert points[2].vec.dtype == np.complex128
        assert np.allclose(points[3].vec, values[3])

    def test_bad_kernel_shape_raises(self, omega):
        """Kernels returning the wrong shape should be rejected."""
        with pytest.raises(AssertionError, match="shape"):
            make_grid_points([0, 1], omega, lambda n, w: np.zeros((1, 1)))


class TestBuildMatsubaraMesh:
    """Test mesh construction."""

    def test_candidates_from_log_grid(self, omega):
        """simple_grid should take candidates from the log grid on 10 Lambda."""
        config = MeshConfig(Lambda=10.0)
        mesh = build_matsubara_mesh(omega, config)

        assert [g.id for g in mesh.candidates] == log_n_grid(True, 100.0).tolist()
        assert [g.id for g in mesh.validation] == fine_n_grid(True, 10.0).tolist()
        assert isinstance(mesh.arithmetic, MultiPrecision)

    def test_candidates_from_fine_grid(self, omega):
        """Without simple_grid candidates should be the fine grid."""
        config = MeshConfig(Lambda=5.0, simple_grid=False)
        mesh = build_matsubara_mesh(omega, config, arithmetic=DoublePrecision())

        assert [g.id for g in mesh.candidates] == [g.id for g in mesh.validation]

    def test_residual_is_kernel_norm(self, omega):
        """Initial residuals should be the squared kernel norms."""
        mesh = build_matsubara_mesh(omega, MeshConfig(Lambda=10.0))

        for g, r in zip(mesh.candidates, mesh.residual):
            assert abs(float(r) - np.sum(np.abs(g.vec) ** 2)) < 1e-12

    def test_custom_kernel(self, omega):
        """A user kernel should be used for every point."""

        def kernel(n, w):
            return np.ones((len(n), len(w))) * 2.0

        mesh = build_matsubara_mesh(omega, MeshConfig(Lambda=10.0), kernel=kernel)

        assert np.allclose(mesh.candidates[0].vec, 2.0)
        assert abs(float(mesh.residual[0]) - 4.0 * len(omega)) < 1e-12

    def test_invalid_omega_raises(self):
        """An empty frequency axis should be rejected."""
        with pytest.raises(ValueError, match="omega"):
            build_matsubara_mesh(np.array([]), MeshConfig(Lambda=10.0))

    def test_invalid_config_raises(self, omega):
        """Invalid mesh configuration should be rejected."""
        with pytest.raises(ValueError, match="Lambda"):
            build_matsubara_mesh(omega, MeshConfig(Lambda=-1.0))


class TestMatsubaraMirror:
    """Test the symmetry partner lookup."""

    def test_fermionic_partner(self, omega):
        """Partner of n should be -n-1."""
        mesh = build_matsubara_mesh(omega, MeshConfig(Lambda=10.0))
        mirror = MatsubaraMirror(is_fermi=True)

        for i, g in enumerate(mesh.candidates):
            partners = mirror(mesh, i)
            assert len(partners) == 1
            assert partners[0].id == -g.id - 1
            assert partners[0].index == mesh.size - 1 - i

    def test_bosonic_zero_has_no_partner(self, omega):
        """Bosonic n = 0 should have no mirror, others map to -n."""
        config = MeshConfig(Lambda=10.0, is_fermi=False)
        mesh = build_matsubara_mesh(omega, config)
        mirror = MatsubaraMirror(is_fermi=False)

        for i, g in enumerate(mesh.candidates):
            partners = mirror(mesh, i)
            if g.id == 0:
                assert partners == []
            else:
                assert [p.id for p in partners] == [-g.id]

    def test_symmetry_disabled(self, omega):
        """symmetry=0 should never return partners."""
        mesh = build_matsubara_mesh(omega, MeshConfig(Lambda=10.0))
        mirror = MatsubaraMirror(is_fermi=True, symmetry=0)

        assert all(mirror(mesh, i) == [] for i in range(mesh.size))
