"""Pytest configuration and shared fixtures."""

import jax
import numpy as np
import pytest

from matsubara_qr.mesh import CandidateMesh, vector_inner_product
from matsubara_qr.precision import MultiPrecision
from matsubara_qr.types import GridPoint

# Ensure float64 is enabled for all tests
jax.config.update("jax_enable_x64", True)


def points_from_rows(rows, ids=None) -> list[GridPoint]:
    """Wrap each row of a 2D array as a GridPoint."""
    rows = np.asarray(rows, dtype=np.complex128)
    if ids is None:
        ids = range(len(rows))
    return [GridPoint(int(n), i, rows[i]) for i, n in enumerate(ids)]


@pytest.fixture
def make_mesh():
    """Factory building a multi-precision mesh from rows of vectors."""

    def factory(rows, ids=None, validation=None, arithmetic=None, noise_tol=1e-8):
        arithmetic = arithmetic or MultiPrecision(32)
        return CandidateMesh.initialize(
            points_from_rows(rows, ids),
            vector_inner_product(arithmetic),
            arithmetic=arithmetic,
            validation=points_from_rows(validation) if validation is not None else (),
            noise_tol=noise_tol,
        )

    return factory


@pytest.fixture
def random_rows():
    """Random complex vectors, shape (n_candidates, length)."""

    def factory(n_candidates, length, seed=42):
        rng = np.random.default_rng(seed)
        return rng.standard_normal((n_candidates, length)) + 1j * rng.standard_normal(
            (n_candidates, length)
        )

    return factory
