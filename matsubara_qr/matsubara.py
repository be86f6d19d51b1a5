"""
Matsubara-frequency candidate meshes.

Builds integer frequency grids, evaluates a kernel on them with JAX and
wraps the result in a :class:`CandidateMesh`. Also provides the mirror
resolver pairing n with its negative-frequency partner.
"""

from functools import partial
from typing import Callable, Sequence

import jax.numpy as jnp
import numpy as np

from .kernels import apply_kernel
from .mesh import CandidateMesh, vector_inner_product
from .precision import MultiPrecision
from .types import GridPoint, MeshConfig


def freq_to_index(is_fermi: bool, omega_n) -> np.ndarray:
    """
    Nearest Matsubara index for each frequency.

    Fermionic w_n = (2n + 1) pi, bosonic w_n = 2 n pi. Ties round to even.
    """
    w = np.asarray(omega_n, dtype=np.float64)
    if is_fermi:
        return np.round((w / np.pi - 1) / 2).astype(int)
    return np.round(w / np.pi / 2).astype(int)


def _mirror_grid(is_fermi: bool, n: np.ndarray) -> np.ndarray:
    """Extend a non-negative index grid to negative frequencies."""
    n = np.unique(n)
    if is_fermi:
        return np.concatenate([-n[::-1] - 1, n])
    return np.concatenate([-n[:0:-1], n])


def fine_n_grid(is_fermi: bool, Lambda: float, degree: int = 12, ratio: float = 2.0) -> np.ndarray:
    """
    Dense index grid from geometrically growing panels.

    Panels have edges ``ratio**i - 1`` up to about ``1000 * Lambda``, each
    sampled at ``degree`` equally spaced points.

    Parameters
    ----------
    is_fermi : bool
        Fermionic or bosonic indices.
    Lambda : float
        Dimensionless UV cutoff.
    degree : int
        Points per panel.
    ratio : float
        Growth ratio between panel edges.

    Returns
    -------
    np.ndarray
        Sorted, symmetric integer grid.
    """
    n_panels = int(round(np.log(1000 * Lambda) / np.log(ratio)))
    xc = np.arange(degree) / degree
    panel = ratio ** np.arange(n_panels + 1) - 1
    points = panel[:-1, None] + (panel[1:] - panel[:-1])[:, None] * xc[None, :]
    return _mirror_grid(is_fermi, freq_to_index(is_fermi, points.ravel()))


def log_n_grid(is_fermi: bool, Lambda: float, points_per_octave: int = 8) -> np.ndarray:
    """
    Sparse index grid whose spacing doubles every ``points_per_octave`` points.

    Non-negative indices g are kept while ``(2g + 1) pi < Lambda``.
    """
    n = []
    g, step, i = 0, 1, 1
    while (2 * g + 1) * np.pi < Lambda:
        n.append(g)
        g += step
        if i % points_per_octave == 0:
            step *= 2
        i += 1
    return _mirror_grid(is_fermi, np.asarray(n, dtype=int))


def make_grid_points(n: Sequence[int], omega, kernel: Callable) -> list[GridPoint]:
    """
    Evaluate ``kernel(n, omega)`` and wrap each row as a GridPoint.

    Parameters
    ----------
    n : sequence of int
        Matsubara indices.
    omega : array_like
        Real-frequency axis.
    kernel : callable
        ``kernel(n, omega)`` returning an array of shape (len(n), len(omega)).
    """
    n = np.asarray(n, dtype=int)
    values = np.asarray(kernel(jnp.asarray(n), jnp.asarray(omega)), dtype=np.complex128)
    assert values.shape == (len(n), len(omega)), (
        f"Kernel returned shape {values.shape}, expected {(len(n), len(omega))}"
    )
    return [GridPoint(int(n_i), i, values[i]) for i, n_i in enumerate(n)]


def build_matsubara_mesh(
    omega,
    config: MeshConfig,
    kernel: Callable | None = None,
    arithmetic=None,
    noise_tol: float = 0.0,
) -> CandidateMesh:
    """
    Build a candidate mesh over Matsubara indices.

    Candidates come from :func:`log_n_grid` on ``10 * Lambda`` when
    ``config.simple_grid`` is set, otherwise from :func:`fine_n_grid`. The
    validation mesh is always the fine grid.

    Parameters
    ----------
    omega : array_like
        Real-frequency axis the kernel is evaluated on.
    config : MeshConfig
        Mesh configuration.
    kernel : callable, optional
        ``kernel(n, omega)``. Defaults to the fermionic or bosonic kernel
        from :mod:`matsubara_qr.kernels`, according to ``config.is_fermi``.
    arithmetic : optional
        Numeric backend. Defaults to ``MultiPrecision()``.
    noise_tol : float
        Tolerance for reporting negative residuals.

    Returns
    -------
    CandidateMesh
    """
    config = config.validate()
    omega = np.asarray(omega, dtype=np.float64)
    if omega.ndim != 1 or omega.size == 0:
        raise ValueError(f"omega must be a non-empty 1-D array, got shape {omega.shape}")

    if kernel is None:
        kernel = partial(
            apply_kernel,
            kernel="fermi" if config.is_fermi else "bose",
            beta=config.beta,
        )
    if arithmetic is None:
        arithmetic = MultiPrecision()

    fine = fine_n_grid(config.is_fermi, config.Lambda, config.degree, config.ratio)
    if config.simple_grid:
        n_candidates = log_n_grid(config.is_fermi, 10 * config.Lambda, config.points_per_octave)
    else:
        n_candidates = fine

    return CandidateMesh.initialize(
        make_grid_points(n_candidates, omega, kernel),
        vector_inner_product(arithmetic),
        arithmetic=arithmetic,
        validation=make_grid_points(fine, omega, kernel),
        axis_length=len(omega),
        noise_tol=noise_tol,
    )


class MatsubaraMirror:
    """
    Mirror resolver for symmetric Matsubara meshes.

    The candidate list is symmetric, so the partner of index i is
    ``size - 1 - i``. The bosonic n = 0 point is its own partner and has none.

    Parameters
    ----------
    is_fermi : bool
        Fermionic or bosonic mesh.
    symmetry : int
        0 disables mirroring.
    """

    def __init__(self, is_fermi: bool, symmetry: int = 1):
        self.is_fermi = is_fermi
        self.symmetry = symmetry

    def __call__(self, mesh: CandidateMesh, index: int) -> list[GridPoint]:
        if self.symmetry == 0:
            return []
        grid = mesh.candidates[index]
        if not self.is_fermi and grid.id == 0:
            return []
        partner = mesh.size - 1 - index
        if partner == index:
            return []
        return [mesh.candidates[partner]]
