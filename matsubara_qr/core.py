"""
Driver functions: build a mesh, run the greedy selection, report.
"""

from typing import Callable

from .basis import IncrementalQRBasis
from .matsubara import MatsubaraMirror, build_matsubara_mesh
from .mesh import CandidateMesh
from .precision import make_arithmetic
from .types import MeshConfig, QRConfig, QRResult


def _noise_tol(config: QRConfig) -> float:
    return config.rtol if config.noise_tol is None else config.noise_tol


def build_basis(
    mesh: CandidateMesh,
    config: QRConfig = QRConfig(),
    mirrors: Callable | None = None,
) -> tuple[IncrementalQRBasis, QRResult]:
    """
    Run greedy basis selection on an existing mesh.

    The mesh tolerance for negative residuals is set to ``config.noise_tol``,
    or to ``config.rtol`` when that is None.

    Parameters
    ----------
    mesh : CandidateMesh
        Candidates to select from, updated in place.
    config : QRConfig
        Engine configuration.
    mirrors : callable, optional
        Mirror resolver ``mirrors(mesh, index)``.

    Returns
    -------
    basis : IncrementalQRBasis
        The grown basis. Its worker pool is already shut down.
    result : QRResult
        Selected ids, achieved tolerance and termination status.
    """
    config = config.validate()

    with IncrementalQRBasis(
        mesh,
        mirrors=mirrors,
        rtol=config.rtol,
        workers=config.workers,
        verbose=config.verbose,
        noise_tol=_noise_tol(config),
    ) as basis:
        result = basis.run(
            seed_indices=config.seed_indices,
            max_basis_size=config.max_basis_size,
            target_residual=config.rtol,
        )

    return basis, result


def build_matsubara_basis(
    omega,
    mesh_config: MeshConfig,
    config: QRConfig = QRConfig(),
    kernel: Callable | None = None,
) -> tuple[IncrementalQRBasis, QRResult]:
    """
    Select Matsubara grid points for a kernel on a real-frequency axis.

    Parameters
    ----------
    omega : array_like
        Real-frequency axis, shape (n_omega,).
    mesh_config : MeshConfig
        Matsubara mesh configuration.
    config : QRConfig
        Engine configuration.
    kernel : callable, optional
        ``kernel(n, omega)``; see :func:`build_matsubara_mesh`.

    Returns
    -------
    basis : IncrementalQRBasis
    result : QRResult
    """
    config = config.validate()
    mesh = build_matsubara_mesh(
        omega,
        mesh_config,
        kernel=kernel,
        arithmetic=make_arithmetic(config.precision, config.dps),
        noise_tol=_noise_tol(config),
    )
    mirrors = MatsubaraMirror(mesh_config.is_fermi, mesh_config.symmetry)

    return build_basis(mesh, config, mirrors)
