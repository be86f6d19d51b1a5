"""
Consistency checks of a QR basis.
"""

import numpy as np

from .basis import IncrementalQRBasis
from .types import OrthogonalityReport


def gram_matrix(basis: IncrementalQRBasis) -> np.ndarray:
    """Gram matrix K[i, j] = <g_i, g_j> of the selected grid points."""
    inner = basis.mesh.inner_product
    K = basis.arithmetic.zeros((basis.N, basis.N))
    for i, g1 in enumerate(basis.grid):
        for j, g2 in enumerate(basis.grid):
            K[i, j] = inner(g1, g2)
    return K


def check_orthogonality(basis: IncrementalQRBasis) -> OrthogonalityReport:
    """
    Measure how well the factors reproduce the Gram matrix.

    Parameters
    ----------
    basis : IncrementalQRBasis
        A basis with at least one point.

    Returns
    -------
    OrthogonalityReport
        ``max|K - R^H R|``, ``max|R Q - I|`` and ``max|Q^H K Q - I|``.
    """
    if basis.N == 0:
        raise ValueError("Basis is empty")

    arith = basis.arithmetic
    K = gram_matrix(basis)
    Q, R = basis.Q, basis.R
    identity = np.eye(basis.N)

    def max_abs(A: np.ndarray) -> float:
        return arith.to_float(np.max(np.abs(A)))

    return OrthogonalityReport(
        gram_error=max_abs(K - arith.conj(R).T @ R),
        inverse_error=max_abs(R @ Q - identity),
        orthogonality_error=max_abs(arith.conj(Q).T @ K @ Q - identity),
    )
