"""
Matsubara QR: greedy pivoted Gram-Schmidt selection of Matsubara grids.

Selects, one at a time, the candidate frequency whose kernel vector has the
largest residual against the basis built so far, until every candidate is
represented to a target tolerance. Arithmetic runs at extended precision
through mpmath.

Usage
-----
>>> import numpy as np
>>> import matsubara_qr
>>>
>>> omega = np.linspace(-10.0, 10.0, 41)
>>> mesh_config = matsubara_qr.MeshConfig(Lambda=10.0)
>>> basis, result = matsubara_qr.build_matsubara_basis(
...     omega, mesh_config, matsubara_qr.QRConfig(rtol=1e-8)
... )
>>> matsubara_qr.save_grid("basis_n.dat", result.selected_grid)
"""

import jax

# Kernel vectors are evaluated in float64
jax.config.update("jax_enable_x64", True)

from .basis import DependentPointError, IncrementalQRBasis
from .core import build_basis, build_matsubara_basis
from .diagnostics import check_orthogonality
from .io import load_frequencies, load_grid, save_grid
from .matsubara import MatsubaraMirror, build_matsubara_mesh
from .mesh import CandidateMesh, SelectionError, vector_inner_product
from .precision import DoublePrecision, MultiPrecision
from .types import GridPoint, MeshConfig, QRConfig, QRResult

try:
    from importlib.metadata import version

    __version__ = version("matsubara_qr")
except Exception:
    __version__ = "unknown"

__all__ = [
    # Core functions
    "build_basis",
    "build_matsubara_basis",
    "build_matsubara_mesh",
    "check_orthogonality",
    # Engine
    "CandidateMesh",
    "DependentPointError",
    "IncrementalQRBasis",
    "MatsubaraMirror",
    "SelectionError",
    "vector_inner_product",
    # Backends
    "DoublePrecision",
    "MultiPrecision",
    # Types
    "GridPoint",
    "MeshConfig",
    "QRConfig",
    "QRResult",
    # I/O
    "save_grid",
    "load_grid",
    "load_frequencies",
]
