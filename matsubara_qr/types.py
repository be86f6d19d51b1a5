"""
Data structures for Matsubara QR basis construction.

Configs and results are immutable NamedTuples.
"""

from typing import NamedTuple

import numpy as np


class GridPoint(NamedTuple):
    """A candidate grid point, immutable once created by its mesh."""

    id: int  # Matsubara index n
    index: int  # position in the owning mesh's point list
    vec: np.ndarray  # kernel evaluated on the real-frequency axis, complex128


class Anomaly(NamedTuple):
    """A clamped numerical anomaly observed during the run."""

    kind: str  # "negative_residual", "negative_norm" or "dependent_mirror"
    grid_id: int
    value: float


class QRConfig(NamedTuple):
    """Immutable engine configuration."""

    rtol: float = 1e-8  # Target residual tolerance
    max_basis_size: int = 10000
    seed_indices: tuple[int, ...] = (0,)
    precision: str = "multi"  # "multi" (mpmath) or "double"
    dps: int = 32  # Decimal digits for the "multi" backend
    workers: int | None = None  # None: one per core
    verbose: bool = False
    noise_tol: float | None = None  # None: same as rtol

    def validate(self) -> "QRConfig":
        if not self.rtol > 0:
            raise ValueError(f"rtol must be positive, got {self.rtol}")
        if self.max_basis_size < 1:
            raise ValueError(f"max_basis_size must be >= 1, got {self.max_basis_size}")
        if self.workers is not None and self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.noise_tol is not None and self.noise_tol < 0:
            raise ValueError(f"noise_tol must be non-negative, got {self.noise_tol}")
        return self


class MeshConfig(NamedTuple):
    """Immutable Matsubara mesh configuration."""

    Lambda: float  # UV energy cutoff times inverse temperature
    is_fermi: bool = True
    symmetry: int = 1  # 0 disables the n <-> -n-1 (fermion) / -n (boson) mirror
    degree: int = 12  # Points per panel of the fine grid
    ratio: float = 2.0  # Panel growth ratio of the fine grid
    simple_grid: bool = True  # Candidates from the sparse log grid
    points_per_octave: int = 8
    beta: float = 1.0

    def validate(self) -> "MeshConfig":
        if not self.Lambda > 0:
            raise ValueError(f"Lambda must be positive, got {self.Lambda}")
        if self.degree < 1:
            raise ValueError(f"degree must be >= 1, got {self.degree}")
        if not self.ratio > 1:
            raise ValueError(f"ratio must be > 1, got {self.ratio}")
        if self.points_per_octave < 1:
            raise ValueError(f"points_per_octave must be >= 1, got {self.points_per_octave}")
        if not self.beta > 0:
            raise ValueError(f"beta must be positive, got {self.beta}")
        return self


class QRResult(NamedTuple):
    """Result of a greedy run."""

    selected_grid: list[int]  # Grid point ids in selection order
    achieved_tolerance: float  # sqrt(max residual) at the stopping point
    status: str  # "converged" or "capped"
    n_basis: int
    error: list[float]  # Error after each accepted grid point
    error_l2: list[float]  # Same on the validation mesh (empty without one)


class OrthogonalityReport(NamedTuple):
    """Maximum absolute deviations of the factorization."""

    gram_error: float  # max |K - R^H R|
    inverse_error: float  # max |R Q - I|
    orthogonality_error: float  # max |Q^H K Q - I|
