"""
Incremental QR basis selection by greedy pivoted Gram-Schmidt.

The basis grows one grid point at a time. Each new point is orthogonalized
against the points already selected, giving upper-triangular factors with

    K = R^H R,    Q = R^{-1},

where ``K`` is the Gram matrix of the selected points. Column ``j`` of ``Q``
holds the coefficients of the ``j``-th orthonormal direction in terms of the
raw selected points. After every addition the residual of each remaining
candidate is reduced by its squared projection onto the newest direction
only, so one step costs a single inner product per candidate.
"""

import logging
from typing import Callable, Sequence

import numpy as np
from tqdm import tqdm

from .mesh import CandidateMesh, SelectionError
from .parallel import WorkerPool
from .types import Anomaly, GridPoint, QRResult

_LOG = logging.getLogger(__name__)


class DependentPointError(ValueError):
    """Raised when a grid point lies exactly in the span of the basis."""


def no_mirrors(mesh: CandidateMesh, index: int) -> list[GridPoint]:
    """Mirror resolver for meshes without symmetry."""
    return []


class IncrementalQRBasis:
    """
    Greedily selected orthonormal basis over a candidate mesh.

    Parameters
    ----------
    mesh : CandidateMesh
        Candidates to select from. The basis updates its residuals in place.
    mirrors : callable, optional
        ``mirrors(mesh, index)`` returning the symmetry partners that are
        added together with the candidate at ``index``.
    rtol : float
        Default target residual for :meth:`run`.
    workers : int, optional
        Threads used for the residual update. Defaults to one per core.
    verbose : bool
        Show a progress bar during :meth:`run`.
    capacity : int
        Initial storage size, doubled whenever the basis outgrows it.
    noise_tol : float, optional
        Overrides the mesh tolerance for negative residuals and norms.
    """

    def __init__(
        self,
        mesh: CandidateMesh,
        mirrors: Callable[[CandidateMesh, int], Sequence[GridPoint]] | None = None,
        rtol: float = 1e-8,
        workers: int | None = None,
        verbose: bool = False,
        capacity: int = 16,
        noise_tol: float | None = None,
    ):
        self.mesh = mesh
        self.arithmetic = mesh.arithmetic
        self.mirrors = mirrors if mirrors is not None else no_mirrors
        self.rtol = rtol
        if noise_tol is not None:
            mesh.noise_tol = noise_tol
        self.verbose = verbose
        self.pool = WorkerPool(workers)

        self.N = 0
        self.grid: list[GridPoint] = []
        self.error: list[float] = []
        self.error_l2: list[float] = []
        self.anomalies: list[Anomaly] = []

        self._capacity = 0
        self._Q = self.arithmetic.zeros((0, 0))
        self._R = self.arithmetic.zeros((0, 0))
        self._overlap = self.arithmetic.zeros((0, mesh.size))
        self._overlap_l2 = self.arithmetic.zeros((0, len(mesh.validation)))
        self._reserve(max(1, capacity))

    @property
    def Q(self) -> np.ndarray:
        """Coefficients of the orthonormal directions, shape (N, N)."""
        return self._Q[: self.N, : self.N]

    @property
    def R(self) -> np.ndarray:
        """Upper-triangular factor of the Gram matrix, shape (N, N)."""
        return self._R[: self.N, : self.N]

    @property
    def selected_ids(self) -> list[int]:
        """Ids of the basis points in insertion order."""
        return [g.id for g in self.grid]

    def _reserve(self, n: int) -> None:
        """Grow the storage so that it holds at least ``n`` directions."""
        if n <= self._capacity:
            return
        old = self._capacity
        new = max(n, 2 * old)
        zeros = self.arithmetic.zeros

        Q, R = zeros((new, new)), zeros((new, new))
        Q[:old, :old] = self._Q
        R[:old, :old] = self._R

        overlap = zeros((new, self._overlap.shape[1]))
        overlap[:old] = self._overlap
        overlap_l2 = zeros((new, self._overlap_l2.shape[1]))
        overlap_l2[:old] = self._overlap_l2

        self._Q, self._R = Q, R
        self._overlap, self._overlap_l2 = overlap, overlap_l2
        self._capacity = new

    def _gram_schmidt(self, point: GridPoint):
        """
        Orthogonalize ``point`` against the current basis.

        Returns the new column of Q and R without committing them.
        """
        arith = self.arithmetic
        inner = self.mesh.inner_product
        n = self.N

        overlap = arith.zeros(n)
        for j, g in enumerate(self.grid):
            overlap[j] = inner(g, point)

        q_new = arith.zeros(n + 1)
        q_new[n] = arith.convert(1)
        r_new = arith.zeros(n + 1)

        # Q is upper triangular, so direction j only involves points 0..j
        for j in range(n):
            q_j = self._Q[: j + 1, j]
            r = np.dot(arith.conj(q_j), overlap[: j + 1])
            r_new[j] = r
            q_new[: j + 1] -= q_j * r

        norm2 = arith.real(inner(point, point))
        for j in range(n):
            norm2 = norm2 - abs(r_new[j]) ** 2

        if norm2 < 0 and -norm2 > self.mesh.noise_tol:
            _LOG.warning(
                "Negative norm^2 = %s at n=%d, the point is numerically dependent "
                "on the current basis",
                norm2, point.id,
            )
            self.anomalies.append(Anomaly("negative_norm", point.id, float(norm2)))

        norm = arith.sqrt(abs(norm2))
        if norm == 0:
            raise DependentPointError(
                f"Grid point {point.id} lies in the span of the current basis"
            )

        r_new[n] = norm
        return q_new / norm, r_new

    def add_basis(self, point: GridPoint) -> None:
        """
        Append ``point`` to the basis and update every residual.

        Parameters
        ----------
        point : GridPoint
            A point of ``self.mesh`` (candidate list).

        Raises
        ------
        DependentPointError
            If the point is exactly in the span of the current basis. The
            basis is left unchanged in that case.
        """
        q_new, r_new = self._gram_schmidt(point)

        n = self.N
        self._reserve(n + 1)
        self._Q[: n + 1, n] = q_new
        self._R[: n + 1, n] = r_new
        self.N += 1
        self.grid.append(point)

        self.update_residual()

        arith = self.arithmetic
        self.error.append(arith.to_float(arith.sqrt(self.mesh.max_residual())))
        if self.mesh.validation:
            max_l2 = self.mesh.max_validation_residual()
            self.error_l2.append(arith.to_float(arith.sqrt(max_l2)))

        _LOG.info(
            "%3d n=%d -> error=%16.8g, Rmin=%16.8g",
            self.N, point.id, self.error[-1], arith.to_float(self._R[n, n]),
        )

    def _projection(self, cache: np.ndarray) -> Callable[[GridPoint], object]:
        """Projection of a point onto the newest direction, caching overlaps."""
        n = self.N - 1
        q = self.arithmetic.conj(self._Q[: n + 1, n])
        newest = self.grid[n]
        inner = self.mesh.inner_product

        def projection(point: GridPoint):
            cache[n, point.index] = inner(newest, point)
            return np.dot(q, cache[: n + 1, point.index])

        return projection

    def update_residual(self) -> None:
        """Subtract the newest direction from all candidate residuals."""
        if self.N == 0:
            return
        direction = self.N - 1
        anomalies = self.mesh.update_residual_all(
            self._projection(self._overlap), direction, pool=self.pool
        )
        if self.mesh.validation:
            self.mesh.update_validation_all(
                self._projection(self._overlap_l2), direction, pool=self.pool
            )
        self.anomalies.extend(anomalies)

    def add_basis_block(self, pivot_index: int) -> list[GridPoint]:
        """
        Add the candidate at ``pivot_index`` and all of its mirrors.

        Mirrors are forced in without consulting their residual. A mirror
        that lies exactly in the span of the basis is selected without a new
        direction and recorded as a ``dependent_mirror`` anomaly.

        Returns
        -------
        list of GridPoint
            Points added to the basis, pivot first.

        Raises
        ------
        IndexError
            If ``pivot_index`` is out of range.
        SelectionError
            If the pivot or one of its mirrors is already selected.
        """
        mesh = self.mesh
        if not 0 <= pivot_index < mesh.size:
            raise IndexError(f"Candidate index {pivot_index} out of range [0, {mesh.size})")
        if mesh.selected[pivot_index]:
            g = mesh.candidates[pivot_index]
            raise SelectionError(f"Candidate {g.id} (index {pivot_index}) is already selected")

        pivot = mesh.candidates[pivot_index]
        mirrors = list(self.mirrors(mesh, pivot_index))
        for mirror in mirrors:
            if mirror.index == pivot_index:
                raise ValueError(f"Candidate {pivot.id} returned itself as its mirror")
            if mesh.selected[mirror.index]:
                raise SelectionError(
                    f"Mirror {mirror.id} (index {mirror.index}) is already selected"
                )

        self.add_basis(pivot)
        mesh.select(pivot_index)
        added = [pivot]

        for mirror in mirrors:
            try:
                self.add_basis(mirror)
            except DependentPointError:
                _LOG.warning(
                    "Mirror n=%d of n=%d lies in the span of the basis, "
                    "selected without a new direction",
                    mirror.id, pivot.id,
                )
                self.anomalies.append(Anomaly("dependent_mirror", mirror.id, 0.0))
            else:
                added.append(mirror)
            mesh.select(mirror.index)

        _LOG.debug("Block added: %s", [g.id for g in added])
        return added

    def run(
        self,
        seed_indices: Sequence[int] = (0,),
        max_basis_size: int = 10000,
        target_residual: float | None = None,
    ) -> QRResult:
        """
        Grow the basis until the largest residual meets the target.

        Parameters
        ----------
        seed_indices : sequence of int
            Candidates added (with their mirrors) before greedy selection.
        max_basis_size : int
            Stop once the basis has at least this many points.
        target_residual : float, optional
            Target for ``sqrt(max residual)``. Defaults to ``self.rtol``.

        Returns
        -------
        QRResult
            ``status`` is ``'capped'`` when the size limit was hit before the
            target was met.
        """
        if target_residual is None:
            target_residual = self.rtol
        if max_basis_size < 1:
            raise ValueError(f"max_basis_size must be >= 1, got {max_basis_size}")

        arith = self.arithmetic
        progress = tqdm(
            total=max_basis_size, desc="Selecting basis", disable=not self.verbose
        )

        def grow(idx: int) -> None:
            added = self.add_basis_block(idx)
            progress.update(len(added))
            progress.set_postfix(
                error=self.error[-1],
                Rmin=arith.to_float(self._R[self.N - 1, self.N - 1]),
            )

        try:
            for idx in seed_indices:
                grow(idx)

            max_residual, idx = self.mesh.argmax()
            while arith.sqrt(max_residual) > target_residual and self.N < max_basis_size:
                grow(idx)
                max_residual, idx = self.mesh.argmax()
        finally:
            progress.close()

        achieved = arith.sqrt(max_residual)
        status = "capped" if achieved > target_residual else "converged"
        achieved = arith.to_float(achieved)
        _LOG.info("rtol = %.16e (%s, N=%d)", achieved, status, self.N)

        return QRResult(
            selected_grid=self.selected_ids,
            achieved_tolerance=achieved,
            status=status,
            n_basis=self.N,
            error=list(self.error),
            error_l2=list(self.error_l2),
        )

    def close(self) -> None:
        self.pool.shutdown()

    def __enter__(self) -> "IncrementalQRBasis":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
