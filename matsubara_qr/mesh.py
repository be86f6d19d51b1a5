"""
Candidate mesh: the pool of grid points a basis is selected from.

Holds every candidate, whether it has been selected, and its live residual,
i.e. the squared norm of the part of the candidate not yet spanned by the
basis. An independent validation mesh carries its own residuals, used only to
report how well the basis covers points outside the candidate set.
"""

import logging
from typing import Callable, Sequence

import numpy as np

from .parallel import WorkerPool
from .precision import MultiPrecision
from .types import Anomaly, GridPoint

_LOG = logging.getLogger(__name__)


class SelectionError(RuntimeError):
    """A candidate was selected twice."""


def vector_inner_product(arithmetic) -> Callable[[GridPoint, GridPoint], object]:
    """Inner product ``sum(conj(a.vec) * b.vec)`` evaluated by ``arithmetic``."""

    def inner_product(a: GridPoint, b: GridPoint):
        return arithmetic.dot(a.vec, b.vec)

    return inner_product


def _check_points(points: Sequence[GridPoint], axis_length: int, label: str) -> None:
    for i, g in enumerate(points):
        if g.index != i:
            raise ValueError(f"{label} {g.id} carries index {g.index}, expected {i}")
        if len(g.vec) != axis_length:
            raise ValueError(
                f"{label} {g.id} has {len(g.vec)} values, expected {axis_length}"
            )


class CandidateMesh:
    """
    Candidate grid points with selection flags and residuals.

    Use :meth:`initialize` to build one.

    Parameters
    ----------
    candidates : sequence of GridPoint
        Candidate points, ``candidates[i].index == i``.
    inner_product : callable
        ``inner_product(a, b)`` for two GridPoints, Hermitian, conjugate-linear
        in ``a``, returning a scalar of ``arithmetic``.
    arithmetic : DoublePrecision or MultiPrecision
        Numeric backend for residual storage.
    validation : sequence of GridPoint
        Validation ("L2") points, never selected.
    noise_tol : float
        Residuals more negative than ``-noise_tol`` are reported as anomalies.
    """

    def __init__(
        self,
        candidates: Sequence[GridPoint],
        inner_product: Callable,
        arithmetic,
        validation: Sequence[GridPoint] = (),
        noise_tol: float = 0.0,
    ):
        self.candidates = tuple(candidates)
        self.validation = tuple(validation)
        self.inner_product = inner_product
        self.arithmetic = arithmetic
        self.noise_tol = noise_tol

        self._zero = arithmetic.real_zeros(1)[0]

        self.selected = np.zeros(len(self.candidates), dtype=bool)
        self.residual = self._self_overlaps(self.candidates)
        self.residual_l2 = self._self_overlaps(self.validation)

        # residuals before the latest direction was subtracted
        self._direction = -1
        self._base = self.residual.copy()
        self._direction_l2 = -1
        self._base_l2 = self.residual_l2.copy()

    @classmethod
    def initialize(
        cls,
        candidates: Sequence[GridPoint],
        inner_product: Callable,
        arithmetic=None,
        validation: Sequence[GridPoint] = (),
        axis_length: int | None = None,
        noise_tol: float = 0.0,
    ) -> "CandidateMesh":
        """
        Build a mesh and compute the self-overlap of every point.

        Parameters
        ----------
        candidates : sequence of GridPoint
            Candidate points, non-empty.
        inner_product : callable
            Inner product between two GridPoints.
        arithmetic : optional
            Numeric backend. Defaults to ``MultiPrecision()``.
        validation : sequence of GridPoint
            Optional validation points.
        axis_length : int, optional
            Expected vector length. Defaults to the first candidate's.
        noise_tol : float
            Tolerance for reporting negative residuals.

        Returns
        -------
        CandidateMesh

        Raises
        ------
        ValueError
            If the candidate set is empty or vector lengths are inconsistent.
        """
        candidates = tuple(candidates)
        validation = tuple(validation)
        if not candidates:
            raise ValueError("Candidate set is empty")

        if axis_length is None:
            axis_length = len(candidates[0].vec)
        _check_points(candidates, axis_length, "Candidate")
        _check_points(validation, axis_length, "Validation point")

        if arithmetic is None:
            arithmetic = MultiPrecision()

        return cls(candidates, inner_product, arithmetic, validation, noise_tol)

    def _self_overlaps(self, points: Sequence[GridPoint]) -> np.ndarray:
        residual = self.arithmetic.real_zeros(len(points))
        for i, g in enumerate(points):
            residual[i] = self.arithmetic.real(self.inner_product(g, g))
        return residual

    @property
    def size(self) -> int:
        return len(self.candidates)

    @property
    def n_selected(self) -> int:
        return int(np.count_nonzero(self.selected))

    def select(self, index: int) -> None:
        """
        Mark a candidate as part of the basis and zero its residual.

        Raises
        ------
        IndexError
            If ``index`` is out of range.
        SelectionError
            If the candidate is already selected.
        """
        if not 0 <= index < self.size:
            raise IndexError(f"Candidate index {index} out of range [0, {self.size})")
        if self.selected[index]:
            g = self.candidates[index]
            raise SelectionError(f"Candidate {g.id} (index {index}) is already selected")
        self.selected[index] = True
        self.residual[index] = self._zero

    def argmax(self) -> tuple:
        """Largest residual and its index; the lowest index wins ties."""
        idx = int(np.argmax(self.residual))
        return self.residual[idx], idx

    def max_residual(self):
        return self.residual[int(np.argmax(self.residual))]

    def max_validation_residual(self):
        if len(self.residual_l2) == 0:
            return self._zero
        return self.residual_l2[int(np.argmax(self.residual_l2))]

    def update_residual_all(
        self,
        projection: Callable[[GridPoint], object],
        direction: int,
        pool: WorkerPool | None = None,
    ) -> list[Anomaly]:
        """
        Subtract the projection onto basis direction ``direction`` from every
        unselected candidate's residual.

        Repeating the call with the same ``direction`` recomputes from the
        residuals that preceded it, so the result is identical.

        Parameters
        ----------
        projection : callable
            ``projection(point)``: coefficient of the newest orthonormal
            direction in the candidate.
        direction : int
            Index of that direction, 0-based.
        pool : WorkerPool, optional
            Pool used to update disjoint candidate ranges concurrently.

        Returns
        -------
        list of Anomaly
            Residuals that fell below ``-noise_tol`` and were clamped to 0.
        """
        self._direction, self._base = self._advance(
            direction, self._direction, self._base, self.residual
        )
        return self._update_field(
            self.candidates, self.residual, self._base, self.selected, projection, pool
        )

    def update_validation_all(
        self,
        projection: Callable[[GridPoint], object],
        direction: int,
        pool: WorkerPool | None = None,
    ) -> list[Anomaly]:
        """Same as :meth:`update_residual_all` on the validation mesh."""
        self._direction_l2, self._base_l2 = self._advance(
            direction, self._direction_l2, self._base_l2, self.residual_l2
        )
        return self._update_field(
            self.validation, self.residual_l2, self._base_l2, None, projection, pool
        )

    @staticmethod
    def _advance(direction: int, current: int, base: np.ndarray, residual: np.ndarray):
        if direction == current:
            return current, base
        if direction == current + 1:
            return direction, residual.copy()
        raise ValueError(
            f"Direction {direction} applied out of order, last applied was {current}"
        )

    def _update_field(self, points, residual, base, selected, projection, pool):
        noise_tol = self.noise_tol

        def body(start: int, stop: int) -> list[Anomaly]:
            anomalies = []
            for i in range(start, stop):
                if selected is not None and selected[i]:
                    continue
                p = projection(points[i])
                value = base[i] - abs(p) ** 2
                if value < 0:
                    if value < -noise_tol:
                        _LOG.warning(
                            "Residual below zero at n=%d: %s - |%s|^2 = %s",
                            points[i].id, base[i], p, value,
                        )
                        anomalies.append(
                            Anomaly("negative_residual", points[i].id, float(value))
                        )
                    residual[i] = self._zero
                else:
                    residual[i] = value
            return anomalies

        if pool is None:
            chunks = [body(0, len(points))]
        else:
            chunks = pool.map_ranges(len(points), body)
        return [a for chunk in chunks for a in chunk]
