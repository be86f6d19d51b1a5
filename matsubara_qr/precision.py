"""
Numeric backends for the QR engine.

The engine never touches a scalar type directly. It goes through one of the
backends below, which all provide the same small set of operations:

- ``zeros`` / ``real_zeros``: NumPy storage for coefficients and residuals
- ``convert``: promote a candidate value to the working precision
- ``dot``: Hermitian inner product ``sum(conj(a) * b)`` of two vectors
- ``real``, ``conj``, ``sqrt``, ``to_float``: scalar helpers

Residuals near convergence are many orders of magnitude smaller than the
self-overlaps computed at start-up, so the default backend works at extended
precision through mpmath.
"""

import math
from enum import Enum

import mpmath
import numpy as np


class PrecisionType(str, Enum):
    """Numeric backend types."""

    MULTI = "multi"
    DOUBLE = "double"


class DoublePrecision:
    """Plain IEEE double backend on NumPy complex128 arrays."""

    name = "double"

    def zeros(self, shape) -> np.ndarray:
        return np.zeros(shape, dtype=np.complex128)

    def real_zeros(self, shape) -> np.ndarray:
        return np.zeros(shape, dtype=np.float64)

    def convert(self, x) -> complex:
        return complex(x)

    def dot(self, a: np.ndarray, b: np.ndarray) -> complex:
        return complex(np.vdot(a, b))

    def real(self, x) -> float:
        return float(np.real(x))

    def conj(self, x):
        return np.conj(x)

    def sqrt(self, x) -> float:
        return math.sqrt(x)

    def to_float(self, x) -> float:
        return float(np.real(x))

    @property
    def eps(self) -> float:
        return float(np.finfo(np.float64).eps)


class MultiPrecision:
    """
    Arbitrary precision backend on an isolated mpmath context.

    Each instance owns its own ``MPContext`` so that setting the precision
    here never changes the global ``mpmath.mp`` used elsewhere.

    Parameters
    ----------
    dps : int
        Decimal digits of working precision.
    """

    name = "multi"

    def __init__(self, dps: int = 32):
        if dps < 16:
            raise ValueError(f"dps must be at least 16, got {dps}")
        self.ctx = mpmath.MPContext()
        self.ctx.dps = dps
        self.dps = dps
        self._zero = self.ctx.mpc(0)
        self._real_zero = self.ctx.mpf(0)
        self._conj = np.frompyfunc(self.ctx.conj, 1, 1)

    def zeros(self, shape) -> np.ndarray:
        arr = np.empty(shape, dtype=object)
        arr.fill(self._zero)
        return arr

    def real_zeros(self, shape) -> np.ndarray:
        arr = np.empty(shape, dtype=object)
        arr.fill(self._real_zero)
        return arr

    def convert(self, x):
        x = complex(x)
        return self.ctx.mpc(x.real, x.imag)

    def dot(self, a: np.ndarray, b: np.ndarray):
        # fdot conjugates its second argument
        return self.ctx.fdot(b.tolist(), a.tolist(), conjugate=True)

    def real(self, x):
        return self.ctx.re(x)

    def conj(self, x):
        if isinstance(x, np.ndarray):
            return self._conj(x).astype(object)
        return self.ctx.conj(x)

    def sqrt(self, x):
        return self.ctx.sqrt(x)

    def to_float(self, x) -> float:
        return float(self.ctx.re(x))

    @property
    def eps(self) -> float:
        return float(self.ctx.eps)


def make_arithmetic(precision: str = "multi", dps: int = 32):
    """
    Build a numeric backend by name.

    Parameters
    ----------
    precision : str
        ``'multi'`` for mpmath extended precision, ``'double'`` for float64.
    dps : int
        Decimal digits, used by the ``'multi'`` backend only.

    Returns
    -------
    DoublePrecision or MultiPrecision
    """
    precision_type = PrecisionType(precision)

    if precision_type == PrecisionType.MULTI:
        return MultiPrecision(dps)
    elif precision_type == PrecisionType.DOUBLE:
        return DoublePrecision()
    else:
        raise ValueError(f"Unknown precision: {precision}")
