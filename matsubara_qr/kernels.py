"""
Matsubara kernel functions and dispatcher.

Supports two kernel types, evaluated on integer Matsubara indices n and
real frequencies omega:
- Fermionic: K(n, omega) = 1 / (i w_n - omega),  w_n = (2n + 1) pi / beta
- Bosonic:   K(n, omega) = omega / (i w_n - omega),  w_n = 2 n pi / beta
"""

from enum import Enum

import jax.numpy as jnp
from jax import Array


class KernelType(str, Enum):
    """Matsubara kernel types."""

    FERMI = "fermi"
    BOSE = "bose"


def matsubara_frequency(n: Array, is_fermi: bool, beta: float = 1.0) -> Array:
    """
    Matsubara frequencies for integer indices.

    Parameters
    ----------
    n : Array
        Matsubara indices.
    is_fermi : bool
        Fermionic (odd) or bosonic (even) frequencies.
    beta : float
        Inverse temperature.

    Returns
    -------
    Array
        w_n, same shape as n.
    """
    n = jnp.asarray(n)
    if is_fermi:
        return (2 * n + 1) * jnp.pi / beta
    return 2 * n * jnp.pi / beta


def kernel_fermi(n: Array, omega: Array, beta: float = 1.0) -> Array:
    """
    Fermionic kernel.

    K(n, omega) = 1 / (i w_n - omega)

    Parameters
    ----------
    n : Array
        Matsubara indices.
    omega : Array
        Real frequencies, broadcastable against n.
    beta : float
        Inverse temperature.

    Returns
    -------
    Array
        Complex kernel values.
    """
    wn = matsubara_frequency(n, True, beta)
    return 1.0 / (1j * wn - omega)


def kernel_bose(n: Array, omega: Array, beta: float = 1.0) -> Array:
    """
    Bosonic kernel.

    K(n, omega) = omega / (i w_n - omega)

    Notes
    -----
    At w_n = omega = 0 the kernel takes its limit along omega, -1.
    """
    wn = matsubara_frequency(n, False, beta)
    denom = 1j * wn - omega
    degenerate = denom == 0
    safe = jnp.where(degenerate, 1.0, denom)
    return jnp.where(degenerate, -1.0 + 0j, omega / safe)


def apply_kernel(
    n: Array,
    omega: Array,
    kernel: str = "fermi",
    beta: float = 1.0,
) -> Array:
    """
    Evaluate a kernel on every (n, omega) pair.

    Parameters
    ----------
    n : Array
        Matsubara indices, shape (n_points,).
    omega : Array
        Real frequencies, shape (n_omega,).
    kernel : str
        Kernel type: 'fermi' or 'bose'.
    beta : float
        Inverse temperature.

    Returns
    -------
    Array
        Kernel matrix, shape (n_points, n_omega).

    Raises
    ------
    ValueError
        If kernel type is not recognized.
    """
    kernel_type = KernelType(kernel)
    n = jnp.asarray(n)[:, None]
    omega = jnp.asarray(omega, dtype=jnp.float64)[None, :]

    if kernel_type == KernelType.FERMI:
        return kernel_fermi(n, omega, beta)
    elif kernel_type == KernelType.BOSE:
        return kernel_bose(n, omega, beta)
    else:
        raise ValueError(f"Unknown kernel type: {kernel}")
