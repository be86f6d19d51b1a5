"""
File I/O utilities for Matsubara QR.

Uses NumPy text files.
"""

import numpy as np


def save_grid(filename: str, ids) -> None:
    """
    Write selected grid ids, sorted ascending, one integer per line.

    Parameters
    ----------
    filename : str
        Output filename.
    ids : sequence of int
        Selected Matsubara indices, in any order.
    """
    grid = np.sort(np.asarray(ids, dtype=int))
    np.savetxt(filename, grid, fmt="%d")


def load_grid(filename: str) -> np.ndarray:
    """
    Read a grid written by :func:`save_grid`.

    Returns
    -------
    np.ndarray
        Integer ids, shape (n_basis,).
    """
    return np.loadtxt(filename, dtype=int, ndmin=1)


def load_frequencies(filename: str, usecols: int = 0, skiprows: int = 0) -> np.ndarray:
    """
    Load a real-frequency axis from a text file.

    Parameters
    ----------
    filename : str
        Whitespace-delimited text file.
    usecols : int
        Column holding the frequencies.
    skiprows : int
        Number of header rows to skip.

    Returns
    -------
    np.ndarray
        Frequencies, shape (n_omega,).
    """
    omega = np.loadtxt(filename, usecols=usecols, skiprows=skiprows, ndmin=1)
    if omega.size == 0:
        raise ValueError(f"No frequencies found in {filename}")
    return omega
