"""
Fixed-size worker pool with a parallel-for over disjoint index ranges.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, TypeVar

T = TypeVar("T")


def split_range(n: int, n_chunks: int) -> list[tuple[int, int]]:
    """
    Partition ``range(n)`` into at most ``n_chunks`` contiguous, disjoint
    ``(start, stop)`` pairs of near-equal length.
    """
    if n <= 0:
        return []
    n_chunks = max(1, min(n_chunks, n))
    size, extra = divmod(n, n_chunks)
    bounds = []
    start = 0
    for i in range(n_chunks):
        stop = start + size + (1 if i < extra else 0)
        bounds.append((start, stop))
        start = stop
    return bounds


class WorkerPool:
    """
    Thread pool sized once at construction.

    Parameters
    ----------
    workers : int, optional
        Number of worker threads. Defaults to the number of available cores.
        With ``workers=1`` every call runs inline on the calling thread.
    """

    def __init__(self, workers: int | None = None):
        if workers is None:
            workers = os.cpu_count() or 1
        if workers < 1:
            raise ValueError(f"workers must be positive, got {workers}")
        self.workers = workers
        self._executor = ThreadPoolExecutor(max_workers=workers) if workers > 1 else None

    def map_ranges(self, n: int, fn: Callable[[int, int], T]) -> list[T]:
        """
        Call ``fn(start, stop)`` on each chunk of ``range(n)``.

        Results come back in chunk order. Exceptions raised by a worker are
        re-raised here.
        """
        bounds = split_range(n, self.workers)
        if self._executor is None or len(bounds) <= 1:
            return [fn(start, stop) for start, stop in bounds]
        futures = [self._executor.submit(fn, start, stop) for start, stop in bounds]
        return [f.result() for f in futures]

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "WorkerPool":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
