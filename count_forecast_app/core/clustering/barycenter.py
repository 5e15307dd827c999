"""DTW barycenter averaging (DBA)."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from ..errors import InvalidArgumentError
from .dtw import as_array, dtw_distance, dtw_path


def medoid_index(
    series: Sequence,
    weights: np.ndarray | None = None,
    distances: np.ndarray | None = None,
    cost: str = "absolute",
    window: int | None = None,
) -> int:
    """Index of the series with the smallest weighted DTW distance to all others."""
    arrays = [as_array(s) for s in series]
    n = len(arrays)
    w = np.ones(n) if weights is None else np.asarray(weights, dtype=float)
    if distances is None:
        distances = np.zeros((n, n))
        for i in range(n):
            for j in range(i + 1, n):
                distances[i, j] = distances[j, i] = dtw_distance(arrays[i], arrays[j], cost, window)
    return int(np.argmin(distances @ w))


def dba(
    series: Sequence,
    weights: Sequence[float] | np.ndarray | None = None,
    init=None,
    max_iter: int = 10,
    tol: float = 1e-5,
    cost: str = "absolute",
    window: int | None = None,
) -> np.ndarray:
    """Weighted DTW barycenter of ``series``.

    Starting from ``init`` (the weighted medoid when omitted), each pass aligns
    the current average with every member and replaces each average point by
    the weighted mean of the member values warped onto it. Stops once no
    point moves by more than ``tol`` or after ``max_iter`` passes.
    """
    arrays = [as_array(s) for s in series]
    if not arrays:
        raise InvalidArgumentError("DBA needs at least one series.")
    w = np.ones(len(arrays)) if weights is None else np.asarray(weights, dtype=float)
    if w.shape != (len(arrays),):
        raise InvalidArgumentError(f"Got {w.size} weights for {len(arrays)} series.")
    if np.any(w < 0) or not np.any(w > 0):
        raise InvalidArgumentError("DBA weights must be non-negative with a positive total.")
    if max_iter < 1:
        raise InvalidArgumentError(f"max_iter must be >= 1, got {max_iter}.")

    if init is None:
        init = arrays[medoid_index(arrays, w, cost=cost, window=window)]
    center = as_array(init).copy()

    for _ in range(max_iter):
        sums = np.zeros_like(center)
        counts = np.zeros_like(center)
        for arr, weight in zip(arrays, w):
            if weight == 0:
                continue
            _, path = dtw_path(center, arr, cost=cost, window=window)
            idx_c, idx_s = np.array(path).T
            np.add.at(sums, idx_c, weight * arr[idx_s])
            np.add.at(counts, idx_c, weight)
        updated = np.where(counts > 0, sums / np.where(counts > 0, counts, 1.0), center)
        shift = float(np.max(np.abs(updated - center)))
        center = updated
        if shift < tol:
            break
    return center
