"""Dynamic time warping distances and alignments."""

from __future__ import annotations

import itertools
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd

from ..data.series import TimeSeries
from ..errors import InvalidArgumentError

logger = logging.getLogger(__name__)

LOCAL_COSTS = ("absolute", "squared")


def as_array(series) -> np.ndarray:
    """Validate a series-like input and return it as a 1-D float array."""
    values = series.values if isinstance(series, TimeSeries) else series
    arr = np.asarray(values, dtype=float).ravel()
    if arr.size == 0:
        raise InvalidArgumentError("DTW input series is empty.")
    if not np.all(np.isfinite(arr)):
        raise InvalidArgumentError("DTW input series contains non-finite values.")
    return arr


def _local_cost(a: np.ndarray, b: np.ndarray, cost: str) -> np.ndarray:
    diff = a[:, None] - b[None, :]
    if cost == "absolute":
        return np.abs(diff)
    if cost == "squared":
        return diff ** 2
    raise InvalidArgumentError(f"Unknown local cost: {cost}. Use one of {LOCAL_COSTS}.")


def _band(n: int, m: int, window: int | None) -> int:
    """Effective Sakoe-Chiba half-width; widened so the end cell stays reachable."""
    if window is None:
        return max(n, m)
    if window < 0:
        raise InvalidArgumentError(f"DTW window must be >= 0, got {window}.")
    return max(int(window), abs(n - m))


def cumulative_cost(a, b, cost: str = "absolute", window: int | None = None) -> np.ndarray:
    """Full n x m cumulative-cost matrix; cells outside the band are ``inf``."""
    a, b = as_array(a), as_array(b)
    n, m = len(a), len(b)
    w = _band(n, m, window)
    local = _local_cost(a, b, cost).tolist()
    inf = float("inf")

    acc = [[inf] * m for _ in range(n)]
    for i in range(n):
        row = acc[i]
        prev = acc[i - 1] if i > 0 else None
        lc = local[i]
        for j in range(max(0, i - w), min(m, i + w + 1)):
            if i == 0 and j == 0:
                best = 0.0
            elif i == 0:
                best = row[j - 1]
            elif j == 0:
                best = prev[j]
            else:
                best = min(prev[j], row[j - 1], prev[j - 1])
            row[j] = lc[j] + best
    return np.array(acc)


def dtw_distance(a, b, cost: str = "absolute", window: int | None = None) -> float:
    """Minimal cumulative alignment cost between ``a`` and ``b``.

    Only two rows of the cost grid are kept, and with a band of half-width
    ``window`` only O(n * window) cells are visited.
    """
    a, b = as_array(a), as_array(b)
    n, m = len(a), len(b)
    w = _band(n, m, window)
    local = _local_cost(a, b, cost).tolist()
    inf = float("inf")

    prev = [inf] * m
    for i in range(n):
        row = [inf] * m
        lc = local[i]
        for j in range(max(0, i - w), min(m, i + w + 1)):
            if i == 0 and j == 0:
                best = 0.0
            elif i == 0:
                best = row[j - 1]
            elif j == 0:
                best = prev[j]
            else:
                best = min(prev[j], row[j - 1], prev[j - 1])
            row[j] = lc[j] + best
        prev = row
    return float(prev[m - 1])


def dtw_path(
    a,
    b,
    cost: str = "absolute",
    window: int | None = None,
) -> tuple[float, list[tuple[int, int]]]:
    """Distance and optimal warping path from (0, 0) to (n-1, m-1)."""
    acc = cumulative_cost(a, b, cost=cost, window=window)
    n, m = acc.shape
    i, j = n - 1, m - 1
    path = [(i, j)]
    while i > 0 or j > 0:
        if i == 0:
            j -= 1
        elif j == 0:
            i -= 1
        else:
            # diagonal first on ties
            steps = ((i - 1, j - 1), (i - 1, j), (i, j - 1))
            i, j = min(steps, key=lambda s: acc[s])
        path.append((i, j))
    path.reverse()
    return float(acc[n - 1, m - 1]), path


def lockstep_distance(a, b, cost: str = "absolute") -> float:
    """Cost of the diagonal (no-warping) alignment of two equal-length series."""
    a, b = as_array(a), as_array(b)
    if len(a) != len(b):
        raise InvalidArgumentError(
            f"Lockstep distance needs equal lengths, got {len(a)} and {len(b)}."
        )
    return float(np.trace(_local_cost(a, b, cost)))


@dataclass(frozen=True, eq=False)
class DistanceMatrix:
    """Symmetric, zero-diagonal matrix of pairwise DTW distances."""

    labels: list[str]
    values: np.ndarray

    def __len__(self) -> int:
        return len(self.labels)

    def __getitem__(self, key: tuple[int, int]) -> float:
        return float(self.values[key])

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.values, index=self.labels, columns=self.labels)

    def nearest(self, label: str) -> str:
        """Closest other series to ``label``."""
        i = self.labels.index(label)
        row = self.values[i].copy()
        row[i] = np.inf
        return self.labels[int(np.argmin(row))]


def series_labels(series: Sequence, labels: Sequence[str] | None = None) -> list[str]:
    if labels is not None:
        if len(labels) != len(series):
            raise InvalidArgumentError(f"Got {len(labels)} labels for {len(series)} series.")
        return [str(label) for label in labels]
    out = []
    for i, s in enumerate(series):
        name = s.name if isinstance(s, TimeSeries) else None
        out.append(name if name else f"series_{i}")
    return out


def pairwise_distances(
    series: Sequence,
    labels: Sequence[str] | None = None,
    cost: str = "absolute",
    window: int | None = None,
    n_jobs: int = 1,
) -> DistanceMatrix:
    """DTW distance for every pair of ``series``.

    Pairs are independent; with ``n_jobs > 1`` they run on a thread pool and
    each result lands in its own (i, j) slot once all tasks have finished.
    """
    if n_jobs < 1:
        raise InvalidArgumentError(f"n_jobs must be >= 1, got {n_jobs}.")
    arrays = [as_array(s) for s in series]
    names = series_labels(series, labels)
    n = len(arrays)
    pairs = list(itertools.combinations(range(n), 2))

    def _pair(ij: tuple[int, int]) -> float:
        i, j = ij
        return dtw_distance(arrays[i], arrays[j], cost=cost, window=window)

    if n_jobs > 1 and len(pairs) > 1:
        with ThreadPoolExecutor(max_workers=n_jobs) as pool:
            distances = list(pool.map(_pair, pairs))
    else:
        distances = [_pair(ij) for ij in pairs]

    values = np.zeros((n, n))
    for (i, j), d in zip(pairs, distances):
        values[i, j] = values[j, i] = d
    logger.debug(f"Computed {len(pairs)} DTW distances over {n} series (window={window})")
    return DistanceMatrix(labels=names, values=values)
