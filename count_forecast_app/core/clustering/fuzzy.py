"""Fuzzy c-means clustering of series under DTW."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Mapping, Sequence

import numpy as np
import pandas as pd
from sklearn.metrics import silhouette_score

from ..data.series import TimeSeries
from ..errors import InvalidArgumentError
from .barycenter import dba
from .dtw import DistanceMatrix, as_array, dtw_distance, pairwise_distances, series_labels

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ClusterAssignment:
    labels: list[str]
    membership: np.ndarray  # rows = series, columns = clusters
    centroids: list[TimeSeries]
    fuzzifier: float
    n_iter: int
    converged: bool
    objective: float

    @property
    def n_clusters(self) -> int:
        return self.membership.shape[1]

    @property
    def hard_labels(self) -> np.ndarray:
        return np.argmax(self.membership, axis=1)

    def dominant(self, label: str) -> tuple[int, float]:
        """Cluster with the largest membership for ``label`` and that membership."""
        row = self.membership[self.labels.index(label)]
        c = int(np.argmax(row))
        return c, float(row[c])

    def members(self, cluster: int) -> list[str]:
        return [label for label, c in zip(self.labels, self.hard_labels) if c == cluster]

    @property
    def partition_coefficient(self) -> float:
        """Mean of squared memberships: 1 for a crisp partition, 1/k for a uniform one."""
        return float(np.mean(np.sum(self.membership ** 2, axis=1)))

    @property
    def partition_entropy(self) -> float:
        u = self.membership
        logs = np.log(np.where(u > 0, u, 1.0))
        return float(-np.mean(np.sum(u * logs, axis=1)))

    def to_frame(self) -> pd.DataFrame:
        columns = [f"cluster_{c}" for c in range(self.n_clusters)]
        df = pd.DataFrame(self.membership, index=self.labels, columns=columns)
        df["dominant"] = self.hard_labels
        return df


def _unpack(series: Mapping[str, object] | Sequence) -> tuple[list[np.ndarray], list[str], int]:
    if isinstance(series, Mapping):
        items = list(series.values())
        labels = series_labels(items, [str(k) for k in series.keys()])
    else:
        items = list(series)
        labels = series_labels(items)
    arrays = [as_array(s) for s in items]
    periods = {s.period for s in items if isinstance(s, TimeSeries)}
    period = periods.pop() if len(periods) == 1 else 1
    return arrays, labels, period


def update_memberships(distances: np.ndarray, fuzzifier: float) -> np.ndarray:
    """Memberships proportional to ``d ** (-2 / (m - 1))``, rows normalized.

    A series at zero distance from one or more centroids splits its whole
    membership evenly among them.
    """
    dist = np.asarray(distances, dtype=float)
    out = np.zeros_like(dist)
    zero = dist <= 0
    exact = zero.any(axis=1)
    if exact.any():
        out[exact] = zero[exact] / zero[exact].sum(axis=1, keepdims=True)
    rest = ~exact
    if rest.any():
        d = dist[rest]
        # scale by the row minimum so the largest term is 1
        ratio = d / d.min(axis=1, keepdims=True)
        inv = ratio ** (-2.0 / (fuzzifier - 1.0))
        out[rest] = inv / inv.sum(axis=1, keepdims=True)
    return out


def _initial_seeds(membership: np.ndarray, distances: np.ndarray, n_clusters: int) -> list[int]:
    """Strongest member of cluster 0, then farthest-first picks."""
    chosen = [int(np.argmax(membership[:, 0]))]
    while len(chosen) < n_clusters:
        closest = distances[:, chosen].min(axis=1)
        closest[chosen] = -np.inf
        chosen.append(int(np.argmax(closest)))
    return chosen


def fuzzy_cmeans(
    series: Mapping[str, object] | Sequence,
    n_clusters: int = 3,
    fuzzifier: float = 2.0,
    seed: int = 0,
    max_iter: int = 100,
    tol: float = 1e-4,
    dba_iter: int = 5,
    cost: str = "absolute",
    window: int | None = None,
    n_jobs: int = 1,
    distances: DistanceMatrix | None = None,
) -> ClusterAssignment:
    """Fuzzy c-means with DTW distances and DBA centroids.

    Args:
        series: Sequence of series, or a mapping label -> series.
        n_clusters: Number of clusters ``k`` (2 <= k <= N).
        fuzzifier: Exponent ``m`` > 1; larger values give softer memberships.
        seed: Seed for the random initial membership matrix.
        max_iter: Cap on membership / centroid update rounds.
        tol: Stop once no membership changes by more than this.
        dba_iter: DBA refinement passes per centroid update.
        cost: DTW local cost ("absolute" or "squared").
        window: Optional DTW band half-width.
        n_jobs: Threads used for DTW evaluations.
        distances: Precomputed pairwise DistanceMatrix for ``series``.
    """
    arrays, labels, period = _unpack(series)
    n = len(arrays)
    if isinstance(n_clusters, bool) or int(n_clusters) != n_clusters or n_clusters < 2:
        raise InvalidArgumentError(f"n_clusters must be an integer >= 2, got {n_clusters!r}.")
    if n_clusters > n:
        raise InvalidArgumentError(f"n_clusters ({n_clusters}) exceeds the number of series ({n}).")
    if not fuzzifier > 1:
        raise InvalidArgumentError(f"Fuzzifier must be > 1, got {fuzzifier}.")
    if max_iter < 1:
        raise InvalidArgumentError(f"max_iter must be >= 1, got {max_iter}.")

    if distances is None:
        distances = pairwise_distances(arrays, labels, cost=cost, window=window, n_jobs=n_jobs)
    elif len(distances) != n:
        raise InvalidArgumentError(f"Distance matrix covers {len(distances)} series, expected {n}.")

    rng = np.random.default_rng(seed)
    membership = rng.random((n, n_clusters))
    membership /= membership.sum(axis=1, keepdims=True)

    # reference shapes the first barycenters are refined from
    seeds = _initial_seeds(membership, distances.values, n_clusters)
    centroids = [arrays[i].copy() for i in seeds]
    logger.debug(f"Barycenters warm-started from {[labels[i] for i in seeds]}")

    def _to_centroids(ij: tuple[int, int]) -> float:
        i, c = ij
        return dtw_distance(arrays[i], centroids[c], cost=cost, window=window)

    cells = [(i, c) for i in range(n) for c in range(n_clusters)]
    converged = False
    n_iter = 0
    dist = np.zeros((n, n_clusters))
    for n_iter in range(1, max_iter + 1):
        weights = membership ** fuzzifier
        centroids = [
            dba(arrays, weights[:, c], init=centroids[c], max_iter=dba_iter, cost=cost, window=window)
            if weights[:, c].sum() > 0 else centroids[c]
            for c in range(n_clusters)
        ]

        if n_jobs > 1:
            with ThreadPoolExecutor(max_workers=n_jobs) as pool:
                flat = list(pool.map(_to_centroids, cells))
        else:
            flat = [_to_centroids(ij) for ij in cells]
        dist = np.array(flat).reshape(n, n_clusters)

        updated = update_memberships(dist, fuzzifier)
        change = float(np.max(np.abs(updated - membership)))
        membership = updated
        if change < tol:
            converged = True
            break

    objective = float(np.sum((membership ** fuzzifier) * dist ** 2))
    if converged:
        logger.info(f"Fuzzy c-means converged after {n_iter} iterations (k={n_clusters}, m={fuzzifier})")
    else:
        logger.info(f"Fuzzy c-means stopped at the {max_iter}-iteration cap (k={n_clusters}, m={fuzzifier})")

    return ClusterAssignment(
        labels=labels,
        membership=membership,
        centroids=[
            TimeSeries(c, period=period, name=f"cluster_{k}") for k, c in enumerate(centroids)
        ],
        fuzzifier=float(fuzzifier),
        n_iter=n_iter,
        converged=converged,
        objective=objective,
    )


def cluster_quality(assignment: ClusterAssignment, distances: DistanceMatrix) -> dict[str, float]:
    """Fuzzy partition indices plus the silhouette of the hard labels on the DTW matrix."""
    hard = assignment.hard_labels
    n_labels = len(set(hard.tolist()))
    if 2 <= n_labels <= len(hard) - 1:
        silhouette = float(silhouette_score(distances.values, hard, metric="precomputed"))
    else:
        silhouette = float("nan")
    return {
        "partition_coefficient": assignment.partition_coefficient,
        "partition_entropy": assignment.partition_entropy,
        "silhouette": silhouette,
    }
