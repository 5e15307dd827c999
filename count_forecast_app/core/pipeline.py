"""End-to-end runs: decompose, fit, select, forecast; and DTW clustering."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

import numpy as np
import pandas as pd

from .clustering.dtw import DistanceMatrix, LOCAL_COSTS, pairwise_distances
from .clustering.fuzzy import ClusterAssignment, cluster_quality, fuzzy_cmeans
from .data.preprocessing import align_series
from .data.series import TimeSeries
from .eda.decomposition import Decomposition, decompose_stl
from .errors import InvalidArgumentError, ModelFitError
from .models.base import FittedModel
from .models.exponential_smoothing import EtsConfig, fit_ets
from .models.forecast import ForecastResult, forecast
from .models.sarima import SarimaConfig, fit_sarima
from .models.selection import SELECTION_CRITERIA, compare_models, select_best

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    period: int = 12
    seasonal_window: int | None = None  # None -> period + 1 rounded to odd
    robust: bool = True
    criterion: str = "aicc"
    horizon: int = 12
    levels: tuple[float, ...] = (0.80, 0.95)
    n_clusters: int = 3
    fuzzifier: float = 2.0
    dtw_window: int | None = None
    dtw_cost: str = "absolute"
    cluster_max_iter: int = 100
    cluster_tol: float = 1e-4
    seed: int = 0
    n_jobs: int = 1
    sarima: SarimaConfig = field(default_factory=SarimaConfig)
    ets: EtsConfig = field(default_factory=EtsConfig)

    def __post_init__(self):
        if self.period < 1:
            raise InvalidArgumentError(f"period must be >= 1, got {self.period}.")
        if self.criterion not in SELECTION_CRITERIA:
            raise InvalidArgumentError(
                f"Unknown selection criterion: {self.criterion}. Use one of {SELECTION_CRITERIA}."
            )
        if self.horizon < 1:
            raise InvalidArgumentError(f"horizon must be >= 1, got {self.horizon}.")
        if self.dtw_cost not in LOCAL_COSTS:
            raise InvalidArgumentError(f"Unknown DTW cost: {self.dtw_cost}. Use one of {LOCAL_COSTS}.")
        self.levels = tuple(float(level) for level in self.levels)
        if isinstance(self.sarima, Mapping):
            self.sarima = SarimaConfig(**self.sarima)
        if isinstance(self.ets, Mapping):
            self.ets = EtsConfig(**self.ets)

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "PipelineConfig":
        """Build from a plain mapping (e.g. parsed JSON); unknown keys are rejected."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise InvalidArgumentError(f"Unknown configuration keys: {unknown}.")
        return cls(**dict(values))

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass
class ForecastRun:
    series: TimeSeries
    decomposition: Decomposition | None
    candidates: list[FittedModel]
    comparison: pd.DataFrame
    selected: FittedModel
    forecast: ForecastResult

    def summary(self) -> str:
        sections = []
        if self.decomposition is not None:
            sections.append(
                f"DECOMPOSITION: STL with seasonal window {self.decomposition.seasonal_window}; "
                f"seasonal strength {self.decomposition.seasonal_strength:.2f}, "
                f"trend strength {self.decomposition.trend_strength:.2f}."
            )
        others = [m.label for m in self.candidates if m is not self.selected]
        sections.append(
            f"MODEL SELECTION: {self.selected.summary()}"
            + (f" (compared against {', '.join(others)})." if others else ".")
        )
        fc = self.forecast.point
        sections.append(
            f"FORECAST OVERVIEW: {self.forecast.horizon} periods ahead, "
            f"ranging from {fc.min():.1f} to {fc.max():.1f} with a mean of {fc.mean():.1f}."
        )
        return "\n\n".join(sections)


@dataclass
class ClusteringRun:
    distances: DistanceMatrix
    assignment: ClusterAssignment
    quality: dict[str, float]


def run_forecast_pipeline(
    series: TimeSeries | np.ndarray | pd.Series,
    config: PipelineConfig | None = None,
) -> ForecastRun:
    """Decompose, fit SARIMA and ETS, select by criterion and forecast.

    A family that cannot be fitted is logged and left out; if neither can be
    fitted the ``ModelFitError`` propagates.
    """
    config = config or PipelineConfig()
    if not isinstance(series, TimeSeries):
        series = TimeSeries(np.asarray(series, dtype=float), period=config.period)

    decomposition = None
    if series.period > 1:
        decomposition = decompose_stl(
            series, seasonal_window=config.seasonal_window, robust=config.robust
        )

    sarima_config = dataclasses.replace(config.sarima, n_jobs=max(config.sarima.n_jobs, config.n_jobs))
    fitters = {
        "SARIMA": lambda s: fit_sarima(s, sarima_config),
        "ETS": lambda s: fit_ets(s, config.ets),
    }
    candidates: list[FittedModel] = []
    errors: list[str] = []
    for name, fit in fitters.items():
        try:
            candidates.append(fit(series))
        except ModelFitError as e:
            logger.warning(f"{name} fitting failed: {e}")
            errors.append(f"{name}: {e}")

    if not candidates:
        raise ModelFitError("No model family could be fitted. " + " ".join(errors))

    selected = select_best(candidates, criterion=config.criterion)
    logger.info(f"Selected {selected.label} by {config.criterion.upper()}")
    result = forecast(selected, config.horizon, levels=config.levels, seed=config.seed)

    return ForecastRun(
        series=series,
        decomposition=decomposition,
        candidates=candidates,
        comparison=compare_models(candidates, criterion=config.criterion),
        selected=selected,
        forecast=result,
    )


def run_clustering(
    series_map: Mapping[str, Any],
    config: PipelineConfig | None = None,
) -> ClusteringRun:
    """Pairwise DTW distances and fuzzy c-means over label -> series."""
    config = config or PipelineConfig()
    aligned = align_series(series_map, period=config.period)
    labels = list(aligned)
    distances = pairwise_distances(
        list(aligned.values()),
        labels,
        cost=config.dtw_cost,
        window=config.dtw_window,
        n_jobs=config.n_jobs,
    )
    assignment = fuzzy_cmeans(
        aligned,
        n_clusters=config.n_clusters,
        fuzzifier=config.fuzzifier,
        seed=config.seed,
        max_iter=config.cluster_max_iter,
        tol=config.cluster_tol,
        cost=config.dtw_cost,
        window=config.dtw_window,
        n_jobs=config.n_jobs,
        distances=distances,
    )
    quality = cluster_quality(assignment, distances)
    logger.info(
        f"Clustered {len(labels)} series into {config.n_clusters} groups "
        f"(partition coefficient {quality['partition_coefficient']:.3f})"
    )
    return ClusteringRun(distances=distances, assignment=assignment, quality=quality)
