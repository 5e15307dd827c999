"""Rolling / expanding origin evaluation of a model-fitting procedure."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

import numpy as np
import pandas as pd

from ..data.series import TimeSeries
from ..errors import InvalidArgumentError
from ..models.base import FittedModel
from ..models.forecast import forecast
from .metrics import compute_metrics, coverage, interval_score

logger = logging.getLogger(__name__)

FitFunction = Callable[[TimeSeries], FittedModel]


@dataclass
class BacktestConfig:
    strategy: str = "expanding"  # "rolling" or "expanding"
    n_splits: int = 3
    test_size: int = 12  # periods in each test window
    min_train_size: int = 36  # minimum training periods
    step_size: int | None = None  # step between windows; defaults to test_size
    level: float = 0.95

    def __post_init__(self):
        if self.strategy not in ("rolling", "expanding"):
            raise InvalidArgumentError(f"Unknown backtest strategy: {self.strategy}.")
        if self.n_splits < 1 or self.test_size < 1 or self.min_train_size < 1:
            raise InvalidArgumentError("n_splits, test_size and min_train_size must be >= 1.")
        if not 0 < self.level < 1:
            raise InvalidArgumentError(f"level must lie in (0, 1), got {self.level}.")
        if self.step_size is None:
            self.step_size = self.test_size


@dataclass
class FoldResult:
    fold: int
    train_end: int
    test_end: int
    model_label: str
    actual: np.ndarray
    predicted: np.ndarray
    lower: np.ndarray
    upper: np.ndarray
    metrics: dict = field(default_factory=dict)


@dataclass
class BacktestResult:
    name: str
    config: BacktestConfig
    folds: list[FoldResult] = field(default_factory=list)

    @property
    def n_folds(self) -> int:
        return len(self.folds)

    def aggregate_metrics(self) -> dict[str, float]:
        """Mean of metrics across folds."""
        all_metrics = [f.metrics for f in self.folds if f.metrics]
        if not all_metrics:
            return {}
        keys = all_metrics[0].keys()
        return {k: float(np.mean([m[k] for m in all_metrics if k in m])) for k in keys}

    def metrics_by_fold(self) -> pd.DataFrame:
        rows = []
        for fold in self.folds:
            row = {"fold": fold.fold, "model": fold.model_label}
            row.update(fold.metrics)
            rows.append(row)
        return pd.DataFrame(rows)


def generate_splits(n_samples: int, config: BacktestConfig) -> list[tuple[int, int, int]]:
    """(train_start, train_end, test_end) index triples, oldest fold first."""
    splits = []
    for i in range(config.n_splits):
        test_end = n_samples - i * config.step_size
        train_end = test_end - config.test_size
        if train_end < config.min_train_size:
            break
        if config.strategy == "rolling":
            train_start = train_end - config.min_train_size
        else:
            train_start = 0
        splits.append((train_start, train_end, test_end))

    splits.reverse()
    return splits


def run_backtest(
    fit_fn: FitFunction,
    series: TimeSeries,
    config: BacktestConfig | None = None,
    name: str | None = None,
) -> BacktestResult:
    """Refit with ``fit_fn`` on each training window and score its forecasts.

    Folds whose fit or forecast fails are logged and skipped.
    """
    config = config or BacktestConfig()
    name = name or getattr(fit_fn, "__name__", "model")
    result = BacktestResult(name=name, config=config)

    for fold_idx, (train_start, train_end, test_end) in enumerate(generate_splits(len(series), config)):
        train = TimeSeries(
            series.values[train_start:train_end],
            period=series.period,
            start=series.start + train_start,
            name=series.name,
        )
        actual = series.values[train_end:test_end]
        try:
            model = fit_fn(train)
            preds = forecast(model, len(actual), levels=config.level)
        except Exception as e:
            logger.warning(f"Fold {fold_idx} failed for {name}: {e}")
            continue

        lower, upper = preds.interval(config.level)
        metrics = compute_metrics(actual, preds.point, train.values, series.period)
        pct = int(round(config.level * 100))
        metrics[f"Coverage_{pct}"] = coverage(actual, lower, upper)
        metrics[f"IntervalScore_{pct}"] = interval_score(actual, lower, upper, config.level)

        result.folds.append(FoldResult(
            fold=fold_idx,
            train_end=train_end,
            test_end=test_end,
            model_label=model.label,
            actual=actual,
            predicted=preds.point,
            lower=lower,
            upper=upper,
            metrics=metrics,
        ))

    return result


def compare_backtests(backtest_results: dict[str, BacktestResult]) -> pd.DataFrame:
    """Comparison table across fitting procedures, best RMSE first."""
    rows = []
    for name, result in backtest_results.items():
        row = {"Model": name, "Folds": result.n_folds}
        row.update(result.aggregate_metrics())
        rows.append(row)

    df = pd.DataFrame(rows)
    if "RMSE" in df.columns:
        df = df.sort_values("RMSE").reset_index(drop=True)
        df["Rank"] = range(1, len(df) + 1)
    return df
