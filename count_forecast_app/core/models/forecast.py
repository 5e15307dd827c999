"""Point and interval forecasts from a fitted model."""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
import pandas as pd
from scipy import stats

from ..errors import InvalidArgumentError, NumericInstabilityError
from .base import FittedModel, ModelFamily

DEFAULT_LEVELS = (0.80, 0.95)


@dataclass(frozen=True, eq=False)
class ForecastResult:
    horizon: int
    point: np.ndarray
    lower: dict[float, np.ndarray] = field(default_factory=dict)
    upper: dict[float, np.ndarray] = field(default_factory=dict)
    model_label: str = ""
    start: int = 0

    @property
    def levels(self) -> list[float]:
        return sorted(self.lower)

    def interval(self, level: float) -> tuple[np.ndarray, np.ndarray]:
        if level not in self.lower:
            raise InvalidArgumentError(f"No interval at level {level}; available: {self.levels}.")
        return self.lower[level], self.upper[level]

    def to_frame(self) -> pd.DataFrame:
        index = pd.RangeIndex(self.start, self.start + self.horizon)
        result = pd.DataFrame({"forecast": self.point}, index=index)
        for level in self.levels:
            pct = int(round(level * 100))
            result[f"lower_{pct}"] = self.lower[level]
            result[f"upper_{pct}"] = self.upper[level]
        return result


def _check_levels(levels: float | Sequence[float]) -> list[float]:
    if isinstance(levels, (int, float)):
        levels = [levels]
    checked = []
    for level in levels:
        if not 0 < level < 1:
            raise InvalidArgumentError(f"Confidence level must lie in (0, 1), got {level}.")
        checked.append(float(level))
    return checked


def _sarima_projection(model: FittedModel, horizon: int, alpha: float):
    forecast_obj = model.result.get_forecast(steps=horizon)
    mean = np.asarray(forecast_obj.predicted_mean, dtype=float)
    variance = np.asarray(forecast_obj.var_pred_mean, dtype=float)
    width = stats.norm.ppf(1 - alpha / 2) * np.sqrt(np.maximum(variance, 0.0))
    return mean, mean - width, mean + width


def _ets_projection(model: FittedModel, horizon: int, alpha: float, seed: int):
    pred = model.result.get_prediction(
        start=model.nobs,
        end=model.nobs + horizon - 1,
        random_state=seed,
    )
    frame = pred.summary_frame(alpha=alpha)
    return (
        frame["mean"].to_numpy(dtype=float),
        frame["pi_lower"].to_numpy(dtype=float),
        frame["pi_upper"].to_numpy(dtype=float),
    )


def forecast(
    model: FittedModel,
    horizon: int,
    levels: float | Sequence[float] = DEFAULT_LEVELS,
    seed: int = 0,
) -> ForecastResult:
    """Project ``model`` forward ``horizon`` steps.

    SARIMA forecasts run the Kalman recursion with zero future innovations;
    ETS forecasts propagate the state equations. Intervals are centred on the
    point forecast, and their half-width never shrinks with the step since
    forecast variance accumulates over the horizon. ``seed`` fixes the
    simulation used for ETS classes without closed-form variances.
    """
    if isinstance(horizon, bool) or not isinstance(horizon, (int, np.integer)) or horizon < 1:
        raise InvalidArgumentError(f"Forecast horizon must be an integer >= 1, got {horizon!r}.")
    horizon = int(horizon)
    levels = _check_levels(levels)
    if model.result is None:
        raise InvalidArgumentError(f"{model.label} carries no fitted state to forecast from.")

    point = None
    lower: dict[float, np.ndarray] = {}
    upper: dict[float, np.ndarray] = {}
    for level in levels:
        alpha = 1 - level
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            if model.family is ModelFamily.SARIMA:
                mean, lo, hi = _sarima_projection(model, horizon, alpha)
            else:
                mean, lo, hi = _ets_projection(model, horizon, alpha, seed)

        if point is None:
            point = mean
        half_width = np.maximum(hi - point, point - lo)
        if not np.all(np.isfinite(point)) or not np.all(np.isfinite(half_width)):
            raise NumericInstabilityError(f"{model.label} produced non-finite forecasts.")
        half_width = np.maximum.accumulate(np.maximum(half_width, 0.0))
        lower[level] = point - half_width
        upper[level] = point + half_width

    return ForecastResult(
        horizon=horizon,
        point=point,
        lower=lower,
        upper=upper,
        model_label=model.label,
        start=model.start + model.nobs,
    )
