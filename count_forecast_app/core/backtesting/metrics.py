"""Forecast accuracy metrics."""

from __future__ import annotations

import numpy as np


def mae(actual: np.ndarray, predicted: np.ndarray) -> float:
    """Mean Absolute Error."""
    return float(np.mean(np.abs(actual - predicted)))


def rmse(actual: np.ndarray, predicted: np.ndarray) -> float:
    """Root Mean Squared Error."""
    return float(np.sqrt(np.mean((actual - predicted) ** 2)))


def mape(actual: np.ndarray, predicted: np.ndarray) -> float:
    """Mean Absolute Percentage Error over non-zero actuals (zero counts are skipped)."""
    mask = actual != 0
    if not mask.any():
        return float("inf")
    return float(np.mean(np.abs((actual[mask] - predicted[mask]) / actual[mask])) * 100)


def smape(actual: np.ndarray, predicted: np.ndarray) -> float:
    """Symmetric Mean Absolute Percentage Error."""
    denom = np.abs(actual) + np.abs(predicted)
    mask = denom != 0
    if not mask.any():
        return 0.0
    return float(np.mean(2 * np.abs(actual[mask] - predicted[mask]) / denom[mask]) * 100)


def mase(
    actual: np.ndarray,
    predicted: np.ndarray,
    training: np.ndarray,
    seasonal_period: int = 12,
) -> float:
    """Mean Absolute Scaled Error against the in-sample seasonal naive forecast.

    Falls back to the one-step naive scale when the training window holds no
    full season.
    """
    training = np.asarray(training, dtype=float)
    if len(training) > seasonal_period:
        naive_errors = np.abs(training[seasonal_period:] - training[:-seasonal_period])
    else:
        naive_errors = np.abs(np.diff(training))

    if len(naive_errors) == 0:
        return float("nan")
    scale = np.mean(naive_errors)
    if scale == 0:
        return float("inf")
    return float(np.mean(np.abs(actual - predicted)) / scale)


def bias(actual: np.ndarray, predicted: np.ndarray) -> float:
    """Mean bias (positive = over-forecasting)."""
    return float(np.mean(predicted - actual))


def coverage(actual: np.ndarray, lower: np.ndarray, upper: np.ndarray) -> float:
    """Percentage of actuals inside the prediction interval."""
    within = (actual >= lower) & (actual <= upper)
    return float(np.mean(within) * 100)


def interval_score(
    actual: np.ndarray,
    lower: np.ndarray,
    upper: np.ndarray,
    level: float,
) -> float:
    """Mean Winkler interval score: width plus a penalty for each miss."""
    alpha = 1 - level
    width = upper - lower
    below = np.where(actual < lower, lower - actual, 0.0)
    above = np.where(actual > upper, actual - upper, 0.0)
    return float(np.mean(width + (2 / alpha) * (below + above)))


POINT_METRICS = {
    "MAE": mae,
    "RMSE": rmse,
    "MAPE": mape,
    "sMAPE": smape,
    "Bias": bias,
}


def compute_metrics(
    actual: np.ndarray,
    predicted: np.ndarray,
    training: np.ndarray | None = None,
    seasonal_period: int = 12,
) -> dict[str, float]:
    """Point-forecast metrics; MASE is added when the training window is given."""
    actual = np.asarray(actual, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    results = {name: func(actual, predicted) for name, func in POINT_METRICS.items()}
    if training is not None:
        results["MASE"] = mase(actual, predicted, training, seasonal_period)
    return results
