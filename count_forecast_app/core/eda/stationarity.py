"""Stationarity tests and differencing-order selection."""

from __future__ import annotations

import warnings
from dataclasses import dataclass

import numpy as np
import pandas as pd
from statsmodels.tsa.seasonal import STL
from statsmodels.tsa.stattools import kpss

from ..errors import InvalidArgumentError
from .seasonality import seasonal_strength

MIN_TEST_LENGTH = 10


@dataclass
class StationarityResult:
    test_name: str
    statistic: float
    p_value: float
    is_stationary: bool
    critical_values: dict
    interpretation: str


def kpss_test(values: np.ndarray, significance: float = 0.05) -> StationarityResult:
    """KPSS test. Null: series is stationary.

    Short or constant inputs cannot reject the null and are reported stationary.
    """
    valid = np.asarray(values, dtype=float)
    if len(valid) < MIN_TEST_LENGTH or np.std(valid) == 0:
        return StationarityResult(
            test_name="KPSS",
            statistic=0.0,
            p_value=1.0,
            is_stationary=True,
            critical_values={},
            interpretation="Insufficient data or constant series for KPSS test; assuming stationary.",
        )

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        stat, pval, _, crit = kpss(valid, regression="c", nlags="auto")

    is_stat = pval > significance

    interp = (
        f"KPSS statistic: {stat:.4f}, p-value: {pval:.4f}. "
        f"{'Fail to reject' if is_stat else 'Reject'} null hypothesis of stationarity at {significance*100:.0f}% significance. "
        f"Series is {'likely stationary' if is_stat else 'likely non-stationary'}."
    )

    return StationarityResult(
        test_name="KPSS",
        statistic=float(stat),
        p_value=float(pval),
        is_stationary=is_stat,
        critical_values=crit,
        interpretation=interp,
    )


def suggest_differencing(values: np.ndarray, max_d: int = 2, significance: float = 0.05) -> int:
    """Number of first differences needed before KPSS stops rejecting stationarity."""
    if max_d < 0:
        raise InvalidArgumentError(f"max_d must be >= 0, got {max_d}.")
    valid = np.asarray(values, dtype=float)
    for d in range(max_d + 1):
        if kpss_test(valid, significance).is_stationary:
            return d
        valid = np.diff(valid)
    return max_d


def seasonal_difference(values: np.ndarray, period: int, order: int = 1) -> np.ndarray:
    valid = np.asarray(values, dtype=float)
    for _ in range(order):
        valid = valid[period:] - valid[:-period]
    return valid


def suggest_seasonal_differencing(
    values: np.ndarray,
    period: int,
    max_D: int = 1,
    threshold: float = 0.64,
) -> int:
    """Seasonal differences needed, judged by STL seasonal strength.

    A series is seasonally differenced while its seasonal strength exceeds
    ``threshold`` and it still holds two full cycles.
    """
    if max_D < 0:
        raise InvalidArgumentError(f"max_D must be >= 0, got {max_D}.")
    valid = np.asarray(values, dtype=float)
    D = 0
    while D < max_D and period > 1 and len(valid) >= 2 * period and np.std(valid) > 0:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            result = STL(pd.Series(valid), period=period, robust=True).fit()
        strength = seasonal_strength(
            pd.Series(np.asarray(result.trend)),
            pd.Series(np.asarray(result.seasonal)),
            pd.Series(np.asarray(result.resid)),
        )
        if strength <= threshold:
            break
        valid = seasonal_difference(valid, period)
        D += 1
    return D
