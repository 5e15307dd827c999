"""Time series decomposition: STL and classical."""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass

import numpy as np
import pandas as pd
from statsmodels.tsa.seasonal import STL, seasonal_decompose

from ..data.series import TimeSeries
from ..errors import InvalidArgumentError
from .seasonality import seasonal_strength

logger = logging.getLogger(__name__)

MIN_SEASONAL_WINDOW = 7


@dataclass(frozen=True)
class Decomposition:
    observed: pd.Series
    trend: pd.Series
    seasonal: pd.Series
    remainder: pd.Series
    seasonal_window: int | None
    robust: bool = False
    method: str = "STL"

    @property
    def seasonal_strength(self) -> float:
        return seasonal_strength(self.trend, self.seasonal, self.remainder)

    @property
    def trend_strength(self) -> float:
        """1 - Var(remainder) / Var(trend + remainder), floored at 0."""
        var_tr = (self.trend + self.remainder).var()
        if not var_tr or var_tr == 0:
            return 0.0
        return max(0.0, 1.0 - self.remainder.var() / var_tr)

    def reconstruct(self) -> pd.Series:
        return self.trend + self.seasonal + self.remainder

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "observed": self.observed,
            "trend": self.trend,
            "seasonal": self.seasonal,
            "remainder": self.remainder,
        })


def default_seasonal_window(period: int) -> int:
    """``period + 1`` rounded up to the next odd number, at least 7."""
    window = period + 1
    if window % 2 == 0:
        window += 1
    return max(MIN_SEASONAL_WINDOW, window)


def _check_window(name: str, value: int, minimum: int) -> None:
    if isinstance(value, bool) or int(value) != value:
        raise InvalidArgumentError(f"{name} must be an integer, got {value!r}.")
    if value < minimum:
        raise InvalidArgumentError(f"{name} must be >= {minimum}, got {value}.")
    if value % 2 == 0:
        raise InvalidArgumentError(f"{name} must be odd, got {value}.")


def decompose_stl(
    series: TimeSeries,
    seasonal_window: int | None = None,
    trend_window: int | None = None,
    robust: bool = True,
    inner_iter: int | None = None,
    outer_iter: int | None = None,
) -> Decomposition:
    """Decompose using STL (Seasonal and Trend decomposition using LOESS).

    Args:
        series: Input series; its ``period`` drives the seasonal sub-series.
        seasonal_window: Odd LOESS span (>= 7) for the seasonal smoother.
            Larger values give a more stable seasonal shape.
        trend_window: Odd LOESS span for the trend smoother; statsmodels
            derives one from the period and seasonal window when omitted.
        robust: Run the outer loop that downweights large remainders.
        inner_iter: Passes of the inner (detrend / smooth) loop.
        outer_iter: Passes of the robustness loop.
    """
    if series.period < 2:
        raise InvalidArgumentError(f"STL needs a seasonal period >= 2, got {series.period}.")
    series.require_cycles(2)

    if seasonal_window is None:
        seasonal_window = default_seasonal_window(series.period)
    _check_window("seasonal_window", seasonal_window, MIN_SEASONAL_WINDOW)
    if trend_window is not None:
        _check_window("trend_window", trend_window, 3)
        if trend_window <= series.period:
            raise InvalidArgumentError(
                f"trend_window must exceed the period ({series.period}), got {trend_window}."
            )

    # statsmodels requires a 0-based index for integer-indexed data
    y = pd.Series(series.values)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        stl = STL(
            y,
            period=series.period,
            seasonal=int(seasonal_window),
            trend=trend_window,
            robust=robust,
        )
        result = stl.fit(inner_iter=inner_iter, outer_iter=outer_iter)

    index = series.index
    observed = series.to_series()
    trend = pd.Series(np.asarray(result.trend), index=index, name="trend")
    seasonal = pd.Series(np.asarray(result.seasonal), index=index, name="seasonal")
    remainder = pd.Series(observed.values - trend.values - seasonal.values, index=index, name="remainder")

    decomposition = Decomposition(
        observed=observed,
        trend=trend,
        seasonal=seasonal,
        remainder=remainder,
        seasonal_window=int(seasonal_window),
        robust=robust,
        method="STL",
    )
    logger.debug(
        f"STL period={series.period} s_window={seasonal_window} robust={robust}: "
        f"seasonal strength={decomposition.seasonal_strength:.3f}"
    )
    return decomposition


def decompose_classical(
    series: TimeSeries,
    model: str = "additive",
) -> Decomposition:
    """Classical moving-average decomposition (additive or multiplicative).

    The multiplicative form is re-expressed additively (seasonal and remainder
    in the units of the data) so the same reconstruction identity holds.
    """
    if model not in ("additive", "multiplicative"):
        raise InvalidArgumentError(f"Unknown decomposition model: {model}.")
    if series.period < 2:
        raise InvalidArgumentError(f"Classical decomposition needs a period >= 2, got {series.period}.")
    series.require_cycles(2)

    # For multiplicative, all values must be positive
    if model == "multiplicative" and not series.is_positive():
        model = "additive"

    y = pd.Series(series.values)
    result = seasonal_decompose(y, model=model, period=series.period, extrapolate_trend="freq")

    index = series.index
    observed = series.to_series()
    trend = pd.Series(np.asarray(result.trend), index=index, name="trend")
    if model == "multiplicative":
        seasonal_vals = trend.values * (np.asarray(result.seasonal) - 1.0)
    else:
        seasonal_vals = np.asarray(result.seasonal)
    seasonal = pd.Series(seasonal_vals, index=index, name="seasonal")
    remainder = pd.Series(observed.values - trend.values - seasonal.values, index=index, name="remainder")

    return Decomposition(
        observed=observed,
        trend=trend,
        seasonal=seasonal,
        remainder=remainder,
        seasonal_window=None,
        robust=False,
        method=f"Classical ({model})",
    )
