"""Seasonality detection and analysis."""

from __future__ import annotations

import numpy as np
import pandas as pd


def seasonal_strength(trend: pd.Series, seasonal: pd.Series, residual: pd.Series) -> float:
    """Compute seasonal strength as 1 - Var(residual) / Var(seasonal + residual)."""
    seasonal_plus_resid = seasonal + residual
    var_sr = seasonal_plus_resid.var()
    var_r = residual.var()
    if var_sr == 0 or not np.isfinite(var_sr):
        return 0.0
    return max(0.0, 1.0 - var_r / var_sr)


def seasonal_profile(values: np.ndarray, period: int, start: int = 0) -> np.ndarray:
    """Mean of the linearly detrended values at each seasonal phase."""
    y = np.asarray(values, dtype=float)
    x = np.arange(len(y))
    if len(y) >= 2:
        coeffs = np.polyfit(x, y, 1)
        y = y - np.polyval(coeffs, x)
    phases = (start + x) % period
    profile = np.full(period, np.nan)
    for pos in range(period):
        mask = phases == pos
        if mask.any():
            profile[pos] = y[mask].mean()
    return profile


def seasonal_peak_phase(values: np.ndarray, period: int, start: int = 0) -> int:
    """Seasonal position with the highest detrended level."""
    return int(np.nanargmax(seasonal_profile(values, period, start)))


def phase_distance(a: int, b: int, period: int) -> int:
    """Circular distance between two seasonal positions."""
    diff = abs(a - b) % period
    return min(diff, period - diff)
