"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from count_forecast_app.core.data.series import TimeSeries
from count_forecast_app.core.models.exponential_smoothing import EtsConfig, fit_ets
from count_forecast_app.core.models.sarima import SarimaConfig, fit_sarima

PERIOD = 12
PEAK_PHASE = 3  # sin(2*pi*t/12) peaks at t = 3


def make_monthly_series(n: int = 72, noise: float = 0.5, seed: int = 42) -> TimeSeries:
    """Level 100, downward trend, amplitude-5 yearly sine, Gaussian noise."""
    rng = np.random.default_rng(seed)
    t = np.arange(n)
    values = 100 - 0.3 * t + 5 * np.sin(2 * np.pi * t / PERIOD) + rng.normal(0, noise, n)
    return TimeSeries(values, period=PERIOD, name="synthetic")


@pytest.fixture(scope="session")
def monthly_series():
    return make_monthly_series()


@pytest.fixture(scope="session")
def fast_sarima_config():
    return SarimaConfig(max_steps=20, max_order=3)


@pytest.fixture(scope="session")
def sarima_model(monthly_series, fast_sarima_config):
    return fit_sarima(monthly_series, fast_sarima_config)


@pytest.fixture(scope="session")
def ets_model(monthly_series):
    return fit_ets(monthly_series, EtsConfig())


@pytest.fixture
def grouped_series():
    """Three groups of three near-identical series with distinct shapes."""
    rng = np.random.default_rng(7)
    t = np.arange(24)
    shapes = {
        "wave": 10 * np.sin(2 * np.pi * t / 12),
        "ramp": np.linspace(0, 20, 24),
        "flat": np.full(24, 35.0),
    }
    series = {}
    for name, shape in shapes.items():
        for i in range(3):
            series[f"{name}_{i}"] = shape + rng.normal(0, 0.1, len(t))
    return series
