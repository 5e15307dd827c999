import numpy as np
import pytest

from count_forecast_app.core.data.series import TimeSeries
from count_forecast_app.core.eda.decomposition import (
    decompose_classical,
    decompose_stl,
    default_seasonal_window,
)
from count_forecast_app.core.errors import InsufficientDataError, InvalidArgumentError

from conftest import PEAK_PHASE, make_monthly_series


@pytest.mark.parametrize("period,expected", [(12, 13), (4, 7), (7, 9), (52, 53)])
def test_default_seasonal_window(period, expected):
    assert default_seasonal_window(period) == expected


@pytest.mark.parametrize("seed", [0, 1, 2])
@pytest.mark.parametrize("robust", [True, False])
def test_components_add_back_to_observed(seed, robust):
    ts = make_monthly_series(seed=seed)
    dec = decompose_stl(ts, robust=robust)
    np.testing.assert_allclose(dec.reconstruct().values, ts.values, rtol=1e-6)
    assert len(dec.trend) == len(dec.seasonal) == len(dec.remainder) == len(ts)


def test_default_window_recorded(monthly_series):
    dec = decompose_stl(monthly_series)
    assert dec.seasonal_window == 13
    assert dec.method == "STL"


def test_seasonal_component_tracks_input_shape(monthly_series):
    dec = decompose_stl(monthly_series, seasonal_window=13)
    phases = monthly_series.phases()
    profile = [dec.seasonal.values[phases == k].mean() for k in range(12)]
    assert int(np.argmax(profile)) == PEAK_PHASE
    assert dec.seasonal_strength > 0.9


def test_trend_follows_decline(monthly_series):
    dec = decompose_stl(monthly_series)
    assert dec.trend.iloc[-1] < dec.trend.iloc[0] - 15


def test_wider_window_gives_steadier_seasonal():
    rng = np.random.default_rng(3)
    t = np.arange(96)
    values = 50 + 5 * np.sin(2 * np.pi * t / 12) + rng.normal(0, 1.5, len(t))
    ts = TimeSeries(values, period=12)
    narrow = decompose_stl(ts, seasonal_window=7, robust=False)
    wide = decompose_stl(ts, seasonal_window=35, robust=False)

    def year_to_year_change(dec):
        s = dec.seasonal.values
        return np.abs(s[12:] - s[:-12]).mean()

    assert year_to_year_change(wide) < year_to_year_change(narrow)


@pytest.mark.parametrize("window", [12, 5, 3])
def test_rejects_even_or_small_window(monthly_series, window):
    with pytest.raises(InvalidArgumentError):
        decompose_stl(monthly_series, seasonal_window=window)


def test_rejects_short_series():
    ts = TimeSeries(np.arange(20, dtype=float), period=12)
    with pytest.raises(InsufficientDataError):
        decompose_stl(ts)


def test_rejects_non_seasonal_period():
    with pytest.raises(InvalidArgumentError):
        decompose_stl(TimeSeries(np.arange(30, dtype=float), period=1))


def test_classical_decomposition_is_additive(monthly_series):
    for model in ("additive", "multiplicative"):
        dec = decompose_classical(monthly_series, model=model)
        np.testing.assert_allclose(dec.reconstruct().values, monthly_series.values, rtol=1e-6)
        assert dec.seasonal_window is None
