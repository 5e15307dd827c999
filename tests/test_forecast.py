import numpy as np
import pytest

from count_forecast_app.core.errors import InvalidArgumentError
from count_forecast_app.core.models.forecast import forecast


@pytest.fixture(params=["sarima", "ets"])
def fitted(request, sarima_model, ets_model):
    return sarima_model if request.param == "sarima" else ets_model


def test_forecast_shape_and_ordering(fitted):
    result = forecast(fitted, 12)
    assert result.horizon == 12
    assert result.point.shape == (12,)
    assert result.levels == [0.80, 0.95]
    for level in result.levels:
        lower, upper = result.interval(level)
        assert np.all(lower <= result.point)
        assert np.all(result.point <= upper)


def test_wider_level_gives_wider_interval(fitted):
    result = forecast(fitted, 6)
    lo80, hi80 = result.interval(0.80)
    lo95, hi95 = result.interval(0.95)
    assert np.all(lo95 <= lo80 + 1e-9)
    assert np.all(hi95 >= hi80 - 1e-9)


def test_interval_width_never_shrinks(fitted):
    result = forecast(fitted, 24, levels=0.9)
    lower, upper = result.interval(0.9)
    width = upper - lower
    assert np.all(np.diff(width) >= -1e-9)


def test_forecast_continues_after_history(fitted, monthly_series):
    result = forecast(fitted, 3)
    frame = result.to_frame()
    assert list(frame.index) == [72, 73, 74]
    assert list(frame.columns) == ["forecast", "lower_80", "upper_80", "lower_95", "upper_95"]
    assert result.model_label == fitted.label
    # the level continues roughly where the history ends
    assert abs(result.point[0] - monthly_series.values[-12:].mean()) < 15


def test_same_seed_same_forecast(ets_model):
    a = forecast(ets_model, 12, seed=3)
    b = forecast(ets_model, 12, seed=3)
    np.testing.assert_array_equal(a.point, b.point)
    np.testing.assert_array_equal(a.upper[0.95], b.upper[0.95])


@pytest.mark.parametrize("horizon", [0, -1, 2.5, True, "12"])
def test_rejects_bad_horizon(sarima_model, horizon):
    with pytest.raises(InvalidArgumentError):
        forecast(sarima_model, horizon)


@pytest.mark.parametrize("levels", [1.5, 0.0, (0.8, 1.0)])
def test_rejects_bad_levels(sarima_model, levels):
    with pytest.raises(InvalidArgumentError):
        forecast(sarima_model, 3, levels=levels)


def test_unknown_interval_level(sarima_model):
    result = forecast(sarima_model, 3, levels=0.8)
    with pytest.raises(InvalidArgumentError):
        result.interval(0.95)
