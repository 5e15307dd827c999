import numpy as np
import pytest

from count_forecast_app.core.data.series import TimeSeries
from count_forecast_app.core.errors import (
    InsufficientDataError,
    InvalidArgumentError,
    ModelFitError,
)
from count_forecast_app.core.models import sarima
from count_forecast_app.core.models.base import ModelFamily, SarimaSpec
from count_forecast_app.core.models.sarima import (
    SarimaConfig,
    SearchState,
    fit_sarima,
    fit_sarima_spec,
    select_differencing,
)


def test_fitted_model_record(sarima_model, monthly_series):
    assert sarima_model.family is ModelFamily.SARIMA
    assert sarima_model.nobs == len(monthly_series)
    assert sarima_model.fitted_values.shape == (72,)
    np.testing.assert_allclose(
        sarima_model.fitted_values + sarima_model.residuals, monthly_series.values
    )
    assert np.isfinite([sarima_model.aic, sarima_model.aicc, sarima_model.bic]).all()
    assert sarima_model.aicc >= sarima_model.aic
    assert sarima_model.sigma2 > 0


def test_seasonal_series_is_seasonally_differenced(monthly_series, fast_sarima_config, sarima_model):
    d, D = select_differencing(monthly_series, fast_sarima_config)
    assert D == 1
    assert d <= 2
    assert sarima_model.spec.seasonal_order[1] == D
    assert sarima_model.spec.seasonal_order[3] == 12


def test_search_respects_order_bounds(sarima_model, fast_sarima_config):
    p, _, q = sarima_model.spec.order
    P, _, Q, _ = sarima_model.spec.seasonal_order
    assert p + q + P + Q <= fast_sarima_config.max_order


def test_non_seasonal_search_on_ar_process():
    rng = np.random.default_rng(3)
    y = np.zeros(150)
    for t in range(1, 150):
        y[t] = 0.7 * y[t - 1] + rng.normal()
    model = fit_sarima(TimeSeries(y, period=1), SarimaConfig(max_steps=15))
    assert model.spec.seasonal_order == (0, 0, 0, 0)
    assert model.spec.order[0] >= 1 or model.spec.order[2] >= 1


def test_step_budget_caps_fits(monthly_series, monkeypatch):
    calls = []
    real_fit = sarima.fit_sarima_spec

    def counting_fit(series, spec, maxiter=200):
        calls.append(spec)
        return real_fit(series, spec, maxiter)

    monkeypatch.setattr(sarima, "fit_sarima_spec", counting_fit)
    fit_sarima(monthly_series, SarimaConfig(max_steps=5))
    assert len(calls) <= 5


def test_failed_candidates_are_skipped(monthly_series, monkeypatch):
    real_fit = sarima.fit_sarima_spec

    def flaky_fit(series, spec, maxiter=200):
        if spec.order[0] == 2:
            raise ModelFitError("simulated divergence")
        return real_fit(series, spec, maxiter)

    monkeypatch.setattr(sarima, "fit_sarima_spec", flaky_fit)
    model = fit_sarima(monthly_series, SarimaConfig(max_steps=10))
    assert model.spec.order[0] != 2


def test_no_surviving_candidate_raises(monthly_series, monkeypatch):
    def always_fails(series, spec, maxiter=200):
        raise ModelFitError("nope")

    monkeypatch.setattr(sarima, "fit_sarima_spec", always_fails)
    with pytest.raises(ModelFitError):
        fit_sarima(monthly_series, SarimaConfig(max_steps=10))


def test_threaded_search_matches_serial(monthly_series):
    serial = fit_sarima(monthly_series, SarimaConfig(max_steps=8, max_order=2))
    threaded = fit_sarima(monthly_series, SarimaConfig(max_steps=8, max_order=2, n_jobs=4))
    assert serial.spec == threaded.spec
    assert serial.aicc == pytest.approx(threaded.aicc)


def test_short_seasonal_series_rejected():
    with pytest.raises(InsufficientDataError):
        fit_sarima(TimeSeries(np.arange(20.0), period=12))


def test_seed_specs_include_null_and_full_models():
    seeds = sarima._seed_specs(1, 1, 12, SarimaConfig())
    keys = [(s.order, s.seasonal_order) for s in seeds]
    assert ((2, 1, 2), (1, 1, 1, 12)) in keys
    assert ((0, 1, 0), (0, 1, 0, 12)) in keys
    assert all(not s.with_constant for s in seeds)

    non_seasonal = sarima._seed_specs(0, 0, 1, SarimaConfig())
    assert all(s.seasonal_order == (0, 0, 0, 0) for s in non_seasonal)
    assert all(s.with_constant for s in non_seasonal)


def test_neighbours_stay_within_bounds():
    config = SarimaConfig(max_p=1, max_q=1, max_P=1, max_Q=1, max_order=2)
    spec = SarimaSpec((1, 0, 0), (1, 1, 0, 12), with_constant=True)
    for n in sarima._neighbours(spec, config):
        p, _, q = n.order
        P, _, Q, _ = n.seasonal_order
        assert 0 <= p <= 1 and 0 <= q <= 1 and 0 <= P <= 1 and 0 <= Q <= 1
        assert p + q + P + Q <= 2
    toggled = [n for n in sarima._neighbours(spec, config) if not n.with_constant]
    assert toggled and toggled[0].order == (1, 0, 0)


def test_evaluate_threads_state_without_mutation(monthly_series):
    config = SarimaConfig(max_steps=2)
    spec = SarimaSpec((0, 0, 0), (0, 1, 0, 12), with_constant=True)
    start = SearchState()
    state = sarima._evaluate(monthly_series, [spec], start, config)
    assert start.visited == {} and start.steps == 0
    assert state.steps == 1
    assert spec.key in state.visited
    again = sarima._evaluate(monthly_series, [spec], state, config)
    assert again is state


def test_single_spec_fit_label():
    rng = np.random.default_rng(0)
    series = TimeSeries(rng.normal(10, 1, 60), period=1)
    model = fit_sarima_spec(series, SarimaSpec((1, 0, 0), with_constant=True))
    assert model.label == "SARIMA(1,0,0) with constant"
    assert "const" in model.params or "intercept" in model.params


@pytest.mark.parametrize(
    "kwargs",
    [{"criterion": "mape"}, {"max_d": 3}, {"max_D": 2}, {"max_steps": 0}, {"n_jobs": 0}],
)
def test_config_validation(kwargs):
    with pytest.raises(InvalidArgumentError):
        SarimaConfig(**kwargs)


def test_two_cycle_series_gets_seasonal_order():
    t = np.arange(24)
    rng = np.random.default_rng(6)
    series = TimeSeries(50 + 10 * np.sin(2 * np.pi * t / 12) + rng.normal(0, 0.1, 24), period=12)
    d, D = select_differencing(series, SarimaConfig())
    assert D == 1


def test_default_config_leaves_total_order_unbounded():
    config = SarimaConfig()
    assert config.max_order is None
    assert sarima._within_bounds(5, 5, 2, 2, config, seasonal=True)
    assert not sarima._within_bounds(3, 0, 0, 0, SarimaConfig(max_order=2), seasonal=True)
    with pytest.raises(InvalidArgumentError):
        SarimaConfig(max_order=-1)
