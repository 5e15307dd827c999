import numpy as np
import pytest

from count_forecast_app.core.data.series import TimeSeries
from count_forecast_app.core.errors import (
    InsufficientDataError,
    InvalidArgumentError,
    ModelFitError,
)
from count_forecast_app.core.models import exponential_smoothing as ets
from count_forecast_app.core.models.base import EtsSpec, ModelFamily
from count_forecast_app.core.models.exponential_smoothing import (
    EtsConfig,
    candidate_specs,
    fit_ets,
    fit_ets_spec,
)


def test_fitted_model_record(ets_model, monthly_series):
    assert ets_model.family is ModelFamily.ETS
    assert ets_model.label.startswith("ETS(")
    assert ets_model.nobs == len(monthly_series)
    np.testing.assert_allclose(ets_model.fitted_values + ets_model.residuals, monthly_series.values)
    assert np.isfinite([ets_model.aic, ets_model.aicc, ets_model.bic]).all()
    assert ets_model.sigma2 > 0
    assert "smoothing_level" in ets_model.params


def test_seasonal_series_selects_seasonal_form(ets_model):
    assert ets_model.spec.seasonal is not None
    assert ets_model.spec.period == 12


def test_candidates_exclude_multiplicative_forms_with_zeros():
    values = np.abs(np.sin(np.arange(48))) * 10
    values[5] = 0.0
    specs = candidate_specs(TimeSeries(values, period=12))
    assert specs
    assert all(s.error == "add" and s.seasonal != "mul" for s in specs)


def test_candidates_on_positive_data():
    specs = candidate_specs(TimeSeries(np.linspace(10, 20, 48), period=12))
    labels = {s.label for s in specs}
    assert "ETS(M,Ad,M)" in labels
    assert "ETS(A,N,A)" in labels
    # additive error with multiplicative season is never proposed
    assert not any(s.error == "add" and s.seasonal == "mul" for s in specs)


def test_candidates_respect_config_switches():
    series = TimeSeries(np.linspace(10, 20, 48), period=12)
    specs = candidate_specs(series, EtsConfig(seasonal=False, allow_multiplicative=False, allow_damped=False))
    assert {s.label for s in specs} == {"ETS(A,N,N)", "ETS(A,A,N)"}


def test_candidates_need_residual_degrees_of_freedom():
    # 24 points leave too few degrees of freedom for damped seasonal forms
    specs = candidate_specs(TimeSeries(np.linspace(10, 20, 24), period=12))
    for spec in specs:
        assert 24 - (spec.n_smoothing + spec.n_states + 1) >= 2


def test_single_spec_on_trend():
    series = TimeSeries(50 + 2.0 * np.arange(40) + np.random.default_rng(0).normal(0, 1, 40), period=1)
    model = fit_ets_spec(series, EtsSpec(trend="add"))
    assert model.label == "ETS(A,A,N)"
    assert "smoothing_trend" in model.params


def test_no_fittable_spec_raises(monthly_series, monkeypatch):
    def always_fails(series, spec, maxiter=1000):
        raise ModelFitError("nope")

    monkeypatch.setattr(ets, "fit_ets_spec", always_fails)
    with pytest.raises(ModelFitError):
        fit_ets(monthly_series)


def test_short_seasonal_series_rejected():
    with pytest.raises(InsufficientDataError):
        fit_ets(TimeSeries(np.linspace(1, 2, 18), period=12))


def test_non_seasonal_config_fits_short_series():
    series = TimeSeries(np.linspace(1, 2, 18) + np.random.default_rng(2).normal(0, 0.05, 18), period=12)
    model = fit_ets(series, EtsConfig(seasonal=False))
    assert model.spec.seasonal is None


@pytest.mark.parametrize("kwargs", [{"criterion": "rmse"}, {"maxiter": 0}])
def test_config_validation(kwargs):
    with pytest.raises(InvalidArgumentError):
        EtsConfig(**kwargs)
