"""ETS (error / trend / season) state-space exponential smoothing."""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass

import numpy as np
import pandas as pd
from statsmodels.tsa.exponential_smoothing.ets import ETSModel

from ..data.series import TimeSeries
from ..errors import InvalidArgumentError, ModelFitError, NumericInstabilityError
from .base import EtsSpec, FittedModel, ModelFamily

logger = logging.getLogger(__name__)

CRITERIA = ("aic", "aicc", "bic")


@dataclass
class EtsConfig:
    criterion: str = "aicc"
    seasonal: bool = True
    allow_multiplicative: bool = True
    allow_damped: bool = True
    maxiter: int = 1000

    def __post_init__(self):
        if self.criterion not in CRITERIA:
            raise InvalidArgumentError(f"Unknown criterion: {self.criterion}. Use one of {CRITERIA}.")
        if self.maxiter < 1:
            raise InvalidArgumentError(f"maxiter must be >= 1, got {self.maxiter}.")


def candidate_specs(series: TimeSeries, config: EtsConfig | None = None) -> list[EtsSpec]:
    """ETS specifications admissible for ``series``.

    Multiplicative error or season need strictly positive data, seasonal
    forms need two full cycles, additive error with multiplicative season is
    left out as numerically unstable, and a spec must leave at least two
    residual degrees of freedom.
    """
    config = config or EtsConfig()
    positive = series.is_positive()
    m = series.period

    error_opts = ["add"]
    seasonal_opts: list[str | None] = [None]
    if config.allow_multiplicative and positive:
        error_opts.append("mul")
    if config.seasonal and m > 1 and len(series) >= 2 * m:
        seasonal_opts.append("add")
        if config.allow_multiplicative and positive:
            seasonal_opts.append("mul")

    trend_opts: list[tuple[str | None, bool]] = [(None, False), ("add", False)]
    if config.allow_damped:
        trend_opts.append(("add", True))

    specs = []
    for error in error_opts:
        for trend, damped in trend_opts:
            for seasonal in seasonal_opts:
                if error == "add" and seasonal == "mul":
                    continue
                spec = EtsSpec(
                    error=error,
                    trend=trend,
                    damped=damped,
                    seasonal=seasonal,
                    period=m if seasonal else 1,
                )
                # smoothing params + initial states + innovation variance
                n_params = spec.n_smoothing + spec.n_states + 1
                if len(series) - n_params < 2:
                    continue
                specs.append(spec)
    return specs


def fit_ets_spec(series: TimeSeries, spec: EtsSpec, maxiter: int = 1000) -> FittedModel:
    """Fit one ETS specification by maximum likelihood.

    Raises:
        ModelFitError: the optimizer reported failure.
        NumericInstabilityError: the likelihood or criteria are not finite.
    """
    y = pd.Series(series.values)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        model = ETSModel(
            y,
            error=spec.error,
            trend=spec.trend,
            damped_trend=spec.damped,
            seasonal=spec.seasonal,
            seasonal_periods=spec.period if spec.seasonal else None,
        )
        result = model.fit(disp=False, maxiter=maxiter)

    retvals = getattr(result, "mle_retvals", None) or {}
    if not retvals.get("converged", True):
        raise ModelFitError(f"{spec.label} did not converge.")

    values = (result.llf, result.aic, result.aicc, result.bic)
    if not np.all(np.isfinite(values)):
        raise NumericInstabilityError(f"{spec.label} produced a non-finite likelihood.")

    fitted = np.asarray(result.fittedvalues, dtype=float)
    if not np.all(np.isfinite(fitted)):
        raise NumericInstabilityError(f"{spec.label} produced non-finite fitted values.")

    # innovations are relative errors for multiplicative-error models
    innovations = np.asarray(result.resid, dtype=float)
    params = {str(k): float(v) for k, v in zip(result.model.param_names, np.asarray(result.params))}
    return FittedModel(
        family=ModelFamily.ETS,
        spec=spec,
        params=params,
        fitted_values=fitted,
        residuals=series.values - fitted,
        loglik=float(result.llf),
        aic=float(result.aic),
        aicc=float(result.aicc),
        bic=float(result.bic),
        sigma2=float(np.mean(innovations ** 2)),
        nobs=len(series),
        period=series.period,
        start=series.start,
        result=result,
    )


def fit_ets(series: TimeSeries, config: EtsConfig | None = None) -> FittedModel:
    """Fit every admissible ETS specification and keep the best by criterion.

    Raises:
        InsufficientDataError: seasonal fitting requested on fewer than two cycles.
        ModelFitError: no specification is admissible or none could be fitted.
    """
    config = config or EtsConfig()
    if config.seasonal and series.period > 1:
        series.require_cycles(2)

    specs = candidate_specs(series, config)
    if not specs:
        raise ModelFitError(f"No admissible ETS specification for {len(series)} observations.")

    best: FittedModel | None = None
    n_failed = 0
    for spec in specs:
        try:
            model = fit_ets_spec(series, spec, maxiter=config.maxiter)
        except Exception as e:
            n_failed += 1
            logger.debug(f"Skipping {spec.label}: {e}")
            continue
        score = model.criterion(config.criterion)
        logger.debug(f"{spec.label}: {config.criterion}={score:.2f}")
        if best is None or score < best.criterion(config.criterion):
            best = model

    if best is None:
        raise ModelFitError(f"None of {len(specs)} ETS specifications could be fitted.")

    logger.info(
        f"Selected {best.label} ({config.criterion}={best.criterion(config.criterion):.2f}); "
        f"{n_failed}/{len(specs)} specifications skipped"
    )
    return best
