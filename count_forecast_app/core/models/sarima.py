"""SARIMA fitting with a stepwise order search."""

from __future__ import annotations

import logging
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from statsmodels.tsa.statespace.sarimax import SARIMAX

from ..data.series import TimeSeries
from ..eda.stationarity import (
    seasonal_difference,
    suggest_differencing,
    suggest_seasonal_differencing,
)
from ..errors import InvalidArgumentError, ModelFitError, NumericInstabilityError
from .base import FittedModel, ModelFamily, SarimaSpec

logger = logging.getLogger(__name__)

CRITERIA = ("aic", "aicc", "bic")

# Roots closer to the unit circle than this are treated as non-stationary / non-invertible
MIN_ROOT_MODULUS = 1.001


@dataclass
class SarimaConfig:
    max_p: int = 5
    max_q: int = 5
    max_P: int = 2
    max_Q: int = 2
    max_order: int | None = None  # optional bound on p + q + P + Q
    max_d: int = 2
    max_D: int = 1
    max_steps: int = 94  # total model fits, seeds included
    criterion: str = "aicc"
    maxiter: int = 200
    seasonal: bool = True
    seasonal_threshold: float = 0.64
    significance: float = 0.05
    allow_constant: bool = True
    n_jobs: int = 1

    def __post_init__(self):
        if self.criterion not in CRITERIA:
            raise InvalidArgumentError(f"Unknown criterion: {self.criterion}. Use one of {CRITERIA}.")
        for name in ("max_p", "max_q", "max_P", "max_Q", "max_d", "max_D"):
            if getattr(self, name) < 0:
                raise InvalidArgumentError(f"{name} must be >= 0, got {getattr(self, name)}.")
        if self.max_order is not None and self.max_order < 0:
            raise InvalidArgumentError(f"max_order must be >= 0, got {self.max_order}.")
        if self.max_d > 2:
            raise InvalidArgumentError(f"max_d is capped at 2, got {self.max_d}.")
        if self.max_D > 1:
            raise InvalidArgumentError(f"max_D is capped at 1, got {self.max_D}.")
        if self.max_steps < 1:
            raise InvalidArgumentError(f"max_steps must be >= 1, got {self.max_steps}.")
        if self.n_jobs < 1:
            raise InvalidArgumentError(f"n_jobs must be >= 1, got {self.n_jobs}.")


@dataclass(frozen=True)
class SearchState:
    """Progress of the stepwise search: best model so far, scored orders, fits spent."""

    best: FittedModel | None = None
    visited: dict[tuple, float] = field(default_factory=dict)
    steps: int = 0


def fit_sarima_spec(series: TimeSeries, spec: SarimaSpec, maxiter: int = 200) -> FittedModel:
    """Fit one SARIMA specification by exact maximum likelihood (Kalman filter).

    Raises:
        ModelFitError: the optimizer did not converge or the estimates are
            non-stationary / non-invertible.
        NumericInstabilityError: the likelihood or criteria are not finite.
    """
    y = pd.Series(series.values)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        model = SARIMAX(
            y,
            order=spec.order,
            seasonal_order=spec.seasonal_order,
            trend=spec.trend,
            enforce_stationarity=True,
            enforce_invertibility=True,
        )
        result = model.fit(disp=False, maxiter=maxiter)

    retvals = result.mle_retvals or {}
    if not retvals.get("converged", True):
        raise ModelFitError(f"{spec.label} did not converge.")

    values = (result.llf, result.aic, result.aicc, result.bic)
    if not np.all(np.isfinite(values)):
        raise NumericInstabilityError(f"{spec.label} produced a non-finite likelihood.")

    if len(result.arroots) and np.min(np.abs(result.arroots)) < MIN_ROOT_MODULUS:
        raise ModelFitError(f"{spec.label} has a non-stationary AR polynomial.")
    if len(result.maroots) and np.min(np.abs(result.maroots)) < MIN_ROOT_MODULUS:
        raise ModelFitError(f"{spec.label} has a non-invertible MA polynomial.")

    params = {str(k): float(v) for k, v in result.params.items()}
    fitted = np.asarray(result.fittedvalues, dtype=float)
    return FittedModel(
        family=ModelFamily.SARIMA,
        spec=spec,
        params=params,
        fitted_values=fitted,
        residuals=series.values - fitted,
        loglik=float(result.llf),
        aic=float(result.aic),
        aicc=float(result.aicc),
        bic=float(result.bic),
        sigma2=float(params.get("sigma2", np.nan)),
        nobs=len(series),
        period=series.period,
        start=series.start,
        result=result,
    )


def _try_fit(series: TimeSeries, spec: SarimaSpec, config: SarimaConfig) -> FittedModel | None:
    try:
        model = fit_sarima_spec(series, spec, maxiter=config.maxiter)
    except Exception as e:
        logger.debug(f"Skipping {spec.label}: {e}")
        return None
    logger.debug(f"{spec.label}: {config.criterion}={model.criterion(config.criterion):.2f}")
    return model


def select_differencing(series: TimeSeries, config: SarimaConfig) -> tuple[int, int]:
    """Seasonal order D from seasonal strength, then d from KPSS on the seasonally differenced data."""
    m = series.period
    D = 0
    if config.seasonal and m > 1:
        D = suggest_seasonal_differencing(
            series.values, m, max_D=config.max_D, threshold=config.seasonal_threshold
        )
    y = seasonal_difference(series.values, m, D) if D else series.values
    d = suggest_differencing(y, max_d=config.max_d, significance=config.significance)
    return d, D


def _make_spec(p: int, d: int, q: int, P: int, D: int, Q: int, m: int, constant: bool) -> SarimaSpec:
    seasonal_order = (P, D, Q, m) if m > 1 else (0, 0, 0, 0)
    return SarimaSpec(order=(p, d, q), seasonal_order=seasonal_order, with_constant=constant)


def _within_bounds(p: int, q: int, P: int, Q: int, config: SarimaConfig, seasonal: bool) -> bool:
    if min(p, q, P, Q) < 0:
        return False
    if p > config.max_p or q > config.max_q:
        return False
    if not seasonal and (P or Q):
        return False
    if P > config.max_P or Q > config.max_Q:
        return False
    return config.max_order is None or p + q + P + Q <= config.max_order


def _seed_specs(d: int, D: int, m: int, config: SarimaConfig) -> list[SarimaSpec]:
    seasonal = m > 1
    constant = config.allow_constant and d + D <= 1
    seeds = [(2, 2, 1, 1), (0, 0, 0, 0), (1, 0, 1, 0), (0, 1, 0, 1)]
    specs: list[SarimaSpec] = []
    for p, q, P, Q in seeds:
        if not seasonal:
            P = Q = 0
        p, q = min(p, config.max_p), min(q, config.max_q)
        P, Q = min(P, config.max_P), min(Q, config.max_Q)
        while config.max_order is not None and p + q + P + Q > config.max_order:
            # shrink the largest term until the seed satisfies max_order
            largest = max(("p", p), ("q", q), ("P", P), ("Q", Q), key=lambda t: t[1])[0]
            p, q, P, Q = (
                p - (largest == "p"), q - (largest == "q"),
                P - (largest == "P"), Q - (largest == "Q"),
            )
        spec = _make_spec(p, d, q, P, D, Q, m, constant)
        if spec not in specs:
            specs.append(spec)
    return specs


def _neighbours(spec: SarimaSpec, config: SarimaConfig) -> list[SarimaSpec]:
    p, d, q = spec.order
    P, D, Q, m = spec.seasonal_order
    seasonal = m > 1
    moves = [
        (1, 0, 0, 0), (-1, 0, 0, 0), (0, 1, 0, 0), (0, -1, 0, 0),
        (1, 1, 0, 0), (-1, -1, 0, 0),
    ]
    if seasonal:
        moves += [
            (0, 0, 1, 0), (0, 0, -1, 0), (0, 0, 0, 1), (0, 0, 0, -1),
            (0, 0, 1, 1), (0, 0, -1, -1),
        ]
    out = []
    for dp, dq, dP, dQ in moves:
        np_, nq, nP, nQ = p + dp, q + dq, P + dP, Q + dQ
        if _within_bounds(np_, nq, nP, nQ, config, seasonal):
            out.append(_make_spec(np_, d, nq, nP, D, nQ, m, spec.with_constant))
    if config.allow_constant and d + D <= 1:
        out.append(SarimaSpec(spec.order, spec.seasonal_order, not spec.with_constant))
    return out


def _evaluate(
    series: TimeSeries,
    specs: list[SarimaSpec],
    state: SearchState,
    config: SarimaConfig,
) -> SearchState:
    """Fit the unvisited ``specs`` (within the step budget) and fold them into a new state."""
    pending: list[SarimaSpec] = []
    for spec in specs:
        if spec.key not in state.visited and spec not in pending:
            pending.append(spec)
    pending = pending[: max(config.max_steps - state.steps, 0)]
    if not pending:
        return state

    if config.n_jobs > 1 and len(pending) > 1:
        with ThreadPoolExecutor(max_workers=config.n_jobs) as pool:
            fitted = list(pool.map(lambda s: _try_fit(series, s, config), pending))
    else:
        fitted = [_try_fit(series, s, config) for s in pending]

    visited = dict(state.visited)
    best = state.best
    for spec, model in zip(pending, fitted):
        if model is None:
            visited[spec.key] = float("inf")
            continue
        score = model.criterion(config.criterion)
        visited[spec.key] = score
        if best is None or score < best.criterion(config.criterion):
            best = model
    return SearchState(best=best, visited=visited, steps=state.steps + len(pending))


def fit_sarima(series: TimeSeries, config: SarimaConfig | None = None) -> FittedModel:
    """Select and fit a SARIMA model by stepwise search over (p, q, P, Q).

    Differencing orders are fixed first; then seed models are fitted and the
    best improving neighbour of the current best is accepted until no
    neighbour improves the criterion or ``max_steps`` fits have been spent.

    Raises:
        InsufficientDataError: seasonal fitting requested on fewer than two cycles.
        ModelFitError: no candidate converged to an admissible model.
    """
    config = config or SarimaConfig()
    m = series.period if config.seasonal else 1
    if m > 1:
        series.require_cycles(2)

    d, D = select_differencing(series, config)
    logger.info(f"SARIMA differencing for {series.name or 'series'}: d={d}, D={D}, m={m}")

    state = _evaluate(series, _seed_specs(d, D, m, config), SearchState(), config)
    while state.best is not None and state.steps < config.max_steps:
        current = state.best
        state = _evaluate(series, _neighbours(current.spec, config), state, config)
        if state.best is current:
            break

    if state.best is None:
        raise ModelFitError(
            f"No SARIMA candidate converged after {state.steps} fits (d={d}, D={D}, m={m})."
        )

    best = state.best
    logger.info(
        f"Selected {best.label} ({config.criterion}={best.criterion(config.criterion):.2f}) "
        f"after {state.steps} fits"
    )
    return best
