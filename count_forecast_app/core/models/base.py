"""Fitted-model record shared by the SARIMA and ETS fitters."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

import numpy as np
import pandas as pd


class ModelFamily(str, Enum):
    """Closed set of model families. Declaration order is the tie-break preference."""

    ETS = "ETS"
    SARIMA = "SARIMA"

    @property
    def preference(self) -> int:
        return list(ModelFamily).index(self)


@dataclass(frozen=True)
class SarimaSpec:
    order: tuple[int, int, int]
    seasonal_order: tuple[int, int, int, int] = (0, 0, 0, 0)
    with_constant: bool = False

    @property
    def key(self) -> tuple:
        return (*self.order, *self.seasonal_order, self.with_constant)

    @property
    def trend(self) -> str | None:
        return "c" if self.with_constant else None

    @property
    def n_coefficients(self) -> int:
        p, _, q = self.order
        P, _, Q, _ = self.seasonal_order
        return p + q + P + Q + int(self.with_constant)

    @property
    def label(self) -> str:
        p, d, q = self.order
        P, D, Q, m = self.seasonal_order
        text = f"SARIMA({p},{d},{q})"
        if m > 1:
            text += f"({P},{D},{Q})[{m}]"
        if self.with_constant:
            text += " with constant"
        return text


@dataclass(frozen=True)
class EtsSpec:
    error: str = "add"
    trend: str | None = None
    damped: bool = False
    seasonal: str | None = None
    period: int = 1

    @property
    def label(self) -> str:
        codes = {"add": "A", "mul": "M", None: "N"}
        trend = codes[self.trend] + ("d" if self.damped else "")
        return f"ETS({codes[self.error]},{trend},{codes[self.seasonal]})"

    @property
    def n_states(self) -> int:
        n = 1
        if self.trend:
            n += 1
        if self.seasonal:
            n += self.period - 1
        return n

    @property
    def n_smoothing(self) -> int:
        return 1 + bool(self.trend) + bool(self.damped) + bool(self.seasonal)


ModelSpec = Union[SarimaSpec, EtsSpec]


@dataclass(frozen=True, eq=False)
class FittedModel:
    """Estimated model, consumed read-only by selection and forecasting.

    ``result`` is the statsmodels results object used to project forward.
    """

    family: ModelFamily
    spec: ModelSpec
    params: dict[str, float]
    fitted_values: np.ndarray
    residuals: np.ndarray
    loglik: float
    aic: float
    aicc: float
    bic: float
    sigma2: float
    nobs: int
    period: int = 1
    start: int = 0
    result: Any = field(default=None, repr=False)

    @property
    def label(self) -> str:
        return self.spec.label

    def criterion(self, name: str) -> float:
        return float(getattr(self, name))

    def diagnostics(self) -> dict:
        return {
            "Model": self.label,
            "Family": self.family.value,
            "LogLik": self.loglik,
            "AIC": self.aic,
            "AICc": self.aicc,
            "BIC": self.bic,
            "Sigma2": self.sigma2,
            "N": self.nobs,
        }

    def fitted_frame(self) -> pd.DataFrame:
        index = pd.RangeIndex(self.start, self.start + self.nobs)
        return pd.DataFrame(
            {"fitted": self.fitted_values, "residual": self.residuals},
            index=index,
        )

    def summary(self) -> str:
        return f"{self.label}: AIC={self.aic:.1f}, AICc={self.aicc:.1f}, BIC={self.bic:.1f}"
