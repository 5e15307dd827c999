"""Information-criterion model selection across families."""

from __future__ import annotations

from typing import Iterable

import pandas as pd

from ..errors import InvalidArgumentError
from .base import FittedModel

SELECTION_CRITERIA = ("aic", "aicc")


def _rank_key(model: FittedModel, criterion: str) -> tuple[float, float, int]:
    return (model.criterion(criterion), model.bic, model.family.preference)


def select_best(models: Iterable[FittedModel], criterion: str = "aic") -> FittedModel:
    """Return the model with the lowest criterion.

    Ties go to the lower BIC, then to the simpler family (ETS before SARIMA).
    """
    if criterion not in SELECTION_CRITERIA:
        raise InvalidArgumentError(
            f"Unknown selection criterion: {criterion}. Use one of {SELECTION_CRITERIA}."
        )
    candidates = list(models)
    if not candidates:
        raise InvalidArgumentError("select_best needs at least one fitted model.")
    return min(candidates, key=lambda m: _rank_key(m, criterion))


def compare_models(models: Iterable[FittedModel], criterion: str = "aic") -> pd.DataFrame:
    """Diagnostics table, ranked the same way ``select_best`` ranks."""
    candidates = sorted(models, key=lambda m: _rank_key(m, criterion))
    df = pd.DataFrame([m.diagnostics() for m in candidates])
    if len(df) > 0:
        df["Rank"] = range(1, len(df) + 1)
    return df
