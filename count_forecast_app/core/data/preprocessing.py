"""Turn per-event or per-period counts into aligned, gap-free series."""

from __future__ import annotations

from typing import Mapping, Sequence

import numpy as np
import pandas as pd

from ..errors import InvalidArgumentError
from .series import TimeSeries

TOTAL_LABEL = "total"


def series_from_counts(
    df: pd.DataFrame,
    date_col: str,
    period: int,
    value_col: str | None = None,
    label_col: str | None = None,
    freq: str = "MS",
) -> dict[str, TimeSeries]:
    """Aggregate counts per calendar period (and label) onto one shared grid.

    Rows are summed per ``freq`` bucket; when ``value_col`` is None each row
    counts as one event. Periods with no rows become zero, and every label
    shares the same first and last period.
    """
    for col in (date_col, value_col, label_col):
        if col is not None and col not in df.columns:
            raise InvalidArgumentError(f"Column '{col}' not found in data.")

    out = df.copy()
    out[date_col] = pd.to_datetime(out[date_col], errors="coerce")
    out = out.dropna(subset=[date_col])
    if out.empty:
        raise InvalidArgumentError(f"No parseable dates in column '{date_col}'.")

    if value_col is None:
        out["_count"] = 1.0
        value_col = "_count"
    else:
        out[value_col] = pd.to_numeric(out[value_col], errors="coerce").fillna(0.0)

    keys = [pd.Grouper(key=date_col, freq=freq)]
    if label_col is not None:
        keys.append(label_col)
    counts = out.groupby(keys)[value_col].sum()

    if label_col is None:
        wide = counts.to_frame(TOTAL_LABEL)
    else:
        wide = counts.unstack(label_col)

    full_index = pd.date_range(wide.index.min(), wide.index.max(), freq=freq)
    wide = wide.reindex(full_index).fillna(0.0)

    return {
        str(label): TimeSeries(wide[label].to_numpy(dtype=float), period=period, name=str(label))
        for label in wide.columns
    }


def align_series(
    mapping: Mapping[str, Sequence[float] | np.ndarray | pd.Series],
    period: int,
) -> dict[str, TimeSeries]:
    """Wrap label -> values into TimeSeries, rejecting unequal lengths."""
    if not mapping:
        raise InvalidArgumentError("No series supplied.")
    result = {}
    for label, values in mapping.items():
        if isinstance(values, TimeSeries):
            values = values.values
        result[str(label)] = TimeSeries(np.asarray(values, dtype=float), period=period, name=str(label))

    lengths = {label: len(s) for label, s in result.items()}
    if len(set(lengths.values())) > 1:
        raise InvalidArgumentError(f"Series must share the same timestamps; got lengths {lengths}.")
    return result
