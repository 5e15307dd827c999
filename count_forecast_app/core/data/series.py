"""Immutable container for a regularly-sampled numeric series."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from ..errors import InsufficientDataError, InvalidArgumentError


@dataclass(frozen=True, eq=False)
class TimeSeries:
    """Ordered observations with a seasonal period and a start offset.

    ``values`` is stored as a read-only float array. ``start`` is the index of
    the first observation, so the seasonal phase of position ``t`` is
    ``(start + t) % period``.
    """

    values: np.ndarray
    period: int = 1
    start: int = 0
    name: str | None = field(default=None)

    def __post_init__(self):
        arr = np.array(self.values, dtype=float)
        if arr.ndim != 1:
            raise InvalidArgumentError(f"Series must be one-dimensional, got shape {arr.shape}.")
        if arr.size == 0:
            raise InvalidArgumentError("Series is empty.")
        if not np.all(np.isfinite(arr)):
            n_bad = int((~np.isfinite(arr)).sum())
            raise InvalidArgumentError(
                f"Series contains {n_bad} missing or non-finite value(s); fill or drop gaps first."
            )
        if isinstance(self.period, bool) or int(self.period) != self.period or self.period < 1:
            raise InvalidArgumentError(f"Seasonal period must be a positive integer, got {self.period!r}.")
        arr.setflags(write=False)
        object.__setattr__(self, "values", arr)
        object.__setattr__(self, "period", int(self.period))
        object.__setattr__(self, "start", int(self.start))

    def __len__(self) -> int:
        return len(self.values)

    @property
    def n_cycles(self) -> float:
        return len(self) / self.period

    @property
    def index(self) -> pd.RangeIndex:
        return pd.RangeIndex(self.start, self.start + len(self))

    def phase(self, t: int) -> int:
        """Seasonal position (0..period-1) of observation ``t``."""
        return (self.start + t) % self.period

    def phases(self) -> np.ndarray:
        return (self.start + np.arange(len(self))) % self.period

    def is_positive(self) -> bool:
        return bool(np.all(self.values > 0))

    def require_cycles(self, cycles: int = 2) -> None:
        """Raise if the series holds fewer than ``cycles`` full seasonal periods."""
        needed = cycles * self.period
        if len(self) < needed:
            raise InsufficientDataError(
                f"Series has {len(self)} observations; at least {needed} "
                f"({cycles} x period {self.period}) are required."
            )

    def head(self, n: int) -> "TimeSeries":
        """First ``n`` observations, keeping period and start."""
        return TimeSeries(self.values[:n], period=self.period, start=self.start, name=self.name)

    def to_series(self) -> pd.Series:
        return pd.Series(self.values, index=self.index, name=self.name)

    @classmethod
    def from_series(
        cls,
        series: pd.Series,
        period: int,
        name: str | None = None,
    ) -> "TimeSeries":
        """Build from a pandas Series; the index is discarded, order is kept."""
        return cls(
            series.to_numpy(dtype=float),
            period=period,
            name=name if name is not None else (str(series.name) if series.name is not None else None),
        )

    def __repr__(self) -> str:
        label = f"{self.name!r}, " if self.name else ""
        return f"TimeSeries({label}n={len(self)}, period={self.period}, start={self.start})"
