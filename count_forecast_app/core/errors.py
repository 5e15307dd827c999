"""Exception types raised by the modeling core."""

from __future__ import annotations


class ForecastAppError(Exception):
    """Base class for all errors raised by the modeling core."""


class InvalidArgumentError(ForecastAppError, ValueError):
    """A parameter or input series is malformed (empty series, h < 1, k > N, even window)."""


class InsufficientDataError(InvalidArgumentError):
    """The series is too short relative to its seasonal period."""


class ModelFitError(ForecastAppError, RuntimeError):
    """No candidate model could be fitted."""


class NumericInstabilityError(ModelFitError):
    """Likelihood optimization diverged or produced non-finite values."""
