# errors.py
"""
Failure taxonomy for the modelling pipeline.

All errors are data-validation failures detected before or during a fit.
None of them is transient, so nothing here is retried (the bootstrap redraw
of single-class resamples is the one bounded exception). Each error keeps the
offending field / row information in ``context`` so callers can report it.
"""

from typing import Any, Dict


class ForecastLabError(ValueError):
    """Base class; ``context`` holds the offending field/row details."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context: Dict[str, Any] = context


class SchemaMismatch(ForecastLabError):
    """Required columns missing, or train/test column sets differ after encoding."""


class UnseenCategory(ForecastLabError):
    """A categorical level appears in the data but has no training column."""


class SingularFeatureSet(ForecastLabError):
    """Design matrix cannot support the requested cross-validation."""


class DegenerateResponse(ForecastLabError):
    """Response is constant, so R² (or the fit itself) is undefined."""


class NoConvergingRun(ForecastLabError):
    """Every sampled hyperparameter run produced a non-finite loss."""


class EmptyGrid(ForecastLabError):
    """A hyperparameter has no candidate values."""


class InsufficientVariation(ForecastLabError):
    """A bootstrap resample contains a single response class."""


class BootstrapExhausted(ForecastLabError):
    """Too many consecutive single-class resamples were drawn."""
