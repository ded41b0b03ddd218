# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""Error types raised by the forecasting engine."""

from typing import Optional


class ForecastError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(ForecastError, ValueError):
    """Invalid input detected before any simulation work starts.

    Attributes:
        field: Name of the offending configuration field
        reason: Machine-readable reason code (e.g. "must_be_positive")
    """

    def __init__(self, field: str, reason: str, message: Optional[str] = None):
        self.field = field
        self.reason = reason
        super().__init__(message or f"Invalid '{field}': {reason}")


class ComputationError(ForecastError, ArithmeticError):
    """Numerically degenerate situation detected mid-computation."""


class SimulationTimeoutError(ForecastError, TimeoutError):
    """A run exceeded its time budget. Safe to retry with a larger budget."""

    retryable = True
