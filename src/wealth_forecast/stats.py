# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Statistics library for the forecasting engine.

Pure, deterministic functions over sequences of numbers: descriptive
statistics, time-value-of-money formulas, risk metrics and return-rate
conversions. Nothing in this module draws random numbers.

Conventions:
    * Standard deviation, variance and covariance are population statistics
      (ddof=0) everywhere in the engine.
    * Percentiles take ``p`` in [0, 100] and interpolate linearly between
      order statistics (Hyndman & Fan type 7, numpy's ``linear`` method), so
      ``percentile(values, 50)`` is the median for odd and even counts.
    * Cash flows follow the simulator's sign convention: positive amounts are
      contributions, negative amounts are withdrawals, paid at period end.
"""

import math
from dataclasses import dataclass
from typing import Dict, Iterable, Sequence, Tuple, Union

import numpy as np
from scipy.stats import norm

from .exceptions import ComputationError

Numbers = Union[Sequence[float], np.ndarray, Iterable[float]]

MONTHS_PER_YEAR = 12

# Percentile levels reported in every summary
SUMMARY_PERCENTILES = (10, 25, 50, 75, 90)


@dataclass(frozen=True)
class SummaryStatistics:
    """Distributional summary of a sample.

    Attributes:
        count: Number of observations
        mean: Arithmetic mean
        std_dev: Population standard deviation
        min: Smallest observation
        max: Largest observation
        p10, p25, median, p75, p90: Type-7 percentiles
    """
    count: int
    mean: float
    std_dev: float
    min: float
    max: float
    p10: float
    p25: float
    median: float
    p75: float
    p90: float

    def as_dict(self) -> Dict[str, float]:
        return {
            'count': self.count,
            'mean': self.mean,
            'std_dev': self.std_dev,
            'min': self.min,
            'max': self.max,
            'p10': self.p10,
            'p25': self.p25,
            'median': self.median,
            'p75': self.p75,
            'p90': self.p90,
        }


def _as_array(values: Numbers) -> np.ndarray:
    arr = np.asarray(list(values) if not isinstance(values, np.ndarray) else values,
                     dtype=float)
    if arr.size == 0:
        raise ValueError("Cannot compute statistics of an empty sequence")
    return arr.ravel()


def _checked(value: float, what: str) -> float:
    if not math.isfinite(value):
        raise ComputationError(f"{what} produced a non-finite value ({value})")
    return value


# =============================================================================
# Descriptive statistics
# =============================================================================

def mean(values: Numbers) -> float:
    """Arithmetic mean.

    The result is clamped into [min, max] so a sample of identical values
    has a mean exactly equal to that value.
    """
    arr = _as_array(values)
    lo, hi = arr.min(), arr.max()
    if lo == hi:
        return float(lo)
    return float(np.clip(np.mean(arr), lo, hi))


def variance(values: Numbers) -> float:
    """Population variance (ddof=0)."""
    arr = _as_array(values)
    if arr.min() == arr.max():
        return 0.0
    return float(np.var(arr))


def standard_deviation(values: Numbers) -> float:
    """Population standard deviation (ddof=0)."""
    return math.sqrt(variance(values))


def percentile(values: Numbers, p: float) -> float:
    """Type-7 percentile of ``values`` with ``p`` in [0, 100].

    Raises:
        ValueError: If ``values`` is empty or ``p`` is outside [0, 100]
    """
    if p < 0 or p > 100:
        raise ValueError(f"Percentile must be between 0 and 100, got {p}")
    return float(np.percentile(_as_array(values), p))


def median(values: Numbers) -> float:
    return percentile(values, 50)


def confidence_interval(values: Numbers, confidence: float = 0.95) -> Tuple[float, float]:
    """Central interval holding ``confidence`` of the sample.

    Args:
        values: Sample values
        confidence: Fraction in (0, 1), e.g. 0.95

    Returns:
        (lower, upper) percentile bounds
    """
    if confidence <= 0 or confidence >= 1:
        raise ValueError("Confidence must be between 0 and 1")
    alpha = 1.0 - confidence
    return (percentile(values, alpha / 2 * 100), percentile(values, (1 - alpha / 2) * 100))


def covariance(x: Numbers, y: Numbers) -> float:
    """Population covariance of two equally sized samples."""
    a, b = _as_array(x), _as_array(y)
    if a.size != b.size:
        raise ValueError("Arrays must have equal length for covariance")
    return float(np.mean((a - np.mean(a)) * (b - np.mean(b))))


def correlation(x: Numbers, y: Numbers) -> float:
    """Pearson correlation coefficient in [-1, 1].

    Returns 0.0 when either sample has no dispersion.
    """
    a, b = _as_array(x), _as_array(y)
    if a.size != b.size:
        raise ValueError("Arrays must have equal length for correlation")
    if a.size < 2:
        raise ValueError("Correlation requires at least 2 data points")
    da, db = a - np.mean(a), b - np.mean(b)
    denominator = math.sqrt(float(np.sum(da * da)) * float(np.sum(db * db)))
    if denominator == 0:
        return 0.0
    return float(np.clip(np.sum(da * db) / denominator, -1.0, 1.0))


def geometric_mean(values: Numbers) -> float:
    arr = _as_array(values)
    if np.any(arr <= 0):
        raise ComputationError("All values must be positive for geometric mean")
    return float(np.exp(np.mean(np.log(arr))))


def summarize(values: Numbers) -> SummaryStatistics:
    """Compute the standard summary (mean, std, min, max, percentiles)."""
    arr = _as_array(values)
    p10, p25, p50, p75, p90 = (float(v) for v in np.percentile(arr, SUMMARY_PERCENTILES))
    return SummaryStatistics(
        count=int(arr.size),
        mean=mean(arr),
        std_dev=standard_deviation(arr),
        min=float(arr.min()),
        max=float(arr.max()),
        p10=p10,
        p25=p25,
        median=p50,
        p75=p75,
        p90=p90,
    )


def summarize_columns(matrix: np.ndarray) -> Dict[str, np.ndarray]:
    """Columnwise summary of a (samples x columns) matrix.

    Each column is summarized across its rows, independently of the other
    columns. Used for per-period summaries of an ensemble of paths.

    Returns:
        Dict with 'mean', 'p10', 'p25', 'median', 'p75' and 'p90' arrays,
        one value per column
    """
    data = np.asarray(matrix, dtype=float)
    if data.ndim != 2 or data.shape[0] == 0:
        raise ValueError("Expected a non-empty 2-D matrix of samples")
    col_min = data.min(axis=0)
    col_max = data.max(axis=0)
    col_mean = np.clip(data.mean(axis=0), col_min, col_max)
    col_mean = np.where(col_min == col_max, col_min, col_mean)
    p10, p25, p50, p75, p90 = np.percentile(data, SUMMARY_PERCENTILES, axis=0)
    return {
        'mean': col_mean,
        'p10': p10,
        'p25': p25,
        'median': p50,
        'p75': p75,
        'p90': p90,
    }


# =============================================================================
# Time value of money
# =============================================================================

def compound_annual_growth_rate(begin_value: float, end_value: float, years: float) -> float:
    """Compound annual growth rate between two values.

    Raises:
        ComputationError: If ``years <= 0``, ``begin_value <= 0`` or
            ``end_value < 0``
    """
    if years <= 0:
        raise ComputationError(f"years must be positive for CAGR, got {years}")
    if begin_value <= 0:
        raise ComputationError(f"begin_value must be positive for CAGR, got {begin_value}")
    if end_value < 0:
        raise ComputationError(f"end_value cannot be negative for CAGR, got {end_value}")
    return _checked((end_value / begin_value) ** (1.0 / years) - 1.0, "CAGR")


def future_value(present_value: float, rate: float, periods: float) -> float:
    """Value of ``present_value`` compounded at ``rate`` per period."""
    if rate < -1:
        raise ComputationError(f"rate must be >= -1, got {rate}")
    if rate == -1 and periods < 0:
        raise ComputationError("rate of -1 cannot be compounded over negative periods")
    return _checked(present_value * (1.0 + rate) ** periods, "future_value")


def future_value_of_annuity(payment: float, rate: float, periods: int) -> float:
    """Future value of ``periods`` end-of-period payments."""
    if periods < 0:
        raise ComputationError(f"periods cannot be negative, got {periods}")
    if rate == 0:
        return payment * periods
    if rate <= -1:
        raise ComputationError(f"rate must be > -1, got {rate}")
    return _checked(payment * ((1.0 + rate) ** periods - 1.0) / rate, "future_value_of_annuity")


def present_value(future_value: float, rate: float, periods: float) -> float:
    """Discount ``future_value`` back ``periods`` periods at ``rate``."""
    if rate <= -1:
        raise ComputationError(f"rate must be > -1 to discount, got {rate}")
    return _checked(future_value / (1.0 + rate) ** periods, "present_value")


def present_value_of_growing_annuity(payment: float, rate: float, growth: float,
                                     periods: int) -> float:
    """Present value of a payment stream growing at ``growth`` per period.

    The first payment is ``payment`` at the end of period one.

    Raises:
        ComputationError: If ``rate == growth`` (zero growth differential) or
            ``rate <= -1``
    """
    if rate <= -1:
        raise ComputationError(f"rate must be > -1 to discount, got {rate}")
    differential = rate - growth
    if differential == 0:
        raise ComputationError(
            "Growing annuity is undefined for a zero growth differential "
            f"(rate == growth == {rate})"
        )
    ratio = ((1.0 + growth) / (1.0 + rate)) ** periods
    return _checked(payment / differential * (1.0 - ratio), "present_value_of_growing_annuity")


def annuity_payment(rate: float, periods: int, present_value: float = 0.0,
                    future_value: float = 0.0) -> float:
    """Level end-of-period payment that takes ``present_value`` to ``future_value``.

    Solves ``FV = PV * (1+r)^n + P * ((1+r)^n - 1) / r`` for ``P``. A positive
    result is a contribution; a negative result is a withdrawal (e.g. the
    payment that amortizes a balance down to zero).

    Raises:
        ComputationError: If ``periods <= 0`` or ``rate <= -1``
    """
    if periods <= 0:
        raise ComputationError(f"periods must be positive, got {periods}")
    if rate <= -1:
        raise ComputationError(f"rate must be > -1, got {rate}")
    if rate == 0:
        return (future_value - present_value) / periods
    growth = (1.0 + rate) ** periods
    denominator = growth - 1.0
    if denominator == 0:
        raise ComputationError(f"rate {rate} is too small to resolve over {periods} periods")
    return _checked((future_value - present_value * growth) * rate / denominator,
                    "annuity_payment")


# =============================================================================
# Risk metrics
# =============================================================================

def sharpe_ratio(returns: Numbers, risk_free_rate: float) -> float:
    """Mean excess return over its standard deviation (same periodicity)."""
    excess = _as_array(returns) - risk_free_rate
    dispersion = standard_deviation(excess)
    if dispersion == 0:
        raise ComputationError("Sharpe ratio is undefined for returns with zero dispersion")
    return mean(excess) / dispersion


def value_at_risk(returns: Numbers, confidence: float = 0.95) -> float:
    """Historical value at risk.

    Returns:
        Loss magnitude (non-negative fraction) not exceeded with probability
        ``confidence``
    """
    if confidence <= 0 or confidence >= 1:
        raise ValueError("Confidence must be between 0 and 1")
    return max(0.0, -percentile(returns, (1.0 - confidence) * 100))


def parametric_value_at_risk(mean_return: float, std_dev: float, confidence: float = 0.95,
                             initial_value: float = 1.0) -> float:
    """Value at risk under a normal return assumption, scaled by ``initial_value``."""
    if confidence <= 0 or confidence >= 1:
        raise ValueError("Confidence must be between 0 and 1")
    if std_dev < 0:
        raise ComputationError(f"std_dev cannot be negative, got {std_dev}")
    worst_return = mean_return + float(norm.ppf(1.0 - confidence)) * std_dev
    return max(0.0, -worst_return * initial_value)


def max_drawdown(values: Numbers) -> float:
    """Largest peak-to-trough decline of a value series, as a fraction of the peak."""
    arr = _as_array(values)
    peaks = np.maximum.accumulate(arr)
    drawdowns = np.divide(peaks - arr, peaks, out=np.zeros_like(arr), where=peaks > 0)
    return float(drawdowns.max())


# =============================================================================
# Rate conversions
# =============================================================================

def annual_to_monthly_return(annual_rate: float) -> float:
    """``(1 + annual)^(1/12) - 1``."""
    if annual_rate <= -1:
        raise ComputationError(f"annual rate must be > -1, got {annual_rate}")
    return (1.0 + annual_rate) ** (1.0 / MONTHS_PER_YEAR) - 1.0


def monthly_to_annual_return(monthly_rate: float) -> float:
    """``(1 + monthly)^12 - 1``."""
    if monthly_rate <= -1:
        raise ComputationError(f"monthly rate must be > -1, got {monthly_rate}")
    return (1.0 + monthly_rate) ** MONTHS_PER_YEAR - 1.0


def annual_to_monthly_volatility(annual_volatility: float) -> float:
    return annual_volatility / math.sqrt(MONTHS_PER_YEAR)


def monthly_to_annual_volatility(monthly_volatility: float) -> float:
    return monthly_volatility * math.sqrt(MONTHS_PER_YEAR)
