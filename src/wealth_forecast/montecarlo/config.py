# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""Configuration for Monte Carlo simulations."""

import dataclasses
import math
import numbers
from dataclasses import dataclass
from typing import Optional

from ..exceptions import ConfigurationError

# ===== SIMULATION DEFAULTS =====
DEFAULT_ITERATIONS = 10_000  # Iterations per run
HIGH_ITERATION_WARNING = 50_000  # Runs above this are logged as slow
DEFAULT_EXPECTED_RETURN = 0.07  # 7% annual drift
DEFAULT_VOLATILITY = 0.15  # 15% annual volatility
DEFAULT_INFLATION_RATE = 0.03  # Used by retirement withdrawals when adjusted

# ===== EXECUTION =====
DEFAULT_BATCHES_PER_WORKER = 4  # Tasks queued per pool worker
SYNC_TIMEOUT_BATCHES = 10  # Deadline checks in a timed synchronous run


@dataclass(frozen=True)
class SimulationConfig:
    """Input to a single Monte Carlo run.

    Attributes:
        initial_balance: Starting balance (>= 0)
        monthly_contribution: Cash flow added each month. Positive values are
            contributions, negative values are withdrawals.
        periods: Number of monthly periods to simulate (>= 1)
        iterations: Number of independent paths (>= 1). Default 10,000.
        expected_return: Annual expected return (drift), e.g. 0.07
        volatility: Annual volatility (>= 0), e.g. 0.15. Zero collapses every
            iteration onto the same deterministic path.
        seed: Optional seed for reproducible results
        inflation_rate: Annual inflation used to grow the cash flow when
            ``inflation_adjusted`` is set
        inflation_adjusted: Grow the cash flow period over period with inflation
    """
    initial_balance: float
    monthly_contribution: float
    periods: int
    iterations: int = DEFAULT_ITERATIONS
    expected_return: float = DEFAULT_EXPECTED_RETURN
    volatility: float = DEFAULT_VOLATILITY
    seed: Optional[int] = None
    inflation_rate: float = 0.0
    inflation_adjusted: bool = False

    def __post_init__(self):
        for name in ('initial_balance', 'monthly_contribution', 'expected_return',
                     'volatility', 'inflation_rate'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real) \
                    or not math.isfinite(value):
                raise ConfigurationError(name, "must_be_finite_number")
        for name in ('periods', 'iterations'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise ConfigurationError(name, "must_be_integer")
            if value < 1:
                raise ConfigurationError(name, "must_be_positive",
                                         f"{name} must be at least 1, got {value}")
        if self.initial_balance < 0:
            raise ConfigurationError('initial_balance', "must_be_non_negative",
                                     f"Initial balance cannot be negative: {self.initial_balance}")
        if self.volatility < 0:
            raise ConfigurationError('volatility', "must_be_non_negative",
                                     f"Volatility cannot be negative: {self.volatility}")
        if self.expected_return <= -1:
            raise ConfigurationError('expected_return', "must_exceed_minus_one")
        if self.inflation_rate <= -1:
            raise ConfigurationError('inflation_rate', "must_exceed_minus_one")
        if self.seed is not None and (not isinstance(self.seed, numbers.Integral) or self.seed < 0):
            raise ConfigurationError('seed', "must_be_non_negative_integer")

    @property
    def years(self) -> float:
        return self.periods / 12.0

    def with_overrides(self, **changes) -> 'SimulationConfig':
        """Return a validated copy with ``changes`` applied."""
        return dataclasses.replace(self, **changes)
