# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Path simulator for monthly balance trajectories.

Each period a balance earns that period's return and then receives the
period's cash flow, floored at zero:

    balance = max(0, balance * (1 + r) + cash_flow)

The floor means an exhausted portfolio stays at zero instead of going negative.
"""

from typing import Union

import numpy as np

from .. import stats
from .config import SimulationConfig
from .return_generator import NormalReturnGenerator


def cash_flow_schedule(monthly_amount: float, periods: int,
                       inflation_rate: float = 0.0,
                       inflation_adjusted: bool = False) -> np.ndarray:
    """Per-period cash flows for a path.

    Args:
        monthly_amount: Cash flow for the first period (signed)
        periods: Number of periods
        inflation_rate: Annual inflation rate
        inflation_adjusted: When True, the amount grows every period at the
            monthly equivalent of ``inflation_rate``

    Returns:
        Array of ``periods`` cash flows
    """
    if not inflation_adjusted or inflation_rate == 0:
        return np.full(periods, float(monthly_amount))
    monthly_inflation = stats.annual_to_monthly_return(inflation_rate)
    return monthly_amount * (1.0 + monthly_inflation) ** np.arange(periods)


class PathSimulator:
    """Simulates balance trajectories for a fixed cash flow schedule.

    The simulator is vectorized over rows: ``simulate`` accepts a
    (paths x periods) matrix of monthly returns, so a single trajectory is just
    a one-row matrix.

    Example:
        >>> sim = PathSimulator(np.full(12, 500.0))
        >>> balances = sim.simulate(10_000, np.full((1, 12), 0.005))
        >>> balances.shape
        (1, 13)
    """

    def __init__(self, cash_flows: np.ndarray):
        """Initialize the simulator.

        Args:
            cash_flows: Per-period cash flows (positive = contribution,
                negative = withdrawal)
        """
        self.cash_flows = np.asarray(cash_flows, dtype=float)

    @classmethod
    def from_config(cls, config: SimulationConfig) -> 'PathSimulator':
        return cls(cash_flow_schedule(config.monthly_contribution, config.periods,
                                      config.inflation_rate, config.inflation_adjusted))

    @property
    def periods(self) -> int:
        return int(self.cash_flows.size)

    def simulate(self, initial_balances: Union[float, np.ndarray],
                 monthly_returns: np.ndarray) -> np.ndarray:
        """Run trajectories through every period.

        Args:
            initial_balances: Starting balance, either a scalar shared by all
                paths or one value per path
            monthly_returns: (paths x periods) matrix of monthly returns

        Returns:
            (paths x periods+1) balance matrix; column 0 holds the starting
            balances
        """
        returns = np.atleast_2d(np.asarray(monthly_returns, dtype=float))
        n_paths, periods = returns.shape
        if periods != self.periods:
            raise ValueError(
                f"Return matrix has {periods} periods, cash flow schedule has {self.periods}"
            )

        balances = np.empty((n_paths, periods + 1))
        balances[:, 0] = initial_balances
        for t in range(periods):
            np.maximum(balances[:, t] * (1.0 + returns[:, t]) + self.cash_flows[t], 0.0,
                       out=balances[:, t + 1])
        return balances

    def simulate_path(self, initial_balance: float, rng: np.random.Generator,
                      generator: NormalReturnGenerator) -> np.ndarray:
        """Simulate one trajectory with returns drawn from ``rng``.

        Returns:
            Array of ``periods + 1`` balances, starting with ``initial_balance``
        """
        returns = generator.generate_monthly_returns(rng, self.periods)
        return self.simulate(initial_balance, returns[np.newaxis, :])[0]


def depletion_months(balances: np.ndarray) -> np.ndarray:
    """First period index at which each path's balance hits zero.

    Paths that start at zero are not counted as depleted at period 0; the
    scan begins at period 1.

    Args:
        balances: (paths x periods+1) balance matrix

    Returns:
        Integer array, one entry per path, with -1 for paths never depleted
    """
    depleted = balances[:, 1:] <= 0
    first = np.argmax(depleted, axis=1) + 1
    return np.where(depleted.any(axis=1), first, -1)
