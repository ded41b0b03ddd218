# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Monthly return generator for Monte Carlo paths.

Returns follow a discrete geometric Brownian motion approximation:
``r = monthly_drift + monthly_volatility * Z`` with ``Z ~ N(0, 1)``. Random
numbers always come from a caller-supplied ``numpy.random.Generator``; this
module never touches global random state.
"""

from typing import Optional

import numpy as np

from .. import stats


class NormalReturnGenerator:
    """Generates monthly returns from annual drift and volatility.

    Annual inputs are converted with compounding for the drift and square-root
    of time scaling for the volatility.

    Example:
        >>> gen = NormalReturnGenerator(0.07, 0.15)
        >>> rng = np.random.default_rng(42)
        >>> returns = gen.generate_monthly_returns(rng, 12)
        >>> returns.shape
        (12,)
    """

    def __init__(self, expected_return: float, volatility: float,
                 return_override: Optional[np.ndarray] = None):
        """Initialize the return generator.

        Args:
            expected_return: Annual expected return as decimal (e.g. 0.07)
            volatility: Annual volatility as decimal (e.g. 0.15)
            return_override: Optional per-period array of deterministic monthly
                returns. NaN entries keep the stochastic draw, finite entries
                replace it.
        """
        self.expected_return = expected_return
        self.volatility = volatility
        self.monthly_drift = stats.annual_to_monthly_return(expected_return)
        self.monthly_volatility = stats.annual_to_monthly_volatility(volatility)
        self.return_override = (
            None if return_override is None else np.asarray(return_override, dtype=float)
        )

    def generate_monthly_returns(self, rng: np.random.Generator, periods: int) -> np.ndarray:
        """Generate one path of monthly returns.

        The full vector of normal draws is taken even for overridden months so
        that a path's stochastic months see the same draws with or without an
        override.

        Args:
            rng: Random generator owned by the current iteration
            periods: Number of monthly returns to generate

        Returns:
            Array of ``periods`` monthly returns in decimal form
        """
        z = rng.standard_normal(periods)
        returns = self.monthly_drift + self.monthly_volatility * z
        if self.return_override is not None:
            override = self.return_override[:periods]
            mask = ~np.isnan(override)
            returns[:override.size][mask] = override[mask]
        return returns
