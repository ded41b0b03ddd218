# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Market assumptions for asset classes.

This module holds return, volatility and correlation assumptions for asset
classes and turns a portfolio allocation into the single annual drift and
volatility pair the Monte Carlo engine consumes.
"""

import math
from dataclasses import dataclass
from typing import Dict, List

import numpy as np

from ..exceptions import ConfigurationError
from .config import SimulationConfig


@dataclass
class AssetClassAssumptions:
    """Return and volatility assumptions for a single asset class.

    Attributes:
        name: Asset class identifier (e.g., "stocks")
        expected_return: Annual expected return as decimal (e.g., 0.09 for 9%)
        volatility: Annual standard deviation as decimal (e.g., 0.18 for 18%)
    """
    name: str
    expected_return: float
    volatility: float

    def __post_init__(self):
        if self.volatility < 0:
            raise ConfigurationError('volatility', "must_be_non_negative",
                                     f"Volatility cannot be negative: {self.volatility}")


@dataclass(frozen=True)
class PortfolioAssumptions:
    """Annual drift and volatility of a blended portfolio."""
    expected_return: float
    volatility: float

    def apply(self, config: SimulationConfig) -> SimulationConfig:
        """Copy of ``config`` using this portfolio's return and volatility."""
        return config.with_overrides(expected_return=self.expected_return,
                                     volatility=self.volatility)


class MarketAssumptions:
    """Return, volatility and correlation assumptions for asset classes.

    Example:
        >>> market = MarketAssumptions.create_default()
        >>> portfolio = market.portfolio_assumptions({"stocks": 0.6, "bonds": 0.4})
        >>> print(f"{portfolio.expected_return:.2%}")
        7.00%
    """

    def __init__(self,
                 asset_classes: Dict[str, AssetClassAssumptions],
                 correlation_matrix: np.ndarray,
                 asset_class_order: List[str]):
        """Initialize market assumptions.

        Args:
            asset_classes: Dict mapping asset class name to its assumptions
            correlation_matrix: NxN correlation matrix for asset classes
            asset_class_order: Order of asset classes in the correlation matrix

        Raises:
            ConfigurationError: If matrix dimensions don't match or asset
                classes are missing
        """
        self.asset_classes = asset_classes
        self.correlation_matrix = np.asarray(correlation_matrix, dtype=float)
        self.asset_class_order = asset_class_order
        self._validate()
        self._covariance_matrix = self._compute_covariance_matrix()

    def _validate(self):
        n = len(self.asset_class_order)

        if self.correlation_matrix.shape != (n, n):
            raise ConfigurationError(
                'correlation_matrix', "shape_mismatch",
                f"Correlation matrix shape {self.correlation_matrix.shape} "
                f"doesn't match {n} asset classes"
            )

        missing = [name for name in self.asset_class_order
                   if name not in self.asset_classes]
        if missing:
            raise ConfigurationError('asset_classes', "missing",
                                     f"Asset classes missing from assumptions: {missing}")

        if not np.allclose(self.correlation_matrix, self.correlation_matrix.T):
            raise ConfigurationError('correlation_matrix', "must_be_symmetric")

        if not np.allclose(np.diag(self.correlation_matrix), 1.0):
            raise ConfigurationError('correlation_matrix', "diagonal_must_be_one")

    def _compute_covariance_matrix(self) -> np.ndarray:
        """Cov = diag(sigma) @ Corr @ diag(sigma)"""
        vol_diag = np.diag(self.get_volatilities_vector())
        return vol_diag @ self.correlation_matrix @ vol_diag

    @property
    def covariance_matrix(self) -> np.ndarray:
        return self._covariance_matrix

    def get_returns_vector(self) -> np.ndarray:
        """Get expected returns as numpy array in asset_class_order."""
        return np.array([self.asset_classes[name].expected_return
                         for name in self.asset_class_order])

    def get_volatilities_vector(self) -> np.ndarray:
        """Get volatilities as numpy array in asset_class_order."""
        return np.array([self.asset_classes[name].volatility
                         for name in self.asset_class_order])

    def portfolio_assumptions(self, allocation: Dict[str, float]) -> PortfolioAssumptions:
        """Blend asset classes into one drift/volatility pair.

        Args:
            allocation: Dict mapping asset class name to weight. Weights are
                normalized to sum to 1.

        Returns:
            PortfolioAssumptions with E[R] = w.mu and sigma = sqrt(w' Cov w)

        Raises:
            ConfigurationError: On unknown asset classes, negative weights or an
                all-zero allocation
        """
        unknown = [name for name in allocation if name not in self.asset_classes]
        if unknown:
            raise ConfigurationError('allocation', "unknown_asset_class",
                                     f"Unknown asset classes: {unknown}")
        weights = np.array([allocation.get(name, 0.0) for name in self.asset_class_order],
                           dtype=float)
        if np.any(weights < 0):
            raise ConfigurationError('allocation', "must_be_non_negative")
        total = weights.sum()
        if total <= 0:
            raise ConfigurationError('allocation', "must_be_positive")
        weights = weights / total

        expected_return = float(weights @ self.get_returns_vector())
        variance = float(weights @ self._covariance_matrix @ weights)
        return PortfolioAssumptions(expected_return, math.sqrt(max(variance, 0.0)))

    @classmethod
    def create_default(cls) -> 'MarketAssumptions':
        """Create default assumptions for a stocks / bonds / cash mix."""
        asset_classes = {
            "stocks": AssetClassAssumptions("stocks", 0.09, 0.18),
            "bonds": AssetClassAssumptions("bonds", 0.04, 0.06),
            "cash": AssetClassAssumptions("cash", 0.02, 0.01),
        }
        order = list(asset_classes.keys())

        # Order: stocks, bonds, cash
        corr = np.array([
            [1.00, 0.10, 0.00],
            [0.10, 1.00, 0.30],
            [0.00, 0.30, 1.00],
        ])

        return cls(asset_classes, corr, order)


# ===== RISK PROFILES =====
# risk tolerance -> (base stock %, expected return, volatility)
RISK_PROFILES = {
    'conservative': (40, 0.05, 0.10),
    'moderate': (60, 0.07, 0.15),
    'aggressive': (80, 0.09, 0.20),
}
MAX_STOCK_PERCENT = 95
MIN_BOND_PERCENT = 5


@dataclass(frozen=True)
class RecommendedAllocation:
    """Suggested stock/bond/cash split (whole percentages) with its assumptions."""
    stocks: int
    bonds: int
    cash: int
    expected_return: float
    volatility: float

    @property
    def portfolio(self) -> PortfolioAssumptions:
        return PortfolioAssumptions(self.expected_return, self.volatility)

    def as_weights(self) -> Dict[str, float]:
        return {'stocks': self.stocks / 100, 'bonds': self.bonds / 100, 'cash': self.cash / 100}


def recommended_allocation(risk_tolerance: str, years_to_retirement: float) -> RecommendedAllocation:
    """Recommend an allocation from risk tolerance and time horizon.

    Longer horizons tilt toward stocks: two points per year beyond ten years,
    up to twenty points, capped at 95% stocks.

    Raises:
        ConfigurationError: If ``risk_tolerance`` is not a known profile
    """
    if risk_tolerance not in RISK_PROFILES:
        raise ConfigurationError('risk_tolerance', "unknown_value",
                                 f"Unknown risk tolerance '{risk_tolerance}'. "
                                 f"Choose from {sorted(RISK_PROFILES)}")
    base_stocks, expected_return, volatility = RISK_PROFILES[risk_tolerance]
    adjustment = max(0, min(20, (years_to_retirement - 10) * 2))
    stocks = int(min(MAX_STOCK_PERCENT, base_stocks + adjustment))
    bonds = max(MIN_BOND_PERCENT, 100 - stocks - 5)
    return RecommendedAllocation(stocks=stocks, bonds=bonds, cash=100 - stocks - bonds,
                                 expected_return=expected_return, volatility=volatility)
