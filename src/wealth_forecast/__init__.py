# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Wealth Forecast

Stochastic projections of household wealth: Monte Carlo balance paths,
goal probabilities, paired accumulation/withdrawal retirement runs and
historical-style market shock stress tests.

Example usage:
    from wealth_forecast import SimulationConfig, run_monte_carlo

    config = SimulationConfig(initial_balance=10_000, monthly_contribution=500,
                              periods=120, expected_return=0.07, volatility=0.15,
                              seed=42)
    result = run_monte_carlo(config)
    print(result.median, result.p10, result.p90)
    df = result.get_percentile_df(yearly=True)
"""

from .__meta__ import __version__

# Errors
from .exceptions import ForecastError, ConfigurationError, ComputationError, SimulationTimeoutError

# Statistics
from . import stats
from .stats import SummaryStatistics

# Monte Carlo
from .montecarlo import (
    SimulationConfig, SimulationResult, PeriodSnapshot, MonteCarloEngine, ExecutionMode,
    MarketAssumptions, AssetClassAssumptions, PortfolioAssumptions, RecommendedAllocation,
    recommended_allocation,
)

# Planning
from .planning import (
    GoalProbabilityCalculator, GoalProbabilityResult, RetirementSimulator, RetirementResult,
    RetirementState, WithdrawalParameters, ScenarioStressTester, ScenarioComparisonResult,
    Scenario, MarketShock, ShockKind, ShockDirection, ImpactSeverity, SCENARIOS,
)

# Entry points
from .api import run_monte_carlo, calculate_goal_probability, simulate_retirement, compare_scenario

__all__ = [
    '__version__',
    'ForecastError',
    'ConfigurationError',
    'ComputationError',
    'SimulationTimeoutError',
    'stats',
    'SummaryStatistics',
    'SimulationConfig',
    'SimulationResult',
    'PeriodSnapshot',
    'MonteCarloEngine',
    'ExecutionMode',
    'MarketAssumptions',
    'AssetClassAssumptions',
    'PortfolioAssumptions',
    'RecommendedAllocation',
    'recommended_allocation',
    'GoalProbabilityCalculator',
    'GoalProbabilityResult',
    'RetirementSimulator',
    'RetirementResult',
    'RetirementState',
    'WithdrawalParameters',
    'ScenarioStressTester',
    'ScenarioComparisonResult',
    'Scenario',
    'MarketShock',
    'ShockKind',
    'ShockDirection',
    'ImpactSeverity',
    'SCENARIOS',
    'run_monte_carlo',
    'calculate_goal_probability',
    'simulate_retirement',
    'compare_scenario',
]
