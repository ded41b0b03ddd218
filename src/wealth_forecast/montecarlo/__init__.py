# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Monte Carlo simulation module for probabilistic wealth projections.

This module runs ensembles of monthly balance paths under a discrete
geometric Brownian motion return model and summarizes them into percentile
bands and success probabilities.
"""

from .config import SimulationConfig, DEFAULT_ITERATIONS
from .market_assumptions import (
    MarketAssumptions, AssetClassAssumptions, PortfolioAssumptions,
    RecommendedAllocation, recommended_allocation,
)
from .return_generator import NormalReturnGenerator
from .path_simulator import PathSimulator, cash_flow_schedule
from .simulator import MonteCarloEngine, ExecutionMode, Ensemble
from .results import SimulationResult, PeriodSnapshot

__all__ = [
    'SimulationConfig',
    'DEFAULT_ITERATIONS',
    'MarketAssumptions',
    'AssetClassAssumptions',
    'PortfolioAssumptions',
    'RecommendedAllocation',
    'recommended_allocation',
    'NormalReturnGenerator',
    'PathSimulator',
    'cash_flow_schedule',
    'MonteCarloEngine',
    'ExecutionMode',
    'Ensemble',
    'SimulationResult',
    'PeriodSnapshot',
]
