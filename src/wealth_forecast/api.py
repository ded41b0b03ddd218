# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Entry points for the forecasting engine.

Each function takes a configuration object and returns an immutable result.
Pass an ``engine`` to control execution mode, pool size and timeouts; the
default engine runs batches on a thread pool with no timeout.
"""

from typing import Optional

from .montecarlo.config import SimulationConfig
from .montecarlo.results import SimulationResult
from .montecarlo.simulator import MonteCarloEngine
from .planning.goals import DateLike, GoalProbabilityCalculator, GoalProbabilityResult
from .planning.retirement import RetirementResult, RetirementSimulator, WithdrawalParameters
from .planning.scenarios import ScenarioComparisonResult, ScenarioStressTester


def run_monte_carlo(config: SimulationConfig,
                    engine: Optional[MonteCarloEngine] = None) -> SimulationResult:
    return (engine or MonteCarloEngine()).run(config)


def calculate_goal_probability(config: SimulationConfig, target_amount: float,
                               target_date: DateLike,
                               start_date: Optional[DateLike] = None,
                               engine: Optional[MonteCarloEngine] = None) -> GoalProbabilityResult:
    """Probability of reaching ``target_amount`` by ``target_date``.

    The horizon is the number of whole months from ``start_date`` (default:
    today) to ``target_date``; ``config.periods`` is ignored.
    """
    return GoalProbabilityCalculator(engine).calculate(config, target_amount, target_date,
                                                       start_date=start_date)


def simulate_retirement(config: SimulationConfig, params: WithdrawalParameters,
                        engine: Optional[MonteCarloEngine] = None) -> RetirementResult:
    """Paired accumulation and withdrawal simulation."""
    return RetirementSimulator(engine).simulate(config, params)


def compare_scenario(config: SimulationConfig, scenario: str,
                     engine: Optional[MonteCarloEngine] = None) -> ScenarioComparisonResult:
    """Compare ``config`` with and without the named canonical scenario.

    Raises:
        ConfigurationError: If ``scenario`` is not a canonical scenario name
    """
    return ScenarioStressTester(engine).compare_scenario(config, scenario)
