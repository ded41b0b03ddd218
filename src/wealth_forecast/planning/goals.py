# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Goal probability calculator.

Answers "will I reach this amount by this date?" by running the Monte Carlo
engine up to the target date and measuring the share of iterations that end
at or above the target.
"""

import datetime
import logging
import math
import numbers
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np
from dateutil.relativedelta import relativedelta
from scipy.optimize import brentq

from .. import stats
from ..exceptions import ConfigurationError
from ..montecarlo.config import SimulationConfig
from ..montecarlo.path_simulator import PathSimulator, cash_flow_schedule
from ..montecarlo.results import SimulationResult
from ..montecarlo.simulator import MonteCarloEngine

logger = logging.getLogger(__name__)

RECOMMENDATION_METHOD = "median_trajectory_annuity"

# ===== CONTRIBUTION SEARCH =====
SEARCH_ITERATIONS = 2_000  # Iterations used while searching for a contribution
SEARCH_TOLERANCE = 1.0  # Stop once the bracket is narrower than this (currency units)
SEARCH_MAX_STEPS = 60
IMPLIED_GROWTH_BRACKET = (-0.5, 0.5)  # Monthly growth rates searched by brentq

DateLike = Union[datetime.date, datetime.datetime]


def months_between(start: DateLike, end: DateLike) -> int:
    """Whole calendar months from ``start`` to ``end`` (negative if end is earlier)."""
    delta = relativedelta(_as_date(end), _as_date(start))
    return delta.years * 12 + delta.months


def _as_date(value: DateLike) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    return value


@dataclass(frozen=True)
class TimelinePoint:
    month: int
    median: float
    p10: float
    p90: float


@dataclass(frozen=True, eq=False)
class GoalProbabilityResult:
    """Outcome of a goal probability calculation.

    ``recommended_monthly_contribution`` is a deterministic approximation: the
    level contribution that takes today's balance to the target when it grows
    at the rate implied by the median outcome. It is not calibrated to any
    probability; see ``GoalProbabilityCalculator.required_contribution_for_probability``
    for that.
    """
    target_amount: float
    target_date: datetime.date
    months_remaining: int
    probability_of_success: float
    median_outcome: float
    expected_shortfall: float
    confidence_low: float
    confidence_high: float
    recommended_monthly_contribution: float
    mean_shortfall_when_missed: float
    current_progress: float
    projected_completion_month: Optional[int]
    projected_completion_date: Optional[datetime.date]
    timeline: Tuple[TimelinePoint, ...]
    simulation: SimulationResult
    recommendation_method: str = RECOMMENDATION_METHOD
    recommendation_is_probability_calibrated: bool = False

    @property
    def on_track(self) -> bool:
        return self.expected_shortfall == 0


class GoalProbabilityCalculator:
    """Estimates the probability of reaching a savings target by a date.

    Example:
        >>> calc = GoalProbabilityCalculator()
        >>> config = SimulationConfig(25_000, 1_000, periods=1, seed=7)
        >>> result = calc.calculate(config, 100_000, date(2031, 1, 1),
        ...                         start_date=date(2026, 1, 1))
        >>> print(f"{result.probability_of_success:.0%}")
    """

    def __init__(self, engine: Optional[MonteCarloEngine] = None):
        self.engine = engine or MonteCarloEngine()

    def calculate(self, config: SimulationConfig, target_amount: float,
                  target_date: DateLike,
                  start_date: Optional[DateLike] = None) -> GoalProbabilityResult:
        """Run the goal simulation.

        The config's ``periods`` is replaced by the number of whole months
        between ``start_date`` and ``target_date``.

        Args:
            config: Simulation configuration (initial balance, contribution,
                market assumptions, iterations, seed)
            target_amount: Amount to reach
            target_date: Date by which to reach it
            start_date: Projection start. Defaults to today.

        Raises:
            ConfigurationError: If the target is not positive or the target
                date is not after the start date
        """
        _check_target(target_amount)
        start = _as_date(start_date) if start_date is not None else datetime.date.today()
        target_day = _as_date(target_date)
        months = months_between(start, target_day)
        if months <= 0:
            raise ConfigurationError('target_date', "must_be_after_start_date",
                                     f"Target date {target_day} must be at least one "
                                     f"month after {start}")

        goal_config = config.with_overrides(periods=months)
        simulation = self.engine.run(goal_config)
        finals = simulation.final_balances
        median_outcome = simulation.median

        missed = finals[finals < target_amount]
        mean_shortfall = float(np.mean(target_amount - missed)) if missed.size else 0.0

        completion_month = next(
            (snapshot.month for snapshot in simulation.time_series
             if snapshot.median >= target_amount),
            None,
        )

        result = GoalProbabilityResult(
            target_amount=target_amount,
            target_date=target_day,
            months_remaining=months,
            probability_of_success=simulation.probability_at_least(target_amount),
            median_outcome=median_outcome,
            expected_shortfall=max(0.0, target_amount - median_outcome),
            confidence_low=simulation.p10,
            confidence_high=simulation.p90,
            recommended_monthly_contribution=recommended_contribution(
                goal_config, target_amount, median_outcome),
            mean_shortfall_when_missed=mean_shortfall,
            current_progress=min(1.0, goal_config.initial_balance / target_amount),
            projected_completion_month=completion_month,
            projected_completion_date=(None if completion_month is None
                                       else start + relativedelta(months=completion_month)),
            timeline=tuple(TimelinePoint(s.month, s.median, s.p10, s.p90)
                           for s in simulation.time_series),
            simulation=simulation,
        )
        logger.info("Goal of %.2f in %d months: %.1f%% probability", target_amount, months,
                    result.probability_of_success * 100)
        return result

    def required_contribution_for_probability(self, config: SimulationConfig,
                                              target_amount: float,
                                              desired_probability: float = 0.75,
                                              iterations: Optional[int] = None) -> float:
        """Smallest monthly contribution reaching ``target_amount`` with the desired probability.

        Returns are drawn once and every candidate contribution is evaluated
        against the same draws, so the success probability is monotone in the
        contribution and bisection is exact up to ``SEARCH_TOLERANCE``.

        Args:
            config: Simulation configuration; ``periods`` is the horizon
            target_amount: Amount to reach
            desired_probability: Required probability of success in (0, 1]
            iterations: Iterations for the search. Defaults to the smaller of
                the config's iterations and ``SEARCH_ITERATIONS``.

        Returns:
            Monthly contribution (>= 0)
        """
        _check_target(target_amount)
        if not 0 < desired_probability <= 1:
            raise ConfigurationError('desired_probability', "must_be_in_unit_interval")

        search_config = config.with_overrides(
            iterations=iterations or min(config.iterations, SEARCH_ITERATIONS))
        returns = self.engine.run_ensemble(search_config).returns

        def probability(contribution: float) -> float:
            path_sim = PathSimulator(cash_flow_schedule(
                contribution, search_config.periods,
                search_config.inflation_rate, search_config.inflation_adjusted))
            finals = path_sim.simulate(search_config.initial_balance, returns)[:, -1]
            return float(np.mean(finals >= target_amount))

        if probability(0.0) >= desired_probability:
            return 0.0

        low, high = 0.0, max(target_amount / search_config.periods, SEARCH_TOLERANCE)
        steps = 0
        while probability(high) < desired_probability:
            low, high = high, high * 2
            steps += 1
            if steps > SEARCH_MAX_STEPS:
                raise ConfigurationError('target_amount', "unreachable",
                                         "No contribution reaches the desired probability")

        for _ in range(SEARCH_MAX_STEPS):
            if high - low <= SEARCH_TOLERANCE:
                break
            mid = (low + high) / 2
            if probability(mid) >= desired_probability:
                high = mid
            else:
                low = mid
        return high


def _check_target(target_amount: float):
    if not isinstance(target_amount, numbers.Real) or not math.isfinite(target_amount) \
            or target_amount <= 0:
        raise ConfigurationError('target_amount', "must_be_positive",
                                 f"Target amount must be a positive number, got {target_amount}")


def implied_monthly_growth(config: SimulationConfig, outcome: float) -> float:
    """Monthly growth rate at which the deterministic path ends at ``outcome``.

    The deterministic path starts at the config's initial balance and adds
    its monthly contribution at the end of every period. Falls back to the
    config's monthly drift when no rate in the search bracket fits.
    """
    drift = stats.annual_to_monthly_return(config.expected_return)
    if config.initial_balance == 0 and config.monthly_contribution == 0:
        return drift

    def gap(rate: float) -> float:
        return (stats.future_value(config.initial_balance, rate, config.periods)
                + stats.future_value_of_annuity(config.monthly_contribution, rate,
                                                config.periods)
                - outcome)

    low, high = IMPLIED_GROWTH_BRACKET
    if gap(low) * gap(high) > 0:
        logger.debug("No implied growth rate in bracket; using drift %.6f", drift)
        return drift
    return brentq(gap, low, high)


def recommended_contribution(config: SimulationConfig, target_amount: float,
                             median_outcome: float) -> float:
    """Level contribution reaching the target at the median trajectory's growth rate."""
    growth = implied_monthly_growth(config, median_outcome)
    payment = stats.annuity_payment(growth, config.periods,
                                    present_value=config.initial_balance,
                                    future_value=target_amount)
    return max(0.0, payment)
