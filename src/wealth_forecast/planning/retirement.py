# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Two-phase retirement simulation.

The accumulation phase runs from the current age to the retirement age with the
caller's contribution. The withdrawal phase then runs from retirement to life
expectancy with a negative cash flow covering expenses not met by external
income.

The phases are paired: iteration N of the withdrawal run starts from the final
balance of iteration N of the accumulation run, so a strong or weak
accumulation path carries into the same iteration's retirement.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

import numpy as np

from .. import stats
from ..exceptions import ConfigurationError
from ..montecarlo.config import DEFAULT_INFLATION_RATE, SimulationConfig
from ..montecarlo.path_simulator import PathSimulator, cash_flow_schedule, depletion_months
from ..montecarlo.results import SimulationResult
from ..montecarlo.simulator import MonteCarloEngine
from ..stats import SummaryStatistics

logger = logging.getLogger(__name__)

DEFAULT_SAFE_WITHDRAWAL_SUCCESS_RATE = 0.90
SAFE_WITHDRAWAL_TOLERANCE = 0.01  # Bisection stops below this bracket width
SAFE_WITHDRAWAL_MAX_STEPS = 100


class RetirementState(str, Enum):
    ACCUMULATING = "accumulating"
    WITHDRAWING = "withdrawing"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class WithdrawalParameters:
    """Inputs for the retirement timeline and withdrawal phase.

    Attributes:
        current_age: Age today
        retirement_age: Age at which contributions stop and withdrawals start
        life_expectancy: Age at which the withdrawal phase ends
        monthly_expenses: Spending need in the first month of retirement.
            Inflation, when adjusted, grows it from there on.
        external_monthly_income: Pension or social benefit income covering
            part of the expenses
        inflation_adjusted: Grow the withdrawal every month with inflation
        inflation_rate: Annual inflation used when ``inflation_adjusted``
        post_retirement_return: Annual drift after retirement. Defaults to the
            accumulation config's.
        post_retirement_volatility: Annual volatility after retirement.
            Defaults to the accumulation config's.
        safe_withdrawal_success_rate: Probability of not running out that
            the safe withdrawal must keep, in (0, 1]
    """
    current_age: float
    retirement_age: float
    life_expectancy: float
    monthly_expenses: float
    external_monthly_income: float = 0.0
    inflation_adjusted: bool = False
    inflation_rate: float = DEFAULT_INFLATION_RATE
    post_retirement_return: Optional[float] = None
    post_retirement_volatility: Optional[float] = None
    safe_withdrawal_success_rate: float = DEFAULT_SAFE_WITHDRAWAL_SUCCESS_RATE

    def __post_init__(self):
        if self.current_age < 0:
            raise ConfigurationError('current_age', "must_be_non_negative")
        if self.retirement_age <= self.current_age:
            raise ConfigurationError('retirement_age', "must_exceed_current_age",
                                     f"Retirement age ({self.retirement_age}) must be after "
                                     f"current age ({self.current_age})")
        if self.life_expectancy <= self.retirement_age:
            raise ConfigurationError('life_expectancy', "must_exceed_retirement_age",
                                     f"Life expectancy ({self.life_expectancy}) must be after "
                                     f"retirement age ({self.retirement_age})")
        if self.months_to_retirement < 1:
            raise ConfigurationError('retirement_age', "less_than_one_month_away")
        if self.months_in_retirement < 1:
            raise ConfigurationError('life_expectancy', "less_than_one_month_after_retirement")
        if self.monthly_expenses < 0:
            raise ConfigurationError('monthly_expenses', "must_be_non_negative")
        if self.external_monthly_income < 0:
            raise ConfigurationError('external_monthly_income', "must_be_non_negative")
        if self.inflation_rate <= -1:
            raise ConfigurationError('inflation_rate', "must_exceed_minus_one")
        if self.post_retirement_volatility is not None and self.post_retirement_volatility < 0:
            raise ConfigurationError('post_retirement_volatility', "must_be_non_negative")
        if self.post_retirement_return is not None and self.post_retirement_return <= -1:
            raise ConfigurationError('post_retirement_return', "must_exceed_minus_one")
        if not 0 < self.safe_withdrawal_success_rate <= 1:
            raise ConfigurationError('safe_withdrawal_success_rate', "must_be_in_unit_interval")

    @property
    def months_to_retirement(self) -> int:
        return int(round((self.retirement_age - self.current_age) * stats.MONTHS_PER_YEAR))

    @property
    def months_in_retirement(self) -> int:
        return int(round((self.life_expectancy - self.retirement_age) * stats.MONTHS_PER_YEAR))

    @property
    def net_monthly_need(self) -> float:
        """Monthly withdrawal after external income, never negative."""
        return max(0.0, self.monthly_expenses - self.external_monthly_income)


@dataclass(frozen=True)
class AccumulationPhase:
    years_to_retirement: float
    months_to_retirement: int
    balance_at_retirement: SummaryStatistics
    total_contributions: float
    simulation: SimulationResult = field(repr=False)


@dataclass(frozen=True)
class WithdrawalPhase:
    years_in_retirement: float
    months_in_retirement: int
    probability_of_not_running_out: float
    median_months_until_depletion: Optional[float]
    median_years_funds_last: float
    safe_monthly_withdrawal: float
    net_monthly_need: float
    balance_at_life_expectancy: SummaryStatistics
    simulation: SimulationResult = field(repr=False)


@dataclass(frozen=True)
class RetirementResult:
    """Outcome of a paired accumulation and withdrawal simulation.

    Attributes:
        success_by_age: Share of iterations still funded at each whole
            birthday after retirement
    """
    parameters: WithdrawalParameters
    accumulation: AccumulationPhase
    withdrawal: WithdrawalPhase
    success_by_age: Dict[float, float]
    state: RetirementState = RetirementState.TERMINAL

    @property
    def probability_of_success(self) -> float:
        return self.withdrawal.probability_of_not_running_out


class RetirementSimulator:
    """Runs the accumulation and withdrawal phases of a retirement plan.

    Example:
        >>> params = WithdrawalParameters(current_age=35, retirement_age=65,
        ...                               life_expectancy=90, monthly_expenses=5_000,
        ...                               external_monthly_income=2_000)
        >>> config = SimulationConfig(50_000, 1_000, periods=1, seed=1)
        >>> result = RetirementSimulator().simulate(config, params)
        >>> print(f"{result.probability_of_success:.0%}")
    """

    def __init__(self, engine: Optional[MonteCarloEngine] = None):
        self.engine = engine or MonteCarloEngine()

    def simulate(self, config: SimulationConfig,
                 params: WithdrawalParameters) -> RetirementResult:
        """Simulate accumulation to retirement, then withdrawals to life expectancy.

        Args:
            config: Accumulation configuration. Its ``periods`` is replaced by
                the months between current and retirement age.
            params: Retirement timeline and withdrawal inputs

        Returns:
            RetirementResult in the terminal state
        """
        state = RetirementState.ACCUMULATING
        logger.info("Retirement simulation: %s (age %s -> %s)", state.value,
                    params.current_age, params.retirement_age)

        root = np.random.SeedSequence(config.seed)
        accumulation_seq, withdrawal_seq = root.spawn(2)

        accumulation_config = config.with_overrides(periods=params.months_to_retirement)
        accumulation_run = self.engine.run_ensemble(accumulation_config,
                                                    seed_sequence=accumulation_seq)
        accumulation_result = SimulationResult.from_balances(accumulation_config,
                                                             accumulation_run.balances)
        retirement_balances = accumulation_run.final_balances

        state = RetirementState.WITHDRAWING
        logger.info("Retirement simulation: %s (age %s -> %s)", state.value,
                    params.retirement_age, params.life_expectancy)

        withdrawal_config = self._withdrawal_config(accumulation_config, params,
                                                    float(np.median(retirement_balances)))
        withdrawal_run = self.engine.run_ensemble(withdrawal_config,
                                                  initial_balances=retirement_balances,
                                                  seed_sequence=withdrawal_seq)
        withdrawal_result = SimulationResult.from_balances(withdrawal_config,
                                                           withdrawal_run.balances)

        depleted_at = depletion_months(withdrawal_run.balances)
        periods = withdrawal_config.periods
        depleted = depleted_at[depleted_at >= 0]
        months_lasted = np.where(depleted_at >= 0, depleted_at, periods)

        safe_withdrawal = safe_monthly_withdrawal(
            retirement_balances, withdrawal_run.returns, params.safe_withdrawal_success_rate,
            inflation_rate=withdrawal_config.inflation_rate,
            inflation_adjusted=withdrawal_config.inflation_adjusted,
        )

        state = RetirementState.TERMINAL
        result = RetirementResult(
            parameters=params,
            accumulation=AccumulationPhase(
                years_to_retirement=params.retirement_age - params.current_age,
                months_to_retirement=accumulation_config.periods,
                balance_at_retirement=accumulation_result.summary,
                total_contributions=float(np.sum(
                    PathSimulator.from_config(accumulation_config).cash_flows)),
                simulation=accumulation_result,
            ),
            withdrawal=WithdrawalPhase(
                years_in_retirement=params.life_expectancy - params.retirement_age,
                months_in_retirement=periods,
                probability_of_not_running_out=float(np.mean(depleted_at < 0)),
                median_months_until_depletion=(float(np.median(depleted))
                                               if depleted.size else None),
                median_years_funds_last=float(np.median(months_lasted)) / stats.MONTHS_PER_YEAR,
                safe_monthly_withdrawal=safe_withdrawal,
                net_monthly_need=params.net_monthly_need,
                balance_at_life_expectancy=withdrawal_result.summary,
                simulation=withdrawal_result,
            ),
            success_by_age=_success_by_age(params, depleted_at, periods),
            state=state,
        )
        logger.info("Retirement simulation: %s, %.1f%% chance of not running out",
                    state.value, result.probability_of_success * 100)
        return result

    @staticmethod
    def _withdrawal_config(accumulation_config: SimulationConfig,
                           params: WithdrawalParameters,
                           typical_start: float) -> SimulationConfig:
        expected_return = (accumulation_config.expected_return
                           if params.post_retirement_return is None
                           else params.post_retirement_return)
        volatility = (accumulation_config.volatility
                      if params.post_retirement_volatility is None
                      else params.post_retirement_volatility)
        return accumulation_config.with_overrides(
            initial_balance=typical_start,
            monthly_contribution=-params.net_monthly_need,
            periods=params.months_in_retirement,
            expected_return=expected_return,
            volatility=volatility,
            inflation_rate=params.inflation_rate,
            inflation_adjusted=params.inflation_adjusted,
        )


def _success_by_age(params: WithdrawalParameters, depleted_at: np.ndarray,
                    periods: int) -> Dict[float, float]:
    success = {}
    for year in range(1, periods // stats.MONTHS_PER_YEAR + 1):
        month = year * stats.MONTHS_PER_YEAR
        funded = (depleted_at < 0) | (depleted_at > month)
        success[params.retirement_age + year] = float(np.mean(funded))
    return success


def withdrawal_success_rate(start_balances: np.ndarray, returns: np.ndarray,
                            monthly_withdrawal: float, inflation_rate: float = 0.0,
                            inflation_adjusted: bool = False) -> float:
    """Share of paths never depleted when withdrawing ``monthly_withdrawal``.

    Args:
        start_balances: One starting balance per path
        returns: (paths x periods) monthly returns to replay
        monthly_withdrawal: First-month withdrawal (positive amount)
    """
    periods = returns.shape[1]
    path_sim = PathSimulator(cash_flow_schedule(-monthly_withdrawal, periods,
                                                inflation_rate, inflation_adjusted))
    balances = path_sim.simulate(start_balances, returns)
    return float(np.mean(depletion_months(balances) < 0))


def safe_monthly_withdrawal(start_balances: np.ndarray, returns: np.ndarray,
                            success_rate: float = DEFAULT_SAFE_WITHDRAWAL_SUCCESS_RATE,
                            inflation_rate: float = 0.0,
                            inflation_adjusted: bool = False) -> float:
    """Largest monthly withdrawal keeping the success rate at or above ``success_rate``.

    Replays the given returns for every candidate amount, so the success rate
    is monotone in the withdrawal and bisection converges.

    Returns:
        Withdrawal amount, or 0.0 when even withdrawing nothing misses the rate
    """
    def rate(amount: float) -> float:
        return withdrawal_success_rate(start_balances, returns, amount,
                                       inflation_rate, inflation_adjusted)

    if rate(0.0) < success_rate:
        return 0.0

    periods = returns.shape[1]
    low = 0.0
    high = max(float(np.max(start_balances)) / periods, 1.0)
    while rate(high) >= success_rate:
        low, high = high, high * 2
        if math.isinf(high):
            raise ConfigurationError('start_balances', "must_be_finite_number")

    for _ in range(SAFE_WITHDRAWAL_MAX_STEPS):
        if high - low <= SAFE_WITHDRAWAL_TOLERANCE:
            break
        mid = (low + high) / 2
        if rate(mid) >= success_rate:
            low = mid
        else:
            high = mid
    return low
