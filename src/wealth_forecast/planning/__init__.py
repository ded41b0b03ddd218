# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Planning questions answered on top of the Monte Carlo engine: goal
probabilities, paired retirement phases and market shock stress tests.
"""

from .goals import GoalProbabilityCalculator, GoalProbabilityResult, TimelinePoint, months_between
from .retirement import (
    RetirementSimulator, RetirementResult, RetirementState, WithdrawalParameters,
    AccumulationPhase, WithdrawalPhase, safe_monthly_withdrawal,
)
from .scenarios import (
    ScenarioStressTester, ScenarioComparisonResult, Scenario, MarketShock, ShockKind,
    ShockDirection, ImpactSeverity, SCENARIOS, MATERIAL_IMPACT_THRESHOLD,
    RECOVERY_TOLERANCE, get_scenario,
)

__all__ = [
    'GoalProbabilityCalculator',
    'GoalProbabilityResult',
    'TimelinePoint',
    'months_between',
    'RetirementSimulator',
    'RetirementResult',
    'RetirementState',
    'WithdrawalParameters',
    'AccumulationPhase',
    'WithdrawalPhase',
    'safe_monthly_withdrawal',
    'ScenarioStressTester',
    'ScenarioComparisonResult',
    'Scenario',
    'MarketShock',
    'ShockKind',
    'ShockDirection',
    'ImpactSeverity',
    'SCENARIOS',
    'MATERIAL_IMPACT_THRESHOLD',
    'RECOVERY_TOLERANCE',
    'get_scenario',
]
