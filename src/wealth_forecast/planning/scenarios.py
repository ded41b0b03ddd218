# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Market shock scenarios and stress testing.

A scenario is a fixed list of deterministic market shocks. Stress testing runs
the Monte Carlo engine twice on the same configuration and root seed, once as
is and once with the shock months overridden, and compares the two.

Shock timing uses 1-based month numbers: a shock starting in month 12 replaces
the return that produces the balance at the end of month 12.

Each shock has two windows, both measured against the no-shock drift path:

* decline: every month applies ``(1 + drift)(1 + magnitude)^(1 / duration) - 1``
  so the window ends exactly ``magnitude`` away from where the drift alone
  would have taken it
* recovery: every month grows at the drift again, without volatility

A decline stays a permanent loss relative to the drift path, and a boom a
permanent gain.

Months outside every window keep their stochastic draw. Windows running past
the horizon are cut off at the horizon.
"""

import logging
import types
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Tuple, Union

import numpy as np

from .. import stats
from ..exceptions import ConfigurationError
from ..montecarlo.config import SimulationConfig
from ..montecarlo.results import SimulationResult
from ..montecarlo.simulator import MonteCarloEngine

logger = logging.getLogger(__name__)

# ===== COMPARISON THRESHOLDS =====
MATERIAL_IMPACT_THRESHOLD = 0.10  # |median change| above this is material
RECOVERY_TOLERANCE = 0.01  # Shocked median within 1% of baseline counts as recovered
SEVERITY_BANDS = (  # Upper bounds on |median change|
    (0.10, 'minimal'),
    (0.25, 'moderate'),
    (0.50, 'significant'),
)


class ShockKind(str, Enum):
    CRASH = "crash"
    RECESSION = "recession"
    CORRECTION = "correction"
    BOOM = "boom"


class ShockDirection(str, Enum):
    DECLINE = "decline"
    BOOM = "boom"


class ImpactSeverity(str, Enum):
    MINIMAL = "minimal"
    MODERATE = "moderate"
    SIGNIFICANT = "significant"
    CRITICAL = "critical"

    @classmethod
    def from_change(cls, change_percent: float) -> 'ImpactSeverity':
        magnitude = abs(change_percent)
        for upper, label in SEVERITY_BANDS:
            if magnitude < upper:
                return cls(label)
        return cls.CRITICAL


@dataclass(frozen=True)
class MarketShock:
    """A single deterministic market move.

    Attributes:
        kind: Type of shock
        magnitude: Cumulative change over the decline window (e.g. -0.30)
        start_month: First shocked month (1-based)
        duration_months: Length of the decline window
        recovery_months: Length of the recovery window that follows
    """
    kind: ShockKind
    magnitude: float
    start_month: int
    duration_months: int
    recovery_months: int = 0

    def __post_init__(self):
        if self.magnitude <= -1 or self.magnitude == 0:
            raise ConfigurationError('magnitude', "must_be_nonzero_above_minus_one")
        if self.start_month < 1:
            raise ConfigurationError('start_month', "must_be_positive")
        if self.duration_months < 1:
            raise ConfigurationError('duration_months', "must_be_positive")
        if self.recovery_months < 0:
            raise ConfigurationError('recovery_months', "must_be_non_negative")

    @property
    def decline_end_month(self) -> int:
        """Month at the end of which the decline window is complete."""
        return self.start_month + self.duration_months - 1

    @property
    def monthly_decline_factor(self) -> float:
        """Per-month growth factor relative to the drift path."""
        return (1.0 + self.magnitude) ** (1.0 / self.duration_months)

    def decline_return(self, monthly_drift: float) -> float:
        return (1.0 + monthly_drift) * self.monthly_decline_factor - 1.0

    def apply(self, override: np.ndarray, monthly_drift: float):
        """Write this shock's months into ``override`` (indexed by month - 1)."""
        periods = override.size
        first = self.start_month - 1
        decline = self.decline_return(monthly_drift)
        for offset in range(self.duration_months):
            if first + offset >= periods:
                return
            override[first + offset] = decline
        first += self.duration_months
        for step in range(self.recovery_months):
            if first + step >= periods:
                return
            override[first + step] = monthly_drift


@dataclass(frozen=True)
class Scenario:
    """Named, versioned, read-only set of market shocks."""
    key: str
    name: str
    description: str
    shocks: Tuple[MarketShock, ...]
    version: int = 1

    @property
    def peak_shock(self) -> MarketShock:
        return max(self.shocks, key=lambda shock: abs(shock.magnitude))

    @property
    def peak_change(self) -> float:
        return self.peak_shock.magnitude

    @property
    def net_change(self) -> float:
        """Cumulative change of all shocks together, relative to the drift path."""
        return float(np.prod([1.0 + shock.magnitude for shock in self.shocks])) - 1.0

    @property
    def direction(self) -> ShockDirection:
        return ShockDirection.BOOM if self.net_change > 0 else ShockDirection.DECLINE

    @property
    def decline_months(self) -> int:
        return sum(shock.duration_months for shock in self.shocks)

    @property
    def recovery_months(self) -> int:
        return sum(shock.recovery_months for shock in self.shocks)

    @property
    def decline_end_month(self) -> int:
        """End of the last decline window."""
        return max(shock.decline_end_month for shock in self.shocks)

    def return_override(self, periods: int, monthly_drift: float) -> np.ndarray:
        """Per-period monthly return overrides, NaN where returns stay stochastic.

        Shocks are applied in order, so a later shock wins where windows overlap.
        """
        override = np.full(periods, np.nan)
        for shock in self.shocks:
            shock.apply(override, monthly_drift)
        return override


def _scenario(key, name, description, *shocks) -> Scenario:
    return Scenario(key=key, name=name, description=description,
                    shocks=tuple(MarketShock(*shock) for shock in shocks))


SCENARIOS: Mapping[str, Scenario] = types.MappingProxyType({s.key: s for s in (
    _scenario('BEAR_MARKET', 'Bear Market',
              '30% decline over 6 months with 12 month recovery',
              (ShockKind.CRASH, -0.30, 12, 6, 12)),
    _scenario('GREAT_RECESSION', 'Great Recession (2008-style)',
              '50% decline over 12 months with 24 month recovery',
              (ShockKind.CRASH, -0.50, 24, 12, 24)),
    _scenario('DOT_COM_BUST', 'Dot-com Bust (2000-style)',
              '45% decline over 18 months with 36 month recovery',
              (ShockKind.CRASH, -0.45, 6, 18, 36)),
    _scenario('MILD_RECESSION', 'Mild Recession',
              '15% decline over 3 months with 6 month recovery',
              (ShockKind.RECESSION, -0.15, 18, 3, 6)),
    _scenario('MARKET_CORRECTION', 'Market Correction',
              '10% decline over 1 month with 3 month recovery',
              (ShockKind.CORRECTION, -0.10, 36, 1, 3)),
    _scenario('STAGFLATION', 'Stagflation (1970s-style)',
              'Persistent 20% decline over 24 months with slow 36 month recovery',
              (ShockKind.RECESSION, -0.20, 12, 24, 36)),
    _scenario('DOUBLE_DIP_RECESSION', 'Double-Dip Recession',
              'Two consecutive recessions with brief recovery in between',
              (ShockKind.RECESSION, -0.25, 12, 8, 12),
              (ShockKind.RECESSION, -0.20, 36, 6, 12)),
    _scenario('LOST_DECADE', 'Lost Decade (Japan 1990s-style)',
              'Prolonged stagnation with 30% decline and minimal recovery',
              (ShockKind.CRASH, -0.30, 6, 18, 60)),
    _scenario('FLASH_CRASH', 'Flash Crash',
              'Sudden 25% drop with rapid 2-month recovery',
              (ShockKind.CRASH, -0.25, 24, 1, 2)),
    _scenario('BOOM_CYCLE', 'Boom Cycle',
              '40% gain over 24 months (bull market)',
              (ShockKind.BOOM, 0.40, 12, 24, 0)),
    _scenario('TECH_BUBBLE', 'Tech Bubble',
              'Rapid 60% gain followed by 50% crash',
              (ShockKind.BOOM, 0.60, 6, 18, 0),
              (ShockKind.CRASH, -0.50, 30, 12, 24)),
    _scenario('COVID_SHOCK', 'COVID-19 Style Shock',
              '35% crash in 2 months with rapid V-shaped recovery',
              (ShockKind.CRASH, -0.35, 24, 2, 6)),
)})


def get_scenario(name: str) -> Scenario:
    """Look up a canonical scenario by key.

    Raises:
        ConfigurationError: If ``name`` is not one of the canonical scenarios
    """
    try:
        return SCENARIOS[name]
    except (KeyError, TypeError):
        raise ConfigurationError('scenario', "unknown_scenario",
                                 f"Unknown scenario '{name}'. "
                                 f"Available: {sorted(SCENARIOS)}") from None


@dataclass(frozen=True, eq=False)
class ScenarioComparisonResult:
    """Baseline and shocked runs of one scenario, with their comparison.

    Attributes:
        median_difference: Shocked minus baseline median final balance
        median_difference_percent: ``median_difference`` over the baseline
            median, as a fraction (0 when the baseline median is 0)
        p10_difference: Shocked minus baseline p10 final balance
        recovery_months: Months after the last decline window until the
            shocked median is back within tolerance of the baseline median,
            or None if that never happens within the horizon
    """
    scenario: Scenario
    baseline: SimulationResult
    shocked: SimulationResult
    median_difference: float
    median_difference_percent: float
    p10_difference: float
    p10_difference_percent: float
    recovery_months: Optional[int]
    material_impact: bool
    impact_severity: ImpactSeverity

    @property
    def recovered(self) -> bool:
        return self.recovery_months is not None

    @classmethod
    def compare(cls, scenario: Scenario, baseline: SimulationResult,
                shocked: SimulationResult) -> 'ScenarioComparisonResult':
        median_difference = shocked.median - baseline.median
        median_pct = _relative_change(shocked.median, baseline.median)
        return cls(
            scenario=scenario,
            baseline=baseline,
            shocked=shocked,
            median_difference=median_difference,
            median_difference_percent=median_pct,
            p10_difference=shocked.p10 - baseline.p10,
            p10_difference_percent=_relative_change(shocked.p10, baseline.p10),
            recovery_months=estimate_recovery_months(baseline, shocked,
                                                     scenario.decline_end_month),
            material_impact=abs(median_pct) > MATERIAL_IMPACT_THRESHOLD,
            impact_severity=ImpactSeverity.from_change(median_pct),
        )

    def summary(self) -> Dict[str, object]:
        return {
            'scenario': self.scenario.key,
            'baseline_median': self.baseline.median,
            'shocked_median': self.shocked.median,
            'median_difference': self.median_difference,
            'median_difference_percent': self.median_difference_percent,
            'p10_difference': self.p10_difference,
            'recovery_months': self.recovery_months,
            'material_impact': self.material_impact,
            'impact_severity': self.impact_severity.value,
        }


def _relative_change(value: float, reference: float) -> float:
    if reference == 0:
        return 0.0
    return (value - reference) / reference


def estimate_recovery_months(baseline: SimulationResult, shocked: SimulationResult,
                             decline_end_month: int,
                             tolerance: float = RECOVERY_TOLERANCE) -> Optional[int]:
    """Months from ``decline_end_month`` until the medians converge.

    Scans the median time series forward from the end of the decline window
    and returns the first offset at which the shocked median is within
    ``tolerance`` of the baseline median, or None if it never is.
    """
    base = np.array([snapshot.median for snapshot in baseline.time_series])
    hit = np.array([snapshot.median for snapshot in shocked.time_series])
    if decline_end_month >= base.size:
        return None
    base, hit = base[decline_end_month:], hit[decline_end_month:]
    within = np.abs(hit - base) <= tolerance * np.abs(base)
    if not within.any():
        return None
    return int(np.argmax(within))


class ScenarioStressTester:
    """Compares a configuration's outcome with and without a market shock.

    Baseline and shocked runs share the configuration and the root seed
    sequence, so iteration N draws the same random numbers in both runs and
    the difference isolates the shock.

    Example:
        >>> tester = ScenarioStressTester()
        >>> comparison = tester.compare_scenario(config, 'GREAT_RECESSION')
        >>> print(f"{comparison.median_difference_percent:.1%}")
    """

    def __init__(self, engine: Optional[MonteCarloEngine] = None):
        self.engine = engine or MonteCarloEngine()

    def compare_scenario(self, config: SimulationConfig,
                         scenario: Union[str, Scenario]) -> ScenarioComparisonResult:
        """Run the baseline and one shocked simulation and compare them.

        Args:
            config: Simulation configuration shared by both runs
            scenario: Canonical scenario key or a Scenario instance

        Raises:
            ConfigurationError: If the scenario key is unknown
        """
        return next(iter(self.compare_scenarios(config, [scenario]).values()))

    def compare_scenarios(self, config: SimulationConfig,
                          scenarios: Optional[Iterable[Union[str, Scenario]]] = None
                          ) -> Dict[str, ScenarioComparisonResult]:
        """Compare several scenarios against a single baseline run.

        Args:
            config: Simulation configuration shared by every run
            scenarios: Scenario keys or instances. Defaults to all canonical
                scenarios.

        Returns:
            Dict mapping scenario key to its comparison, in input order
        """
        if scenarios is None:
            scenarios = list(SCENARIOS)
        resolved = [s if isinstance(s, Scenario) else get_scenario(s) for s in scenarios]

        root = np.random.SeedSequence(config.seed)
        baseline = self.engine.run(config, seed_sequence=root)
        monthly_drift = stats.annual_to_monthly_return(config.expected_return)

        comparisons = {}
        for scenario in resolved:
            override = scenario.return_override(config.periods, monthly_drift)
            shocked = self.engine.run(config, return_override=override, seed_sequence=root)
            comparison = ScenarioComparisonResult.compare(scenario, baseline, shocked)
            logger.info("Scenario %s: median change %.2f%% (%s)", scenario.key,
                        comparison.median_difference_percent * 100,
                        comparison.impact_severity.value)
            comparisons[scenario.key] = comparison
        return comparisons
