# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Monte Carlo simulation results aggregation and analysis.

This module provides the SimulationResult class for analyzing the results
of a Monte Carlo run, including percentile bands and success probabilities.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from .. import stats
from ..stats import SummaryStatistics
from .config import SimulationConfig


@dataclass(frozen=True)
class PeriodSnapshot:
    """Cross-iteration summary of balances at one period index."""
    month: int
    mean: float
    p10: float
    p25: float
    median: float
    p75: float
    p90: float


@dataclass(frozen=True, eq=False)
class SimulationResult:
    """Summarized outcome of a Monte Carlo run.

    Provides percentile bands over time, the distribution of final balances
    and probability helpers. Instances are immutable; ``final_balances`` is a
    read-only array.

    Example:
        >>> result = engine.run(config)
        >>> print(f"Median: {result.median:,.0f}")
        >>> bands = result.get_percentile_df()
        >>> print(bands['Median'].iloc[-1])
    """

    # Standard percentile bands, keyed by label
    PERCENTILES = {
        "Top 10%": 'p90',
        "Top 25%": 'p75',
        "Median": 'median',
        "Bottom 25%": 'p25',
        "Bottom 10%": 'p10',
    }

    config: SimulationConfig
    summary: SummaryStatistics
    time_series: Tuple[PeriodSnapshot, ...]
    final_balances: np.ndarray = field(repr=False)
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_balances(cls, config: SimulationConfig, balances: np.ndarray) -> 'SimulationResult':
        """Reduce an (iterations x periods+1) balance matrix.

        Args:
            config: Configuration the balances were produced with
            balances: Balance matrix, column 0 holding starting balances

        Returns:
            SimulationResult summarizing the matrix
        """
        columns = stats.summarize_columns(balances)
        time_series = tuple(
            PeriodSnapshot(
                month=month,
                mean=float(columns['mean'][month]),
                p10=float(columns['p10'][month]),
                p25=float(columns['p25'][month]),
                median=float(columns['median'][month]),
                p75=float(columns['p75'][month]),
                p90=float(columns['p90'][month]),
            )
            for month in range(balances.shape[1])
        )
        finals = np.array(balances[:, -1], dtype=float)
        finals.setflags(write=False)
        return cls(config=config, summary=stats.summarize(finals),
                   time_series=time_series, final_balances=finals)

    # Final-balance summary shortcuts

    @property
    def mean(self) -> float:
        return self.summary.mean

    @property
    def std_dev(self) -> float:
        return self.summary.std_dev

    @property
    def min(self) -> float:
        return self.summary.min

    @property
    def max(self) -> float:
        return self.summary.max

    @property
    def p10(self) -> float:
        return self.summary.p10

    @property
    def p25(self) -> float:
        return self.summary.p25

    @property
    def median(self) -> float:
        return self.summary.median

    @property
    def p75(self) -> float:
        return self.summary.p75

    @property
    def p90(self) -> float:
        return self.summary.p90

    @property
    def iterations(self) -> int:
        return int(self.final_balances.size)

    def percentile(self, p: float) -> float:
        """Type-7 percentile of final balances, ``p`` in [0, 100]."""
        return stats.percentile(self.final_balances, p)

    # Probabilities

    def probability_at_least(self, threshold: float) -> float:
        """Fraction of iterations whose final balance is >= ``threshold``."""
        return float(np.count_nonzero(self.final_balances >= threshold)) / self.iterations

    def probability_above(self, threshold: float) -> float:
        """Fraction of iterations whose final balance is > ``threshold``."""
        return float(np.count_nonzero(self.final_balances > threshold)) / self.iterations

    def success_rate(self) -> float:
        """Fraction of iterations ending with money left."""
        return self.probability_above(0.0)

    def doubling_probability(self) -> float:
        """Fraction of iterations ending with at least twice the starting balance."""
        return self.probability_at_least(2.0 * self.config.initial_balance)

    def purchasing_power_probability(self, inflation_rate: Optional[float] = None) -> float:
        """Fraction of iterations whose final balance keeps up with inflation.

        Args:
            inflation_rate: Annual inflation. Defaults to the config's rate.

        Returns:
            Probability that the final balance is at least the starting
            balance grown by inflation over the horizon
        """
        rate = self.config.inflation_rate if inflation_rate is None else inflation_rate
        hurdle = stats.future_value(self.config.initial_balance, rate, self.config.years)
        return self.probability_at_least(hurdle)

    # Tabular views

    def get_months(self) -> List[int]:
        return [snapshot.month for snapshot in self.time_series]

    def get_percentile_data(self) -> Dict[str, List[float]]:
        """Get percentile bands across months.

        Returns:
            Dict mapping percentile names to lists of values (one per month,
            starting at month 0)
        """
        return {
            name: [getattr(snapshot, attr) for snapshot in self.time_series]
            for name, attr in self.PERCENTILES.items()
        }

    def get_percentile_df(self, yearly: bool = False) -> pd.DataFrame:
        """Get percentile data as a DataFrame with months as index.

        Args:
            yearly: Keep only every twelfth month (plus month 0)

        Returns:
            DataFrame with 'Month' as index and percentile names as columns
        """
        df = pd.DataFrame(self.get_percentile_data())
        df['Mean'] = [snapshot.mean for snapshot in self.time_series]
        df['Month'] = self.get_months()
        df = df.set_index('Month')
        if yearly:
            df = df[df.index % stats.MONTHS_PER_YEAR == 0]
        return df

    def get_statistics(self) -> Dict[str, float]:
        """Summary statistics of final balances plus the headline probabilities."""
        result = self.summary.as_dict()
        result['success_rate'] = self.success_rate()
        result['doubling_probability'] = self.doubling_probability()
        result['purchasing_power_probability'] = self.purchasing_power_probability()
        return result

    def __repr__(self) -> str:
        return (f"SimulationResult(iterations={self.iterations}, "
                f"periods={self.config.periods}, median={self.median:.2f})")
