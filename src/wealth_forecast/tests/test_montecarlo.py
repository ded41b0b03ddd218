# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Tests for Monte Carlo simulation module.
"""

import itertools
import time
import unittest
from unittest.mock import patch

import numpy as np

from ..exceptions import ConfigurationError, SimulationTimeoutError
from ..montecarlo import simulator
from ..montecarlo.config import SimulationConfig
from ..montecarlo.market_assumptions import (
    MarketAssumptions, AssetClassAssumptions, PortfolioAssumptions, recommended_allocation,
)
from ..montecarlo.path_simulator import PathSimulator, cash_flow_schedule, depletion_months
from ..montecarlo.results import SimulationResult
from ..montecarlo.return_generator import NormalReturnGenerator
from ..montecarlo.simulator import ExecutionMode, MonteCarloEngine


class TestSimulationConfig(unittest.TestCase):
    """Tests for SimulationConfig."""

    def test_default_values(self):
        """Test default configuration values."""
        config = SimulationConfig(10_000, 500, periods=120)
        self.assertEqual(config.iterations, 10_000)
        self.assertEqual(config.expected_return, 0.07)
        self.assertEqual(config.volatility, 0.15)
        self.assertIsNone(config.seed)
        self.assertFalse(config.inflation_adjusted)
        self.assertEqual(config.years, 10)

    def test_custom_values(self):
        """Test custom configuration values."""
        config = SimulationConfig(1_000, -50, periods=12, iterations=100, seed=42)
        self.assertEqual(config.iterations, 100)
        self.assertEqual(config.seed, 42)
        self.assertEqual(config.monthly_contribution, -50)

    def test_invalid_iterations(self):
        """Test that invalid iterations raise error."""
        with self.assertRaises(ValueError):
            SimulationConfig(1_000, 0, periods=12, iterations=0)
        with self.assertRaises(ConfigurationError) as ctx:
            SimulationConfig(1_000, 0, periods=12, iterations=-1)
        self.assertEqual(ctx.exception.field, 'iterations')
        self.assertEqual(ctx.exception.reason, 'must_be_positive')

    def test_invalid_fields_are_named(self):
        """Test that each invalid field is reported by name."""
        cases = [
            (dict(initial_balance=-1), 'initial_balance'),
            (dict(periods=0), 'periods'),
            (dict(volatility=-0.1), 'volatility'),
            (dict(expected_return=-1.0), 'expected_return'),
            (dict(initial_balance=float('nan')), 'initial_balance'),
            (dict(iterations=1.5), 'iterations'),
            (dict(seed=-3), 'seed'),
        ]
        for overrides, field in cases:
            kwargs = dict(initial_balance=1_000, monthly_contribution=0, periods=12)
            kwargs.update(overrides)
            with self.subTest(field=field):
                with self.assertRaises(ConfigurationError) as ctx:
                    SimulationConfig(**kwargs)
                self.assertEqual(ctx.exception.field, field)

    def test_with_overrides(self):
        """Test that overrides produce a validated copy."""
        config = SimulationConfig(1_000, 100, periods=12, seed=1)
        longer = config.with_overrides(periods=24)
        self.assertEqual(longer.periods, 24)
        self.assertEqual(config.periods, 12)
        self.assertEqual(longer.seed, 1)
        with self.assertRaises(ConfigurationError):
            config.with_overrides(periods=0)


class TestAssetClassAssumptions(unittest.TestCase):
    """Tests for AssetClassAssumptions."""

    def test_basic_creation(self):
        """Test basic asset class creation."""
        asset = AssetClassAssumptions("stocks", 0.09, 0.18)
        self.assertEqual(asset.name, "stocks")
        self.assertEqual(asset.expected_return, 0.09)
        self.assertEqual(asset.volatility, 0.18)

    def test_negative_volatility_raises(self):
        """Test that negative volatility raises error."""
        with self.assertRaises(ValueError):
            AssetClassAssumptions("test", 0.10, -0.05)


class TestMarketAssumptions(unittest.TestCase):
    """Tests for MarketAssumptions."""

    def setUp(self):
        """Set up test fixtures."""
        self.market = MarketAssumptions.create_default()

    def test_create_default(self):
        """Test creating default market assumptions."""
        self.assertEqual(self.market.asset_class_order, ["stocks", "bonds", "cash"])
        self.assertEqual(self.market.correlation_matrix.shape, (3, 3))
        self.assertEqual(self.market.covariance_matrix.shape, (3, 3))
        self.assertAlmostEqual(self.market.covariance_matrix[0, 0], 0.18 ** 2)

    def test_single_asset_portfolio(self):
        """Test that a one-asset portfolio keeps that asset's parameters."""
        portfolio = self.market.portfolio_assumptions({"stocks": 1.0})
        self.assertAlmostEqual(portfolio.expected_return, 0.09)
        self.assertAlmostEqual(portfolio.volatility, 0.18)

    def test_60_40_portfolio(self):
        """Test blended return and diversified volatility."""
        portfolio = self.market.portfolio_assumptions({"stocks": 60, "bonds": 40})
        self.assertAlmostEqual(portfolio.expected_return, 0.07)
        expected_vol = np.sqrt(0.36 * 0.0324 + 0.16 * 0.0036 + 2 * 0.6 * 0.4 * 0.1 * 0.18 * 0.06)
        self.assertAlmostEqual(portfolio.volatility, expected_vol)
        self.assertLess(portfolio.volatility, 0.6 * 0.18 + 0.4 * 0.06)

    def test_portfolio_applies_to_config(self):
        """Test deriving a config from portfolio assumptions."""
        config = SimulationConfig(1_000, 0, periods=12)
        updated = PortfolioAssumptions(0.05, 0.08).apply(config)
        self.assertEqual(updated.expected_return, 0.05)
        self.assertEqual(updated.volatility, 0.08)

    def test_unknown_asset_class_raises(self):
        """Test that unknown asset classes are rejected."""
        with self.assertRaises(ConfigurationError):
            self.market.portfolio_assumptions({"crypto": 1.0})

    def test_invalid_correlation_matrix_shape(self):
        """Test that invalid correlation matrix shape raises error."""
        asset_classes = {
            "a": AssetClassAssumptions("a", 0.10, 0.18),
            "b": AssetClassAssumptions("b", 0.08, 0.15),
        }
        with self.assertRaises(ValueError):
            MarketAssumptions(asset_classes, np.array([[1.0]]), ["a", "b"])

    def test_asymmetric_correlation_matrix_raises(self):
        """Test that asymmetric correlation matrix raises error."""
        asset_classes = {
            "a": AssetClassAssumptions("a", 0.10, 0.18),
            "b": AssetClassAssumptions("b", 0.08, 0.15),
        }
        asymmetric = np.array([[1.0, 0.5], [0.3, 1.0]])
        with self.assertRaises(ValueError):
            MarketAssumptions(asset_classes, asymmetric, ["a", "b"])


class TestRecommendedAllocation(unittest.TestCase):
    """Tests for recommended_allocation."""

    def test_long_horizon_tilts_to_stocks(self):
        """Test that long horizons add up to twenty points of stocks."""
        allocation = recommended_allocation('moderate', 30)
        self.assertEqual((allocation.stocks, allocation.bonds, allocation.cash), (80, 15, 5))
        self.assertEqual(allocation.expected_return, 0.07)
        self.assertEqual(allocation.volatility, 0.15)

    def test_short_horizon_uses_base(self):
        """Test that short horizons keep the base stock share."""
        allocation = recommended_allocation('conservative', 5)
        self.assertEqual((allocation.stocks, allocation.bonds, allocation.cash), (40, 55, 5))

    def test_stock_cap(self):
        """Test that stocks are capped at 95%."""
        allocation = recommended_allocation('aggressive', 40)
        self.assertEqual((allocation.stocks, allocation.bonds, allocation.cash), (95, 5, 0))
        self.assertAlmostEqual(sum(allocation.as_weights().values()), 1.0)

    def test_unknown_risk_tolerance(self):
        """Test that unknown profiles are rejected."""
        with self.assertRaises(ConfigurationError) as ctx:
            recommended_allocation('reckless', 10)
        self.assertEqual(ctx.exception.field, 'risk_tolerance')


class TestNormalReturnGenerator(unittest.TestCase):
    """Tests for NormalReturnGenerator."""

    def test_generate_monthly_returns(self):
        """Test generating one path of returns."""
        generator = NormalReturnGenerator(0.07, 0.15)
        returns = generator.generate_monthly_returns(np.random.default_rng(42), 12)
        self.assertEqual(returns.shape, (12,))

    def test_returns_have_expected_statistics(self):
        """Test that generated returns have approximately correct mean/std over many samples."""
        generator = NormalReturnGenerator(0.07, 0.15)
        returns = generator.generate_monthly_returns(np.random.default_rng(42), 120_000)
        self.assertAlmostEqual(np.mean(returns), generator.monthly_drift, places=3)
        self.assertAlmostEqual(np.std(returns), 0.15 / np.sqrt(12), places=3)

    def test_zero_volatility_is_deterministic(self):
        """Test that zero volatility yields the drift every month."""
        generator = NormalReturnGenerator(0.07, 0.0)
        returns = generator.generate_monthly_returns(np.random.default_rng(1), 6)
        np.testing.assert_array_equal(returns, np.full(6, generator.monthly_drift))

    def test_override_keeps_other_draws(self):
        """Test that overridden months do not shift the remaining draws."""
        plain = NormalReturnGenerator(0.07, 0.15)
        shocked = NormalReturnGenerator(0.07, 0.15, np.array([np.nan, 0.05, np.nan]))
        base = plain.generate_monthly_returns(np.random.default_rng(7), 3)
        over = shocked.generate_monthly_returns(np.random.default_rng(7), 3)
        self.assertEqual(over[1], 0.05)
        self.assertEqual(over[0], base[0])
        self.assertEqual(over[2], base[2])


class TestPathSimulator(unittest.TestCase):
    """Tests for PathSimulator."""

    def test_contributions_without_returns(self):
        """Test that zero returns simply accumulate contributions."""
        path_sim = PathSimulator(np.full(12, 100.0))
        balances = path_sim.simulate(1_000, np.zeros((2, 12)))
        self.assertEqual(balances.shape, (2, 13))
        np.testing.assert_array_equal(balances[:, 0], [1_000, 1_000])
        np.testing.assert_array_equal(balances[:, -1], [2_200, 2_200])

    def test_return_applied_before_cash_flow(self):
        """Test the period update order."""
        path_sim = PathSimulator(np.array([100.0]))
        balances = path_sim.simulate(1_000, np.array([[0.10]]))
        self.assertAlmostEqual(balances[0, 1], 1_200.0)

    def test_balance_floored_at_zero(self):
        """Test that withdrawals cannot push a balance negative."""
        path_sim = PathSimulator(np.full(5, -300.0))
        balances = path_sim.simulate(1_000, np.zeros((1, 5)))
        np.testing.assert_array_equal(balances[0], [1_000, 700, 400, 100, 0, 0])
        np.testing.assert_array_equal(depletion_months(balances), [4])

    def test_per_path_initial_balances(self):
        """Test one starting balance per path."""
        path_sim = PathSimulator(np.zeros(3))
        balances = path_sim.simulate(np.array([0.0, 500.0]), np.zeros((2, 3)))
        np.testing.assert_array_equal(balances[:, -1], [0.0, 500.0])
        np.testing.assert_array_equal(depletion_months(balances), [1, -1])

    def test_period_mismatch_raises(self):
        """Test that the return matrix must match the cash flow schedule."""
        with self.assertRaises(ValueError):
            PathSimulator(np.zeros(3)).simulate(100, np.zeros((1, 4)))

    def test_simulate_path_matches_ensemble_row(self):
        """Test that one seeded trajectory reproduces the same iteration of a run."""
        config = SimulationConfig(10_000, 500, periods=24, iterations=5, seed=11)
        ensemble = MonteCarloEngine(mode=ExecutionMode.SYNC).run_ensemble(config)
        path_sim = PathSimulator.from_config(config)
        generator = NormalReturnGenerator(config.expected_return, config.volatility)
        sequences = simulator.child_sequences(np.random.SeedSequence(11), 5)

        path = path_sim.simulate_path(10_000, np.random.default_rng(sequences[3]), generator)
        self.assertEqual(path.shape, (25,))
        np.testing.assert_array_equal(path, ensemble.balances[3])
        again = path_sim.simulate_path(10_000, np.random.default_rng(sequences[3]), generator)
        np.testing.assert_array_equal(again, path)

    def test_cash_flow_schedule(self):
        """Test constant and inflation-grown cash flows."""
        np.testing.assert_array_equal(cash_flow_schedule(100, 3), [100, 100, 100])
        grown = cash_flow_schedule(100, 13, inflation_rate=0.12, inflation_adjusted=True)
        self.assertEqual(grown[0], 100)
        self.assertAlmostEqual(grown[12], 112.0)
        np.testing.assert_array_equal(cash_flow_schedule(100, 3, 0.12, False), [100, 100, 100])


class TestSimulationResult(unittest.TestCase):
    """Tests for SimulationResult."""

    def setUp(self):
        """Set up test fixtures."""
        self.config = SimulationConfig(100, 0, periods=2, iterations=4)
        balances = np.array([
            [100.0, 110.0, 120.0],
            [100.0, 90.0, 0.0],
            [100.0, 100.0, 200.0],
            [100.0, 105.0, 300.0],
        ])
        self.result = SimulationResult.from_balances(self.config, balances)

    def test_final_summary(self):
        """Test final balance statistics."""
        self.assertEqual(self.result.median, 160.0)
        self.assertEqual(self.result.min, 0.0)
        self.assertEqual(self.result.max, 300.0)
        self.assertEqual(self.result.mean, 155.0)
        self.assertEqual(self.result.iterations, 4)

    def test_time_series(self):
        """Test that every period index is summarized, starting at month 0."""
        self.assertEqual(len(self.result.time_series), 3)
        first = self.result.time_series[0]
        self.assertEqual((first.month, first.p10, first.median, first.p90), (0, 100.0, 100.0, 100.0))

    def test_probabilities(self):
        """Test threshold probabilities."""
        self.assertEqual(self.result.probability_at_least(200), 0.5)
        self.assertEqual(self.result.probability_above(200), 0.25)
        self.assertEqual(self.result.success_rate(), 0.75)
        self.assertEqual(self.result.doubling_probability(), 0.5)
        self.assertEqual(self.result.purchasing_power_probability(), 0.75)

    def test_percentile_data(self):
        """Test getting percentile bands."""
        data = self.result.get_percentile_data()
        self.assertEqual(set(data), set(SimulationResult.PERCENTILES))
        self.assertEqual(len(data['Median']), 3)

    def test_percentile_df(self):
        """Test percentile DataFrame indexed by month."""
        df = self.result.get_percentile_df()
        self.assertEqual(df.index.name, 'Month')
        self.assertEqual(list(df.index), [0, 1, 2])
        self.assertIn('Mean', df.columns)
        self.assertEqual(list(self.result.get_percentile_df(yearly=True).index), [0])

    def test_final_balances_read_only(self):
        """Test that final balances cannot be modified."""
        with self.assertRaises(ValueError):
            self.result.final_balances[0] = 1.0

    def test_get_statistics(self):
        """Test getting summary statistics."""
        result_stats = self.result.get_statistics()
        self.assertEqual(result_stats['median'], 160.0)
        self.assertIn('success_rate', result_stats)
        self.assertIn('doubling_probability', result_stats)


class TestMonteCarloEngine(unittest.TestCase):
    """Tests for MonteCarloEngine."""

    def setUp(self):
        """Set up test fixtures."""
        self.engine = MonteCarloEngine(mode=ExecutionMode.SYNC)
        self.config = SimulationConfig(10_000, 500, periods=24, iterations=200, seed=3)

    def test_run(self):
        """Test basic run shape."""
        result = self.engine.run(self.config)
        self.assertEqual(len(result.time_series), 25)
        self.assertEqual(result.iterations, 200)
        self.assertEqual(result.time_series[0].median, 10_000)

    def test_run_ensemble(self):
        """Test raw ensemble matrices."""
        ensemble = self.engine.run_ensemble(self.config)
        self.assertEqual(ensemble.returns.shape, (200, 24))
        self.assertEqual(ensemble.balances.shape, (200, 25))
        np.testing.assert_array_equal(ensemble.final_balances, ensemble.balances[:, -1])

    def test_initial_balances_length_mismatch(self):
        """Test that per-iteration balances must match iterations."""
        with self.assertRaises(ConfigurationError) as ctx:
            self.engine.run(self.config, initial_balances=np.ones(10))
        self.assertEqual(ctx.exception.field, 'initial_balances')

    def test_return_override_length_mismatch(self):
        """Test that the override must cover every period."""
        with self.assertRaises(ConfigurationError) as ctx:
            self.engine.run(self.config, return_override=np.zeros(3))
        self.assertEqual(ctx.exception.field, 'return_override')

    def test_full_override_collapses_paths(self):
        """Test that overriding every month removes all randomness."""
        result = self.engine.run(self.config, return_override=np.full(24, 0.01))
        self.assertEqual(result.min, result.max)

    def test_invalid_engine_arguments(self):
        """Test engine argument validation."""
        with self.assertRaises(ConfigurationError):
            MonteCarloEngine(max_workers=0)
        with self.assertRaises(ConfigurationError):
            MonteCarloEngine(timeout=0)
        with self.assertRaises(ConfigurationError):
            MonteCarloEngine(batch_size=0)

    def test_logs_run(self):
        """Test that runs are logged with elapsed time."""
        with self.assertLogs('wealth_forecast.montecarlo.simulator', level='INFO') as logs:
            self.engine.run(self.config)
        self.assertTrue(any('finished' in line for line in logs.output))

    def test_large_run_warns(self):
        """Test that unusually large runs are logged as warnings."""
        config = SimulationConfig(100, 0, periods=1, iterations=50_001, seed=1)
        with self.assertLogs('wealth_forecast.montecarlo.simulator', level='WARNING') as logs:
            self.engine.run(config)
        self.assertTrue(any('Large run' in line for line in logs.output))

    def test_sync_timeout(self):
        """Test that exceeding the budget raises a retryable timeout."""
        engine = MonteCarloEngine(mode=ExecutionMode.SYNC, timeout=1.0)
        with patch.object(simulator.time, 'monotonic', side_effect=itertools.count(0.0, 10.0)):
            with self.assertRaises(SimulationTimeoutError) as ctx:
                engine.run(self.config)
        self.assertTrue(ctx.exception.retryable)
        self.assertIsInstance(ctx.exception, TimeoutError)

    def test_sync_timeout_stops_early(self):
        """Test that a timed synchronous run stops after the first late batch."""
        calls = []
        real_batch = simulator._run_batch

        def counting_batch(args):
            calls.append(len(args[2]))
            return real_batch(args)

        engine = MonteCarloEngine(mode=ExecutionMode.SYNC, timeout=1.0)
        with patch.object(simulator, '_run_batch', counting_batch):
            with patch.object(simulator.time, 'monotonic',
                              side_effect=itertools.count(0.0, 10.0)):
                with self.assertRaises(SimulationTimeoutError):
                    engine.run(self.config)
        self.assertEqual(calls, [20])

    def test_sync_timeout_keeps_results(self):
        """Test that batching a timed synchronous run does not change its numbers."""
        timed = MonteCarloEngine(mode=ExecutionMode.SYNC, timeout=600.0)
        np.testing.assert_array_equal(timed.run_ensemble(self.config).balances,
                                      self.engine.run_ensemble(self.config).balances)

    def test_thread_pool_timeout(self):
        """Test that a pool run abandons batches once the budget is spent."""
        real_batch = simulator._run_batch

        def slow_batch(args):
            time.sleep(0.3)
            return real_batch(args)

        engine = MonteCarloEngine(mode=ExecutionMode.THREAD, max_workers=2, timeout=0.05,
                                  batch_size=10)
        config = self.config.with_overrides(iterations=40)
        with patch.object(simulator, '_run_batch', slow_batch):
            with self.assertRaises(SimulationTimeoutError):
                engine.run(config)


if __name__ == '__main__':
    unittest.main()
