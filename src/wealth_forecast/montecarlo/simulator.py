# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Monte Carlo simulation orchestrator.

This module provides the MonteCarloEngine class which runs an ensemble of
independent monthly balance paths and reduces it into a SimulationResult.

Every iteration owns a child ``SeedSequence`` spawned from the run's root
sequence, so iterations can be batched across a thread or process pool and
still produce exactly the same numbers as a synchronous run with the same seed.
"""

import concurrent.futures
import logging
import math
import os
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from ..exceptions import ConfigurationError, SimulationTimeoutError
from .config import (
    DEFAULT_BATCHES_PER_WORKER, HIGH_ITERATION_WARNING, SYNC_TIMEOUT_BATCHES, SimulationConfig,
)
from .path_simulator import PathSimulator
from .results import SimulationResult
from .return_generator import NormalReturnGenerator

logger = logging.getLogger(__name__)


class ExecutionMode(str, Enum):
    """How iteration batches are dispatched."""
    SYNC = "sync"
    THREAD = "thread"
    PROCESS = "process"


@dataclass(frozen=True)
class Ensemble:
    """Raw per-iteration output of a run.

    Attributes:
        returns: (iterations x periods) monthly returns actually applied
        balances: (iterations x periods+1) balances, column 0 is the start
        seed_sequence: Root sequence the iteration streams were spawned from
    """
    returns: np.ndarray
    balances: np.ndarray
    seed_sequence: np.random.SeedSequence

    @property
    def final_balances(self) -> np.ndarray:
        return self.balances[:, -1]


def child_sequences(root: np.random.SeedSequence, count: int) -> List[np.random.SeedSequence]:
    """Spawn ``count`` child sequences without advancing ``root``.

    ``SeedSequence.spawn`` remembers how many children it already handed out,
    so spawning twice from one object gives two different sets. Spawning from
    a fresh copy keeps repeated runs on the same root identical.
    """
    fresh = np.random.SeedSequence(root.entropy, spawn_key=root.spawn_key,
                                   pool_size=root.pool_size)
    return fresh.spawn(count)


def _resolve_max_workers(max_workers: Optional[int], batches: int) -> int:
    if batches <= 1:
        return 1
    if max_workers is None:
        return max(1, min(batches, os.cpu_count() or 1))
    return max(1, min(max_workers, batches))


def _chunk(items: list, size: int) -> List[list]:
    """Split items into ordered batches of at most ``size``."""
    return [items[i:i + size] for i in range(0, len(items), size)]


def _run_batch(args: Tuple) -> Tuple[np.ndarray, np.ndarray]:
    """Simulate one batch of iterations.

    Lives at module level so process pools can pickle it.

    Args:
        args: (generator, cash_flows, seed_batch, initial_balances) where
            ``initial_balances`` is a scalar or one value per seed

    Returns:
        (returns, balances) matrices for the batch, rows in seed order
    """
    generator, cash_flows, seed_batch, initial_balances = args
    path_sim = PathSimulator(cash_flows)
    returns = np.empty((len(seed_batch), path_sim.periods))
    for row, seq in enumerate(seed_batch):
        rng = np.random.default_rng(seq)
        returns[row] = generator.generate_monthly_returns(rng, path_sim.periods)
    return returns, path_sim.simulate(initial_balances, returns)


class MonteCarloEngine:
    """Runs Monte Carlo ensembles of monthly balance paths.

    The engine is stateless between calls; one instance can serve any number
    of runs and is safe to share.

    Example:
        >>> engine = MonteCarloEngine(mode=ExecutionMode.SYNC)
        >>> config = SimulationConfig(10_000, 500, periods=120, seed=42)
        >>> result = engine.run(config)
        >>> print(f"Median: {result.median:,.0f}")
    """

    def __init__(self,
                 mode: ExecutionMode = ExecutionMode.THREAD,
                 max_workers: Optional[int] = None,
                 timeout: Optional[float] = None,
                 batch_size: Optional[int] = None):
        """Initialize the engine.

        Args:
            mode: Dispatch strategy for iteration batches
            max_workers: Pool size. Defaults to the CPU count.
            timeout: Optional wall-clock budget in seconds for one run. A
                synchronous run with a budget is split into batches so the
                deadline is checked while work remains.
            batch_size: Iterations per batch. Defaults to spreading the run over
                a few batches per worker.
        """
        self.mode = ExecutionMode(mode)
        if max_workers is not None and max_workers < 1:
            raise ConfigurationError('max_workers', "must_be_positive")
        if timeout is not None and timeout <= 0:
            raise ConfigurationError('timeout', "must_be_positive")
        if batch_size is not None and batch_size < 1:
            raise ConfigurationError('batch_size', "must_be_positive")
        self.max_workers = max_workers
        self.timeout = timeout
        self.batch_size = batch_size

    def run(self, config: SimulationConfig,
            initial_balances: Optional[np.ndarray] = None,
            return_override: Optional[np.ndarray] = None,
            seed_sequence: Optional[np.random.SeedSequence] = None) -> SimulationResult:
        """Run a simulation and summarize it.

        Args:
            config: Simulation configuration
            initial_balances: Optional per-iteration starting balances,
                replacing ``config.initial_balance``
            return_override: Optional per-period monthly returns; NaN keeps
                the stochastic draw
            seed_sequence: Optional root sequence. Defaults to one built from
                ``config.seed``.

        Returns:
            SimulationResult for the run
        """
        ensemble = self.run_ensemble(config, initial_balances, return_override, seed_sequence)
        return SimulationResult.from_balances(config, ensemble.balances)

    def run_ensemble(self, config: SimulationConfig,
                     initial_balances: Optional[np.ndarray] = None,
                     return_override: Optional[np.ndarray] = None,
                     seed_sequence: Optional[np.random.SeedSequence] = None) -> Ensemble:
        """Run a simulation and return the raw per-iteration matrices.

        Same arguments as :meth:`run`.

        Raises:
            ConfigurationError: If the inputs are inconsistent
            SimulationTimeoutError: If the run exceeds ``timeout``
        """
        self._validate(config, initial_balances, return_override)

        if config.iterations > HIGH_ITERATION_WARNING:
            logger.warning("Large run requested: %d iterations x %d periods",
                           config.iterations, config.periods)

        root = seed_sequence if seed_sequence is not None else np.random.SeedSequence(config.seed)
        generator = NormalReturnGenerator(config.expected_return, config.volatility,
                                          return_override)
        cash_flows = PathSimulator.from_config(config).cash_flows
        starts = (config.initial_balance if initial_balances is None
                  else np.asarray(initial_balances, dtype=float))

        sequences = child_sequences(root, config.iterations)
        batch_size = self._batch_size(config.iterations)
        tasks = []
        for start in range(0, config.iterations, batch_size):
            batch_starts = starts if np.ndim(starts) == 0 else starts[start:start + batch_size]
            tasks.append((generator, cash_flows, sequences[start:start + batch_size],
                          batch_starts))

        logger.info("Starting Monte Carlo run: %d iterations, %d periods, %d batches (%s)",
                    config.iterations, config.periods, len(tasks), self.mode.value)
        started = time.monotonic()
        batch_results = self._dispatch(tasks, started)
        elapsed = time.monotonic() - started
        logger.info("Monte Carlo run finished in %.3fs", elapsed)

        returns = np.concatenate([r for r, _ in batch_results])
        balances = np.concatenate([b for _, b in batch_results])
        return Ensemble(returns=returns, balances=balances, seed_sequence=root)

    def _validate(self, config: SimulationConfig,
                  initial_balances: Optional[np.ndarray],
                  return_override: Optional[np.ndarray]):
        if config.iterations < 1:
            raise ConfigurationError('iterations', "must_be_positive")
        if config.periods < 1:
            raise ConfigurationError('periods', "must_be_positive")
        if config.volatility < 0:
            raise ConfigurationError('volatility', "must_be_non_negative")
        if initial_balances is not None:
            starts = np.asarray(initial_balances, dtype=float)
            if starts.shape != (config.iterations,):
                raise ConfigurationError(
                    'initial_balances', "length_mismatch",
                    f"Expected {config.iterations} starting balances, got {starts.size}")
            if not np.all(np.isfinite(starts)) or np.any(starts < 0):
                raise ConfigurationError('initial_balances', "must_be_non_negative")
        if return_override is not None:
            override = np.asarray(return_override, dtype=float)
            if override.shape != (config.periods,):
                raise ConfigurationError(
                    'return_override', "length_mismatch",
                    f"Expected {config.periods} overrides, got {override.size}")
            if np.any(override[~np.isnan(override)] <= -1):
                raise ConfigurationError('return_override', "must_exceed_minus_one")

    def _batch_size(self, iterations: int) -> int:
        if self.batch_size is not None:
            return self.batch_size
        if self.mode is ExecutionMode.SYNC:
            if self.timeout is None:
                return iterations
            return max(1, math.ceil(iterations / SYNC_TIMEOUT_BATCHES))
        workers = self.max_workers or os.cpu_count() or 1
        return max(1, math.ceil(iterations / (workers * DEFAULT_BATCHES_PER_WORKER)))

    def _dispatch(self, tasks: List[Tuple], started: float) -> List[Tuple[np.ndarray, np.ndarray]]:
        if self.mode is ExecutionMode.SYNC or len(tasks) == 1:
            results = []
            for task in tasks:
                results.append(_run_batch(task))
                self._check_deadline(started)
            return results

        executor_cls = (concurrent.futures.ProcessPoolExecutor
                        if self.mode is ExecutionMode.PROCESS
                        else concurrent.futures.ThreadPoolExecutor)
        pool = executor_cls(max_workers=_resolve_max_workers(self.max_workers, len(tasks)))
        timed_out = False
        try:
            return list(pool.map(_run_batch, tasks, timeout=self.timeout))
        except concurrent.futures.TimeoutError as exc:
            timed_out = True
            raise self._timeout_error(started) from exc
        finally:
            # Batches already running cannot be interrupted; don't wait on them
            pool.shutdown(wait=not timed_out, cancel_futures=True)

    def _check_deadline(self, started: float):
        if self.timeout is not None and time.monotonic() - started > self.timeout:
            raise self._timeout_error(started)

    def _timeout_error(self, started: float) -> SimulationTimeoutError:
        elapsed = time.monotonic() - started
        logger.warning("Monte Carlo run timed out after %.3fs (budget %.3fs)",
                       elapsed, self.timeout)
        return SimulationTimeoutError(
            f"Simulation exceeded its {self.timeout}s budget after {elapsed:.3f}s")

    def __repr__(self) -> str:
        return (f"MonteCarloEngine(mode={self.mode.value}, max_workers={self.max_workers}, "
                f"timeout={self.timeout})")
