"""Sample measurement and batch-size calibration."""

from __future__ import annotations

import itertools
import logging
import sys
import time
from collections.abc import Callable

from steadybench.catalog import BenchmarkUnit
from steadybench.errors import BenchmarkCallableFailure, CalibrationUnmeasurable

logger = logging.getLogger(__name__)

Timer = Callable[[], float]

# Doubling stops once the batch size passes this
MAX_RUNS_PER_SAMPLE = sys.maxsize // 2


def time_batch(
    unit: BenchmarkUnit, run_count: int, timer: Timer = time.perf_counter
) -> float:
    """Run `unit.func` `run_count` times and return the elapsed seconds.

    The setup callable runs first, outside the timed window.

    Raises:
        BenchmarkCallableFailure: If setup or func raises.
    """
    func = unit.func
    try:
        if unit.setup is not None:
            unit.setup(run_count)
        begin = timer()
        for _ in itertools.repeat(None, run_count):
            func()
        end = timer()
    except Exception as e:
        raise BenchmarkCallableFailure(unit.name, e) from e
    return end - begin


def measure(
    unit: BenchmarkUnit, run_count: int, timer: Timer = time.perf_counter
) -> float:
    """Take one sample: batch duration in seconds, normalized by the divisor.

    `run_count / sample` is then the number of logical operations per second.
    """
    return time_batch(unit, run_count, timer) / unit.divisor


def calibrate(
    unit: BenchmarkUnit,
    min_sample_duration: float,
    timer: Timer = time.perf_counter,
    limit: int | None = None,
) -> int:
    """Find the smallest power of two whose batch lasts `min_sample_duration`.

    Args:
        unit: Benchmark to calibrate.
        min_sample_duration: Target batch duration in seconds.
        timer: Clock to measure with.
        limit: Give up once the batch size exceeds this (default
            MAX_RUNS_PER_SAMPLE).

    Returns:
        Runs per sample.

    Raises:
        CalibrationUnmeasurable: If the limit is passed first.
        BenchmarkCallableFailure: If the benchmark raises.
    """
    if limit is None:
        limit = MAX_RUNS_PER_SAMPLE
    runs_per_sample = 1
    while True:
        elapsed = time_batch(unit, runs_per_sample, timer)
        logger.debug(
            "%s: calibrating, %d runs took %.6fs", unit.name, runs_per_sample, elapsed
        )
        if elapsed >= min_sample_duration:
            return runs_per_sample
        if runs_per_sample > limit:
            raise CalibrationUnmeasurable(unit.name, runs_per_sample)
        runs_per_sample *= 2
