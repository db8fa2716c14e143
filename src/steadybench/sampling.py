"""The sampling loop.

Calibrates the batch size once, then takes samples until the hard bounds
and the stopping heuristics agree that the best sample can be trusted.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal

from steadybench.catalog import BenchmarkUnit
from steadybench.heuristics import (
    HeuristicStatus,
    SampleSet,
    build_heuristics,
    evaluate_heuristics,
    frequency,
)
from steadybench.measure import Timer, calibrate, measure
from steadybench.options import RunOptions

logger = logging.getLogger(__name__)

AbortReason = Literal["timeout", "maxSampleCount"]


@dataclass(frozen=True)
class Progress:
    """Snapshot emitted before each sample is taken.

    Attributes:
        sample_count: Samples collected so far.
        runs_per_sample: Calibrated batch size.
        waiting_for_heuristic: Last unsatisfied heuristic, if any.
        blocked_heuristics: Every unsatisfied heuristic, in evaluation order.
    """

    sample_count: int
    runs_per_sample: int
    waiting_for_heuristic: HeuristicStatus | None = None
    blocked_heuristics: tuple[HeuristicStatus, ...] = ()


@dataclass(frozen=True)
class BenchmarkResult:
    """Outcome of one benchmark run.

    Attributes:
        sample_count: Number of samples taken.
        runs_per_sample: Calibrated batch size.
        frequency: Invocations per second, from the best sample.
        aborted: "timeout", "maxSampleCount", or None for a clean stop.
        failed_heuristic: Heuristic still unsatisfied at termination.
        blocked_heuristics: Every heuristic unsatisfied at termination.
        samples: Sorted batch durations in seconds (divided by the divisor).
    """

    sample_count: int
    runs_per_sample: int
    frequency: float
    aborted: AbortReason | None = None
    failed_heuristic: HeuristicStatus | None = None
    blocked_heuristics: tuple[HeuristicStatus, ...] = ()
    samples: tuple[float, ...] = field(default=(), compare=False, repr=False)


ProgressCallback = Callable[[Progress], None]


def run_benchmark(
    unit: BenchmarkUnit,
    options: RunOptions,
    baseline: BenchmarkResult | None = None,
    on_progress: ProgressCallback | None = None,
    *,
    timer: Timer = time.perf_counter,
) -> BenchmarkResult:
    """Run one benchmark unit to completion.

    Args:
        unit: Benchmark to run.
        options: Resolved options (validated here).
        baseline: Previous result to detect regressions against.
        on_progress: Called before every sample.
        timer: Clock used for samples and the timeout.

    Returns:
        The result, with frequency taken from the best sample.

    Raises:
        ConfigurationInvalid: If the options are invalid.
        CalibrationUnmeasurable: If no batch size reaches the duration.
        BenchmarkCallableFailure: If the benchmark raises.
    """
    options.validate()
    start = timer()

    runs_per_sample = options.runs_per_sample
    if runs_per_sample is None:
        runs_per_sample = calibrate(unit, options.min_sample_duration, timer)
    logger.debug("%s: %d runs per sample", unit.name, runs_per_sample)

    heuristics = build_heuristics(
        options, baseline.frequency if baseline is not None else None
    )
    samples = SampleSet()
    statuses: tuple[HeuristicStatus, ...] = ()
    aborted: AbortReason | None = None

    while True:
        if on_progress is not None:
            on_progress(
                Progress(
                    sample_count=len(samples),
                    runs_per_sample=runs_per_sample,
                    waiting_for_heuristic=statuses[-1] if statuses else None,
                    blocked_heuristics=statuses,
                )
            )

        samples.add(measure(unit, runs_per_sample, timer))

        if options.timeout is not None and timer() - start > options.timeout:
            aborted = "timeout"

        if len(samples) >= options.min_sample_count:
            statuses = evaluate_heuristics(heuristics, samples, runs_per_sample)

        if aborted == "timeout":
            break
        if len(samples) < options.min_sample_count:
            continue
        if (
            options.max_sample_count is not None
            and len(samples) >= options.max_sample_count
        ):
            aborted = "maxSampleCount"
            break
        if any(status.blocking for status in statuses):
            continue
        break

    result = BenchmarkResult(
        sample_count=len(samples),
        runs_per_sample=runs_per_sample,
        frequency=frequency(runs_per_sample, samples.best),
        aborted=aborted,
        failed_heuristic=statuses[-1] if statuses else None,
        blocked_heuristics=statuses,
        samples=samples.as_tuple(),
    )
    logger.debug(
        "%s: stopped after %d samples (aborted=%s, failed=%s)",
        unit.name,
        result.sample_count,
        result.aborted,
        result.failed_heuristic.heuristic if result.failed_heuristic else None,
    )
    return result
