"""Benchmark orchestration.

Runs a list of benchmark units one after the other:
- Resolving each unit's options over the project defaults
- Looking up the baseline in the unit's history log
- Running the sampling loop
- Logging the result

A failing unit is recorded and skipped; the remaining units still run.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from steadybench.catalog import BenchmarkUnit
from steadybench.environment import Environment
from steadybench.errors import BenchError
from steadybench.history import BenchmarkHistory, HistoryEntry, log_path
from steadybench.measure import Timer
from steadybench.options import BenchmarkOptions, RunOptions
from steadybench.sampling import BenchmarkResult, Progress, run_benchmark

logger = logging.getLogger(__name__)


@dataclass
class UnitOutcome:
    """What happened to one benchmark unit.

    Attributes:
        name: Benchmark name.
        result: Result, or None if the unit failed.
        baseline: Baseline result the run was compared against.
        options: Resolved options, or None if they were invalid.
        error: The error the unit failed with.
        log_index: Index of the history entry written, if any.
    """

    name: str
    result: BenchmarkResult | None = None
    baseline: BenchmarkResult | None = None
    options: RunOptions | None = None
    error: BenchError | None = None
    log_index: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class Session:
    """Outcomes of one runner invocation."""

    timestamp: datetime
    outcomes: list[UnitOutcome]
    environment: Environment | None = None

    @property
    def failed(self) -> list[UnitOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]


# Type for callbacks
ProgressCallback = Callable[[BenchmarkUnit, Progress], None]
OutcomeCallback = Callable[[BenchmarkUnit, UnitOutcome], None]


@dataclass
class BenchmarkRunner:
    """Main benchmark runner.

    Attributes:
        units: Benchmarks to run, in order.
        defaults: Project-wide option overrides.
        base_options: Built-in defaults the overrides apply to.
        log_dir: History log directory, or None to ignore history.
        save: Append results to the history logs.
        set_baseline: Mark the new entries as baselines.
        environment: Environment descriptor stored in the logs.
        start_callback: Called before a unit starts (before calibration).
        progress_callback: Called before every sample.
        outcome_callback: Called when a unit finishes or fails.
        timer: Clock for the sampling loop.
    """

    units: Sequence[BenchmarkUnit]
    defaults: BenchmarkOptions = field(default_factory=BenchmarkOptions)
    base_options: RunOptions = field(default_factory=RunOptions)
    log_dir: Path | None = None
    save: bool = True
    set_baseline: bool = False
    environment: Environment | None = None
    start_callback: Callable[[BenchmarkUnit], None] | None = None
    progress_callback: ProgressCallback | None = None
    outcome_callback: OutcomeCallback | None = None
    timer: Timer = time.perf_counter

    def resolve_options(self, unit: BenchmarkUnit) -> RunOptions:
        """Options for `unit`: base, then project defaults, then its own."""
        overrides = self.defaults.combine(unit.options)
        return overrides.merge_over(self.base_options).validate()

    def _load_baseline(self, unit: BenchmarkUnit) -> BenchmarkResult | None:
        if self.log_dir is None:
            return None
        path = log_path(self.log_dir, unit.name)
        if not path.exists():
            return None
        with BenchmarkHistory(path, unit.name) as history:
            entry = history.baseline()
        return entry.result if entry is not None else None

    def _log_result(
        self, unit: BenchmarkUnit, options: RunOptions, result: BenchmarkResult
    ) -> int | None:
        if self.log_dir is None or not self.save:
            return None
        if self.environment is None:
            raise RuntimeError("An environment is required to log results")
        entry = HistoryEntry(
            timestamp=datetime.now(timezone.utc),
            result=result,
            options=options,
            environment=self.environment,
            comment=unit.comment,
            version=unit.version,
        )
        with BenchmarkHistory(log_path(self.log_dir, unit.name), unit.name) as history:
            return history.append(entry, set_baseline=self.set_baseline)

    def run_unit(self, unit: BenchmarkUnit) -> UnitOutcome:
        """Run a single unit, turning its failure into a failed outcome."""
        outcome = UnitOutcome(name=unit.name)
        if self.start_callback:
            self.start_callback(unit)

        def progress(p: Progress) -> None:
            if self.progress_callback:
                self.progress_callback(unit, p)

        try:
            outcome.options = self.resolve_options(unit)
            outcome.baseline = self._load_baseline(unit)
            result = run_benchmark(
                unit, outcome.options, outcome.baseline, progress, timer=self.timer
            )
            outcome.log_index = self._log_result(unit, outcome.options, result)
            outcome.result = result
        except BenchError as e:
            logger.error("%s failed: %s", unit.name, e)
            outcome.error = e
            outcome.result = None
            outcome.log_index = None

        if self.outcome_callback:
            self.outcome_callback(unit, outcome)
        return outcome

    def run_all(self) -> Session:
        """Run every unit.

        Returns:
            Session with one outcome per unit.
        """
        outcomes = [self.run_unit(unit) for unit in self.units]
        return Session(
            timestamp=datetime.now(timezone.utc),
            outcomes=outcomes,
            environment=self.environment,
        )


def format_summary(session: Session) -> str:
    """Closing summary: counts, then one line per failed unit."""
    total = len(session.outcomes)
    failed = session.failed
    lines = [
        f"{total} benchmark{'' if total == 1 else 's'} run, {len(failed)} failed"
    ]
    for outcome in failed:
        lines.append(f"  FAILED {outcome.name}: {outcome.error}")
    return "\n".join(lines)
