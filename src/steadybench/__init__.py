"""Adaptive micro-benchmark runner.

This package provides benchmarking with:
- Batch sizes calibrated to a minimum sample duration
- Stopping heuristics (confirmation, cooldown, baseline regression)
- SQLite history logs with a baseline per benchmark
"""

from __future__ import annotations

__version__ = "0.1.0"

from steadybench.catalog import BenchmarkUnit, Registry
from steadybench.errors import (
    BenchError,
    BenchmarkCallableFailure,
    CalibrationUnmeasurable,
    ConfigurationInvalid,
    HistoryError,
    HistorySchemaMismatch,
)
from steadybench.options import (
    DEFAULT,
    DISABLED,
    BaselineHeuristic,
    BenchmarkOptions,
    ConfirmationHeuristic,
    CooldownHeuristic,
    RunOptions,
)
from steadybench.runner import BenchmarkRunner, Session, UnitOutcome
from steadybench.sampling import BenchmarkResult, Progress, run_benchmark

__all__ = [
    "DEFAULT",
    "DISABLED",
    "BaselineHeuristic",
    "BenchError",
    "BenchmarkCallableFailure",
    "BenchmarkOptions",
    "BenchmarkResult",
    "BenchmarkRunner",
    "BenchmarkUnit",
    "CalibrationUnmeasurable",
    "ConfigurationInvalid",
    "ConfirmationHeuristic",
    "CooldownHeuristic",
    "HistoryError",
    "HistorySchemaMismatch",
    "Progress",
    "Registry",
    "RunOptions",
    "Session",
    "UnitOutcome",
    "__version__",
    "run_benchmark",
]
