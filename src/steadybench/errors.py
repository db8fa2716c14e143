"""Error taxonomy for steadybench.

Every error a benchmark run can fail with derives from `BenchError`, so the
suite runner can isolate failures per benchmark unit without swallowing
programming errors.
"""

from __future__ import annotations


class BenchError(Exception):
    """Base class for all steadybench errors."""


class ConfigurationInvalid(BenchError):
    """Option values are out of range or contradict each other."""


class CalibrationUnmeasurable(BenchError):
    """Calibration could not reach the minimum sample duration."""

    def __init__(self, benchmark: str, runs_per_sample: int) -> None:
        self.benchmark = benchmark
        self.runs_per_sample = runs_per_sample
        super().__init__(
            f'benchmark "{benchmark}" is unmeasurable: too fast, or '
            f"min_sample_duration is too large (gave up at {runs_per_sample} runs)"
        )


class BenchmarkCallableFailure(BenchError):
    """The setup or work callable of a benchmark raised."""

    def __init__(self, benchmark: str, error: BaseException) -> None:
        self.benchmark = benchmark
        self.error = error
        super().__init__(
            f'benchmark "{benchmark}" failed: {type(error).__name__}: {error}'
        )


class HistorySchemaMismatch(BenchError):
    """A history log was written with a different schema version."""

    def __init__(self, path: object, found: str | None, expected: str) -> None:
        self.path = path
        self.found = found
        self.expected = expected
        super().__init__(
            f"Unexpected version in history file {path}: "
            f"found {found!r}, expected {expected!r}"
        )


class HistoryError(BenchError):
    """A history log could not be opened, read or written."""

    def __init__(self, path: object, error: BaseException) -> None:
        self.path = path
        self.error = error
        super().__init__(f"History file {path}: {type(error).__name__}: {error}")
