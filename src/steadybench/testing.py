"""Testing utilities for steadybench.

`FakeClock` is a manual clock: benchmark callables advance it instead of
burning real time, which makes every sample duration exact.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from steadybench.catalog import BenchmarkUnit


class FakeClock:
    """Clock whose time only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.calls = 0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def work(self, duration: float) -> Callable[[], None]:
        """A benchmark function taking exactly `duration` seconds per call."""

        def func() -> None:
            self.calls += 1
            self.now += duration

        return func

    def per_sample_work(
        self, durations: Iterable[float]
    ) -> tuple[Callable[[int], None], Callable[[], None]]:
        """A (setup, func) pair whose per-call duration changes each sample.

        Each setup call picks the next duration; the last one repeats once
        `durations` is exhausted.
        """
        remaining = iter(durations)
        current = [0.0]

        def setup(run_count: int) -> None:
            current[0] = next(remaining, current[0])

        def func() -> None:
            self.calls += 1
            self.now += current[0]

        return setup, func


def constant_unit(
    clock: FakeClock, duration: float, name: str = "constant", divisor: float = 1
) -> BenchmarkUnit:
    """A unit whose every invocation takes `duration` seconds of `clock`."""
    return BenchmarkUnit(name=name, func=clock.work(duration), divisor=divisor)


def varying_unit(
    clock: FakeClock, durations: Iterable[float], name: str = "varying"
) -> BenchmarkUnit:
    """A unit whose per-invocation duration follows `durations` per sample."""
    setup, func = clock.per_sample_work(durations)
    return BenchmarkUnit(name=name, func=func, setup=setup)
