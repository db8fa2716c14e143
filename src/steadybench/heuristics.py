"""Stopping heuristics.

Each heuristic looks at the sorted samples collected so far and either
returns None (satisfied) or a status describing what it is waiting for.
Noise only ever slows a benchmark down, so the smallest sample is the best
estimate and everything is measured relative to it.
"""

from __future__ import annotations

import bisect
import math
from collections.abc import Iterator, Sequence
from dataclasses import asdict, dataclass
from typing import Literal, Union

from steadybench.options import (
    BaselineHeuristic,
    ConfirmationHeuristic,
    CooldownHeuristic,
    RunOptions,
)


class SampleSet:
    """Samples kept sorted ascending, plus the cooldown counter."""

    def __init__(self) -> None:
        self._samples: list[float] = []
        self.samples_since_best = 0

    def __len__(self) -> int:
        return len(self._samples)

    def __getitem__(self, index: int) -> float:
        return self._samples[index]

    def __iter__(self) -> Iterator[float]:
        return iter(self._samples)

    @property
    def best(self) -> float:
        return self._samples[0]

    def add(self, sample: float) -> None:
        if not self._samples or sample < self._samples[0]:
            self.samples_since_best = 0
        else:
            self.samples_since_best += 1
        bisect.insort(self._samples, sample)

    def as_tuple(self) -> tuple[float, ...]:
        return tuple(self._samples)


def relative_variance(current: float, target: float) -> float:
    """Relative difference of `current` against `target`."""
    if target == 0:
        return 0.0 if current == 0 else math.inf
    return (current - target) / target


def variance_at(samples: Sequence[float], position: int) -> float:
    """Relative variance of the `position`-th best sample (1-indexed)."""
    return relative_variance(samples[position - 1], samples[0])


def count_confirming_samples(samples: Sequence[float], variance: float) -> int:
    """Count samples after the best one that stay within `variance` of it."""
    for i in range(1, len(samples)):
        if variance_at(samples, i + 1) > variance:
            return i - 1
    return max(len(samples) - 1, 0)


def frequency(runs_per_sample: int, best_sample: float) -> float:
    """Invocations per second implied by the best sample."""
    if best_sample == 0:
        return math.inf
    return runs_per_sample / best_sample


@dataclass(frozen=True)
class ConfirmationStatus:
    confirming_samples: int
    current_variance: float | None
    heuristic: Literal["confirmation"] = "confirmation"

    @property
    def blocking(self) -> bool:
        return True


@dataclass(frozen=True)
class CooldownStatus:
    samples_since_best: int
    heuristic: Literal["cooldown"] = "cooldown"

    @property
    def blocking(self) -> bool:
        return True


@dataclass(frozen=True)
class BaselineStatus:
    """The run is slower than the baseline.

    It stops blocking once `exhausted`, i.e. the regression has been
    confirmed over the full sample budget.
    """

    current_variance: float
    exhausted: bool = False
    heuristic: Literal["baseline"] = "baseline"

    @property
    def blocking(self) -> bool:
        return not self.exhausted


HeuristicStatus = Union[ConfirmationStatus, CooldownStatus, BaselineStatus]


def status_to_dict(status: HeuristicStatus | None) -> dict | None:
    if status is None:
        return None
    return asdict(status)


def status_from_dict(data: dict | None) -> HeuristicStatus | None:
    if data is None:
        return None
    kinds = {
        "confirmation": ConfirmationStatus,
        "cooldown": CooldownStatus,
        "baseline": BaselineStatus,
    }
    values = dict(data)
    kind = kinds[values.pop("heuristic")]
    return kind(**values)


class Baseline:
    """Keep sampling a run that looks slower than the recorded baseline."""

    def __init__(self, config: BaselineHeuristic, baseline_frequency: float) -> None:
        self.config = config
        self.baseline_frequency = baseline_frequency

    def evaluate(self, samples: SampleSet, runs_per_sample: int) -> BaselineStatus | None:
        if not math.isfinite(self.baseline_frequency):
            return None
        current = frequency(runs_per_sample, samples.best)
        current_variance = relative_variance(current, self.baseline_frequency)
        if current_variance >= -self.config.variance:
            return None
        return BaselineStatus(
            current_variance=current_variance,
            exhausted=len(samples) >= self.config.sample_count,
        )


class Cooldown:
    """Wait until the best sample has not been beaten for a while."""

    def __init__(self, config: CooldownHeuristic) -> None:
        self.config = config

    def evaluate(self, samples: SampleSet, runs_per_sample: int) -> CooldownStatus | None:
        if samples.samples_since_best >= self.config.sample_count:
            return None
        return CooldownStatus(samples_since_best=samples.samples_since_best)


class Confirmation:
    """Wait until enough samples cluster near the best one."""

    def __init__(self, config: ConfirmationHeuristic) -> None:
        self.config = config

    def evaluate(
        self, samples: SampleSet, runs_per_sample: int
    ) -> ConfirmationStatus | None:
        confirming = count_confirming_samples(samples, self.config.variance)
        if confirming >= self.config.sample_count:
            return None
        position = self.config.sample_count + 1
        current_variance = (
            variance_at(samples, position) if len(samples) >= position else None
        )
        return ConfirmationStatus(
            confirming_samples=confirming, current_variance=current_variance
        )


Heuristic = Union[Baseline, Cooldown, Confirmation]


def build_heuristics(
    options: RunOptions, baseline_frequency: float | None = None
) -> list[Heuristic]:
    """Enabled heuristics in evaluation order: baseline, cooldown, confirmation."""
    heuristics: list[Heuristic] = []
    if options.baseline is not None and baseline_frequency is not None:
        heuristics.append(Baseline(options.baseline, baseline_frequency))
    if options.cooldown is not None:
        heuristics.append(Cooldown(options.cooldown))
    if options.confirmation is not None:
        heuristics.append(Confirmation(options.confirmation))
    return heuristics


def evaluate_heuristics(
    heuristics: Sequence[Heuristic], samples: SampleSet, runs_per_sample: int
) -> tuple[HeuristicStatus, ...]:
    """Statuses of all unsatisfied heuristics, in evaluation order."""
    statuses = (h.evaluate(samples, runs_per_sample) for h in heuristics)
    return tuple(status for status in statuses if status is not None)
