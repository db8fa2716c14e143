"""Benchmark units and the registry that collects them.

Benchmark files receive a `Registry` and declare their units on it:

    def register(bench):
        with bench.group("sorting"):
            @bench.benchmark("sorted-1k", comment="builtin sort")
            def sort_1k():
                sorted(DATA)

Units are named by their group path joined with "/".
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from steadybench.errors import ConfigurationInvalid
from steadybench.options import BenchmarkOptions, coerce_options

BenchmarkFunction = Callable[[], object]
SetupFunction = Callable[[int], object]


@dataclass(frozen=True)
class BenchmarkUnit:
    """A registered unit of work.

    Attributes:
        name: Hierarchical name ("group/sub/name").
        func: Callable invoked `runs_per_sample` times per sample.
        setup: Optional callable invoked once per sample, untimed, with the
            number of runs about to happen.
        divisor: Logical operations performed by one call of `func`; the
            reported frequency is scaled by it.
        options: Per-unit option overrides.
        comment: Free text stored with each history entry.
        version: Version of the benchmark itself.
    """

    name: str
    func: BenchmarkFunction
    setup: SetupFunction | None = None
    divisor: float = 1
    options: BenchmarkOptions = field(default_factory=BenchmarkOptions)
    comment: str | None = None
    version: str | None = None


class Registry:
    """Ordered collection of benchmark units."""

    def __init__(self) -> None:
        self._units: list[BenchmarkUnit] = []
        self._names: set[str] = set()
        self._scope: list[str] = []

    def __iter__(self) -> Iterator[BenchmarkUnit]:
        return iter(self._units)

    def __len__(self) -> int:
        return len(self._units)

    @property
    def units(self) -> list[BenchmarkUnit]:
        return list(self._units)

    @contextmanager
    def group(self, name: str) -> Iterator[None]:
        """Prefix units registered inside the block with `name/`."""
        self._scope.append(name)
        try:
            yield
        finally:
            self._scope.pop()

    def qualify(self, name: str) -> str:
        return "/".join([*self._scope, name])

    def benchmark(
        self,
        name: str,
        func: BenchmarkFunction | None = None,
        *,
        setup: SetupFunction | None = None,
        divisor: float = 1,
        options: BenchmarkOptions | Mapping[str, Any] | None = None,
        comment: str | None = None,
        version: str | None = None,
    ) -> Any:
        """Register a benchmark, or return a decorator if `func` is omitted.

        Raises:
            ConfigurationInvalid: For duplicate names, a non-callable func or
                setup, a non-positive divisor, or malformed options.
        """
        if func is None:

            def decorator(f: BenchmarkFunction) -> BenchmarkFunction:
                self.benchmark(
                    name,
                    f,
                    setup=setup,
                    divisor=divisor,
                    options=options,
                    comment=comment,
                    version=version,
                )
                return f

            return decorator

        full_name = self.qualify(name)
        if full_name in self._names:
            raise ConfigurationInvalid(f'Duplicate benchmark name "{full_name}"')
        if not callable(func):
            raise ConfigurationInvalid(f'Benchmark "{full_name}" is not callable')
        if setup is not None and not callable(setup):
            msg = f'Setup of benchmark "{full_name}" is not callable'
            raise ConfigurationInvalid(msg)
        if isinstance(divisor, bool) or not divisor > 0:
            msg = f'Benchmark "{full_name}" needs a positive divisor, got {divisor!r}'
            raise ConfigurationInvalid(msg)

        unit = BenchmarkUnit(
            name=full_name,
            func=func,
            setup=setup,
            divisor=divisor,
            options=coerce_options(options),
            comment=comment,
            version=version,
        )
        self._units.append(unit)
        self._names.add(full_name)
        return unit

    def select(self, pattern: str | None = None) -> list[BenchmarkUnit]:
        """Units whose name matches the `pattern` regex (all if None)."""
        if not pattern:
            return list(self._units)
        try:
            regex = re.compile(pattern)
        except re.error as e:
            raise ConfigurationInvalid(f"Invalid name pattern {pattern!r}: {e}") from e
        return [unit for unit in self._units if regex.search(unit.name)]
