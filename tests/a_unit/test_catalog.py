"""Unit tests for steadybench.catalog module."""

from __future__ import annotations

import pytest

from steadybench.catalog import Registry
from steadybench.errors import ConfigurationInvalid
from steadybench.options import DISABLED, BenchmarkOptions


def noop() -> None:
    pass


class TestRegistry:
    """Tests for Registry."""

    def test_register(self) -> None:
        registry = Registry()
        unit = registry.benchmark("noop", noop, comment="nothing", version="1.0")

        assert len(registry) == 1
        assert unit.name == "noop"
        assert unit.func is noop
        assert unit.setup is None
        assert unit.divisor == 1
        assert unit.comment == "nothing"
        assert unit.version == "1.0"
        assert unit.options == BenchmarkOptions()

    def test_groups_nest(self) -> None:
        registry = Registry()
        with registry.group("outer"):
            registry.benchmark("a", noop)
            with registry.group("inner"):
                registry.benchmark("b", noop)
        registry.benchmark("c", noop)

        assert [unit.name for unit in registry] == ["outer/a", "outer/inner/b", "c"]

    def test_group_scope_survives_errors(self) -> None:
        registry = Registry()
        with pytest.raises(RuntimeError), registry.group("broken"):
            raise RuntimeError
        assert registry.qualify("x") == "x"

    def test_decorator(self) -> None:
        registry = Registry()

        @registry.benchmark("decorated", divisor=4)
        def work() -> None:
            pass

        assert work.__name__ == "work"
        assert registry.units[0].func is work
        assert registry.units[0].divisor == 4

    def test_options_mapping(self) -> None:
        registry = Registry()
        unit = registry.benchmark("x", noop, options={"cooldown": False})
        assert unit.options.cooldown is DISABLED

    def test_setup(self) -> None:
        registry = Registry()
        seen: list[int] = []
        unit = registry.benchmark("x", noop, setup=seen.append)
        unit.setup(3)
        assert seen == [3]

    def test_duplicate_name(self) -> None:
        registry = Registry()
        with registry.group("g"):
            registry.benchmark("x", noop)
        registry.benchmark("x", noop)
        with pytest.raises(ConfigurationInvalid), registry.group("g"):
            registry.benchmark("x", noop)

    @pytest.mark.parametrize("divisor", [0, -1, True])
    def test_bad_divisor(self, divisor) -> None:
        with pytest.raises(ConfigurationInvalid):
            Registry().benchmark("x", noop, divisor=divisor)

    def test_not_callable(self) -> None:
        with pytest.raises(ConfigurationInvalid):
            Registry().benchmark("x", 42)  # type: ignore[arg-type]


class TestSelect:
    """Tests for Registry.select."""

    def setup_method(self) -> None:
        self.registry = Registry()
        with self.registry.group("sorting"):
            self.registry.benchmark("sorted-1k", noop)
            self.registry.benchmark("heapq-1k", noop)
        self.registry.benchmark("dict-lookup", noop)

    def test_no_pattern(self) -> None:
        assert len(self.registry.select(None)) == 3

    def test_regex_search(self) -> None:
        names = [unit.name for unit in self.registry.select("1k$")]
        assert names == ["sorting/sorted-1k", "sorting/heapq-1k"]

    def test_invalid_regex(self) -> None:
        with pytest.raises(ConfigurationInvalid):
            self.registry.select("(")
