"""Integration tests for steadybench.runner module."""

from __future__ import annotations

from pathlib import Path

import pytest

from steadybench.catalog import BenchmarkUnit, Registry
from steadybench.environment import Environment
from steadybench.errors import (
    BenchmarkCallableFailure,
    ConfigurationInvalid,
    HistoryError,
)
from steadybench.history import BenchmarkHistory, log_path
from steadybench.options import BenchmarkOptions, RunOptions
from steadybench.runner import BenchmarkRunner, UnitOutcome, format_summary
from steadybench.testing import FakeClock, constant_unit

ENVIRONMENT = Environment(
    python_implementation="CPython",
    python_version="3.12.1",
    runner_version="0.1.0",
)

# Small, deterministic runs: 4 runs per sample, 8 samples, no heuristics
FAST = BenchmarkOptions(
    min_sample_duration=0.25,
    min_sample_count=8,
    max_sample_count=8,
)


def failing_on_third_call(clock: FakeClock) -> BenchmarkUnit:
    calls = [0]

    def func() -> None:
        calls[0] += 1
        clock.advance(1 / 16)
        if calls[0] == 3:
            raise ValueError("boom")

    return BenchmarkUnit(name="flaky", func=func)


def make_runner(clock: FakeClock, units, log_dir: Path | None, **kwargs) -> BenchmarkRunner:
    return BenchmarkRunner(
        units=units,
        defaults=FAST,
        log_dir=log_dir,
        environment=ENVIRONMENT,
        timer=clock,
        **kwargs,
    )


class TestResolveOptions:
    """Tests for option layering."""

    def test_layers(self) -> None:
        unit = BenchmarkUnit(
            name="x",
            func=lambda: None,
            options=BenchmarkOptions(max_sample_count=16),
        )
        runner = BenchmarkRunner(
            units=[unit],
            defaults=BenchmarkOptions(min_sample_duration=0.5, max_sample_count=64),
        )

        options = runner.resolve_options(unit)

        assert options.min_sample_duration == 0.5
        assert options.max_sample_count == 16
        assert options.cooldown == RunOptions().cooldown

    def test_invalid_combination(self) -> None:
        unit = BenchmarkUnit(
            name="x", func=lambda: None, options=BenchmarkOptions(max_sample_count=2)
        )
        with pytest.raises(ConfigurationInvalid):
            BenchmarkRunner(units=[unit]).resolve_options(unit)


class TestFailureIsolation:
    """A failing unit does not stop the suite."""

    def test_third_invocation_failure(self, tmp_path: Path) -> None:
        clock = FakeClock()
        units = [
            failing_on_third_call(clock),
            constant_unit(clock, 1 / 16, name="steady"),
        ]

        session = make_runner(clock, units, tmp_path).run_all()

        flaky, steady = session.outcomes
        assert not flaky.ok
        assert flaky.result is None
        assert flaky.log_index is None
        assert isinstance(flaky.error, BenchmarkCallableFailure)
        assert isinstance(flaky.error.__cause__, ValueError)
        assert not log_path(tmp_path, "flaky").exists()

        assert steady.ok
        assert steady.result.frequency == 16.0
        assert steady.log_index == 0
        assert log_path(tmp_path, "steady").exists()
        assert session.failed == [flaky]

    def test_invalid_options_fail_only_that_unit(self) -> None:
        clock = FakeClock()
        bad = BenchmarkUnit(
            name="bad",
            func=clock.work(1 / 16),
            options=BenchmarkOptions(min_sample_count=100),
        )
        good = constant_unit(clock, 1 / 16, name="good")

        session = make_runner(clock, [bad, good], None).run_all()

        assert isinstance(session.outcomes[0].error, ConfigurationInvalid)
        assert session.outcomes[1].ok

    def test_unwritable_log_fails_each_unit(self, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        clock = FakeClock()
        units = [constant_unit(clock, 1 / 16, name=name) for name in ("a", "b")]

        session = make_runner(clock, units, blocker / "logs").run_all()

        assert [outcome.name for outcome in session.outcomes] == ["a", "b"]
        for outcome in session.outcomes:
            assert not outcome.ok
            assert outcome.result is None
            assert isinstance(outcome.error, HistoryError)
            assert isinstance(outcome.error.__cause__, OSError)

    def test_summary(self) -> None:
        clock = FakeClock()
        session = make_runner(
            clock, [failing_on_third_call(clock), constant_unit(clock, 1 / 16)], None
        ).run_all()

        summary = format_summary(session)

        assert summary.startswith("2 benchmarks run, 1 failed")
        assert "FAILED flaky:" in summary


class TestHistoryIntegration:
    """Tests for baselines and logging through the runner."""

    def test_logs_and_uses_baseline(self, tmp_path: Path) -> None:
        clock = FakeClock()
        unit = constant_unit(clock, 1 / 16, name="group/unit")

        first = make_runner(clock, [unit], tmp_path, set_baseline=True).run_all()
        second = make_runner(clock, [unit], tmp_path).run_all()

        assert first.outcomes[0].baseline is None
        baseline = second.outcomes[0].baseline
        assert baseline is not None
        assert baseline.frequency == first.outcomes[0].result.frequency

        with BenchmarkHistory(log_path(tmp_path, "group/unit"), "group/unit") as history:
            assert len(history) == 2
            assert history.baseline_index == 0
            entry = history.entries()[1]
        assert entry.environment == ENVIRONMENT
        assert entry.options == first.outcomes[0].options

    def test_no_save(self, tmp_path: Path) -> None:
        clock = FakeClock()
        unit = constant_unit(clock, 1 / 16)

        session = make_runner(clock, [unit], tmp_path, save=False).run_all()

        assert session.outcomes[0].ok
        assert session.outcomes[0].log_index is None
        assert not log_path(tmp_path, unit.name).exists()

    def test_logging_needs_environment(self, tmp_path: Path) -> None:
        clock = FakeClock()
        runner = BenchmarkRunner(
            units=[constant_unit(clock, 1 / 16)],
            defaults=FAST,
            log_dir=tmp_path,
            timer=clock,
        )
        with pytest.raises(RuntimeError):
            runner.run_all()


class TestCallbacks:
    """Tests for runner callbacks."""

    def test_order(self) -> None:
        clock = FakeClock()
        registry = Registry()
        registry.benchmark("a", clock.work(1 / 16))
        registry.benchmark("b", clock.work(1 / 16))
        events: list[tuple[str, str]] = []

        def on_outcome(unit: BenchmarkUnit, outcome: UnitOutcome) -> None:
            events.append(("outcome", unit.name))

        runner = make_runner(
            clock,
            registry.units,
            None,
            start_callback=lambda unit: events.append(("start", unit.name)),
            progress_callback=lambda unit, p: events.append(("progress", unit.name)),
            outcome_callback=on_outcome,
        )
        runner.run_all()

        assert events[0] == ("start", "a")
        assert events.count(("progress", "a")) == 8
        assert events[9] == ("outcome", "a")
        assert events[10] == ("start", "b")
        assert events[-1] == ("outcome", "b")
