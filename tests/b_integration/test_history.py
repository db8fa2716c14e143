"""Integration tests for steadybench.history module."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import pytest

from steadybench.environment import Environment
from steadybench.errors import HistoryError, HistorySchemaMismatch
from steadybench.heuristics import CooldownStatus
from steadybench.history import (
    LOG_VERSION,
    BenchmarkHistory,
    HistoryEntry,
    log_filename,
    log_path,
)
from steadybench.options import RunOptions
from steadybench.sampling import BenchmarkResult

ENVIRONMENT = Environment(
    python_implementation="CPython",
    python_version="3.12.1",
    runner_version="0.1.0",
    module_name="demo",
    module_version="1.2",
    git_commit="abc123",
)


def make_entry(frequency: float, **kwargs) -> HistoryEntry:
    result = BenchmarkResult(
        sample_count=8, runs_per_sample=16, frequency=frequency, **kwargs
    )
    return HistoryEntry(
        timestamp=datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc),
        result=result,
        options=RunOptions(),
        environment=ENVIRONMENT,
        comment="first try",
        version="2",
    )


class TestLogFilename:
    """Tests for log file naming."""

    def test_sanitizes(self) -> None:
        assert log_filename("a/b c.d") == "a-b-c-d.log.db"
        assert log_filename('x?%*:|"<>,=y') == "x----------y.log.db"

    def test_plain(self) -> None:
        assert log_filename("fib-30") == "fib-30.log.db"

    def test_log_path(self, tmp_path: Path) -> None:
        assert log_path(tmp_path, "sorting/x") == tmp_path / "sorting-x.log.db"


class TestBenchmarkHistory:
    """Tests for BenchmarkHistory."""

    def test_creates_log(self, tmp_path: Path) -> None:
        path = tmp_path / "logs" / "nested" / "x.log.db"

        with BenchmarkHistory(path, "x") as history:
            assert len(history) == 0
            assert history.entries() == []
            assert history.baseline() is None

        assert path.exists()

    def test_append_and_read_back(self, tmp_path: Path) -> None:
        path = tmp_path / "x.log.db"
        entry = make_entry(
            1234.5,
            aborted="maxSampleCount",
            failed_heuristic=CooldownStatus(samples_since_best=1),
        )

        with BenchmarkHistory(path, "x") as history:
            assert history.append(make_entry(1000.0)) == 0
            assert history.append(entry) == 1

        with BenchmarkHistory(path, "x") as history:
            entries = history.entries()

        assert len(entries) == 2
        stored = entries[1]
        assert stored.timestamp == entry.timestamp
        assert stored.result.frequency == 1234.5
        assert stored.result.sample_count == 8
        assert stored.result.runs_per_sample == 16
        assert stored.result.aborted == "maxSampleCount"
        assert stored.result.failed_heuristic == CooldownStatus(samples_since_best=1)
        assert stored.options == RunOptions()
        assert stored.environment == ENVIRONMENT
        assert stored.comment == "first try"
        assert stored.version == "2"
        assert entries[0].result.failed_heuristic is None

    def test_baseline(self, tmp_path: Path) -> None:
        path = tmp_path / "x.log.db"

        with BenchmarkHistory(path, "x") as history:
            history.append(make_entry(100.0))
            history.append(make_entry(200.0), set_baseline=True)
            history.append(make_entry(300.0))

            assert history.baseline_index == 1
            assert history.baseline().result.frequency == 200.0

            history.set_baseline(0)
            assert history.baseline().result.frequency == 100.0

    def test_set_baseline_out_of_range(self, tmp_path: Path) -> None:
        with BenchmarkHistory(tmp_path / "x.log.db", "x") as history:
            history.append(make_entry(100.0))
            with pytest.raises(IndexError):
                history.set_baseline(1)

    def test_version_mismatch(self, tmp_path: Path) -> None:
        path = tmp_path / "x.log.db"
        with BenchmarkHistory(path, "x") as history:
            history.append(make_entry(100.0))

        conn = sqlite3.connect(path)
        conn.execute("UPDATE meta SET value = '9.9.9' WHERE key = 'log_version'")
        conn.commit()
        conn.close()

        with pytest.raises(HistorySchemaMismatch) as excinfo:
            BenchmarkHistory(path, "x").open()

        assert excinfo.value.found == "9.9.9"
        assert excinfo.value.expected == LOG_VERSION

    def test_not_a_database(self, tmp_path: Path) -> None:
        path = tmp_path / "x.log.db"
        path.write_text("this is not sqlite " * 100)

        with pytest.raises(HistorySchemaMismatch) as excinfo:
            BenchmarkHistory(path, "x").open()

        assert excinfo.value.found is None

    def test_log_dir_under_a_file(self, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")

        with pytest.raises(HistoryError) as excinfo:
            BenchmarkHistory(blocker / "logs" / "x.log.db", "x").open()

        assert isinstance(excinfo.value.__cause__, OSError)

    def test_requires_open(self, tmp_path: Path) -> None:
        history = BenchmarkHistory(tmp_path / "x.log.db", "x")
        with pytest.raises(RuntimeError):
            history.entries()
