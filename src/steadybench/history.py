"""SQLite history log for benchmark results.

Each benchmark has its own log file in the log directory. A log is an
append-only list of entries plus the index of the entry marked as the
baseline for future runs. The schema is versioned: a log written with a
different version is refused rather than migrated.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path

from steadybench.environment import Environment
from steadybench.errors import HistoryError, HistorySchemaMismatch
from steadybench.heuristics import status_from_dict, status_to_dict
from steadybench.options import RunOptions
from steadybench.sampling import BenchmarkResult

logger = logging.getLogger(__name__)

LOG_VERSION = "0.1.0"

_UNSAFE_CHARS = '/\\?%*:|"<>.,= '


@dataclass(frozen=True)
class HistoryEntry:
    """One logged benchmark run.

    Attributes:
        timestamp: When the run finished.
        result: Benchmark result (samples are not stored).
        options: Options the run used.
        environment: Environment the run happened in.
        comment: Benchmark comment at the time of the run.
        version: Benchmark version at the time of the run.
    """

    timestamp: datetime
    result: BenchmarkResult
    options: RunOptions
    environment: Environment
    comment: str | None = None
    version: str | None = None


def log_filename(name: str) -> str:
    """File name of the log for benchmark `name`."""
    safe = "".join("-" if c in _UNSAFE_CHARS else c for c in name)
    return f"{safe}.log.db"


def log_path(log_dir: Path, name: str) -> Path:
    return Path(log_dir) / log_filename(name)


class BenchmarkHistory:
    """History log of a single benchmark."""

    def __init__(self, db_path: Path | str, name: str) -> None:
        """Initialize history.

        Args:
            db_path: Path to the SQLite log file.
            name: Benchmark name the log belongs to.
        """
        self.db_path = Path(db_path)
        self.name = name
        self.conn: sqlite3.Connection | None = None

    def __enter__(self) -> BenchmarkHistory:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def open(self) -> None:
        """Open the log, creating it if needed, and check its version.

        Raises:
            HistorySchemaMismatch: If the log has another schema version.
            HistoryError: If the file cannot be created or opened.
        """
        with self._storage_errors():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(self.db_path)
        try:
            self._init_schema()
        except HistorySchemaMismatch:
            self.close()
            raise
        except sqlite3.OperationalError as e:
            self.close()
            raise HistoryError(self.db_path, e) from e
        except sqlite3.DatabaseError as e:
            # Not a history log at all
            self.close()
            raise HistorySchemaMismatch(self.db_path, None, LOG_VERSION) from e

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    @contextmanager
    def _storage_errors(self) -> Iterator[None]:
        try:
            yield
        except (OSError, sqlite3.Error) as e:
            raise HistoryError(self.db_path, e) from e

    def _connection(self) -> sqlite3.Connection:
        if not self.conn:
            raise RuntimeError("History not open")
        return self.conn

    def _init_schema(self) -> None:
        conn = self._connection()
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS meta (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """)

        cursor.execute("SELECT value FROM meta WHERE key = 'log_version'")
        row = cursor.fetchone()
        if row is None:
            cursor.executemany(
                "INSERT INTO meta (key, value) VALUES (?, ?)",
                [("log_version", LOG_VERSION), ("name", self.name)],
            )
            logger.debug("Created history log %s", self.db_path)
        elif row[0] != LOG_VERSION:
            raise HistorySchemaMismatch(self.db_path, row[0], LOG_VERSION)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS entries (
                id INTEGER PRIMARY KEY,
                timestamp TEXT NOT NULL,
                sample_count INTEGER NOT NULL,
                runs_per_sample INTEGER NOT NULL,
                frequency REAL NOT NULL,
                aborted TEXT,
                failed_heuristic TEXT,
                options TEXT NOT NULL,
                environment TEXT NOT NULL,
                comment TEXT,
                version TEXT
            )
        """)

        conn.commit()

    def _get_meta(self, key: str) -> str | None:
        with self._storage_errors():
            cursor = self._connection().cursor()
            cursor.execute("SELECT value FROM meta WHERE key = ?", (key,))
            row = cursor.fetchone()
        return row[0] if row else None

    def _set_meta(self, key: str, value: str | None) -> None:
        conn = self._connection()
        with self._storage_errors():
            conn.execute(
                "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)", (key, value)
            )
            conn.commit()

    @property
    def baseline_index(self) -> int | None:
        value = self._get_meta("baseline")
        return int(value) if value is not None else None

    def entries(self) -> list[HistoryEntry]:
        """All entries, oldest first."""
        cursor = self._connection().cursor()
        with self._storage_errors():
            cursor.execute(
                """
                SELECT timestamp, sample_count, runs_per_sample, frequency,
                       aborted, failed_heuristic, options, environment,
                       comment, version
                FROM entries ORDER BY id
                """
            )
            rows = cursor.fetchall()
        return [_entry_from_row(row) for row in rows]

    def __len__(self) -> int:
        cursor = self._connection().cursor()
        with self._storage_errors():
            cursor.execute("SELECT COUNT(*) FROM entries")
            return cursor.fetchone()[0]

    def baseline(self) -> HistoryEntry | None:
        """The entry marked as baseline, or None."""
        index = self.baseline_index
        if index is None:
            return None
        entries = self.entries()
        if not 0 <= index < len(entries):
            logger.warning(
                "%s: baseline index %d is out of range, ignoring", self.name, index
            )
            return None
        return entries[index]

    def append(self, entry: HistoryEntry, set_baseline: bool = False) -> int:
        """Append an entry, returning its index.

        Args:
            entry: Entry to log.
            set_baseline: Mark the new entry as the baseline.
        """
        conn = self._connection()
        result = entry.result
        index = len(self)
        with self._storage_errors():
            conn.execute(
                """
                INSERT INTO entries (
                    timestamp, sample_count, runs_per_sample, frequency, aborted,
                    failed_heuristic, options, environment, comment, version
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.timestamp.isoformat(),
                    result.sample_count,
                    result.runs_per_sample,
                    result.frequency,
                    result.aborted,
                    json.dumps(status_to_dict(result.failed_heuristic)),
                    json.dumps(entry.options.to_dict()),
                    json.dumps(asdict(entry.environment)),
                    entry.comment,
                    entry.version,
                ),
            )
            conn.commit()
        if set_baseline:
            self.set_baseline(index)
        return index

    def set_baseline(self, index: int) -> None:
        """Mark the entry at `index` as the baseline."""
        if not 0 <= index < len(self):
            raise IndexError(f"No history entry #{index} for {self.name}")
        self._set_meta("baseline", str(index))


def _entry_from_row(row: tuple) -> HistoryEntry:
    failed = status_from_dict(json.loads(row[5])) if row[5] else None
    result = BenchmarkResult(
        sample_count=row[1],
        runs_per_sample=row[2],
        frequency=row[3],
        aborted=row[4],
        failed_heuristic=failed,
        blocked_heuristics=(failed,) if failed else (),
    )
    return HistoryEntry(
        timestamp=datetime.fromisoformat(row[0]),
        result=result,
        options=RunOptions.from_dict(json.loads(row[6])),
        environment=Environment(**json.loads(row[7])),
        comment=row[8],
        version=row[9],
    )
