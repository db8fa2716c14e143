"""Terminal rendering of progress and results.

Progress lines overwrite each other on the same terminal line; the result
line replaces the last progress line.
"""

from __future__ import annotations

import math
import sys
from typing import TextIO

from steadybench.sampling import BenchmarkResult, Progress

BOL = "\r"
CLR = "\x1b[K"


def format_float(value: float, min_length: int) -> str:
    """Format with as many decimals as needed to reach `min_length` chars."""
    if not math.isfinite(value):
        return str(value)
    text = ""
    for digits in range(21):
        text = f"{value:,.{digits}f}"
        if len(text) >= min_length:
            break
    return text


def format_frequency(value: float) -> str:
    return format_float(value, 6)


def format_percentage(value: float) -> str:
    """Signed percentage, e.g. "+1.2%" or "-30%"."""
    text = format_float(value, 3) + "%"
    if not text.startswith("-"):
        return "+" + text
    return text


def format_progress(name: str, progress: Progress) -> str:
    """One-line description of where a run is."""
    status = progress.waiting_for_heuristic
    count = f"{progress.sample_count:,}"
    if not progress.sample_count:
        return f"{name}: collecting samples..."
    if status is None:
        return f"{name}: ({count}) collecting samples..."
    if status.heuristic == "cooldown":
        return f"{name}: ({count}) waiting for cooldown ({status.samples_since_best})..."
    if status.heuristic == "confirmation":
        return (
            f"{name}: ({count}) waiting for confirmation "
            f"({status.confirming_samples})..."
        )
    variance = format_percentage(status.current_variance * 100)
    return f"{name}: ({count}) trying to meet the baseline ({variance})..."


def format_result(
    name: str,
    name_width: int,
    result: BenchmarkResult,
    baseline: BenchmarkResult | None = None,
) -> str:
    """Result line: frequency, change against baseline, abort reason."""
    line = f"{name + ':':<{name_width + 1}} {format_frequency(result.frequency)} runs/sec"
    if baseline is not None and baseline.frequency:
        change = (result.frequency - baseline.frequency) * 100 / baseline.frequency
        line += f" {format_percentage(change)}"
    if result.aborted:
        reason = "timed out" if result.aborted == "timeout" else "gave up"
        if result.failed_heuristic is not None:
            detail = f"failed {result.failed_heuristic.heuristic}"
        else:
            detail = "not enough samples"
        line += f" ({reason}, {detail})"
    return line


def print_same_line(message: str, stream: TextIO | None = None) -> None:
    """Overwrite the current terminal line with `message`."""
    stream = stream if stream is not None else sys.stdout
    stream.write(f"{BOL}{CLR}{message}")
    stream.flush()
