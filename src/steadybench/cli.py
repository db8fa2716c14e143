"""Command-line interface for steadybench.

Provides the `steadybench` command with subcommands for:
- Running benchmarks
- Showing the history of a benchmark
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from steadybench import __version__
from steadybench.catalog import BenchmarkUnit
from steadybench.config import ProjectConfig, load_config
from steadybench.discovery import discover
from steadybench.environment import detect_environment
from steadybench.errors import BenchError, ConfigurationInvalid
from steadybench.history import BenchmarkHistory, log_path
from steadybench.options import BenchmarkOptions
from steadybench.output import (
    format_frequency,
    format_progress,
    format_result,
    print_same_line,
)
from steadybench.runner import BenchmarkRunner, UnitOutcome, format_summary
from steadybench.sampling import Progress


def _float_option(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError("Not a number") from None
    if number <= 0:
        raise argparse.ArgumentTypeError("Must be positive")
    return number


def _load_config(args: argparse.Namespace) -> ProjectConfig | None:
    try:
        return load_config(args.config)
    except ConfigurationInvalid as e:
        print(f"Error loading configuration: {e}")
        return None


def _log_dir(args: argparse.Namespace, config: ProjectConfig) -> Path:
    if not args.log_dir:
        return config.log_dir
    return (config.config_dir / args.log_dir).resolve()


def cmd_run(args: argparse.Namespace) -> int:
    """Run benchmarks."""
    config = _load_config(args)
    if config is None:
        return 1

    defaults = config.options
    if args.min_sample_duration is not None:
        defaults = defaults.combine(
            BenchmarkOptions(min_sample_duration=args.min_sample_duration)
        )

    try:
        registry = discover(config.root_dir, config.benchmark_paths, config.exclude_paths)
        units = registry.select(args.include)
    except Exception as e:
        print(f"Error loading benchmarks: {e}")
        return 1

    environment = detect_environment(
        config.config_dir, config.module_name, config.module_version
    )
    name_width = max((len(unit.name) for unit in units), default=0)

    def start(unit: BenchmarkUnit) -> None:
        if not args.quiet:
            print_same_line(f"{unit.name}: initializing...")

    def progress(unit: BenchmarkUnit, p: Progress) -> None:
        if not args.quiet:
            print_same_line(format_progress(unit.name, p))

    def finished(unit: BenchmarkUnit, outcome: UnitOutcome) -> None:
        if outcome.result is not None:
            print_same_line(
                format_result(unit.name, name_width, outcome.result, outcome.baseline)
            )
        else:
            print_same_line(f"{unit.name + ':':<{name_width + 1}} FAILED ({outcome.error})")
        print()

    runner = BenchmarkRunner(
        units=units,
        defaults=defaults,
        log_dir=_log_dir(args, config),
        save=not args.no_log,
        set_baseline=args.set_baseline,
        environment=environment,
        start_callback=start,
        progress_callback=progress,
        outcome_callback=finished,
    )

    print(f"Running {len(units)} benchmark{'' if len(units) == 1 else 's'}...")
    session = runner.run_all()

    if session.failed:
        print()
        print(format_summary(session))
        return 1
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    """Show the history log of one benchmark."""
    config = _load_config(args)
    if config is None:
        return 1

    path = log_path(_log_dir(args, config), args.name)
    if not path.exists():
        print(f"No history recorded for {args.name}.")
        return 0

    try:
        with BenchmarkHistory(path, args.name) as history:
            if args.set_baseline is not None:
                history.set_baseline(args.set_baseline)
                print(f"Entry #{args.set_baseline} is now the baseline.")
            entries = history.entries()
            baseline_index = history.baseline_index
    except (BenchError, IndexError) as e:
        print(f"Error: {e}")
        return 1

    print(f"History of {args.name}")
    print("=" * 80)
    print(f"{'#':>4}   {'Date':<16} {'runs/sec':>14} {'Samples':>8}  Note")
    print("-" * 80)
    for index, entry in enumerate(entries):
        marker = "*" if index == baseline_index else " "
        date_str = entry.timestamp.strftime("%Y-%m-%d %H:%M")
        note = entry.result.aborted or ""
        if entry.comment:
            note = f"{note} {entry.comment}".strip()
        print(
            f"{index:>4} {marker} {date_str:<16} "
            f"{format_frequency(entry.result.frequency):>14} "
            f"{entry.result.sample_count:>8}  {note}"
        )
    print("-" * 80)
    print(f"Total: {len(entries)} entr{'y' if len(entries) == 1 else 'ies'} (* = baseline)")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="steadybench",
        description="Adaptive micro-benchmark runner",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debugging information to stderr",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-c",
        "--config",
        help="Benchmark config file (default: bench.yaml)",
    )
    common.add_argument(
        "--log-dir",
        help=(
            "Directory to put logs in, relative to the config file "
            "(default: bench-log)"
        ),
    )

    # run command
    run_parser = subparsers.add_parser("run", parents=[common], help="Run benchmarks")
    run_parser.add_argument(
        "-t",
        "--include",
        help="Run only benchmarks whose name matches this regex",
    )
    run_parser.add_argument(
        "--min-sample-duration",
        type=_float_option,
        metavar="SECONDS",
        help="Ensure that each sample takes at least this many seconds",
    )
    run_parser.add_argument(
        "--no-log",
        action="store_true",
        help="Don't save the results to the log",
    )
    run_parser.add_argument(
        "--set-baseline",
        action="store_true",
        help='Mark these results as the "baseline" for future runs',
    )
    run_parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Print only the results of the benchmarks (no progress)",
    )
    run_parser.set_defaults(func=cmd_run)

    # history command
    history_parser = subparsers.add_parser(
        "history", parents=[common], help="Show the history of a benchmark"
    )
    history_parser.add_argument("name", help="Benchmark name")
    history_parser.add_argument(
        "--set-baseline",
        type=int,
        metavar="INDEX",
        help="Mark an existing entry as the baseline",
    )
    history_parser.set_defaults(func=cmd_history)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
