"""Project configuration (bench.yaml).

Example:

    benchmark_paths: ["benchmarks/**/*_bench.py"]
    exclude_paths: ["**/.venv/**"]
    log_dir: bench-log
    module_name: mylib
    timeout: 60
    options:
      min_sample_duration: 0.5
      cooldown: false
      confirmation: {sample_count: 3, variance: 0.02}

Relative paths are resolved against the directory holding the file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from steadybench.errors import ConfigurationInvalid
from steadybench.options import (
    BenchmarkOptions,
    options_from_mapping,
)

DEFAULT_CONFIG_NAME = "bench.yaml"
DEFAULT_BENCHMARK_PATHS = ("**/*_bench.py",)
DEFAULT_EXCLUDE_PATHS = (
    "**/.*/**",
    "**/__pycache__/**",
    "**/venv/**",
    "**/site-packages/**",
)
DEFAULT_LOG_DIR = "bench-log"

_KEYS = frozenset(
    {
        "benchmark_paths",
        "exclude_paths",
        "root_dir",
        "log_dir",
        "module_name",
        "module_version",
        "timeout",
        "options",
    }
)


@dataclass
class ProjectConfig:
    """Configuration for a benchmark project.

    Attributes:
        config_dir: Directory of the config file (or the working directory).
        root_dir: Directory searched for benchmark files.
        log_dir: Directory holding history logs.
        benchmark_paths: Glob patterns of benchmark files, relative to root_dir.
        exclude_paths: Glob patterns excluded from the search.
        module_name: Name of the benchmarked project.
        module_version: Version of the benchmarked project.
        options: Default option overrides for every benchmark.
    """

    config_dir: Path
    root_dir: Path
    log_dir: Path
    benchmark_paths: list[str] = field(
        default_factory=lambda: list(DEFAULT_BENCHMARK_PATHS)
    )
    exclude_paths: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATHS))
    module_name: str | None = None
    module_version: str | None = None
    options: BenchmarkOptions = field(default_factory=BenchmarkOptions)


def _string_list(key: str, value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise ConfigurationInvalid(f"{key} must be a string or a list of strings")


def _optional_string(key: str, value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if not isinstance(value, str):
        raise ConfigurationInvalid(f"{key} must be a string")
    return value


def parse_config(data: dict[str, Any] | None, config_dir: Path) -> ProjectConfig:
    """Build a `ProjectConfig` from parsed YAML data.

    Raises:
        ConfigurationInvalid: On unknown keys or malformed values.
    """
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigurationInvalid("Configuration must be a mapping")

    unknown = sorted(set(data) - _KEYS)
    if unknown:
        raise ConfigurationInvalid(f"Unknown configuration key(s): {', '.join(unknown)}")

    options = options_from_mapping(data.get("options"))
    if "timeout" in data:
        options = options.combine(options_from_mapping({"timeout": data["timeout"]}))

    root_dir = config_dir / _optional_string("root_dir", data.get("root_dir") or ".")
    log_dir = config_dir / _optional_string(
        "log_dir", data.get("log_dir") or DEFAULT_LOG_DIR
    )

    config = ProjectConfig(
        config_dir=config_dir,
        root_dir=root_dir.resolve(),
        log_dir=log_dir.resolve(),
        module_name=_optional_string("module_name", data.get("module_name")),
        module_version=_optional_string("module_version", data.get("module_version")),
        options=options,
    )
    if "benchmark_paths" in data:
        config.benchmark_paths = _string_list("benchmark_paths", data["benchmark_paths"])
    if "exclude_paths" in data:
        config.exclude_paths = _string_list("exclude_paths", data["exclude_paths"])
    return config


def load_config(config_path: Path | str | None = None) -> ProjectConfig:
    """Load project configuration from YAML.

    Args:
        config_path: Path to the config file. When None, bench.yaml in the
            working directory is used if it exists, defaults otherwise.

    Returns:
        Project configuration.

    Raises:
        ConfigurationInvalid: If an explicit file is missing, or any file is
            not valid YAML or has invalid content.
    """
    if config_path is None:
        path = Path.cwd() / DEFAULT_CONFIG_NAME
        if not path.exists():
            return parse_config({}, Path.cwd().resolve())
    else:
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationInvalid(f"Configuration file not found: {path}")

    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationInvalid(f"Invalid YAML in {path}: {e}") from e

    return parse_config(data, path.resolve().parent)
