"""Benchmark file discovery.

A benchmark file is a Python module with a `register(registry)` function.
Discovery imports every matching file and lets it register its units on a
single `Registry`.
"""

from __future__ import annotations

import hashlib
import importlib.util
import logging
import sys
from collections.abc import Iterable
from fnmatch import fnmatchcase
from pathlib import Path

from steadybench.catalog import Registry
from steadybench.errors import ConfigurationInvalid

logger = logging.getLogger(__name__)


def matches(rel_path: str, patterns: Iterable[str]) -> bool:
    """Check a POSIX relative path against glob patterns.

    `*` also matches "/", and a leading "**/" may match nothing, so
    "**/*_bench.py" matches both "a_bench.py" and "x/y/a_bench.py".
    """
    for pattern in patterns:
        if fnmatchcase(rel_path, pattern):
            return True
        if pattern.startswith("**/") and fnmatchcase(rel_path, pattern[3:]):
            return True
    return False


def find_benchmark_files(
    root: Path, include: Iterable[str], exclude: Iterable[str]
) -> list[Path]:
    """Benchmark files under `root`, sorted by relative path."""
    include = list(include)
    exclude = list(exclude)
    found = []
    for path in sorted(root.rglob("*.py")):
        rel_path = path.relative_to(root).as_posix()
        if matches(rel_path, include) and not matches(rel_path, exclude):
            found.append(path)
    return found


def load_benchmark_file(path: Path, registry: Registry) -> bool:
    """Import `path` and call its `register` function.

    Returns:
        False if the file has no `register` function.
    """
    digest = hashlib.sha256(str(path.resolve()).encode("utf-8")).hexdigest()[:12]
    module_name = f"_steadybench_{path.stem}_{digest}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ConfigurationInvalid(f"Cannot import benchmark file {path}")
    module = importlib.util.module_from_spec(spec)
    before = len(registry)
    # Sibling modules of the benchmark file are importable while it loads
    sys.path.insert(0, str(path.parent))
    try:
        spec.loader.exec_module(module)
        register = getattr(module, "register", None)
        if not callable(register):
            logger.warning("%s has no register() function, skipping", path)
            return False
        register(registry)
    finally:
        sys.path.remove(str(path.parent))
    logger.debug("%s registered %d benchmark(s)", path, len(registry) - before)
    return True


def discover(
    root: Path,
    include: Iterable[str],
    exclude: Iterable[str],
    registry: Registry | None = None,
) -> Registry:
    """Collect benchmarks from every matching file under `root`."""
    registry = registry if registry is not None else Registry()
    if not root.is_dir():
        raise ConfigurationInvalid(f"Benchmark root is not a directory: {root}")
    for path in find_benchmark_files(root, include, exclude):
        load_benchmark_file(path, registry)
    return registry
