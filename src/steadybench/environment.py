"""Description of the environment a benchmark ran in.

Stored with every history entry so results can be told apart when the
interpreter, steadybench itself or the measured project changes.
"""

from __future__ import annotations

import platform
import subprocess
import tomllib
from dataclasses import dataclass
from pathlib import Path

from steadybench import __version__


@dataclass(frozen=True)
class Environment:
    """Environment descriptor.

    Attributes:
        python_implementation: Interpreter name (e.g., "CPython", "PyPy").
        python_version: Interpreter version (e.g., "3.12.0").
        runner_version: steadybench version.
        module_name: Name of the project being benchmarked.
        module_version: Version of the project being benchmarked.
        git_commit: Short commit hash of the project, if under git.
    """

    python_implementation: str
    python_version: str
    runner_version: str
    module_name: str | None = None
    module_version: str | None = None
    git_commit: str | None = None


def find_pyproject(start: Path) -> Path | None:
    """Find the nearest pyproject.toml at or above `start`."""
    for directory in (start, *start.parents):
        candidate = directory / "pyproject.toml"
        if candidate.is_file():
            return candidate
    return None


def read_project_metadata(pyproject: Path) -> tuple[str | None, str | None]:
    """Read (name, version) from the [project] table of a pyproject.toml."""
    try:
        with pyproject.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return None, None
    project = data.get("project", {})
    return project.get("name"), project.get("version")


def get_git_commit(cwd: Path | None = None) -> str | None:
    """Get current git commit hash."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
            cwd=cwd,
        )
        if result.returncode == 0:
            return result.stdout.strip()[:12]  # Short hash
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError):
        pass
    return None


def detect_environment(
    project_dir: Path,
    module_name: str | None = None,
    module_version: str | None = None,
) -> Environment:
    """Describe the current interpreter and the project in `project_dir`.

    Explicit `module_name`/`module_version` win over pyproject.toml.
    """
    if module_name is None or module_version is None:
        pyproject = find_pyproject(project_dir)
        if pyproject is not None:
            name, version = read_project_metadata(pyproject)
            module_name = module_name if module_name is not None else name
            module_version = module_version if module_version is not None else version

    return Environment(
        python_implementation=platform.python_implementation(),
        python_version=platform.python_version(),
        runner_version=__version__,
        module_name=module_name,
        module_version=module_version,
        git_commit=get_git_commit(project_dir),
    )
