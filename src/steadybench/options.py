"""Benchmark options.

Options come in two layers:
- `RunOptions`: the fully resolved configuration one sampling loop runs
  with. A disabled heuristic or bound is `None`.
- `BenchmarkOptions`: an override layer (project defaults, CLI flags,
  per-benchmark options). Every field is either `DEFAULT` (inherit),
  `DISABLED` (explicitly off) or a configured value.
"""

from __future__ import annotations

import dataclasses
import enum
import math
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass, fields
from typing import Any

from steadybench.errors import ConfigurationInvalid


class Setting(enum.Enum):
    """Non-value states of an option override."""

    DEFAULT = "default"
    DISABLED = "disabled"

    def __repr__(self) -> str:
        return self.name


DEFAULT = Setting.DEFAULT
DISABLED = Setting.DISABLED


@dataclass(frozen=True)
class ConfirmationHeuristic:
    """Require `sample_count` samples within `variance` of the best one."""

    sample_count: int
    variance: float


@dataclass(frozen=True)
class CooldownHeuristic:
    """Require `sample_count` samples in a row that do not beat the best."""

    sample_count: int


@dataclass(frozen=True)
class BaselineHeuristic:
    """Give a run slower than the baseline up to `sample_count` samples."""

    sample_count: int
    variance: float


@dataclass(frozen=True)
class RunOptions:
    """Resolved options for a single benchmark run.

    Attributes:
        min_sample_duration: Minimum duration of one sample in seconds.
        min_sample_count: Samples to take before any stopping decision.
        max_sample_count: Hard cap on samples, or None for unbounded.
        timeout: Wall-clock budget in seconds, or None.
        runs_per_sample: Fixed batch size, or None to calibrate.
        confirmation: Confirmation heuristic, or None when disabled.
        cooldown: Cooldown heuristic, or None when disabled.
        baseline: Baseline-regression heuristic, or None when disabled.
    """

    min_sample_duration: float = 1.0
    min_sample_count: int = 8
    max_sample_count: int | None = 32
    timeout: float | None = None
    runs_per_sample: int | None = None
    confirmation: ConfirmationHeuristic | None = ConfirmationHeuristic(
        sample_count=2, variance=0.01
    )
    cooldown: CooldownHeuristic | None = CooldownHeuristic(sample_count=3)
    baseline: BaselineHeuristic | None = BaselineHeuristic(
        sample_count=32, variance=0.01
    )

    def validate(self) -> RunOptions:
        """Check ranges and consistency, returning self.

        Raises:
            ConfigurationInvalid: On the first offending value.
        """
        _check_number("min_sample_duration", self.min_sample_duration)
        _check_count("min_sample_count", self.min_sample_count)

        if self.runs_per_sample is not None:
            _check_count("runs_per_sample", self.runs_per_sample, minimum=1)
        elif self.min_sample_duration <= 0:
            msg = "min_sample_duration must be positive unless runs_per_sample is fixed"
            raise ConfigurationInvalid(msg)

        if self.max_sample_count is not None:
            _check_count("max_sample_count", self.max_sample_count, minimum=1)
            if self.max_sample_count < self.min_sample_count:
                msg = (
                    f"max_sample_count ({self.max_sample_count}) is below "
                    f"min_sample_count ({self.min_sample_count})"
                )
                raise ConfigurationInvalid(msg)

        if self.timeout is not None:
            _check_number("timeout", self.timeout)
            if self.timeout == 0:
                raise ConfigurationInvalid("timeout must be positive")

        for name in ("confirmation", "cooldown", "baseline"):
            heuristic = getattr(self, name)
            if heuristic is None:
                continue
            _check_count(f"{name}.sample_count", heuristic.sample_count)
            if hasattr(heuristic, "variance"):
                _check_number(f"{name}.variance", heuristic.variance)

        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to plain data (heuristics become dicts, disabled stay None)."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RunOptions:
        """Rebuild options stored with `to_dict`."""
        defaults = cls()
        return cls(
            min_sample_duration=data.get(
                "min_sample_duration", defaults.min_sample_duration
            ),
            min_sample_count=data.get("min_sample_count", defaults.min_sample_count),
            max_sample_count=data.get("max_sample_count"),
            timeout=data.get("timeout"),
            runs_per_sample=data.get("runs_per_sample"),
            confirmation=_heuristic_or_none(
                ConfirmationHeuristic, data.get("confirmation")
            ),
            cooldown=_heuristic_or_none(CooldownHeuristic, data.get("cooldown")),
            baseline=_heuristic_or_none(BaselineHeuristic, data.get("baseline")),
        )


# Options that always need a value once resolved
_REQUIRED = frozenset({"min_sample_duration", "min_sample_count"})


@dataclass(frozen=True)
class BenchmarkOptions:
    """Option overrides layered over `RunOptions`.

    `DEFAULT` inherits the value from the layer below. `DISABLED` turns a
    heuristic off, removes the max sample count or timeout, or asks for
    `runs_per_sample` to be calibrated.
    """

    min_sample_duration: float | Setting = DEFAULT
    min_sample_count: int | Setting = DEFAULT
    max_sample_count: int | Setting = DEFAULT
    timeout: float | Setting = DEFAULT
    runs_per_sample: int | Setting = DEFAULT
    confirmation: ConfirmationHeuristic | Setting = DEFAULT
    cooldown: CooldownHeuristic | Setting = DEFAULT
    baseline: BaselineHeuristic | Setting = DEFAULT

    def combine(self, other: BenchmarkOptions) -> BenchmarkOptions:
        """Layer `other` on top of these overrides."""
        changes = {
            f.name: getattr(other, f.name)
            for f in fields(other)
            if getattr(other, f.name) is not DEFAULT
        }
        return dataclasses.replace(self, **changes)

    def merge_over(self, base: RunOptions) -> RunOptions:
        """Resolve these overrides against `base`.

        Raises:
            ConfigurationInvalid: If a required option is disabled.
        """
        changes: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is DEFAULT:
                continue
            if value is DISABLED:
                if f.name in _REQUIRED:
                    raise ConfigurationInvalid(f"{f.name} cannot be disabled")
                value = None
            changes[f.name] = value
        return dataclasses.replace(base, **changes)


def coerce_options(value: BenchmarkOptions | Mapping[str, Any] | None) -> BenchmarkOptions:
    """Accept options as a `BenchmarkOptions`, a mapping, or None."""
    if value is None:
        return BenchmarkOptions()
    if isinstance(value, BenchmarkOptions):
        return value
    return options_from_mapping(value)


def options_from_mapping(data: Mapping[str, Any] | None) -> BenchmarkOptions:
    """Parse an options mapping as found in YAML configuration.

    A missing key inherits, `false` or `null` disables, a mapping configures
    a heuristic and `true` keeps its default configuration. A `timeout` or
    `runs_per_sample` of 0 disables the timeout or asks for calibration.

    Raises:
        ConfigurationInvalid: On unknown keys or values of the wrong type.
    """
    if data is None:
        return BenchmarkOptions()
    if not isinstance(data, Mapping):
        msg = f"options must be a mapping, got {type(data).__name__}"
        raise ConfigurationInvalid(msg)

    unknown = sorted(set(data) - set(_PARSERS))
    if unknown:
        raise ConfigurationInvalid(f"Unknown option(s): {', '.join(unknown)}")

    return BenchmarkOptions(**{key: _PARSERS[key](key, raw) for key, raw in data.items()})


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_number(name: str, value: object) -> None:
    if not _is_number(value) or not math.isfinite(value) or value < 0:  # type: ignore[arg-type,operator]
        msg = f"{name} must be a non-negative number, got {value!r}"
        raise ConfigurationInvalid(msg)


def _check_count(name: str, value: object, minimum: int = 0) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value < minimum:
        msg = f"{name} must be an integer >= {minimum}, got {value!r}"
        raise ConfigurationInvalid(msg)


def _is_off(raw: object) -> bool:
    return raw is None or raw is False


def _parse_number(key: str, raw: Any) -> float | Setting:
    if _is_off(raw) or raw in ("none", "unbounded"):
        return DISABLED
    if not _is_number(raw):
        raise ConfigurationInvalid(f"{key} must be a number, got {raw!r}")
    return float(raw)


def _parse_count(key: str, raw: Any) -> int | Setting:
    if _is_off(raw) or raw in ("auto", "unbounded"):
        return DISABLED
    if not isinstance(raw, int) or isinstance(raw, bool):
        raise ConfigurationInvalid(f"{key} must be an integer, got {raw!r}")
    return raw


def _zero_disables(
    parse: Callable[[str, Any], Any],
) -> Callable[[str, Any], Any]:
    # 0 means "no timeout" and "calibrate" rather than an invalid value
    def wrapped(key: str, raw: Any) -> Any:
        if _is_number(raw) and raw == 0:
            return DISABLED
        return parse(key, raw)

    return wrapped


def _heuristic_parser(kind: type) -> Callable[[str, Any], Any]:
    def parse(key: str, raw: Any) -> Any:
        if _is_off(raw):
            return DISABLED
        if raw is True:
            return DEFAULT
        if not isinstance(raw, Mapping):
            msg = f"{key} must be a mapping or false, got {raw!r}"
            raise ConfigurationInvalid(msg)
        names = {f.name for f in fields(kind)}
        if set(raw) != names:
            msg = f"{key} needs exactly the keys {', '.join(sorted(names))}"
            raise ConfigurationInvalid(msg)
        return kind(**raw)

    return parse


def _heuristic_or_none(kind: type, data: Mapping[str, Any] | None) -> Any:
    if data is None:
        return None
    return kind(**data)


_PARSERS: dict[str, Callable[[str, Any], Any]] = {
    "min_sample_duration": _parse_number,
    "min_sample_count": _parse_count,
    "max_sample_count": _parse_count,
    "timeout": _zero_disables(_parse_number),
    "runs_per_sample": _zero_disables(_parse_count),
    "confirmation": _heuristic_parser(ConfirmationHeuristic),
    "cooldown": _heuristic_parser(CooldownHeuristic),
    "baseline": _heuristic_parser(BaselineHeuristic),
}
