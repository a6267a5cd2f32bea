"""
Run configuration for the ServeRest load test.

Settings that change between environments (target host, file locations)
come from environment variables with sensible defaults.  The load
profile itself (ramp stages and acceptance thresholds) lives in
:file:`options.yml` so it can be reviewed and tuned without touching
code.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from serverest_load.thresholds import Threshold, parse_thresholds

# Base directory of the package
BASE_DIR = Path(__file__).resolve().parent

DEFAULT_BASE_URL = "https://serverest.dev"

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNIT_SECONDS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def resolve_base_url(environ: Mapping[str, str] | None = None) -> str:
    """
    Return the target API root, honouring the ``URL_BASE`` override.

    Args:
        environ: Mapping to read from. If None, uses ``os.environ``.
    """
    if environ is None:
        environ = os.environ
    return (environ.get("URL_BASE") or DEFAULT_BASE_URL).rstrip("/")


class Config:
    """Environment-backed settings, resolved once at import."""

    BASE_URL: str = resolve_base_url()

    PRODUCTS_PATH: Path = Path(
        os.environ.get("PRODUCTS_PATH", BASE_DIR / "data" / "produtos.json")
    )
    OPTIONS_PATH: Path = Path(
        os.environ.get("LOAD_OPTIONS_PATH", BASE_DIR / "options.yml")
    )
    REPORT_DIR: Path = Path(os.environ.get("REPORT_DIR", "."))

    LOGIN_TREND: str = "login_duration"


def parse_duration(value: str | int | float) -> float:
    """
    Convert a stage duration such as ``"5s"``, ``"1m30s"`` or ``"250ms"``
    into seconds.  Bare numbers are taken as seconds.

    Raises:
        ValueError: If the value is negative or not a recognised duration.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"Duration must not be negative: {value!r}")
        return float(value)

    text = str(value).strip()
    parts = _DURATION_PART.findall(text)
    if not parts or "".join(number + unit for number, unit in parts) != text:
        raise ValueError(f"Invalid duration: {value!r}")

    return sum(float(number) * _UNIT_SECONDS[unit] for number, unit in parts)


@dataclass(frozen=True)
class Stage:
    """Ramp linearly toward ``target`` users over ``duration`` seconds."""

    duration: float
    target: int


@dataclass(frozen=True)
class RunOptions:
    stages: tuple[Stage, ...]
    thresholds: dict[str, list[Threshold]] = field(default_factory=dict)

    @property
    def total_duration(self) -> float:
        return sum(stage.duration for stage in self.stages)


def _parse_stages(raw: object) -> tuple[Stage, ...]:
    if not isinstance(raw, list) or not raw:
        raise ValueError("Options must define a non-empty 'stages' list")

    stages = []
    for index, entry in enumerate(raw):
        try:
            duration = parse_duration(entry["duration"])
            target = int(entry["target"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(
                f"Stage #{index} must define a duration and an integer target"
            ) from exc
        if target < 0:
            raise ValueError(f"Stage #{index} target must not be negative")
        stages.append(Stage(duration=duration, target=target))
    return tuple(stages)


def load_options(path: Path | str | None = None) -> RunOptions:
    """
    Read stages and thresholds from a YAML options file.

    Args:
        path: Options file location. If None, uses ``Config.OPTIONS_PATH``.

    Returns:
        The parsed :class:`RunOptions`.

    Raises:
        ValueError: If the stages or thresholds are malformed.
    """
    options_path = Path(path) if path is not None else Config.OPTIONS_PATH
    with options_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    if not isinstance(data, dict):
        raise ValueError("Options file must contain a mapping")

    thresholds = data.get("thresholds") or {}
    if not isinstance(thresholds, dict):
        raise ValueError("Options 'thresholds' must be a mapping")

    return RunOptions(
        stages=_parse_stages(data.get("stages")),
        thresholds=parse_thresholds(thresholds),
    )
