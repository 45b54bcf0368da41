from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


DEFAULT_SETTINGS: dict[str, int] = {
    # Stages with no (or zero) estimate take this many days.
    "default_duration_days": 3,
    # Days between a predecessor's end and its dependent's start.
    "gap_days": 1,
}


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class SchedulerConfig:
    default_duration_days: int = DEFAULT_SETTINGS["default_duration_days"]
    gap_days: int = DEFAULT_SETTINGS["gap_days"]


def load_config_file(path: str | Path) -> dict[str, int]:
    """Load scheduler settings from a YAML file.

    Format:
      default_duration_days: 3
      gap_days: 1

    Unknown keys are rejected so typos do not silently fall back to defaults.
    """
    p = Path(path)
    raw: Any = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("config file must be a mapping of setting -> integer")

    out: dict[str, int] = {}
    for k, v in raw.items():
        if k not in DEFAULT_SETTINGS:
            raise ConfigError(
                f"unknown setting: {k} (choose from: {', '.join(sorted(DEFAULT_SETTINGS))})"
            )
        if isinstance(v, bool) or not isinstance(v, int):
            raise ConfigError(f"setting '{k}' must be an integer")
        if k == "default_duration_days" and v <= 0:
            raise ConfigError("setting 'default_duration_days' must be positive")
        if k == "gap_days" and v < 0:
            raise ConfigError("setting 'gap_days' must not be negative")
        out[k] = v
    return out


def merged_config(overrides: dict[str, int] | None = None) -> SchedulerConfig:
    """Return DEFAULT_SETTINGS merged with optional overrides."""
    merged = dict(DEFAULT_SETTINGS)
    if overrides:
        merged.update(overrides)
    return SchedulerConfig(**merged)


def load_and_merge(config_file: str | None) -> SchedulerConfig:
    if not config_file:
        return merged_config()
    return merged_config(load_config_file(config_file))
