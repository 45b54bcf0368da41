from pathlib import Path

import pytest

from princess_scheduler.core.config import (
    ConfigError,
    SchedulerConfig,
    load_and_merge,
    load_config_file,
)


def test_defaults():
    assert load_and_merge(None) == SchedulerConfig(default_duration_days=3, gap_days=1)


def test_file_overrides_defaults():
    cfg = load_and_merge("examples/scheduler-config.yaml")
    assert cfg == SchedulerConfig(default_duration_days=5, gap_days=0)


def test_partial_file_keeps_other_defaults(tmp_path: Path):
    p = tmp_path / "cfg.yaml"
    p.write_text("gap_days: 2\n", encoding="utf-8")
    assert load_and_merge(str(p)) == SchedulerConfig(default_duration_days=3, gap_days=2)


def test_empty_file(tmp_path: Path):
    p = tmp_path / "cfg.yaml"
    p.write_text("", encoding="utf-8")
    assert load_config_file(p) == {}


@pytest.mark.parametrize(
    "text",
    [
        "- 1\n- 2\n",
        "gap: 1\n",
        "gap_days: one\n",
        "gap_days: -1\n",
        "default_duration_days: 0\n",
        "default_duration_days: true\n",
    ],
)
def test_invalid_files(tmp_path: Path, text: str):
    p = tmp_path / "cfg.yaml"
    p.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config_file(p)


def test_missing_file():
    with pytest.raises(FileNotFoundError):
        load_and_merge("examples/does-not-exist.yaml")
