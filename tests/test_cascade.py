from datetime import date

import pytest

from princess_scheduler.core.errors import ScheduleError
from princess_scheduler.core.io.load_catalog import load_catalog, load_overrides
from princess_scheduler.core.schedule.cascade import critical_path, shift_stage
from princess_scheduler.core.schedule.compute import compute_schedule
from princess_scheduler.core.validate.validate_catalog import validate_catalog


def _catalog():
    catalog, errors = validate_catalog(load_catalog("examples/basic-catalog.yaml"))
    assert errors == []
    assert catalog is not None
    return catalog


def test_shift_cascades_downstream():
    catalog = _catalog()
    base = compute_schedule(catalog.stages, date(2025, 1, 1))
    result = shift_stage(base, catalog.stages, "S2", date(2025, 1, 10))

    moved = {s.stage_id: s for s in result.shifts}
    assert sorted(moved) == ["S2", "S3", "S5"]
    assert (moved["S2"].new_start, moved["S2"].new_end) == (date(2025, 1, 10), date(2025, 1, 12))
    assert (moved["S3"].new_start, moved["S3"].new_end) == (date(2025, 1, 13), date(2025, 1, 18))
    assert (moved["S5"].new_start, moved["S5"].new_end) == (date(2025, 1, 19), date(2025, 1, 23))
    assert all(s.adjustment_days == 5 for s in result.shifts)

    after = result.schedule.by_id()
    assert after["S1"].start_date == date(2025, 1, 1)
    assert after["S4"].start_date == date(2025, 1, 5)
    assert result.schedule.end_date == date(2025, 1, 23)
    assert result.warnings == []


def test_shift_does_not_touch_input_schedule():
    catalog = _catalog()
    base = compute_schedule(catalog.stages, date(2025, 1, 1))
    shift_stage(base, catalog.stages, "S1", date(2025, 2, 1))
    assert base.by_id()["S1"].start_date == date(2025, 1, 1)


def test_shift_with_explicit_end_changes_length():
    catalog = _catalog()
    base = compute_schedule(catalog.stages, date(2025, 1, 1))
    result = shift_stage(base, catalog.stages, "S4", date(2025, 1, 5), date(2025, 1, 20))
    after = result.schedule.by_id()

    assert after["S4"].end_date == date(2025, 1, 20)
    # S5 now waits on S4 instead of S3.
    assert after["S5"].start_date == date(2025, 1, 21)


def test_shift_earlier_pulls_dependents_in():
    catalog = _catalog()
    base = compute_schedule(catalog.stages, date(2025, 1, 1))
    result = shift_stage(base, catalog.stages, "S3", date(2025, 1, 6))
    assert result.schedule.by_id()["S5"].start_date == date(2025, 1, 12)


def test_shift_skips_locked_dependents():
    catalog = _catalog()
    overrides = load_overrides("examples/overrides.yaml")
    base = compute_schedule(catalog.stages, date(2025, 1, 1), overrides)
    result = shift_stage(base, catalog.stages, "S2", date(2025, 1, 10))

    assert [s.stage_id for s in result.shifts] == ["S2"]
    assert result.schedule.by_id()["S3"].start_date == date(2025, 1, 3)
    assert [(w.code, w.path) for w in result.warnings] == [("W_SHIFT_BEFORE_DEPENDENCY", "S3")]


def test_shift_before_predecessors_end_warns():
    catalog = _catalog()
    base = compute_schedule(catalog.stages, date(2025, 1, 1))
    result = shift_stage(base, catalog.stages, "S3", date(2025, 1, 2))

    after = result.schedule.by_id()
    assert after["S3"].start_date == date(2025, 1, 2)
    assert after["S2"].end_date == date(2025, 1, 7)
    assert len(result.warnings) == 1
    w = result.warnings[0]
    assert (w.code, w.path) == ("W_SHIFT_BEFORE_DEPENDENCY", "S3")
    assert "2025-01-08" in w.message
    # S5 still follows the moved stage.
    assert after["S5"].start_date == date(2025, 1, 8)


def test_shift_locked_stage_rejected():
    catalog = _catalog()
    overrides = load_overrides("examples/overrides.yaml")
    base = compute_schedule(catalog.stages, date(2025, 1, 1), overrides)
    with pytest.raises(ScheduleError) as exc:
        shift_stage(base, catalog.stages, "S3", date(2025, 1, 10))
    assert exc.value.code == "E_STAGE_LOCKED"


def test_shift_unknown_stage_rejected():
    catalog = _catalog()
    base = compute_schedule(catalog.stages, date(2025, 1, 1))
    with pytest.raises(ScheduleError) as exc:
        shift_stage(base, catalog.stages, "NOPE", date(2025, 1, 10))
    assert exc.value.code == "E_UNKNOWN_STAGE"


def test_shift_end_before_start_rejected():
    catalog = _catalog()
    base = compute_schedule(catalog.stages, date(2025, 1, 1))
    with pytest.raises(ScheduleError) as exc:
        shift_stage(base, catalog.stages, "S1", date(2025, 1, 10), date(2025, 1, 9))
    assert exc.value.code == "E_INVALID_DATES"


def test_shift_to_same_dates_moves_nothing():
    catalog = _catalog()
    base = compute_schedule(catalog.stages, date(2025, 1, 1))
    result = shift_stage(base, catalog.stages, "S2", date(2025, 1, 5))
    assert result.shifts == []
    assert result.schedule == base


def test_critical_path_follows_latest_predecessors():
    catalog = _catalog()
    schedule = compute_schedule(catalog.stages, date(2025, 1, 1))
    assert critical_path(schedule, catalog.stages) == ["S1", "S2", "S3", "S5"]


def test_critical_path_empty_schedule():
    schedule = compute_schedule([], date(2025, 1, 1))
    assert critical_path(schedule, []) == []
