from datetime import date

from princess_scheduler.core.io.load_catalog import load_catalog
from princess_scheduler.core.lint.lint_catalog import lint_catalog
from princess_scheduler.core.model import DateOverride


def test_lint_clean_catalog():
    assert lint_catalog(load_catalog("examples/basic-catalog.yaml")) == []
    assert lint_catalog(load_catalog("examples/playbook.yaml")) == []


def test_lint_unsorted_catalog():
    errors = lint_catalog(load_catalog("examples/unsorted-catalog.yaml"))
    assert [e.code for e in errors] == ["L_DEPENDENCY_AFTER_DEPENDENT", "L_DEPENDENCY_AFTER_DEPENDENT"]
    assert [e.path for e in errors] == ["stages[0].dependencies[0]", "stages[0].dependencies[1]"]


def test_lint_duplicate_number_index_and_default_duration():
    raw = {
        "schema_version": "0.1.0",
        "stages": [
            {"id": "S1", "name": "A", "number_index": 1, "estimated_duration_days": 2},
            {"id": "S2", "name": "B", "number_index": 1},
        ],
    }
    codes = {(e.code, e.path) for e in lint_catalog(raw)}
    assert ("L_DUPLICATE_NUMBER_INDEX", "stages[1].number_index") in codes
    assert ("L_DEFAULT_DURATION", "stages[1].estimated_duration_days") in codes


def test_lint_override_unknown_stage():
    overrides = {
        "S3": DateOverride(stage_id="S3", date=date(2025, 1, 3)),
        "S99": DateOverride(stage_id="S99", date=date(2025, 1, 3)),
    }
    errors = lint_catalog(load_catalog("examples/basic-catalog.yaml"), overrides)
    assert [(e.code, e.path) for e in errors] == [("L_OVERRIDE_UNKNOWN_STAGE", "overrides.S99")]


def test_lint_ignores_bad_shape():
    assert lint_catalog({"stages": None}) == []
