from datetime import date

import pytest

from princess_scheduler.core.errors import CatalogLoadError
from princess_scheduler.core.io.load_catalog import load_catalog, parse_date


def test_load_yaml_success():
    catalog = load_catalog("examples/basic-catalog.yaml")
    assert catalog["schema_version"] == "0.1.0"
    assert isinstance(catalog["stages"], list)
    assert catalog["__file__"].endswith("basic-catalog.yaml")


def test_load_json_success(tmp_path):
    p = tmp_path / "catalog.json"
    p.write_text('{"schema_version": "0.1.0", "stages": [], "extra": 1}', encoding="utf-8")
    catalog = load_catalog(str(p))
    assert catalog["stages"] == []
    assert "extra" not in catalog


def test_load_missing_file():
    try:
        load_catalog("examples/does-not-exist.yaml")
        assert False, "expected CatalogLoadError"
    except CatalogLoadError as e:
        assert e.code == "E_FILE_NOT_FOUND"


def test_load_unsupported_format(tmp_path):
    p = tmp_path / "catalog.txt"
    p.write_text("hello", encoding="utf-8")
    try:
        load_catalog(str(p))
        assert False, "expected CatalogLoadError"
    except CatalogLoadError as e:
        assert e.code == "E_UNSUPPORTED_FORMAT"


def test_load_bad_json(tmp_path):
    p = tmp_path / "catalog.json"
    p.write_text("{not json", encoding="utf-8")
    try:
        load_catalog(str(p))
        assert False, "expected CatalogLoadError"
    except CatalogLoadError as e:
        assert e.code == "E_JSON_PARSE"


def test_load_non_mapping(tmp_path):
    p = tmp_path / "catalog.yaml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    try:
        load_catalog(str(p))
        assert False, "expected CatalogLoadError"
    except CatalogLoadError as e:
        assert e.code == "E_INVALID_TOP_LEVEL"


def test_parse_date_accepts_dates_and_timestamps():
    assert parse_date("2025-01-01") == date(2025, 1, 1)
    assert parse_date(" 2025-01-01 ") == date(2025, 1, 1)
    assert parse_date("2025-01-01T18:30:00") == date(2025, 1, 1)
    assert parse_date("2025-01-01 09:00") == date(2025, 1, 1)
    assert parse_date(date(2025, 1, 1)) == date(2025, 1, 1)


@pytest.mark.parametrize("value", ["2025-01-0199", "2025-01-01 garbage", "2025-13-01", 20250101])
def test_parse_date_rejects_trailing_junk(value):
    with pytest.raises(ValueError):
        parse_date(value)
