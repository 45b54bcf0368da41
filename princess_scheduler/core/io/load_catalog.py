from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml

from princess_scheduler.core.errors import CatalogLoadError
from princess_scheduler.core.model import DateOverride


def _read_document(path: str) -> tuple[Path, Any]:
    p = Path(path)
    if not p.exists():
        raise CatalogLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except Exception as e:  # pragma: no cover
        raise CatalogLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            raise CatalogLoadError(
                code="E_UNSUPPORTED_FORMAT",
                message="supported formats are .yaml/.yml and .json",
                file=str(p),
            )
    except CatalogLoadError:
        raise
    except Exception as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise CatalogLoadError(code=code, message=str(e), file=str(p)) from e

    return p, data


def load_catalog(path: str) -> dict[str, Any]:
    """Load YAML/JSON stage catalog file.

    Returns a dict with keys: schema_version, stages.
    Does not coerce types; validator owns shape checking.
    """

    p, data = _read_document(path)

    if not isinstance(data, dict):
        raise CatalogLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )

    # Normalize: keep only expected keys; validator checks required ones.
    normalized: dict[str, Any] = {
        "schema_version": data.get("schema_version"),
        "stages": data.get("stages"),
    }
    normalized["__file__"] = str(p)
    return normalized


def parse_date(value: Any) -> date:
    """Accept a date, a datetime or an ISO-8601 string; drop any time of day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        # Full timestamps only; a bare date with trailing junk is not one.
        if len(text) > 10 and text[10] in "Tt ":
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            try:
                return datetime.fromisoformat(text).date()
            except ValueError:
                pass
    raise ValueError(f"not a calendar date: {value!r}")


def load_overrides(path: str) -> dict[str, DateOverride]:
    """Load a date overrides file.

    Format:
      <stage_id>: {date: 2025-01-10, locked: true}

    An empty file yields no overrides.
    """

    p, data = _read_document(path)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise CatalogLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="overrides file must be a mapping of stage id -> {date, locked}",
            file=str(p),
        )

    out: dict[str, DateOverride] = {}
    for stage_id, raw in data.items():
        if not isinstance(stage_id, str) or not stage_id.strip():
            raise CatalogLoadError(
                code="E_INVALID_OVERRIDE",
                message="override keys must be non-empty stage ids",
                file=str(p),
                path=str(stage_id),
            )
        if not isinstance(raw, dict) or "date" not in raw:
            raise CatalogLoadError(
                code="E_INVALID_OVERRIDE",
                message="override must be a mapping with a date",
                file=str(p),
                path=stage_id,
            )
        try:
            pinned = parse_date(raw["date"])
        except ValueError as e:
            raise CatalogLoadError(
                code="E_INVALID_OVERRIDE",
                message=str(e),
                file=str(p),
                path=f"{stage_id}.date",
            ) from e
        locked = raw.get("locked", False)
        if not isinstance(locked, bool):
            raise CatalogLoadError(
                code="E_INVALID_OVERRIDE",
                message="locked must be a boolean",
                file=str(p),
                path=f"{stage_id}.locked",
            )
        out[stage_id] = DateOverride(stage_id=stage_id, date=pinned, locked=locked)
    return out


def dump_overrides(overrides: dict[str, DateOverride], path: str) -> None:
    payload = {
        stage_id: {"date": o.date.isoformat(), "locked": o.locked}
        for stage_id, o in sorted(overrides.items())
    }
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as f:
        yaml.safe_dump(payload, f, sort_keys=False, default_flow_style=False, allow_unicode=True)
