from __future__ import annotations

import math
from collections import Counter
from typing import Any, Iterable, Optional, cast

from princess_scheduler.core.errors import CatalogValidationError
from princess_scheduler.core.model import StageCatalog, StageTemplate


def _is_list_of_str(v: Any) -> bool:
    return isinstance(v, list) and all(isinstance(x, str) for x in v)


def is_valid_duration(v: Any) -> bool:
    """None and non-negative whole numbers of days are valid; 0 means "use the default"."""
    if v is None:
        return True
    if isinstance(v, bool):
        return False
    if isinstance(v, float):
        return math.isfinite(v) and v >= 0 and v.is_integer()
    return isinstance(v, int) and v >= 0


def validate_catalog(
    catalog: dict[str, Any],
    *,
    allow_unknown_dependencies: bool = False,
) -> tuple[Optional[StageCatalog], list[CatalogValidationError]]:
    """Validate a stage catalog.

    Returns (catalog, errors). Catalog is None when errors exist.

    With allow_unknown_dependencies=True, dangling dependency ids are kept on
    the templates and left for the scheduler to drop with a warning.
    """

    file = cast(Optional[str], catalog.get("__file__"))
    errors: list[CatalogValidationError] = []

    schema_version = catalog.get("schema_version")
    if not isinstance(schema_version, str) or not schema_version.strip():
        errors.append(
            CatalogValidationError(
                code="E_REQUIRED_FIELD",
                message="schema_version is required and must be a non-empty string",
                file=file,
                path="schema_version",
            )
        )

    stages = catalog.get("stages")
    if not isinstance(stages, list):
        errors.append(
            CatalogValidationError(
                code="E_REQUIRED_FIELD",
                message="stages is required and must be an array",
                file=file,
                path="stages",
            )
        )
        return None, _sorted(errors)

    templates: list[StageTemplate] = []
    index_of: dict[str, int] = {}

    for i, raw in enumerate(stages):
        stage_path = f"stages[{i}]"
        if not isinstance(raw, dict):
            errors.append(
                CatalogValidationError(
                    code="E_INVALID_TYPE",
                    message="stage must be an object",
                    file=file,
                    path=stage_path,
                )
            )
            continue

        sid = raw.get("id")
        if not isinstance(sid, str) or not sid.strip():
            errors.append(
                CatalogValidationError(
                    code="E_REQUIRED_FIELD",
                    message="id is required and must be a non-empty string",
                    file=file,
                    path=f"{stage_path}.id",
                )
            )
            continue

        if sid in index_of:
            errors.append(
                CatalogValidationError(
                    code="E_DUPLICATE_ID",
                    message=f"duplicate stage id: {sid}",
                    file=file,
                    path=f"{stage_path}.id",
                )
            )
            continue

        name = raw.get("name")
        if not isinstance(name, str) or not name.strip():
            errors.append(
                CatalogValidationError(
                    code="E_REQUIRED_FIELD",
                    message="name is required and must be a non-empty string",
                    file=file,
                    path=f"{stage_path}.name",
                )
            )
            continue

        deps = raw.get("dependencies", [])
        if deps is None:
            deps = []
        if not _is_list_of_str(deps):
            errors.append(
                CatalogValidationError(
                    code="E_INVALID_TYPE",
                    message="dependencies must be an array of stage ids",
                    file=file,
                    path=f"{stage_path}.dependencies",
                )
            )
            continue

        duration = raw.get("estimated_duration_days")
        if not is_valid_duration(duration):
            errors.append(
                CatalogValidationError(
                    code="E_INVALID_DURATION",
                    message="estimated_duration_days must be a non-negative whole number of days",
                    file=file,
                    path=f"{stage_path}.estimated_duration_days",
                )
            )
            continue

        number_index = raw.get("number_index")
        if number_index is not None and (isinstance(number_index, bool) or not isinstance(number_index, int)):
            errors.append(
                CatalogValidationError(
                    code="E_INVALID_TYPE",
                    message="number_index must be an integer",
                    file=file,
                    path=f"{stage_path}.number_index",
                )
            )

        category = raw.get("category")
        if category is not None and not isinstance(category, str):
            errors.append(
                CatalogValidationError(
                    code="E_INVALID_TYPE",
                    message="category must be a string",
                    file=file,
                    path=f"{stage_path}.category",
                )
            )

        is_deliverable = raw.get("is_deliverable", False)
        if not isinstance(is_deliverable, bool):
            errors.append(
                CatalogValidationError(
                    code="E_INVALID_TYPE",
                    message="is_deliverable must be a boolean",
                    file=file,
                    path=f"{stage_path}.is_deliverable",
                )
            )

        index_of[sid] = i
        templates.append(
            StageTemplate(
                id=sid,
                name=name,
                dependencies=list(cast(list[str], deps)),
                number_index=cast(Optional[int], number_index),
                category=cast(Optional[str], category),
                estimated_duration_days=None if duration is None else int(duration),
                is_deliverable=bool(is_deliverable),
            )
        )

    # Referential integrity checks.
    known = set(index_of.keys())
    for t in templates:
        for di, dep in enumerate(t.dependencies):
            if dep in known or allow_unknown_dependencies:
                continue
            errors.append(
                CatalogValidationError(
                    code="E_UNKNOWN_DEPENDENCY",
                    message=f"dependencies references unknown id: {dep}",
                    file=file,
                    path=f"stages[{index_of[t.id]}].dependencies[{di}]",
                )
            )

    for sid, msg in detect_cycles({t.id: t.dependencies for t in templates}):
        errors.append(
            CatalogValidationError(
                code="E_CYCLE_DETECTED",
                message=msg,
                file=file,
                path=f"stages[{index_of.get(sid, 0)}].dependencies",
            )
        )

    if errors:
        return None, _sorted(errors)

    return StageCatalog(schema_version=cast(str, schema_version), stages=templates), []


def detect_cycles(id_to_deps: dict[str, list[str]]) -> list[tuple[str, str]]:
    """Return (stage_id, message) for every distinct dependency cycle.

    Dependencies outside id_to_deps are ignored.
    """
    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {sid: WHITE for sid in id_to_deps.keys()}
    stack: list[str] = []
    emitted: set[str] = set()
    out: list[tuple[str, str]] = []

    def dfs(u: str) -> None:
        state[u] = GRAY
        stack.append(u)
        for v in id_to_deps.get(u, []):
            if v not in state:
                continue
            if state[v] == GRAY:
                # cycle: v ... u -> v
                idx = stack.index(v)
                cycle = stack[idx:] + [v]
                key = "->".join(cycle)
                if key not in emitted:
                    emitted.add(key)
                    out.append((u, "dependency cycle detected: " + " -> ".join(cycle)))
            elif state[v] == WHITE:
                dfs(v)
        stack.pop()
        state[u] = BLACK

    for sid in list(state.keys()):
        if state[sid] == WHITE:
            dfs(sid)

    return out


def summarize_catalog(catalog: StageCatalog) -> str:
    counts = Counter([s.category or "uncategorized" for s in catalog.stages])
    deliverables = sum(1 for s in catalog.stages if s.is_deliverable)
    dependent = sum(1 for s in catalog.stages if s.dependencies)
    parts = [f"{c}={counts[c]}" for c in sorted(counts)]
    return (
        f"OK: {len(catalog.stages)} stages ("
        + ", ".join(parts)
        + f")\nDeliverables: {deliverables}\nDependent stages: {dependent}"
    )


def _sorted(errors: Iterable[CatalogValidationError]) -> list[CatalogValidationError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
