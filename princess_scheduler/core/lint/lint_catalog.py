from __future__ import annotations

from collections import defaultdict
from typing import Any, Mapping, Optional

from princess_scheduler.core.errors import CatalogValidationError
from princess_scheduler.core.model import DateOverride


# Catalog lint rules. Advisory: the scheduler copes with all of these, but
# the resulting timeline is rarely what the catalog author meant.
# - L_DEPENDENCY_AFTER_DEPENDENT: a stage is listed before one of its dependencies
# - L_DUPLICATE_NUMBER_INDEX: two stages share a number_index
# - L_DEFAULT_DURATION: stage has no estimate and will get the default length
# - L_OVERRIDE_UNKNOWN_STAGE: an override pins a stage that is not in the catalog


def lint_catalog(
    catalog: dict[str, Any],
    overrides: Optional[Mapping[str, DateOverride]] = None,
) -> list[CatalogValidationError]:
    """Lint a catalog (and optionally its overrides).

    Lint runs *in addition to* validation and works on partially-invalid
    input (best effort). The CLI prints lint + validation errors together.
    """

    file = _cast_optional_str(catalog.get("__file__"))

    stages = catalog.get("stages")
    if not isinstance(stages, list):
        # Let validator handle shape.
        return []

    id_to_index: dict[str, int] = {}
    for i, raw in enumerate(stages):
        if isinstance(raw, dict) and isinstance(raw.get("id"), str):
            id_to_index.setdefault(raw["id"], i)

    errors: list[CatalogValidationError] = []
    seen_numbers: dict[int, list[int]] = defaultdict(list)

    for i, raw in enumerate(stages):
        if not isinstance(raw, dict):
            continue

        # Rule: dependencies must be listed before their dependents
        deps = raw.get("dependencies")
        if isinstance(deps, list):
            for di, dep in enumerate(deps):
                if isinstance(dep, str) and id_to_index.get(dep, -1) > i:
                    errors.append(
                        CatalogValidationError(
                            code="L_DEPENDENCY_AFTER_DEPENDENT",
                            message=f"dependency {dep} is listed after the stage that needs it",
                            file=file,
                            path=f"stages[{i}].dependencies[{di}]",
                        )
                    )

        number_index = raw.get("number_index")
        if isinstance(number_index, int) and not isinstance(number_index, bool):
            seen_numbers[number_index].append(i)

        # Rule: missing estimates fall back to the default duration
        if not raw.get("estimated_duration_days"):
            errors.append(
                CatalogValidationError(
                    code="L_DEFAULT_DURATION",
                    message="no estimated_duration_days; the default duration will be used",
                    file=file,
                    path=f"stages[{i}].estimated_duration_days",
                )
            )

    # Rule: duplicate number_index
    for number, indexes in seen_numbers.items():
        for i in indexes[1:]:
            errors.append(
                CatalogValidationError(
                    code="L_DUPLICATE_NUMBER_INDEX",
                    message=f"duplicate number_index: {number} (count={len(indexes)})",
                    file=file,
                    path=f"stages[{i}].number_index",
                )
            )

    # Rule: overrides must refer to catalog stages
    for stage_id in sorted(overrides or {}):
        if stage_id not in id_to_index:
            errors.append(
                CatalogValidationError(
                    code="L_OVERRIDE_UNKNOWN_STAGE",
                    message=f"override pins unknown stage id: {stage_id}",
                    file=file,
                    path=f"overrides.{stage_id}",
                )
            )

    return _sorted(errors)


def _sorted(errors: list[CatalogValidationError]) -> list[CatalogValidationError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))


def _cast_optional_str(v: Any) -> Optional[str]:
    return v if isinstance(v, str) else None
