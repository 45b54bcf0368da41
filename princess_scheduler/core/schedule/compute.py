from __future__ import annotations

import heapq
from datetime import date, timedelta
from typing import Iterable, Literal, Mapping, Optional

from princess_scheduler.core.config import SchedulerConfig
from princess_scheduler.core.errors import ScheduleError
from princess_scheduler.core.model import ComputedStage, DateOverride, Schedule, StageTemplate
from princess_scheduler.core.validate.validate_catalog import detect_cycles, is_valid_duration
from princess_scheduler.logging_config import get_logger

logger = get_logger(__name__)

UnknownDependencyPolicy = Literal["error", "drop"]


def compute_schedule(
    templates: Iterable[StageTemplate],
    start_date: date,
    overrides: Optional[Mapping[str, DateOverride]] = None,
    *,
    config: Optional[SchedulerConfig] = None,
    on_unknown_dependency: UnknownDependencyPolicy = "error",
) -> Schedule:
    """Compute start/end dates for every stage.

    Rules, applied per stage in dependency order:

    - override present: start on the override date, locked or not.
    - has dependencies: start gap_days after the latest predecessor end.
    - otherwise: start at the sequential cursor, then move the cursor to
      end + gap_days. Only these stages advance the cursor.

    end = start + duration, where a missing or zero duration means
    default_duration_days. Stages come back in input order.

    Raises ScheduleError for duplicate ids, invalid durations, cycles and
    (unless on_unknown_dependency="drop") dangling dependency ids.
    """

    cfg = config or SchedulerConfig()
    pinned = overrides or {}
    stages = list(templates)
    gap = timedelta(days=cfg.gap_days)

    by_id: dict[str, StageTemplate] = {}
    for i, t in enumerate(stages):
        if t.id in by_id:
            raise ScheduleError(
                code="E_DUPLICATE_ID",
                message=f"duplicate stage id: {t.id}",
                path=f"stages[{i}].id",
            )
        by_id[t.id] = t

    durations = {t.id: _duration(t, cfg, i) for i, t in enumerate(stages)}

    warnings: list[ScheduleError] = []
    for i, t in enumerate(stages):
        for di, dep in enumerate(t.dependencies):
            if dep in by_id:
                continue
            if on_unknown_dependency != "drop":
                raise ScheduleError(
                    code="E_UNKNOWN_DEPENDENCY",
                    message=f"stage {t.id} depends on unknown id: {dep}",
                    path=f"stages[{i}].dependencies[{di}]",
                )
            logger.warning("Dropping unknown dependency", stage_id=t.id, dependency=dep)
            warnings.append(
                ScheduleError(
                    code="W_UNKNOWN_DEPENDENCY",
                    message=f"stage {t.id} depends on unknown id {dep}; using the sequential cursor instead",
                    path=f"stages[{i}].dependencies[{di}]",
                )
            )

    cursor = start_date
    ends: dict[str, date] = {}
    computed: dict[str, ComputedStage] = {}

    for t in topological_order(stages):
        override = pinned.get(t.id)

        latest: Optional[date] = None
        for dep in t.dependencies:
            # Dangling ids only get here under the "drop" policy.
            dep_end = ends.get(dep, cursor)
            if latest is None or dep_end > latest:
                latest = dep_end

        if override is not None:
            start = override.date
            if latest is not None and start < latest + gap:
                logger.warning(
                    "Override starts before its dependencies finish",
                    stage_id=t.id,
                    override=start.isoformat(),
                    earliest=(latest + gap).isoformat(),
                )
                warnings.append(
                    ScheduleError(
                        code="W_OVERRIDE_BEFORE_DEPENDENCY",
                        message=(
                            f"stage {t.id} is pinned to {start.isoformat()} but its dependencies "
                            f"allow {(latest + gap).isoformat()} at the earliest"
                        ),
                        path=t.id,
                    )
                )
        elif latest is not None:
            start = latest + gap
        else:
            start = cursor

        end = start + timedelta(days=durations[t.id])
        if override is None and not t.dependencies:
            cursor = end + gap

        ends[t.id] = end
        computed[t.id] = ComputedStage(
            stage_id=t.id,
            start_date=start,
            end_date=end,
            overridden=override is not None,
            locked=override.locked if override is not None else False,
        )

    schedule = Schedule(
        start_date=start_date,
        stages=[computed[t.id] for t in stages],
        warnings=warnings,
    )
    logger.debug(
        "Schedule computed",
        stages=len(schedule.stages),
        overrides=sum(1 for s in schedule.stages if s.overridden),
        end_date=schedule.end_date.isoformat(),
    )
    return schedule


def topological_order(templates: list[StageTemplate]) -> list[StageTemplate]:
    """Stable topological order: predecessors first, ties broken by input position.

    An already-sorted list comes back unchanged. Unknown dependency ids are
    ignored. Raises ScheduleError(E_CYCLE_DETECTED) when no order exists.
    """
    position = {t.id: i for i, t in enumerate(templates)}
    indegree = [0] * len(templates)
    dependents: dict[str, list[int]] = {t.id: [] for t in templates}

    for i, t in enumerate(templates):
        for dep in set(t.dependencies):
            if dep in position:
                indegree[i] += 1
                dependents[dep].append(i)

    ready = [i for i, n in enumerate(indegree) if n == 0]
    heapq.heapify(ready)
    out: list[StageTemplate] = []
    while ready:
        i = heapq.heappop(ready)
        out.append(templates[i])
        for j in dependents[templates[i].id]:
            indegree[j] -= 1
            if indegree[j] == 0:
                heapq.heappush(ready, j)

    if len(out) != len(templates):
        stuck = {t.id: t.dependencies for i, t in enumerate(templates) if indegree[i] > 0}
        cycles = detect_cycles(stuck)
        sid, msg = cycles[0] if cycles else (next(iter(stuck)), "dependency cycle detected")
        raise ScheduleError(
            code="E_CYCLE_DETECTED",
            message=msg,
            path=f"stages[{position[sid]}].dependencies",
        )
    return out


def apply_override(
    overrides: Mapping[str, DateOverride],
    stage_id: str,
    new_date: date,
    locked: bool = False,
) -> dict[str, DateOverride]:
    """Return a copy of overrides with stage_id pinned to new_date."""
    out = dict(overrides)
    out[stage_id] = DateOverride(stage_id=stage_id, date=new_date, locked=locked)
    return out


def remove_override(overrides: Mapping[str, DateOverride], stage_id: str) -> dict[str, DateOverride]:
    """Return a copy of overrides without stage_id. Missing ids are not an error."""
    out = dict(overrides)
    out.pop(stage_id, None)
    return out


def _duration(t: StageTemplate, cfg: SchedulerConfig, index: int) -> int:
    v = t.estimated_duration_days
    if not is_valid_duration(v):
        raise ScheduleError(
            code="E_INVALID_DURATION",
            message=f"stage {t.id} has invalid duration: {v!r}",
            path=f"stages[{index}].estimated_duration_days",
        )
    if not v:
        return cfg.default_duration_days
    return int(v)
