from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import replace
from datetime import date, timedelta
from typing import Optional

from princess_scheduler.core.config import SchedulerConfig
from princess_scheduler.core.errors import ScheduleError
from princess_scheduler.core.model import ShiftResult, Schedule, StageShift, StageTemplate
from princess_scheduler.core.schedule.compute import topological_order
from princess_scheduler.logging_config import get_logger

logger = get_logger(__name__)


def shift_stage(
    schedule: Schedule,
    templates: list[StageTemplate],
    stage_id: str,
    new_start: date,
    new_end: Optional[date] = None,
    *,
    config: Optional[SchedulerConfig] = None,
) -> ShiftResult:
    """Move one stage and re-place everything downstream of it.

    The moved stage keeps its length unless new_end is given. Each transitive
    dependent keeps its own length and starts gap_days after the latest end
    among its predecessors (moved or not). Locked stages stay where they are;
    their dependents are placed against their unchanged dates.

    Neither the moved stage nor a locked dependent is pulled later to respect
    its predecessors. When either ends up starting too early, the result
    carries a W_SHIFT_BEFORE_DEPENDENCY warning for it.
    """

    cfg = config or SchedulerConfig()
    gap = timedelta(days=cfg.gap_days)
    current = schedule.by_id()

    moved = current.get(stage_id)
    if moved is None:
        raise ScheduleError(
            code="E_UNKNOWN_STAGE",
            message=f"unknown stage id: {stage_id}",
            path="stage_id",
        )
    if moved.locked:
        raise ScheduleError(
            code="E_STAGE_LOCKED",
            message=f"stage {stage_id} is locked; unlock it before moving it",
            path="stage_id",
        )
    if new_end is None:
        new_end = new_start + (moved.end_date - moved.start_date)
    if new_end < new_start:
        raise ScheduleError(
            code="E_INVALID_DATES",
            message=f"end date {new_end.isoformat()} is before start date {new_start.isoformat()}",
            path="new_end",
        )

    dependents: dict[str, list[str]] = defaultdict(list)
    for t in templates:
        for dep in t.dependencies:
            dependents[dep].append(t.id)

    downstream: set[str] = set()
    q: deque[str] = deque([stage_id])
    while q:
        cur = q.popleft()
        for nxt in dependents.get(cur, []):
            if nxt not in downstream and nxt in current:
                downstream.add(nxt)
                q.append(nxt)

    dates: dict[str, tuple[date, date]] = {
        sid: (c.start_date, c.end_date) for sid, c in current.items()
    }
    dates[stage_id] = (new_start, new_end)

    shifts: list[StageShift] = []
    if (new_start, new_end) != (moved.start_date, moved.end_date):
        shifts.append(
            StageShift(
                stage_id=stage_id,
                old_start=moved.start_date,
                old_end=moved.end_date,
                new_start=new_start,
                new_end=new_end,
            )
        )

    for t in topological_order(templates):
        if t.id not in downstream or t.id == stage_id:
            continue
        c = current[t.id]
        if c.locked:
            continue
        pred_ends = [dates[d][1] for d in t.dependencies if d in dates]
        start = max(pred_ends) + gap
        end = start + (c.end_date - c.start_date)
        if (start, end) == (c.start_date, c.end_date):
            continue
        dates[t.id] = (start, end)
        shifts.append(
            StageShift(
                stage_id=t.id,
                old_start=c.start_date,
                old_end=c.end_date,
                new_start=start,
                new_end=end,
            )
        )

    # Only the moved stage and locked dependents can end up starting too early.
    by_id = {t.id: t for t in templates}
    held = [stage_id] + [t.id for t in templates if t.id in downstream and current[t.id].locked]
    warnings: list[ScheduleError] = []
    for sid in held:
        t = by_id.get(sid)
        pred_ends = [dates[d][1] for d in (t.dependencies if t else []) if d in dates]
        if not pred_ends:
            continue
        earliest = max(pred_ends) + gap
        start = dates[sid][0]
        if start >= earliest:
            continue
        logger.warning(
            "Shifted stage starts before its dependencies finish",
            stage_id=sid,
            start=start.isoformat(),
            earliest=earliest.isoformat(),
        )
        warnings.append(
            ScheduleError(
                code="W_SHIFT_BEFORE_DEPENDENCY",
                message=(
                    f"stage {sid} starts {start.isoformat()} but its dependencies "
                    f"allow {earliest.isoformat()} at the earliest"
                ),
                path=sid,
            )
        )

    stages = [
        replace(c, start_date=dates[c.stage_id][0], end_date=dates[c.stage_id][1])
        for c in schedule.stages
    ]
    logger.debug("Stage shifted", stage_id=stage_id, affected=len(shifts), warnings=len(warnings))
    return ShiftResult(schedule=replace(schedule, stages=stages), shifts=shifts, warnings=warnings)


def critical_path(schedule: Schedule, templates: list[StageTemplate]) -> list[str]:
    """Chain of stage ids that drives the project end date.

    Starts at the latest-finishing stage and walks back through the
    latest-finishing predecessor until a stage with none is reached. Ties go
    to the stage listed first.
    """
    if not schedule.stages:
        return []

    computed = schedule.by_id()
    position = {t.id: i for i, t in enumerate(templates)}
    by_id = {t.id: t for t in templates}

    def rank(sid: str) -> tuple[date, int]:
        return computed[sid].end_date, -position.get(sid, len(position))

    cur: Optional[str] = max((s.stage_id for s in schedule.stages), key=rank)
    chain: list[str] = []
    seen: set[str] = set()
    while cur is not None and cur not in seen:
        seen.add(cur)
        chain.append(cur)
        t = by_id.get(cur)
        preds = [d for d in (t.dependencies if t else []) if d in computed]
        cur = max(preds, key=rank) if preds else None

    chain.reverse()
    return chain
