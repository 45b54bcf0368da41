from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from princess_scheduler.core.errors import ScheduleError


@dataclass(frozen=True)
class StageTemplate:
    id: str
    name: str
    dependencies: list[str] = field(default_factory=list)

    number_index: Optional[int] = None
    category: Optional[str] = None
    estimated_duration_days: Optional[int] = None
    is_deliverable: bool = False


@dataclass(frozen=True)
class StageCatalog:
    schema_version: str
    stages: list[StageTemplate]

    def by_id(self) -> dict[str, StageTemplate]:
        return {s.id: s for s in self.stages}


@dataclass(frozen=True)
class DateOverride:
    stage_id: str
    date: date
    locked: bool = False


@dataclass(frozen=True)
class ComputedStage:
    stage_id: str
    start_date: date
    end_date: date
    overridden: bool = False
    locked: bool = False


@dataclass(frozen=True)
class Schedule:
    start_date: date
    stages: list[ComputedStage]
    warnings: list[ScheduleError] = field(default_factory=list)  # W_ codes only

    @property
    def end_date(self) -> date:
        if not self.stages:
            return self.start_date
        return max(s.end_date for s in self.stages)

    @property
    def duration_weeks(self) -> int:
        days = abs((self.end_date - self.start_date).days)
        return -(-days // 7)

    def by_id(self) -> dict[str, ComputedStage]:
        return {s.stage_id: s for s in self.stages}


@dataclass(frozen=True)
class StageShift:
    stage_id: str
    old_start: date
    old_end: date
    new_start: date
    new_end: date

    @property
    def adjustment_days(self) -> int:
        return (self.new_start - self.old_start).days


@dataclass(frozen=True)
class ShiftResult:
    schedule: Schedule
    shifts: list[StageShift]
    warnings: list[ScheduleError] = field(default_factory=list)  # W_ codes only
