"""Plain data the planning core works on.

The repository turns ORM rows into these frozen records, so the planner and
supernumerary planner never touch a database session.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Mapping


class FilterMode(str, Enum):
    NONE = "none"
    INCLUDE = "include"
    EXCLUDE = "exclude"

    @classmethod
    def coerce(cls, value: FilterMode | str | None) -> FilterMode:
        if value is None or value == "":
            return cls.NONE
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


class PeriodType(str, Enum):
    FULL_MONTH = "full_month"
    HALF_MONTH = "half_month"
    WEEKLY = "weekly"
    BI_WEEKLY = "bi_weekly"


class SlotStatus(str, Enum):
    SCHEDULED = "scheduled"
    APPROVED = "approved"
    COMPLETED = "completed"
    MISSED = "missed"
    SWAPPED = "swapped"


@dataclass(frozen=True)
class AttributeFilter:
    mode: FilterMode = FilterMode.NONE
    values: frozenset[str] = frozenset()

    @classmethod
    def build(cls, mode: FilterMode | str | None, values=None) -> AttributeFilter:
        return cls(mode=FilterMode.coerce(mode), values=frozenset(str(v) for v in (values or ())))

    @property
    def is_inert(self) -> bool:
        return self.mode is FilterMode.NONE or not self.values


@dataclass(frozen=True)
class DutyValue:
    base_weight: float = 1.0
    weekend_multiplier: float = 1.5
    holiday_multiplier: float = 2.0


DEFAULT_DUTY_VALUE = DutyValue()


@dataclass(frozen=True)
class SupernumeraryConfig:
    count: int = 1
    period_type: PeriodType = PeriodType.FULL_MONTH
    value: float = 0.0


@dataclass(frozen=True)
class Personnel:
    id: int
    unit_id: int
    rank: str
    current_duty_score: float = 0.0
    qualifications: frozenset[str] = frozenset()
    first_name: str = ""
    last_name: str = ""


@dataclass(frozen=True)
class DutyType:
    id: int
    unit_id: int
    name: str
    slots_needed: int = 1
    is_active: bool = True
    rank_filter: AttributeFilter = AttributeFilter()
    section_filter: AttributeFilter = AttributeFilter()
    required_qualifications: frozenset[str] = frozenset()
    supernumerary: SupernumeraryConfig | None = None
    organization_id: int | None = None

    @property
    def requires_supernumerary(self) -> bool:
        return self.supernumerary is not None


@dataclass(frozen=True)
class NonAvailability:
    personnel_id: int
    start_date: date
    end_date: date
    status: str = "approved"

    def covers(self, day: date) -> bool:
        return self.status == "approved" and self.start_date <= day <= self.end_date

    def overlaps(self, start: date, end: date) -> bool:
        return self.status == "approved" and self.start_date <= end and start <= self.end_date


@dataclass(frozen=True)
class ExistingSlot:
    id: int
    duty_type_id: int
    personnel_id: int | None
    date_assigned: date
    points: float = 0.0
    status: str = SlotStatus.SCHEDULED.value


@dataclass(frozen=True)
class SupernumeraryCoverage:
    id: int
    duty_type_id: int
    personnel_id: int
    period_start: date
    period_end: date


@dataclass
class PlannedSlot:
    duty_type_id: int
    personnel_id: int
    date_assigned: date
    points: float
    assigned_by: str = "system"
    status: str = SlotStatus.SCHEDULED.value
    duty_type_name: str = ""
    id: int | None = None


@dataclass
class PlannedSupernumerary:
    duty_type_id: int
    personnel_id: int
    period_start: date
    period_end: date
    points: float
    organization_id: int | None = None
    duty_type_name: str = ""
    activation_count: int = 0
    id: int | None = None


def units_under(unit_parents: Mapping[int, int | None], unit_id: int) -> frozenset[int]:
    """``unit_id`` plus every descendant in a ``{unit: parent}`` map."""
    children: dict[int, list[int]] = defaultdict(list)
    for child_id, parent_id in unit_parents.items():
        if parent_id is not None:
            children[parent_id].append(child_id)
    found = {unit_id}
    stack = [unit_id]
    while stack:
        current = stack.pop()
        for child_id in children.get(current, []):
            if child_id not in found:
                found.add(child_id)
                stack.append(child_id)
    return frozenset(found)


class ScoreBoard:
    """Running duty scores for a single planning pass.

    Built from a caller-owned ``{personnel_id: score}`` mapping which it copies;
    the caller's mapping is never written to.
    """

    def __init__(self, scores: Mapping[int, float] | None = None):
        self._scores: dict[int, float] = dict(scores or {})

    def get(self, personnel_id: int) -> float:
        return self._scores.get(personnel_id, 0.0)

    def add(self, personnel_id: int, points: float) -> float:
        updated = self.get(personnel_id) + points
        self._scores[personnel_id] = updated
        return updated

    def as_dict(self) -> dict[int, float]:
        return dict(self._scores)


@dataclass
class PlanningSnapshot:
    unit_id: int
    personnel: list[Personnel]
    duty_types: list[DutyType]
    duty_values: dict[int, DutyValue] = field(default_factory=dict)
    non_availability: list[NonAvailability] = field(default_factory=list)
    existing_slots: list[ExistingSlot] = field(default_factory=list)
    existing_supernumerary: list[SupernumeraryCoverage] = field(default_factory=list)
    unit_parents: dict[int, int | None] = field(default_factory=dict)
    score_adjustments: dict[int, float] = field(default_factory=dict)
    organization_id: int | None = None

    def units_under(self, unit_id: int) -> frozenset[int]:
        return units_under(self.unit_parents, unit_id)

    def pool_for(self, duty_type: DutyType) -> list[Personnel]:
        scope = self.units_under(duty_type.unit_id)
        return sorted((p for p in self.personnel if p.unit_id in scope), key=lambda p: p.id)

    def active_duty_types(self) -> list[DutyType]:
        return sorted((dt for dt in self.duty_types if dt.is_active), key=lambda dt: (dt.name, dt.id))

    def duty_value_for(self, duty_type_id: int) -> DutyValue | None:
        return self.duty_values.get(duty_type_id)

    def baseline_scores(self) -> dict[int, float]:
        return {
            p.id: p.current_duty_score + self.score_adjustments.get(p.id, 0.0)
            for p in self.personnel
        }

    def absences_by_personnel(self) -> dict[int, list[NonAvailability]]:
        grouped: dict[int, list[NonAvailability]] = defaultdict(list)
        for record in self.non_availability:
            if record.status == "approved":
                grouped[record.personnel_id].append(record)
        return grouped
