"""Standby ("supernumerary") coverage planning.

Duty types with standby enabled keep ``supernumerary_count`` people in reserve
for every coverage period in the requested range. Standby earns the duty
type's ``supernumerary_value`` once per period and counts toward fairness the
same way a regular slot does. When saved rows already cover part of a period,
only the days and headcount still missing are planned.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Mapping

from dutysync.dates import end_of_month, iter_dates, ranges_overlap
from dutysync.domain import PeriodType, PlannedSupernumerary, PlanningSnapshot, ScoreBoard, SupernumeraryCoverage
from dutysync.eligibility import is_qualified

logger = logging.getLogger(__name__)


@dataclass
class SupernumeraryPlan:
    assignments: list[PlannedSupernumerary] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    already_covered: int = 0
    projected_scores: dict[int, float] = field(default_factory=dict)


def _period_end(period_start: date, period_type: PeriodType) -> date:
    if period_type is PeriodType.FULL_MONTH:
        return end_of_month(period_start)
    if period_type is PeriodType.HALF_MONTH:
        if period_start.day <= 15:
            return date(period_start.year, period_start.month, 15)
        return end_of_month(period_start)
    if period_type is PeriodType.WEEKLY:
        return period_start + timedelta(days=6)
    if period_type is PeriodType.BI_WEEKLY:
        return period_start + timedelta(days=13)
    raise ValueError(f"Unhandled period type {period_type!r}")


def split_coverage_periods(start: date, end: date, period_type: PeriodType | str) -> list[tuple[date, date]]:
    """Contiguous, non-overlapping periods covering ``[start, end]``.

    Months and half months follow the calendar; weeks are anchored on
    ``start``. The first and last period are clipped to the range.
    """
    resolved = PeriodType(period_type)
    periods: list[tuple[date, date]] = []
    current = start
    while current <= end:
        period_end = min(_period_end(current, resolved), end)
        periods.append((current, period_end))
        current = period_end + timedelta(days=1)
    return periods


def _span(start: date, end: date) -> str:
    return f"{start.isoformat()} to {end.isoformat()}"


def coverage_gaps(
    existing: Iterable[SupernumeraryCoverage], start: date, end: date, count: int
) -> list[tuple[date, date, int]]:
    """Runs of days in ``[start, end]`` with fewer than ``count`` people on standby.

    Each run carries how many more people it needs; a run ends where that
    number changes.
    """
    rows = list(existing)
    gaps: list[tuple[date, date, int]] = []
    for day in iter_dates(start, end):
        present = {c.personnel_id for c in rows if c.period_start <= day <= c.period_end}
        missing = count - len(present)
        if missing <= 0:
            continue
        if gaps and gaps[-1][2] == missing and gaps[-1][1] == day - timedelta(days=1):
            gaps[-1] = (gaps[-1][0], day, missing)
        else:
            gaps.append((day, day, missing))
    return gaps


def plan_supernumerary(
    snapshot: PlanningSnapshot,
    start: date,
    end: date,
    organization_id: int | None = None,
    scores: Mapping[int, float] | None = None,
) -> SupernumeraryPlan:
    plan = SupernumeraryPlan()
    board = ScoreBoard(snapshot.baseline_scores() if scores is None else scores)
    absences = snapshot.absences_by_personnel()
    standby_windows: dict[int, list[tuple[date, date]]] = defaultdict(list)

    for duty_type in snapshot.active_duty_types():
        config = duty_type.supernumerary
        if config is None:
            continue
        org_id = organization_id
        if org_id is None:
            org_id = duty_type.organization_id if duty_type.organization_id is not None else snapshot.organization_id
        existing = [c for c in snapshot.existing_supernumerary if c.duty_type_id == duty_type.id]
        pool = snapshot.pool_for(duty_type)

        for period_start, period_end in split_coverage_periods(start, end, config.period_type):
            label = _span(period_start, period_end)
            gaps = coverage_gaps(existing, period_start, period_end, config.count)
            if not gaps:
                plan.warnings.append(f"{duty_type.name} standby already covered for {label}")
                plan.already_covered += 1
                continue
            if any(ranges_overlap(c.period_start, c.period_end, period_start, period_end) for c in existing):
                plan.warnings.append(f"{duty_type.name} standby partially covered for {label}")

            for gap_start, gap_end, missing in gaps:
                on_standby = {
                    c.personnel_id for c in existing if ranges_overlap(c.period_start, c.period_end, gap_start, gap_end)
                }
                candidates = [
                    person
                    for person in pool
                    if person.id not in on_standby
                    and is_qualified(person, duty_type)
                    and not any(a.overlaps(gap_start, gap_end) for a in absences.get(person.id, ()))
                    and not any(ranges_overlap(s, e, gap_start, gap_end) for s, e in standby_windows[person.id])
                ]
                candidates.sort(key=lambda p: (board.get(p.id), p.id))
                chosen = candidates[:missing]

                for person in chosen:
                    plan.assignments.append(
                        PlannedSupernumerary(
                            duty_type_id=duty_type.id,
                            personnel_id=person.id,
                            period_start=gap_start,
                            period_end=gap_end,
                            points=config.value,
                            organization_id=org_id,
                            duty_type_name=duty_type.name,
                        )
                    )
                    board.add(person.id, config.value)
                    standby_windows[person.id].append((gap_start, gap_end))

                if len(chosen) < missing:
                    plan.warnings.append(
                        f"Only {len(chosen)} of {missing} standby personnel available for {duty_type.name}"
                        f" for {_span(gap_start, gap_end)}"
                    )

    plan.projected_scores = board.as_dict()
    logger.info(
        "Planned %d standby assignment(s) for unit %s, %d period(s) already covered",
        len(plan.assignments),
        snapshot.unit_id,
        plan.already_covered,
    )
    return plan
