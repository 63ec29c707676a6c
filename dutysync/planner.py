from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Mapping

from dutysync.dates import FEDERAL_CALENDAR, HolidayCalendar, iter_dates
from dutysync.domain import Personnel, PlannedSlot, PlanningSnapshot, ScoreBoard
from dutysync.eligibility import is_eligible, is_qualified
from dutysync.errors import ScheduleValidationError
from dutysync.scoring import calculate_duty_points

logger = logging.getLogger(__name__)

RECENT_DUTY_WINDOW_DAYS = 7
NO_DUTY_TYPES_WARNING = "No active duty types found for this unit"
NOTHING_FILLED_ERROR = "Could not fill any duty slots - check personnel availability and qualifications"


@dataclass
class ScheduleRequest:
    unit_id: int
    start_date: date
    end_date: date
    assigned_by: str = "system"
    clear_existing: bool = False


@dataclass
class ScheduleResult:
    success: bool = True
    preview: bool = True
    slots_created: int = 0
    slots_skipped: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    slots: list[PlannedSlot] = field(default_factory=list)
    projected_scores: dict[int, float] = field(default_factory=dict)


@dataclass
class Candidate:
    personnel: Personnel
    score: float
    recent_duty_count: int


def validate_request(request: ScheduleRequest, max_range_days: int) -> None:
    if request.start_date > request.end_date:
        raise ScheduleValidationError("start_date must be before or equal to end_date")
    if (request.end_date - request.start_date).days > max_range_days:
        raise ScheduleValidationError(f"Date range cannot exceed {max_range_days} days")


def plan_schedule(
    request: ScheduleRequest,
    snapshot: PlanningSnapshot,
    scores: Mapping[int, float] | None = None,
    calendar: HolidayCalendar = FEDERAL_CALENDAR,
) -> ScheduleResult:
    """Greedy fair assignment over ``{dates x duty types}``.

    Each open slot goes to the eligible person with the lowest running score,
    then fewest duties in the previous week, then lowest personnel id. Points
    earned are added to the running score immediately, so later dates in the
    same pass see the update. Preview and commit both use this function; it
    reads ``snapshot`` and ``scores`` and writes nothing.
    """
    result = ScheduleResult()
    duty_types = snapshot.active_duty_types()
    if not duty_types:
        result.warnings.append(NO_DUTY_TYPES_WARNING)
        return result

    board = ScoreBoard(snapshot.baseline_scores() if scores is None else scores)
    absences = snapshot.absences_by_personnel()
    pools = {dt.id: snapshot.pool_for(dt) for dt in duty_types}

    assigned_by_date: dict[date, set[int]] = defaultdict(set)
    filled: dict[tuple[int, date], int] = defaultdict(int)
    for existing in snapshot.existing_slots:
        # Unfilled placeholder rows leave their position open.
        if existing.personnel_id is None:
            continue
        filled[(existing.duty_type_id, existing.date_assigned)] += 1
        assigned_by_date[existing.date_assigned].add(existing.personnel_id)

    for duty_type in duty_types:
        if not any(is_qualified(person, duty_type) for person in pools[duty_type.id]):
            result.warnings.append(f"{duty_type.name} has no qualified personnel")

    def recent_duty_count(personnel_id: int, day: date) -> int:
        return sum(
            1
            for offset in range(1, RECENT_DUTY_WINDOW_DAYS + 1)
            if personnel_id in assigned_by_date.get(day - timedelta(days=offset), ())
        )

    for day in iter_dates(request.start_date, request.end_date):
        assigned_today = assigned_by_date[day]
        for duty_type in duty_types:
            points = calculate_duty_points(day, snapshot.duty_value_for(duty_type.id), calendar)
            already_filled = filled[(duty_type.id, day)]
            for slot_number in range(already_filled + 1, duty_type.slots_needed + 1):
                candidates = [
                    Candidate(
                        personnel=person,
                        score=board.get(person.id),
                        recent_duty_count=recent_duty_count(person.id, day),
                    )
                    for person in pools[duty_type.id]
                    if is_eligible(person, duty_type, day, absences.get(person.id, ()), assigned_today)
                ]
                if not candidates:
                    warning = f"No eligible personnel for {duty_type.name} on {day.isoformat()} (slot {slot_number})"
                    logger.debug(warning)
                    result.warnings.append(warning)
                    result.slots_skipped += 1
                    continue

                candidates.sort(key=lambda c: (c.score, c.recent_duty_count, c.personnel.id))
                selected = candidates[0].personnel
                result.slots.append(
                    PlannedSlot(
                        duty_type_id=duty_type.id,
                        personnel_id=selected.id,
                        date_assigned=day,
                        points=points,
                        assigned_by=request.assigned_by,
                        duty_type_name=duty_type.name,
                    )
                )
                result.slots_created += 1
                board.add(selected.id, points)
                assigned_today.add(selected.id)
                filled[(duty_type.id, day)] += 1

    if result.slots_created == 0 and result.slots_skipped > 0:
        result.success = False
        result.errors.append(NOTHING_FILLED_ERROR)

    result.projected_scores = board.as_dict()
    logger.info(
        "Planned %d slot(s), skipped %d for unit %s from %s to %s",
        result.slots_created,
        result.slots_skipped,
        request.unit_id,
        request.start_date.isoformat(),
        request.end_date.isoformat(),
    )
    return result
