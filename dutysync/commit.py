"""Persisting previewed plans and executing approved swaps.

A preview is committed verbatim: nothing here re-runs the planner, so a plan a
user reviewed is exactly what lands in the database even if scores or
availability changed in between.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Iterable

from dutysync.domain import PlannedSlot, PlannedSupernumerary
from dutysync.errors import NotFoundError, ScheduleValidationError, SwapWorkflowError
from dutysync.planner import ScheduleResult
from dutysync.repository import SqlRepository
from dutysync.swaps import SwapPair

logger = logging.getLogger(__name__)


@dataclass
class SupernumeraryApplyResult:
    created: int = 0
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    assignments: list[PlannedSupernumerary] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


def _require_range(unit_id: int | None, start_date: date | None, end_date: date | None) -> None:
    if unit_id is None or start_date is None or end_date is None:
        raise ScheduleValidationError("clear_existing requires unit_id, start_date and end_date")


def apply_previewed_slots(
    repository: SqlRepository,
    slots: Iterable[PlannedSlot],
    clear_existing: bool = False,
    start_date: date | None = None,
    end_date: date | None = None,
    unit_id: int | None = None,
) -> ScheduleResult:
    result = ScheduleResult(preview=False)
    if clear_existing:
        _require_range(unit_id, start_date, end_date)
        cleared = repository.clear_slots(unit_id, start_date, end_date)
        if cleared > 0:
            result.warnings.append(f"Cleared {cleared} existing duty slots")

    for planned in slots:
        label = (
            f"{planned.duty_type_name or planned.duty_type_id} on {planned.date_assigned.isoformat()}"
            f" for personnel {planned.personnel_id}"
        )
        duty_type = repository.get_duty_type(planned.duty_type_id)
        person = repository.get_personnel(planned.personnel_id)
        if duty_type is None:
            problem = f"duty type {planned.duty_type_id} no longer exists"
        elif person is None:
            problem = f"personnel {planned.personnel_id} no longer exists"
        elif repository.personnel_has_slot_on(planned.personnel_id, planned.date_assigned):
            problem = "personnel already holds a slot on this date"
        else:
            problem = None
        if problem is not None:
            result.errors.append(f"Failed to save slot {label}: {problem}")
            result.slots_skipped += 1
            continue

        row = repository.add_slot(planned)
        planned.id = row.id
        repository.record_score_change(
            person,
            planned.points,
            planned.date_assigned,
            duty_type.name,
            "assigned",
            unit_id=duty_type.unit_id,
            duty_slot_id=row.id,
        )
        result.slots.append(planned)
        result.slots_created += 1

    repository.commit()
    result.success = not result.errors
    logger.info("Saved %d slot(s), %d failed", result.slots_created, len(result.errors))
    return result


def apply_supernumerary_assignments(
    repository: SqlRepository,
    assignments: Iterable[PlannedSupernumerary],
    clear_existing: bool = False,
    start_date: date | None = None,
    end_date: date | None = None,
    unit_id: int | None = None,
) -> SupernumeraryApplyResult:
    result = SupernumeraryApplyResult()
    if clear_existing:
        _require_range(unit_id, start_date, end_date)
        cleared = repository.clear_supernumerary(unit_id, start_date, end_date)
        if cleared > 0:
            result.warnings.append(f"Cleared {cleared} existing standby assignments")

    for planned in assignments:
        label = (
            f"{planned.duty_type_name or planned.duty_type_id} standby"
            f" {planned.period_start.isoformat()} to {planned.period_end.isoformat()}"
            f" for personnel {planned.personnel_id}"
        )
        duty_type = repository.get_duty_type(planned.duty_type_id)
        person = repository.get_personnel(planned.personnel_id)
        if duty_type is None:
            problem = f"duty type {planned.duty_type_id} no longer exists"
        elif person is None:
            problem = f"personnel {planned.personnel_id} no longer exists"
        elif repository.personnel_on_standby(
            planned.personnel_id, planned.duty_type_id, planned.period_start, planned.period_end
        ):
            problem = "personnel is already on standby for an overlapping period"
        else:
            problem = None
        if problem is not None:
            result.errors.append(f"Failed to save {label}: {problem}")
            continue

        row = repository.add_supernumerary(planned)
        planned.id = row.id
        repository.record_score_change(
            person,
            planned.points,
            planned.period_start,
            duty_type.name,
            "standby",
            unit_id=duty_type.unit_id,
            supernumerary_assignment_id=row.id,
        )
        result.assignments.append(planned)
        result.created += 1

    repository.commit()
    logger.info("Saved %d standby assignment(s), %d failed", result.created, len(result.errors))
    return result


def execute_swap(repository: SqlRepository, pair: SwapPair, at: datetime | None = None) -> None:
    """Hand each slot to the other participant and close out the pair.

    Slot ownership, score events and the pair's ``executed_at`` are written in
    the caller's open transaction, which is committed here.
    """
    if not pair.is_ready_to_execute:
        raise SwapWorkflowError(f"Swap {pair.swap_pair_id} is not ready to execute (status {pair.status.value})")

    requester = pair.requester
    giving = repository.get_slot(requester.giving_slot_id)
    receiving = repository.get_slot(requester.receiving_slot_id)
    if giving is None or receiving is None:
        raise NotFoundError(f"A slot in swap {pair.swap_pair_id} no longer exists")
    if giving.personnel_id != requester.personnel_id or receiving.personnel_id != requester.swap_partner_id:
        raise SwapWorkflowError(f"Slot ownership changed since swap {pair.swap_pair_id} was requested")

    first = repository.get_personnel(requester.personnel_id)
    second = repository.get_personnel(requester.swap_partner_id)
    if first is None or second is None:
        raise NotFoundError(f"A participant in swap {pair.swap_pair_id} no longer exists")

    if giving.date_assigned != receiving.date_assigned:
        for person, slot in ((first, receiving), (second, giving)):
            if repository.personnel_has_slot_on(person.id, slot.date_assigned):
                raise SwapWorkflowError(
                    f"Personnel {person.id} already holds a slot on {slot.date_assigned.isoformat()}"
                )

    moment = at or datetime.now(timezone.utc)
    for slot, old_owner, new_owner in ((giving, first, second), (receiving, second, first)):
        duty_type = repository.get_duty_type(slot.duty_type_id)
        name = duty_type.name if duty_type is not None else str(slot.duty_type_id)
        unit_id = duty_type.unit_id if duty_type is not None else None
        if slot.points:
            repository.record_score_change(
                old_owner, -slot.points, slot.date_assigned, name, "swapped", unit_id=unit_id, duty_slot_id=slot.id
            )
            repository.record_score_change(
                new_owner, slot.points, slot.date_assigned, name, "swapped", unit_id=unit_id, duty_slot_id=slot.id
            )
        slot.personnel_id = new_owner.id
        slot.swapped_from_personnel_id = old_owner.id
        slot.swap_pair_id = pair.swap_pair_id
        slot.swapped_at = moment
        slot.status = "swapped"

    pair.mark_executed(moment)
    repository.save_swap_pair(pair)
    repository.commit()
    logger.info("Executed swap %s between personnel %s and %s", pair.swap_pair_id, first.id, second.id)
