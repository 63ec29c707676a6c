"""SQLAlchemy-backed reads and writes for the planner, commit layer and swaps.

The repository turns ORM rows into the plain records in ``dutysync.domain`` and
``dutysync.swaps``. Nothing here commits on its own; callers decide where the
transaction ends.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from dutysync import domain, models
from dutysync.dates import roster_month
from dutysync.errors import NotFoundError, PersistenceError
from dutysync.planner import RECENT_DUTY_WINDOW_DAYS
from dutysync.swaps import (
    ApprovalChain,
    ApprovalStep,
    ApproverType,
    Recommendation,
    RecommendationEntry,
    RequestStatus,
    SwapPair,
    SwapRequestSide,
    UnitNode,
)

logger = logging.getLogger(__name__)


def personnel_record(row: models.Personnel) -> domain.Personnel:
    return domain.Personnel(
        id=row.id,
        unit_id=row.unit_id,
        rank=row.rank,
        current_duty_score=float(row.current_duty_score or 0.0),
        qualifications=frozenset(q.qualification_name for q in row.qualifications),
        first_name=row.first_name,
        last_name=row.last_name,
    )


def duty_type_record(row: models.DutyType) -> domain.DutyType:
    supernumerary = None
    if row.requires_supernumerary:
        supernumerary = domain.SupernumeraryConfig(
            count=row.supernumerary_count,
            period_type=domain.PeriodType(row.supernumerary_period_type),
            value=float(row.supernumerary_value or 0.0),
        )
    return domain.DutyType(
        id=row.id,
        unit_id=row.unit_id,
        name=row.name,
        slots_needed=row.slots_needed,
        is_active=row.is_active,
        rank_filter=domain.AttributeFilter.build(row.rank_filter_mode, row.rank_filter_values),
        section_filter=domain.AttributeFilter.build(row.section_filter_mode, row.section_filter_values),
        required_qualifications=frozenset(r.qualification_name for r in row.requirements),
        supernumerary=supernumerary,
        organization_id=row.organization_id,
    )


def duty_value_record(row: models.DutyValue) -> domain.DutyValue:
    return domain.DutyValue(
        base_weight=row.base_weight,
        weekend_multiplier=row.weekend_multiplier,
        holiday_multiplier=row.holiday_multiplier,
    )


class SqlRepository:
    def __init__(self, db: Session):
        self.db = db

    # Units

    def get_unit(self, unit_id: int) -> models.Unit | None:
        return self.db.get(models.Unit, unit_id)

    def unit_parents(self) -> dict[int, int | None]:
        rows = self.db.execute(select(models.Unit.id, models.Unit.parent_id)).all()
        return {unit_id: parent_id for unit_id, parent_id in rows}

    def unit_nodes(self) -> dict[int, UnitNode]:
        rows = self.db.execute(select(models.Unit.id, models.Unit.parent_id, models.Unit.hierarchy_level)).all()
        return {unit_id: UnitNode(unit_id, parent_id, level) for unit_id, parent_id, level in rows}

    def descendant_unit_ids(self, unit_id: int) -> frozenset[int]:
        return domain.units_under(self.unit_parents(), unit_id)

    # Reads for planning

    def list_personnel(self, unit_ids) -> list[models.Personnel]:
        return list(
            self.db.scalars(
                select(models.Personnel)
                .options(selectinload(models.Personnel.qualifications))
                .where(models.Personnel.unit_id.in_(list(unit_ids)))
                .order_by(models.Personnel.id)
            ).all()
        )

    def list_duty_types(self, unit_ids) -> list[models.DutyType]:
        return list(
            self.db.scalars(
                select(models.DutyType)
                .options(selectinload(models.DutyType.requirements), selectinload(models.DutyType.value))
                .where(models.DutyType.unit_id.in_(list(unit_ids)))
                .order_by(models.DutyType.name, models.DutyType.id)
            ).all()
        )

    def slots_in_range(self, duty_type_ids, start: date, end: date) -> list[models.DutySlot]:
        if not duty_type_ids:
            return []
        return list(
            self.db.scalars(
                select(models.DutySlot)
                .where(
                    models.DutySlot.duty_type_id.in_(list(duty_type_ids)),
                    models.DutySlot.date_assigned >= start,
                    models.DutySlot.date_assigned <= end,
                )
                .order_by(models.DutySlot.date_assigned, models.DutySlot.id)
            ).all()
        )

    def supernumerary_in_range(self, duty_type_ids, start: date, end: date) -> list[models.SupernumeraryAssignment]:
        if not duty_type_ids:
            return []
        return list(
            self.db.scalars(
                select(models.SupernumeraryAssignment)
                .where(
                    models.SupernumeraryAssignment.duty_type_id.in_(list(duty_type_ids)),
                    models.SupernumeraryAssignment.period_start <= end,
                    models.SupernumeraryAssignment.period_end >= start,
                )
                .order_by(models.SupernumeraryAssignment.period_start, models.SupernumeraryAssignment.id)
            ).all()
        )

    def build_snapshot(
        self,
        unit_id: int,
        start: date,
        end: date,
        clear_existing: bool = False,
        clear_standby: bool = False,
    ) -> domain.PlanningSnapshot:
        """Everything a planning pass over ``unit_id`` needs, read once.

        Committed slots from the week before ``start`` are included so the
        recent-duty tie-break sees them. With ``clear_existing`` (slots) or
        ``clear_standby`` (standby rows) the records the commit would remove are
        left out and their points are taken off the baseline scores.
        """
        unit = self.get_unit(unit_id)
        if unit is None:
            raise NotFoundError(f"Unit {unit_id} not found")
        parents = self.unit_parents()
        scope = domain.units_under(parents, unit_id)

        personnel_rows = self.list_personnel(scope)
        duty_type_rows = self.list_duty_types(scope)
        personnel_ids = [p.id for p in personnel_rows]
        duty_type_ids = [dt.id for dt in duty_type_rows]

        absences = self.db.scalars(
            select(models.NonAvailability).where(
                models.NonAvailability.personnel_id.in_(personnel_ids),
                models.NonAvailability.status == "approved",
                models.NonAvailability.start_date <= end,
                models.NonAvailability.end_date >= start,
            )
        ).all()

        window_start = start - timedelta(days=RECENT_DUTY_WINDOW_DAYS)
        slot_rows = self.db.scalars(
            select(models.DutySlot)
            .where(
                or_(
                    models.DutySlot.duty_type_id.in_(duty_type_ids),
                    models.DutySlot.personnel_id.in_(personnel_ids),
                ),
                models.DutySlot.date_assigned >= window_start,
                models.DutySlot.date_assigned <= end,
            )
            .order_by(models.DutySlot.date_assigned, models.DutySlot.id)
        ).all()

        adjustments: dict[int, float] = {}
        existing_slots: list[domain.ExistingSlot] = []
        scope_types = set(duty_type_ids)
        for row in slot_rows:
            cleared = clear_existing and row.duty_type_id in scope_types and start <= row.date_assigned <= end
            if cleared:
                if row.personnel_id is not None:
                    adjustments[row.personnel_id] = adjustments.get(row.personnel_id, 0.0) - row.points
                continue
            existing_slots.append(
                domain.ExistingSlot(
                    id=row.id,
                    duty_type_id=row.duty_type_id,
                    personnel_id=row.personnel_id,
                    date_assigned=row.date_assigned,
                    points=row.points,
                    status=row.status,
                )
            )

        coverage: list[domain.SupernumeraryCoverage] = []
        for row in self.supernumerary_in_range(duty_type_ids, start, end):
            if clear_standby:
                adjustments[row.personnel_id] = adjustments.get(row.personnel_id, 0.0) - row.points
                continue
            coverage.append(
                domain.SupernumeraryCoverage(
                    id=row.id,
                    duty_type_id=row.duty_type_id,
                    personnel_id=row.personnel_id,
                    period_start=row.period_start,
                    period_end=row.period_end,
                )
            )

        return domain.PlanningSnapshot(
            unit_id=unit_id,
            personnel=[personnel_record(row) for row in personnel_rows],
            duty_types=[duty_type_record(row) for row in duty_type_rows],
            duty_values={row.id: duty_value_record(row.value) for row in duty_type_rows if row.value is not None},
            non_availability=[
                domain.NonAvailability(
                    personnel_id=row.personnel_id,
                    start_date=row.start_date,
                    end_date=row.end_date,
                    status=row.status,
                )
                for row in absences
            ],
            existing_slots=existing_slots,
            existing_supernumerary=coverage,
            unit_parents=parents,
            score_adjustments=adjustments,
            organization_id=unit.organization_id,
        )

    # Writes for the commit layer

    def get_duty_type(self, duty_type_id: int) -> models.DutyType | None:
        return self.db.get(models.DutyType, duty_type_id)

    def get_personnel(self, personnel_id: int) -> models.Personnel | None:
        return self.db.get(models.Personnel, personnel_id)

    def get_slot(self, slot_id: int) -> models.DutySlot | None:
        return self.db.get(models.DutySlot, slot_id)

    def personnel_has_slot_on(self, personnel_id: int, day: date) -> bool:
        found = self.db.scalar(
            select(models.DutySlot.id)
            .where(models.DutySlot.personnel_id == personnel_id, models.DutySlot.date_assigned == day)
            .limit(1)
        )
        return found is not None

    def personnel_on_standby(self, personnel_id: int, duty_type_id: int, start: date, end: date) -> bool:
        found = self.db.scalar(
            select(models.SupernumeraryAssignment.id)
            .where(
                models.SupernumeraryAssignment.personnel_id == personnel_id,
                models.SupernumeraryAssignment.duty_type_id == duty_type_id,
                models.SupernumeraryAssignment.period_start <= end,
                models.SupernumeraryAssignment.period_end >= start,
            )
            .limit(1)
        )
        return found is not None

    def add_slot(self, planned: domain.PlannedSlot) -> models.DutySlot:
        slot = models.DutySlot(
            duty_type_id=planned.duty_type_id,
            personnel_id=planned.personnel_id,
            date_assigned=planned.date_assigned,
            points=planned.points,
            assigned_by=planned.assigned_by,
            status=planned.status,
        )
        self.db.add(slot)
        self.db.flush()
        return slot

    def add_supernumerary(self, planned: domain.PlannedSupernumerary) -> models.SupernumeraryAssignment:
        row = models.SupernumeraryAssignment(
            organization_id=planned.organization_id,
            duty_type_id=planned.duty_type_id,
            personnel_id=planned.personnel_id,
            period_start=planned.period_start,
            period_end=planned.period_end,
            points=planned.points,
            activation_count=planned.activation_count,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def record_score_change(
        self,
        personnel: models.Personnel,
        points: float,
        date_earned: date,
        duty_type_name: str,
        reason: str,
        unit_id: int | None = None,
        duty_slot_id: int | None = None,
        supernumerary_assignment_id: int | None = None,
    ) -> models.DutyScoreEvent:
        event = models.DutyScoreEvent(
            personnel_id=personnel.id,
            duty_slot_id=duty_slot_id,
            supernumerary_assignment_id=supernumerary_assignment_id,
            unit_id=unit_id,
            duty_type_name=duty_type_name,
            points=points,
            date_earned=date_earned,
            roster_month=roster_month(date_earned),
            reason=reason,
        )
        personnel.current_duty_score = float(personnel.current_duty_score or 0.0) + points
        self.db.add(event)
        return event

    def list_score_events(self, personnel_id: int) -> list[models.DutyScoreEvent]:
        return list(
            self.db.scalars(
                select(models.DutyScoreEvent)
                .where(models.DutyScoreEvent.personnel_id == personnel_id)
                .order_by(models.DutyScoreEvent.id)
            ).all()
        )

    def clear_slots(self, unit_id: int, start: date, end: date) -> int:
        """Delete the unit subtree's slots in range, reversing their points."""
        duty_types = self.list_duty_types(self.descendant_unit_ids(unit_id))
        names = {dt.id: dt for dt in duty_types}
        rows = self.slots_in_range(list(names), start, end)
        for row in rows:
            if row.personnel_id is None or not row.points:
                continue
            person = self.get_personnel(row.personnel_id)
            if person is None:
                continue
            duty_type = names[row.duty_type_id]
            self.record_score_change(
                person,
                -row.points,
                row.date_assigned,
                duty_type.name,
                "cleared",
                unit_id=duty_type.unit_id,
            )
        if rows:
            self.db.execute(delete(models.DutySlot).where(models.DutySlot.id.in_([row.id for row in rows])))
        return len(rows)

    def clear_supernumerary(self, unit_id: int, start: date, end: date) -> int:
        duty_types = self.list_duty_types(self.descendant_unit_ids(unit_id))
        names = {dt.id: dt for dt in duty_types}
        rows = self.supernumerary_in_range(list(names), start, end)
        for row in rows:
            person = self.get_personnel(row.personnel_id)
            if person is None or not row.points:
                continue
            duty_type = names[row.duty_type_id]
            self.record_score_change(
                person,
                -row.points,
                row.period_start,
                duty_type.name,
                "cleared",
                unit_id=duty_type.unit_id,
            )
        if rows:
            self.db.execute(
                delete(models.SupernumeraryAssignment).where(
                    models.SupernumeraryAssignment.id.in_([row.id for row in rows])
                )
            )
        return len(rows)

    # Swaps

    def _request_rows(self, swap_pair_id: str, for_update: bool) -> list[models.DutyChangeRequest]:
        stmt = (
            select(models.DutyChangeRequest)
            .options(
                selectinload(models.DutyChangeRequest.approvals),
                selectinload(models.DutyChangeRequest.recommendations),
            )
            .where(models.DutyChangeRequest.swap_pair_id == swap_pair_id)
            .order_by(models.DutyChangeRequest.id)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return list(self.db.scalars(stmt).all())

    def slot_has_open_swap(self, slot_id: int) -> bool:
        found = self.db.scalar(
            select(models.DutyChangeRequest.id)
            .where(
                models.DutyChangeRequest.status == RequestStatus.PENDING.value,
                or_(
                    models.DutyChangeRequest.giving_slot_id == slot_id,
                    models.DutyChangeRequest.receiving_slot_id == slot_id,
                ),
            )
            .limit(1)
        )
        return found is not None

    def load_swap_pair(self, swap_pair_id: str, for_update: bool = True) -> SwapPair:
        rows = self._request_rows(swap_pair_id, for_update)
        if len(rows) != 2:
            raise NotFoundError(f"Swap {swap_pair_id} not found")
        requester, partner = rows
        return SwapPair(_side_from_row(requester), _side_from_row(partner))

    def load_swap_pair_for_request(self, request_id: int, for_update: bool = True) -> SwapPair:
        row = self.db.get(models.DutyChangeRequest, request_id)
        if row is None:
            raise NotFoundError(f"Swap request {request_id} not found")
        return self.load_swap_pair(row.swap_pair_id, for_update=for_update)

    def add_swap_pair(self, pair: SwapPair) -> SwapPair:
        for side in pair.sides:
            row = models.DutyChangeRequest(
                swap_pair_id=side.swap_pair_id,
                personnel_id=side.personnel_id,
                swap_partner_id=side.swap_partner_id,
                giving_slot_id=side.giving_slot_id,
                receiving_slot_id=side.receiving_slot_id,
            )
            _copy_side_to_row(side, row)
            for step in side.chain.steps:
                row.approvals.append(
                    models.SwapApproval(
                        approval_order=step.approval_order,
                        approver_type=step.approver_type.value,
                        scope_unit_id=step.scope_unit_id,
                        is_approver=step.is_approver,
                    )
                )
            self.db.add(row)
            self.db.flush()
            side.id = row.id
            for step, approval in zip(side.chain.steps, row.approvals):
                _copy_step_to_row(step, approval)
                step.id = approval.id
        return pair

    def save_swap_pair(self, pair: SwapPair) -> None:
        for side in pair.sides:
            row = self.db.get(models.DutyChangeRequest, side.id)
            if row is None:
                raise NotFoundError(f"Swap request {side.id} not found")
            _copy_side_to_row(side, row)
            approvals = {approval.approval_order: approval for approval in row.approvals}
            for step in side.chain.steps:
                approval = approvals.get(step.approval_order)
                if approval is not None:
                    _copy_step_to_row(step, approval)
            for entry in side.recommendations:
                if entry.id is None:
                    recommendation = models.SwapRecommendation(
                        recommender_id=entry.recommender_id,
                        recommendation=entry.recommendation.value,
                        comment=entry.comment,
                    )
                    if entry.created_at is not None:
                        recommendation.created_at = entry.created_at
                    row.recommendations.append(recommendation)
                    self.db.flush()
                    entry.id = recommendation.id

    def commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.error("Commit rejected by the database: %s", exc.orig)
            raise PersistenceError("The database rejected the change", {"detail": str(exc.orig)}) from exc

    def rollback(self) -> None:
        self.db.rollback()


def _side_from_row(row: models.DutyChangeRequest) -> SwapRequestSide:
    steps = [
        ApprovalStep(
            approval_order=approval.approval_order,
            approver_type=ApproverType(approval.approver_type),
            is_approver=approval.is_approver,
            scope_unit_id=approval.scope_unit_id,
            status=RequestStatus(approval.status),
            approved_by=approval.approved_by,
            approved_at=approval.approved_at,
            rejection_reason=approval.rejection_reason,
            id=approval.id,
        )
        for approval in row.approvals
    ]
    return SwapRequestSide(
        swap_pair_id=row.swap_pair_id,
        personnel_id=row.personnel_id,
        swap_partner_id=row.swap_partner_id,
        giving_slot_id=row.giving_slot_id,
        receiving_slot_id=row.receiving_slot_id,
        chain=ApprovalChain(steps),
        status=RequestStatus(row.status),
        partner_accepted=row.partner_accepted,
        partner_accepted_at=row.partner_accepted_at,
        partner_accepted_by=row.partner_accepted_by,
        requested_by=row.requested_by,
        reason=row.reason,
        rejection_reason=row.rejection_reason,
        executed_at=row.executed_at,
        recommendations=[
            RecommendationEntry(
                recommender_id=r.recommender_id,
                recommendation=Recommendation(r.recommendation),
                comment=r.comment,
                created_at=r.created_at,
                id=r.id,
            )
            for r in row.recommendations
        ],
        id=row.id,
    )


def _copy_side_to_row(side: SwapRequestSide, row: models.DutyChangeRequest) -> None:
    row.status = side.status.value
    row.partner_accepted = side.partner_accepted
    row.partner_accepted_at = side.partner_accepted_at
    row.partner_accepted_by = side.partner_accepted_by
    row.requested_by = side.requested_by
    row.reason = side.reason
    row.rejection_reason = side.rejection_reason
    row.executed_at = side.executed_at


def _copy_step_to_row(step: ApprovalStep, row: models.SwapApproval) -> None:
    row.status = step.status.value
    row.approved_by = step.approved_by
    row.approved_at = step.approved_at
    row.rejection_reason = step.rejection_reason
