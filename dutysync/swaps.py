"""Duty-swap approval state machine.

A swap is two linked request rows, one per participant, sharing a
``swap_pair_id``. Each row gives up one slot and receives the other, and each
carries its own ordered approval chain. The rows move together: both become
``approved`` when every approver on both sides has signed off, and a single
rejection rejects both.

Nothing here touches the database or the slots themselves; executing an
approved swap is the commit layer's job.
"""
from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from dutysync.errors import SwapWorkflowError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApproverType(str, Enum):
    WORK_SECTION_MANAGER = "work_section_manager"
    SECTION_MANAGER = "section_manager"
    COMPANY_MANAGER = "company_manager"


class Recommendation(str, Enum):
    RECOMMEND = "recommend"
    NOT_RECOMMEND = "not_recommend"


class PairStatus(str, Enum):
    AWAITING_PARTNER = "awaiting_partner"
    PENDING = "pending"
    APPROVED = "approved"
    EXECUTED = "executed"
    REJECTED = "rejected"


LEVEL_APPROVER_TYPES = {
    "work_section": ApproverType.WORK_SECTION_MANAGER,
    "section": ApproverType.SECTION_MANAGER,
    "company": ApproverType.COMPANY_MANAGER,
}


@dataclass
class ApprovalStep:
    approval_order: int
    approver_type: ApproverType
    is_approver: bool
    scope_unit_id: int | None = None
    status: RequestStatus = RequestStatus.PENDING
    approved_by: int | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    id: int | None = None


@dataclass
class RecommendationEntry:
    recommender_id: int
    recommendation: Recommendation
    comment: str | None = None
    created_at: datetime | None = None
    id: int | None = None


class ApprovalChain:
    """Approval steps in ``approval_order`` with a cursor on the next approver.

    Recommend-only steps (``is_approver`` false) can be signed in any order and
    never hold the cursor.
    """

    def __init__(self, steps: Iterable[ApprovalStep] = ()):
        self.steps = sorted(steps, key=lambda s: s.approval_order)
        orders = [s.approval_order for s in self.steps]
        if len(set(orders)) != len(orders):
            raise SwapWorkflowError("approval_order must be unique within a request")
        self._cursor = 0
        self._advance()

    def _advance(self) -> None:
        while self._cursor < len(self.steps):
            step = self.steps[self._cursor]
            if step.is_approver and step.status is not RequestStatus.APPROVED:
                break
            self._cursor += 1

    @property
    def current(self) -> ApprovalStep | None:
        if self._cursor >= len(self.steps):
            return None
        step = self.steps[self._cursor]
        return step if step.status is RequestStatus.PENDING else None

    @property
    def is_complete(self) -> bool:
        return self._cursor >= len(self.steps)

    def step(self, approval_order: int) -> ApprovalStep:
        for step in self.steps:
            if step.approval_order == approval_order:
                return step
        raise SwapWorkflowError(f"No approval with order {approval_order} on this request")

    def approve(self, approval_order: int, approver_id: int | None, at: datetime) -> ApprovalStep:
        step = self.step(approval_order)
        if step.status is not RequestStatus.PENDING:
            raise SwapWorkflowError(f"Approval {approval_order} is already {step.status.value}")
        if step.is_approver:
            current = self.current
            if current is None or current.approval_order != approval_order:
                blocking = current.approval_order if current is not None else "?"
                raise SwapWorkflowError(
                    f"Approval {approval_order} cannot be granted before approval {blocking} is approved"
                )
        step.status = RequestStatus.APPROVED
        step.approved_by = approver_id
        step.approved_at = at
        self._advance()
        return step

    def reject(self, approval_order: int, approver_id: int | None, reason: str | None, at: datetime) -> ApprovalStep:
        step = self.step(approval_order)
        if step.status is not RequestStatus.PENDING:
            raise SwapWorkflowError(f"Approval {approval_order} is already {step.status.value}")
        step.status = RequestStatus.REJECTED
        step.approved_by = approver_id
        step.approved_at = at
        step.rejection_reason = reason
        self.close_pending(at)
        return step

    def close_pending(self, at: datetime) -> None:
        for step in self.steps:
            if step.status is RequestStatus.PENDING:
                step.status = RequestStatus.REJECTED
                step.approved_at = at
        self._advance()


@dataclass
class SwapRequestSide:
    swap_pair_id: str
    personnel_id: int
    swap_partner_id: int
    giving_slot_id: int
    receiving_slot_id: int
    chain: ApprovalChain
    status: RequestStatus = RequestStatus.PENDING
    partner_accepted: bool = False
    partner_accepted_at: datetime | None = None
    partner_accepted_by: int | None = None
    requested_by: int | None = None
    reason: str | None = None
    rejection_reason: str | None = None
    executed_at: datetime | None = None
    recommendations: list[RecommendationEntry] = field(default_factory=list)
    id: int | None = None


class SwapPair:
    def __init__(self, requester: SwapRequestSide, partner: SwapRequestSide):
        self.requester = requester
        self.partner = partner
        self._check_invariants()

    @property
    def sides(self) -> tuple[SwapRequestSide, SwapRequestSide]:
        return (self.requester, self.partner)

    @property
    def swap_pair_id(self) -> str:
        return self.requester.swap_pair_id

    def side_for_request(self, request_id: int) -> SwapRequestSide:
        for side in self.sides:
            if side.id == request_id:
                return side
        raise SwapWorkflowError(f"Request {request_id} is not part of swap {self.swap_pair_id}")

    def side_for_personnel(self, personnel_id: int) -> SwapRequestSide:
        for side in self.sides:
            if side.personnel_id == personnel_id:
                return side
        raise SwapWorkflowError(f"Personnel {personnel_id} is not part of swap {self.swap_pair_id}")

    @property
    def status(self) -> PairStatus:
        if any(side.status is RequestStatus.REJECTED for side in self.sides):
            return PairStatus.REJECTED
        if all(side.status is RequestStatus.APPROVED for side in self.sides):
            if all(side.executed_at is not None for side in self.sides):
                return PairStatus.EXECUTED
            return PairStatus.APPROVED
        if not all(side.partner_accepted for side in self.sides):
            return PairStatus.AWAITING_PARTNER
        return PairStatus.PENDING

    @property
    def is_ready_to_execute(self) -> bool:
        return (
            self.status is PairStatus.APPROVED
            and all(side.partner_accepted and side.chain.is_complete for side in self.sides)
        )

    def accept(self, personnel_id: int, accepted_by: int | None = None, at: datetime | None = None) -> None:
        self._require_open("accept")
        side = self.side_for_personnel(personnel_id)
        if side.partner_accepted:
            raise SwapWorkflowError(f"Personnel {personnel_id} has already accepted this swap")
        side.partner_accepted = True
        side.partner_accepted_at = at or utcnow()
        side.partner_accepted_by = accepted_by
        self._settle()

    def decline(self, personnel_id: int, reason: str | None = None, at: datetime | None = None) -> None:
        self._require_open("decline")
        side = self.side_for_personnel(personnel_id)
        if side.partner_accepted:
            raise SwapWorkflowError(f"Personnel {personnel_id} already accepted this swap and cannot decline it")
        self._reject_both(reason or "Declined by swap partner", at or utcnow())

    def approve(
        self,
        request_id: int,
        approval_order: int,
        approver_id: int | None = None,
        at: datetime | None = None,
    ) -> ApprovalStep:
        self._require_open("approve")
        if not all(side.partner_accepted for side in self.sides):
            raise SwapWorkflowError("Partner acceptance is required before approvals can be recorded")
        side = self.side_for_request(request_id)
        step = side.chain.approve(approval_order, approver_id, at or utcnow())
        self._settle()
        return step

    def reject(
        self,
        request_id: int,
        approval_order: int,
        approver_id: int | None = None,
        reason: str | None = None,
        at: datetime | None = None,
    ) -> ApprovalStep:
        self._require_open("reject")
        side = self.side_for_request(request_id)
        if not side.chain.step(approval_order).is_approver:
            raise SwapWorkflowError(
                f"Approval {approval_order} is recommend-only and cannot reject the swap"
            )
        moment = at or utcnow()
        step = side.chain.reject(approval_order, approver_id, reason, moment)
        self._reject_both(reason or f"Rejected at approval {approval_order}", moment)
        return step

    def recommend(
        self,
        request_id: int,
        recommender_id: int,
        recommendation: Recommendation | str,
        comment: str | None = None,
        at: datetime | None = None,
    ) -> RecommendationEntry:
        side = self.side_for_request(request_id)
        if any(r.recommender_id == recommender_id for r in side.recommendations):
            raise SwapWorkflowError(f"User {recommender_id} has already recommended on request {request_id}")
        entry = RecommendationEntry(
            recommender_id=recommender_id,
            recommendation=Recommendation(recommendation),
            comment=comment,
            created_at=at or utcnow(),
        )
        side.recommendations.append(entry)
        return entry

    def mark_executed(self, at: datetime | None = None) -> None:
        if not self.is_ready_to_execute:
            raise SwapWorkflowError(f"Swap {self.swap_pair_id} is not ready to execute (status {self.status.value})")
        moment = at or utcnow()
        for side in self.sides:
            side.executed_at = moment

    def _require_open(self, action: str) -> None:
        status = self.status
        if status is PairStatus.REJECTED:
            raise SwapWorkflowError(f"Cannot {action}: swap {self.swap_pair_id} is already rejected")
        if status in (PairStatus.APPROVED, PairStatus.EXECUTED):
            raise SwapWorkflowError(f"Cannot {action}: swap {self.swap_pair_id} is already approved")

    def _settle(self) -> None:
        if all(side.partner_accepted and side.chain.is_complete for side in self.sides):
            for side in self.sides:
                side.status = RequestStatus.APPROVED
        self._check_invariants()

    def _reject_both(self, reason: str, at: datetime) -> None:
        for side in self.sides:
            side.chain.close_pending(at)
            side.status = RequestStatus.REJECTED
            side.rejection_reason = side.rejection_reason or reason
        self._check_invariants()

    def _check_invariants(self) -> None:
        a, b = self.sides
        if a.swap_pair_id != b.swap_pair_id:
            raise SwapWorkflowError("Both rows of a swap must share the same swap_pair_id")
        if a.personnel_id == b.personnel_id:
            raise SwapWorkflowError("A swap needs two different personnel")
        if a.swap_partner_id != b.personnel_id or b.swap_partner_id != a.personnel_id:
            raise SwapWorkflowError("Swap rows must name each other as partners")
        if a.giving_slot_id != b.receiving_slot_id or a.receiving_slot_id != b.giving_slot_id:
            raise SwapWorkflowError("Swap rows must give and receive opposite slots")
        if a.giving_slot_id == a.receiving_slot_id:
            raise SwapWorkflowError("A swap needs two different slots")
        terminal = (RequestStatus.APPROVED, RequestStatus.REJECTED)
        if (a.status in terminal or b.status in terminal) and a.status is not b.status:
            raise SwapWorkflowError("Both rows of a swap must reach the same final status")


@dataclass(frozen=True)
class UnitNode:
    id: int
    parent_id: int | None
    hierarchy_level: str


def unit_ancestry(unit_id: int, units: Mapping[int, UnitNode]) -> list[UnitNode]:
    """``unit_id`` followed by its parents up to the root."""
    chain: list[UnitNode] = []
    seen: set[int] = set()
    current = units.get(unit_id)
    while current is not None and current.id not in seen:
        chain.append(current)
        seen.add(current.id)
        current = units.get(current.parent_id) if current.parent_id is not None else None
    return chain


def build_approval_chain(person_unit_id: int, partner_unit_id: int, units: Mapping[int, UnitNode]) -> list[ApprovalStep]:
    """Approval steps for one side of a swap.

    Managers of the person's units below the lowest common ancestor of both
    participants only recommend; the manager at the lowest common ancestor
    approves. When that ancestor sits above company level, the highest manager
    on the path approves. Units with no manager level of their own (a
    battalion) cannot produce an approver, and the swap is refused.
    """
    ancestry = unit_ancestry(person_unit_id, units)
    partner_units = {unit.id for unit in unit_ancestry(partner_unit_id, units)}
    lca_index = next((i for i, unit in enumerate(ancestry) if unit.id in partner_units), len(ancestry) - 1)

    steps: list[ApprovalStep] = []
    for index, unit in enumerate(ancestry):
        approver_type = LEVEL_APPROVER_TYPES.get(unit.hierarchy_level)
        if approver_type is None:
            continue
        at_lca = index >= lca_index
        steps.append(
            ApprovalStep(
                approval_order=len(steps) + 1,
                approver_type=approver_type,
                is_approver=at_lca,
                scope_unit_id=unit.id,
            )
        )
        if at_lca:
            break
    if not steps:
        raise SwapWorkflowError(f"No manager above unit {person_unit_id} can approve a swap")
    if not any(step.is_approver for step in steps):
        steps[-1].is_approver = True
    return steps


def create_swap_pair(
    *,
    requester_personnel_id: int,
    partner_personnel_id: int,
    giving_slot_id: int,
    receiving_slot_id: int,
    requester_steps: Iterable[ApprovalStep],
    partner_steps: Iterable[ApprovalStep],
    requested_by: int | None = None,
    reason: str | None = None,
    swap_pair_id: str | None = None,
    at: datetime | None = None,
) -> SwapPair:
    """Both rows of a new swap; the requester's side counts as accepted."""
    requester_steps = list(requester_steps)
    partner_steps = list(partner_steps)
    for steps in (requester_steps, partner_steps):
        if not any(step.is_approver for step in steps):
            raise SwapWorkflowError("Each side of a swap needs an approver step")
    pair_id = swap_pair_id or str(uuid.uuid4())
    moment = at or utcnow()
    requester = SwapRequestSide(
        swap_pair_id=pair_id,
        personnel_id=requester_personnel_id,
        swap_partner_id=partner_personnel_id,
        giving_slot_id=giving_slot_id,
        receiving_slot_id=receiving_slot_id,
        chain=ApprovalChain(requester_steps),
        partner_accepted=True,
        partner_accepted_at=moment,
        partner_accepted_by=requested_by,
        requested_by=requested_by,
        reason=reason,
    )
    partner = SwapRequestSide(
        swap_pair_id=pair_id,
        personnel_id=partner_personnel_id,
        swap_partner_id=requester_personnel_id,
        giving_slot_id=receiving_slot_id,
        receiving_slot_id=giving_slot_id,
        chain=ApprovalChain(partner_steps),
        requested_by=requested_by,
        reason=reason,
    )
    return SwapPair(requester, partner)
