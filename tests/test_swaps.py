from __future__ import annotations

from datetime import datetime, timezone

import pytest

from dutysync.errors import SwapWorkflowError
from dutysync.swaps import (
    ApprovalChain,
    ApprovalStep,
    ApproverType,
    PairStatus,
    RequestStatus,
    SwapPair,
    SwapRequestSide,
    UnitNode,
    build_approval_chain,
    create_swap_pair,
)

UNITS = {
    1: UnitNode(1, None, "unit"),
    2: UnitNode(2, 1, "company"),
    3: UnitNode(3, 2, "section"),
    4: UnitNode(4, 2, "section"),
    5: UnitNode(5, 3, "work_section"),
    6: UnitNode(6, 3, "work_section"),
    7: UnitNode(7, 1, "company"),
    8: UnitNode(8, 7, "section"),
}


def chain_shape(steps):
    return [(s.approval_order, s.approver_type, s.is_approver, s.scope_unit_id) for s in steps]


def test_chain_for_sibling_work_sections_stops_at_the_section():
    assert chain_shape(build_approval_chain(5, 6, UNITS)) == [
        (1, ApproverType.WORK_SECTION_MANAGER, False, 5),
        (2, ApproverType.SECTION_MANAGER, True, 3),
    ]


def test_chain_across_sections_goes_to_the_company():
    assert chain_shape(build_approval_chain(5, 4, UNITS)) == [
        (1, ApproverType.WORK_SECTION_MANAGER, False, 5),
        (2, ApproverType.SECTION_MANAGER, False, 3),
        (3, ApproverType.COMPANY_MANAGER, True, 2),
    ]
    assert chain_shape(build_approval_chain(4, 5, UNITS)) == [
        (1, ApproverType.SECTION_MANAGER, False, 4),
        (2, ApproverType.COMPANY_MANAGER, True, 2),
    ]


def test_chain_within_one_work_section_has_a_single_approver():
    assert chain_shape(build_approval_chain(5, 5, UNITS)) == [(1, ApproverType.WORK_SECTION_MANAGER, True, 5)]


def test_chain_across_companies_ends_with_the_company_manager():
    steps = build_approval_chain(5, 8, UNITS)
    assert [s.is_approver for s in steps] == [False, False, True]
    assert steps[-1].approver_type is ApproverType.COMPANY_MANAGER


def test_units_without_a_manager_level_cannot_approve_a_swap():
    with pytest.raises(SwapWorkflowError, match="No manager above unit 1"):
        build_approval_chain(1, 1, UNITS)
    with pytest.raises(SwapWorkflowError, match="No manager above unit 1"):
        build_approval_chain(1, 5, UNITS)
    assert build_approval_chain(5, 1, UNITS)[-1].is_approver


def test_pair_without_an_approver_step_is_refused():
    with pytest.raises(SwapWorkflowError, match="needs an approver step"):
        create_swap_pair(
            requester_personnel_id=10,
            partner_personnel_id=20,
            giving_slot_id=100,
            receiving_slot_id=200,
            requester_steps=[],
            partner_steps=build_approval_chain(5, 5, UNITS),
        )


def new_pair(requester_unit=5, partner_unit=6) -> SwapPair:
    return create_swap_pair(
        requester_personnel_id=10,
        partner_personnel_id=20,
        giving_slot_id=100,
        receiving_slot_id=200,
        requester_steps=build_approval_chain(requester_unit, partner_unit, UNITS),
        partner_steps=build_approval_chain(partner_unit, requester_unit, UNITS),
        requested_by=10,
        reason="family event",
    )


def with_ids(pair: SwapPair) -> SwapPair:
    pair.requester.id = 1
    pair.partner.id = 2
    return pair


def test_new_pair_mirrors_both_rows_and_waits_for_the_partner():
    pair = new_pair()

    assert pair.requester.swap_pair_id == pair.partner.swap_pair_id
    assert (pair.partner.giving_slot_id, pair.partner.receiving_slot_id) == (200, 100)
    assert pair.requester.partner_accepted
    assert not pair.partner.partner_accepted
    assert pair.status is PairStatus.AWAITING_PARTNER
    assert not pair.is_ready_to_execute


def test_approvals_need_partner_acceptance():
    pair = with_ids(new_pair())
    with pytest.raises(SwapWorkflowError, match="Partner acceptance"):
        pair.approve(1, 2, approver_id=50)


def test_approver_steps_must_go_in_order_and_recommend_steps_never_gate():
    pair = with_ids(new_pair(5, 4))
    pair.accept(20, accepted_by=20)
    assert pair.status is PairStatus.PENDING

    # requester chain: 1 work section (recommend), 2 section (recommend), 3 company (approver)
    pair.approve(1, 3, approver_id=70)
    pair.approve(1, 1, approver_id=50)
    assert pair.requester.chain.is_complete

    # partner chain: 1 section (recommend), 2 company (approver)
    pair.approve(2, 2, approver_id=70)
    assert pair.status is PairStatus.APPROVED
    assert pair.requester.status is RequestStatus.APPROVED
    assert pair.partner.status is RequestStatus.APPROVED
    assert pair.is_ready_to_execute


def test_out_of_order_approval_is_refused():
    steps = [
        ApprovalStep(1, ApproverType.WORK_SECTION_MANAGER, True),
        ApprovalStep(2, ApproverType.SECTION_MANAGER, True),
    ]
    chain = ApprovalChain(steps)
    now = datetime.now(timezone.utc)
    with pytest.raises(SwapWorkflowError, match="before approval 1"):
        chain.approve(2, 99, now)
    chain.approve(1, 98, now)
    assert chain.current.approval_order == 2
    chain.approve(2, 99, now)
    assert chain.is_complete
    assert chain.current is None


def test_duplicate_approval_order_is_rejected():
    with pytest.raises(SwapWorkflowError, match="unique"):
        ApprovalChain(
            [
                ApprovalStep(1, ApproverType.WORK_SECTION_MANAGER, False),
                ApprovalStep(1, ApproverType.SECTION_MANAGER, True),
            ]
        )


def test_one_rejection_rejects_both_rows():
    pair = with_ids(new_pair())
    pair.accept(20)
    pair.reject(2, 2, approver_id=60, reason="short staffed")

    assert pair.status is PairStatus.REJECTED
    assert pair.requester.status is RequestStatus.REJECTED
    assert pair.partner.status is RequestStatus.REJECTED
    assert pair.partner.rejection_reason == "short staffed"
    assert all(step.status is RequestStatus.REJECTED for side in pair.sides for step in side.chain.steps)
    with pytest.raises(SwapWorkflowError, match="already rejected"):
        pair.approve(1, 2, approver_id=60)


def test_recommend_only_steps_cannot_reject():
    pair = with_ids(new_pair())
    pair.accept(20)
    with pytest.raises(SwapWorkflowError, match="recommend-only"):
        pair.reject(1, 1, approver_id=50)
    assert pair.status is PairStatus.PENDING


def test_rejecting_an_approved_pair_is_an_error():
    pair = with_ids(new_pair(5, 5))
    pair.accept(20)
    pair.approve(1, 1)
    pair.approve(2, 1)
    assert pair.status is PairStatus.APPROVED
    with pytest.raises(SwapWorkflowError, match="already approved"):
        pair.reject(1, 1, reason="changed my mind")


def test_partner_decline_rejects_the_pair():
    pair = with_ids(new_pair())
    pair.decline(20, reason="not available")

    assert pair.status is PairStatus.REJECTED
    assert pair.requester.rejection_reason == "not available"
    with pytest.raises(SwapWorkflowError):
        pair.accept(20)


def test_execution_marks_both_rows():
    pair = with_ids(new_pair(5, 5))
    pair.accept(20)
    with pytest.raises(SwapWorkflowError, match="not ready"):
        pair.mark_executed()
    pair.approve(1, 1)
    pair.approve(2, 1)
    pair.mark_executed()

    assert pair.status is PairStatus.EXECUTED
    assert not pair.is_ready_to_execute
    assert pair.requester.executed_at == pair.partner.executed_at


def test_recommendations_do_not_change_state():
    pair = with_ids(new_pair())
    pair.accept(20)
    entry = pair.recommend(1, 55, "not_recommend", comment="busy week")

    assert entry.recommendation.value == "not_recommend"
    assert pair.status is PairStatus.PENDING
    with pytest.raises(SwapWorkflowError, match="already recommended"):
        pair.recommend(1, 55, "recommend")


def test_pair_rows_must_mirror_each_other():
    pair = new_pair()
    broken = SwapRequestSide(
        swap_pair_id=pair.swap_pair_id,
        personnel_id=20,
        swap_partner_id=10,
        giving_slot_id=300,
        receiving_slot_id=100,
        chain=ApprovalChain(),
    )
    with pytest.raises(SwapWorkflowError, match="opposite slots"):
        SwapPair(pair.requester, broken)
