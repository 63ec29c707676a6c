from __future__ import annotations

from datetime import date

import pytest

from dutysync import models
from dutysync.errors import NotFoundError, SwapWorkflowError
from dutysync.repository import SqlRepository
from dutysync.swap_service import (
    accept_swap,
    approve_swap,
    decline_swap,
    get_swap,
    recommend_swap,
    reject_swap,
    request_swap,
)
from dutysync.swaps import ApproverType, PairStatus, RequestStatus
from factories import add_duty_type, add_person


@pytest.fixture
def swap_setup(db, unit_tree):
    able = add_person(db, unit_tree["radio"], last_name="Able")
    baker = add_person(db, unit_tree["wire"], last_name="Baker")
    chief = add_person(db, unit_tree["ops"], rank="E-7", last_name="Chief")
    duty_type = add_duty_type(db, unit_tree["company"], name="Duty NCO")
    monday = models.DutySlot(duty_type_id=duty_type.id, personnel_id=able.id, date_assigned=date(2025, 3, 10), points=1.0)
    saturday = models.DutySlot(
        duty_type_id=duty_type.id, personnel_id=baker.id, date_assigned=date(2025, 3, 15), points=1.5
    )
    db.add_all([monday, saturday])
    db.commit()
    return {"able": able, "baker": baker, "chief": chief, "monday": monday, "saturday": saturday}


def test_request_builds_mirrored_rows_with_section_level_chains(db, swap_setup):
    repository = SqlRepository(db)
    pair = request_swap(
        repository, swap_setup["monday"].id, swap_setup["saturday"].id, requested_by=swap_setup["able"].id
    )

    assert pair.status is PairStatus.AWAITING_PARTNER
    assert pair.requester.personnel_id == swap_setup["able"].id
    assert pair.partner.giving_slot_id == swap_setup["saturday"].id
    for side in pair.sides:
        assert [(s.approval_order, s.approver_type, s.is_approver) for s in side.chain.steps] == [
            (1, ApproverType.WORK_SECTION_MANAGER, False),
            (2, ApproverType.SECTION_MANAGER, True),
        ]
    assert db.query(models.DutyChangeRequest).count() == 2
    assert db.query(models.SwapApproval).count() == 4

    stored = get_swap(repository, pair.swap_pair_id)
    assert stored.requester.id == pair.requester.id
    assert stored.requester.partner_accepted
    assert not stored.partner.partner_accepted


def test_full_workflow_executes_the_swap(db, swap_setup):
    repository = SqlRepository(db)
    able, baker, chief = swap_setup["able"], swap_setup["baker"], swap_setup["chief"]
    monday, saturday = swap_setup["monday"], swap_setup["saturday"]
    pair = request_swap(repository, monday.id, saturday.id, requested_by=able.id, reason="family event")

    pair = accept_swap(repository, pair.swap_pair_id, baker.id)
    assert pair.status is PairStatus.PENDING

    pair = approve_swap(repository, pair.requester.id, 2, approver_id=chief.id)
    assert pair.status is PairStatus.PENDING
    assert monday.personnel_id == able.id

    pair = approve_swap(repository, pair.partner.id, 2, approver_id=chief.id)
    assert pair.status is PairStatus.EXECUTED

    assert (monday.personnel_id, saturday.personnel_id) == (baker.id, able.id)
    assert monday.status == saturday.status == "swapped"
    assert monday.swapped_from_personnel_id == able.id
    assert saturday.swapped_from_personnel_id == baker.id
    assert monday.swap_pair_id == saturday.swap_pair_id == pair.swap_pair_id
    assert monday.swapped_at is not None

    assert able.current_duty_score == pytest.approx(0.5)
    assert baker.current_duty_score == pytest.approx(-0.5)
    events = repository.list_score_events(able.id)
    assert [(e.reason, e.points) for e in events] == [("swapped", -1.0), ("swapped", 1.5)]

    stored = get_swap(repository, pair.swap_pair_id)
    assert stored.status is PairStatus.EXECUTED
    assert stored.requester.status is RequestStatus.APPROVED
    assert stored.partner.executed_at is not None
    assert stored.requester.chain.step(2).approved_by == chief.id


def test_approval_before_acceptance_changes_nothing(db, swap_setup):
    repository = SqlRepository(db)
    pair = request_swap(repository, swap_setup["monday"].id, swap_setup["saturday"].id)

    with pytest.raises(SwapWorkflowError, match="Partner acceptance"):
        approve_swap(repository, pair.requester.id, 2, approver_id=swap_setup["chief"].id)

    stored = get_swap(repository, pair.swap_pair_id)
    assert stored.requester.chain.step(2).status is RequestStatus.PENDING

    accept_swap(repository, pair.swap_pair_id, swap_setup["baker"].id)
    approve_swap(repository, pair.requester.id, 2)
    with pytest.raises(SwapWorkflowError, match="already approved"):
        approve_swap(repository, pair.requester.id, 2)


def test_rejection_closes_the_pair_and_frees_the_slots(db, swap_setup):
    repository = SqlRepository(db)
    monday, saturday = swap_setup["monday"], swap_setup["saturday"]
    pair = request_swap(repository, monday.id, saturday.id)
    accept_swap(repository, pair.swap_pair_id, swap_setup["baker"].id)

    pair = reject_swap(repository, pair.partner.id, 2, approver_id=swap_setup["chief"].id, reason="short staffed")

    assert pair.status is PairStatus.REJECTED
    stored = get_swap(repository, pair.swap_pair_id)
    assert stored.requester.status is RequestStatus.REJECTED
    assert stored.requester.rejection_reason == "short staffed"
    assert monday.personnel_id == swap_setup["able"].id
    assert monday.status == "scheduled"

    again = request_swap(repository, monday.id, saturday.id)
    assert again.swap_pair_id != pair.swap_pair_id


def test_decline_rejects_both_rows(db, swap_setup):
    repository = SqlRepository(db)
    pair = request_swap(repository, swap_setup["monday"].id, swap_setup["saturday"].id)

    pair = decline_swap(repository, pair.swap_pair_id, swap_setup["baker"].id, reason="on leave")

    assert pair.status is PairStatus.REJECTED
    assert get_swap(repository, pair.swap_pair_id).partner.rejection_reason == "on leave"


def test_slots_with_open_swaps_or_closed_status_are_refused(db, swap_setup):
    repository = SqlRepository(db)
    monday, saturday = swap_setup["monday"], swap_setup["saturday"]
    request_swap(repository, monday.id, saturday.id)

    with pytest.raises(SwapWorkflowError, match="already has a pending swap"):
        request_swap(repository, saturday.id, monday.id)
    with pytest.raises(NotFoundError):
        request_swap(repository, monday.id, 9999)

    chief_slot = models.DutySlot(
        duty_type_id=monday.duty_type_id,
        personnel_id=swap_setup["chief"].id,
        date_assigned=date(2025, 3, 1),
        points=1.0,
        status="completed",
    )
    db.add(chief_slot)
    db.commit()
    with pytest.raises(SwapWorkflowError, match="completed and cannot be swapped"):
        request_swap(repository, chief_slot.id, monday.id)


def test_execution_stops_when_slot_ownership_changed(db, swap_setup):
    repository = SqlRepository(db)
    saturday = swap_setup["saturday"]
    pair = request_swap(repository, swap_setup["monday"].id, saturday.id)
    accept_swap(repository, pair.swap_pair_id, swap_setup["baker"].id)
    approve_swap(repository, pair.requester.id, 2)

    saturday.personnel_id = swap_setup["chief"].id
    db.commit()

    with pytest.raises(SwapWorkflowError, match="ownership changed"):
        approve_swap(repository, pair.partner.id, 2)

    stored = get_swap(repository, pair.swap_pair_id)
    assert stored.status is PairStatus.PENDING
    assert stored.partner.chain.step(2).status is RequestStatus.PENDING


def test_recommendations_are_stored_once_per_recommender(db, swap_setup):
    repository = SqlRepository(db)
    chief = swap_setup["chief"]
    pair = request_swap(repository, swap_setup["monday"].id, swap_setup["saturday"].id)

    entry = recommend_swap(repository, pair.requester.id, chief.id, "recommend", comment="covered")

    assert entry.id is not None
    stored = get_swap(repository, pair.swap_pair_id)
    assert [(r.recommender_id, r.recommendation.value) for r in stored.requester.recommendations] == [
        (chief.id, "recommend")
    ]
    assert stored.status is PairStatus.AWAITING_PARTNER
    with pytest.raises(SwapWorkflowError, match="already recommended"):
        recommend_swap(repository, pair.requester.id, chief.id, "not_recommend")


def test_swaps_between_battalion_staff_are_refused(db, unit_tree, swap_setup):
    repository = SqlRepository(db)
    battalion = unit_tree["battalion"]
    duty_type_id = swap_setup["monday"].duty_type_id
    adjutant = add_person(db, battalion, rank="O-2", last_name="Adjutant")
    sergeant_major = add_person(db, battalion, rank="E-9", last_name="Major")
    first = models.DutySlot(duty_type_id=duty_type_id, personnel_id=adjutant.id, date_assigned=date(2025, 3, 20))
    second = models.DutySlot(duty_type_id=duty_type_id, personnel_id=sergeant_major.id, date_assigned=date(2025, 3, 21))
    db.add_all([first, second])
    db.commit()

    with pytest.raises(SwapWorkflowError, match="can approve a swap"):
        request_swap(repository, first.id, second.id)

    assert db.query(models.DutyChangeRequest).count() == 0
