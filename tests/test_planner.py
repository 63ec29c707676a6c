from collections import Counter
from datetime import date

import pytest

from dutysync.domain import (
    AttributeFilter,
    DutyType,
    DutyValue,
    ExistingSlot,
    NonAvailability,
    Personnel,
    PlanningSnapshot,
)
from dutysync.errors import ScheduleValidationError
from dutysync.planner import (
    NO_DUTY_TYPES_WARNING,
    NOTHING_FILLED_ERROR,
    ScheduleRequest,
    plan_schedule,
    validate_request,
)

MONDAY = date(2025, 3, 10)
WEDNESDAY = date(2025, 3, 12)


def roster(count=3, unit_id=1, scores=None):
    scores = scores or {}
    return [Personnel(id=i, unit_id=unit_id, rank="E-4", current_duty_score=scores.get(i, 0.0)) for i in range(1, count + 1)]


def snapshot(personnel, duty_types, **extra):
    return PlanningSnapshot(unit_id=1, personnel=personnel, duty_types=duty_types, **extra)


def request(start=MONDAY, end=WEDNESDAY, **extra):
    return ScheduleRequest(unit_id=1, start_date=start, end_date=end, **extra)


def test_lowest_score_rotates_through_the_roster():
    snap = snapshot(roster(), [DutyType(id=1, unit_id=1, name="Duty NCO")])
    result = plan_schedule(request(), snap)

    assert result.success
    assert result.preview
    assert [slot.personnel_id for slot in result.slots] == [1, 2, 3]
    assert [slot.date_assigned for slot in result.slots] == [MONDAY, date(2025, 3, 11), WEDNESDAY]
    assert result.projected_scores == {1: 1.0, 2: 1.0, 3: 1.0}


def test_nobody_doubles_up_and_slots_needed_is_a_ceiling():
    snap = snapshot(
        roster(),
        [
            DutyType(id=2, unit_id=1, name="Duty NCO", slots_needed=2),
            DutyType(id=1, unit_id=1, name="Armory", slots_needed=2),
        ],
    )
    result = plan_schedule(request(end=MONDAY), snap)

    assert result.slots_created == 3
    assert result.slots_skipped == 1
    assert result.success
    assert Counter(slot.personnel_id for slot in result.slots) == {1: 1, 2: 1, 3: 1}
    assert [(slot.duty_type_name, slot.personnel_id) for slot in result.slots] == [
        ("Armory", 1),
        ("Armory", 2),
        ("Duty NCO", 3),
    ]
    assert result.warnings == ["No eligible personnel for Duty NCO on 2025-03-10 (slot 2)"]


def test_weekend_points_use_the_duty_value():
    duty_type = DutyType(id=1, unit_id=1, name="Duty NCO")
    snap = snapshot(roster(1), [duty_type], duty_values={1: DutyValue(2.0, 1.5, 3.0)})
    result = plan_schedule(request(start=date(2025, 12, 26), end=date(2025, 12, 27)), snap)
    assert [slot.points for slot in result.slots] == [2.0, 3.0]


def test_existing_slots_count_toward_coverage_and_block_the_holder():
    duty_type = DutyType(id=1, unit_id=1, name="Duty NCO", slots_needed=2)
    existing = ExistingSlot(id=99, duty_type_id=1, personnel_id=1, date_assigned=MONDAY, points=1.0)
    snap = snapshot(roster(), [duty_type], existing_slots=[existing])

    result = plan_schedule(request(end=MONDAY), snap)

    assert [slot.personnel_id for slot in result.slots] == [2]
    assert result.slots_created == 1
    assert result.slots_skipped == 0


def test_recent_duty_breaks_score_ties():
    duty_type = DutyType(id=1, unit_id=1, name="Duty NCO")
    yesterday = ExistingSlot(id=5, duty_type_id=1, personnel_id=1, date_assigned=date(2025, 3, 9), points=1.0)
    snap = snapshot(roster(2, scores={1: 4.0, 2: 4.0}), [duty_type], existing_slots=[yesterday])

    result = plan_schedule(request(end=MONDAY), snap)

    assert [slot.personnel_id for slot in result.slots] == [2]


def test_caller_scores_are_not_mutated():
    scores = {1: 0.0, 2: 5.0, 3: 5.0}
    snap = snapshot(roster(), [DutyType(id=1, unit_id=1, name="Duty NCO")])
    result = plan_schedule(request(), snap, scores=scores)

    assert scores == {1: 0.0, 2: 5.0, 3: 5.0}
    assert [slot.personnel_id for slot in result.slots] == [1, 1, 1]
    assert result.projected_scores[1] == 3.0


def test_duty_type_pool_is_limited_to_its_unit_subtree():
    personnel = [
        Personnel(id=1, unit_id=1, rank="E-4"),
        Personnel(id=2, unit_id=2, rank="E-4"),
        Personnel(id=3, unit_id=3, rank="E-4"),
    ]
    snap = snapshot(
        personnel,
        [DutyType(id=1, unit_id=2, name="Section Watch")],
        unit_parents={1: None, 2: 1, 3: 2},
    )
    result = plan_schedule(request(), snap)

    assert {slot.personnel_id for slot in result.slots} == {2, 3}


def test_filters_and_absences_shape_the_candidate_pool():
    personnel = [
        Personnel(id=1, unit_id=1, rank="E-3"),
        Personnel(id=2, unit_id=1, rank="E-5", qualifications=frozenset({"armed"})),
        Personnel(id=3, unit_id=1, rank="E-6", qualifications=frozenset({"armed"})),
    ]
    duty_type = DutyType(
        id=1,
        unit_id=1,
        name="Armory",
        rank_filter=AttributeFilter.build("exclude", ["E-3"]),
        required_qualifications=frozenset({"armed"}),
    )
    absence = NonAvailability(personnel_id=2, start_date=MONDAY, end_date=WEDNESDAY)
    snap = snapshot(personnel, [duty_type], non_availability=[absence])

    result = plan_schedule(request(), snap)

    assert {slot.personnel_id for slot in result.slots} == {3}


def test_nothing_filled_is_a_failure():
    absence = NonAvailability(personnel_id=1, start_date=MONDAY, end_date=WEDNESDAY)
    snap = snapshot(roster(1), [DutyType(id=1, unit_id=1, name="Duty NCO")], non_availability=[absence])

    result = plan_schedule(request(), snap)

    assert not result.success
    assert result.errors == [NOTHING_FILLED_ERROR]
    assert result.slots_skipped == 3


def test_unqualified_pool_gets_one_warning():
    duty_type = DutyType(id=1, unit_id=1, name="Armory", required_qualifications=frozenset({"armed"}))
    result = plan_schedule(request(end=MONDAY), snapshot(roster(1), [duty_type]))

    assert result.warnings[0] == "Armory has no qualified personnel"


def test_no_active_duty_types_warns_and_succeeds():
    inactive = DutyType(id=1, unit_id=1, name="Retired Watch", is_active=False)
    result = plan_schedule(request(), snapshot(roster(), [inactive]))

    assert result.success
    assert result.slots_created == 0
    assert result.warnings == [NO_DUTY_TYPES_WARNING]


def test_validate_request_checks_order_and_length():
    validate_request(request(start=date(2025, 1, 1), end=date(2025, 4, 1)), 90)
    with pytest.raises(ScheduleValidationError, match="before or equal"):
        validate_request(request(start=WEDNESDAY, end=MONDAY), 90)
    with pytest.raises(ScheduleValidationError, match="cannot exceed 90 days"):
        validate_request(request(start=date(2025, 1, 1), end=date(2025, 4, 2)), 90)


def test_unfilled_placeholder_rows_leave_the_position_open():
    duty_type = DutyType(id=1, unit_id=1, name="Duty NCO")
    placeholder = ExistingSlot(id=50, duty_type_id=1, personnel_id=None, date_assigned=MONDAY)
    snap = snapshot(roster(2), [duty_type], existing_slots=[placeholder])

    result = plan_schedule(request(end=MONDAY), snap)

    assert [(slot.personnel_id, slot.date_assigned) for slot in result.slots] == [(1, MONDAY)]
    assert result.slots_skipped == 0
