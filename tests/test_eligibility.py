from datetime import date

from dutysync.domain import AttributeFilter, DutyType, FilterMode, NonAvailability, Personnel
from dutysync.eligibility import ineligibility_reason, is_eligible, is_qualified, matches_filter, passes

DAY = date(2025, 3, 10)


def person(**overrides):
    fields = {"id": 1, "unit_id": 10, "rank": "E-5", "qualifications": frozenset({"armed"})}
    fields.update(overrides)
    return Personnel(**fields)


def duty(**overrides):
    fields = {"id": 7, "unit_id": 1, "name": "Duty NCO"}
    fields.update(overrides)
    return DutyType(**fields)


def test_matches_filter_modes():
    assert matches_filter("include", ["E-5", "E-6"], "E-4") is False
    assert matches_filter("include", ["E-5", "E-6"], "E-5") is True
    assert matches_filter("exclude", ["E-5"], "E-5") is False
    assert matches_filter("exclude", ["E-5"], "E-4") is True
    assert matches_filter(None, ["E-5"], "E-4") is True
    assert matches_filter("", ["E-5"], "E-4") is True
    assert matches_filter(FilterMode.INCLUDE, [], "E-4") is True


def test_section_filter_compares_unit_ids_as_strings():
    assert matches_filter("include", [10, 11], 10) is True
    assert matches_filter("include", ["10"], 10) is True


def test_rank_section_and_qualification_checks():
    assert is_qualified(person(), duty())
    assert ineligibility_reason(person(), duty(rank_filter=AttributeFilter.build("include", ["E-6"])), DAY) == (
        "rank E-5 filtered out"
    )
    assert ineligibility_reason(person(), duty(section_filter=AttributeFilter.build("exclude", [10])), DAY) == (
        "section filtered out"
    )
    assert ineligibility_reason(
        person(), duty(required_qualifications=frozenset({"armed", "driver"})), DAY
    ) == "missing qualification driver"


def test_absence_and_same_day_assignment_exclude():
    absence = NonAvailability(personnel_id=1, start_date=date(2025, 3, 9), end_date=date(2025, 3, 10))
    pending = NonAvailability(personnel_id=1, start_date=DAY, end_date=DAY, status="pending")

    assert ineligibility_reason(person(), duty(), DAY, [absence]) == "approved non-availability"
    assert is_eligible(person(), duty(), date(2025, 3, 11), [absence])
    assert is_eligible(person(), duty(), DAY, [pending])
    assert ineligibility_reason(person(), duty(), DAY, assigned_today={1}) == "already assigned on this date"


def test_inert_filters_let_everyone_through():
    no_values = AttributeFilter.build("include", [])
    no_mode = AttributeFilter.build(None, ["E-5"])

    assert no_values.is_inert and no_mode.is_inert
    assert passes(no_values, "E-1")
    assert passes(no_mode, "E-1")
    assert not AttributeFilter.build("exclude", ["E-1"]).is_inert
    assert not passes(AttributeFilter.build("exclude", ["E-1"]), "E-1")
