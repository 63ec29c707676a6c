from __future__ import annotations

from collections.abc import Collection, Iterable
from datetime import date

from dutysync.domain import AttributeFilter, DutyType, FilterMode, NonAvailability, Personnel


def matches_filter(mode: FilterMode | str | None, allowed_values: Iterable | None, candidate_value) -> bool:
    """Whether ``candidate_value`` passes an include/exclude filter.

    A filter with no mode or no values is inert and lets everyone through.
    """
    resolved = FilterMode.coerce(mode)
    values = {str(v) for v in (allowed_values or ())}
    if resolved is FilterMode.NONE or not values:
        return True
    present = str(candidate_value) in values
    if resolved is FilterMode.INCLUDE:
        return present
    if resolved is FilterMode.EXCLUDE:
        return not present
    raise ValueError(f"Unhandled filter mode {resolved!r}")


def passes(attribute_filter: AttributeFilter, candidate_value) -> bool:
    if attribute_filter.is_inert:
        return True
    return matches_filter(attribute_filter.mode, attribute_filter.values, candidate_value)


def qualification_gap(person: Personnel, duty_type: DutyType) -> str | None:
    if not passes(duty_type.rank_filter, person.rank):
        return f"rank {person.rank} filtered out"
    if not passes(duty_type.section_filter, person.unit_id):
        return "section filtered out"
    missing = sorted(duty_type.required_qualifications - person.qualifications)
    if missing:
        return "missing qualification " + ", ".join(missing)
    return None


def is_qualified(person: Personnel, duty_type: DutyType) -> bool:
    return qualification_gap(person, duty_type) is None


def ineligibility_reason(
    person: Personnel,
    duty_type: DutyType,
    day: date,
    absences: Iterable[NonAvailability] = (),
    assigned_today: Collection[int] = (),
) -> str | None:
    reason = qualification_gap(person, duty_type)
    if reason is not None:
        return reason
    if any(absence.covers(day) for absence in absences):
        return "approved non-availability"
    if person.id in assigned_today:
        return "already assigned on this date"
    return None


def is_eligible(
    person: Personnel,
    duty_type: DutyType,
    day: date,
    absences: Iterable[NonAvailability] = (),
    assigned_today: Collection[int] = (),
) -> bool:
    return ineligibility_reason(person, duty_type, day, absences, assigned_today) is None
