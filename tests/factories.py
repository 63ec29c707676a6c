from __future__ import annotations

from dutysync import models


def add_person(db, unit, rank="E-4", last_name="Doe", score=0.0, qualifications=()):
    person = models.Personnel(
        organization_id=unit.organization_id,
        unit_id=unit.id,
        rank=rank,
        first_name="Pat",
        last_name=last_name,
        current_duty_score=score,
    )
    for name in qualifications:
        person.qualifications.append(models.PersonnelQualification(qualification_name=name))
    db.add(person)
    db.flush()
    return person


def add_duty_type(db, unit, name="Duty NCO", slots_needed=1, value=None, **fields):
    duty_type = models.DutyType(
        organization_id=unit.organization_id,
        unit_id=unit.id,
        name=name,
        slots_needed=slots_needed,
        **fields,
    )
    if value is not None:
        base_weight, weekend_multiplier, holiday_multiplier = value
        duty_type.value = models.DutyValue(
            base_weight=base_weight,
            weekend_multiplier=weekend_multiplier,
            holiday_multiplier=holiday_multiplier,
        )
    db.add(duty_type)
    db.flush()
    return duty_type
