from __future__ import annotations

from datetime import date
from typing import Literal

from dutysync.dates import FEDERAL_CALENDAR, HolidayCalendar, as_date
from dutysync.domain import DEFAULT_DUTY_VALUE, DutyValue

DayType = Literal["weekday", "weekend", "holiday"]


def _coerce_value(duty_value: DutyValue | dict | None) -> DutyValue:
    if duty_value is None:
        return DEFAULT_DUTY_VALUE
    if isinstance(duty_value, dict):
        return DutyValue(
            base_weight=duty_value.get("base_weight", DEFAULT_DUTY_VALUE.base_weight),
            weekend_multiplier=duty_value.get("weekend_multiplier", DEFAULT_DUTY_VALUE.weekend_multiplier),
            holiday_multiplier=duty_value.get("holiday_multiplier", DEFAULT_DUTY_VALUE.holiday_multiplier),
        )
    return duty_value


def day_type(day: date | str, calendar: HolidayCalendar = FEDERAL_CALENDAR) -> DayType:
    if calendar.is_holiday(day):
        return "holiday"
    if calendar.is_weekend(day):
        return "weekend"
    return "weekday"


def calculate_duty_points(
    day: date | str,
    duty_value: DutyValue | dict | None = None,
    calendar: HolidayCalendar = FEDERAL_CALENDAR,
) -> float:
    """Points earned for standing one duty on ``day``.

    A holiday that also falls on a weekend earns the holiday multiplier only.
    """
    value = _coerce_value(duty_value)
    kind = day_type(as_date(day), calendar)
    if kind == "holiday":
        return value.base_weight * value.holiday_multiplier
    if kind == "weekend":
        return value.base_weight * value.weekend_multiplier
    return value.base_weight
