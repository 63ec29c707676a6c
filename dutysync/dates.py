"""Calendar-date helpers.

Duty dates are calendar dates (``YYYY-MM-DD``). They are never routed through
``datetime`` or UTC conversion, so "2025-12-31" is December 31st for every
caller regardless of timezone.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterator

DATE_STRING_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Observed US federal holidays. When a holiday falls on a Saturday it is
# observed on the Friday before, on a Sunday the Monday after.
FEDERAL_HOLIDAYS_BY_YEAR: dict[int, tuple[str, ...]] = {
    2024: (
        "2024-01-01", "2024-01-15", "2024-02-19", "2024-05-27", "2024-06-19", "2024-07-04",
        "2024-09-02", "2024-10-14", "2024-11-11", "2024-11-28", "2024-12-25",
    ),
    2025: (
        "2025-01-01", "2025-01-20", "2025-02-17", "2025-05-26", "2025-06-19", "2025-07-04",
        "2025-09-01", "2025-10-13", "2025-11-11", "2025-11-27", "2025-12-25",
    ),
    2026: (
        "2026-01-01", "2026-01-19", "2026-02-16", "2026-05-25", "2026-06-19", "2026-07-03",
        "2026-09-07", "2026-10-12", "2026-11-11", "2026-11-26", "2026-12-25",
    ),
    2027: (
        "2027-01-01", "2027-01-18", "2027-02-15", "2027-05-31", "2027-06-18", "2027-07-05",
        "2027-09-06", "2027-10-11", "2027-11-11", "2027-11-25", "2027-12-24",
        "2027-12-31",  # New Year's Day 2028, observed
    ),
    2028: (
        "2028-01-17", "2028-02-21", "2028-05-29", "2028-06-19", "2028-07-04",
        "2028-09-04", "2028-10-09", "2028-11-10", "2028-11-23", "2028-12-25",
    ),
    2029: (
        "2029-01-01", "2029-01-15", "2029-02-19", "2029-05-28", "2029-06-19", "2029-07-04",
        "2029-09-03", "2029-10-08", "2029-11-12", "2029-11-22", "2029-12-25",
    ),
    2030: (
        "2030-01-01", "2030-01-21", "2030-02-18", "2030-05-27", "2030-06-19", "2030-07-04",
        "2030-09-02", "2030-10-14", "2030-11-11", "2030-11-28", "2030-12-25",
    ),
}


def parse_date_string(value: str) -> date:
    if not DATE_STRING_RE.match(value):
        raise ValueError(f"Expected a YYYY-MM-DD date, got {value!r}")
    return date.fromisoformat(value)


def as_date(value: date | str) -> date:
    if isinstance(value, date):
        return value
    return parse_date_string(value)


def iter_dates(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def day_count(start: date, end: date) -> int:
    """Number of calendar days in the inclusive range."""
    return (end - start).days + 1


def roster_month(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def end_of_month(day: date) -> date:
    if day.month == 12:
        return date(day.year, 12, 31)
    return date(day.year, day.month + 1, 1) - timedelta(days=1)


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    return a_start <= b_end and b_start <= a_end


@dataclass(frozen=True)
class HolidayCalendar:
    holidays: frozenset[date] = field(default_factory=frozenset)

    @classmethod
    def from_strings(cls, values) -> HolidayCalendar:
        return cls(holidays=frozenset(parse_date_string(v) for v in values))

    def is_holiday(self, day: date | str) -> bool:
        return as_date(day) in self.holidays

    def is_weekend(self, day: date | str) -> bool:
        return as_date(day).weekday() >= 5


FEDERAL_CALENDAR = HolidayCalendar.from_strings(
    value for year_values in FEDERAL_HOLIDAYS_BY_YEAR.values() for value in year_values
)


def is_holiday(day: date | str) -> bool:
    return FEDERAL_CALENDAR.is_holiday(day)


def is_weekend(day: date | str) -> bool:
    return FEDERAL_CALENDAR.is_weekend(day)
