from datetime import date

import pytest

from dutysync.dates import (
    FEDERAL_CALENDAR,
    as_date,
    day_count,
    end_of_month,
    is_holiday,
    is_weekend,
    iter_dates,
    parse_date_string,
    ranges_overlap,
    roster_month,
)


def test_parse_date_string_keeps_the_calendar_day():
    assert parse_date_string("2025-12-31") == date(2025, 12, 31)
    assert as_date("2025-01-01") == date(2025, 1, 1)
    assert as_date(date(2025, 3, 4)) == date(2025, 3, 4)


@pytest.mark.parametrize("value", ["2025-1-5", "2025/01/05", "2025-01-05T00:00:00Z", ""])
def test_parse_date_string_rejects_other_formats(value):
    with pytest.raises(ValueError):
        parse_date_string(value)


def test_iter_dates_is_inclusive():
    days = list(iter_dates(date(2025, 1, 30), date(2025, 2, 2)))
    assert days == [date(2025, 1, 30), date(2025, 1, 31), date(2025, 2, 1), date(2025, 2, 2)]
    assert day_count(date(2025, 1, 30), date(2025, 2, 2)) == 4
    assert list(iter_dates(date(2025, 2, 2), date(2025, 2, 1))) == []


def test_weekend_and_federal_holidays():
    assert is_weekend("2025-01-18")
    assert not is_weekend("2025-01-17")
    assert is_holiday("2025-12-25")
    assert is_holiday(date(2026, 7, 3))  # July 4th 2026 falls on a Saturday
    assert not is_holiday("2026-07-04")
    assert FEDERAL_CALENDAR.is_holiday("2030-11-28")


def test_month_helpers():
    assert roster_month(date(2025, 3, 9)) == "2025-03"
    assert end_of_month(date(2024, 2, 10)) == date(2024, 2, 29)
    assert end_of_month(date(2025, 12, 1)) == date(2025, 12, 31)


def test_ranges_overlap_counts_shared_endpoints():
    assert ranges_overlap(date(2025, 1, 1), date(2025, 1, 15), date(2025, 1, 15), date(2025, 1, 31))
    assert not ranges_overlap(date(2025, 1, 1), date(2025, 1, 14), date(2025, 1, 15), date(2025, 1, 31))
