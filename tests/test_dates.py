"""
Tests for upcoming-date resolution
"""

import pytest
from datetime import date, datetime
from everbloom.dates import (
    parse_important_date,
    parse_timestamp,
    resolve_next_occurrence,
    upcoming_dates,
    validate_important_dates,
)
from everbloom.errors import ValidationError


def test_year_wrap():
    """A date earlier in the year resolves to next year."""
    next_date, days = resolve_next_occurrence("1990-01-05", date(2025, 1, 10))
    assert next_date == date(2026, 1, 5)
    assert days == 360


def test_same_day_is_zero():
    next_date, days = resolve_next_occurrence("1990-01-10", date(2025, 1, 10))
    assert next_date == date(2025, 1, 10)
    assert days == 0


def test_later_this_year():
    next_date, days = resolve_next_occurrence("1990-03-01", date(2025, 2, 1))
    assert next_date == date(2025, 3, 1)
    assert days == 28


def test_feb_29_non_leap_year():
    """Feb 29 is observed on Feb 28 in non-leap years."""
    next_date, days = resolve_next_occurrence("2000-02-29", date(2025, 2, 1))
    assert next_date == date(2025, 2, 28)
    assert days == 27


def test_feb_29_leap_year():
    next_date, _ = resolve_next_occurrence("2000-02-29", date(2024, 2, 1))
    assert next_date == date(2024, 2, 29)


def test_feb_29_wraps_into_leap_year():
    next_date, _ = resolve_next_occurrence("2000-02-29", date(2027, 3, 1))
    assert next_date == date(2028, 2, 29)


@pytest.mark.parametrize("value,expected", [
    ("1990-05-14", (5, 14)),
    ("05-14", (5, 14)),
    ("1990-05-14T23:00:00Z", (5, 14)),
    ("1990-05-14T00:00:00+05:30", (5, 14)),
    (date(1990, 5, 14), (5, 14)),
    (datetime(1990, 5, 14, 8, 30), (5, 14)),
])
def test_parse_important_date_formats(value, expected):
    """Test that only the calendar month and day are kept."""
    assert parse_important_date(value) == expected


@pytest.mark.parametrize("value", ["", "not-a-date", "02-30", "13-01", "1990-13-40", None, 42])
def test_parse_important_date_invalid(value):
    with pytest.raises(ValidationError):
        parse_important_date(value)


def test_upcoming_dates_window_and_order():
    """Test that only dates inside the window are returned, soonest first."""
    today = date(2025, 5, 1)
    result = upcoming_dates(
        {"Birthday": "1990-05-10", "Anniversary": "2015-05-03", "Graduation": "2010-08-01"},
        today,
        window_days=30,
    )
    assert [u.label for u in result] == ["Anniversary", "Birthday"]
    assert [u.days_until for u in result] == [2, 9]


def test_upcoming_dates_window_inclusive():
    today = date(2025, 5, 1)
    assert len(upcoming_dates({"Birthday": "05-31"}, today, window_days=30)) == 1
    assert len(upcoming_dates({"Birthday": "06-01"}, today, window_days=30)) == 0


def test_upcoming_dates_raises_on_bad_entry():
    with pytest.raises(ValidationError):
        upcoming_dates({"Birthday": "1990-05-10", "Oops": "garbage"}, date(2025, 5, 1))


def test_validate_important_dates_normalizes():
    result = validate_important_dates({" Birthday ": date(1990, 5, 14), "Anniversary": "06-01"})
    assert result == {"Birthday": "1990-05-14", "Anniversary": "06-01"}


def test_validate_important_dates_rejects_bad_input():
    with pytest.raises(ValidationError):
        validate_important_dates(["1990-05-14"])
    with pytest.raises(ValidationError):
        validate_important_dates({"": "1990-05-14"})
    with pytest.raises(ValidationError):
        validate_important_dates({"Birthday": "someday"})


def test_parse_timestamp_utc_suffix():
    parsed = parse_timestamp("2025-01-10T12:00:00")
    assert parsed == datetime(2025, 1, 10, 12, 0, 0)
    assert parse_timestamp("2025-01-10T12:00:00Z").tzinfo is None


def test_parse_timestamp_invalid():
    with pytest.raises(ValidationError):
        parse_timestamp("yesterday")
