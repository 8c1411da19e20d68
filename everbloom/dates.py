"""
Upcoming-date resolution for EverBloom

Important dates (birthdays, anniversaries) recur every year: only the month
and day of a stored date carry meaning. This module finds the next
occurrence of each date relative to a reference day.
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Tuple

from .errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpcomingDate:
    label: str
    next_date: date
    days_until: int


def to_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO timestamp (or date) into a naive datetime."""
    if isinstance(value, datetime):
        return to_naive(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid timestamp: {value!r}")

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return to_naive(datetime.fromisoformat(text))
    except ValueError:
        raise ValidationError(f"Invalid timestamp: {value!r}")


def parse_important_date(value: Any) -> Tuple[int, int]:
    """
    Extract (month, day) from a stored important date.

    Accepts date/datetime objects, ISO dates ("1990-05-14"), ISO timestamps
    ("1990-05-14T00:00:00Z", calendar part only) and bare "MM-DD" strings.
    """
    if isinstance(value, (date, datetime)):
        return value.month, value.day
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid important date: {value!r}")

    text = value.strip()
    parts = text.split("-")
    if len(parts) == 2 and all(p.isdigit() for p in parts):
        month, day = int(parts[0]), int(parts[1])
    else:
        # calendar part only; a timezone suffix must not shift the day
        try:
            parsed = date.fromisoformat(text[:10])
        except ValueError:
            raise ValidationError(f"Invalid important date: {value!r}")
        month, day = parsed.month, parsed.day

    # 2000 is a leap year, so Feb 29 is accepted here
    try:
        date(2000, month, day)
    except ValueError:
        raise ValidationError(f"Invalid important date: {value!r}")
    return month, day


def occurrence_in_year(month: int, day: int, year: int) -> date:
    """Build the date for ``year``; Feb 29 falls back to Feb 28 in non-leap years."""
    if month == 2 and day == 29 and not calendar.isleap(year):
        return date(year, 2, 28)
    return date(year, month, day)


def resolve_next_occurrence(value: Any, today: date) -> Tuple[date, int]:
    """
    Next occurrence of a recurring date on or after ``today``.

    Returns:
        (next_date, days_until); days_until is 0 when the date is today
    """
    if isinstance(today, datetime):
        today = today.date()
    month, day = parse_important_date(value)

    candidate = occurrence_in_year(month, day, today.year)
    if candidate < today:
        candidate = occurrence_in_year(month, day, today.year + 1)

    return candidate, (candidate - today).days


def upcoming_dates(
    important_dates: Mapping[str, Any],
    today: date,
    window_days: int = 30,
) -> List[UpcomingDate]:
    """
    Resolve every labelled date and keep those within [0, window_days].

    Raises ValidationError on the first unparseable entry; callers decide
    whether to skip the whole mapping.
    """
    upcoming = []
    for label, value in (important_dates or {}).items():
        next_date, days_until = resolve_next_occurrence(value, today)
        if 0 <= days_until <= window_days:
            upcoming.append(UpcomingDate(label=label, next_date=next_date, days_until=days_until))

    upcoming.sort(key=lambda u: u.days_until)
    return upcoming


def validate_important_dates(important_dates: Dict[str, Any]) -> Dict[str, str]:
    """Normalize user input to {label: "YYYY-MM-DD" or "MM-DD"} for storage."""
    if not isinstance(important_dates, dict):
        raise ValidationError("important_dates must be an object mapping labels to dates")

    normalized = {}
    for label, value in important_dates.items():
        label = str(label).strip()
        if not label:
            raise ValidationError("Important date labels must be non-empty")
        parse_important_date(value)
        if isinstance(value, (date, datetime)):
            value = value.strftime("%Y-%m-%d")
        normalized[label] = str(value).strip()
    return normalized
