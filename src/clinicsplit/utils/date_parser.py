"""Date parsing utilities."""

from datetime import date, datetime, time, timedelta
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


def parse_timestamp(value: str, now: Optional[datetime] = None) -> datetime:
    """Parse a date or date-time string into a naive datetime.

    Relative words resolve to the current time of day on that date, so a
    payment entered as "today" orders after earlier ones. Absolute values
    without a time resolve to midnight.

    Args:
        value: String such as "2024-01-15", "2024-01-15 14:30", "today"
        now: Override for the current moment

    Returns:
        Naive datetime

    Raises:
        ValueError: If the string cannot be parsed
    """
    text = value.strip()
    now = now or datetime.now()

    relative_days = {"today": 0, "yesterday": -1, "tomorrow": 1}
    if text.lower() in relative_days:
        return now + timedelta(days=relative_days[text.lower()])

    try:
        parsed = date_parser.parse(text)
    except (ValueError, OverflowError, TypeError) as e:
        raise ValueError(f"Could not parse date '{value}': {e}")
    return parsed.replace(tzinfo=None)


def start_of_day(day: date) -> datetime:
    """Return midnight at the start of day."""
    return datetime.combine(day, time.min)


def previous_month(today: Optional[date] = None) -> tuple[int, int]:
    """Return (year, month) of the month before today."""
    first = (today or date.today()).replace(day=1) - relativedelta(months=1)
    return first.year, first.month


def current_month(today: Optional[date] = None) -> tuple[int, int]:
    """Return (year, month) of today."""
    today = today or date.today()
    return today.year, today.month
