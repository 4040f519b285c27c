"""
Month Keys

The UI passes months as a zero-based month index plus a year. Inside
the engine every month is a zero-padded "YYYY-MM" string.
"""

import calendar
from datetime import date

from lyvo.ledger.errors import ValidationError


def month_key(month: int, year: int) -> str:
    """Normalize a zero-based month and a year to "YYYY-MM"."""
    if isinstance(month, bool) or not isinstance(month, int) or not 0 <= month <= 11:
        raise ValidationError(f"Month must be an integer between 0 and 11, got {month!r}")
    if isinstance(year, bool) or not isinstance(year, int) or not 1 <= year <= 9999:
        raise ValidationError(f"Invalid year: {year!r}")
    return f"{year:04d}-{month + 1:02d}"


def month_key_of(on: date) -> str:
    return f"{on.year:04d}-{on.month:02d}"


def parse_month_key(key: str) -> tuple[int, int]:
    """Return (year, month) with a one-based month."""
    try:
        year_str, month_str = key.split("-")
        year, month = int(year_str), int(month_str)
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid month key: {key!r}")
    if len(month_str) != 2 or not 1 <= month <= 12:
        raise ValidationError(f"Invalid month key: {key!r}")
    return year, month


def shift_month_key(key: str, months: int) -> str:
    year, month = parse_month_key(key)
    index = year * 12 + (month - 1) + months
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def next_month_key(key: str) -> str:
    return shift_month_key(key, 1)


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date, pulling day back to the month's last day when needed."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(max(day, 1), last_day))


def add_months(on: date, months: int) -> date:
    """Advance a date by calendar months (Jan 31 + 1 month = Feb 28/29)."""
    index = on.year * 12 + (on.month - 1) + months
    return clamp_day(index // 12, index % 12 + 1, on.day)


def first_day(key: str) -> date:
    year, month = parse_month_key(key)
    return date(year, month, 1)


def day_in_month(key: str, day: int) -> date:
    year, month = parse_month_key(key)
    return clamp_day(year, month, day)
