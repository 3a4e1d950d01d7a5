"""Calendar date helpers for installment scheduling"""

import calendar
from datetime import date, datetime
from typing import Tuple


def normalize_date(value: date | datetime | str) -> date:
    """
    Reduce a date-like input to a plain calendar date.

    Strings are read as ISO dates ("2025-01-15"); a trailing time component
    ("2025-01-15T03:00:00Z") is dropped rather than converted, so a date typed
    by the user never shifts by a day across UTC/local boundaries.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise TypeError(f"Cannot normalize {type(value).__name__} to a date")


def add_months(year: int, month: int, months: int) -> Tuple[int, int]:
    """Shift a (year, month) pair by a number of months"""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date, clamping the day to the last day of the month"""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def step_due_date(base: date, installment_number: int, due_day: int) -> Tuple[date, int, int]:
    """
    Due date of the k-th installment (1-based) of a schedule starting at `base`.

    Adds (k - 1) calendar months to the base month and places the due date on
    `due_day`, clamped to the month's last day (31 in February -> 28/29).

    Returns:
        (due_date, reference_month, reference_year)
    """
    if installment_number < 1:
        raise ValueError("installment_number is 1-based")
    if not 1 <= due_day <= 31:
        raise ValueError(f"due_day must be within 1..31, got {due_day}")

    year, month = add_months(base.year, base.month, installment_number - 1)
    due_date = clamp_day(year, month, due_day)
    return due_date, due_date.month, due_date.year


def month_bounds(month: int, year: int) -> Tuple[date, date]:
    """First and last calendar day of a month (inclusive)"""
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])
