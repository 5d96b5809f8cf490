"""
Budget period helpers.

A period is a calendar month written as "YYYY-MM". Callers may select a
month as "2025-01" or "Jan 2025"; anything else falls back to the month
of `today`.

Expenses recorded against a selected month land on its 15th so they sit
inside the month regardless of time zone.
"""

import calendar
import re
from datetime import date
from typing import Optional

_ISO_MONTH = re.compile(r"^(\d{4})-(\d{1,2})$")
_NAMED_MONTH = re.compile(r"^([A-Za-z]{3,9})\s+(\d{4})$")

_MONTH_NAMES = {
    name.lower(): index
    for index, name in enumerate(calendar.month_abbr)
    if name
}
_MONTH_NAMES.update({
    name.lower(): index
    for index, name in enumerate(calendar.month_name)
    if name
})

# Day used for expenses recorded against a selected month
MID_MONTH_DAY = 15


def format_period(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def _parse_selected_month(selected_month: Optional[str]) -> Optional[tuple[int, int]]:
    if not selected_month:
        return None

    value = selected_month.strip()

    match = _ISO_MONTH.match(value)
    if match:
        year, month = int(match.group(1)), int(match.group(2))
        return (year, month) if year >= 1 and 1 <= month <= 12 else None

    match = _NAMED_MONTH.match(value)
    if match:
        month = _MONTH_NAMES.get(match.group(1).lower())
        if month and int(match.group(2)) >= 1:
            return int(match.group(2)), month

    return None


def resolve_period(selected_month: Optional[str], today: Optional[date] = None) -> str:
    """Budget period for a selected month, defaulting to today's month."""
    today = today or date.today()
    parsed = _parse_selected_month(selected_month)
    if parsed is None:
        return format_period(today.year, today.month)
    return format_period(*parsed)


def resolve_expense_date(selected_month: Optional[str], today: Optional[date] = None) -> date:
    """
    Date to record voice expenses on.

    The 15th of the selected month, or today when no valid month is given.
    """
    today = today or date.today()
    parsed = _parse_selected_month(selected_month)
    if parsed is None:
        return today
    year, month = parsed
    return date(year, month, MID_MONTH_DAY)


def month_bounds(period: str) -> tuple[date, date]:
    """First and last calendar day of a YYYY-MM period (inclusive)."""
    match = _ISO_MONTH.match(period)
    if not match:
        raise ValueError(f"Invalid period: {period!r} (expected YYYY-MM)")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month in period: {period!r}")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def month_name(period: str) -> str:
    """Full month name for a period, e.g. "2025-01" → "January"."""
    start, _ = month_bounds(period)
    return start.strftime("%B")
