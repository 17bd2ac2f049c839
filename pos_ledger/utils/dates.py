"""Date helpers for schedules and day-granular filters."""
from calendar import monthrange
from datetime import date, datetime, time
from typing import Optional, Tuple

from pos_ledger.exceptions import ValidationError


def add_months(start: date, months: int) -> date:
    """
    Shift a date by whole months, clamping the day to the target month.

    Examples:
        add_months(date(2024, 1, 31), 1) -> date(2024, 2, 29)
        add_months(date(2024, 11, 15), 3) -> date(2025, 2, 15)
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, monthrange(year, month)[1])
    return date(year, month, day)


def parse_day(value, field: str) -> Optional[date]:
    """Accept a date, datetime or ISO string and return the calendar day."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value)).date()
    except ValueError:
        raise ValidationError(f'{field} must be an ISO date (YYYY-MM-DD)')


def day_bounds(start: Optional[date], end: Optional[date]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Inclusive datetime range covering whole days."""
    start_dt = datetime.combine(start, time.min) if start else None
    end_dt = datetime.combine(end, time.max) if end else None
    return start_dt, end_dt
