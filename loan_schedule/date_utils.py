"""
Date and Period Utilities

Period arithmetic for schedule generation. Months are added with
end-of-month clamping (Jan 31 + 1 month = Feb 28/29); all period boundaries
are computed from the loan start date rather than chained, so clamping in
one short month never drifts into later periods.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Tuple, Union
import calendar
import math

from .models import Period

PeriodLike = Union[Period, str]


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, handling month-end edge cases"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def add_weeks(start_date: date, weeks: int) -> date:
    return start_date + timedelta(weeks=weeks)


def advance_period(start_date: date, period: PeriodLike, count: int = 1) -> date:
    """Advance a date by ``count`` Monthly or Weekly periods"""
    if Period.parse(period) == Period.MONTHLY:
        return add_months(start_date, count)
    return add_weeks(start_date, count)


def difference_in_days(later: date, earlier: date) -> int:
    """Whole calendar days from ``earlier`` to ``later`` (negative if reversed)"""
    return (later - earlier).days


def periods_to_cover_days(days: int, period: PeriodLike) -> int:
    """Number of periods needed to cover ``days``, rounded up"""
    return math.ceil(Decimal(days) / Period.parse(period).average_days)


def periods_per_year(period: PeriodLike) -> int:
    return Period.parse(period).periods_per_year


def days_in_period(period: PeriodLike) -> Decimal:
    """Average days in a period (30.44 or 7)"""
    return Period.parse(period).average_days


def format_date_iso(value: date) -> str:
    return value.isoformat()


def parse_date(value: Any) -> date:
    """Normalize a date, datetime or ISO string to a date"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        return date.fromisoformat(value[:10])
    raise ValueError(f"Cannot interpret {value!r} as a date")


def get_period_boundaries(start_date: date, period: PeriodLike, installment_number: int) -> Tuple[date, date]:
    """
    Get (period_start, period_end) for a 1-based installment number.

    The window is half-open: period_start is inclusive, period_end exclusive.
    """
    if installment_number == 1:
        period_start = start_date
    else:
        period_start = advance_period(start_date, period, installment_number - 1)
    period_end = advance_period(start_date, period, installment_number)
    return period_start, period_end


def start_of_month(value: date) -> date:
    return value.replace(day=1)


def first_of_next_month(value: date) -> date:
    return start_of_month(add_months(value, 1))


def monthly_first_boundaries(start_date: date, month_offset: int) -> Tuple[date, date]:
    """
    Calendar-month window ``month_offset`` months after the start month.

    Offset 1 is the first full month after the start date.
    """
    period_start = add_months(start_of_month(start_date), month_offset)
    return period_start, add_months(period_start, 1)


def quarter_of(value: date) -> int:
    return (value.month - 1) // 3 + 1


def start_of_quarter(year: int, quarter: int) -> date:
    return date(year, (quarter - 1) * 3 + 1, 1)


def end_of_quarter(year: int, quarter: int) -> date:
    month = quarter * 3
    return date(year, month, calendar.monthrange(year, month)[1])
