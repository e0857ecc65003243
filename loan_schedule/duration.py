"""
Duration Calculator

Decides how many periods a generation run covers. Exactly one policy
applies per run:

1. Settled loan - an end date is supplied, outstanding principal is nil and
   the loan is not auto-extending. Cover start..end date exactly; the
   schedule is later truncated to entries due on or before the end date.
2. Auto-extend - an end date is supplied and the loan auto-extends. Cover
   start..end date and make sure at least one due date lies after it.
3. Nominal - the supplied duration, else the loan's, else the product's.

The result is never less than one period.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
import logging

from .currency import CENT
from .date_utils import (
    PeriodLike, add_months, advance_period, difference_in_days,
    periods_to_cover_days, start_of_month
)
from .models import GenerationOptions, Loan, Period, Product

logger = logging.getLogger(__name__)

FALLBACK_DURATION = 6


@dataclass(frozen=True)
class ScheduleDuration:
    """Output of calculate_schedule_duration"""
    duration: int
    end_date: date
    is_settled_loan: bool


def last_due_date(start_date: date, period: PeriodLike, periods: int,
                  paid_in_advance: bool = False, monthly_first: bool = False) -> date:
    """
    Due date of the last of ``periods`` periods.

    In advance the due date opens the period, in arrears it closes it;
    monthly-first schedules fall due on the 1st of the month.
    """
    if monthly_first:
        return start_of_month(add_months(start_date, periods))
    if paid_in_advance:
        return advance_period(start_date, period, periods - 1)
    return advance_period(start_date, period, periods)


def nominal_duration(loan: Loan, product: Product, options: GenerationOptions) -> int:
    if options.duration is not None:
        return options.duration
    return loan.duration or product.default_duration or 0


def calculate_schedule_duration(loan: Loan, product: Product, options: GenerationOptions,
                                current_outstanding: Decimal,
                                settled_threshold: Decimal = CENT) -> ScheduleDuration:
    """
    Work out the period count for a run.

    Args:
        loan: Loan being scheduled
        product: Product supplying the period and due-date rules
        options: Run options (end date, explicit duration, as-of date)
        current_outstanding: Principal outstanding per the ledger
        settled_threshold: Outstanding at or below this counts as settled

    Returns:
        ScheduleDuration(duration, end_date, is_settled_loan)
    """
    period = Period.parse(product.period)
    end_date = options.end_date or options.today
    has_end_date = options.end_date is not None
    is_settled_loan = has_end_date and current_outstanding <= settled_threshold and not loan.auto_extend

    if is_settled_loan:
        days = max(0, difference_in_days(end_date, loan.start_date))
        duration = periods_to_cover_days(days, period)
        logger.debug("Loan %s settled: truncating schedule at %s", loan.id, end_date)
    elif has_end_date and loan.auto_extend:
        days = max(0, difference_in_days(end_date, loan.start_date))
        duration = max(1, periods_to_cover_days(days, period))
        last_due = last_due_date(
            loan.start_date, period, duration,
            paid_in_advance=product.interest_paid_in_advance,
            monthly_first=product.uses_monthly_first
        )
        # Always keep one due date in the future
        if last_due <= end_date:
            duration += 1
        logger.debug("Loan %s auto-extend: %d periods, last due %s", loan.id, duration, last_due)
    elif has_end_date:
        duration = nominal_duration(loan, product, options) or FALLBACK_DURATION
    else:
        duration = nominal_duration(loan, product, options)

    return ScheduleDuration(
        duration=max(1, duration),
        end_date=end_date,
        is_settled_loan=is_settled_loan
    )
