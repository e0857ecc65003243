"""
Interest Calculation Module

Shared interest math for every scheduler. Rates are annual percentages
(12 means 12%). Values are kept at full Decimal precision here; rounding to
cents happens once, when a schedule entry is built.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from .currency import ZERO, to_decimal
from .date_utils import PeriodLike, difference_in_days, periods_per_year
from .models import CapitalEvent, CapitalEventType, Transaction

HUNDRED = Decimal('100')
DAYS_PER_YEAR = Decimal('365')
MONTHS_PER_YEAR = Decimal('12')


def get_daily_rate(annual_rate) -> Decimal:
    """Daily rate as a fraction: rate / 100 / 365"""
    return to_decimal(annual_rate) / HUNDRED / DAYS_PER_YEAR


def get_periodic_rate(annual_rate, period: PeriodLike) -> Decimal:
    """Periodic rate as a fraction: rate / 100 / (12 or 52)"""
    return to_decimal(annual_rate) / HUNDRED / Decimal(periods_per_year(period))


def get_monthly_fixed_interest(principal: Decimal, annual_rate) -> Decimal:
    """One month of interest at rate / 12, independent of days"""
    if principal <= 0:
        return ZERO
    return principal * to_decimal(annual_rate) / HUNDRED / MONTHS_PER_YEAR


def calculate_interest_for_days(principal: Decimal, daily_rate: Decimal, days: int) -> Decimal:
    if principal <= 0 or days <= 0:
        return ZERO
    return principal * daily_rate * days


def disbursement_principal(transaction: Transaction) -> Decimal:
    """Principal a disbursement adds: the gross amount when recorded"""
    if transaction.gross_amount is not None:
        return transaction.gross_amount
    return transaction.amount


def is_further_advance(transaction: Transaction, start_date: date) -> bool:
    """A disbursement after the loan start; the initial one is in principal_amount"""
    return (
        not transaction.is_deleted
        and transaction.is_disbursement
        and transaction.date > start_date
    )


def is_capital_repayment(transaction: Transaction) -> bool:
    return (
        not transaction.is_deleted
        and transaction.is_repayment
        and transaction.principal_applied > 0
    )


def calculate_principal_at_date(initial_principal: Decimal, transactions: Iterable[Transaction],
                                on_date: date, start_date: Optional[date] = None) -> Decimal:
    """
    Principal outstanding at the start of ``on_date``.

    Starts from the gross ``initial_principal``, adds further advances dated
    after ``start_date`` and before ``on_date`` and subtracts the principal
    portion of repayments dated before ``on_date``. Events on ``on_date``
    itself take effect from that day and are not included.

    A negative result is clamped to zero. Over-repayment in the ledger is
    therefore not reported here.
    """
    principal = to_decimal(initial_principal)
    for transaction in transactions:
        if transaction.is_deleted or transaction.date >= on_date:
            continue
        if transaction.is_repayment:
            principal -= transaction.principal_applied
        elif start_date is not None and is_further_advance(transaction, start_date):
            principal += disbursement_principal(transaction)
    return max(ZERO, principal)


def apply_capital_event(principal: Decimal, event: CapitalEvent) -> Decimal:
    """Principal after an event, clamped at zero"""
    if event.type == CapitalEventType.CAPITAL_REPAYMENT:
        principal -= event.amount
    elif event.type == CapitalEventType.DISBURSEMENT:
        principal += event.amount
    return max(ZERO, principal)


def _ordered(events: Sequence[CapitalEvent]) -> List[CapitalEvent]:
    return sorted((e for e in events if e.is_capital_change), key=lambda e: e.date)


def calculate_segmented_interest(principal_at_start: Decimal, daily_rate: Decimal,
                                 period_start: date, period_end: date,
                                 capital_events: Sequence[CapitalEvent]) -> Decimal:
    """
    Interest for [period_start, period_end) split at each capital event.

    Each segment accrues ``segment_principal x daily_rate x days``; the
    principal steps at the event date and applies from that day on. With no
    events this is a single full-period segment.
    """
    total = ZERO
    segment_start = period_start
    segment_principal = principal_at_start

    for event in _ordered(capital_events):
        days = max(0, difference_in_days(event.date, segment_start))
        total += calculate_interest_for_days(segment_principal, daily_rate, days)
        segment_principal = apply_capital_event(segment_principal, event)
        if event.date > segment_start:
            segment_start = event.date

    final_days = max(0, difference_in_days(period_end, segment_start))
    total += calculate_interest_for_days(segment_principal, daily_rate, final_days)
    return total


def principal_after_events(principal_at_start: Decimal, capital_events: Sequence[CapitalEvent]) -> Decimal:
    principal = principal_at_start
    for event in _ordered(capital_events):
        principal = apply_capital_event(principal, event)
    return principal


def calculate_weighted_monthly_interest(principal_at_start: Decimal, annual_rate,
                                        period_start: date, period_end: date,
                                        capital_events: Sequence[CapitalEvent]) -> Decimal:
    """
    Monthly-fixed interest (rate / 12) on the day-weighted average principal
    of the period. Used when capital changes mid-month on monthly products.
    """
    segment_start = period_start
    segment_principal = principal_at_start
    total_days = 0
    weighted_principal_days = ZERO

    for event in _ordered(capital_events):
        days = max(0, difference_in_days(event.date, segment_start))
        if days > 0:
            total_days += days
            weighted_principal_days += segment_principal * days
        segment_principal = apply_capital_event(segment_principal, event)
        if event.date > segment_start:
            segment_start = event.date

    final_days = max(0, difference_in_days(period_end, segment_start))
    if final_days > 0:
        total_days += final_days
        weighted_principal_days += segment_principal * final_days

    average_principal = weighted_principal_days / total_days if total_days > 0 else principal_at_start
    return get_monthly_fixed_interest(average_principal, annual_rate)


def calculate_amortized_payment(principal: Decimal, periodic_rate: Decimal, remaining_periods: int) -> Decimal:
    """
    Level payment that clears ``principal`` over ``remaining_periods``:
    P x r(1+r)^n / ((1+r)^n - 1), or P / n at a zero rate.
    """
    if principal <= 0 or remaining_periods <= 0:
        return ZERO
    if periodic_rate == 0:
        return principal / remaining_periods
    factor = (1 + periodic_rate) ** remaining_periods
    return principal * (periodic_rate * factor) / (factor - 1)


def calculate_amortized_principal(principal: Decimal, interest_for_period: Decimal,
                                  periodic_rate: Decimal, remaining_periods: int) -> Decimal:
    """Principal portion of the level payment, clamped at zero"""
    payment = calculate_amortized_payment(principal, periodic_rate, remaining_periods)
    return max(ZERO, payment - interest_for_period)
