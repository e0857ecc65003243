"""
Event Timeline Builder

Merges capital-changing transactions and the synthetic due date of every
period into one chronological list. Interest for a period is segmented at
the capital events that fall inside it.
"""

from datetime import date
from typing import Iterable, List

from .date_utils import PeriodLike, advance_period
from .interest import disbursement_principal, is_capital_repayment, is_further_advance
from .models import CapitalEvent, CapitalEventType, Transaction


def capital_events_from_transactions(transactions: Iterable[Transaction], start_date: date) -> List[CapitalEvent]:
    """Repayments with a principal portion, plus further advances after start_date"""
    events = []
    for transaction in transactions:
        if is_capital_repayment(transaction):
            events.append(CapitalEvent(
                date=transaction.date,
                type=CapitalEventType.CAPITAL_REPAYMENT,
                amount=transaction.principal_applied
            ))
        elif is_further_advance(transaction, start_date):
            events.append(CapitalEvent(
                date=transaction.date,
                type=CapitalEventType.DISBURSEMENT,
                amount=disbursement_principal(transaction)
            ))
    return events


def build_event_timeline(transactions: Iterable[Transaction], start_date: date,
                         period: PeriodLike, duration: int) -> List[CapitalEvent]:
    """
    Build the sorted event list for a loan.

    Capital events come from the ledger; one ``schedule_due`` event is added
    per period at ``advance_period(start_date, period, i)``. The sort is
    stable, so capital events precede a due event on the same day.
    """
    events = capital_events_from_transactions(transactions, start_date)

    for i in range(1, duration + 1):
        events.append(CapitalEvent(
            date=advance_period(start_date, period, i),
            type=CapitalEventType.SCHEDULE_DUE,
            period_number=i
        ))

    events.sort(key=lambda e: e.date)
    return events


def get_capital_events_in_period(events: Iterable[CapitalEvent], period_start: date,
                                 period_end: date) -> List[CapitalEvent]:
    """Capital events in the half-open window [period_start, period_end)"""
    return [
        e for e in events
        if e.is_capital_change and period_start <= e.date < period_end
    ]
