"""
Reducing Balance Scheduler

Standard amortizing loan. Each period's principal portion is solved from
the balance at the start of that period with the annuity formula over the
periods that remain, so the schedule always closes to zero.

The balance is projected forward and reconciled with the ledger: a
repayment first settles principal the schedule has already claimed, and only
the excess reduces the projected balance. Further advances always add to it.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import List, Optional
import logging

from ..base import BaseScheduler, PeriodWindow, ScheduleContext
from ..currency import ZERO, round_currency
from ..interest import (
    calculate_amortized_principal, calculate_interest_for_days, calculate_segmented_interest,
    calculate_weighted_monthly_interest, get_daily_rate, get_monthly_fixed_interest,
    get_periodic_rate
)
from ..models import (
    CapitalEvent, CapitalEventType, GenerationOptions, Loan, Period, Product,
    ScheduleEntry, ScheduleResult
)
from ..registry import register_scheduler

logger = logging.getLogger(__name__)


class ProjectedBalance:
    """Running principal of an amortizing schedule, reconciled with the ledger"""

    def __init__(self, opening: Decimal, repaid: Decimal = ZERO):
        self.balance = opening
        self.repaid = repaid
        self.credited = repaid
        self.claimed = repaid

    def apply(self, event: CapitalEvent) -> Optional[CapitalEvent]:
        """Apply a ledger event; returns the part that moves the balance"""
        if event.type == CapitalEventType.DISBURSEMENT:
            self.balance += event.amount
            return event

        self.repaid += event.amount
        credit = max(self.claimed, self.repaid)
        delta = credit - self.credited
        self.credited = credit
        if delta <= 0:
            return None
        self.balance = max(ZERO, self.balance - delta)
        return replace(event, amount=delta)

    def schedule(self, principal: Decimal) -> None:
        """Claim ``principal`` as due at the end of the current period"""
        self.claimed = self.credited + principal
        self.credited = self.claimed
        self.balance = max(ZERO, self.balance - principal)


class ReducingBalanceScheduler(BaseScheduler):
    id = "reducing_balance"
    display_name = "Reducing Balance (Amortizing)"
    description = "Standard amortizing loan with principal + interest payments"
    category = "standard"
    generates_schedule = True

    def generate_schedule(self, loan: Loan, product: Product,
                          options: Optional[GenerationOptions] = None) -> ScheduleResult:
        ctx = self.prepare_run(loan, product, options)
        periodic_rate = get_periodic_rate(ctx.effective_rate, ctx.period)
        windows = self.period_windows(ctx)

        first_start = windows[0].period_start
        repaid_before = sum(
            (e.amount for e in ctx.events
             if e.type == CapitalEventType.CAPITAL_REPAYMENT and e.date < first_start),
            ZERO
        )
        projection = ProjectedBalance(ctx.principal_at(first_start), repaid_before)

        schedule: List[ScheduleEntry] = []
        for window in windows:
            opening = projection.balance
            events = [
                applied for applied in (
                    projection.apply(event)
                    for event in ctx.capital_events_between(window.period_start, window.period_end)
                )
                if applied is not None
            ]

            interest = self.calculate_period_interest_with_events(ctx, window, opening, events)
            available = projection.balance

            if window.is_stub:
                principal = ZERO
            else:
                remaining = ctx.duration - window.offset + 1
                if remaining <= 1:
                    principal = available
                else:
                    principal = calculate_amortized_principal(opening, interest, periodic_rate, remaining)
                    principal = min(round_currency(principal), available)
            principal = round_currency(principal)
            projection.schedule(principal)

            schedule.append(self.create_schedule_entry(
                installment_number=window.number,
                due_date=ctx.due_date_for(window),
                principal_amount=principal,
                interest_amount=interest,
                balance=projection.balance,
                calculation_days=window.days,
                calculation_principal_start=opening,
                is_extension_period=ctx.is_extension(window)
            ))
            logger.debug("Period %d (%s): interest=%s principal=%s balance=%s",
                         window.number, ctx.due_date_for(window), interest, principal,
                         projection.balance)

        return self.finalize(ctx, schedule)

    def calculate_period_interest_with_events(self, ctx: ScheduleContext, window: PeriodWindow,
                                              principal_at_start: Decimal,
                                              capital_events: List[CapitalEvent]) -> Decimal:
        """Monthly-fixed after the first period when configured, else day-segmented"""
        if ctx.product.uses_monthly_fixed and window.number > 1 and not window.is_stub:
            if not capital_events:
                return get_monthly_fixed_interest(principal_at_start, ctx.effective_rate)
            return calculate_weighted_monthly_interest(
                principal_at_start, ctx.effective_rate,
                window.period_start, window.period_end, capital_events
            )
        return calculate_segmented_interest(
            principal_at_start, ctx.daily_rate, window.period_start, window.period_end, capital_events
        )

    def calculate_period_interest(self, principal, annual_rate, period_start: date, period_end: date,
                                  capital_events=None, original_principal=None) -> Decimal:
        return calculate_interest_for_days(
            principal, get_daily_rate(annual_rate), (period_end - period_start).days
        )

    def calculate_principal_portion(self, principal_at_start, principal_at_end, interest_for_period,
                                    period_number, total_periods, annual_rate, period) -> Decimal:
        return calculate_amortized_principal(
            principal_at_start, interest_for_period,
            get_periodic_rate(annual_rate, Period.parse(period)),
            total_periods - period_number + 1
        )


register_scheduler(ReducingBalanceScheduler)
