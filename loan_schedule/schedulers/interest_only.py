"""
Interest-Only (Balloon) Scheduler

Interest is charged every period on the outstanding principal and the whole
principal falls due with the final period.

In arrears, mid-period capital changes are handled by day segmentation. In
advance, each period is billed when it starts on its opening principal, which
includes changes dated on the due date itself. A capital change part-way
through a period is settled with a separate same-day adjustment entry for the
days that remain.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
import logging

from ..base import BaseScheduler, PeriodWindow, ScheduleContext
from ..currency import ZERO, round_currency
from ..date_utils import first_of_next_month, get_period_boundaries, start_of_month
from ..interest import (
    calculate_interest_for_days, calculate_segmented_interest, calculate_weighted_monthly_interest,
    disbursement_principal, get_daily_rate, get_monthly_fixed_interest,
    is_capital_repayment, is_further_advance, principal_after_events
)
from ..logging_config import log_action
from ..models import (
    AdjustmentType, GenerationOptions, Loan, Product, ScheduleEntry, ScheduleResult, Transaction
)
from ..registry import register_scheduler

logger = logging.getLogger(__name__)

FURTHER_ADVANCE_REASON = "Further advance - additional interest due for remaining days"
CAPITAL_REPAYMENT_REASON = "Capital repayment - interest credit for remaining days"


class InterestOnlyScheduler(BaseScheduler):
    id = "interest_only"
    display_name = "Interest-Only (Balloon)"
    description = "Interest-only payments with principal due at the end"
    category = "interest-only"
    generates_schedule = True

    def generate_schedule(self, loan: Loan, product: Product,
                          options: Optional[GenerationOptions] = None) -> ScheduleResult:
        ctx = self.prepare_run(loan, product, options)
        in_advance = product.interest_paid_in_advance
        windows = self.period_windows(ctx)
        schedule: List[ScheduleEntry] = []

        for window in windows:
            principal_at_start = ctx.principal_at(window.period_start)
            principal_at_end = ctx.principal_at(window.period_end)

            if in_advance:
                principal_at_start = self.opening_principal(ctx, window, principal_at_start)
                interest = self.calculate_advance_interest(ctx, window, principal_at_start)
            else:
                interest = self.calculate_arrears_interest(ctx, window, principal_at_start)

            is_final = window.offset == ctx.duration
            principal_due = principal_at_end if is_final else ZERO
            balance = principal_at_end - principal_due

            schedule.append(self.create_schedule_entry(
                installment_number=window.number,
                due_date=ctx.due_date_for(window),
                principal_amount=principal_due,
                interest_amount=interest,
                balance=balance,
                calculation_days=window.days,
                calculation_principal_start=principal_at_start,
                is_extension_period=ctx.is_extension(window)
            ))

        if in_advance:
            horizon = windows[-1].period_end
            for adjustment in self.build_adjustment_entries(ctx, schedule, horizon):
                self._insert_chronologically(schedule, adjustment)

        return self.finalize(ctx, schedule)

    def calculate_arrears_interest(self, ctx: ScheduleContext, window: PeriodWindow,
                                   principal_at_start: Decimal) -> Decimal:
        events = ctx.capital_events_between(window.period_start, window.period_end)
        if self._monthly_fixed(ctx, window):
            if not events:
                return get_monthly_fixed_interest(principal_at_start, ctx.effective_rate)
            return calculate_weighted_monthly_interest(
                principal_at_start, ctx.effective_rate,
                window.period_start, window.period_end, events
            )
        return calculate_segmented_interest(
            principal_at_start, ctx.daily_rate, window.period_start, window.period_end, events
        )

    def opening_principal(self, ctx: ScheduleContext, window: PeriodWindow,
                          principal_at_start: Decimal) -> Decimal:
        """Principal after capital changes dated on the period start itself"""
        opening_events = [
            event for event in ctx.capital_events_between(window.period_start, window.period_end)
            if event.date == window.period_start
        ]
        return principal_after_events(principal_at_start, opening_events)

    def calculate_advance_interest(self, ctx: ScheduleContext, window: PeriodWindow,
                                   principal_at_start: Decimal) -> Decimal:
        """Billed up front on the opening principal; later changes become adjustments"""
        if self._monthly_fixed(ctx, window):
            return get_monthly_fixed_interest(principal_at_start, ctx.effective_rate)
        return calculate_interest_for_days(principal_at_start, ctx.daily_rate, window.days)

    def build_adjustment_entries(self, ctx: ScheduleContext, schedule: List[ScheduleEntry],
                                 horizon: date) -> List[ScheduleEntry]:
        """
        One adjustment per capital change that does not land on a due date.

        The amount is the change in daily interest times the days left in the
        period containing the change: a debit for a further advance, a credit
        for a capital repayment. Amounts under the adjustment threshold are
        dropped.
        """
        due_dates = {entry.due_date for entry in schedule}
        same_day_change: Dict[date, Decimal] = defaultdict(lambda: ZERO)
        adjustments = []

        for transaction in ctx.transactions:
            if is_capital_repayment(transaction):
                change = -transaction.principal_applied
                reason = CAPITAL_REPAYMENT_REASON
            elif is_further_advance(transaction, ctx.start_date):
                change = disbursement_principal(transaction)
                reason = FURTHER_ADVANCE_REASON
            else:
                continue

            tx_date = transaction.date
            if tx_date in due_dates or tx_date >= horizon:
                continue

            boundaries = self.find_containing_period(ctx, tx_date)
            if boundaries is None:
                logger.debug("No period contains %s for loan %s", tx_date, ctx.loan.id)
                continue
            days_remaining = (boundaries[1] - tx_date).days
            if days_remaining <= 0:
                continue

            before = max(ZERO, ctx.principal_at(tx_date) + same_day_change[tx_date])
            after = max(ZERO, before + change)
            same_day_change[tx_date] += after - before

            difference = round_currency((after - before) * ctx.daily_rate * days_remaining)
            if abs(difference) < self.config.adjustment_threshold:
                continue

            adjustments.append(self._adjustment_entry(transaction, difference, before, after,
                                                      days_remaining, reason))

        if adjustments:
            log_action(
                logger, "info", "Interest adjustments added",
                loan_id=ctx.loan.id, scheduler=self.id, action="adjust",
                extra={"adjustments": len(adjustments)}
            )
        return adjustments

    def find_containing_period(self, ctx: ScheduleContext, on_date: date) -> Optional[Tuple[date, date]]:
        if ctx.product.uses_monthly_first:
            return start_of_month(on_date), first_of_next_month(on_date)
        for installment in range(1, self.config.max_period_search + 1):
            period_start, period_end = get_period_boundaries(ctx.start_date, ctx.period, installment)
            if period_start <= on_date < period_end:
                return period_start, period_end
            if period_start > on_date:
                break
        return None

    def calculate_period_interest(self, principal, annual_rate, period_start: date, period_end: date,
                                  capital_events=None, original_principal=None) -> Decimal:
        return calculate_segmented_interest(
            principal, get_daily_rate(annual_rate), period_start, period_end, capital_events or []
        )

    def calculate_principal_portion(self, principal_at_start, principal_at_end, interest_for_period,
                                    period_number, total_periods, annual_rate, period) -> Decimal:
        if period_number == total_periods:
            return principal_at_end
        return ZERO

    def _adjustment_entry(self, transaction: Transaction, difference: Decimal, before: Decimal,
                          after: Decimal, days_remaining: int, reason: str) -> ScheduleEntry:
        return self.create_schedule_entry(
            installment_number=0,
            due_date=transaction.date,
            principal_amount=ZERO,
            interest_amount=difference,
            balance=after,
            calculation_days=days_remaining,
            calculation_principal_start=before,
            is_adjustment_entry=True,
            adjustment_type=AdjustmentType.CREDIT if difference < 0 else AdjustmentType.DEBIT,
            adjustment_reason=reason
        )

    @staticmethod
    def _monthly_fixed(ctx: ScheduleContext, window: PeriodWindow) -> bool:
        return ctx.product.uses_monthly_fixed and window.number > 1 and not window.is_stub

    @staticmethod
    def _insert_chronologically(schedule: List[ScheduleEntry], entry: ScheduleEntry) -> None:
        for index, existing in enumerate(schedule):
            if existing.due_date > entry.due_date:
                schedule.insert(index, entry)
                return
        schedule.append(entry)


register_scheduler(InterestOnlyScheduler)
