"""
Rolled-Up Scheduler

All interest over the original term is capitalized into a single balloon
entry due at the end of that term, together with the principal. If the loan
runs on past its term (an end date or auto-extend), interest-only monthly
extension entries follow on the final principal.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional
import logging

from ..base import BaseScheduler, ScheduleContext
from ..currency import ZERO
from ..date_utils import (
    add_months, advance_period, difference_in_days, get_period_boundaries, periods_to_cover_days
)
from ..interest import calculate_interest_for_days, calculate_segmented_interest, get_daily_rate
from ..models import GenerationOptions, Loan, Product, ScheduleEntry, ScheduleResult
from ..registry import register_scheduler

logger = logging.getLogger(__name__)


class RolledUpScheduler(BaseScheduler):
    id = "rolled_up"
    display_name = "Rolled-Up Interest"
    description = "All interest capitalized and due with principal at the end of the term"
    category = "standard"
    generates_schedule = True

    def generate_schedule(self, loan: Loan, product: Product,
                          options: Optional[GenerationOptions] = None) -> ScheduleResult:
        ctx = self.prepare_run(loan, product, options)

        # The roll-up always covers the nominal term, never the extended one
        original_duration = loan.duration or ctx.options.duration or ctx.duration
        total_interest = self.calculate_rolled_up_interest(ctx, original_duration)

        loan_end = advance_period(ctx.start_date, ctx.period, original_duration)
        final_principal = ctx.principal_at(loan_end)

        schedule: List[ScheduleEntry] = [self.create_schedule_entry(
            installment_number=1,
            due_date=loan_end,
            principal_amount=final_principal,
            interest_amount=total_interest,
            balance=final_principal,
            calculation_days=difference_in_days(loan_end, ctx.start_date),
            calculation_principal_start=ctx.original_principal
        )]

        extensions = self.count_extension_periods(ctx, loan_end)
        for i in range(1, extensions + 1):
            period_start = add_months(loan_end, i - 1)
            period_end = add_months(loan_end, i)
            days = difference_in_days(period_end, period_start)
            schedule.append(self.create_schedule_entry(
                installment_number=1 + i,
                due_date=period_end,
                principal_amount=ZERO,
                interest_amount=calculate_interest_for_days(final_principal, ctx.daily_rate, days),
                balance=final_principal,
                calculation_days=days,
                calculation_principal_start=final_principal,
                is_extension_period=True
            ))

        if extensions:
            logger.debug("Loan %s: %d extension periods after %s", loan.id, extensions, loan_end)
        return self.finalize(ctx, schedule)

    def calculate_rolled_up_interest(self, ctx: ScheduleContext, periods: int) -> Decimal:
        """Segmented interest summed over the first ``periods`` periods"""
        total = ZERO
        for i in range(1, periods + 1):
            period_start, period_end = get_period_boundaries(ctx.start_date, ctx.period, i)
            total += calculate_segmented_interest(
                ctx.principal_at(period_start), ctx.daily_rate, period_start, period_end,
                ctx.capital_events_between(period_start, period_end)
            )
        return total

    def count_extension_periods(self, ctx: ScheduleContext, loan_end: date) -> int:
        """Extension periods needed to reach the run's end date; none without one"""
        if ctx.options.end_date is None and not ctx.loan.auto_extend:
            return 0
        days = difference_in_days(ctx.end_date, loan_end)
        return max(0, periods_to_cover_days(days, ctx.period))

    def calculate_period_interest(self, principal, annual_rate, period_start: date, period_end: date,
                                  capital_events=None, original_principal=None) -> Decimal:
        return calculate_segmented_interest(
            principal, get_daily_rate(annual_rate), period_start, period_end, capital_events or []
        )


register_scheduler(RolledUpScheduler)
