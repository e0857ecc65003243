"""
Flat Rate Scheduler

Interest is always charged on the ORIGINAL principal, whatever the
balance does, and no principal is scheduled.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional
import logging

from ..base import BaseScheduler, PeriodWindow, ScheduleContext
from ..interest import calculate_interest_for_days, get_daily_rate, get_monthly_fixed_interest
from ..models import GenerationOptions, Loan, Product, ScheduleEntry, ScheduleResult
from ..registry import register_scheduler

logger = logging.getLogger(__name__)


class FlatRateScheduler(BaseScheduler):
    id = "flat_rate"
    display_name = "Flat Rate"
    description = "Interest calculated on original principal throughout"
    category = "standard"
    generates_schedule = True

    def generate_schedule(self, loan: Loan, product: Product,
                          options: Optional[GenerationOptions] = None) -> ScheduleResult:
        ctx = self.prepare_run(loan, product, options)
        schedule: List[ScheduleEntry] = []

        for window in self.period_windows(ctx):
            interest = self.calculate_flat_interest(ctx, window)
            principal_at_end = ctx.principal_at(window.period_end)

            schedule.append(self.create_schedule_entry(
                installment_number=window.number,
                due_date=ctx.due_date_for(window),
                principal_amount=Decimal('0'),
                interest_amount=interest,
                balance=principal_at_end,
                calculation_days=window.days,
                calculation_principal_start=ctx.original_principal,
                is_extension_period=ctx.is_extension(window)
            ))
            logger.debug("Period %d (%s): interest=%s balance=%s",
                         window.number, ctx.due_date_for(window), interest, principal_at_end)

        return self.finalize(ctx, schedule)

    def calculate_flat_interest(self, ctx: ScheduleContext, window: PeriodWindow) -> Decimal:
        """Original principal x rate/12 under monthly-fixed, else per day"""
        if ctx.product.uses_monthly_fixed and not window.is_stub:
            return get_monthly_fixed_interest(ctx.original_principal, ctx.effective_rate)
        return calculate_interest_for_days(ctx.original_principal, ctx.daily_rate, window.days)

    def calculate_period_interest(self, principal, annual_rate, period_start: date, period_end: date,
                                  capital_events=None, original_principal=None) -> Decimal:
        base = original_principal if original_principal is not None else principal
        return calculate_interest_for_days(
            base, get_daily_rate(annual_rate), (period_end - period_start).days
        )


register_scheduler(FlatRateScheduler)
