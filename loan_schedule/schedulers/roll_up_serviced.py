"""
Roll-Up & Serviced Scheduler

Row 1: roll-up due (start date + roll_up_length months) carrying the interest
       accrued over the roll-up phase. It is held separately, not added to
       principal.
Row 2+: serviced interest, monthly, on principal + roll-up amount (plus unpaid
       serviced interest when the product compounds after roll-up).
Final row: includes the balloon principal.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional
import logging

from ..base import BaseScheduler, COMMON_SETTINGS, ScheduleContext
from ..currency import ZERO, round_currency
from ..date_utils import add_months, difference_in_days, get_period_boundaries
from ..interest import calculate_segmented_interest, get_daily_rate
from ..models import GenerationOptions, Loan, Period, Product, ScheduleEntry, ScheduleResult
from ..registry import register_scheduler

logger = logging.getLogger(__name__)


class RollUpServicedScheduler(BaseScheduler):
    id = "roll_up_serviced"
    display_name = "Roll-Up & Serviced"
    description = "Interest rolled up for an initial period, then serviced monthly with a balloon"
    category = "interest-only"
    generates_schedule = True
    config_schema = {
        "common": COMMON_SETTINGS,
        "specific": {
            "roll_up_length": {
                "type": "number",
                "default": 6,
                "min": 1,
                "max": 120,
                "label": "Roll-Up Period (Months)"
            },
            "compound_after_rollup": {
                "type": "boolean",
                "default": False,
                "label": "Compound Interest After Roll-Up"
            }
        }
    }

    def generate_schedule(self, loan: Loan, product: Product,
                          options: Optional[GenerationOptions] = None) -> ScheduleResult:
        ctx = self.prepare_run(loan, product, options)
        roll_up_length = loan.roll_up_length or self.config.default_roll_up_length

        if loan.has_roll_up_override:
            roll_up_interest = loan.roll_up_amount_override
        else:
            roll_up_interest = self.calculate_roll_up_interest(ctx, roll_up_length)

        roll_up_due = add_months(ctx.start_date, roll_up_length)
        principal_at_roll_up = ctx.principal_at(roll_up_due)

        schedule: List[ScheduleEntry] = [self.create_schedule_entry(
            installment_number=1,
            due_date=roll_up_due,
            principal_amount=ZERO,
            interest_amount=roll_up_interest,
            balance=principal_at_roll_up,
            calculation_days=difference_in_days(roll_up_due, ctx.start_date),
            calculation_principal_start=ctx.original_principal,
            is_roll_up_period=True,
            rolled_up_interest=roll_up_interest
        )]

        serviced_periods = max(0, ctx.duration - roll_up_length)
        logger.debug("Loan %s: roll-up %s over %d months, %d serviced periods",
                     loan.id, roll_up_interest, roll_up_length, serviced_periods)

        for i in range(1, serviced_periods + 1):
            period_start = add_months(roll_up_due, i - 1)
            period_end = add_months(roll_up_due, i)

            interest_base = ctx.principal_at(period_start) + roll_up_interest
            if product.compound_after_rollup:
                interest_base += self.calculate_unpaid_accrued(ctx, schedule[1:], period_start, roll_up_interest)

            interest = calculate_segmented_interest(
                interest_base, ctx.daily_rate, period_start, period_end,
                ctx.capital_events_between(period_start, period_end)
            )

            principal_at_end = ctx.principal_at(period_end)
            is_final = i == serviced_periods
            principal_due = principal_at_end if is_final else ZERO

            schedule.append(self.create_schedule_entry(
                installment_number=1 + i,
                due_date=period_end,
                principal_amount=principal_due,
                interest_amount=interest,
                balance=principal_at_end - principal_due,
                calculation_days=difference_in_days(period_end, period_start),
                calculation_principal_start=interest_base,
                is_extension_period=bool(loan.duration) and roll_up_length + i > loan.duration,
                is_serviced_period=True
            ))

        # Loan ends at roll-up: the balloon is due with the roll-up interest
        if serviced_periods == 0:
            schedule[0] = self.create_schedule_entry(
                installment_number=1,
                due_date=roll_up_due,
                principal_amount=principal_at_roll_up,
                interest_amount=roll_up_interest,
                balance=ZERO,
                calculation_days=schedule[0].calculation_days,
                calculation_principal_start=ctx.original_principal,
                is_roll_up_period=True,
                rolled_up_interest=roll_up_interest
            )

        if loan.has_roll_up_override:
            result = self.finalize(ctx, schedule)
        else:
            result = self.finalize(ctx, schedule, roll_up_amount=round_currency(roll_up_interest))
        result.roll_up_interest = round_currency(roll_up_interest)
        return result

    def calculate_roll_up_interest(self, ctx: ScheduleContext, roll_up_length: int) -> Decimal:
        """Segmented interest over the roll-up months, rounded to cents"""
        total = ZERO
        for i in range(1, roll_up_length + 1):
            period_start, period_end = get_period_boundaries(ctx.start_date, Period.MONTHLY, i)
            total += calculate_segmented_interest(
                ctx.principal_at(period_start), ctx.daily_rate, period_start, period_end,
                ctx.capital_events_between(period_start, period_end)
            )
        return round_currency(total)

    def calculate_unpaid_accrued(self, ctx: ScheduleContext, serviced: List[ScheduleEntry],
                                 period_start: date, roll_up_interest: Decimal) -> Decimal:
        """
        Serviced interest already due but not covered by interest payments.

        Interest received is applied to the roll-up amount first. Only entries
        due by both ``period_start`` and the run's as-of date count as due.
        """
        cutoff = min(period_start, ctx.options.today)
        due = sum((entry.interest_amount for entry in serviced if entry.due_date <= cutoff), ZERO)
        paid = sum(
            (t.interest_applied for t in ctx.transactions if t.is_repayment and t.date < period_start),
            ZERO
        )
        return max(ZERO, due - max(ZERO, paid - roll_up_interest))

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


register_scheduler(RollUpServicedScheduler)
