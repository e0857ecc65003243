"""
Fixed Charge Scheduler

Fixed charge facilities pay a flat fee every period regardless of the
balance. There is no interest calculation; the fee is carried in the
interest column.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from ..base import BaseScheduler, COMMON_SETTINGS
from ..currency import ZERO
from ..models import GenerationOptions, Loan, Product, ScheduleEntry, ScheduleResult
from ..registry import register_scheduler


class FixedChargeScheduler(BaseScheduler):
    id = "fixed_charge"
    display_name = "Fixed Charge Facility"
    description = "Fixed monthly fee regardless of balance"
    category = "special"
    generates_schedule = True
    config_schema = {
        "common": {"period": COMMON_SETTINGS["period"]},
        "specific": {
            "monthly_charge": {
                "type": "number",
                "default": 0,
                "label": "Monthly Charge Amount",
                "description": "Fixed amount charged each period"
            }
        }
    }

    def generate_schedule(self, loan: Loan, product: Product,
                          options: Optional[GenerationOptions] = None) -> ScheduleResult:
        ctx = self.prepare_run(loan, product, options)
        charge = self.get_charge(product)
        schedule: List[ScheduleEntry] = []

        for window in self.period_windows(ctx, monthly_first=False):
            schedule.append(self.create_schedule_entry(
                installment_number=window.number,
                due_date=window.period_end,
                principal_amount=ZERO,
                interest_amount=charge,
                balance=loan.principal_amount,
                calculation_days=window.days,
                calculation_principal_start=loan.principal_amount,
                is_extension_period=ctx.is_extension(window)
            ))

        return self.finalize(ctx, schedule, interest_rate=ZERO, interest_type="Fixed Charge")

    def get_charge(self, product: Product) -> Decimal:
        if product.monthly_charge is not None:
            return product.monthly_charge
        return self.config.monthly_charge

    def get_effective_interest_rate(self, loan: Loan, product: Product) -> Decimal:
        return ZERO

    def calculate_period_interest(self, principal, annual_rate, period_start: date, period_end: date,
                                  capital_events=None, original_principal=None) -> Decimal:
        return self.config.monthly_charge


register_scheduler(FixedChargeScheduler)
