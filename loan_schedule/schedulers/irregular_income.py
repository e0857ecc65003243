"""
Irregular Income Scheduler

No expectation schedule: repayments are recorded against the ledger as they
arrive. Generation clears any stored schedule and zeroes the interest fields
on the loan.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
import logging

from ..base import BaseScheduler
from ..currency import ZERO, round_currency
from ..logging_config import log_action
from ..models import GenerationOptions, Loan, Product, ScheduleResult, ScheduleSummary
from ..registry import register_scheduler

logger = logging.getLogger(__name__)


class IrregularIncomeScheduler(BaseScheduler):
    id = "irregular_income"
    display_name = "Irregular Income"
    description = "No fixed schedule; repayments recorded as received"
    category = "special"
    generates_schedule = False
    config_schema = {"common": {}, "specific": {}}

    def generate_schedule(self, loan: Loan, product: Product,
                          options: Optional[GenerationOptions] = None) -> ScheduleResult:
        self.save_schedule(loan.id, [])

        total_repayable = round_currency(loan.principal_amount + (loan.exit_fee or ZERO))
        summary = ScheduleSummary(total_interest=ZERO, total_repayable=total_repayable)
        self.update_loan_totals(
            loan, product, summary, ZERO,
            interest_type="None",
            product_type="Irregular Income"
        )

        log_action(
            logger, "info", "Schedule cleared",
            loan_id=loan.id, scheduler=self.id, action="generate_schedule"
        )
        return ScheduleResult(loan=loan, schedule=[], summary=summary)

    def calculate_period_interest(self, principal, annual_rate, period_start: date, period_end: date,
                                  capital_events=None, original_principal=None) -> Decimal:
        return ZERO


register_scheduler(IrregularIncomeScheduler)
