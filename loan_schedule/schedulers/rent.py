"""
Rent Scheduler

For loans repaid from rental income. Nothing accrues; instead the observed
rent payments are grouped by calendar quarter into Paid history rows and the
next payment is forecast from the detected pattern.

Pattern detection:
    - frequency is classified from the mean interval between payments
      (annual 300-400 days, quarterly 75-120, monthly 25-40, else irregular)
    - the expected amount is a recency-weighted mean of the latest payments
      (weights 1..n over the lookback window)
    - confidence follows the standard deviation of the intervals
      (high < 15 days, medium < 30, else low)
"""

from collections import OrderedDict
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple
import logging

from ..base import BaseScheduler
from ..currency import ZERO, round_currency
from ..date_utils import add_months, end_of_quarter, quarter_of, start_of_quarter
from ..logging_config import log_action
from ..models import (
    EntryStatus, GenerationOptions, Loan, Product, RentPattern, ScheduleEntry,
    ScheduleResult, ScheduleSummary, Transaction
)
from ..registry import register_scheduler

logger = logging.getLogger(__name__)

FREQUENCY_BANDS = (
    ("annual", 300, 400, 365),
    ("quarterly", 75, 120, 91),
    ("monthly", 25, 40, 30),
)

DEFAULT_INTERVALS = {"quarterly": 91, "annual": 365}


def _round_whole(value: Decimal) -> int:
    return int(value.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


class RentScheduler(BaseScheduler):
    id = "rent"
    display_name = "Rent (Pattern-Detected)"
    description = "Rental income schedule predicted from payment history"
    category = "special"
    generates_schedule = True
    config_schema = {
        "common": {},
        "specific": {
            "default_frequency": {
                "type": "select",
                "options": ["quarterly", "monthly", "annual"],
                "default": "quarterly",
                "label": "Expected Payment Frequency",
                "description": "Expected frequency of rent payments (used when no history)"
            },
            "lookback_periods": {
                "type": "number",
                "default": 4,
                "label": "Lookback Periods",
                "description": "Number of past periods to analyze for pattern detection"
            }
        }
    }

    def generate_schedule(self, loan: Loan, product: Product,
                          options: Optional[GenerationOptions] = None) -> ScheduleResult:
        options = options or GenerationOptions()
        transactions = self.fetch_loan_data(loan.id)
        principal_state = self.calculate_principal_state(transactions)

        rent_payments = sorted(
            (t for t in transactions if t.is_repayment and not t.is_deleted and t.amount > 0),
            key=lambda t: t.date
        )
        pattern = self.analyze_payment_pattern(rent_payments)
        schedule = self.build_rent_schedule(
            loan, rent_payments, pattern, principal_state.current_outstanding, options.today
        )
        self.save_schedule(loan.id, schedule)

        total_rent = sum((entry.interest_amount for entry in schedule), ZERO)
        summary = ScheduleSummary(
            total_interest=round_currency(total_rent),
            total_repayable=round_currency(
                principal_state.current_outstanding + total_rent + (loan.exit_fee or ZERO)
            ),
            pattern=pattern
        )
        self.update_loan_totals(
            loan, product, summary, ZERO,
            interest_type=None,
            product_type="Rent"
        )

        log_action(
            logger, "info", "Rent schedule generated",
            loan_id=loan.id, scheduler=self.id, action="generate_schedule",
            extra=pattern.to_dict()
        )
        return ScheduleResult(loan=loan, schedule=schedule, summary=summary)

    def analyze_payment_pattern(self, rent_payments: List[Transaction]) -> RentPattern:
        """Detect frequency, expected amount and confidence from payment history"""
        if len(rent_payments) < 2:
            frequency = self.config.default_frequency
            return RentPattern(
                frequency=frequency,
                average_amount=rent_payments[0].amount if rent_payments else ZERO,
                confidence="low",
                interval_days=DEFAULT_INTERVALS.get(frequency, 30),
                payment_count=len(rent_payments),
                last_payment_date=rent_payments[-1].date if rent_payments else None
            )

        intervals = [
            (current.date - previous.date).days
            for previous, current in zip(rent_payments, rent_payments[1:])
        ]
        avg_interval = Decimal(sum(intervals)) / len(intervals)
        frequency, interval_days = self.classify_interval(avg_interval)

        recent = rent_payments[-self.config.lookback_periods:]
        weights = range(1, len(recent) + 1)
        weighted_sum = sum((p.amount * w for p, w in zip(recent, weights)), ZERO)
        average_amount = weighted_sum / sum(weights)

        variance = sum((Decimal(d) - avg_interval) ** 2 for d in intervals) / len(intervals)
        std_dev = variance.sqrt()
        if std_dev < 15:
            confidence = "high"
        elif std_dev < 30:
            confidence = "medium"
        else:
            confidence = "low"

        return RentPattern(
            frequency=frequency,
            average_amount=round_currency(average_amount),
            confidence=confidence,
            interval_days=interval_days,
            payment_count=len(rent_payments),
            last_payment_date=rent_payments[-1].date,
            avg_interval_days=_round_whole(avg_interval),
            std_dev=_round_whole(std_dev)
        )

    @staticmethod
    def classify_interval(avg_interval: Decimal) -> Tuple[str, int]:
        for frequency, low, high, normalized in FREQUENCY_BANDS:
            if low <= avg_interval <= high:
                return frequency, normalized
        return "irregular", _round_whole(avg_interval)

    def build_rent_schedule(self, loan: Loan, rent_payments: List[Transaction], pattern: RentPattern,
                            outstanding: Decimal, today: date) -> List[ScheduleEntry]:
        """Paid rows per quarter of history, then a Pending forecast if it is in the future"""
        schedule = []
        for (year, quarter), payments in self.group_payments_by_quarter(rent_payments).items():
            quarter_start = start_of_quarter(year, quarter)
            quarter_end = end_of_quarter(year, quarter)
            total_rent = sum((p.amount for p in payments), ZERO)
            schedule.append(self.create_schedule_entry(
                installment_number=len(schedule) + 1,
                due_date=quarter_end,
                principal_amount=ZERO,
                interest_amount=total_rent,
                balance=outstanding,
                calculation_days=(quarter_end - quarter_start).days,
                calculation_principal_start=loan.principal_amount,
                status=EntryStatus.PAID,
                principal_paid=sum((p.principal_applied for p in payments), ZERO),
                interest_paid=total_rent
            ))

        if pattern.last_payment_date and pattern.average_amount > 0:
            next_due = self.predict_next_payment_date(pattern)
            if next_due > today:
                schedule.append(self.create_schedule_entry(
                    installment_number=len(schedule) + 1,
                    due_date=next_due,
                    principal_amount=ZERO,
                    interest_amount=pattern.average_amount,
                    balance=outstanding,
                    calculation_days=pattern.interval_days,
                    calculation_principal_start=loan.principal_amount
                ))
            else:
                logger.debug("Forecast %s for loan %s is not in the future", next_due, loan.id)
        return schedule

    @staticmethod
    def group_payments_by_quarter(payments: List[Transaction]) -> Dict[Tuple[int, int], List[Transaction]]:
        quarters: Dict[Tuple[int, int], List[Transaction]] = {}
        for payment in payments:
            key = (payment.date.year, quarter_of(payment.date))
            quarters.setdefault(key, []).append(payment)
        return OrderedDict(sorted(quarters.items()))

    @staticmethod
    def predict_next_payment_date(pattern: RentPattern) -> date:
        last = pattern.last_payment_date
        if pattern.frequency == "quarterly":
            return add_months(last, 3)
        if pattern.frequency == "annual":
            return add_months(last, 12)
        if pattern.frequency == "monthly":
            return add_months(last, 1)
        return last + timedelta(days=pattern.avg_interval_days or pattern.interval_days)

    def calculate_period_interest(self, principal, annual_rate, period_start: date, period_end: date,
                                  capital_events=None, original_principal=None) -> Decimal:
        return ZERO


register_scheduler(RentScheduler)
