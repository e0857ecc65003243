"""
Base Scheduler

Contract shared by every accrual regime. A scheduler turns
``{loan, product, transactions, options}`` into an ordered list of
ScheduleEntry rows plus summary totals, then hands the rows to the
repository. Subclasses implement ``generate_schedule`` and reuse the
helpers here for ledger state, duration, entry construction and persistence.
"""

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from .currency import ZERO, round_currency
from .date_utils import (
    difference_in_days, first_of_next_month, get_period_boundaries, monthly_first_boundaries
)
from .duration import ScheduleDuration, calculate_schedule_duration
from .interest import calculate_principal_at_date, disbursement_principal, get_daily_rate
from .logging_config import log_action
from .models import (
    CapitalEvent, EntryStatus, GenerationOptions, Loan, Period, PrincipalState, Product,
    ScheduleEntry, ScheduleResult, ScheduleSummary, SchedulerConfig, Transaction
)
from .repository import ScheduleRepository, StorageScheduleRepository
from .storage import InMemoryStorage
from .timeline import build_event_timeline, get_capital_events_in_period

logger = logging.getLogger(__name__)


COMMON_SETTINGS: Dict[str, Dict[str, Any]] = {
    "period": {
        "type": "select",
        "options": ["Monthly", "Weekly"],
        "label": "Payment Period"
    },
    "interest_calculation_method": {
        "type": "select",
        "options": ["daily", "monthly"],
        "default": "daily",
        "label": "Interest Calculation Method"
    },
    "interest_paid_in_advance": {
        "type": "boolean",
        "default": False,
        "label": "Interest Paid in Advance"
    },
    "interest_alignment": {
        "type": "select",
        "options": ["period_based", "monthly_first"],
        "default": "period_based",
        "label": "Interest Alignment"
    }
}


@dataclass(frozen=True)
class PeriodWindow:
    """
    One accrual window of a schedule.

    ``offset`` counts full periods from 1; a monthly-first stub (start date to
    the 1st of the next month) has offset 0.
    """
    number: int
    period_start: date
    period_end: date
    offset: int

    @property
    def is_stub(self) -> bool:
        return self.offset == 0

    @property
    def days(self) -> int:
        return difference_in_days(self.period_end, self.period_start)


@dataclass
class ScheduleContext:
    """Inputs of one generation run, resolved once up front"""
    loan: Loan
    product: Product
    options: GenerationOptions
    transactions: List[Transaction]
    principal_state: PrincipalState
    effective_rate: Decimal
    period: Period
    schedule_duration: ScheduleDuration
    events: List[CapitalEvent]

    @property
    def duration(self) -> int:
        return self.schedule_duration.duration

    @property
    def end_date(self) -> date:
        return self.schedule_duration.end_date

    @property
    def is_settled_loan(self) -> bool:
        return self.schedule_duration.is_settled_loan

    @property
    def start_date(self) -> date:
        return self.loan.start_date

    @property
    def original_principal(self) -> Decimal:
        return self.loan.principal_amount

    @property
    def daily_rate(self) -> Decimal:
        return get_daily_rate(self.effective_rate)

    def principal_at(self, on_date: date) -> Decimal:
        return calculate_principal_at_date(
            self.original_principal, self.transactions, on_date, self.start_date
        )

    def capital_events_between(self, period_start: date, period_end: date) -> List[CapitalEvent]:
        return get_capital_events_in_period(self.events, period_start, period_end)

    def due_date_for(self, window: PeriodWindow) -> date:
        if self.product.interest_paid_in_advance:
            return window.period_start
        return window.period_end

    def is_extension(self, window: PeriodWindow) -> bool:
        return bool(self.loan.duration) and window.offset > self.loan.duration


class BaseScheduler:
    """Base class for all loan schedule generators"""

    # Registry metadata - override in subclasses
    id = "base"
    display_name = "Base Scheduler"
    description = "Abstract base - do not use directly"
    category = "standard"  # standard | interest-only | special
    generates_schedule = True
    config_schema: Dict[str, Dict[str, Any]] = {"common": COMMON_SETTINGS, "specific": {}}

    def __init__(self, config: Optional[SchedulerConfig] = None,
                 repository: Optional[ScheduleRepository] = None):
        self.config = config or SchedulerConfig()
        self.repository = repository or StorageScheduleRepository(InMemoryStorage())

    # ============ Strategy interface ============

    def generate_schedule(self, loan: Loan, product: Product,
                          options: Optional[GenerationOptions] = None) -> ScheduleResult:
        """Generate, persist and summarize the schedule for ``loan``"""
        raise NotImplementedError(f"{type(self).__name__} must implement generate_schedule()")

    def calculate_period_interest(self, principal: Decimal, annual_rate: Decimal,
                                  period_start: date, period_end: date,
                                  capital_events: Optional[List[CapitalEvent]] = None,
                                  original_principal: Optional[Decimal] = None) -> Decimal:
        """Interest for a single period"""
        raise NotImplementedError(f"{type(self).__name__} must implement calculate_period_interest()")

    def calculate_principal_portion(self, principal_at_start: Decimal, principal_at_end: Decimal,
                                    interest_for_period: Decimal, period_number: int,
                                    total_periods: int, annual_rate: Decimal,
                                    period: Period) -> Decimal:
        """Principal due for a period; interest-only by default"""
        return ZERO

    # ============ Ledger and configuration ============

    def fetch_loan_data(self, loan_id: str) -> List[Transaction]:
        return self.repository.fetch_transactions(loan_id)

    def calculate_principal_state(self, transactions: List[Transaction]) -> PrincipalState:
        """Outstanding principal per the ledger: disbursed minus capital repaid"""
        total_disbursed = sum(
            (disbursement_principal(t) for t in transactions if t.is_disbursement and not t.is_deleted),
            ZERO
        )
        total_capital_repaid = sum(
            (t.principal_applied for t in transactions if t.is_repayment and not t.is_deleted),
            ZERO
        )
        return PrincipalState(
            total_disbursed=total_disbursed,
            total_capital_repaid=total_capital_repaid,
            current_outstanding=total_disbursed - total_capital_repaid
        )

    def get_effective_interest_rate(self, loan: Loan, product: Product) -> Decimal:
        """Loan override rate when set, otherwise the product rate"""
        if loan.has_rate_override:
            return loan.override_rate
        return product.interest_rate

    def build_schedule_config(self, loan: Loan, product: Product, options: GenerationOptions,
                              current_outstanding: Decimal) -> ScheduleDuration:
        return calculate_schedule_duration(
            loan, product, options, current_outstanding,
            settled_threshold=self.config.settled_threshold
        )

    def prepare_run(self, loan: Loan, product: Product,
                    options: Optional[GenerationOptions] = None) -> ScheduleContext:
        """Fetch the ledger and resolve rate, period and duration for a run"""
        options = options or GenerationOptions()
        period = Period.parse(product.period)
        transactions = self.fetch_loan_data(loan.id)
        principal_state = self.calculate_principal_state(transactions)
        schedule_duration = self.build_schedule_config(
            loan, product, options, principal_state.current_outstanding
        )
        events = build_event_timeline(transactions, loan.start_date, period, schedule_duration.duration)

        log_action(
            logger, "debug", "Schedule run prepared",
            loan_id=loan.id, scheduler=self.id, action="prepare",
            extra={
                "duration": schedule_duration.duration,
                "end_date": schedule_duration.end_date.isoformat(),
                "settled": schedule_duration.is_settled_loan,
                "outstanding": str(principal_state.current_outstanding)
            }
        )

        return ScheduleContext(
            loan=loan,
            product=product,
            options=options,
            transactions=transactions,
            principal_state=principal_state,
            effective_rate=self.get_effective_interest_rate(loan, product),
            period=period,
            schedule_duration=schedule_duration,
            events=events
        )

    def period_windows(self, ctx: ScheduleContext, monthly_first: Optional[bool] = None) -> List[PeriodWindow]:
        """
        Accrual windows for a run.

        Period-based windows are anniversaries of the start date. Monthly-first
        windows are calendar months, preceded by a stub up to the 1st of the
        next month when the loan does not start on a 1st.
        """
        if monthly_first is None:
            monthly_first = ctx.product.uses_monthly_first

        windows = []
        if monthly_first:
            if ctx.start_date.day != 1:
                windows.append(PeriodWindow(1, ctx.start_date, first_of_next_month(ctx.start_date), 0))
            for offset in range(1, ctx.duration + 1):
                period_start, period_end = monthly_first_boundaries(ctx.start_date, offset)
                windows.append(PeriodWindow(len(windows) + 1, period_start, period_end, offset))
        else:
            for i in range(1, ctx.duration + 1):
                period_start, period_end = get_period_boundaries(ctx.start_date, ctx.period, i)
                windows.append(PeriodWindow(i, period_start, period_end, i))
        return windows

    # ============ Entries ============

    def create_schedule_entry(self, installment_number: int, due_date: date,
                              principal_amount: Decimal, interest_amount: Decimal,
                              balance: Decimal, calculation_days: int,
                              calculation_principal_start: Decimal,
                              is_extension_period: bool = False,
                              **flags) -> ScheduleEntry:
        """Build an entry with every monetary field rounded half-up to cents"""
        principal = round_currency(principal_amount)
        interest = round_currency(interest_amount)
        for key in ("principal_paid", "interest_paid", "rolled_up_interest"):
            if flags.get(key) is not None:
                flags[key] = round_currency(flags[key])
        return ScheduleEntry(
            installment_number=installment_number,
            due_date=due_date,
            principal_amount=principal,
            interest_amount=interest,
            total_due=principal + interest,
            balance=max(ZERO, round_currency(balance)),
            calculation_days=calculation_days,
            calculation_principal_start=round_currency(calculation_principal_start),
            is_extension_period=is_extension_period,
            **flags
        )

    def filter_settled(self, schedule: List[ScheduleEntry], ctx: ScheduleContext) -> List[ScheduleEntry]:
        """Drop entries due after the settlement date of a settled loan"""
        if not ctx.is_settled_loan:
            return schedule
        return [entry for entry in schedule if entry.due_date <= ctx.end_date]

    # ============ Persistence ============

    def save_schedule(self, loan_id: str, schedule: List[ScheduleEntry]) -> List[ScheduleEntry]:
        self.repository.replace_schedule(loan_id, schedule)
        return schedule

    def save_schedule_with_preservation(self, loan_id: str, schedule: List[ScheduleEntry],
                                        as_of: date) -> List[ScheduleEntry]:
        """
        Replace the stored schedule but keep entries already marked Paid and
        due before ``as_of``.

        New entries that share a preserved due date are dropped, the rest are
        merged by due date and non-adjustment entries renumbered from 1.
        """
        existing = self.repository.fetch_existing_schedule(loan_id)
        preserved = [
            entry for entry in existing
            if entry.status == EntryStatus.PAID and entry.due_date < as_of
        ]
        preserved_dates = {entry.due_date for entry in preserved}
        fresh = [entry for entry in schedule if entry.due_date not in preserved_dates]

        combined = sorted(preserved + fresh, key=lambda entry: entry.due_date)

        renumbered = []
        installment = 0
        for entry in combined:
            if entry.is_adjustment_entry:
                renumbered.append(entry)
                continue
            installment += 1
            renumbered.append(replace(entry, installment_number=installment))

        if preserved:
            log_action(
                logger, "info", "Preserved paid schedule entries",
                loan_id=loan_id, scheduler=self.id, action="preserve",
                extra={"preserved": len(preserved), "written": len(renumbered)}
            )
        return self.save_schedule(loan_id, renumbered)

    def update_loan_totals(self, loan: Loan, product: Product, summary: ScheduleSummary,
                           effective_rate: Decimal, **fields) -> bool:
        """Write rate, type and totals back to the stored loan"""
        totals = {
            "interest_rate": effective_rate,
            "interest_type": product.interest_type,
            "product_type": product.product_type or "Standard",
            "period": product.period,
            "total_interest": round_currency(summary.total_interest),
            "total_repayable": round_currency(summary.total_repayable)
        }
        totals.update(fields)
        return self.repository.update_loan_totals(loan.id, totals)

    # ============ Totals ============

    def calculate_summary(self, schedule: List[ScheduleEntry], current_outstanding: Decimal,
                          exit_fee: Decimal = ZERO) -> ScheduleSummary:
        """total_interest = sum of interest; total_repayable adds outstanding and exit fee"""
        total_interest = sum((entry.interest_amount for entry in schedule), ZERO)
        total_repayable = total_interest + current_outstanding + (exit_fee or ZERO)
        return ScheduleSummary(
            total_interest=round_currency(total_interest),
            total_repayable=round_currency(total_repayable)
        )

    def finalize(self, ctx: ScheduleContext, schedule: List[ScheduleEntry],
                 **loan_fields) -> ScheduleResult:
        """
        Shared tail of a run: settlement truncation, persistence (with
        preservation when enabled), summary and loan totals.
        """
        schedule = self.filter_settled(schedule, ctx)

        preserve = ctx.options.preserve_paid_entries
        if preserve is None:
            preserve = self.config.preserve_paid_entries
        if preserve:
            schedule = self.save_schedule_with_preservation(ctx.loan.id, schedule, ctx.options.today)
        else:
            schedule = self.save_schedule(ctx.loan.id, schedule)

        summary = self.calculate_summary(
            schedule, ctx.principal_state.current_outstanding, ctx.loan.exit_fee
        )
        self.update_loan_totals(ctx.loan, ctx.product, summary, ctx.effective_rate, **loan_fields)

        log_action(
            logger, "info", "Schedule generated",
            loan_id=ctx.loan.id, scheduler=self.id, action="generate_schedule",
            extra={
                "entries": len(schedule),
                "total_interest": str(summary.total_interest),
                "total_repayable": str(summary.total_repayable)
            }
        )
        return ScheduleResult(loan=ctx.loan, schedule=schedule, summary=summary)
