"""
Schedule Data Model

Loans, products, ledger transactions and the schedule entries generated
from them. Monetary fields are Decimal; dates are ``datetime.date``.
Records round-trip through plain dicts for storage.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from .currency import ZERO, CENT, to_decimal


class Period(Enum):
    """Repayment period of a product"""
    MONTHLY = "Monthly"
    WEEKLY = "Weekly"

    @classmethod
    def parse(cls, value: Any) -> "Period":
        """
        Resolve a period from a stored value.

        Unset or unknown periods are rejected instead of being defaulted, so a
        misconfigured product never produces silently wrong interest.

        Raises:
            ValueError: if the value is missing or not Monthly/Weekly
        """
        if isinstance(value, Period):
            return value
        if value is None or str(value).strip() == "":
            raise ValueError("Product period is not set; expected 'Monthly' or 'Weekly'")
        text = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        raise ValueError(f"Unsupported period: {value!r}; expected 'Monthly' or 'Weekly'")

    @property
    def periods_per_year(self) -> int:
        return 12 if self is Period.MONTHLY else 52

    @property
    def average_days(self) -> Decimal:
        return Decimal('30.44') if self is Period.MONTHLY else Decimal('7')


class TransactionType(Enum):
    """Ledger transaction types"""
    DISBURSEMENT = "Disbursement"
    REPAYMENT = "Repayment"


class InterestCalculationMethod(Enum):
    """How a period's interest is computed"""
    DAILY = "daily"        # principal x rate/365 x days
    MONTHLY = "monthly"    # principal x rate/12, monthly products only


class InterestAlignment(Enum):
    """Where period boundaries fall"""
    PERIOD_BASED = "period_based"    # anniversaries of the start date
    MONTHLY_FIRST = "monthly_first"  # 1st of each calendar month


class EntryStatus(Enum):
    """Schedule entry status"""
    PENDING = "Pending"
    PAID = "Paid"


class CapitalEventType(Enum):
    """Timeline event types"""
    CAPITAL_REPAYMENT = "capital_repayment"
    DISBURSEMENT = "disbursement"
    SCHEDULE_DUE = "schedule_due"


class AdjustmentType(Enum):
    """Sign of a same-day interest adjustment"""
    CREDIT = "credit"  # borrower overpaid in advance
    DEBIT = "debit"    # borrower underpaid in advance


def _optional_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return to_decimal(value)


def _optional_str(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def _get_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


@dataclass
class Transaction:
    """Ledger transaction. Read-only to the engine."""
    id: str
    loan_id: str
    type: TransactionType
    date: date
    amount: Decimal
    principal_applied: Decimal = ZERO
    interest_applied: Decimal = ZERO
    fees_applied: Decimal = ZERO
    is_deleted: bool = False
    gross_amount: Optional[Decimal] = None
    deducted_fee: Decimal = ZERO
    deducted_interest: Decimal = ZERO
    linked_disbursement_id: Optional[str] = None

    @property
    def is_repayment(self) -> bool:
        return self.type == TransactionType.REPAYMENT

    @property
    def is_disbursement(self) -> bool:
        return self.type == TransactionType.DISBURSEMENT

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'loan_id': self.loan_id,
            'type': self.type.value,
            'date': self.date.isoformat(),
            'amount': str(self.amount),
            'principal_applied': str(self.principal_applied),
            'interest_applied': str(self.interest_applied),
            'fees_applied': str(self.fees_applied),
            'is_deleted': self.is_deleted,
            'gross_amount': _optional_str(self.gross_amount),
            'deducted_fee': str(self.deducted_fee),
            'deducted_interest': str(self.deducted_interest),
            'linked_disbursement_id': self.linked_disbursement_id
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        return cls(
            id=data['id'],
            loan_id=data['loan_id'],
            type=TransactionType(data['type']),
            date=_get_date(data['date']),
            amount=to_decimal(data.get('amount')),
            principal_applied=to_decimal(data.get('principal_applied')),
            interest_applied=to_decimal(data.get('interest_applied')),
            fees_applied=to_decimal(data.get('fees_applied')),
            is_deleted=bool(data.get('is_deleted', False)),
            gross_amount=_optional_decimal(data.get('gross_amount')),
            deducted_fee=to_decimal(data.get('deducted_fee')),
            deducted_interest=to_decimal(data.get('deducted_interest')),
            linked_disbursement_id=data.get('linked_disbursement_id')
        )


@dataclass
class Product:
    """Loan product: selects the scheduler and its period rules"""
    id: str
    name: str = ""
    scheduler_type: str = "reducing_balance"
    period: Optional[str] = None
    interest_rate: Decimal = ZERO
    interest_type: Optional[str] = None
    product_type: Optional[str] = None
    interest_calculation_method: InterestCalculationMethod = InterestCalculationMethod.DAILY
    interest_paid_in_advance: bool = False
    interest_alignment: InterestAlignment = InterestAlignment.PERIOD_BASED
    compound_after_rollup: bool = False
    monthly_charge: Optional[Decimal] = None
    default_duration: Optional[int] = None
    scheduler_config: Dict[str, Any] = field(default_factory=dict)

    @property
    def uses_monthly_first(self) -> bool:
        return (
            self.interest_alignment == InterestAlignment.MONTHLY_FIRST
            and Period.parse(self.period) == Period.MONTHLY
        )

    @property
    def uses_monthly_fixed(self) -> bool:
        return (
            self.interest_calculation_method == InterestCalculationMethod.MONTHLY
            and Period.parse(self.period) == Period.MONTHLY
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'scheduler_type': self.scheduler_type,
            'period': self.period,
            'interest_rate': str(self.interest_rate),
            'interest_type': self.interest_type,
            'product_type': self.product_type,
            'interest_calculation_method': self.interest_calculation_method.value,
            'interest_paid_in_advance': self.interest_paid_in_advance,
            'interest_alignment': self.interest_alignment.value,
            'compound_after_rollup': self.compound_after_rollup,
            'monthly_charge': _optional_str(self.monthly_charge),
            'default_duration': self.default_duration,
            'scheduler_config': dict(self.scheduler_config)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        return cls(
            id=data['id'],
            name=data.get('name', ""),
            scheduler_type=data.get('scheduler_type') or "reducing_balance",
            period=data.get('period'),
            interest_rate=to_decimal(data.get('interest_rate')),
            interest_type=data.get('interest_type'),
            product_type=data.get('product_type'),
            interest_calculation_method=InterestCalculationMethod(
                data.get('interest_calculation_method') or "daily"
            ),
            interest_paid_in_advance=bool(data.get('interest_paid_in_advance', False)),
            interest_alignment=InterestAlignment(data.get('interest_alignment') or "period_based"),
            compound_after_rollup=bool(data.get('compound_after_rollup', False)),
            monthly_charge=_optional_decimal(data.get('monthly_charge')),
            default_duration=data.get('default_duration'),
            scheduler_config=dict(data.get('scheduler_config') or {})
        )


@dataclass
class Loan:
    """
    Loan record.

    ``principal_amount`` is the gross amount owed by the borrower; it is never
    reduced by fees deducted at disbursement. Overrides are explicit optional
    values: a loan uses an override exactly when the value is not None.
    """
    id: str
    principal_amount: Decimal
    start_date: date
    duration: Optional[int] = None
    interest_rate: Decimal = ZERO
    product_id: Optional[str] = None
    period: Optional[str] = None
    interest_type: Optional[str] = None
    product_type: Optional[str] = None
    override_rate: Optional[Decimal] = None
    penalty_rate: Optional[Decimal] = None
    penalty_rate_from: Optional[date] = None
    exit_fee: Decimal = ZERO
    auto_extend: bool = False
    roll_up_length: Optional[int] = None
    roll_up_amount: Optional[Decimal] = None
    roll_up_amount_override: Optional[Decimal] = None
    total_interest: Optional[Decimal] = None
    total_repayable: Optional[Decimal] = None

    @property
    def has_rate_override(self) -> bool:
        return self.override_rate is not None

    @property
    def has_roll_up_override(self) -> bool:
        return self.roll_up_amount_override is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'principal_amount': str(self.principal_amount),
            'start_date': self.start_date.isoformat(),
            'duration': self.duration,
            'interest_rate': str(self.interest_rate),
            'product_id': self.product_id,
            'period': self.period,
            'interest_type': self.interest_type,
            'product_type': self.product_type,
            'override_rate': _optional_str(self.override_rate),
            'penalty_rate': _optional_str(self.penalty_rate),
            'penalty_rate_from': self.penalty_rate_from.isoformat() if self.penalty_rate_from else None,
            'exit_fee': str(self.exit_fee),
            'auto_extend': self.auto_extend,
            'roll_up_length': self.roll_up_length,
            'roll_up_amount': _optional_str(self.roll_up_amount),
            'roll_up_amount_override': _optional_str(self.roll_up_amount_override),
            'total_interest': _optional_str(self.total_interest),
            'total_repayable': _optional_str(self.total_repayable)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Loan':
        """
        Build a loan from a stored record.

        Also accepts the flag-plus-value layout of older records
        (``override_interest_rate``/``overridden_rate`` and a boolean
        ``roll_up_amount_override`` paired with ``roll_up_amount``).
        """
        override_rate = _optional_decimal(data.get('override_rate'))
        if override_rate is None and data.get('override_interest_rate'):
            override_rate = _optional_decimal(data.get('overridden_rate'))

        roll_up_override = data.get('roll_up_amount_override')
        if isinstance(roll_up_override, bool):
            roll_up_override = data.get('roll_up_amount') if roll_up_override else None

        return cls(
            id=data['id'],
            principal_amount=to_decimal(data['principal_amount']),
            start_date=_get_date(data['start_date']),
            duration=data.get('duration'),
            interest_rate=to_decimal(data.get('interest_rate')),
            product_id=data.get('product_id'),
            period=data.get('period'),
            interest_type=data.get('interest_type'),
            product_type=data.get('product_type'),
            override_rate=override_rate,
            penalty_rate=_optional_decimal(data.get('penalty_rate')),
            penalty_rate_from=_get_date(data.get('penalty_rate_from')),
            exit_fee=to_decimal(data.get('exit_fee')),
            auto_extend=bool(data.get('auto_extend', False)),
            roll_up_length=data.get('roll_up_length'),
            roll_up_amount=_optional_decimal(data.get('roll_up_amount')),
            roll_up_amount_override=_optional_decimal(roll_up_override),
            total_interest=_optional_decimal(data.get('total_interest')),
            total_repayable=_optional_decimal(data.get('total_repayable'))
        )


@dataclass
class ScheduleEntry:
    """Single entry in a repayment schedule"""
    installment_number: int
    due_date: date
    principal_amount: Decimal
    interest_amount: Decimal
    total_due: Decimal
    balance: Decimal
    calculation_days: int = 0
    calculation_principal_start: Decimal = ZERO
    is_extension_period: bool = False
    status: EntryStatus = EntryStatus.PENDING
    principal_paid: Decimal = ZERO
    interest_paid: Decimal = ZERO
    is_adjustment_entry: bool = False
    adjustment_type: Optional[AdjustmentType] = None
    adjustment_reason: Optional[str] = None
    is_roll_up_period: bool = False
    is_serviced_period: bool = False
    rolled_up_interest: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'installment_number': self.installment_number,
            'due_date': self.due_date.isoformat(),
            'principal_amount': str(self.principal_amount),
            'interest_amount': str(self.interest_amount),
            'total_due': str(self.total_due),
            'balance': str(self.balance),
            'calculation_days': self.calculation_days,
            'calculation_principal_start': str(self.calculation_principal_start),
            'is_extension_period': self.is_extension_period,
            'status': self.status.value,
            'principal_paid': str(self.principal_paid),
            'interest_paid': str(self.interest_paid),
            'is_adjustment_entry': self.is_adjustment_entry,
            'adjustment_type': self.adjustment_type.value if self.adjustment_type else None,
            'adjustment_reason': self.adjustment_reason,
            'is_roll_up_period': self.is_roll_up_period,
            'is_serviced_period': self.is_serviced_period,
            'rolled_up_interest': _optional_str(self.rolled_up_interest)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScheduleEntry':
        adjustment_type = data.get('adjustment_type')
        return cls(
            installment_number=int(data['installment_number']),
            due_date=_get_date(data['due_date']),
            principal_amount=to_decimal(data.get('principal_amount')),
            interest_amount=to_decimal(data.get('interest_amount')),
            total_due=to_decimal(data.get('total_due')),
            balance=to_decimal(data.get('balance')),
            calculation_days=int(data.get('calculation_days') or 0),
            calculation_principal_start=to_decimal(data.get('calculation_principal_start')),
            is_extension_period=bool(data.get('is_extension_period', False)),
            status=EntryStatus(data.get('status') or "Pending"),
            principal_paid=to_decimal(data.get('principal_paid')),
            interest_paid=to_decimal(data.get('interest_paid')),
            is_adjustment_entry=bool(data.get('is_adjustment_entry', False)),
            adjustment_type=AdjustmentType(adjustment_type) if adjustment_type else None,
            adjustment_reason=data.get('adjustment_reason'),
            is_roll_up_period=bool(data.get('is_roll_up_period', False)),
            is_serviced_period=bool(data.get('is_serviced_period', False)),
            rolled_up_interest=_optional_decimal(data.get('rolled_up_interest'))
        )


@dataclass(frozen=True)
class CapitalEvent:
    """Timeline event; derived inside a run, never persisted"""
    date: date
    type: CapitalEventType
    amount: Decimal = ZERO
    period_number: Optional[int] = None

    @property
    def is_capital_change(self) -> bool:
        return self.type != CapitalEventType.SCHEDULE_DUE


@dataclass(frozen=True)
class PrincipalState:
    """Ledger totals for a loan"""
    total_disbursed: Decimal
    total_capital_repaid: Decimal
    current_outstanding: Decimal


@dataclass
class RentPattern:
    """Detected rent payment pattern"""
    frequency: str
    average_amount: Decimal
    confidence: str
    interval_days: int
    payment_count: int
    last_payment_date: Optional[date] = None
    avg_interval_days: Optional[int] = None
    std_dev: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'frequency': self.frequency,
            'average_amount': str(self.average_amount),
            'confidence': self.confidence,
            'interval_days': self.interval_days,
            'payment_count': self.payment_count,
            'last_payment_date': self.last_payment_date.isoformat() if self.last_payment_date else None,
            'avg_interval_days': self.avg_interval_days,
            'std_dev': self.std_dev
        }


@dataclass
class ScheduleSummary:
    """Totals derived from a generated schedule"""
    total_interest: Decimal
    total_repayable: Decimal
    pattern: Optional[RentPattern] = None


@dataclass
class ScheduleResult:
    """Output of one generation run"""
    loan: Loan
    schedule: List[ScheduleEntry]
    summary: ScheduleSummary
    roll_up_interest: Optional[Decimal] = None


@dataclass(frozen=True)
class GenerationOptions:
    """
    Per-run options.

    ``as_of`` stands in for "today" (settlement, preservation and forecast
    cut-offs); leaving it unset uses the current date.
    """
    end_date: Optional[date] = None
    duration: Optional[int] = None
    as_of: Optional[date] = None
    preserve_paid_entries: Optional[bool] = None

    @property
    def today(self) -> date:
        return self.as_of or date.today()


@dataclass(frozen=True)
class SchedulerConfig:
    """
    Immutable scheduler settings, built from ``product.scheduler_config``
    over the engine-wide defaults and handed to a scheduler at construction.
    """
    monthly_charge: Decimal = ZERO
    default_frequency: str = "quarterly"
    lookback_periods: int = 4
    default_roll_up_length: int = 6
    adjustment_threshold: Decimal = CENT
    settled_threshold: Decimal = CENT
    max_period_search: int = 1000
    preserve_paid_entries: bool = False

    @classmethod
    def from_settings(cls, settings, overrides: Optional[Dict[str, Any]] = None) -> 'SchedulerConfig':
        """Merge product-level overrides onto ScheduleSettings defaults"""
        overrides = overrides or {}
        return cls(
            monthly_charge=to_decimal(overrides.get('monthly_charge', 0)),
            default_frequency=overrides.get('default_frequency', settings.rent_default_frequency),
            lookback_periods=int(overrides.get('lookback_periods', settings.rent_lookback_periods)),
            default_roll_up_length=int(overrides.get('roll_up_length', settings.default_roll_up_length)),
            adjustment_threshold=to_decimal(settings.adjustment_threshold),
            settled_threshold=to_decimal(settings.settled_threshold),
            max_period_search=settings.max_period_search,
            preserve_paid_entries=bool(overrides.get('preserve_paid_entries', settings.preserve_paid_entries))
        )
