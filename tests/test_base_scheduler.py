"""
Tests for the base scheduler contract and its shared helpers
"""

import pytest
from decimal import Decimal
from datetime import date

from loan_schedule.base import BaseScheduler
from loan_schedule.currency import ZERO
from loan_schedule.models import (
    EntryStatus, GenerationOptions, InterestAlignment, Loan, Product, ScheduleEntry,
    SchedulerConfig, Transaction, TransactionType
)
from loan_schedule.repository import StorageScheduleRepository
from loan_schedule.schedulers import FlatRateScheduler
from loan_schedule.storage import InMemoryStorage


START = date(2024, 1, 15)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def repository(storage):
    return StorageScheduleRepository(storage)


@pytest.fixture
def loan(repository):
    loan = Loan(id="L1", principal_amount=Decimal('10000'), start_date=START, duration=6,
                product_id="P1")
    repository.save_loan(loan)
    repository.save_transaction(Transaction(
        "D0", "L1", TransactionType.DISBURSEMENT, START, Decimal('10000')
    ))
    return loan


@pytest.fixture
def product():
    return Product(id="P1", scheduler_type="flat_rate", period="Monthly", interest_rate=Decimal('12'))


class TestContract:
    """Test the abstract strategy methods"""

    def test_generate_schedule_not_implemented(self, loan, product):
        with pytest.raises(NotImplementedError):
            BaseScheduler().generate_schedule(loan, product)

    def test_period_interest_not_implemented(self):
        with pytest.raises(NotImplementedError):
            BaseScheduler().calculate_period_interest(Decimal('1'), Decimal('1'), START, START)

    def test_principal_portion_defaults_to_zero(self):
        assert BaseScheduler().calculate_principal_portion(
            Decimal('1'), Decimal('1'), Decimal('1'), 1, 1, Decimal('1'), "Monthly"
        ) == ZERO

    def test_default_config(self):
        assert BaseScheduler().config == SchedulerConfig()


class TestHelpers:
    """Test ledger and entry helpers"""

    def test_principal_state(self):
        state = BaseScheduler().calculate_principal_state([
            Transaction("D0", "L1", TransactionType.DISBURSEMENT, START, Decimal('9500'),
                        gross_amount=Decimal('10000')),
            Transaction("R1", "L1", TransactionType.REPAYMENT, date(2024, 2, 1), Decimal('1200'),
                        principal_applied=Decimal('1000')),
            Transaction("R2", "L1", TransactionType.REPAYMENT, date(2024, 2, 2), Decimal('1200'),
                        principal_applied=Decimal('1000'), is_deleted=True),
        ])
        assert state.total_disbursed == Decimal('10000')
        assert state.total_capital_repaid == Decimal('1000')
        assert state.current_outstanding == Decimal('9000')

    def test_effective_rate(self, loan, product):
        scheduler = BaseScheduler()
        assert scheduler.get_effective_interest_rate(loan, product) == Decimal('12')
        loan.override_rate = Decimal('0')
        assert scheduler.get_effective_interest_rate(loan, product) == Decimal('0')

    def test_entry_rounding(self):
        entry = BaseScheduler().create_schedule_entry(
            installment_number=1, due_date=START, principal_amount=Decimal('100.005'),
            interest_amount=Decimal('0.004'), balance=Decimal('-3'), calculation_days=31,
            calculation_principal_start=Decimal('10000.125')
        )
        assert entry.principal_amount == Decimal('100.01')
        assert entry.interest_amount == Decimal('0.00')
        assert entry.total_due == Decimal('100.01')
        assert entry.balance == Decimal('0.00')
        assert entry.calculation_principal_start == Decimal('10000.13')
        assert entry.status == EntryStatus.PENDING

    def test_summary(self):
        entries = [
            BaseScheduler().create_schedule_entry(i, START, ZERO, Decimal('10.10'), ZERO, 30, ZERO)
            for i in range(1, 4)
        ]
        summary = BaseScheduler().calculate_summary(entries, Decimal('1000'), Decimal('25'))
        assert summary.total_interest == Decimal('30.30')
        assert summary.total_repayable == Decimal('1055.30')


class TestPeriodWindows:
    """Test accrual window construction"""

    def test_period_based(self, repository, loan, product):
        ctx = FlatRateScheduler(repository=repository).prepare_run(loan, product, GenerationOptions(duration=2))
        windows = FlatRateScheduler(repository=repository).period_windows(ctx)
        assert [(w.period_start, w.period_end) for w in windows] == [
            (date(2024, 1, 15), date(2024, 2, 15)),
            (date(2024, 2, 15), date(2024, 3, 15)),
        ]
        assert [w.days for w in windows] == [31, 29]

    def test_monthly_first_stub(self, repository, loan, product):
        product.interest_alignment = InterestAlignment.MONTHLY_FIRST
        scheduler = FlatRateScheduler(repository=repository)
        windows = scheduler.period_windows(scheduler.prepare_run(loan, product, GenerationOptions(duration=2)))
        assert [(w.number, w.period_start, w.period_end, w.is_stub) for w in windows] == [
            (1, date(2024, 1, 15), date(2024, 2, 1), True),
            (2, date(2024, 2, 1), date(2024, 3, 1), False),
            (3, date(2024, 3, 1), date(2024, 4, 1), False),
        ]

    def test_monthly_first_without_stub(self, repository, loan, product):
        product.interest_alignment = InterestAlignment.MONTHLY_FIRST
        loan.start_date = date(2024, 1, 1)
        scheduler = FlatRateScheduler(repository=repository)
        windows = scheduler.period_windows(scheduler.prepare_run(loan, product, GenerationOptions(duration=2)))
        assert [w.period_start for w in windows] == [date(2024, 2, 1), date(2024, 3, 1)]

    def test_unset_period_fails_fast(self, repository, loan, product):
        product.period = None
        with pytest.raises(ValueError, match="period"):
            FlatRateScheduler(repository=repository).generate_schedule(loan, product)


class TestPreservation:
    """Test preservation of paid entries across regeneration"""

    def test_paid_entries_kept(self, storage, repository, loan, product):
        scheduler = FlatRateScheduler(repository=repository)
        scheduler.generate_schedule(loan, product, GenerationOptions(as_of=START))

        # Reconciliation marks the first two instalments paid
        for row in storage.find("repayment_schedules", {"loan_id": "L1"}):
            if row["due_date"] in ("2024-02-15", "2024-03-15"):
                row["status"] = "Paid"
                row["interest_amount"] = "999.99"
                storage.save("repayment_schedules", row["id"], row)

        result = scheduler.generate_schedule(
            loan, product, GenerationOptions(as_of=date(2024, 4, 1), preserve_paid_entries=True)
        )
        assert [e.installment_number for e in result.schedule] == [1, 2, 3, 4, 5, 6]
        assert [e.status for e in result.schedule[:3]] == [EntryStatus.PAID, EntryStatus.PAID, EntryStatus.PENDING]
        assert result.schedule[0].interest_amount == Decimal('999.99')
        assert len({e.due_date for e in result.schedule}) == 6
        assert len(repository.fetch_existing_schedule("L1")) == 6

    def test_paid_entries_replaced_without_preservation(self, storage, repository, loan, product):
        scheduler = FlatRateScheduler(repository=repository)
        scheduler.generate_schedule(loan, product, GenerationOptions(as_of=START))
        for row in storage.find("repayment_schedules", {"loan_id": "L1"}):
            row["status"] = "Paid"
            storage.save("repayment_schedules", row["id"], row)

        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=date(2024, 4, 1)))
        assert all(e.status == EntryStatus.PENDING for e in result.schedule)

    def test_config_enables_preservation(self, storage, repository, loan, product):
        scheduler = FlatRateScheduler(config=SchedulerConfig(preserve_paid_entries=True), repository=repository)
        scheduler.generate_schedule(loan, product, GenerationOptions(as_of=START))
        row = storage.find("repayment_schedules", {"loan_id": "L1"})[0]
        row["status"] = "Paid"
        storage.save("repayment_schedules", row["id"], row)

        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=date(2025, 1, 1)))
        assert sum(1 for e in result.schedule if e.status == EntryStatus.PAID) == 1
