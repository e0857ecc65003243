"""
Tests for the fixed charge scheduler
"""

import pytest
from decimal import Decimal
from datetime import date

from loan_schedule.models import GenerationOptions, InterestAlignment, Loan, Product, SchedulerConfig, Transaction, TransactionType
from loan_schedule.repository import StorageScheduleRepository
from loan_schedule.schedulers import FixedChargeScheduler
from loan_schedule.storage import InMemoryStorage


START = date(2024, 1, 15)
AS_OF = date(2024, 1, 15)


@pytest.fixture
def repository():
    return StorageScheduleRepository(InMemoryStorage())


@pytest.fixture
def loan(repository):
    loan = Loan(id="L1", principal_amount=Decimal('10000'), start_date=START, duration=6, product_id="P1")
    repository.save_loan(loan)
    repository.save_transaction(Transaction("D0", "L1", TransactionType.DISBURSEMENT, START, Decimal('10000')))
    return loan


@pytest.fixture
def product():
    return Product(id="P1", scheduler_type="fixed_charge", period="Monthly",
                   interest_rate=Decimal('12'), monthly_charge=Decimal('50'))


@pytest.fixture
def scheduler(repository):
    return FixedChargeScheduler(repository=repository)


class TestFixedCharge:
    """Test flat charges regardless of balance"""

    def test_charge_every_period(self, scheduler, loan, product):
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))
        assert len(result.schedule) == 6
        assert all(e.interest_amount == Decimal('50.00') for e in result.schedule)
        assert all(e.principal_amount == 0 for e in result.schedule)
        assert all(e.balance == Decimal('10000.00') for e in result.schedule)
        assert result.schedule[0].due_date == date(2024, 2, 15)
        assert result.schedule[-1].due_date == date(2024, 7, 15)

    def test_charge_ignores_repayments(self, repository, scheduler, loan, product):
        repository.save_transaction(Transaction(
            "R1", "L1", TransactionType.REPAYMENT, date(2024, 3, 1), Decimal('5000'),
            principal_applied=Decimal('5000')
        ))
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))
        assert all(e.interest_amount == Decimal('50.00') for e in result.schedule)

    def test_loan_totals(self, repository, scheduler, loan, product):
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))
        assert result.summary.total_interest == Decimal('300.00')
        assert result.summary.total_repayable == Decimal('10300.00')
        stored = repository.get_loan("L1")
        assert stored.interest_type == "Fixed Charge"
        assert stored.interest_rate == Decimal('0')
        assert stored.total_interest == Decimal('300.00')

    def test_charge_from_config(self, repository, loan, product):
        product.monthly_charge = None
        scheduler = FixedChargeScheduler(config=SchedulerConfig(monthly_charge=Decimal('75')), repository=repository)
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))
        assert result.schedule[0].interest_amount == Decimal('75.00')

    def test_monthly_first_ignored(self, scheduler, loan, product):
        product.interest_alignment = InterestAlignment.MONTHLY_FIRST
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))
        assert result.schedule[0].due_date == date(2024, 2, 15)
        assert len(result.schedule) == 6
