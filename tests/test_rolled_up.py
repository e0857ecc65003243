"""
Tests for the rolled-up interest scheduler
"""

import pytest
from decimal import Decimal
from datetime import date

from loan_schedule.models import GenerationOptions, Loan, Product, Transaction, TransactionType
from loan_schedule.repository import StorageScheduleRepository
from loan_schedule.schedulers import RolledUpScheduler
from loan_schedule.storage import InMemoryStorage


START = date(2024, 1, 15)
AS_OF = date(2024, 1, 15)


@pytest.fixture
def repository():
    return StorageScheduleRepository(InMemoryStorage())


@pytest.fixture
def loan(repository):
    loan = Loan(id="L1", principal_amount=Decimal('10000'), start_date=START, duration=3, product_id="P1")
    repository.save_loan(loan)
    repository.save_transaction(Transaction("D0", "L1", TransactionType.DISBURSEMENT, START, Decimal('10000')))
    return loan


@pytest.fixture
def product():
    return Product(id="P1", scheduler_type="rolled_up", period="Monthly", interest_rate=Decimal('12'))


@pytest.fixture
def scheduler(repository):
    return RolledUpScheduler(repository=repository)


class TestRolledUp:
    """Test the single balloon entry"""

    def test_single_balloon(self, scheduler, loan, product):
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))
        assert len(result.schedule) == 1
        entry = result.schedule[0]
        assert entry.due_date == date(2024, 4, 15)
        assert entry.principal_amount == Decimal('10000.00')
        assert entry.interest_amount == Decimal('299.18')
        assert entry.total_due == Decimal('10299.18')
        assert entry.calculation_days == 91
        assert entry.is_extension_period is False

    def test_capital_events_segmented(self, repository, scheduler, loan, product):
        """A 4000 repayment on 2024-03-01 accrues at 6000 from that day"""
        repository.save_transaction(Transaction(
            "R1", "L1", TransactionType.REPAYMENT, date(2024, 3, 1), Decimal('4000'),
            principal_applied=Decimal('4000')
        ))
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))
        entry = result.schedule[0]
        assert entry.principal_amount == Decimal('6000.00')
        assert entry.interest_amount == Decimal('240.00')


class TestExtensions:
    """Test interest-only extension periods after the term"""

    def test_extensions_to_end_date(self, scheduler, loan, product):
        end = date(2024, 6, 20)
        result = scheduler.generate_schedule(loan, product, GenerationOptions(end_date=end, as_of=end))
        assert [e.due_date for e in result.schedule] == [
            date(2024, 4, 15), date(2024, 5, 15), date(2024, 6, 15), date(2024, 7, 15)
        ]
        extensions = result.schedule[1:]
        assert all(e.is_extension_period for e in extensions)
        assert [e.installment_number for e in extensions] == [2, 3, 4]
        assert [e.interest_amount for e in extensions] == [
            Decimal('98.63'), Decimal('101.92'), Decimal('98.63')
        ]
        assert all(e.principal_amount == 0 for e in extensions)
        assert result.summary.total_interest == Decimal('598.36')

    def test_extensions_leave_roll_up_alone(self, scheduler, loan, product):
        plain = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))
        end = date(2024, 9, 1)
        extended = scheduler.generate_schedule(loan, product, GenerationOptions(end_date=end, as_of=end))
        assert extended.schedule[0].to_dict() == plain.schedule[0].to_dict()

    def test_no_extensions_before_term_end(self, scheduler, loan, product):
        end = date(2024, 3, 1)
        result = scheduler.generate_schedule(loan, product, GenerationOptions(end_date=end, as_of=end))
        assert len(result.schedule) == 1
