"""
Tests for the interest-only (balloon) scheduler
"""

import pytest
from decimal import Decimal
from datetime import date

from loan_schedule.models import (
    AdjustmentType, GenerationOptions, InterestAlignment, Loan, Product, SchedulerConfig,
    Transaction, TransactionType
)
from loan_schedule.repository import StorageScheduleRepository
from loan_schedule.schedulers import InterestOnlyScheduler
from loan_schedule.schedulers.interest_only import CAPITAL_REPAYMENT_REASON, FURTHER_ADVANCE_REASON
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
    return Product(id="P1", scheduler_type="interest_only", period="Monthly", interest_rate=Decimal('12'))


@pytest.fixture
def scheduler(repository):
    return InterestOnlyScheduler(repository=repository)


def further_advance(repository, on, gross):
    repository.save_transaction(Transaction(
        "D1", "L1", TransactionType.DISBURSEMENT, on, gross - Decimal('100'), gross_amount=gross
    ))


def capital_repayment(repository, on, principal, tx_id="R1"):
    repository.save_transaction(Transaction(
        tx_id, "L1", TransactionType.REPAYMENT, on, principal, principal_applied=principal
    ))


class TestArrears:
    """Test interest in arrears with a balloon"""

    def test_balloon_shape(self, scheduler, loan, product):
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))
        assert len(result.schedule) == 6
        assert all(e.principal_amount == 0 for e in result.schedule[:-1])
        assert result.schedule[-1].principal_amount == Decimal('10000.00')
        assert result.schedule[-1].balance == Decimal('0.00')
        assert all(e.balance == Decimal('10000.00') for e in result.schedule[:-1])
        assert result.schedule[0].interest_amount == Decimal('101.92')

    def test_balloon_tracks_outstanding(self, repository, scheduler, loan, product):
        further_advance(repository, date(2024, 3, 1), Decimal('2000'))
        capital_repayment(repository, date(2024, 5, 20), Decimal('500'))
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))
        assert all(e.principal_amount == 0 for e in result.schedule[:-1])
        assert result.schedule[-1].principal_amount == Decimal('11500.00')

    def test_mid_period_advance_segmented(self, repository, scheduler, loan, product):
        """15 days on 10000 and 14 days on 12000 in the February period"""
        further_advance(repository, date(2024, 3, 1), Decimal('2000'))
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))
        assert result.schedule[1].interest_amount == Decimal('104.55')
        assert result.schedule[1].balance == Decimal('12000.00')
        assert not any(e.is_adjustment_entry for e in result.schedule)

    def test_settled_loan_truncated(self, repository, scheduler, loan, product):
        capital_repayment(repository, date(2024, 3, 1), Decimal('10000'))
        end = date(2024, 3, 20)
        result = scheduler.generate_schedule(loan, product, GenerationOptions(end_date=end, as_of=end))
        assert [e.due_date for e in result.schedule] == [date(2024, 2, 15), date(2024, 3, 15)]


class TestAdvance:
    """Test interest paid in advance and same-day adjustments"""

    def test_due_at_period_start(self, scheduler, loan, product):
        product.interest_paid_in_advance = True
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))
        assert result.schedule[0].due_date == START
        assert result.schedule[-1].due_date == date(2024, 6, 15)
        assert result.schedule[-1].principal_amount == Decimal('10000.00')

    def test_further_advance_debit(self, repository, scheduler, loan, product):
        product.interest_paid_in_advance = True
        further_advance(repository, date(2024, 3, 1), Decimal('2000'))
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))

        adjustments = [e for e in result.schedule if e.is_adjustment_entry]
        assert len(adjustments) == 1
        adjustment = adjustments[0]
        assert adjustment.due_date == date(2024, 3, 1)
        assert adjustment.installment_number == 0
        assert adjustment.principal_amount == Decimal('0.00')
        assert adjustment.interest_amount == Decimal('9.21')
        assert adjustment.calculation_days == 14
        assert adjustment.adjustment_type == AdjustmentType.DEBIT
        assert adjustment.adjustment_reason == FURTHER_ADVANCE_REASON

        # Billed up front on the opening principal, then inserted in date order
        assert result.schedule[1].interest_amount == Decimal('95.34')
        assert [e.due_date for e in result.schedule[:4]] == [
            date(2024, 1, 15), date(2024, 2, 15), date(2024, 3, 1), date(2024, 3, 15)
        ]
        assert result.schedule[3].calculation_principal_start == Decimal('12000.00')

    def test_capital_repayment_credit(self, repository, scheduler, loan, product):
        product.interest_paid_in_advance = True
        capital_repayment(repository, date(2024, 4, 1), Decimal('5000'))
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))

        adjustment = next(e for e in result.schedule if e.is_adjustment_entry)
        assert adjustment.interest_amount == Decimal('-23.01')
        assert adjustment.total_due == Decimal('-23.01')
        assert adjustment.adjustment_type == AdjustmentType.CREDIT
        assert adjustment.adjustment_reason == CAPITAL_REPAYMENT_REASON
        assert adjustment.balance == Decimal('5000.00')

    def test_repayment_on_due_date_billed_in_period(self, repository, scheduler, loan, product):
        """A repayment on a due date lowers that period's charge instead of adjusting"""
        product.interest_paid_in_advance = True
        capital_repayment(repository, date(2024, 3, 15), Decimal('5000'))
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))
        assert not any(e.is_adjustment_entry for e in result.schedule)

        entry = next(e for e in result.schedule if e.due_date == date(2024, 3, 15))
        assert entry.calculation_principal_start == Decimal('5000.00')
        assert entry.interest_amount == Decimal('50.96')
        assert result.schedule[1].interest_amount == Decimal('95.34')

    def test_advance_on_due_date_billed_in_period(self, repository, scheduler, loan, product):
        product.interest_paid_in_advance = True
        further_advance(repository, date(2024, 3, 15), Decimal('2000'))
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))
        assert not any(e.is_adjustment_entry for e in result.schedule)

        entry = next(e for e in result.schedule if e.due_date == date(2024, 3, 15))
        assert entry.calculation_principal_start == Decimal('12000.00')
        assert entry.interest_amount == Decimal('122.30')

    def test_tiny_adjustment_dropped(self, repository, scheduler, loan, product):
        product.interest_paid_in_advance = True
        capital_repayment(repository, date(2024, 3, 14), Decimal('1'))
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))
        assert not any(e.is_adjustment_entry for e in result.schedule)

    def test_threshold_is_configurable(self, repository, loan, product):
        product.interest_paid_in_advance = True
        capital_repayment(repository, date(2024, 4, 1), Decimal('5000'))
        scheduler = InterestOnlyScheduler(config=SchedulerConfig(adjustment_threshold=Decimal('50')),
                                          repository=repository)
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))
        assert not any(e.is_adjustment_entry for e in result.schedule)

    def test_monthly_first_adjustment_uses_calendar_month(self, repository, scheduler, loan, product):
        product.interest_paid_in_advance = True
        product.interest_alignment = InterestAlignment.MONTHLY_FIRST
        capital_repayment(repository, date(2024, 3, 11), Decimal('5000'))
        result = scheduler.generate_schedule(loan, product, GenerationOptions(as_of=AS_OF))

        adjustment = next(e for e in result.schedule if e.is_adjustment_entry)
        # 2024-03-11 to 2024-04-01
        assert adjustment.calculation_days == 21
        assert adjustment.interest_amount == Decimal('-34.52')

    def test_adjustments_kept_out_of_numbering(self, repository, scheduler, loan, product):
        product.interest_paid_in_advance = True
        further_advance(repository, date(2024, 3, 1), Decimal('2000'))
        result = scheduler.generate_schedule(
            loan, product, GenerationOptions(as_of=AS_OF, preserve_paid_entries=True)
        )
        numbered = [e.installment_number for e in result.schedule if not e.is_adjustment_entry]
        assert numbered == [1, 2, 3, 4, 5, 6]
