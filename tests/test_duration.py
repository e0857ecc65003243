"""
Tests for the duration calculator
"""

from decimal import Decimal
from datetime import date

from loan_schedule.duration import calculate_schedule_duration, last_due_date, FALLBACK_DURATION
from loan_schedule.models import GenerationOptions, InterestAlignment, Loan, Product


def make_loan(**overrides):
    fields = dict(id="L1", principal_amount=Decimal('10000'), start_date=date(2024, 1, 15), duration=12)
    fields.update(overrides)
    return Loan(**fields)


def make_product(**overrides):
    fields = dict(id="P1", period="Monthly", interest_rate=Decimal('12'))
    fields.update(overrides)
    return Product(**fields)


class TestLastDueDate:
    """Test the due date of the final period"""

    def test_arrears(self):
        assert last_due_date(date(2024, 1, 15), "Monthly", 3) == date(2024, 4, 15)

    def test_advance(self):
        assert last_due_date(date(2024, 1, 15), "Monthly", 3, paid_in_advance=True) == date(2024, 3, 15)

    def test_monthly_first(self):
        assert last_due_date(date(2024, 1, 15), "Monthly", 3, monthly_first=True) == date(2024, 4, 1)


class TestDurationPolicies:
    """Test the three duration policies"""

    def test_nominal_duration(self):
        result = calculate_schedule_duration(
            make_loan(), make_product(), GenerationOptions(as_of=date(2024, 6, 1)), Decimal('10000')
        )
        assert result.duration == 12
        assert result.is_settled_loan is False
        assert result.end_date == date(2024, 6, 1)

    def test_explicit_duration_wins(self):
        result = calculate_schedule_duration(
            make_loan(), make_product(), GenerationOptions(duration=3), Decimal('10000')
        )
        assert result.duration == 3

    def test_product_default_duration(self):
        result = calculate_schedule_duration(
            make_loan(duration=None), make_product(default_duration=24), GenerationOptions(), Decimal('1')
        )
        assert result.duration == 24

    def test_settled_loan(self):
        """Covers start to end date exactly: 91 days is 3 monthly periods"""
        result = calculate_schedule_duration(
            make_loan(), make_product(), GenerationOptions(end_date=date(2024, 4, 15)), Decimal('0')
        )
        assert result.is_settled_loan is True
        assert result.duration == 3
        assert result.end_date == date(2024, 4, 15)

    def test_settled_threshold(self):
        result = calculate_schedule_duration(
            make_loan(), make_product(), GenerationOptions(end_date=date(2024, 4, 15)), Decimal('0.02')
        )
        assert result.is_settled_loan is False

    def test_settled_floor_of_one(self):
        result = calculate_schedule_duration(
            make_loan(), make_product(), GenerationOptions(end_date=date(2024, 1, 15)), Decimal('0')
        )
        assert result.duration == 1

    def test_auto_extend_adds_future_due_date(self):
        """Last due 2024-04-15 is not after the end date, so one more period"""
        result = calculate_schedule_duration(
            make_loan(auto_extend=True), make_product(),
            GenerationOptions(end_date=date(2024, 4, 15)), Decimal('10000')
        )
        assert result.duration == 4
        assert result.is_settled_loan is False

    def test_auto_extend_already_covered(self):
        """100 days needs 4 periods; 2024-05-15 is after the end date"""
        result = calculate_schedule_duration(
            make_loan(auto_extend=True), make_product(),
            GenerationOptions(end_date=date(2024, 4, 24)), Decimal('10000')
        )
        assert result.duration == 4

    def test_auto_extend_never_settles(self):
        result = calculate_schedule_duration(
            make_loan(auto_extend=True), make_product(),
            GenerationOptions(end_date=date(2024, 4, 24)), Decimal('0')
        )
        assert result.is_settled_loan is False

    def test_auto_extend_monthly_first(self):
        """Due dates fall on the 1st: 2024-04-01 precedes the end date"""
        product = make_product(interest_alignment=InterestAlignment.MONTHLY_FIRST)
        result = calculate_schedule_duration(
            make_loan(auto_extend=True), product,
            GenerationOptions(end_date=date(2024, 4, 10)), Decimal('10000')
        )
        assert result.duration == 4

    def test_end_date_with_outstanding_uses_nominal(self):
        result = calculate_schedule_duration(
            make_loan(duration=None), make_product(),
            GenerationOptions(end_date=date(2024, 4, 15)), Decimal('10000')
        )
        assert result.duration == FALLBACK_DURATION

    def test_minimum_one_period(self):
        result = calculate_schedule_duration(
            make_loan(duration=None), make_product(), GenerationOptions(), Decimal('10000')
        )
        assert result.duration == 1
