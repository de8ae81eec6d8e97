"""Tests for loan origination rules."""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from conftest import TODAY

from loan_ledger.engine import default_due_date, originate_loan
from loan_ledger.models import LoanStatus, PaymentType


def originate(payment_type: PaymentType, **kwargs):
    params = dict(
        loan_id="loan-001",
        client_id="client-001",
        amount="1000",
        interest_rate="25",
        payment_type=payment_type,
        today=TODAY,
    )
    params.update(kwargs)
    return originate_loan(**params)


class TestInstallmentOrigination:
    """Tests for installment loans."""

    def test_total_includes_interest(self) -> None:
        """Test total = amount * (1 + rate) split evenly."""
        loan = originate(PaymentType.INSTALLMENTS, installments=4)

        assert loan.total_amount == Decimal("1250.00")
        assert loan.interest_amount == Decimal("250.00")
        assert loan.installments == 4
        assert loan.number_of_installments == 4
        assert loan.installment_amount == Decimal("312.50")
        assert loan.due_date == TODAY + timedelta(days=30)
        assert loan.end_date == loan.due_date
        assert loan.status == LoanStatus.ACTIVE

    def test_installment_amount_rounded(self) -> None:
        """Test rounding of uneven splits to centavos."""
        loan = originate(PaymentType.INSTALLMENTS, amount="100", interest_rate="0", installments=3)

        assert loan.total_amount == Decimal("100.00")
        assert loan.installment_amount == Decimal("33.33")

    def test_custom_installment_values(self) -> None:
        """Test that typed installment values define the total."""
        loan = originate(PaymentType.INSTALLMENTS, installments=3, installment_values=["400", "400", "500"])

        assert loan.total_amount == Decimal("1300.00")
        assert loan.interest_amount == Decimal("300.00")
        assert loan.installment_amount == Decimal("433.33")

    def test_custom_values_count_must_match(self) -> None:
        """Test that one value per installment is required."""
        with pytest.raises(ValueError, match="Expected 3 installment values"):
            originate(PaymentType.INSTALLMENTS, installments=3, installment_values=["500", "500"])

    def test_custom_due_date(self) -> None:
        """Test that an operator-chosen due date is kept."""
        loan = originate(PaymentType.INSTALLMENTS, installments=2, due_date=date(2025, 5, 15))

        assert loan.due_date == date(2025, 5, 15)


class TestInterestOnlyOrigination:
    """Tests for interest-only loans."""

    def test_single_term(self) -> None:
        """Test interest added to principal with one installment."""
        loan = originate(PaymentType.INTEREST_ONLY, installments=6)

        assert loan.interest_amount == Decimal("250.00")
        assert loan.total_amount == Decimal("1250.00")
        assert loan.installments == 1
        assert loan.installment_amount == Decimal("1250.00")
        assert loan.due_date == TODAY + timedelta(days=30)

    def test_values_rejected(self) -> None:
        """Test that typed installment values are refused."""
        with pytest.raises(ValueError, match="installment loans only"):
            originate(PaymentType.INTEREST_ONLY, installment_values=["1250"])


class TestDailyOrigination:
    """Tests for daily loans."""

    def test_day_count_sets_due_date(self) -> None:
        """Test that a daily loan ends after its day count."""
        loan = originate(PaymentType.DIARIO, amount="300", interest_rate="20", installments=20)

        assert loan.total_amount == Decimal("360.00")
        assert loan.installments == 20
        assert loan.installment_amount == Decimal("18.00")
        assert loan.due_date == TODAY + timedelta(days=20)

    def test_due_date_argument_ignored(self) -> None:
        """Test that the day count always wins over a chosen date."""
        loan = originate(PaymentType.DIARIO, installments=10, due_date=date(2025, 12, 1))

        assert loan.due_date == TODAY + timedelta(days=10)


class TestOriginationValidation:
    """Tests for invalid form values."""

    @pytest.mark.parametrize(
        ("kwargs", "match"),
        [
            ({"amount": "0"}, "amount must be positive"),
            ({"interest_rate": "-1"}, "cannot be negative"),
            ({"installments": 0}, "at least 1"),
        ],
    )
    def test_rejected(self, kwargs: dict, match: str) -> None:
        """Test the guard rails."""
        with pytest.raises(ValueError, match=match):
            originate(PaymentType.INSTALLMENTS, **kwargs)

    def test_created_at_defaults_to_midnight(self) -> None:
        """Test the default creation timestamp."""
        loan = originate(PaymentType.INSTALLMENTS)

        assert loan.created_at == datetime(2025, 3, 10)
        assert loan.start_date == TODAY

    def test_default_due_date(self) -> None:
        """Test suggested due dates per modality."""
        assert default_due_date(PaymentType.INTEREST_ONLY, TODAY) == TODAY + timedelta(days=30)
        assert default_due_date(PaymentType.DIARIO, TODAY, 15) == TODAY + timedelta(days=15)
