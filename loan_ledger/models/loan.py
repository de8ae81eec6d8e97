"""Loan and payment models."""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal

from loan_ledger.exceptions import InvalidEntityStateError
from loan_ledger.models.enums import LoanStatus, PaymentKind, PaymentType


@dataclass(frozen=True)
class Payment:
    """A payment registered against a loan. Immutable once created."""

    payment_id: str
    loan_id: str
    amount: Decimal
    date: datetime
    installment_number: int
    kind: PaymentKind
    receipt_id: str | None = None
    created_at: datetime | None = None


@dataclass
class Loan:
    """Loan contract.

    ``status`` is a cache of the value derived from the loan's payment history;
    it is recomputed every time the loan is viewed.
    """

    loan_id: str
    client_id: str
    amount: Decimal  # Principal
    interest_rate: Decimal  # Monthly rate in percent (e.g., 25 for 25%)
    total_amount: Decimal | None  # Amount owed including interest
    payment_type: PaymentType
    installments: int | None
    installment_amount: Decimal | None
    due_date: date | None
    status: LoanStatus = LoanStatus.ACTIVE
    end_date: date | None = None
    start_date: date | None = None
    notes: str | None = None
    interest_amount: Decimal | None = None
    number_of_installments: int | None = None
    created_at: datetime | None = None
    payments: list[Payment] = field(default_factory=list)

    @property
    def expected_installments(self) -> int:
        """Configured installment (or day) count, 0 when unset."""
        return self.installments or self.number_of_installments or 0

    def with_defaults(self, today: date) -> "Loan":
        """Copy with the insert defaults applied to missing values.

        Rate 0, total and installment amount equal to the principal, one
        installment and a start date of ``today``.
        """
        return replace(
            self,
            interest_rate=self.interest_rate if self.interest_rate is not None else Decimal("0"),
            total_amount=self.total_amount if self.total_amount is not None else self.amount,
            installments=self.installments if self.installments is not None else 1,
            installment_amount=self.installment_amount if self.installment_amount is not None else self.amount,
            start_date=self.start_date or today,
        )

    def validate(self) -> None:
        """Check origination invariants.

        Raises
        ------
        InvalidEntityStateError
            If the amounts are negative or interest is charged but the total
            does not cover the principal.
        """
        if self.amount < 0:
            raise InvalidEntityStateError(f"Loan {self.loan_id} has a negative amount")
        if self.total_amount is not None and self.interest_rate > 0 and self.total_amount < self.amount:
            raise InvalidEntityStateError(
                f"Loan {self.loan_id} total {self.total_amount} is below principal {self.amount}"
            )
