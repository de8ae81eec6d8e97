"""Loan origination: totals, installment amounts and due dates per modality."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from loan_ledger.models import Loan, LoanStatus, PaymentType

CENTS = Decimal("0.01")

# Suggested term for installments and interest-only loans
DEFAULT_TERM_DAYS = 30


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def default_due_date(payment_type: PaymentType, today: date, installments: int = 1) -> date:
    """Due date suggested at origination.

    Daily loans end after one day per installment; the other modalities are
    due ``DEFAULT_TERM_DAYS`` after origination.
    """
    if payment_type == PaymentType.DIARIO:
        return today + timedelta(days=installments)
    return today + timedelta(days=DEFAULT_TERM_DAYS)


def originate_loan(
    loan_id: str,
    client_id: str,
    amount: Decimal | int | str,
    interest_rate: Decimal | int | str,
    payment_type: PaymentType,
    today: date,
    installments: int = 1,
    due_date: date | None = None,
    installment_values: Sequence[Decimal | int | str] | None = None,
    notes: str | None = None,
    created_at: datetime | None = None,
) -> Loan:
    """Build a new ``active`` loan from the origination form values.

    ``installments`` loans charge the monthly rate once over the whole
    principal, or take the sum of ``installment_values`` as the total when
    the operator types each installment. ``interest_only`` and ``diario``
    loans add ``amount * rate / 100`` of interest to the principal.

    Parameters
    ----------
    loan_id : str
        Identifier for the new loan.
    client_id : str
        Borrower.
    amount : Decimal | int | str
        Principal; must be positive.
    interest_rate : Decimal | int | str
        Monthly rate in percent (25 for 25%).
    payment_type : PaymentType
        Modality.
    today : date
        Origination date.
    installments : int
        Installment count for ``installments`` loans, day count for
        ``diario`` loans. Ignored for ``interest_only`` loans, which have one.
    due_date : date | None
        Due date for ``installments`` and ``interest_only`` loans (default:
        30 days out). Daily loans always end after their day count.
    installment_values : Sequence | None
        Per-installment amounts typed by the operator; ``installments`` only.
    notes : str | None
        Free-form notes.
    created_at : datetime | None
        Creation timestamp (default: midnight of ``today``).

    Returns
    -------
    Loan
        Loan ready to be stored.

    Raises
    ------
    ValueError
        If the amount, rate, count or installment values are invalid.
    """
    amount = Decimal(str(amount))
    rate = Decimal(str(interest_rate))
    if amount <= 0:
        raise ValueError(f"Loan amount must be positive, got {amount}")
    if rate < 0:
        raise ValueError(f"Interest rate cannot be negative, got {rate}")

    if payment_type == PaymentType.INTEREST_ONLY:
        count = 1
    else:
        count = installments
        if count < 1:
            raise ValueError(f"Installment count must be at least 1, got {count}")
    if installment_values is not None and payment_type != PaymentType.INSTALLMENTS:
        raise ValueError("Per-installment values apply to installment loans only")

    if payment_type == PaymentType.INSTALLMENTS:
        if installment_values is not None:
            values = [Decimal(str(v)) for v in installment_values]
            if len(values) != count:
                raise ValueError(f"Expected {count} installment values, got {len(values)}")
            if any(v < 0 for v in values):
                raise ValueError("Installment values cannot be negative")
            total = _money(sum(values, Decimal("0")))
        else:
            total = _money(amount * (1 + rate / 100))
        # A zero total falls back to the principal
        total = total or amount
        interest = total - amount
    else:
        interest = _money(amount * rate / 100)
        total = amount + interest

    if payment_type == PaymentType.DIARIO or due_date is None:
        due_date = default_due_date(payment_type, today, count)

    return Loan(
        loan_id=loan_id,
        client_id=client_id,
        amount=amount,
        interest_rate=rate,
        total_amount=total,
        payment_type=payment_type,
        installments=count,
        installment_amount=_money(total / count),
        due_date=due_date,
        status=LoanStatus.ACTIVE,
        end_date=due_date,
        start_date=today,
        notes=notes,
        interest_amount=interest,
        number_of_installments=count,
        created_at=created_at or datetime.combine(today, time.min),
    )
