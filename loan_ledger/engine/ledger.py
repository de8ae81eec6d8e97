"""Loan lifecycle and balance-reconciliation rules.

Every function here is pure: it takes a loan, the loan's confirmed records
(payments or receipts, whichever the caller treats as canonical) and, where
needed, the current date. Nothing is persisted and nothing raises on missing
inputs; absent amounts count as zero and an absent due date never defaults.

Records only need an ``amount`` attribute. A ``kind`` attribute equal to
``PaymentKind.FULL`` marks a settlement; records without one (e.g. bare
receipts) are never settlements.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Sequence

from loan_ledger.models import Loan, LoanStatus, PaymentKind, PaymentType

ZERO = Decimal("0")


@dataclass(frozen=True)
class LedgerEntry:
    """A confirmed-paid record as seen by the engine."""

    amount: Decimal
    kind: PaymentKind = PaymentKind.INTEREST_ONLY
    date: datetime | None = None
    installment_number: int | None = None
    source_id: str | None = None  # Payment or receipt id


@dataclass(frozen=True)
class InstallmentProgress:
    paid: int
    expected: int

    @property
    def label(self) -> str:
        """Progress display, e.g. ``3/10 parcelas``."""
        return f"{self.paid}/{self.expected} parcelas"


@dataclass(frozen=True)
class LoanSummary:
    """Derived lifecycle state and financial summary of one loan."""

    loan_id: str
    status: LoanStatus
    previous_status: LoanStatus
    total_paid: Decimal
    balance_due: Decimal
    progress: InstallmentProgress

    @property
    def status_changed(self) -> bool:
        return self.status != self.previous_status


def _amount(record: Any) -> Decimal:
    value = getattr(record, "amount", None)
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _is_settlement(record: Any) -> bool:
    return getattr(record, "kind", None) == PaymentKind.FULL


def _total_amount(loan: Loan) -> Decimal:
    return loan.total_amount if loan.total_amount is not None else ZERO


def compute_total_paid(records: Iterable[Any]) -> Decimal:
    """Sum ``amount`` over all records.

    Call it against one canonical record source only; mixing payments and
    receipts double counts.
    """
    return sum((_amount(r) for r in records), ZERO)


def is_overdue(loan: Loan, today: date) -> bool:
    """Whether ``today`` is strictly after the loan's due date."""
    if loan.due_date is None:
        return False
    return today > loan.due_date


def is_settled(loan: Loan, records: Sequence[Any]) -> bool:
    """Whether the records complete the loan under its payment modality."""
    if loan.payment_type == PaymentType.DIARIO:
        # Open-ended: either an explicit settlement or the configured day count
        expected = loan.expected_installments
        return any(_is_settlement(r) for r in records) or (expected > 0 and len(records) >= expected)

    if loan.payment_type == PaymentType.INTEREST_ONLY:
        # Interest payments never retire principal; only a covering settlement does
        total = _total_amount(loan)
        return any(_is_settlement(r) and _amount(r) >= total for r in records)

    expected = loan.expected_installments
    if loan.total_amount is not None and compute_total_paid(records) >= loan.total_amount:
        return True
    return expected > 0 and len(records) >= expected


def compute_loan_status(loan: Loan, records: Sequence[Any], today: date) -> LoanStatus:
    """Derive the lifecycle status of a loan.

    A loan whose cached status is already ``completed`` stays completed,
    whatever the records or date; partially loaded payment data must not
    reopen it.

    Parameters
    ----------
    loan : Loan
        Loan with its cached status.
    records : Sequence[Any]
        All confirmed records for the loan.
    today : date
        Current date. A loan is defaulted only when ``today > due_date``.

    Returns
    -------
    LoanStatus
        ``completed``, ``defaulted`` or ``active``.
    """
    if loan.status == LoanStatus.COMPLETED:
        return LoanStatus.COMPLETED
    records = list(records or [])
    if is_settled(loan, records):
        return LoanStatus.COMPLETED
    if is_overdue(loan, today):
        return LoanStatus.DEFAULTED
    return LoanStatus.ACTIVE


def compute_balance_due(loan: Loan, records: Iterable[Any]) -> Decimal:
    """Outstanding balance shown to the operator.

    Interest-only loans always show the full total; principal is settled
    separately at payoff.
    """
    total = _total_amount(loan)
    if loan.payment_type == PaymentType.INTEREST_ONLY:
        return total
    return total - compute_total_paid(records or [])


def compute_installment_progress(loan: Loan, records: Sequence[Any]) -> InstallmentProgress:
    return InstallmentProgress(paid=len(records or []), expected=loan.expected_installments)


def summarize_loan(loan: Loan, records: Sequence[Any], today: date) -> LoanSummary:
    """Compute status, totals and progress in one pass."""
    records = list(records or [])
    return LoanSummary(
        loan_id=loan.loan_id,
        status=compute_loan_status(loan, records, today),
        previous_status=loan.status,
        total_paid=compute_total_paid(records),
        balance_due=compute_balance_due(loan, records),
        progress=compute_installment_progress(loan, records),
    )


def classify_payment(loan: Loan, amount: Decimal, settle: bool = False) -> PaymentKind:
    """Decide the record type of a new payment.

    Installment payments are always full payments. Interest-only payments
    become settlements only when they cover the total. Daily payments are
    settlements only when the operator explicitly settles the loan.
    """
    if loan.payment_type == PaymentType.INSTALLMENTS:
        return PaymentKind.FULL
    if loan.payment_type == PaymentType.INTEREST_ONLY:
        if amount >= _total_amount(loan):
            return PaymentKind.FULL
        return PaymentKind.INTEREST_ONLY
    return PaymentKind.FULL if settle else PaymentKind.INTEREST_ONLY


def rederive_daily_schedule(loan: Loan, amount: Decimal) -> dict[str, Any]:
    """Re-derive the day count of a daily loan from the latest payment amount.

    Returns the loan attribute changes (empty for other modalities or
    non-positive amounts).
    """
    if loan.payment_type != PaymentType.DIARIO or amount <= 0:
        return {}
    total = _total_amount(loan)
    if total <= 0:
        return {}
    return {
        "installments": math.ceil(total / amount),
        "installment_amount": amount,
    }
