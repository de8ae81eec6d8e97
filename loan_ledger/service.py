"""Ledger service: payment registration, status refresh and cascade deletes."""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Sequence

from loan_ledger.config import LedgerSettings
from loan_ledger.engine import (
    LedgerEntry,
    LoanSummary,
    classify_payment,
    generate_receipt_number,
    originate_loan,
    rederive_daily_schedule,
    summarize_loan,
)
from loan_ledger.exceptions import (
    DuplicateReceiptNumberError,
    InvalidEntityStateError,
    LedgerError,
    PersistenceError,
    ReceiptGenerationError,
)
from loan_ledger.logging import ledger_context
from loan_ledger.models import Client, Loan, LoanStatus, Payment, PaymentKind, PaymentType, Receipt
from loan_ledger.receipts import ReceiptContext, render_receipt_text, whatsapp_link
from loan_ledger.reports import DashboardStats, Report, ReportFilter, build_report, dashboard_stats
from loan_ledger.store.base import LedgerRepository

logger = logging.getLogger(__name__)

# Display name of a loan or receipt whose client is gone
UNKNOWN_CLIENT = "Cliente desconhecido"


@dataclass
class PaymentResult:
    """Outcome of a registered payment."""

    payment: Payment
    receipt: Receipt
    summary: LoanSummary


@dataclass(frozen=True)
class CleanupStep:
    """A repository call still owed after a failed cascade.

    ``action`` names the repository method, ``target_id`` its argument.
    """

    action: str
    target_id: str


@dataclass
class CascadeResult:
    target_id: str
    completed: bool
    pending_cleanup: list[CleanupStep] = field(default_factory=list)
    error: str | None = None


class LedgerService:
    """Operations on the ledger that span several entities.

    Parameters
    ----------
    repository : LedgerRepository
        Backing store.
    settings : LedgerSettings | None
        Business settings; defaults apply when omitted.
    today : Callable[[], date] | None
        Clock used for overdue checks.
    now : Callable[[], datetime] | None
        Clock used for payment and receipt timestamps.
    rng : random.Random | None
        Source for receipt numbers.
    """

    def __init__(
        self,
        repository: LedgerRepository,
        settings: LedgerSettings | None = None,
        today: Callable[[], date] | None = None,
        now: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.repository = repository
        self.settings = settings or LedgerSettings()
        self.today = today or date.today
        self.now = now or datetime.now
        self.rng = rng or random.Random()

    # --- Registration ---

    def create_client(self, client: Client) -> Client:
        return self.repository.add_client(client)

    def create_loan(self, loan: Loan) -> Loan:
        """Validate and store a new loan with ``active`` status.

        Missing rate, total, installment count and amount, and start date get
        their insert defaults first, whatever the backing store.
        """
        loan = loan.with_defaults(self.today())
        loan.validate()
        return self.repository.add_loan(replace(loan, status=LoanStatus.ACTIVE))

    def originate_loan(
        self,
        client_id: str,
        amount: Decimal | int | str,
        interest_rate: Decimal | int | str,
        payment_type: PaymentType,
        installments: int = 1,
        due_date: date | None = None,
        installment_values: Sequence[Decimal | int | str] | None = None,
        notes: str | None = None,
    ) -> Loan:
        """Compute a new loan from the origination form values and store it.

        See :func:`loan_ledger.engine.originate_loan` for the rules per
        modality.

        Raises
        ------
        ValueError
            If the form values are invalid.
        ReferentialIntegrityError
            If the client does not exist.
        """
        loan = originate_loan(
            loan_id=str(uuid.uuid4()),
            client_id=client_id,
            amount=amount,
            interest_rate=interest_rate,
            payment_type=payment_type,
            today=self.today(),
            installments=installments,
            due_date=due_date,
            installment_values=installment_values,
            notes=notes,
            created_at=self.now(),
        )
        stored = self.create_loan(loan)
        logger.info(
            "Loan %s originated for client %s: %s total %s",
            stored.loan_id,
            client_id,
            payment_type.value,
            stored.total_amount,
            extra=ledger_context(client_id=client_id, loan_id=stored.loan_id),
        )
        return stored

    # --- Search ---

    def _client_names(self) -> dict[str, str]:
        return {c.client_id: c.name for c in self.repository.list_clients()}

    def search_clients(self, term: str = "") -> list[Client]:
        """Clients whose name, phone or email contains ``term``.

        Name and email match case-insensitively; phone matches as typed.
        """
        needle = term.lower()
        return [
            c for c in self.repository.list_clients()
            if needle in c.name.lower() or term in (c.phone or "") or needle in (c.email or "").lower()
        ]

    def search_loans(self, term: str = "", status: LoanStatus | None = None) -> list[Loan]:
        """Loans whose client name contains ``term``, optionally with one status."""
        names = self._client_names()
        needle = term.lower()
        return [
            loan for loan in self.repository.list_loans(status=status)
            if needle in names.get(loan.client_id, UNKNOWN_CLIENT).lower()
        ]

    def search_receipts(self, term: str = "") -> list[Receipt]:
        """Receipts whose client name or receipt number contains ``term``."""
        names = self._client_names()
        needle = term.lower()
        return [
            r for r in self.repository.list_receipts()
            if needle in names.get(r.client_id, UNKNOWN_CLIENT).lower() or needle in r.receipt_number.lower()
        ]

    # --- Confirmed records ---

    def confirmed_records(self, loan: Loan, receipts: Sequence[Receipt] | None = None) -> list[LedgerEntry]:
        """Return the loan's confirmed-paid records from the configured source.

        Receipt entries take their kind from the linked payment; a receipt
        whose payment is missing counts as an interest-only record.

        Parameters
        ----------
        loan : Loan
            Loan with its payments attached.
        receipts : Sequence[Receipt] | None
            Pre-fetched receipts of the loan. Fetched when omitted.
        """
        if self.settings.paid_source == "payments":
            return [
                LedgerEntry(
                    amount=p.amount,
                    kind=p.kind,
                    date=p.date,
                    installment_number=p.installment_number,
                    source_id=p.payment_id,
                )
                for p in loan.payments
            ]

        if receipts is None:
            receipts = self.repository.list_receipts(loan_id=loan.loan_id)
        payments = {p.payment_id: p for p in loan.payments}
        entries = []
        for receipt in receipts:
            payment = payments.get(receipt.payment_id)
            entries.append(
                LedgerEntry(
                    amount=receipt.amount,
                    kind=payment.kind if payment is not None else PaymentKind.INTEREST_ONLY,
                    date=receipt.date,
                    installment_number=payment.installment_number if payment is not None else None,
                    source_id=receipt.receipt_id,
                )
            )
        return entries

    def _records_by_loan(self, loans: Sequence[Loan]) -> dict[str, list[LedgerEntry]]:
        receipts_by_loan: dict[str, list[Receipt]] = {}
        if self.settings.paid_source == "receipts":
            for receipt in self.repository.list_receipts():
                receipts_by_loan.setdefault(receipt.loan_id, []).append(receipt)
        return {
            loan.loan_id: self.confirmed_records(loan, receipts_by_loan.get(loan.loan_id, []))
            for loan in loans
        }

    # --- Status refresh ---

    def _persist_status(self, loan_id: str, summary: LoanSummary) -> None:
        try:
            self.repository.update_loan(loan_id, {"status": summary.status})
        except PersistenceError as e:
            logger.error(
                "Could not persist status %s for loan %s: %s",
                summary.status.value,
                loan_id,
                e,
                extra=ledger_context(loan_id=loan_id),
            )
            raise
        logger.info(
            "Loan %s status %s -> %s",
            loan_id,
            summary.previous_status.value,
            summary.status.value,
            extra=ledger_context(loan_id=loan_id),
        )

    def _refresh(self, loan: Loan, records: Sequence[LedgerEntry]) -> LoanSummary:
        summary = summarize_loan(loan, records, self.today())
        if summary.status_changed:
            self._persist_status(loan.loan_id, summary)
        return summary

    def refresh_loan(self, loan_id: str) -> LoanSummary:
        """Recompute a loan's status and persist it when it changed.

        Safe to call repeatedly; an unchanged status causes no write.
        """
        loan = self.repository.get_loan(loan_id)
        return self._refresh(loan, self.confirmed_records(loan))

    def refresh_all(self) -> list[LoanSummary]:
        """Refresh every loan after a full refetch."""
        loans = self.repository.list_loans()
        records = self._records_by_loan(loans)
        summaries = [self._refresh(loan, records[loan.loan_id]) for loan in loans]
        changed = sum(1 for s in summaries if s.status_changed)
        logger.info("Refreshed %d loans, %d status changes", len(summaries), changed)
        return summaries

    def loan_summary(self, loan_id: str) -> LoanSummary:
        """Derived summary of a loan without persisting anything."""
        loan = self.repository.get_loan(loan_id)
        return summarize_loan(loan, self.confirmed_records(loan), self.today())

    # --- Payments ---

    def register_payment(
        self,
        loan_id: str,
        amount: Decimal | int | str,
        installment_number: int | None = None,
        settle: bool = False,
        paid_at: datetime | None = None,
    ) -> PaymentResult:
        """Record a payment, update the loan and issue its receipt.

        The payment, the loan update and the receipt are three separate
        writes. When the receipt cannot be created the payment stays recorded
        without one.

        Parameters
        ----------
        loan_id : str
            Loan being paid.
        amount : Decimal | int | str
            Amount paid; must be positive.
        installment_number : int | None
            Installment (or day) number; defaults to the next one.
        settle : bool
            For daily loans, mark this payment as the final settlement.
        paid_at : datetime | None
            Payment timestamp; defaults to now.

        Returns
        -------
        PaymentResult
            Stored payment, its receipt and the refreshed loan summary.

        Raises
        ------
        InvalidEntityStateError
            If the loan is already completed.
        ValueError
            If the amount is not positive.
        ReceiptGenerationError
            If the payment was recorded but no receipt could be created.
        """
        loan = self.repository.get_loan(loan_id)
        if loan.status == LoanStatus.COMPLETED:
            raise InvalidEntityStateError(f"Loan {loan_id} is already completed")
        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValueError(f"Payment amount must be positive, got {amount}")

        records = self.confirmed_records(loan)
        kind = classify_payment(loan, amount, settle=settle)
        paid_at = paid_at or self.now()

        payment = self.repository.add_payment(
            Payment(
                payment_id=str(uuid.uuid4()),
                loan_id=loan_id,
                amount=amount,
                date=paid_at,
                installment_number=installment_number or len(records) + 1,
                kind=kind,
            )
        )
        logger.info(
            "Payment %s of %s recorded for loan %s (%s)",
            payment.payment_id,
            amount,
            loan_id,
            kind.value,
            extra=ledger_context(loan_id=loan_id, payment_id=payment.payment_id),
        )

        # The receipt about to be issued confirms this payment
        records.append(
            LedgerEntry(
                amount=amount,
                kind=kind,
                date=paid_at,
                installment_number=payment.installment_number,
                source_id=payment.payment_id,
            )
        )
        changes: dict[str, Any] = rederive_daily_schedule(loan, amount)
        summary = summarize_loan(replace(loan, **changes), records, self.today())
        if summary.status_changed:
            changes["status"] = summary.status
        if changes:
            try:
                self.repository.update_loan(loan_id, changes)
            except PersistenceError as e:
                logger.error(
                    "Payment %s recorded but loan %s update failed: %s",
                    payment.payment_id,
                    loan_id,
                    e,
                    extra=ledger_context(loan_id=loan_id, payment_id=payment.payment_id),
                )
                raise

        receipt = self._issue_receipt(loan, payment)
        return PaymentResult(payment=payment, receipt=receipt, summary=summary)

    def _issue_receipt(self, loan: Loan, payment: Payment) -> Receipt:
        attempts = self.settings.receipt_number_attempts
        for attempt in range(1, attempts + 1):
            receipt = Receipt(
                receipt_id=str(uuid.uuid4()),
                client_id=loan.client_id,
                loan_id=loan.loan_id,
                payment_id=payment.payment_id,
                amount=payment.amount,
                date=payment.date,
                due_date=loan.due_date,
                receipt_number=generate_receipt_number(self.rng),
            )
            try:
                return self.repository.add_receipt(receipt)
            except DuplicateReceiptNumberError:
                logger.warning(
                    "Receipt number %s taken (attempt %d/%d)", receipt.receipt_number, attempt, attempts
                )
            except LedgerError as e:
                logger.error(
                    "Receipt for payment %s failed: %s",
                    payment.payment_id,
                    e,
                    extra=ledger_context(loan_id=loan.loan_id, payment_id=payment.payment_id),
                )
                raise ReceiptGenerationError(
                    f"Payment {payment.payment_id} recorded but receipt failed: {e}", payment=payment
                ) from e

        logger.error("No free receipt number for payment %s after %d attempts", payment.payment_id, attempts)
        raise ReceiptGenerationError(
            f"Payment {payment.payment_id} recorded but no free receipt number after {attempts} attempts",
            payment=payment,
        )

    # --- Receipts ---

    def delete_receipt(self, receipt_id: str) -> None:
        """Delete a receipt. The loan status is left as cached."""
        self.repository.delete_receipt(receipt_id)
        logger.info("Receipt %s deleted", receipt_id, extra=ledger_context(receipt_id=receipt_id))

    def receipt_text(self, receipt_id: str) -> tuple[Client, str]:
        """Render a stored receipt; return its client and the text."""
        receipt = self.repository.get_receipt(receipt_id)
        loan = self.repository.get_loan(receipt.loan_id)
        client = self.repository.get_client(receipt.client_id)
        summary = summarize_loan(loan, self.confirmed_records(loan), self.today())

        progress = None
        if loan.payment_type != PaymentType.INTEREST_ONLY:
            progress = summary.progress
        context = ReceiptContext(
            doc_number=receipt.receipt_number,
            client_name=client.name,
            due_date=receipt.due_date or loan.due_date,
            payment_date=receipt.date,
            amount_paid_today=receipt.amount,
            total_confirmed_paid=summary.total_paid,
            generated_at=self.now(),
            installment_progress=progress,
        )
        return client, render_receipt_text(context)

    def share_receipt_link(self, receipt_id: str) -> str:
        """WhatsApp link carrying a stored receipt's text to its client.

        Raises
        ------
        InvalidPhoneError
            If the client's phone cannot be normalized.
        """
        client, text = self.receipt_text(receipt_id)
        return whatsapp_link(client.phone, text)

    # --- Cascade deletes ---

    def _run_step(self, step: CleanupStep) -> Any:
        method = getattr(self.repository, step.action)
        attempts = self.settings.cascade_max_attempts
        for attempt in range(1, attempts + 1):
            try:
                return method(step.target_id)
            except PersistenceError as e:
                if attempt == attempts:
                    raise
                logger.warning("%s(%s) failed (attempt %d/%d): %s", step.action, step.target_id, attempt, attempts, e)

    def _run_saga(self, target_id: str, steps: list[CleanupStep]) -> CascadeResult:
        for index, step in enumerate(steps):
            try:
                self._run_step(step)
            except LedgerError as e:
                pending = steps[index:]
                logger.error(
                    "Cascade delete of %s stopped at %s: %s; pending cleanup: %s",
                    target_id,
                    step.action,
                    e,
                    ", ".join(f"{s.action}({s.target_id})" for s in pending),
                )
                return CascadeResult(target_id=target_id, completed=False, pending_cleanup=pending, error=str(e))
        return CascadeResult(target_id=target_id, completed=True)

    @staticmethod
    def _loan_steps(loan_id: str) -> list[CleanupStep]:
        return [
            CleanupStep("delete_receipts_for_loan", loan_id),
            CleanupStep("delete_payments_for_loan", loan_id),
            CleanupStep("delete_loan", loan_id),
        ]

    def delete_loan_cascade(self, loan_id: str) -> CascadeResult:
        """Delete a loan with its receipts and payments, children first.

        Raises
        ------
        EntityNotFoundError
            If the loan does not exist.
        """
        self.repository.get_loan(loan_id)
        result = self._run_saga(loan_id, self._loan_steps(loan_id))
        if result.completed:
            logger.info(
                "Loan %s deleted with its payments and receipts", loan_id, extra=ledger_context(loan_id=loan_id)
            )
        return result

    def delete_client_cascade(self, client_id: str) -> CascadeResult:
        """Delete a client with all loans and receipts.

        Raises
        ------
        EntityNotFoundError
            If the client does not exist.
        """
        self.repository.get_client(client_id)
        steps: list[CleanupStep] = []
        for loan in self.repository.list_loans(client_id=client_id):
            steps.extend(self._loan_steps(loan.loan_id))
        steps.append(CleanupStep("delete_receipts_for_client", client_id))
        steps.append(CleanupStep("delete_client", client_id))

        result = self._run_saga(client_id, steps)
        if result.completed:
            logger.info(
                "Client %s deleted with all loans", client_id, extra=ledger_context(client_id=client_id)
            )
        return result

    # --- Reports ---

    def dashboard_stats(self) -> DashboardStats:
        loans = self.repository.list_loans()
        return dashboard_stats(len(self.repository.list_clients()), loans, self._records_by_loan(loans))

    def report(self, report_filter: ReportFilter | None = None) -> Report:
        """Build the period report over loans and confirmed records."""
        report_filter = report_filter or ReportFilter()
        loans = self.repository.list_loans(client_id=report_filter.client_id)
        return build_report(loans, self._records_by_loan(loans), report_filter)
