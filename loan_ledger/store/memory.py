"""In-memory ledger store with referential integrity."""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any

from loan_ledger.exceptions import (
    DuplicateReceiptNumberError,
    EntityNotFoundError,
    InvalidEntityStateError,
    ReferentialIntegrityError,
)
from loan_ledger.models import Client, Loan, LoanStatus, Payment, Receipt
from loan_ledger.store.base import LedgerRepository


@dataclass
class InMemoryLedgerStore(LedgerRepository):
    """Dict-backed store with relationship tracking.

    Deletes behave like foreign keys without cascade: a loan with payments or
    receipts, or a client with loans or receipts, cannot be removed.
    """

    clients: dict[str, Client] = field(default_factory=dict)
    loans: dict[str, Loan] = field(default_factory=dict)
    payments: dict[str, Payment] = field(default_factory=dict)
    receipts: dict[str, Receipt] = field(default_factory=dict)

    # Relationship indexes
    _client_loans: dict[str, list[str]] = field(default_factory=dict)
    _loan_payments: dict[str, list[str]] = field(default_factory=dict)
    _receipt_numbers: set[str] = field(default_factory=set)

    # --- Clients ---

    def add_client(self, client: Client) -> Client:
        """Add a client to the store."""
        if client.created_at is None:
            client.created_at = datetime.now()
        self.clients[client.client_id] = client
        self._client_loans.setdefault(client.client_id, [])
        return client

    def get_client(self, client_id: str) -> Client:
        if client_id not in self.clients:
            raise EntityNotFoundError(f"Client {client_id} not found")
        return self.clients[client_id]

    def list_clients(self) -> list[Client]:
        return sorted(self.clients.values(), key=lambda c: c.created_at, reverse=True)

    def update_client(self, client_id: str, changes: dict[str, Any]) -> Client:
        client = replace(self.get_client(client_id), **changes)
        self.clients[client_id] = client
        return client

    def delete_client(self, client_id: str) -> None:
        self.get_client(client_id)
        if self._client_loans.get(client_id):
            raise InvalidEntityStateError(f"Client {client_id} still has loans")
        if any(r.client_id == client_id for r in self.receipts.values()):
            raise InvalidEntityStateError(f"Client {client_id} still has receipts")
        del self.clients[client_id]
        self._client_loans.pop(client_id, None)

    # --- Loans ---

    def add_loan(self, loan: Loan) -> Loan:
        """Add a loan to the store."""
        if loan.client_id not in self.clients:
            raise ReferentialIntegrityError(f"Client {loan.client_id} not found")

        loan = loan.with_defaults(date.today())
        if loan.created_at is None:
            loan.created_at = datetime.now()
        # Payments live in their own collection
        stored = replace(loan, payments=[])
        self.loans[loan.loan_id] = stored
        self._client_loans[loan.client_id].append(loan.loan_id)
        self._loan_payments[loan.loan_id] = []
        return replace(stored)

    def get_loan(self, loan_id: str) -> Loan:
        if loan_id not in self.loans:
            raise EntityNotFoundError(f"Loan {loan_id} not found")
        return replace(self.loans[loan_id], payments=self.list_payments(loan_id))

    def list_loans(self, client_id: str | None = None, status: LoanStatus | None = None) -> list[Loan]:
        if client_id is not None:
            loan_ids = self._client_loans.get(client_id, [])
        else:
            loan_ids = list(self.loans)
        loans = [self.get_loan(lid) for lid in loan_ids]
        if status is not None:
            loans = [loan for loan in loans if loan.status == status]
        return sorted(loans, key=lambda loan: loan.created_at, reverse=True)

    def update_loan(self, loan_id: str, changes: dict[str, Any]) -> Loan:
        if loan_id not in self.loans:
            raise EntityNotFoundError(f"Loan {loan_id} not found")
        if "loan_id" in changes or "payments" in changes:
            raise InvalidEntityStateError("Loan id and payments cannot be updated")
        self.loans[loan_id] = replace(self.loans[loan_id], **changes)
        return self.get_loan(loan_id)

    def delete_loan(self, loan_id: str) -> None:
        loan = self.loans.get(loan_id)
        if loan is None:
            raise EntityNotFoundError(f"Loan {loan_id} not found")
        if self._loan_payments.get(loan_id):
            raise InvalidEntityStateError(f"Loan {loan_id} still has payments")
        if any(r.loan_id == loan_id for r in self.receipts.values()):
            raise InvalidEntityStateError(f"Loan {loan_id} still has receipts")
        del self.loans[loan_id]
        self._loan_payments.pop(loan_id, None)
        self._client_loans[loan.client_id].remove(loan_id)

    # --- Payments ---

    def add_payment(self, payment: Payment) -> Payment:
        """Add a loan payment to the store."""
        if payment.loan_id not in self.loans:
            raise ReferentialIntegrityError(f"Loan {payment.loan_id} not found")

        if payment.created_at is None:
            payment = replace(payment, created_at=datetime.now())
        self.payments[payment.payment_id] = payment
        self._loan_payments[payment.loan_id].append(payment.payment_id)
        return payment

    def list_payments(self, loan_id: str | None = None) -> list[Payment]:
        if loan_id is not None:
            payments = [self.payments[pid] for pid in self._loan_payments.get(loan_id, [])]
        else:
            payments = list(self.payments.values())
        return sorted(payments, key=lambda p: p.date, reverse=True)

    def delete_payments_for_loan(self, loan_id: str) -> int:
        payment_ids = self._loan_payments.get(loan_id, [])
        referenced = {r.payment_id for r in self.receipts.values()}
        if referenced.intersection(payment_ids):
            raise InvalidEntityStateError(f"Payments of loan {loan_id} still have receipts")
        for pid in payment_ids:
            del self.payments[pid]
        count = len(payment_ids)
        if loan_id in self._loan_payments:
            self._loan_payments[loan_id] = []
        return count

    # --- Receipts ---

    def add_receipt(self, receipt: Receipt) -> Receipt:
        """Add a receipt to the store."""
        if receipt.client_id not in self.clients:
            raise ReferentialIntegrityError(f"Client {receipt.client_id} not found")
        if receipt.loan_id not in self.loans:
            raise ReferentialIntegrityError(f"Loan {receipt.loan_id} not found")
        if receipt.payment_id not in self.payments:
            raise ReferentialIntegrityError(f"Payment {receipt.payment_id} not found")
        if receipt.receipt_number in self._receipt_numbers:
            raise DuplicateReceiptNumberError(f"Receipt number {receipt.receipt_number} already exists")

        if receipt.created_at is None:
            receipt.created_at = datetime.now()
        self.receipts[receipt.receipt_id] = receipt
        self._receipt_numbers.add(receipt.receipt_number)
        return receipt

    def get_receipt(self, receipt_id: str) -> Receipt:
        if receipt_id not in self.receipts:
            raise EntityNotFoundError(f"Receipt {receipt_id} not found")
        return self.receipts[receipt_id]

    def list_receipts(self, loan_id: str | None = None, client_id: str | None = None) -> list[Receipt]:
        receipts = [
            r for r in self.receipts.values()
            if (loan_id is None or r.loan_id == loan_id)
            and (client_id is None or r.client_id == client_id)
        ]
        return sorted(receipts, key=lambda r: r.created_at, reverse=True)

    def delete_receipt(self, receipt_id: str) -> None:
        receipt = self.get_receipt(receipt_id)
        del self.receipts[receipt_id]
        self._receipt_numbers.discard(receipt.receipt_number)

    def delete_receipts_for_loan(self, loan_id: str) -> int:
        return self._delete_receipts([r for r in self.receipts.values() if r.loan_id == loan_id])

    def delete_receipts_for_client(self, client_id: str) -> int:
        return self._delete_receipts([r for r in self.receipts.values() if r.client_id == client_id])

    def _delete_receipts(self, receipts: list[Receipt]) -> int:
        for receipt in receipts:
            self.delete_receipt(receipt.receipt_id)
        return len(receipts)

    def summary(self) -> dict[str, int]:
        """Return summary counts of all entities."""
        return {
            "clients": len(self.clients),
            "loans": len(self.loans),
            "payments": len(self.payments),
            "receipts": len(self.receipts),
        }
