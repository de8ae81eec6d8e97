"""Repository interface for ledger entities."""

from abc import ABC, abstractmethod
from typing import Any

from loan_ledger.models import Client, Loan, LoanStatus, Payment, Receipt


class LedgerRepository(ABC):
    """Typed CRUD access to clients, loans, payments and receipts.

    Ordering follows the operator screens: clients, loans and receipts newest
    first by creation time; payments newest first by payment date.
    """

    # Clients
    @abstractmethod
    def add_client(self, client: Client) -> Client:
        """Insert a client and return the stored copy."""

    @abstractmethod
    def get_client(self, client_id: str) -> Client:
        """Return a client or raise ``EntityNotFoundError``."""

    @abstractmethod
    def list_clients(self) -> list[Client]:
        """Return all clients."""

    @abstractmethod
    def update_client(self, client_id: str, changes: dict[str, Any]) -> Client:
        """Apply attribute changes to a client."""

    @abstractmethod
    def delete_client(self, client_id: str) -> None:
        """Delete a client that no longer has loans or receipts."""

    # Loans
    @abstractmethod
    def add_loan(self, loan: Loan) -> Loan:
        """Insert a loan and return the stored copy."""

    @abstractmethod
    def get_loan(self, loan_id: str) -> Loan:
        """Return a loan with its payments attached, or raise ``EntityNotFoundError``."""

    @abstractmethod
    def list_loans(self, client_id: str | None = None, status: LoanStatus | None = None) -> list[Loan]:
        """Return loans, optionally filtered by client and cached status."""

    @abstractmethod
    def update_loan(self, loan_id: str, changes: dict[str, Any]) -> Loan:
        """Apply attribute changes (e.g. ``{"status": LoanStatus.COMPLETED}``)."""

    @abstractmethod
    def delete_loan(self, loan_id: str) -> None:
        """Delete a loan that no longer has payments or receipts."""

    # Payments
    @abstractmethod
    def add_payment(self, payment: Payment) -> Payment:
        """Insert a payment and return the stored copy."""

    @abstractmethod
    def list_payments(self, loan_id: str | None = None) -> list[Payment]:
        """Return payments, optionally for one loan."""

    @abstractmethod
    def delete_payments_for_loan(self, loan_id: str) -> int:
        """Delete all payments of a loan; return the count removed."""

    # Receipts
    @abstractmethod
    def add_receipt(self, receipt: Receipt) -> Receipt:
        """Insert a receipt; raise ``DuplicateReceiptNumberError`` on a taken number."""

    @abstractmethod
    def get_receipt(self, receipt_id: str) -> Receipt:
        """Return a receipt or raise ``EntityNotFoundError``."""

    @abstractmethod
    def list_receipts(self, loan_id: str | None = None, client_id: str | None = None) -> list[Receipt]:
        """Return receipts, optionally filtered by loan and client."""

    @abstractmethod
    def delete_receipt(self, receipt_id: str) -> None:
        """Delete one receipt."""

    @abstractmethod
    def delete_receipts_for_loan(self, loan_id: str) -> int:
        """Delete all receipts of a loan; return the count removed."""

    @abstractmethod
    def delete_receipts_for_client(self, client_id: str) -> int:
        """Delete all receipts of a client; return the count removed."""

    @abstractmethod
    def summary(self) -> dict[str, int]:
        """Return entity counts."""
