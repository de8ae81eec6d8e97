"""Store decorator that emits a change event after every write."""

import logging
from typing import Any

from loan_ledger.exceptions import PublishError
from loan_ledger.models import ChangeAction, Client, Loan, LoanStatus, Payment, Receipt
from loan_ledger.realtime.events import make_change_event
from loan_ledger.realtime.publisher import ChangePublisher
from loan_ledger.serialization import (
    client_to_row,
    loan_to_row,
    payment_to_row,
    receipt_to_row,
    serialize_value,
)
from loan_ledger.store.base import LedgerRepository

logger = logging.getLogger(__name__)


class PublishingStore(LedgerRepository):
    """Forward to an inner repository and publish row changes.

    Events are emitted only after the write succeeded. A publish failure is
    logged and does not undo the write; listeners catch up on the next event
    for the same loan.
    """

    def __init__(self, inner: LedgerRepository, publisher: ChangePublisher) -> None:
        self.inner = inner
        self.publisher = publisher

    def _emit(
        self,
        table: str,
        action: ChangeAction,
        record_id: str,
        loan_id: str | None = None,
        row: dict[str, Any] | None = None,
    ) -> None:
        event = make_change_event(table, action, record_id, loan_id=loan_id, data=serialize_value(row or {}))
        try:
            self.publisher.publish(event)
        except PublishError as e:
            logger.error("Change event %s for %s lost: %s", event.event_type, record_id, e)

    # Reads pass through

    def get_client(self, client_id: str) -> Client:
        return self.inner.get_client(client_id)

    def list_clients(self) -> list[Client]:
        return self.inner.list_clients()

    def get_loan(self, loan_id: str) -> Loan:
        return self.inner.get_loan(loan_id)

    def list_loans(self, client_id: str | None = None, status: LoanStatus | None = None) -> list[Loan]:
        return self.inner.list_loans(client_id=client_id, status=status)

    def list_payments(self, loan_id: str | None = None) -> list[Payment]:
        return self.inner.list_payments(loan_id)

    def get_receipt(self, receipt_id: str) -> Receipt:
        return self.inner.get_receipt(receipt_id)

    def list_receipts(self, loan_id: str | None = None, client_id: str | None = None) -> list[Receipt]:
        return self.inner.list_receipts(loan_id=loan_id, client_id=client_id)

    def summary(self) -> dict[str, int]:
        return self.inner.summary()

    # Writes publish

    def add_client(self, client: Client) -> Client:
        stored = self.inner.add_client(client)
        self._emit("clients", ChangeAction.INSERT, stored.client_id, row=client_to_row(stored))
        return stored

    def update_client(self, client_id: str, changes: dict[str, Any]) -> Client:
        stored = self.inner.update_client(client_id, changes)
        self._emit("clients", ChangeAction.UPDATE, client_id, row=client_to_row(stored))
        return stored

    def delete_client(self, client_id: str) -> None:
        self.inner.delete_client(client_id)
        self._emit("clients", ChangeAction.DELETE, client_id)

    def add_loan(self, loan: Loan) -> Loan:
        stored = self.inner.add_loan(loan)
        self._emit("loans", ChangeAction.INSERT, stored.loan_id, stored.loan_id, loan_to_row(stored))
        return stored

    def update_loan(self, loan_id: str, changes: dict[str, Any]) -> Loan:
        stored = self.inner.update_loan(loan_id, changes)
        self._emit("loans", ChangeAction.UPDATE, loan_id, loan_id, loan_to_row(stored))
        return stored

    def delete_loan(self, loan_id: str) -> None:
        self.inner.delete_loan(loan_id)
        self._emit("loans", ChangeAction.DELETE, loan_id, loan_id)

    def add_payment(self, payment: Payment) -> Payment:
        stored = self.inner.add_payment(payment)
        self._emit("payments", ChangeAction.INSERT, stored.payment_id, stored.loan_id, payment_to_row(stored))
        return stored

    def delete_payments_for_loan(self, loan_id: str) -> int:
        count = self.inner.delete_payments_for_loan(loan_id)
        if count:
            self._emit("payments", ChangeAction.DELETE, loan_id, loan_id, {"count": count})
        return count

    def add_receipt(self, receipt: Receipt) -> Receipt:
        stored = self.inner.add_receipt(receipt)
        self._emit("receipts", ChangeAction.INSERT, stored.receipt_id, stored.loan_id, receipt_to_row(stored))
        return stored

    def delete_receipt(self, receipt_id: str) -> None:
        receipt = self.inner.get_receipt(receipt_id)
        self.inner.delete_receipt(receipt_id)
        self._emit("receipts", ChangeAction.DELETE, receipt_id, receipt.loan_id)

    def delete_receipts_for_loan(self, loan_id: str) -> int:
        count = self.inner.delete_receipts_for_loan(loan_id)
        if count:
            self._emit("receipts", ChangeAction.DELETE, loan_id, loan_id, {"count": count})
        return count

    def delete_receipts_for_client(self, client_id: str) -> int:
        count = self.inner.delete_receipts_for_client(client_id)
        if count:
            self._emit("receipts", ChangeAction.DELETE, client_id, None, {"count": count, "client_id": client_id})
        return count
