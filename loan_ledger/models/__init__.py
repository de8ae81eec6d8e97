"""Domain models for the loan ledger."""

from loan_ledger.models.base import ChangeEvent
from loan_ledger.models.client import Client
from loan_ledger.models.enums import ChangeAction, LoanStatus, PaymentKind, PaymentType
from loan_ledger.models.loan import Loan, Payment
from loan_ledger.models.receipt import Receipt

__all__ = [
    "ChangeAction",
    "ChangeEvent",
    "Client",
    "Loan",
    "LoanStatus",
    "Payment",
    "PaymentKind",
    "PaymentType",
    "Receipt",
]
