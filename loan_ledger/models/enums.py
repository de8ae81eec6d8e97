"""Enumeration types for ledger entities."""

from enum import Enum


class PaymentType(str, Enum):
    """Loan payment modality."""

    INSTALLMENTS = "installments"
    INTEREST_ONLY = "interest_only"
    DIARIO = "diario"


class LoanStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    DEFAULTED = "defaulted"


class PaymentKind(str, Enum):
    """Type of a single payment record.

    ``FULL`` marks a settlement (quitação) for interest-only and daily loans.
    """

    INTEREST_ONLY = "interest_only"
    FULL = "full"


class ChangeAction(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
