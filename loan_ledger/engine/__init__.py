"""Loan ledger engine: status derivation and balance reconciliation."""

from loan_ledger.engine.ledger import (
    InstallmentProgress,
    LedgerEntry,
    LoanSummary,
    classify_payment,
    compute_balance_due,
    compute_installment_progress,
    compute_loan_status,
    compute_total_paid,
    is_overdue,
    is_settled,
    rederive_daily_schedule,
    summarize_loan,
)
from loan_ledger.engine.origination import default_due_date, originate_loan
from loan_ledger.engine.receipt_number import generate_receipt_number

__all__ = [
    "InstallmentProgress",
    "LedgerEntry",
    "LoanSummary",
    "classify_payment",
    "compute_balance_due",
    "compute_installment_progress",
    "compute_loan_status",
    "compute_total_paid",
    "default_due_date",
    "generate_receipt_number",
    "is_overdue",
    "is_settled",
    "originate_loan",
    "rederive_daily_schedule",
    "summarize_loan",
]
