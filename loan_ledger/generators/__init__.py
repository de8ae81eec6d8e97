"""Faker-based sample data generators."""

from loan_ledger.generators.client import ClientGenerator
from loan_ledger.generators.loan import LoanGenerator
from loan_ledger.generators.payment import PaymentHistoryGenerator

__all__ = ["ClientGenerator", "LoanGenerator", "PaymentHistoryGenerator"]
