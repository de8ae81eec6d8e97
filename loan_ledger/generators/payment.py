"""Payment history generator."""

from __future__ import annotations

import random
from datetime import datetime, timedelta
from decimal import Decimal

from loan_ledger.engine import classify_payment
from loan_ledger.generators.base import BaseGenerator
from loan_ledger.models import Loan, Payment, PaymentType


class PaymentHistoryGenerator(BaseGenerator):
    """Generate plausible payment sequences for a loan."""

    # Chance that a daily or interest-only borrower pays off on a given payment
    SETTLEMENT_PROBABILITY = 0.1

    def _regular_amount(self, loan: Loan) -> Decimal:
        if loan.payment_type == PaymentType.INTEREST_ONLY:
            if loan.interest_amount is not None:
                return loan.interest_amount
            return self.money(loan.amount * loan.interest_rate / 100)
        if loan.installment_amount is not None:
            return loan.installment_amount
        return self.money((loan.total_amount or loan.amount) / max(loan.expected_installments, 1))

    def generate(self, loan: Loan, count: int) -> list[Payment]:
        """Generate up to ``count`` payments in date order.

        A generated settlement ends the history early.

        Parameters
        ----------
        loan : Loan
            Loan being paid.
        count : int
            Maximum number of payments.

        Returns
        -------
        list[Payment]
            Payments, oldest first.
        """
        start = loan.start_date or (loan.created_at.date() if loan.created_at else datetime.now().date())
        step = 1 if loan.payment_type == PaymentType.DIARIO else 30
        total = loan.total_amount or loan.amount

        payments: list[Payment] = []
        for number in range(1, count + 1):
            settle = random.random() < self.SETTLEMENT_PROBABILITY
            amount = self._regular_amount(loan)
            if settle and loan.payment_type == PaymentType.INTEREST_ONLY:
                amount = total
            paid_at = self.business_hours(start + timedelta(days=step * number))
            kind = classify_payment(loan, amount, settle=settle)
            payments.append(
                Payment(
                    payment_id=self.fake.uuid4(),
                    loan_id=loan.loan_id,
                    amount=amount,
                    date=paid_at,
                    installment_number=number,
                    kind=kind,
                )
            )
            if settle and loan.payment_type != PaymentType.INSTALLMENTS:
                break
        return payments
