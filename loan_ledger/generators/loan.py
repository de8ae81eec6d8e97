"""Loan generator following the origination form rules."""

from __future__ import annotations

import random
from datetime import date
from decimal import Decimal

from loan_ledger.engine import originate_loan
from loan_ledger.generators.base import BaseGenerator
from loan_ledger.models import Loan, PaymentType


class LoanGenerator(BaseGenerator):
    """Generate loans under the three payment modalities."""

    PAYMENT_TYPES = list(PaymentType)
    PAYMENT_TYPE_WEIGHTS = [0.50, 0.30, 0.20]

    # Monthly rate in percent
    INTEREST_RATES = (10, 15, 20, 25, 30)
    INSTALLMENT_COUNTS = (2, 3, 4, 5, 6, 10, 12)
    DAILY_TERMS = (10, 15, 20, 30)

    def generate(
        self,
        client_id: str,
        payment_type: PaymentType | None = None,
        today: date | None = None,
    ) -> Loan:
        """Originate a loan for a client.

        Parameters
        ----------
        client_id : str
            Borrower.
        payment_type : PaymentType | None
            Modality; drawn at random when omitted.
        today : date | None
            Origination date (default: today).

        Returns
        -------
        Loan
            New loan with ``active`` status.
        """
        if payment_type is None:
            payment_type = random.choices(self.PAYMENT_TYPES, weights=self.PAYMENT_TYPE_WEIGHTS, k=1)[0]
        today = today or date.today()

        amount = Decimal(random.randint(5, 100) * 100)
        rate = Decimal(random.choice(self.INTEREST_RATES))
        if payment_type == PaymentType.INSTALLMENTS:
            count = random.choice(self.INSTALLMENT_COUNTS)
        elif payment_type == PaymentType.DIARIO:
            count = random.choice(self.DAILY_TERMS)
        else:
            count = 1

        return originate_loan(
            loan_id=self.fake.uuid4(),
            client_id=client_id,
            amount=amount,
            interest_rate=rate,
            payment_type=payment_type,
            today=today,
            installments=count,
        )
