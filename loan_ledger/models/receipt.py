"""Receipt model."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal


@dataclass
class Receipt:
    """Human-presentable record of one payment event."""

    receipt_id: str
    client_id: str
    loan_id: str
    payment_id: str
    amount: Decimal
    date: datetime
    due_date: date | None
    receipt_number: str  # Display code, e.g. REC-4821
    created_at: datetime | None = None
