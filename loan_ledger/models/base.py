"""Base models shared across the ledger."""

from dataclasses import dataclass, field
from datetime import datetime

from loan_ledger.models.enums import ChangeAction


@dataclass
class ChangeEvent:
    """Row-level change notification envelope."""

    event_id: str
    event_type: str  # table.action (e.g., payments.insert)
    event_time: datetime
    table: str
    action: ChangeAction
    record_id: str
    loan_id: str | None = None  # Loan affected, when the row belongs to one
    data: dict = field(default_factory=dict)
