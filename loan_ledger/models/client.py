"""Client model."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Client:
    """Borrower registered by the operator."""

    client_id: str
    name: str
    email: str
    phone: str
    cpf: str
    address: str
    city: str
    state: str
    zip_code: str
    notes: str | None = None
    created_at: datetime | None = None
