"""Pytest configuration and fixtures."""

import random
from datetime import date, datetime
from decimal import Decimal

import pytest

from loan_ledger.config import LedgerSettings
from loan_ledger.models import Client, Loan, LoanStatus, Payment, PaymentKind, PaymentType
from loan_ledger.service import LedgerService
from loan_ledger.store import InMemoryLedgerStore

TODAY = date(2025, 3, 10)
NOW = datetime(2025, 3, 10, 14, 30)


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def today() -> date:
    """Fixed current date."""
    return TODAY


@pytest.fixture
def sample_client() -> Client:
    """Create a sample client."""
    return Client(
        client_id="client-001",
        name="Maria da Silva",
        email="maria@example.com",
        phone="(67) 99282-5341",
        cpf="123.456.789-00",
        address="Rua das Flores, 100",
        city="Campo Grande",
        state="MS",
        zip_code="79000-000",
        created_at=datetime(2025, 1, 5, 9, 0),
    )


def make_loan(
    payment_type: PaymentType = PaymentType.INSTALLMENTS,
    loan_id: str = "loan-001",
    client_id: str = "client-001",
    amount: str = "250",
    total_amount: str | None = "300",
    installments: int | None = 3,
    due_date: date | None = date(2025, 4, 10),
    status: LoanStatus = LoanStatus.ACTIVE,
    payments: list[Payment] | None = None,
) -> Loan:
    """Build a loan with sensible defaults."""
    total = Decimal(total_amount) if total_amount is not None else None
    return Loan(
        loan_id=loan_id,
        client_id=client_id,
        amount=Decimal(amount),
        interest_rate=Decimal("20"),
        total_amount=total,
        payment_type=payment_type,
        installments=installments,
        installment_amount=(total / installments) if total is not None and installments else None,
        due_date=due_date,
        status=status,
        start_date=date(2025, 3, 1),
        created_at=datetime(2025, 3, 1, 10, 0),
        payments=list(payments or []),
    )


def make_payment(
    amount: str,
    kind: PaymentKind = PaymentKind.INTEREST_ONLY,
    number: int = 1,
    loan_id: str = "loan-001",
) -> Payment:
    """Build a payment record."""
    return Payment(
        payment_id=f"pay-{loan_id}-{number}",
        loan_id=loan_id,
        amount=Decimal(amount),
        date=datetime(2025, 3, number % 28 + 1, 12, 0),
        installment_number=number,
        kind=kind,
    )


@pytest.fixture
def store() -> InMemoryLedgerStore:
    """Create a fresh store for each test."""
    return InMemoryLedgerStore()


@pytest.fixture
def service(store: InMemoryLedgerStore, seed: int) -> LedgerService:
    """Ledger service on the in-memory store with a fixed clock."""
    return LedgerService(
        store,
        settings=LedgerSettings(),
        today=lambda: TODAY,
        now=lambda: NOW,
        rng=random.Random(seed),
    )


@pytest.fixture
def payments_service(store: InMemoryLedgerStore, seed: int) -> LedgerService:
    """Ledger service that counts payments as the confirmed source."""
    return LedgerService(
        store,
        settings=LedgerSettings(paid_source="payments"),
        today=lambda: TODAY,
        now=lambda: NOW,
        rng=random.Random(seed),
    )
