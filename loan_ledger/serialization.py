"""Explicit row and view-model mapping for ledger entities.

Persistence rows use snake_case columns and native Python values (``Decimal``,
``date``, ``datetime``) so they can be passed straight to psycopg. View-models
use the camelCase keys the front end expects and JSON-safe values (money as
strings, dates as ISO 8601).

Every entity gets its own pair of functions; there is no generic key
rewriting.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from loan_ledger.models import (
    Client,
    Loan,
    LoanStatus,
    Payment,
    PaymentKind,
    PaymentType,
    Receipt,
)


def serialize_value(value: Any) -> Any:
    """Serialize a value for JSON output."""
    if isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, datetime):
        return value.isoformat()
    elif isinstance(value, date):
        return value.isoformat()
    elif isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [serialize_value(v) for v in value]
    return value


def parse_decimal(value: Any) -> Decimal | None:
    """Parse a money value; floats go through ``str`` to avoid binary noise."""
    if value is None or value == "":
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def parse_date(value: Any) -> date | None:
    """Parse an ISO date, accepting full timestamps."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO timestamp, accepting a trailing ``Z``."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _parse_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


# --- Clients ---

def client_to_row(client: Client) -> dict[str, Any]:
    return {
        "id": client.client_id,
        "name": client.name,
        "email": client.email,
        "phone": client.phone,
        "cpf": client.cpf,
        "address": client.address,
        "city": client.city,
        "state": client.state,
        "zip_code": client.zip_code,
        "notes": client.notes,
        "created_at": client.created_at,
    }


def client_from_row(row: dict[str, Any]) -> Client:
    return Client(
        client_id=str(row["id"]),
        name=row["name"],
        email=row.get("email") or "",
        phone=row.get("phone") or "",
        cpf=row.get("cpf") or "",
        address=row.get("address") or "",
        city=row.get("city") or "",
        state=row.get("state") or "",
        zip_code=row.get("zip_code") or "",
        notes=row.get("notes"),
        created_at=parse_datetime(row.get("created_at")),
    )


def client_to_view(client: Client) -> dict[str, Any]:
    return {
        "id": client.client_id,
        "name": client.name,
        "email": client.email,
        "phone": client.phone,
        "cpf": client.cpf,
        "address": client.address,
        "city": client.city,
        "state": client.state,
        "zipCode": client.zip_code,
        "notes": client.notes,
        "createdAt": serialize_value(client.created_at),
    }


def client_from_view(view: dict[str, Any]) -> Client:
    return Client(
        client_id=view["id"],
        name=view["name"],
        email=view.get("email", ""),
        phone=view.get("phone", ""),
        cpf=view.get("cpf", ""),
        address=view.get("address", ""),
        city=view.get("city", ""),
        state=view.get("state", ""),
        zip_code=view.get("zipCode", ""),
        notes=view.get("notes"),
        created_at=parse_datetime(view.get("createdAt")),
    )


# --- Loans ---

# Loan attribute -> persistence column
LOAN_COLUMNS: dict[str, str] = {
    "loan_id": "id",
    "client_id": "client_id",
    "amount": "amount",
    "interest_rate": "interest_rate",
    "total_amount": "total_amount",
    "payment_type": "payment_type",
    "installments": "installments",
    "installment_amount": "installment_amount",
    "due_date": "due_date",
    "status": "status",
    "end_date": "end_date",
    "start_date": "start_date",
    "notes": "notes",
    "interest_amount": "interest_amount",
    "number_of_installments": "number_of_installments",
    "created_at": "created_at",
}

# View-model key -> loan attribute
LOAN_VIEW_FIELDS: dict[str, str] = {
    "id": "loan_id",
    "clientId": "client_id",
    "amount": "amount",
    "interestRate": "interest_rate",
    "totalAmount": "total_amount",
    "paymentType": "payment_type",
    "installments": "installments",
    "installmentAmount": "installment_amount",
    "dueDate": "due_date",
    "status": "status",
    "endDate": "end_date",
    "startDate": "start_date",
    "notes": "notes",
    "interestAmount": "interest_amount",
    "numberOfInstallments": "number_of_installments",
    "createdAt": "created_at",
}

_LOAN_PARSERS = {
    "amount": parse_decimal,
    "interest_rate": parse_decimal,
    "total_amount": parse_decimal,
    "installment_amount": parse_decimal,
    "interest_amount": parse_decimal,
    "installments": _parse_int,
    "number_of_installments": _parse_int,
    "due_date": parse_date,
    "end_date": parse_date,
    "start_date": parse_date,
    "created_at": parse_datetime,
    "payment_type": PaymentType,
    "status": LoanStatus,
}


def loan_to_row(loan: Loan, *, fill_defaults: bool = False, today: date | None = None) -> dict[str, Any]:
    """Convert a loan to a persistence row.

    Parameters
    ----------
    loan : Loan
        Loan to convert. Denormalized payments are not part of the row.
    fill_defaults : bool
        Apply insert defaults for missing values (rate 0, total and
        installment amount equal to principal, one installment, start today).
    today : date | None
        Date used for the default start date.
    """
    if fill_defaults:
        loan = loan.with_defaults(today or date.today())
    row = {
        "id": loan.loan_id,
        "client_id": loan.client_id,
        "amount": loan.amount,
        "interest_rate": loan.interest_rate,
        "total_amount": loan.total_amount,
        "payment_type": loan.payment_type.value,
        "installments": loan.installments,
        "installment_amount": loan.installment_amount,
        "due_date": loan.due_date,
        "status": loan.status.value,
        "end_date": loan.end_date,
        "start_date": loan.start_date,
        "notes": loan.notes,
        "interest_amount": loan.interest_amount,
        "number_of_installments": loan.number_of_installments,
        "created_at": loan.created_at,
    }
    return row


def loan_from_row(row: dict[str, Any], payments: list[Payment] | None = None) -> Loan:
    return Loan(
        loan_id=str(row["id"]),
        client_id=str(row["client_id"]),
        amount=parse_decimal(row["amount"]) or Decimal("0"),
        interest_rate=parse_decimal(row.get("interest_rate")) or Decimal("0"),
        total_amount=parse_decimal(row.get("total_amount")),
        payment_type=PaymentType(row["payment_type"]),
        installments=_parse_int(row.get("installments")),
        installment_amount=parse_decimal(row.get("installment_amount")),
        due_date=parse_date(row.get("due_date")),
        status=LoanStatus(row.get("status") or LoanStatus.ACTIVE.value),
        end_date=parse_date(row.get("end_date")),
        start_date=parse_date(row.get("start_date")),
        notes=row.get("notes"),
        interest_amount=parse_decimal(row.get("interest_amount")),
        number_of_installments=_parse_int(row.get("number_of_installments")),
        created_at=parse_datetime(row.get("created_at")),
        payments=list(payments or []),
    )


def loan_to_view(loan: Loan) -> dict[str, Any]:
    view = {key: serialize_value(getattr(loan, attr)) for key, attr in LOAN_VIEW_FIELDS.items()}
    view["payments"] = [payment_to_view(p) for p in loan.payments]
    return view


def loan_from_view(view: dict[str, Any]) -> Loan:
    values = loan_changes_from_view({k: v for k, v in view.items() if k != "payments"})
    payments = [payment_from_view(p) for p in view.get("payments") or []]
    return Loan(**values, payments=payments)


def loan_changes_from_view(changes: dict[str, Any]) -> dict[str, Any]:
    """Translate a partial camelCase loan update into loan attributes.

    Falsy values such as ``0`` are kept.

    Raises
    ------
    ValueError
        If a key is not a known loan field.
    """
    result: dict[str, Any] = {}
    for key, value in changes.items():
        attr = LOAN_VIEW_FIELDS.get(key)
        if attr is None:
            raise ValueError(f"Unknown loan field: {key}")
        parser = _LOAN_PARSERS.get(attr)
        result[attr] = parser(value) if parser is not None and value is not None else value
    return result


def loan_changes_to_row(changes: dict[str, Any]) -> dict[str, Any]:
    """Translate loan attribute changes into persistence columns.

    Raises
    ------
    ValueError
        If a key is not a known loan attribute or tries to change the id.
    """
    result: dict[str, Any] = {}
    for attr, value in changes.items():
        column = LOAN_COLUMNS.get(attr)
        if column is None or column == "id":
            raise ValueError(f"Cannot update loan field: {attr}")
        result[column] = value.value if isinstance(value, Enum) else value
    return result


# --- Payments ---

def payment_to_row(payment: Payment) -> dict[str, Any]:
    return {
        "id": payment.payment_id,
        "loan_id": payment.loan_id,
        "amount": payment.amount,
        "date": payment.date,
        "installment_number": payment.installment_number,
        "type": payment.kind.value,
        "receipt_id": payment.receipt_id,
        "created_at": payment.created_at,
    }


def payment_from_row(row: dict[str, Any]) -> Payment:
    return Payment(
        payment_id=str(row["id"]),
        loan_id=str(row["loan_id"]),
        amount=parse_decimal(row["amount"]) or Decimal("0"),
        date=parse_datetime(row["date"]),
        installment_number=_parse_int(row.get("installment_number")) or 0,
        kind=PaymentKind(row.get("type") or PaymentKind.INTEREST_ONLY.value),
        receipt_id=str(row["receipt_id"]) if row.get("receipt_id") else None,
        created_at=parse_datetime(row.get("created_at")),
    )


def payment_to_view(payment: Payment) -> dict[str, Any]:
    return {
        "id": payment.payment_id,
        "loanId": payment.loan_id,
        "amount": serialize_value(payment.amount),
        "date": serialize_value(payment.date),
        "installmentNumber": payment.installment_number,
        "type": payment.kind.value,
        "receiptId": payment.receipt_id,
        "createdAt": serialize_value(payment.created_at),
    }


def payment_from_view(view: dict[str, Any]) -> Payment:
    return Payment(
        payment_id=view["id"],
        loan_id=view["loanId"],
        amount=parse_decimal(view["amount"]) or Decimal("0"),
        date=parse_datetime(view["date"]),
        installment_number=_parse_int(view.get("installmentNumber")) or 0,
        kind=PaymentKind(view.get("type") or PaymentKind.INTEREST_ONLY.value),
        receipt_id=view.get("receiptId"),
        created_at=parse_datetime(view.get("createdAt")),
    )


# --- Receipts ---

def receipt_to_row(receipt: Receipt) -> dict[str, Any]:
    return {
        "id": receipt.receipt_id,
        "client_id": receipt.client_id,
        "loan_id": receipt.loan_id,
        "payment_id": receipt.payment_id,
        "amount": receipt.amount,
        "date": receipt.date,
        "due_date": receipt.due_date,
        "receipt_number": receipt.receipt_number,
        "created_at": receipt.created_at,
    }


def receipt_from_row(row: dict[str, Any]) -> Receipt:
    return Receipt(
        receipt_id=str(row["id"]),
        client_id=str(row["client_id"]),
        loan_id=str(row["loan_id"]),
        payment_id=str(row["payment_id"]),
        amount=parse_decimal(row["amount"]) or Decimal("0"),
        date=parse_datetime(row["date"]),
        due_date=parse_date(row.get("due_date")),
        receipt_number=row["receipt_number"],
        created_at=parse_datetime(row.get("created_at")),
    )


def receipt_to_view(receipt: Receipt) -> dict[str, Any]:
    return {
        "id": receipt.receipt_id,
        "clientId": receipt.client_id,
        "loanId": receipt.loan_id,
        "paymentId": receipt.payment_id,
        "amount": serialize_value(receipt.amount),
        "date": serialize_value(receipt.date),
        "dueDate": serialize_value(receipt.due_date),
        "receiptNumber": receipt.receipt_number,
        "createdAt": serialize_value(receipt.created_at),
    }


def receipt_from_view(view: dict[str, Any]) -> Receipt:
    return Receipt(
        receipt_id=view["id"],
        client_id=view["clientId"],
        loan_id=view["loanId"],
        payment_id=view["paymentId"],
        amount=parse_decimal(view["amount"]) or Decimal("0"),
        date=parse_datetime(view["date"]),
        due_date=parse_date(view.get("dueDate")),
        receipt_number=view["receiptNumber"],
        created_at=parse_datetime(view.get("createdAt")),
    )
