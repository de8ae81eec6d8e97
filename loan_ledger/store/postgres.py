"""PostgreSQL ledger store backed by psycopg."""

from __future__ import annotations

import logging
from typing import Any, Callable

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from loan_ledger.exceptions import (
    DuplicateReceiptNumberError,
    EntityNotFoundError,
    PersistenceError,
    ReferentialIntegrityError,
)
from loan_ledger.models import Client, Loan, LoanStatus, Payment, Receipt
from loan_ledger.serialization import (
    client_from_row,
    client_to_row,
    loan_changes_to_row,
    loan_from_row,
    loan_to_row,
    payment_from_row,
    payment_to_row,
    receipt_from_row,
    receipt_to_row,
)
from loan_ledger.store.base import LedgerRepository

logger = logging.getLogger(__name__)

SCHEMA_DDL = [
    """
    CREATE TABLE IF NOT EXISTS clients (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT,
        phone TEXT,
        cpf TEXT,
        address TEXT,
        city TEXT,
        state TEXT,
        zip_code TEXT,
        notes TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS loans (
        id TEXT PRIMARY KEY,
        client_id TEXT NOT NULL REFERENCES clients(id),
        amount NUMERIC NOT NULL,
        interest_rate NUMERIC NOT NULL DEFAULT 0,
        total_amount NUMERIC,
        payment_type TEXT NOT NULL
            CHECK (payment_type IN ('installments', 'interest_only', 'diario')),
        installments INTEGER,
        installment_amount NUMERIC,
        due_date DATE,
        status TEXT NOT NULL DEFAULT 'active'
            CHECK (status IN ('active', 'completed', 'defaulted')),
        end_date DATE,
        start_date DATE,
        notes TEXT,
        interest_amount NUMERIC,
        number_of_installments INTEGER,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS payments (
        id TEXT PRIMARY KEY,
        loan_id TEXT NOT NULL REFERENCES loans(id),
        amount NUMERIC NOT NULL,
        date TIMESTAMPTZ NOT NULL,
        installment_number INTEGER,
        type TEXT NOT NULL CHECK (type IN ('interest_only', 'full')),
        receipt_id TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS receipts (
        id TEXT PRIMARY KEY,
        client_id TEXT NOT NULL REFERENCES clients(id),
        loan_id TEXT NOT NULL REFERENCES loans(id),
        payment_id TEXT NOT NULL REFERENCES payments(id),
        amount NUMERIC NOT NULL,
        date TIMESTAMPTZ NOT NULL,
        due_date DATE,
        receipt_number TEXT NOT NULL UNIQUE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_loans_client_id ON loans (client_id)",
    "CREATE INDEX IF NOT EXISTS idx_payments_loan_id ON payments (loan_id)",
    "CREATE INDEX IF NOT EXISTS idx_receipts_loan_id ON receipts (loan_id)",
    "CREATE INDEX IF NOT EXISTS idx_receipts_client_id ON receipts (client_id)",
]

# Client attribute -> column; everything but the id maps to itself
_CLIENT_COLUMNS = {
    "name", "email", "phone", "cpf", "address", "city", "state", "zip_code", "notes", "created_at",
}


class PostgresLedgerStore(LedgerRepository):
    """Ledger store on PostgreSQL.

    Every statement runs in autocommit mode; multi-entity operations are
    sequenced by the service layer, not wrapped in transactions here.

    Parameters
    ----------
    connection_string : str
        PostgreSQL connection string.
    """

    def __init__(self, connection_string: str) -> None:
        self.connection_string = connection_string
        try:
            self.conn = psycopg.connect(connection_string, autocommit=True, row_factory=dict_row)
        except psycopg.Error as e:
            logger.error("Could not connect to PostgreSQL: %s", e)
            raise PersistenceError(f"Could not connect to PostgreSQL: {e}") from e

    def create_tables(self) -> None:
        """Create the ledger tables if they do not exist."""
        for statement in SCHEMA_DDL:
            self._execute(statement)
        logger.info("Ledger tables ready")

    def close(self) -> None:
        self.conn.close()

    # --- Low-level helpers ---

    def _execute(
        self,
        query: Any,
        params: tuple | list | None = None,
        fetch: Callable[[Any], Any] | None = None,
        on_unique: type[PersistenceError] | None = None,
    ) -> Any:
        try:
            with self.conn.cursor() as cur:
                cur.execute(query, params)
                return fetch(cur) if fetch is not None else cur.rowcount
        except psycopg.errors.UniqueViolation as e:
            logger.error("Unique constraint violated: %s", e)
            raise (on_unique or PersistenceError)(str(e)) from e
        except psycopg.errors.ForeignKeyViolation as e:
            logger.error("Foreign key violated: %s", e)
            raise ReferentialIntegrityError(str(e)) from e
        except psycopg.Error as e:
            logger.error("Query failed: %s", e)
            raise PersistenceError(str(e)) from e

    def _insert(
        self,
        table: str,
        row: dict[str, Any],
        on_unique: type[PersistenceError] | None = None,
    ) -> dict[str, Any]:
        # Let the database fill created_at when absent
        row = {k: v for k, v in row.items() if not (k == "created_at" and v is None)}
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(", ").join(sql.Identifier(c) for c in row),
            sql.SQL(", ").join(sql.Placeholder() for _ in row),
        )
        return self._execute(query, list(row.values()), fetch=lambda cur: cur.fetchone(), on_unique=on_unique)

    def _update(self, table: str, record_id: str, columns: dict[str, Any]) -> dict[str, Any]:
        query = sql.SQL("UPDATE {} SET {} WHERE id = %s RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(", ").join(
                sql.SQL("{} = %s").format(sql.Identifier(c)) for c in columns
            ),
        )
        row = self._execute(query, [*columns.values(), record_id], fetch=lambda cur: cur.fetchone())
        if row is None:
            raise EntityNotFoundError(f"{table} {record_id} not found")
        return row

    def _select_one(self, table: str, record_id: str) -> dict[str, Any]:
        query = sql.SQL("SELECT * FROM {} WHERE id = %s").format(sql.Identifier(table))
        row = self._execute(query, [record_id], fetch=lambda cur: cur.fetchone())
        if row is None:
            raise EntityNotFoundError(f"{table} {record_id} not found")
        return row

    def _select(
        self,
        table: str,
        filters: dict[str, Any],
        order_by: str,
    ) -> list[dict[str, Any]]:
        conditions = [(c, v) for c, v in filters.items() if v is not None]
        query = sql.SQL("SELECT * FROM {}").format(sql.Identifier(table))
        if conditions:
            query += sql.SQL(" WHERE ") + sql.SQL(" AND ").join(
                sql.SQL("{} = %s").format(sql.Identifier(c)) for c, _ in conditions
            )
        query += sql.SQL(" ORDER BY {} DESC").format(sql.Identifier(order_by))
        return self._execute(query, [v for _, v in conditions], fetch=lambda cur: cur.fetchall())

    def _delete_where(self, table: str, column: str, value: str) -> int:
        query = sql.SQL("DELETE FROM {} WHERE {} = %s").format(
            sql.Identifier(table), sql.Identifier(column)
        )
        return self._execute(query, [value])

    # --- Clients ---

    def add_client(self, client: Client) -> Client:
        return client_from_row(self._insert("clients", client_to_row(client)))

    def get_client(self, client_id: str) -> Client:
        return client_from_row(self._select_one("clients", client_id))

    def list_clients(self) -> list[Client]:
        return [client_from_row(r) for r in self._select("clients", {}, "created_at")]

    def update_client(self, client_id: str, changes: dict[str, Any]) -> Client:
        unknown = set(changes) - _CLIENT_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update client fields: {sorted(unknown)}")
        return client_from_row(self._update("clients", client_id, changes))

    def delete_client(self, client_id: str) -> None:
        if self._delete_where("clients", "id", client_id) == 0:
            raise EntityNotFoundError(f"Client {client_id} not found")

    # --- Loans ---

    def add_loan(self, loan: Loan) -> Loan:
        return loan_from_row(self._insert("loans", loan_to_row(loan, fill_defaults=True)))

    def get_loan(self, loan_id: str) -> Loan:
        return loan_from_row(self._select_one("loans", loan_id), self.list_payments(loan_id))

    def list_loans(self, client_id: str | None = None, status: LoanStatus | None = None) -> list[Loan]:
        rows = self._select(
            "loans",
            {"client_id": client_id, "status": status.value if status is not None else None},
            "created_at",
        )
        payments: dict[str, list[Payment]] = {}
        for payment in self.list_payments():
            payments.setdefault(payment.loan_id, []).append(payment)
        return [loan_from_row(r, payments.get(str(r["id"]), [])) for r in rows]

    def update_loan(self, loan_id: str, changes: dict[str, Any]) -> Loan:
        row = self._update("loans", loan_id, loan_changes_to_row(changes))
        return loan_from_row(row, self.list_payments(loan_id))

    def delete_loan(self, loan_id: str) -> None:
        if self._delete_where("loans", "id", loan_id) == 0:
            raise EntityNotFoundError(f"Loan {loan_id} not found")

    # --- Payments ---

    def add_payment(self, payment: Payment) -> Payment:
        return payment_from_row(self._insert("payments", payment_to_row(payment)))

    def list_payments(self, loan_id: str | None = None) -> list[Payment]:
        return [payment_from_row(r) for r in self._select("payments", {"loan_id": loan_id}, "date")]

    def delete_payments_for_loan(self, loan_id: str) -> int:
        return self._delete_where("payments", "loan_id", loan_id)

    # --- Receipts ---

    def add_receipt(self, receipt: Receipt) -> Receipt:
        row = self._insert("receipts", receipt_to_row(receipt), on_unique=DuplicateReceiptNumberError)
        return receipt_from_row(row)

    def get_receipt(self, receipt_id: str) -> Receipt:
        return receipt_from_row(self._select_one("receipts", receipt_id))

    def list_receipts(self, loan_id: str | None = None, client_id: str | None = None) -> list[Receipt]:
        rows = self._select("receipts", {"loan_id": loan_id, "client_id": client_id}, "created_at")
        return [receipt_from_row(r) for r in rows]

    def delete_receipt(self, receipt_id: str) -> None:
        if self._delete_where("receipts", "id", receipt_id) == 0:
            raise EntityNotFoundError(f"Receipt {receipt_id} not found")

    def delete_receipts_for_loan(self, loan_id: str) -> int:
        return self._delete_where("receipts", "loan_id", loan_id)

    def delete_receipts_for_client(self, client_id: str) -> int:
        return self._delete_where("receipts", "client_id", client_id)

    def summary(self) -> dict[str, int]:
        """Return row counts per table."""
        counts: dict[str, int] = {}
        for table in ("clients", "loans", "payments", "receipts"):
            query = sql.SQL("SELECT COUNT(*) AS n FROM {}").format(sql.Identifier(table))
            counts[table] = self._execute(query, fetch=lambda cur: cur.fetchone()["n"])
        return counts
