"""Ledger storage backends."""

from loan_ledger.store.base import LedgerRepository
from loan_ledger.store.memory import InMemoryLedgerStore
from loan_ledger.store.postgres import PostgresLedgerStore
from loan_ledger.store.publishing import PublishingStore

__all__ = ["InMemoryLedgerStore", "LedgerRepository", "PostgresLedgerStore", "PublishingStore"]
