"""Loan ledger for the Dinheiro Rápido lending operation."""

__version__ = "0.1.0"
