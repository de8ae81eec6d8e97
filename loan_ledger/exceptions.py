"""Custom exception hierarchy for loan-ledger."""


class LedgerError(Exception):
    """Base exception for all loan-ledger errors."""


class EntityNotFoundError(LedgerError):
    """Raised when a referenced entity does not exist."""


class ReferentialIntegrityError(EntityNotFoundError):
    """Raised when a foreign key reference is violated."""


class InvalidEntityStateError(LedgerError):
    """Raised when an entity is in an invalid state for the operation."""


class ConfigurationError(LedgerError):
    """Raised when configuration is invalid or missing."""


class PersistenceError(LedgerError):
    """Raised when a write or read against the store fails."""


class DuplicateReceiptNumberError(PersistenceError):
    """Raised when a receipt number is already taken."""


class ReceiptGenerationError(LedgerError):
    """Raised when a payment was recorded but its receipt could not be created.

    The payment stays recorded and unreceipted until an operator reconciles it.
    """

    def __init__(self, message: str, payment: object | None = None) -> None:
        super().__init__(message)
        self.payment = payment


class InvalidPhoneError(LedgerError, ValueError):
    """Raised when a phone number cannot be normalized for message sharing."""


class PublishError(LedgerError):
    """Raised when a change event cannot be published."""
