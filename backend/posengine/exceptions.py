"""Domain error taxonomy for the transaction engine."""


class TransactionError(Exception):
    """Base class for transaction engine errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(TransactionError):
    """User-correctable problem: bad input or an invalid state transition."""
    pass


class NotFoundError(TransactionError):
    """Referenced record does not exist or does not belong to the transaction."""
    pass


class PriceNotFoundError(TransactionError):
    """No price resolvable for a product in a store/currency."""
    pass


class InsufficientStockError(ValidationError):
    """Raised only when non-negative stock is enforced."""
    pass


class ConcurrencyConflict(TransactionError):
    """Lock or optimistic-version conflict that survived every retry."""
    pass
