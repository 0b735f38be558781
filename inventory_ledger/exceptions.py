class LedgerError(Exception):
    """Base exception for inventory ledger errors."""

    def __init__(self, message=None, code=None, details=None):
        """Initialize the exception.

        Args:
            message: Error message
            code: Error code
            details: Additional error details
        """
        self.message = message or "An error occurred in the inventory ledger"
        self.code = code
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        """String representation of the error."""
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self):
        """Convert the exception to a dictionary."""
        error_dict = {
            'error': self.__class__.__name__,
            'message': self.message,
        }

        if self.code:
            error_dict['code'] = self.code

        if self.details:
            error_dict['details'] = self.details

        return error_dict


class ConfigError(LedgerError):
    """Exception raised for configuration errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Configuration error"
        super().__init__(message, code, details)


class DatabaseError(LedgerError):
    """Exception raised for database-related errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Database error"
        super().__init__(message, code, details)


class BackendUnavailableError(DatabaseError):
    """Exception raised when the relational backend cannot be reached.

    Covers connectivity failures, pool exhaustion and a disabled backend.
    Callers treat it as "use the local fallback", never as fatal.
    """

    def __init__(self, message=None, code=None, details=None):
        message = message or "Relational backend unavailable"
        super().__init__(message, code, details)


class PersistenceError(LedgerError):
    """Exception raised when a local snapshot file cannot be read or written."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Local persistence error"
        super().__init__(message, code, details)


class ValidationError(LedgerError):
    """Exception raised for data validation errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Validation error"
        super().__init__(message, code, details)


class ItemError(LedgerError):
    """Exception raised for item-related errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Item error"
        super().__init__(message, code, details)


class ArchiveError(LedgerError):
    """Exception raised for archive-related errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Archive error"
        super().__init__(message, code, details)


class CheckoutError(LedgerError):
    """Exception raised when a checkout request is rejected."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Checkout error"
        super().__init__(message, code, details)
