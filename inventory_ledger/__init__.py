from .config import config
from .logging_setup import logger, get_logger
from .exceptions import (
    LedgerError, ConfigError, DatabaseError, BackendUnavailableError,
    PersistenceError, ValidationError, ItemError, ArchiveError, CheckoutError
)

__version__ = '1.0.0'

__all__ = [
    'config',
    'logger',
    'get_logger',
    'LedgerError',
    'ConfigError',
    'DatabaseError',
    'BackendUnavailableError',
    'PersistenceError',
    'ValidationError',
    'ItemError',
    'ArchiveError',
    'CheckoutError'
]
