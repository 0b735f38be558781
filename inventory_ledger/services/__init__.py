from .archive_service import ArchiveService, ArchiveStats
from .transaction_log import TransactionLog
from .ledger_service import LedgerService, InventoryStats
from .checkout_service import CheckoutService, CartLine, Payment, CheckoutResult
from .migration_service import MigrationService, MigrationResult

__all__ = [
    'ArchiveService',
    'ArchiveStats',
    'TransactionLog',
    'LedgerService',
    'InventoryStats',
    'CheckoutService',
    'CartLine',
    'Payment',
    'CheckoutResult',
    'MigrationService',
    'MigrationResult'
]
