# inventory_ledger/db/__init__.py
from inventory_ledger.config import config
from inventory_ledger.logging_setup import get_logger

from .connection import DatabaseConnection
from .interface import PrimaryStore, FallbackStore, OfflineBackend
from .backend import RelationalBackend

logger = get_logger('database')

def create_backend(url=None, settings=None) -> PrimaryStore:
    """Build the primary store from configuration.

    Returns an ``OfflineBackend`` when the backend is disabled or the engine
    cannot be created, so the ledger runs on its local files alone.

    Args:
        url: Optional SQLAlchemy URL overriding the configured one
        settings: Config instance; defaults to the global one
    """
    settings = settings or config
    db_config = settings.db_config
    if not db_config['enabled'] and url is None:
        logger.info("Relational backend disabled by configuration")
        return OfflineBackend()

    try:
        connection = DatabaseConnection(url or settings.get_db_url(), db_config)
        # Forces engine creation so a bad URL or missing driver shows up here
        connection.engine
    except Exception as e:
        logger.warning(f"Relational backend unavailable, running on local files: {str(e)}")
        return OfflineBackend(f"Relational backend unavailable: {str(e)}")

    return RelationalBackend(connection)

__all__ = [
    'DatabaseConnection',
    'PrimaryStore',
    'FallbackStore',
    'OfflineBackend',
    'RelationalBackend',
    'create_backend'
]
