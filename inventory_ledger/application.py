# inventory_ledger/application.py
from typing import Callable, Optional

from inventory_ledger.config import Config, config as default_config
from inventory_ledger.db import PrimaryStore, create_backend
from inventory_ledger.exceptions import BackendUnavailableError
from inventory_ledger.logging_setup import logger
from inventory_ledger.services.archive_service import ArchiveService
from inventory_ledger.services.checkout_service import CheckoutService
from inventory_ledger.services.ledger_service import LedgerService
from inventory_ledger.services.migration_service import MigrationService
from inventory_ledger.services.transaction_log import TransactionLog
from inventory_ledger.storage import SnapshotStore


class InventoryApplication:
    """Builds the services in dependency order and runs their start/stop sequence.

    ``start`` loads the archive, the transaction history and the items (in
    that order); ``stop`` finishes queued sale persistence, retries any failed
    snapshot save and drains the transaction log. One instance per process.
    """

    def __init__(self, settings: Optional[Config] = None, backend: Optional[PrimaryStore] = None,
                 user_provider: Optional[Callable[[], Optional[str]]] = None):
        """Wire the services.

        Args:
            settings: Configuration; defaults to the global config
            backend: Primary store; defaults to one built from configuration
            user_provider: Returns the signed-in username, or None
        """
        self.settings = settings or default_config
        self.backend = backend if backend is not None else create_backend(settings=self.settings)

        storage = self.settings.storage_config
        self.transaction_log = TransactionLog(self.backend, SnapshotStore(storage['transactions_file']))
        self.archive = ArchiveService(self.backend, SnapshotStore(storage['archive_file']))
        self.ledger = LedgerService(
            self.backend,
            SnapshotStore(storage['inventory_file']),
            self.transaction_log,
            self.archive,
            suppliers_store=SnapshotStore(storage['suppliers_file']),
            categories_store=SnapshotStore(storage['categories_file']),
            user_provider=user_provider,
            settings=self.settings.ledger_config
        )
        self.checkout = CheckoutService(self.ledger, self.archive, self.backend)
        self.migration = MigrationService(self.backend, self.ledger, self.transaction_log, self.archive)
        self._started = False

    def start(self) -> str:
        """Prepare the schema if the backend answers, then load all data.

        Returns:
            Source the items were loaded from
        """
        log = logger.app_logger
        if self.backend.test_connection():
            try:
                self.backend.create_all_tables()
            except BackendUnavailableError as e:
                log.warning(f"Could not prepare relational schema: {e.message}")
        else:
            log.warning("Relational backend not reachable; running on local snapshot files")

        self.archive.load()
        self.transaction_log.load()
        source = self.ledger.load_data()
        self._started = True
        log.info(f"Inventory ledger started ({len(self.ledger.items)} items from {source})")
        return source

    def stop(self) -> None:
        """Flush everything to disk and release connections."""
        if not self._started:
            return
        self.checkout.shutdown()
        self.ledger.flush()
        self.archive.save()
        self.transaction_log.shutdown()
        self.backend.close()
        self._started = False
        logger.app_logger.info("Inventory ledger stopped")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.stop()
        return False
