# inventory_ledger/services/migration_service.py
import logging
from typing import Callable, Iterable, NamedTuple, TypeVar

from inventory_ledger.db.interface import PrimaryStore
from inventory_ledger.exceptions import BackendUnavailableError
from inventory_ledger.logging_setup import logger as log_manager
from inventory_ledger.services.archive_service import ArchiveService
from inventory_ledger.services.ledger_service import LedgerService
from inventory_ledger.services.transaction_log import TransactionLog

logger = logging.getLogger(__name__)

T = TypeVar('T')


class MigrationResult(NamedTuple):
    attempted: int
    migrated: int
    failed: int


class MigrationService:
    """One-off copies of local records into the relational backend.

    A record the backend rejects is counted as failed and the run goes on.
    Once the backend is unreachable the remaining records are counted as
    failed without further attempts.
    """

    def __init__(self, backend: PrimaryStore, ledger: LedgerService,
                 transaction_log: TransactionLog, archive: ArchiveService):
        self.backend = backend
        self.ledger = ledger
        self.transaction_log = transaction_log
        self.archive = archive

    def _migrate(self, name: str, records: Iterable[T], push: Callable[[T], bool],
                 describe: Callable[[T], str]) -> MigrationResult:
        records = list(records)
        log_info = log_manager.operation_start_log(name, {'records': len(records)})

        migrated = 0
        for index, record in enumerate(records):
            try:
                if push(record):
                    migrated += 1
                else:
                    logger.warning(f"Failed to migrate {describe(record)}")
            except BackendUnavailableError as e:
                logger.warning(f"Backend unavailable after {index} of {len(records)} records: {e.message}")
                break

        result = MigrationResult(attempted=len(records), migrated=migrated, failed=len(records) - migrated)
        log_manager.operation_end_log(log_info, success=result.failed == 0, result_info=result._asdict())
        return result

    def migrate_items_to_backend(self) -> MigrationResult:
        """Insert every local item into the backend."""
        return self._migrate(
            'migrate_items',
            self.ledger.get_all_items(),
            lambda item: self.backend.insert_item(item) > 0,
            lambda item: f"item '{item.name}'"
        )

    def migrate_transactions_to_backend(self) -> MigrationResult:
        """Insert every local transaction record into the backend."""
        return self._migrate(
            'migrate_transactions',
            self.transaction_log.records(),
            lambda r: self.backend.insert_transaction(r.item_name, r.type, r.quantity, r.user, r.date),
            lambda r: f"transaction {r.type} '{r.item_name}' at {r.date}"
        )

    def migrate_archive_to_backend(self) -> MigrationResult:
        """Insert every local archive record into the backend as a note."""
        return self._migrate(
            'migrate_archive',
            self.archive.records(),
            lambda r: self.backend.insert_archive(r),
            lambda r: f"archive record {r.id} '{r.original_item_name}'"
        )
