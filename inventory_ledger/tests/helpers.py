"""
Shared fixtures for the ledger tests.
"""
import tempfile
import threading
from pathlib import Path
from unittest.mock import MagicMock

from inventory_ledger.db.interface import OfflineBackend, PrimaryStore
from inventory_ledger.entities import InventoryItem
from inventory_ledger.services.archive_service import ArchiveService
from inventory_ledger.services.ledger_service import LedgerService
from inventory_ledger.services.transaction_log import TransactionLog
from inventory_ledger.storage.snapshot import SnapshotStore

LEDGER_SETTINGS = {
    'system_user': 'SYSTEM',
    'default_min_stock_level': 10,
    'seed_sample_data': False
}


def make_backend_mock():
    """Primary store mock answering every call with success values."""
    backend = MagicMock(spec=PrimaryStore)
    backend.test_connection.return_value = True
    backend.load_all_items.return_value = []
    backend.insert_item.return_value = -1
    backend.update_item.return_value = True
    backend.delete_item.return_value = True
    backend.insert_transaction.return_value = True
    backend.insert_archive.return_value = True
    backend.insert_stock_alert.return_value = True
    backend.insert_supplier.return_value = 1
    backend.delete_supplier_by_name.return_value = False
    backend.get_all_categories.return_value = []
    backend.insert_category.return_value = 1
    backend.delete_category.return_value = False
    backend.insert_pos_sale.return_value = True
    backend.insert_pos_sale_with_transaction.return_value = True
    return backend


class LedgerFixture:
    """Ledger, archive and transaction log over a temporary directory."""

    def __init__(self, backend=None, directory=None, user='cashier', settings=None):
        self._tmp = None
        if directory is None:
            self._tmp = tempfile.TemporaryDirectory()
            directory = self._tmp.name
        self.directory = Path(directory)
        self.backend = backend if backend is not None else OfflineBackend()
        self.snapshot = SnapshotStore(self.directory / 'inventory_data.json')
        self.transaction_log = TransactionLog(self.backend, SnapshotStore(self.directory / 'transactions.json'))
        self.archive = ArchiveService(self.backend, SnapshotStore(self.directory / 'archive_data.json'))
        self.ledger = LedgerService(
            self.backend,
            self.snapshot,
            self.transaction_log,
            self.archive,
            suppliers_store=SnapshotStore(self.directory / 'suppliers.json'),
            categories_store=SnapshotStore(self.directory / 'categories.json'),
            user_provider=lambda: user,
            settings=dict(settings or LEDGER_SETTINGS)
        )

    def reopen(self, backend=None, settings=None):
        """Fresh services over the same directory, as after a restart."""
        return LedgerFixture(backend=backend, directory=self.directory, settings=settings)

    def close(self):
        self.transaction_log.shutdown()
        if self._tmp is not None:
            self._tmp.cleanup()


def a4_paper(**overrides):
    fields = dict(name='A4 Paper', category='Paper', description='Standard A4 printing paper, 80gsm',
                  quantity=500, min_stock_level=100, unit_price=0.10, supplier='Office Supplies Co.')
    fields.update(overrides)
    return InventoryItem(**fields)


class HeldSnapshotStore(SnapshotStore):
    """Snapshot store that can park its next save until ``release`` is set."""

    def __init__(self, path):
        super().__init__(path)
        self.entered = threading.Event()
        self.release = threading.Event()
        self._hold_next = False

    def hold_next_save(self):
        self._hold_next = True

    def save(self, records):
        if self._hold_next:
            self._hold_next = False
            self.entered.set()
            self.release.wait(5)
        super().save(records)
