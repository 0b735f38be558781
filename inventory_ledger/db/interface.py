# inventory_ledger/db/interface.py
"""Two-tier store contract.

The ledger always attempts the ``PrimaryStore`` (relational) and always
mirrors to the ``FallbackStore`` (local snapshot files), whatever the
primary's outcome. Loading prefers the primary and then falls back in a fixed
order: primary, fallback current file, fallback backup, built-in seed. The
two tiers are eventually consistent; there is no two-phase commit.
"""
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from inventory_ledger.entities import ArchiveRecord, InventoryItem, Supplier
from inventory_ledger.exceptions import BackendUnavailableError


class PrimaryStore(ABC):
    """Best-effort relational mirror.

    Every operation either returns a failure sentinel (``-1``, ``False``,
    ``[]``) or raises ``BackendUnavailableError``. Callers must have a
    fallback path for both.
    """

    @abstractmethod
    def test_connection(self) -> bool:
        """Check whether the store answers at all."""
        pass

    @abstractmethod
    def create_all_tables(self) -> None:
        """Create the schema if it does not exist."""
        pass

    @abstractmethod
    def load_all_items(self) -> List[InventoryItem]:
        """Load every inventory item."""
        pass

    @abstractmethod
    def insert_item(self, item: InventoryItem) -> int:
        """Insert an item and return its generated id, or -1."""
        pass

    @abstractmethod
    def update_item(self, item: InventoryItem) -> bool:
        """Update an item by id."""
        pass

    @abstractmethod
    def delete_item(self, item_id: int) -> bool:
        """Delete an item by id."""
        pass

    @abstractmethod
    def insert_transaction(self, item_name: str, transaction_type: str, quantity: int,
                           username: str, when: Optional[datetime] = None) -> bool:
        """Mirror one transaction log entry."""
        pass

    @abstractmethod
    def insert_archive(self, record: ArchiveRecord, item_id: Optional[int] = None) -> bool:
        """Mirror one archive record as a compact note."""
        pass

    @abstractmethod
    def insert_stock_alert(self, item_id: int, alert_date: date, minimum_stock: int,
                           status_description: str) -> bool:
        """Record a low-stock transition."""
        pass

    @abstractmethod
    def insert_supplier(self, supplier: Supplier) -> int:
        """Insert a supplier and return its id, or -1."""
        pass

    @abstractmethod
    def delete_supplier_by_name(self, name: str) -> bool:
        """Delete a supplier by name."""
        pass

    @abstractmethod
    def get_all_categories(self) -> List[str]:
        """List category names, sorted."""
        pass

    @abstractmethod
    def insert_category(self, name: str, description: str = '') -> int:
        """Insert a category (or find the existing one) and return its id, or -1."""
        pass

    @abstractmethod
    def delete_category(self, name: str) -> bool:
        """Delete a category by name."""
        pass

    @abstractmethod
    def insert_pos_sale(self, username: str, item_name: str, quantity_sold: int,
                        total_price: float, when: Optional[datetime] = None) -> bool:
        """Insert a sale line without a header."""
        pass

    @abstractmethod
    def insert_pos_sale_with_transaction(self, transaction_ref: str, username: str, item_name: str,
                                         quantity_sold: int, total_price: float,
                                         when: Optional[datetime] = None,
                                         payment_method: Optional[str] = None,
                                         payment_ref: Optional[str] = None,
                                         sale_total: Optional[float] = None,
                                         tendered_amount: Optional[float] = None,
                                         change_amount: Optional[float] = None) -> bool:
        """Upsert the sale header keyed by ``transaction_ref`` and insert one line."""
        pass

    def close(self) -> None:
        """Release any held connections."""
        pass


class FallbackStore(ABC):
    """Durable local copy of one record collection with a single backup generation."""

    @abstractmethod
    def save(self, records: List[Dict[str, Any]]) -> None:
        """Copy the current file to the backup, then overwrite the current file."""
        pass

    @abstractmethod
    def load(self) -> List[Dict[str, Any]]:
        """Read the current file."""
        pass

    @abstractmethod
    def load_backup(self) -> List[Dict[str, Any]]:
        """Read the backup file."""
        pass

    @abstractmethod
    def exists(self) -> bool:
        pass

    @abstractmethod
    def backup_exists(self) -> bool:
        pass


class OfflineBackend(PrimaryStore):
    """Primary store used when the relational backend is disabled or unreachable.

    Every call raises ``BackendUnavailableError`` so the ledger takes its
    local fallback path exactly as it would on a connectivity failure.
    """

    def __init__(self, reason: str = "Relational backend disabled"):
        self.reason = reason

    def _unavailable(self, *args, **kwargs):
        raise BackendUnavailableError(self.reason)

    def test_connection(self) -> bool:
        return False

    create_all_tables = _unavailable
    load_all_items = _unavailable
    insert_item = _unavailable
    update_item = _unavailable
    delete_item = _unavailable
    insert_transaction = _unavailable
    insert_archive = _unavailable
    insert_stock_alert = _unavailable
    insert_supplier = _unavailable
    delete_supplier_by_name = _unavailable
    get_all_categories = _unavailable
    insert_category = _unavailable
    delete_category = _unavailable
    insert_pos_sale = _unavailable
    insert_pos_sale_with_transaction = _unavailable
