# inventory_ledger/services/ledger_service.py
import logging
from datetime import date
from threading import Lock, RLock
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Union

from inventory_ledger.config import config
from inventory_ledger.db.interface import PrimaryStore, FallbackStore
from inventory_ledger.entities import (
    ArchiveRecord, ArchiveType, Category, InventoryItem, Supplier, TransactionType,
    build_user_descriptor
)
from inventory_ledger.exceptions import (
    ArchiveError, BackendUnavailableError, ItemError, PersistenceError, ValidationError
)
from inventory_ledger.logging_setup import logger as log_manager
from inventory_ledger.services.archive_service import ArchiveService
from inventory_ledger.services.transaction_log import TransactionLog
from inventory_ledger.utils.date_utils import now
from inventory_ledger.utils.validation import ensure_valid_item, validate_amount

logger = logging.getLogger(__name__)

STOCK_ALERT_DESCRIPTION = "Automatically generated low stock alert"

ItemsListener = Callable[[List[InventoryItem]], None]

# name, category, description, quantity, minimum stock, unit price, supplier
SAMPLE_CATALOG = [
    ("A4 Paper", "Paper", "Standard A4 printing paper, 80gsm", 500, 100, 0.10, "Office Supplies Co."),
    ("A3 Paper", "Paper", "A3 size printing paper, 80gsm", 200, 50, 0.20, "Office Supplies Co."),
    ("Photo Paper", "Paper", "Glossy photo paper, A4 size", 100, 25, 0.50, "Photo Supplies Inc."),
    ("Black Ink Cartridge", "Ink", "Compatible black ink cartridge", 15, 5, 25.00, "Print Solutions"),
    ("Color Ink Set", "Ink", "CMY color ink cartridge set", 10, 3, 45.00, "Print Solutions"),
    ("Toner Cartridge", "Toner", "Laser printer toner cartridge", 8, 2, 75.00, "Laser Tech"),
    ("Heat Transfer Vinyl", "Heat Press", "Various colors heat transfer vinyl", 50, 10, 2.50, "Vinyl Crafts"),
    ("Sublimation Paper", "Heat Press", "Sublimation transfer paper", 200, 50, 0.75, "Sublimation Supplies"),
    ("Plain T-Shirts", "Heat Press", "Cotton t-shirts for printing", 100, 20, 8.00, "Apparel Wholesale"),
    ("Ceramic Mugs", "Heat Press", "White ceramic mugs for sublimation", 50, 15, 3.50, "Mug Suppliers"),
    ("Tumblers", "Heat Press", "Stainless steel tumblers", 30, 10, 12.00, "Drinkware Co."),
    ("Tarpaulin Material", "Tarpaulin", "Heavy-duty tarpaulin material", 100, 20, 3.00, "Banner Materials"),
    ("Eyelets", "Tarpaulin", "Metal eyelets for tarpaulin", 1000, 200, 0.05, "Hardware Store"),
    ("Rope", "Tarpaulin", "Nylon rope for tarpaulin", 50, 10, 1.50, "Hardware Store"),
]


class InventoryStats(NamedTuple):
    total_items: int
    low_stock_items: int
    out_of_stock_items: int
    total_quantity: int
    total_value: float


class LedgerService:
    """Owner of the authoritative item quantities.

    Every mutation is applied in memory first, written through to the
    primary store when it answers, and mirrored to the local snapshot file
    whatever the primary's outcome. The two stores are eventually
    consistent; the in-memory collection stays authoritative for the
    running session even when both writes fail.
    """

    def __init__(
        self,
        backend: PrimaryStore,
        snapshot: FallbackStore,
        transaction_log: TransactionLog,
        archive: ArchiveService,
        suppliers_store: Optional[FallbackStore] = None,
        categories_store: Optional[FallbackStore] = None,
        user_provider: Optional[Callable[[], Optional[str]]] = None,
        settings: Optional[Dict[str, Any]] = None
    ):
        """Initialize the ledger.

        Args:
            backend: Primary (relational) store
            snapshot: Local inventory snapshot file
            transaction_log: Transaction history
            archive: Archive of removed stock
            suppliers_store: Local suppliers file
            categories_store: Local categories file
            user_provider: Returns the signed-in username, or None
            settings: Ledger settings; defaults to ``config.ledger_config``
        """
        settings = settings or config.ledger_config

        self.backend = backend
        self.snapshot = snapshot
        self.transaction_log = transaction_log
        self.archive = archive
        self.suppliers_store = suppliers_store
        self.categories_store = categories_store
        self.user_provider = user_provider

        self.system_user = settings.get('system_user', 'SYSTEM')
        self.default_min_stock_level = settings.get('default_min_stock_level', 10)
        self.seed_sample_data = settings.get('seed_sample_data', True)

        self._items: List[InventoryItem] = []
        self._suppliers: List[Supplier] = []
        self._categories: List[Category] = []
        self._next_id = 1
        self._unsaved = False
        self._lock = RLock()
        self._item_locks: Dict[int, Lock] = {}
        self._item_locks_guard = Lock()
        self._listeners: List[ItemsListener] = []

    # Collaborators

    def current_user(self) -> str:
        """Acting user for attribution, upper-cased; the system user when nobody is signed in."""
        user = self.user_provider() if self.user_provider else None
        return user.strip().upper() if user and user.strip() else self.system_user

    def on_items_changed(self, listener: ItemsListener) -> Callable[[], None]:
        """Subscribe to item changes.

        The listener receives a copy of the item list after every mutation.

        Returns:
            Function that removes the subscription
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        snapshot = self.get_all_items()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Items listener failed")

    def _item_lock(self, item_id: int) -> Lock:
        with self._item_locks_guard:
            lock = self._item_locks.get(item_id)
            if lock is None:
                lock = self._item_locks[item_id] = Lock()
            return lock

    # Queries

    @property
    def items(self) -> List[InventoryItem]:
        return self.get_all_items()

    def get_all_items(self) -> List[InventoryItem]:
        """Copy of the item list; the items themselves are live."""
        with self._lock:
            return list(self._items)

    def find_item_by_id(self, item_id: int) -> Optional[InventoryItem]:
        with self._lock:
            return next((i for i in self._items if i.id == item_id), None)

    def find_item_by_name(self, name: str) -> Optional[InventoryItem]:
        needle = (name or '').strip().lower()
        with self._lock:
            return next((i for i in self._items if i.name.lower() == needle), None)

    def find_items_by_category(self, category: str) -> List[InventoryItem]:
        needle = (category or '').strip().lower()
        return [i for i in self.get_all_items() if i.category.lower() == needle]

    def search_items(self, text: str) -> List[InventoryItem]:
        """Items whose name, category, description or supplier contains ``text``."""
        needle = (text or '').strip().lower()
        if not needle:
            return self.get_all_items()
        return [
            i for i in self.get_all_items()
            if any(needle in (field or '').lower()
                   for field in (i.name, i.category, i.description, i.supplier))
        ]

    def get_low_stock_items(self) -> List[InventoryItem]:
        return [i for i in self.get_all_items() if i.low_stock]

    def get_out_of_stock_items(self) -> List[InventoryItem]:
        return [i for i in self.get_all_items() if i.out_of_stock]

    def get_inventory_stats(self) -> InventoryStats:
        items = self.get_all_items()
        return InventoryStats(
            total_items=len(items),
            low_stock_items=sum(1 for i in items if i.low_stock),
            out_of_stock_items=sum(1 for i in items if i.out_of_stock),
            total_quantity=sum(i.quantity for i in items),
            total_value=sum(i.total_value for i in items)
        )

    # Item mutations

    def add_item(self, item: InventoryItem) -> InventoryItem:
        """Add a new item, assign its id and log ``ADD``.

        Durability failures are logged, never raised.

        Raises:
            ValidationError: If the item itself is invalid
        """
        self._insert_item(item)
        self.transaction_log.log(item.name, TransactionType.ADD, item.quantity, self.current_user())
        logger.info(f"Added item '{item.name}' (id {item.id})")
        return item

    def _insert_item(self, item: InventoryItem) -> InventoryItem:
        ensure_valid_item(item)
        item.stock_in = 0
        item.stock_out = 0
        item.last_updated = now()
        item.refresh_status()

        generated_id = -1
        try:
            generated_id = self.backend.insert_item(item)
        except BackendUnavailableError as e:
            logger.warning(f"Backend unavailable, '{item.name}' gets a local id: {e.message}")

        with self._lock:
            collided = generated_id > 0 and self.find_item_by_id(generated_id) is not None
            if generated_id > 0 and not collided:
                item.id = generated_id
                self._next_id = max(self._next_id, generated_id + 1)
            else:
                item.id = self._next_id
                self._next_id += 1
            self._items.append(item)

        if collided:
            # The row's id belongs to a local item; leave no row behind for it to overwrite
            self._drop_orphan_row(generated_id, item)

        self.save_data()
        self._notify()
        return item

    def _drop_orphan_row(self, row_id: int, item: InventoryItem) -> None:
        logger.warning(f"Backend id {row_id} for '{item.name}' is taken locally; "
                       f"keeping local id {item.id}")
        try:
            if not self.backend.delete_item(row_id):
                logger.error(f"Could not delete backend row {row_id} for '{item.name}'")
        except BackendUnavailableError as e:
            logger.error(f"Backend unavailable, row {row_id} for '{item.name}' left in place: {e.message}")

    def update_item(self, item: InventoryItem) -> InventoryItem:
        """Commit changes made to an item and log ``UPDATE``.

        The item replaces the stored item with the same id. A move into
        low stock emits a stock alert.

        Raises:
            ItemError: If no item with this id exists
            ValidationError: If the item is invalid
        """
        ensure_valid_item(item)
        with self._item_lock(item.id):
            # Flags on the stored item still describe the last committed state
            stored = self.find_item_by_id(item.id)
            was_low = stored.low_stock if stored is not None else item.low_stock
            self._commit_item(item, was_low)
        self.transaction_log.log(item.name, TransactionType.UPDATE, item.quantity, self.current_user())
        return item

    def _commit_item(self, item: InventoryItem, was_low: bool) -> None:
        """Refresh derived state and write the item to both stores (no logging)."""
        item.last_updated = now()
        item.refresh_status()

        with self._lock:
            index = next((n for n, i in enumerate(self._items) if i.id == item.id), None)
            if index is None:
                raise ItemError(f"Item '{item.name}' (id {item.id}) is not in the inventory",
                                details={'id': item.id})
            self._items[index] = item

        if item.low_stock and not was_low:
            self._emit_stock_alert(item)

        try:
            if not self.backend.update_item(item):
                logger.warning(f"Backend did not update '{item.name}'; local snapshot holds it")
        except BackendUnavailableError as e:
            logger.warning(f"Backend unavailable, '{item.name}' saved locally only: {e.message}")

        self.save_data()
        self._notify()

    def _emit_stock_alert(self, item: InventoryItem) -> None:
        logger.warning(f"Low stock: '{item.name}' at {item.quantity} (minimum {item.min_stock_level})")
        try:
            self.backend.insert_stock_alert(item.id, date.today(), item.min_stock_level,
                                            STOCK_ALERT_DESCRIPTION)
        except BackendUnavailableError as e:
            logger.warning(f"Stock alert for '{item.name}' not recorded: {e.message}")

    def remove_item(self, item: InventoryItem, reason: str = '') -> ArchiveRecord:
        """Archive the full remaining quantity, then delete the item.

        Args:
            item: Item to remove
            reason: Free-text reason, embedded in the ``ARCHIVE`` log entry

        Returns:
            The archive record written

        Raises:
            ItemError: If the item is not in the inventory
        """
        with self._item_lock(item.id):
            stored = self.find_item_by_id(item.id)
            if stored is None:
                raise ItemError(f"Item '{item.name}' (id {item.id}) is not in the inventory",
                                details={'id': item.id})

            user = self.current_user()
            record = self.archive.archive_item_usage(stored, stored.quantity, user, reason,
                                                     ArchiveType.ARCHIVED)
            self.transaction_log.log(stored.name, TransactionType.ARCHIVE, stored.quantity,
                                     build_user_descriptor(user, reason=reason), stored.unit_price)

            try:
                if not self.backend.delete_item(stored.id):
                    logger.warning(f"Backend did not delete '{stored.name}'")
            except BackendUnavailableError as e:
                logger.warning(f"Backend unavailable, '{stored.name}' removed locally only: {e.message}")

            with self._lock:
                self._items = [i for i in self._items if i.id != stored.id]

        with self._item_locks_guard:
            self._item_locks.pop(stored.id, None)

        self.save_data()
        self._notify()
        logger.info(f"Removed item '{stored.name}' ({reason or 'no reason given'})")
        return record

    def reduce_item_quantity(
        self,
        item: InventoryItem,
        amount: int,
        used_by: Optional[str] = None,
        reason: str = '',
        transaction_type: Union[TransactionType, str] = TransactionType.STOCK_OUT,
        user_descriptor: Optional[str] = None,
        unit_price: Optional[float] = None
    ) -> bool:
        """Consume ``amount`` units of an item.

        Every consuming path (sale, manual stock out) goes through here so
        quantity, stock-out counter, archive and history move together:
        one ``Used Item`` archive record and one transaction entry per call.

        Args:
            item: Item to reduce
            amount: Units to remove
            used_by: Acting user; defaults to the current user
            reason: Free-text reason
            transaction_type: Logged operation type
            user_descriptor: User column of the log entry, when it carries sale tags
            unit_price: Logged unit price; zero prices when omitted

        Returns:
            False, with nothing changed, if ``amount`` is not positive, exceeds
            the available quantity, or the item is unknown
        """
        errors = validate_amount(amount)
        if errors:
            logger.warning(f"Rejected reduction of '{item.name}': {errors['amount']}")
            return False

        with self._item_lock(item.id):
            stored = self.find_item_by_id(item.id)
            if stored is None:
                logger.warning(f"Rejected reduction of unknown item '{item.name}' (id {item.id})")
                return False
            if amount > stored.quantity:
                logger.warning(f"Rejected reduction of '{stored.name}': {amount} requested, "
                               f"{stored.quantity} available")
                return False

            user = used_by or self.current_user()
            was_low = stored.low_stock
            stored.remove_stock(amount)
            self.archive.archive_item_usage(stored, amount, user, reason, ArchiveType.USED)
            self.transaction_log.log(stored.name, transaction_type, amount,
                                     user_descriptor or user, unit_price)
            self._commit_item(stored, was_low)

        logger.info(f"Reduced '{stored.name}' by {amount} ({transaction_type}) for {user}")
        return True

    def add_stock(self, item: InventoryItem, amount: int) -> bool:
        """Receive ``amount`` units and log ``STOCK IN``.

        Returns:
            False, with nothing changed, if ``amount`` is not positive or the item is unknown
        """
        errors = validate_amount(amount)
        if errors:
            logger.warning(f"Rejected stock in for '{item.name}': {errors['amount']}")
            return False

        with self._item_lock(item.id):
            stored = self.find_item_by_id(item.id)
            if stored is None:
                logger.warning(f"Rejected stock in for unknown item '{item.name}' (id {item.id})")
                return False
            was_low = stored.low_stock
            stored.add_stock(amount)
            self.transaction_log.log(stored.name, TransactionType.STOCK_IN, amount, self.current_user())
            self._commit_item(stored, was_low)

        logger.info(f"Stocked in {amount} x '{stored.name}'")
        return True

    def stock_out(self, item: InventoryItem, amount: int, reason: str = '') -> bool:
        """Manual stock out, recorded as ``STOCK OUT``."""
        return self.reduce_item_quantity(item, amount, reason=reason,
                                         transaction_type=TransactionType.STOCK_OUT)

    def end_of_day(self) -> int:
        """Reset stock-in/stock-out counters of every item.

        The snapshot save moves the pre-reset state into the backup file, so
        ``restore_from_backup`` undoes this.

        Returns:
            Number of items reset
        """
        log_info = log_manager.operation_start_log('end_of_day')
        with self._lock:
            items = list(self._items)
            for item in items:
                item.stock_in = 0
                item.stock_out = 0

        self._mirror_items(items)
        saved = self.save_data()
        self.transaction_log.log('ALL ITEMS', TransactionType.END_OF_DAY, len(items), self.current_user())
        self._notify()
        log_manager.operation_end_log(log_info, success=saved, result_info={'items_reset': len(items)})
        return len(items)

    def retrieve_from_archive(self, record: ArchiveRecord) -> InventoryItem:
        """Return an archived quantity to active stock.

        Adds to the live item with the same name (case-insensitive) or
        recreates the item from the archive snapshot. The archive record is
        left in place.

        Raises:
            ArchiveError: If the record holds no quantity
        """
        if record.quantity_used <= 0:
            raise ArchiveError(f"Nothing to retrieve for '{record.original_item_name}'",
                               details={'id': record.id})

        existing = self.find_item_by_name(record.original_item_name)
        if existing is not None:
            with self._item_lock(existing.id):
                was_low = existing.low_stock
                existing.quantity += record.quantity_used
                self._commit_item(existing, was_low)
            item = existing
        else:
            item = self._insert_item(InventoryItem(
                name=record.original_item_name,
                category=record.category,
                quantity=record.quantity_used,
                min_stock_level=self.default_min_stock_level,
                unit_price=record.unit_price,
                supplier=record.supplier
            ))

        self.transaction_log.log(item.name, TransactionType.RETRIEVED, record.quantity_used,
                                 self.current_user())
        logger.info(f"Retrieved {record.quantity_used} x '{item.name}' from archive")
        return item

    def _mirror_items(self, items: Iterable[InventoryItem]) -> None:
        """Write items through to the backend, stopping once it is unreachable."""
        for item in items:
            try:
                self.backend.update_item(item)
            except BackendUnavailableError as e:
                logger.warning(f"Backend unavailable, bulk update kept locally: {e.message}")
                return

    # Load / save

    def load_data(self) -> str:
        """Load items: primary store, then snapshot file, then its backup, then the sample catalog.

        Returns:
            Where the items came from: 'relational', 'snapshot', 'backup' or 'seed'
        """
        items = None
        source = None

        try:
            rows = self.backend.load_all_items()
            if rows:
                items, source = rows, 'relational'
            else:
                logger.info("Relational backend returned no items")
        except BackendUnavailableError as e:
            logger.warning(f"Backend unavailable, loading local snapshot: {e.message}")

        if items is None:
            items = self._read_snapshot(self.snapshot.load, 'inventory file')
            source = 'snapshot'
        if items is None:
            items = self._read_snapshot(self.snapshot.load_backup, 'inventory backup')
            source = 'backup'

        with self._lock:
            self._items = items or []
            self._next_id = max((i.id for i in self._items), default=0) + 1
            for item in self._items:
                if item.id <= 0:
                    item.id = self._next_id
                    self._next_id += 1

        self._load_suppliers()
        self._load_categories()

        if items is None:
            source = 'seed'
            if self.seed_sample_data:
                self._seed_sample_catalog()

        logger.info(f"Loaded {len(self._items)} items from {source}")
        self._notify()
        return source

    def _read_snapshot(self, loader: Callable[[], List[Dict[str, Any]]], label: str) -> Optional[List[InventoryItem]]:
        try:
            raw = loader()
        except PersistenceError as e:
            if e.code == 'MISSING':
                logger.info(f"No {label} found")
            else:
                logger.error(f"Error loading {label}: {e.message}")
            return None
        return self._parse_items(raw)

    @staticmethod
    def _parse_items(raw: List[Dict[str, Any]]) -> List[InventoryItem]:
        items = []
        for entry in raw:
            try:
                items.append(InventoryItem.from_dict(entry))
            except (ValidationError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable inventory record: {e}")
        return items

    def _seed_sample_catalog(self) -> None:
        logger.info("No stored inventory found, seeding sample catalog")
        for name, category, description, quantity, minimum, price, supplier in SAMPLE_CATALOG:
            self.add_item(InventoryItem(
                name=name,
                category=category,
                description=description,
                quantity=quantity,
                min_stock_level=minimum,
                unit_price=price,
                supplier=supplier
            ))

    def save_data(self) -> bool:
        """Write the full item list to the local snapshot (backup, then overwrite).

        The lock is held through the write so saves land in the order
        their payloads were taken.

        Returns:
            False if the file could not be written; memory is unaffected
        """
        with self._lock:
            payload = [i.to_dict() for i in self._items]
            try:
                self.snapshot.save(payload)
            except PersistenceError as e:
                logger.error(f"Error saving inventory data: {e.message}")
                self._unsaved = True
                return False
            self._unsaved = False
            return True

    def flush(self) -> bool:
        """Retry the snapshot save if the last one failed.

        With nothing pending the files are left alone, so the backup keeps
        the state before the last change.
        """
        return self.save_data() if self._unsaved else True

    def restore_from_backup(self) -> bool:
        """Replace the items with the backup snapshot and save it as current.

        Returns:
            False if there is no readable backup
        """
        if not self.snapshot.backup_exists():
            logger.warning("No inventory backup to restore")
            return False

        items = self._read_snapshot(self.snapshot.load_backup, 'inventory backup')
        if items is None:
            return False

        with self._lock:
            self._items = items
            self._next_id = max(self._next_id, max((i.id for i in items), default=0) + 1)

        self._mirror_items(items)
        saved = self.save_data()
        self._notify()
        logger.info(f"Restored {len(items)} items from backup")
        return saved

    # Suppliers

    def get_suppliers(self) -> List[Supplier]:
        with self._lock:
            return list(self._suppliers)

    def add_supplier(self, supplier: Supplier) -> Supplier:
        """Add a supplier, or update the local one with the same name.

        Raises:
            ValidationError: If the supplier has no name
        """
        name = (supplier.name or '').strip()
        if not name:
            raise ValidationError("Supplier name is required")
        supplier.name = name

        with self._lock:
            existing = next((s for s in self._suppliers if s.name.lower() == name.lower()), None)
            if existing is not None:
                existing.contact_number = supplier.contact_number
                existing.address = supplier.address
                existing.supplied_product = supplier.supplied_product
                supplier = existing
            else:
                try:
                    if self.backend.insert_supplier(supplier) <= 0:
                        logger.warning(f"Backend did not store supplier '{name}'")
                except BackendUnavailableError as e:
                    logger.warning(f"Backend unavailable, supplier '{name}' kept locally: {e.message}")
                self._suppliers.append(supplier)

        self._save_reference(self.suppliers_store, self._suppliers, 'suppliers')
        return supplier

    def remove_supplier_by_name(self, name: str) -> bool:
        removed_remote = False
        try:
            removed_remote = self.backend.delete_supplier_by_name(name)
        except BackendUnavailableError as e:
            logger.warning(f"Backend unavailable, supplier '{name}' removed locally only: {e.message}")

        needle = (name or '').strip().lower()
        with self._lock:
            before = len(self._suppliers)
            self._suppliers = [s for s in self._suppliers if s.name.lower() != needle]
            removed_local = len(self._suppliers) < before

        if removed_local:
            self._save_reference(self.suppliers_store, self._suppliers, 'suppliers')
        return removed_local or removed_remote

    # Categories

    def get_all_categories(self) -> List[str]:
        """Category names: the backend's list when it has one, else local and item categories merged."""
        try:
            names = self.backend.get_all_categories()
            if names:
                return names
        except BackendUnavailableError as e:
            logger.debug(f"Backend unavailable for categories: {e.message}")

        merged = {}
        with self._lock:
            candidates = [c.name for c in self._categories] + [i.category for i in self._items]
        for name in candidates:
            name = (name or '').strip()
            if name:
                merged.setdefault(name.lower(), name)
        return sorted(merged.values(), key=str.lower)

    def add_category(self, name: str, description: str = '') -> bool:
        name = (name or '').strip()
        if not name:
            return False

        try:
            if self.backend.insert_category(name, description) <= 0:
                logger.warning(f"Backend did not store category '{name}'")
        except BackendUnavailableError as e:
            logger.warning(f"Backend unavailable, category '{name}' kept locally: {e.message}")

        with self._lock:
            if any(c.name.lower() == name.lower() for c in self._categories):
                return True
            self._categories.append(Category(name=name, description=description or ''))

        self._save_reference(self.categories_store, self._categories, 'categories')
        return True

    def remove_category(self, name: str) -> bool:
        removed_remote = False
        try:
            removed_remote = self.backend.delete_category(name)
        except BackendUnavailableError as e:
            logger.warning(f"Backend unavailable, category '{name}' removed locally only: {e.message}")

        needle = (name or '').strip().lower()
        with self._lock:
            before = len(self._categories)
            self._categories = [c for c in self._categories if c.name.lower() != needle]
            removed_local = len(self._categories) < before

        if removed_local:
            self._save_reference(self.categories_store, self._categories, 'categories')
        return removed_local or removed_remote

    # Reference data files

    def _load_suppliers(self):
        raw = self._read_reference(self.suppliers_store, 'suppliers')
        suppliers = []
        for entry in raw:
            try:
                supplier = Supplier.from_dict(entry)
            except ValidationError as e:
                logger.warning(f"Skipping unreadable supplier record: {e.message}")
                continue
            if supplier.name:
                suppliers.append(supplier)
        with self._lock:
            self._suppliers = suppliers

    def _load_categories(self):
        raw = self._read_reference(self.categories_store, 'categories')
        categories = []
        for entry in raw:
            try:
                category = Category.from_dict(entry)
            except ValidationError as e:
                logger.warning(f"Skipping unreadable category record: {e.message}")
                continue
            if category.name:
                categories.append(category)
        with self._lock:
            self._categories = categories

    @staticmethod
    def _read_reference(store: Optional[FallbackStore], label: str) -> List[Any]:
        if store is None:
            return []
        try:
            return store.load()
        except PersistenceError as e:
            if e.code != 'MISSING':
                logger.warning(f"Failed to load {label}: {e.message}")
            return []

    def _save_reference(self, store: Optional[FallbackStore], entries: List[Any], label: str) -> bool:
        if store is None:
            return False
        with self._lock:
            payload = [e.to_dict() for e in entries]
        try:
            store.save(payload)
            return True
        except PersistenceError as e:
            logger.error(f"Error saving {label}: {e.message}")
            return False
