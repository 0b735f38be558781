# inventory_ledger/services/archive_service.py
import dataclasses
import logging
from datetime import datetime
from threading import RLock
from typing import List, NamedTuple, Optional

from inventory_ledger.db.interface import PrimaryStore, FallbackStore
from inventory_ledger.entities import (
    ArchiveRecord, ArchiveType, InventoryItem, parse_user_descriptor
)
from inventory_ledger.exceptions import BackendUnavailableError, PersistenceError, ValidationError

logger = logging.getLogger(__name__)


class ArchiveStats(NamedTuple):
    total_items: int
    total_value: float
    total_quantity: int


class ArchiveService:
    """Record of every quantity removed from active stock.

    Each record is offered to the relational backend first and always kept
    in the in-memory list, which is persisted to the local archive file after
    every change. Queries read the in-memory list only.
    """

    def __init__(self, backend: PrimaryStore, snapshot: FallbackStore):
        """Initialize the archive service.

        Args:
            backend: Relational mirror
            snapshot: Local archive file
        """
        self.backend = backend
        self.snapshot = snapshot
        self._records: List[ArchiveRecord] = []
        self._next_id = 1
        self._lock = RLock()

    def __len__(self):
        return len(self._records)

    def records(self) -> List[ArchiveRecord]:
        """Copy of all archive records in insertion order."""
        with self._lock:
            return list(self._records)

    def archive_item_usage(
        self,
        item: InventoryItem,
        quantity_used: int,
        used_by: str,
        reason: str = '',
        archive_type: ArchiveType = ArchiveType.USED
    ) -> ArchiveRecord:
        """Snapshot ``item`` into a new archive record.

        Args:
            item: Item the quantity was taken from
            quantity_used: Units removed
            used_by: Acting user
            reason: Free-text reason
            archive_type: Used (consumed, sold) or archived (deleted)

        Returns:
            The stored record
        """
        if quantity_used < 0:
            raise ValidationError(f"Archived quantity cannot be negative: {quantity_used}")

        with self._lock:
            record = dataclasses.replace(
                ArchiveRecord.from_item(item, quantity_used, used_by, reason, archive_type),
                id=self._next_id
            )
            self._next_id += 1

            try:
                item_id = item.id if item.id > 0 else None
                if not self.backend.insert_archive(record, item_id):
                    logger.warning(f"Archive insert for '{item.name}' rejected by backend; kept locally")
            except BackendUnavailableError as e:
                logger.warning(f"Backend unavailable, archive for '{item.name}' kept locally: {e.message}")

            self._records.append(record)
            self.save()

        logger.info(f"Archived {quantity_used} x '{item.name}' ({record.type}) by {used_by}")
        return record

    # Queries

    def find_by_name(self, item_name: str) -> List[ArchiveRecord]:
        """Records whose original item name contains ``item_name`` (case-insensitive)."""
        needle = (item_name or '').lower()
        return [r for r in self.records() if needle in r.original_item_name.lower()]

    def find_by_category(self, category: str) -> List[ArchiveRecord]:
        needle = (category or '').lower()
        return [r for r in self.records() if r.category.lower() == needle]

    def find_by_user(self, username: str) -> List[ArchiveRecord]:
        needle = (username or '').lower()
        return [r for r in self.records()
                if parse_user_descriptor(r.used_by).user.lower() == needle]

    def find_by_date_range(self, start: datetime, end: datetime) -> List[ArchiveRecord]:
        """Records with ``start <= date_used <= end``."""
        return [r for r in self.records() if start <= r.date_used <= end]

    def get_all_archive_categories(self) -> List[str]:
        return sorted({r.category for r in self.records() if r.category})

    def get_archive_stats(self) -> ArchiveStats:
        records = self.records()
        return ArchiveStats(
            total_items=len(records),
            total_value=sum(r.total_value for r in records),
            total_quantity=sum(r.quantity_used for r in records)
        )

    # Persistence

    def load(self) -> int:
        """Load the archive file, falling back to its backup.

        Returns:
            Number of records loaded
        """
        raw = None
        for loader, label in ((self.snapshot.load, 'archive file'),
                              (self.snapshot.load_backup, 'archive backup')):
            try:
                raw = loader()
                break
            except PersistenceError as e:
                if e.code == 'MISSING':
                    logger.info(f"No {label} found")
                else:
                    logger.error(f"Error loading {label}: {e.message}")

        records = []
        for entry in raw or []:
            try:
                records.append(ArchiveRecord.from_dict(entry))
            except (ValidationError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable archive record: {e}")

        with self._lock:
            self._records = records
            self._next_id = max((r.id for r in records), default=0) + 1

        logger.info(f"Loaded {len(records)} archive records")
        return len(records)

    def save(self) -> bool:
        """Persist the archive list; failures are logged and reported as False."""
        with self._lock:
            payload = [r.to_dict() for r in self._records]
            try:
                self.snapshot.save(payload)
                return True
            except PersistenceError as e:
                logger.error(f"Error saving archive data: {e.message}")
                return False

    def clear_archive(self) -> int:
        """Delete every archive record from memory and the local file.

        Returns:
            Number of records removed
        """
        with self._lock:
            removed = len(self._records)
            self._records = []
            self.save()
        logger.warning(f"Archive cleared ({removed} records removed)")
        return removed
