# inventory_ledger/db/backend.py
import functools
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_ledger import models
from inventory_ledger.db.connection import DatabaseConnection
from inventory_ledger.db.interface import PrimaryStore
from inventory_ledger.entities import (
    ArchiveRecord, InventoryItem, Supplier, parse_user_descriptor
)
from inventory_ledger.exceptions import BackendUnavailableError, ValidationError
from inventory_ledger.logging_setup import get_logger
from inventory_ledger.utils.date_utils import convert_to_date, now

logger = get_logger('database')

DESCRIPTION_LENGTH = 255


def best_effort(sentinel):
    """Turn statement failures into a sentinel return value.

    ``BackendUnavailableError`` still propagates; callers treat it as the
    signal to use their local fallback.

    Args:
        sentinel: Value returned on failure, or a zero-argument factory for it
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except BackendUnavailableError:
                raise
            except SQLAlchemyError as e:
                logger.error(f"{func.__name__} failed: {str(e)}")
                return sentinel() if callable(sentinel) else sentinel
        return wrapper
    return decorator


class RelationalBackend(PrimaryStore):
    """SQLAlchemy implementation of the relational mirror.

    Items are referenced by surrogate id; transactions, archive entries and
    sale lines resolve their item and user foreign keys by name at insert
    time and keep ``NULL`` when the name is unknown.
    """

    def __init__(self, connection: Optional[DatabaseConnection] = None):
        """Initialize the backend.

        Args:
            connection: Database connection; defaults to one built from config
        """
        self.connection = connection or DatabaseConnection()

    def test_connection(self) -> bool:
        return self.connection.test_connection()

    def create_all_tables(self) -> None:
        self.connection.create_all_tables()

    def close(self) -> None:
        self.connection.dispose()

    # Lookups

    @staticmethod
    def _find_item_id(session: Session, item_name: str) -> Optional[int]:
        if not item_name:
            return None
        return session.execute(
            select(models.InventoryItem.id).where(models.InventoryItem.name == item_name).limit(1)
        ).scalar()

    @staticmethod
    def _find_user_id(session: Session, username: str) -> Optional[int]:
        # Descriptors carry sale tags after the name ("CASHIER [Tx:...]")
        user = parse_user_descriptor(username).user
        if not user:
            return None
        return session.execute(
            select(models.User.id).where(models.User.username == user).limit(1)
        ).scalar()

    @staticmethod
    def _copy_item_fields(row: models.InventoryItem, item: InventoryItem) -> None:
        row.name = item.name
        row.category = item.category
        row.description = item.description
        row.quantity = item.quantity
        row.min_stock_level = item.min_stock_level
        row.unit_price = item.unit_price
        row.supplier = item.supplier
        row.last_updated = item.last_updated or now()
        row.stock_in = item.stock_in
        row.stock_out = item.stock_out
        row.low_stock = item.low_stock
        row.out_of_stock = item.out_of_stock

    @staticmethod
    def _to_entity(row: models.InventoryItem) -> InventoryItem:
        return InventoryItem(
            id=row.id,
            name=row.name,
            category=row.category or '',
            description=row.description or '',
            quantity=row.quantity or 0,
            min_stock_level=row.min_stock_level if row.min_stock_level is not None else 10,
            unit_price=row.unit_price or 0.0,
            supplier=row.supplier or '',
            last_updated=row.last_updated,
            stock_in=row.stock_in or 0,
            stock_out=row.stock_out or 0,
        )

    # Items

    @best_effort(list)
    def load_all_items(self) -> List[InventoryItem]:
        """Load every item row.

        Rows with a negative quantity or price are skipped with a warning.
        """
        items = []
        with self.connection.session_scope() as session:
            rows = session.execute(
                select(models.InventoryItem).order_by(models.InventoryItem.id)
            ).scalars().all()
            for row in rows:
                try:
                    items.append(self._to_entity(row))
                except ValidationError as e:
                    logger.warning(f"Skipping item row {row.id}: {e.message}")
        return items

    @best_effort(-1)
    def insert_item(self, item: InventoryItem) -> int:
        with self.connection.session_scope() as session:
            row = models.InventoryItem()
            self._copy_item_fields(row, item)
            session.add(row)
            session.flush()
            return row.id

    @best_effort(False)
    def update_item(self, item: InventoryItem) -> bool:
        with self.connection.session_scope() as session:
            row = session.get(models.InventoryItem, item.id)
            if row is None:
                return False
            self._copy_item_fields(row, item)
            return True

    @best_effort(False)
    def delete_item(self, item_id: int) -> bool:
        with self.connection.session_scope() as session:
            row = session.get(models.InventoryItem, item_id)
            if row is None:
                return False
            session.delete(row)
            return True

    # Audit mirrors

    @best_effort(False)
    def insert_transaction(self, item_name: str, transaction_type: str, quantity: int,
                           username: str, when: Optional[datetime] = None) -> bool:
        """Insert a transaction row described as ``"TYPE - item name"``."""
        with self.connection.session_scope() as session:
            session.add(models.Transaction(
                item_id=self._find_item_id(session, item_name),
                user_id=self._find_user_id(session, username),
                quantity=quantity,
                last_updated=when or now(),
                description=f"{transaction_type} - {item_name}"[:DESCRIPTION_LENGTH],
            ))
            return True

    @best_effort(False)
    def insert_archive(self, record: ArchiveRecord, item_id: Optional[int] = None) -> bool:
        with self.connection.session_scope() as session:
            if not item_id or item_id <= 0:
                item_id = self._find_item_id(session, record.original_item_name)
            session.add(models.Archive(
                item_id=item_id,
                archive_date=convert_to_date(record.date_used),
                note=record.note(models.ARCHIVE_NOTE_LENGTH),
            ))
            return True

    @best_effort(False)
    def insert_stock_alert(self, item_id: int, alert_date: date, minimum_stock: int,
                           status_description: str) -> bool:
        with self.connection.session_scope() as session:
            session.add(models.StockAlert(
                item_id=item_id if item_id and item_id > 0 else None,
                alert_date=convert_to_date(alert_date),
                minimum_stock=minimum_stock,
                status_description=status_description[:DESCRIPTION_LENGTH],
            ))
            return True

    # Reference data

    @best_effort(-1)
    def insert_supplier(self, supplier: Supplier) -> int:
        """Insert a supplier, or update the existing row with the same name."""
        if not supplier.name:
            return -1
        with self.connection.session_scope() as session:
            row = session.execute(
                select(models.Supplier).where(models.Supplier.name == supplier.name)
            ).scalar_one_or_none()
            if row is None:
                row = models.Supplier(name=supplier.name)
                session.add(row)
            row.contact_number = supplier.contact_number
            row.address = supplier.address
            row.supplied_product = supplier.supplied_product
            session.flush()
            return row.id

    @best_effort(False)
    def delete_supplier_by_name(self, name: str) -> bool:
        with self.connection.session_scope() as session:
            deleted = session.query(models.Supplier).filter(models.Supplier.name == name).delete()
            return deleted > 0

    @best_effort(list)
    def get_all_categories(self) -> List[str]:
        with self.connection.session_scope() as session:
            return list(session.execute(
                select(models.Category.name).order_by(models.Category.name)
            ).scalars().all())

    @best_effort(-1)
    def insert_category(self, name: str, description: str = '') -> int:
        if not name or not name.strip():
            return -1
        with self.connection.session_scope() as session:
            existing = session.execute(
                select(models.Category.id).where(models.Category.name == name).limit(1)
            ).scalar()
            if existing is not None:
                return existing
            row = models.Category(name=name, description=description or '')
            session.add(row)
            session.flush()
            return row.id

    @best_effort(False)
    def delete_category(self, name: str) -> bool:
        with self.connection.session_scope() as session:
            deleted = session.query(models.Category).filter(models.Category.name == name).delete()
            return deleted > 0

    # Point of sale

    @best_effort(False)
    def insert_pos_sale(self, username: str, item_name: str, quantity_sold: int,
                        total_price: float, when: Optional[datetime] = None) -> bool:
        with self.connection.session_scope() as session:
            session.add(models.PosSale(
                user_id=self._find_user_id(session, username),
                item_id=self._find_item_id(session, item_name),
                quantity_sold=quantity_sold,
                total_price=total_price,
                sales_date=when or now(),
            ))
            return True

    @best_effort(False)
    def insert_pos_sale_with_transaction(self, transaction_ref: str, username: str, item_name: str,
                                         quantity_sold: int, total_price: float,
                                         when: Optional[datetime] = None,
                                         payment_method: Optional[str] = None,
                                         payment_ref: Optional[str] = None,
                                         sale_total: Optional[float] = None,
                                         tendered_amount: Optional[float] = None,
                                         change_amount: Optional[float] = None) -> bool:
        """Upsert the sale header and insert one sale line.

        Without ``sale_total`` the header total accumulates the line totals
        of every call sharing the same reference.
        """
        when = when or now()
        with self.connection.session_scope() as session:
            user_id = self._find_user_id(session, username)
            header = session.get(models.PosTransaction, transaction_ref)
            if header is None:
                header = models.PosTransaction(transaction_ref=transaction_ref, total_amount=0.0)
                session.add(header)
                line_sum = 0.0
            else:
                line_sum = header.total_amount or 0.0

            header.user_id = user_id
            header.transaction_date = when
            header.total_amount = sale_total if sale_total is not None else line_sum + total_price
            header.payment_method = payment_method or ''
            header.payment_ref = payment_ref or ''
            header.tendered_amount = tendered_amount
            header.change_amount = change_amount
            session.flush()

            session.add(models.PosSale(
                transaction_ref=transaction_ref,
                user_id=user_id,
                item_id=self._find_item_id(session, item_name),
                quantity_sold=quantity_sold,
                total_price=total_price,
                sales_date=when,
            ))
            return True
