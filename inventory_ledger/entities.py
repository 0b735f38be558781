# inventory_ledger/entities.py
"""In-memory records owned by the ledger services.

These are plain dataclasses, independent of the SQLAlchemy schema in
``models.py``. Their ``to_dict``/``from_dict`` pair defines the shape of the
local snapshot files (camelCase keys, ISO timestamps).
"""
import enum
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, NamedTuple, Optional, Tuple

from inventory_ledger.exceptions import ValidationError
from inventory_ledger.utils.date_utils import now, parse_timestamp, serialize_timestamp


class TransactionType(enum.Enum):
    """Stock-affecting operation recorded in the transaction log."""
    ADD = 'ADD'
    UPDATE = 'UPDATE'
    STOCK_IN = 'STOCK IN'
    STOCK_OUT = 'STOCK OUT'
    SALE = 'SALE'
    ARCHIVE = 'ARCHIVE'
    RETRIEVED = 'RETRIEVED'
    END_OF_DAY = 'END_OF_DAY'
    DELETE = 'DELETE'

    def __str__(self):
        """Return the string value of the enum."""
        return self.value

    @classmethod
    def from_string(cls, value: str) -> 'TransactionType':
        """Create a TransactionType from its value or member name.

        Args:
            value: 'STOCK IN', 'STOCK_IN', 'stock in', ...

        Returns:
            TransactionType enum value

        Raises:
            ValueError if the value does not name a transaction type
        """
        text = (value or '').strip().upper()
        try:
            return cls(text)
        except ValueError:
            try:
                return cls[text.replace(' ', '_')]
            except KeyError:
                raise ValueError(f"Invalid transaction type: {value}")


class ArchiveType(enum.Enum):
    """Why a quantity left active stock."""
    USED = 'Used Item'
    ARCHIVED = 'ARCHIVED'

    def __str__(self):
        return self.value


class StockStatus(enum.Enum):
    NORMAL = 'NORMAL STOCK'
    LOW_STOCK = 'LOW STOCK'
    OUT_OF_STOCK = 'OUT OF STOCK'

    def __str__(self):
        return self.value


def compute_stock_flags(quantity: int, min_stock_level: int) -> Tuple[bool, bool]:
    """Derive ``(low_stock, out_of_stock)`` from quantity and threshold.

    The two flags are mutually exclusive: an empty item is out of stock,
    never low.
    """
    out_of_stock = quantity == 0
    low_stock = 0 < quantity <= min_stock_level
    return low_stock, out_of_stock


def _as_int(value: Any, default: int = 0) -> int:
    if value is None or value == '':
        return default
    return int(value)


def _as_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == '':
        return default
    return float(value)


def _as_str(value: Any) -> str:
    return '' if value is None else str(value)


@dataclass
class InventoryItem:
    """A stocked product and its running counters."""

    name: str
    category: str = ''
    description: str = ''
    quantity: int = 0
    min_stock_level: int = 10
    unit_price: float = 0.0
    supplier: str = ''
    id: int = 0
    last_updated: Optional[datetime] = None
    stock_in: int = 0
    stock_out: int = 0
    low_stock: bool = field(default=False)
    out_of_stock: bool = field(default=False)

    def __post_init__(self):
        if self.quantity < 0:
            raise ValidationError(f"Quantity cannot be negative for '{self.name}'", details={'quantity': self.quantity})
        if self.unit_price < 0:
            raise ValidationError(f"Unit price cannot be negative for '{self.name}'", details={'unit_price': self.unit_price})
        self.refresh_status()

    def refresh_status(self) -> None:
        """Recompute the derived stock flags from quantity and threshold."""
        self.low_stock, self.out_of_stock = compute_stock_flags(self.quantity, self.min_stock_level)

    @property
    def status(self) -> StockStatus:
        if self.out_of_stock:
            return StockStatus.OUT_OF_STOCK
        if self.low_stock:
            return StockStatus.LOW_STOCK
        return StockStatus.NORMAL

    @property
    def total_value(self) -> float:
        return self.quantity * self.unit_price

    def add_stock(self, amount: int) -> None:
        if amount <= 0:
            raise ValidationError(f"Stock-in amount must be positive, got {amount}")
        self.quantity += amount
        self.stock_in += amount
        self.refresh_status()

    def remove_stock(self, amount: int) -> None:
        if amount <= 0 or amount > self.quantity:
            raise ValidationError(
                f"Cannot remove {amount} from '{self.name}' ({self.quantity} available)"
            )
        self.quantity -= amount
        self.stock_out += amount
        self.refresh_status()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'description': self.description,
            'quantity': self.quantity,
            'minStockLevel': self.min_stock_level,
            'unitPrice': self.unit_price,
            'supplier': self.supplier,
            'lastUpdated': serialize_timestamp(self.last_updated),
            'lowStock': self.low_stock,
            'outOfStock': self.out_of_stock,
            'stockIn': self.stock_in,
            'stockOut': self.stock_out,
        }

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> 'InventoryItem':
        """Build an item from a snapshot record.

        Stored ``lowStock``/``outOfStock`` values are ignored; the flags are
        always derived again.
        """
        if not isinstance(record, dict):
            raise ValidationError("Inventory record must be an object")
        name = _as_str(record.get('name')).strip()
        if not name:
            raise ValidationError("Inventory record is missing a name", details=record)
        return cls(
            id=_as_int(record.get('id')),
            name=name,
            category=_as_str(record.get('category')),
            description=_as_str(record.get('description')),
            quantity=_as_int(record.get('quantity')),
            min_stock_level=_as_int(record.get('minStockLevel'), 10),
            unit_price=_as_float(record.get('unitPrice')),
            supplier=_as_str(record.get('supplier')),
            last_updated=parse_timestamp(record.get('lastUpdated')),
            stock_in=_as_int(record.get('stockIn')),
            stock_out=_as_int(record.get('stockOut')),
        )


@dataclass(frozen=True)
class ArchiveRecord:
    """Immutable snapshot of a quantity removed from active stock."""

    original_item_name: str
    category: str
    type: str
    quantity_used: int
    unit_price: float
    supplier: str
    used_by: str
    reason: str
    date_used: datetime = field(default_factory=now)
    id: int = 0

    @classmethod
    def from_item(cls, item: InventoryItem, quantity_used: int, used_by: str,
                  reason: str, archive_type: Any = ArchiveType.USED) -> 'ArchiveRecord':
        return cls(
            original_item_name=item.name,
            category=item.category,
            type=str(archive_type),
            quantity_used=quantity_used,
            unit_price=item.unit_price,
            supplier=item.supplier,
            used_by=used_by or '',
            reason=reason or '',
        )

    @property
    def total_value(self) -> float:
        return self.quantity_used * self.unit_price

    def note(self, limit: int = 250) -> str:
        """Compact one-line summary stored by the relational archive table."""
        text = (f"{self.type} - {self.original_item_name} - qty:{self.quantity_used} - "
                f"by:{self.used_by} - reason:{self.reason} - price:{self.unit_price:.2f}")
        return text[:limit]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'originalItemName': self.original_item_name,
            'category': self.category,
            'type': self.type,
            'quantityUsed': self.quantity_used,
            'unitPrice': self.unit_price,
            'supplier': self.supplier,
            'dateUsed': serialize_timestamp(self.date_used),
            'usedBy': self.used_by,
            'reason': self.reason,
        }

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> 'ArchiveRecord':
        if not isinstance(record, dict):
            raise ValidationError("Archive record must be an object")
        return cls(
            id=_as_int(record.get('id')),
            original_item_name=_as_str(record.get('originalItemName')),
            category=_as_str(record.get('category')),
            # older files stored the tag under "description"
            type=_as_str(record.get('type', record.get('description'))),
            quantity_used=_as_int(record.get('quantityUsed')),
            unit_price=_as_float(record.get('unitPrice')),
            supplier=_as_str(record.get('supplier')),
            date_used=parse_timestamp(record.get('dateUsed')) or now(),
            used_by=_as_str(record.get('usedBy')),
            reason=_as_str(record.get('reason')),
        )


@dataclass(frozen=True)
class TransactionRecord:
    """One append-only entry of the transaction history."""

    date: datetime
    item_name: str
    type: str
    quantity: int
    user: str
    unit_price: float = 0.0
    total_price: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': serialize_timestamp(self.date),
            'itemName': self.item_name,
            'type': self.type,
            'quantity': self.quantity,
            'user': self.user,
            'unitPrice': self.unit_price,
            'totalPrice': self.total_price,
        }

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> 'TransactionRecord':
        if not isinstance(record, dict):
            raise ValidationError("Transaction record must be an object")
        return cls(
            date=parse_timestamp(record.get('date')) or now(),
            item_name=_as_str(record.get('itemName')),
            type=_as_str(record.get('type')),
            quantity=_as_int(record.get('quantity')),
            user=_as_str(record.get('user')),
            unit_price=_as_float(record.get('unitPrice')),
            total_price=_as_float(record.get('totalPrice')),
        )


@dataclass
class Supplier:
    name: str
    contact_number: str = ''
    address: str = ''
    supplied_product: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'contactNumber': self.contact_number,
            'address': self.address,
            'suppliedProduct': self.supplied_product,
        }

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> 'Supplier':
        if not isinstance(record, dict):
            raise ValidationError("Supplier record must be an object")
        return cls(
            name=_as_str(record.get('name')).strip(),
            contact_number=_as_str(record.get('contactNumber')),
            address=_as_str(record.get('address')),
            supplied_product=_as_str(record.get('suppliedProduct')),
        )


@dataclass
class Category:
    name: str
    description: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'description': self.description}

    @classmethod
    def from_dict(cls, record: Any) -> 'Category':
        # categories.json used to be a bare list of names
        if isinstance(record, str):
            return cls(name=record.strip())
        if not isinstance(record, dict):
            raise ValidationError("Category record must be an object or a name")
        return cls(name=_as_str(record.get('name')).strip(),
                   description=_as_str(record.get('description')))


class UserDescriptor(NamedTuple):
    """Acting user plus the tags embedded alongside it in a log entry."""
    user: str
    transaction_ref: Optional[str] = None
    payment_ref: Optional[str] = None
    reason: Optional[str] = None


_TAG_PATTERN = re.compile(r'\s*\[(Tx|ERef|Reason):([^\]]*)\]')


def build_user_descriptor(user: str, transaction_ref: Optional[str] = None,
                          payment_ref: Optional[str] = None,
                          reason: Optional[str] = None) -> str:
    """Embed correlation and payment tags in the user column.

    ``CASHIER [Tx:5f0c...] [ERef:GC-1234]`` lets the history view recover the
    sale and its payment method without a dedicated column.
    """
    parts = [user]
    if transaction_ref:
        parts.append(f"[Tx:{transaction_ref}]")
    if payment_ref is not None:
        parts.append(f"[ERef:{payment_ref}]")
    if reason:
        parts.append(f"[Reason:{reason}]")
    return ' '.join(parts)


def parse_user_descriptor(descriptor: Optional[str]) -> UserDescriptor:
    """Inverse of ``build_user_descriptor``."""
    text = descriptor or ''
    tags = {key: value for key, value in _TAG_PATTERN.findall(text)}
    user = _TAG_PATTERN.sub('', text).strip()
    return UserDescriptor(
        user=user,
        transaction_ref=tags.get('Tx'),
        payment_ref=tags.get('ERef'),
        reason=tags.get('Reason'),
    )
