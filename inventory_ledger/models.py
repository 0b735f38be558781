# inventory_ledger/models.py
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Boolean, ForeignKey, Text, Index
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

ARCHIVE_NOTE_LENGTH = 250


class User(Base):
    """Application user; only referenced for attribution.

    Credentials and roles are managed by the authentication layer.
    """
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    username = Column(String(50), unique=True, nullable=False)
    role = Column(String(50), default='user')


class Category(Base):
    __tablename__ = 'categories'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, default='')


class Supplier(Base):
    __tablename__ = 'suppliers'

    id = Column(Integer, primary_key=True)
    name = Column(String(150), unique=True, nullable=False)
    contact_number = Column(String(50), default='')
    address = Column(String(255), default='')
    supplied_product = Column(String(255), default='')


class InventoryItem(Base):
    __tablename__ = 'inventory_items'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100))
    description = Column(Text)
    quantity = Column(Integer, default=0, nullable=False)
    min_stock_level = Column(Integer, default=10)
    unit_price = Column(Float, default=0.0)
    supplier = Column(String(255))
    last_updated = Column(DateTime)
    stock_in = Column(Integer, default=0)
    stock_out = Column(Integer, default=0)
    low_stock = Column(Boolean, default=False)
    out_of_stock = Column(Boolean, default=False)

    __table_args__ = (
        Index('idx_item_name', 'name'),
    )


class Transaction(Base):
    """Relational mirror of the transaction history.

    Prices are not mirrored; the local transactions file keeps them.
    """
    __tablename__ = 'transactions'

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey('inventory_items.id', ondelete='SET NULL'))
    user_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'))
    quantity = Column(Integer, nullable=False, default=0)
    last_updated = Column(DateTime, default=func.now())
    description = Column(String(255), default='')

    item = relationship("InventoryItem")
    user = relationship("User")


class Archive(Base):
    """Archive entry: item reference plus a bounded human-readable note.

    The note carries the snapshot because the referenced item may be deleted
    later (the foreign key is then nulled).
    """
    __tablename__ = 'archive'

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey('inventory_items.id', ondelete='SET NULL'))
    archive_date = Column(Date, nullable=False)
    note = Column(String(ARCHIVE_NOTE_LENGTH), default='')


class StockAlert(Base):
    __tablename__ = 'stock_alert'

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey('inventory_items.id', ondelete='SET NULL'))
    alert_date = Column(Date)
    minimum_stock = Column(Integer, nullable=False)
    status_description = Column(String(255), nullable=False)


class PosTransaction(Base):
    """POS sale header, keyed by the correlation reference shared by its lines."""
    __tablename__ = 'pos_transactions'

    transaction_ref = Column(String(64), primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'))
    total_amount = Column(Float, nullable=False)
    transaction_date = Column(DateTime, nullable=False)
    payment_method = Column(String(32))
    payment_ref = Column(String(128))
    tendered_amount = Column(Float)
    change_amount = Column(Float)

    lines = relationship("PosSale", back_populates="transaction")


class PosSale(Base):
    __tablename__ = 'pos_sales'

    id = Column(Integer, primary_key=True)
    transaction_ref = Column(String(64), ForeignKey('pos_transactions.transaction_ref', ondelete='SET NULL'))
    user_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'))
    item_id = Column(Integer, ForeignKey('inventory_items.id', ondelete='SET NULL'))
    quantity_sold = Column(Integer, nullable=False)
    total_price = Column(Float, nullable=False)
    sales_date = Column(DateTime, nullable=False)

    transaction = relationship("PosTransaction", back_populates="lines")
