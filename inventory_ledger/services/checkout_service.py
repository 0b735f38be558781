# inventory_ledger/services/checkout_service.py
import logging
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from inventory_ledger.db.interface import PrimaryStore
from inventory_ledger.entities import TransactionType, build_user_descriptor
from inventory_ledger.exceptions import BackendUnavailableError, CheckoutError
from inventory_ledger.services.archive_service import ArchiveService
from inventory_ledger.services.ledger_service import LedgerService
from inventory_ledger.utils.date_utils import now

logger = logging.getLogger(__name__)

PAYMENT_CASH = 'Cash'
PAYMENT_EWALLET = 'E-wallet'
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_EWALLET)

SALE_REASON = 'Sold via POS'


@dataclass(frozen=True)
class CartLine:
    item_name: str
    unit_price: float
    quantity: int

    @property
    def total(self) -> float:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class Payment:
    """Payment metadata: cash needs ``tendered``, e-wallet needs ``reference``."""
    method: str
    tendered: Optional[float] = None
    reference: Optional[str] = None

    @property
    def normalized_method(self) -> Optional[str]:
        method = (self.method or '').strip().lower()
        return next((m for m in PAYMENT_METHODS if m.lower() == method), None)


@dataclass
class CheckoutResult:
    transaction_ref: str
    timestamp: datetime
    total: float
    tendered: float
    change: float
    applied_lines: List[CartLine] = field(default_factory=list)
    failed_line: Optional[CartLine] = None
    error: Optional[str] = None
    persistence: Optional[Future] = None

    @property
    def success(self) -> bool:
        return self.failed_line is None


class CheckoutService:
    """Point-of-sale checkout over the ledger.

    Lines are applied in cart order through ``reduce_item_quantity`` on the
    caller's thread, so stock and history reflect the sale at once. The
    first failing line stops the checkout; lines already applied stay
    applied. Sale rows and snapshot saves are then queued on a single
    background worker.
    """

    def __init__(self, ledger: LedgerService, archive: ArchiveService, backend: PrimaryStore):
        """Initialize the checkout service.

        Args:
            ledger: Ledger owning the items
            archive: Archive saved after each sale
            backend: Relational store receiving sale headers and lines
        """
        self.ledger = ledger
        self.archive = archive
        self.backend = backend
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='checkout')
        self._closed = False

    def _validate(self, cart: Sequence[CartLine], payment: Payment) -> float:
        if not cart:
            raise CheckoutError("Cart is empty", code='EMPTY_CART')

        for line in cart:
            if not isinstance(line.quantity, int) or line.quantity <= 0:
                raise CheckoutError(f"Invalid quantity for '{line.item_name}'", code='INVALID_LINE',
                                    details={'quantity': line.quantity})
            if line.unit_price < 0:
                raise CheckoutError(f"Invalid price for '{line.item_name}'", code='INVALID_LINE',
                                    details={'unit_price': line.unit_price})

        total = sum(line.total for line in cart)
        method = payment.normalized_method
        if method is None:
            raise CheckoutError(f"Unsupported payment method: {payment.method}", code='PAYMENT_METHOD')
        if method == PAYMENT_CASH and (payment.tendered is None or payment.tendered < total):
            raise CheckoutError("Tendered amount is less than total", code='INSUFFICIENT_PAYMENT',
                                details={'total': total, 'tendered': payment.tendered})
        if method == PAYMENT_EWALLET and not (payment.reference or '').strip():
            raise CheckoutError("E-wallet reference number is required", code='PAYMENT_REFERENCE')
        return total

    def checkout(self, cart: Sequence[CartLine], payment: Payment,
                 user: Optional[str] = None) -> CheckoutResult:
        """Sell the cart.

        Args:
            cart: Ordered cart lines
            payment: Payment metadata
            user: Cashier; defaults to the ledger's current user

        Returns:
            Result with the applied lines and, on a partial sale, the failing line

        Raises:
            CheckoutError: If the cart or payment is invalid; nothing is changed
        """
        if self._closed:
            raise CheckoutError("Checkout service is shut down", code='CLOSED')

        total = self._validate(cart, payment)
        method = payment.normalized_method
        user = (user or '').strip().upper() or self.ledger.current_user()
        transaction_ref = str(uuid.uuid4())
        when = now()

        if method == PAYMENT_CASH:
            tendered = float(payment.tendered)
            payment_ref = None
        else:
            tendered = total
            payment_ref = payment.reference.strip()

        result = CheckoutResult(
            transaction_ref=transaction_ref,
            timestamp=when,
            total=total,
            tendered=tendered,
            change=max(0.0, tendered - total)
        )
        descriptor = build_user_descriptor(user, transaction_ref=transaction_ref, payment_ref=payment_ref)

        for line in cart:
            item = self.ledger.find_item_by_name(line.item_name)
            if item is None:
                result.failed_line = line
                result.error = f"Item '{line.item_name}' not found"
                break
            if not self.ledger.reduce_item_quantity(
                item, line.quantity, used_by=user, reason=SALE_REASON,
                transaction_type=TransactionType.SALE, user_descriptor=descriptor,
                unit_price=line.unit_price
            ):
                result.failed_line = line
                result.error = f"Failed to update inventory for '{line.item_name}'"
                break
            result.applied_lines.append(line)

        if result.failed_line is not None:
            logger.warning(f"Checkout {transaction_ref} stopped at '{result.failed_line.item_name}': "
                           f"{len(result.applied_lines)} of {len(cart)} lines applied")
        else:
            logger.info(f"Checkout {transaction_ref}: {len(cart)} lines, total {total:.2f} ({method})")

        if result.applied_lines:
            result.persistence = self._executor.submit(
                self._persist_sale, transaction_ref, user, list(result.applied_lines), when,
                method, payment_ref, tendered, result.change
            )
        return result

    def _persist_sale(self, transaction_ref: str, user: str, lines: List[CartLine], when: datetime,
                      method: str, payment_ref: Optional[str], tendered: float, change: float) -> int:
        """Write sale rows, then save the item and archive snapshots.

        Returns:
            Number of sale lines the backend accepted
        """
        sale_total = sum(line.total for line in lines)
        stored = 0
        try:
            for line in lines:
                if self.backend.insert_pos_sale_with_transaction(
                    transaction_ref, user, line.item_name, line.quantity, line.total, when,
                    payment_method=method, payment_ref=payment_ref, sale_total=sale_total,
                    tendered_amount=tendered, change_amount=change
                ):
                    stored += 1
                else:
                    logger.warning(f"Failed to record POS sale line '{line.item_name}' ({transaction_ref})")
        except BackendUnavailableError as e:
            logger.warning(f"Backend unavailable, sale {transaction_ref} kept in local files: {e.message}")

        if not self.ledger.save_data() or not self.archive.save():
            logger.warning(f"Failed to save data after checkout {transaction_ref}")
        return stored

    def drain(self) -> None:
        """Block until every queued sale has been persisted."""
        if not self._closed:
            self._executor.submit(lambda: None).result()

    def shutdown(self) -> None:
        """Finish queued sale persistence and stop the worker."""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)
