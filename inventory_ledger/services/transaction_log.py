# inventory_ledger/services/transaction_log.py
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from threading import RLock
from typing import Callable, List, Optional, Union

from inventory_ledger.db.interface import PrimaryStore, FallbackStore
from inventory_ledger.entities import TransactionRecord, TransactionType
from inventory_ledger.exceptions import BackendUnavailableError, PersistenceError, ValidationError
from inventory_ledger.utils.date_utils import now

logger = logging.getLogger(__name__)


class TransactionLog:
    """Append-only history of stock-affecting operations.

    ``log`` appends to the in-memory list on the caller's thread, then queues
    a relational insert and a full local save on a single worker. One worker
    means persisted writes happen in call order. ``shutdown`` is the only
    synchronous drain point.
    """

    def __init__(self, backend: PrimaryStore, snapshot: FallbackStore):
        """Initialize the transaction log.

        Args:
            backend: Relational mirror
            snapshot: Local transactions file
        """
        self.backend = backend
        self.snapshot = snapshot
        self._records: List[TransactionRecord] = []
        self._lock = RLock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='transaction-log')
        self._closed = False

    def __len__(self):
        return len(self._records)

    def log(
        self,
        item_name: str,
        transaction_type: Union[TransactionType, str],
        quantity: int,
        user: str,
        unit_price: Optional[float] = None
    ) -> TransactionRecord:
        """Append one entry and schedule its persistence.

        Args:
            item_name: Item affected
            transaction_type: Operation type
            quantity: Units moved
            user: Acting-user descriptor, possibly carrying sale tags
            unit_price: Price per unit; omitted means zero prices

        Returns:
            The appended record
        """
        price = unit_price or 0.0
        record = TransactionRecord(
            date=now(),
            item_name=item_name,
            type=str(transaction_type),
            quantity=quantity,
            user=user,
            unit_price=price,
            total_price=price * quantity if price else 0.0
        )

        with self._lock:
            self._records.append(record)

        self._submit(self._persist_relational, record)
        self._submit(self._persist_local)
        return record

    def _submit(self, job: Callable, *args) -> Optional[Future]:
        with self._lock:
            if not self._closed:
                return self._executor.submit(self._run_job, job, *args)
        # After shutdown only the local file is kept current
        if job == self._persist_local:
            job(*args)
        return None

    @staticmethod
    def _run_job(job: Callable, *args):
        try:
            job(*args)
        except Exception:
            logger.exception(f"Background transaction job {job.__name__} failed")

    def _persist_relational(self, record: TransactionRecord):
        try:
            if not self.backend.insert_transaction(record.item_name, record.type, record.quantity,
                                                   record.user, record.date):
                logger.warning(f"Transaction for '{record.item_name}' rejected by backend")
        except BackendUnavailableError as e:
            logger.warning(f"Backend unavailable, transaction kept locally: {e.message}")

    def _persist_local(self) -> bool:
        with self._lock:
            payload = [r.to_dict() for r in self._records]
            try:
                self.snapshot.save(payload)
                return True
            except PersistenceError as e:
                logger.error(f"Failed to save transactions to disk: {e.message}")
                return False

    def drain(self) -> None:
        """Block until every job queued so far has finished."""
        marker = self._submit(lambda: None)
        if marker is not None:
            marker.result()

    def shutdown(self) -> None:
        """Cancel queued jobs, wait for the running one, then save synchronously."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=True, cancel_futures=True)
        self._persist_local()
        logger.info(f"Transaction log shut down with {len(self._records)} records")

    # Views

    def records(self) -> List[TransactionRecord]:
        """Copy of every record in call order."""
        with self._lock:
            return list(self._records)

    def visible_records(self) -> List[TransactionRecord]:
        """Records shown in the history view; ``DELETE`` entries are hidden."""
        return [r for r in self.records() if r.type != str(TransactionType.DELETE)]

    def find_by_item(self, item_name: str) -> List[TransactionRecord]:
        needle = (item_name or '').lower()
        return [r for r in self.records() if r.item_name.lower() == needle]

    def find_by_type(self, transaction_type: Union[TransactionType, str]) -> List[TransactionRecord]:
        if isinstance(transaction_type, str):
            transaction_type = TransactionType.from_string(transaction_type)
        return [r for r in self.records() if r.type == str(transaction_type)]

    # Persistence

    def load(self) -> int:
        """Load the transactions file, falling back to its backup.

        Returns:
            Number of records loaded
        """
        raw = None
        for loader, label in ((self.snapshot.load, 'transactions file'),
                              (self.snapshot.load_backup, 'transactions backup')):
            try:
                raw = loader()
                break
            except PersistenceError as e:
                if e.code == 'MISSING':
                    logger.info(f"No {label} found")
                else:
                    logger.warning(f"Failed to load {label}: {e.message}")

        records = []
        for entry in raw or []:
            try:
                records.append(TransactionRecord.from_dict(entry))
            except (ValidationError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable transaction record: {e}")

        with self._lock:
            self._records = records
        logger.info(f"Loaded {len(records)} transaction records")
        return len(records)

    def clear_all_records(self) -> bool:
        """Empty the log and save synchronously."""
        with self._lock:
            self._records = []
        logger.warning("Transaction history cleared")
        return self._persist_local()
