# inventory_ledger/storage/snapshot.py
import json
import shutil
from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Union

from inventory_ledger.db.interface import FallbackStore
from inventory_ledger.exceptions import PersistenceError
from inventory_ledger.logging_setup import get_logger

logger = get_logger('storage')


def backup_path_for(path: Path) -> Path:
    """``inventory_data.json`` -> ``inventory_data_backup.json``."""
    return path.with_name(f"{path.stem}_backup{path.suffix}")


class SnapshotStore(FallbackStore):
    """A JSON array file with a single rolling backup generation.

    ``save`` copies the current file to the backup before replacing it, so
    after two saves the backup holds the previous state. Writes go through a
    temporary file and an atomic rename; a crash mid-write leaves the old
    file intact.
    """

    def __init__(self, path: Union[str, Path], keep_backup: bool = True):
        self.path = Path(path)
        self.backup_path = backup_path_for(self.path)
        self.keep_backup = keep_backup
        self._lock = RLock()

    def exists(self) -> bool:
        return self.path.exists()

    def backup_exists(self) -> bool:
        return self.backup_path.exists()

    def save(self, records: List[Dict[str, Any]]) -> None:
        """Persist ``records`` as the current snapshot.

        Raises:
            PersistenceError: If the directory or either file cannot be written
        """
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                if self.keep_backup and self.path.exists():
                    shutil.copyfile(self.path, self.backup_path)
                temp_path = self.path.with_suffix('.tmp')
                temp_path.write_text(
                    json.dumps(records, indent=2, ensure_ascii=False),
                    encoding='utf-8'
                )
                temp_path.replace(self.path)
            except (OSError, TypeError, ValueError) as e:
                raise PersistenceError(f"Cannot write {self.path}: {str(e)}",
                                       details={'path': str(self.path)})
        logger.debug(f"Saved {len(records)} records to {self.path}")

    def load(self) -> List[Dict[str, Any]]:
        """Read the current snapshot.

        Raises:
            PersistenceError: If the file is missing, unreadable or not a JSON array
        """
        return self._read(self.path)

    def load_backup(self) -> List[Dict[str, Any]]:
        """Read the backup snapshot.

        Raises:
            PersistenceError: If the backup is missing, unreadable or not a JSON array
        """
        return self._read(self.backup_path)

    def _read(self, path: Path) -> List[Dict[str, Any]]:
        with self._lock:
            if not path.exists():
                raise PersistenceError(f"Snapshot file not found: {path}", code='MISSING',
                                       details={'path': str(path)})
            try:
                raw = path.read_text(encoding='utf-8')
            except OSError as e:
                raise PersistenceError(f"Cannot read {path}: {str(e)}", details={'path': str(path)})

        if not raw.strip():
            return []
        try:
            records = json.loads(raw)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Corrupt snapshot file {path}: {str(e)}", code='CORRUPT',
                                   details={'path': str(path)})
        if not isinstance(records, list):
            raise PersistenceError(f"Snapshot file {path} does not hold a JSON array", code='CORRUPT',
                                   details={'path': str(path)})
        return records
