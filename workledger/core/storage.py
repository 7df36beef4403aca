import os
import json
import threading
import structlog
from typing import Callable, Dict, Generic, List, Optional, Type, TypeVar, Any

from pydantic import BaseModel

from workledger import config
from workledger.core.errors import PersistenceError
from workledger.core.utils import atomic_write_text, ensure_dir_exists, format_file_size
from workledger.models.work import Work, WorkRevision
from workledger.models.license import License

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)

WORKS_FILE = "works.json"
REVISIONS_FILE = "work_revisions.json"
LICENSES_FILE = "licenses.json"

class RecordCollection(Generic[T]):
    """
    In-memory collection of records keyed by id, mirrored to one JSON file.

    Every read-modify-write runs under the collection lock. Reads hand out
    copies, so callers never observe a record while it is being replaced.
    The file is rewritten in full after each in-memory mutation; a failed
    flush raises PersistenceError but leaves memory as mutated.
    """

    def __init__(self, name: str, file_path: str, model: Type[T]):
        self.name = name
        self.file_path = file_path
        self.model = model
        self.lock = threading.RLock()
        self._records: Dict[str, T] = {}

    def load(self) -> int:
        """Load every record from disk, replacing the in-memory state."""
        with self.lock:
            if not os.path.exists(self.file_path):
                self._records = {}
                logger.info("No collection file found, starting empty",
                           collection=self.name, file_path=self.file_path)
                return 0

            try:
                with open(self.file_path, "r", encoding="utf-8") as f:
                    raw = json.load(f)
                records = [self.model.model_validate(item) for item in raw]
            except Exception as e:
                logger.error("Failed to load collection",
                            collection=self.name, file_path=self.file_path, error=str(e))
                raise PersistenceError(f"Failed to load {self.name}") from e

            self._records = {record.id: record for record in records}
            logger.info("Collection loaded", collection=self.name, records=len(self._records))
            return len(self._records)

    def save_all(self) -> None:
        """Rewrite the collection file from the in-memory state."""
        with self.lock:
            payload = [record.model_dump(mode="json", by_alias=True) for record in self._records.values()]
            try:
                text = json.dumps(payload, indent=2)
                atomic_write_text(self.file_path, text)
            except Exception as e:
                logger.error("Failed to flush collection",
                            collection=self.name, file_path=self.file_path, error=str(e))
                raise PersistenceError() from e

            logger.debug("Collection flushed",
                        collection=self.name, records=len(payload),
                        size=format_file_size(len(text.encode("utf-8"))))

    def get(self, record_id: str) -> Optional[T]:
        with self.lock:
            record = self._records.get(record_id)
            return record.model_copy(deep=True) if record is not None else None

    def snapshot(self) -> List[T]:
        """Point-in-time copy of every record, in insertion order."""
        with self.lock:
            return [record.model_copy(deep=True) for record in self._records.values()]

    def find(self, predicate: Callable[[T], bool]) -> List[T]:
        with self.lock:
            return [record.model_copy(deep=True) for record in self._records.values() if predicate(record)]

    def append(self, record: T, flush: bool = True) -> T:
        with self.lock:
            if record.id in self._records:
                raise ValueError(f"Duplicate {self.name} id: {record.id}")
            self._records[record.id] = record.model_copy(deep=True)
            if flush:
                self.save_all()
            return record.model_copy(deep=True)

    def update(self, record_id: str, mutate: Callable[[T], T], flush: bool = True) -> Optional[T]:
        """
        Replace a record with mutate(copy_of_current).

        Returns None for an unknown id. Exceptions raised by mutate abort the
        update before anything changes. With flush=False the caller owns the
        follow-up save_all.
        """
        with self.lock:
            current = self._records.get(record_id)
            if current is None:
                return None
            updated = mutate(current.model_copy(deep=True))
            self._records[record_id] = updated
            if flush:
                self.save_all()
            return updated.model_copy(deep=True)

    def remove(self, record_id: str, flush: bool = True) -> bool:
        with self.lock:
            if self._records.pop(record_id, None) is None:
                return False
            if flush:
                self.save_all()
            return True

    def __len__(self) -> int:
        with self.lock:
            return len(self._records)

class LedgerStorage:
    """The three independently persisted collections: works, revisions and licenses."""

    def __init__(self, data_dir: Optional[str] = None):
        self.data_dir = data_dir or config.DATA_DIR
        ensure_dir_exists(self.data_dir)

        self.works: RecordCollection[Work] = RecordCollection(
            "works", os.path.join(self.data_dir, WORKS_FILE), Work)
        self.revisions: RecordCollection[WorkRevision] = RecordCollection(
            "work_revisions", os.path.join(self.data_dir, REVISIONS_FILE), WorkRevision)
        self.licenses: RecordCollection[License] = RecordCollection(
            "licenses", os.path.join(self.data_dir, LICENSES_FILE), License)

        logger.info("Ledger storage initialized", data_dir=self.data_dir)

    def load_all(self) -> Dict[str, int]:
        counts = {}
        for collection in (self.works, self.revisions, self.licenses):
            counts[collection.name] = collection.load()
        return counts

    def health_check(self) -> Dict[str, Any]:
        """Check that the data directory is writable and report collection sizes."""
        health = {
            "data_dir": self.data_dir,
            "writable": os.access(self.data_dir, os.W_OK),
            "collections": {
                collection.name: len(collection)
                for collection in (self.works, self.revisions, self.licenses)
            },
        }
        logger.debug("Storage health check completed", **health)
        return health

def flush_all(*collections: RecordCollection) -> None:
    """Flush several collections, attempting every one even if an earlier flush fails."""
    failed = []
    for collection in collections:
        try:
            collection.save_all()
        except PersistenceError:
            failed.append(collection.name)
    if failed:
        logger.error("Collections failed to flush", collections=failed)
        raise PersistenceError()
