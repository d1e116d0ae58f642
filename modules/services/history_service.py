"""Scan history tracking."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import List, Optional, Sequence

from config.settings import AppConfig, MIB
from modules.services.errors import (
    CapacityExceededError,
    DuplicateRecordError,
    StorageError,
)
from modules.services.eviction import EvictionPolicy
from modules.services.records import RecordFile, ScanRecord
from modules.utils.capacity import CapacityTracker

logger = logging.getLogger(__name__)

DEFAULT_CEILING_BYTES = 25 * MIB
DEFAULT_FILE_NAME = "scans.json"


class RecordStore:
    """JSON-backed scan history bounded by a byte ceiling.

    Every mutation rewrites the whole collection file. When an insert would
    overflow the ceiling, the oldest records are evicted first.
    """

    def __init__(
        self,
        root: Path,
        ceiling_bytes: int = DEFAULT_CEILING_BYTES,
        *,
        file_name: str = DEFAULT_FILE_NAME,
        eviction: Optional[EvictionPolicy] = None,
    ) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self._file = RecordFile(self.root / file_name)
        self._capacity = CapacityTracker(self.root, ceiling_bytes)
        self.eviction = eviction or EvictionPolicy(self._file)
        self._lock = threading.Lock()
        self._outcome = threading.local()
        self._file.discard_stale_temp_files()

    @classmethod
    def from_config(cls, config: AppConfig) -> "RecordStore":
        return cls(
            config.scan_data_dir,
            config.scan_storage_limit_bytes,
            file_name=config.scan_data_file_name,
        )

    @property
    def path(self) -> Path:
        return self._file.path

    @property
    def last_error(self) -> Optional[StorageError]:
        """Failure of this thread's most recent mutating call, if any."""
        return getattr(self._outcome, "error", None)

    @last_error.setter
    def last_error(self, error: Optional[StorageError]) -> None:
        self._outcome.error = error

    @property
    def ceiling_bytes(self) -> int:
        return self._capacity.ceiling_bytes

    # Public API -------------------------------------------------------------
    def save(self, record: ScanRecord) -> bool:
        """Append a record, evicting older ones if needed; return success."""
        with self._lock:
            try:
                self._save_locked(record)
            except StorageError as exc:
                self._fail("save", exc)
                return False
            self.last_error = None
        logger.info("Scan saved successfully: %s", record.id)
        return True

    def list(self) -> List[ScanRecord]:
        """Return all records in persisted (insertion) order."""
        try:
            return self._file.load_or_empty()
        except StorageError as exc:
            self._fail("list", exc)
            return []

    def get(self, record_id: str) -> Optional[ScanRecord]:
        for record in self.list():
            if record.id == record_id:
                return record
        return None

    def delete(self, record_id: str) -> bool:
        """Remove a record by id.

        Reports success whether or not a record matched; only an I/O failure
        returns False.
        """
        with self._lock:
            try:
                records = self._file.load_or_empty()
                remaining = [record for record in records if record.id != record_id]
                if len(remaining) != len(records):
                    self._file.write(remaining)
            except StorageError as exc:
                self._fail("delete", exc)
                return False
            self.last_error = None
        logger.info("Scan deleted: %s", record_id)
        return True

    def reclaim(self, required_space: int) -> int:
        """Run oldest-first eviction; return the bytes freed."""
        with self._lock:
            try:
                return self.eviction.reclaim(required_space)
            except StorageError as exc:
                self._fail("reclaim", exc)
                return 0

    def usage(self) -> int:
        return self._capacity.usage()

    def remaining(self) -> int:
        return self._capacity.remaining()

    # Internal helpers -------------------------------------------------------
    def _projected_usage(self, records: Sequence[ScanRecord]) -> int:
        """Directory usage if the collection file held exactly ``records``."""
        others = self._capacity.usage() - self._file.size()
        return others + len(RecordFile.encode(records))

    def _save_locked(self, record: ScanRecord) -> None:
        records = self._file.load_or_empty()
        if any(existing.id == record.id for existing in records):
            raise DuplicateRecordError(f"Scan id already stored: {record.id}", path=self._file.path)

        ceiling = self.ceiling_bytes
        projected = self._projected_usage([*records, record])
        if projected > ceiling:
            new_size = record.serialized_size()
            alone = self._projected_usage([record])
            if alone > ceiling:
                raise CapacityExceededError(
                    f"Scan {record.id} ({new_size} bytes) cannot fit under {ceiling} bytes",
                    requested=new_size,
                    usage=self._capacity.usage(),
                    ceiling=ceiling,
                    path=self._file.path,
                )

            logger.info("Scan storage limit would be exceeded. Attempting to free space...")
            self.eviction.reclaim(new_size)
            records = self._file.load_or_empty()
            projected = self._projected_usage([*records, record])
            if projected > ceiling:
                usage = self._capacity.usage()
                raise CapacityExceededError(
                    f"Unable to free enough space. Current: {usage}, New: {new_size}, Max: {ceiling}",
                    requested=new_size,
                    usage=usage,
                    ceiling=ceiling,
                    path=self._file.path,
                )

        self._file.write([*records, record])

    def _fail(self, operation: str, exc: StorageError) -> None:
        self.last_error = exc
        logger.warning("Scan %s failed (%s): %s", operation, exc.kind.value, exc.message)
