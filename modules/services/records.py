"""Scan record model and its JSON collection file."""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from modules.services.errors import ParseFailureError, StorageIOError
from modules.utils.atomic_io import atomic_write_bytes, discard_stale_temp_files

logger = logging.getLogger(__name__)

_SEPARATORS = (",", ":")
_OPTIONAL_FIELDS = (
    ("store_type", "storeType"),
    ("price", "price"),
    ("unit_price", "unitPrice"),
    ("product_name", "productName"),
)


def _encode(payload: Any) -> bytes:
    return json.dumps(payload, separators=_SEPARATORS, ensure_ascii=False).encode("utf-8")


_id_lock = threading.Lock()
_last_id = 0


def next_record_id() -> str:
    """Millisecond id that never repeats within this process."""
    global _last_id
    with _id_lock:
        token = max(int(time.time() * 1000), _last_id + 1)
        _last_id = token
    return str(token)


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string")
    return value


def _optional_float(data: Dict[str, Any], key: str) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{key} must be a number")
    return float(value)


@dataclass(slots=True, frozen=True)
class ScanRecord:
    """One barcode/OCR recognition result."""

    id: str
    image_path: str
    barcodes: Tuple[str, ...]
    ocr_text: str
    timestamp: datetime
    notes: Optional[str] = None
    store_type: Optional[str] = None  # "Safeway/Albertsons" or "Costco"
    price: Optional[float] = None
    unit_price: Optional[float] = None
    product_name: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "barcodes", tuple(self.barcodes))

    @classmethod
    def create(
        cls,
        image_path: str,
        barcodes: Iterable[str] = (),
        ocr_text: str = "",
        **derived: Any,
    ) -> "ScanRecord":
        """Build a fresh record stamped with the current time."""
        now = datetime.now()
        return cls(
            id=next_record_id(),
            image_path=str(image_path),
            barcodes=tuple(barcodes),
            ocr_text=ocr_text,
            timestamp=now,
            **derived,
        )

    def to_json(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "imagePath": self.image_path,
            "barcodes": list(self.barcodes),
            "ocrText": self.ocr_text,
            "timestamp": self.timestamp.isoformat(),
            "notes": self.notes,
        }
        for attr, key in _OPTIONAL_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                payload[key] = value
        return payload

    @classmethod
    def from_json(cls, data: Any) -> "ScanRecord":
        """Parse one collection entry, raising ParseFailureError on bad shape."""
        try:
            if not isinstance(data, dict):
                raise TypeError("record must be an object")
            record_id = data["id"]
            image_path = data["imagePath"]
            barcodes = data["barcodes"]
            ocr_text = data["ocrText"]
            if not isinstance(record_id, str) or not isinstance(image_path, str):
                raise TypeError("id and imagePath must be strings")
            if not isinstance(barcodes, list) or not all(isinstance(b, str) for b in barcodes):
                raise TypeError("barcodes must be a list of strings")
            if not isinstance(ocr_text, str):
                raise TypeError("ocrText must be a string")
            return cls(
                id=record_id,
                image_path=image_path,
                barcodes=tuple(barcodes),
                ocr_text=ocr_text,
                timestamp=datetime.fromisoformat(data["timestamp"]),
                notes=_optional_str(data, "notes"),
                store_type=_optional_str(data, "storeType"),
                price=_optional_float(data, "price"),
                unit_price=_optional_float(data, "unitPrice"),
                product_name=_optional_str(data, "productName"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ParseFailureError(f"Malformed scan record: {exc}") from exc

    def serialized_size(self) -> int:
        """Bytes this record occupies inside the compact collection encoding."""
        return len(_encode(self.to_json()))

    def sort_key(self) -> float:
        """Comparable timestamp; works for naive and offset-aware values alike."""
        return self.timestamp.timestamp()


class RecordFile:
    """The single JSON array file holding every scan record."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @staticmethod
    def encode(records: Iterable[ScanRecord]) -> bytes:
        return _encode([record.to_json() for record in records])

    def exists(self) -> bool:
        return self.path.is_file()

    def size(self) -> int:
        """Bytes on disk, 0 when the file is absent."""
        try:
            return self.path.stat().st_size
        except FileNotFoundError:
            return 0
        except OSError as exc:
            logger.warning("Could not stat %s: %s", self.path, exc)
            return 0

    def load(self) -> List[ScanRecord]:
        """Read every record; absent file means an empty collection."""
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StorageIOError(f"Error loading scans: {exc}", path=self.path) from exc

        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise ParseFailureError(f"Error loading scans: {exc}", path=self.path) from exc
        if not isinstance(payload, list):
            raise ParseFailureError("Scan file does not contain a JSON array", path=self.path)
        return [ScanRecord.from_json(item) for item in payload]

    def load_or_empty(self) -> List[ScanRecord]:
        """Like :meth:`load`, but an unparsable file degrades to an empty list.

        Known issue: a corrupted file is treated as empty, so the next write
        replaces it and the old records are lost.
        """
        try:
            return self.load()
        except ParseFailureError as exc:
            logger.error("Discarding unreadable scan collection %s (%s): %s", self.path, exc.kind.value, exc.message)
            return []

    def write(self, records: Iterable[ScanRecord]) -> int:
        """Atomically replace the file with ``records``; return bytes written."""
        data = self.encode(records)
        try:
            atomic_write_bytes(self.path, data)
        except OSError as exc:
            raise StorageIOError(f"Error saving scans: {exc}", path=self.path) from exc
        return len(data)

    def remove(self) -> bool:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageIOError(f"Error deleting scan file: {exc}", path=self.path) from exc
        return True

    def discard_stale_temp_files(self) -> int:
        """Delete staging files left behind by an interrupted write."""
        return len(discard_stale_temp_files(self.path.parent, self.path.name))
