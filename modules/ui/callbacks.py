"""Callback implementations consumed by the capture, results and history screens."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from config.settings import AppConfig, MIB
from modules.recognition.scan_service import ScanResult, ScanService
from modules.services.errors import ErrorKind, StorageError
from modules.services.history_service import RecordStore
from modules.services.records import ScanRecord
from modules.services.storage_service import BlobStore, StoredBlob

_FAILURE_HINTS: Dict[ErrorKind, str] = {
    ErrorKind.NOT_FOUND: "file not found",
    ErrorKind.CAPACITY_EXCEEDED: "storage limit exceeded",
    ErrorKind.IO_FAILURE: "storage error",
    ErrorKind.PARSE_FAILURE: "saved data is unreadable",
    ErrorKind.DUPLICATE_ID: "scan already saved",
}


def build_callbacks(
    config: AppConfig,
    image_store: Optional[BlobStore] = None,
    scan_store: Optional[RecordStore] = None,
    scanner: Optional[ScanService] = None,
) -> dict[str, Any]:
    """Return a dictionary of UI callback functions."""

    def _ensure_image_store() -> BlobStore:
        if image_store is None:
            raise RuntimeError("Image storage is not configured")
        return image_store

    def _ensure_scan_store() -> RecordStore:
        if scan_store is None:
            raise RuntimeError("Scan storage is not configured")
        return scan_store

    def _describe_failure(error: Optional[StorageError]) -> str:
        if error is None:
            return "unknown error"
        return _FAILURE_HINTS.get(error.kind, error.kind.value)

    def _format_mb(value: int) -> str:
        return f"{value / MIB:.2f} MB"

    def on_save_image(source_path: str) -> Tuple[Optional[str], str]:
        if not source_path:
            return None, "Failed to save image: no image captured."
        store = _ensure_image_store()
        blob = store.save(source_path)
        if blob is None:
            return None, f"Failed to save image: {_describe_failure(store.last_error)}."
        return str(blob.path), "Image saved successfully!"

    def on_scan_image(image_path: str, **derived: Any) -> Tuple[Optional[ScanResult], str]:
        if not image_path:
            return None, "Scan failed: no image selected."
        if scanner is None:
            return None, "Scan failed: recognition service is not configured."
        if not Path(image_path).is_file():
            return None, f"Scan failed: image not found ({image_path})."

        result = scanner.scan_image(image_path)
        record = result.to_record(image_path, **derived)
        store = _ensure_scan_store()
        if not store.save(record):
            return result, f"Scan completed but was not saved: {_describe_failure(store.last_error)}."

        summary = f"{len(result.barcodes)} barcode(s)"
        if result.has_text:
            summary += f", {len(result.text)} characters of text"
        return result, f"Scan saved ({summary})."

    def on_load_gallery() -> List[StoredBlob]:
        return _ensure_image_store().list()

    def on_load_thumbnail(image_path: str) -> Any:
        return _ensure_image_store().thumbnail(image_path, tuple(config.thumbnail_size))

    def on_delete_image(image_path: str) -> Tuple[bool, str]:
        store = _ensure_image_store()
        if store.delete(image_path):
            return True, "Image deleted successfully"
        return False, f"Failed to delete image: {_describe_failure(store.last_error)}."

    def on_load_scans() -> List[ScanRecord]:
        # Newest first for the history browser.
        return list(reversed(_ensure_scan_store().list()))

    def on_delete_scan(scan_id: str) -> str:
        store = _ensure_scan_store()
        if store.delete(scan_id):
            return "Scan deleted"
        return f"Failed to delete scan: {_describe_failure(store.last_error)}."

    def on_storage_status() -> dict[str, dict[str, Any]]:
        status: dict[str, dict[str, Any]] = {}
        for name, store in (("images", image_store), ("scans", scan_store)):
            if store is None:
                continue
            used = store.usage()
            status[name] = {
                "used": used,
                "remaining": store.ceiling_bytes - used,
                "ceiling": store.ceiling_bytes,
                "summary": f"{_format_mb(used)} / {_format_mb(store.ceiling_bytes)}",
            }
        return status

    return {
        "on_save_image": on_save_image,
        "on_scan_image": on_scan_image,
        "on_load_gallery": on_load_gallery,
        "on_load_thumbnail": on_load_thumbnail,
        "on_delete_image": on_delete_image,
        "on_load_scans": on_load_scans,
        "on_delete_scan": on_delete_scan,
        "on_storage_status": on_storage_status,
    }
