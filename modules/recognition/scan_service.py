"""Barcode and OCR recognition facade.

No recognition engine ships with the project: callers register a barcode
backend and a text backend (plain callables taking the image path). Every
failure is absorbed here and reported as an empty result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from modules.services.records import ScanRecord

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BarcodeResult:
    """One decoded barcode."""

    value: str
    format: str = "Unknown"
    raw_value: Optional[str] = None


@dataclass(slots=True)
class ScanResult:
    """Combined barcode and OCR output for one image."""

    barcodes: List[BarcodeResult] = field(default_factory=list)
    text: str = ""

    @property
    def has_barcodes(self) -> bool:
        return bool(self.barcodes)

    @property
    def has_text(self) -> bool:
        return bool(self.text)

    @property
    def has_results(self) -> bool:
        return self.has_barcodes or self.has_text

    def to_record(
        self,
        image_path: Union[str, Path],
        *,
        record_id: Optional[str] = None,
        timestamp: Optional[datetime] = None,
        **derived: Any,
    ) -> ScanRecord:
        """Turn this result into a storable ScanRecord."""
        record = ScanRecord.create(
            str(image_path),
            barcodes=[barcode.value for barcode in self.barcodes],
            ocr_text=self.text,
            **derived,
        )
        overrides: Dict[str, Any] = {}
        if record_id is not None:
            overrides["id"] = record_id
        if timestamp is not None:
            overrides["timestamp"] = timestamp
        return replace(record, **overrides) if overrides else record


BarcodePayload = Union[BarcodeResult, Dict[str, Any], str]
BarcodeBackend = Callable[[Path], Sequence[BarcodePayload]]
TextBackend = Callable[[Path], str]


class ScanService:
    """Dispatch images to the registered recognition backends."""

    def __init__(
        self,
        barcode_backend: Optional[BarcodeBackend] = None,
        text_backend: Optional[TextBackend] = None,
    ) -> None:
        self._barcode_backend = barcode_backend
        self._text_backend = text_backend
        self.warnings: list[str] = []

    def register_barcode_backend(self, backend: BarcodeBackend) -> None:
        self._barcode_backend = backend

    def register_text_backend(self, backend: TextBackend) -> None:
        self._text_backend = backend

    def clear_backends(self) -> None:
        """Remove all backends (mainly for tests)."""
        self._barcode_backend = None
        self._text_backend = None

    def scan_barcodes(self, image_path: Union[str, Path]) -> List[BarcodeResult]:
        """Return decoded barcodes, or an empty list on any failure."""
        path = Path(image_path)
        if not path.is_file():
            logger.warning("Image file does not exist: %s", path)
            return []
        if self._barcode_backend is None:
            self._warn("Barcode scanning backend not configured")
            return []
        try:
            payload = self._barcode_backend(path)
        except Exception as exc:  # noqa: BLE001
            self._warn(f"Error scanning barcodes from {path}: {exc}")
            return []
        results = [self._normalize_barcode(item) for item in payload or ()]
        barcodes = [item for item in results if item is not None]
        logger.info("Found %d barcodes in %s", len(barcodes), path)
        return barcodes

    def perform_ocr(self, image_path: Union[str, Path]) -> str:
        """Return extracted text, or an empty string on any failure."""
        path = Path(image_path)
        if not path.is_file():
            logger.warning("Image file does not exist: %s", path)
            return ""
        if self._text_backend is None:
            self._warn("OCR backend not configured")
            return ""
        try:
            text = self._text_backend(path)
        except Exception as exc:  # noqa: BLE001
            self._warn(f"Error performing OCR on {path}: {exc}")
            return ""
        text = text if isinstance(text, str) else ""
        logger.info("OCR completed. Text length: %d", len(text))
        return text

    def scan_image(self, image_path: Union[str, Path]) -> ScanResult:
        """Run both barcode scanning and OCR on one image."""
        path = Path(image_path)
        if not path.is_file():
            logger.warning("Image file does not exist: %s", path)
            return ScanResult()
        return ScanResult(barcodes=self.scan_barcodes(path), text=self.perform_ocr(path))

    # Internal helpers ---------------------------------------------------------
    def _normalize_barcode(self, payload: BarcodePayload) -> Optional[BarcodeResult]:
        """Coerce backend outputs into BarcodeResult."""
        if isinstance(payload, BarcodeResult):
            return payload
        if isinstance(payload, str):
            return BarcodeResult(value=payload)
        if isinstance(payload, dict):
            raw_value = payload.get("raw_value") or payload.get("rawValue")
            value = payload.get("value") or raw_value or ""
            return BarcodeResult(
                value=str(value),
                format=str(payload.get("format") or "Unknown"),
                raw_value=raw_value,
            )
        self._warn(f"Ignoring unsupported barcode payload: {payload!r}")
        return None

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message)
