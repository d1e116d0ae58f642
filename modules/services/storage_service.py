"""Bounded image storage."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from PIL import Image

from config.settings import AppConfig, MIB
from modules.services.errors import (
    CapacityExceededError,
    NotFoundError,
    StorageError,
    StorageIOError,
)
from modules.utils.atomic_io import atomic_copy_file, discard_stale_temp_files
from modules.utils.capacity import CapacityTracker
from modules.utils.image_utils import generate_thumbnail, is_image_file, read_image_size

logger = logging.getLogger(__name__)

DEFAULT_CEILING_BYTES = 25 * MIB
FILENAME_PREFIX = "IMG_"


@dataclass(slots=True, frozen=True)
class StoredBlob:
    """One persisted image file."""

    path: Path
    size: int
    modified_at: datetime

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def size_in_mb(self) -> float:
        return self.size / MIB

    @classmethod
    def from_path(cls, path: Path) -> "StoredBlob":
        stat = path.stat()
        return cls(path=path, size=stat.st_size, modified_at=datetime.fromtimestamp(stat.st_mtime))


class BlobStore:
    """Persist captured images under a hard size ceiling.

    Admission control only: a save that would push the directory over the
    ceiling is rejected and nothing is evicted to make room.
    """

    def __init__(
        self,
        root: Path,
        ceiling_bytes: int = DEFAULT_CEILING_BYTES,
        *,
        extension: str = ".jpg",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.extension = extension if extension.startswith(".") else f".{extension}"
        self._capacity = CapacityTracker(self.root, ceiling_bytes)
        self._clock = clock
        self._lock = threading.Lock()
        self._last_token = 0
        self._outcome = threading.local()
        discard_stale_temp_files(self.root, f"{FILENAME_PREFIX}*")

    @classmethod
    def from_config(cls, config: AppConfig) -> "BlobStore":
        return cls(
            config.images_dir,
            config.image_storage_limit_bytes,
            extension=config.image_extension,
        )

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
    def save(self, source_path: Union[str, Path], size_bytes: Optional[int] = None) -> Optional[StoredBlob]:
        """Copy an image into the store; return the new blob or None on failure."""
        with self._lock:
            try:
                blob = self._admit_and_copy(Path(source_path), size_bytes)
            except StorageError as exc:
                self._fail("save", exc)
                return None
            self.last_error = None
        logger.info("Image saved successfully: %s (%d bytes)", blob.path, blob.size)
        return blob

    def list(self) -> List[StoredBlob]:
        """Return stored images, newest first by modification time."""
        try:
            candidates = [
                p for p in self.root.iterdir() if not p.is_symlink() and p.is_file() and is_image_file(p)
            ]
        except OSError as exc:
            self._fail("list", StorageIOError(f"Could not list {self.root}: {exc}", path=self.root))
            return []

        blobs: List[StoredBlob] = []
        for path in candidates:
            try:
                blobs.append(StoredBlob.from_path(path))
            except OSError:
                # Removed between listing and stat.
                continue
        blobs.sort(key=lambda blob: blob.modified_at, reverse=True)
        return blobs

    def delete(self, path: Union[str, Path]) -> bool:
        """Remove a stored image; return True only if a file was removed."""
        with self._lock:
            try:
                self._remove(self._resolve(path))
            except StorageError as exc:
                self._fail("delete", exc)
                return False
            self.last_error = None
        logger.info("Image deleted: %s", path)
        return True

    def usage(self) -> int:
        return self._capacity.usage()

    def remaining(self) -> int:
        return self._capacity.remaining()

    def metadata(self, path: Union[str, Path]) -> Optional[Dict[str, Any]]:
        """Describe a stored image (size, mtime and pixel dimensions when decodable)."""
        try:
            target = self._resolve(path)
            blob = StoredBlob.from_path(target)
        except StorageError as exc:
            self._fail("metadata", exc)
            return None
        except OSError as exc:
            self._fail("metadata", NotFoundError(f"Image not found: {path} ({exc})", path=Path(path)))
            return None

        info: Dict[str, Any] = {
            "path": str(blob.path),
            "fileName": blob.name,
            "size": blob.size,
            "created": blob.modified_at,
            "sizeInMB": f"{blob.size_in_mb:.2f}",
        }
        dimensions = read_image_size(blob.path)
        if dimensions is not None:
            info["width"], info["height"] = dimensions
        return info

    def thumbnail(self, path: Union[str, Path], max_size: Tuple[int, int] = (256, 256)) -> Optional[Image.Image]:
        """Return a preview image for the gallery, or None."""
        try:
            target = self._resolve(path)
        except StorageError as exc:
            self._fail("thumbnail", exc)
            return None
        if not target.is_file():
            self._fail("thumbnail", NotFoundError(f"Image not found: {target}", path=target))
            return None
        return generate_thumbnail(target, max_size)

    # Internal helpers -------------------------------------------------------
    def _admit_and_copy(self, source: Path, size_hint: Optional[int]) -> StoredBlob:
        if not source.is_file():
            raise NotFoundError(f"Source file does not exist: {source}", path=source)
        try:
            actual = source.stat().st_size
        except OSError as exc:
            raise StorageIOError(f"Could not read {source}: {exc}", path=source) from exc
        size = max(actual, size_hint or 0)

        usage = self._capacity.usage()
        if not self._capacity.fits(size, usage=usage):
            raise CapacityExceededError(
                f"Storage limit exceeded. Current: {usage}, File: {size}, Max: {self.ceiling_bytes}",
                requested=size,
                usage=usage,
                ceiling=self.ceiling_bytes,
                path=source,
            )

        destination = self._next_destination()
        try:
            atomic_copy_file(source, destination)
            return StoredBlob.from_path(destination)
        except OSError as exc:
            raise StorageIOError(f"Could not copy {source} to {destination}: {exc}", path=destination) from exc

    def _next_destination(self) -> Path:
        """Return an unused ``IMG_<ms>`` path; tokens only move forward."""
        token = max(int(self._clock() * 1000), self._last_token + 1)
        candidate = self.root / f"{FILENAME_PREFIX}{token}{self.extension}"
        while candidate.exists():
            token += 1
            candidate = self.root / f"{FILENAME_PREFIX}{token}{self.extension}"
        self._last_token = token
        return candidate

    def _resolve(self, path: Union[str, Path]) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / candidate
        root = self.root.resolve()
        resolved = candidate.resolve()
        if resolved.parent != root:
            raise NotFoundError(f"Path is outside the image store: {path}", path=candidate)
        return resolved

    def _remove(self, target: Path) -> None:
        if not target.is_file():
            raise NotFoundError(f"Image not found: {target}", path=target)
        try:
            target.unlink()
        except FileNotFoundError as exc:
            raise NotFoundError(f"Image not found: {target}", path=target) from exc
        except OSError as exc:
            raise StorageIOError(f"Error deleting image {target}: {exc}", path=target) from exc

    def _fail(self, operation: str, exc: StorageError) -> None:
        self.last_error = exc
        logger.warning("Image %s failed (%s): %s", operation, exc.kind.value, exc.message)
