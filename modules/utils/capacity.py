"""On-disk usage accounting for store directories."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def _log_walk_error(exc: OSError) -> None:
    logger.warning("Skipping unreadable directory %s: %s", exc.filename, exc)


def directory_size(path: Path) -> int:
    """Return the total size in bytes of all regular files under ``path``.

    Symbolic links are neither followed nor counted. A file that cannot be
    stat'ed counts as zero so a single bad entry never aborts the walk.
    """
    path = Path(path)
    try:
        if not path.is_dir():
            return 0
    except OSError as exc:
        logger.warning("Could not inspect %s: %s", path, exc)
        return 0

    total = 0
    for root, _dirs, files in os.walk(path, onerror=_log_walk_error):
        for filename in files:
            fpath = Path(root) / filename
            if fpath.is_symlink():
                continue
            try:
                total += fpath.stat().st_size
            except OSError as exc:
                logger.warning("Could not read size of %s: %s", fpath, exc)
                continue
    return total


class CapacityTracker:
    """Compare live directory usage against a fixed byte ceiling."""

    def __init__(self, root: Path, ceiling_bytes: int) -> None:
        if ceiling_bytes < 0:
            raise ValueError("ceiling_bytes must be non-negative")
        self.root = Path(root)
        self.ceiling_bytes = ceiling_bytes

    def usage(self) -> int:
        """Bytes currently occupied under the root, computed fresh."""
        return directory_size(self.root)

    def remaining(self) -> int:
        """Ceiling minus usage; negative when out-of-band writes overfill the root."""
        return self.ceiling_bytes - self.usage()

    def fits(self, size_bytes: int, usage: Optional[int] = None) -> bool:
        """Return True when ``size_bytes`` more would stay within the ceiling."""
        current = self.usage() if usage is None else usage
        return current + size_bytes <= self.ceiling_bytes
