"""Write-to-temp-then-rename file helpers."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Union

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"

PathLike = Union[str, Path]


def temp_prefix(target: Path) -> str:
    """Prefix used for staging files next to ``target``."""
    return f".{target.name}."


def atomic_write_bytes(path: PathLike, data: bytes) -> None:
    """Replace ``path`` with ``data`` so readers see either old or new content."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=temp_prefix(target), suffix=TEMP_SUFFIX, dir=target.parent
    )
    try:
        with os.fdopen(fd, "wb") as fp:
            fp.write(data)
            fp.flush()
            os.fsync(fp.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        _discard(tmp_name)
        raise


def atomic_copy_file(source: PathLike, destination: PathLike) -> None:
    """Copy ``source`` to ``destination`` without leaving a partial file behind."""
    target = Path(destination)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=temp_prefix(target), suffix=TEMP_SUFFIX, dir=target.parent
    )
    try:
        with os.fdopen(fd, "wb") as dst, open(source, "rb") as src:
            shutil.copyfileobj(src, dst)
            dst.flush()
            os.fsync(dst.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        _discard(tmp_name)
        raise


def _discard(tmp_name: str) -> None:
    try:
        os.unlink(tmp_name)
    except FileNotFoundError:
        pass


def discard_stale_temp_files(directory: PathLike, name_pattern: str) -> List[Path]:
    """Delete staging files for targets matching ``name_pattern`` in ``directory``.

    Such files only survive when a process died mid-write.
    """
    removed: List[Path] = []
    for leftover in Path(directory).glob(f".{name_pattern}.*{TEMP_SUFFIX}"):
        try:
            leftover.unlink()
        except OSError as exc:
            logger.warning("Could not remove stale temp file %s: %s", leftover, exc)
            continue
        removed.append(leftover)
    if removed:
        logger.info("Removed %d stale temp file(s) from %s", len(removed), directory)
    return removed
