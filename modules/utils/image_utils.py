"""Utility helpers for stored image files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})


def is_image_file(path: Path) -> bool:
    """Check if a file is an image based on its extension."""
    return Path(path).suffix.lower() in IMAGE_EXTENSIONS


def read_image_size(path: Path) -> Optional[Tuple[int, int]]:
    """Return ``(width, height)`` or None when Pillow cannot decode the file."""
    try:
        with Image.open(path) as img:
            return img.size
    except (OSError, UnidentifiedImageError) as exc:
        logger.debug("Could not read image dimensions of %s: %s", path, exc)
        return None


def generate_thumbnail(path: Path, max_size: Tuple[int, int] = (256, 256)) -> Optional[Image.Image]:
    """Create a thumbnail suitable for gallery previews."""
    try:
        with Image.open(path) as img:
            img.load()
            thumb = img.copy()
    except (OSError, UnidentifiedImageError) as exc:
        logger.warning("Could not build thumbnail for %s: %s", path, exc)
        return None
    thumb.thumbnail(max_size)
    return thumb
