"""Configuration helpers for the tagscan storage core."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Tuple

logger = logging.getLogger(__name__)

MIB = 1024 * 1024
DEFAULT_STORAGE_LIMIT_MB = 25


@dataclass(slots=True)
class AppConfig:
    """Centralized application configuration."""

    data_dir: Path = Path("data")
    images_dir_name: str = "captured_images"
    scan_data_dir_name: str = "scan_data"
    scan_data_file_name: str = "scans.json"
    image_storage_limit_bytes: int = DEFAULT_STORAGE_LIMIT_MB * MIB
    scan_storage_limit_bytes: int = DEFAULT_STORAGE_LIMIT_MB * MIB
    image_extension: str = ".jpg"
    thumbnail_size: Tuple[int, int] = (256, 256)
    log_dir: Path = Path("logs")
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def images_dir(self) -> Path:
        return Path(self.data_dir) / self.images_dir_name

    @property
    def scan_data_dir(self) -> Path:
        return Path(self.data_dir) / self.scan_data_dir_name


def _load_env_file(path: Path) -> None:
    """Populate environment variables from a simple KEY=VALUE .env file."""
    if not path.exists():
        return

    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        os.environ[key.strip()] = value.strip()


def _limit_from_env(name: str, default_mb: int = DEFAULT_STORAGE_LIMIT_MB) -> int:
    """Read a megabyte limit from the environment and return it in bytes."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default_mb * MIB
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %d MB", name, raw, default_mb)
        return default_mb * MIB
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r, using %d MB", name, raw, default_mb)
        return default_mb * MIB
    return int(value * MIB)


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Return an AppConfig instance with environment-aware settings."""
    env_path = Path(config_path) if config_path else Path(".env")
    _load_env_file(env_path)

    data_dir = Path(os.getenv("TAGSCAN_DATA_DIR", "data")).expanduser().resolve()
    log_dir = Path(os.getenv("TAGSCAN_LOG_DIR", "logs")).expanduser().resolve()

    image_limit = _limit_from_env("IMAGE_STORAGE_LIMIT_MB")
    scan_limit = _limit_from_env("SCAN_STORAGE_LIMIT_MB")

    metadata: dict[str, Any] = {"env_file": str(env_path)}
    return AppConfig(
        data_dir=data_dir,
        log_dir=log_dir,
        image_storage_limit_bytes=image_limit,
        scan_storage_limit_bytes=scan_limit,
        metadata=metadata,
    )
