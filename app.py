"""Application entry point for the tagscan storage core."""

from __future__ import annotations

from typing import Any, Optional

from config.settings import AppConfig, load_config
from modules.recognition.scan_service import ScanService
from modules.services.history_service import RecordStore
from modules.services.storage_service import BlobStore
from modules.ui.callbacks import build_callbacks
from modules.utils.logging import setup_logging


def build_app(config: AppConfig, scanner: Optional[ScanService] = None) -> dict[str, Any]:
    """Wire both stores and the recognition facade into the callback map."""
    return build_callbacks(
        config,
        image_store=BlobStore.from_config(config),
        scan_store=RecordStore.from_config(config),
        scanner=scanner or ScanService(),
    )


def main(config_path: Optional[str] = None) -> None:
    """Load configuration, prepare the stores and report their usage."""
    config = load_config(config_path)
    logger = setup_logging(config)
    callbacks = build_app(config)
    for name, status in callbacks["on_storage_status"]().items():
        logger.info("%s storage: %s", name, status["summary"])


if __name__ == "__main__":
    main()
