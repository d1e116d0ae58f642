"""Application wiring tests."""

from __future__ import annotations

from app import build_app
from config.settings import AppConfig


def test_build_app_wires_both_stores(tmp_path):
    config = AppConfig(data_dir=tmp_path, image_storage_limit_bytes=2048, scan_storage_limit_bytes=4096)

    cb = build_app(config)

    assert config.images_dir.is_dir()
    assert config.scan_data_dir.is_dir()
    status = cb["on_storage_status"]()
    assert status["images"]["ceiling"] == 2048
    assert status["scans"]["ceiling"] == 4096
    assert cb["on_load_gallery"]() == []
    assert cb["on_load_scans"]() == []
