"""Print usage of the image and scan stores."""

from __future__ import annotations

import argparse
import json

from config.settings import load_config
from modules.services.history_service import RecordStore
from modules.services.storage_service import BlobStore
from modules.utils.logging import setup_logging


def build_report(config_path: str | None = None) -> dict[str, dict[str, int]]:
    """Collect usage, remaining capacity and item counts for both stores."""
    config = load_config(config_path)
    setup_logging(config)
    images = BlobStore.from_config(config)
    scans = RecordStore.from_config(config)
    return {
        "images": {
            "used": images.usage(),
            "remaining": images.remaining(),
            "ceiling": images.ceiling_bytes,
            "count": len(images.list()),
        },
        "scans": {
            "used": scans.usage(),
            "remaining": scans.remaining(),
            "ceiling": scans.ceiling_bytes,
            "count": len(scans.list()),
        },
    }


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Report tagscan storage usage.")
    parser.add_argument("--config", default=None, help="Path to a .env file")
    parser.add_argument("--json", action="store_true", help="Emit the report as JSON")
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    report = build_report(args.config)
    if args.json:
        print(json.dumps(report, indent=2))
    else:
        for name, stats in report.items():
            print(
                f"{name:>6}: {stats['count']} item(s), "
                f"{stats['used']} / {stats['ceiling']} bytes used, {stats['remaining']} remaining"
            )
