"""RecordStore unit tests."""

from __future__ import annotations

import json
import threading
from datetime import datetime, timedelta
from pathlib import Path

from config.settings import AppConfig
from modules.services import records
from modules.services.errors import ErrorKind
from modules.services.history_service import RecordStore
from modules.services.records import ScanRecord

BASE_TIME = datetime(2024, 5, 1, 10, 0, 0)


def make_record(record_id: str, offset_seconds: int = 0, **kwargs) -> ScanRecord:
    fields = {
        "image_path": f"/images/IMG_{record_id}.jpg",
        "barcodes": ["012345678905"],
        "ocr_text": "",
        "timestamp": BASE_TIME + timedelta(seconds=offset_seconds),
    }
    fields.update(kwargs)
    return ScanRecord(id=record_id, **fields)


def build_store(tmp_path: Path, ceiling: int = 1_000_000) -> RecordStore:
    return RecordStore(tmp_path / "scan_data", ceiling)


def ids(store: RecordStore) -> list[str]:
    return [record.id for record in store.list()]


def test_save_and_list_round_trip(tmp_path):
    store = build_store(tmp_path)
    full = make_record(
        "full",
        ocr_text="Organic Bananas\n$0.69 /lb",
        notes="aisle 4",
        store_type="Safeway/Albertsons",
        price=3.49,
        unit_price=0.69,
        product_name="Organic Bananas",
    )
    bare = make_record("bare", 1, barcodes=[])

    assert store.save(full) is True
    assert store.save(bare) is True

    assert store.list() == [full, bare]


def test_absent_optional_fields_stay_absent(tmp_path):
    store = build_store(tmp_path)
    store.save(make_record("a"))

    payload = json.loads(store.path.read_text(encoding="utf-8"))

    assert payload[0]["notes"] is None
    for key in ("storeType", "price", "unitPrice", "productName"):
        assert key not in payload[0]
    restored = store.list()[0]
    assert restored.price is None
    assert restored.store_type is None


def test_list_without_file_is_empty(tmp_path):
    store = build_store(tmp_path)

    assert store.list() == []
    assert not store.path.exists()


def test_corrupted_file_degrades_to_empty(tmp_path):
    store = build_store(tmp_path)
    store.path.write_text("{not json", encoding="utf-8")

    assert store.list() == []

    # Known issue: the next save replaces the unreadable collection.
    assert store.save(make_record("fresh")) is True
    assert ids(store) == ["fresh"]


def test_non_array_payload_degrades_to_empty(tmp_path):
    store = build_store(tmp_path)
    store.path.write_text(json.dumps({"id": "x"}), encoding="utf-8")

    assert store.list() == []


def test_reads_external_timestamps_and_integer_prices(tmp_path):
    store = build_store(tmp_path)
    entry = {
        "id": "1714557600000",
        "imagePath": "/images/IMG_1714557600000.jpg",
        "barcodes": ["4011"],
        "ocrText": "KIRKLAND",
        "timestamp": "2024-05-01T10:00:00.000Z",
        "notes": None,
        "storeType": "Costco",
        "price": 12,
    }
    store.path.write_text(json.dumps([entry]), encoding="utf-8")

    record = store.get("1714557600000")

    assert record is not None
    assert record.timestamp.tzinfo is not None
    assert record.price == 12.0 and isinstance(record.price, float)
    assert record.store_type == "Costco"
    assert record.unit_price is None


def test_duplicate_id_rejected(tmp_path):
    store = build_store(tmp_path)
    store.save(make_record("a"))

    assert store.save(make_record("a", 5)) is False
    assert store.last_error.kind == ErrorKind.DUPLICATE_ID
    assert ids(store) == ["a"]


def test_delete_removes_record_and_is_idempotent(tmp_path):
    store = build_store(tmp_path)
    store.save(make_record("a"))
    store.save(make_record("b", 1))

    assert store.delete("a") is True
    assert ids(store) == ["b"]
    assert store.delete("a") is True
    assert ids(store) == ["b"]


def test_delete_unknown_id_reports_success(tmp_path):
    store = build_store(tmp_path)

    assert store.delete("ghost") is True
    assert not store.path.exists()


def test_eviction_keeps_two_newest(tmp_path):
    a, b, c = make_record("a", 0), make_record("b", 1), make_record("c", 2)
    size = a.serialized_size()
    assert size == b.serialized_size() == c.serialized_size()
    # Room for exactly two records: "[" + a + "," + b + "]".
    store = build_store(tmp_path, ceiling=2 * size + 3)

    assert store.save(a) is True
    assert store.save(b) is True
    assert store.save(c) is True

    assert ids(store) == ["b", "c"]
    assert store.path.stat().st_size <= store.ceiling_bytes
    assert store.usage() <= store.ceiling_bytes


def test_eviction_uses_timestamp_not_insertion_order(tmp_path):
    x, y, z = make_record("x", 2), make_record("y", 1), make_record("z", 3)
    store = build_store(tmp_path, ceiling=2 * x.serialized_size() + 3)

    store.save(x)
    store.save(y)
    store.save(z)

    assert ids(store) == ["x", "z"]


def test_record_that_can_never_fit_evicts_nothing(tmp_path):
    a, b = make_record("a", 0), make_record("b", 1)
    size = a.serialized_size()
    store = build_store(tmp_path, ceiling=2 * size + 3)
    store.save(a)
    store.save(b)

    huge = make_record("h", 9, ocr_text="x" * (3 * size))

    assert store.save(huge) is False
    assert store.last_error.kind == ErrorKind.CAPACITY_EXCEEDED
    assert ids(store) == ["a", "b"]


def test_rejected_when_eviction_frees_too_little(tmp_path):
    a, b, c, d = (make_record(name, i) for i, name in enumerate("abcd"))
    size = a.serialized_size()
    build_store(tmp_path).save(a)
    build_store(tmp_path).save(b)
    build_store(tmp_path).save(c)
    # "[b,c,d]" needs 3 * size + 4 bytes, one more than allowed.
    store = build_store(tmp_path, ceiling=3 * size + 3)

    assert store.save(d) is False

    assert store.last_error.kind == ErrorKind.CAPACITY_EXCEEDED
    assert ids(store) == ["b", "c"]


def test_foreign_files_count_against_ceiling(tmp_path):
    a = make_record("a")
    store = build_store(tmp_path, ceiling=a.serialized_size() + 2)
    (store.root / "sideloaded.bin").write_bytes(b"x")

    assert store.save(a) is False
    assert store.last_error.kind == ErrorKind.CAPACITY_EXCEEDED
    assert not store.path.exists()


def test_public_reclaim_evicts_oldest(tmp_path):
    store = build_store(tmp_path)
    saved = [make_record(name, i) for i, name in enumerate("abc")]
    for record in saved:
        store.save(record)

    freed = store.reclaim(1)

    assert freed == saved[0].serialized_size()
    assert ids(store) == ["b", "c"]


def test_reclaim_everything_removes_file(tmp_path):
    store = build_store(tmp_path)
    for i, name in enumerate("ab"):
        store.save(make_record(name, i))

    store.reclaim(10**9)

    assert not store.path.exists()
    assert store.list() == []


def test_stale_temp_files_are_discarded(tmp_path):
    root = tmp_path / "scan_data"
    root.mkdir()
    leftover = root / ".scans.json.abc123.tmp"
    leftover.write_text("[", encoding="utf-8")

    store = RecordStore(root)

    assert not leftover.exists()
    assert store.usage() == 0


def test_concurrent_saves_do_not_lose_updates(tmp_path):
    store = build_store(tmp_path)
    batch = [make_record(f"scan-{i:02d}", i) for i in range(20)]

    threads = [threading.Thread(target=store.save, args=(record,)) for record in batch]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(ids(store)) == sorted(record.id for record in batch)


def test_usage_and_remaining(tmp_path):
    store = build_store(tmp_path, ceiling=10_000)
    store.save(make_record("a"))

    assert store.usage() == store.path.stat().st_size
    assert store.remaining() == 10_000 - store.usage()


def test_from_config_uses_scan_data_dir(tmp_path):
    config = AppConfig(data_dir=tmp_path, scan_storage_limit_bytes=2048)

    store = RecordStore.from_config(config)

    assert store.path == tmp_path / "scan_data" / "scans.json"
    assert store.ceiling_bytes == 2048


def test_records_created_within_one_millisecond_get_distinct_ids(tmp_path, monkeypatch):
    monkeypatch.setattr(records.time, "time", lambda: 1_700_000_000.0)
    store = build_store(tmp_path)

    first = ScanRecord.create("/images/IMG_1.jpg", ["4011"])
    second = ScanRecord.create("/images/IMG_2.jpg", ["4011"])

    assert first.id != second.id
    assert int(second.id) > int(first.id)
    assert store.save(first) is True
    assert store.save(second) is True
    assert ids(store) == [first.id, second.id]


def test_scan_record_is_hashable():
    record = make_record("a", barcodes=["4011", "012345678905"])

    assert record.barcodes == ("4011", "012345678905")
    assert len({record, make_record("a", barcodes=["4011", "012345678905"])}) == 1
