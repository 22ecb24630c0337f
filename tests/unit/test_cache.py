from __future__ import annotations

from datetime import datetime, time, timedelta
from decimal import Decimal
from uuid import UUID

from rowbinder.records.cache import MODEL_MAPPING_KEY, RecordCache, record_key
from rowbinder.records.record import Record

ORDER_COUNT = 3
SLOT_TOKEN = UUID(int=1)


class SlottedItem(Record):
    table_name = "items"
    cache_on_load = True

    def get_extended_data(self):
        return {
            **super().get_extended_data(),
            "opens_at": time(9, 30),
            "token": SLOT_TOKEN,
            "window": timedelta(hours=2),
        }


class OpaqueItem(Record):
    table_name = "items"
    cache_on_load = True

    def get_extended_data(self):
        return {**super().get_extended_data(), "handle": object()}


class TestRecordCache:
    """Two-tier get/set/delete."""

    def test_set_writes_json_bytes_to_backend(self, backend):
        cache = RecordCache(backend)
        cache.set("k", {"name": "Zoë", "n": 1})

        raw = backend.get("k")
        assert isinstance(raw, bytes)
        assert "Zoë".encode("utf-8") in raw

    def test_get_reads_backend_after_memo_is_cleared(self, backend):
        cache = RecordCache(backend)
        cache.set("k", {"a": [1, 2]})
        cache.clear_memo()

        assert cache.get("k") == {"a": [1, 2]}

    def test_get_returns_independent_copies(self, backend):
        cache = RecordCache(backend)
        cache.set("k", {"a": [1]})

        cache.get("k")["a"].append(2)

        assert cache.get("k") == {"a": [1]}

    def test_miss_returns_default(self, backend):
        assert RecordCache(backend).get("nope", default="x") == "x"

    def test_undecodable_payload_is_a_miss(self, backend):
        backend.set("k", b"{not json")
        assert RecordCache(backend).get("k") is None

    def test_non_json_values_are_stringified(self, backend):
        cache = RecordCache(backend)
        cache.set("k", {"when": datetime(2024, 1, 2, 3, 4, 5), "price": Decimal("1.50")})

        assert cache.get("k") == {"when": "2024-01-02 03:04:05", "price": "1.50"}

    def test_delete_removes_both_tiers(self, backend):
        cache = RecordCache(backend)
        cache.set("k", 1)
        cache.delete("k")

        assert not cache.has("k")
        assert backend.get("k") is None

    def test_delete_by_prefix_counts_removed_entries(self, backend):
        cache = RecordCache(backend)
        for id in range(1, ORDER_COUNT + 1):
            cache.set(record_key("orders", id), {"id": id})
        cache.set(record_key("order_lines", 1), {"id": 1})

        assert cache.delete_by_prefix("models/orders/") == ORDER_COUNT
        assert cache.get(record_key("orders", 1)) is None
        assert cache.get(record_key("order_lines", 1)) == {"id": 1}

    def test_invalidate_all_metadata_drops_model_mapping(self, backend):
        cache = RecordCache(backend)
        cache.set(MODEL_MAPPING_KEY, {"orders": {}})
        cache.set("metadata/orders", {})

        assert cache.invalidate_all_metadata() == 1
        assert not cache.has(MODEL_MAPPING_KEY)


class TestRecordSnapshots:
    """Snapshots stored by set_record_data."""

    def test_snapshot_round_trip(self, context, seeded_store):
        record = Record.get_by_id(context, 1, table_name="items")

        assert context.cache.set_record_data(record)
        cached = context.cache.get_record_data("items", 1)

        assert cached["title"] == "alpha"
        assert float(cached["price"]) == 10.0
        assert cached == record.get_data()

    def test_records_without_positive_id_are_not_cached(self, context):
        record = Record.from_data(context, {"id": 0, "title": "x"}, table_name="items")
        assert not context.cache.set_record_data(record)
        assert context.cache.get_record_data("items", 0) is None

    def test_string_ids_are_cached(self, context):
        record = Record.from_data(context, {"id": "a1b2", "title": "x"}, table_name="notes")
        assert context.cache.set_record_data(record)
        assert context.cache.get_record_data("notes", "a1b2")["title"] == "x"

    def test_time_uuid_and_interval_values_are_cached(self, context, seeded_store):
        record = SlottedItem.get_by_id(context, 1)

        assert record.is_cached is True
        cached = context.cache.get_record_data("items", 1)
        assert cached["opens_at"] == "09:30:00"
        assert cached["token"] == str(SLOT_TOKEN)
        assert isinstance(cached["window"], str) and cached["window"].startswith("P")

    def test_unencodable_snapshot_is_skipped(self, context, seeded_store):
        record = OpaqueItem.get_by_id(context, 1)

        assert record.get("title") == "alpha"
        assert record.is_cached is False
        assert context.cache.get_record_data("items", 1) is None
