from __future__ import annotations

from rowbinder.infrastructure.cache_backend import MemoryCacheBackend
from rowbinder.records.cache import MODEL_MAPPING_KEY, RecordCache
from rowbinder.records.record import Record
from rowbinder.records.registry import ModelRegistry, find_override


class Order(Record):
    table_name = "orders"
    module_name = "shop"


class TestModelRegistry:
    """Registrations and override lookups."""

    def test_register_model_indexes_overrides(self):
        registry = ModelRegistry()
        info = registry.register_model(Order, overrides={"Search": "OrderSearch"}, i18n=[" title "])

        assert info.class_name == "Order"
        assert info.module == "shop"
        assert info.i18n == ["title"]
        assert registry.find_override("Order", "Search") == "OrderSearch"
        assert registry.find_override("Order", "Exists") is None
        assert "orders" in registry

    def test_reregistration_replaces_overrides(self):
        registry = ModelRegistry()
        registry.register("orders", class_name="Order", overrides={"Search": "Old", "Exists": "OldExists"})
        registry.register("orders", class_name="Order", overrides={"Search": "New"})

        assert registry.find_override("Order", "Search") == "New"
        assert registry.find_override("Order", "Exists") is None
        assert len(registry) == 1

    def test_extra_params_are_kept(self):
        info = ModelRegistry().register("orders", icon="cart")
        assert info.params == {"icon": "cart"}

    def test_find_override_on_plain_index(self):
        assert find_override({("Order", "Search"): "X"}, "Order", "Search") == "X"

    def test_override_index_is_read_only(self):
        registry = ModelRegistry()
        registry.register_model(Order, overrides={"Search": "OrderSearch"})
        index = registry.override_index()
        assert index[("Order", "Search")] == "OrderSearch"
        assert not hasattr(index, "__setitem__")


class TestModelMappingCache:
    """Persistence of the mapping under settings:modelMapping."""

    def test_save_and_load(self):
        backend = MemoryCacheBackend()
        registry = ModelRegistry(RecordCache(backend))
        registry.register_model(Order, overrides={"Search": "OrderSearch"})
        assert registry.save()

        restored = ModelRegistry(RecordCache(backend))

        assert restored.load()
        assert restored.get_model_info("orders").module == "shop"
        assert restored.find_override("Order", "Search") == "OrderSearch"

    def test_load_without_cache_entry(self):
        registry = ModelRegistry(RecordCache(MemoryCacheBackend()))
        assert not registry.load()

    def test_malformed_mapping_is_ignored(self):
        cache = RecordCache(MemoryCacheBackend())
        cache.set(MODEL_MAPPING_KEY, {"orders": {"i18n": "not-a-list"}})
        registry = ModelRegistry(cache)
        registry.register("kept")

        assert not registry.load()
        assert "kept" in registry

    def test_registry_without_cache(self):
        registry = ModelRegistry()
        assert not registry.save()
        assert not registry.load()
