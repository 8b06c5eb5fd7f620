"""Tests for the built-in analytics cache invalidation plugin."""

from __future__ import annotations

from infragraph.infrastructure.cache import TTLCache
from infragraph.infrastructure.graph.store import GraphStore
from infragraph.plugins.builtins.cache_invalidation import CacheInvalidationPlugin


def _primed(store: GraphStore) -> TTLCache:
    cache = TTLCache()
    store.plugins.register_plugin(CacheInvalidationPlugin(cache))
    cache.set("full_analytics", object())
    return cache


class TestCacheInvalidationPlugin:
    def test_node_add(self, store: GraphStore) -> None:
        cache = _primed(store)
        store.add_node({"id": "x", "type": "Service"})
        assert len(cache) == 0

    def test_node_update(self, service_db: GraphStore) -> None:
        cache = _primed(service_db)
        service_db.update_node("A", {"properties": {}})
        assert len(cache) == 0

    def test_node_delete(self, service_db: GraphStore) -> None:
        cache = _primed(service_db)
        service_db.delete_node("B")
        assert len(cache) == 0

    def test_edge_add_and_delete(self, service_db: GraphStore) -> None:
        cache = _primed(service_db)
        service_db.add_edge({"from": "B", "to": "A", "type": "NOTIFIES"})
        assert len(cache) == 0
        cache.set("full_analytics", object())
        service_db.delete_edge("B-NOTIFIES-A")
        assert len(cache) == 0

    def test_clear(self, service_db: GraphStore) -> None:
        cache = _primed(service_db)
        service_db.clear()
        assert len(cache) == 0

    def test_reads_leave_cache_alone(self, service_db: GraphStore) -> None:
        cache = _primed(service_db)
        service_db.query({"depth": 2})
        service_db.find_path("A", "B")
        assert len(cache) == 1
