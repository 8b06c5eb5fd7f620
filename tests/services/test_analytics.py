"""Tests for AnalyticsEngine metrics, anomalies, predictions, and caching."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from infragraph.config.models import AnalyticsConfig
from infragraph.infrastructure.cache import TTLCache
from infragraph.infrastructure.graph.store import GraphStore
from infragraph.services.analytics import (
    CACHE_KEY,
    AnalyticsEngine,
    AnomalyType,
    GraphAnalytics,
    Impact,
    NetworkPosition,
    PatternType,
    PredictionType,
)

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


def _add(store: GraphStore, node_id: str, node_type: str = "Service", **meta: Any) -> None:
    store.add_node({"id": node_id, "type": node_type, "metadata": meta or None})


def _link(store: GraphStore, a: str, b: str, edge_type: str = "DEPENDS_ON", **meta: Any) -> None:
    store.add_edge({"from": a, "to": b, "type": edge_type, "metadata": meta or None})


class FakeMonotonic:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def star() -> GraphStore:
    """``a <-> c <-> b``: c is the only way between a and b."""
    store = GraphStore()
    for node_id in ("a", "c", "b"):
        _add(store, node_id)
    _link(store, "c", "a", "CONNECTS_TO", bidirectional=True)
    _link(store, "c", "b", "CONNECTS_TO", bidirectional=True)
    return store


# ── Empty graph ──────────────────────────────────────────────────────


class TestEmptyGraph:
    def test_all_zero_report(self, store: GraphStore) -> None:
        engine = AnalyticsEngine(store)
        assert engine.compute_analytics() == GraphAnalytics()

    def test_empty_report_not_cached(self, store: GraphStore) -> None:
        engine = AnalyticsEngine(store)
        engine.compute_analytics()
        assert CACHE_KEY not in engine.cache

    def test_single_node(self, store: GraphStore) -> None:
        _add(store, "solo")
        report = AnalyticsEngine(store).compute_analytics()
        assert report.density == 0.0
        assert report.clustering == 0.0
        assert report.diameter == 0
        assert [a.entity_id for a in report.anomalies] == ["solo"]


# ── Network metrics ──────────────────────────────────────────────────


class TestNetworkMetrics:
    def test_infra_metrics(self, infra: GraphStore) -> None:
        report = AnalyticsEngine(infra).compute_analytics()
        assert report.density == pytest.approx(1 / 3)
        assert report.clustering == pytest.approx(7 / 12)
        assert report.average_path_length == pytest.approx(20 / 13)
        assert report.diameter == 3

    def test_distributions(self, infra: GraphStore) -> None:
        report = AnalyticsEngine(infra).compute_analytics()
        assert report.centrality_distribution == {"0-4": 7}
        assert report.degree_distribution == {3: 2, 4: 1, 1: 2, 2: 1, 0: 1}

    def test_centrality_buckets_of_five(self, store: GraphStore) -> None:
        _add(store, "hub")
        for i in range(6):
            _add(store, f"s{i}")
            _link(store, "hub", f"s{i}")
        report = AnalyticsEngine(store).compute_analytics()
        assert report.centrality_distribution == {"5-9": 1, "0-4": 6}

    def test_triangle_clustering_is_one(self, store: GraphStore) -> None:
        for node_id in "xyz":
            _add(store, node_id)
        _link(store, "x", "y")
        _link(store, "y", "z")
        _link(store, "z", "x")
        report = AnalyticsEngine(store).compute_analytics()
        assert report.clustering == pytest.approx(1.0)
        assert report.density == pytest.approx(1.0)

    def test_path_length_follows_direction(self, hub: GraphStore) -> None:
        report = AnalyticsEngine(hub).compute_analytics()
        # H->S1, H->S2, S3->H, S3->S1, S3->S2
        assert report.average_path_length == pytest.approx(7 / 5)
        assert report.diameter == 2

    def test_path_length_uses_bidirectional_mirrors(self, star: GraphStore) -> None:
        report = AnalyticsEngine(star).compute_analytics()
        # a<->c<->b: four one-hop pairs and a<->b both ways at two hops
        assert report.average_path_length == pytest.approx(8 / 6)
        assert report.diameter == 2


# ── Communities and modularity ───────────────────────────────────────


class TestCommunities:
    def test_infra_single_community(self, infra: GraphStore) -> None:
        report = AnalyticsEngine(infra).compute_analytics()
        assert len(report.communities) == 1
        community = report.communities[0]
        assert community.id == "community_1"
        assert community.nodes == [
            "team-core",
            "svc-api",
            "svc-worker",
            "svc-report",
            "db-orders",
            "inc-1",
        ]
        assert community.size == 6
        assert community.density == pytest.approx(14 / 30)
        assert community.cohesion == 1.0
        assert community.dominant_type == "Service"
        assert community.description == "Mixed cluster dominated by service (3/6)"
        assert report.modularity == 0.0

    def test_singletons_excluded(self, infra: GraphStore) -> None:
        report = AnalyticsEngine(infra).compute_analytics()
        assert all("doc-runbook" not in c.nodes for c in report.communities)

    def test_members_and_communities_in_insertion_order(self, store: GraphStore) -> None:
        for node_id in ("p", "x", "q", "y", "r"):
            _add(store, node_id)
        _link(store, "y", "x")
        _link(store, "p", "r")
        _link(store, "r", "q")
        communities = AnalyticsEngine(store).compute_analytics().communities
        assert [c.id for c in communities] == ["community_1", "community_2"]
        assert [c.nodes for c in communities] == [["p", "q", "r"], ["x", "y"]]

    def test_homogeneous_description(self, hub: GraphStore) -> None:
        community = AnalyticsEngine(hub).compute_analytics().communities[0]
        assert community.description == "Homogeneous service cluster"

    @staticmethod
    def _two_pairs(extra_intra: int) -> GraphStore:
        """Two 2-node communities and four edges; ``extra_intra`` of the
        filler edges are parallel intra-community edges, the rest are
        self-loops on isolated nodes."""
        store = GraphStore()
        for node_id in ("a", "b", "c", "d", "x", "y"):
            _add(store, node_id)
        _link(store, "a", "b")
        _link(store, "c", "d")
        fillers = [("a", "b", "OWNS"), ("c", "d", "OWNS")][:extra_intra]
        fillers += [("x", "x", "RELATES_TO"), ("y", "y", "RELATES_TO")][: 2 - extra_intra]
        for a, b, edge_type in fillers:
            _link(store, a, b, edge_type)
        assert store.edge_count == 4
        return store

    def test_modularity_monotonic_in_intra_edges(self) -> None:
        scores = [
            AnalyticsEngine(self._two_pairs(k)).compute_analytics().modularity for k in range(3)
        ]
        assert all(s > 0 for s in scores)
        assert scores == sorted(scores)
        assert scores[0] < scores[2]

    def test_modularity_zero_with_one_community(self, hub: GraphStore) -> None:
        assert AnalyticsEngine(hub).compute_analytics().modularity == 0.0


# ── Temporal ─────────────────────────────────────────────────────────


class TestTemporal:
    def test_growth_rate(self, store: GraphStore) -> None:
        _add(store, "old1", created_at=T0 - timedelta(days=10))
        _add(store, "old2", created_at=T0 - timedelta(days=8))
        _add(store, "new1", created_at=T0)
        _add(store, "new2", created_at=T0 + timedelta(days=1))
        engine = AnalyticsEngine(store, clock=lambda: T0 + timedelta(days=3))
        assert engine.compute_analytics().growth_rate == pytest.approx(50.0)

    def test_creation_spike(self, store: GraphStore) -> None:
        _add(store, "d1", created_at=T0)
        _add(store, "d2", created_at=T0 + timedelta(days=1))
        for i in range(8):
            _add(store, f"burst{i}", created_at=T0 + timedelta(days=2, minutes=i))

        patterns = AnalyticsEngine(store).compute_analytics().activity_patterns
        assert len(patterns) == 1
        spike = patterns[0]
        assert spike.type is PatternType.CREATION_SPIKE
        assert spike.entities == [f"burst{i}" for i in range(8)]
        assert spike.intensity == pytest.approx(8 / (10 / 3))
        assert spike.timeframe.start == datetime(2025, 3, 3, tzinfo=UTC)
        assert spike.timeframe.end == datetime(2025, 3, 4, tzinfo=UTC)
        assert spike.description.startswith("8 entities created on 2025-03-03")

    def test_even_activity_has_no_spike(self, infra: GraphStore) -> None:
        assert AnalyticsEngine(infra).compute_analytics().activity_patterns == []

    def test_connection_burst(self, store: GraphStore) -> None:
        for i in range(8):
            _add(store, f"n{i}", created_at=T0)
        _link(store, "n0", "n1", created_at=T0)
        _link(store, "n1", "n2", created_at=T0 + timedelta(days=1))
        for i in range(2, 7):
            _link(store, "n0", f"n{i + 1}", "OWNS", created_at=T0 + timedelta(days=2))

        patterns = AnalyticsEngine(store).compute_analytics().activity_patterns
        assert [p.type for p in patterns] == [PatternType.CONNECTION_BURST]
        assert len(patterns[0].entities) == 5


# ── Anomalies ────────────────────────────────────────────────────────


class TestAnomalies:
    def test_isolated_node(self, infra: GraphStore) -> None:
        assert infra.get_centrality_score("doc-runbook") == 0
        anomalies = AnalyticsEngine(infra).compute_analytics().anomalies
        assert len(anomalies) == 1
        anomaly = anomalies[0]
        assert anomaly.type is AnomalyType.ISOLATED_NODE
        assert anomaly.entity_id == "doc-runbook"
        assert anomaly.severity == "medium"
        assert anomaly.description == 'Document "runbook" has no connections'
        assert anomaly.suggested_action

    @pytest.fixture
    def ownership(self, store: GraphStore) -> GraphStore:
        """One team owning 21 services, plus one incident edge (22 edges)."""
        _add(store, "team", "Team")
        for i in range(21):
            _add(store, f"svc{i}")
            _link(store, "team", f"svc{i}", "OWNS")
        _add(store, "inc", "Incident")
        _link(store, "inc", "svc0", "AFFECTS")
        return store

    def test_over_connected(self, ownership: GraphStore) -> None:
        anomalies = AnalyticsEngine(ownership).compute_analytics().anomalies
        over = [a for a in anomalies if a.type is AnomalyType.OVER_CONNECTED]
        assert [a.entity_id for a in over] == ["team"]
        assert "(21)" in over[0].description

    def test_rare_triple(self, ownership: GraphStore) -> None:
        anomalies = AnalyticsEngine(ownership).compute_analytics().anomalies
        rare = [a for a in anomalies if a.type is AnomalyType.TYPE_MISMATCH]
        assert [a.entity_id for a in rare] == ["inc"]
        assert rare[0].description == "Unusual connection pattern: Incident-AFFECTS-Service"

    def test_rare_threshold_needs_enough_edges(self, infra: GraphStore) -> None:
        anomalies = AnalyticsEngine(infra).compute_analytics().anomalies
        assert not [a for a in anomalies if a.type is AnomalyType.TYPE_MISMATCH]

    def test_thresholds_configurable(self, ownership: GraphStore) -> None:
        config = AnalyticsConfig(over_connected_factor=20.0, rare_pattern_share=0.01)
        anomalies = AnalyticsEngine(ownership, config).compute_analytics().anomalies
        assert anomalies == []


# ── Predictions ──────────────────────────────────────────────────────


class TestPredictions:
    def test_connection_likelihood(self, infra: GraphStore) -> None:
        predictions = AnalyticsEngine(infra).compute_analytics().predictions
        assert len(predictions) == 1
        prediction = predictions[0]
        assert prediction.type is PredictionType.CONNECTION_LIKELIHOOD
        assert prediction.entities == ["svc-report"]
        assert prediction.impact is Impact.MEDIUM
        assert prediction.description == "1 services likely need database connections"

    def test_no_likelihood_without_databases(self, hub: GraphStore) -> None:
        assert AnalyticsEngine(hub).compute_analytics().predictions == []

    def test_no_likelihood_when_all_connected(self, service_db: GraphStore) -> None:
        assert AnalyticsEngine(service_db).compute_analytics().predictions == []

    def _team_of(self, store: GraphStore, count: int) -> GraphStore:
        for i in range(count):
            _add(store, f"t{i}", "Team", created_at=T0)
        return store

    def test_forecast_needs_minimum_nodes(self, store: GraphStore) -> None:
        self._team_of(store, 9)
        engine = AnalyticsEngine(store, clock=lambda: T0)
        assert engine.compute_analytics().predictions == []

    def test_high_growth_forecast(self, store: GraphStore) -> None:
        self._team_of(store, 10)
        engine = AnalyticsEngine(store, clock=lambda: T0 + timedelta(days=1))
        (forecast,) = engine.compute_analytics().predictions
        assert forecast.type is PredictionType.GROWTH_FORECAST
        assert forecast.impact is Impact.HIGH
        assert forecast.timeframe == "4 weeks"
        assert forecast.recommendation == "Consider scaling infrastructure"
        assert forecast.description == "Graph expected to grow by 400.0% (40 new entities)"

    def test_flat_growth_forecast(self, store: GraphStore) -> None:
        self._team_of(store, 10)
        engine = AnalyticsEngine(store, clock=lambda: T0 + timedelta(days=30))
        (forecast,) = engine.compute_analytics().predictions
        assert forecast.impact is Impact.LOW
        assert forecast.recommendation == "Monitor growth patterns"

    def test_medium_growth_forecast(self, store: GraphStore) -> None:
        for i in range(18):
            _add(store, f"old{i}", "Team", created_at=T0 - timedelta(days=30))
        _add(store, "new0", "Team", created_at=T0)
        _add(store, "new1", "Team", created_at=T0)
        engine = AnalyticsEngine(store, clock=lambda: T0)
        (forecast,) = engine.compute_analytics().predictions
        # 10% a week for 4 weeks
        assert forecast.impact is Impact.MEDIUM


# ── Caching ──────────────────────────────────────────────────────────


class TestCache:
    def test_second_call_served_from_cache(self, infra: GraphStore) -> None:
        engine = AnalyticsEngine(infra)
        first = engine.compute_analytics()
        assert engine.compute_analytics() is first

    def test_mutation_does_not_invalidate(self, infra: GraphStore) -> None:
        engine = AnalyticsEngine(infra)
        first = engine.compute_analytics()
        infra.add_node({"id": "new", "type": "Team"})
        assert engine.compute_analytics() is first

    def test_clear_cache(self, infra: GraphStore) -> None:
        engine = AnalyticsEngine(infra)
        first = engine.compute_analytics()
        infra.delete_node("doc-runbook")
        engine.clear_cache()
        second = engine.compute_analytics()
        assert second is not first
        assert second.anomalies == []

    def test_bypass_neither_reads_nor_writes(self, infra: GraphStore) -> None:
        engine = AnalyticsEngine(infra)
        fresh = engine.compute_analytics(use_cache=False)
        assert CACHE_KEY not in engine.cache
        cached = engine.compute_analytics()
        assert engine.compute_analytics(use_cache=False) is not cached
        assert fresh == cached

    def test_ttl_expiry(self, infra: GraphStore) -> None:
        clock = FakeMonotonic()
        engine = AnalyticsEngine(infra, cache=TTLCache(300, clock=clock))
        first = engine.compute_analytics()
        clock.now = 299
        assert engine.compute_analytics() is first
        clock.now = 300
        assert engine.compute_analytics() is not first

    def test_default_ttl_from_config(self, infra: GraphStore) -> None:
        engine = AnalyticsEngine(infra, AnalyticsConfig(cache_ttl_seconds=42))
        assert engine.cache.ttl_seconds == 42

    def test_invalidate_on_write(self, infra: GraphStore) -> None:
        engine = AnalyticsEngine(infra, AnalyticsConfig(invalidate_on_write=True))
        first = engine.compute_analytics()
        infra.add_edge({"from": "doc-runbook", "to": "svc-api", "type": "MENTIONS"})
        second = engine.compute_analytics()
        assert second is not first
        assert second.anomalies == []

    def test_two_invalidating_engines_share_a_store(self, infra: GraphStore) -> None:
        config = AnalyticsConfig(invalidate_on_write=True)
        one = AnalyticsEngine(infra, config)
        two = AnalyticsEngine(infra, config)
        one.compute_analytics()
        two.compute_analytics()
        infra.delete_node("doc-runbook")
        assert len(one.cache) == 0
        assert len(two.cache) == 0


# ── Influence ────────────────────────────────────────────────────────


class TestInfluence:
    def test_unknown_node(self, infra: GraphStore) -> None:
        assert AnalyticsEngine(infra).analyze_influence("ghost") is None

    def test_isolated(self, infra: GraphStore) -> None:
        analysis = AnalyticsEngine(infra).analyze_influence("doc-runbook")
        assert analysis is not None
        assert analysis.network_position is NetworkPosition.ISOLATED
        assert analysis.influence_score == 0.0
        assert analysis.reachability == 0.0
        assert analysis.key_connections == []

    def test_periphery(self, infra: GraphStore) -> None:
        analysis = AnalyticsEngine(infra).analyze_influence("svc-api")
        assert analysis is not None
        assert analysis.network_position is NetworkPosition.PERIPHERY
        assert analysis.reachability == pytest.approx(5 / 7)
        assert analysis.influence_score == pytest.approx(20 / 7)
        assert analysis.criticality_index == 4
        assert analysis.key_connections == ["db-orders", "svc-worker", "team-core", "inc-1"]

    def test_core(self, store: GraphStore) -> None:
        _add(store, "hub")
        for i in range(4):
            _add(store, f"s{i}")
            _link(store, "hub", f"s{i}")
        analysis = AnalyticsEngine(store).analyze_influence("hub")
        assert analysis is not None
        assert analysis.network_position is NetworkPosition.CORE
        assert analysis.reachability == pytest.approx(4 / 5)

    def test_bridge(self, star: GraphStore) -> None:
        engine = AnalyticsEngine(star)
        assert engine.is_bridge("c")
        assert not engine.is_bridge("a")
        analysis = engine.analyze_influence("c")
        assert analysis is not None
        assert analysis.network_position is NetworkPosition.BRIDGE
        assert analysis.criticality_index == 8
        assert analysis.reachability == pytest.approx(2 / 3)

    def test_reachability_counts_inbound_edges(self, store: GraphStore) -> None:
        for node_id in ("a", "b", "c"):
            _add(store, node_id)
        _link(store, "b", "a")
        _link(store, "c", "a")
        analysis = AnalyticsEngine(store).analyze_influence("a")
        assert analysis is not None
        assert analysis.reachability == pytest.approx(2 / 3)
        assert analysis.influence_score == pytest.approx(4 / 3)

    def test_key_connections_capped(self, store: GraphStore) -> None:
        _add(store, "hub")
        for i in range(8):
            _add(store, f"s{i}")
            _link(store, "hub", f"s{i}")
        engine = AnalyticsEngine(store, AnalyticsConfig(key_connections=3))
        analysis = engine.analyze_influence("hub")
        assert analysis is not None
        assert analysis.key_connections == ["s0", "s1", "s2"]


# ── Path analysis ────────────────────────────────────────────────────


class TestPathAnalysis:
    def test_no_path(self, service_db: GraphStore) -> None:
        analysis = AnalyticsEngine(service_db).analyze_path("B", "A")
        assert analysis.shortest_path == []
        assert analysis.alternative_paths == []
        assert analysis.bottlenecks == []
        assert analysis.reliability == 0.0
        assert analysis.model_dump(by_alias=True)["from"] == "B"

    def test_direct_path_fully_reliable(self, service_db: GraphStore) -> None:
        analysis = AnalyticsEngine(service_db).analyze_path("A", "B")
        assert analysis.shortest_path == ["A", "B"]
        assert analysis.bottlenecks == []
        assert analysis.reliability == 1.0

    def test_bridge_is_bottleneck(self, star: GraphStore) -> None:
        analysis = AnalyticsEngine(star).analyze_path("a", "b")
        assert analysis.shortest_path == ["a", "c", "b"]
        assert analysis.bottlenecks == ["c"]
        assert analysis.reliability == pytest.approx(2 / 3)

    @pytest.fixture
    def detours(self, store: GraphStore) -> GraphStore:
        for node_id in "abcde":
            _add(store, node_id)
        _link(store, "a", "b")
        _link(store, "a", "c")
        _link(store, "c", "b")
        _link(store, "a", "d")
        _link(store, "d", "e")
        _link(store, "e", "b")
        return store

    def test_alternative_paths(self, detours: GraphStore) -> None:
        analysis = AnalyticsEngine(detours).analyze_path("a", "b")
        assert analysis.shortest_path == ["a", "b"]
        assert analysis.alternative_paths == [["a", "c", "b"], ["a", "d", "e", "b"]]

    def test_alternative_paths_capped(self, detours: GraphStore) -> None:
        engine = AnalyticsEngine(detours, AnalyticsConfig(max_alternative_paths=1))
        assert engine.analyze_path("a", "b").alternative_paths == [["a", "c", "b"]]

    def test_same_node(self, service_db: GraphStore) -> None:
        analysis = AnalyticsEngine(service_db).analyze_path("A", "A")
        assert analysis.shortest_path == ["A"]
        assert analysis.alternative_paths == []
