"""AnalyticsEngine -- structural metrics, anomalies, and heuristic predictions.

Built only on GraphStore's public reads.  ``compute_analytics`` is a
full-graph pass and is memoized in a :class:`TTLCache`; the cached report
stays in place across mutations until its TTL runs out or
``clear_cache()`` is called (or ``invalidate_on_write`` is configured).
Each pass snapshots the store's adjacency into one networkx DiGraph and
runs the traversals on that.

Cost of one uncached pass, V nodes and E edges:

- density, distributions, growth, activity: O(V + E)
- clustering: O(sum of k^2) over undirected neighbor counts k
- average path length and diameter: O(V * (V + E)), one BFS per node
- communities and modularity: O(V + E)
- anomalies and predictions: O(V + E)
"""

from __future__ import annotations

import itertools
import logging
from collections import Counter
from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING

import networkx as nx
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from infragraph.config.models import AnalyticsConfig
from infragraph.domain.models import Edge, Node, utc_now
from infragraph.domain.types import Direction, EdgeType, NodeType
from infragraph.infrastructure.cache import TTLCache
from infragraph.plugins.builtins.cache_invalidation import CacheInvalidationPlugin
from infragraph.services.telemetry import trace_span

if TYPE_CHECKING:
    from infragraph.infrastructure.graph.store import GraphStore

logger = logging.getLogger(__name__)

CACHE_KEY = "full_analytics"

_REPORT = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Report models
# ---------------------------------------------------------------------------


class PatternType(StrEnum):
    CREATION_SPIKE = "creation_spike"
    CONNECTION_BURST = "connection_burst"


class AnomalyType(StrEnum):
    ISOLATED_NODE = "isolated_node"
    OVER_CONNECTED = "over_connected"
    TYPE_MISMATCH = "type_mismatch"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PredictionType(StrEnum):
    GROWTH_FORECAST = "growth_forecast"
    CONNECTION_LIKELIHOOD = "connection_likelihood"


class Impact(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class NetworkPosition(StrEnum):
    CORE = "core"
    PERIPHERY = "periphery"
    BRIDGE = "bridge"
    ISOLATED = "isolated"


class Community(BaseModel):
    """A connected component of two or more nodes."""

    model_config = _REPORT

    id: str
    nodes: list[str]
    size: int
    density: float
    dominant_type: NodeType
    cohesion: float
    description: str


class Timeframe(BaseModel):
    model_config = _REPORT

    start: datetime
    end: datetime


class ActivityPattern(BaseModel):
    model_config = _REPORT

    type: PatternType
    timeframe: Timeframe
    intensity: float
    entities: list[str]
    description: str


class Anomaly(BaseModel):
    model_config = _REPORT

    type: AnomalyType
    severity: Severity
    entity_id: str
    description: str
    confidence: float
    suggested_action: str | None = None


class Prediction(BaseModel):
    model_config = _REPORT

    type: PredictionType
    confidence: float
    timeframe: str
    description: str
    impact: Impact
    entities: list[str] = Field(default_factory=list)
    recommendation: str


class GraphAnalytics(BaseModel):
    """Full analytics report.  The defaults are the empty-graph report."""

    model_config = _REPORT

    density: float = 0.0
    clustering: float = 0.0
    average_path_length: float = 0.0
    diameter: int = 0
    centrality_distribution: dict[str, int] = Field(default_factory=dict)
    degree_distribution: dict[int, int] = Field(default_factory=dict)
    communities: list[Community] = Field(default_factory=list)
    modularity: float = 0.0
    growth_rate: float = 0.0
    activity_patterns: list[ActivityPattern] = Field(default_factory=list)
    anomalies: list[Anomaly] = Field(default_factory=list)
    predictions: list[Prediction] = Field(default_factory=list)


class InfluenceAnalysis(BaseModel):
    model_config = _REPORT

    node_id: str
    influence_score: float
    reachability: float
    criticality_index: float
    network_position: NetworkPosition
    key_connections: list[str]


class PathAnalysis(BaseModel):
    model_config = _REPORT

    from_id: str = Field(alias="from")
    to_id: str = Field(alias="to")
    shortest_path: list[str] = Field(default_factory=list)
    alternative_paths: list[list[str]] = Field(default_factory=list)
    bottlenecks: list[str] = Field(default_factory=list)
    reliability: float = 0.0


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _digraph(store: GraphStore) -> nx.DiGraph:
    """Snapshot *store*'s adjacency, bidirectional edges included, as a DiGraph.

    Nodes are added in store order, so iteration over the snapshot
    follows insertion order.
    """
    digraph = nx.DiGraph()
    for node in store.iter_nodes():
        digraph.add_node(node.id)
        for neighbor in store.neighbor_ids(node.id, Direction.OUT):
            digraph.add_edge(node.id, neighbor)
    return digraph


class AnalyticsEngine:
    """Computes and caches analytics over one GraphStore.

    Args:
        store: The graph to analyze.
        config: Detector thresholds and cache settings.
        cache: Report cache; one with ``config.cache_ttl_seconds`` is
            created when omitted.
        clock: "Now" for growth-rate windows.
    """

    def __init__(
        self,
        store: GraphStore,
        config: AnalyticsConfig | None = None,
        *,
        cache: TTLCache | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self.config = config or AnalyticsConfig()
        self.cache = cache if cache is not None else TTLCache(self.config.cache_ttl_seconds)
        self._clock = clock
        if self.config.invalidate_on_write:
            store.plugins.register_plugin(
                CacheInvalidationPlugin(self.cache),
                name=f"cache-invalidation-{id(self.cache):x}",
            )

    def clear_cache(self) -> None:
        self.cache.invalidate()

    # ------------------------------------------------------------------
    # Full report
    # ------------------------------------------------------------------

    def compute_analytics(self, *, use_cache: bool = True) -> GraphAnalytics:
        """Return the full report, from cache when a live entry exists.

        ``use_cache=False`` neither reads nor writes the cache.  An empty
        graph yields the all-zero report, which is never cached.
        """
        if use_cache:
            cached = self.cache.get(CACHE_KEY)
            if cached is not None:
                logger.debug("Analytics served from cache")
                return cached

        snapshot = self._store.query()
        nodes, edges = snapshot.nodes, snapshot.edges
        if not nodes:
            return GraphAnalytics()

        centrality = {node.id: self._store.get_centrality_score(node.id) for node in nodes}
        digraph = _digraph(self._store)
        undirected = digraph.to_undirected(as_view=True)

        with trace_span("analytics.density"):
            density = self._density(len(nodes), len(edges))
        with trace_span("analytics.clustering"):
            clustering = self._clustering(nodes, undirected)
        with trace_span("analytics.paths") as span:
            average_path_length, diameter = self._path_metrics(digraph)
            if span:
                span.annotate("sources", len(nodes))
        with trace_span("analytics.communities"):
            communities = self._communities(nodes, edges, undirected)
            modularity = self._modularity(communities, edges, centrality)
        with trace_span("analytics.temporal"):
            growth_rate = self._growth_rate(nodes)
            patterns = self._activity_patterns(nodes, edges)
        with trace_span("analytics.anomalies"):
            anomalies = self._anomalies(nodes, edges, centrality)
        with trace_span("analytics.predictions"):
            predictions = self._predictions(nodes, edges, growth_rate)

        report = GraphAnalytics(
            density=density,
            clustering=clustering,
            average_path_length=average_path_length,
            diameter=diameter,
            centrality_distribution=self._centrality_distribution(centrality.values()),
            degree_distribution=dict(Counter(centrality.values())),
            communities=communities,
            modularity=modularity,
            growth_rate=growth_rate,
            activity_patterns=patterns,
            anomalies=anomalies,
            predictions=predictions,
        )
        if use_cache:
            self.cache.set(CACHE_KEY, report)
        return report

    # ------------------------------------------------------------------
    # Network metrics
    # ------------------------------------------------------------------

    @staticmethod
    def _density(node_count: int, edge_count: int) -> float:
        if node_count < 2:
            return 0.0
        return (edge_count * 2) / (node_count * (node_count - 1))

    @staticmethod
    def _clustering(nodes: list[Node], undirected: nx.Graph) -> float:
        """Mean local clustering over nodes with two or more neighbors.

        A self-loop counts its node as one of its own neighbors.
        """
        if len(nodes) < 3:
            return 0.0
        total = 0.0
        qualifying = 0
        for node in nodes:
            neighbors = list(undirected[node.id])
            k = len(neighbors)
            if k < 2:
                continue
            triangles = sum(
                1 for a, b in itertools.combinations(neighbors, 2) if b in undirected[a]
            )
            total += triangles / (k * (k - 1) / 2)
            qualifying += 1
        return total / qualifying if qualifying else 0.0

    @staticmethod
    def _path_metrics(digraph: nx.DiGraph) -> tuple[float, int]:
        """Average finite path length and diameter over ordered pairs."""
        total = 0
        pairs = 0
        diameter = 0
        for source in digraph:
            distances = nx.single_source_shortest_path_length(digraph, source)
            for target, distance in distances.items():
                if target == source:
                    continue
                total += distance
                pairs += 1
                diameter = max(diameter, distance)
        return (total / pairs if pairs else 0.0), diameter

    @staticmethod
    def _centrality_distribution(scores: Iterable[int]) -> dict[str, int]:
        distribution: dict[str, int] = {}
        for score in scores:
            bucket = (score // 5) * 5
            label = f"{bucket}-{bucket + 4}"
            distribution[label] = distribution.get(label, 0) + 1
        return distribution

    # ------------------------------------------------------------------
    # Communities
    # ------------------------------------------------------------------

    def _communities(
        self,
        nodes: list[Node],
        edges: list[Edge],
        undirected: nx.Graph,
    ) -> list[Community]:
        """Connected components of two or more nodes, in node insertion order."""
        by_id = {node.id: node for node in nodes}
        order = {node.id: position for position, node in enumerate(nodes)}
        components = [
            sorted(members, key=order.__getitem__)
            for members in nx.connected_components(undirected)
        ]
        components.sort(key=lambda component: order[component[0]])
        communities: list[Community] = []
        for component in components:
            if len(component) < 2:
                continue

            members = set(component)
            internal = sum(1 for e in edges if e.from_id in members and e.to_id in members)
            boundary = sum(
                1 for e in edges if (e.from_id in members) != (e.to_id in members)
            )
            types = Counter(by_id[node_id].type for node_id in component)
            dominant, dominant_count = types.most_common(1)[0]
            size = len(component)
            communities.append(
                Community(
                    id=f"community_{len(communities) + 1}",
                    nodes=component,
                    size=size,
                    density=(internal * 2) / (size * (size - 1)),
                    dominant_type=dominant,
                    cohesion=internal / (internal + boundary) if internal + boundary else 0.0,
                    description=self._describe_community(dominant, dominant_count, size),
                )
            )
        return communities

    @staticmethod
    def _describe_community(dominant: NodeType, count: int, size: int) -> str:
        kind = dominant.value.lower()
        if count == size:
            return f"Homogeneous {kind} cluster"
        return f"Mixed cluster dominated by {kind} ({count}/{size})"

    @staticmethod
    def _modularity(
        communities: list[Community],
        edges: list[Edge],
        centrality: dict[str, int],
    ) -> float:
        """Heuristic modularity.

        Sum of ``1 - deg(u)*deg(v)/2m`` over intra-community edges, divided by 2m.
        """
        if len(communities) <= 1 or not edges:
            return 0.0
        membership = {node_id: c.id for c in communities for node_id in c.nodes}
        two_m = 2 * len(edges)
        score = 0.0
        for edge in edges:
            home = membership.get(edge.from_id)
            if home is not None and home == membership.get(edge.to_id):
                score += 1 - (centrality[edge.from_id] * centrality[edge.to_id]) / two_m
        return score / two_m

    # ------------------------------------------------------------------
    # Temporal
    # ------------------------------------------------------------------

    def _growth_rate(self, nodes: list[Node]) -> float:
        """Percentage of nodes created inside the trailing growth window."""
        if not nodes:
            return 0.0
        cutoff = self._clock() - timedelta(days=self.config.growth_window_days)
        recent = sum(1 for node in nodes if node.metadata.created_at > cutoff)
        return recent / len(nodes) * 100

    def _activity_patterns(self, nodes: list[Node], edges: list[Edge]) -> list[ActivityPattern]:
        patterns = self._spikes(
            ((node.id, node.metadata.created_at) for node in nodes),
            PatternType.CREATION_SPIKE,
            "entities created",
        )
        patterns.extend(
            self._spikes(
                ((edge.id, edge.metadata.created_at) for edge in edges),
                PatternType.CONNECTION_BURST,
                "connections created",
            )
        )
        return patterns

    def _spikes(
        self,
        stamped: Iterable[tuple[str, datetime]],
        kind: PatternType,
        noun: str,
    ) -> list[ActivityPattern]:
        """Calendar days (UTC) whose count exceeds ``spike_factor`` x the daily mean.

        The mean is taken over days that saw at least one creation.
        """
        daily: dict[date, list[str]] = {}
        for entity_id, created_at in stamped:
            daily.setdefault(created_at.astimezone(UTC).date(), []).append(entity_id)
        if not daily:
            return []

        average = sum(len(ids) for ids in daily.values()) / len(daily)
        threshold = average * self.config.spike_factor
        patterns: list[ActivityPattern] = []
        for day, ids in daily.items():
            if len(ids) <= threshold:
                continue
            start = datetime(day.year, day.month, day.day, tzinfo=UTC)
            intensity = len(ids) / average
            patterns.append(
                ActivityPattern(
                    type=kind,
                    timeframe=Timeframe(start=start, end=start + timedelta(days=1)),
                    intensity=intensity,
                    entities=ids,
                    description=f"{len(ids)} {noun} on {day.isoformat()} ({intensity:.1f}x normal)",
                )
            )
        return patterns

    # ------------------------------------------------------------------
    # Anomalies
    # ------------------------------------------------------------------

    def _anomalies(
        self,
        nodes: list[Node],
        edges: list[Edge],
        centrality: dict[str, int],
    ) -> list[Anomaly]:
        anomalies = [
            Anomaly(
                type=AnomalyType.ISOLATED_NODE,
                severity=Severity.MEDIUM,
                entity_id=node.id,
                description=f'{node.type} "{node.label}" has no connections',
                confidence=0.9,
                suggested_action="Review if this entity should be connected to others",
            )
            for node in nodes
            if centrality[node.id] == 0
        ]

        mean = sum(centrality.values()) / len(nodes)
        threshold = mean * self.config.over_connected_factor
        anomalies.extend(
            Anomaly(
                type=AnomalyType.OVER_CONNECTED,
                severity=Severity.LOW,
                entity_id=node.id,
                description=(
                    f'{node.type} "{node.label}" has unusually many connections '
                    f"({centrality[node.id]})"
                ),
                confidence=0.7,
                suggested_action="Verify if all connections are necessary",
            )
            for node in nodes
            if centrality[node.id] > threshold
        )

        anomalies.extend(self._rare_patterns(nodes, edges))
        return anomalies

    def _rare_patterns(self, nodes: list[Node], edges: list[Edge]) -> list[Anomaly]:
        """``(fromType, edgeType, toType)`` triples seen once and under the rare share."""
        if not edges:
            return []
        types = {node.id: node.type for node in nodes}
        seen: dict[tuple[NodeType, EdgeType, NodeType], list[Edge]] = {}
        for edge in edges:
            if edge.from_id in types and edge.to_id in types:
                triple = (types[edge.from_id], edge.type, types[edge.to_id])
                seen.setdefault(triple, []).append(edge)

        anomalies: list[Anomaly] = []
        for (from_type, edge_type, to_type), matched in seen.items():
            if len(matched) != 1 or 1 / len(edges) >= self.config.rare_pattern_share:
                continue
            anomalies.append(
                Anomaly(
                    type=AnomalyType.TYPE_MISMATCH,
                    severity=Severity.LOW,
                    entity_id=matched[0].from_id,
                    description=f"Unusual connection pattern: {from_type}-{edge_type}-{to_type}",
                    confidence=0.6,
                    suggested_action="Verify if this connection type is correct",
                )
            )
        return anomalies

    # ------------------------------------------------------------------
    # Predictions
    # ------------------------------------------------------------------

    def _predictions(
        self,
        nodes: list[Node],
        edges: list[Edge],
        growth_rate: float,
    ) -> list[Prediction]:
        predictions: list[Prediction] = []
        forecast = self._growth_forecast(len(nodes), growth_rate)
        if forecast is not None:
            predictions.append(forecast)
        likelihood = self._connection_likelihood(nodes, edges)
        if likelihood is not None:
            predictions.append(likelihood)
        return predictions

    def _growth_forecast(self, node_count: int, growth_rate: float) -> Prediction | None:
        if node_count < self.config.forecast_min_nodes:
            return None
        weeks = self.config.forecast_weeks
        projected = growth_rate * weeks
        if projected > 50:
            impact = Impact.HIGH
        elif projected > 20:
            impact = Impact.MEDIUM
        else:
            impact = Impact.LOW
        return Prediction(
            type=PredictionType.GROWTH_FORECAST,
            confidence=0.7,
            timeframe=f"{weeks} weeks",
            description=(
                f"Graph expected to grow by {projected:.1f}% "
                f"({round(node_count * projected / 100)} new entities)"
            ),
            impact=impact,
            recommendation=(
                "Consider scaling infrastructure" if projected > 50 else "Monitor growth patterns"
            ),
        )

    @staticmethod
    def _connection_likelihood(nodes: list[Node], edges: list[Edge]) -> Prediction | None:
        """Flag Services with no DEPENDS_ON/CONNECTS_TO edge into any Database."""
        types = {node.id: node.type for node in nodes}
        services = [node.id for node in nodes if node.type == NodeType.SERVICE]
        if not services or NodeType.DATABASE not in types.values():
            return None

        connected = {
            edge.from_id
            for edge in edges
            if edge.type in (EdgeType.DEPENDS_ON, EdgeType.CONNECTS_TO)
            and types.get(edge.from_id) == NodeType.SERVICE
            and types.get(edge.to_id) == NodeType.DATABASE
        }
        unconnected = [node_id for node_id in services if node_id not in connected]
        if not unconnected:
            return None
        return Prediction(
            type=PredictionType.CONNECTION_LIKELIHOOD,
            confidence=0.8,
            timeframe="2 weeks",
            description=f"{len(unconnected)} services likely need database connections",
            impact=Impact.MEDIUM,
            entities=unconnected,
            recommendation="Review service dependencies and add missing database connections",
        )

    # ------------------------------------------------------------------
    # Node and path analysis
    # ------------------------------------------------------------------

    def is_bridge(self, node_id: str) -> bool:
        """Heuristic: the node lies on a 3-node shortest path between two of its neighbors.

        O(k^2 * (V + E)) for k neighbors.
        """
        neighbors = self._store.neighbor_ids(node_id, Direction.BOTH)
        if len(neighbors) < 2:
            return False
        for a, b in itertools.combinations(neighbors, 2):
            path = self._store.find_path(a, b)
            if path is not None and len(path) == 3 and node_id in path:
                return True
        return False

    def analyze_influence(self, node_id: str) -> InfluenceAnalysis | None:
        """Centrality, reachability and network position of one node.

        Reachability is the share of all nodes connected to *node_id*
        by edges in either direction.  Returns None when *node_id* is not
        in the graph.
        """
        if self._store.get_node(node_id) is None:
            return None

        undirected = _digraph(self._store).to_undirected(as_view=True)
        node_ids = list(undirected)
        centrality = self._store.get_centrality_score(node_id)
        reachable = len(nx.node_connected_component(undirected, node_id)) - 1
        reachability = reachable / len(node_ids)
        mean = sum(self._store.get_centrality_score(i) for i in node_ids) / len(node_ids)
        bridge = self.is_bridge(node_id)

        if centrality == 0:
            position = NetworkPosition.ISOLATED
        elif centrality > mean * self.config.core_factor:
            position = NetworkPosition.CORE
        elif bridge:
            position = NetworkPosition.BRIDGE
        else:
            position = NetworkPosition.PERIPHERY

        return InfluenceAnalysis(
            node_id=node_id,
            influence_score=centrality * reachability,
            reachability=reachability,
            criticality_index=centrality * (2 if bridge else 1),
            network_position=position,
            key_connections=self._store.neighbor_ids(node_id)[: self.config.key_connections],
        )

    def analyze_path(self, from_id: str, to_id: str) -> PathAnalysis:
        """Shortest forward path, its bridge bottlenecks, and alternatives.

        No path gives an empty analysis with reliability 0.
        """
        shortest = self._store.find_path(from_id, to_id)
        if shortest is None:
            return PathAnalysis(from_id=from_id, to_id=to_id)

        bottlenecks = [node_id for node_id in shortest[1:-1] if self.is_bridge(node_id)]
        return PathAnalysis(
            from_id=from_id,
            to_id=to_id,
            shortest_path=shortest,
            alternative_paths=self._alternative_paths(shortest),
            bottlenecks=bottlenecks,
            reliability=max(0.0, 1 - len(bottlenecks) / len(shortest)),
        )

    def _alternative_paths(self, shortest: list[str]) -> list[list[str]]:
        """Next simple forward paths after *shortest*, in increasing length."""
        limit = self.config.max_alternative_paths
        if len(shortest) < 2 or limit == 0:
            return []
        alternatives: list[list[str]] = []
        for path in nx.shortest_simple_paths(_digraph(self._store), shortest[0], shortest[-1]):
            if path == shortest:
                continue
            alternatives.append(path)
            if len(alternatives) == limit:
                break
        return alternatives
