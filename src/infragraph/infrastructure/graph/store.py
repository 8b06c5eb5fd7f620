"""GraphStore -- indexed in-memory node/edge storage.

Owns every node and edge and keeps four indices in step with them:

- ``_nodes`` / ``_edges``: primary maps (edges keyed by structured EdgeKey);
- ``_adjacency`` / ``_reverse``: forward and reverse neighbor maps;
- ``_type_index``: one insertion-ordered id bucket per NodeType.

Adjacency maps hold a support count per neighbor: several edges (of
different types, or a bidirectional mirror) can back the same entry, and
an entry disappears only with its last supporting edge.  The key order of
each map is the order neighbors were first linked, which makes BFS
results deterministic.

Single-writer, synchronous.  Callers serialize concurrent mutation.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Iterator, Mapping
from datetime import datetime
from typing import Any

from infragraph.domain.errors import UnknownNodeError
from infragraph.domain.models import (
    Edge,
    EdgeKey,
    EdgeMetadata,
    EdgeMetadataSpec,
    EdgeSpec,
    GraphQuery,
    GraphQueryResult,
    GraphStats,
    Node,
    NodeMetadata,
    NodeMetadataSpec,
    NodeSpec,
    NodeUpdate,
    utc_now,
)
from infragraph.domain.patterns import DEFAULT_MAX_PATTERN_LENGTH
from infragraph.domain.types import Direction, EdgeType, NodeType
from infragraph.infrastructure.graph.paths import PathFinder
from infragraph.infrastructure.graph.query import QueryEngine
from infragraph.plugins.manager import PluginManager

logger = logging.getLogger(__name__)

type _Adjacency = dict[str, dict[str, int]]


def _link(index: _Adjacency, a: str, b: str) -> None:
    bucket = index.setdefault(a, {})
    bucket[b] = bucket.get(b, 0) + 1


def _unlink(index: _Adjacency, a: str, b: str) -> None:
    bucket = index.get(a)
    if bucket is None or b not in bucket:
        return
    if bucket[b] <= 1:
        del bucket[b]
    else:
        bucket[b] -= 1


class GraphStore:
    """Indexed knowledge graph of infrastructure entities.

    Args:
        plugins: Hook dispatcher for mutation events.  A private manager
            with no plugins is created when omitted.
        clock: Source of creation/update timestamps.
        max_pattern_length: Cap for ``$regex`` query filters.
    """

    def __init__(
        self,
        *,
        plugins: PluginManager | None = None,
        clock: Callable[[], datetime] = utc_now,
        max_pattern_length: int = DEFAULT_MAX_PATTERN_LENGTH,
    ) -> None:
        self.plugins = plugins if plugins is not None else PluginManager()
        self._clock = clock
        self._nodes: dict[str, Node] = {}
        self._edges: dict[EdgeKey, Edge] = {}
        # String id -> every key rendering to it, most recently added last.
        self._edge_ids: dict[str, dict[EdgeKey, None]] = {}
        self._adjacency: _Adjacency = {}
        self._reverse: _Adjacency = {}
        self._incident: dict[str, dict[EdgeKey, None]] = {}
        self._type_index: dict[NodeType, dict[str, None]] = {}
        self._init_type_index()
        self._query_engine = QueryEngine(self, max_pattern_length=max_pattern_length)
        self._path_finder = PathFinder(self)

    def _init_type_index(self) -> None:
        self._type_index = {node_type: {} for node_type in NodeType}

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def add_node(self, spec: NodeSpec | Mapping[str, Any]) -> Node:
        """Insert or fully replace a node.

        Metadata defaults (timestamps, ``created_by="system"``) are
        recomputed on every add unless the caller supplies them.  Existing
        edges of a replaced node are kept.
        """
        if not isinstance(spec, NodeSpec):
            spec = NodeSpec.model_validate(spec)

        now = self._clock()
        meta = spec.metadata or NodeMetadataSpec()
        node = Node(
            id=spec.id,
            type=spec.type,
            properties=spec.properties,
            metadata=NodeMetadata(
                created_at=meta.created_at or now,
                updated_at=meta.updated_at or now,
                created_by=meta.created_by or "system",
                source=meta.source,
                confidence=meta.confidence,
            ),
        )

        previous = self._nodes.get(node.id)
        if previous is not None and previous.type != node.type:
            self._type_index[previous.type].pop(node.id, None)

        self._nodes[node.id] = node
        self._type_index[node.type][node.id] = None
        self._adjacency.setdefault(node.id, {})
        self._reverse.setdefault(node.id, {})
        self._incident.setdefault(node.id, {})

        logger.debug("Added node %s (%s)", node.id, node.type)
        self.plugins.dispatch("post_node_add", node=node, replaced=previous is not None)
        return node

    def get_node(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def update_node(self, node_id: str, changes: NodeUpdate | Mapping[str, Any]) -> Node | None:
        """Apply a partial update, keeping the node's identity.

        ``type`` and ``properties`` replace the stored values; metadata is
        merged and ``updated_at`` always moves to now.  Returns None when
        *node_id* is not in the store.
        """
        existing = self._nodes.get(node_id)
        if existing is None:
            return None
        if not isinstance(changes, NodeUpdate):
            changes = NodeUpdate.model_validate(changes)

        update: dict[str, Any] = {}
        fields_changed: list[str] = []
        if changes.type is not None and changes.type != existing.type:
            update["type"] = changes.type
            fields_changed.append("type")
        if changes.properties is not None:
            update["properties"] = changes.properties
            fields_changed.append("properties")

        meta_update: dict[str, Any] = {}
        if changes.metadata is not None:
            meta_update = changes.metadata.model_dump(exclude_unset=True, exclude_none=True)
            fields_changed.extend(f"metadata.{key}" for key in meta_update)
        meta_update["updated_at"] = self._clock()
        update["metadata"] = existing.metadata.model_copy(update=meta_update)

        node = existing.model_copy(update=update)
        if node.type != existing.type:
            self._type_index[existing.type].pop(node_id, None)
            self._type_index[node.type][node_id] = None
        self._nodes[node_id] = node

        self.plugins.dispatch("post_node_update", node=node, fields_changed=fields_changed)
        return node

    def delete_node(self, node_id: str) -> bool:
        """Remove a node and cascade to every edge touching it."""
        node = self._nodes.get(node_id)
        if node is None:
            return False

        removed = [str(key) for key in list(self._incident.get(node_id, {}))]
        for key in list(self._incident.get(node_id, {})):
            self._remove_edge(key)

        self._type_index[node.type].pop(node_id, None)
        self._adjacency.pop(node_id, None)
        self._reverse.pop(node_id, None)
        self._incident.pop(node_id, None)
        del self._nodes[node_id]

        logger.debug("Deleted node %s with %d edges", node_id, len(removed))
        self.plugins.dispatch("post_node_delete", node_id=node_id, edges_removed=removed)
        return True

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def add_edge(self, spec: EdgeSpec | Mapping[str, Any]) -> Edge:
        """Insert or replace the edge identified by ``(from, type, to)``.

        Raises:
            UnknownNodeError: If either endpoint is not in the store.
        """
        if not isinstance(spec, EdgeSpec):
            spec = EdgeSpec.model_validate(spec)
        if spec.from_id not in self._nodes:
            raise UnknownNodeError(spec.from_id, "source")
        if spec.to_id not in self._nodes:
            raise UnknownNodeError(spec.to_id, "target")

        key = spec.key
        meta = spec.metadata or EdgeMetadataSpec()
        edge = Edge(
            id=str(key),
            type=spec.type,
            from_id=spec.from_id,
            to_id=spec.to_id,
            properties=spec.properties,
            metadata=EdgeMetadata(
                created_at=meta.created_at or self._clock(),
                strength=1.0 if meta.strength is None else meta.strength,
                bidirectional=bool(meta.bidirectional),
            ),
        )

        previous = self._edges.get(key)
        if previous is not None:
            self._unlink_edge(previous)

        self._edges[key] = edge
        self._link_edge(edge)
        self._incident[edge.from_id][key] = None
        self._incident[edge.to_id][key] = None

        sharing = self._edge_ids.setdefault(edge.id, {})
        sharing.pop(key, None)
        if sharing:
            logger.warning(
                "Edge id %r is ambiguous: %s and %s share it; string lookups now resolve "
                "to the latter",
                edge.id,
                tuple(next(reversed(sharing))),
                tuple(key),
            )
        sharing[key] = None

        self.plugins.dispatch("post_edge_add", edge=edge, replaced=previous is not None)
        return edge

    def get_edge(self, edge_id: str | EdgeKey) -> Edge | None:
        key = self._resolve_key(edge_id)
        return None if key is None else self._edges.get(key)

    def delete_edge(self, edge_id: str | EdgeKey) -> bool:
        key = self._resolve_key(edge_id)
        if key is None or key not in self._edges:
            return False
        edge = self._remove_edge(key)
        self.plugins.dispatch("post_edge_delete", edge_id=edge.id)
        return True

    def _resolve_key(self, edge_id: str | EdgeKey) -> EdgeKey | None:
        if isinstance(edge_id, tuple):
            from_id, edge_type, to_id = edge_id
            try:
                return EdgeKey(from_id, EdgeType(edge_type), to_id)
            except ValueError:
                return None
        sharing = self._edge_ids.get(edge_id)
        return next(reversed(sharing)) if sharing else None

    def _link_edge(self, edge: Edge) -> None:
        _link(self._adjacency, edge.from_id, edge.to_id)
        _link(self._reverse, edge.to_id, edge.from_id)
        if edge.metadata.bidirectional:
            _link(self._adjacency, edge.to_id, edge.from_id)
            _link(self._reverse, edge.from_id, edge.to_id)

    def _unlink_edge(self, edge: Edge) -> None:
        _unlink(self._adjacency, edge.from_id, edge.to_id)
        _unlink(self._reverse, edge.to_id, edge.from_id)
        if edge.metadata.bidirectional:
            _unlink(self._adjacency, edge.to_id, edge.from_id)
            _unlink(self._reverse, edge.from_id, edge.to_id)

    def _remove_edge(self, key: EdgeKey) -> Edge:
        edge = self._edges.pop(key)
        self._unlink_edge(edge)
        self._incident.get(edge.from_id, {}).pop(key, None)
        self._incident.get(edge.to_id, {}).pop(key, None)
        sharing = self._edge_ids.get(edge.id, {})
        sharing.pop(key, None)
        if not sharing:
            self._edge_ids.pop(edge.id, None)
        return edge

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def neighbor_ids(self, node_id: str, direction: Direction | str = Direction.BOTH) -> list[str]:
        """Neighbor ids in link order; ``both`` lists outgoing first."""
        direction = Direction(direction)
        out = list(self._adjacency.get(node_id, ())) if direction != Direction.IN else []
        incoming = list(self._reverse.get(node_id, ())) if direction != Direction.OUT else []
        if direction == Direction.BOTH:
            return list(dict.fromkeys([*out, *incoming]))
        return out or incoming

    def get_neighbors(
        self, node_id: str, direction: Direction | str = Direction.BOTH
    ) -> list[Node]:
        return [self._nodes[i] for i in self.neighbor_ids(node_id, direction) if i in self._nodes]

    def get_centrality_score(self, node_id: str) -> int:
        """Unnormalized degree: reverse-adjacency size plus adjacency size."""
        return len(self._reverse.get(node_id, ())) + len(self._adjacency.get(node_id, ()))

    def node_ids_of_type(self, node_type: NodeType | str) -> list[str]:
        try:
            bucket = self._type_index[NodeType(node_type)]
        except ValueError:
            return []
        return list(bucket)

    def get_nodes_by_type(self, node_type: NodeType | str) -> list[Node]:
        return [self._nodes[i] for i in self.node_ids_of_type(node_type)]

    def find_clusters(self) -> dict[str, set[str]]:
        """Connected components over the undirected adjacency union.

        Iterative DFS keyed by the first node reached in insertion order.
        O(V + E).
        """
        clusters: dict[str, set[str]] = {}
        visited: set[str] = set()
        for seed in self._nodes:
            if seed in visited:
                continue
            cluster: set[str] = set()
            stack = [seed]
            visited.add(seed)
            while stack:
                current = stack.pop()
                cluster.add(current)
                for neighbor in self.neighbor_ids(current, Direction.BOTH):
                    if neighbor not in visited:
                        visited.add(neighbor)
                        stack.append(neighbor)
            clusters[seed] = cluster
        return clusters

    def iter_nodes(self) -> Iterator[Node]:
        return iter(self._nodes.values())

    def iter_edges(self) -> Iterator[Edge]:
        return iter(self._edges.values())

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def query(self, params: GraphQuery | Mapping[str, Any] | None = None) -> GraphQueryResult:
        """Filter, expand, and limit nodes; see :class:`QueryEngine`."""
        return self._query_engine.query(params)

    def find_path(self, from_id: str, to_id: str) -> list[str] | None:
        """Shortest forward path; see :class:`PathFinder`."""
        return self._path_finder.find_path(from_id, to_id)

    def get_stats(self) -> GraphStats:
        total_degree = sum(self.get_centrality_score(node_id) for node_id in self._nodes)
        return GraphStats(
            node_count=len(self._nodes),
            edge_count=len(self._edges),
            node_types={node_type: len(ids) for node_type, ids in self._type_index.items()},
            avg_degree=total_degree / len(self._nodes) if self._nodes else 0.0,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Drop every node and edge; type buckets are re-created empty."""
        self._nodes.clear()
        self._edges.clear()
        self._edge_ids.clear()
        self._adjacency.clear()
        self._reverse.clear()
        self._incident.clear()
        self._init_type_index()
        self.plugins.dispatch("post_clear")

    def to_json(self, *, indent: int | None = 2) -> str:
        from infragraph.infrastructure.serializer import to_json

        return to_json(self, indent=indent)

    @classmethod
    def from_json(cls, text: str | bytes, *, plugins: PluginManager | None = None) -> GraphStore:
        from infragraph.infrastructure.serializer import from_json

        return from_json(text, plugins=plugins)

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------

    def check_invariants(self) -> None:
        """Assert that every index mirrors the node and edge sets.

        A failure here is a programming error, not a recoverable state.
        O(V + E).
        """
        node_ids = set(self._nodes)

        bucketed: set[str] = set()
        for node_type, bucket in self._type_index.items():
            for node_id in bucket:
                assert node_id in self._nodes, f"type index holds unknown node {node_id}"
                assert self._nodes[node_id].type == node_type, f"{node_id} in wrong bucket"
                assert node_id not in bucketed, f"{node_id} in more than one bucket"
                bucketed.add(node_id)
        assert bucketed == node_ids, "type index does not cover every node"

        expected_out: dict[str, Counter[str]] = {node_id: Counter() for node_id in node_ids}
        expected_in: dict[str, Counter[str]] = {node_id: Counter() for node_id in node_ids}
        for key, edge in self._edges.items():
            assert edge.key == key, f"edge {edge.id} stored under {key}"
            assert edge.from_id in node_ids, f"edge {edge.id} has dangling source"
            assert edge.to_id in node_ids, f"edge {edge.id} has dangling target"
            assert key in self._incident[edge.from_id], f"edge {edge.id} missing from incidence"
            assert key in self._incident[edge.to_id], f"edge {edge.id} missing from incidence"
            expected_out[edge.from_id][edge.to_id] += 1
            expected_in[edge.to_id][edge.from_id] += 1
            if edge.metadata.bidirectional:
                expected_out[edge.to_id][edge.from_id] += 1
                expected_in[edge.from_id][edge.to_id] += 1

        assert set(self._adjacency) == node_ids, "adjacency keys differ from node ids"
        assert set(self._reverse) == node_ids, "reverse adjacency keys differ from node ids"
        for node_id in node_ids:
            assert dict(expected_out[node_id]) == self._adjacency[node_id], (
                f"adjacency of {node_id} does not mirror edges"
            )
            assert dict(expected_in[node_id]) == self._reverse[node_id], (
                f"reverse adjacency of {node_id} does not mirror edges"
            )
        for edge_id, sharing in self._edge_ids.items():
            assert sharing, f"empty string id bucket for {edge_id}"
            for key in sharing:
                assert key in self._edges, f"string id index points at missing edge {key}"
                assert str(key) == edge_id, f"edge {key} filed under string id {edge_id}"
        assert sum(map(len, self._edge_ids.values())) == len(self._edges), (
            "string id index does not cover every edge"
        )
