"""QueryEngine -- filter, expand, and limit nodes; derive the edges among them.

The stage order is part of the contract: ``limit`` truncates the node list
before edges are derived, so the returned edges only ever connect nodes
that survived the limit.
"""

from __future__ import annotations

import json
import time
from collections.abc import Mapping
from re import Pattern
from typing import TYPE_CHECKING, Any

from infragraph.domain.models import GraphQuery, GraphQueryResult, Node, QueryMeta
from infragraph.domain.patterns import DEFAULT_MAX_PATTERN_LENGTH, compile_pattern
from infragraph.domain.types import Direction

if TYPE_CHECKING:
    from infragraph.infrastructure.graph.store import GraphStore

REGEX_KEY = "$regex"


def _is_regex_filter(value: Any) -> bool:
    return isinstance(value, Mapping) and REGEX_KEY in value


def stringify(value: Any) -> str:
    """Render a property value as the text a ``$regex`` filter searches.

    Strings pass through; booleans and null use their JSON spelling;
    arrays and maps are compact JSON.
    """
    match value:
        case str():
            return value
        case bool() | None:
            return json.dumps(value)
        case list() | dict():
            return json.dumps(value, separators=(",", ":"))
        case _:
            return str(value)


def same_value(left: Any, right: Any) -> bool:
    """Equality that never treats ``True`` as ``1`` (or ``False`` as ``0``)."""
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, list) and isinstance(right, list | tuple):
        return len(left) == len(right) and all(same_value(a, b) for a, b in zip(left, right))
    if isinstance(left, dict) and isinstance(right, Mapping):
        return left.keys() == right.keys() and all(same_value(v, right[k]) for k, v in left.items())
    return bool(left == right)


def _matches(node: Node, params: GraphQuery, patterns: Mapping[str, Pattern[str]]) -> bool:
    if params.properties and not _matches_properties(node, params.properties, patterns):
        return False
    if params.min_confidence is not None:
        confidence = node.metadata.confidence
        if (1.0 if confidence is None else confidence) < params.min_confidence:
            return False
    if params.time_range is not None:
        created = node.metadata.created_at
        if not params.time_range.start <= created <= params.time_range.end:
            return False
    return True


def _matches_properties(
    node: Node, wanted: Mapping[str, Any], patterns: Mapping[str, Pattern[str]]
) -> bool:
    for key, expected in wanted.items():
        if key not in node.properties:
            return False
        actual = node.properties[key]
        if key in patterns:
            if patterns[key].search(stringify(actual)) is None:
                return False
        elif not same_value(actual, expected):
            return False
    return True


class QueryEngine:
    """Runs GraphQuery requests against a GraphStore's indices."""

    def __init__(
        self,
        store: GraphStore,
        *,
        max_pattern_length: int = DEFAULT_MAX_PATTERN_LENGTH,
    ) -> None:
        self._store = store
        self.max_pattern_length = max_pattern_length

    def query(self, params: GraphQuery | Mapping[str, Any] | None = None) -> GraphQueryResult:
        """Evaluate *params* in five stages: candidates, filters, depth, limit, edges.

        Raises:
            InvalidPatternError: A ``$regex`` filter is malformed or unsafe.
                Every pattern is compiled before any node is looked at,
                so a bad one fails the query even when nothing would match.
        """
        started = time.perf_counter()
        if params is None:
            params = GraphQuery()
        elif not isinstance(params, GraphQuery):
            params = GraphQuery.model_validate(params)

        patterns = {
            key: compile_pattern(str(value[REGEX_KEY]), max_length=self.max_pattern_length)
            for key, value in (params.properties or {}).items()
            if _is_regex_filter(value)
        }

        store = self._store
        if params.node_type is not None:
            candidates = store.get_nodes_by_type(params.node_type)
        else:
            candidates = list(store.iter_nodes())

        nodes = [node for node in candidates if _matches(node, params, patterns)]

        if params.depth > 0 and nodes:
            expanded = self._expand([node.id for node in nodes], params.depth)
            nodes = [node for node_id in expanded if (node := store.get_node(node_id)) is not None]

        if params.limit is not None:
            nodes = nodes[: params.limit]

        node_ids = {node.id for node in nodes}
        edges = [
            edge
            for edge in store.iter_edges()
            if edge.from_id in node_ids
            and edge.to_id in node_ids
            and (params.edge_type is None or edge.type == params.edge_type)
        ]

        return GraphQueryResult(
            nodes=nodes,
            edges=edges,
            meta=QueryMeta(
                total_nodes=store.node_count,
                total_edges=store.edge_count,
                query_time_ms=(time.perf_counter() - started) * 1000,
            ),
        )

    def _expand(self, seeds: list[str], depth: int) -> list[str]:
        """BFS over the undirected adjacency union, at most *depth* hops.

        Returns seeds first, then newly reached ids in discovery order.
        O(V + E) in the reached subgraph.
        """
        visited = dict.fromkeys(seeds)
        frontier = list(visited)
        for _ in range(depth):
            reached: list[str] = []
            for node_id in frontier:
                for neighbor in self._store.neighbor_ids(node_id, Direction.BOTH):
                    if neighbor not in visited:
                        visited[neighbor] = None
                        reached.append(neighbor)
            if not reached:
                break
            frontier = reached
        return list(visited)
