"""GraphService -- traversal, query, and analytics operations for the CLI.

Each method loads the workspace graph, runs one store or analytics
operation, and packs the outcome into a ServiceResult.  Payloads use the
same camelCase wire keys as the persisted graph.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from infragraph.domain.models import GraphQuery
from infragraph.domain.patterns import InvalidPatternError
from infragraph.domain.types import Direction, EdgeType, NodeType
from infragraph.services.analytics import AnalyticsEngine
from infragraph.services.base import BaseService
from infragraph.services.result import ServiceResult
from infragraph.services.telemetry import trace_span, traced

if TYPE_CHECKING:
    from pydantic import BaseModel

    from infragraph.infrastructure.graph.store import GraphStore
    from infragraph.infrastructure.workspace import Workspace


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def _not_found(op: str, node_id: str) -> ServiceResult:
    return ServiceResult.failure(op, "NOT_FOUND", f"Node '{node_id}' not found", id=node_id)


class GraphService(BaseService):
    """Handles graph reads and analysis."""

    def __init__(self, workspace: Workspace) -> None:
        super().__init__(workspace)
        self._engine: AnalyticsEngine | None = None

    def _analytics(self, store: GraphStore) -> AnalyticsEngine:
        if self._engine is None:
            self._engine = AnalyticsEngine(store, self._workspace.settings.analytics)
        return self._engine

    # ------------------------------------------------------------------
    # Graph reads
    # ------------------------------------------------------------------

    @traced
    def stats(self) -> ServiceResult:
        store = self._load("stats")
        if isinstance(store, ServiceResult):
            return store
        stats = store.get_stats()
        return ServiceResult(ok=True, op="stats", data=_dump(stats))

    @traced
    def query(
        self,
        *,
        node_type: NodeType | None = None,
        edge_type: EdgeType | None = None,
        properties: dict[str, Any] | None = None,
        depth: int = 0,
        limit: int | None = None,
        min_confidence: float | None = None,
    ) -> ServiceResult:
        """Run a filtered, optionally expanded node query."""
        store = self._load("query")
        if isinstance(store, ServiceResult):
            return store

        params = GraphQuery(
            node_type=node_type,
            edge_type=edge_type,
            properties=properties,
            depth=depth,
            limit=limit,
            min_confidence=min_confidence,
        )
        try:
            result = store.query(params)
        except InvalidPatternError as exc:
            return ServiceResult.failure(
                "query", "INVALID_PATTERN", str(exc), pattern=exc.pattern, reason=exc.reason
            )

        return ServiceResult(
            ok=True,
            op="query",
            data={
                "count": len(result.nodes),
                "nodes": [_dump(node) for node in result.nodes],
                "edges": [_dump(edge) for edge in result.edges],
            },
            meta=result.meta.model_dump(),
        )

    @traced
    def neighbors(self, node_id: str, *, direction: Direction = Direction.BOTH) -> ServiceResult:
        store = self._load("neighbors")
        if isinstance(store, ServiceResult):
            return store
        if store.get_node(node_id) is None:
            return _not_found("neighbors", node_id)

        nodes = store.get_neighbors(node_id, direction)
        return ServiceResult(
            ok=True,
            op="neighbors",
            data={
                "id": node_id,
                "direction": str(direction),
                "centrality": store.get_centrality_score(node_id),
                "count": len(nodes),
                "items": [_dump(node) for node in nodes],
            },
        )

    @traced
    def path(self, from_id: str, to_id: str) -> ServiceResult:
        """Shortest forward path from *from_id* to *to_id*."""
        store = self._load("path")
        if isinstance(store, ServiceResult):
            return store
        for node_id in (from_id, to_id):
            if store.get_node(node_id) is None:
                return _not_found("path", node_id)

        found = store.find_path(from_id, to_id)
        if found is None:
            return ServiceResult.failure(
                "path",
                "NO_PATH",
                f"No forward path from '{from_id}' to '{to_id}'",
                source=from_id,
                target=to_id,
            )
        return ServiceResult(
            ok=True,
            op="path",
            data={"source": from_id, "target": to_id, "hops": len(found) - 1, "path": found},
        )

    @traced
    def clusters(self) -> ServiceResult:
        """Connected components, largest first."""
        store = self._load("clusters")
        if isinstance(store, ServiceResult):
            return store
        with trace_span("find_clusters"):
            found = store.find_clusters()

        items = [
            {"seed": seed, "size": len(members), "nodes": sorted(members)}
            for seed, members in found.items()
        ]
        items.sort(key=lambda item: item["size"], reverse=True)
        return ServiceResult(ok=True, op="clusters", data={"count": len(items), "items": items})

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    @traced
    def report(self, *, fresh: bool = False) -> ServiceResult:
        """Full analytics report; *fresh* bypasses the cache."""
        store = self._load("report")
        if isinstance(store, ServiceResult):
            return store
        analytics = self._analytics(store).compute_analytics(use_cache=not fresh)
        return ServiceResult(ok=True, op="report", data=_dump(analytics))

    @traced
    def influence(self, node_id: str) -> ServiceResult:
        store = self._load("influence")
        if isinstance(store, ServiceResult):
            return store
        analysis = self._analytics(store).analyze_influence(node_id)
        if analysis is None:
            return _not_found("influence", node_id)
        return ServiceResult(ok=True, op="influence", data=_dump(analysis))

    @traced
    def analyze_path(self, from_id: str, to_id: str) -> ServiceResult:
        """Path analysis.  A missing path is a successful, empty analysis."""
        store = self._load("analyze_path")
        if isinstance(store, ServiceResult):
            return store
        for node_id in (from_id, to_id):
            if store.get_node(node_id) is None:
                return _not_found("analyze_path", node_id)

        analysis = self._analytics(store).analyze_path(from_id, to_id)
        warnings: list[str] = []
        if not analysis.shortest_path:
            warnings.append(f"No forward path from '{from_id}' to '{to_id}'")
        return ServiceResult(ok=True, op="analyze_path", data=_dump(analysis), warnings=warnings)
