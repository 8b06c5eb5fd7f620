"""infragraph -- in-memory knowledge graph of infrastructure entities.

Library entry points::

    from infragraph import AnalyticsEngine, GraphStore

    store = GraphStore()
    store.add_node({"id": "svc-api", "type": "Service", "properties": {"name": "api"}})
    store.add_node({"id": "db-main", "type": "Database"})
    store.add_edge({"from": "svc-api", "to": "db-main", "type": "DEPENDS_ON"})
    AnalyticsEngine(store).compute_analytics()
"""

from __future__ import annotations

__version__ = "0.1.0"

from infragraph.domain.errors import GraphError, UnknownNodeError  # noqa: E402
from infragraph.domain.models import (  # noqa: E402
    Edge,
    EdgeKey,
    EdgeSpec,
    GraphQuery,
    GraphQueryResult,
    GraphStats,
    Node,
    NodeSpec,
    NodeUpdate,
)
from infragraph.domain.patterns import InvalidPatternError  # noqa: E402
from infragraph.domain.types import Direction, EdgeType, NodeType  # noqa: E402
from infragraph.infrastructure.graph.store import GraphStore  # noqa: E402
from infragraph.services.analytics import AnalyticsEngine  # noqa: E402

__all__ = [
    "AnalyticsEngine",
    "Direction",
    "Edge",
    "EdgeKey",
    "EdgeSpec",
    "EdgeType",
    "GraphError",
    "GraphQuery",
    "GraphQueryResult",
    "GraphStats",
    "GraphStore",
    "InvalidPatternError",
    "Node",
    "NodeSpec",
    "NodeType",
    "NodeUpdate",
    "UnknownNodeError",
    "__version__",
]
