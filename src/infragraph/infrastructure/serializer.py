"""Serializer -- JSON persistence format for a GraphStore.

Wire shape::

    {"nodes": [Node, ...], "edges": [Edge, ...]}

camelCase keys (``createdAt``, ``createdBy``), ``from``/``to`` edge
endpoints, ISO-8601 timestamps.  Loading replays every node and then every
edge through the public mutation API, so the indices are rebuilt exactly
as live inserts would build them.  Wire edge ids are ignored and
recomputed from ``(from, type, to)``.
"""

from __future__ import annotations

import json
import logging

from pydantic import BaseModel, Field

from infragraph.domain.models import EdgeSpec, NodeSpec
from infragraph.domain.patterns import DEFAULT_MAX_PATTERN_LENGTH
from infragraph.infrastructure.graph.store import GraphStore
from infragraph.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


class GraphDocument(BaseModel):
    """Validated form of a persisted graph."""

    nodes: list[NodeSpec] = Field(default_factory=list)
    edges: list[EdgeSpec] = Field(default_factory=list)


def to_document(store: GraphStore) -> dict[str, list[dict[str, object]]]:
    """JSON-ready dict of *store* in insertion order."""
    return {
        "nodes": [node.model_dump(mode="json", by_alias=True) for node in store.iter_nodes()],
        "edges": [edge.model_dump(mode="json", by_alias=True) for edge in store.iter_edges()],
    }


def to_json(store: GraphStore, *, indent: int | None = 2) -> str:
    return json.dumps(to_document(store), indent=indent)


def from_json(
    text: str | bytes,
    *,
    plugins: PluginManager | None = None,
    max_pattern_length: int = DEFAULT_MAX_PATTERN_LENGTH,
) -> GraphStore:
    """Build a new GraphStore from serialized *text*.

    Raises:
        pydantic.ValidationError: The document is not valid JSON or does
            not match the wire shape.
        UnknownNodeError: An edge references a node the document lacks.
    """
    document = GraphDocument.model_validate_json(text)
    store = GraphStore(plugins=plugins, max_pattern_length=max_pattern_length)
    for node in document.nodes:
        store.add_node(node)
    for edge in document.edges:
        store.add_edge(edge)
    logger.debug("Loaded graph: %d nodes, %d edges", store.node_count, store.edge_count)
    return store
