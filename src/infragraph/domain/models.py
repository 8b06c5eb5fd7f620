"""Pydantic models for graph entities, mutation specs, and query contracts.

Field names are snake_case in Python and camelCase on the wire
(``createdAt``, ``bidirectional``), with ``from``/``to`` as the edge
endpoint aliases.  Either form is accepted on input.

Entities are frozen: every mutation produces a new model instance via
``model_copy``, so a Node handed to a caller never changes underneath it.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any, NamedTuple

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from infragraph.domain.properties import Properties
from infragraph.domain.types import EdgeType, NodeType


def _ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC; normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UtcDatetime = Annotated[datetime, AfterValidator(_ensure_utc)]
Confidence = Annotated[float, Field(ge=0.0, le=1.0)]

_FROZEN = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime (default store clock)."""
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Stored entities
# ---------------------------------------------------------------------------


class NodeMetadata(BaseModel):
    """Bookkeeping stamped onto every node."""

    model_config = _FROZEN

    created_at: UtcDatetime
    updated_at: UtcDatetime
    created_by: str = "system"
    source: str | None = None
    confidence: Confidence | None = None


class Node(BaseModel):
    """A typed vertex with a free-form property bag."""

    model_config = _FROZEN

    id: str
    type: NodeType
    properties: Properties = Field(default_factory=dict)
    metadata: NodeMetadata

    @property
    def label(self) -> str:
        """Human-facing name: the ``name`` property, else the id."""
        name = self.properties.get("name")
        return str(name) if name is not None else self.id


class EdgeKey(NamedTuple):
    """Structured edge identity: the ordered ``(from, type, to)`` triple."""

    from_id: str
    type: EdgeType
    to_id: str

    def __str__(self) -> str:
        return f"{self.from_id}-{self.type}-{self.to_id}"


class EdgeMetadata(BaseModel):
    """Bookkeeping stamped onto every edge."""

    model_config = _FROZEN

    created_at: UtcDatetime
    strength: float = 1.0
    bidirectional: bool = False


class Edge(BaseModel):
    """A typed directed connection; ``bidirectional`` mirrors adjacency."""

    model_config = _FROZEN

    id: str
    type: EdgeType
    from_id: str = Field(alias="from")
    to_id: str = Field(alias="to")
    properties: Properties | None = None
    metadata: EdgeMetadata

    @property
    def key(self) -> EdgeKey:
        return EdgeKey(self.from_id, self.type, self.to_id)


# ---------------------------------------------------------------------------
# Mutation specs (what callers hand to the store)
# ---------------------------------------------------------------------------


class NodeMetadataSpec(BaseModel):
    """Partial node metadata; unset fields fall back to store defaults."""

    model_config = _FROZEN

    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None
    created_by: str | None = None
    source: str | None = None
    confidence: Confidence | None = None


class NodeSpec(BaseModel):
    """Input to ``GraphStore.add_node``."""

    model_config = _FROZEN

    id: str = Field(min_length=1)
    type: NodeType
    properties: Properties = Field(default_factory=dict)
    metadata: NodeMetadataSpec | None = None


class NodeUpdate(BaseModel):
    """Input to ``GraphStore.update_node``.

    ``type`` and ``properties`` replace the stored values when given;
    ``metadata`` is merged field by field.
    """

    model_config = _FROZEN

    type: NodeType | None = None
    properties: Properties | None = None
    metadata: NodeMetadataSpec | None = None


class EdgeMetadataSpec(BaseModel):
    """Partial edge metadata; unset fields fall back to store defaults."""

    model_config = _FROZEN

    created_at: UtcDatetime | None = None
    strength: float | None = None
    bidirectional: bool | None = None


class EdgeSpec(BaseModel):
    """Input to ``GraphStore.add_edge``.  Any ``id`` on input is ignored."""

    model_config = _FROZEN

    type: EdgeType
    from_id: str = Field(alias="from", min_length=1)
    to_id: str = Field(alias="to", min_length=1)
    properties: Properties | None = None
    metadata: EdgeMetadataSpec | None = None

    @property
    def key(self) -> EdgeKey:
        return EdgeKey(self.from_id, self.type, self.to_id)


# ---------------------------------------------------------------------------
# Query contracts
# ---------------------------------------------------------------------------


class TimeRange(BaseModel):
    """Inclusive creation-time window."""

    model_config = _FROZEN

    start: UtcDatetime
    end: UtcDatetime


class GraphQuery(BaseModel):
    """Filter and expansion parameters for ``GraphStore.query``.

    ``properties`` values are matched by equality, or by regex search
    when given as ``{"$regex": pattern}``.
    """

    model_config = _FROZEN

    node_type: NodeType | None = None
    edge_type: EdgeType | None = None
    properties: dict[str, Any] | None = None
    depth: int = Field(default=0, ge=0)
    limit: int | None = Field(default=None, ge=0)
    min_confidence: Confidence | None = None
    time_range: TimeRange | None = None


class QueryMeta(BaseModel):
    """Graph totals and timing for a query."""

    model_config = _FROZEN

    total_nodes: int
    total_edges: int
    query_time_ms: float


class GraphQueryResult(BaseModel):
    """Nodes matched by a query and the edges among them."""

    model_config = _FROZEN

    nodes: list[Node]
    edges: list[Edge]
    meta: QueryMeta


class GraphStats(BaseModel):
    """Summary counts for a store."""

    model_config = _FROZEN

    node_count: int
    edge_count: int
    node_types: dict[NodeType, int]
    avg_degree: float
