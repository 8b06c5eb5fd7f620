"""In-memory graph store and its query and path engines."""

from infragraph.infrastructure.graph.store import GraphStore

__all__ = ["GraphStore"]
