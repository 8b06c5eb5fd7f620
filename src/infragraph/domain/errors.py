"""Graph-level exceptions.

Lookup misses are never exceptions; these cover contract violations
that callers must see at the point of use.
"""

from __future__ import annotations


class GraphError(ValueError):
    """Base class for graph contract violations."""


class UnknownNodeError(GraphError):
    """An edge referenced a node id that is not in the store."""

    def __init__(self, node_id: str, role: str) -> None:
        super().__init__(f"Edge {role} node '{node_id}' does not exist")
        self.node_id = node_id
        self.role = role


class GraphFileNotFoundError(GraphError, FileNotFoundError):
    """The configured graph file does not exist."""

    def __init__(self, path: object) -> None:
        super().__init__(f"Graph file not found: {path}")
        self.path = path
