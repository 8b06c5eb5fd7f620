"""Pluggy hook specifications for graph mutation events.

Hooks fire synchronously after the store's indices are updated, so an
implementation always observes a consistent graph.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from infragraph.domain.models import Edge, Node

hookspec = pluggy.HookspecMarker("infragraph")
hookimpl = pluggy.HookimplMarker("infragraph")


class InfragraphHookSpec:
    """Hook specifications for the infragraph plugin system."""

    @hookspec
    def post_node_add(self, node: Node, replaced: bool) -> None:
        """Called after a node is added or upserted."""

    @hookspec
    def post_node_update(self, node: Node, fields_changed: list[str]) -> None:
        """Called after ``update_node`` changes a node."""

    @hookspec
    def post_node_delete(self, node_id: str, edges_removed: list[str]) -> None:
        """Called after a node and its incident edges are deleted."""

    @hookspec
    def post_edge_add(self, edge: Edge, replaced: bool) -> None:
        """Called after an edge is added or upserted."""

    @hookspec
    def post_edge_delete(self, edge_id: str) -> None:
        """Called after a single edge is deleted."""

    @hookspec
    def post_clear(self) -> None:
        """Called after the store is cleared."""
