"""Built-in plugin: drop cached analytics whenever the graph changes.

Registered only when ``analytics.invalidate_on_write`` is enabled.  By
default cached reports stay stale until their TTL expires.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from infragraph.plugins.hookspecs import hookimpl

if TYPE_CHECKING:
    from infragraph.domain.models import Edge, Node
    from infragraph.infrastructure.cache import TTLCache

logger = logging.getLogger(__name__)


class CacheInvalidationPlugin:
    """Clears a TTLCache on every mutation hook."""

    def __init__(self, cache: TTLCache) -> None:
        self._cache = cache

    def _invalidate(self, reason: str) -> None:
        if len(self._cache):
            logger.debug("Invalidating analytics cache after %s", reason)
        self._cache.invalidate()

    @hookimpl
    def post_node_add(self, node: Node, replaced: bool) -> None:
        self._invalidate("node add")

    @hookimpl
    def post_node_update(self, node: Node, fields_changed: list[str]) -> None:
        self._invalidate("node update")

    @hookimpl
    def post_node_delete(self, node_id: str, edges_removed: list[str]) -> None:
        self._invalidate("node delete")

    @hookimpl
    def post_edge_add(self, edge: Edge, replaced: bool) -> None:
        self._invalidate("edge add")

    @hookimpl
    def post_edge_delete(self, edge_id: str) -> None:
        self._invalidate("edge delete")

    @hookimpl
    def post_clear(self) -> None:
        self._invalidate("clear")
