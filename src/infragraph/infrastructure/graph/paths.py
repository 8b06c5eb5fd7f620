"""PathFinder -- shortest forward path between two nodes."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from infragraph.domain.types import Direction

if TYPE_CHECKING:
    from infragraph.infrastructure.graph.store import GraphStore


class PathFinder:
    """BFS over outgoing adjacency only; reverse edges are never followed."""

    def __init__(self, store: GraphStore) -> None:
        self._store = store

    def find_path(self, from_id: str, to_id: str) -> list[str] | None:
        """Return the first-discovered minimum-hop path, or None.

        Ties between equal-length paths go to the neighbor linked first.
        ``[from_id]`` when both ends are the same existing node.  O(V + E).
        """
        if from_id not in self._store:
            return None
        if from_id == to_id:
            return [from_id]

        parents: dict[str, str | None] = {from_id: None}
        queue = deque([from_id])
        while queue:
            current = queue.popleft()
            for neighbor in self._store.neighbor_ids(current, Direction.OUT):
                if neighbor in parents:
                    continue
                parents[neighbor] = current
                if neighbor == to_id:
                    return self._unwind(parents, neighbor)
                queue.append(neighbor)
        return None

    @staticmethod
    def _unwind(parents: dict[str, str | None], end: str) -> list[str]:
        path = [end]
        step = parents[end]
        while step is not None:
            path.append(step)
            step = parents[step]
        path.reverse()
        return path
