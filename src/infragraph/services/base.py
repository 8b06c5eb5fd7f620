"""BaseService -- shared foundation for the service layer.

Every service receives a :class:`Workspace` at construction time and
loads the graph through it.  Load failures become ``ok=False`` results
rather than exceptions, so commands only ever deal with ServiceResult.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from infragraph.domain.errors import GraphError, GraphFileNotFoundError
from infragraph.services.result import ServiceResult

if TYPE_CHECKING:
    from infragraph.infrastructure.graph.store import GraphStore
    from infragraph.infrastructure.workspace import Workspace

logger = logging.getLogger(__name__)


class BaseService:
    """Base for service-layer classes.

    Usage::

        class GraphService(BaseService):
            def stats(self) -> ServiceResult:
                loaded = self._load("stats")
                if isinstance(loaded, ServiceResult):
                    return loaded
                ...
    """

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace

    def _load(self, op: str) -> GraphStore | ServiceResult:
        """Return the workspace graph, or a failed result explaining why not."""
        try:
            return self._workspace.store
        except GraphFileNotFoundError as exc:
            return ServiceResult.failure(op, "GRAPH_NOT_FOUND", str(exc), path=str(exc.path))
        except (ValidationError, GraphError) as exc:
            logger.debug("Graph file %s failed to load", self._workspace.path, exc_info=True)
            return ServiceResult.failure(
                op,
                "INVALID_GRAPH",
                f"Could not load graph from {self._workspace.path}: {exc}",
                path=str(self._workspace.path),
            )
