"""Workspace -- the graph file a CLI invocation operates on.

The store is loaded lazily on first access, so ``--help`` and commands
that fail argument parsing never touch the filesystem.  Loading replays
the file through the store's mutation API (see ``serializer``); plugins
discovered from entry points are registered before that replay and see
every insert.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from infragraph.config.logging import bind_graph
from infragraph.domain.errors import GraphFileNotFoundError
from infragraph.infrastructure.serializer import from_json
from infragraph.plugins.manager import PluginManager

if TYPE_CHECKING:
    from infragraph.config.settings import InfragraphSettings
    from infragraph.infrastructure.graph.store import GraphStore

logger = logging.getLogger(__name__)


class Workspace:
    """Settings-bound access to one persisted graph."""

    def __init__(self, settings: InfragraphSettings, *, discover_plugins: bool = True) -> None:
        self.settings = settings
        self.plugins = PluginManager()
        if discover_plugins:
            loaded = self.plugins.discover_and_load()
            if loaded:
                logger.debug("Loaded plugins: %s", ", ".join(loaded))
        self._store: GraphStore | None = None

    @property
    def path(self) -> Path:
        return self.settings.graph_path

    @property
    def store(self) -> GraphStore:
        """The graph (loaded from :attr:`path` on first access).

        Raises:
            GraphFileNotFoundError: The graph file does not exist.
            pydantic.ValidationError: The file is not a valid graph document.
            UnknownNodeError: An edge in the file references a missing node.
        """
        if self._store is None:
            bind_graph(self.path)
            if not self.path.is_file():
                raise GraphFileNotFoundError(self.path)
            self._store = from_json(
                self.path.read_bytes(),
                plugins=self.plugins,
                max_pattern_length=self.settings.query.max_pattern_length,
            )
        return self._store
