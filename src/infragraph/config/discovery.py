"""Locating ``infragraph.toml``.

Lookup order, first hit wins:

1. ``INFRAGRAPH_CONFIG`` names the file outright.  When it names nothing,
   no config is loaded at all; the walk-up is not tried.
2. With an explicit project root, walk up from that root.
3. Otherwise walk up from the directory holding the ``--graph`` file
   (when one was given), then from the CWD.  A graph kept next to its
   own ``infragraph.toml`` picks that config up from anywhere.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

CONFIG_FILENAME = "infragraph.toml"
CONFIG_ENV_VAR = "INFRAGRAPH_CONFIG"


def _walk_up(directory: Path) -> Iterator[Path]:
    current = directory.resolve()
    yield current
    yield from current.parents


def search_dirs(
    start: Path | None = None, *, graph_path: str | Path | None = None
) -> list[Path]:
    """Directories searched for the config file, nearest first, without repeats."""
    if start is not None:
        origins = [start]
    elif graph_path is not None:
        origins = [Path(graph_path).expanduser().parent, Path.cwd()]
    else:
        origins = [Path.cwd()]

    seen: dict[Path, None] = {}
    for origin in origins:
        for directory in _walk_up(origin):
            seen.setdefault(directory, None)
    return list(seen)


def find_config(
    start: Path | None = None, *, graph_path: str | Path | None = None
) -> Path | None:
    """Return the config file to load, or None.

    Args:
        start: Project root to walk up from; overrides *graph_path*.
        graph_path: The ``--graph`` file; its directory is searched
            before the CWD when *start* is not given.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        p = Path(env_path)
        return p if p.is_file() else None

    for directory in search_dirs(start, graph_path=graph_path):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None
