"""Unified settings -- CLI flags, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs  -- CLI flags passed by Click
  2. Env vars     -- ``INFRAGRAPH_*`` prefix, ``__`` for nesting
  3. TOML file    -- ``infragraph.toml`` found by :func:`find_config`
  4. Code defaults -- baked into the section models

Uses Pydantic Settings v2 with a custom :class:`TomlSettingsSource`.  The
file is located by :mod:`infragraph.config.discovery`, which also looks
next to the ``--graph`` file.
"""

from __future__ import annotations

import threading
import tomllib
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from infragraph.config.discovery import find_config
from infragraph.config.models import AnalyticsConfig, GraphConfig, QueryConfig


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from an ``infragraph.toml`` file discovered via walk-up."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            raw = toml_path.read_text(encoding="utf-8")
            try:
                self._data = tomllib.loads(raw)
            except tomllib.TOMLDecodeError as exc:
                import click

                msg = f"Invalid TOML in {toml_path}: {exc}"
                raise click.ClickException(msg) from exc

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Return ``(value, field_name, value_is_complex)``."""
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        """Return the full TOML data dict for Pydantic to merge."""
        return self._data


# Thread-local storage for TOML path during construction.
_tls = threading.local()


class InfragraphSettings(BaseSettings):
    """Unified settings for the infragraph CLI.

    Merges CLI flags, environment variables, TOML config sections,
    and code-baked defaults into a single frozen object.  Stored on the
    :class:`~infragraph.commands._context.AppContext` at the CLI root.

    Attributes:
        project_root: Directory relative paths resolve against (parent of
            ``infragraph.toml``, or CWD if no config found).
        config_path: The TOML file that was loaded, if any.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "INFRAGRAPH_",
        "env_nested_delimiter": "__",
    }

    # --- Resolved path (not in TOML -- derived from config location) ---
    project_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    # --- CLI flags ---
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False

    # --- TOML sections ---
    graph: GraphConfig = Field(default_factory=GraphConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert TOML source between env vars and defaults."""
        toml_path = getattr(_tls, "toml_path", None)
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, toml_path),
        )

    @property
    def graph_path(self) -> Path:
        """``[graph] path`` resolved against :attr:`project_root`."""
        path = Path(self.graph.path).expanduser()
        return path if path.is_absolute() else self.project_root / path

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        project_root: Path | None = None,
        graph_path: str | None = None,
        **cli_flags: Any,
    ) -> InfragraphSettings:
        """Construct settings from CLI invocation.

        Discovers ``infragraph.toml`` via walk-up from *project_root*,
        else from the ``--graph`` file and the CWD (or uses an explicit
        *config_path*), resolves *project_root* from the config file's
        parent directory, and merges CLI flags as highest-priority
        overrides.  *graph_path* (``--graph``) replaces ``[graph] path``
        and is taken relative to the CWD, like any command-line path.
        """
        toml_path: Path | None = None
        if config_path:
            p = Path(config_path)
            if p.is_file():
                toml_path = p
        else:
            toml_path = find_config(project_root, graph_path=graph_path)

        resolved_root = project_root
        if resolved_root is None:
            resolved_root = toml_path.parent if toml_path else Path.cwd()

        overrides: dict[str, Any] = dict(cli_flags)
        if graph_path:
            overrides["graph"] = GraphConfig(path=str(Path(graph_path).resolve()))

        _tls.toml_path = toml_path
        try:
            return cls(
                project_root=resolved_root,
                config_path=toml_path,
                **overrides,
            )
        finally:
            _tls.toml_path = None
