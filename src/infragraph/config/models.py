"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, infragraph.toml only contains
overrides.  An empty file (or none at all) is a valid configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from infragraph.domain.patterns import DEFAULT_MAX_PATTERN_LENGTH

# --- infragraph.toml sections ---


class GraphConfig(BaseModel):
    """[graph] section."""

    model_config = {"frozen": True}

    path: str = "graph.json"


class AnalyticsConfig(BaseModel):
    """[analytics] section.

    Thresholds for the heuristic detectors.  The defaults reproduce the
    documented behavior; changing them changes what counts as a spike,
    an over-connected node, or a core node.
    """

    model_config = {"frozen": True}

    cache_ttl_seconds: float = Field(default=300.0, ge=0)
    invalidate_on_write: bool = False
    growth_window_days: int = Field(default=7, ge=1)
    spike_factor: float = Field(default=2.0, gt=0)
    over_connected_factor: float = Field(default=3.0, gt=0)
    core_factor: float = Field(default=2.0, gt=0)
    rare_pattern_share: float = Field(default=0.05, ge=0, le=1)
    forecast_weeks: int = Field(default=4, ge=1)
    forecast_min_nodes: int = Field(default=10, ge=0)
    max_alternative_paths: int = Field(default=3, ge=0)
    key_connections: int = Field(default=5, ge=0)


class QueryConfig(BaseModel):
    """[query] section."""

    model_config = {"frozen": True}

    max_pattern_length: int = Field(default=DEFAULT_MAX_PATTERN_LENGTH, ge=1)
