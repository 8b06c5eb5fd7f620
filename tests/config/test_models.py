"""Tests for config models -- defaults and validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from infragraph.config.models import AnalyticsConfig, GraphConfig, QueryConfig


class TestDefaults:
    def test_graph(self) -> None:
        assert GraphConfig().path == "graph.json"

    def test_analytics_documented_thresholds(self) -> None:
        cfg = AnalyticsConfig()
        assert cfg.cache_ttl_seconds == 300.0
        assert cfg.invalidate_on_write is False
        assert cfg.growth_window_days == 7
        assert cfg.spike_factor == 2.0
        assert cfg.over_connected_factor == 3.0
        assert cfg.core_factor == 2.0
        assert cfg.rare_pattern_share == 0.05
        assert cfg.forecast_weeks == 4

    def test_query(self) -> None:
        assert QueryConfig().max_pattern_length == 256


class TestValidation:
    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("cache_ttl_seconds", -1),
            ("growth_window_days", 0),
            ("spike_factor", 0),
            ("rare_pattern_share", 1.5),
            ("max_alternative_paths", -1),
        ],
    )
    def test_out_of_range(self, field: str, value: float) -> None:
        with pytest.raises(ValidationError):
            AnalyticsConfig.model_validate({field: value})

    def test_pattern_length_positive(self) -> None:
        with pytest.raises(ValidationError):
            QueryConfig(max_pattern_length=0)

    def test_frozen(self) -> None:
        cfg = GraphConfig()
        with pytest.raises(ValidationError):
            cfg.path = "other.json"  # type: ignore[misc]
