"""Shared pytest fixtures for infragraph tests."""

from __future__ import annotations

import logging
from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from infragraph.config.settings import InfragraphSettings
from infragraph.infrastructure.graph.store import GraphStore
from infragraph.infrastructure.workspace import Workspace
from infragraph.services.telemetry import disable_telemetry

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


class StepClock:
    """Deterministic clock: returns *start*, then advances by *step* per call."""

    def __init__(self, start: datetime = T0, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now += self.step
        return current


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def store(clock: StepClock) -> GraphStore:
    """Empty store on a deterministic clock."""
    return GraphStore(clock=clock)


@pytest.fixture
def service_db(store: GraphStore) -> GraphStore:
    """A Service that DEPENDS_ON a Database."""
    store.add_node({"id": "A", "type": "Service", "properties": {"name": "api"}})
    store.add_node({"id": "B", "type": "Database", "properties": {"name": "orders"}})
    store.add_edge({"from": "A", "to": "B", "type": "DEPENDS_ON"})
    return store


@pytest.fixture
def hub(store: GraphStore) -> GraphStore:
    """Hub H with three spokes, one of them pointing back at the hub."""
    store.add_node({"id": "H", "type": "Service"})
    for spoke in ("S1", "S2", "S3"):
        store.add_node({"id": spoke, "type": "Service"})
    store.add_edge({"from": "H", "to": "S1", "type": "DEPENDS_ON"})
    store.add_edge({"from": "H", "to": "S2", "type": "DEPENDS_ON"})
    store.add_edge({"from": "S3", "to": "H", "type": "DEPENDS_ON"})
    return store


@pytest.fixture
def infra(store: GraphStore) -> GraphStore:
    """A small, realistic infrastructure graph.

    team-core OWNS svc-api, svc-worker
    svc-api DEPENDS_ON db-orders, CONNECTS_TO svc-worker
    svc-worker DEPENDS_ON db-orders
    svc-report (no database edge)
    inc-1 AFFECTS svc-api
    doc-runbook (isolated)
    """
    nodes: list[dict[str, Any]] = [
        {"id": "team-core", "type": "Team", "properties": {"name": "core"}},
        {"id": "svc-api", "type": "Service", "properties": {"name": "api", "tier": "edge"}},
        {"id": "svc-worker", "type": "Service", "properties": {"name": "worker", "replicas": 3}},
        {"id": "svc-report", "type": "Service", "properties": {"name": "report"}},
        {"id": "db-orders", "type": "Database", "properties": {"name": "orders"}},
        {"id": "inc-1", "type": "Incident", "properties": {"name": "latency spike"}},
        {"id": "doc-runbook", "type": "Document", "properties": {"name": "runbook"}},
    ]
    for node in nodes:
        store.add_node(node)
    for source, edge_type, target in [
        ("team-core", "OWNS", "svc-api"),
        ("team-core", "OWNS", "svc-worker"),
        ("svc-api", "DEPENDS_ON", "db-orders"),
        ("svc-api", "CONNECTS_TO", "svc-worker"),
        ("svc-worker", "DEPENDS_ON", "db-orders"),
        ("inc-1", "AFFECTS", "svc-api"),
        ("svc-report", "RELATES_TO", "team-core"),
    ]:
        store.add_edge({"from": source, "to": target, "type": edge_type})
    return store


@pytest.fixture
def write_graph(tmp_path: Path) -> Callable[[GraphStore], Path]:
    """Serialize a store to ``<tmp>/graph.json`` and return the path."""

    def _write(graph: GraphStore, name: str = "graph.json") -> Path:
        path = tmp_path / name
        path.write_text(graph.to_json(), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def _isolated_workspace(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, infra: GraphStore
) -> None:
    """CWD is a temp dir holding ``graph.json`` with the ``infra`` graph.

    Use via ``@pytest.mark.usefixtures("_isolated_workspace")`` on command
    test classes.
    """
    for key in ("INFRAGRAPH_CONFIG", "INFRAGRAPH_GRAPH__PATH"):
        monkeypatch.delenv(key, raising=False)
    (tmp_path / "graph.json").write_text(infra.to_json(), encoding="utf-8")
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def workspace(tmp_path: Path, infra: GraphStore, monkeypatch: pytest.MonkeyPatch) -> Workspace:
    """Workspace over the ``infra`` graph, without entry-point discovery."""
    for key in ("INFRAGRAPH_CONFIG", "INFRAGRAPH_GRAPH__PATH"):
        monkeypatch.delenv(key, raising=False)
    (tmp_path / "graph.json").write_text(infra.to_json(), encoding="utf-8")
    settings = InfragraphSettings.from_cli(project_root=tmp_path)
    return Workspace(settings, discover_plugins=False)


@pytest.fixture(autouse=True)
def _reset_telemetry() -> Generator[None]:
    """``--verbose`` invocations enable telemetry on the test thread's context."""
    yield
    disable_telemetry()


@pytest.fixture(autouse=True)
def _restore_logging() -> Generator[None]:
    """CLI invocations reconfigure the root logger; put it back afterwards."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    app = logging.getLogger("infragraph")
    app_level = app.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    app.setLevel(app_level)
