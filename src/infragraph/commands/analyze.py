"""Command group: structural analytics."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from infragraph.commands._base import IgGroup
from infragraph.services.graph import GraphService

if TYPE_CHECKING:
    from infragraph.commands._context import AppContext

_ANALYZE_EXAMPLES = """\
  infragraph analyze report
  infragraph --json analyze report --fresh
  infragraph analyze influence svc-api
  infragraph analyze path svc-api db-orders"""


@click.group(cls=IgGroup, examples=_ANALYZE_EXAMPLES)
@click.pass_obj
def analyze(app: AppContext) -> None:
    """Compute metrics, anomalies, and predictions over the graph."""


@analyze.command(
    examples="""\
  infragraph analyze report
  infragraph -v analyze report --fresh"""
)
@click.option("--fresh", is_flag=True, help="Ignore any cached report.")
@click.pass_obj
def report(app: AppContext, fresh: bool) -> None:
    """Full analytics report: metrics, communities, anomalies, predictions."""
    app.emit(GraphService(app.workspace).report(fresh=fresh))


@analyze.command(
    examples="""\
  infragraph analyze influence svc-api
  infragraph --json analyze influence db-orders"""
)
@click.argument("node_id")
@click.pass_obj
def influence(app: AppContext, node_id: str) -> None:
    """Score how far NODE_ID's influence reaches."""
    app.emit(GraphService(app.workspace).influence(node_id))


@analyze.command(
    examples="""\
  infragraph analyze path svc-api db-orders"""
)
@click.argument("source_id")
@click.argument("target_id")
@click.pass_obj
def path(app: AppContext, source_id: str, target_id: str) -> None:
    """Shortest path with bottlenecks, reliability, and alternatives."""
    app.emit(GraphService(app.workspace).analyze_path(source_id, target_id))
