"""Command group: graph inspection and traversal."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import click

from infragraph.commands._base import IgGroup
from infragraph.domain.types import Direction, EdgeType, NodeType
from infragraph.services.graph import GraphService

if TYPE_CHECKING:
    from infragraph.commands._context import AppContext

_GRAPH_EXAMPLES = """\
  infragraph graph stats
  infragraph graph query --type Service --where tier=backend --depth 1
  infragraph graph query --match name='^api-' --limit 20
  infragraph graph neighbors svc-api --direction out
  infragraph graph path svc-api db-orders
  infragraph graph clusters"""

_NODE_TYPES = click.Choice([t.value for t in NodeType])
_EDGE_TYPES = click.Choice([t.value for t in EdgeType])


def _split_pair(option: str, raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise click.BadParameter(f"expected KEY=VALUE, got {raw!r}", param_hint=option)
    return key, value


def _parse_value(raw: str) -> Any:
    """JSON literal when it parses (``3``, ``true``, ``null``), else the raw string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _property_filters(where: tuple[str, ...], match: tuple[str, ...]) -> dict[str, Any] | None:
    filters: dict[str, Any] = {}
    for raw in where:
        key, value = _split_pair("--where", raw)
        filters[key] = _parse_value(value)
    for raw in match:
        key, pattern = _split_pair("--match", raw)
        filters[key] = {"$regex": pattern}
    return filters or None


@click.group(cls=IgGroup, examples=_GRAPH_EXAMPLES)
@click.pass_obj
def graph(app: AppContext) -> None:
    """Inspect and traverse the infrastructure graph."""


@graph.command(
    examples="""\
  infragraph graph stats
  infragraph --json graph stats"""
)
@click.pass_obj
def stats(app: AppContext) -> None:
    """Show node, edge, and per-type counts."""
    app.emit(GraphService(app.workspace).stats())


@graph.command(
    examples="""\
  infragraph graph query --type Service
  infragraph graph query --where env=prod --where replicas=3
  infragraph graph query --match name='^payments' --depth 2 --edge-type DEPENDS_ON
  infragraph -q graph query --type Incident --min-confidence 0.8"""
)
@click.option("--type", "node_type", type=_NODE_TYPES, default=None, help="Node type filter.")
@click.option("--edge-type", type=_EDGE_TYPES, default=None, help="Edge type filter.")
@click.option("--where", multiple=True, metavar="KEY=VALUE", help="Exact property match.")
@click.option("--match", multiple=True, metavar="KEY=REGEX", help="Regex property match.")
@click.option("--depth", default=0, type=click.IntRange(min=0), help="Expand N hops.")
@click.option("--limit", default=None, type=click.IntRange(min=0), help="Max nodes returned.")
@click.option(
    "--min-confidence",
    default=None,
    type=click.FloatRange(0.0, 1.0),
    help="Drop nodes below this confidence.",
)
@click.pass_obj
def query(
    app: AppContext,
    node_type: str | None,
    edge_type: str | None,
    where: tuple[str, ...],
    match: tuple[str, ...],
    depth: int,
    limit: int | None,
    min_confidence: float | None,
) -> None:
    """Filter nodes by type and properties, optionally expanding by depth."""
    app.emit(
        GraphService(app.workspace).query(
            node_type=NodeType(node_type) if node_type else None,
            edge_type=EdgeType(edge_type) if edge_type else None,
            properties=_property_filters(where, match),
            depth=depth,
            limit=limit,
            min_confidence=min_confidence,
        )
    )


@graph.command(
    examples="""\
  infragraph graph neighbors svc-api
  infragraph graph neighbors db-orders --direction in"""
)
@click.argument("node_id")
@click.option(
    "--direction",
    type=click.Choice([d.value for d in Direction]),
    default=Direction.BOTH.value,
    show_default=True,
    help="Adjacency to follow.",
)
@click.pass_obj
def neighbors(app: AppContext, node_id: str, direction: str) -> None:
    """List the nodes adjacent to NODE_ID."""
    app.emit(GraphService(app.workspace).neighbors(node_id, direction=Direction(direction)))


@graph.command(
    examples="""\
  infragraph graph path svc-api db-orders
  infragraph --json graph path team-core svc-api"""
)
@click.argument("source_id")
@click.argument("target_id")
@click.pass_obj
def path(app: AppContext, source_id: str, target_id: str) -> None:
    """Find the shortest forward path between two nodes."""
    app.emit(GraphService(app.workspace).path(source_id, target_id))


@graph.command(
    examples="""\
  infragraph graph clusters
  infragraph -q graph clusters"""
)
@click.pass_obj
def clusters(app: AppContext) -> None:
    """List connected components, largest first."""
    app.emit(GraphService(app.workspace).clusters())
