"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO).  The caller
extracts the rendered text via ``get_output(console)``.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from infragraph.output.console import create_console, get_output, style_for_severity

if TYPE_CHECKING:
    from rich.console import Console

    from infragraph.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich.

    Returns plain text (no ANSI) when Rich detects no terminal,
    which is the case inside Click's CliRunner and piped output.
    """
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode: one id per line."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {msg}"

    if result.op == "path":
        return "\n".join(result.data.get("path", []))
    if result.op == "analyze_path":
        return "\n".join(result.data.get("shortestPath", []))

    items = result.data.get("items") or result.data.get("nodes")
    if items and isinstance(items, list):
        return "\n".join(_extract_id(item) for item in items if _extract_id(item))

    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _extract_id(item: Any) -> str:
    """Extract an ID from a dict item (nodes, clusters, anomalies)."""
    if isinstance(item, dict):
        for key in ("id", "seed", "entityId"):
            val = item.get(key)
            if val is not None:
                return str(val)
    return ""


def _status_line(console: Console, result: ServiceResult) -> None:
    """Print the OK/ERROR status line."""
    label = Text("OK", style="ig.ok")
    op = Text(f"  {result.op}", style="ig.op")
    console.print(label, op, end="")
    console.print()


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="ig.key")
    if key in ("id", "source", "target", "nodeId", "from", "to"):
        v = Text(str(value), style="ig.id")
    elif key == "path":
        v = Text(str(value), style="ig.path")
    elif isinstance(value, float):
        v = Text(f"{value:.4f}", style="ig.score")
    else:
        v = Text(str(value))
    console.print(k, v, end="")
    console.print()


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print meta block including telemetry span tree (verbose only)."""
    if not result.meta:
        return

    console.print()
    console.print(Text("  meta:", style="dim"))

    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(f"    {k}: {escape(str(v))}")


def _render_telemetry_tree(
    console: Console,
    span_data: dict[str, Any],
    indent: int = 4,
) -> None:
    """Render a hierarchical span tree with color-coded timing."""
    prefix = " " * indent
    name = span_data.get("name", "?")
    duration = span_data.get("duration_ms", 0.0)

    if duration > 1000:
        style = "bold red"
    elif duration > 100:
        style = "yellow"
    else:
        style = "dim"

    line = f"{prefix}[{style}]{duration:>8.2f}ms[/{style}]  {name}"
    if span_data.get("annotations"):
        extras = [f"{ak}={av}" for ak, av in span_data["annotations"].items()]
        line += f"  ({', '.join(extras)})"

    console.print(line)

    for child in span_data.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


def _node_table(nodes: list[dict[str, Any]], *, verbose: bool = False) -> Table:
    """Build a Rich Table for a list of serialized nodes."""
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("ID", style="ig.id", no_wrap=True)
    table.add_column("Name", style="ig.title")
    table.add_column("Type")
    if verbose:
        table.add_column("Created", style="dim")
        table.add_column("Confidence", justify="right")

    for node in nodes:
        props = node.get("properties") or {}
        row = [
            escape(str(node.get("id", ""))),
            escape(str(props.get("name", ""))),
            str(node.get("type", "")),
        ]
        if verbose:
            meta = node.get("metadata") or {}
            confidence = meta.get("confidence")
            row.append(str(meta.get("createdAt", "")))
            row.append("" if confidence is None else f"{confidence:.2f}")
        table.add_row(*row)
    return table


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    line = Text("ERROR", style="ig.error")
    line.append(f"  {result.op}", style="ig.op")
    if err:
        line.append(f" [{err.code}]", style="ig.key")
    line.append(f": {msg}")
    console.print(line)
    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {escape(str(v))}")


# ── Graph renderers ───────────────────────────────────────────────────


def _render_stats(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    _status_line(console, result)
    _field(console, "nodes", d.get("nodeCount", 0))
    _field(console, "edges", d.get("edgeCount", 0))
    _field(console, "avg degree", float(d.get("avgDegree", 0.0)))

    counts = {k: v for k, v in (d.get("nodeTypes") or {}).items() if v or verbose}
    if counts:
        table = Table(show_header=True, pad_edge=False, expand=False)
        table.add_column("Type")
        table.add_column("Count", justify="right")
        for node_type, count in counts.items():
            table.add_row(node_type, str(count))
        console.print()
        console.print(table)


def _render_query(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    nodes = result.data.get("nodes", [])
    edges = result.data.get("edges", [])
    console.print(_node_table(nodes, verbose=verbose))
    if edges:
        console.print()
        for edge in edges:
            console.print(
                f"  [ig.id]{escape(str(edge.get('from')))}[/ig.id] -{edge.get('type')}-> "
                f"[ig.id]{escape(str(edge.get('to')))}[/ig.id]"
            )
    console.print(f"\n{result.data.get('count', len(nodes))} nodes, {len(edges)} edges")
    if verbose:
        _render_meta(console, result)


def _render_neighbors(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    items = d.get("items", [])
    console.print(
        f"Neighbors of [ig.id]{escape(str(d.get('id')))}[/ig.id] ({d.get('direction')}, "
        f"centrality {d.get('centrality', 0)})"
    )
    if items:
        console.print(_node_table(items, verbose=verbose))
    console.print(f"\n{d.get('count', len(items))} neighbors")


def _render_path(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render shortest path as a chain."""
    steps = result.data.get("path", [])
    if not steps:
        console.print("No path found.")
        return
    console.print(" → ".join(f"[ig.id]{escape(step)}[/ig.id]" for step in steps))
    console.print(f"\nPath length: {result.data.get('hops', len(steps) - 1)}")


def _render_clusters(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    items = result.data.get("items", [])
    console.print(f"[bold]{result.data.get('count', len(items))} clusters[/bold]")
    for item in items:
        seed = escape(str(item.get("seed")))
        console.print(f"\n[bold]{seed}[/bold] ({item.get('size', 0)} members)")
        members = item.get("nodes", [])
        shown = members if verbose else members[:10]
        console.print("  " + escape(", ".join(shown)))
        if len(shown) < len(members):
            console.print(f"  [dim]... {len(members) - len(shown)} more[/dim]")


# ── Analytics renderers ───────────────────────────────────────────────


def _render_report(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    metrics = Table(show_header=False, pad_edge=False, expand=False, box=None)
    metrics.add_column("Metric", style="ig.key")
    metrics.add_column("Value", style="ig.score", justify="right")
    for label, key in (
        ("density", "density"),
        ("clustering", "clustering"),
        ("avg path length", "averagePathLength"),
        ("diameter", "diameter"),
        ("modularity", "modularity"),
        ("growth rate %", "growthRate"),
    ):
        value = d.get(key, 0)
        metrics.add_row(label, f"{value:.4f}" if isinstance(value, float) else str(value))
    console.print(Panel(metrics, title="Network", expand=False))

    communities = d.get("communities", [])
    if communities:
        table = Table(show_header=True, pad_edge=False, expand=False, title="Communities")
        table.add_column("ID", style="ig.id")
        table.add_column("Size", justify="right")
        table.add_column("Density", justify="right")
        table.add_column("Cohesion", justify="right")
        table.add_column("Description")
        for c in communities:
            table.add_row(
                str(c.get("id")),
                str(c.get("size")),
                f"{c.get('density', 0):.2f}",
                f"{c.get('cohesion', 0):.2f}",
                str(c.get("description", "")),
            )
        console.print(table)

    for pattern in d.get("activityPatterns", []):
        kind = pattern.get("type")
        description = escape(str(pattern.get("description")))
        console.print(f"[ig.warning]{kind}[/ig.warning]  {description}")

    anomalies = d.get("anomalies", [])
    if anomalies:
        console.print(f"\n[bold]Anomalies ({len(anomalies)})[/bold]")
        for anomaly in anomalies:
            severity = str(anomaly.get("severity", ""))
            style = style_for_severity(severity) or "dim"
            console.print(
                f"  [{style}]{severity:<8}[/{style}] {anomaly.get('type')}: "
                f"{escape(str(anomaly.get('description')))}"
            )
            if verbose and anomaly.get("suggestedAction"):
                console.print(f"           [dim]{anomaly['suggestedAction']}[/dim]")

    predictions = d.get("predictions", [])
    if predictions:
        console.print(f"\n[bold]Predictions ({len(predictions)})[/bold]")
        for prediction in predictions:
            console.print(
                f"  {prediction.get('type')} \\[{prediction.get('impact')}] "
                f"{escape(str(prediction.get('description')))} ({prediction.get('timeframe')})"
            )
            console.print(f"    [dim]{prediction.get('recommendation')}[/dim]")

    if verbose:
        console.print(f"\ncentrality distribution: {_json.dumps(d.get('centralityDistribution'))}")
        console.print(f"degree distribution: {_json.dumps(d.get('degreeDistribution'))}")
        _render_meta(console, result)


def _render_influence(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    _status_line(console, result)
    _field(console, "nodeId", d.get("nodeId"))
    _field(console, "position", d.get("networkPosition"))
    _field(console, "influence", float(d.get("influenceScore", 0.0)))
    _field(console, "reachability", float(d.get("reachability", 0.0)))
    _field(console, "criticality", float(d.get("criticalityIndex", 0.0)))
    _field(console, "key connections", ", ".join(d.get("keyConnections", [])) or "-")


def _render_path_analysis(
    result: ServiceResult, console: Console, *, verbose: bool = False
) -> None:
    d = result.data
    shortest = d.get("shortestPath", [])
    if not shortest:
        source, target = escape(str(d.get("from"))), escape(str(d.get("to")))
        console.print(f"No path from [ig.id]{source}[/ig.id] to [ig.id]{target}[/ig.id].")
        return
    console.print(" → ".join(f"[ig.id]{escape(step)}[/ig.id]" for step in shortest))
    _field(console, "reliability", float(d.get("reliability", 0.0)))
    _field(console, "bottlenecks", ", ".join(d.get("bottlenecks", [])) or "-")
    for alternative in d.get("alternativePaths", []):
        console.print(f"  [dim]alt:[/dim] {escape(' → '.join(alternative))}")


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        if isinstance(value, (dict, list)):
            _field(console, key, _json.dumps(value, separators=(",", ":")))
        else:
            _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    "stats": _render_stats,
    "query": _render_query,
    "neighbors": _render_neighbors,
    "path": _render_path,
    "clusters": _render_clusters,
    "report": _render_report,
    "influence": _render_influence,
    "analyze_path": _render_path_analysis,
}
