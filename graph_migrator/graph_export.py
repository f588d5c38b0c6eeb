"""Graph export helpers for DOT, JSON and text neighbourhood outputs."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from .graph import ProjectGraph
from .models import Edge, Node, NodeKind
from .snapshot import write_snapshot


def export_dot(graph: ProjectGraph, output_file: Path, focus: str = "") -> None:
    output_file.write_text(render_dot(graph, focus), encoding="utf-8")


def render_dot(graph: ProjectGraph, focus: str = "") -> str:
    nodes = {node.id: node for node in graph.nodes}
    selected = _focused_subgraph(nodes, list(graph.edges), focus)

    lines = ["digraph ProjectGraph {"]
    lines.append("  rankdir=LR;")

    for node_id in selected["nodes"]:
        node = nodes[node_id]
        name = node.name if node.kind is NodeKind.FILE else node.qualname
        lines.append(f'  "{_esc(node_id)}" [label="{node.kind.value}\\n{_esc(name)}"];')

    for edge in selected["edges"]:
        lines.append(
            f'  "{_esc(edge.source_id)}" -> "{_esc(edge.target_id)}" [label="{edge.kind.value}"];'
        )

    lines.append("}")
    return "\n".join(lines)


def export_json(
    graph: ProjectGraph,
    output_file: Path,
    metadata: Optional[Dict[str, Any]] = None,
    focus: str = "",
) -> None:
    """Write a snapshot; with *focus* only the focused neighbourhood is kept."""
    if focus:
        nodes = {node.id: node for node in graph.nodes}
        selected = _focused_subgraph(nodes, list(graph.edges), focus)
        graph = ProjectGraph.from_parts(
            [nodes[node_id] for node_id in selected["nodes"]],
            selected["edges"],
            {node_id: graph.provenance(node_id) for node_id in selected["nodes"]},
            graph.file_commits,
        )
    write_snapshot(graph, output_file, metadata)


def _focused_subgraph(nodes: Dict[str, Node], edges: List[Edge], focus: str) -> Dict[str, List]:
    if not focus:
        return {"nodes": list(nodes.keys()), "edges": edges}

    focus_ids = {
        node_id
        for node_id, node in nodes.items()
        if focus == node_id or focus == node.name or focus == node.qualname
    }

    if not focus_ids:
        return {"nodes": list(nodes.keys()), "edges": edges}

    edge_subset = [e for e in edges if e.source_id in focus_ids or e.target_id in focus_ids]
    node_subset = set(focus_ids)
    for e in edge_subset:
        node_subset.add(e.source_id)
        node_subset.add(e.target_id)
    return {"nodes": sorted(node_subset), "edges": edge_subset}


def _esc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _label(node: Node) -> str:
    if node.kind is NodeKind.FILE:
        return node.file_path
    return node.qualname


def ascii_neighbors(graph: ProjectGraph, node_id: str, depth: int = 1, direction: str = "out") -> str:
    """Breadth-first text rendering of the edges around *node_id*."""
    start = graph.get_node(node_id)
    lines = [f"{_label(start)} ({start.kind.value})"]

    frontier = [(node_id, 0)]
    seen = {node_id}
    while frontier:
        current, level = frontier.pop(0)
        if level >= depth:
            continue
        for edge in graph.neighbors(current, direction):
            incoming = edge.target_id == current and edge.source_id != current
            other = edge.source_id if incoming else edge.target_id
            arrow = f"<-{edge.kind.value}-" if incoming else f"-{edge.kind.value}->"
            lines.append(f"{'  ' * (level + 1)}|{arrow} {_label(graph.get_node(other))}")
            if other not in seen:
                seen.add(other)
                frontier.append((other, level + 1))
    return "\n".join(lines)
