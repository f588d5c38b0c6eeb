"""Plain-data snapshots of a ProjectGraph.

A snapshot is a JSON-compatible dict::

    {
      "version": 1,
      "metadata": {"root_path", "scanned_at", "commit_hash",
                   "node_count", "edge_count", ...},
      "nodes": [...], "edges": [...],
      "files": [{"file_path", "file_node_id", "commit_hash"}],
      "provenance": {node_id: file_path}   # only entries differing from node.file_path
    }

``graph_from_snapshot(graph_to_snapshot(g))`` equals ``g``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .errors import GraphMigratorError
from .graph import ProjectGraph
from .models import Edge, Node

SNAPSHOT_VERSION = 1


def graph_to_snapshot(graph: ProjectGraph, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    meta = dict(metadata or {})
    meta["node_count"] = graph.node_count
    meta["edge_count"] = graph.edge_count

    file_commits = graph.file_commits
    provenance: Dict[str, str] = {}
    for node in graph.nodes:
        source = graph.provenance(node.id)
        if source != node.file_path:
            provenance[node.id] = source
    return {
        "version": SNAPSHOT_VERSION,
        "metadata": meta,
        "nodes": [node.to_dict() for node in graph.nodes],
        "edges": [edge.to_dict() for edge in graph.edges],
        "files": [
            {"file_path": path, "file_node_id": node_id, "commit_hash": file_commits.get(path)}
            for path, node_id in sorted(graph.file_nodes.items())
        ],
        "provenance": provenance,
    }


def graph_from_snapshot(payload: Dict[str, Any]) -> Tuple[ProjectGraph, Dict[str, Any]]:
    """Rebuild a frozen graph and return it with the snapshot metadata."""
    version = payload.get("version")
    if version != SNAPSHOT_VERSION:
        raise GraphMigratorError(f"Unsupported snapshot version: {version!r}")
    try:
        nodes = [Node.from_dict(n) for n in payload["nodes"]]
        edges = [Edge.from_dict(e) for e in payload["edges"]]
    except (KeyError, ValueError, TypeError) as exc:
        raise GraphMigratorError(f"Malformed snapshot: {exc}") from exc

    provenance = {node.id: node.file_path for node in nodes}
    provenance.update(payload.get("provenance", {}))
    commits = {
        entry["file_path"]: entry["commit_hash"]
        for entry in payload.get("files", [])
        if entry.get("commit_hash")
    }
    graph = ProjectGraph.from_parts(nodes, edges, provenance, commits)
    return graph, dict(payload.get("metadata", {}))


def write_snapshot(graph: ProjectGraph, output: Path, metadata: Optional[Dict[str, Any]] = None) -> None:
    output.write_text(json.dumps(graph_to_snapshot(graph, metadata), indent=2), encoding="utf-8")


def read_snapshot(path: Path) -> Tuple[ProjectGraph, Dict[str, Any]]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise GraphMigratorError(f"Invalid snapshot {path}: {exc}") from exc
    return graph_from_snapshot(payload)
