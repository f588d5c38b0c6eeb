"""Persistence layer for scanned project graphs.

- :class:`ProjectManager` manages per-project memory directories under
  ``MEMORY_DIR`` and the currently loaded project in ``STATE_FILE``.
- :class:`GraphStore` keeps one project's graph in SQLite (tables
  ``nodes``, ``edges`` and ``files``) next to a ``project.json`` holding
  scan metadata.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import config
from .graph import ProjectGraph
from .models import Edge, EdgeKind, Node, NodeKind

logger = logging.getLogger(__name__)


# ===================================================================
# ProjectManager
# ===================================================================

class ProjectManager:
    """Manage project memory directories and active project state."""

    def __init__(self) -> None:
        config.ensure_base_dirs()

    def list_projects(self) -> List[str]:
        if not config.MEMORY_DIR.exists():
            return []
        return sorted([p.name for p in config.MEMORY_DIR.iterdir() if p.is_dir()])

    def project_dir(self, project_name: str) -> Path:
        return config.MEMORY_DIR / project_name

    def create_or_get_project(self, project_name: str) -> Path:
        path = self.project_dir(project_name)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def set_current_project(self, project_name: Optional[str]) -> None:
        config.ensure_base_dirs()
        config.STATE_FILE.write_text(
            json.dumps({"current_project": project_name}, indent=2),
            encoding="utf-8",
        )

    def get_current_project(self) -> Optional[str]:
        if not config.STATE_FILE.exists():
            return None
        try:
            payload = json.loads(config.STATE_FILE.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return None
        return payload.get("current_project")

    def unload_project(self) -> None:
        self.set_current_project(None)

    def delete_project(self, project_name: str) -> bool:
        path = self.project_dir(project_name)
        if not path.exists():
            return False
        for child in sorted(path.glob("**/*"), reverse=True):
            if child.is_file():
                child.unlink()
            elif child.is_dir():
                child.rmdir()
        path.rmdir()
        if self.get_current_project() == project_name:
            self.unload_project()
        return True


# ===================================================================
# GraphStore
# ===================================================================

class GraphStore:
    """SQLite store for one project's graph."""

    def __init__(self, project_dir: Path) -> None:
        self.project_dir = project_dir
        self.db_path = project_dir / "graph.db"
        self.meta_path = project_dir / "project.json"
        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def close(self) -> None:
        self.conn.close()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        cur.execute("""
            CREATE TABLE IF NOT EXISTS nodes (
                node_id     TEXT PRIMARY KEY,
                kind        TEXT NOT NULL,
                name        TEXT NOT NULL,
                qualname    TEXT NOT NULL,
                language    TEXT NOT NULL,
                file_path   TEXT NOT NULL,
                source_file TEXT NOT NULL,
                start_line  INTEGER,
                end_line    INTEGER,
                start_byte  INTEGER,
                end_byte    INTEGER
            )
        """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS edges (
                src       TEXT NOT NULL,
                dst       TEXT NOT NULL,
                edge_type TEXT NOT NULL,
                PRIMARY KEY (src, dst, edge_type)
            )
        """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS files (
                file_path    TEXT PRIMARY KEY,
                file_node_id TEXT NOT NULL,
                commit_hash  TEXT
            )
        """)
        cur.execute("CREATE INDEX IF NOT EXISTS idx_edges_src ON edges(src)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_edges_dst ON edges(dst)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_nodes_name ON nodes(name)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_nodes_qualname ON nodes(qualname)")
        self.conn.commit()

    # ------------------------------------------------------------------
    # Clear / metadata
    # ------------------------------------------------------------------

    def clear(self) -> None:
        cur = self.conn.cursor()
        cur.execute("DELETE FROM edges")
        cur.execute("DELETE FROM nodes")
        cur.execute("DELETE FROM files")
        self.conn.commit()

    def set_metadata(self, payload: Dict[str, Any]) -> None:
        self.meta_path.write_text(
            json.dumps(payload, indent=2), encoding="utf-8",
        )

    def get_metadata(self) -> Dict[str, Any]:
        if not self.meta_path.exists():
            return {}
        try:
            return json.loads(self.meta_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return {}

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save_graph(self, graph: ProjectGraph, metadata: Optional[Dict[str, Any]] = None) -> None:
        """Replace the stored graph with *graph* in one transaction."""
        commits = graph.file_commits
        with self.conn:
            self.conn.execute("DELETE FROM edges")
            self.conn.execute("DELETE FROM nodes")
            self.conn.execute("DELETE FROM files")
            self.conn.executemany(
                """
                INSERT INTO nodes (
                    node_id, kind, name, qualname, language, file_path, source_file,
                    start_line, end_line, start_byte, end_byte
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        node.id,
                        node.kind.value,
                        node.name,
                        node.qualname,
                        node.language,
                        node.file_path,
                        graph.provenance(node.id),
                        node.line_range[0] if node.line_range else None,
                        node.line_range[1] if node.line_range else None,
                        node.byte_range[0] if node.byte_range else None,
                        node.byte_range[1] if node.byte_range else None,
                    )
                    for node in graph.nodes
                ],
            )
            self.conn.executemany(
                "INSERT INTO edges (src, dst, edge_type) VALUES (?, ?, ?)",
                [(e.source_id, e.target_id, e.kind.value) for e in graph.edges],
            )
            self.conn.executemany(
                "INSERT INTO files (file_path, file_node_id, commit_hash) VALUES (?, ?, ?)",
                [(path, node_id, commits.get(path)) for path, node_id in sorted(graph.file_nodes.items())],
            )

        meta = dict(metadata or {})
        meta["node_count"] = graph.node_count
        meta["edge_count"] = graph.edge_count
        self.set_metadata(meta)
        logger.info("Stored %d nodes / %d edges in %s", graph.node_count, graph.edge_count, self.db_path)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load_graph(self) -> ProjectGraph:
        """Rebuild the stored graph as a frozen :class:`ProjectGraph`."""
        nodes: List[Node] = []
        provenance: Dict[str, str] = {}
        for row in self.conn.execute("SELECT * FROM nodes ORDER BY rowid"):
            line_range = (row["start_line"], row["end_line"]) if row["start_line"] is not None else None
            byte_range = (row["start_byte"], row["end_byte"]) if row["start_byte"] is not None else None
            nodes.append(Node(
                id=row["node_id"],
                name=row["name"],
                kind=NodeKind(row["kind"]),
                language=row["language"],
                file_path=row["file_path"],
                qualname=row["qualname"],
                line_range=line_range,
                byte_range=byte_range,
            ))
            provenance[row["node_id"]] = row["source_file"]

        edges = [
            Edge(row["src"], row["dst"], EdgeKind(row["edge_type"]))
            for row in self.conn.execute("SELECT * FROM edges ORDER BY rowid")
        ]
        commits = {
            row["file_path"]: row["commit_hash"]
            for row in self.conn.execute("SELECT * FROM files WHERE commit_hash IS NOT NULL")
        }
        return ProjectGraph.from_parts(nodes, edges, provenance, commits)

    def get_nodes(self) -> List[sqlite3.Row]:
        return self.conn.execute("SELECT * FROM nodes ORDER BY rowid").fetchall()

    def get_node(self, node_id_or_name: str) -> Optional[sqlite3.Row]:
        return self.conn.execute(
            "SELECT * FROM nodes WHERE node_id = ? OR qualname = ? OR name = ? ORDER BY rowid LIMIT 1",
            (node_id_or_name, node_id_or_name, node_id_or_name),
        ).fetchone()

    def get_edges(self) -> List[sqlite3.Row]:
        return self.conn.execute("SELECT * FROM edges ORDER BY rowid").fetchall()

    def get_files(self) -> List[sqlite3.Row]:
        return self.conn.execute("SELECT * FROM files ORDER BY file_path").fetchall()

    def neighbors(self, src_node_id: str) -> List[sqlite3.Row]:
        return self.conn.execute(
            "SELECT * FROM edges WHERE src = ?", (src_node_id,),
        ).fetchall()

    def reverse_neighbors(self, dst_node_id: str) -> List[sqlite3.Row]:
        return self.conn.execute(
            "SELECT * FROM edges WHERE dst = ?", (dst_node_id,),
        ).fetchall()

    def file_commit(self, file_path: str) -> Optional[str]:
        row = self.conn.execute(
            "SELECT commit_hash FROM files WHERE file_path = ?", (file_path,),
        ).fetchone()
        return row["commit_hash"] if row else None
