"""The merged, globally identified project graph.

Nodes and edges live in append-only arenas and refer to each other by
integer position, so cyclic call structures need no object references.
A graph moves through three states:

1. *open* -- the merger inserts nodes and edges
2. *sealed* -- the node set is final, new edges may still be appended
   (cross-file linking)
3. *frozen* -- fully immutable, safe to share between readers
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .errors import GraphFrozenError, NodeNotFound
from .models import Edge, EdgeKind, Node, NodeKind

logger = logging.getLogger(__name__)

EdgeKey = Tuple[int, int, EdgeKind]


class ProjectGraph:
    """Deduplicated node/edge arenas plus provenance and file indexes."""

    def __init__(self) -> None:
        self._nodes: List[Node] = []
        self._index: Dict[str, int] = {}
        self._edges: List[EdgeKey] = []
        self._edge_set: Set[EdgeKey] = set()
        self._outgoing: Dict[int, List[int]] = {}
        self._incoming: Dict[int, List[int]] = {}
        self._provenance: Dict[str, str] = {}
        self._file_nodes: Dict[str, str] = {}
        self._file_commits: Dict[str, str] = {}
        self._sealed = False
        self._frozen = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def frozen(self) -> bool:
        return self._frozen

    def seal_nodes(self) -> None:
        self._sealed = True

    def freeze(self) -> "ProjectGraph":
        self._sealed = True
        self._frozen = True
        return self

    def _check_open(self, what: str) -> None:
        if self._frozen or (self._sealed and what == "node"):
            raise GraphFrozenError(f"Cannot add {what}: graph is {'frozen' if self._frozen else 'sealed'}")

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_node(self, node: Node, source_file: Optional[str] = None) -> int:
        """Insert *node* and return its arena index.

        If a node with the same id exists the existing one is kept and its
        index returned. ``source_file`` defaults to ``node.file_path``.
        """
        self._check_open("node")
        existing = self._index.get(node.id)
        if existing is not None:
            return existing
        index = len(self._nodes)
        self._nodes.append(node)
        self._index[node.id] = index
        self._provenance[node.id] = source_file or node.file_path
        if node.kind is NodeKind.FILE:
            self._file_nodes[node.file_path] = node.id
        return index

    def add_edge_by_index(self, source: int, target: int, kind: EdgeKind) -> bool:
        """Append an edge between two arena indexes. Returns False for duplicates."""
        self._check_open("edge")
        if not (0 <= source < len(self._nodes) and 0 <= target < len(self._nodes)):
            raise IndexError(f"Edge endpoint out of range: {source} -> {target}")
        key = (source, target, kind)
        if key in self._edge_set:
            return False
        position = len(self._edges)
        self._edges.append(key)
        self._edge_set.add(key)
        self._outgoing.setdefault(source, []).append(position)
        self._incoming.setdefault(target, []).append(position)
        return True

    def add_edge(self, source_id: str, target_id: str, kind: EdgeKind) -> bool:
        return self.add_edge_by_index(self.index_of(source_id), self.index_of(target_id), kind)

    def set_file_commit(self, file_path: str, commit_hash: str) -> None:
        self._check_open("commit hash")
        self._file_commits[file_path] = commit_hash

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._index

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def index_of(self, node_id: str) -> int:
        try:
            return self._index[node_id]
        except KeyError:
            raise NodeNotFound(node_id) from None

    def node_at(self, index: int) -> Node:
        return self._nodes[index]

    def get_node(self, node_id: str) -> Node:
        return self._nodes[self.index_of(node_id)]

    def find_node(self, node_id: str) -> Optional[Node]:
        index = self._index.get(node_id)
        return self._nodes[index] if index is not None else None

    @property
    def nodes(self) -> Tuple[Node, ...]:
        return tuple(self._nodes)

    def _edge(self, position: int) -> Edge:
        source, target, kind = self._edges[position]
        return Edge(self._nodes[source].id, self._nodes[target].id, kind)

    @property
    def edges(self) -> Tuple[Edge, ...]:
        return tuple(self._edge(i) for i in range(len(self._edges)))

    def edges_of_kind(self, kind: EdgeKind) -> List[Edge]:
        return [e for e in self.edges if e.kind is kind]

    def outgoing(self, node_id: str, kind: Optional[EdgeKind] = None) -> List[Edge]:
        edges = (self._edge(i) for i in self._outgoing.get(self.index_of(node_id), []))
        return [e for e in edges if kind is None or e.kind is kind]

    def incoming(self, node_id: str, kind: Optional[EdgeKind] = None) -> List[Edge]:
        edges = (self._edge(i) for i in self._incoming.get(self.index_of(node_id), []))
        return [e for e in edges if kind is None or e.kind is kind]

    def neighbors(self, node_id: str, direction: str = "both") -> List[Edge]:
        """Edges touching *node_id*: ``"out"``, ``"in"`` or ``"both"``."""
        if direction == "out":
            return self.outgoing(node_id)
        if direction == "in":
            return self.incoming(node_id)
        if direction == "both":
            return self.outgoing(node_id) + self.incoming(node_id)
        raise ValueError(f"Unknown direction: {direction!r}")

    # ------------------------------------------------------------------
    # Provenance / files
    # ------------------------------------------------------------------

    def provenance(self, node_id: str) -> str:
        try:
            return self._provenance[node_id]
        except KeyError:
            raise NodeNotFound(node_id) from None

    @property
    def provenance_map(self) -> Dict[str, str]:
        return dict(self._provenance)

    @property
    def file_nodes(self) -> Dict[str, str]:
        """file path -> id of its file node"""
        return dict(self._file_nodes)

    @property
    def file_commits(self) -> Dict[str, str]:
        return dict(self._file_commits)

    def file_node_id(self, file_path: str) -> Optional[str]:
        return self._file_nodes.get(file_path)

    def file_node(self, file_path: str) -> Node:
        try:
            return self.get_node(self._file_nodes[file_path])
        except KeyError:
            raise NodeNotFound(file_path) from None

    def nodes_in_file(self, file_path: str) -> List[Node]:
        return [n for n in self._nodes if self._provenance.get(n.id) == file_path]

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def structure(self) -> Tuple[frozenset, frozenset]:
        """Order-insensitive ``(node ids, edges)`` view used for equality."""
        return frozenset(self._index), frozenset(self.edges)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProjectGraph):
            return NotImplemented
        return self.structure() == other.structure() and set(self._nodes) == set(other._nodes)

    __hash__ = None  # type: ignore[assignment]

    @classmethod
    def from_parts(
        cls,
        nodes: Iterable[Node],
        edges: Iterable[Edge],
        provenance: Optional[Dict[str, str]] = None,
        file_commits: Optional[Dict[str, str]] = None,
    ) -> "ProjectGraph":
        """Rebuild a frozen graph, e.g. from a stored snapshot."""
        graph = cls()
        provenance = provenance or {}
        for node in nodes:
            graph.add_node(node, provenance.get(node.id))
        graph.seal_nodes()
        for edge in edges:
            graph.add_edge(edge.source_id, edge.target_id, edge.kind)
        for path, commit in (file_commits or {}).items():
            graph.set_file_commit(path, commit)
        return graph.freeze()
