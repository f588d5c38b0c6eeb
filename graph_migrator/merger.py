"""Merge per-file local graphs into one ProjectGraph.

Local graphs are committed in canonical-path order whatever order they
arrive in, so the resulting structure only depends on the set of inputs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import IdentifierCollision
from .graph import ProjectGraph
from .models import LocalGraph, Node, make_node_id

logger = logging.getLogger(__name__)


@dataclass
class MergedFile:
    """A local graph accepted by the merger with its symbols' global ids."""

    local: LocalGraph
    node_ids: List[str]

    @property
    def file_path(self) -> str:
        return self.local.file_path

    @property
    def file_node_id(self) -> str:
        return self.node_ids[0]


@dataclass
class MergeResult:
    graph: ProjectGraph
    files: List[MergedFile] = field(default_factory=list)
    duplicates: int = 0

    def file(self, file_path: str) -> Optional[MergedFile]:
        for merged in self.files:
            if merged.file_path == file_path:
                return merged
        return None


class GraphMerger:
    """Single serialization point of a scan: assigns global ids in order."""

    def __init__(self, graph: Optional[ProjectGraph] = None) -> None:
        self.graph = graph if graph is not None else ProjectGraph()
        # node id -> (file path, ordinal of the local graph that inserted it)
        self._owners: Dict[str, Tuple[str, int]] = {}

    def merge(self, local_graphs: Iterable[LocalGraph]) -> MergeResult:
        ordered = sorted(local_graphs, key=lambda g: g.file_path)
        result = MergeResult(graph=self.graph)
        seen_files: Dict[str, MergedFile] = {}

        for ordinal, local in enumerate(ordered):
            node_ids, translation = self._insert_nodes(local, ordinal)
            for edge in local.edges:
                self.graph.add_edge_by_index(translation[edge.source], translation[edge.target], edge.kind)

            if local.file_path in seen_files:
                result.duplicates += 1
                logger.debug("Duplicate parse of %s merged into existing nodes", local.file_path)
                continue
            merged = MergedFile(local=local, node_ids=node_ids)
            seen_files[local.file_path] = merged
            result.files.append(merged)

        logger.info(
            "Merged %d file(s) into %d nodes / %d edges (%d duplicate parse(s))",
            len(result.files), self.graph.node_count, self.graph.edge_count, result.duplicates,
        )
        return result

    def _insert_nodes(self, local: LocalGraph, ordinal: int) -> Tuple[List[str], List[int]]:
        node_ids: List[str] = []
        translation: List[int] = []
        for symbol in local.symbols:
            node_id = make_node_id(local.file_path, symbol.qualname)
            owner = self._owners.get(node_id)
            if owner is not None:
                owner_file, owner_ordinal = owner
                # Same file parsed twice: first occurrence wins. Anything else
                # means two distinct symbols mapped to one id.
                if owner_file != local.file_path or owner_ordinal == ordinal:
                    raise IdentifierCollision(node_id, owner_file, local.file_path)
                index = self.graph.index_of(node_id)
            else:
                index = self.graph.add_node(Node(
                    id=node_id,
                    name=symbol.name,
                    kind=symbol.kind,
                    language=local.language,
                    file_path=local.file_path,
                    qualname=symbol.qualname,
                    line_range=symbol.line_range,
                    byte_range=symbol.byte_range,
                ), local.file_path)
                self._owners[node_id] = (local.file_path, ordinal)
            node_ids.append(node_id)
            translation.append(index)
        return node_ids, translation


def merge_local_graphs(local_graphs: Iterable[LocalGraph]) -> MergeResult:
    return GraphMerger().merge(local_graphs)
