"""Holder of the currently published graph.

Readers call :meth:`GraphRegistry.current` and keep the returned graph for
as long as they need it; a rescan never touches that object, it builds a
new frozen graph and swaps the reference.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from .errors import GraphMigratorError
from .graph import ProjectGraph
from .scanner import ScanReport, ScanResult, Scanner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Publication:
    graph: ProjectGraph
    report: Optional[ScanReport]
    generation: int


class GraphRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._scan_lock = threading.Lock()
        self._current: Optional[Publication] = None
        self._generation = 0

    def publish(self, graph: ProjectGraph, report: Optional[ScanReport] = None) -> Publication:
        """Make *graph* the current one. Only frozen graphs can be published."""
        if not graph.frozen:
            raise GraphMigratorError("Only frozen graphs can be published")
        with self._lock:
            self._generation += 1
            publication = Publication(graph, report, self._generation)
            self._current = publication
        logger.info("Published graph generation %d (%d nodes)", publication.generation, graph.node_count)
        return publication

    def current(self) -> Optional[ProjectGraph]:
        publication = self._current
        return publication.graph if publication is not None else None

    def current_publication(self) -> Optional[Publication]:
        return self._current

    @property
    def generation(self) -> int:
        return self._generation

    def rescan(self, scanner: Scanner) -> ScanResult:
        """Run *scanner* and publish its graph if the scan succeeds.

        Concurrent rescans are serialized; readers are never blocked. A
        failed or cancelled scan leaves the current graph in place.
        """
        with self._scan_lock:
            result = scanner.scan()
            self.publish(result.graph, result.report)
        return result
