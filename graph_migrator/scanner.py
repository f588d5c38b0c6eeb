"""Full-scan orchestration.

Pipeline for one scan generation::

    discover -> parse (worker pool) -> merge (sorted, sequential)
             -> seal -> module map + symbol index -> resolve imports
             -> link cross-file edges -> freeze

Per-file problems become diagnostics; only an inaccessible root, an
identifier collision or cancellation abort the scan, and in those cases
no graph is returned.
"""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from . import config
from .discovery import discover_files
from .errors import FileReadError, RootAccessError, ScanCancelled, UnsupportedLanguageError
from .graph import ProjectGraph
from .linker import CrossFileLinker
from .merger import GraphMerger
from .models import ImportResolution, LocalGraph, ParseFailure, ScanDiagnostics
from .parser import ParserRegistry, default_registry
from .resolver import ImportResolver, ModuleMap, SymbolIndex

logger = logging.getLogger(__name__)


@dataclass
class ScanReport:
    """User-visible counters for one scan."""

    root_path: str
    scanned_at: str
    commit_hash: Optional[str] = None
    files_discovered: int = 0
    files_parsed: int = 0
    skipped: List[ParseFailure] = field(default_factory=list)
    nodes: int = 0
    edges: int = 0
    unresolved_imports: int = 0
    unresolved_calls: int = 0
    builtin_calls: int = 0

    @property
    def files_skipped(self) -> int:
        return len(self.skipped)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root_path": self.root_path,
            "scanned_at": self.scanned_at,
            "commit_hash": self.commit_hash,
            "files_discovered": self.files_discovered,
            "files_parsed": self.files_parsed,
            "files_skipped": self.files_skipped,
            "skipped": [{"file_path": s.file_path, "kind": s.kind, "reason": s.reason} for s in self.skipped],
            "nodes": self.nodes,
            "edges": self.edges,
            "unresolved_imports": self.unresolved_imports,
            "unresolved_calls": self.unresolved_calls,
            "builtin_calls": self.builtin_calls,
        }


@dataclass
class ScanResult:
    graph: ProjectGraph
    diagnostics: ScanDiagnostics
    report: ScanReport


class Scanner:
    """Build a frozen :class:`ProjectGraph` for one project root.

    Settings left as ``None`` fall back to the loaded configuration.
    ``file_commits`` maps file paths (absolute or root-relative) to the
    last known commit hash of that file; values are stored opaquely.
    """

    def __init__(
        self,
        root: Path,
        include: Optional[Sequence[str]] = None,
        exclude: Optional[Sequence[str]] = None,
        source_roots: Optional[Sequence[str]] = None,
        known_external: Optional[Iterable[str]] = None,
        max_workers: Optional[int] = None,
        registry: Optional[ParserRegistry] = None,
        cancel_event: Optional[threading.Event] = None,
        file_commits: Optional[Mapping[str, str]] = None,
        commit_hash: Optional[str] = None,
        external_modules: Optional[FrozenSet[str]] = None,
    ) -> None:
        self.root = Path(root)
        self.include = list(include) if include else list(config.INCLUDE_PATTERNS)
        self.exclude = list(exclude) if exclude is not None else list(config.EXCLUDE_PATTERNS)
        self.source_roots = list(source_roots) if source_roots else list(config.SOURCE_ROOTS)
        self.known_external = list(known_external) if known_external is not None else list(config.KNOWN_EXTERNAL)
        self.max_workers = max(1, max_workers or config.MAX_WORKERS)
        self.registry = registry or default_registry()
        self.cancel_event = cancel_event or threading.Event()
        self.file_commits = dict(file_commits or {})
        self.commit_hash = commit_hash
        self.external_modules = external_modules

    def cancel(self) -> None:
        self.cancel_event.set()

    def _check_cancelled(self, stage: str) -> None:
        if self.cancel_event.is_set():
            logger.info("Scan of %s cancelled during %s", self.root, stage)
            raise ScanCancelled(f"Scan of {self.root} cancelled during {stage}")

    def _canonical_root(self) -> Path:
        try:
            root = self.root.expanduser().resolve(strict=True)
        except OSError as exc:
            raise RootAccessError(str(self.root), exc.strerror or "does not exist") from exc
        if not root.is_dir():
            raise RootAccessError(str(self.root), "not a directory")
        if not os.access(root, os.R_OK | os.X_OK):
            raise RootAccessError(str(self.root), "permission denied")
        return root

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def _parse_one(self, path: Path) -> Tuple[Optional[LocalGraph], Optional[ParseFailure]]:
        try:
            parser = self.registry.for_path(path)
        except UnsupportedLanguageError as exc:
            logger.warning("Skipping %s: %s", path, exc)
            return None, ParseFailure(path.as_posix(), "unsupported", str(exc))
        try:
            return parser.parse_file(path), None
        except FileReadError as exc:
            logger.warning("Skipping %s: %s", path, exc.reason)
            return None, ParseFailure(exc.path, "read", exc.reason)

    def _parse_all(self, paths: List[Path]) -> Tuple[List[LocalGraph], List[ParseFailure]]:
        local_graphs: List[LocalGraph] = []
        skipped: List[ParseFailure] = []
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="migrator-parse")
        try:
            futures = {executor.submit(self._parse_one, path): path for path in paths}
            for future in as_completed(futures):
                if self.cancel_event.is_set():
                    executor.shutdown(wait=False, cancel_futures=True)
                    self._check_cancelled("parsing")
                local, failure = future.result()
                if local is not None:
                    local_graphs.append(local)
                if failure is not None:
                    skipped.append(failure)
        finally:
            executor.shutdown(wait=True)
        return local_graphs, skipped

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    def _apply_commits(self, graph: ProjectGraph, root: Path) -> None:
        for key, commit in sorted(self.file_commits.items()):
            path = (root / key).resolve().as_posix()
            if graph.file_node_id(path) is None:
                logger.debug("Commit hash given for unscanned file %s", key)
                continue
            graph.set_file_commit(path, commit)

    def scan(self) -> ScanResult:
        root = self._canonical_root()
        scanned_at = datetime.now(timezone.utc).isoformat()
        self._check_cancelled("discovery")

        paths = discover_files(root, self.include, self.exclude)
        self._check_cancelled("discovery")
        logger.info("Parsing %d file(s) with %d worker(s)", len(paths), self.max_workers)
        local_graphs, skipped = self._parse_all(paths)
        self._check_cancelled("parsing")

        merge = GraphMerger().merge(local_graphs)
        graph = merge.graph
        graph.seal_nodes()

        module_map = ModuleMap(root.as_posix(), [m.file_path for m in merge.files], self.source_roots)
        index = SymbolIndex.build(graph, module_map)
        resolver = ImportResolver(graph, module_map, self.known_external, self.external_modules)
        resolutions: Dict[str, List[ImportResolution]] = {
            merged.file_path: resolver.resolve_all(merged.file_path, merged.local.imports)
            for merged in merge.files
        }
        link = CrossFileLinker(graph, index).link(merge.files, resolutions)
        self._apply_commits(graph, root)
        self._check_cancelled("linking")
        graph.freeze()

        syntax_failures = [error for merged in merge.files for error in merged.local.errors]
        diagnostics = ScanDiagnostics(
            parse_failures=sorted(skipped + syntax_failures, key=lambda f: (f.file_path, f.kind)),
            import_resolutions=[outcome for path in sorted(resolutions) for outcome in resolutions[path]],
            unresolved_references=link.unresolved,
        )
        report = ScanReport(
            root_path=root.as_posix(),
            scanned_at=scanned_at,
            commit_hash=self.commit_hash,
            files_discovered=len(paths),
            files_parsed=len(merge.files),
            skipped=sorted(skipped, key=lambda f: f.file_path),
            nodes=graph.node_count,
            edges=graph.edge_count,
            unresolved_imports=len(diagnostics.unresolved_imports),
            unresolved_calls=len(diagnostics.unresolved_calls),
            builtin_calls=link.builtin_calls,
        )
        logger.info(
            "Scan of %s finished: %d/%d file(s) parsed, %d nodes, %d edges",
            report.root_path, report.files_parsed, report.files_discovered, report.nodes, report.edges,
        )
        return ScanResult(graph=graph, diagnostics=diagnostics, report=report)


def scan_project(root: Path, **options: Any) -> ScanResult:
    """Run a one-off scan; ``options`` are passed to :class:`Scanner`."""
    return Scanner(root, **options).scan()
