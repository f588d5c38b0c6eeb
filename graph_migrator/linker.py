"""Cross-file edge construction.

Uses import resolution outcomes and the symbol index to add:

- ``imports`` edges between file nodes (at most one per ordered file pair)
- ``calls`` / ``inherits`` edges for bare-identifier references bound by
  ``from module import name [as alias]`` to a symbol of another file

Attribute references (``mod.func()``, ``obj.method()``), runtime-computed
targets, builtins and names that could only come from a star import are
never turned into edges; they are reported with a reason instead.
"""

from __future__ import annotations

import builtins
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Set, Tuple

from .graph import ProjectGraph
from .merger import MergedFile
from .models import (
    EdgeKind,
    FromImport,
    ImportResolution,
    ModuleImport,
    PendingReference,
    ResolutionKind,
    UnresolvedReference,
    can_bind,
)
from .resolver import SymbolIndex

logger = logging.getLogger(__name__)

BUILTIN_NAMES: FrozenSet[str] = frozenset(dir(builtins))


@dataclass
class LinkReport:
    unresolved: List[UnresolvedReference] = field(default_factory=list)
    builtin_calls: int = 0
    edges_added: Counter = field(default_factory=Counter)


@dataclass
class _FileBindings:
    """Names a file binds through its import statements."""

    internal: Dict[str, List[Tuple[str, str]]] = field(default_factory=dict)
    external: Set[str] = field(default_factory=set)
    unresolved: Set[str] = field(default_factory=set)
    has_star_import: bool = False


def _collect_bindings(resolutions: Iterable[ImportResolution]) -> _FileBindings:
    bindings = _FileBindings()
    for outcome in resolutions:
        declaration = outcome.declaration
        if isinstance(declaration, ModuleImport):
            # Module objects are never call or base targets themselves.
            for imported in declaration.modules:
                if imported.name != outcome.module_name:
                    continue
                bound = imported.alias or imported.name.split(".")[0]
                if outcome.kind is ResolutionKind.EXTERNAL:
                    bindings.external.add(bound)
                else:
                    bindings.unresolved.add(bound)
            continue

        assert isinstance(declaration, FromImport)
        for imported in declaration.names:
            if imported.is_wildcard:
                bindings.has_star_import = True
                continue
            if outcome.kind is ResolutionKind.INTERNAL and outcome.module_name is not None:
                pairs = bindings.internal.setdefault(imported.bound_name, [])
                pair = (outcome.module_name, imported.name)
                if pair not in pairs:
                    pairs.append(pair)
            elif outcome.kind is ResolutionKind.EXTERNAL:
                bindings.external.add(imported.bound_name)
            else:
                bindings.unresolved.add(imported.bound_name)
    return bindings


class CrossFileLinker:
    """Second resolution pass over a sealed graph and frozen symbol index."""

    def __init__(self, graph: ProjectGraph, index: SymbolIndex) -> None:
        self.graph = graph
        self.index = index

    def link(
        self,
        files: Iterable[MergedFile],
        resolutions: Mapping[str, List[ImportResolution]],
    ) -> LinkReport:
        report = LinkReport()
        for merged in sorted(files, key=lambda m: m.file_path):
            outcomes = resolutions.get(merged.file_path, [])
            self._link_imports(merged, outcomes, report)
            bindings = _collect_bindings(outcomes)
            for reference in merged.local.references:
                self._link_reference(merged, reference, bindings, report)

        logger.info(
            "Cross-file linking added %d edge(s); %d reference(s) unresolved",
            sum(report.edges_added.values()), len(report.unresolved),
        )
        return report

    def _link_imports(self, merged: MergedFile, outcomes: List[ImportResolution], report: LinkReport) -> None:
        for outcome in outcomes:
            if outcome.kind is not ResolutionKind.INTERNAL:
                continue
            for target in outcome.target_ids:
                if self.graph.add_edge(merged.file_node_id, target, EdgeKind.IMPORTS):
                    report.edges_added[EdgeKind.IMPORTS] += 1

    def _candidates(self, pairs: List[Tuple[str, str]], kind: EdgeKind) -> List[str]:
        found: List[str] = []
        for module, name in pairs:
            node_id = self.index.lookup(module, name)
            if node_id is None or node_id in found:
                continue
            if can_bind(self.graph.get_node(node_id).kind, kind):
                found.append(node_id)
        return sorted(found, key=lambda node_id: (self.graph.provenance(node_id), node_id))

    def _link_reference(
        self,
        merged: MergedFile,
        reference: PendingReference,
        bindings: _FileBindings,
        report: LinkReport,
    ) -> None:
        source_id = merged.node_ids[reference.source]
        name = reference.name

        if reference.is_dynamic:
            reason = "dynamic"
        elif not reference.is_simple:
            reason = "attribute"
        elif name in bindings.internal:
            candidates = self._candidates(bindings.internal[name], reference.kind)
            if candidates:
                if len(candidates) > 1:
                    logger.debug("Ambiguous reference %s in %s; using %s", name, merged.file_path, candidates[0])
                if self.graph.add_edge(source_id, candidates[0], reference.kind):
                    report.edges_added[reference.kind] += 1
                return
            reason = "not-found"
        elif name in bindings.external:
            reason = "external"
        elif name in bindings.unresolved:
            reason = "not-found"
        elif reference.kind is EdgeKind.CALLS and name in BUILTIN_NAMES:
            report.builtin_calls += 1
            reason = "builtin"
        elif bindings.has_star_import:
            reason = "star-import"
        else:
            reason = "not-found"

        logger.debug("Unresolved %s reference %s at %s:%d (%s)",
                     reference.kind.value, name, merged.file_path, reference.line, reason)
        report.unresolved.append(UnresolvedReference(
            file_path=merged.file_path,
            source_id=source_id,
            name=name,
            kind=reference.kind,
            line=reference.line,
            reason=reason,
        ))
