"""Module mapping, symbol indexing and import classification.

Runs after merging, against a sealed :class:`~graph_migrator.graph.ProjectGraph`:

- :class:`ModuleMap` maps dotted module names to discovered project files
- :class:`SymbolIndex` maps ``(module, qualified name)`` to node ids and is
  immutable once built
- :class:`ImportResolver` classifies every import declaration as
  internal, external or unresolved

Relative imports are never resolved; they are reported as unresolved.
"""

from __future__ import annotations

import logging
import sys
from importlib import metadata
from pathlib import PurePosixPath
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from .graph import ProjectGraph
from .models import (
    FILE_QUALNAME,
    FromImport,
    ImportDeclaration,
    ImportResolution,
    ModuleImport,
    ResolutionKind,
)

logger = logging.getLogger(__name__)

SOURCE_SUFFIXES = (".py", ".pyi")


# ===================================================================
# Module map
# ===================================================================

def module_names_for(rel_path: str, source_roots: Sequence[str] = (".",)) -> List[str]:
    """Dotted module names a project-relative file is importable as.

    ``pkg/__init__.py`` maps to ``pkg``; ``src/pkg/mod.py`` maps to
    ``src.pkg.mod`` and, with ``"src"`` as a source root, ``pkg.mod``.
    """
    path = PurePosixPath(rel_path)
    if path.suffix not in SOURCE_SUFFIXES:
        return []

    names: List[str] = []
    for root in source_roots:
        if root in (".", ""):
            parts = list(path.parts)
        else:
            root_parts = PurePosixPath(root).parts
            if tuple(path.parts[:len(root_parts)]) != root_parts:
                continue
            parts = list(path.parts[len(root_parts):])
        if not parts:
            continue
        parts[-1] = PurePosixPath(parts[-1]).stem
        if parts[-1] == "__init__":
            parts.pop()
        if not parts or not all(p.isidentifier() for p in parts):
            continue
        name = ".".join(parts)
        if name not in names:
            names.append(name)
    return names


class ModuleMap:
    """Bidirectional mapping between dotted module names and file paths."""

    def __init__(
        self,
        root: str,
        file_paths: Iterable[str],
        source_roots: Sequence[str] = (".",),
    ) -> None:
        self.root = PurePosixPath(root)
        self._by_module: Dict[str, str] = {}
        self._by_file: Dict[str, Tuple[str, ...]] = {}

        for file_path in sorted(file_paths):
            try:
                rel = PurePosixPath(file_path).relative_to(self.root).as_posix()
            except ValueError:
                logger.debug("File outside project root ignored by module map: %s", file_path)
                continue
            names = module_names_for(rel, source_roots)
            accepted = []
            for name in names:
                if name in self._by_module:
                    logger.debug(
                        "Module %s already mapped to %s; ignoring %s",
                        name, self._by_module[name], file_path,
                    )
                    continue
                self._by_module[name] = file_path
                accepted.append(name)
            self._by_file[file_path] = tuple(accepted)

    def __contains__(self, module: object) -> bool:
        return module in self._by_module

    def __len__(self) -> int:
        return len(self._by_module)

    def file_for(self, module: str) -> Optional[str]:
        return self._by_module.get(module)

    def modules_for(self, file_path: str) -> Tuple[str, ...]:
        return self._by_file.get(file_path, ())

    @property
    def modules(self) -> Mapping[str, str]:
        return MappingProxyType(self._by_module)


# ===================================================================
# Symbol index
# ===================================================================

class SymbolIndex:
    """Immutable ``(module, qualified name) -> node id`` lookup for one scan."""

    def __init__(self, entries: Mapping[Tuple[str, str], str]) -> None:
        self._entries = MappingProxyType(dict(entries))

    @classmethod
    def build(cls, graph: ProjectGraph, module_map: ModuleMap) -> "SymbolIndex":
        entries: Dict[Tuple[str, str], str] = {}
        for node in graph.nodes:
            for module in module_map.modules_for(graph.provenance(node.id)):
                entries.setdefault((module, node.qualname), node.id)
        logger.debug("Symbol index built with %d entries", len(entries))
        return cls(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def lookup(self, module: str, name: str) -> Optional[str]:
        return self._entries.get((module, name))

    def module_node(self, module: str) -> Optional[str]:
        return self._entries.get((module, FILE_QUALNAME))


# ===================================================================
# Import classification
# ===================================================================

def default_external_modules() -> FrozenSet[str]:
    """Top-level names of the standard library and installed distributions."""
    names = set(sys.stdlib_module_names) | set(sys.builtin_module_names)
    try:
        names.update(metadata.packages_distributions())
    except Exception as exc:  # broken metadata of a single distribution
        logger.warning("Could not list installed distributions: %s", exc)
    return frozenset(names)


class ImportResolver:
    """Classify import declarations against the project module map."""

    def __init__(
        self,
        graph: ProjectGraph,
        module_map: ModuleMap,
        known_external: Iterable[str] = (),
        external_modules: Optional[FrozenSet[str]] = None,
    ) -> None:
        self.graph = graph
        self.module_map = module_map
        base = external_modules if external_modules is not None else default_external_modules()
        self._external = frozenset(base) | frozenset(known_external)

    def is_external(self, module: str) -> bool:
        return module.split(".")[0] in self._external

    def _file_node_for(self, module: str) -> Optional[str]:
        file_path = self.module_map.file_for(module)
        if file_path is None:
            return None
        return self.graph.file_node_id(file_path)

    def resolve(self, file_path: str, declaration: ImportDeclaration) -> List[ImportResolution]:
        if isinstance(declaration, ModuleImport):
            return [self._resolve_module(file_path, declaration, m.name) for m in declaration.modules]
        return [self._resolve_from(file_path, declaration)]

    def resolve_all(self, file_path: str, declarations: Iterable[ImportDeclaration]) -> List[ImportResolution]:
        outcomes: List[ImportResolution] = []
        for declaration in declarations:
            outcomes.extend(self.resolve(file_path, declaration))
        return outcomes

    def _resolve_module(self, file_path: str, declaration: ModuleImport, module: str) -> ImportResolution:
        target = self._file_node_for(module)
        if target is not None:
            return ImportResolution(file_path, declaration, module, ResolutionKind.INTERNAL, (target,))
        if self.is_external(module):
            return ImportResolution(file_path, declaration, module, ResolutionKind.EXTERNAL)
        return ImportResolution(
            file_path, declaration, module, ResolutionKind.UNRESOLVED, reason="module not found",
        )

    def _resolve_from(self, file_path: str, declaration: FromImport) -> ImportResolution:
        module = declaration.module
        if declaration.is_relative or module is None:
            label = "." * declaration.relative_level + (module or "")
            return ImportResolution(
                file_path, declaration, label, ResolutionKind.UNRESOLVED, reason="relative import",
            )

        targets: List[str] = []
        module_target = self._file_node_for(module)
        if module_target is not None:
            targets.append(module_target)
        for imported in declaration.names:
            if imported.is_wildcard:
                continue
            # ``from pkg import mod`` may name a sub-module file.
            sub_target = self._file_node_for(f"{module}.{imported.name}")
            if sub_target is not None and sub_target not in targets:
                targets.append(sub_target)

        if targets:
            return ImportResolution(file_path, declaration, module, ResolutionKind.INTERNAL, tuple(targets))
        if self.is_external(module):
            return ImportResolution(file_path, declaration, module, ResolutionKind.EXTERNAL)
        return ImportResolution(
            file_path, declaration, module, ResolutionKind.UNRESOLVED, reason="module not found",
        )

