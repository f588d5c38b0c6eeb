"""Structured import extraction from a tree-sitter Python syntax tree.

Produces :class:`~graph_migrator.models.ModuleImport` and
:class:`~graph_migrator.models.FromImport` values in source order without
attempting any resolution, so that later passes never need the source
again.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from .models import (
    FromImport,
    ImportDeclaration,
    ImportedModule,
    ImportedName,
    ModuleImport,
    SourceRange,
)

logger = logging.getLogger(__name__)

IMPORT_NODE_TYPES = ("import_statement", "import_from_statement", "future_import_statement")


def source_range(ts_node: Any) -> SourceRange:
    return SourceRange(
        start_byte=ts_node.start_byte,
        end_byte=ts_node.end_byte,
        start_line=ts_node.start_point[0] + 1,
        end_line=ts_node.end_point[0] + 1,
    )


def _text(ts_node: Any) -> str:
    return ts_node.text.decode("utf-8", errors="replace")


def extract_imports(root: Any) -> List[ImportDeclaration]:
    """Walk the whole tree (not only top level) and collect import statements."""
    declarations: List[ImportDeclaration] = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type in IMPORT_NODE_TYPES:
            decl = _convert(node)
            if decl is not None:
                declarations.append(decl)
            continue
        # Reverse so that children are visited in source order.
        stack.extend(reversed(node.children))
    return declarations


def _convert(node: Any) -> Optional[ImportDeclaration]:
    if node.type == "import_statement":
        modules = tuple(
            m for m in (_imported_module(n) for n in node.children_by_field_name("name"))
            if m is not None
        )
        if not modules:
            logger.debug("Skipping empty import at line %d", node.start_point[0] + 1)
            return None
        return ModuleImport(modules=modules, span=source_range(node))

    if node.type == "future_import_statement":
        return FromImport(
            module="__future__",
            relative_level=0,
            names=_imported_names(node),
            span=source_range(node),
        )

    module_node = node.child_by_field_name("module_name")
    if module_node is None:
        return None
    module, level = _module_reference(module_node)
    return FromImport(
        module=module,
        relative_level=level,
        names=_imported_names(node),
        span=source_range(node),
    )


def _imported_module(node: Any) -> Optional[ImportedModule]:
    if node.type == "dotted_name":
        return ImportedModule(name=_text(node))
    if node.type == "aliased_import":
        name_node = node.child_by_field_name("name")
        alias_node = node.child_by_field_name("alias")
        if name_node is None:
            return None
        return ImportedModule(
            name=_text(name_node),
            alias=_text(alias_node) if alias_node is not None else None,
        )
    return None


def _imported_names(stmt: Any) -> Tuple[ImportedName, ...]:
    for child in stmt.children:
        if child.type == "wildcard_import":
            return (ImportedName(name="*", is_wildcard=True),)

    names: List[ImportedName] = []
    for node in stmt.children_by_field_name("name"):
        if node.type == "aliased_import":
            name_node = node.child_by_field_name("name")
            alias_node = node.child_by_field_name("alias")
            if name_node is None:
                continue
            names.append(ImportedName(
                name=_text(name_node),
                alias=_text(alias_node) if alias_node is not None else None,
            ))
        else:
            names.append(ImportedName(name=_text(node)))
    return tuple(names)


def _module_reference(node: Any) -> Tuple[Optional[str], int]:
    """Return ``(module, relative_level)`` for a from-import module reference."""
    if node.type == "relative_import":
        level = 0
        module: Optional[str] = None
        for child in node.children:
            if child.type == "import_prefix":
                level = _text(child).count(".")
            elif child.type == "dotted_name":
                module = _text(child)
        return module, level
    return _text(node), 0
