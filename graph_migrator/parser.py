"""Per-language source parsers built on Tree-sitter.

Each supported language implements :class:`LanguageParser` and registers
itself in a :class:`ParserRegistry` under its language tag. A parser turns
one file into a :class:`~graph_migrator.models.LocalGraph`:

- one symbol for the file itself plus one per top-level function, class
  and simple global assignment
- ``contains`` edges from the file symbol to each top-level symbol
- ``calls`` / ``inherits`` edges whose target is a top-level symbol of the
  same file, matched by bare identifier
- every other call or base-class reference as a pending reference for the
  cross-file pass
- the file's import declarations

Tree-sitter is error tolerant, so malformed files still yield a partial
graph together with a ``syntax`` failure record.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

import tree_sitter_python
from tree_sitter import Language, Parser as TSParser

from . import config
from .errors import FileReadError, SourceSyntaxError, UnsupportedLanguageError
from .imports import extract_imports
from .models import (
    FILE_QUALNAME,
    EdgeKind,
    LocalEdge,
    LocalGraph,
    LocalSymbol,
    NodeKind,
    ParseFailure,
    PendingReference,
    can_bind,
)

logger = logging.getLogger(__name__)

# ===================================================================
# Abstract Parser Interface
# ===================================================================

class LanguageParser(ABC):
    """Capability interface implemented once per source language."""

    language: str = ""

    @abstractmethod
    def parse_source(self, file_path: str, source: bytes) -> LocalGraph:
        """Parse *source* belonging to the canonical *file_path*."""
        ...

    def parse_file(self, path: Path, strict: bool = False) -> LocalGraph:
        """Read and parse one file.

        Raises :class:`FileReadError` when the file cannot be read. With
        ``strict=True`` a syntax problem raises :class:`SourceSyntaxError`
        instead of being recorded on the returned graph.
        """
        try:
            canonical = path.resolve(strict=True)
            source = canonical.read_bytes()
        except OSError as exc:
            raise FileReadError(str(path), exc.strerror or str(exc)) from exc

        local = self.parse_source(canonical.as_posix(), source)
        if strict and local.errors:
            first = local.errors[0]
            raise SourceSyntaxError(first.file_path, first.reason, first.line)
        return local


class ParserRegistry:
    """Maps language tags to parser implementations."""

    def __init__(self, language_map: Optional[Dict[str, str]] = None) -> None:
        self._parsers: Dict[str, LanguageParser] = {}
        self._language_map = dict(language_map if language_map is not None else config.LANGUAGE_MAP)

    def register(self, parser: LanguageParser) -> None:
        self._parsers[parser.language] = parser

    def supports_language(self, language: str) -> bool:
        return language in self._parsers

    def language_for(self, path: Path) -> Optional[str]:
        return self._language_map.get(path.suffix)

    def for_language(self, language: str) -> LanguageParser:
        try:
            return self._parsers[language]
        except KeyError:
            raise UnsupportedLanguageError(language) from None

    def for_path(self, path: Path) -> LanguageParser:
        language = self.language_for(path)
        if language is None or language not in self._parsers:
            raise UnsupportedLanguageError(str(path))
        return self._parsers[language]


def default_registry() -> ParserRegistry:
    registry = ParserRegistry()
    registry.register(PythonParser())
    return registry


# ===================================================================
# Tree-sitter Python parser
# ===================================================================

class PythonParser(LanguageParser):
    """Python parser backed by ``tree-sitter-python``.

    Tree-sitter ``Parser`` objects are not safe to share between threads,
    so one is created lazily per worker thread.
    """

    language = "python"

    def __init__(self) -> None:
        self._ts_language = Language(tree_sitter_python.language())
        self._local = threading.local()

    def _parser(self) -> TSParser:
        parser = getattr(self._local, "parser", None)
        if parser is None:
            parser = TSParser(self._ts_language)
            self._local.parser = parser
        return parser

    def parse_tree(self, source: bytes) -> Any:
        return self._parser().parse(source)

    # ------------------------------------------------------------------
    # File-level parsing
    # ------------------------------------------------------------------

    def parse_source(self, file_path: str, source: bytes) -> LocalGraph:
        tree = self.parse_tree(source)
        root = tree.root_node

        local = LocalGraph(file_path=file_path, language=self.language)
        local.symbols.append(LocalSymbol(
            name=Path(file_path).name,
            qualname=FILE_QUALNAME,
            kind=NodeKind.FILE,
            line_range=(1, max(root.end_point[0] + 1, 1)),
            byte_range=(0, len(source)),
        ))

        by_name: Dict[str, int] = {}
        bodies: List[Tuple[int, Any]] = []
        for outer, definition in _top_level_definitions(root):
            for name, kind in _definition_names(definition):
                if name in by_name:
                    logger.debug("Redeclaration of %s in %s; first definition kept", name, file_path)
                    kept = by_name[name]
                    # A redefinition's references only count when it keeps the same kind.
                    if kind is not NodeKind.GLOBAL_VARIABLE and local.symbols[kept].kind is kind:
                        bodies.append((kept, definition))
                    continue
                index = len(local.symbols)
                local.symbols.append(LocalSymbol(
                    name=name,
                    qualname=name,
                    kind=kind,
                    line_range=(outer.start_point[0] + 1, outer.end_point[0] + 1),
                    byte_range=(outer.start_byte, outer.end_byte),
                ))
                local.edges.append(LocalEdge(0, index, EdgeKind.CONTAINS))
                by_name[name] = index
                if kind is not NodeKind.GLOBAL_VARIABLE:
                    bodies.append((index, definition))

        seen: Set[LocalEdge] = set(local.edges)
        for owner, definition in bodies:
            for name, kind, line in _references(definition):
                target = by_name.get(name)
                if target is not None and can_bind(local.symbols[target].kind, kind):
                    edge = LocalEdge(owner, target, kind)
                    if edge not in seen:
                        seen.add(edge)
                        local.edges.append(edge)
                else:
                    local.references.append(PendingReference(owner, name, kind, line))

        local.imports = extract_imports(root)

        if root.has_error:
            line, reason = _first_error(root)
            logger.warning("Syntax error in %s at line %s: %s", file_path, line, reason)
            local.errors.append(ParseFailure(file_path, "syntax", reason, line))

        return local


# ===================================================================
# Tree helpers
# ===================================================================

def _text(ts_node: Any) -> str:
    return ts_node.text.decode("utf-8", errors="replace")


def _top_level_definitions(root: Any) -> Iterator[Tuple[Any, Any]]:
    """Yield ``(outer, definition)`` for each top-level statement of interest.

    ``outer`` includes decorators, ``definition`` is the unwrapped node.
    """
    for child in root.children:
        definition = child
        if child.type == "decorated_definition":
            definition = child.child_by_field_name("definition")
            if definition is None:
                continue
        if definition.type in ("function_definition", "class_definition", "expression_statement"):
            yield child, definition


def _definition_names(definition: Any) -> List[Tuple[str, NodeKind]]:
    if definition.type in ("function_definition", "class_definition"):
        name_node = definition.child_by_field_name("name")
        if name_node is None:
            return []
        kind = NodeKind.FUNCTION if definition.type == "function_definition" else NodeKind.CLASS
        return [(_text(name_node), kind)]

    names: List[Tuple[str, NodeKind]] = []
    for expr in definition.named_children:
        # ``a = b = 1`` nests the second assignment on the right-hand side.
        while expr is not None and expr.type == "assignment":
            left = expr.child_by_field_name("left")
            if left is not None and left.type == "identifier":
                names.append((_text(left), NodeKind.GLOBAL_VARIABLE))
            expr = expr.child_by_field_name("right")
    return names


def _references(definition: Any) -> Iterator[Tuple[str, EdgeKind, int]]:
    """Yield ``(name, kind, line)`` for calls in a function body or class bases."""
    if definition.type == "class_definition":
        bases = definition.child_by_field_name("superclasses")
        if bases is None:
            return
        for base in bases.named_children:
            if base.type in ("identifier", "attribute"):
                yield call_target_name(base), EdgeKind.INHERITS, base.start_point[0] + 1
        return

    body = definition.child_by_field_name("body")
    if body is None:
        return
    stack = [body]
    while stack:
        node = stack.pop()
        if node.type == "call":
            func = node.child_by_field_name("function")
            if func is not None:
                yield call_target_name(func), EdgeKind.CALLS, node.start_point[0] + 1
        stack.extend(reversed(node.children))


def call_target_name(func_node: Any) -> str:
    """Name of a call target: ``foo``, ``os.path.join`` or ``<subscript>``."""
    if func_node.type == "identifier":
        return _text(func_node)
    if func_node.type == "attribute":
        dotted = _dotted_name(func_node)
        if dotted is not None:
            return dotted
    return f"<{func_node.type}>"


def _dotted_name(node: Any) -> Optional[str]:
    if node.type == "identifier":
        return _text(node)
    if node.type == "attribute":
        obj = node.child_by_field_name("object")
        attr = node.child_by_field_name("attribute")
        if obj is None or attr is None:
            return None
        head = _dotted_name(obj)
        if head is None:
            return None
        return f"{head}.{_text(attr)}"
    return None


def _first_error(root: Any) -> Tuple[Optional[int], str]:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR":
            return node.start_point[0] + 1, "invalid syntax"
        if node.is_missing:
            return node.start_point[0] + 1, f"missing {node.type}"
        if node.has_error:
            stack.extend(reversed(node.children))
    return None, "invalid syntax"
