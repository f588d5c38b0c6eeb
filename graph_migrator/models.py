"""Core data models shared by parsing, merging, resolution and persistence."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

# Qualified name given to the implicit node representing a whole file.
FILE_QUALNAME = "<module>"


class NodeKind(str, Enum):
    FILE = "file"
    MODULE = "module"
    CLASS = "class"
    FUNCTION = "function"
    GLOBAL_VARIABLE = "global_variable"


class EdgeKind(str, Enum):
    CONTAINS = "contains"
    CALLS = "calls"
    IMPORTS = "imports"
    INHERITS = "inherits"


def make_node_id(canonical_path: str, qualname: str) -> str:
    """Build the global identifier ``canonical_path::qualname``."""
    return f"{canonical_path}::{qualname}"


def can_bind(target_kind: NodeKind, reference_kind: EdgeKind) -> bool:
    """Whether a reference of *reference_kind* may target a node of *target_kind*.

    Calls bind to functions and classes (instantiation), bases to classes.
    """
    if reference_kind is EdgeKind.INHERITS:
        return target_kind is NodeKind.CLASS
    return target_kind in (NodeKind.FUNCTION, NodeKind.CLASS)


@dataclass(frozen=True)
class Node:
    id: str
    name: str
    kind: NodeKind
    language: str
    file_path: str
    qualname: str
    line_range: Optional[Tuple[int, int]] = None
    byte_range: Optional[Tuple[int, int]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "language": self.language,
            "file_path": self.file_path,
            "qualname": self.qualname,
            "line_range": list(self.line_range) if self.line_range else None,
            "byte_range": list(self.byte_range) if self.byte_range else None,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Node":
        line_range = payload.get("line_range")
        byte_range = payload.get("byte_range")
        return cls(
            id=payload["id"],
            name=payload["name"],
            kind=NodeKind(payload["kind"]),
            language=payload["language"],
            file_path=payload["file_path"],
            qualname=payload["qualname"],
            line_range=tuple(line_range) if line_range else None,
            byte_range=tuple(byte_range) if byte_range else None,
        )


@dataclass(frozen=True)
class Edge:
    source_id: str
    target_id: str
    kind: EdgeKind

    def to_dict(self) -> Dict[str, str]:
        return {"source_id": self.source_id, "target_id": self.target_id, "kind": self.kind.value}

    @classmethod
    def from_dict(cls, payload: Dict[str, str]) -> "Edge":
        return cls(payload["source_id"], payload["target_id"], EdgeKind(payload["kind"]))


# ---------------------------------------------------------------------------
# Import declarations
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SourceRange:
    """Byte offsets are half-open; lines are 1-based and inclusive."""

    start_byte: int
    end_byte: int
    start_line: int
    end_line: int


@dataclass(frozen=True)
class ImportedModule:
    name: str
    alias: Optional[str] = None


@dataclass(frozen=True)
class ImportedName:
    name: str
    alias: Optional[str] = None
    is_wildcard: bool = False

    @property
    def bound_name(self) -> str:
        return self.alias or self.name


@dataclass(frozen=True)
class ModuleImport:
    """``import a.b, c as d``"""

    modules: Tuple[ImportedModule, ...]
    span: SourceRange

    form = "import"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "form": self.form,
            "modules": [asdict(m) for m in self.modules],
            "span": asdict(self.span),
        }


@dataclass(frozen=True)
class FromImport:
    """``from ..pkg.mod import a, b as c`` or ``from mod import *``"""

    module: Optional[str]
    relative_level: int
    names: Tuple[ImportedName, ...]
    span: SourceRange

    form = "from"

    @property
    def is_relative(self) -> bool:
        return self.relative_level > 0

    @property
    def is_wildcard(self) -> bool:
        return any(n.is_wildcard for n in self.names)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "form": self.form,
            "module": self.module,
            "relative_level": self.relative_level,
            "names": [asdict(n) for n in self.names],
            "span": asdict(self.span),
        }


ImportDeclaration = Union[ModuleImport, FromImport]


def import_from_dict(payload: Dict[str, Any]) -> ImportDeclaration:
    span = SourceRange(**payload["span"])
    if payload["form"] == "import":
        return ModuleImport(
            modules=tuple(ImportedModule(**m) for m in payload["modules"]),
            span=span,
        )
    if payload["form"] == "from":
        return FromImport(
            module=payload["module"],
            relative_level=payload["relative_level"],
            names=tuple(ImportedName(**n) for n in payload["names"]),
            span=span,
        )
    raise ValueError(f"Unknown import form: {payload['form']!r}")


# ---------------------------------------------------------------------------
# Local (single-file) graph
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LocalSymbol:
    name: str
    qualname: str
    kind: NodeKind
    line_range: Optional[Tuple[int, int]] = None
    byte_range: Optional[Tuple[int, int]] = None


@dataclass(frozen=True)
class LocalEdge:
    """Edge between two entries of ``LocalGraph.symbols`` by index."""

    source: int
    target: int
    kind: EdgeKind


@dataclass(frozen=True)
class PendingReference:
    """A call or base-class reference the parser could not bind in-file.

    ``name`` is a bare identifier, a dotted path such as ``os.path.join``,
    or ``<node-type>`` for call targets that are computed at runtime.
    """

    source: int
    name: str
    kind: EdgeKind
    line: int

    @property
    def is_simple(self) -> bool:
        return self.name.isidentifier()

    @property
    def is_dynamic(self) -> bool:
        return self.name.startswith("<")


@dataclass
class LocalGraph:
    """Everything one file contributes before merging.

    ``symbols[0]`` is always the file node.
    """

    file_path: str
    language: str
    symbols: List[LocalSymbol] = field(default_factory=list)
    edges: List[LocalEdge] = field(default_factory=list)
    imports: List[ImportDeclaration] = field(default_factory=list)
    references: List[PendingReference] = field(default_factory=list)
    errors: List["ParseFailure"] = field(default_factory=list)

    @property
    def file_symbol(self) -> LocalSymbol:
        return self.symbols[0]


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------

class ResolutionKind(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class ParseFailure:
    file_path: str
    kind: str  # "read", "syntax" or "unsupported"
    reason: str
    line: Optional[int] = None


@dataclass(frozen=True)
class ImportResolution:
    file_path: str
    declaration: ImportDeclaration
    module_name: Optional[str]
    kind: ResolutionKind
    target_ids: Tuple[str, ...] = ()
    reason: str = ""


@dataclass(frozen=True)
class UnresolvedReference:
    file_path: str
    source_id: str
    name: str
    kind: EdgeKind
    line: int
    reason: str


@dataclass
class ScanDiagnostics:
    parse_failures: List[ParseFailure] = field(default_factory=list)
    import_resolutions: List[ImportResolution] = field(default_factory=list)
    unresolved_references: List[UnresolvedReference] = field(default_factory=list)

    @property
    def unresolved_imports(self) -> List[ImportResolution]:
        return [r for r in self.import_resolutions if r.kind is ResolutionKind.UNRESOLVED]

    @property
    def unresolved_calls(self) -> List[UnresolvedReference]:
        return [r for r in self.unresolved_references if r.kind is EdgeKind.CALLS]

    def is_clean(self) -> bool:
        return not (self.parse_failures or self.unresolved_imports or self.unresolved_references)
