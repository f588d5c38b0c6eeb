"""Exception hierarchy for graph construction."""

from __future__ import annotations

from typing import Optional


class GraphMigratorError(Exception):
    """Base class for every error raised by graph_migrator."""


class FileReadError(GraphMigratorError):
    """A single source file could not be read. Non-fatal for a scan."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


class SourceSyntaxError(GraphMigratorError):
    """A source file is malformed. The file still yields a partial graph."""

    def __init__(self, path: str, reason: str, line: Optional[int] = None) -> None:
        where = f"{path}:{line}" if line is not None else path
        super().__init__(f"Syntax error in {where}: {reason}")
        self.path = path
        self.reason = reason
        self.line = line


class UnsupportedLanguageError(GraphMigratorError):
    def __init__(self, path: str) -> None:
        super().__init__(f"No parser registered for {path}")
        self.path = path


class IdentifierCollision(GraphMigratorError):
    """Two distinct symbols produced the same global identifier.

    Identifiers embed the canonical file path, so this only happens when an
    internal invariant is broken. Scans abort when it is raised.
    """

    def __init__(self, node_id: str, existing_file: str, incoming_file: str) -> None:
        super().__init__(
            f"Identifier collision for {node_id!r}: "
            f"already defined by {existing_file}, redefined by {incoming_file}"
        )
        self.node_id = node_id
        self.existing_file = existing_file
        self.incoming_file = incoming_file


class RootAccessError(GraphMigratorError):
    def __init__(self, root: str, reason: str) -> None:
        super().__init__(f"Cannot scan {root}: {reason}")
        self.root = root
        self.reason = reason


class ScanCancelled(GraphMigratorError):
    """The scan was cancelled before a graph could be published."""


class GraphFrozenError(GraphMigratorError, RuntimeError):
    """Mutation attempted on a sealed or frozen ProjectGraph."""


class NodeNotFound(GraphMigratorError, KeyError):
    def __init__(self, node_id: str) -> None:
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"Node not found: {self.node_id}"
