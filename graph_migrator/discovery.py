"""Gitignore-aware source file discovery.

Walks a project root top-down, pruning ignored directories before
descending so that nothing below an ignored subtree is ever visited, and
keeps regular files matching at least one include pattern.

Ignore sources, in order of discovery:

- ``.git/info/exclude`` of the root repository
- ``.gitignore`` at the root and in every visited sub-directory, with
  patterns relative to the directory holding the file
- extra exclude patterns supplied by the caller (config ``[scan] exclude``)

Negations (``!pattern``) only apply within the file that declares them.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set, Tuple

import pathspec

logger = logging.getLogger(__name__)

ALWAYS_SKIPPED_DIRS: Set[str] = {".git"}


def build_spec(patterns: Iterable[str]) -> pathspec.GitIgnoreSpec:
    """Compile gitignore-style patterns. Raises ``ValueError`` on bad syntax."""
    return pathspec.GitIgnoreSpec.from_lines(patterns)


def _read_ignore_file(path: Path) -> Optional[pathspec.GitIgnoreSpec]:
    try:
        lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError as exc:
        logger.warning("Cannot read ignore file %s: %s", path, exc)
        return None
    try:
        return build_spec(lines)
    except ValueError as exc:
        logger.warning("Skipping malformed ignore file %s: %s", path, exc)
        return None


class IgnoreRules:
    """Stack of ignore specs, each anchored at a project-relative directory."""

    def __init__(self) -> None:
        self._specs: List[Tuple[str, pathspec.GitIgnoreSpec]] = []

    def add(self, base: str, spec: pathspec.GitIgnoreSpec) -> None:
        self._specs.append((base, spec))

    def is_ignored(self, rel_path: str, is_dir: bool = False) -> bool:
        candidate = rel_path + "/" if is_dir else rel_path
        for base, spec in self._specs:
            if base:
                if not candidate.startswith(base + "/"):
                    continue
                local = candidate[len(base) + 1:]
            else:
                local = candidate
            if local and spec.match_file(local):
                return True
        return False


def discover_files(
    root: Path,
    patterns: Sequence[str],
    exclude: Sequence[str] = (),
) -> List[Path]:
    """Return absolute paths of files under *root* matching any of *patterns*.

    A pattern that matches nothing is not an error. A root that does not
    exist yields an empty list; callers that need to fail on an
    inaccessible root check it first.
    """
    try:
        canonical_root = root.resolve(strict=True)
    except OSError:
        logger.warning("Discovery root does not exist: %s", root)
        return []
    if not canonical_root.is_dir():
        return []

    include = build_spec(patterns)
    rules = IgnoreRules()

    git_exclude = canonical_root / ".git" / "info" / "exclude"
    if git_exclude.is_file():
        spec = _read_ignore_file(git_exclude)
        if spec is not None:
            rules.add("", spec)
    if exclude:
        rules.add("", build_spec(exclude))

    found: List[Path] = []

    def _on_error(err: OSError) -> None:
        logger.warning("Error walking directory: %s", err)

    for dirpath, dirnames, filenames in os.walk(canonical_root, onerror=_on_error):
        current = Path(dirpath)
        rel_dir = current.relative_to(canonical_root).as_posix()
        if rel_dir == ".":
            rel_dir = ""

        gitignore = current / ".gitignore"
        if gitignore.is_file():
            spec = _read_ignore_file(gitignore)
            if spec is not None:
                rules.add(rel_dir, spec)

        kept_dirs = []
        for name in sorted(dirnames):
            if name in ALWAYS_SKIPPED_DIRS:
                continue
            rel = f"{rel_dir}/{name}" if rel_dir else name
            if rules.is_ignored(rel, is_dir=True):
                logger.debug("Pruned ignored directory %s", rel)
                continue
            kept_dirs.append(name)
        dirnames[:] = kept_dirs

        for name in sorted(filenames):
            full = current / name
            rel = f"{rel_dir}/{name}" if rel_dir else name
            if not full.is_file():
                continue
            if rules.is_ignored(rel):
                continue
            if include.match_file(rel):
                found.append(full)

    logger.info("Discovered %d file(s) under %s", len(found), canonical_root)
    return found
