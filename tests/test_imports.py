"""Tests for structured import extraction."""

import textwrap

import pytest

from graph_migrator.imports import extract_imports
from graph_migrator.models import (
    FromImport,
    ImportedModule,
    ImportedName,
    ModuleImport,
    SourceRange,
    import_from_dict,
)


def _extract(parser, source: str):
    tree = parser.parse_tree(source.encode("utf-8"))
    return extract_imports(tree.root_node)


def _span(statement: str) -> SourceRange:
    return SourceRange(start_byte=0, end_byte=len(statement), start_line=1, end_line=1)


CASES = [
    ("import os", lambda s: ModuleImport((ImportedModule("os"),), s)),
    ("import numpy as np", lambda s: ModuleImport((ImportedModule("numpy", "np"),), s)),
    ("import os, sys", lambda s: ModuleImport((ImportedModule("os"), ImportedModule("sys")), s)),
    ("import os.path", lambda s: ModuleImport((ImportedModule("os.path"),), s)),
    ("from os import path", lambda s: FromImport("os", 0, (ImportedName("path"),), s)),
    (
        "from module import *",
        lambda s: FromImport("module", 0, (ImportedName("*", is_wildcard=True),), s),
    ),
    ("from . import helper", lambda s: FromImport(None, 1, (ImportedName("helper"),), s)),
    (
        "from ..pkg.mod import a, b as c",
        lambda s: FromImport("pkg.mod", 2, (ImportedName("a"), ImportedName("b", "c")), s),
    ),
    (
        "from __future__ import annotations",
        lambda s: FromImport("__future__", 0, (ImportedName("annotations"),), s),
    ),
]


@pytest.mark.parametrize("statement,expected", CASES, ids=[c[0] for c in CASES])
def test_import_variants(python_parser, statement, expected):
    """Every variant is captured exactly, including aliases and depth."""
    declarations = _extract(python_parser, statement + "\n")

    assert declarations == [expected(_span(statement))]


@pytest.mark.parametrize("statement,expected", CASES, ids=[c[0] for c in CASES])
def test_declarations_serialise_losslessly(python_parser, statement, expected):
    (declaration,) = _extract(python_parser, statement + "\n")

    assert import_from_dict(declaration.to_dict()) == declaration


def test_parenthesised_multiline_from_import(python_parser):
    source = "from pkg.mod import (\n    first,\n    second as two,\n)\n"
    (declaration,) = _extract(python_parser, source)

    assert declaration.module == "pkg.mod"
    assert declaration.names == (ImportedName("first"), ImportedName("second", "two"))
    assert declaration.span.start_line == 1
    assert declaration.span.end_line == 4


def test_nested_imports_in_source_order(python_parser):
    """Imports inside functions, try and if blocks are collected too."""
    source = textwrap.dedent("""
        import os

        try:
            import json
        except ImportError:
            json = None

        def load():
            from module_a import helper
            return helper()

        if os.name == "nt":
            import sys
    """)
    declarations = _extract(python_parser, source)

    names = []
    for decl in declarations:
        if isinstance(decl, ModuleImport):
            names.extend(m.name for m in decl.modules)
        else:
            names.append(decl.module)
    assert names == ["os", "json", "module_a", "sys"]
    assert [d.span.start_line for d in declarations] == [2, 5, 10, 14]


def test_relative_without_module(python_parser):
    (declaration,) = _extract(python_parser, "from .. import sibling\n")

    assert declaration.module is None
    assert declaration.relative_level == 2
    assert declaration.is_relative


def test_wildcard_flag(python_parser):
    (declaration,) = _extract(python_parser, "from module_a import *\n")

    assert declaration.is_wildcard
    assert not declaration.is_relative


def test_no_imports(python_parser):
    assert _extract(python_parser, "x = 1\n") == []


def test_unknown_form_rejected():
    with pytest.raises(ValueError):
        import_from_dict({"form": "include", "span": {
            "start_byte": 0, "end_byte": 1, "start_line": 1, "end_line": 1,
        }})
