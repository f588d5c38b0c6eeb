"""Tests for the ProjectGraph arena."""

import pytest

from graph_migrator.errors import GraphFrozenError, NodeNotFound
from graph_migrator.graph import ProjectGraph
from graph_migrator.models import Edge, EdgeKind, Node, NodeKind, make_node_id


def _node(path: str, qualname: str, kind: NodeKind = NodeKind.FUNCTION) -> Node:
    name = path.rsplit("/", 1)[-1] if kind is NodeKind.FILE else qualname
    return Node(make_node_id(path, qualname), name, kind, "python", path, qualname)


@pytest.fixture
def small_graph() -> ProjectGraph:
    graph = ProjectGraph()
    graph.add_node(_node("/p/a.py", "<module>", NodeKind.FILE))
    graph.add_node(_node("/p/a.py", "f"))
    graph.add_node(_node("/p/a.py", "g"))
    graph.add_edge("/p/a.py::<module>", "/p/a.py::f", EdgeKind.CONTAINS)
    graph.add_edge("/p/a.py::<module>", "/p/a.py::g", EdgeKind.CONTAINS)
    graph.add_edge("/p/a.py::f", "/p/a.py::g", EdgeKind.CALLS)
    graph.add_edge("/p/a.py::g", "/p/a.py::f", EdgeKind.CALLS)
    return graph


def test_node_id_format():
    assert make_node_id("/p/a.py", "helper") == "/p/a.py::helper"


def test_add_node_is_idempotent():
    graph = ProjectGraph()
    first = graph.add_node(_node("/p/a.py", "f"))
    again = graph.add_node(_node("/p/a.py", "f"))

    assert first == again == 0
    assert graph.node_count == 1


def test_duplicate_edges_are_dropped(small_graph: ProjectGraph):
    assert not small_graph.add_edge("/p/a.py::f", "/p/a.py::g", EdgeKind.CALLS)
    assert small_graph.edge_count == 4


def test_cycles_and_neighbors(small_graph: ProjectGraph):
    out = small_graph.outgoing("/p/a.py::f")
    assert out == [Edge("/p/a.py::f", "/p/a.py::g", EdgeKind.CALLS)]

    incoming = small_graph.incoming("/p/a.py::f")
    assert {e.source_id for e in incoming} == {"/p/a.py::<module>", "/p/a.py::g"}
    assert small_graph.incoming("/p/a.py::f", EdgeKind.CALLS) == [
        Edge("/p/a.py::g", "/p/a.py::f", EdgeKind.CALLS),
    ]
    assert len(small_graph.neighbors("/p/a.py::f", "both")) == 3


def test_invalid_direction(small_graph: ProjectGraph):
    with pytest.raises(ValueError):
        small_graph.neighbors("/p/a.py::f", "sideways")


def test_unknown_node(small_graph: ProjectGraph):
    with pytest.raises(NodeNotFound):
        small_graph.get_node("/p/a.py::missing")
    with pytest.raises(KeyError):
        small_graph.outgoing("/p/a.py::missing")
    assert small_graph.find_node("/p/a.py::missing") is None


def test_edge_endpoints_must_exist(small_graph: ProjectGraph):
    with pytest.raises(IndexError):
        small_graph.add_edge_by_index(0, 99, EdgeKind.CALLS)


def test_provenance_and_file_index(small_graph: ProjectGraph):
    assert small_graph.provenance("/p/a.py::g") == "/p/a.py"
    assert small_graph.file_nodes == {"/p/a.py": "/p/a.py::<module>"}
    assert small_graph.file_node("/p/a.py").kind is NodeKind.FILE
    assert len(small_graph.nodes_in_file("/p/a.py")) == 3


def test_sealed_graph_accepts_edges_only(small_graph: ProjectGraph):
    small_graph.seal_nodes()

    with pytest.raises(GraphFrozenError):
        small_graph.add_node(_node("/p/a.py", "h"))
    assert small_graph.add_edge("/p/a.py::<module>", "/p/a.py::f", EdgeKind.IMPORTS)


def test_frozen_graph_rejects_mutation(small_graph: ProjectGraph):
    small_graph.freeze()

    with pytest.raises(GraphFrozenError):
        small_graph.add_edge("/p/a.py::f", "/p/a.py::f", EdgeKind.CALLS)
    with pytest.raises(RuntimeError):
        small_graph.set_file_commit("/p/a.py", "abc123")


def test_equality_ignores_insertion_order(small_graph: ProjectGraph):
    nodes = list(reversed(small_graph.nodes))
    edges = list(reversed(small_graph.edges))
    rebuilt = ProjectGraph.from_parts(nodes, edges)

    assert rebuilt == small_graph
    assert rebuilt.frozen


def test_from_parts_keeps_commits(small_graph: ProjectGraph):
    rebuilt = ProjectGraph.from_parts(small_graph.nodes, small_graph.edges, file_commits={"/p/a.py": "abc"})
    assert rebuilt.file_commits == {"/p/a.py": "abc"}
