"""Tests for storage layer (ProjectManager and GraphStore)."""

import json
from pathlib import Path

import pytest

from graph_migrator.models import EdgeKind
from graph_migrator.scanner import scan_project
from graph_migrator.storage import GraphStore, ProjectManager


class TestProjectManager:
    """Tests for ProjectManager."""

    def test_create_project(self, temp_project_manager: ProjectManager):
        """Test creating a new project."""
        pm = temp_project_manager
        project_dir = pm.create_or_get_project("TestProject")

        assert project_dir.exists()
        assert project_dir.is_dir()
        assert "TestProject" in pm.list_projects()

    def test_list_projects(self, temp_project_manager: ProjectManager):
        """Test listing projects."""
        pm = temp_project_manager

        assert pm.list_projects() == []

        pm.create_or_get_project("Project2")
        pm.create_or_get_project("Project1")

        assert pm.list_projects() == ["Project1", "Project2"]

    def test_set_and_get_current_project(self, temp_project_manager: ProjectManager):
        pm = temp_project_manager
        pm.create_or_get_project("MyProject")

        pm.set_current_project("MyProject")
        assert pm.get_current_project() == "MyProject"

        pm.unload_project()
        assert pm.get_current_project() is None

    def test_corrupt_state_file(self, temp_project_manager: ProjectManager):
        from graph_migrator import config

        config.STATE_FILE.write_text("{oops", encoding="utf-8")
        assert temp_project_manager.get_current_project() is None

    def test_delete_project(self, temp_project_manager: ProjectManager):
        """Deleting the current project also unloads it."""
        pm = temp_project_manager
        project_dir = pm.create_or_get_project("ToDelete")
        (project_dir / "graph.db").write_text("data")
        pm.set_current_project("ToDelete")

        assert pm.delete_project("ToDelete")
        assert not project_dir.exists()
        assert pm.get_current_project() is None
        assert not pm.delete_project("ToDelete")


@pytest.fixture
def scanned(sample_project_path: Path, external_modules):
    return scan_project(
        sample_project_path,
        external_modules=external_modules,
        file_commits={"module_b.py": "c0ffee"},
    )


class TestGraphStore:
    """Tests for GraphStore."""

    def test_schema(self, temp_graph_store: GraphStore):
        tables = {
            row[0]
            for row in temp_graph_store.conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        assert {"nodes", "edges", "files"} <= tables

    def test_save_and_load_graph(self, temp_graph_store: GraphStore, scanned):
        temp_graph_store.save_graph(scanned.graph)

        loaded = temp_graph_store.load_graph()
        assert loaded == scanned.graph
        assert loaded.nodes == scanned.graph.nodes
        assert loaded.provenance_map == scanned.graph.provenance_map
        assert loaded.file_commits == scanned.graph.file_commits
        assert loaded.frozen

    def test_save_replaces_previous_graph(self, temp_graph_store: GraphStore, scanned):
        temp_graph_store.save_graph(scanned.graph)
        temp_graph_store.save_graph(scanned.graph)

        assert len(temp_graph_store.get_nodes()) == 6
        assert len(temp_graph_store.get_edges()) == 7

    def test_metadata(self, temp_graph_store: GraphStore, scanned):
        temp_graph_store.save_graph(scanned.graph, {"root_path": "/src", "commit_hash": "abc"})

        meta = temp_graph_store.get_metadata()
        assert meta["root_path"] == "/src"
        assert meta["node_count"] == 6
        assert meta["edge_count"] == 7
        assert json.loads(temp_graph_store.meta_path.read_text())["commit_hash"] == "abc"

    def test_missing_metadata(self, temp_graph_store: GraphStore):
        assert temp_graph_store.get_metadata() == {}

    def test_get_node_by_name(self, temp_graph_store: GraphStore, scanned):
        temp_graph_store.save_graph(scanned.graph)

        row = temp_graph_store.get_node("helper")
        assert row is not None
        assert row["node_id"].endswith("module_a.py::helper")
        assert row["kind"] == "function"
        assert temp_graph_store.get_node("nothing") is None

    def test_neighbors(self, temp_graph_store: GraphStore, scanned):
        temp_graph_store.save_graph(scanned.graph)
        process = temp_graph_store.get_node("process")["node_id"]

        out = [dict(r) for r in temp_graph_store.neighbors(process)]
        assert [(r["edge_type"], r["dst"].rsplit("::", 1)[-1]) for r in out] == [(EdgeKind.CALLS.value, "helper")]
        incoming = {r["edge_type"] for r in temp_graph_store.reverse_neighbors(process)}
        assert incoming == {"contains", "calls"}

    def test_file_commit(self, temp_graph_store: GraphStore, scanned, sample_project_path: Path):
        temp_graph_store.save_graph(scanned.graph)

        module_b = (sample_project_path / "module_b.py").resolve().as_posix()
        module_a = (sample_project_path / "module_a.py").resolve().as_posix()
        assert temp_graph_store.file_commit(module_b) == "c0ffee"
        assert temp_graph_store.file_commit(module_a) is None
        assert len(temp_graph_store.get_files()) == 3

    def test_clear(self, temp_graph_store: GraphStore, scanned):
        temp_graph_store.save_graph(scanned.graph)
        temp_graph_store.clear()

        assert temp_graph_store.get_nodes() == []
        assert temp_graph_store.get_edges() == []
        assert temp_graph_store.get_files() == []
