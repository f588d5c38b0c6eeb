"""Integration tests for CLI commands."""

import json
import sqlite3
from pathlib import Path

from typer.testing import CliRunner

from graph_migrator import __version__
from graph_migrator.cli import app
from graph_migrator.storage import GraphStore


runner = CliRunner()


def _scan(path: Path, name: str = "Sample", *extra: str):
    return runner.invoke(app, ["scan", str(path), "--name", name, *extra])


class TestScanCommand:
    """Tests for 'migrator scan'."""

    def test_scan_project(self, sample_project_path: Path, temp_project_manager):
        result = _scan(sample_project_path, "TestProj")

        assert result.exit_code == 0, result.output
        assert "Scanned" in result.stdout
        assert "TestProj" in result.stdout
        assert "Nodes" in result.stdout
        assert "Edges" in result.stdout
        assert temp_project_manager.get_current_project() == "TestProj"
        assert "TestProj" in temp_project_manager.list_projects()

    def test_scan_no_save(self, sample_project_path: Path, temp_project_manager):
        result = _scan(sample_project_path, "Unsaved", "--no-save")

        assert result.exit_code == 0, result.output
        assert temp_project_manager.list_projects() == []

    def test_scan_with_diagnostics(self, write_project, temp_project_manager):
        root = write_project({"check.py": "def run():\n    return nowhere()\n"})
        result = _scan(root, "Diag", "--show-diagnostics")

        assert result.exit_code == 0, result.output
        assert "Unresolved references" in result.stdout
        assert "No diagnostics" not in result.stdout

    def test_scan_closes_store_when_save_fails(self, sample_project_path: Path, temp_project_manager, monkeypatch):
        closed = []

        def failing_save(self, graph, metadata=None):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(GraphStore, "save_graph", failing_save)
        monkeypatch.setattr(GraphStore, "close", lambda self: closed.append(self.db_path))

        result = _scan(sample_project_path, "Broken")
        assert result.exit_code != 0
        assert isinstance(result.exception, sqlite3.OperationalError)
        assert len(closed) == 1
        assert temp_project_manager.get_current_project() is None

    def test_scan_nonexistent_path(self, temp_project_manager):
        result = runner.invoke(app, ["scan", "/nonexistent/path"])
        assert result.exit_code != 0


class TestProjectCommands:
    """list-projects, load-project and delete-project."""

    def test_list_empty(self, temp_project_manager):
        result = runner.invoke(app, ["list-projects"])

        assert result.exit_code == 0
        assert "No projects" in result.stdout

    def test_list_marks_current(self, sample_project_path: Path, temp_project_manager):
        _scan(sample_project_path, "Proj1")
        _scan(sample_project_path, "Proj2")

        result = runner.invoke(app, ["list-projects"])
        assert result.exit_code == 0
        assert "  Proj1" in result.stdout
        assert "* Proj2" in result.stdout

    def test_load_project(self, sample_project_path: Path, temp_project_manager):
        _scan(sample_project_path, "Proj1")
        _scan(sample_project_path, "Proj2")

        result = runner.invoke(app, ["load-project", "Proj1"])
        assert result.exit_code == 0
        assert temp_project_manager.get_current_project() == "Proj1"

    def test_load_missing_project(self, temp_project_manager):
        result = runner.invoke(app, ["load-project", "Ghost"])
        assert result.exit_code != 0

    def test_delete_project(self, sample_project_path: Path, temp_project_manager):
        _scan(sample_project_path, "Gone")

        result = runner.invoke(app, ["delete-project", "Gone"])
        assert result.exit_code == 0
        assert "Deleted" in result.stdout
        assert temp_project_manager.list_projects() == []
        assert temp_project_manager.get_current_project() is None


class TestQueryCommands:
    """show, neighbors and export against the stored project."""

    def test_show_node(self, sample_project_path: Path, temp_project_manager):
        _scan(sample_project_path)

        result = runner.invoke(app, ["show", "helper"])
        assert result.exit_code == 0, result.output
        assert "function" in result.stdout
        assert "helper" in result.stdout

    def test_show_unknown_node(self, sample_project_path: Path, temp_project_manager):
        _scan(sample_project_path)

        result = runner.invoke(app, ["show", "does_not_exist"])
        assert result.exit_code != 0

    def test_show_without_project(self, temp_project_manager):
        result = runner.invoke(app, ["show", "helper"])
        assert result.exit_code != 0

    def test_neighbors(self, sample_project_path: Path, temp_project_manager):
        _scan(sample_project_path)

        result = runner.invoke(app, ["neighbors", "process", "--direction", "both"])
        assert result.exit_code == 0, result.output
        assert "-calls-> helper" in result.stdout
        assert "<-calls- main" in result.stdout

    def test_neighbors_bad_direction(self, sample_project_path: Path, temp_project_manager):
        _scan(sample_project_path)

        result = runner.invoke(app, ["neighbors", "process", "--direction", "up"])
        assert result.exit_code != 0

    def test_export_json(self, sample_project_path: Path, temp_project_manager, temp_dir: Path):
        _scan(sample_project_path)
        output = temp_dir / "graph.json"

        result = runner.invoke(app, ["export", str(output)])
        assert result.exit_code == 0, result.output
        payload = json.loads(output.read_text())
        assert len(payload["nodes"]) == 6
        assert payload["metadata"]["project_name"] == "Sample"

    def test_export_dot_focus(self, sample_project_path: Path, temp_project_manager, temp_dir: Path):
        _scan(sample_project_path)
        output = temp_dir / "graph.dot"

        result = runner.invoke(app, ["export", str(output), "--format", "dot", "--focus", "helper"])
        assert result.exit_code == 0, result.output
        text = output.read_text()
        assert text.startswith("digraph ProjectGraph {")
        assert "helper" in text
        assert "main.py::main" not in text

    def test_export_bad_format(self, sample_project_path: Path, temp_project_manager, temp_dir: Path):
        _scan(sample_project_path)

        result = runner.invoke(app, ["export", str(temp_dir / "g.html"), "--format", "html"])
        assert result.exit_code != 0


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_show_config():
    result = runner.invoke(app, ["show-config"])
    assert result.exit_code == 0
    assert "include" in result.stdout


def test_bad_log_level(sample_project_path: Path, temp_project_manager):
    result = runner.invoke(app, ["--log-level", "LOUD", "list-projects"])
    assert result.exit_code != 0
