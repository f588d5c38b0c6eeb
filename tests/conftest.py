"""Pytest configuration and fixtures for graph_migrator tests."""

import shutil
import tempfile
import textwrap
from pathlib import Path
from typing import Callable, Dict, Generator

import pytest

from graph_migrator.parser import PythonParser
from graph_migrator.storage import GraphStore, ProjectManager

# Module names treated as external in tests, independent of the environment.
TEST_EXTERNAL_MODULES = frozenset({"os", "sys", "json", "numpy", "typing", "__future__"})


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp.resolve()
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Three-file project: main -> module_b -> module_a."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def external_modules() -> frozenset:
    return TEST_EXTERNAL_MODULES


@pytest.fixture
def write_project(temp_dir: Path) -> Callable[[Dict[str, str]], Path]:
    """Write ``{relative path: source}`` under a fresh project root."""

    def _write(files: Dict[str, str]) -> Path:
        root = temp_dir / "project"
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(content), encoding="utf-8")
        root.mkdir(parents=True, exist_ok=True)
        return root

    return _write


@pytest.fixture
def python_parser() -> PythonParser:
    return PythonParser()


@pytest.fixture
def temp_project_manager(temp_dir: Path, monkeypatch) -> ProjectManager:
    """Create a ProjectManager with temporary storage."""
    base_dir = temp_dir / "home"
    monkeypatch.setattr("graph_migrator.config.BASE_DIR", base_dir)
    monkeypatch.setattr("graph_migrator.config.MEMORY_DIR", base_dir / "memory")
    monkeypatch.setattr("graph_migrator.config.STATE_FILE", base_dir / "state.json")
    return ProjectManager()


@pytest.fixture
def temp_graph_store(temp_dir: Path) -> Generator[GraphStore, None, None]:
    """Create a GraphStore with temporary storage."""
    project_dir = temp_dir / "test_project"
    project_dir.mkdir(parents=True, exist_ok=True)
    store = GraphStore(project_dir)
    yield store
    store.close()
