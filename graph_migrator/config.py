"""Configuration paths and scan defaults for graph_migrator."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List

BASE_DIR = Path(os.environ.get("GRAPH_MIGRATOR_HOME", str(Path.home() / ".graph_migrator"))).expanduser()
MEMORY_DIR = BASE_DIR / "memory"
STATE_FILE = BASE_DIR / "state.json"
CONFIG_FILE = BASE_DIR / "config.toml"

DEFAULT_INCLUDE_PATTERNS: List[str] = ["**/*.py"]
DEFAULT_SOURCE_ROOTS: List[str] = [".", "src"]
DEFAULT_MAX_WORKERS = min(32, (os.cpu_count() or 1) + 4)

# Language tag <-> file-extension mapping (extensible)
LANGUAGE_MAP: Dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
}

# Loaded from ~/.graph_migrator/config.toml, explicit CLI options win.
from .config_manager import load_logging_config, load_scan_config  # noqa: E402

_scan_config = load_scan_config()

INCLUDE_PATTERNS: List[str] = _scan_config["include"]
EXCLUDE_PATTERNS: List[str] = _scan_config["exclude"]
SOURCE_ROOTS: List[str] = _scan_config["source_roots"]
KNOWN_EXTERNAL: List[str] = _scan_config["known_external"]
MAX_WORKERS: int = _scan_config["max_workers"]
LOG_LEVEL: str = load_logging_config()["level"]


def ensure_base_dirs() -> None:
    """Create base directories for local storage if needed."""
    MEMORY_DIR.mkdir(parents=True, exist_ok=True)
    BASE_DIR.mkdir(parents=True, exist_ok=True)
