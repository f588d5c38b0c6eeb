"""Configuration manager for graph_migrator using TOML files.

The file lives at ``$GRAPH_MIGRATOR_HOME/config.toml``::

    [scan]
    include = ["**/*.py"]
    exclude = ["build/"]
    source_roots = [".", "src"]
    known_external = ["internal_sdk"]
    max_workers = 8

    [logging]
    level = "INFO"
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _config_path(path: Optional[Path]) -> Path:
    if path is not None:
        return path
    from . import config
    return config.CONFIG_FILE


def default_scan_config() -> Dict[str, Any]:
    from . import config
    return {
        "include": list(config.DEFAULT_INCLUDE_PATTERNS),
        "exclude": [],
        "source_roots": list(config.DEFAULT_SOURCE_ROOTS),
        "known_external": [],
        "max_workers": config.DEFAULT_MAX_WORKERS,
    }


def load_full_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    cfg_path = _config_path(path)
    if not cfg_path.exists():
        return {}
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", cfg_path, exc)
        return {}


def _string_list(value: Any, fallback: List[str]) -> List[str]:
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    return fallback


def load_scan_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Return the ``[scan]`` section merged over the defaults.

    Values of the wrong type are ignored rather than rejected.
    """
    merged = default_scan_config()
    section = load_full_config(path).get("scan", {})
    if not isinstance(section, dict):
        return merged

    for key in ("include", "exclude", "source_roots", "known_external"):
        if key in section:
            merged[key] = _string_list(section[key], merged[key])

    workers = section.get("max_workers")
    if isinstance(workers, int) and workers > 0:
        merged["max_workers"] = workers
    return merged


def load_logging_config(path: Optional[Path] = None) -> Dict[str, str]:
    section = load_full_config(path).get("logging", {})
    level = str(section.get("level", "WARNING")).upper() if isinstance(section, dict) else "WARNING"
    if level not in LOG_LEVELS:
        level = "WARNING"
    return {"level": level}


def save_scan_config(values: Dict[str, Any], path: Optional[Path] = None) -> Path:
    """Write ``values`` into the ``[scan]`` section, preserving other sections."""
    cfg_path = _config_path(path)
    full = load_full_config(cfg_path)
    scan = full.get("scan", {})
    scan.update(values)
    full["scan"] = scan
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    with open(cfg_path, "w", encoding="utf-8") as f:
        toml.dump(full, f)
    return cfg_path
