"""Tests for publishing graphs to readers."""

import threading
from pathlib import Path

import pytest

from graph_migrator.errors import GraphMigratorError, ScanCancelled
from graph_migrator.graph import ProjectGraph
from graph_migrator.registry import GraphRegistry
from graph_migrator.scanner import Scanner


def test_empty_registry():
    registry = GraphRegistry()
    assert registry.current() is None
    assert registry.generation == 0


def test_publish_requires_frozen_graph():
    registry = GraphRegistry()
    with pytest.raises(GraphMigratorError):
        registry.publish(ProjectGraph())


def test_rescan_swaps_graph(sample_project_path: Path, external_modules):
    registry = GraphRegistry()
    first = registry.rescan(Scanner(sample_project_path, external_modules=external_modules))
    held = registry.current()

    second = registry.rescan(Scanner(sample_project_path, external_modules=external_modules))

    assert registry.generation == 2
    assert registry.current() is second.graph
    # A reader holding the previous graph keeps an unchanged, frozen object.
    assert held is first.graph
    assert held.frozen
    assert held == second.graph
    assert registry.current_publication().report is second.report


def test_failed_rescan_keeps_current(sample_project_path: Path, external_modules):
    registry = GraphRegistry()
    registry.rescan(Scanner(sample_project_path, external_modules=external_modules))
    published = registry.current()

    event = threading.Event()
    event.set()
    with pytest.raises(ScanCancelled):
        registry.rescan(Scanner(sample_project_path, cancel_event=event, external_modules=external_modules))

    assert registry.current() is published
    assert registry.generation == 1


def test_concurrent_readers(sample_project_path: Path, external_modules):
    registry = GraphRegistry()
    registry.rescan(Scanner(sample_project_path, external_modules=external_modules))
    seen = []

    def reader():
        for _ in range(50):
            graph = registry.current()
            seen.append(graph.node_count)

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    registry.rescan(Scanner(sample_project_path, external_modules=external_modules))
    for t in threads:
        t.join()

    assert set(seen) == {6}
