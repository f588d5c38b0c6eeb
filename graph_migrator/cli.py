"""Typer-based CLI for building and inspecting project dependency graphs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__, config
from .config_manager import LOG_LEVELS
from .errors import GraphMigratorError
from .graph import ProjectGraph
from .graph_export import ascii_neighbors, export_dot, export_json
from .models import ScanDiagnostics
from .scanner import ScanReport, Scanner
from .storage import GraphStore, ProjectManager

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Dependency graph builder for multi-file Python projects.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"graph-migrator v{__version__}")
        raise typer.Exit()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    log_level: str = typer.Option(
        config.LOG_LEVEL,
        "--log-level",
        help="Logging level: DEBUG, INFO, WARNING, ERROR or CRITICAL.",
    ),
):
    """Scan a project into a dependency graph and query the stored result."""
    level = log_level.upper()
    if level not in LOG_LEVELS:
        raise typer.BadParameter(f"Unknown log level '{log_level}'.")
    _configure_logging(level)


def _project_name_from_path(project_path: Path) -> str:
    return project_path.resolve().name.replace(" ", "_")


def _open_current_store(pm: ProjectManager) -> GraphStore:
    project = pm.get_current_project()
    if not project:
        raise typer.BadParameter("No project loaded. Use 'migrator load-project <name>' or run 'migrator scan <path>'.")
    project_dir = pm.project_dir(project)
    if not project_dir.exists():
        raise typer.BadParameter(f"Loaded project '{project}' does not exist in memory.")
    return GraphStore(project_dir)


def _resolve_node_id(graph: ProjectGraph, store: GraphStore, key: str) -> str:
    if key in graph:
        return key
    row = store.get_node(key)
    if row is None:
        raise typer.BadParameter(f"Node '{key}' not found in current project.")
    return row["node_id"]


def _print_report(report: ScanReport) -> None:
    table = Table(title="Scan summary", show_header=True, show_lines=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Files discovered", str(report.files_discovered))
    table.add_row("Files parsed", str(report.files_parsed))
    table.add_row("Files skipped", str(report.files_skipped))
    table.add_row("Nodes", str(report.nodes))
    table.add_row("Edges", str(report.edges))
    table.add_row("Unresolved imports", str(report.unresolved_imports))
    table.add_row("Unresolved calls", str(report.unresolved_calls))
    console.print(table)
    for skipped in report.skipped:
        console.print(f"[yellow]skipped[/yellow] {skipped.file_path}: {skipped.reason}")


def _print_diagnostics(diagnostics: ScanDiagnostics) -> None:
    if diagnostics.is_clean():
        console.print("[green]No diagnostics.[/green]")
        return

    if diagnostics.parse_failures:
        table = Table(title="Parse failures")
        table.add_column("File")
        table.add_column("Kind", style="yellow")
        table.add_column("Reason")
        for failure in diagnostics.parse_failures:
            where = f"{failure.file_path}:{failure.line}" if failure.line else failure.file_path
            table.add_row(where, failure.kind, failure.reason)
        console.print(table)

    if diagnostics.unresolved_imports:
        table = Table(title="Unresolved imports")
        table.add_column("File")
        table.add_column("Module", style="yellow")
        table.add_column("Reason")
        for outcome in diagnostics.unresolved_imports:
            line = outcome.declaration.span.start_line
            table.add_row(f"{outcome.file_path}:{line}", outcome.module_name or "", outcome.reason)
        console.print(table)

    if diagnostics.unresolved_references:
        table = Table(title="Unresolved references")
        table.add_column("File")
        table.add_column("Kind")
        table.add_column("Name", style="yellow")
        table.add_column("Reason")
        for ref in diagnostics.unresolved_references:
            table.add_row(f"{ref.file_path}:{ref.line}", ref.kind.value, ref.name, ref.reason)
        console.print(table)


@app.command("scan")
def scan_project(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    include: Optional[List[str]] = typer.Option(
        None, "--include", "-i", help="Glob pattern of files to scan (repeatable).",
    ),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Parser worker threads."),
    project_name: Optional[str] = typer.Option(None, "--name", "-n", help="Explicit memory name for project."),
    commit: Optional[str] = typer.Option(None, "--commit", help="Commit hash the scan corresponds to."),
    no_save: bool = typer.Option(False, "--no-save", help="Do not store the graph as a project."),
    show_diagnostics: bool = typer.Option(False, "--show-diagnostics", "-d", help="List every diagnostic."),
):
    """Scan a project and store its dependency graph."""
    resolved_path = project_path.resolve()
    scanner = Scanner(resolved_path, include=include, max_workers=workers, commit_hash=commit)
    try:
        result = scanner.scan()
    except GraphMigratorError as exc:
        err_console.print(f"[red]Scan failed:[/red] {exc}")
        raise typer.Exit(code=1)

    name = project_name or _project_name_from_path(resolved_path)
    if no_save:
        typer.echo(f"Scanned '{resolved_path}'.")
    else:
        pm = ProjectManager()
        store = GraphStore(pm.create_or_get_project(name))
        try:
            store.save_graph(result.graph, {
                **result.report.to_dict(),
                "project_name": name,
                "source_path": str(resolved_path),
            })
        finally:
            store.close()
        pm.set_current_project(name)
        typer.echo(f"Scanned '{resolved_path}' as project '{name}'.")

    _print_report(result.report)
    if show_diagnostics:
        _print_diagnostics(result.diagnostics)


@app.command("list-projects")
def list_projects():
    """List all persisted project graphs."""
    pm = ProjectManager()
    projects = pm.list_projects()
    current = pm.get_current_project()

    if not projects:
        typer.echo("No projects scanned yet.")
        raise typer.Exit(code=0)

    for p in projects:
        marker = "*" if p == current else " "
        typer.echo(f"{marker} {p}")


@app.command("load-project")
def load_project(project_name: str = typer.Argument(..., help="Name of project to load.")):
    """Switch the active project."""
    pm = ProjectManager()
    if project_name not in pm.list_projects():
        raise typer.BadParameter(f"Project '{project_name}' not found.")
    pm.set_current_project(project_name)
    typer.echo(f"Loaded project '{project_name}'.")


@app.command("delete-project")
def delete_project(project_name: str = typer.Argument(..., help="Project to delete.")):
    """Delete a persisted project graph."""
    pm = ProjectManager()
    if not pm.delete_project(project_name):
        raise typer.BadParameter(f"Project '{project_name}' not found.")
    typer.echo(f"Deleted project '{project_name}'.")


@app.command("show")
def show_node(node: str = typer.Argument(..., help="Node id, qualified name or name.")):
    """Show one node of the current project."""
    pm = ProjectManager()
    store = _open_current_store(pm)
    try:
        graph = store.load_graph()
        node_id = _resolve_node_id(graph, store, node)
    finally:
        store.close()

    found = graph.get_node(node_id)
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("id", found.id)
    table.add_row("kind", found.kind.value)
    table.add_row("name", found.name)
    table.add_row("qualname", found.qualname)
    table.add_row("language", found.language)
    table.add_row("file", found.file_path)
    if found.line_range:
        table.add_row("lines", f"{found.line_range[0]}-{found.line_range[1]}")
    commit = graph.file_commits.get(graph.provenance(node_id))
    if commit:
        table.add_row("commit", commit)
    table.add_row("outgoing", str(len(graph.outgoing(node_id))))
    table.add_row("incoming", str(len(graph.incoming(node_id))))
    console.print(table)


@app.command("neighbors")
def neighbors(
    node: str = typer.Argument(..., help="Node id, qualified name or name."),
    depth: int = typer.Option(1, min=1, max=6, help="Traversal depth."),
    direction: str = typer.Option("both", help="Edge direction: out, in or both."),
):
    """Show the edges around a node as an ASCII tree."""
    if direction not in {"out", "in", "both"}:
        raise typer.BadParameter("Direction must be one of: out, in, both")
    pm = ProjectManager()
    store = _open_current_store(pm)
    try:
        graph = store.load_graph()
        node_id = _resolve_node_id(graph, store, node)
    finally:
        store.close()
    typer.echo(ascii_neighbors(graph, node_id, depth=depth, direction=direction))


@app.command("export")
def export_graph(
    output: Path = typer.Argument(..., help="Output file path."),
    fmt: str = typer.Option("json", "--format", "-f", help="Export format: json or dot."),
    focus: str = typer.Option("", "--focus", help="Only export the neighbourhood of this node."),
):
    """Export the current project graph as a JSON snapshot or Graphviz DOT."""
    fmt = fmt.lower()
    if fmt not in {"json", "dot"}:
        raise typer.BadParameter("Format must be one of: json, dot")

    pm = ProjectManager()
    store = _open_current_store(pm)
    try:
        graph = store.load_graph()
        metadata = store.get_metadata()
    finally:
        store.close()

    if fmt == "json":
        export_json(graph, output, metadata=metadata, focus=focus)
    else:
        export_dot(graph, output, focus=focus)
    typer.echo(f"Exported graph to {output}")


@app.command("show-config")
def show_config():
    """Show the effective scan configuration."""
    table = Table(title=f"Configuration ({config.CONFIG_FILE})", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("include", ", ".join(config.INCLUDE_PATTERNS))
    table.add_row("exclude", ", ".join(config.EXCLUDE_PATTERNS) or "-")
    table.add_row("source_roots", ", ".join(config.SOURCE_ROOTS))
    table.add_row("known_external", ", ".join(config.KNOWN_EXTERNAL) or "-")
    table.add_row("max_workers", str(config.MAX_WORKERS))
    table.add_row("log level", config.LOG_LEVEL)
    console.print(table)


if __name__ == "__main__":
    app()
