"""Typer-based CLI for SolGraph call graph extraction."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from . import __version__, config, config_manager
from .call_tree import describe
from .errors import AnalysisError
from .models import CallTreeNode
from .orchestrator import AnalysisOrchestrator
from .report import build_analysis_report, build_extraction_report, export_dot, save_report

console = Console()

app = typer.Typer(
    help="SolGraph CLI: bounded call graphs for Solidity functions across GitHub repositories.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

FORMATS = ("json", "dot")


def _configure_logging(level: int) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _make_orchestrator() -> AnalysisOrchestrator:
    return AnalysisOrchestrator()


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"SolGraph CLI v{__version__}")
        raise typer.Exit()


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
    verbose: bool = typer.Option(False, "--verbose", help="Log resolution progress."),
    debug: bool = typer.Option(False, "--debug", help="Log every fetch attempt and match."),
):
    """SolGraph CLI: trace Solidity calls through imports, libraries and interfaces."""
    if debug:
        _configure_logging(logging.DEBUG)
    elif verbose:
        _configure_logging(logging.INFO)
    else:
        _configure_logging(logging.WARNING)


def _split_urls(value: str) -> List[str]:
    urls = [u.strip() for u in value.split(",") if u.strip()]
    if not urls:
        raise typer.BadParameter("At least one contract URL is required.")
    return urls


def _fail(exc: Exception) -> None:
    console.print(f"[red]✗ Error:[/red] {escape(str(exc))}")
    raise typer.Exit(code=1)


def _render_tree(node: CallTreeNode, branch: Optional[Tree] = None) -> Tree:
    style = {"internal": "green", "external": "dim", "interface": "yellow"}[node.kind]
    label = f"[{style}]{escape(describe(node))}[/{style}]"
    current = Tree(label) if branch is None else branch.add(label)
    for child in node.children:
        _render_tree(child, current)
    return current


@app.command("analyze")
def analyze(
    urls: str = typer.Argument(..., help="GitHub file URL(s) of the contract(s), comma-separated."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Report file (JSON)."),
    max_depth: int = typer.Option(config.IMPORT_DEPTH, "--max-depth", "-d", min=0, help="Import resolution depth."),
    no_deps: bool = typer.Option(False, "--no-deps", help="Skip dependency resolution."),
    no_source: bool = typer.Option(False, "--no-source", help="Omit source code from the report."),
):
    """Analyze whole contracts and their transitive imports."""
    seeds = _split_urls(urls)
    console.print(f"\n[bold cyan]Analyzing {len(seeds)} contract(s)...[/bold cyan]\n")
    try:
        session = _make_orchestrator().analyze(seeds, resolve_dependencies=not no_deps, max_depth=max_depth)
    except AnalysisError as exc:
        _fail(exc)

    include_source = config.INCLUDE_SOURCE and not no_source
    report = build_analysis_report(session, include_source=include_source)
    summary = report["summary"]

    table = Table(title="Analysis Summary", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Files analyzed", str(summary["totalFiles"]))
    table.add_row("Functions", str(summary["totalFunctions"]))
    table.add_row("Modifiers", str(summary["totalModifiers"]))
    table.add_row("Events", str(summary["totalEvents"]))
    table.add_row("State variables", str(summary["totalStateVariables"]))
    table.add_row("Dependencies resolved", f"{summary['resolvedDependencies']}/{summary['totalDependencies']}")
    table.add_row("Success rate", f"{summary['successRate'] * 100:.1f}%")
    table.add_row("Internal calls", str(summary["internalCalls"]))
    table.add_row("External calls", str(summary["externalCalls"]))
    console.print(table)

    deps = report["dependencies"]
    if deps["failed"]:
        console.print("\n[bold yellow]Failed dependencies[/bold yellow]")
        for path in deps["external"]:
            console.print(f"  • {escape(path)} [dim](external)[/dim]")
        for path in deps["unreachable"]:
            console.print(f"  • {escape(path)} [dim](unreachable)[/dim]")

    target = output or Path(f"contract_analysis_{Path(session.seeds[0].path).stem}.json")
    save_report(report, target)
    console.print(f"\n[green]✓[/green] Report saved to {target}")


@app.command("extract")
def extract(
    url: str = typer.Argument(..., help="GitHub file URL of the contract."),
    function: str = typer.Argument(..., help="Name of the function to trace."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file."),
    max_depth: int = typer.Option(config.CALL_DEPTH, "--max-depth", "-d", min=0, help="Maximum call depth."),
    import_depth: int = typer.Option(config.IMPORT_DEPTH, "--import-depth", min=0, help="Import resolution depth."),
    no_deps: bool = typer.Option(False, "--no-deps", help="Skip dependency resolution."),
    no_modifiers: bool = typer.Option(False, "--no-modifiers", help="Leave invoked modifiers out of the slice."),
    include_events: bool = typer.Option(False, "--include-events", help="Keep emitted events in the slice."),
    tree_only: bool = typer.Option(False, "--tree-only", help="Print the call tree without writing a report."),
    fmt: str = typer.Option("json", "--format", "-f", help="Output format: json or dot."),
    debug: bool = typer.Option(False, "--debug", help="Log every fetch attempt and match."),
):
    """Extract the call tree of one function across files and repositories."""
    if fmt not in FORMATS:
        raise typer.BadParameter(f"Unknown format '{fmt}'. Choose from: {', '.join(FORMATS)}")
    if debug:
        _configure_logging(logging.DEBUG)

    console.print(f"\n[bold cyan]Extracting call tree for '{function}'...[/bold cyan]\n")
    try:
        result = _make_orchestrator().extract(
            url,
            function,
            call_depth=max_depth,
            import_depth=import_depth,
            resolve_dependencies=not no_deps,
            include_modifiers=not no_modifiers,
            include_events=include_events,
        )
    except AnalysisError as exc:
        _fail(exc)

    console.print(_render_tree(result.tree))
    if tree_only:
        return

    report = build_extraction_report(result, include_source=config.INCLUDE_SOURCE)
    meta = report["metadata"]
    deps = meta["dependencies"]
    console.print(
        Panel(
            f"Signature: {escape(meta['signature'])}\n"
            f"Call depth: {meta['observedDepth']} (max {meta['maxCallDepth']})\n"
            f"Files involved: {len(meta['filesInvolved'])}\n"
            f"Dependencies: {deps['resolved']} resolved, {deps['failed']} failed of {deps['found']}"
            f" ({deps['successRate'] * 100:.1f}%)\n"
            f"Relevant declarations: {len(report['entities'])}",
            title="Extraction Summary",
            border_style="cyan",
        )
    )

    table = Table(title="Functions by file", show_header=True)
    table.add_column("File", style="cyan")
    table.add_column("Declarations")
    for file, names in report["functionsByFile"].items():
        table.add_row(file, ", ".join(names))
    console.print(table)

    target = output or Path(f"{function}_callgraph.{fmt}")
    if fmt == "dot":
        export_dot(result.tree, target)
    else:
        save_report(report, target)
    console.print(f"\n[green]✓[/green] Report saved to {target}")


@app.command("show-config")
def show_config():
    """Show the effective analysis configuration."""
    cfg = config_manager.load_config()
    path = config_manager.config_file()

    table = Table(title="SolGraph Configuration", show_header=True)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in cfg["analysis"].items():
        table.add_row(f"analysis.{key}", str(value))
    token = cfg["github"]["token"]
    table.add_row("github.token", token[:4] + "•" * 8 if token else "(not set)")
    console.print(table)
    console.print(f"Config file: {path}" + ("" if path.exists() else " [dim](not created yet)[/dim]"))


@app.command("set-config")
def set_config(
    import_depth: Optional[int] = typer.Option(None, "--import-depth", min=0, help="Default import depth."),
    call_depth: Optional[int] = typer.Option(None, "--call-depth", min=0, help="Default call depth."),
    timeout: Optional[float] = typer.Option(None, "--timeout", min=0.1, help="HTTP timeout in seconds."),
    include_source: Optional[bool] = typer.Option(
        None, "--include-source/--no-include-source", help="Whether reports embed source code by default."
    ),
    github_token: Optional[str] = typer.Option(None, "--github-token", help="GitHub token for raw fetches."),
):
    """Persist analysis defaults to the config file."""
    analysis = {
        key: value
        for key, value in (
            ("import_depth", import_depth),
            ("call_depth", call_depth),
            ("timeout", timeout),
            ("include_source", include_source),
        )
        if value is not None
    }
    updates = {}
    if analysis:
        updates["analysis"] = analysis
    if github_token is not None:
        updates["github"] = {"token": github_token}
    if not updates:
        raise typer.BadParameter("Nothing to set. Pass at least one option.")

    path = config_manager.save_config(updates)
    typer.echo(f"Configuration saved to {path}")


if __name__ == "__main__":
    app()
