"""canvasflow CLI (Typer application)."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from canvasflow.blocks import default_registry
from canvasflow.config import config
from canvasflow.exceptions import CanvasflowError
from canvasflow.execution import ExecutionEngine
from canvasflow.types import ExecutionLog, ExecutionStatus, WorkflowExecution
from canvasflow.version import __version__
from canvasflow.workflows.loader import load_execution, load_workflow

app = typer.Typer(
    name="canvasflow",
    help="canvasflow: run block workflows built on the canvas.",
    no_args_is_help=True,
)
console = Console()

_STATUS_COLOR = {
    "success": "green",
    "error": "red",
    "cancelled": "yellow",
    "running": "blue",
}
_LEVEL_COLOR = {"info": "dim", "warn": "yellow", "error": "red"}


def parse_env_pairs(pairs: list[str]) -> dict[str, str]:
    """``["A=1", "B=x=y"]`` → ``{"A": "1", "B": "x=y"}``."""
    env: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="--env")
        env[key.strip()] = value
    return env


def _print_log(log: ExecutionLog) -> None:
    color = _LEVEL_COLOR.get(log.level.value, "white")
    node = f"[cyan]{log.node_id}[/cyan] " if log.node_id else ""
    console.print(f"[{color}]{log.timestamp:%H:%M:%S}[/{color}] {node}{log.message}")


def _print_summary(execution: WorkflowExecution) -> None:
    status = execution.status.value
    color = _STATUS_COLOR.get(status, "white")

    table = Table(box=box.SIMPLE, show_header=True, header_style="bold dim", padding=(0, 1))
    table.add_column("Node", style="cyan")
    table.add_column("Status", width=9)
    table.add_column("ms", justify="right", width=7)
    table.add_column("Outputs / error")

    for node_id, record in execution.node_executions.items():
        node_status = record.status.value
        node_color = _STATUS_COLOR.get(node_status, "white")
        if record.error:
            detail = f"[red]{record.error}[/red]"
        else:
            detail = f"[dim]{', '.join(sorted((record.outputs or {}).keys()))}[/dim]"
        table.add_row(
            node_id,
            f"[{node_color}]{node_status}[/{node_color}]",
            str(record.duration if record.duration is not None else "-"),
            detail,
        )

    console.print(Panel(
        table,
        title=f"[bold]Execution[/bold] [dim]{execution.id}[/dim]  [{color}]{status.upper()}[/{color}]",
        subtitle=f"[dim]{execution.duration}ms[/dim]",
        border_style=color,
    ))


@app.command(name="run")
def run_workflow(
    path: Path = typer.Argument(..., help="Workflow definition (JSON or YAML)"),
    env: list[str] = typer.Option([], "--env", "-e", help="Environment entry KEY=VALUE (repeatable)"),
    node: Optional[str] = typer.Option(None, "--node", "-n", help="Run only this node (single-node mode)"),
    previous: Optional[Path] = typer.Option(None, "--previous", "-p", help="Prior execution snapshot to restore outputs from"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the execution snapshot here as JSON"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not stream the run log"),
):
    """Execute a workflow with the built-in blocks and print the node summary.

    Example:
        canvasflow run flow.json -e API_KEY=abc
        canvasflow run flow.json --node fetch --previous last-run.json
    """
    logging.basicConfig(level=config.log_level.upper())

    try:
        workflow = load_workflow(path)
        existing = load_execution(previous) if previous else None
    except CanvasflowError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(2)

    engine = ExecutionEngine(
        default_registry(),
        on_log=None if quiet else _print_log,
        config=config,
    )
    try:
        execution = asyncio.run(engine.execute_workflow(
            workflow, parse_env_pairs(env), only_node_id=node, existing_execution=existing,
        ))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        raise typer.Exit(1)

    _print_summary(execution)
    if output is not None:
        output.write_text(
            json.dumps(execution.model_dump(mode="json", by_alias=True), indent=2),
            encoding="utf-8",
        )
        console.print(f"[dim]Snapshot written to {output}[/dim]")

    if execution.status != ExecutionStatus.SUCCESS:
        raise typer.Exit(1)


@app.command(name="blocks")
def list_blocks():
    """List the built-in block types."""
    table = Table(box=box.SIMPLE, header_style="bold dim")
    table.add_column("Type", style="cyan")
    table.add_column("Name")
    table.add_column("Category", style="dim")
    table.add_column("Description")
    for definition in default_registry().list_blocks():
        table.add_row(definition.type, definition.name, definition.category, definition.description)
    console.print(table)


@app.command(name="version")
def version():
    """Show version."""
    console.print(f"canvasflow v{__version__}")
