"""CLI entry point for flowcore.

Commands:
- flowcore validate: Check a workflow file for graph and configuration issues
- flowcore order: Show the resolved execution order and parallel levels
- flowcore run: Execute a workflow and show per-node results
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

import click
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from flowcore.cli_ui.result_renderer import ResultTableRenderer, WorkflowTreeRenderer
from flowcore.core.config import load_engine_config
from flowcore.core.engine import execute_workflow, validate_workflow
from flowcore.core.exceptions import FlowcoreError
from flowcore.core.graph_schema import Workflow
from flowcore.core.loader import load_workflow
from flowcore.core.resolver import resolve_order

console = Console()

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _load_or_exit(workflow_file: str) -> Workflow:
    try:
        return load_workflow(workflow_file)
    except FlowcoreError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        sys.exit(1)


def _parse_context(context_json: str | None, context_file: str | None) -> dict[str, Any]:
    """Merge the initial context from a file and an inline JSON object (inline wins)."""
    context: dict[str, Any] = {}
    if context_file:
        with open(context_file) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise click.BadParameter("context file must contain a mapping", param_hint="--context-file")
        context.update(data)
    if context_json:
        try:
            data = json.loads(context_json)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"invalid JSON: {e}", param_hint="--context") from e
        if not isinstance(data, dict):
            raise click.BadParameter("must be a JSON object", param_hint="--context")
        context.update(data)
    return context


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    help="Python logging level",
)
def main(log_level: str) -> None:
    """Flowcore - embedded workflow orchestration runtime."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument("workflow_file", type=click.Path(exists=True))
def validate(workflow_file: str) -> None:
    """Check a workflow for graph and node configuration issues."""
    workflow = _load_or_exit(workflow_file)

    console.print(WorkflowTreeRenderer(console).render_as_tree(workflow))
    console.print()
    console.print(f"[bold]Nodes:[/] {len(workflow.nodes)}")
    console.print(f"[bold]Edges:[/] {len(workflow.edges)}")

    issues = validate_workflow(workflow)
    if issues:
        console.print("\n[red bold]Validation Issues:[/]")
        for issue in issues:
            # SECURITY: escape messages that may contain user data
            console.print(f"  [red]• {escape(issue)}[/]")
        sys.exit(1)
    console.print("\n[green]✓ Workflow is valid[/]")


@main.command()
@click.argument("workflow_file", type=click.Path(exists=True))
def order(workflow_file: str) -> None:
    """Show the execution order the engine seeds its queue with."""
    workflow = _load_or_exit(workflow_file)
    resolved = resolve_order(workflow)

    table = Table(title=f"Execution order: {escape(workflow.name)}")
    table.add_column("#", justify="right")
    table.add_column("Node", style="cyan")
    table.add_column("Type", style="magenta")
    node_map = workflow.node_map()
    for position, node_id in enumerate(resolved.order, start=1):
        node = node_map[node_id]
        table.add_row(str(position), escape(node.display_name), escape(node.type))
    console.print(table)

    levels = workflow.analyze_parallelism()
    if levels:
        console.print("\n[bold]Independent levels:[/]")
        for index, level in enumerate(levels):
            console.print(f"  {index}: {escape(', '.join(level))}")

    if resolved.unresolved:
        console.print(
            "\n[yellow]Not statically ordered (cycle or behind one):[/] "
            f"{escape(', '.join(resolved.unresolved))}"
        )


@main.command()
@click.argument("workflow_file", type=click.Path(exists=True))
@click.option("--context", "context_json", default=None, help="Initial context as a JSON object")
@click.option(
    "--context-file",
    type=click.Path(exists=True),
    default=None,
    help="YAML/JSON file with the initial context",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(),
    default=None,
    help="Engine config YAML (default: ./flowcore.yaml if present)",
)
@click.option("--show-logs", is_flag=True, help="Print the run log")
def run(
    workflow_file: str,
    context_json: str | None,
    context_file: str | None,
    config_path: str | None,
    show_logs: bool,
) -> None:
    """Execute a workflow and print the results."""
    workflow = _load_or_exit(workflow_file)
    initial_context = _parse_context(context_json, context_file)

    try:
        config = load_engine_config(config_path)
    except FlowcoreError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        sys.exit(1)

    result = execute_workflow(workflow, initial_context, config=config)

    renderer = ResultTableRenderer(console)
    console.print(renderer.render_results(workflow, result))
    if result.output:
        console.print(renderer.render_outputs(result))

    if show_logs:
        console.print("\n[bold]Log:[/]")
        for line in result.logs:
            console.print(f"  {escape(line)}")

    status = "[green]✓ succeeded[/]" if result.success else "[red]✗ failed[/]"
    console.print(f"\nWorkflow {status} in {result.execution_time:.3f}s")
    if result.error:
        console.print(f"[red]Error:[/] {escape(result.error)}")
    if not result.success:
        sys.exit(1)


if __name__ == "__main__":
    main()
