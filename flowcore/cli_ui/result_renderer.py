"""Terminal rendering of workflows and run results using Rich."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from flowcore.core.graph_schema import (
    NodeStatus,
    NodeType,
    Workflow,
    WorkflowEdge,
    WorkflowExecutionResult,
    WorkflowNode,
)
from flowcore.core.templating import to_text


class WorkflowTreeRenderer:
    """
    Renders a workflow as a Rich Tree rooted at its entry nodes.

    Branch edges are shown as "(true)" / "(false)" labels. Nodes reachable
    along more than one path appear under each parent; revisits inside a
    path are shown as loops.
    """

    # Node type symbols and colors
    NODE_STYLES = {
        NodeType.TRIGGER: ("[T]", "green"),
        NodeType.INPUT: ("[I]", "cyan"),
        NodeType.OUTPUT: ("[O]", "blue"),
        NodeType.AGENT: ("[A]", "magenta"),
        NodeType.LLM: ("[L]", "magenta"),
        NodeType.CONDITIONAL: ("[?]", "yellow"),
        NodeType.FUNCTION: ("[F]", "cyan"),
    }
    EXTERNAL_STYLE = ("[X]", "white")

    STATUS_COLORS = {
        NodeStatus.PENDING: "dim",
        NodeStatus.COMPLETED: "green",
        NodeStatus.FAILED: "red bold",
        NodeStatus.SKIPPED: "dim strikethrough",
    }

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def _style(self, node: WorkflowNode) -> tuple[str, str]:
        node_type = node.node_type
        if node_type is None:
            return ("[ ]", "red")
        return self.NODE_STYLES.get(node_type, self.EXTERNAL_STYLE)

    def render_as_tree(
        self,
        workflow: Workflow,
        result: WorkflowExecutionResult | None = None,
        max_depth: int = 50,
    ) -> Tree:
        """
        Render workflow as a Rich Tree (hierarchical view).

        Args:
            workflow: The workflow to render
            result: Optional run result used to color nodes by status
            max_depth: Maximum tree depth to prevent exponential blow-up
        """
        # SECURITY: Escape user-controlled strings to prevent Rich markup injection
        tree = Tree(f"[bold]{escape(workflow.name)}[/] ({escape(workflow.id)})")

        node_map = workflow.node_map()
        edge_map: dict[str, list[WorkflowEdge]] = {n.id: [] for n in workflow.nodes}
        for edge in workflow.edges:
            if edge.source in edge_map:
                edge_map[edge.source].append(edge)

        entries = workflow.get_entry_nodes()
        if not entries:
            tree.add("[red]No entry nodes (every node has an incoming edge)[/]")
            return tree

        for entry_id in entries:
            self._add_node(tree, node_map[entry_id], result, node_map, edge_map, set(), 0, max_depth)
        return tree

    def _add_node(
        self,
        parent: Tree,
        node: WorkflowNode,
        result: WorkflowExecutionResult | None,
        node_map: dict[str, WorkflowNode],
        edge_map: dict[str, list[WorkflowEdge]],
        visited: set[str],
        depth: int,
        max_depth: int,
    ) -> None:
        if depth >= max_depth:
            parent.add("[dim]... (max depth reached)[/]")
            return
        if node.id in visited:
            parent.add(f"[dim]↩ {escape(node.id)} (loop)[/]")
            return
        visited = visited | {node.id}

        symbol, color = self._style(node)
        label = escape(node.display_name)
        if result is not None:
            status = result.node_status(node.id)
            indicator = {NodeStatus.COMPLETED: " ✓", NodeStatus.FAILED: " ✗"}.get(status, "")
            text = f"[{self.STATUS_COLORS[status]}]{symbol} {label}{indicator}[/]"
        else:
            text = f"[{color}]{symbol} {label}[/]"
        branch = parent.add(text)

        for edge in edge_map.get(node.id, []):
            child = node_map.get(edge.target)
            if child is None:
                continue
            target_parent = branch
            if edge.is_true_branch or edge.is_false_branch:
                target_parent = branch.add(f"[dim]({'true' if edge.is_true_branch else 'false'})[/]")
            self._add_node(
                target_parent, child, result, node_map, edge_map, visited, depth + 1, max_depth
            )


class ResultTableRenderer:
    """Renders per-node results of a run as a Rich table.

    SECURITY: All user-controlled strings (labels, outputs, errors) are escaped
    to prevent Rich markup injection.
    """

    STATUS_TEXT = {
        NodeStatus.COMPLETED: "[green]✓ Completed[/]",
        NodeStatus.FAILED: "[red]✗ Failed[/]",
        NodeStatus.SKIPPED: "[dim]⊘ Skipped[/]",
        NodeStatus.PENDING: "[dim]○ Not reached[/]",
    }

    def __init__(self, console: Console | None = None, max_width: int = 60):
        self.console = console or Console()
        self.max_width = max_width

    def _truncate(self, value: Any) -> str:
        text = escape(to_text(value))
        if len(text) > self.max_width:
            text = text[: self.max_width - 3] + "..."
        return text

    def render_results(self, workflow: Workflow, result: WorkflowExecutionResult) -> Table:
        table = Table(title=f"Run: {escape(workflow.name)}")

        table.add_column("Node", style="cyan")
        table.add_column("Type", style="magenta")
        table.add_column("Status", justify="center")
        table.add_column("Time", justify="right")
        table.add_column("Output / Error", max_width=self.max_width)

        for node in workflow.nodes:
            status = result.node_status(node.id)
            node_result = result.node_results.get(node.id)
            if node_result is None:
                timing, detail = "", ""
            elif node_result.success:
                timing = f"{node_result.execution_time * 1000:.0f}ms"
                detail = self._truncate(node_result.output)
            else:
                timing = f"{node_result.execution_time * 1000:.0f}ms"
                detail = f"[red]{self._truncate(node_result.error)}[/]"

            table.add_row(
                escape(node.display_name),
                escape(node.type),
                self.STATUS_TEXT[status],
                timing,
                detail,
            )

        return table

    def render_outputs(self, result: WorkflowExecutionResult) -> Table:
        table = Table(title="Outputs")
        table.add_column("Variable", style="cyan")
        table.add_column("Value", max_width=self.max_width)
        for key, value in result.output.items():
            table.add_row(escape(key), self._truncate(value))
        return table
