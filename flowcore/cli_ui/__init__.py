"""CLI UI components for terminal rendering of workflows and run results."""

from flowcore.cli_ui.result_renderer import ResultTableRenderer, WorkflowTreeRenderer

__all__ = [
    "ResultTableRenderer",
    "WorkflowTreeRenderer",
]
