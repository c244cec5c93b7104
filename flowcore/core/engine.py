"""Queue-driven workflow execution engine.

The engine runs one workflow at a time per ``execute()`` call:

1. The resolver's topological order seeds a FIFO work queue.
2. Nodes are popped one at a time. A node already executed is skipped; a node
   whose inbound edges are all inactive (for example, the untaken side of a
   conditional) is logged as skipped and left eligible for a later push.
3. Outputs of successful predecessors are copied into the shared context, the
   node's executor runs, and the result is recorded.
4. Conditional nodes push the targets of their selected branch. This is the
   only way nodes the static order could not place (cycles) become reachable.

The queue is owned by the run and may grow at any point; the seeded order is
a starting plan, not a fixed schedule.

Node failures never abort the run. Anything an executor raises is caught at
the dispatch boundary and recorded as a failed result; independent nodes
still run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from flowcore.core.config import EngineConfig
from flowcore.core.graph_schema import (
    NodeExecutionResult,
    NodeType,
    Workflow,
    WorkflowEdge,
    WorkflowExecutionResult,
    WorkflowNode,
)
from flowcore.core.loader import parse_workflow
from flowcore.core.resolver import resolve_order
from flowcore.executors import default_registry
from flowcore.executors.base import (
    CancellationToken,
    ExecutorHooks,
    ExecutorRegistry,
    NodeExecutor,
)
from flowcore.executors.basic import output_variable

logger = logging.getLogger(__name__)


@dataclass
class WorkflowCallbacks:
    """Optional hooks fired synchronously while a workflow runs.

    A callback that raises is logged and ignored; it never affects the run.
    """

    on_node_start: Callable[[str], None] | None = None
    on_node_complete: Callable[[str, Any], None] | None = None
    on_node_error: Callable[[str, str], None] | None = None
    on_log: Callable[[str], None] | None = None
    on_workflow_complete: Callable[[WorkflowExecutionResult], None] | None = None


def format_log_line(message: str, now: datetime | None = None) -> str:
    """Prefix a message with a ``[HH:MM:SS.mmm]`` UTC timestamp."""
    now = now or datetime.now(timezone.utc)
    return f"[{now.strftime('%H:%M:%S')}.{now.microsecond // 1000:03d}] {message}"


class _WorkflowRun:
    """Mutable state of a single run. Never shared between runs."""

    def __init__(
        self,
        workflow: Workflow,
        context: dict[str, Any],
        callbacks: WorkflowCallbacks,
        cancel_token: CancellationToken,
        log_to_logger: bool,
    ):
        self.workflow = workflow
        self.nodes = workflow.node_map()
        self.context = context
        self.callbacks = callbacks
        self.cancel_token = cancel_token
        self.log_to_logger = log_to_logger

        self.queue: deque[str] = deque()
        self.executed: set[str] = set()
        self.results: dict[str, NodeExecutionResult] = {}
        self.skipped: dict[str, None] = {}  # Ordered set
        self.logs: list[str] = []
        self.hooks = ExecutorHooks(log=self.log, cancel_token=cancel_token)

    def log(self, message: str) -> None:
        line = format_log_line(message)
        self.logs.append(line)
        if self.log_to_logger:
            logger.info(message)
        self.notify("on_log", line)

    def notify(self, name: str, *args: Any) -> None:
        callback = getattr(self.callbacks, name)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.warning(f"Callback {name} raised {type(e).__name__}: {e}")

    def incoming_edges(self, node_id: str) -> list[WorkflowEdge]:
        """Inbound edges whose source is a declared node."""
        return [
            e for e in self.workflow.edges if e.target == node_id and e.source in self.nodes
        ]


class WorkflowEngine:
    """Executes workflows against an executor registry.

    Args:
        registry: Executors by node type (defaults to the built-in registry)
        config: Engine settings (defaults to EngineConfig())
    """

    def __init__(
        self,
        registry: ExecutorRegistry | None = None,
        config: EngineConfig | None = None,
    ):
        self.config = config or EngineConfig()
        self.registry = registry or default_registry(
            simulated_latency=self.config.simulated_latency,
            random_seed=self.config.random_seed,
        )

    async def execute(
        self,
        workflow: Workflow | Mapping[str, Any],
        initial_context: Mapping[str, Any] | None = None,
        callbacks: WorkflowCallbacks | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> WorkflowExecutionResult:
        """Run a workflow to completion.

        Args:
            workflow: Workflow model, or a mapping in the editor's JSON shape
            initial_context: Variables visible to the first nodes (copied)
            callbacks: Progress hooks
            cancel_token: Token that stops the run when cancelled

        Returns:
            WorkflowExecutionResult; node failures are reported in it, never raised

        Raises:
            WorkflowConfigurationError: If a mapping is not a valid workflow
        """
        workflow = parse_workflow(workflow)
        run = _WorkflowRun(
            workflow,
            dict(initial_context or {}),
            callbacks or WorkflowCallbacks(),
            cancel_token or CancellationToken(),
            self.config.log_to_logger,
        )

        start = time.perf_counter()
        run.log(f"Starting execution of workflow: {workflow.id} - {workflow.name}")

        try:
            resolved = resolve_order(workflow)
            if not resolved.complete:
                run.log("Warning: Workflow contains cycles or unreachable nodes")
            run.log(f"Initial execution order: {' → '.join(resolved.order)}")
            run.queue.extend(resolved.order)

            await self._drain(run)
        except Exception as e:
            logger.exception(f"Workflow {workflow.id} broke down")
            elapsed = time.perf_counter() - start
            run.log(f"Workflow execution failed: {e}")
            result = WorkflowExecutionResult(
                workflow_id=workflow.id,
                success=False,
                output=self._collect_outputs(run),
                node_results=dict(run.results),
                execution_time=elapsed,
                logs=list(run.logs),
                skipped=list(run.skipped),
                error=str(e) or type(e).__name__,
                cancelled=run.cancel_token.cancelled,
            )
            run.notify("on_workflow_complete", result)
            return result

        elapsed = time.perf_counter() - start
        cancelled = run.cancel_token.cancelled
        success = all(r.success for r in run.results.values()) and not cancelled
        run.log(
            f"Workflow execution {'completed successfully' if success else 'failed'} "
            f"in {elapsed:.3f}s"
        )

        result = WorkflowExecutionResult(
            workflow_id=workflow.id,
            success=success,
            output=self._collect_outputs(run),
            node_results=dict(run.results),
            execution_time=elapsed,
            logs=list(run.logs),
            skipped=list(run.skipped),
            error=run.cancel_token.reason if cancelled else None,
            cancelled=cancelled,
        )
        run.notify("on_workflow_complete", result)
        return result

    # ========== Queue processing ==========

    async def _drain(self, run: _WorkflowRun) -> None:
        while run.queue:
            if run.cancel_token.cancelled:
                run.log(
                    f"Workflow cancelled ({run.cancel_token.reason}); "
                    f"dropping {len(run.queue)} queued node(s)"
                )
                run.queue.clear()
                break

            node_id = run.queue.popleft()
            if node_id in run.executed:
                continue

            node = run.nodes.get(node_id)
            if node is None:
                run.log(f"Node {node_id} not found")
                continue

            if not self._is_active(run, node):
                run.log(f"Skipping node {node_id}: no active incoming edge")
                run.skipped[node_id] = None
                continue

            self._propagate_inputs(run, node)
            result = await self._execute_node(run, node)

            run.results[node_id] = result
            run.executed.add(node_id)
            run.skipped.pop(node_id, None)

            if result.success:
                run.context[node_id] = result.output
                branch = self._selected_branch(node, result)
                if branch is not None:
                    self._push_branch(run, node, branch)
            else:
                run.log(f"Node {node_id} failed, continuing with other nodes")

    def _selected_branch(self, node: WorkflowNode, result: NodeExecutionResult) -> bool | None:
        """Branch chosen by a successful conditional node, if any."""
        if node.node_type != NodeType.CONDITIONAL or not result.success:
            return None
        if not isinstance(result.output, dict):
            return None
        selected = result.output.get("result")
        return selected if isinstance(selected, bool) else None

    def _is_active(self, run: _WorkflowRun, node: WorkflowNode) -> bool:
        """A node runs if it has no inbound edges or at least one active one.

        An inbound edge is active once its source has a recorded result
        (success or failure) and, when the source is a conditional that chose
        a branch, the edge is followed for that choice.
        """
        incoming = run.incoming_edges(node.id)
        if not incoming:
            return True
        for edge in incoming:
            source_result = run.results.get(edge.source)
            if source_result is None:
                continue
            branch = self._selected_branch(run.nodes[edge.source], source_result)
            if branch is None or edge.is_followed(branch):
                return True
        return False

    def _propagate_inputs(self, run: _WorkflowRun, node: WorkflowNode) -> None:
        """Copy outputs of successful predecessors into the context.

        Every such output lands in ``{node_id}_input`` and, for edges naming a
        source handle, under the bare handle name. Later edges overwrite
        earlier ones.
        """
        for edge in run.incoming_edges(node.id):
            source_result = run.results.get(edge.source)
            if source_result is None or not source_result.success:
                continue
            run.context[f"{node.id}_input"] = source_result.output
            handle = edge.handle_name
            if handle:
                run.context[handle] = source_result.output

    def _push_branch(self, run: _WorkflowRun, node: WorkflowNode, branch: bool) -> None:
        targets = [e.target for e in run.workflow.outgoing_edges(node.id) if e.is_followed(branch)]
        pending = [t for t in targets if t not in run.executed]
        run.log(
            f"Conditional node {node.id} took the {'true' if branch else 'false'} branch"
            + (f": queueing {', '.join(pending)}" if pending else "")
        )
        run.queue.extend(pending)

    # ========== Node dispatch ==========

    async def _execute_node(self, run: _WorkflowRun, node: WorkflowNode) -> NodeExecutionResult:
        run.log(f"Starting execution of node: {node.id} ({node.type})")
        run.notify("on_node_start", node.id)

        start = time.perf_counter()
        try:
            executor = self.registry.get(node.type)
            result = await self._run_executor(run, executor, node)
            if not isinstance(result, NodeExecutionResult):
                raise TypeError(
                    f"Executor for '{node.type}' returned {type(result).__name__}, "
                    "expected NodeExecutionResult"
                )
        except Exception as e:
            result = NodeExecutionResult.fail(str(e) or type(e).__name__)
        elapsed = time.perf_counter() - start

        update: dict[str, Any] = {"execution_time": elapsed}
        if not result.success and not result.error:
            update["error"] = "Unknown error"
        result = result.model_copy(update=update)

        if result.success:
            run.log(f"Node {node.id} completed in {elapsed * 1000:.0f}ms")
            run.notify("on_node_complete", node.id, result.output)
        else:
            logger.error(f"Node {node.id} ({node.type}) failed: {result.error}")
            run.log(f"Error in node {node.id}: {result.error}")
            run.notify("on_node_error", node.id, result.error)
        return result

    async def _run_executor(
        self, run: _WorkflowRun, executor: NodeExecutor, node: WorkflowNode
    ) -> NodeExecutionResult:
        """Await the executor, bounded by the node timeout and the cancel token."""
        task = asyncio.ensure_future(executor.execute(node, run.context, run.hooks))
        cancelled = asyncio.ensure_future(run.cancel_token.wait())
        try:
            done, _ = await asyncio.wait(
                {task, cancelled},
                timeout=self.config.node_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            cancelled.cancel()

        if task in done:
            return task.result()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Node {node.id} raised while being interrupted: {e}")

        if run.cancel_token.cancelled:
            return NodeExecutionResult.fail(f"Node cancelled: {run.cancel_token.reason}")
        return NodeExecutionResult.fail(f"Node timed out after {self.config.node_timeout:g}s")

    # ========== Results ==========

    def _collect_outputs(self, run: _WorkflowRun) -> dict[str, Any]:
        """Values of output-node variables present in the final context."""
        output: dict[str, Any] = {}
        for node in run.workflow.nodes:
            if node.node_type != NodeType.OUTPUT:
                continue
            key = output_variable(node)
            if key and key in run.context:
                output[key] = run.context[key]
        return output


def execute_workflow(
    workflow: Workflow | Mapping[str, Any],
    initial_context: Mapping[str, Any] | None = None,
    callbacks: WorkflowCallbacks | None = None,
    config: EngineConfig | None = None,
    registry: ExecutorRegistry | None = None,
    cancel_token: CancellationToken | None = None,
) -> WorkflowExecutionResult:
    """Synchronous wrapper around WorkflowEngine.execute (not for use inside a running loop)."""
    engine = WorkflowEngine(registry=registry, config=config)
    return asyncio.run(engine.execute(workflow, initial_context, callbacks, cancel_token))


def validate_workflow(
    workflow: Workflow,
    registry: ExecutorRegistry | None = None,
) -> list[str]:
    """Pre-flight check: graph issues plus each node's executor validation.

    The engine itself does not call ``validate``; this is for callers (such
    as the CLI) that want to report configuration problems before running.
    """
    issues = workflow.validate_graph()
    registry = registry or default_registry()
    for node in workflow.nodes:
        if node.type not in registry:
            if node.node_type is not None:
                issues.append(f"Node '{node.id}': no executor registered for type '{node.type}'")
            continue
        if not registry.get(node.type).validate(node):
            issues.append(f"Node '{node.id}' ({node.type}): invalid or incomplete configuration")
    return issues
