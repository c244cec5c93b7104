"""Node executor contract and type-keyed registry.

Every node type is handled by a ``NodeExecutor``: ``validate`` is a cheap
configuration check, ``execute`` does the work against the shared run context
and returns a ``NodeExecutionResult``. Executors may also raise; the engine
converts anything raised at the dispatch boundary into a failed result.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from flowcore.core.exceptions import UnsupportedNodeTypeError
from flowcore.core.graph_schema import NodeExecutionResult, NodeType, WorkflowNode

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag for one workflow run.

    ``cancel()`` may be called from a callback or any coroutine on the run's
    event loop. The engine stops dequeuing nodes and interrupts the node that
    is currently awaiting.
    """

    def __init__(self):
        self._cancelled = False
        self.reason: str | None = None
        self._waiters: list[asyncio.Event] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "Workflow cancelled") -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self.reason = reason
        for event in self._waiters:
            event.set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        if self._cancelled:
            return
        event = asyncio.Event()
        self._waiters.append(event)
        try:
            await event.wait()
        finally:
            self._waiters.remove(event)


def _discard_log(message: str) -> None:
    pass


@dataclass
class ExecutorHooks:
    """Run services handed to executors alongside the context."""

    log: Callable[[str], None] = _discard_log  # Appends to the run log
    cancel_token: CancellationToken = field(default_factory=CancellationToken)

    async def sleep(self, seconds: float) -> None:
        """Sleep, returning early if the run is cancelled."""
        if seconds <= 0 or self.cancel_token.cancelled:
            return
        try:
            await asyncio.wait_for(self.cancel_token.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass


class NodeExecutor(ABC):
    """Base class for node executors.

    Executors receive the run context by reference and may write to it
    (trigger and output nodes do). They must not keep per-run state on the
    instance: one registry may serve concurrent runs.
    """

    def validate(self, node: WorkflowNode) -> bool:
        """Return True if ``node`` carries the configuration this executor needs."""
        return True

    @abstractmethod
    async def execute(
        self,
        node: WorkflowNode,
        context: dict[str, Any],
        hooks: ExecutorHooks,
    ) -> NodeExecutionResult:
        """Run ``node`` against ``context``.

        Args:
            node: Node being executed
            context: Shared variable context for the run
            hooks: Log sink and cancellation token for the run

        Returns:
            NodeExecutionResult; execution time is filled in by the engine
        """
        pass


def _type_key(node_type: NodeType | str) -> str:
    return node_type.value if isinstance(node_type, Enum) else node_type


class ExecutorRegistry:
    """Maps node type tags to executors."""

    def __init__(self, executors: dict[NodeType | str, NodeExecutor] | None = None):
        self._executors: dict[str, NodeExecutor] = {}
        for node_type, executor in (executors or {}).items():
            self.register(node_type, executor)

    def register(self, node_type: NodeType | str, executor: NodeExecutor) -> None:
        """Register (or replace) the executor for a type tag."""
        key = _type_key(node_type)
        if key in self._executors:
            logger.debug(f"Replacing executor for node type '{key}'")
        self._executors[key] = executor

    def get(self, node_type: NodeType | str) -> NodeExecutor:
        """Return the executor for a type tag.

        Raises:
            UnsupportedNodeTypeError: If nothing is registered for the tag
        """
        executor = self._executors.get(_type_key(node_type))
        if executor is None:
            raise UnsupportedNodeTypeError(_type_key(node_type))
        return executor

    def __contains__(self, node_type: object) -> bool:
        if not isinstance(node_type, (str, Enum)):
            return False
        return _type_key(node_type) in self._executors

    def registered_types(self) -> list[str]:
        return sorted(self._executors)

    def missing_types(self) -> set[NodeType]:
        """NodeType members that have no executor registered."""
        return {t for t in NodeType if t.value not in self._executors}
