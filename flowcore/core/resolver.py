"""Dependency resolution for workflow graphs.

Computes a topological execution order with Kahn's algorithm. Every edge is
treated as a hard dependency. The order is only a priority seed for the
engine's work queue: conditional branches can later push nodes the order could
not place, so cycles and statically unreachable nodes are reported, not fatal.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field

from flowcore.core.graph_schema import Workflow

logger = logging.getLogger(__name__)


@dataclass
class ResolvedOrder:
    """Result of ordering a workflow graph."""

    order: list[str]  # Node IDs, every resolvable source before its targets
    unresolved: list[str] = field(default_factory=list)  # In a cycle or behind one

    @property
    def complete(self) -> bool:
        return not self.unresolved


def resolve_order(workflow: Workflow) -> ResolvedOrder:
    """Order workflow nodes using Kahn's algorithm.

    ALGORITHM:
    1. Build adjacency list and in-degree counts from edges
    2. Seed a FIFO queue with zero in-degree nodes (declaration order)
    3. Pop a node, append it, decrement successors, enqueue those reaching zero

    Edges whose source or target is not a declared node are ignored; the
    engine tolerates such stale references at run time.

    Args:
        workflow: Workflow to order

    Returns:
        ResolvedOrder with the (possibly partial) order and the node IDs that
        could not be placed
    """
    node_ids = [n.id for n in workflow.nodes]
    known = set(node_ids)

    # Adjacency list: node -> list of nodes that depend on it
    dependents: dict[str, list[str]] = {nid: [] for nid in node_ids}
    in_degree: dict[str, int] = {nid: 0 for nid in node_ids}

    for edge in workflow.edges:
        if edge.source not in known or edge.target not in known:
            continue
        dependents[edge.source].append(edge.target)
        in_degree[edge.target] += 1

    queue = deque(nid for nid in node_ids if in_degree[nid] == 0)
    order: list[str] = []

    while queue:
        node_id = queue.popleft()
        order.append(node_id)

        for dependent in dependents[node_id]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    unresolved = [nid for nid in node_ids if in_degree[nid] > 0]
    if unresolved:
        logger.warning(
            f"Workflow '{workflow.id}' contains cycles or unreachable nodes: {unresolved}. "
            "Continuing with partial order."
        )

    return ResolvedOrder(order=order, unresolved=unresolved)


def execution_order(workflow: Workflow) -> list[str]:
    """Return the topological order of ``workflow`` (partial if it has cycles)."""
    return resolve_order(workflow).order
