"""Workflow graph schema definitions using Pydantic models.

Workflows are directed graphs of typed nodes (trigger, agent, conditional,
output, ...) joined by edges. Edges leaving a conditional node may be marked as
belonging to its "true" or "false" branch through their label or source handle;
unmarked edges are followed regardless of the condition's outcome.

Definitions usually come from the graph editor as camelCase JSON, so edge and
result fields accept camelCase aliases alongside their snake_case names.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import networkx as nx
from pydantic import BaseModel, ConfigDict, Field, model_validator


class NodeType(str, Enum):
    """Node type tags understood by the built-in executor registry"""

    TRIGGER = "trigger"  # Seeds the context with configured inputs
    INPUT = "input"  # Literal value or context variable
    OUTPUT = "output"  # Publishes a value under a declared variable name
    AGENT = "agent"  # Model call with chat / function-calling / reasoning strategies
    LLM = "llm"  # Plain model call (same executor as AGENT)
    CONDITIONAL = "conditional"  # Boolean branch point
    FUNCTION = "function"  # Registered utility function
    RAG = "rag"  # External: retrieval-augmented generation
    WEB_SEARCH = "web-search"  # External: web search provider
    KNOWLEDGE_BASE = "knowledge-base"  # External: document store query
    LANCEDB = "lancedb"  # External: vector query

    @classmethod
    def external_types(cls) -> set[NodeType]:
        """Types backed by out-of-process services (stubbed in this runtime)."""
        return {cls.RAG, cls.WEB_SEARCH, cls.KNOWLEDGE_BASE, cls.LANCEDB}


class NodeStatus(str, Enum):
    """Per-node outcome of a run, as reported to renderers"""

    PENDING = "pending"  # Never reached (queue emptied first)
    COMPLETED = "completed"  # Executed successfully
    FAILED = "failed"  # Executed, executor reported or raised an error
    SKIPPED = "skipped"  # Reached, but no inbound edge was active


class WorkflowEdge(BaseModel):
    """Directed edge between nodes, optionally naming a branch or output handle"""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    source: str  # Source node ID
    target: str  # Target node ID
    source_handle: str | None = Field(default=None, alias="sourceHandle")
    target_handle: str | None = Field(default=None, alias="targetHandle")
    label: str | None = None  # "true" / "false" on conditional branches

    @property
    def is_true_branch(self) -> bool:
        return self.label == "true" or (
            self.source_handle is not None and "true" in self.source_handle
        )

    @property
    def is_false_branch(self) -> bool:
        return self.label == "false" or (
            self.source_handle is not None and "false" in self.source_handle
        )

    @property
    def is_unconditional(self) -> bool:
        """Edge carries no branch marker and is followed on either outcome."""
        return not self.is_true_branch and not self.is_false_branch

    def is_followed(self, result: bool) -> bool:
        """Whether a conditional source with this outcome activates the edge."""
        if (result and self.is_true_branch) or (not result and self.is_false_branch):
            return True
        return self.is_unconditional

    @property
    def handle_name(self) -> str | None:
        """Context key for the source handle ("handle-summary" -> "summary")."""
        if not self.source_handle:
            return None
        return self.source_handle.replace("handle-", "", 1)


class WorkflowNode(BaseModel):
    """Graph node with free-form, type-specific configuration in ``data``"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    type: str  # Usually a NodeType value; unknown tags fail at dispatch time
    label: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def node_type(self) -> NodeType | None:
        """The NodeType for this node's tag, or None when the tag is unknown."""
        try:
            return NodeType(self.type)
        except ValueError:
            return None

    @property
    def display_name(self) -> str:
        return self.label or self.data.get("label") or self.id


class Workflow(BaseModel):
    """Complete workflow definition, immutable for the duration of a run"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str
    description: str | None = None

    nodes: list[WorkflowNode] = Field(default_factory=list)
    edges: list[WorkflowEdge] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_node_ids(self) -> Workflow:
        """Node IDs key the results map, so duplicates would corrupt a run."""
        seen: set[str] = set()
        duplicates: list[str] = []
        for node in self.nodes:
            if node.id in seen:
                duplicates.append(node.id)
            seen.add(node.id)
        if duplicates:
            raise ValueError(f"Duplicate node ID(s): {sorted(set(duplicates))}")
        return self

    # ========== Lookups ==========

    def node_map(self) -> dict[str, WorkflowNode]:
        return {n.id: n for n in self.nodes}

    def get_node(self, node_id: str) -> WorkflowNode | None:
        return next((n for n in self.nodes if n.id == node_id), None)

    def incoming_edges(self, node_id: str) -> list[WorkflowEdge]:
        return [e for e in self.edges if e.target == node_id]

    def outgoing_edges(self, node_id: str) -> list[WorkflowEdge]:
        return [e for e in self.edges if e.source == node_id]

    # ========== Structural analysis ==========

    def validate_graph(self) -> list[str]:
        """
        Check graph structure using NetworkX.
        Returns a list of human-readable issues; an empty list means no issues.

        None of these issues stop execution. The engine tolerates dangling
        edges, cycles and unknown node types (which fail at dispatch).
        """
        issues = []
        node_ids = {n.id for n in self.nodes}

        # Check for duplicate edge IDs
        seen_edge_ids = set()
        for edge in self.edges:
            if edge.id in seen_edge_ids:
                issues.append(f"Duplicate edge ID: '{edge.id}'")
            seen_edge_ids.add(edge.id)

        # Check all edge endpoints exist
        for edge in self.edges:
            if edge.source not in node_ids:
                issues.append(f"Edge {edge.id}: source '{edge.source}' not found")
            if edge.target not in node_ids:
                issues.append(f"Edge {edge.id}: target '{edge.target}' not found")

        # Unknown node type tags
        for node in self.nodes:
            if node.node_type is None:
                issues.append(f"Node '{node.id}': unknown node type '{node.type}'")

        # Conditional nodes need somewhere to route to
        for node in self.nodes:
            if node.node_type == NodeType.CONDITIONAL and not self.outgoing_edges(node.id):
                issues.append(f"Conditional node '{node.id}' has no outgoing edges")

        # Limit cycle enumeration to prevent blow-up on dense graphs
        MAX_CYCLES_TO_REPORT = 100
        G = self._to_networkx()
        try:
            for cycle_count, cycle in enumerate(nx.simple_cycles(G), start=1):
                if cycle_count > MAX_CYCLES_TO_REPORT:
                    issues.append(f"Too many cycles to report (>{MAX_CYCLES_TO_REPORT})")
                    break
                issues.append(f"Cycle detected: {' -> '.join(cycle)}")
        except nx.NetworkXError as e:
            issues.append(f"Could not perform cycle detection: {e}")

        return issues

    def _to_networkx(self) -> nx.DiGraph:
        """Convert to NetworkX DiGraph for analysis (dangling edges dropped)"""
        G = nx.DiGraph()
        node_ids = set()
        for node in self.nodes:
            G.add_node(node.id)
            node_ids.add(node.id)
        for edge in self.edges:
            if edge.source in node_ids and edge.target in node_ids:
                G.add_edge(edge.source, edge.target)
        return G

    def get_entry_nodes(self) -> list[str]:
        """Nodes with no incoming edges, in declaration order"""
        targets = {e.target for e in self.edges}
        return [n.id for n in self.nodes if n.id not in targets]

    def get_terminal_nodes(self) -> set[str]:
        """Find nodes with no outgoing edges"""
        G = self._to_networkx()
        return {n for n in G.nodes() if G.out_degree(n) == 0}

    def analyze_parallelism(self) -> list[list[str]]:
        """Find nodes that have no ordering constraint between them (topological levels)"""
        G = self._to_networkx()
        try:
            return [list(level) for level in nx.topological_generations(G)]
        except nx.NetworkXUnfeasible:
            return []  # Has cycles


# --- Execution results ---


class NodeExecutionResult(BaseModel):
    """Outcome of running one node"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    success: bool
    output: Any = None
    error: str | None = None
    execution_time: float = Field(default=0.0, alias="executionTime")  # Seconds

    @classmethod
    def ok(cls, output: Any = None) -> NodeExecutionResult:
        return cls(success=True, output=output)

    @classmethod
    def fail(cls, error: str) -> NodeExecutionResult:
        return cls(success=False, error=error)


class WorkflowExecutionResult(BaseModel):
    """Outcome of one workflow run. Produced once per run and never mutated."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    workflow_id: str = Field(alias="workflowId")
    success: bool  # AND over every executed node's result
    output: dict[str, Any] = Field(default_factory=dict)  # Output variable -> value
    node_results: dict[str, NodeExecutionResult] = Field(
        default_factory=dict, alias="nodeResults"
    )
    execution_time: float = Field(default=0.0, alias="executionTime")  # Seconds
    logs: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)  # Reached but not activated
    error: str | None = None  # Set only when the run itself broke down
    cancelled: bool = False

    def node_status(self, node_id: str) -> NodeStatus:
        """Status of a node in this run, for rendering."""
        result = self.node_results.get(node_id)
        if result is not None:
            return NodeStatus.COMPLETED if result.success else NodeStatus.FAILED
        if node_id in self.skipped:
            return NodeStatus.SKIPPED
        return NodeStatus.PENDING

    @property
    def failed_nodes(self) -> list[str]:
        return [nid for nid, r in self.node_results.items() if not r.success]
